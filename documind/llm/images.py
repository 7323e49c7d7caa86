"""Client for OpenAI-compatible image generation endpoints."""

from __future__ import annotations

import base64
import binascii
import json
from typing import Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..config import LLMConfig
from ..errors import SynthesisError
from .runner import LLMRunner


class ImageClient:
    """Generates one PNG per prompt; usable directly as a banner generator."""

    DEFAULT_SIZE = "1792x1024"
    ENV_MODEL_KEYS = ("DOCUMIND_IMAGE_MODEL",)

    def __init__(
        self,
        model: str,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        size: str | None = None,
        request_timeout: Optional[float] = 120.0,
    ) -> None:
        self.model = model
        self.base_url = (base_url or LLMRunner.DEFAULT_BASE_URL).rstrip("/")
        self.api_key = api_key
        self.size = size or self.DEFAULT_SIZE
        self.request_timeout = request_timeout

    @classmethod
    def from_config(cls, config: LLMConfig) -> "ImageClient | None":
        """Return a client for ``config.image_model``, or ``None`` when none is set.

        Endpoint and key resolve the same way as for chat completions.
        """
        model = config.image_model or LLMRunner._first_env_value(cls.ENV_MODEL_KEYS)
        if not model:
            return None
        base_url = config.base_url or LLMRunner._first_env_value(LLMRunner.ENV_BASE_URL_KEYS)
        api_key = config.api_key or LLMRunner._first_env_value(LLMRunner.ENV_API_KEY_KEYS)
        return cls(
            model,
            base_url=base_url,
            api_key=api_key,
            size=config.image_size,
            request_timeout=config.request_timeout or 120.0,
        )

    def __call__(self, prompt: str) -> bytes:
        return self.generate(prompt)

    def generate(self, prompt: str) -> bytes:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "n": 1,
            "size": self.size,
            "response_format": "b64_json",
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        request = Request(
            f"{self.base_url}/images/generations",
            data=json.dumps(payload).encode("utf-8"),
            headers=headers,
            method="POST",
        )

        try:
            with urlopen(request, timeout=self.request_timeout) as response:  # type: ignore[arg-type]
                raw = response.read()
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="ignore") if hasattr(exc, "read") else ""
            message = detail.strip() or exc.reason
            raise SynthesisError(
                f"Image request failed with status {exc.code}: {message}"
            ) from exc
        except URLError as exc:
            raise SynthesisError(f"Image request failed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise SynthesisError("Image request timed out") from exc

        try:
            response_payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise SynthesisError("Image endpoint returned invalid JSON") from exc

        encoded = self._extract_image(response_payload)
        if not encoded:
            raise SynthesisError("Image endpoint returned no image data")
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SynthesisError("Image endpoint returned undecodable image data") from exc

    @staticmethod
    def _extract_image(payload: object) -> str:
        if not isinstance(payload, dict):
            return ""
        data = payload.get("data")
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            return ""
        encoded = data[0].get("b64_json")
        return encoded if isinstance(encoded, str) else ""


__all__ = ["ImageClient"]
