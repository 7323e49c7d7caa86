"""Turns extracted structure and raw sources into documentation via an LLM."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Protocol, Sequence

from ..errors import SynthesisError
from ..logging import get_logger
from ..models import ApiEntry, CommentSuggestion, QualityIssue, QualityReport, ReadmeResult
from . import prompts

_FENCE_PATTERN = re.compile(r"^```[A-Za-z0-9_-]*\s*\n(.*?)\n?```\s*$", re.DOTALL)
_UNSAFE_NAME = re.compile(r"[^A-Za-z0-9]")

ASSET_URL_PREFIX = "/api/images"


class TextRunner(Protocol):
    def run(self, prompt: str, *, system: str | None = None, json_mode: bool = False) -> str: ...


BannerGenerator = Callable[[str], Optional[bytes]]


class DocumentationSynthesizer:
    """Wraps the four documentation generation calls.

    Every failure, whether transport or malformed model output, surfaces as
    :class:`SynthesisError`. Nothing is retried here.
    """

    def __init__(
        self,
        runner: TextRunner,
        *,
        assets_dir: Path | None = None,
        banner_generator: BannerGenerator | None = None,
    ) -> None:
        self.runner = runner
        self.assets_dir = assets_dir or Path("generated_images")
        self.banner_generator = banner_generator
        self.logger = get_logger("synthesis")

    def synthesize_readme(
        self,
        name: str,
        description: Optional[str],
        files: Sequence[str],
        structure: Any,
    ) -> ReadmeResult:
        content = self._complete(
            "README",
            prompts.readme_prompt(name, description, files, structure),
            system=prompts.README_SYSTEM_PROMPT,
        )
        banner_path = self._render_banner(name, description)
        if banner_path is not None:
            content = f"![{name} Banner]({ASSET_URL_PREFIX}/{banner_path.name})\n\n{content}"
        return ReadmeResult(
            content=content, banner_path=str(banner_path) if banner_path is not None else None
        )

    def synthesize_api_docs(self, entries: Iterable[ApiEntry]) -> str:
        return self._complete("API documentation", prompts.api_docs_prompt(entries))

    def synthesize_comments(self, source_text: str, file_name: str) -> List[CommentSuggestion]:
        raw = self._complete(
            "code comments",
            prompts.comments_prompt(source_text, file_name),
            system=prompts.COMMENTS_SYSTEM_PROMPT,
            json_mode=True,
        )
        payload = _load_json(raw, "code comments")
        if isinstance(payload, dict):
            payload = payload.get("suggestions", [])
        if not isinstance(payload, list):
            raise SynthesisError("Failed to generate code comments: expected a list of suggestions")

        suggestions: List[CommentSuggestion] = []
        for item in payload:
            if not isinstance(item, dict):
                continue
            comment = item.get("comment")
            line = _as_int(item.get("line"))
            if not isinstance(comment, str) or not comment.strip() or line is None:
                continue
            category = item.get("type") or item.get("category")
            if category not in prompts.COMMENT_CATEGORIES:
                category = "explanation"
            suggestions.append(CommentSuggestion(line=line, comment=comment.strip(), category=category))
        return suggestions

    def synthesize_quality_report(self, files: Iterable[tuple[str, str]]) -> QualityReport:
        raw = self._complete(
            "quality report",
            prompts.quality_prompt(files),
            system=prompts.QUALITY_SYSTEM_PROMPT,
            json_mode=True,
        )
        payload = _load_json(raw, "quality report")
        if not isinstance(payload, dict):
            raise SynthesisError("Failed to analyze code quality: expected a JSON object")

        score = _as_int(payload.get("score"))
        if score is None:
            raise SynthesisError("Failed to analyze code quality: missing score")

        issues: List[QualityIssue] = []
        for item in payload.get("issues") or []:
            if not isinstance(item, dict) or not isinstance(item.get("message"), str):
                continue
            issue_type = item.get("type")
            issues.append(
                QualityIssue(
                    file=str(item.get("file") or ""),
                    line=_as_int(item.get("line")),
                    type=issue_type if issue_type in prompts.ISSUE_TYPES else "suggestion",
                    message=item["message"],
                )
            )
        suggestions = [str(item) for item in payload.get("suggestions") or [] if isinstance(item, str)]
        return QualityReport(score=max(0, min(100, score)), issues=issues, suggestions=suggestions)

    # ------------------------------------------------------------------
    # Internal helpers

    def _complete(
        self, label: str, prompt: str, *, system: str | None = None, json_mode: bool = False
    ) -> str:
        self.logger.debug("Requesting %s (%d prompt chars)", label, len(prompt))
        try:
            text = self.runner.run(prompt, system=system, json_mode=json_mode)
        except Exception as exc:
            raise SynthesisError(f"Failed to generate {label}: {exc}") from exc
        if not text or not text.strip():
            raise SynthesisError(f"Failed to generate {label}: empty response from model")
        return text

    def _render_banner(self, name: str, description: Optional[str]) -> Path | None:
        if self.banner_generator is None:
            return None
        try:
            image = self.banner_generator(prompts.banner_prompt(name, description))
            if not image:
                return None
            self.assets_dir.mkdir(parents=True, exist_ok=True)
            path = self.assets_dir / f"{_UNSAFE_NAME.sub('_', name)}_banner.png"
            path.write_bytes(image)
        except Exception as exc:
            self.logger.warning("Failed to generate banner for %s: %s", name, exc)
            return None
        self.logger.info("Generated banner image: %s", path)
        return path


def _load_json(text: str, label: str) -> Any:
    stripped = text.strip()
    fenced = _FENCE_PATTERN.match(stripped)
    if fenced:
        stripped = fenced.group(1).strip()
    try:
        return json.loads(stripped)
    except json.JSONDecodeError as exc:
        raise SynthesisError(f"Failed to generate {label}: model returned invalid JSON") from exc


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return None
    return None


__all__ = ["ASSET_URL_PREFIX", "BannerGenerator", "DocumentationSynthesizer", "TextRunner"]
