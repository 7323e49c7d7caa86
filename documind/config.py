"""Configuration loading for documind (documind.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import yaml

CONFIG_FILENAME = "documind.yml"
CONFIG_ENV_KEY = "DOCUMIND_CONFIG"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class GitHubConfig:
    """GitHub REST API access settings."""

    token: Optional[str] = None
    api_url: str = "https://api.github.com"
    request_timeout: float = 30.0
    user_agent: str = "documind"


@dataclass
class LLMConfig:
    """Language-model endpoint settings; unset values fall back to the environment."""

    model: Optional[str] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    request_timeout: Optional[float] = None
    # banner images are generated only when an image model is configured
    image_model: Optional[str] = None
    image_size: Optional[str] = None


@dataclass
class AnalysisConfig:
    """Caps on how many selected files each downstream call receives."""

    quality_file_limit: int = 5
    api_file_limit: int = 5
    comment_file_limit: int = 3
    poll_interval: float = 1.0


@dataclass
class ServiceConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    assets_dir: Path = field(default_factory=lambda: Path("generated_images"))


@dataclass
class DocuMindConfig:
    """Represents the settings defined in documind.yml."""

    github: GitHubConfig = field(default_factory=GitHubConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    service: ServiceConfig = field(default_factory=ServiceConfig)


def resolve_config_path(path: Path | None = None) -> Path:
    if path is None:
        env_value = os.getenv(CONFIG_ENV_KEY)
        path = Path(env_value) if env_value else Path.cwd()
    path = path.expanduser()
    if path.is_dir():
        return (path / CONFIG_FILENAME).resolve()
    return path.resolve()


def load_config(path: Path | None = None) -> DocuMindConfig:
    """Load configuration from disk, returning defaults when the file is absent."""
    config_file = resolve_config_path(path)
    root = config_file.parent

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)

    github_data = _as_dict(data.get("github"))
    github = GitHubConfig(
        token=_as_str(github_data.get("token"))
        or _first_env_value(("GITHUB_TOKEN", "GITHUB_API_KEY")),
    )
    api_url = _as_str(github_data.get("api_url"))
    if api_url:
        github.api_url = api_url.rstrip("/")
    github_timeout = _as_float(github_data.get("request_timeout"))
    if github_timeout is not None:
        github.request_timeout = github_timeout
    user_agent = _as_str(github_data.get("user_agent"))
    if user_agent:
        github.user_agent = user_agent

    llm_data = _as_dict(data.get("llm"))
    llm = LLMConfig(
        model=_as_str(llm_data.get("model")),
        base_url=_as_str(llm_data.get("base_url")),
        api_key=_as_str(llm_data.get("api_key")),
        temperature=_as_float(llm_data.get("temperature")),
        max_tokens=_as_int(llm_data.get("max_tokens")),
        request_timeout=_as_float(llm_data.get("request_timeout")),
        image_model=_as_str(llm_data.get("image_model")),
        image_size=_as_str(llm_data.get("image_size")),
    )

    analysis_data = _as_dict(data.get("analysis"))
    analysis = AnalysisConfig()
    for key in ("quality_file_limit", "api_file_limit", "comment_file_limit"):
        value = _as_int(analysis_data.get(key))
        if value is not None:
            if value < 1:
                raise ConfigError(f"analysis.{key} must be a positive integer")
            setattr(analysis, key, value)
    poll_interval = _as_float(analysis_data.get("poll_interval"))
    if poll_interval is not None:
        analysis.poll_interval = poll_interval

    service_data = _as_dict(data.get("service"))
    service = ServiceConfig()
    host = _as_str(service_data.get("host"))
    if host:
        service.host = host
    port = _as_int(service_data.get("port"))
    if port is not None:
        service.port = port
    assets_dir = _as_str(service_data.get("assets_dir"))
    if assets_dir:
        service.assets_dir = root / assets_dir

    return DocuMindConfig(github=github, llm=llm, analysis=analysis, service=service)


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _first_env_value(keys: Sequence[str]) -> Optional[str]:
    for key in keys:
        value = os.getenv(key)
        if value:
            return value
    return None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


__all__ = [
    "AnalysisConfig",
    "ConfigError",
    "DocuMindConfig",
    "GitHubConfig",
    "LLMConfig",
    "ServiceConfig",
    "load_config",
    "resolve_config_path",
]
