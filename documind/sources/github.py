"""GitHub REST API client used as the repository source provider."""

from __future__ import annotations

import base64
import binascii
import json
import re
from dataclasses import dataclass, field
from http.client import HTTPException
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from ..config import GitHubConfig
from ..errors import (
    AccessDeniedError,
    InvalidRepositoryURL,
    RateLimitedError,
    SourceError,
    SourceNotFoundError,
)
from ..logging import get_logger
from ..models import FileNode
from ..selection import build_file_tree

_REPO_URL_PATTERN = re.compile(r"^(?:https?://)?(?:www\.)?github\.com/([^/\s]+)/([^/\s#?]+)")


@dataclass
class RepositoryMetadata:
    name: str
    owner: str
    description: Optional[str]
    language: Optional[str]
    default_branch: str
    file_tree: List[FileNode] = field(default_factory=list)


def parse_repository_url(url: str) -> tuple[str, str]:
    """Return ``(owner, repo)`` for a GitHub repository URL."""
    match = _REPO_URL_PATTERN.match((url or "").strip())
    if not match:
        raise InvalidRepositoryURL(f"Invalid GitHub repository URL: {url!r}")
    owner, repo = match.group(1), match.group(2)
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not repo:
        raise InvalidRepositoryURL(f"Invalid GitHub repository URL: {url!r}")
    return owner, repo


class GitHubSource:
    """Fetches repository metadata, trees and file contents over HTTPS."""

    def __init__(self, config: GitHubConfig | None = None) -> None:
        self.config = config or GitHubConfig()
        self.logger = get_logger("sources.github")

    def fetch_repository_metadata(self, url: str) -> RepositoryMetadata:
        owner, repo = parse_repository_url(url)
        info = self._get_json(f"/repos/{owner}/{repo}")
        if not isinstance(info, dict):
            raise SourceError("GitHub API returned an unexpected repository payload")
        branch = str(info.get("default_branch") or "main")
        tree_payload = self._get_json(
            f"/repos/{owner}/{repo}/git/trees/{quote(branch, safe='')}?recursive=1"
        )
        entries = tree_payload.get("tree") if isinstance(tree_payload, dict) else None
        if not isinstance(entries, list):
            raise SourceError("GitHub API returned an unexpected tree payload")
        if tree_payload.get("truncated"):
            self.logger.warning("File tree for %s/%s was truncated by GitHub", owner, repo)
        full_name = str(info.get("full_name") or f"{owner}/{repo}")
        return RepositoryMetadata(
            name=str(info.get("name") or repo),
            owner=full_name.split("/", 1)[0],
            description=_optional_str(info.get("description")),
            language=_optional_str(info.get("language")),
            default_branch=branch,
            file_tree=build_file_tree(entry for entry in entries if isinstance(entry, dict)),
        )

    def fetch_file_content(self, url: str, path: str) -> str:
        owner, repo = parse_repository_url(url)
        payload = self._get_json(f"/repos/{owner}/{repo}/contents/{quote(path)}")
        content = payload.get("content") if isinstance(payload, dict) else None
        if not isinstance(content, str) or not content:
            raise SourceNotFoundError(f"File content not found: {path}")
        try:
            return base64.b64decode(content).decode("utf-8", errors="replace")
        except (binascii.Error, ValueError) as exc:
            raise SourceError(f"Could not decode content of {path}: {exc}") from exc

    def fetch_many(self, url: str, paths: Sequence[str]) -> Dict[str, str]:
        """Fetch ``paths`` one after another, omitting any that fail."""
        contents: Dict[str, str] = {}
        for path in paths:
            try:
                contents[path] = self.fetch_file_content(url, path)
            except SourceError as exc:
                self.logger.warning("Failed to fetch %s: %s", path, exc)
        return contents

    # ------------------------------------------------------------------
    # Internal helpers

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": self.config.user_agent,
        }
        if self.config.token:
            headers["Authorization"] = f"token {self.config.token}"
        return headers

    def _get_json(self, endpoint: str) -> Any:
        request = Request(f"{self.config.api_url}{endpoint}", headers=self._headers(), method="GET")
        try:
            with urlopen(request, timeout=self.config.request_timeout) as response:  # type: ignore[arg-type]
                raw = response.read()
        except HTTPError as exc:
            raise _error_for_status(exc.code, exc.reason, exc.headers) from exc
        except URLError as exc:
            raise SourceError(f"GitHub API request failed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise SourceError("GitHub API request timed out") from exc
        except (OSError, HTTPException) as exc:
            # connection resets and truncated bodies surface here, often mid-read
            raise SourceError(f"GitHub API request failed: {exc}") from exc

        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise SourceError("GitHub API returned invalid JSON") from exc


def _error_for_status(status: int, reason: object, headers: Mapping[str, str] | None) -> SourceError:
    if status == 404:
        return SourceNotFoundError("Repository not found or is private")
    remaining = headers.get("X-RateLimit-Remaining") if headers is not None else None
    if status == 429 or (status == 403 and remaining == "0"):
        return RateLimitedError("API rate limit exceeded")
    if status in {401, 403}:
        return AccessDeniedError("Access denied by GitHub API")
    return SourceError(f"GitHub API error: {status} {reason}")


def _optional_str(value: object) -> Optional[str]:
    return value if isinstance(value, str) and value else None


__all__ = ["GitHubSource", "RepositoryMetadata", "parse_repository_url"]
