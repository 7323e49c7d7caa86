"""Request-level operations: submit, inspect and generate documentation."""

from __future__ import annotations

import asyncio
import functools
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

from .config import DocuMindConfig
from .errors import InputError, JobNotFoundError, RepositoryNotFoundError
from .extractors import extract
from .llm.images import ImageClient
from .llm.runner import LLMRunner
from .logging import get_logger
from .models import (
    AnalysisJob,
    ApiEntry,
    CommentSuggestion,
    Documentation,
    ParsedFunction,
    Repository,
)
from .pipeline import AnalysisController
from .selection import select_main_files
from .sources.github import GitHubSource, parse_repository_url
from .stores import InMemoryStore, Store
from .synthesis import DocumentationSynthesizer

_T = TypeVar("_T")

DOCUMENTATION_TYPES: tuple[str, ...] = ("readme", "api", "comments")


@dataclass
class Submission:
    """Records handed back immediately after an analysis request."""

    repository: Repository
    job: AnalysisJob
    created: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"repository": self.repository.to_dict(), "analysis_job": self.job.to_dict()}


@dataclass
class RepositoryDetail:
    repository: Repository
    job: Optional[AnalysisJob]
    documentation: List[Documentation] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "repository": self.repository.to_dict(),
            "analysis_job": self.job.to_dict() if self.job is not None else None,
            "documentations": [doc.to_dict() for doc in self.documentation],
        }


class Orchestrator:
    """Coordinates the store, source provider, synthesizer and analysis pipeline."""

    def __init__(
        self,
        config: DocuMindConfig | None = None,
        *,
        store: Store | None = None,
        source: GitHubSource | None = None,
        synthesizer: DocumentationSynthesizer | None = None,
        controller: AnalysisController | None = None,
    ) -> None:
        self.config = config or DocuMindConfig()
        self.store = store or InMemoryStore()
        self.source = source or GitHubSource(self.config.github)
        self.synthesizer = synthesizer or DocumentationSynthesizer(
            LLMRunner.from_config(self.config.llm),
            assets_dir=self.config.service.assets_dir,
            banner_generator=ImageClient.from_config(self.config.llm),
        )
        self.controller = controller or AnalysisController(
            self.store, self.source, self.synthesizer, settings=self.config.analysis
        )
        self.logger = get_logger("orchestrator")

    async def submit(self, url: str) -> Submission:
        """Register ``url`` and start analysis in the background."""
        url = (url or "").strip()
        if not url:
            raise InputError("Repository URL is required")
        owner, name = parse_repository_url(url)

        repository = self.store.get_repository_by_url(url)
        if repository is None:
            repository = self.store.create_repository(url=url, name=name, owner=owner)
            self.logger.info("Registered repository %s/%s", owner, name)

        job, created = self.controller.prepare_job(repository.id)
        if created:
            self.controller.start(job)
        else:
            self.logger.info("Reusing in-flight analysis job %s for %s", job.id, url)
        refreshed = self.store.get_repository(repository.id) or repository
        return Submission(repository=refreshed, job=job, created=created)

    def get_repository_detail(self, repository_id: str) -> RepositoryDetail:
        repository = self._require_repository(repository_id)
        return RepositoryDetail(
            repository=repository,
            job=self.store.get_latest_job(repository_id),
            documentation=self.store.list_documentation(repository_id),
        )

    def get_job_status(self, repository_id: str) -> AnalysisJob:
        job = self.store.get_latest_job(repository_id)
        if job is None:
            raise JobNotFoundError("Analysis job not found")
        return job

    async def get_file_content(self, repository_id: str, path: str) -> str:
        repository = self._require_repository(repository_id)
        if not path:
            raise InputError("File path is required")
        return await self._call(self.source.fetch_file_content, repository.url, path)

    async def generate_documentation(self, repository_id: str, doc_type: str) -> Documentation:
        """Generate and store one documentation artifact of ``doc_type``."""
        if doc_type not in DOCUMENTATION_TYPES:
            raise InputError(
                f"Unknown documentation type {doc_type!r}; expected one of {', '.join(DOCUMENTATION_TYPES)}"
            )
        repository = self._require_repository(repository_id)
        main_files = select_main_files(repository.file_structure)
        self.logger.info("Generating %s documentation for %s", doc_type, repository.url)

        metadata: Dict[str, Any] = {}
        if doc_type == "readme":
            result = await self._call(
                self.synthesizer.synthesize_readme,
                repository.name,
                repository.description,
                main_files,
                [node.to_dict() for node in repository.file_structure],
            )
            content = result.content
            if result.banner_path:
                metadata["banner_path"] = result.banner_path
        elif doc_type == "api":
            limit = self.config.analysis.api_file_limit
            contents = await self._call(self.source.fetch_many, repository.url, main_files[:limit])
            entries = self._api_entries(contents)
            content = await self._call(self.synthesizer.synthesize_api_docs, entries)
            metadata["functions"] = len(entries)
        else:
            limit = self.config.analysis.comment_file_limit
            contents = await self._call(self.source.fetch_many, repository.url, main_files[:limit])
            suggestions: List[CommentSuggestion] = []
            for file_name, text in contents.items():
                for suggestion in await self._call(
                    self.synthesizer.synthesize_comments, text, file_name
                ):
                    suggestion.file_name = file_name
                    suggestions.append(suggestion)
            payload = [suggestion.to_dict() for suggestion in suggestions]
            content = json.dumps(payload, indent=2)
            metadata["suggestions"] = payload

        return self.store.create_documentation(
            repository_id=repository_id, type=doc_type, content=content, metadata=metadata
        )

    def asset_path(self, filename: str) -> Path:
        """Resolve a generated asset, refusing names that escape the assets directory."""
        assets_dir = self.config.service.assets_dir.resolve()
        candidate = (assets_dir / filename).resolve()
        if candidate.parent != assets_dir or not candidate.is_file():
            raise FileNotFoundError(f"Image not found: {filename}")
        return candidate

    # ------------------------------------------------------------------
    # Internal helpers

    def _require_repository(self, repository_id: str) -> Repository:
        repository = self.store.get_repository(repository_id)
        if repository is None:
            raise RepositoryNotFoundError("Repository not found")
        return repository

    @staticmethod
    def _api_entries(contents: Dict[str, str]) -> List[ApiEntry]:
        entries: List[ApiEntry] = []

        def _entry(name: str, func: ParsedFunction) -> ApiEntry:
            return ApiEntry(name=name, parameters=[param.name for param in func.parameters])

        for file_name, text in contents.items():
            parsed = extract(file_name, text)
            entries.extend(_entry(func.name, func) for func in parsed.functions)
            for cls in parsed.classes:
                entries.extend(_entry(f"{cls.name}.{method.name}", method) for method in cls.methods)
        return entries

    async def _call(self, func: Callable[..., _T], *args: Any) -> _T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))


__all__ = ["DOCUMENTATION_TYPES", "Orchestrator", "RepositoryDetail", "Submission"]
