"""Process-local store backed by dictionaries."""

from __future__ import annotations

import threading
import uuid
from dataclasses import fields, replace
from typing import Any, Dict, List, Optional, TypeVar

from ..models import AnalysisJob, Documentation, Repository, utcnow

_Record = TypeVar("_Record", Repository, Documentation, AnalysisJob)

_IMMUTABLE_FIELDS = {"id", "created_at"}


def _new_id() -> str:
    return str(uuid.uuid4())


def _check_updates(record_type: type, updates: Dict[str, Any]) -> None:
    allowed = {item.name for item in fields(record_type)} - _IMMUTABLE_FIELDS
    unknown = sorted(set(updates) - allowed)
    if unknown:
        raise TypeError(
            f"Cannot update {record_type.__name__} field(s): {', '.join(unknown)}"
        )


class InMemoryStore:
    """Keeps entities for the lifetime of the process.

    Lookups by URL or repository id scan every record, which is fine for the
    handful of repositories a single service instance sees.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._repositories: Dict[str, Repository] = {}
        self._documentation: Dict[str, Documentation] = {}
        self._jobs: Dict[str, AnalysisJob] = {}

    # ------------------------------------------------------------------
    # Repositories

    def create_repository(self, **fields_: Any) -> Repository:
        repository = Repository(id=_new_id(), **fields_)
        with self._lock:
            self._repositories[repository.id] = repository
        return repository

    def get_repository(self, repository_id: str) -> Optional[Repository]:
        with self._lock:
            return self._repositories.get(repository_id)

    def get_repository_by_url(self, url: str) -> Optional[Repository]:
        with self._lock:
            for repository in self._repositories.values():
                if repository.url == url:
                    return repository
        return None

    def update_repository(self, repository_id: str, **updates: Any) -> Optional[Repository]:
        _check_updates(Repository, updates)
        with self._lock:
            return self._merge(self._repositories, repository_id, updates)

    # ------------------------------------------------------------------
    # Documentation

    def create_documentation(self, **fields_: Any) -> Documentation:
        documentation = Documentation(id=_new_id(), **fields_)
        with self._lock:
            self._documentation[documentation.id] = documentation
        return documentation

    def get_documentation(self, documentation_id: str) -> Optional[Documentation]:
        with self._lock:
            return self._documentation.get(documentation_id)

    def list_documentation(
        self, repository_id: str, doc_type: str | None = None
    ) -> List[Documentation]:
        with self._lock:
            return [
                doc
                for doc in self._documentation.values()
                if doc.repository_id == repository_id and (doc_type is None or doc.type == doc_type)
            ]

    # ------------------------------------------------------------------
    # Analysis jobs

    def create_job(self, **fields_: Any) -> AnalysisJob:
        job = AnalysisJob(id=_new_id(), **fields_)
        with self._lock:
            self._jobs[job.id] = job
        return job

    def get_job(self, job_id: str) -> Optional[AnalysisJob]:
        with self._lock:
            return self._jobs.get(job_id)

    def list_jobs(self, repository_id: str) -> List[AnalysisJob]:
        """Return every job of the repository, oldest first."""
        with self._lock:
            # dict preserves insertion order, which is creation order
            return [job for job in self._jobs.values() if job.repository_id == repository_id]

    def get_latest_job(self, repository_id: str) -> Optional[AnalysisJob]:
        jobs = self.list_jobs(repository_id)
        return jobs[-1] if jobs else None

    def update_job(self, job_id: str, **updates: Any) -> Optional[AnalysisJob]:
        _check_updates(AnalysisJob, updates)
        updates.setdefault("updated_at", utcnow())
        with self._lock:
            return self._merge(self._jobs, job_id, updates)

    @staticmethod
    def _merge(
        records: Dict[str, _Record], record_id: str, updates: Dict[str, Any]
    ) -> Optional[_Record]:
        existing = records.get(record_id)
        if existing is None:
            return None
        updated = replace(existing, **updates)
        records[record_id] = updated
        return updated


__all__ = ["InMemoryStore"]
