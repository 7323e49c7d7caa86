"""Storage contract the pipeline and orchestrator depend on."""

from __future__ import annotations

from typing import Any, List, Optional, Protocol

from ..models import AnalysisJob, Documentation, Repository


class Store(Protocol):
    """Create/read/update access to documind entities.

    ``update_*`` methods merge the given fields into the stored record and
    return the merged record, or ``None`` when the id is unknown.
    """

    def create_repository(self, **fields: Any) -> Repository: ...

    def get_repository(self, repository_id: str) -> Optional[Repository]: ...

    def get_repository_by_url(self, url: str) -> Optional[Repository]: ...

    def update_repository(self, repository_id: str, **updates: Any) -> Optional[Repository]: ...

    def create_documentation(self, **fields: Any) -> Documentation: ...

    def get_documentation(self, documentation_id: str) -> Optional[Documentation]: ...

    def list_documentation(
        self, repository_id: str, doc_type: str | None = None
    ) -> List[Documentation]: ...

    def create_job(self, **fields: Any) -> AnalysisJob: ...

    def get_job(self, job_id: str) -> Optional[AnalysisJob]: ...

    def get_latest_job(self, repository_id: str) -> Optional[AnalysisJob]: ...

    def list_jobs(self, repository_id: str) -> List[AnalysisJob]: ...

    def update_job(self, job_id: str, **updates: Any) -> Optional[AnalysisJob]: ...


__all__ = ["Store"]
