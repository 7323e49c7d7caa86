"""Analysis job state machine and the background pipeline that drives it."""

from __future__ import annotations

import asyncio
import functools
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Protocol, Sequence, Tuple, TypeVar

from .config import AnalysisConfig
from .errors import InvalidTransitionError, JobNotFoundError, RepositoryNotFoundError, SourceError
from .extractors import extract
from .logging import bind_job, get_logger
from .models import (
    REPOSITORY_STATUS_BY_JOB,
    AnalysisJob,
    AnalysisReport,
    JobStatus,
    ParsedFile,
    QualityReport,
)
from .selection import select_main_files, sort_tree
from .sources.github import RepositoryMetadata
from .stores import Store

_T = TypeVar("_T")

_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.PROCESSING: frozenset(
        {JobStatus.PROCESSING, JobStatus.COMPLETED, JobStatus.FAILED}
    ),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


@dataclass(frozen=True)
class Checkpoint:
    """A fixed progress milestone of the pipeline."""

    status: JobStatus
    progress: int
    label: str


FETCHING_STRUCTURE = Checkpoint(JobStatus.PROCESSING, 10, "Fetching file structure...")
ANALYZING_STRUCTURE = Checkpoint(JobStatus.PROCESSING, 30, "Analyzing code structure...")
RUNNING_QUALITY = Checkpoint(JobStatus.PROCESSING, 60, "Running quality analysis...")
FINALIZING = Checkpoint(JobStatus.PROCESSING, 90, "Finalizing analysis...")
COMPLETE = Checkpoint(JobStatus.COMPLETED, 100, "Analysis complete")

CANCELLED_MESSAGE = "Analysis job was cancelled"


class RepositorySource(Protocol):
    def fetch_repository_metadata(self, url: str) -> RepositoryMetadata: ...

    def fetch_file_content(self, url: str, path: str) -> str: ...

    def fetch_many(self, url: str, paths: Sequence[str]) -> Dict[str, str]: ...


class QualityScorer(Protocol):
    def synthesize_quality_report(self, files: Sequence[Tuple[str, str]]) -> QualityReport: ...


def check_transition(current: JobStatus, target: JobStatus) -> None:
    """Raise :class:`InvalidTransitionError` unless ``current -> target`` is allowed."""
    if target not in _TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Analysis job cannot move from {current.value} to {target.value}"
        )


def allowed_transitions(current: JobStatus) -> FrozenSet[JobStatus]:
    return _TRANSITIONS[current]


class AnalysisController:
    """Sequences fetch → select → extract → quality scan for one repository per job.

    Each run is a background task keyed by job id; callers observe progress only
    by re-reading the job from the store.
    """

    def __init__(
        self,
        store: Store,
        source: RepositorySource,
        scorer: QualityScorer,
        *,
        settings: AnalysisConfig | None = None,
    ) -> None:
        self.store = store
        self.source = source
        self.scorer = scorer
        self.settings = settings or AnalysisConfig()
        self.logger = get_logger("pipeline")
        self._tasks: Dict[str, asyncio.Task[Optional[AnalysisReport]]] = {}

    def prepare_job(self, repository_id: str) -> Tuple[AnalysisJob, bool]:
        """Return the job to run for ``repository_id`` and whether it was created.

        A non-terminal job is reused as-is; otherwise a fresh ``queued`` job is
        created and earlier jobs are kept as history.
        """
        latest = self.store.get_latest_job(repository_id)
        if latest is not None and not latest.status.is_terminal:
            return latest, False
        job = self.store.create_job(
            repository_id=repository_id, status=JobStatus.QUEUED, progress="0"
        )
        self.store.update_repository(
            repository_id, analysis_status=REPOSITORY_STATUS_BY_JOB[JobStatus.QUEUED]
        )
        self.logger.info("Queued analysis job %s for repository %s", job.id, repository_id)
        return job, True

    def start(self, job: AnalysisJob) -> asyncio.Task[Optional[AnalysisReport]]:
        """Spawn the pipeline for ``job`` without waiting for it."""
        existing = self._tasks.get(job.id)
        if existing is not None and not existing.done():
            return existing
        task = asyncio.get_running_loop().create_task(self.run(job.id), name=f"analysis-{job.id}")
        self._tasks[job.id] = task
        task.add_done_callback(functools.partial(self._on_task_done, job.id))
        return task

    def is_running(self, job_id: str) -> bool:
        task = self._tasks.get(job_id)
        return task is not None and not task.done()

    async def wait(self, job_id: str) -> Optional[AnalysisReport]:
        task = self._tasks.get(job_id)
        if task is None:
            return None
        return await task

    async def run(self, job_id: str) -> Optional[AnalysisReport]:
        """Execute the pipeline; returns ``None`` when the job ends up failed."""
        with bind_job(job_id):
            return await self._run(job_id)

    async def _run(self, job_id: str) -> Optional[AnalysisReport]:
        job = self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Analysis job not found: {job_id}")
        repository_id = job.repository_id

        try:
            repository = self.store.get_repository(repository_id)
            if repository is None:
                raise RepositoryNotFoundError(f"Repository not found: {repository_id}")

            self._advance(job_id, FETCHING_STRUCTURE)
            metadata = await self._call(self.source.fetch_repository_metadata, repository.url)
            tree = sort_tree(metadata.file_tree)
            self.store.update_repository(
                repository_id,
                name=metadata.name,
                owner=metadata.owner,
                description=metadata.description,
                language=metadata.language,
                file_structure=tree,
            )
            selected = select_main_files(tree)

            self._advance(job_id, ANALYZING_STRUCTURE)
            batch = selected[: self.settings.quality_file_limit]
            contents = await self._fetch_batch(repository.url, batch)
            parsed_files = self._extract_batch(contents)

            self._advance(job_id, RUNNING_QUALITY)
            quality = await self._call(
                self.scorer.synthesize_quality_report, list(contents.items())
            )

            self._advance(job_id, FINALIZING)
            report = AnalysisReport(
                job_id=job_id,
                selected_files=selected,
                parsed_files=parsed_files,
                quality=quality,
            )
            self.store.create_documentation(
                repository_id=repository_id,
                type="quality",
                content=json.dumps(quality.to_dict(), indent=2),
                metadata={
                    "job_id": job_id,
                    "score": quality.score,
                    "selected_files": selected,
                    "structure": [parsed.to_dict() for parsed in parsed_files],
                },
            )
            self._advance(job_id, COMPLETE)
        except asyncio.CancelledError as exc:
            self._fail(job_id, exc, message=CANCELLED_MESSAGE)
            raise
        except Exception as exc:
            self._fail(job_id, exc)
            return None

        self.logger.info(
            "Analysis job %s completed: %d of %d files analyzed, score %d",
            job_id,
            len(parsed_files),
            len(batch),
            quality.score,
        )
        return report

    # ------------------------------------------------------------------
    # Internal helpers

    async def _call(self, func: Callable[..., _T], *args: Any) -> _T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    async def _fetch_batch(self, url: str, paths: Sequence[str]) -> Dict[str, str]:
        contents: Dict[str, str] = {}
        for path in paths:
            try:
                contents[path] = await self._call(self.source.fetch_file_content, url, path)
            except SourceError as exc:
                self.logger.warning("Skipping %s: %s", path, exc)
        return contents

    def _extract_batch(self, contents: Dict[str, str]) -> List[ParsedFile]:
        parsed: List[ParsedFile] = []
        for path, text in contents.items():
            try:
                parsed.append(extract(path, text))
            except Exception as exc:  # pragma: no cover - extract() reports its own parse failures
                self.logger.warning("Skipping structure of %s: %s", path, exc)
        return parsed

    def _advance(self, job_id: str, checkpoint: Checkpoint) -> AnalysisJob:
        job = self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Analysis job not found: {job_id}")
        check_transition(job.status, checkpoint.status)
        if checkpoint.progress < _progress_value(job.progress):
            raise InvalidTransitionError(
                f"Progress of job {job_id} cannot move back from {job.progress} to {checkpoint.progress}"
            )
        updated = self.store.update_job(
            job_id,
            status=checkpoint.status,
            progress=str(checkpoint.progress),
            current_file=checkpoint.label,
        )
        if checkpoint.status is not job.status:
            self.store.update_repository(
                job.repository_id, analysis_status=REPOSITORY_STATUS_BY_JOB[checkpoint.status]
            )
        self.logger.debug("Job %s at %d%%: %s", job_id, checkpoint.progress, checkpoint.label)
        return updated or job

    def _fail(self, job_id: str, exc: BaseException, *, message: Optional[str] = None) -> None:
        job = self.store.get_job(job_id)
        if job is None or job.status.is_terminal:
            self.logger.error("Analysis job %s errored after finishing: %s", job_id, exc)
            return
        message = message or str(exc) or exc.__class__.__name__
        self.logger.error(
            "Analysis job %s failed during '%s': %s", job_id, job.current_file or "startup", message
        )
        self.store.update_job(job_id, status=JobStatus.FAILED, error=message)
        self.store.update_repository(
            job.repository_id, analysis_status=REPOSITORY_STATUS_BY_JOB[JobStatus.FAILED]
        )

    def _on_task_done(self, job_id: str, task: asyncio.Task[Optional[AnalysisReport]]) -> None:
        if self._tasks.get(job_id) is task:
            del self._tasks[job_id]
        if task.cancelled():
            self.logger.warning("Analysis job %s was cancelled", job_id)
            job = self.store.get_job(job_id)
            if job is not None and not job.status.is_terminal:
                # cancelled before run() started, so its handler never saw it
                self._fail(job_id, asyncio.CancelledError(), message=CANCELLED_MESSAGE)
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error("Analysis task for job %s crashed: %s", job_id, exc)


def _progress_value(progress: Optional[str]) -> int:
    try:
        return int(progress or 0)
    except ValueError:
        return 0


__all__ = [
    "ANALYZING_STRUCTURE",
    "CANCELLED_MESSAGE",
    "COMPLETE",
    "FETCHING_STRUCTURE",
    "FINALIZING",
    "RUNNING_QUALITY",
    "AnalysisController",
    "Checkpoint",
    "QualityScorer",
    "RepositorySource",
    "allowed_transitions",
    "check_transition",
]
