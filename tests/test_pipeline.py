from __future__ import annotations

import asyncio
import base64
import json
from typing import Any, List, Tuple

import pytest

from documind.config import AnalysisConfig, GitHubConfig
from documind.errors import InvalidTransitionError, SourceNotFoundError, SynthesisError
from documind.models import JobStatus
from documind.pipeline import (
    CANCELLED_MESSAGE,
    AnalysisController,
    allowed_transitions,
    check_transition,
)
from documind.sources.github import GitHubSource
from documind.stores import InMemoryStore
from tests._fixtures.fakes import FakeSource, FakeSynthesizer, file_node


class RecordingStore(InMemoryStore):
    def __init__(self) -> None:
        super().__init__()
        self.job_updates: List[Tuple[Any, Any, Any]] = []

    def update_job(self, job_id: str, **updates: Any):
        self.job_updates.append(
            (updates.get("status"), updates.get("progress"), updates.get("current_file"))
        )
        return super().update_job(job_id, **updates)


def _queued_job(controller: AnalysisController, store: InMemoryStore):
    repository = store.create_repository(url="https://github.com/octo/demo", name="demo", owner="octo")
    job, created = controller.prepare_job(repository.id)
    assert created
    return repository, job


def test_from_queued_only_processing_or_failed_are_reachable() -> None:
    assert allowed_transitions(JobStatus.QUEUED) == {JobStatus.PROCESSING, JobStatus.FAILED}
    with pytest.raises(InvalidTransitionError):
        check_transition(JobStatus.QUEUED, JobStatus.COMPLETED)


@pytest.mark.parametrize("terminal", [JobStatus.COMPLETED, JobStatus.FAILED])
@pytest.mark.parametrize("target", list(JobStatus))
def test_terminal_states_allow_no_transition(terminal: JobStatus, target: JobStatus) -> None:
    assert allowed_transitions(terminal) == frozenset()
    with pytest.raises(InvalidTransitionError):
        check_transition(terminal, target)


def test_processing_may_complete_fail_or_continue() -> None:
    for target in (JobStatus.PROCESSING, JobStatus.COMPLETED, JobStatus.FAILED):
        check_transition(JobStatus.PROCESSING, target)
    with pytest.raises(InvalidTransitionError):
        check_transition(JobStatus.PROCESSING, JobStatus.QUEUED)


def test_run_walks_fixed_checkpoints_to_completion(
    sample_source: FakeSource, synthesizer: FakeSynthesizer
) -> None:
    store = RecordingStore()
    controller = AnalysisController(store, sample_source, synthesizer)
    repository, job = _queued_job(controller, store)

    report = asyncio.run(controller.run(job.id))

    assert store.job_updates == [
        (JobStatus.PROCESSING, "10", "Fetching file structure..."),
        (JobStatus.PROCESSING, "30", "Analyzing code structure..."),
        (JobStatus.PROCESSING, "60", "Running quality analysis..."),
        (JobStatus.PROCESSING, "90", "Finalizing analysis..."),
        (JobStatus.COMPLETED, "100", "Analysis complete"),
    ]
    finished = store.get_job(job.id)
    assert finished.status is JobStatus.COMPLETED
    assert finished.progress == "100"
    assert finished.error is None

    assert report is not None
    assert report.selected_files == ["src/a.py", "src/b.js", "src/c.ts"]
    assert report.analyzed_files == ["src/a.py", "src/b.js", "src/c.ts"]
    assert report.quality.score == 82

    updated = store.get_repository(repository.id)
    assert updated.analysis_status == "completed"
    assert updated.description == "Demo project"
    assert [node.path for node in updated.file_structure] == ["src"]

    (quality_doc,) = store.list_documentation(repository.id, "quality")
    assert quality_doc.metadata["score"] == 82
    assert quality_doc.metadata["job_id"] == job.id


def test_run_omits_files_whose_fetch_fails(
    sample_source: FakeSource, synthesizer: FakeSynthesizer, store: InMemoryStore
) -> None:
    sample_source.missing.add("src/b.js")
    controller = AnalysisController(store, sample_source, synthesizer)
    _, job = _queued_job(controller, store)

    report = asyncio.run(controller.run(job.id))

    assert report is not None
    assert report.analyzed_files == ["src/a.py", "src/c.ts"]
    assert [parsed.functions[0].name for parsed in report.parsed_files[:1]] == ["alpha"]
    assert [parsed.classes[0].name for parsed in report.parsed_files[1:]] == ["Gamma"]
    assert [name for name, _ in synthesizer.quality_calls[0]] == ["src/a.py", "src/c.ts"]
    assert store.get_job(job.id).status is JobStatus.COMPLETED


def test_run_caps_quality_batch(sample_source: FakeSource, synthesizer: FakeSynthesizer, store) -> None:
    controller = AnalysisController(
        store, sample_source, synthesizer, settings=AnalysisConfig(quality_file_limit=2)
    )
    _, job = _queued_job(controller, store)

    report = asyncio.run(controller.run(job.id))

    assert report.selected_files == ["src/a.py", "src/b.js", "src/c.ts"]
    assert sample_source.requested == ["src/a.py", "src/b.js"]
    assert report.analyzed_files == ["src/a.py", "src/b.js"]


def test_run_marks_job_failed_when_metadata_fetch_fails(synthesizer, store) -> None:
    source = FakeSource(
        [file_node("main.py")],
        {},
        metadata_error=SourceNotFoundError("Repository not found or is private"),
    )
    controller = AnalysisController(store, source, synthesizer)
    repository, job = _queued_job(controller, store)

    report = asyncio.run(controller.run(job.id))

    assert report is None
    failed = store.get_job(job.id)
    assert failed.status is JobStatus.FAILED
    assert failed.error == "Repository not found or is private"
    assert failed.progress == "10"
    assert failed.current_file == "Fetching file structure..."
    assert store.get_repository(repository.id).analysis_status == "failed"
    assert synthesizer.quality_calls == []


def test_run_marks_job_failed_when_quality_scan_fails(sample_source, store) -> None:
    synthesizer = FakeSynthesizer(quality_error=SynthesisError("Failed to generate quality report: boom"))
    controller = AnalysisController(store, sample_source, synthesizer)
    _, job = _queued_job(controller, store)

    assert asyncio.run(controller.run(job.id)) is None

    failed = store.get_job(job.id)
    assert failed.status is JobStatus.FAILED
    assert failed.progress == "60"
    assert failed.error == "Failed to generate quality report: boom"
    assert store.list_documentation(job.repository_id) == []


def test_prepare_job_reuses_in_flight_job(sample_source, synthesizer, store) -> None:
    controller = AnalysisController(store, sample_source, synthesizer)
    repository, job = _queued_job(controller, store)

    again, created = controller.prepare_job(repository.id)

    assert created is False
    assert again.id == job.id
    assert store.get_repository(repository.id).analysis_status == "pending"


def test_prepare_job_creates_new_job_after_terminal_state(sample_source, synthesizer, store) -> None:
    controller = AnalysisController(store, sample_source, synthesizer)
    repository, job = _queued_job(controller, store)
    asyncio.run(controller.run(job.id))

    fresh, created = controller.prepare_job(repository.id)

    assert created is True
    assert fresh.id != job.id
    assert fresh.status is JobStatus.QUEUED
    assert fresh.progress == "0"
    assert [item.id for item in store.list_jobs(repository.id)] == [job.id, fresh.id]
    assert store.get_job(job.id).status is JobStatus.COMPLETED


def test_start_returns_before_the_job_runs(sample_source, synthesizer, store) -> None:
    controller = AnalysisController(store, sample_source, synthesizer)
    _, job = _queued_job(controller, store)

    async def scenario():
        task = controller.start(job)
        assert controller.is_running(job.id)
        assert store.get_job(job.id).status is JobStatus.QUEUED
        assert controller.start(job) is task
        report = await controller.wait(job.id)
        return report

    report = asyncio.run(scenario())

    assert report is not None
    assert not controller.is_running(job.id)
    assert store.get_job(job.id).status is JobStatus.COMPLETED


class _GitHubResponse:
    def __init__(self, body: bytes | Exception):
        self._body = body

    def read(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


def test_run_survives_connection_reset_on_one_file(monkeypatch, synthesizer, store) -> None:
    def contents(text: str) -> bytes:
        encoded = base64.b64encode(text.encode("utf-8")).decode("ascii")
        return json.dumps({"content": encoded}).encode("utf-8")

    routes = {
        "/repos/octo/demo": json.dumps({"name": "demo", "full_name": "octo/demo"}).encode("utf-8"),
        "/repos/octo/demo/git/trees/main?recursive=1": json.dumps(
            {
                "tree": [
                    {"path": "a.py", "type": "blob"},
                    {"path": "b.py", "type": "blob"},
                    {"path": "c.py", "type": "blob"},
                ]
            }
        ).encode("utf-8"),
        "/repos/octo/demo/contents/a.py": contents("def first():\n    pass\n"),
        "/repos/octo/demo/contents/b.py": ConnectionResetError(104, "Connection reset by peer"),
        "/repos/octo/demo/contents/c.py": contents("def third():\n    pass\n"),
    }

    def fake_urlopen(request, timeout=None):
        return _GitHubResponse(routes[request.full_url[len("https://api.github.com") :]])

    monkeypatch.setattr("documind.sources.github.urlopen", fake_urlopen)
    controller = AnalysisController(store, GitHubSource(GitHubConfig()), synthesizer)
    _, job = _queued_job(controller, store)

    report = asyncio.run(controller.run(job.id))

    assert report is not None
    assert report.selected_files == ["a.py", "b.py", "c.py"]
    assert report.analyzed_files == ["a.py", "c.py"]
    finished = store.get_job(job.id)
    assert finished.status is JobStatus.COMPLETED
    assert finished.error is None


def test_cancelled_run_marks_job_failed(sample_source, synthesizer, store) -> None:
    controller = AnalysisController(store, sample_source, synthesizer)
    repository, job = _queued_job(controller, store)

    async def scenario():
        task = controller.start(job)
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    failed = store.get_job(job.id)
    assert failed.status is JobStatus.FAILED
    assert failed.error == CANCELLED_MESSAGE
    assert failed.progress == "10"
    assert store.get_repository(repository.id).analysis_status == "failed"
    assert not controller.is_running(job.id)


def test_job_cancelled_before_it_starts_is_failed(sample_source, synthesizer, store) -> None:
    controller = AnalysisController(store, sample_source, synthesizer)
    _, job = _queued_job(controller, store)

    async def scenario():
        task = controller.start(job)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0)

    asyncio.run(scenario())

    failed = store.get_job(job.id)
    assert failed.status is JobStatus.FAILED
    assert failed.error == CANCELLED_MESSAGE
    assert failed.progress == "0"
    assert sample_source.requested == []
