"""Tests for the FastAPI service mode."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from documind.errors import (
    AccessDeniedError,
    InvalidRepositoryURL,
    JobNotFoundError,
    RateLimitedError,
    RepositoryNotFoundError,
    SourceNotFoundError,
    SynthesisError,
)
from documind.models import AnalysisJob, Documentation, Repository
from documind.orchestrator import RepositoryDetail, Submission
from documind.service import create_app
from documind.service.app import status_for


class _StubOrchestrator:
    def __init__(self, assets_dir: Path) -> None:
        self.assets_dir = assets_dir
        self.repository = Repository(
            id="repo-1", url="https://github.com/octo/demo", name="demo", owner="octo"
        )
        self.job = AnalysisJob(id="job-1", repository_id="repo-1")
        self.submitted: list[str] = []
        self.generate_error: Exception | None = None

    async def submit(self, url: str) -> Submission:
        self.submitted.append(url)
        if "github.com" not in url:
            raise InvalidRepositoryURL(f"Invalid GitHub repository URL: {url!r}")
        return Submission(repository=self.repository, job=self.job, created=True)

    def get_repository_detail(self, repository_id: str) -> RepositoryDetail:
        if repository_id != "repo-1":
            raise RepositoryNotFoundError("Repository not found")
        return RepositoryDetail(repository=self.repository, job=self.job)

    def get_job_status(self, repository_id: str) -> AnalysisJob:
        if repository_id != "repo-1":
            raise JobNotFoundError("Analysis job not found")
        return self.job

    async def get_file_content(self, repository_id: str, path: str) -> str:
        if path == "private.py":
            raise AccessDeniedError("Access denied by GitHub API")
        return f"# {path}\n"

    async def generate_documentation(self, repository_id: str, doc_type: str) -> Documentation:
        if self.generate_error is not None:
            raise self.generate_error
        return Documentation(id="doc-1", repository_id=repository_id, type=doc_type, content="# Demo")

    def asset_path(self, filename: str) -> Path:
        candidate = self.assets_dir / filename
        if not candidate.is_file():
            raise FileNotFoundError(f"Image not found: {filename}")
        return candidate


@pytest.fixture
def orchestrator(tmp_path: Path) -> _StubOrchestrator:
    return _StubOrchestrator(tmp_path)


@pytest.fixture
def client(orchestrator: _StubOrchestrator) -> TestClient:
    return TestClient(create_app(orchestrator))  # type: ignore[arg-type]


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_analyze_returns_repository_and_job(client: TestClient, orchestrator) -> None:
    response = client.post("/api/repositories/analyze", json={"url": "https://github.com/octo/demo"})

    assert response.status_code == 200
    body = response.json()
    assert body["repository"]["id"] == "repo-1"
    assert body["analysis_job"]["status"] == "queued"
    assert body["analysis_job"]["progress"] == "0"
    assert orchestrator.submitted == ["https://github.com/octo/demo"]


def test_analyze_requires_url(client: TestClient, orchestrator) -> None:
    response = client.post("/api/repositories/analyze", json={})

    assert response.status_code == 400
    assert response.json() == {"message": "Repository URL is required"}
    assert orchestrator.submitted == []


def test_analyze_rejects_invalid_url(client: TestClient) -> None:
    response = client.post("/api/repositories/analyze", json={"url": "https://example.com/x"})

    assert response.status_code == 400
    assert "Invalid GitHub repository URL" in response.json()["message"]


def test_repository_detail_and_missing_repository(client: TestClient) -> None:
    found = client.get("/api/repositories/repo-1")
    missing = client.get("/api/repositories/nope")

    assert found.status_code == 200
    assert found.json()["analysis_job"]["id"] == "job-1"
    assert found.json()["documentations"] == []
    assert missing.status_code == 404
    assert missing.json() == {"message": "Repository not found"}


def test_analysis_status(client: TestClient) -> None:
    assert client.get("/api/analysis/repo-1").json()["id"] == "job-1"
    assert client.get("/api/analysis/other").status_code == 404


def test_file_content_accepts_nested_paths(client: TestClient) -> None:
    response = client.get("/api/repositories/repo-1/files/src/utils/helpers.py")

    assert response.status_code == 200
    assert response.json() == {"content": "# src/utils/helpers.py\n", "file_path": "src/utils/helpers.py"}
    assert client.get("/api/repositories/repo-1/files/private.py").status_code == 403


def test_generate_documentation(client: TestClient) -> None:
    response = client.post("/api/repositories/repo-1/generate/readme")

    assert response.status_code == 200
    assert response.json()["type"] == "readme"
    assert response.json()["content"] == "# Demo"


def test_generate_synthesis_failure_is_bad_gateway(client: TestClient, orchestrator) -> None:
    orchestrator.generate_error = SynthesisError("Failed to generate README: timeout")

    response = client.post("/api/repositories/repo-1/generate/readme")

    assert response.status_code == 502
    assert response.json() == {"message": "Failed to generate README: timeout"}


def test_images_are_served_from_assets(client: TestClient, orchestrator) -> None:
    (orchestrator.assets_dir / "demo_banner.png").write_bytes(b"\x89PNG")

    found = client.get("/api/images/demo_banner.png")
    missing = client.get("/api/images/other.png")

    assert found.status_code == 200
    assert found.content == b"\x89PNG"
    assert missing.status_code == 404


@pytest.mark.parametrize(
    ("error", "status"),
    [
        (InvalidRepositoryURL("bad"), 400),
        (RepositoryNotFoundError("missing"), 404),
        (SourceNotFoundError("missing"), 404),
        (AccessDeniedError("denied"), 403),
        (RateLimitedError("slow down"), 429),
        (SynthesisError("model down"), 502),
        (RuntimeError("unexpected"), 500),
    ],
)
def test_status_for_error_taxonomy(error: Exception, status: int) -> None:
    assert status_for(error) == status
