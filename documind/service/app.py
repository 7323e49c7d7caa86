"""FastAPI application exposing documind operations."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel

from ..config import DocuMindConfig, load_config
from ..errors import (
    AccessDeniedError,
    DocuMindError,
    InputError,
    JobNotFoundError,
    RateLimitedError,
    RepositoryNotFoundError,
    SourceError,
    SourceNotFoundError,
    SynthesisError,
)
from ..logging import get_logger
from ..orchestrator import Orchestrator

logger = get_logger("service")

# Most specific classes first; the first isinstance match wins.
_STATUS_BY_ERROR: tuple[tuple[type[Exception], int], ...] = (
    (InputError, 400),
    (RepositoryNotFoundError, 404),
    (JobNotFoundError, 404),
    (SourceNotFoundError, 404),
    (AccessDeniedError, 403),
    (RateLimitedError, 429),
    (SourceError, 502),
    (SynthesisError, 502),
)


class AnalyzeRequest(BaseModel):
    url: Optional[str] = None


class HealthResponse(BaseModel):
    status: str


def status_for(exc: Exception) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def create_app(
    orchestrator: Orchestrator | None = None,
    *,
    config: DocuMindConfig | None = None,
) -> FastAPI:
    """Create the FastAPI application around a single shared orchestrator."""

    service = orchestrator or Orchestrator(config or load_config())
    app = FastAPI(title="DocuMind Service", version="0.1.0")
    app.state.orchestrator = service

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/api/repositories/analyze")
    async def analyze_repository(payload: AnalyzeRequest) -> Dict[str, Any]:
        if not payload.url:
            raise InputError("Repository URL is required")
        submission = await service.submit(payload.url)
        return submission.to_dict()

    @app.get("/api/repositories/{repository_id}")
    async def repository_detail(repository_id: str) -> Dict[str, Any]:
        return service.get_repository_detail(repository_id).to_dict()

    @app.get("/api/repositories/{repository_id}/files/{file_path:path}")
    async def file_content(repository_id: str, file_path: str) -> Dict[str, Any]:
        content = await service.get_file_content(repository_id, file_path)
        return {"content": content, "file_path": file_path}

    @app.post("/api/repositories/{repository_id}/generate/{doc_type}")
    async def generate(repository_id: str, doc_type: str) -> Dict[str, Any]:
        documentation = await service.generate_documentation(repository_id, doc_type)
        return documentation.to_dict()

    @app.get("/api/analysis/{repository_id}")
    async def analysis_status(repository_id: str) -> Dict[str, Any]:
        return service.get_job_status(repository_id).to_dict()

    @app.get("/api/images/{filename}")
    async def generated_image(filename: str) -> FileResponse:
        return FileResponse(service.asset_path(filename))

    @app.exception_handler(DocuMindError)
    async def documind_error_handler(_: Request, exc: DocuMindError) -> JSONResponse:
        status = status_for(exc)
        if status >= 500:
            logger.error("Request failed: %s", exc)
        return JSONResponse(status_code=status, content={"message": str(exc)})

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(_: Request, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"message": str(exc)})

    return app


def run_service(
    host: str | None = None, port: int | None = None, *, config: DocuMindConfig | None = None
) -> None:  # pragma: no cover - integration path
    import uvicorn

    config = config or load_config()
    app = create_app(config=config)
    # uvicorn logs through the handlers installed by configure_logging(server=True)
    uvicorn.run(
        app,
        host=host or config.service.host,
        port=port or config.service.port,
        log_config=None,
    )


__all__ = ["create_app", "run_service", "status_for"]
