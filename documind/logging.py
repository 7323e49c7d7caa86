"""Logging utilities for documind commands and the service.

Records emitted while an analysis job runs carry that job's id, so output from
concurrent background jobs stays attributable. ``bind_job`` sets the id for the
current task; the handlers installed by ``configure_logging`` render it.
"""

from __future__ import annotations

import contextlib
import logging
from contextvars import ContextVar
from pathlib import Path
from typing import Iterator, Optional

_LOGGER_NAME = "documind"

# Loggers uvicorn writes to; ``serve`` routes them through the documind handlers.
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

CONSOLE_FORMAT = "[documind]%(job)s %(levelname)s %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s%(job)s: %(message)s"

_current_job: ContextVar[Optional[str]] = ContextVar("documind_job", default=None)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the documind hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def current_job() -> Optional[str]:
    return _current_job.get()


@contextlib.contextmanager
def bind_job(job_id: str) -> Iterator[None]:
    """Tag every record logged inside the block with ``job_id``.

    The binding lives in a context variable, so each asyncio task sees its own.
    """
    token = _current_job.set(job_id)
    try:
        yield
    finally:
        _current_job.reset(token)


class JobContextFilter(logging.Filter):
    """Adds ``record.job`` (`` [job <id>]`` or an empty string) for the formatters."""

    def filter(self, record: logging.LogRecord) -> bool:
        job_id = getattr(record, "job_id", None) or _current_job.get()
        record.job = f" [job {job_id}]" if job_id else ""
        return True


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None, server: bool = False
) -> logging.Logger:
    """Configure the documind logger with console output and optional file sink.

    With ``server`` the uvicorn loggers share the same handlers, so access and
    startup lines land in the same stream and log file as job output.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers to avoid duplicate output when the CLI is invoked multiple times.
    _reset_handlers(logger)

    job_filter = JobContextFilter()
    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    handlers.append(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(level)
        handler.addFilter(job_filter)
        logger.addHandler(handler)

    if server:
        for name in SERVER_LOGGERS:
            server_logger = logging.getLogger(name)
            _reset_handlers(server_logger)
            server_logger.setLevel(level)
            if name == "uvicorn":
                for handler in handlers:
                    server_logger.addHandler(handler)
                server_logger.propagate = False
            else:
                # children reach the shared handlers through "uvicorn"
                server_logger.propagate = True

    return logger


def _reset_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


__all__ = [
    "CONSOLE_FORMAT",
    "FILE_FORMAT",
    "SERVER_LOGGERS",
    "JobContextFilter",
    "bind_job",
    "configure_logging",
    "current_job",
    "get_logger",
]
