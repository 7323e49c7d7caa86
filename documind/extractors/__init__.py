"""Source-structure extraction: functions, classes, imports and exports per file."""

from __future__ import annotations

from enum import Enum
from pathlib import PurePosixPath
from typing import Callable, Dict

from ..logging import get_logger
from ..models import ParsedFile
from .python import extract_python, find_block_end
from .script import extract_script

logger = get_logger("extractors")


class SourceKind(str, Enum):
    STRUCTURED = "structured"
    HEURISTIC = "heuristic"
    UNSUPPORTED = "unsupported"


_KIND_BY_SUFFIX: Dict[str, SourceKind] = {
    ".js": SourceKind.STRUCTURED,
    ".jsx": SourceKind.STRUCTURED,
    ".ts": SourceKind.STRUCTURED,
    ".tsx": SourceKind.STRUCTURED,
    ".py": SourceKind.HEURISTIC,
}


def source_kind(file_name: str) -> SourceKind:
    """Return which extraction strategy applies to ``file_name``."""
    suffix = PurePosixPath(file_name).suffix.lower()
    return _KIND_BY_SUFFIX.get(suffix, SourceKind.UNSUPPORTED)


def _extract_unsupported(file_name: str, source_text: str) -> ParsedFile:
    return ParsedFile(file_name=file_name, language="javascript")


_STRATEGIES: Dict[SourceKind, Callable[[str, str], ParsedFile]] = {
    SourceKind.STRUCTURED: extract_script,
    SourceKind.HEURISTIC: extract_python,
    SourceKind.UNSUPPORTED: _extract_unsupported,
}


def extract(file_name: str, source_text: str) -> ParsedFile:
    """Parse one file into its structural summary.

    Never raises for malformed source: strategies log and return an empty
    summary instead, so one bad file cannot abort a batch.
    """
    kind = source_kind(file_name)
    logger.debug("Extracting %s using %s strategy", file_name, kind.value)
    return _STRATEGIES[kind](file_name, source_text)


__all__ = ["SourceKind", "extract", "find_block_end", "source_kind"]
