"""Core data models shared across documind components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    return datetime.now(UTC)


def _timestamp(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


@dataclass
class FileNode:
    """One entry of a repository file tree."""

    name: str
    path: str
    kind: str
    children: List["FileNode"] = field(default_factory=list)
    size: Optional[int] = None

    @property
    def is_directory(self) -> bool:
        return self.kind == "directory"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "path": self.path, "kind": self.kind}
        if self.is_directory:
            data["children"] = [child.to_dict() for child in self.children]
        elif self.size is not None:
            data["size"] = self.size
        return data


@dataclass(frozen=True)
class Parameter:
    """Function parameter; ``default_value`` is only meaningful when ``has_default``."""

    name: str
    default_value: Any = None
    has_default: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name}
        if self.has_default:
            data["default_value"] = self.default_value
        return data


@dataclass(frozen=True)
class ParsedFunction:
    name: str
    start_line: int
    end_line: int
    parameters: List[Parameter] = field(default_factory=list)
    is_async: bool = False
    is_exported: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "parameters": [param.to_dict() for param in self.parameters],
            "is_async": self.is_async,
            "is_exported": self.is_exported,
        }


@dataclass(frozen=True)
class Property:
    name: str
    is_static: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "is_static": self.is_static}


@dataclass(frozen=True)
class ParsedClass:
    name: str
    start_line: int
    end_line: int
    methods: List[ParsedFunction] = field(default_factory=list)
    properties: List[Property] = field(default_factory=list)
    is_exported: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "methods": [method.to_dict() for method in self.methods],
            "properties": [prop.to_dict() for prop in self.properties],
            "is_exported": self.is_exported,
        }


@dataclass(frozen=True)
class ImportRecord:
    source: str
    names: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source, "names": list(self.names)}


@dataclass(frozen=True)
class ParsedFile:
    """Structural summary of a single source file."""

    file_name: str
    language: str
    functions: List[ParsedFunction] = field(default_factory=list)
    classes: List[ParsedClass] = field(default_factory=list)
    imports: List[ImportRecord] = field(default_factory=list)
    exports: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_name": self.file_name,
            "language": self.language,
            "functions": [func.to_dict() for func in self.functions],
            "classes": [cls.to_dict() for cls in self.classes],
            "imports": [record.to_dict() for record in self.imports],
            "exports": list(self.exports),
        }


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


# Repository.analysis_status mirrors the latest job with these display labels.
REPOSITORY_STATUS_BY_JOB: Dict[JobStatus, str] = {
    JobStatus.QUEUED: "pending",
    JobStatus.PROCESSING: "analyzing",
    JobStatus.COMPLETED: "completed",
    JobStatus.FAILED: "failed",
}


@dataclass(frozen=True)
class AnalysisJob:
    """One run of the analysis pipeline for a repository."""

    id: str
    repository_id: str
    status: JobStatus = JobStatus.QUEUED
    progress: str = "0"
    current_file: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "repository_id": self.repository_id,
            "status": self.status.value,
            "progress": self.progress,
            "current_file": self.current_file,
            "error": self.error,
            "created_at": _timestamp(self.created_at),
            "updated_at": _timestamp(self.updated_at),
        }


@dataclass(frozen=True)
class Repository:
    id: str
    url: str
    name: str
    owner: str
    description: Optional[str] = None
    language: Optional[str] = None
    file_structure: List[FileNode] = field(default_factory=list)
    analysis_status: str = "pending"
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "name": self.name,
            "owner": self.owner,
            "description": self.description,
            "language": self.language,
            "file_structure": [node.to_dict() for node in self.file_structure],
            "analysis_status": self.analysis_status,
            "created_at": _timestamp(self.created_at),
        }


@dataclass(frozen=True)
class Documentation:
    id: str
    repository_id: str
    type: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "repository_id": self.repository_id,
            "type": self.type,
            "content": self.content,
            "metadata": dict(self.metadata),
            "created_at": _timestamp(self.created_at),
        }


@dataclass
class ReadmeResult:
    content: str
    banner_path: Optional[str] = None


@dataclass
class ApiEntry:
    """Function signature handed to the API reference generator."""

    name: str
    parameters: List[str] = field(default_factory=list)
    return_type: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "parameters": list(self.parameters),
            "return_type": self.return_type,
            "description": self.description,
        }


@dataclass
class CommentSuggestion:
    line: int
    comment: str
    category: str
    file_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "line": self.line,
            "comment": self.comment,
            "category": self.category,
        }
        if self.file_name is not None:
            data["file_name"] = self.file_name
        return data


@dataclass
class QualityIssue:
    file: str
    type: str
    message: str
    line: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"file": self.file, "line": self.line, "type": self.type, "message": self.message}


@dataclass
class QualityReport:
    score: int
    issues: List[QualityIssue] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "issues": [issue.to_dict() for issue in self.issues],
            "suggestions": list(self.suggestions),
        }


@dataclass
class AnalysisReport:
    """Aggregate produced by one successful pipeline run."""

    job_id: str
    selected_files: List[str]
    parsed_files: List[ParsedFile]
    quality: QualityReport

    @property
    def analyzed_files(self) -> List[str]:
        return [parsed.file_name for parsed in self.parsed_files]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "selected_files": list(self.selected_files),
            "parsed_files": [parsed.to_dict() for parsed in self.parsed_files],
            "quality": self.quality.to_dict(),
        }
