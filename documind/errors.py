"""Exception taxonomy shared by the pipeline, collaborators and service."""


class DocuMindError(RuntimeError):
    """Base exception for documind errors."""


class InputError(DocuMindError, ValueError):
    """Request rejected before any work was scheduled."""


class InvalidRepositoryURL(InputError):
    """The submitted URL does not point at a GitHub repository."""


class RepositoryNotFoundError(DocuMindError, LookupError):
    """No repository record exists for the given id."""


class JobNotFoundError(DocuMindError, LookupError):
    """No analysis job exists for the given id or repository."""


class InvalidTransitionError(DocuMindError):
    """An analysis job was asked to move along an edge the state machine forbids."""


class SourceError(DocuMindError):
    """Fetching repository data from the source provider failed."""


class SourceNotFoundError(SourceError):
    """Repository or file does not exist (or is private)."""


class AccessDeniedError(SourceError):
    """The provider refused access to the repository."""


class RateLimitedError(SourceError):
    """The provider's API rate limit is exhausted."""


class SynthesisError(DocuMindError):
    """Remote documentation generation failed."""


__all__ = [
    "AccessDeniedError",
    "DocuMindError",
    "InputError",
    "InvalidRepositoryURL",
    "InvalidTransitionError",
    "JobNotFoundError",
    "RateLimitedError",
    "RepositoryNotFoundError",
    "SourceError",
    "SourceNotFoundError",
    "SynthesisError",
]
