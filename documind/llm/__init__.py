"""Language-model client adapters."""

from .images import ImageClient
from .runner import LLMRequest, LLMRunner

__all__ = ["ImageClient", "LLMRequest", "LLMRunner"]
