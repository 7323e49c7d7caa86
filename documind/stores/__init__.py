"""Entity stores for repositories, analysis jobs and generated documentation."""

from .base import Store
from .memory import InMemoryStore

__all__ = ["InMemoryStore", "Store"]
