"""Repository source providers."""

from .github import GitHubSource, RepositoryMetadata, parse_repository_url

__all__ = ["GitHubSource", "RepositoryMetadata", "parse_repository_url"]
