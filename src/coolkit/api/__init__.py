"""HTTP clients for the platform API and GitHub."""

from coolkit.api.client import PlatformClient
from coolkit.api.github import GitHubClient

__all__ = ["GitHubClient", "PlatformClient"]
