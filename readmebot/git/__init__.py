"""GitHub access and README publishing."""

from .clients import InstallationClients
from .github import GitHubClient, parse_repository
from .publisher import Publisher

__all__ = ["GitHubClient", "InstallationClients", "Publisher", "parse_repository"]
