"""Process-wide cache of authenticated GitHub clients keyed by installation."""

from __future__ import annotations

import threading
from typing import Callable, Dict

from .github import GitHubClient


class InstallationClients:
    """Memoizes one GitHubClient per installation id for the life of the process.

    Entries are never invalidated; if installation credentials rotate the
    process must be restarted to pick them up.
    """

    def __init__(self, factory: Callable[[str], GitHubClient]) -> None:
        self._factory = factory
        self._clients: Dict[str, GitHubClient] = {}
        self._lock = threading.Lock()

    def get(self, installation_id: str | int | None) -> GitHubClient:
        key = str(installation_id) if installation_id is not None else ""
        with self._lock:
            client = self._clients.get(key)
            if client is None:
                client = self._factory(key)
                self._clients[key] = client
            return client

    def __len__(self) -> int:
        return len(self._clients)


__all__ = ["InstallationClients"]
