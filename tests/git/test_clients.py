from __future__ import annotations

import threading

from readmebot.git.clients import InstallationClients
from readmebot.git.github import GitHubClient


def test_clients_are_memoised_per_installation() -> None:
    created = []

    def factory(installation_id: str) -> GitHubClient:
        created.append(installation_id)
        return GitHubClient(f"token-{installation_id}")

    clients = InstallationClients(factory)

    first = clients.get(42)
    assert clients.get("42") is first
    assert clients.get(None) is not first
    assert created == ["42", ""]
    assert len(clients) == 2


def test_concurrent_lookups_create_one_client() -> None:
    created = []
    clients = InstallationClients(lambda key: created.append(key) or GitHubClient("token"))

    threads = [threading.Thread(target=clients.get, args=(7,)) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert created == ["7"]
