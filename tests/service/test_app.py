"""Tests for the FastAPI webhook service."""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from readmebot.config import BotConfig
from readmebot.dispatch import WebhookDispatcher
from readmebot.errors import ConfigError
from readmebot.models import AnalysisResult
from readmebot.orchestrator import SyncOutcome, SyncRequest, SyncState
from readmebot.service import build_dispatcher, create_app
from readmebot.signature import SignatureVerifier, compute_signature

SECRET = "s3cret"


class _StubRunner:
    def __init__(self) -> None:
        self.requests: list[SyncRequest] = []

    def run(self, request: SyncRequest) -> SyncOutcome:
        self.requests.append(request)
        return SyncOutcome(request=request, state=SyncState.DONE, analysis=AnalysisResult(needs_update=False))


PAYLOAD = {
    "action": "opened",
    "repository": {"name": "widgets", "owner": {"login": "acme"}},
    "pull_request": {"number": 7},
}


@pytest.fixture
def runner() -> _StubRunner:
    return _StubRunner()


@pytest.fixture
def factory_calls() -> list[int]:
    return []


@pytest.fixture
def client(runner: _StubRunner, factory_calls: list[int]) -> TestClient:
    def factory() -> WebhookDispatcher:
        factory_calls.append(1)
        return WebhookDispatcher(runner, SignatureVerifier(SECRET))

    return TestClient(create_app(factory))


def _post(client: TestClient, payload, *, event: str = "pull_request", secret: str = SECRET):
    body = json.dumps(payload).encode("utf-8")
    return client.post(
        "/webhook",
        content=body,
        headers={
            "Content-Type": "application/json",
            "X-GitHub-Event": event,
            "X-GitHub-Delivery": "abc-123",
            "X-Hub-Signature-256": compute_signature(secret, body),
        },
    )


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_signed_delivery_runs_pipeline(client: TestClient, runner: _StubRunner) -> None:
    response = _post(client, PAYLOAD)

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "detail": "Analysis complete",
        "route": "analyze",
        "result": "up-to-date",
    }
    [request] = runner.requests
    assert request.delivery_id == "abc-123"


def test_bad_signature_is_unauthorized(client: TestClient, runner: _StubRunner) -> None:
    response = _post(client, PAYLOAD, secret="wrong")

    assert response.status_code == 401
    assert runner.requests == []


def test_get_is_method_not_allowed(client: TestClient) -> None:
    response = client.get("/webhook")
    assert response.status_code == 405
    assert response.json()["status"] == "error"


def test_invalid_json_is_bad_request(client: TestClient) -> None:
    body = b"{not json"
    response = client.post(
        "/webhook",
        content=body,
        headers={"X-GitHub-Event": "pull_request", "X-Hub-Signature-256": compute_signature(SECRET, body)},
    )
    assert response.status_code == 400


def test_ignored_event(client: TestClient, runner: _StubRunner) -> None:
    response = _post(client, {"zen": "hi"}, event="ping")

    assert response.status_code == 200
    assert response.json()["status"] == "ignored"
    assert runner.requests == []


def test_dispatcher_built_once(client: TestClient, factory_calls: list[int]) -> None:
    client.get("/health")
    assert factory_calls == []

    _post(client, PAYLOAD)
    _post(client, PAYLOAD)

    assert factory_calls == [1]


def test_build_dispatcher_requires_secret() -> None:
    config = BotConfig()
    config.llm.api_key = "key"
    config.github.token = "token"

    with pytest.raises(ConfigError, match="secret"):
        build_dispatcher(config)


def test_build_dispatcher_with_opt_in() -> None:
    config = BotConfig()
    config.llm.api_key = "key"
    config.github.token = "token"
    config.webhook.allow_unsigned = True

    dispatcher = build_dispatcher(config)

    assert dispatcher.verifier.secret is None
