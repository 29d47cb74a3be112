"""Tests for webhook routing and status mapping."""

from __future__ import annotations

import json
from typing import Any, Dict, List

import pytest

from readmebot.dispatch import Delivery, Route, WebhookDispatcher
from readmebot.errors import CommitConflict, FetchFailure
from readmebot.logging import current_delivery
from readmebot.models import AnalysisResult, CommitOutcome
from readmebot.orchestrator import SyncMode, SyncOutcome, SyncRequest, SyncState
from readmebot.signature import SignatureVerifier, compute_signature

SECRET = "hunter2"


class RecordingRunner:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.requests: List[SyncRequest] = []

    def run(self, request: SyncRequest) -> SyncOutcome:
        self.requests.append(request)
        if self.error:
            raise self.error
        return SyncOutcome(
            request=request,
            state=SyncState.DONE,
            analysis=AnalysisResult(needs_update=True),
            commit=CommitOutcome(sha="c", url="https://github.com/acme/widgets/commit/c", suggestions_applied=1),
        )


def _repository() -> Dict[str, Any]:
    return {"name": "widgets", "owner": {"login": "acme"}}


def pull_request_payload(action: str = "opened") -> Dict[str, Any]:
    return {
        "action": action,
        "installation": {"id": 99},
        "repository": _repository(),
        "pull_request": {
            "number": 7,
            "head": {"ref": "feature/cache", "repo": {"name": "widgets-fork", "owner": {"login": "forker"}}},
        },
    }


def comment_payload(body: str = "@readme-bot apply", *, on_pr: bool = True, user_type: str = "User") -> Dict[str, Any]:
    issue: Dict[str, Any] = {"number": 7}
    if on_pr:
        issue["pull_request"] = {"url": "https://api.github.com/repos/acme/widgets/pulls/7"}
    return {
        "action": "created",
        "repository": _repository(),
        "issue": issue,
        "comment": {"body": body, "user": {"login": "someone", "type": user_type}},
    }


def _delivery(event: str, payload: Any, *, method: str = "POST", sign: bool = True) -> Delivery:
    body = json.dumps(payload).encode("utf-8")
    return Delivery(
        method=method,
        event=event,
        payload=payload,
        delivery_id="d-1",
        signature=compute_signature(SECRET, body) if sign else None,
        body=body,
    )


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def dispatcher(runner: RecordingRunner) -> WebhookDispatcher:
    return WebhookDispatcher(runner, SignatureVerifier(SECRET))


@pytest.mark.parametrize("action", ["opened", "synchronize", "reopened"])
def test_pull_request_actions_start_analysis(dispatcher, runner, action: str) -> None:
    result = dispatcher.dispatch(_delivery("pull_request", pull_request_payload(action)))

    assert result.status_code == 200
    assert result.route is Route.ANALYZE
    [request] = runner.requests
    assert request.mode is SyncMode.ANALYZE
    assert (request.owner, request.repo, request.number) == ("acme", "widgets", 7)
    assert request.installation_id == "99"
    assert (request.head_owner, request.head_repo, request.head_ref) == ("forker", "widgets-fork", "feature/cache")
    assert result.to_dict()["commit_url"] == "https://github.com/acme/widgets/commit/c"


@pytest.mark.parametrize("action", ["labeled", "closed", "edited", "assigned"])
def test_other_pull_request_actions_ignored(dispatcher, runner, action: str) -> None:
    result = dispatcher.dispatch(_delivery("pull_request", pull_request_payload(action)))

    assert result.status_code == 200
    assert result.status == "ignored"
    assert runner.requests == []


def test_apply_command_triggers_apply(dispatcher, runner) -> None:
    result = dispatcher.dispatch(_delivery("issue_comment", comment_payload("  @readme-bot apply\n")))

    assert result.status_code == 200
    assert result.route is Route.APPLY
    [request] = runner.requests
    assert request.mode is SyncMode.APPLY
    assert request.installation_id is None
    assert not request.head_known


@pytest.mark.parametrize(
    "payload",
    [
        comment_payload("@bot apply "),
        comment_payload("@readme-bot  apply"),
        comment_payload("please @readme-bot apply"),
        comment_payload(on_pr=False),
        comment_payload(user_type="Bot"),
    ],
)
def test_comments_that_do_not_apply_are_ignored(dispatcher, runner, payload) -> None:
    result = dispatcher.dispatch(_delivery("issue_comment", payload))

    assert result.status_code == 200
    assert result.status == "ignored"
    assert runner.requests == []


def test_edited_comment_ignored(dispatcher, runner) -> None:
    payload = comment_payload()
    payload["action"] = "edited"

    assert dispatcher.dispatch(_delivery("issue_comment", payload)).status == "ignored"
    assert runner.requests == []


def test_custom_apply_command(runner) -> None:
    dispatcher = WebhookDispatcher(runner, SignatureVerifier(SECRET), apply_command="/docs apply")

    dispatcher.dispatch(_delivery("issue_comment", comment_payload("/docs apply")))

    assert len(runner.requests) == 1


@pytest.mark.parametrize("event", ["push", "ping", "check_run", None])
def test_unknown_events_ignored(dispatcher, runner, event) -> None:
    result = dispatcher.dispatch(_delivery(event, {"zen": "Keep it logically awesome."}))

    assert result.status_code == 200
    assert result.status == "ignored"
    assert runner.requests == []


@pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
def test_non_post_rejected(dispatcher, runner, method: str) -> None:
    result = dispatcher.dispatch(_delivery("pull_request", pull_request_payload(), method=method))

    assert result.status_code == 405
    assert runner.requests == []


def test_unsigned_delivery_rejected(dispatcher, runner) -> None:
    result = dispatcher.dispatch(_delivery("pull_request", pull_request_payload(), sign=False))

    assert result.status_code == 401
    assert runner.requests == []


def test_tampered_delivery_rejected(dispatcher, runner) -> None:
    delivery = _delivery("pull_request", pull_request_payload())
    delivery.body = delivery.body.replace(b"opened", b"closed")

    assert dispatcher.dispatch(delivery).status_code == 401
    assert runner.requests == []


def test_unsigned_opt_in_accepts_delivery(runner) -> None:
    dispatcher = WebhookDispatcher(runner, SignatureVerifier(None, allow_unsigned=True))

    result = dispatcher.dispatch(_delivery("pull_request", pull_request_payload(), sign=False))

    assert result.status_code == 200
    assert len(runner.requests) == 1


@pytest.mark.parametrize(
    "event, payload",
    [
        ("pull_request", None),
        ("pull_request", ["opened"]),
        ("pull_request", {"repository": _repository()}),
        ("pull_request", {"action": "opened", "repository": _repository()}),
        ("pull_request", {"action": "opened", "repository": _repository(), "pull_request": {"number": "7"}}),
        ("pull_request", {"action": "opened", "pull_request": {"number": 7}}),
        ("issue_comment", {"action": "created", "repository": _repository(), "issue": {"number": 7}}),
    ],
)
def test_malformed_payloads_are_bad_requests(dispatcher, runner, event, payload) -> None:
    result = dispatcher.dispatch(_delivery(event, payload))

    assert result.status_code == 400
    assert runner.requests == []


def test_sync_error_maps_to_server_error(dispatcher) -> None:
    dispatcher.runner = RecordingRunner(CommitConflict("sha mismatch"))

    result = dispatcher.dispatch(_delivery("pull_request", pull_request_payload()))

    assert result.status_code == 500
    assert result.detail == "CommitConflict at committing: sha mismatch"


def test_fetch_failure_maps_to_server_error(dispatcher) -> None:
    dispatcher.runner = RecordingRunner(FetchFailure("502 from GitHub"))

    result = dispatcher.dispatch(_delivery("pull_request", pull_request_payload()))

    assert result.status_code == 500
    assert "at fetching" in result.detail


def test_unexpected_error_maps_to_server_error(dispatcher) -> None:
    dispatcher.runner = RecordingRunner(ValueError("boom"))

    result = dispatcher.dispatch(_delivery("pull_request", pull_request_payload()))

    assert result.status_code == 500
    assert result.detail == "Analysis failed"


def test_run_sees_delivery_id(runner) -> None:
    seen: List[Any] = []

    class ContextRunner(RecordingRunner):
        def run(self, request: SyncRequest) -> SyncOutcome:
            seen.append(current_delivery())
            return super().run(request)

    dispatcher = WebhookDispatcher(ContextRunner(), SignatureVerifier(SECRET))
    result = dispatcher.dispatch(_delivery("pull_request", pull_request_payload()))

    assert result.status_code == 200
    assert seen == ["d-1"]
    assert current_delivery() is None
