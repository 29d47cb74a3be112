"""Routes inbound webhook deliveries to the sync orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple

from .config import DEFAULT_APPLY_COMMAND
from .errors import PayloadError, SignatureError, SyncError
from .logging import delivery_context, get_logger, log_exception
from .orchestrator import SyncMode, SyncOutcome, SyncRequest
from .signature import SignatureVerifier

PULL_REQUEST_EVENT = "pull_request"
ISSUE_COMMENT_EVENT = "issue_comment"


class Route(str, Enum):
    ANALYZE = "analyze"
    APPLY = "apply"
    IGNORE = "ignore"


# Every (event, action) pair that can lead to work; anything absent is ignored.
ROUTES: Dict[Tuple[str, str], Route] = {
    (PULL_REQUEST_EVENT, "opened"): Route.ANALYZE,
    (PULL_REQUEST_EVENT, "synchronize"): Route.ANALYZE,
    (PULL_REQUEST_EVENT, "reopened"): Route.ANALYZE,
    (ISSUE_COMMENT_EVENT, "created"): Route.APPLY,
}

HANDLED_EVENTS = frozenset(event for event, _ in ROUTES)


class SyncRunner(Protocol):
    def run(self, request: SyncRequest) -> SyncOutcome: ...


@dataclass
class Delivery:
    """One inbound webhook delivery as seen by the HTTP layer."""

    method: str
    event: Optional[str]
    payload: Any
    delivery_id: Optional[str] = None
    signature: Optional[str] = None
    body: bytes = b""


@dataclass
class RouteDecision:
    route: Route
    reason: str
    request: Optional[SyncRequest] = None


@dataclass
class DispatchResult:
    status_code: int
    status: str
    detail: str
    route: Optional[Route] = None
    outcome: Optional[SyncOutcome] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"status": self.status, "detail": self.detail}
        if self.route is not None:
            data["route"] = self.route.value
        if self.outcome is not None:
            data["result"] = self.outcome.status
            if self.outcome.commit is not None:
                data["commit_url"] = self.outcome.commit.url
        return data


class WebhookDispatcher:
    """Decides what each delivery does; at most one orchestrator run per delivery."""

    def __init__(
        self,
        runner: SyncRunner,
        verifier: SignatureVerifier,
        *,
        apply_command: str = DEFAULT_APPLY_COMMAND,
    ) -> None:
        self.runner = runner
        self.verifier = verifier
        self.apply_command = apply_command.strip()
        self.logger = get_logger("dispatch")

    def dispatch(self, delivery: Delivery) -> DispatchResult:
        with delivery_context(delivery.delivery_id):
            return self._dispatch(delivery)

    def _dispatch(self, delivery: Delivery) -> DispatchResult:
        if delivery.method.upper() != "POST":
            return DispatchResult(405, "error", "Method not allowed")

        try:
            self.verifier.verify(delivery.body, delivery.signature)
        except SignatureError as exc:
            self.logger.warning("Rejected delivery %s: %s", delivery.delivery_id, exc)
            return DispatchResult(401, "error", str(exc))

        self.logger.info("Webhook received: event=%s, delivery=%s", delivery.event, delivery.delivery_id)
        try:
            decision = self.route(delivery)
        except PayloadError as exc:
            self.logger.warning("Malformed %s payload in delivery %s: %s", delivery.event, delivery.delivery_id, exc)
            return DispatchResult(400, "error", str(exc))

        if decision.route is Route.IGNORE or decision.request is None:
            self.logger.info("Ignoring delivery %s: %s", delivery.delivery_id, decision.reason)
            return DispatchResult(200, "ignored", decision.reason, route=Route.IGNORE)

        request = decision.request
        self.logger.info("Processing %s for %s (route=%s)", delivery.event, request.label, decision.route.value)
        try:
            outcome = self.runner.run(request)
        except SyncError as exc:
            self.logger.error("Sync failed at %s for %s: %s", exc.state, request.label, exc)
            return DispatchResult(500, "error", f"{type(exc).__name__} at {exc.state}: {exc}", route=decision.route)
        except Exception as exc:
            log_exception(self.logger, f"Unexpected failure for {request.label}", exc)
            return DispatchResult(500, "error", "Analysis failed", route=decision.route)

        return DispatchResult(200, "ok", "Analysis complete", route=decision.route, outcome=outcome)

    def route(self, delivery: Delivery) -> RouteDecision:
        """Map a delivery to a route without side effects; raises PayloadError on bad shape."""
        event = delivery.event or ""
        if event not in HANDLED_EVENTS:
            return RouteDecision(Route.IGNORE, f"event type '{event or 'unknown'}' ignored")

        payload = delivery.payload
        if not isinstance(payload, dict):
            raise PayloadError("Payload must be a JSON object")
        action = payload.get("action")
        if not isinstance(action, str):
            raise PayloadError("Payload is missing 'action'")

        route = ROUTES.get((event, action), Route.IGNORE)
        if route is Route.IGNORE:
            return RouteDecision(Route.IGNORE, f"{event} action '{action}' ignored")
        if route is Route.ANALYZE:
            return RouteDecision(route, "pull request updated", self._pull_request_request(payload, delivery))
        return self._comment_decision(payload, delivery)

    # ------------------------------------------------------------------
    # Payload shapes

    def _pull_request_request(self, payload: Mapping[str, Any], delivery: Delivery) -> SyncRequest:
        pr = _require_mapping(payload, "pull_request")
        owner, repo = _repository(payload)
        head = pr.get("head") if isinstance(pr.get("head"), dict) else {}
        head_repo = head.get("repo") if isinstance(head.get("repo"), dict) else {}
        head_owner = head_repo.get("owner") if isinstance(head_repo.get("owner"), dict) else {}
        return SyncRequest(
            owner=owner,
            repo=repo,
            number=_require_int(pr, "number", "pull_request"),
            installation_id=_installation_id(payload),
            mode=SyncMode.ANALYZE,
            delivery_id=delivery.delivery_id,
            head_owner=head_owner.get("login"),
            head_repo=head_repo.get("name"),
            head_ref=head.get("ref"),
        )

    def _comment_decision(self, payload: Mapping[str, Any], delivery: Delivery) -> RouteDecision:
        issue = _require_mapping(payload, "issue")
        comment = _require_mapping(payload, "comment")
        body = comment.get("body")
        if not isinstance(body, str):
            raise PayloadError("Payload is missing 'comment.body'")
        owner, repo = _repository(payload)
        number = _require_int(issue, "number", "issue")

        if not issue.get("pull_request"):
            return RouteDecision(Route.IGNORE, "comment is not on a pull request")
        user = comment.get("user") if isinstance(comment.get("user"), dict) else {}
        if user.get("type") == "Bot":
            return RouteDecision(Route.IGNORE, "comment authored by a bot")
        if body.strip() != self.apply_command:
            return RouteDecision(Route.IGNORE, "comment is not an apply command")

        request = SyncRequest(
            owner=owner,
            repo=repo,
            number=number,
            installation_id=_installation_id(payload),
            mode=SyncMode.APPLY,
            delivery_id=delivery.delivery_id,
        )
        return RouteDecision(Route.APPLY, "apply command received", request)


def _require_mapping(payload: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = payload.get(key)
    if not isinstance(value, dict):
        raise PayloadError(f"Payload is missing '{key}'")
    return value


def _require_int(payload: Mapping[str, Any], key: str, parent: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise PayloadError(f"Payload is missing '{parent}.{key}'")
    return value


def _repository(payload: Mapping[str, Any]) -> Tuple[str, str]:
    repository = _require_mapping(payload, "repository")
    owner = repository.get("owner")
    login = owner.get("login") if isinstance(owner, dict) else None
    name = repository.get("name")
    if not isinstance(login, str) or not login or not isinstance(name, str) or not name:
        raise PayloadError("Payload is missing 'repository.owner.login' or 'repository.name'")
    return login, name


def _installation_id(payload: Mapping[str, Any]) -> Optional[str]:
    installation = payload.get("installation")
    if isinstance(installation, dict) and installation.get("id") is not None:
        return str(installation["id"])
    return None


__all__ = [
    "Delivery",
    "DispatchResult",
    "ROUTES",
    "Route",
    "RouteDecision",
    "WebhookDispatcher",
]
