"""FastAPI application exposing the GitHub webhook endpoint."""

from __future__ import annotations

import asyncio
import json
import threading
from typing import Any, Callable, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import BotConfig, load_config
from ..dispatch import Delivery, DispatchResult, WebhookDispatcher
from ..git.clients import InstallationClients
from ..git.github import GitHubClient
from ..git.publisher import Publisher
from ..llm.analysis import AnalysisClient
from ..llm.runner import LLMRunner
from ..logging import get_logger
from ..orchestrator import Orchestrator
from ..signature import SignatureVerifier

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

logger = get_logger("service")


class HealthResponse(BaseModel):
    status: str


def build_orchestrator(config: BotConfig) -> Orchestrator:
    """Wire the pipeline from configuration."""

    def _client_for(_installation_id: str) -> GitHubClient:
        # Installation token exchange happens outside this process; every
        # installation shares the configured token.
        return GitHubClient(config.github.token, api_url=config.github.api_url)

    runner = LLMRunner(
        config.llm.model,
        provider=config.llm.provider,
        base_url=config.llm.base_url,
        temperature=config.llm.temperature,
        max_tokens=config.llm.max_tokens,
        api_key=config.llm.api_key,
        request_timeout=config.llm.request_timeout,
    )
    return Orchestrator(
        InstallationClients(_client_for),
        AnalysisClient(runner, validate_suggestions=config.analysis.validate_suggestions),
        publisher=Publisher(),
        publish_mode=config.publish.mode,
        comment_marker=config.github.comment_marker,
        delivery_timeout=config.delivery_timeout,
    )


def build_dispatcher(config: BotConfig | None = None) -> WebhookDispatcher:
    config = config or load_config()
    config.validate(require_webhook=True)
    return WebhookDispatcher(
        build_orchestrator(config),
        SignatureVerifier(config.webhook.secret, allow_unsigned=config.webhook.allow_unsigned),
        apply_command=config.webhook.apply_command,
    )


def create_app(
    dispatcher_factory: Callable[[], WebhookDispatcher] = build_dispatcher,
) -> FastAPI:
    """Create the FastAPI application; the dispatcher is built once per process."""

    app = FastAPI(title="README Bot", version="1.0.0")
    lock = threading.Lock()
    holder: dict[str, WebhookDispatcher] = {}

    def get_dispatcher() -> WebhookDispatcher:
        with lock:
            if "dispatcher" not in holder:
                holder["dispatcher"] = dispatcher_factory()
            return holder["dispatcher"]

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.api_route("/webhook", methods=ALL_METHODS)
    async def webhook(
        request: Request,
        dispatcher: WebhookDispatcher = Depends(get_dispatcher),
    ) -> JSONResponse:
        body = await request.body()
        delivery = Delivery(
            method=request.method,
            event=request.headers.get("x-github-event"),
            delivery_id=request.headers.get("x-github-delivery"),
            signature=request.headers.get("x-hub-signature-256"),
            body=body,
            payload=_decode_payload(body),
        )

        loop = asyncio.get_running_loop()
        result: DispatchResult = await loop.run_in_executor(None, dispatcher.dispatch, delivery)
        return JSONResponse(status_code=result.status_code, content=result.to_dict())

    return app


def _decode_payload(body: bytes) -> Optional[Any]:
    if not body:
        return None
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None


def run_service(
    host: str = "0.0.0.0", port: int = 8000, *, config: BotConfig | None = None
) -> None:  # pragma: no cover - integration path
    import uvicorn

    # Build eagerly so configuration errors stop startup instead of the first delivery.
    dispatcher = build_dispatcher(config)
    app = create_app(lambda: dispatcher)
    logger.info("Webhook endpoint: http://%s:%d/webhook", host, port)
    uvicorn.run(app, host=host, port=port)
