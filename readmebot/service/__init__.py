"""HTTP service mode for readme-bot."""

from .app import build_dispatcher, build_orchestrator, create_app, run_service

__all__ = ["build_dispatcher", "build_orchestrator", "create_app", "run_service"]
