"""Logging utilities for readme-bot.

Webhook deliveries are handled concurrently, so every record emitted while a
delivery is being processed is tagged with its ``X-GitHub-Delivery`` id. The
id lives in a context variable set by :func:`delivery_context`; the handlers
installed by :func:`configure_logging` render it as ``[<id>]``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Iterator, Optional

_LOGGER_NAME = "readmebot"
_CONSOLE_FORMAT = "[readme-bot] %(levelname)s %(delivery_tag)s%(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s %(delivery_tag)s%(message)s"

_current_delivery: ContextVar[Optional[str]] = ContextVar("readmebot_delivery", default=None)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the readmebot hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def current_delivery() -> Optional[str]:
    """Return the delivery id bound to the running context, if any."""
    return _current_delivery.get()


@contextmanager
def delivery_context(delivery_id: Optional[str]) -> Iterator[None]:
    """Bind ``delivery_id`` to log records emitted inside the block."""
    token = _current_delivery.set(delivery_id or None)
    try:
        yield
    finally:
        _current_delivery.reset(token)


class DeliveryFilter(logging.Filter):
    """Attach ``delivery_id`` and a printable ``delivery_tag`` to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        delivery_id = _current_delivery.get()
        record.delivery_id = delivery_id
        record.delivery_tag = f"[{delivery_id}] " if delivery_id else ""
        return True


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the readmebot logger with console output and optional file sink."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers so repeated CLI invocations or app reloads don't duplicate output.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    delivery_filter = DeliveryFilter()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.addFilter(delivery_filter)
    stream_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.addFilter(delivery_filter)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


def log_exception(logger: logging.Logger, message: str, exc: BaseException) -> None:
    """Log an exception with a traceback only when debug output is enabled."""
    if logger.isEnabledFor(logging.DEBUG):
        logger.exception("%s: %s", message, exc)
    else:
        logger.error("%s: %s", message, exc)


__all__ = [
    "DeliveryFilter",
    "configure_logging",
    "current_delivery",
    "delivery_context",
    "get_logger",
    "log_exception",
]
