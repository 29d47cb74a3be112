"""Webhook signature verification (HMAC-SHA256, ``X-Hub-Signature-256``)."""

from __future__ import annotations

import hashlib
import hmac

from .errors import ConfigError, SignatureError
from .logging import get_logger

SIGNATURE_PREFIX = "sha256="


def compute_signature(secret: str, body: bytes) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


class SignatureVerifier:
    """Checks delivery signatures; running without a secret requires an explicit opt-in."""

    def __init__(self, secret: str | None, *, allow_unsigned: bool = False) -> None:
        if not secret and not allow_unsigned:
            raise ConfigError(
                "Webhook secret is required; set README_BOT_WEBHOOK_SECRET or "
                "opt out explicitly with webhook.allow_unsigned: true"
            )
        self.secret = secret or None
        self.allow_unsigned = allow_unsigned
        self.logger = get_logger("signature")
        if self.secret is None:
            self.logger.warning("Webhook signature verification is disabled (allow_unsigned)")

    def verify(self, body: bytes, signature: str | None) -> None:
        if self.secret is None:
            return
        if not signature:
            raise SignatureError("Missing X-Hub-Signature-256 header")
        expected = compute_signature(self.secret, body)
        if not hmac.compare_digest(expected.encode("utf-8"), signature.strip().encode("utf-8")):
            raise SignatureError("Invalid webhook signature")


__all__ = ["SignatureVerifier", "compute_signature"]
