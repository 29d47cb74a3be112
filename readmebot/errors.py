"""Exception hierarchy for readme-bot."""

from __future__ import annotations


class ReadmeBotError(RuntimeError):
    """Base class for all readme-bot failures."""


class ConfigError(ReadmeBotError):
    """Raised when configuration is missing or cannot be parsed."""


class PayloadError(ReadmeBotError):
    """Raised when a webhook payload lacks required fields."""


class SignatureError(ReadmeBotError):
    """Raised when a webhook delivery fails signature verification."""


class GitHubError(ReadmeBotError):
    """Raised for unsuccessful GitHub API responses."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status

    @property
    def not_found(self) -> bool:
        return self.status == 404


class SyncError(ReadmeBotError):
    """A pipeline failure tagged with the state it occurred in."""

    state = "unknown"

    def __init__(self, message: str, *, state: str | None = None) -> None:
        super().__init__(message)
        if state is not None:
            self.state = state


class FetchFailure(SyncError):
    state = "fetching"


class AnalysisFailure(SyncError):
    state = "analyzing"


class DeadlineExceeded(SyncError):
    """The per-delivery deadline expired before the pipeline finished."""


class CommitFailure(SyncError):
    state = "committing"
    retryable = False


class CommitConflict(CommitFailure):
    """The README changed underneath us (SHA mismatch) or the write was rejected."""

    retryable = True


class CommentFailure(SyncError):
    state = "reporting"


__all__ = [
    "AnalysisFailure",
    "CommentFailure",
    "CommitConflict",
    "CommitFailure",
    "ConfigError",
    "DeadlineExceeded",
    "FetchFailure",
    "GitHubError",
    "PayloadError",
    "ReadmeBotError",
    "SignatureError",
    "SyncError",
]
