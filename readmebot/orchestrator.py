"""Per-delivery documentation sync pipeline."""

from __future__ import annotations

import contextvars
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .config import DEFAULT_COMMENT_MARKER
from .errors import (
    AnalysisFailure,
    CommentFailure,
    CommitFailure,
    DeadlineExceeded,
    FetchFailure,
    GitHubError,
)
from .git.clients import InstallationClients
from .git.github import GitHubClient
from .git.publisher import Publisher
from .llm.analysis import AnalysisClient
from .logging import get_logger
from .models import AnalysisResult, CommitOutcome, PullRequestContext, ReadmeFile
from .postproc.report import format_analysis_comment
from .prompting.builder import AnalysisContext


class SyncMode(str, Enum):
    ANALYZE = "analyze"
    APPLY = "apply"


class SyncState(str, Enum):
    FETCHING = "fetching"
    ANALYZING = "analyzing"
    REPORTING = "reporting"
    COMMITTING = "committing"
    DONE = "done"


@dataclass
class SyncRequest:
    """Plain description of the work one webhook delivery asks for."""

    owner: str
    repo: str
    number: int
    installation_id: Optional[str] = None
    mode: SyncMode = SyncMode.ANALYZE
    delivery_id: Optional[str] = None
    head_owner: Optional[str] = None
    head_repo: Optional[str] = None
    head_ref: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.owner}/{self.repo}#{self.number}"

    @property
    def head_known(self) -> bool:
        return bool(self.head_owner and self.head_repo and self.head_ref)


@dataclass
class SyncOutcome:
    """Terminal state of a successful delivery."""

    request: SyncRequest
    state: SyncState
    analysis: AnalysisResult
    commit: Optional[CommitOutcome] = None
    no_op: bool = False
    comment_id: Optional[int] = None

    @property
    def status(self) -> str:
        if self.analysis.parse_error:
            return "parse-error"
        if not self.analysis.needs_update:
            return "up-to-date"
        if self.commit is not None:
            return "committed"
        if self.no_op:
            return "no-op"
        return "reported"


class Orchestrator:
    """Coordinates fetch, analysis, reporting and commit for a single pull request."""

    def __init__(
        self,
        clients: InstallationClients,
        analysis_client: AnalysisClient,
        *,
        publisher: Publisher | None = None,
        publish_mode: str = "commit",
        comment_marker: str = DEFAULT_COMMENT_MARKER,
        delivery_timeout: float | None = 120.0,
    ) -> None:
        self.clients = clients
        self.analysis_client = analysis_client
        self.publisher = publisher or Publisher()
        self.publish_mode = publish_mode
        self.comment_marker = comment_marker
        self.delivery_timeout = delivery_timeout
        self.logger = get_logger("orchestrator")

    def run(self, request: SyncRequest) -> SyncOutcome:
        """Drive one delivery to a terminal state or raise the first unrecoverable error."""
        deadline = self._deadline()
        client = self.clients.get(request.installation_id)
        self.logger.info("Starting %s run for %s (delivery=%s)", request.mode.value, request.label, request.delivery_id)

        context, readme = self.fetch(client, request, deadline)

        self._check_deadline(deadline, SyncState.ANALYZING)
        analysis = self.analyze(context, readme)
        outcome = SyncOutcome(request=request, state=SyncState.ANALYZING, analysis=analysis)

        if request.mode is SyncMode.ANALYZE:
            outcome.state = SyncState.REPORTING
            outcome.comment_id = self._report(client, context, readme, analysis)

        if not analysis.needs_update:
            self.logger.info("README is up to date for %s", request.label)
            outcome.state = SyncState.DONE
            return outcome

        if request.mode is SyncMode.ANALYZE and self.publish_mode != "commit":
            self.logger.info("Publish mode is '%s'; leaving suggestions in the PR comment", self.publish_mode)
            outcome.state = SyncState.DONE
            return outcome

        self._check_deadline(deadline, SyncState.COMMITTING)
        outcome.state = SyncState.COMMITTING
        outcome.commit = self._commit(client, request, context, readme, analysis)
        outcome.no_op = outcome.commit is None
        outcome.state = SyncState.DONE
        return outcome

    # ------------------------------------------------------------------
    # States

    def fetch(
        self,
        client: GitHubClient,
        request: SyncRequest,
        deadline: float | None = None,
    ) -> Tuple[PullRequestContext, ReadmeFile]:
        pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="sync-fetch")
        try:
            context_future = _submit(pool, client.fetch_pull_request, request.owner, request.repo, request.number)
            readme_future: Optional[Future] = None
            if request.head_known:
                readme_future = _submit(
                    pool, client.fetch_readme_file, request.head_owner, request.head_repo, request.head_ref
                )
            context = self._await(context_future, deadline)
            if readme_future is None:
                # Comment-triggered runs only learn the head branch from the PR itself.
                readme_future = _submit(
                    pool, client.fetch_readme_file, context.head_owner, context.head_repo, context.head_branch
                )
            readme = self._await(readme_future, deadline)
        except FutureTimeoutError as exc:
            raise DeadlineExceeded(
                f"Timed out fetching inputs for {request.label}", state=SyncState.FETCHING.value
            ) from exc
        except (GitHubError, OSError) as exc:
            raise FetchFailure(f"Failed to fetch pull request data for {request.label}: {exc}") from exc
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        self.logger.info(
            "Fetched %s: %d changed files, README %d chars, diff %d chars",
            request.label,
            len(context.files),
            len(readme.text),
            len(context.diff),
        )
        return context, readme

    def analyze(self, context: PullRequestContext, readme: ReadmeFile) -> AnalysisResult:
        analysis_context = AnalysisContext(
            repo_name=context.full_name,
            pr_title=context.title,
            pr_description=context.description,
            changed_files=context.changed_files,
        )
        try:
            analysis = self.analysis_client.analyze(context.diff, readme.text, analysis_context)
        except AnalysisFailure:
            raise
        except (GitHubError, OSError) as exc:
            raise AnalysisFailure(f"Failed to analyze changes: {exc}") from exc

        if analysis.parse_error:
            self.logger.warning(
                "Analysis response for %s#%d could not be parsed; treating as no update: %s",
                context.full_name,
                context.number,
                analysis.parse_error,
            )
        else:
            self.logger.info(
                "Analysis for %s#%d: needs_update=%s suggestions=%d",
                context.full_name,
                context.number,
                analysis.needs_update,
                len(analysis.suggestions),
            )
        return analysis

    def _report(
        self,
        client: GitHubClient,
        context: PullRequestContext,
        readme: ReadmeFile,
        analysis: AnalysisResult,
        *,
        commit: CommitOutcome | None = None,
        error: BaseException | None = None,
    ) -> Optional[int]:
        body = format_analysis_comment(
            analysis,
            has_existing_readme=readme.exists,
            marker=self.comment_marker,
            commit=commit,
            error=error,
            publish_mode=self.publish_mode,
        )
        try:
            return self.upsert_comment(client, context, body)
        except CommentFailure as exc:
            self.logger.warning("%s", exc)
            return None

    def _commit(
        self,
        client: GitHubClient,
        request: SyncRequest,
        context: PullRequestContext,
        readme: ReadmeFile,
        analysis: AnalysisResult,
    ) -> Optional[CommitOutcome]:
        try:
            commit = self.publisher.commit_suggestions(client, context, readme, analysis.suggestions)
        except CommitFailure as exc:
            self.logger.error("Failed to commit README updates for %s: %s", request.label, exc)
            self._report(client, context, readme, analysis, error=exc)
            raise

        if commit is None:
            self.logger.info("Merged README identical to current content for %s; nothing to commit", request.label)
            return None

        self.logger.info(
            "Committed %d README updates to %s: %s", commit.suggestions_applied, request.label, commit.url
        )
        if request.mode is SyncMode.ANALYZE:
            self._report(client, context, readme, analysis, commit=commit)
        return commit

    # ------------------------------------------------------------------
    # Helpers

    def upsert_comment(self, client: GitHubClient, context: PullRequestContext, body: str) -> Optional[int]:
        try:
            existing = client.find_marker_comment(
                context.owner, context.repo, context.number, self.comment_marker
            )
            if existing:
                updated = client.update_comment(context.owner, context.repo, existing["id"], body)
                self.logger.info("Updated existing analysis comment for %s#%d", context.full_name, context.number)
                return updated.get("id", existing["id"])
            created = client.create_comment(context.owner, context.repo, context.number, body)
            self.logger.info("Created analysis comment for %s#%d", context.full_name, context.number)
            return created.get("id")
        except (GitHubError, OSError, KeyError) as exc:
            raise CommentFailure(f"Failed to create/update PR comment: {exc}") from exc

    def _deadline(self) -> float | None:
        if not self.delivery_timeout:
            return None
        return time.monotonic() + self.delivery_timeout

    @staticmethod
    def _remaining(deadline: float | None) -> float | None:
        if deadline is None:
            return None
        return max(0.0, deadline - time.monotonic())

    def _await(self, future: Future, deadline: float | None):
        return future.result(timeout=self._remaining(deadline))

    @staticmethod
    def _check_deadline(deadline: float | None, state: SyncState) -> None:
        if deadline is not None and time.monotonic() >= deadline:
            raise DeadlineExceeded(f"Delivery deadline expired before {state.value}", state=state.value)



def _submit(pool: ThreadPoolExecutor, fn, *args) -> Future:
    # Worker threads inherit the caller's delivery id for log records.
    return pool.submit(contextvars.copy_context().run, fn, *args)


__all__ = ["Orchestrator", "SyncMode", "SyncOutcome", "SyncRequest", "SyncState"]
