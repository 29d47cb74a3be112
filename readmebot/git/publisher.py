"""Applies suggestions to the README and commits the result to the pull request branch."""

from __future__ import annotations

from typing import Protocol, Sequence

from ..logging import get_logger
from ..models import CommitOutcome, PullRequestContext, ReadmeFile, Suggestion
from ..postproc.sections import MergeResult, SectionMerger

COMMIT_FOOTER = "Generated with readme-bot"


class ReadmeWriter(Protocol):
    def write_readme(
        self,
        owner: str,
        repo: str,
        branch: str,
        text: str,
        *,
        message: str,
        prior_sha: str | None = None,
        suggestions_applied: int = 0,
    ) -> CommitOutcome: ...


class Publisher:
    """Merges suggestions into the README and writes it to the head branch."""

    def __init__(self, merger: SectionMerger | None = None) -> None:
        self.merger = merger or SectionMerger()
        self.logger = get_logger("publisher")

    def render(self, readme: ReadmeFile, suggestions: Sequence[Suggestion]) -> MergeResult:
        return self.merger.apply(readme.text, suggestions)

    def commit_suggestions(
        self,
        client: ReadmeWriter,
        context: PullRequestContext,
        readme: ReadmeFile,
        suggestions: Sequence[Suggestion],
    ) -> CommitOutcome | None:
        """Write the merged README; returns None when the merge changes nothing."""
        result = self.render(readme, suggestions)
        if not result.changed:
            self.logger.info("No changes needed to README content for %s#%d", context.full_name, context.number)
            return None

        message = build_commit_message(suggestions)
        self.logger.info(
            "Committing README to %s/%s@%s (%s)",
            context.head_owner,
            context.head_repo,
            context.head_branch,
            "update" if readme.sha else "create",
        )
        return client.write_readme(
            context.head_owner,
            context.head_repo,
            context.head_branch,
            result.text,
            message=message,
            prior_sha=readme.sha,
            suggestions_applied=result.applied,
        )


def build_commit_message(suggestions: Sequence[Suggestion]) -> str:
    if len(suggestions) == 1:
        suggestion = suggestions[0]
        return (
            f"docs: update README - {suggestion.kind} ({suggestion.target_section})\n\n"
            f"{COMMIT_FOOTER}"
        )
    kinds = list(dict.fromkeys(item.kind for item in suggestions))
    bullet_list = "\n".join(f"- {kind}" for kind in kinds)
    return (
        f"docs: update README with {len(suggestions)} improvements\n\n"
        f"{bullet_list}\n\n{COMMIT_FOOTER}"
    )


__all__ = ["Publisher", "ReadmeWriter", "build_commit_message"]
