"""Renders analysis results as PR comments and CLI reports."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Optional

from ..config import DEFAULT_COMMENT_MARKER
from ..llm.parser import suggestions_to_payload
from ..models import AnalysisResult, CommitOutcome

REPORT_FORMATS = ("cli", "json", "github")


def format_analysis_comment(
    analysis: AnalysisResult,
    *,
    has_existing_readme: bool,
    marker: str = DEFAULT_COMMENT_MARKER,
    commit: Optional[CommitOutcome] = None,
    error: Optional[BaseException] = None,
    publish_mode: str = "commit",
    timestamp: Optional[datetime] = None,
) -> str:
    """Build the marker comment body; the marker must stay on the first line."""
    moment = (timestamp or datetime.now(timezone.utc)).isoformat()
    parts = [marker, "## README Analysis Results", ""]

    if analysis.parse_error:
        parts.append("⚠️ **Analysis Incomplete** - the model response could not be parsed")
        parts.append("")
        parts.append(f"- Diagnostic: `{analysis.parse_error}`")
        parts.append("- No README changes were applied. Push a new commit or comment to retry.")
        parts.append("")
    elif analysis.needs_update:
        parts.append("✅ **Analysis Complete** - README updates recommended")
        parts.append("")
        if analysis.suggestions:
            parts.append(f"### Suggested Improvements ({len(analysis.suggestions)})")
            parts.append("")
            for index, suggestion in enumerate(analysis.suggestions, start=1):
                parts.append(f"{index}. **{suggestion.kind}** - {suggestion.target_section}")
                parts.append(f"   - {suggestion.description}")
                parts.append(f"   - Priority: {suggestion.priority}")
                parts.append("")
        if commit is not None:
            parts.append("### Changes Applied")
            parts.append("")
            parts.append(f"- Successfully committed {commit.suggestions_applied} README improvements")
            parts.append(f"- [View commit]({commit.url})")
            parts.append("")
        elif error is not None:
            parts.append("### Commit Failed")
            parts.append("")
            parts.append(f"- Failed to apply README changes: {error}")
            parts.append("- Changes need to be applied manually")
            parts.append("")
        elif publish_mode == "comment":
            parts.append("### Suggested Content")
            parts.append("")
            for suggestion in analysis.suggestions:
                if not suggestion.body:
                    continue
                parts.append(f"**{suggestion.target_section}**")
                parts.append("")
                parts.append("```markdown")
                parts.append(suggestion.body.rstrip("\n"))
                parts.append("```")
                parts.append("")
        else:
            parts.append("### Next Steps")
            parts.append("")
            parts.append("- README updates will be committed automatically")
            parts.append("")
    else:
        parts.append("✅ **Analysis Complete** - No README updates needed")
        parts.append("")
        parts.append("The current README adequately covers the changes in this PR.")
        parts.append("")

    if not has_existing_readme:
        parts.append("ℹ️ *No existing README.md found. Consider adding one to document your project.*")
        parts.append("")

    parts.append("---")
    parts.append(f"*Analysis performed at {moment}*")
    return "\n".join(parts)


class ReportFormatter:
    """Formats an analysis for terminal, JSON, or GitHub-flavoured output."""

    def __init__(self, fmt: str = "cli", *, verbose: bool = False, marker: str = DEFAULT_COMMENT_MARKER) -> None:
        if fmt not in REPORT_FORMATS:
            raise ValueError(f"Unknown report format '{fmt}'")
        self.fmt = fmt
        self.verbose = verbose
        self.marker = marker

    def format(
        self,
        analysis: AnalysisResult,
        *,
        repo_name: str,
        pr_number: int,
        author: str = "",
        has_existing_readme: bool = True,
    ) -> str:
        if self.fmt == "json":
            return json.dumps(
                {
                    "repository": repo_name,
                    "pullRequest": pr_number,
                    "author": author,
                    "needsUpdate": analysis.needs_update,
                    "suggestions": suggestions_to_payload(analysis.suggestions),
                    "error": analysis.parse_error,
                },
                indent=2,
            )
        if self.fmt == "github":
            return format_analysis_comment(
                analysis,
                has_existing_readme=has_existing_readme,
                marker=self.marker,
                publish_mode="comment",
            )
        return self._format_cli(analysis, repo_name, pr_number, author)

    def _format_cli(self, analysis: AnalysisResult, repo_name: str, pr_number: int, author: str) -> str:
        header = f"README analysis for {repo_name}#{pr_number}"
        if author:
            header += f" by {author}"
        lines = [header, "=" * len(header)]
        if analysis.parse_error:
            lines.append(f"Analysis incomplete: {analysis.parse_error}")
            return "\n".join(lines)
        if not analysis.needs_update:
            lines.append("README is up to date.")
            return "\n".join(lines)
        lines.append(f"README needs updates ({len(analysis.suggestions)} suggestions):")
        for index, suggestion in enumerate(analysis.suggestions, start=1):
            lines.append(
                f"  {index}. [{suggestion.priority}] {suggestion.kind} -> {suggestion.target_section}"
            )
            if suggestion.description:
                lines.append(f"     {suggestion.description}")
            if self.verbose and suggestion.body:
                for body_line in suggestion.body.splitlines():
                    lines.append(f"       | {body_line}")
        return "\n".join(lines)


__all__ = ["REPORT_FORMATS", "ReportFormatter", "format_analysis_comment"]
