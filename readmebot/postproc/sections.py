"""Deterministic heading-based README section merging."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..models import NEW_SECTION, Suggestion

_HEADING_PREFIX = r"^#{1,6}\s"
_HEADING_BOUNDARY = re.compile(_HEADING_PREFIX)
_AFTER_DIRECTIVE = re.compile(r"\bafter(?:\s+(.*))?$", re.IGNORECASE)


@dataclass
class MergeResult:
    """Merged README text plus bookkeeping for the caller."""

    original: str
    text: str
    applied: int

    @property
    def changed(self) -> bool:
        return self.text != self.original


class SectionMerger:
    """Applies suggestions to README text one heading-delimited block at a time.

    Suggestions are applied left to right; every step re-scans the current
    text for headings, so earlier splices never leave stale line offsets
    behind for later suggestions.
    """

    def merge(self, readme: str, suggestions: Sequence[Suggestion]) -> str:
        return self.apply(readme, suggestions).text

    def apply(self, readme: str, suggestions: Sequence[Suggestion]) -> MergeResult:
        content = readme
        applied = 0
        for suggestion in suggestions:
            updated = self.apply_one(content, suggestion)
            if updated != content:
                applied += 1
            content = updated
        return MergeResult(original=readme, text=content, applied=applied)

    def apply_one(self, content: str, suggestion: Suggestion) -> str:
        body = suggestion.body
        if not body:
            return content

        target = suggestion.target_section.strip() or NEW_SECTION
        if NEW_SECTION in target.lower():
            return self._append(content, body)

        after = _AFTER_DIRECTIVE.search(target)
        if after:
            heading = (after.group(1) or "").strip()
            if not heading:
                return self._append(content, body)
            return self._insert_after(content, heading, body)

        return self._replace(content, target, body)

    # ------------------------------------------------------------------
    # Helpers

    @staticmethod
    def _append(content: str, body: str) -> str:
        return content + "\n\n" + body

    def _insert_after(self, content: str, heading: str, body: str) -> str:
        lines = content.split("\n")
        index = self.find_heading(lines, heading)
        if index is None:
            return self._append(content, body)
        end = self._section_end(lines, index)
        lines[end:end] = ["", *body.split("\n"), ""]
        return "\n".join(lines)

    def _replace(self, content: str, heading: str, body: str) -> str:
        lines = content.split("\n")
        index = self.find_heading(lines, heading)
        if index is None:
            return self._append(content, body)
        end = self._section_end(lines, index)
        # The heading line itself is replaced too; the body carries its own heading.
        lines[index:end] = body.split("\n")
        return "\n".join(lines)

    @staticmethod
    def find_heading(lines: List[str], name: str) -> Optional[int]:
        """Return the index of the first heading whose text starts with ``name``."""
        pattern = re.compile(_HEADING_PREFIX + r"\s*" + re.escape(name), re.IGNORECASE)
        for index, line in enumerate(lines):
            if line and pattern.match(line):
                return index
        return None

    @staticmethod
    def _section_end(lines: List[str], heading_index: int) -> int:
        end = heading_index + 1
        while end < len(lines) and not _HEADING_BOUNDARY.match(lines[end]):
            end += 1
        return end


__all__ = ["MergeResult", "SectionMerger"]
