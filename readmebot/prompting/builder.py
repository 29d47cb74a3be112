"""Builds analysis prompts for the model service."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import List, Sequence

from ..models import Suggestion
from .constants import DOCUMENTATION_TRIGGERS, NO_UPDATE_RESPONSE, SUGGESTION_TYPE_TAGS


@dataclass
class AnalysisContext:
    """Pull request facts embedded in the analysis prompt."""

    repo_name: str = "Unknown Repository"
    pr_title: str = ""
    pr_description: str = ""
    changed_files: List[str] = field(default_factory=list)


class PromptBuilder:
    """Assembles the single user-role prompt sent for README analysis."""

    def build_analysis_prompt(self, diff: str, readme: str, context: AnalysisContext) -> str:
        triggers = "\n".join(
            f"{index}. **{title}:** {detail}"
            for index, (title, detail) in enumerate(DOCUMENTATION_TRIGGERS, start=1)
        )
        changed = ", ".join(context.changed_files) or "(none reported)"
        return f"""You are analyzing a pull request to determine if the README.md file needs to be updated.

**Repository:** {context.repo_name}
**PR Title:** {context.pr_title}
**PR Description:** {context.pr_description}
**Changed Files:** {changed}

**Current README.md:**
```markdown
{readme}
```

**Pull Request Changes:**
```diff
{diff}
```

Determine whether the README needs updates. Documentation-relevant changes are:

{triggers}

Be conservative: only flag changes that the current README does not already cover.

**Response Format:**
Respond with ONLY a JSON object, no prose, containing:
- "needsUpdate": boolean indicating if README needs changes
- "suggestions": array of objects with:
  - "type": one of {", ".join(SUGGESTION_TYPE_TAGS)}
  - "section": the exact README heading to replace, "new section" to append, or "after <heading>" to insert after a heading
  - "description": what needs to be changed and why
  - "priority": high, medium, or low
  - "content": the complete markdown to insert; when replacing a section include its heading line

If no updates are needed, return {NO_UPDATE_RESPONSE}"""

    def build_validation_prompt(self, suggestions: Sequence[Suggestion], readme: str) -> str:
        rendered = json.dumps(
            {"needsUpdate": True, "suggestions": [item.to_payload() for item in suggestions]},
            indent=2,
        )
        return f"""Please review these README update suggestions for accuracy and relevance:

**Current README:**
```markdown
{readme}
```

**Suggestions:**
{rendered}

Keep only suggestions that are:
1. Not already covered in the current README
2. Actually relevant to the code changes
3. Specific and actionable

Return the same JSON structure with only the valid suggestions. If none remain, return {NO_UPDATE_RESPONSE}"""


__all__ = ["AnalysisContext", "PromptBuilder"]
