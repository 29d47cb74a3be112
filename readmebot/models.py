"""Core data models shared across readme-bot components."""

from dataclasses import dataclass, field
from typing import List, Optional

SUGGESTION_KINDS = (
    "environment-variable",
    "dependency",
    "feature",
    "setup",
    "api",
    "architecture",
    "other",
)

PRIORITIES = ("high", "medium", "low")

NEW_SECTION = "new section"


@dataclass
class Suggestion:
    """A single proposed README change returned by the model."""

    kind: str
    target_section: str
    description: str
    priority: str
    body: str

    @property
    def is_noop(self) -> bool:
        return not self.body

    def to_payload(self) -> dict:
        """Serialise back into the wire shape the model is asked for."""
        return {
            "type": self.kind,
            "section": self.target_section,
            "description": self.description,
            "priority": self.priority,
            "content": self.body,
        }


@dataclass
class AnalysisResult:
    """Outcome of one model invocation."""

    needs_update: bool
    suggestions: List[Suggestion] = field(default_factory=list)
    parse_error: Optional[str] = None

    @classmethod
    def failed(cls, diagnostic: str) -> "AnalysisResult":
        return cls(needs_update=False, suggestions=[], parse_error=diagnostic)


@dataclass
class ChangedFile:
    filename: str
    status: str
    additions: int = 0
    deletions: int = 0


@dataclass
class CommitInfo:
    sha: str
    message: str
    author: str


@dataclass
class PullRequestContext:
    """Read-only snapshot of a pull request, fetched once per delivery."""

    owner: str
    repo: str
    number: int
    title: str
    description: str
    base_branch: str
    head_branch: str
    head_owner: str
    head_repo: str
    author: str = ""
    files: List[ChangedFile] = field(default_factory=list)
    commits: List[CommitInfo] = field(default_factory=list)
    diff: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def changed_files(self) -> List[str]:
        return [item.filename for item in self.files]


@dataclass
class ReadmeFile:
    """README contents together with the blob SHA used for conditional writes."""

    text: str
    sha: Optional[str] = None

    @property
    def exists(self) -> bool:
        # Absent and empty READMEs are reported identically.
        return bool(self.text)


@dataclass
class CommitOutcome:
    """Result of a successful README write."""

    sha: str
    url: str
    suggestions_applied: int
