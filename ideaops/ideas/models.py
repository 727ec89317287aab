"""Data models for idea files."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field


@dataclass(frozen=True)
class Section:
    title: str  # heading text as written, e.g. "Acceptance Checklist"
    content: str  # trimmed body up to the next ## heading


@dataclass(frozen=True)
class SubIssue:
    id: str  # e.g. "U-button-state"
    description: str


@dataclass(frozen=True)
class IdeaDocument:
    """Read-only projection of an idea markdown file.

    Produced by ``parse_idea``. Absent metadata is ``None`` (or empty), never an
    error. Corrections to the file are made by textual substitution on the
    original content, not by writing this structure back out.
    """

    title: str | None = None
    lane: str | None = None  # single uppercase letter
    status: str | None = None
    issue_number: int | None = None
    parent: str | None = None  # raw text after "Parent:"
    parent_issue: int | None = None
    parent_slug: str | None = None
    sections: dict[str, str] = field(default_factory=dict)
    sections_normalized: dict[str, Section] = field(default_factory=dict)
    checklist_items: list[str] = field(default_factory=list)
    sub_issues: list[SubIssue] = field(default_factory=list)
    filename: str | None = None

    def section(self, name: str) -> str | None:
        """Case-insensitive section lookup."""
        found = self.sections_normalized.get(normalize_heading(name))
        return found.content if found else None

    @property
    def purpose(self) -> str | None:
        return self.section("Purpose")

    @property
    def problem(self) -> str | None:
        return self.section("Problem")

    @property
    def proposal(self) -> str | None:
        return self.section("Proposal")

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class IdeaValidation:
    filename: str
    type: str | None  # "unit" | "composition" | "architecture" | "playbook" | "bug" | "brief"
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    metadata: IdeaDocument | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class IdeasReport:
    """Summary of validating every idea file in a directory."""

    total: int = 0
    valid: int = 0
    invalid: int = 0
    warnings: int = 0
    files: list[IdeaValidation] = field(default_factory=list)
    status: str = "ok"  # "missing" | "empty" | "ok" | "warn" | "error"
    message: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def normalize_heading(name: str) -> str:
    """Lower-case a heading and collapse internal whitespace."""
    return " ".join(name.lower().split())
