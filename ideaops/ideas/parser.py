"""Idea file parsing.

Idea files are free-form markdown written by people, so parsing is tolerant:
anything that is missing or malformed comes back as ``None`` or an empty
collection. Parsing happens in two passes. ``classify_lines`` tags each line
(title, heading, metadata, checkbox, numbered item, bullet, blank, prose) and
``parse_idea`` folds the tagged lines into an ``IdeaDocument``.

Recognized metadata lines (key is case-insensitive, must start the line):

    Lane: A
    Status: `Ticketed`
    Issue: #42
    Parent: #40 (ARCH-parent-idea)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ideaops.ideas.models import IdeaDocument, Section, SubIssue, normalize_heading

CHECKLIST_SECTION = "Acceptance Checklist"
SUB_ISSUES_SECTION = "Sub-Issues"
STATUS_SECTION = "Status"

TITLE_RE = re.compile(r"^#\s+(.+)$")
HEADING_RE = re.compile(r"^##\s+(.+)$")
METADATA_RE = re.compile(r"^(lane|status|issue|parent):[ \t]*(.*)$", re.IGNORECASE)
CHECKBOX_RE = re.compile(r"^- \[([ xX])\]\s*(.*)$")
NUMBERED_RE = re.compile(r"^\d+\.\s+(.*)$")
BULLET_RE = re.compile(r"^[-*+]\s+(.*)$")

LANE_VALUE_RE = re.compile(r"^([A-Za-z])\b")
ISSUE_VALUE_RE = re.compile(r"^#(\d+)")
PARENT_VALUE_RE = re.compile(r"^#(\d+)(?:\s*\(([^)]+)\))?")
BACKTICK_RE = re.compile(r"`([^`]+)`")
SUB_ISSUE_RE = re.compile(r"^\d+\.\s+\*\*((?:ARCH|PB|U|C|B)-[\w-]+)\*\*\s*-\s*(.+)$")

IDEA_TYPE_PREFIXES = [
    ("U-", "unit"),
    ("C-", "composition"),
    ("ARCH-", "architecture"),
    ("PB-", "playbook"),
    ("B-", "bug"),
]


class LineKind(Enum):
    TITLE = "title"
    HEADING = "heading"
    METADATA = "metadata"
    CHECKBOX = "checkbox"
    NUMBERED = "numbered"
    BULLET = "bullet"
    BLANK = "blank"
    PROSE = "prose"


@dataclass(frozen=True)
class Line:
    index: int
    kind: LineKind
    text: str  # raw line as it appears in the file
    key: str = ""  # heading text, or lower-cased metadata key
    value: str = ""  # metadata value, or checkbox/list item text


def classify_lines(content: str) -> list[Line]:
    """Tag every line of ``content`` with its kind."""
    lines: list[Line] = []
    for index, raw in enumerate(content.split("\n")):
        lines.append(_classify(index, raw))
    return lines


def _classify(index: int, raw: str) -> Line:
    stripped = raw.strip()
    if not stripped:
        return Line(index, LineKind.BLANK, raw)

    match = HEADING_RE.match(raw)
    if match:
        return Line(index, LineKind.HEADING, raw, key=match.group(1).strip())

    match = TITLE_RE.match(raw)
    if match:
        return Line(index, LineKind.TITLE, raw, value=match.group(1).strip())

    match = METADATA_RE.match(raw)
    if match:
        return Line(
            index,
            LineKind.METADATA,
            raw,
            key=match.group(1).lower(),
            value=match.group(2).strip(),
        )

    match = CHECKBOX_RE.match(stripped)
    if match:
        return Line(index, LineKind.CHECKBOX, raw, value=match.group(2).strip())

    match = NUMBERED_RE.match(stripped)
    if match:
        return Line(index, LineKind.NUMBERED, raw, value=match.group(1).strip())

    match = BULLET_RE.match(stripped)
    if match:
        return Line(index, LineKind.BULLET, raw, value=match.group(1).strip())

    return Line(index, LineKind.PROSE, raw)


def parse_idea(content: str, filename: str | None = None) -> IdeaDocument:
    """Parse idea markdown into an ``IdeaDocument``. Never raises."""
    lines = classify_lines(content)
    sections = _fold_sections(lines)

    exact: dict[str, str] = {}
    normalized: dict[str, Section] = {}
    for section in sections:
        exact.setdefault(section.title, section.content)
        normalized.setdefault(normalize_heading(section.title), section)

    title = next((line.value for line in lines if line.kind is LineKind.TITLE), None)

    lane = _first_metadata(lines, "lane", _parse_lane)
    issue_number = _first_metadata(lines, "issue", _parse_issue)
    parent_line = _first_metadata(lines, "parent", _parse_parent)
    parent, parent_issue, parent_slug = parent_line or (None, None, None)

    status = _first_metadata(lines, "status", _status_value)
    if status is None:
        status_section = normalized.get(normalize_heading(STATUS_SECTION))
        if status_section:
            status = _status_value(status_section.content)

    checklist_body = normalized.get(normalize_heading(CHECKLIST_SECTION))
    sub_issue_body = normalized.get(normalize_heading(SUB_ISSUES_SECTION))

    return IdeaDocument(
        title=title,
        lane=lane,
        status=status,
        issue_number=issue_number,
        parent=parent,
        parent_issue=parent_issue,
        parent_slug=parent_slug,
        sections=exact,
        sections_normalized=normalized,
        checklist_items=_checklist_from_body(checklist_body.content) if checklist_body else [],
        sub_issues=_sub_issues_from_body(sub_issue_body.content) if sub_issue_body else [],
        filename=filename,
    )


def extract_checklist_items(
    source: str | IdeaDocument, section: str = CHECKLIST_SECTION
) -> list[str]:
    """Return checkbox items (``- [ ]`` / ``- [x]``) from a section, in order.

    ``source`` may be raw markdown or an already parsed ``IdeaDocument``.
    Bullets without a checkbox are skipped.
    """
    body = _section_body(source, section)
    if body is None:
        return []
    return _checklist_from_body(body)


def extract_sub_issues(source: str | IdeaDocument) -> list[SubIssue]:
    """Return declared sub-issues from the "Sub-Issues" section.

    Only numbered items shaped like ``1. **U-some-id** - description`` count;
    anything else is skipped.
    """
    body = _section_body(source, SUB_ISSUES_SECTION)
    if body is None:
        return []
    return _sub_issues_from_body(body)


def get_idea_type(filename: str) -> str | None:
    """Determine the idea type from its filename prefix."""
    for prefix, idea_type in IDEA_TYPE_PREFIXES:
        if filename.startswith(prefix):
            return idea_type
    if re.match(r"^[a-z]", filename):
        return "brief"
    return None


def find_idea_files(ideas_dir: Path, filter: str | None = None) -> list[str]:
    """List markdown filenames in ``ideas_dir``, optionally filtered.

    ``filter`` matches an exact filename or any substring of it. A missing
    directory yields an empty list.
    """
    if not ideas_dir.is_dir():
        return []

    names = sorted(p.name for p in ideas_dir.iterdir() if p.is_file() and p.suffix == ".md")
    if filter:
        names = [n for n in names if n == filter or filter in n]
    return names


def _fold_sections(lines: list[Line]) -> list[Section]:
    headings = [line for line in lines if line.kind is LineKind.HEADING]
    sections: list[Section] = []
    for i, heading in enumerate(headings):
        end = headings[i + 1].index if i + 1 < len(headings) else len(lines)
        body = "\n".join(line.text for line in lines[heading.index + 1 : end])
        sections.append(Section(title=heading.key, content=body.strip()))
    return sections


def _section_body(source: str | IdeaDocument, section: str) -> str | None:
    if isinstance(source, IdeaDocument):
        return source.section(section)

    wanted = normalize_heading(section)
    for found in _fold_sections(classify_lines(source)):
        if normalize_heading(found.title) == wanted:
            return found.content
    return None


def _checklist_from_body(body: str) -> list[str]:
    return [line.value for line in classify_lines(body) if line.kind is LineKind.CHECKBOX]


def _sub_issues_from_body(body: str) -> list[SubIssue]:
    sub_issues: list[SubIssue] = []
    for line in classify_lines(body):
        if line.kind is not LineKind.NUMBERED:
            continue
        match = SUB_ISSUE_RE.match(line.text.strip())
        if match:
            sub_issues.append(SubIssue(id=match.group(1), description=match.group(2).strip()))
    return sub_issues


def _first_metadata(lines: list[Line], key: str, convert):
    """Return the first successfully converted value for a metadata key."""
    for line in lines:
        if line.kind is LineKind.METADATA and line.key == key:
            value = convert(line.value)
            if value is not None:
                return value
    return None


def _parse_lane(value: str) -> str | None:
    match = LANE_VALUE_RE.match(value)
    return match.group(1).upper() if match else None


def _parse_issue(value: str) -> int | None:
    match = ISSUE_VALUE_RE.match(value)
    return int(match.group(1)) if match else None


def _parse_parent(value: str) -> tuple[str, int, str | None] | None:
    match = PARENT_VALUE_RE.match(value)
    if not match:
        return None
    slug = match.group(2).strip() if match.group(2) else None
    return value, int(match.group(1)), slug


def _status_value(text: str) -> str | None:
    """Backtick-wrapped token if present, else the first line, trimmed."""
    first_line = text.strip().split("\n")[0].strip()
    ticked = BACKTICK_RE.search(first_line)
    if ticked:
        return ticked.group(1).strip() or None
    return first_line or None
