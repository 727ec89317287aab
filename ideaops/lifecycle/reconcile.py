"""Status reconciliation between an idea file and the project board.

Three statuses are compared: the one declared in the idea file, the one the
board currently shows, and the target. The result is a plan. Building a plan
never touches disk or network; ``apply_plan`` performs the two side effects
(rewrite the idea's ``Status:`` line, ask the board to converge) and returns
the plan with its actions rewritten in the past tense.

Any canonical status may be targeted from any other; this is a "make status
equal X" repair tool, not a workflow state machine.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from ideaops.github.projects import StatusUpdateResult
from ideaops.ideas.parser import parse_idea
from ideaops.lifecycle.config import LifecycleConfig
from ideaops.repo import atomic_write, is_inside_repo

logger = logging.getLogger(__name__)

DEFAULT_TARGET_STATUS = "Ticketed"
UNKNOWN_STATUS = "Unknown"
NOOP = "noop"

_STATUS_LINE_RE = re.compile(r"^Status:[^\r\n]*", re.IGNORECASE | re.MULTILINE)
_LANE_LINE_RE = re.compile(r"^Lane:", re.IGNORECASE)
_TITLE_LINE_RE = re.compile(r"^#\s+")

EnsureStatus = Callable[[str, str], StatusUpdateResult]


class StatusNotAllowedError(ValueError):
    """Target status is not one of the configured statuses."""


class IdeaPathError(ValueError):
    """Idea file is outside the repository or can't be read."""


@dataclass
class StatusPlan:
    idea: str
    project: str
    target: str
    idea_action: str
    project_action: str


@dataclass
class ReconciliationPlan:
    id: str
    idea_path: str
    status: StatusPlan
    notes: dict[str, str] = field(default_factory=dict)
    generated_at: str = ""
    dry_run: bool = True

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def to_text(self) -> str:
        heading = "Reconciliation plan (dry run)" if self.dry_run else "Reconciliation result"
        lines = [
            f"{heading}: {self.id}",
            f"  Idea file: {self.idea_path}",
            f"  Idea status:    {self.status.idea}",
            f"  Project status: {self.status.project}",
            f"  Target status:  {self.status.target}",
            f"  Idea action:    {self.status.idea_action}",
            f"  Project action: {self.status.project_action}",
        ]
        for key, note in self.notes.items():
            lines.append(f"  Note ({key}): {note}")
        return "\n".join(lines)


@dataclass
class ApplyResult:
    plan: ReconciliationPlan
    idea_updated: bool
    project: StatusUpdateResult

    def to_dict(self) -> dict:
        return {
            "plan": self.plan.to_dict(),
            "result": {
                "idea": {"updated": self.idea_updated, "path": self.plan.idea_path},
                "project": asdict(self.project),
            },
        }


def resolve_target_status(requested: str | None, config: LifecycleConfig) -> str:
    """Validate the requested target and return its configured spelling.

    Raises StatusNotAllowedError when the status isn't configured.
    """
    candidate = (requested or "").strip() or DEFAULT_TARGET_STATUS
    canonical = config.project.canonical_status(candidate)
    if canonical is None:
        allowed = ", ".join(config.project.statuses)
        raise StatusNotAllowedError(f'Status "{candidate}" not allowed. Expected one of {allowed}.')
    return canonical


def reconcile(
    id: str,
    idea_path: Path | str,
    config: LifecycleConfig,
    target_status: str | None = None,
    idea_status: str | None = None,
    project_status: str | None = None,
    notes: dict[str, str] | None = None,
) -> ReconciliationPlan:
    """Build a plan. Pure: no filesystem or network access."""
    target = resolve_target_status(target_status, config)

    status = StatusPlan(
        idea=idea_status or UNKNOWN_STATUS,
        project=project_status or UNKNOWN_STATUS,
        target=target,
        idea_action=NOOP if idea_status == target else f"update idea status to {target}",
        project_action=(
            NOOP if _same_status(project_status, target) else f"set project status to {target}"
        ),
    )
    return ReconciliationPlan(
        id=id,
        idea_path=str(idea_path),
        status=status,
        notes=dict(notes or {}),
        generated_at=_now(),
    )


def apply_status_line(content: str, status: str) -> str:
    """Return ``content`` with exactly one ``Status: <status>`` line.

    An existing status line is replaced in place, unless it already reads
    ``status`` (backticks included). Otherwise the line goes after ``Lane:``,
    else after the title heading, else at the very top, using the file's own
    line ending. Applying the same status twice yields the same text.
    """
    status_line = f"Status: {status}"
    match = _STATUS_LINE_RE.search(content)
    if match:
        if parse_idea(match.group(0)).status == status:
            return content
        return _STATUS_LINE_RE.sub(lambda _m: status_line, content, count=1)

    newline = "\r\n" if "\r\n" in content else "\n"
    lines = content.splitlines(keepends=True)
    for matcher, strip in ((_LANE_LINE_RE, True), (_TITLE_LINE_RE, False)):
        index = next(
            (
                i
                for i, line in enumerate(lines)
                if matcher.match(line.strip() if strip else line.rstrip("\r\n"))
            ),
            None,
        )
        if index is not None:
            if lines[index].endswith(("\n", "\r")):
                lines.insert(index + 1, status_line + newline)
            else:
                lines[index] += newline
                lines.insert(index + 1, status_line)
            return "".join(lines)

    return f"{status_line}{newline}{content}"


def apply_plan(
    plan: ReconciliationPlan, config: LifecycleConfig, ensure_status: EnsureStatus
) -> ApplyResult:
    """Write the idea file and converge the board, then report what happened.

    File-write errors propagate. ``ensure_status`` is called exactly once and
    is expected to report its own failures in the returned message.
    """
    target = resolve_target_status(plan.status.target, config)
    idea_path = Path(plan.idea_path)

    with idea_path.open(encoding="utf-8", newline="") as f:
        original = f.read()
    updated = apply_status_line(original, target)
    idea_changed = updated != original
    if idea_changed:
        atomic_write(idea_path, updated)
        logger.info(f"Rewrote status line in {idea_path}")

    project_result = ensure_status(plan.id, target)

    if project_result.updated:
        project_status = target
        project_action = f"updated project status to {target}"
    else:
        project_status = project_result.previous or plan.status.project
        project_action = plan.status.project_action

    completed = replace(
        plan,
        status=StatusPlan(
            idea=target,
            project=project_status,
            target=target,
            idea_action=f"updated idea status to {target}" if idea_changed else NOOP,
            project_action=project_action,
        ),
        notes={**plan.notes, "project": project_result.message},
        generated_at=_now(),
        dry_run=False,
    )
    return ApplyResult(plan=completed, idea_updated=idea_changed, project=project_result)


def resolve_idea_path(
    id: str, root: Path, config: LifecycleConfig, file: str | Path | None = None
) -> Path:
    """Locate the idea file: ``file`` when given, else ``<ideas dir>/<id>.md``."""
    if not file:
        candidate = root / config.ideas.directory / f"{id}.md"
    else:
        candidate = Path(file)
        if not candidate.is_absolute():
            candidate = root / candidate

    if not is_inside_repo(candidate, root):
        raise IdeaPathError(f"Idea file must reside within repository. Received {candidate}")
    return candidate


def read_idea_status(idea_path: Path) -> str | None:
    try:
        content = idea_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise IdeaPathError(f"Unable to read idea file {idea_path}: {e}") from e
    return parse_idea(content, filename=idea_path.name).status


def _same_status(board_status: str | None, target: str) -> bool:
    # board option names may differ in case from the configured spelling
    return board_status is not None and board_status.casefold() == target.casefold()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")
