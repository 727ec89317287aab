"""Lifecycle configuration snapshot for dashboards."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from ideaops.github.projects import ProjectSnapshot
from ideaops.lifecycle.config import LifecycleConfig


@dataclass
class StatusDrift:
    missing_on_board: list[str] = field(default_factory=list)
    unknown_to_config: list[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.missing_on_board and not self.unknown_to_config


@dataclass
class LifecycleReport:
    generated_at: str
    project_id: str
    statuses: list[str]
    types: list[str]
    lanes: list[str]
    priorities: list[str]
    branch_prefixes: list[str]
    drift: StatusDrift | None = None
    notes: list[str] = field(default_factory=list)

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2)

    def to_text(self) -> str:
        lines = [
            f"Lifecycle report ({self.generated_at})",
            f"  Project: {self.project_id or '(unset)'}",
            f"  Statuses: {', '.join(self.statuses)}",
            f"  Lanes: {', '.join(self.lanes)}",
        ]
        if self.types:
            lines.append(f"  Types: {', '.join(self.types)}")
        if self.priorities:
            lines.append(f"  Priorities: {', '.join(self.priorities)}")
        if self.branch_prefixes:
            lines.append(f"  Branch prefixes: {', '.join(self.branch_prefixes)}")
        if self.drift is not None:
            if self.drift.clean:
                lines.append("  Board status options match the config.")
            for name in self.drift.missing_on_board:
                lines.append(f"  Drift: {name} is configured but missing on the board")
            for name in self.drift.unknown_to_config:
                lines.append(f"  Drift: {name} is on the board but not configured")
        lines.extend(f"  Note: {note}" for note in self.notes)
        return "\n".join(lines)


def build_report(
    config: LifecycleConfig,
    snapshot: ProjectSnapshot | None = None,
    notes: list[str] | None = None,
) -> LifecycleReport:
    """Summarize the config, comparing statuses with the cached board when available."""
    drift = None
    if snapshot is not None:
        status_field = snapshot.field(config.project.field_name("status", "Status"))
        if status_field is None:
            notes = [*(notes or []), "Project cache has no Status field."]
        else:
            drift = status_drift(config, [o.name for o in status_field.options])

    return LifecycleReport(
        generated_at=datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        project_id=config.project.id,
        statuses=list(config.project.statuses),
        types=list(config.project.types),
        lanes=list(config.project.lanes),
        priorities=list(config.project.priorities),
        branch_prefixes=list(config.branches.allowed_prefixes),
        drift=drift,
        notes=list(notes or []),
    )


def status_drift(config: LifecycleConfig, board_options: list[str]) -> StatusDrift:
    board = {name.casefold() for name in board_options}
    return StatusDrift(
        missing_on_board=[s for s in config.project.statuses if s.casefold() not in board],
        unknown_to_config=[name for name in board_options if not config.project.has_status(name)],
    )
