"""Lifecycle configuration loading.

The lifecycle config is repository policy: the statuses a work item may be in,
the lanes that own work, and the naming contracts for branches and pull
requests. It lives at ``.repo/lifecycle.json`` in the repository root and is
read fresh on every invocation; nothing is cached between calls.

Minimal example:

    {
      "project": {"statuses": ["Draft", "Ticketed"], "lanes": ["A", "B"]},
      "branches": {"pattern": "type/ID-slug"}
    }
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from ideaops.lifecycle.patterns import compile_pattern
from ideaops.repo import repo_root

logger = logging.getLogger(__name__)

CONFIG_RELATIVE_PATH = Path(".repo") / "lifecycle.json"
DEFAULT_PR_TITLE_PATTERN = "[ID] Title"
DEFAULT_IDEAS_DIRECTORY = "ideas"


class ConfigError(Exception):
    """The lifecycle config is missing, unreadable, or incomplete."""

    def __init__(self, message: str, issues: list[str] | None = None) -> None:
        self.issues = issues or []
        if self.issues:
            message = f"{message}: " + "; ".join(self.issues)
        super().__init__(message)


@dataclass(frozen=True)
class ProjectSettings:
    id: str
    fields: dict[str, str]  # logical name -> board field name, e.g. "status" -> "Status"
    statuses: tuple[str, ...]
    lanes: tuple[str, ...]
    types: tuple[str, ...] = ()
    priorities: tuple[str, ...] = ()
    # Derived lookups, case-folded.
    status_set: frozenset[str] = field(init=False)
    lane_set: frozenset[str] = field(init=False)
    _canonical_statuses: dict[str, str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "status_set", frozenset(s.casefold() for s in self.statuses))
        object.__setattr__(self, "lane_set", frozenset(s.casefold() for s in self.lanes))
        object.__setattr__(
            self, "_canonical_statuses", {s.casefold(): s for s in self.statuses}
        )

    def has_status(self, name: str) -> bool:
        return name.strip().casefold() in self.status_set

    def canonical_status(self, name: str) -> str | None:
        """Configured spelling of a status name, or None if it isn't allowed."""
        return self._canonical_statuses.get(name.strip().casefold())

    def has_lane(self, name: str) -> bool:
        return name.strip().casefold() in self.lane_set

    def field_name(self, logical: str, default: str) -> str:
        return self.fields.get(logical, default)


@dataclass(frozen=True)
class BranchSettings:
    pattern: str
    regex: re.Pattern[str]
    allowed_prefixes: tuple[str, ...] = ()


@dataclass(frozen=True)
class PullRequestSettings:
    title_pattern: str
    regex: re.Pattern[str]


@dataclass(frozen=True)
class IdeaSettings:
    directory: str = DEFAULT_IDEAS_DIRECTORY


@dataclass(frozen=True)
class LifecycleConfig:
    version: str
    project: ProjectSettings
    branches: BranchSettings
    pull_requests: PullRequestSettings
    ideas: IdeaSettings
    root: Path
    config_path: Path

    @property
    def ideas_dir(self) -> Path:
        return self.root / self.ideas.directory


def load_lifecycle_config(
    cwd: Path | str | None = None, path: Path | None = None
) -> LifecycleConfig:
    """Load, validate, and normalize the lifecycle config.

    The repository root is found by walking up from ``cwd``. ``path`` overrides
    the config location (relative paths resolve against the root).

    Raises ConfigError when the file is missing or invalid.
    """
    root = repo_root(cwd)
    config_path = path if path is not None else CONFIG_RELATIVE_PATH
    if not config_path.is_absolute():
        config_path = root / config_path

    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigError(f"Lifecycle config not found at {config_path}") from None
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Unable to read lifecycle config {config_path}: {e}") from e

    return parse_lifecycle_config(raw, root=root, config_path=config_path)


def parse_lifecycle_config(raw: dict, root: Path, config_path: Path) -> LifecycleConfig:
    """Build a LifecycleConfig from already-decoded JSON."""
    if not isinstance(raw, dict):
        raise ConfigError("Lifecycle config must be a JSON object")

    issues = validate_raw_config(raw)
    if issues:
        raise ConfigError(f"Invalid lifecycle config {config_path}", issues)

    project = raw["project"]
    branches = raw["branches"]
    pull_requests = raw.get("pullRequests") or {}
    ideas = raw.get("ideas") or {}

    allowed_prefixes = tuple(branches.get("allowedPrefixes") or ())
    branch_pattern = branches["pattern"]
    title_pattern = pull_requests.get("titlePattern") or DEFAULT_PR_TITLE_PATTERN

    try:
        branch_regex = compile_pattern(branch_pattern, allowed_prefixes)
    except re.error as e:
        raise ConfigError(f"Invalid branch pattern in lifecycle config: {e}") from e
    try:
        title_regex = compile_pattern(title_pattern)
    except re.error as e:
        raise ConfigError(f"Invalid pull request title pattern in lifecycle config: {e}") from e

    config = LifecycleConfig(
        version=str(raw.get("version", "0")),
        project=ProjectSettings(
            id=str(project.get("id", "")),
            fields=dict(project.get("fields") or {}),
            statuses=tuple(project["statuses"]),
            lanes=tuple(project["lanes"]),
            types=tuple(project.get("types") or ()),
            priorities=tuple(project.get("priorities") or ()),
        ),
        branches=BranchSettings(
            pattern=branch_pattern,
            regex=branch_regex,
            allowed_prefixes=allowed_prefixes,
        ),
        pull_requests=PullRequestSettings(title_pattern=title_pattern, regex=title_regex),
        ideas=IdeaSettings(
            directory=ideas.get("directory") or DEFAULT_IDEAS_DIRECTORY,
        ),
        root=root,
        config_path=config_path,
    )
    logger.debug(
        f"Loaded lifecycle config {config_path} "
        f"({len(config.project.statuses)} statuses, {len(config.project.lanes)} lanes)"
    )
    return config


def validate_raw_config(raw: dict) -> list[str]:
    """Return a list of problems with the required keys."""
    issues: list[str] = []
    project = raw.get("project")
    branches = raw.get("branches")

    if not isinstance(project, dict):
        issues.append("project section is missing")
    else:
        for key in ("statuses", "lanes"):
            if not _non_empty_strings(project.get(key)):
                issues.append(f"project.{key} must be a non-empty list of strings")

    if not isinstance(branches, dict):
        issues.append("branches section is missing")
    elif not isinstance(branches.get("pattern"), str) or not branches["pattern"].strip():
        issues.append("branches.pattern must be a non-empty string")

    return issues


def _non_empty_strings(value: object) -> bool:
    return (
        isinstance(value, list)
        and len(value) > 0
        and all(isinstance(v, str) and v.strip() for v in value)
    )
