"""Structural validation of idea files.

Builds on the tolerant parser: every problem is collected into ``errors`` or
``warnings`` and the caller decides what to do with them. Nothing here raises
for a malformed idea.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from ideaops.ideas.models import IdeasReport, IdeaValidation
from ideaops.ideas.parser import (
    CHECKLIST_SECTION,
    extract_checklist_items,
    find_idea_files,
    get_idea_type,
    parse_idea,
)
from ideaops.lifecycle.config import ProjectSettings

logger = logging.getLogger(__name__)

DEFAULT_LANES = ("A", "B", "C", "D")
MIN_CHECKLIST_ITEMS = 2


@dataclass(frozen=True)
class IdeaRule:
    required_sections: tuple[str, ...]
    filename_pattern: re.Pattern[str]
    requires_lane: bool = True


VALIDATION_RULES: dict[str, IdeaRule] = {
    "unit": IdeaRule(
        required_sections=("Contracts", "Props + Shape", "Behaviors", CHECKLIST_SECTION),
        filename_pattern=re.compile(r"^U-[\w-]+\.md$"),
    ),
    "composition": IdeaRule(
        required_sections=("Metric Hypothesis", "Units In Scope", CHECKLIST_SECTION),
        filename_pattern=re.compile(r"^C-[\w-]+\.md$"),
    ),
    "architecture": IdeaRule(
        required_sections=("Purpose", "Problem", "Proposal", CHECKLIST_SECTION),
        filename_pattern=re.compile(r"^ARCH-[\w-]+\.md$"),
    ),
    "playbook": IdeaRule(
        required_sections=("Purpose", "Process", CHECKLIST_SECTION),
        filename_pattern=re.compile(r"^PB-[\w-]+\.md$"),
    ),
    "bug": IdeaRule(
        required_sections=("Expected Behavior", "Actual Behavior", "Steps"),
        filename_pattern=re.compile(r"^B-[\w-]+\.md$"),
    ),
    "brief": IdeaRule(
        required_sections=("Problem", "Signal", "Hunch"),
        filename_pattern=re.compile(r"^[a-z][\w-]*\.md$"),
        requires_lane=False,
    ),
}


def validate_idea_file(path: Path, project: ProjectSettings | None = None) -> IdeaValidation:
    """Read and validate a single idea file."""
    filename = path.name
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return IdeaValidation(
            filename=filename,
            type=None,
            valid=False,
            errors=[f"Failed to read file: {e}"],
        )
    return validate_idea_content(content, filename, project)


def validate_idea_content(
    content: str, filename: str, project: ProjectSettings | None = None
) -> IdeaValidation:
    """Validate idea markdown against the rules for its filename type.

    Lanes default to A-D; pass the configured ``project`` settings to validate
    against the lifecycle config instead.
    """
    errors: list[str] = []
    warnings: list[str] = []

    idea_type = get_idea_type(filename)
    if idea_type is None:
        errors.append("Filename must start with U-, C-, ARCH-, PB-, or B-")
        return IdeaValidation(filename=filename, type=None, valid=False, errors=errors)

    rule = VALIDATION_RULES[idea_type]
    if not rule.filename_pattern.match(filename):
        errors.append(f"Filename doesn't match pattern: {rule.filename_pattern.pattern}")

    idea = parse_idea(content, filename=filename)

    if not idea.title:
        errors.append("Missing top-level heading (# Title)")

    for section in rule.required_sections:
        if idea.section(section) is None:
            errors.append(f"Missing required section: {section}")

    allowed_lanes = project.lanes if project else DEFAULT_LANES
    if (rule.requires_lane or idea.lane) and not _lane_allowed(idea.lane, project):
        errors.append(
            f"Missing or invalid Lane specification ({_join_choices(allowed_lanes)})"
        )

    if idea.section(CHECKLIST_SECTION) is not None:
        items = extract_checklist_items(idea)
        if not items:
            warnings.append("Acceptance Checklist is empty")
        elif len(items) < MIN_CHECKLIST_ITEMS:
            warnings.append(
                f"Acceptance Checklist has only {len(items)} item(s) (consider adding more)"
            )

    if idea.title and idea_type != "brief":
        prefix = filename[: filename.index("-")]
        if f"{prefix}-" not in idea.title:
            warnings.append(f"Title doesn't include ticket ID prefix ({prefix})")

    return IdeaValidation(
        filename=filename,
        type=idea_type,
        valid=not errors,
        errors=errors,
        warnings=warnings,
        metadata=idea,
    )


def validate_ideas(
    ideas_dir: Path,
    filter: str | None = None,
    strict: bool = False,
    project: ProjectSettings | None = None,
) -> IdeasReport:
    """Validate every idea file in a directory.

    With ``strict``, warnings make the report fail just like errors.
    """
    if not ideas_dir.is_dir():
        message = f"Ideas directory not found: {ideas_dir}"
        logger.warning(message)
        return IdeasReport(status="missing", message=message)

    filenames = find_idea_files(ideas_dir, filter)
    if not filenames:
        message = (
            f"No ideas matching filter: {filter}" if filter else f"No idea files found in {ideas_dir}"
        )
        logger.warning(message)
        return IdeasReport(status="empty", message=message)

    logger.info(f"Found {len(filenames)} idea file(s) in {ideas_dir}")
    report = IdeasReport(total=len(filenames))

    for filename in filenames:
        result = validate_idea_file(ideas_dir / filename, project)
        report.files.append(result)

        if result.valid:
            report.valid += 1
            logger.debug(f"{filename}: valid")
        else:
            report.invalid += 1
            for error in result.errors:
                logger.info(f"{filename}: {error}")

        report.warnings += len(result.warnings)

    if report.invalid or (strict and report.warnings):
        report.status = "error"
    elif report.warnings:
        report.status = "warn"

    return report


def _lane_allowed(lane: str | None, project: ProjectSettings | None) -> bool:
    if not lane:
        return False
    if project is None:
        return lane in DEFAULT_LANES
    return project.has_lane(lane)


def _join_choices(choices: tuple[str, ...]) -> str:
    if len(choices) == 1:
        return choices[0]
    return ", ".join(choices[:-1]) + f", or {choices[-1]}"
