"""Naming guards for branches and pull request titles.

Branches must follow ``branches.pattern`` from the lifecycle config (e.g.
``feat/ARCH-123-add-guardrails``). A pull request title must follow
``pullRequests.titlePattern`` and carry the same ID as its branch
(e.g. ``[ARCH-123] Add Guardrails Suite``).
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field

from ideaops.lifecycle.config import LifecycleConfig

logger = logging.getLogger(__name__)

BRANCH_EXIT_CODE = 11
PR_TITLE_EXIT_CODE = 12

PROTECTED_BRANCHES = frozenset({"main", "master", "develop", "HEAD"})
BRANCH_EXAMPLES = [
    "feat/ARCH-123-add-guardrails",
    "fix/U-456-button-state",
    "refactor/C-789-cleanup-tests",
]

# Used when the configured patterns don't expose named groups.
_BRANCH_ID_RE = re.compile(r"^([A-Z]+-[A-Za-z0-9]+)-")
_TITLE_RE = re.compile(r"^\[([^\]]+)\]\s+(.+)$")


@dataclass
class BranchCheck:
    branch: str
    valid: bool
    skipped: bool = False
    reason: str = ""
    pattern: str = ""
    examples: list[str] = field(default_factory=list)

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2)

    def to_text(self) -> str:
        if self.skipped:
            return f"Branch {self.branch}: skipped ({self.reason})"
        if self.valid:
            return f"Branch {self.branch}: valid"
        lines = [f"Branch {self.branch}: {self.reason}", f"  Expected pattern: {self.pattern}"]
        lines.extend(f"  e.g. {example}" for example in self.examples)
        return "\n".join(lines)


@dataclass
class TitleCheck:
    branch: str
    title: str | None
    valid: bool
    message: str
    branch_id: str | None = None
    title_id: str | None = None

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2)

    def to_text(self) -> str:
        mark = "valid" if self.valid else "invalid"
        lines = [f"PR title {mark}: {self.message}", f"  Branch: {self.branch}"]
        if self.title is not None:
            lines.append(f"  Title: {self.title}")
        return "\n".join(lines)


def check_branch_name(branch: str, config: LifecycleConfig) -> BranchCheck:
    """Check ``branch`` against the configured branch pattern."""
    if branch in PROTECTED_BRANCHES:
        return BranchCheck(branch=branch, valid=True, skipped=True, reason="protected branch")

    pattern = config.branches.pattern
    logger.debug(f"Validating branch {branch!r} against {pattern!r}")
    if config.branches.regex.search(branch):
        return BranchCheck(branch=branch, valid=True)

    return BranchCheck(
        branch=branch,
        valid=False,
        reason=f"Branch name does not match required pattern: {pattern}",
        pattern=pattern,
        examples=list(BRANCH_EXAMPLES),
    )


def extract_branch_id(branch: str, config: LifecycleConfig) -> str | None:
    """The work item ID embedded in a valid branch name."""
    match = config.branches.regex.search(branch)
    if not match:
        logger.debug(f"Branch does not match pattern: {config.branches.pattern}")
        return None
    if match.groupdict().get("id"):
        return match.group("id")

    parts = branch.split("/")
    if len(parts) != 2:
        return None
    id_match = _BRANCH_ID_RE.match(parts[1])
    return id_match.group(1) if id_match else None


def check_pr_title(title: str | None, branch: str, config: LifecycleConfig) -> TitleCheck:
    """Check a PR title against the title pattern and the branch's ID.

    A missing title (the branch has no open PR yet) passes.
    """
    branch_id = extract_branch_id(branch, config)
    if not branch_id:
        return TitleCheck(branch=branch, title=title, valid=False, message="Branch format invalid")

    if title is None:
        logger.warning(f"No PR found for branch: {branch}")
        return TitleCheck(
            branch=branch, title=None, valid=True, message="No PR exists for branch", branch_id=branch_id
        )

    title_id, title_text = _split_title(title, config)
    if title_id is None:
        return TitleCheck(
            branch=branch,
            title=title,
            valid=False,
            message=f"PR title does not match pattern {config.pull_requests.title_pattern}",
            branch_id=branch_id,
        )
    if title_id != branch_id:
        return TitleCheck(
            branch=branch,
            title=title,
            valid=False,
            message=f'PR title ID "{title_id}" does not match branch ID "{branch_id}"',
            branch_id=branch_id,
            title_id=title_id,
        )
    if not title_text.strip():
        return TitleCheck(
            branch=branch,
            title=title,
            valid=False,
            message="PR title text is empty after [ID] prefix",
            branch_id=branch_id,
            title_id=title_id,
        )

    return TitleCheck(
        branch=branch, title=title, valid=True, message="PR title valid", branch_id=branch_id, title_id=title_id
    )


def _split_title(title: str, config: LifecycleConfig) -> tuple[str | None, str]:
    match = config.pull_requests.regex.search(title)
    if not match:
        return None, ""
    groups = match.groupdict()
    if groups.get("id"):
        return groups["id"], groups.get("title") or ""

    fallback = _TITLE_RE.match(title)
    if not fallback:
        return None, ""
    return fallback.group(1), fallback.group(2)
