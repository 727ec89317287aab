"""Local repository helpers: root discovery, safe writes, current branch."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


class RepoNotFoundError(Exception):
    """Raised when no enclosing git repository can be found."""


def repo_root(start: Path | str | None = None) -> Path:
    """Walk up from ``start`` until a directory containing ``.git`` is found."""
    current = Path(start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / ".git").exists():
            return candidate
    raise RepoNotFoundError(f"Not in a git repository: {current}")


def is_inside_repo(target: Path, root: Path) -> bool:
    """True when ``target`` resolves to ``root`` or somewhere below it."""
    return target.resolve().is_relative_to(root.resolve())


def atomic_write(target: Path, content: str) -> None:
    """Write ``content`` to a temp file beside ``target`` then rename over it."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def current_branch(repo_dir: Path) -> str | None:
    """Name of the checked-out branch, or None if git can't tell us."""
    output = _git(repo_dir, "rev-parse", "--abbrev-ref", "HEAD")
    return output.strip() if output else None


def _git(repo_dir: Path, *args: str) -> str | None:
    """Run a git command in the repo directory."""
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=repo_dir,
            capture_output=True,
            text=True,
            timeout=30,
        )
        if result.returncode == 0:
            return result.stdout
        logger.debug(f"git {' '.join(args)} failed: {result.stderr.strip()}")
        return None
    except (subprocess.TimeoutExpired, FileNotFoundError):
        return None
