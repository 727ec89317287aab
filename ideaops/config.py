"""Runtime configuration for ideaops.

Credentials and output defaults, as opposed to repository policy (which lives
in ``.repo/lifecycle.json``, see ``ideaops.lifecycle.config``).

Config sources (in priority order):
1. Explicit command-line options
2. Environment variables (IDEAOPS_GITHUB_TOKEN, etc.)
3. .env file in current directory
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from ideaops.log import DEFAULT_LOG_LEVEL, LOG_LEVELS

load_dotenv()


@dataclass
class Config:
    github_token: str = ""
    repo: str = ""  # "owner/repo"
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def load(cls) -> Config:
        return cls(
            github_token=os.getenv("IDEAOPS_GITHUB_TOKEN") or os.getenv("GITHUB_TOKEN", ""),
            repo=os.getenv("IDEAOPS_REPO", ""),
            log_level=os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL),
        )

    def validate(self) -> list[str]:
        """Return a list of missing config issues."""
        issues = []
        if not self.github_token:
            issues.append("GitHub token not set (IDEAOPS_GITHUB_TOKEN or GITHUB_TOKEN)")
        if not self.repo:
            issues.append("Repository not set (IDEAOPS_REPO)")
        elif "/" not in self.repo:
            issues.append(f"Repository must be owner/repo, got {self.repo!r}")
        if self.log_level.lower() not in LOG_LEVELS:
            issues.append(f"Unknown LOG_LEVEL {self.log_level!r}")
        return issues
