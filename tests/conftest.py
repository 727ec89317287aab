"""Shared test fixtures for ideaops."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from ideaops.lifecycle.config import LifecycleConfig, load_lifecycle_config

LIFECYCLE = {
    "version": "1.0.0",
    "project": {
        "id": 7,
        "fields": {"id": "ID", "status": "Status", "lane": "Lane"},
        "statuses": ["Draft", "Ticketed", "Branched", "PR Open", "In Review", "Merged", "Archived"],
        "lanes": ["A", "B", "C", "D"],
        "types": ["Unit", "Composition", "Architecture", "Playbook", "Bug"],
        "priorities": ["P0", "P1", "P2", "P3"],
    },
    "branches": {
        "allowedPrefixes": ["feat", "fix", "chore", "docs", "refactor", "test"],
        "pattern": "type/ID-slug",
    },
    "pullRequests": {"titlePattern": "[ID] Title"},
    "ideas": {"directory": "ideas"},
}

PROJECT_CACHE = {
    "project": {
        "id": "PVT_kwDOA",
        "title": "Roadmap",
        "fields": {
            "ID": {"id": "PVTF_id", "type": "ProjectV2Field"},
            "Status": {
                "id": "PVTSSF_status",
                "type": "ProjectV2SingleSelectField",
                "options": [
                    {"id": "opt_draft", "name": "Draft"},
                    {"id": "opt_ticketed", "name": "Ticketed"},
                    {"id": "opt_branched", "name": "Branched"},
                    {"id": "opt_pr_open", "name": "PR Open"},
                    {"id": "opt_in_review", "name": "In Review"},
                    {"id": "opt_merged", "name": "Merged"},
                    {"id": "opt_archived", "name": "Archived"},
                ],
            },
        },
    }
}

ARCH_IDEA = """# ARCH-123 Guardrails Suite

Lane: A
Issue: #42
Parent: #40 (ARCH-platform)

## Purpose

Keep the repository healthy.

## Problem

Checks are scattered across scripts.

## Proposal

One suite, one entry point.

## Acceptance Checklist

- [x] Suite runs locally
- [ ] Suite runs in CI
- Not a checkbox

## Sub-Issues

1. **U-guard-button** - Button state guard
2. **C-guard-panel** - Panel composition
3. Plain text entry without an id
"""


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    """A throwaway repository with a lifecycle config and an empty ideas dir."""
    (tmp_path / ".git").mkdir()
    (tmp_path / ".repo").mkdir()
    (tmp_path / ".repo" / "lifecycle.json").write_text(json.dumps(LIFECYCLE, indent=2))
    (tmp_path / "ideas").mkdir()
    return tmp_path


@pytest.fixture
def config(repo_dir: Path) -> LifecycleConfig:
    return load_lifecycle_config(repo_dir)


@pytest.fixture
def write_idea(repo_dir: Path):
    def _write(name: str, content: str) -> Path:
        path = repo_dir / "ideas" / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def project_cache(repo_dir: Path) -> Path:
    path = repo_dir / ".repo" / "projects.json"
    path.write_text(json.dumps(PROJECT_CACHE, indent=2))
    return path


@pytest.fixture
def arch_idea() -> str:
    return ARCH_IDEA


@pytest.fixture
def lifecycle_raw() -> dict:
    return json.loads(json.dumps(LIFECYCLE))
