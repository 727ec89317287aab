"""Tests for ideaops.lifecycle.reconcile: planning, status-line rewrite, apply."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from ideaops.github.projects import StatusUpdateResult
from ideaops.lifecycle.config import parse_lifecycle_config
from ideaops.lifecycle.reconcile import (
    DEFAULT_TARGET_STATUS,
    IdeaPathError,
    StatusNotAllowedError,
    apply_plan,
    apply_status_line,
    read_idea_status,
    reconcile,
    resolve_idea_path,
    resolve_target_status,
)

LANE_A_IDEA = "# ARCH-123 Guardrails\n\nLane: A\nIssue: #42\n\n## Purpose\n\nKeep it healthy.\n"


class TestResolveTargetStatus:
    def test_default(self, config):
        assert resolve_target_status(None, config) == DEFAULT_TARGET_STATUS
        assert resolve_target_status("  ", config) == "Ticketed"

    def test_canonical_spelling(self, config):
        assert resolve_target_status("in review", config) == "In Review"

    def test_not_allowed(self, config):
        with pytest.raises(StatusNotAllowedError, match='Status "Bogus" not allowed'):
            resolve_target_status("Bogus", config)


class TestReconcile:
    def test_lane_a_plan(self, config):
        plan = reconcile("ARCH-123", "ideas/ARCH-123.md", config, target_status="Ticketed")
        assert plan.status.idea == "Unknown"
        assert plan.status.project == "Unknown"
        assert plan.status.target == "Ticketed"
        assert plan.status.idea_action == "update idea status to Ticketed"
        assert plan.status.project_action == "set project status to Ticketed"
        assert plan.dry_run

    def test_merged_noop(self, config):
        plan = reconcile(
            "ARCH-123",
            "ideas/ARCH-123.md",
            config,
            target_status="Merged",
            idea_status="Merged",
            project_status="Merged",
        )
        assert plan.status.idea_action == "noop"
        assert plan.status.project_action == "noop"

    def test_board_spelling_differs_in_case(self, config):
        plan = reconcile("U-1", "ideas/U-1.md", config, target_status="In Review", project_status="In review")
        assert plan.status.project_action == "noop"

    def test_arbitrary_jump_allowed(self, config):
        plan = reconcile("U-1", "ideas/U-1.md", config, target_status="Archived", idea_status="Draft")
        assert plan.status.idea_action == "update idea status to Archived"

    def test_bogus_fails_before_side_effects(self, tmp_path: Path):
        raw = {
            "project": {"statuses": ["Draft", "Ticketed", "Merged"], "lanes": ["A"]},
            "branches": {"pattern": "type/ID-slug"},
        }
        config = parse_lifecycle_config(raw, root=tmp_path, config_path=tmp_path / "c.json")
        idea = tmp_path / "U-1.md"
        idea.write_text("# U-1\nStatus: Draft\n")
        ensure = MagicMock()

        with pytest.raises(StatusNotAllowedError):
            plan = reconcile("U-1", idea, config, target_status="Bogus")
            apply_plan(plan, config, ensure)

        assert idea.read_text() == "# U-1\nStatus: Draft\n"
        ensure.assert_not_called()

    def test_notes_and_serialization(self, config):
        plan = reconcile("U-1", "ideas/U-1.md", config, notes={"project": "Project item located."})
        data = json.loads(plan.to_json())
        assert data["notes"] == {"project": "Project item located."}
        assert data["generated_at"].endswith("Z")
        assert "Project action: set project status to Ticketed" in plan.to_text()


class TestApplyStatusLine:
    def test_replaces_existing_line(self):
        content = "# T\nLane: A\nStatus: Draft\n\nBody\n"
        updated = apply_status_line(content, "Ticketed")
        assert updated == "# T\nLane: A\nStatus: Ticketed\n\nBody\n"
        assert len(updated.split("\n")) == len(content.split("\n"))

    def test_replaces_only_first(self):
        content = "Status: Draft\nStatus: Merged\n"
        assert apply_status_line(content, "Ticketed") == "Status: Ticketed\nStatus: Merged\n"

    def test_inserts_after_lane(self):
        assert apply_status_line(LANE_A_IDEA, "Ticketed") == (
            "# ARCH-123 Guardrails\n\nLane: A\nStatus: Ticketed\nIssue: #42\n\n## Purpose\n\nKeep it healthy.\n"
        )

    def test_inserts_after_title(self):
        assert apply_status_line("# Title\n\nBody\n", "Draft") == "# Title\nStatus: Draft\n\nBody\n"

    def test_prepends(self):
        assert apply_status_line("Body only\n", "Draft") == "Status: Draft\nBody only\n"

    def test_inserts_exactly_one_line(self):
        for content in (LANE_A_IDEA, "# Title\nx", "plain"):
            before = content.split("\n")
            after = apply_status_line(content, "Draft").split("\n")
            assert len(after) == len(before) + 1
            after.remove("Status: Draft")
            assert after == before

    def test_idempotent(self):
        for content in (LANE_A_IDEA, "# Title\n", "", "Status: Merged\n"):
            once = apply_status_line(content, "Ticketed")
            assert apply_status_line(once, "Ticketed") == once

    def test_does_not_cross_lines(self):
        content = "Status:\nNext line\n"
        assert apply_status_line(content, "Draft") == "Status: Draft\nNext line\n"

    def test_crlf_replaces_in_place(self):
        content = "# U-1 Button\r\nLane: A\r\nStatus: Draft\r\n\r\n## Behaviors\r\n"
        assert apply_status_line(content, "Ticketed") == (
            "# U-1 Button\r\nLane: A\r\nStatus: Ticketed\r\n\r\n## Behaviors\r\n"
        )

    def test_crlf_insert_uses_file_line_ending(self):
        content = "# U-1 Button\r\nLane: A\r\n\r\n## Behaviors\r\n"
        assert apply_status_line(content, "Ticketed") == (
            "# U-1 Button\r\nLane: A\r\nStatus: Ticketed\r\n\r\n## Behaviors\r\n"
        )
        assert apply_status_line("Body\r\n", "Draft") == "Status: Draft\r\nBody\r\n"

    def test_lane_on_last_line(self):
        assert apply_status_line("# T\nLane: A", "Draft") == "# T\nLane: A\nStatus: Draft"

    def test_keeps_backtick_status_that_already_matches(self):
        content = "# T\nStatus: `Ticketed`\n"
        assert apply_status_line(content, "Ticketed") == content
        assert apply_status_line(content, "Merged") == "# T\nStatus: Merged\n"


class TestApplyPlan:
    def test_lane_a_scenario(self, config, write_idea):
        path = write_idea("ARCH-123.md", LANE_A_IDEA)
        ensure = MagicMock(return_value=StatusUpdateResult(True, "Draft", "Project status updated to Ticketed."))

        plan = reconcile("ARCH-123", path, config, idea_status=read_idea_status(path))
        assert plan.status.idea_action == "update idea status to Ticketed"

        result = apply_plan(plan, config, ensure)

        lines = path.read_text().split("\n")
        assert lines[lines.index("Lane: A") + 1] == "Status: Ticketed"
        ensure.assert_called_once_with("ARCH-123", "Ticketed")
        assert result.idea_updated
        assert result.plan.status.idea == "Ticketed"
        assert result.plan.status.project == "Ticketed"
        assert result.plan.status.idea_action == "updated idea status to Ticketed"
        assert result.plan.status.project_action == "updated project status to Ticketed"
        assert result.plan.notes["project"] == "Project status updated to Ticketed."
        assert not result.plan.dry_run

    def test_second_apply_is_noop(self, config, write_idea):
        path = write_idea("ARCH-123.md", LANE_A_IDEA)
        ensure = MagicMock(return_value=StatusUpdateResult(False, "Ticketed", "Project status already Ticketed."))
        plan = reconcile("ARCH-123", path, config)

        apply_plan(plan, config, ensure)
        first = path.read_text()
        result = apply_plan(plan, config, ensure)

        assert path.read_text() == first
        assert not result.idea_updated
        assert result.plan.status.idea_action == "noop"
        assert result.plan.status.project == "Ticketed"

    def test_project_failure_keeps_local_result(self, config, write_idea):
        path = write_idea("U-1.md", "# U-1\nStatus: Draft\n")
        ensure = MagicMock(return_value=StatusUpdateResult(False, None, "Project item for U-1 not found."))
        plan = reconcile("U-1", path, config, idea_status="Draft")

        result = apply_plan(plan, config, ensure)

        assert path.read_text() == "# U-1\nStatus: Ticketed\n"
        assert result.plan.status.project == "Unknown"
        assert result.plan.status.project_action == "set project status to Ticketed"
        assert result.plan.notes["project"] == "Project item for U-1 not found."
        assert result.to_dict()["result"]["idea"]["updated"] is True

    def test_preserves_crlf_on_disk(self, config, repo_dir: Path):
        path = repo_dir / "ideas" / "U-1.md"
        path.write_bytes(b"# U-1 Button\r\nLane: A\r\nStatus: Draft\r\n\r\n## Behaviors\r\n")
        ensure = MagicMock(return_value=StatusUpdateResult(False, None, "Project item for U-1 not found."))

        result = apply_plan(reconcile("U-1", path, config, idea_status="Draft"), config, ensure)

        assert result.idea_updated
        assert path.read_bytes() == b"# U-1 Button\r\nLane: A\r\nStatus: Ticketed\r\n\r\n## Behaviors\r\n"

    def test_backtick_status_matches_dry_run(self, config, write_idea):
        content = "# U-1\nLane: A\nStatus: `Ticketed`\n"
        path = write_idea("U-1.md", content)
        ensure = MagicMock(return_value=StatusUpdateResult(False, "Ticketed", "Project status already Ticketed."))

        plan = reconcile("U-1", path, config, idea_status=read_idea_status(path))
        assert plan.status.idea_action == "noop"

        result = apply_plan(plan, config, ensure)
        assert not result.idea_updated
        assert result.plan.status.idea_action == "noop"
        assert path.read_text() == content

    def test_missing_idea_file_propagates(self, config, repo_dir: Path):
        plan = reconcile("U-404", repo_dir / "ideas" / "U-404.md", config)
        with pytest.raises(FileNotFoundError):
            apply_plan(plan, config, MagicMock())


class TestResolveIdeaPath:
    def test_default_location(self, config, repo_dir: Path):
        assert resolve_idea_path("ARCH-123", config.root, config) == config.root / "ideas" / "ARCH-123.md"

    def test_relative_file(self, config):
        assert resolve_idea_path("X", config.root, config, "docs/x.md") == config.root / "docs" / "x.md"

    def test_outside_repo(self, config):
        with pytest.raises(IdeaPathError, match="within repository"):
            resolve_idea_path("X", config.root, config, "../elsewhere.md")

    def test_absolute_outside_repo(self, config, tmp_path_factory):
        other = tmp_path_factory.mktemp("other") / "x.md"
        with pytest.raises(IdeaPathError):
            resolve_idea_path("X", config.root, config, str(other))


class TestReadIdeaStatus:
    def test_reads_status(self, write_idea):
        path = write_idea("U-1.md", "# U-1\nStatus: `PR Open`\n")
        assert read_idea_status(path) == "PR Open"

    def test_no_status(self, write_idea):
        assert read_idea_status(write_idea("U-1.md", "# U-1\n")) is None

    def test_missing_file(self, repo_dir: Path):
        with pytest.raises(IdeaPathError, match="Unable to read idea file"):
            read_idea_status(repo_dir / "ideas" / "nope.md")

    def test_undecodable_file(self, repo_dir: Path):
        path = repo_dir / "ideas" / "U-1.md"
        path.write_bytes(b"# U-1\nStatus: Dr\xffaft\n")
        with pytest.raises(IdeaPathError, match="Unable to read idea file"):
            read_idea_status(path)
