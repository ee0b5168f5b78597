"""Unit tests for the list and view commands."""

import pytest

from openspec.errors import WorkspaceError
from openspec.listing import ListCommand, ViewCommand, collect_dashboard, progress_bar, spec_requirement_count
from openspec.workspace import Workspace

from conftest import VALID_SPEC, output_of, write


TWO_REQUIREMENTS = VALID_SPEC + (
    "\n### Requirement: Logout\nThe system SHALL end sessions on logout.\n\n"
    "#### Scenario: Logout\n- **WHEN** a user logs out\n- **THEN** the session ends\n"
)


class TestListCommand:
    """Test cases for ``openspec list``."""

    def test_lists_changes_with_task_status(self, populated_project, console, messages):
        write(populated_project / "openspec/changes/empty-change/proposal.md", "# Change: x\n")

        ListCommand(console, messages).execute(populated_project)

        lines = output_of(console).splitlines()
        assert lines[0] == "Changes:"
        assert lines[1] == "  add-2fa          1/2 tasks"
        assert lines[2] == "  empty-change     No tasks"

    def test_no_changes(self, project, console, messages):
        ListCommand(console, messages).execute(project)

        assert output_of(console) == "No active changes found.\n"

    def test_missing_changes_dir(self, tmp_path, console, messages):
        with pytest.raises(WorkspaceError, match="No OpenSpec changes directory found"):
            ListCommand(console, messages).execute(tmp_path)

    def test_lists_specs(self, populated_project, console, messages):
        write(populated_project / "openspec/specs/billing/spec.md", "# billing\n\nno sections\n")

        ListCommand(console, messages).execute(populated_project, mode="specs")

        assert output_of(console).splitlines() == [
            "Specs:",
            "  auth        requirements 1",
            "  billing     requirements 0",
        ]


class TestDashboard:
    """Test cases for dashboard collection."""

    def test_progress_bar(self):
        assert progress_bar(1, 2, width=4) == "[██░░]"
        assert progress_bar(0, 0, width=4) == "────"

    def test_unparseable_spec_counts_zero(self, project):
        write(project / "openspec/specs/broken/spec.md", "nothing useful")

        assert spec_requirement_count(Workspace(project), "broken") == 0

    def test_collect(self, populated_project):
        write(populated_project / "openspec/specs/session/spec.md", TWO_REQUIREMENTS)
        write(populated_project / "openspec/changes/done/tasks.md", "- [x] one\n")
        write(populated_project / "openspec/changes/planned/proposal.md", "# Change: later\n")

        dashboard = collect_dashboard(Workspace(populated_project))

        assert [change.name for change in dashboard.active] == ["add-2fa"]
        assert dashboard.completed == ["done", "planned"]
        assert list(dashboard.specs.items()) == [("session", 2), ("auth", 1)]
        data = dashboard.to_dict()
        assert data["summary"] == {
            "specs": 2,
            "requirements": 3,
            "activeChanges": 1,
            "completedChanges": 2,
            "tasks": {"total": 2, "completed": 1},
        }
        assert data["activeChanges"][0]["percentage"] == 50


class TestViewCommand:
    """Test cases for ``openspec view``."""

    def test_renders_sections(self, populated_project, console, messages):
        ViewCommand(console, messages).execute(populated_project)

        output = output_of(console)
        assert "OpenSpec Dashboard" in output
        assert "Specifications: 1 specs, 1 requirements" in output
        assert "Task Progress: 1/2 (50% complete)" in output
        assert "◉ add-2fa" in output
        assert "[██████████░░░░░░░░░░] 50%" in output
        assert "▪ auth" in output
        assert "1 requirement\n" in output

    def test_requires_openspec_dir(self, tmp_path, console, messages):
        with pytest.raises(WorkspaceError, match="No OpenSpec directory found"):
            ViewCommand(console, messages).execute(tmp_path)
