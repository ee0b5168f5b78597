"""Unit tests for OpenSpec workflow management.

This module tests the dictionary-returning facade the MCP server calls:
listing, show, validation, archive and the dashboard.
"""

from pathlib import Path

from openspec.openspec_logging import observability_hooks, performance_monitor
from openspec.workflow import WorkflowManager

from conftest import VALID_DELTA, write


class TestWorkflowManagerInitialization:
    """Test cases for WorkflowManager initialization."""

    def test_workflow_manager_creation(self, tmp_path):
        """Test creating a WorkflowManager from a string path."""
        manager = WorkflowManager(str(tmp_path))

        assert manager.workspace.root == Path(tmp_path).resolve()

    def test_uninitialized_project(self, tmp_path):
        """Test that listing an uninitialized project returns an error dict."""
        result = WorkflowManager(tmp_path).list_changes()

        assert result["error"].startswith("No openspec directory found in")
        assert "openspec init" in result["suggestion"]


class TestListing:
    """Test cases for list operations."""

    def test_list_changes(self, populated_project):
        """Test listing changes with task status."""
        result = WorkflowManager(populated_project).list_changes()

        assert result == {
            "changes": [
                {
                    "id": "add-2fa",
                    "title": "Add two-factor authentication",
                    "taskStatus": {"total": 2, "completed": 1},
                }
            ],
            "count": 1,
        }

    def test_list_specs(self, populated_project):
        """Test listing specs with requirement counts."""
        result = WorkflowManager(populated_project).list_specs()

        assert result == {"specs": [{"id": "auth", "requirementCount": 1}], "count": 1}


class TestShow:
    """Test cases for show operations."""

    def test_show_spec(self, populated_project):
        """Test showing a spec with filters."""
        result = WorkflowManager(populated_project).show_spec("auth", no_scenarios=True)

        assert result["id"] == "auth"
        assert result["requirements"][0]["scenarios"] == []

    def test_show_spec_unknown(self, populated_project):
        """Test the suggestion returned for a mistyped spec id."""
        result = WorkflowManager(populated_project).show_spec("aut")

        assert result == {"error": "Unknown spec 'aut'", "suggestion": "Did you mean: auth?"}

    def test_show_spec_bad_index(self, populated_project):
        """Test that filter errors are returned, not raised."""
        result = WorkflowManager(populated_project).show_spec("auth", requirement=5)

        assert result["error"] == "Requirement 5 not found"

    def test_show_change(self, populated_project):
        """Test showing a change as deltas."""
        result = WorkflowManager(populated_project).show_change("add-2fa")

        assert result["deltaCount"] == 1
        assert result["deltas"][0]["operation"] == "ADDED"

    def test_show_change_with_conflicting_delta_files(self, populated_project):
        """Test that parse errors come back with a validation hint."""
        write(populated_project / "openspec/changes/add-2fa/specs/auth/extra.md", VALID_DELTA)

        result = WorkflowManager(populated_project).show_change("add-2fa")

        assert "multiple delta spec files found" in result["error"]
        assert "openspec validate add-2fa --type change" in result["suggestion"]


class TestValidation:
    """Test cases for validate_item."""

    def test_validate_change(self, populated_project):
        """Test validating a change through its delta specs."""
        result = WorkflowManager(populated_project).validate_item("add-2fa")

        assert result["type"] == "change"
        assert result["valid"] is True
        assert result["summary"] == {"errors": 0, "warnings": 0, "info": 0}
        assert performance_monitor.get_metrics("validate_item_duration")["validate_item_duration"]

    def test_validate_invalid_type(self, populated_project):
        """Test rejecting an unknown item type."""
        result = WorkflowManager(populated_project).validate_item("auth", item_type="feature")

        assert result["error"] == "Invalid type 'feature'"

    def test_validate_unknown_item(self, populated_project):
        """Test validating an id that does not exist."""
        result = WorkflowManager(populated_project).validate_item("nothing")

        assert result["error"].startswith("Unknown item 'nothing'")


class TestArchive:
    """Test cases for archive_change."""

    def test_archive_change(self, populated_project):
        """Test archiving without prompts and capturing the output."""
        events = []
        callback = lambda **data: events.append(data)
        observability_hooks.register_hook("change_archived", callback)
        try:
            result = WorkflowManager(populated_project).archive_change("add-2fa")
        finally:
            observability_hooks.unregister_hook("change_archived", callback)

        assert result["archived"] is True
        assert result["archiveName"].endswith("-add-2fa")
        assert result["totals"]["added"] == 1
        assert "Continuing due to --yes flag." in result["output"]
        assert events[0]["item_id"] == "add-2fa"

    def test_archive_invalid_change(self, populated_project):
        """Test that a blocked archive returns a suggestion."""
        write(
            populated_project / "openspec/changes/add-2fa/specs/auth/spec.md",
            VALID_DELTA.split("#### Scenario")[0],
        )

        result = WorkflowManager(populated_project).archive_change("add-2fa")

        assert result["archived"] is False
        assert "suggestion" in result
        assert "Validation errors in change delta specs:" in result["output"]

    def test_archive_unknown_change(self, populated_project):
        """Test archiving a change that does not exist."""
        result = WorkflowManager(populated_project).archive_change("missing")

        assert result["error"] == "Change 'missing' not found."
        assert result["output"] == ""

    def test_archive_rejects_paths_outside_changes(self, populated_project):
        """Test that ids naming the specs or archive folders are refused."""
        manager = WorkflowManager(populated_project)

        for change_id in ("../specs", "archive"):
            result = manager.archive_change(change_id, validate=False)
            assert result["error"] == f"Change '{change_id}' not found."

        assert (populated_project / "openspec/specs/auth/spec.md").is_file()
        assert manager.list_changes()["count"] == 1


class TestDashboard:
    """Test cases for the dashboard."""

    def test_dashboard(self, populated_project):
        """Test the dashboard summary."""
        result = WorkflowManager(populated_project).dashboard()

        assert result["summary"]["activeChanges"] == 1
        assert result["specs"] == [{"name": "auth", "requirementCount": 1}]
