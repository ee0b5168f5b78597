"""Unit tests for OpenSpec workspace functionality.

This module tests project discovery, item listing, task tracking and
the suggestions offered for mistyped ids.
"""

import pytest

from openspec.errors import WorkspaceError
from openspec.workspace import Workspace, levenshtein

from conftest import VALID_PROPOSAL, VALID_SPEC, write


class TestWorkspaceInitialization:
    """Test cases for workspace paths and discovery."""

    def test_workspace_paths(self, tmp_path):
        workspace = Workspace(tmp_path)

        assert workspace.root == tmp_path.resolve()
        assert workspace.openspec_dir == tmp_path.resolve() / "openspec"
        assert workspace.archive_dir == tmp_path.resolve() / "openspec/changes/archive"
        assert not workspace.is_initialized()

    def test_discover_walks_up_to_project(self, project):
        nested = project / "src/deep/module"
        nested.mkdir(parents=True)

        assert Workspace.discover(nested).root == project.resolve()

    def test_discover_without_project_uses_start(self, tmp_path):
        assert Workspace.discover(tmp_path).root == tmp_path.resolve()

    def test_discover_prefers_environment(self, project, tmp_path_factory, monkeypatch):
        elsewhere = tmp_path_factory.mktemp("elsewhere")
        monkeypatch.setenv("OPENSPEC_PROJECT_ROOT", str(project))

        assert Workspace.discover(elsewhere).root == project.resolve()

    def test_discover_rejects_missing_environment_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("OPENSPEC_PROJECT_ROOT", str(tmp_path / "missing"))

        with pytest.raises(WorkspaceError, match="does not exist"):
            Workspace.discover(tmp_path)

    def test_require_dirs(self, tmp_path):
        workspace = Workspace(tmp_path)

        with pytest.raises(WorkspaceError, match="No OpenSpec directory found"):
            workspace.require_openspec_dir()
        with pytest.raises(WorkspaceError, match="No OpenSpec changes directory found"):
            workspace.require_changes_dir()


class TestItems:
    """Test cases for listing changes and specs."""

    def test_list_changes_excludes_archive_and_hidden(self, populated_project):
        (populated_project / "openspec/changes/.draft").mkdir()
        (populated_project / "openspec/changes/archive/2025-01-01-old").mkdir()
        write(populated_project / "openspec/changes/fix-typo/proposal.md", VALID_PROPOSAL)

        workspace = Workspace(populated_project)

        assert workspace.list_changes() == ["add-2fa", "fix-typo"]
        assert workspace.list_archived() == ["2025-01-01-old"]

    def test_list_specs_requires_spec_file(self, populated_project):
        (populated_project / "openspec/specs/empty").mkdir()

        workspace = Workspace(populated_project)

        assert workspace.list_specs() == ["auth"]
        assert workspace.spec_exists("auth")
        assert not workspace.spec_exists("empty")

    def test_titles(self, populated_project):
        workspace = Workspace(populated_project)

        assert workspace.change_title("add-2fa") == "Add two-factor authentication"
        assert workspace.change_title("missing") == "missing"
        assert workspace.spec_title("auth") == "auth Specification"

    def test_uninitialized_project_lists_nothing(self, tmp_path):
        workspace = Workspace(tmp_path)

        assert workspace.list_changes() == []
        assert workspace.list_specs() == []


class TestTaskTracking:
    """Test cases for tasks.md progress."""

    def test_progress(self, populated_project):
        workspace = Workspace(populated_project)

        tasks = workspace.read_tasks("add-2fa")

        assert [(task.description, task.completed) for task in tasks] == [
            ("1.1 Add OTP model", True),
            ("1.2 Wire login flow", False),
        ]
        progress = workspace.task_progress("add-2fa")
        assert (progress.total, progress.completed) == (2, 1)

    def test_task_markers(self, project):
        write(
            project / "openspec/changes/c/tasks.md",
            "- [X] upper\n  * [ ] nested star\n- [] not a task\n-[x] no space\n",
        )

        tasks = Workspace(project).read_tasks("c")

        assert [(task.description, task.completed, task.indent) for task in tasks] == [
            ("upper", True, ""),
            ("nested star", False, "  "),
        ]

    def test_missing_tasks_file(self, project):
        (project / "openspec/changes/c").mkdir()

        assert Workspace(project).task_progress("c").total == 0

    def test_all_task_progress(self, populated_project):
        progress = Workspace(populated_project).all_task_progress()

        assert list(progress) == ["add-2fa"]


class TestSuggestions:
    """Test cases for nearest-match suggestions."""

    def test_levenshtein(self):
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("auth", "auth") == 0

    def test_nearest_matches(self, populated_project):
        write(populated_project / "openspec/specs/billing/spec.md", VALID_SPEC)

        matches = Workspace(populated_project).nearest_matches("aut")

        assert matches[0] == "auth"
        assert set(matches) == {"auth", "add-2fa", "billing"}

    def test_limit(self):
        workspace = Workspace(".")

        assert workspace.nearest_matches("a", ["ab", "abc", "abcd"], limit=2) == ["ab", "abc"]
