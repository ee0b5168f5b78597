"""Unit tests for show, validate and the spec/change subcommands."""

import json

import pytest

from openspec.errors import OpenSpecError
from openspec.items import ChangeCommand, ShowCommand, SpecCommand, ValidateCommand

from conftest import VALID_DELTA, VALID_PROPOSAL, VALID_SPEC, output_of, write


@pytest.fixture
def io(console, error_console):
    return {"console": console, "error_console": error_console}


class TestResolveItem:
    """Test cases for deciding between changes and specs."""

    def test_change_and_spec(self, populated_project, io):
        command = ShowCommand(populated_project, **io)

        assert command.resolve_item("add-2fa") == ("change", "add-2fa")
        assert command.resolve_item("auth") == ("spec", "auth")

    def test_ambiguous_item(self, populated_project, io):
        write(populated_project / "openspec/changes/auth/proposal.md", VALID_PROPOSAL)

        with pytest.raises(OpenSpecError, match="Ambiguous item 'auth'"):
            ShowCommand(populated_project, **io).resolve_item("auth")

        assert ShowCommand(populated_project, **io).resolve_item("auth", "spec") == ("spec", "auth")

    def test_unknown_item_suggests_matches(self, populated_project, io):
        with pytest.raises(OpenSpecError) as excinfo:
            ShowCommand(populated_project, **io).resolve_item("aut")

        assert str(excinfo.value).startswith("Unknown item 'aut'\nDid you mean: auth")

    def test_invalid_type(self, populated_project, io):
        with pytest.raises(OpenSpecError, match="Invalid type 'feature'"):
            ShowCommand(populated_project, **io).resolve_item("auth", "feature")


class TestShowCommand:
    """Test cases for ``openspec show``."""

    def test_spec_markdown(self, populated_project, io, console):
        assert ShowCommand(populated_project, **io).execute("auth") == 0

        assert output_of(console) == VALID_SPEC.rstrip("\n") + "\n"

    def test_spec_json_filters(self, populated_project, io, console):
        ShowCommand(populated_project, **io).execute("auth", json_output=True, requirement=1, no_scenarios=True)

        data = json.loads(output_of(console))
        assert data["requirementCount"] == 1
        assert data["requirements"][0]["scenarios"] == []

    def test_change_json(self, populated_project, io, console):
        ShowCommand(populated_project, **io).execute("add-2fa", json_output=True, deltas_only=True)

        data = json.loads(output_of(console))
        assert data["id"] == "add-2fa"
        assert data["title"] == "Add two-factor authentication"
        assert data["deltaCount"] == 1
        assert data["deltas"][0]["requirement"]["scenarios"]

    def test_nothing_to_show(self, populated_project, io, error_console):
        assert ShowCommand(populated_project, **io).execute() == 1

        assert output_of(error_console).startswith("Nothing to show.")

    def test_interactive_selection(self, populated_project, io, console, monkeypatch):
        monkeypatch.setattr("openspec.items.is_interactive", lambda: True)
        command = ShowCommand(populated_project, select=lambda message, choices: choices[-1], **io)

        assert command.execute() == 0

        assert output_of(console).startswith("# auth Specification")


class TestValidateCommand:
    """Test cases for ``openspec validate``."""

    def test_single_change(self, populated_project, io, console):
        assert ValidateCommand(populated_project, **io).execute("add-2fa") == 0

        assert "Change 'add-2fa' is valid" in output_of(console)

    def test_invalid_spec(self, populated_project, io, console, error_console):
        write(populated_project / "openspec/specs/billing/spec.md", "# billing\n\n## Requirements\n")

        assert ValidateCommand(populated_project, **io).execute("billing") == 1

        assert "Specification 'billing' has issues" in output_of(error_console)
        assert "✗ [ERROR] file: Spec must have a Purpose section" in output_of(console)

    def test_bulk_json(self, populated_project, io, console):
        write(populated_project / "openspec/specs/billing/spec.md", "# billing\n")

        code = ValidateCommand(populated_project, **io).execute(all_items=True, json_output=True)

        data = json.loads(output_of(console))
        assert code == 1
        assert [(item["type"], item["id"], item["valid"]) for item in data["items"]] == [
            ("change", "add-2fa", True),
            ("spec", "auth", True),
            ("spec", "billing", False),
        ]
        assert data["summary"]["totals"] == {"items": 3, "passed": 2, "failed": 1}
        assert data["summary"]["byType"]["spec"] == {"items": 2, "passed": 1, "failed": 1}
        assert data["version"] == "1.0"

    def test_strict_mode_fails_on_warnings(self, project, io):
        brief = VALID_SPEC.replace(
            "Authentication lets users prove who they are before they reach protected resources.", "Auth."
        )
        write(project / "openspec/specs/auth/spec.md", brief)

        assert ValidateCommand(project, **io).execute("auth") == 0
        assert ValidateCommand(project, **io).execute("auth", strict=True) == 1

    def test_bulk_specs_text(self, populated_project, io, console):
        assert ValidateCommand(populated_project, **io).execute(specs=True) == 0

        assert output_of(console).splitlines() == ["✓ spec/auth", "Totals: 1 passed, 0 failed (1 items)"]

    def test_nothing_to_validate(self, populated_project, io, error_console):
        assert ValidateCommand(populated_project, **io).execute() == 1

        assert "openspec validate --all" in output_of(error_console)


class TestSpecCommand:
    """Test cases for ``openspec spec``."""

    def test_list_long_and_json(self, populated_project, io, console):
        command = SpecCommand(populated_project, **io)

        command.list(long=True)
        assert output_of(console) == "auth: auth [requirements 1]\n"

    def test_list_json(self, populated_project, io, console):
        SpecCommand(populated_project, **io).list(json_output=True)

        assert json.loads(output_of(console)) == [{"id": "auth", "title": "auth", "requirementCount": 1}]

    def test_validate_json(self, populated_project, io, console):
        assert SpecCommand(populated_project, **io).validate("auth", json_output=True) == 0

        assert json.loads(output_of(console))["valid"] is True

    def test_missing_spec(self, populated_project, io):
        with pytest.raises(OpenSpecError, match="Spec 'nope' not found"):
            SpecCommand(populated_project, **io).show("nope")

    def test_show_without_id(self, populated_project, io, error_console):
        assert SpecCommand(populated_project, **io).show() == 1

        assert "Available IDs:\n  auth" in output_of(error_console)


class TestChangeCommand:
    """Test cases for ``openspec change``."""

    def test_list_long(self, populated_project, io, console):
        ChangeCommand(populated_project, **io).list(long=True)

        assert output_of(console) == "add-2fa: Add two-factor authentication [deltas 1] [tasks 1/2]\n"

    def test_list_json(self, populated_project, io, console):
        ChangeCommand(populated_project, **io).list(json_output=True)

        rows = json.loads(output_of(console))
        assert rows == [
            {
                "id": "add-2fa",
                "title": "Add two-factor authentication",
                "deltaCount": 1,
                "taskStatus": {"total": 2, "completed": 1},
            }
        ]

    def test_validate_reports_delta_errors(self, populated_project, io, console):
        write(
            populated_project / "openspec/changes/add-2fa/specs/auth/spec.md",
            VALID_DELTA.split("#### Scenario")[0],
        )

        assert ChangeCommand(populated_project, **io).validate("add-2fa") == 1

        assert 'ADDED "Two-Factor Authentication" must include at least one scenario' in output_of(console)

    def test_validate_unknown_change(self, populated_project, io):
        with pytest.raises(OpenSpecError, match="Unknown change 'add-2f'"):
            ChangeCommand(populated_project, **io).validate("add-2f")

    def test_show_markdown(self, populated_project, io, console):
        assert ChangeCommand(populated_project, **io).show("add-2fa") == 0

        assert output_of(console).startswith("# Change: Add two-factor authentication")
