"""Integration tests for archiving changes into the main specs."""

from datetime import date

import pytest

from openspec.archive import ArchiveCommand
from openspec.errors import WorkspaceError

from conftest import VALID_DELTA, VALID_PROPOSAL, VALID_SPEC, output_of, write

ARCHIVE_DAY = date(2025, 1, 15)


def _spec(capability, *requirements):
    blocks = "\n\n".join(f"### Requirement: {name}\n{body}" for name, body in requirements)
    return f"# {capability} Specification\n\n## Purpose\n{capability} purpose.\n\n## Requirements\n\n{blocks}\n"


def _change(project, name, deltas, proposal=VALID_PROPOSAL, tasks=None):
    change_dir = project / "openspec/changes" / name
    write(change_dir / "proposal.md", proposal)
    for capability, content in deltas.items():
        write(change_dir / "specs" / capability / "spec.md", content)
    if tasks is not None:
        write(change_dir / "tasks.md", tasks)
    return change_dir


def _read(project, capability):
    return (project / "openspec/specs" / capability / "spec.md").read_text(encoding="utf-8")


class _Prompts:
    """Scripted answers for confirm and select prompts."""

    def __init__(self, answers=None, selection=None):
        self.answers = list(answers or [])
        self.selection = selection
        self.asked = []

    def confirm(self, message, default):
        self.asked.append(message)
        return self.answers.pop(0) if self.answers else default

    def select(self, message, choices):
        self.asked.append(message)
        return self.selection


@pytest.fixture
def archiver(project, console, error_console, messages):
    def build(prompts=None):
        prompts = prompts or _Prompts()
        return ArchiveCommand(
            project,
            console=console,
            error_console=error_console,
            confirm=prompts.confirm,
            select=prompts.select,
            messages=messages,
            today=lambda: ARCHIVE_DAY,
        )

    return build


class TestApplyingDeltas:
    """Test cases for spec updates performed by archive."""

    def test_header_whitespace_is_normalized(self, project, archiver):
        write(project / "openspec/specs/alpha/spec.md", _spec("alpha", ("Important Rule", "old rule")))
        _change(project, "normalize-headers", {"alpha": "## MODIFIED Requirements\n### Requirement: Important Rule  \nnew rule\n"})

        result = archiver().execute("normalize-headers", yes=True, validate=False)

        assert result.archived
        content = _read(project, "alpha")
        assert "new rule" in content
        assert "old rule" not in content

    def test_operations_apply_in_order(self, project, archiver, console):
        write(project / "openspec/specs/beta/spec.md", _spec("beta", ("A", "content A"), ("B", "content B")))
        delta = (
            "## ADDED Requirements\n### Requirement: D\ncontent D\n\n"
            "## MODIFIED Requirements\n### Requirement: C\nupdated C\n\n"
            "## REMOVED Requirements\n### Requirement: B\n\n"
            "## RENAMED Requirements\n- FROM: `### Requirement: A`\n- TO: `### Requirement: C`\n"
        )
        _change(project, "apply-order", {"beta": delta})

        result = archiver().execute("apply-order", yes=True, validate=False)

        content = _read(project, "beta")
        assert "### Requirement: C\nupdated C" in content
        assert "### Requirement: D\ncontent D" in content
        assert "### Requirement: A" not in content
        assert "### Requirement: B" not in content
        assert result.totals == {"added": 1, "modified": 1, "removed": 1, "renamed": 1}
        assert "Applying changes to openspec/specs/beta/spec.md:" in output_of(console)

    def test_missing_requirements_leave_spec_untouched(self, project, archiver):
        original = _spec("gamma", ("Existing", "content"))
        write(project / "openspec/specs/gamma/spec.md", original)
        delta = (
            "## MODIFIED Requirements\n### Requirement: Missing\nnew\n\n"
            "## REMOVED Requirements\n### Requirement: Also Missing\n"
        )
        change_dir = _change(project, "validate-missing", {"gamma": delta})

        result = archiver().execute("validate-missing", yes=True, validate=False)

        assert not result.archived
        assert _read(project, "gamma") == original
        assert change_dir.is_dir()

    def test_modified_must_use_new_header_after_rename(self, project, archiver, error_console):
        write(project / "openspec/specs/delta/spec.md", _spec("delta", ("Old", "old content")))
        rename = "## RENAMED Requirements\n- FROM: `### Requirement: Old`\n- TO: `### Requirement: New`\n\n"
        change_dir = _change(
            project,
            "rename-modify",
            {"delta": rename + "## MODIFIED Requirements\n### Requirement: Old\nchanged\n"},
        )

        result = archiver().execute("rename-modify", yes=True, validate=False)

        output = output_of(error_console)
        assert not result.archived
        assert "delta validation failed" in output
        assert "Aborted. No files were changed." in output

        write(change_dir / "specs/delta/spec.md", rename + "## MODIFIED Requirements\n### Requirement: New\nchanged\n")
        result = archiver().execute("rename-modify", yes=True, validate=False)

        assert result.archived
        assert "### Requirement: New\nchanged" in _read(project, "delta")

    def test_multi_spec_failure_writes_nothing(self, project, archiver):
        epsilon = _spec("epsilon", ("E1", "e1"))
        write(project / "openspec/specs/epsilon/spec.md", epsilon)
        zeta = _spec("zeta", ("Z1", "z1"))
        write(project / "openspec/specs/zeta/spec.md", zeta)
        _change(
            project,
            "multi-spec-atomic",
            {
                "epsilon": "## ADDED Requirements\n### Requirement: E2\ne2\n",
                "zeta": "## MODIFIED Requirements\n### Requirement: Missing\nz\n",
            },
        )

        result = archiver().execute("multi-spec-atomic", yes=True, validate=False)

        assert not result.archived
        assert _read(project, "epsilon") == epsilon
        assert _read(project, "zeta") == zeta

    def test_totals_across_specs(self, project, archiver, console):
        write(project / "openspec/specs/omega/spec.md", _spec("omega", ("O1", "o1")))
        write(project / "openspec/specs/psi/spec.md", _spec("psi", ("P1", "p1")))
        _change(
            project,
            "multi-spec-totals",
            {
                "omega": "## ADDED Requirements\n### Requirement: O2\no2\n\n## MODIFIED Requirements\n### Requirement: O1\no1 v2\n",
                "psi": "## RENAMED Requirements\n- FROM: `### Requirement: P1`\n- TO: `### Requirement: P2`\n",
            },
        )

        archiver().execute("multi-spec-totals", yes=True, validate=False)

        assert "Totals: + 1, ~ 1, - 0, → 1" in output_of(console)

    def test_new_capability_gets_skeleton(self, project, archiver):
        _change(project, "add-2fa", {"auth": VALID_DELTA})

        result = archiver().execute("add-2fa", yes=True)

        assert result.archived
        content = _read(project, "auth")
        assert content.startswith("# auth Specification")
        assert "TBD - created by archiving change add-2fa" in content
        assert "### Requirement: Two-Factor Authentication" in content


class TestArchiveFlow:
    """Test cases for the archive workflow around spec updates."""

    def test_moves_change_into_dated_archive(self, populated_project, console, messages):
        command = ArchiveCommand(
            populated_project,
            console=console,
            confirm=lambda message, default: default,
            select=lambda message, choices: None,
            messages=messages,
            today=lambda: ARCHIVE_DAY,
        )

        result = command.execute("add-2fa", yes=True)

        archived = populated_project / "openspec/changes/archive/2025-01-15-add-2fa"
        assert result.archive_name == "2025-01-15-add-2fa"
        assert archived.is_dir()
        assert (archived / "proposal.md").is_file()
        assert not (populated_project / "openspec/changes/add-2fa").exists()
        output = output_of(console)
        assert "Warning: 1 incomplete task(s) found. Continuing due to --yes flag." in output
        assert "Change 'add-2fa' archived as '2025-01-15-add-2fa'." in output
        assert "### Requirement: User Login" in _read(populated_project, "auth")

    def test_skip_specs(self, populated_project, archiver, console):
        result = archiver().execute("add-2fa", yes=True, skip_specs=True)

        assert result.archived
        assert _read(populated_project, "auth") == VALID_SPEC
        assert "Skipping spec updates (--skip-specs flag provided)." in output_of(console)

    def test_invalid_delta_blocks_archive(self, populated_project, archiver, error_console):
        write(
            populated_project / "openspec/changes/add-2fa/specs/auth/spec.md",
            VALID_DELTA.split("#### Scenario")[0],
        )

        result = archiver().execute("add-2fa", yes=True)

        assert not result.archived
        output = output_of(error_console)
        assert "Validation errors in change delta specs:" in output
        assert "To skip validation (not recommended), use --no-validate flag." in output
        assert (populated_project / "openspec/changes/add-2fa").is_dir()

    def test_skip_validation_requires_confirmation(self, populated_project, archiver, console):
        prompts = _Prompts(answers=[False])

        result = archiver(prompts).execute("add-2fa", validate=False)

        assert not result.archived
        assert prompts.asked == ["WARNING: Skipping validation may archive invalid specs. Continue?"]
        assert "Archive cancelled." in output_of(console)

    def test_declining_incomplete_tasks_cancels(self, populated_project, archiver, console):
        prompts = _Prompts(answers=[False])

        result = archiver(prompts).execute("add-2fa")

        assert not result.archived
        assert prompts.asked == ["Warning: 1 incomplete task(s) found. Continue?"]
        assert "Archive cancelled." in output_of(console)

    def test_declining_spec_updates_still_archives(self, populated_project, archiver, console):
        prompts = _Prompts(answers=[True, False])

        result = archiver(prompts).execute("add-2fa")

        assert result.archived
        assert _read(populated_project, "auth") == VALID_SPEC
        assert "Skipping spec updates. Proceeding with archive." in output_of(console)

    def test_selects_change_when_name_missing(self, populated_project, archiver):
        prompts = _Prompts(selection="add-2fa")

        result = archiver(prompts).execute(yes=True)

        assert result.archived
        assert prompts.asked[0] == "Select a change to archive"

    def test_no_selection(self, populated_project, archiver, console):
        result = archiver(_Prompts(selection=None)).execute(yes=True)

        assert not result.archived
        assert result.message == "No change selected. Aborting."
        assert result.cancelled

    def test_unknown_change(self, populated_project, archiver):
        with pytest.raises(WorkspaceError, match="Change 'missing' not found."):
            archiver().execute("missing", yes=True)

    def test_existing_archive(self, populated_project, archiver):
        (populated_project / "openspec/changes/archive/2025-01-15-add-2fa").mkdir()

        with pytest.raises(WorkspaceError, match="Archive '2025-01-15-add-2fa' already exists."):
            archiver().execute("add-2fa", yes=True)

        assert (populated_project / "openspec/changes/add-2fa").is_dir()

    def test_missing_changes_directory(self, tmp_path, console, messages):
        command = ArchiveCommand(tmp_path, console=console, confirm=lambda m, d: d, select=lambda m, c: None, messages=messages)

        with pytest.raises(WorkspaceError, match="No OpenSpec changes directory found"):
            command.execute("add-2fa", yes=True)

    @pytest.mark.parametrize("change_name", ["../specs", "archive", "add-2fa/specs"])
    def test_only_active_change_ids_are_accepted(self, populated_project, archiver, change_name):
        with pytest.raises(WorkspaceError, match="not found"):
            archiver().execute(change_name, yes=True, validate=False)

        assert _read(populated_project, "auth") == VALID_SPEC
        assert (populated_project / "openspec/changes/add-2fa").is_dir()
        assert list((populated_project / "openspec/changes/archive").iterdir()) == []

    def test_split_delta_files_abort_without_validation(self, project, archiver, error_console):
        original = _spec("gamma", ("Keep", "The system SHALL keep."))
        write(project / "openspec/specs/gamma/spec.md", original)
        added = "## ADDED Requirements\n### Requirement: New\nThe system SHALL add.\n"
        change_dir = _change(project, "c1", {"gamma": added})
        write(change_dir / "specs/gamma/extra.md", "## REMOVED Requirements\n### Requirement: Keep\n")

        result = archiver().execute("c1", yes=True, validate=False)

        assert not result.archived
        assert not result.cancelled
        assert "multiple delta spec files found (spec.md, extra.md)" in output_of(error_console)
        assert _read(project, "gamma") == original
        assert change_dir.is_dir()

    def test_strict_mode_blocks_on_rebuilt_spec_warnings(self, project, archiver, error_console):
        brief = VALID_SPEC.replace(
            "Authentication lets users prove who they are before they reach protected resources.", "Auth."
        )
        write(project / "openspec/specs/auth/spec.md", brief)
        _change(project, "add-2fa", {"auth": VALID_DELTA})

        result = archiver().execute("add-2fa", yes=True, strict=True)

        assert not result.archived
        assert "Aborted. No files were changed." in output_of(error_console)
        assert _read(project, "auth") == brief

        assert archiver().execute("add-2fa", yes=True).archived
