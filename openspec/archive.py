"""The ``archive`` command: apply a change's delta specs and move it aside.

Nothing under ``openspec/specs`` is written until every rebuilt spec has
been computed (and, unless validation is skipped, validated). A failure at
any point before the writes leaves the project exactly as it was.
"""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from rich.console import Console

from .console import ConfirmFn, SelectFn, echo, make_console, rich_confirm, rich_select
from .delta_engine import (
    PreparedSpec,
    empty_counts,
    find_spec_updates,
    prepare_spec_updates,
    write_prepared_spec,
)
from .errors import DeltaValidationError, WorkspaceError
from .i18n import LanguageContext
from .models import IssueLevel, ValidationIssue
from .openspec_logging import log_archive_event, log_error_with_context, log_operation
from .validator import Validator
from .workspace import Workspace

logger = logging.getLogger("openspec.archive")

_DELTA_HEADER = re.compile(r"^##\s+(ADDED|MODIFIED|REMOVED|RENAMED)\s+Requirements", re.IGNORECASE | re.MULTILINE)

_ISSUE_SYMBOLS = {IssueLevel.ERROR: "✗", IssueLevel.WARNING: "⚠", IssueLevel.INFO: "ℹ"}


@dataclass(slots=True)
class ArchiveResult:
    """What an archive run did."""

    archived: bool
    change_name: Optional[str] = None
    archive_name: Optional[str] = None
    totals: Dict[str, int] = field(default_factory=empty_counts)
    message: str = ""
    cancelled: bool = False

    def to_dict(self) -> Dict[str, object]:
        return {
            "archived": self.archived,
            "changeName": self.change_name,
            "archiveName": self.archive_name,
            "totals": dict(self.totals),
            "message": self.message,
            "cancelled": self.cancelled,
        }


class ArchiveCommand:
    """Archive one change of the project at ``root``.

    ``confirm`` and ``select`` default to rich prompts; tests and the MCP
    server pass their own. Validation failures and aborts are written to
    ``error_console``.
    """

    def __init__(
        self,
        root: Path | str = ".",
        console: Optional[Console] = None,
        error_console: Optional[Console] = None,
        confirm: Optional[ConfirmFn] = None,
        select: Optional[SelectFn] = None,
        messages: Optional[LanguageContext] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.workspace = Workspace(root)
        self.console = console or make_console()
        self.error_console = error_console or make_console(stderr=True)
        self.confirm = confirm or rich_confirm(self.console)
        self.select = select or rich_select(self.console)
        self.messages = messages or LanguageContext.detect()
        self.today = today or date.today

    def execute(
        self,
        change_name: Optional[str] = None,
        yes: bool = False,
        skip_specs: bool = False,
        validate: bool = True,
        strict: bool = False,
    ) -> ArchiveResult:
        t = self.messages.t
        if not self.workspace.changes_dir.is_dir():
            raise WorkspaceError(t("errors.no_changes_dir"))

        if not change_name:
            change_name = self._select_change()
            if not change_name:
                return ArchiveResult(archived=False, message=t("archive.no_change_selected"), cancelled=True)

        if change_name not in self.workspace.list_changes():
            raise WorkspaceError(t("archive.errors.change_not_found", name=change_name))
        change_dir = self.workspace.change_dir(change_name)

        archive_name = f"{self.today().isoformat()}-{change_name}"
        archive_path = self.workspace.archive_dir / archive_name
        if archive_path.exists():
            raise WorkspaceError(t("archive.errors.archive_exists", archive_name=archive_name))

        with log_operation("archive_change", change=change_name):
            return self._archive(
                change_name, change_dir, archive_name, archive_path, yes, skip_specs, validate, strict
            )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _archive(
        self,
        change_name: str,
        change_dir: Path,
        archive_name: str,
        archive_path: Path,
        yes: bool,
        skip_specs: bool,
        validate: bool,
        strict: bool,
    ) -> ArchiveResult:
        t = self.messages.t
        validator = Validator(strict=strict)

        if validate:
            if not self._validate_change(validator, change_dir):
                return self._stopped(change_name, t("archive.validation_failed"))
        else:
            if not yes and not self.confirm(t("archive.skip_validation_confirm"), False):
                return self._cancelled(change_name)
            if yes:
                echo(self.console, t("archive.skip_validation_warning"), style="yellow")
            timestamp = datetime.now().isoformat(timespec="seconds")
            echo(self.console, t("archive.validation_skipped", timestamp=timestamp, name=change_name), style="yellow")
            echo(self.console, t("archive.affected_files", path=str(change_dir)), style="yellow")

        progress = self.workspace.task_progress(change_name)
        echo(self.console, t("archive.task_status", status=self.messages.task_status(progress)))
        if progress.remaining > 0:
            if not yes:
                if not self.confirm(t("archive.incomplete_confirm", count=progress.remaining), False):
                    return self._cancelled(change_name)
            else:
                echo(self.console, t("archive.incomplete_continue", count=progress.remaining), style="yellow")

        totals = empty_counts()
        if skip_specs:
            echo(self.console, t("archive.skip_specs"))
        else:
            try:
                updates = find_spec_updates(change_dir, self.workspace.specs_dir)
            except DeltaValidationError as e:
                return self._aborted(change_name, e, "find_spec_updates")
            if updates:
                echo(self.console)
                echo(self.console, t("archive.specs_to_update"))
                for update in updates:
                    status = t("archive.status_update") if update.exists else t("archive.status_create")
                    echo(self.console, f"  {update.capability}: {status}")

                if not yes and not self.confirm(t("archive.confirm_specs"), True):
                    echo(self.console, t("archive.specs_skipped"))
                else:
                    try:
                        prepared = prepare_spec_updates(updates, change_name)
                    except DeltaValidationError as e:
                        return self._aborted(change_name, e, "prepare_spec_updates")

                    if validate and not self._validate_rebuilt(validator, prepared):
                        echo(self.error_console, t("archive.aborted"), style="red")
                        log_archive_event("aborted", change_name, reason="rebuilt spec invalid")
                        return self._stopped(change_name, t("archive.aborted"))

                    totals = self._write_specs(prepared)

        self.workspace.archive_dir.mkdir(parents=True, exist_ok=True)
        shutil.move(str(change_dir), str(archive_path))
        message = t("archive.archived", name=change_name, archive_name=archive_name)
        echo(self.console, message, style="green")
        log_archive_event("completed", change_name, archive_name=archive_name, totals=totals)
        logger.info(f"Archived {change_name} as {archive_name}")
        return ArchiveResult(
            archived=True,
            change_name=change_name,
            archive_name=archive_name,
            totals=totals,
            message=message,
        )

    def _select_change(self) -> Optional[str]:
        t = self.messages.t
        changes = self.workspace.list_changes()
        if not changes:
            echo(self.console, t("archive.no_active_changes"), style="yellow")
            return None
        selected = self.select(t("archive.select_prompt"), changes)
        if not selected:
            echo(self.console, t("archive.no_change_selected"))
        return selected

    def _validate_change(self, validator: Validator, change_dir: Path) -> bool:
        """Proposal findings are reported only; delta spec errors block."""
        t = self.messages.t
        proposal = change_dir / "proposal.md"
        if proposal.is_file():
            report = validator.validate_change(proposal)
            if not report.valid:
                echo(self.console)
                echo(self.console, t("archive.proposal_warnings"), style="yellow")
                self._print_issues(self.console, report.issues, style="yellow")

        if not self._has_delta_specs(change_dir):
            return True
        report = validator.validate_change_delta_specs(change_dir)
        if report.valid:
            return True
        out = self.error_console
        echo(out)
        echo(out, t("archive.delta_errors"), style="red")
        self._print_issues(out, [i for i in report.issues if i.level is not IssueLevel.INFO], style="red")
        echo(out)
        echo(out, t("archive.validation_failed"), style="red")
        echo(out, t("archive.skip_validation_hint"), style="yellow")
        return False

    def _validate_rebuilt(self, validator: Validator, prepared: List[PreparedSpec]) -> bool:
        valid = True
        for item in prepared:
            capability = item.update.capability
            report = validator.validate_spec_content(capability, item.rebuilt)
            if not report.valid:
                valid = False
                out = self.error_console
                echo(out, self.messages.t("archive.rebuilt_invalid", capability=capability), style="red")
                self._print_issues(out, [i for i in report.issues if i.level is IssueLevel.ERROR], style="red")
        return valid

    def _write_specs(self, prepared: List[PreparedSpec]) -> Dict[str, int]:
        t = self.messages.t
        totals = empty_counts()
        for item in prepared:
            write_prepared_spec(item)
            echo(self.console, t("archive.applying", capability=item.update.capability))
            for key, count in item.counts.items():
                totals[key] += count
                if count:
                    echo(self.console, t(f"archive.count_{key}", count=count))
        echo(self.console, t("archive.totals", **totals))
        echo(self.console, t("archive.specs_updated"), style="green")
        return totals

    @staticmethod
    def _print_issues(out: Console, issues: List[ValidationIssue], style: str) -> None:
        for issue in issues:
            echo(out, f"  {_ISSUE_SYMBOLS[issue.level]} {issue.message}", style=style)

    def _cancelled(self, change_name: str) -> ArchiveResult:
        message = self.messages.t("archive.cancelled")
        echo(self.console, message)
        log_archive_event("cancelled", change_name)
        return ArchiveResult(archived=False, change_name=change_name, message=message, cancelled=True)

    def _aborted(self, change_name: str, error: DeltaValidationError, operation: str) -> ArchiveResult:
        log_error_with_context(error, {"operation": operation, "change": change_name})
        echo(self.error_console, str(error), style="red")
        echo(self.error_console, self.messages.t("archive.aborted"), style="red")
        log_archive_event("aborted", change_name, reason=str(error))
        return ArchiveResult(archived=False, change_name=change_name, message=str(error))

    @staticmethod
    def _stopped(change_name: str, message: str) -> ArchiveResult:
        return ArchiveResult(archived=False, change_name=change_name, message=message)

    @staticmethod
    def _has_delta_specs(change_dir: Path) -> bool:
        specs_dir = change_dir / "specs"
        if not specs_dir.is_dir():
            return False
        return any(_DELTA_HEADER.search(path.read_text(encoding="utf-8")) for path in specs_dir.glob("*/spec.md"))
