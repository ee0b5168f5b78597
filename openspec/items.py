"""``show`` / ``validate`` and the ``spec`` / ``change`` subcommands.

Every command returns a process exit code: 0 on success, 1 when an item
is invalid, missing or ambiguous.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from rich.console import Console

from .config import is_interactive
from .console import SelectFn, echo, make_console
from .errors import OpenSpecError
from .json_converter import JsonConverter, change_show_payload, dumps, spec_show_payload
from .models import IssueLevel, ValidationReport
from .validator import Validator
from .workspace import Workspace

logger = logging.getLogger("openspec.cli")

ITEM_TYPES = ("change", "spec")
REPORT_VERSION = "1.0"


class ItemCommand:
    """Shared lookup and output plumbing."""

    def __init__(
        self,
        root: Path | str = ".",
        console: Optional[Console] = None,
        error_console: Optional[Console] = None,
        select: Optional[SelectFn] = None,
    ):
        self.workspace = Workspace(root)
        self.console = console or make_console()
        self.error_console = error_console or make_console(stderr=True)
        self.select = select
        self.converter = JsonConverter()

    def out(self, text: str = "", style: Optional[str] = None) -> None:
        echo(self.console, text, style=style)

    def err(self, text: str, style: Optional[str] = "red") -> None:
        echo(self.error_console, text, style=style)

    def print_json(self, data: Any) -> None:
        self.out(dumps(data))

    def interactive(self) -> bool:
        return self.select is not None and is_interactive()

    def resolve_item(self, item: str, type_override: Optional[str] = None) -> Tuple[str, str]:
        """Decide whether ``item`` is a change or a spec."""
        if type_override:
            if type_override not in ITEM_TYPES:
                raise OpenSpecError(f"Invalid type '{type_override}'. Expected one of: change, spec")
            exists = (
                self.workspace.change_exists(item) if type_override == "change" else self.workspace.spec_exists(item)
            )
            if not exists:
                raise OpenSpecError(self._unknown_item_message(item, type_override))
            return type_override, item

        is_change = self.workspace.change_exists(item)
        is_spec = self.workspace.spec_exists(item)
        if is_change and is_spec:
            raise OpenSpecError(
                f"Ambiguous item '{item}' matches both a change and a spec.\n"
                "Pass --type change|spec to disambiguate."
            )
        if is_change:
            return "change", item
        if is_spec:
            return "spec", item
        raise OpenSpecError(self._unknown_item_message(item))

    def _unknown_item_message(self, item: str, item_type: Optional[str] = None) -> str:
        if item_type == "change":
            candidates = self.workspace.list_changes()
        elif item_type == "spec":
            candidates = self.workspace.list_specs()
        else:
            candidates = None
        suggestions = self.workspace.nearest_matches(item, candidates)
        message = f"Unknown item '{item}'" if item_type is None else f"Unknown {item_type} '{item}'"
        if suggestions:
            message += f"\nDid you mean: {', '.join(suggestions)}?"
        return message

    def render_spec(
        self,
        spec_id: str,
        json_output: bool,
        requirements: bool,
        no_scenarios: bool,
        requirement: Optional[int],
    ) -> int:
        """Raw markdown, or the filtered JSON payload."""
        path = self.workspace.spec_path(spec_id)
        if not path.is_file():
            raise OpenSpecError(f"Spec '{spec_id}' not found at openspec/specs/{spec_id}/spec.md")
        if not json_output:
            self.out(path.read_text(encoding="utf-8").rstrip("\n"))
            return 0
        spec = self.converter.parse_spec_file(path)
        self.print_json(spec_show_payload(spec_id, spec, requirements, no_scenarios, requirement))
        return 0

    def render_change(self, change_id: str, json_output: bool, deltas_only: bool) -> int:
        # JSON output is always the delta view, so deltas_only changes nothing
        proposal = self.workspace.proposal_path(change_id)
        if not proposal.is_file():
            raise OpenSpecError(f"Change '{change_id}' not found at openspec/changes/{change_id}/proposal.md")
        if not json_output:
            self.out(proposal.read_text(encoding="utf-8").rstrip("\n"))
            return 0
        change = self.converter.parse_change_file(proposal)
        title = self.workspace.change_title(change_id)
        self.print_json(change_show_payload(change_id, title, change))
        return 0

    def print_issues(self, report: ValidationReport) -> None:
        for issue in report.issues:
            style = {IssueLevel.ERROR: "red", IssueLevel.WARNING: "yellow"}.get(issue.level)
            symbol = {IssueLevel.ERROR: "✗", IssueLevel.WARNING: "⚠"}.get(issue.level, "ℹ")
            self.out(f"  {symbol} [{issue.level.value}] {issue.path}: {issue.message}", style=style)


# ----------------------------------------------------------------------
# Top level show / validate
# ----------------------------------------------------------------------


class ShowCommand(ItemCommand):
    def execute(
        self,
        item: Optional[str] = None,
        type_: Optional[str] = None,
        json_output: bool = False,
        requirements: bool = False,
        no_scenarios: bool = False,
        requirement: Optional[int] = None,
        deltas_only: bool = False,
    ) -> int:
        if not item:
            if not self.interactive():
                self.err(
                    "Nothing to show. Try one of:\n"
                    "  openspec show <item>\n"
                    "  openspec change show\n"
                    "  openspec spec show\n"
                    "Or run in an interactive terminal.",
                    style=None,
                )
                return 1
            item = self.select("Select an item to show", self.workspace.list_changes() + self.workspace.list_specs())
            if not item:
                return 1

        item_type, item_id = self.resolve_item(item, type_)
        if item_type == "change":
            return self.render_change(item_id, json_output, deltas_only)
        return self.render_spec(item_id, json_output, requirements, no_scenarios, requirement)


@dataclass(slots=True)
class ValidatedItem:
    id: str
    type: str
    report: ValidationReport
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "valid": self.report.valid,
            "issues": [issue.to_dict() for issue in self.report.issues],
            "durationMs": self.duration_ms,
        }


@dataclass(slots=True)
class BulkReport:
    items: List[ValidatedItem] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return sum(1 for item in self.items if not item.report.valid)

    def to_dict(self) -> Dict[str, Any]:
        by_type: Dict[str, Dict[str, int]] = {}
        for item_type in ITEM_TYPES:
            typed = [item for item in self.items if item.type == item_type]
            if typed:
                failed = sum(1 for item in typed if not item.report.valid)
                by_type[item_type] = {"items": len(typed), "passed": len(typed) - failed, "failed": failed}
        return {
            "items": [item.to_dict() for item in self.items],
            "summary": {
                "totals": {
                    "items": len(self.items),
                    "passed": len(self.items) - self.failed,
                    "failed": self.failed,
                },
                "byType": by_type,
            },
            "version": REPORT_VERSION,
        }


class ValidateCommand(ItemCommand):
    def execute(
        self,
        item: Optional[str] = None,
        type_: Optional[str] = None,
        all_items: bool = False,
        changes: bool = False,
        specs: bool = False,
        strict: bool = False,
        json_output: bool = False,
    ) -> int:
        validator = Validator(strict=strict)

        if all_items or changes or specs:
            targets: List[Tuple[str, str]] = []
            if all_items or changes:
                targets.extend(("change", name) for name in self.workspace.list_changes())
            if all_items or specs:
                targets.extend(("spec", name) for name in self.workspace.list_specs())
            return self._run(validator, targets, json_output, bulk=True)

        if not item:
            if not self.interactive():
                self.err(
                    "Nothing to validate. Try one of:\n"
                    "  openspec validate --all\n"
                    "  openspec validate --changes\n"
                    "  openspec validate --specs\n"
                    "  openspec validate <item-name>\n"
                    "Or run in an interactive terminal.",
                    style=None,
                )
                return 1
            item = self.select(
                "Select an item to validate", self.workspace.list_changes() + self.workspace.list_specs()
            )
            if not item:
                return 1

        target = self.resolve_item(item, type_)
        return self._run(validator, [target], json_output, bulk=False)

    def validate_item(self, validator: Validator, item_type: str, item_id: str) -> ValidatedItem:
        started = time.perf_counter()
        if item_type == "change":
            report = validator.validate_change_delta_specs(self.workspace.change_dir(item_id))
        else:
            report = validator.validate_spec(self.workspace.spec_path(item_id))
        duration_ms = round((time.perf_counter() - started) * 1000)
        return ValidatedItem(id=item_id, type=item_type, report=report, duration_ms=duration_ms)

    def _run(self, validator: Validator, targets: List[Tuple[str, str]], json_output: bool, bulk: bool) -> int:
        result = BulkReport([self.validate_item(validator, item_type, item_id) for item_type, item_id in targets])

        if json_output:
            self.print_json(result.to_dict())
        elif bulk:
            if not result.items:
                self.out("No items found to validate.")
            for validated in result.items:
                symbol = "✓" if validated.report.valid else "✗"
                self.out(f"{symbol} {validated.type}/{validated.id}", style="green" if validated.report.valid else "red")
                if not validated.report.valid:
                    self.print_issues(validated.report)
            passed = len(result.items) - result.failed
            self.out(f"Totals: {passed} passed, {result.failed} failed ({len(result.items)} items)")
        else:
            validated = result.items[0]
            label = "Change" if validated.type == "change" else "Specification"
            if validated.report.valid:
                self.out(f"{label} '{validated.id}' is valid", style="green")
            else:
                self.err(f"{label} '{validated.id}' has issues")
            self.print_issues(validated.report)

        return 1 if result.failed else 0


# ----------------------------------------------------------------------
# spec / change subcommands
# ----------------------------------------------------------------------


class SpecCommand(ItemCommand):
    def show(
        self,
        spec_id: Optional[str] = None,
        json_output: bool = False,
        requirements: bool = False,
        no_scenarios: bool = False,
        requirement: Optional[int] = None,
    ) -> int:
        if not spec_id:
            available = self.workspace.list_specs()
            if not self.interactive() or not available:
                self._no_spec_specified(available)
                return 1
            spec_id = self.select("Select a spec to show", available)
            if not spec_id:
                return 1
        return self.render_spec(spec_id, json_output, requirements, no_scenarios, requirement)

    def list(self, json_output: bool = False, long: bool = False) -> int:
        specs = self.workspace.list_specs()
        rows = []
        for spec_id in specs:
            try:
                spec = self.converter.parse_spec_file(self.workspace.spec_path(spec_id))
                title, count = spec.name, len(spec.requirements)
            except (OSError, OpenSpecError):
                title, count = spec_id, 0
            rows.append({"id": spec_id, "title": title, "requirementCount": count})

        if json_output:
            self.print_json(rows)
        elif not rows:
            self.out("No items found")
        elif long:
            for row in rows:
                self.out(f"{row['id']}: {row['title']} [requirements {row['requirementCount']}]")
        else:
            for row in rows:
                self.out(row["id"])
        return 0

    def validate(self, spec_id: Optional[str] = None, strict: bool = False, json_output: bool = False) -> int:
        if not spec_id:
            self._no_spec_specified(self.workspace.list_specs())
            return 1
        path = self.workspace.spec_path(spec_id)
        if not path.is_file():
            raise OpenSpecError(f"Spec '{spec_id}' not found at openspec/specs/{spec_id}/spec.md")
        report = Validator(strict=strict).validate_spec(path)
        if json_output:
            self.print_json(report.to_dict())
        elif report.valid:
            self.out(f"Specification '{spec_id}' is valid", style="green")
            self.print_issues(report)
        else:
            self.err(f"Specification '{spec_id}' has issues")
            self.print_issues(report)
        return 0 if report.valid else 1

    def _no_spec_specified(self, available: List[str]) -> None:
        self.err("No spec specified.\nAvailable IDs:\n  " + "\n  ".join(available or ["(none)"]), style=None)
        self.err("Use 'openspec spec list' to see available specs.", style=None)


class ChangeCommand(ItemCommand):
    def show(
        self,
        change_id: Optional[str] = None,
        json_output: bool = False,
        deltas_only: bool = False,
    ) -> int:
        if not change_id:
            available = self.workspace.list_changes()
            if not self.interactive() or not available:
                self._no_change_specified(available)
                return 1
            change_id = self.select("Select a change to show", available)
            if not change_id:
                return 1
        return self.render_change(change_id, json_output, deltas_only)

    def list(self, json_output: bool = False, long: bool = False) -> int:
        rows = []
        for change_id in self.workspace.list_changes():
            try:
                delta_count = len(self.converter.parse_change_file(self.workspace.proposal_path(change_id)).deltas)
            except (OSError, OpenSpecError):
                delta_count = 0
            progress = self.workspace.task_progress(change_id)
            rows.append(
                {
                    "id": change_id,
                    "title": self.workspace.change_title(change_id),
                    "deltaCount": delta_count,
                    "taskStatus": progress.to_dict(),
                }
            )

        if json_output:
            self.print_json(rows)
        elif not rows:
            self.out("No items found")
        elif long:
            for row in rows:
                tasks = row["taskStatus"]
                self.out(
                    f"{row['id']}: {row['title']} [deltas {row['deltaCount']}] "
                    f"[tasks {tasks['completed']}/{tasks['total']}]"
                )
        else:
            for row in rows:
                self.out(row["id"])
        return 0

    def validate(self, change_id: Optional[str] = None, strict: bool = False, json_output: bool = False) -> int:
        if not change_id:
            self._no_change_specified(self.workspace.list_changes())
            return 1
        if not self.workspace.change_exists(change_id):
            raise OpenSpecError(self._unknown_item_message(change_id, "change"))
        report = Validator(strict=strict).validate_change_delta_specs(self.workspace.change_dir(change_id))
        if json_output:
            self.print_json(report.to_dict())
        elif report.valid:
            self.out(f"Change '{change_id}' is valid", style="green")
            self.print_issues(report)
        else:
            self.err(f"Change '{change_id}' has issues")
            self.print_issues(report)
        return 0 if report.valid else 1

    def _no_change_specified(self, available: List[str]) -> None:
        self.err("No change specified.\nAvailable IDs:\n  " + "\n  ".join(available or ["(none)"]), style=None)
        self.err("Use 'openspec change list' to see available changes.", style=None)
