"""Dictionary-returning facade over the commands, used by the MCP server.

Every method returns a JSON-ready dict. Failures come back as a dict with
``error`` and ``suggestion`` keys instead of raising, so that an agent
calling a tool always receives something it can act on.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console

from .archive import ArchiveCommand
from .errors import OpenSpecError
from .i18n import LanguageContext
from .items import ITEM_TYPES, ValidateCommand
from .json_converter import JsonConverter, change_show_payload, spec_show_payload
from .listing import collect_dashboard, spec_requirement_count
from .openspec_logging import log_error_with_context, log_performance, observability_hooks
from .validator import Validator
from .workspace import Workspace

logger = logging.getLogger("openspec.workflow")


def _capture_console() -> Console:
    return Console(file=io.StringIO(), highlight=False, soft_wrap=True, width=120)


class WorkflowManager:
    """Read, validate and archive operations over one OpenSpec project."""

    def __init__(self, root: Path | str):
        self.workspace = Workspace(root)
        self.converter = JsonConverter()

    def _missing_openspec(self) -> Optional[Dict[str, Any]]:
        if self.workspace.is_initialized():
            return None
        return {
            "error": f"No openspec directory found in {self.workspace.root}",
            "suggestion": "Run 'openspec init' in the project root first",
        }

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_changes(self) -> Dict[str, Any]:
        missing = self._missing_openspec()
        if missing:
            return missing
        changes = []
        for name in self.workspace.list_changes():
            progress = self.workspace.task_progress(name)
            changes.append({"id": name, "title": self.workspace.change_title(name), "taskStatus": progress.to_dict()})
        return {"changes": changes, "count": len(changes)}

    def list_specs(self) -> Dict[str, Any]:
        missing = self._missing_openspec()
        if missing:
            return missing
        specs = [
            {"id": name, "requirementCount": spec_requirement_count(self.workspace, name)}
            for name in self.workspace.list_specs()
        ]
        return {"specs": specs, "count": len(specs)}

    # ------------------------------------------------------------------
    # Show
    # ------------------------------------------------------------------

    def show_spec(
        self,
        spec_id: str,
        requirements_only: bool = False,
        no_scenarios: bool = False,
        requirement: Optional[int] = None,
    ) -> Dict[str, Any]:
        if not self.workspace.spec_exists(spec_id):
            return self._not_found("spec", spec_id)
        try:
            spec = self.converter.parse_spec_file(self.workspace.spec_path(spec_id))
            return spec_show_payload(spec_id, spec, requirements_only, no_scenarios, requirement)
        except OpenSpecError as e:
            log_error_with_context(e, {"operation": "show_spec", "spec": spec_id})
            return {"error": str(e), "suggestion": f"Run 'openspec validate {spec_id} --type spec' for details"}

    def show_change(self, change_id: str) -> Dict[str, Any]:
        if not self.workspace.proposal_path(change_id).is_file():
            return self._not_found("change", change_id)
        try:
            change = self.converter.parse_change_file(self.workspace.proposal_path(change_id))
            return change_show_payload(change_id, self.workspace.change_title(change_id), change)
        except OpenSpecError as e:
            log_error_with_context(e, {"operation": "show_change", "change": change_id})
            return {"error": str(e), "suggestion": f"Run 'openspec validate {change_id} --type change' for details"}

    def _not_found(self, item_type: str, item_id: str) -> Dict[str, Any]:
        candidates = self.workspace.list_changes() if item_type == "change" else self.workspace.list_specs()
        suggestions = self.workspace.nearest_matches(item_id, candidates)
        return {
            "error": f"Unknown {item_type} '{item_id}'",
            "suggestion": f"Did you mean: {', '.join(suggestions)}?" if suggestions else f"Use list_{item_type}s to see ids",
        }

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @log_performance("validate_item")
    def validate_item(self, item_id: str, item_type: Optional[str] = None, strict: bool = False) -> Dict[str, Any]:
        if item_type is not None and item_type not in ITEM_TYPES:
            return {"error": f"Invalid type '{item_type}'", "suggestion": "Use 'change' or 'spec'"}
        command = ValidateCommand(self.workspace.root, console=_capture_console(), error_console=_capture_console())
        try:
            resolved_type, resolved_id = command.resolve_item(item_id, item_type)
        except OpenSpecError as e:
            return {"error": str(e), "suggestion": "Pass item_type to disambiguate or check the id"}
        validated = command.validate_item(Validator(strict=strict), resolved_type, resolved_id)
        data = validated.to_dict()
        data["summary"] = validated.report.summary
        return data

    # ------------------------------------------------------------------
    # Archive
    # ------------------------------------------------------------------

    def archive_change(
        self,
        change_id: str,
        skip_specs: bool = False,
        validate: bool = True,
        strict: bool = False,
    ) -> Dict[str, Any]:
        """Archive without prompts; the command output is returned as ``output``."""
        console = _capture_console()
        command = ArchiveCommand(
            self.workspace.root,
            console=console,
            error_console=console,
            confirm=lambda message, default: default,
            select=lambda message, choices: None,
            messages=LanguageContext("en"),
        )
        try:
            result = command.execute(change_id, yes=True, skip_specs=skip_specs, validate=validate, strict=strict)
        except OpenSpecError as e:
            log_error_with_context(e, {"operation": "archive_change", "change": change_id})
            return {
                "error": str(e),
                "suggestion": "Check the change id with list_changes and make sure it is not archived already",
                "output": console.file.getvalue(),
            }

        data = result.to_dict()
        data["output"] = console.file.getvalue()
        if result.archived:
            observability_hooks.log_workflow_event("change_archived", item_id=change_id, archive=result.archive_name)
        else:
            data["suggestion"] = "Fix the reported validation errors and archive again"
        return data

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def dashboard(self) -> Dict[str, Any]:
        missing = self._missing_openspec()
        if missing:
            return missing
        return collect_dashboard(self.workspace).to_dict()
