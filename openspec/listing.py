"""The ``list`` and ``view`` commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console

from .console import echo, make_console
from .errors import OpenSpecError, WorkspaceError
from .i18n import LanguageContext
from .markdown_parser import MarkdownParser
from .models import TaskProgress
from .workspace import Workspace

logger = logging.getLogger("openspec.cli")

PROGRESS_BAR_WIDTH = 20
_RULE_WIDTH = 60


def spec_requirement_count(workspace: Workspace, spec_id: str) -> int:
    """Requirement count of a spec; specs that fail to parse count as 0."""
    try:
        content = workspace.spec_path(spec_id).read_text(encoding="utf-8")
        return len(MarkdownParser(content).parse_spec(spec_id).requirements)
    except (OSError, OpenSpecError) as e:
        logger.debug(f"Could not count requirements for {spec_id}: {e}")
        return 0


def progress_bar(completed: int, total: int, width: int = PROGRESS_BAR_WIDTH) -> str:
    if total == 0:
        return "─" * width
    filled = round(completed / total * width)
    return f"[{'█' * filled}{'░' * (width - filled)}]"


class ListCommand:
    """Print active changes with task status, or specs with requirement counts."""

    def __init__(self, console: Optional[Console] = None, messages: Optional[LanguageContext] = None):
        self.console = console or make_console()
        self.messages = messages or LanguageContext.detect()

    def execute(self, target_path: Path | str = ".", mode: str = "changes") -> None:
        workspace = Workspace(target_path)
        if mode == "specs":
            self._list_specs(workspace)
        else:
            self._list_changes(workspace)

    def _list_changes(self, workspace: Workspace) -> None:
        t = self.messages.t
        if not workspace.changes_dir.is_dir():
            raise WorkspaceError(t("errors.no_changes_dir"))
        changes = workspace.list_changes()
        if not changes:
            echo(self.console, t("list.no_changes"))
            return

        width = max(len(name) for name in changes)
        echo(self.console, t("list.changes_header"))
        for name in changes:
            status = self.messages.task_status(workspace.task_progress(name))
            echo(self.console, f"  {name.ljust(width)}     {status}")

    def _list_specs(self, workspace: Workspace) -> None:
        t = self.messages.t
        specs = workspace.list_specs()
        if not specs:
            echo(self.console, t("list.no_specs"))
            return

        width = max(len(name) for name in specs)
        echo(self.console, t("list.specs_header"))
        for name in specs:
            count = spec_requirement_count(workspace, name)
            echo(self.console, f"  {name.ljust(width)}     {t('list.requirements', count=count)}")


@dataclass(slots=True)
class ChangeSummary:
    name: str
    progress: TaskProgress

    @property
    def percentage(self) -> int:
        return round(self.progress.ratio * 100)


@dataclass(slots=True)
class Dashboard:
    """Everything ``view`` shows, also served as JSON by the MCP server."""

    active: List[ChangeSummary] = field(default_factory=list)
    completed: List[str] = field(default_factory=list)
    specs: Dict[str, int] = field(default_factory=dict)

    @property
    def task_totals(self) -> TaskProgress:
        return TaskProgress(
            total=sum(change.progress.total for change in self.active),
            completed=sum(change.progress.completed for change in self.active),
        )

    def to_dict(self) -> Dict[str, Any]:
        totals = self.task_totals
        return {
            "summary": {
                "specs": len(self.specs),
                "requirements": sum(self.specs.values()),
                "activeChanges": len(self.active),
                "completedChanges": len(self.completed),
                "tasks": totals.to_dict(),
            },
            "activeChanges": [
                {"name": change.name, "progress": change.progress.to_dict(), "percentage": change.percentage}
                for change in self.active
            ],
            "completedChanges": list(self.completed),
            "specs": [{"name": name, "requirementCount": count} for name, count in self.specs.items()],
        }


def collect_dashboard(workspace: Workspace) -> Dashboard:
    """Active changes sorted by completion then name; specs by requirement count, descending."""
    dashboard = Dashboard()
    for name in workspace.list_changes():
        progress = workspace.task_progress(name)
        if progress.total == 0 or progress.completed == progress.total:
            dashboard.completed.append(name)
        else:
            dashboard.active.append(ChangeSummary(name, progress))
    dashboard.active.sort(key=lambda change: (change.progress.ratio, change.name))

    counts = {name: spec_requirement_count(workspace, name) for name in workspace.list_specs()}
    dashboard.specs = dict(sorted(counts.items(), key=lambda item: (-item[1], item[0])))
    return dashboard


class ViewCommand:
    """Dashboard of specs, changes and task progress."""

    def __init__(self, console: Optional[Console] = None, messages: Optional[LanguageContext] = None):
        self.console = console or make_console()
        self.messages = messages or LanguageContext.detect()

    def execute(self, target_path: Path | str = ".") -> Dashboard:
        t = self.messages.t
        workspace = Workspace(target_path)
        if not workspace.openspec_dir.is_dir():
            raise WorkspaceError(t("errors.no_openspec_dir"))

        dashboard = collect_dashboard(workspace)
        out = self.console

        echo(out)
        echo(out, t("view.title"), style="bold")
        echo(out)
        echo(out, "═" * _RULE_WIDTH)
        self._summary(dashboard)

        if dashboard.active:
            echo(out)
            echo(out, t("view.sections.active"), style="bold cyan")
            echo(out, "─" * _RULE_WIDTH)
            for change in dashboard.active:
                bar = progress_bar(change.progress.completed, change.progress.total)
                echo(out, f"  ◉ {change.name.ljust(30)} {bar} {change.percentage}%")

        if dashboard.completed:
            echo(out)
            echo(out, t("view.sections.completed"), style="bold green")
            echo(out, "─" * _RULE_WIDTH)
            for name in dashboard.completed:
                echo(out, f"  ✓ {name}")

        if dashboard.specs:
            echo(out)
            echo(out, t("view.sections.specifications"), style="bold blue")
            echo(out, "─" * _RULE_WIDTH)
            for name, count in dashboard.specs.items():
                label = t("view.labels.requirement") if count == 1 else t("view.labels.requirements")
                echo(out, f"  ▪ {name.ljust(30)} {count} {label}")

        echo(out)
        echo(out, "═" * _RULE_WIDTH)
        echo(out)
        echo(out, t("view.footer"), style="dim")
        return dashboard

    def _summary(self, dashboard: Dashboard) -> None:
        t = self.messages.t
        totals = dashboard.task_totals
        echo(self.console, t("view.summary.title"), style="bold")
        echo(
            self.console,
            "  ● " + t("view.summary.specifications", specs=len(dashboard.specs), requirements=sum(dashboard.specs.values())),
        )
        echo(self.console, "  ● " + t("view.summary.active", count=len(dashboard.active)))
        echo(self.console, "  ● " + t("view.summary.completed", count=len(dashboard.completed)))
        if totals.total:
            percentage = round(totals.completed / totals.total * 100)
            echo(
                self.console,
                "  ● " + t("view.summary.tasks", completed=totals.completed, total=totals.total, percentage=percentage),
            )
