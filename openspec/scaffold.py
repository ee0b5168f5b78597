"""The ``init`` and ``update`` commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from rich.console import Console
from rich.prompt import Prompt

from .config import (
    AI_TOOLS,
    ARCHIVE_DIR_NAME,
    CHANGES_DIR_NAME,
    OPENSPEC_DIR_NAME,
    SPECS_DIR_NAME,
    available_tool_ids,
    is_interactive,
)
from .configurators import SlashCommandRegistry, ToolRegistry
from .console import echo, make_console
from .errors import ToolSelectionError, WorkspaceError
from .file_system import (
    can_write_file,
    create_directory,
    directory_exists,
    ensure_write_permissions,
    file_exists,
    write_file,
)
from .i18n import LanguageContext
from .openspec_logging import log_error_with_context, log_operation
from .templates import AGENTS_TEMPLATE, project_template

logger = logging.getLogger("openspec.configurators")

RESERVED_TOOL_VALUES = ("all", "none")

AskFn = Callable[[str], str]


def parse_tools_option(raw: str, messages: Optional[LanguageContext] = None) -> List[str]:
    """Turn ``--tools`` into tool ids: ``all``, ``none`` or a comma separated list."""
    messages = messages or LanguageContext()
    available = available_tool_ids()
    values = ", ".join(list(RESERVED_TOOL_VALUES) + available)

    tokens: List[str] = []
    for token in raw.split(","):
        token = token.strip().lower()
        if token and token not in tokens:
            tokens.append(token)
    if not tokens:
        raise ToolSelectionError(messages.t("init.errors.invalid_tools", tools="(empty)", values=values))

    reserved = [token for token in tokens if token in RESERVED_TOOL_VALUES]
    if reserved and len(tokens) > 1:
        raise ToolSelectionError(messages.t("init.errors.reserved_combo"))
    if tokens == ["all"]:
        return available
    if tokens == ["none"]:
        return []

    invalid = [token for token in tokens if token not in available]
    if invalid:
        raise ToolSelectionError(messages.t("init.errors.invalid_tools", tools=", ".join(invalid), values=values))
    return tokens


@dataclass(slots=True)
class InitResult:
    extend_mode: bool
    configured: List[str] = field(default_factory=list)
    refreshed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class InitCommand:
    """Create ``openspec/`` and the selected AI tool files.

    Running it on an initialized project only adds or refreshes tool files;
    ``openspec/AGENTS.md`` and ``project.md`` are left alone.
    """

    def __init__(
        self,
        tools: Optional[str] = None,
        console: Optional[Console] = None,
        ask: Optional[AskFn] = None,
        messages: Optional[LanguageContext] = None,
    ):
        self.tools = tools
        self.console = console or make_console()
        self.ask = ask
        self.messages = messages or LanguageContext.detect()

    def execute(self, target_path: Path | str = ".") -> InitResult:
        t = self.messages.t
        project_path = Path(target_path).resolve()
        openspec_path = project_path / OPENSPEC_DIR_NAME
        extend_mode = directory_exists(openspec_path)

        if not ensure_write_permissions(project_path):
            raise WorkspaceError(f"Insufficient permissions to write to {project_path}")

        selected = self._selected_tools()

        with log_operation("init", path=str(project_path), tools=",".join(selected)):
            if extend_mode:
                echo(self.console, t("init.extending", path=str(project_path)))
            else:
                echo(self.console, t("init.creating", path=str(project_path)))
            self._create_structure(openspec_path)

            result = InitResult(extend_mode=extend_mode)
            for tool_id in selected:
                self._configure_tool(project_path, openspec_path, tool_id, result)
            # root AGENTS.md is always written, selected or not
            if "agents" not in selected:
                self._configure_tool(project_path, openspec_path, "agents", result, report=False)

        self._print_summary(result)
        return result

    def _selected_tools(self) -> List[str]:
        if self.tools is not None:
            return parse_tools_option(self.tools, self.messages)
        if self.ask is None and not is_interactive():
            return []
        values = ", ".join(available_tool_ids())
        prompt = self.messages.t("init.select_tools", values=values)
        answer = self.ask(prompt) if self.ask else Prompt.ask(prompt, default="none", console=self.console)
        return parse_tools_option(answer or "none", self.messages)

    def _create_structure(self, openspec_path: Path) -> None:
        for directory in (
            openspec_path,
            openspec_path / SPECS_DIR_NAME,
            openspec_path / CHANGES_DIR_NAME,
            openspec_path / CHANGES_DIR_NAME / ARCHIVE_DIR_NAME,
        ):
            create_directory(directory)

        agents_path = openspec_path / "AGENTS.md"
        if not file_exists(agents_path):
            write_file(agents_path, AGENTS_TEMPLATE)
        project_path = openspec_path / "project.md"
        if not file_exists(project_path):
            write_file(project_path, project_template())

    def _configure_tool(
        self,
        project_path: Path,
        openspec_path: Path,
        tool_id: str,
        result: InitResult,
        report: bool = True,
    ) -> None:
        configurator = ToolRegistry.get(tool_id)
        slash_configurator = SlashCommandRegistry.get(tool_id)
        existed = bool(configurator and file_exists(configurator.config_path(project_path)))
        try:
            if configurator and configurator.is_available:
                configurator.configure(project_path, openspec_path)
            if slash_configurator and slash_configurator.is_available:
                slash_configurator.generate_all(project_path)
        except Exception as e:
            log_error_with_context(e, {"operation": "configure_tool", "tool": tool_id})
            echo(self.console, self.messages.t("init.failed", tool=tool_id, error=str(e)), style="red")
            result.failed.append(tool_id)
            return
        if report:
            (result.refreshed if existed else result.configured).append(tool_id)

    def _print_summary(self, result: InitResult) -> None:
        t = self.messages.t
        labels = {tool.value: tool.label for tool in AI_TOOLS}
        echo(self.console)
        echo(self.console, t("init.success"), style="green")
        echo(self.console, t("init.tool_summary"))
        if result.configured:
            echo(self.console, t("init.configured", tools=", ".join(labels.get(i, i) for i in result.configured)))
        if result.refreshed:
            echo(self.console, t("init.refreshed", tools=", ".join(labels.get(i, i) for i in result.refreshed)))
        if not result.configured and not result.refreshed:
            echo(self.console, t("init.none_configured"))
        echo(self.console)
        echo(self.console, t("init.next_steps"))


@dataclass(slots=True)
class UpdateResult:
    updated_files: List[str] = field(default_factory=list)
    created_files: List[str] = field(default_factory=list)
    failed_files: List[str] = field(default_factory=list)
    updated_slash_files: List[str] = field(default_factory=list)
    failed_slash_tools: List[str] = field(default_factory=list)
    summary: str = ""


class UpdateCommand:
    """Refresh ``openspec/AGENTS.md`` and the tool files that already exist."""

    def __init__(
        self,
        console: Optional[Console] = None,
        error_console: Optional[Console] = None,
        messages: Optional[LanguageContext] = None,
    ):
        self.console = console or make_console()
        self.error_console = error_console or make_console(stderr=True)
        self.messages = messages or LanguageContext.detect()

    def execute(self, project_path: Path | str = ".") -> UpdateResult:
        t = self.messages.t
        project_path = Path(project_path).resolve()
        openspec_path = project_path / OPENSPEC_DIR_NAME
        if not directory_exists(openspec_path):
            raise WorkspaceError(t("errors.no_openspec_dir"))

        result = UpdateResult()
        with log_operation("update", path=str(project_path)):
            write_file(openspec_path / "AGENTS.md", AGENTS_TEMPLATE)

            for configurator in ToolRegistry.get_all():
                name = configurator.config_file_name
                exists = file_exists(configurator.config_path(project_path))
                if not exists and name != "AGENTS.md":
                    continue
                try:
                    if exists and not can_write_file(configurator.config_path(project_path)):
                        raise WorkspaceError(t("update.errors.insufficient_permissions", file_name=name))
                    configurator.configure(project_path, openspec_path)
                except Exception as e:
                    log_error_with_context(e, {"operation": "update_tool_file", "file": name})
                    result.failed_files.append(name)
                    echo(self.error_console, t("update.errors.update_failed", file_name=name, error=str(e)), style="red")
                    continue
                result.updated_files.append(name)
                if not exists:
                    result.created_files.append(name)

            for slash_configurator in SlashCommandRegistry.get_all():
                if not slash_configurator.is_available:
                    continue
                try:
                    result.updated_slash_files.extend(slash_configurator.update_existing(project_path))
                except Exception as e:
                    log_error_with_context(e, {"operation": "update_slash_commands", "tool": slash_configurator.tool_id})
                    result.failed_slash_tools.append(slash_configurator.tool_id)
                    echo(
                        self.error_console,
                        t("update.errors.slash_failed", tool_id=slash_configurator.tool_id, error=str(e)),
                        style="red",
                    )

        result.summary = self._summary(result)
        echo(self.console, result.summary)
        return result

    def _summary(self, result: UpdateResult) -> str:
        t = self.messages.t
        instruction_files = [t("update.files.openspec_agents")]
        if "AGENTS.md" in result.updated_files:
            created = "AGENTS.md" in result.created_files
            instruction_files.append(t("update.files.agents_created") if created else t("update.files.agents"))

        parts = [t("update.success.updated_instructions", files=", ".join(instruction_files))]
        tool_files = [name for name in result.updated_files if name != "AGENTS.md"]
        if tool_files:
            parts.append(t("update.success.updated_ai_tool_files", files=", ".join(tool_files)))
        if result.updated_slash_files:
            parts.append(t("update.success.updated_slash_commands", files="\n  ".join(result.updated_slash_files)))

        failed = result.failed_files + [
            t("update.slash_refresh_label", tool_id=tool_id) for tool_id in result.failed_slash_tools
        ]
        if failed:
            parts.append(t("update.success.failed_to_update", items=", ".join(failed)))
        return "\n".join(parts)
