"""Per-tool writers for AI assistant instruction files.

Instruction files (``CLAUDE.md``, ``AGENTS.md``, ...) keep user content
outside the OpenSpec markers untouched. Slash-command files carry a tool
specific frontmatter followed by a managed body.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from .config import OPENSPEC_MARKERS
from .errors import OpenSpecError
from .file_system import file_exists, read_file, update_file_with_markers, write_file
from .templates import (
    CLAUDE_TEMPLATE,
    CLINE_TEMPLATE,
    ROOT_STUB_TEMPLATE,
    SLASH_COMMAND_DESCRIPTIONS,
    SLASH_COMMAND_IDS,
    slash_command_body,
)

logger = logging.getLogger("openspec.configurators")


class ToolConfigurator:
    """Writes one marker-managed instruction file at the project root."""

    tool_id = ""
    name = ""
    config_file_name = ""
    is_available = True

    def template(self) -> str:
        return ROOT_STUB_TEMPLATE

    def config_path(self, project_path: Path) -> Path:
        return Path(project_path) / self.config_file_name

    def configure(self, project_path: Path, openspec_dir: Path) -> None:
        path = self.config_path(project_path)
        update_file_with_markers(path, self.template(), OPENSPEC_MARKERS["start"], OPENSPEC_MARKERS["end"])
        logger.debug(f"Configured {self.tool_id} at {path}")


class ClaudeConfigurator(ToolConfigurator):
    tool_id = "claude"
    name = "Claude Code"
    config_file_name = "CLAUDE.md"

    def template(self) -> str:
        return CLAUDE_TEMPLATE


class ClineConfigurator(ToolConfigurator):
    tool_id = "cline"
    name = "Cline"
    config_file_name = "CLINE.md"

    def template(self) -> str:
        return CLINE_TEMPLATE


class CodeBuddyConfigurator(ToolConfigurator):
    tool_id = "codebuddy"
    name = "CodeBuddy"
    config_file_name = "CODEBUDDY.md"


class TraeConfigurator(ToolConfigurator):
    tool_id = "trae"
    name = "Trae IDE"
    config_file_name = ".trae/rules/project_rules.md"


class AgentsStandardConfigurator(ToolConfigurator):
    tool_id = "agents"
    name = "AGENTS.md standard"
    config_file_name = "AGENTS.md"


class ToolRegistry:
    """Instruction-file configurators keyed by tool id."""

    _configurators: Dict[str, ToolConfigurator] = {}

    @classmethod
    def register(cls, configurator: ToolConfigurator) -> None:
        cls._configurators[configurator.tool_id] = configurator

    @classmethod
    def get(cls, tool_id: str) -> Optional[ToolConfigurator]:
        return cls._configurators.get(tool_id)

    @classmethod
    def get_all(cls) -> List[ToolConfigurator]:
        return list(cls._configurators.values())


for _configurator in (
    ClaudeConfigurator(),
    ClineConfigurator(),
    CodeBuddyConfigurator(),
    TraeConfigurator(),
    AgentsStandardConfigurator(),
):
    ToolRegistry.register(_configurator)


# ----------------------------------------------------------------------
# Slash commands
# ----------------------------------------------------------------------


class SlashCommandConfigurator:
    """Writes the proposal/apply/archive commands for one tool."""

    tool_id = ""
    is_available = True
    file_paths: Dict[str, str] = {}

    def frontmatter(self, command_id: str) -> Optional[str]:
        return None

    def relative_path(self, command_id: str) -> str:
        return self.file_paths[command_id]

    def generate_all(self, project_path: Path) -> List[str]:
        """Create or refresh every command file; returns relative paths."""
        written: List[str] = []
        for command_id in SLASH_COMMAND_IDS:
            relative = self.relative_path(command_id)
            path = Path(project_path) / relative
            body = slash_command_body(command_id)
            if file_exists(path):
                self._update_body(path, body)
            else:
                sections = []
                frontmatter = self.frontmatter(command_id)
                if frontmatter:
                    sections.append(frontmatter.strip())
                sections.append(f"{OPENSPEC_MARKERS['start']}\n{body}\n{OPENSPEC_MARKERS['end']}")
                write_file(path, "\n".join(sections) + "\n")
            written.append(relative)
        return written

    def update_existing(self, project_path: Path) -> List[str]:
        """Refresh only the command files that already exist."""
        updated: List[str] = []
        for command_id in SLASH_COMMAND_IDS:
            relative = self.relative_path(command_id)
            path = Path(project_path) / relative
            if file_exists(path):
                self._update_body(path, slash_command_body(command_id))
                updated.append(relative)
        return updated

    @staticmethod
    def _update_body(path: Path, body: str) -> None:
        content = read_file(path)
        start = content.find(OPENSPEC_MARKERS["start"])
        end = content.find(OPENSPEC_MARKERS["end"])
        if start == -1 or end == -1 or end <= start:
            raise OpenSpecError(f"Missing OpenSpec markers in {path}")
        before = content[: start + len(OPENSPEC_MARKERS["start"])]
        after = content[end:]
        write_file(path, f"{before}\n{body}\n{after}")


class ClaudeSlashCommandConfigurator(SlashCommandConfigurator):
    tool_id = "claude"
    file_paths = {
        "proposal": ".claude/commands/openspec/proposal.md",
        "apply": ".claude/commands/openspec/apply.md",
        "archive": ".claude/commands/openspec/archive.md",
    }

    def frontmatter(self, command_id: str) -> Optional[str]:
        tag = "change" if command_id == "proposal" else command_id
        return (
            "---\n"
            f"name: OpenSpec: {command_id.capitalize()}\n"
            f"description: {SLASH_COMMAND_DESCRIPTIONS[command_id]}\n"
            "category: OpenSpec\n"
            f"tags: [openspec, {tag}]\n"
            "---"
        )


class CursorSlashCommandConfigurator(SlashCommandConfigurator):
    tool_id = "cursor"
    file_paths = {
        "proposal": ".cursor/commands/openspec-proposal.md",
        "apply": ".cursor/commands/openspec-apply.md",
        "archive": ".cursor/commands/openspec-archive.md",
    }

    def frontmatter(self, command_id: str) -> Optional[str]:
        return (
            "---\n"
            f"name: /openspec-{command_id}\n"
            f"id: openspec-{command_id}\n"
            "category: OpenSpec\n"
            f"description: {SLASH_COMMAND_DESCRIPTIONS[command_id]}\n"
            "---"
        )


class SlashCommandRegistry:
    _configurators: Dict[str, SlashCommandConfigurator] = {}

    @classmethod
    def register(cls, configurator: SlashCommandConfigurator) -> None:
        cls._configurators[configurator.tool_id] = configurator

    @classmethod
    def get(cls, tool_id: str) -> Optional[SlashCommandConfigurator]:
        return cls._configurators.get(tool_id)

    @classmethod
    def get_all(cls) -> List[SlashCommandConfigurator]:
        return list(cls._configurators.values())


SlashCommandRegistry.register(ClaudeSlashCommandConfigurator())
SlashCommandRegistry.register(CursorSlashCommandConfigurator())
