"""Unit tests for AI tool and slash command configurators."""

import pytest

from openspec.config import AI_TOOLS, OPENSPEC_MARKERS, available_tool_ids
from openspec.configurators import SlashCommandRegistry, ToolRegistry
from openspec.errors import OpenSpecError
from openspec.templates import ROOT_STUB_TEMPLATE, SLASH_COMMAND_IDS, slash_command_body

START = OPENSPEC_MARKERS["start"]
END = OPENSPEC_MARKERS["end"]


class TestToolRegistry:
    """Test cases for instruction-file configurators."""

    def test_registered_tools(self):
        assert sorted(c.tool_id for c in ToolRegistry.get_all()) == ["agents", "claude", "cline", "codebuddy", "trae"]
        assert ToolRegistry.get("cursor") is None

    def test_every_tool_option_has_a_writer(self):
        for tool_id in available_tool_ids():
            assert ToolRegistry.get(tool_id) or SlashCommandRegistry.get(tool_id)
        assert len(AI_TOOLS) == len(available_tool_ids())

    def test_configure_writes_managed_block(self, tmp_path):
        ToolRegistry.get("claude").configure(tmp_path, tmp_path / "openspec")

        content = (tmp_path / "CLAUDE.md").read_text(encoding="utf-8")
        assert content.startswith(START)
        assert content.endswith(END)
        assert "@/openspec/AGENTS.md" in content

    def test_configure_keeps_user_content(self, tmp_path):
        path = tmp_path / "AGENTS.md"
        path.write_text(f"# Team rules\n\n{START}\nstale\n{END}\n\nMore rules.\n", encoding="utf-8")

        ToolRegistry.get("agents").configure(tmp_path, tmp_path / "openspec")

        content = path.read_text(encoding="utf-8")
        assert content.startswith("# Team rules\n\n")
        assert content.endswith("\n\nMore rules.\n")
        assert "stale" not in content
        assert ROOT_STUB_TEMPLATE.strip() in content

    def test_trae_writes_nested_rules_file(self, tmp_path):
        ToolRegistry.get("trae").configure(tmp_path, tmp_path / "openspec")

        assert (tmp_path / ".trae/rules/project_rules.md").is_file()


class TestSlashCommands:
    """Test cases for slash command files."""

    def test_claude_commands(self, tmp_path):
        written = SlashCommandRegistry.get("claude").generate_all(tmp_path)

        assert written == [f".claude/commands/openspec/{command}.md" for command in SLASH_COMMAND_IDS]
        content = (tmp_path / ".claude/commands/openspec/proposal.md").read_text(encoding="utf-8")
        assert content.startswith("---\nname: OpenSpec: Proposal\n")
        assert "tags: [openspec, change]" in content
        assert f"{START}\n{slash_command_body('proposal')}\n{END}" in content

    def test_cursor_frontmatter(self, tmp_path):
        SlashCommandRegistry.get("cursor").generate_all(tmp_path)

        content = (tmp_path / ".cursor/commands/openspec-apply.md").read_text(encoding="utf-8")
        assert content.startswith("---\nname: /openspec-apply\nid: openspec-apply\n")

    def test_regenerate_replaces_body_only(self, tmp_path):
        configurator = SlashCommandRegistry.get("claude")
        configurator.generate_all(tmp_path)
        path = tmp_path / ".claude/commands/openspec/archive.md"
        content = path.read_text(encoding="utf-8")
        edited = content.replace("category: OpenSpec", "category: Custom").replace(
            slash_command_body("archive"), "outdated body"
        )
        path.write_text(edited, encoding="utf-8")

        configurator.generate_all(tmp_path)

        refreshed = path.read_text(encoding="utf-8")
        assert "category: Custom" in refreshed
        assert "outdated body" not in refreshed
        assert slash_command_body("archive") in refreshed

    def test_update_existing_skips_missing_files(self, tmp_path):
        configurator = SlashCommandRegistry.get("cursor")
        configurator.generate_all(tmp_path)
        (tmp_path / ".cursor/commands/openspec-apply.md").unlink()

        updated = configurator.update_existing(tmp_path)

        assert updated == [".cursor/commands/openspec-proposal.md", ".cursor/commands/openspec-archive.md"]
        assert not (tmp_path / ".cursor/commands/openspec-apply.md").exists()

    def test_missing_markers(self, tmp_path):
        path = tmp_path / ".claude/commands/openspec/proposal.md"
        path.parent.mkdir(parents=True)
        path.write_text("hand written command\n", encoding="utf-8")

        with pytest.raises(OpenSpecError, match="Missing OpenSpec markers"):
            SlashCommandRegistry.get("claude").update_existing(tmp_path)
