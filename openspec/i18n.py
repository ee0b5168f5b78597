"""Localized messages for the command layer.

Only commands (archive, list, view, init, update) format text through a
``LanguageContext``; parsing, validation and the delta engine never do.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Optional

from .config import LANG_ENV
from .models import TaskProgress

SUPPORTED_LANGUAGES = ("en", "zh")

CATALOGS: Dict[str, Dict[str, str]] = {
    "en": {
        # shared
        "tasks.none": "No tasks",
        "tasks.complete": "✓ Complete",
        "tasks.progress": "{completed}/{total} tasks",
        "errors.no_changes_dir": "No OpenSpec changes directory found. Run 'openspec init' first.",
        "errors.no_openspec_dir": "No OpenSpec directory found. Run 'openspec init' first.",
        # archive
        "archive.errors.change_not_found": "Change '{name}' not found.",
        "archive.errors.archive_exists": "Archive '{archive_name}' already exists.",
        "archive.failed": "Archive failed: {error}",
        "archive.select_prompt": "Select a change to archive",
        "archive.no_active_changes": "No active changes found.",
        "archive.no_change_selected": "No change selected. Aborting.",
        "archive.proposal_warnings": "Proposal warnings in proposal.md (non-blocking):",
        "archive.delta_errors": "Validation errors in change delta specs:",
        "archive.validation_failed": "Validation failed. Please fix the errors before archiving.",
        "archive.skip_validation_hint": "To skip validation (not recommended), use --no-validate flag.",
        "archive.skip_validation_confirm": "WARNING: Skipping validation may archive invalid specs. Continue?",
        "archive.skip_validation_warning": "WARNING: Skipping validation may archive invalid specs.",
        "archive.validation_skipped": "[{timestamp}] Validation skipped for change: {name}",
        "archive.affected_files": "Affected files: {path}",
        "archive.task_status": "Task status: {status}",
        "archive.incomplete_confirm": "Warning: {count} incomplete task(s) found. Continue?",
        "archive.incomplete_continue": "Warning: {count} incomplete task(s) found. Continuing due to --yes flag.",
        "archive.cancelled": "Archive cancelled.",
        "archive.skip_specs": "Skipping spec updates (--skip-specs flag provided).",
        "archive.specs_to_update": "Specs to update:",
        "archive.status_create": "create",
        "archive.status_update": "update",
        "archive.confirm_specs": "Proceed with spec updates?",
        "archive.specs_skipped": "Skipping spec updates. Proceeding with archive.",
        "archive.aborted": "Aborted. No files were changed.",
        "archive.rebuilt_invalid": "Validation errors in rebuilt spec for {capability} (will not write changes):",
        "archive.applying": "Applying changes to openspec/specs/{capability}/spec.md:",
        "archive.count_added": "  + {count} added",
        "archive.count_modified": "  ~ {count} modified",
        "archive.count_removed": "  - {count} removed",
        "archive.count_renamed": "  → {count} renamed",
        "archive.totals": "Totals: + {added}, ~ {modified}, - {removed}, → {renamed}",
        "archive.specs_updated": "Specs updated successfully.",
        "archive.archived": "Change '{name}' archived as '{archive_name}'.",
        # list
        "list.no_changes": "No active changes found.",
        "list.changes_header": "Changes:",
        "list.no_specs": "No specs found.",
        "list.specs_header": "Specs:",
        "list.requirements": "requirements {count}",
        # view
        "view.title": "OpenSpec Dashboard",
        "view.summary.title": "Summary:",
        "view.summary.specifications": "Specifications: {specs} specs, {requirements} requirements",
        "view.summary.active": "Active Changes: {count} in progress",
        "view.summary.completed": "Completed Changes: {count}",
        "view.summary.tasks": "Task Progress: {completed}/{total} ({percentage}% complete)",
        "view.sections.active": "Active Changes",
        "view.sections.completed": "Completed Changes",
        "view.sections.specifications": "Specifications",
        "view.labels.requirement": "requirement",
        "view.labels.requirements": "requirements",
        "view.footer": "Use openspec list --changes or openspec list --specs for detailed views",
        # init
        "init.errors.invalid_tools": "Invalid tool(s): {tools}. Available values: {values}",
        "init.errors.reserved_combo": 'Cannot combine reserved values "all" or "none" with specific tool IDs',
        "init.select_tools": "Which AI tools do you use? Enter comma separated ids ({values}), 'all' or 'none'",
        "init.creating": "Creating OpenSpec structure in {path}",
        "init.extending": "OpenSpec already initialized in {path}; refreshing AI tool files",
        "init.success": "OpenSpec initialized successfully!",
        "init.tool_summary": "Tool summary:",
        "init.configured": "  Configured: {tools}",
        "init.refreshed": "  Refreshed: {tools}",
        "init.none_configured": "  No AI tools configured",
        "init.failed": "Failed to configure {tool}: {error}",
        "init.next_steps": (
            "Next steps:\n"
            "  1. Fill in openspec/project.md with your project context\n"
            "  2. Ask your AI assistant to create a change proposal\n"
            "  3. Run 'openspec validate <change-id>' before implementing"
        ),
        # update
        "update.errors.update_failed": "Failed to update {file_name}: {error}",
        "update.errors.slash_failed": "Failed to refresh slash commands for {tool_id}: {error}",
        "update.errors.insufficient_permissions": "Insufficient permissions to modify {file_name}",
        "update.files.openspec_agents": "openspec/AGENTS.md",
        "update.files.agents": "AGENTS.md",
        "update.files.agents_created": "AGENTS.md (created)",
        "update.success.updated_instructions": "Updated OpenSpec instructions ({files})",
        "update.success.updated_ai_tool_files": "Updated AI tool files: {files}",
        "update.success.updated_slash_commands": "Updated slash commands: {files}",
        "update.success.failed_to_update": "Failed to update: {items}",
        "update.slash_refresh_label": "slash command refresh ({tool_id})",
    },
    "zh": {
        "tasks.none": "无任务",
        "tasks.complete": "✓ 已完成",
        "tasks.progress": "{completed}/{total} 个任务",
        "errors.no_changes_dir": "未找到 OpenSpec 变更目录。请先运行 'openspec init'。",
        "errors.no_openspec_dir": "未找到 OpenSpec 目录。请先运行 'openspec init'。",
        "archive.errors.change_not_found": "未找到变更 '{name}'。",
        "archive.errors.archive_exists": "归档 '{archive_name}' 已存在。",
        "archive.failed": "归档失败: {error}",
        "archive.select_prompt": "选择要归档的变更",
        "archive.no_active_changes": "没有活动的变更。",
        "archive.no_change_selected": "未选择变更。已中止。",
        "archive.proposal_warnings": "proposal.md 中的提案警告（不阻止归档）:",
        "archive.delta_errors": "变更增量规范中的验证错误:",
        "archive.validation_failed": "验证失败。请在归档前修复错误。",
        "archive.skip_validation_hint": "如需跳过验证（不推荐），请使用 --no-validate 参数。",
        "archive.skip_validation_confirm": "警告：跳过验证可能会归档无效的规范。是否继续？",
        "archive.skip_validation_warning": "警告：跳过验证可能会归档无效的规范。",
        "archive.validation_skipped": "[{timestamp}] 已跳过变更验证: {name}",
        "archive.affected_files": "受影响的文件: {path}",
        "archive.task_status": "任务状态: {status}",
        "archive.incomplete_confirm": "警告：发现 {count} 个未完成的任务。是否继续？",
        "archive.incomplete_continue": "警告：发现 {count} 个未完成的任务。由于 --yes 参数继续执行。",
        "archive.cancelled": "已取消归档。",
        "archive.skip_specs": "跳过规范更新（已提供 --skip-specs 参数）。",
        "archive.specs_to_update": "待更新的规范:",
        "archive.status_create": "创建",
        "archive.status_update": "更新",
        "archive.confirm_specs": "是否继续更新规范？",
        "archive.specs_skipped": "跳过规范更新。继续归档。",
        "archive.aborted": "已中止。没有文件被修改。",
        "archive.rebuilt_invalid": "重建后的规范 {capability} 存在验证错误（不会写入更改）:",
        "archive.applying": "正在应用更改到 openspec/specs/{capability}/spec.md:",
        "archive.count_added": "  + 新增 {count} 个",
        "archive.count_modified": "  ~ 修改 {count} 个",
        "archive.count_removed": "  - 删除 {count} 个",
        "archive.count_renamed": "  → 重命名 {count} 个",
        "archive.totals": "合计: + {added}, ~ {modified}, - {removed}, → {renamed}",
        "archive.specs_updated": "规范更新成功。",
        "archive.archived": "变更 '{name}' 已归档为 '{archive_name}'。",
        "list.no_changes": "没有活动的变更。",
        "list.changes_header": "变更:",
        "list.no_specs": "未找到规范。",
        "list.specs_header": "规范:",
        "list.requirements": "需求 {count}",
        "view.title": "OpenSpec 仪表板",
        "view.summary.title": "摘要:",
        "view.summary.specifications": "规范: {specs} 个规范, {requirements} 个需求",
        "view.summary.active": "活动变更: {count} 个进行中",
        "view.summary.completed": "已完成变更: {count} 个",
        "view.summary.tasks": "任务进度: {completed}/{total}（完成 {percentage}%）",
        "view.sections.active": "活动变更",
        "view.sections.completed": "已完成变更",
        "view.sections.specifications": "规范",
        "view.labels.requirement": "个需求",
        "view.labels.requirements": "个需求",
        "view.footer": "使用 openspec list --changes 或 openspec list --specs 查看详细信息",
        "init.errors.invalid_tools": "无效的工具: {tools}。可用值: {values}",
        "init.errors.reserved_combo": '不能将保留值 "all" 或 "none" 与具体工具 ID 组合使用',
        "init.select_tools": "你使用哪些 AI 工具？输入以逗号分隔的 ID（{values}）、'all' 或 'none'",
        "init.creating": "正在 {path} 中创建 OpenSpec 结构",
        "init.extending": "OpenSpec 已在 {path} 中初始化；正在刷新 AI 工具文件",
        "init.success": "OpenSpec 初始化成功！",
        "init.tool_summary": "工具摘要:",
        "init.configured": "  已配置: {tools}",
        "init.refreshed": "  已刷新: {tools}",
        "init.none_configured": "  未配置 AI 工具",
        "init.failed": "配置 {tool} 失败: {error}",
        "init.next_steps": (
            "后续步骤:\n"
            "  1. 在 openspec/project.md 中填写项目上下文\n"
            "  2. 让你的 AI 助手创建变更提案\n"
            "  3. 实施前运行 'openspec validate <change-id>'"
        ),
        "update.errors.update_failed": "更新 {file_name} 失败: {error}",
        "update.errors.slash_failed": "刷新 {tool_id} 的斜杠命令失败: {error}",
        "update.errors.insufficient_permissions": "没有权限修改 {file_name}",
        "update.files.openspec_agents": "openspec/AGENTS.md",
        "update.files.agents": "AGENTS.md",
        "update.files.agents_created": "AGENTS.md（已创建）",
        "update.success.updated_instructions": "已更新 OpenSpec 指令（{files}）",
        "update.success.updated_ai_tool_files": "已更新 AI 工具文件: {files}",
        "update.success.updated_slash_commands": "已更新斜杠命令: {files}",
        "update.success.failed_to_update": "更新失败: {items}",
        "update.slash_refresh_label": "斜杠命令刷新（{tool_id}）",
    },
}


def detect_language(preferred: Optional[str] = None) -> str:
    """Pick ``en`` or ``zh`` from an explicit value, OPENSPEC_LANG or the OS locale."""
    candidate = (
        preferred
        or os.getenv(LANG_ENV)
        or os.getenv("LC_ALL")
        or os.getenv("LC_MESSAGES")
        or os.getenv("LANG")
        or "en"
    )
    language = candidate.lower().replace("-", "_").split("_")[0].split(".")[0]
    return language if language in SUPPORTED_LANGUAGES else "en"


@dataclass(frozen=True)
class LanguageContext:
    """Message lookup for one language, falling back to English."""

    language: str = "en"

    @classmethod
    def detect(cls, preferred: Optional[str] = None) -> "LanguageContext":
        return cls(detect_language(preferred))

    def t(self, key: str, **params) -> str:
        template = CATALOGS.get(self.language, {}).get(key) or CATALOGS["en"].get(key, key)
        return template.format(**params) if params else template

    def task_status(self, progress: TaskProgress) -> str:
        if progress.total == 0:
            return self.t("tasks.none")
        if progress.completed == progress.total:
            return self.t("tasks.complete")
        return self.t("tasks.progress", completed=progress.completed, total=progress.total)
