"""Workspace management for OpenSpec projects.

This module locates the ``openspec/`` directory of a project and answers
questions about it: which changes and specs exist, where their files live,
how far a change's task checklist has progressed, and which known ids are
closest to a mistyped one.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Dict, List, Optional

from .config import (
    ARCHIVE_DIR_NAME,
    CHANGES_DIR_NAME,
    OPENSPEC_DIR_NAME,
    PROJECT_ROOT_ENV,
    SPECS_DIR_NAME,
)
from .errors import WorkspaceError
from .models import TaskItem, TaskProgress
from .openspec_logging import log_error_with_context

logger = logging.getLogger("openspec.workspace")


class Workspace:
    """Read-only view of an OpenSpec project rooted at ``root``."""

    def __init__(self, root: Path | str = "."):
        self.root = Path(root).resolve()
        self.openspec_dir = self.root / OPENSPEC_DIR_NAME
        self.specs_dir = self.openspec_dir / SPECS_DIR_NAME
        self.changes_dir = self.openspec_dir / CHANGES_DIR_NAME
        self.archive_dir = self.changes_dir / ARCHIVE_DIR_NAME

    @classmethod
    def discover(cls, start: Optional[Path | str] = None) -> "Workspace":
        """Find the nearest directory (``start`` or a parent) containing ``openspec/``.

        ``OPENSPEC_PROJECT_ROOT`` wins when set.
        """
        env_root = os.getenv(PROJECT_ROOT_ENV)
        if env_root:
            env_path = Path(env_root).expanduser().resolve()
            if not env_path.exists():
                raise WorkspaceError(
                    f"Environment variable {PROJECT_ROOT_ENV} points to '{env_root}', which does not exist."
                )
            return cls(env_path)

        base = Path(start or Path.cwd()).expanduser().resolve()
        for candidate in [base, *base.parents]:
            if (candidate / OPENSPEC_DIR_NAME).is_dir():
                logger.debug(f"Discovered OpenSpec project at {candidate}")
                return cls(candidate)
        return cls(base)

    # ------------------------------------------------------------------
    # Existence checks
    # ------------------------------------------------------------------

    def is_initialized(self) -> bool:
        return self.openspec_dir.is_dir()

    def require_openspec_dir(self) -> Path:
        if not self.openspec_dir.is_dir():
            raise WorkspaceError("No OpenSpec directory found. Run 'openspec init' first.")
        return self.openspec_dir

    def require_changes_dir(self) -> Path:
        if not self.changes_dir.is_dir():
            raise WorkspaceError("No OpenSpec changes directory found. Run 'openspec init' first.")
        return self.changes_dir

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def list_changes(self) -> List[str]:
        """Active change ids, sorted, excluding the archive."""
        if not self.changes_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.changes_dir.iterdir()
            if entry.is_dir() and entry.name != ARCHIVE_DIR_NAME and not entry.name.startswith(".")
        )

    def list_specs(self) -> List[str]:
        """Spec ids that have a ``spec.md``, sorted."""
        if not self.specs_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.specs_dir.iterdir()
            if entry.is_dir() and (entry / "spec.md").is_file()
        )

    def list_archived(self) -> List[str]:
        if not self.archive_dir.is_dir():
            return []
        return sorted(entry.name for entry in self.archive_dir.iterdir() if entry.is_dir())

    def change_dir(self, change_id: str) -> Path:
        return self.changes_dir / change_id

    def proposal_path(self, change_id: str) -> Path:
        return self.change_dir(change_id) / "proposal.md"

    def tasks_path(self, change_id: str) -> Path:
        return self.change_dir(change_id) / "tasks.md"

    def spec_path(self, spec_id: str) -> Path:
        return self.specs_dir / spec_id / "spec.md"

    def change_exists(self, change_id: str) -> bool:
        return change_id in self.list_changes()

    def spec_exists(self, spec_id: str) -> bool:
        return self.spec_path(spec_id).is_file()

    def change_title(self, change_id: str) -> str:
        """The ``# Change: <title>`` heading of a proposal, or the id."""
        path = self.proposal_path(change_id)
        if path.is_file():
            for line in path.read_text(encoding="utf-8").splitlines():
                match = self._TITLE_PATTERN.match(line)
                if match:
                    title = match.group("title").strip()
                    return re.sub(r"^(Change|Spec):\s*", "", title) or change_id
        return change_id

    def spec_title(self, spec_id: str) -> str:
        path = self.spec_path(spec_id)
        if path.is_file():
            for line in path.read_text(encoding="utf-8").splitlines():
                match = self._TITLE_PATTERN.match(line)
                if match:
                    return match.group("title").strip()
        return spec_id

    # ------------------------------------------------------------------
    # Task tracking
    # ------------------------------------------------------------------

    def read_tasks(self, change_id: str) -> List[TaskItem]:
        """Checklist entries of ``tasks.md``; an absent file means no tasks."""
        path = self.tasks_path(change_id)
        if not path.is_file():
            return []
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            logger.error(f"Failed to read tasks for {change_id}: {e}")
            log_error_with_context(e, {"operation": "read_tasks", "change": change_id})
            raise

        tasks: List[TaskItem] = []
        for index, line in enumerate(lines):
            match = self._TASK_LINE_PATTERN.match(line)
            if match:
                tasks.append(
                    TaskItem(
                        description=match.group("rest").strip(),
                        completed=match.group("mark").lower() == "x",
                        line_index=index,
                        indent=match.group("prefix"),
                    )
                )
        return tasks

    def task_progress(self, change_id: str) -> TaskProgress:
        tasks = self.read_tasks(change_id)
        return TaskProgress(total=len(tasks), completed=sum(1 for task in tasks if task.completed))

    def all_task_progress(self) -> Dict[str, TaskProgress]:
        return {change_id: self.task_progress(change_id) for change_id in self.list_changes()}

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    def nearest_matches(self, item: str, candidates: Optional[List[str]] = None, limit: int = 5) -> List[str]:
        """Known ids ordered by edit distance to ``item``."""
        pool = candidates if candidates is not None else self.list_changes() + self.list_specs()
        ranked = sorted(set(pool), key=lambda candidate: (levenshtein(item, candidate), candidate))
        return ranked[:limit]

    _TASK_LINE_PATTERN = re.compile(r"^(?P<prefix>\s*)[-*]\s+\[(?P<mark> |x|X)\]\s*(?P<rest>.*)$")
    _TITLE_PATTERN = re.compile(r"^#\s+(?P<title>.+)$")


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (char_a != char_b),
            ))
        previous = current
    return previous[-1]
