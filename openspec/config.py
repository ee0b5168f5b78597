"""Fixed conventions and environment lookups for OpenSpec."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import List, Optional

OPENSPEC_DIR_NAME = "openspec"
SPECS_DIR_NAME = "specs"
CHANGES_DIR_NAME = "changes"
ARCHIVE_DIR_NAME = "archive"

OPENSPEC_MARKERS = {
    "start": "<!-- OPENSPEC:START -->",
    "end": "<!-- OPENSPEC:END -->",
}

# Validation thresholds
MIN_PURPOSE_LENGTH = 50
MIN_WHY_SECTION_LENGTH = 50
MAX_WHY_SECTION_LENGTH = 1000
MAX_DELTAS_PER_CHANGE = 10
MAX_REQUIREMENT_TEXT_LENGTH = 500
MIN_DELTA_DESCRIPTION_LENGTH = 10

FORMAT_VERSION = "1.0.0"

PROJECT_ROOT_ENV = "OPENSPEC_PROJECT_ROOT"
LANG_ENV = "OPENSPEC_LANG"
LOG_LEVEL_ENV = "OPENSPEC_LOG_LEVEL"
LOG_FILE_ENV = "OPENSPEC_LOG_FILE"
INTERACTIVE_ENV = "OPEN_SPEC_INTERACTIVE"


@dataclass(slots=True)
class AIToolOption:
    """An AI assistant OpenSpec can write instruction files for."""

    name: str
    value: str
    available: bool = True
    success_label: Optional[str] = None

    @property
    def label(self) -> str:
        return self.success_label or self.name


AI_TOOLS: List[AIToolOption] = [
    AIToolOption("Claude Code", "claude", success_label="Claude Code"),
    AIToolOption("Cline", "cline", success_label="Cline"),
    AIToolOption("CodeBuddy Code (CLI)", "codebuddy", success_label="CodeBuddy Code"),
    AIToolOption("Cursor", "cursor", success_label="Cursor"),
    AIToolOption("Trae IDE", "trae", success_label="Trae IDE"),
    AIToolOption(
        "AGENTS.md (works with Amp, VS Code, ...)",
        "agents",
        success_label="your AGENTS.md-compatible assistant",
    ),
]


def available_tool_ids() -> List[str]:
    return [tool.value for tool in AI_TOOLS if tool.available]


def is_interactive() -> bool:
    """Whether prompts may be shown: stdin is a terminal and OPEN_SPEC_INTERACTIVE is not 0."""
    if os.getenv(INTERACTIVE_ENV, "1") == "0":
        return False
    return sys.stdin is not None and sys.stdin.isatty()


def log_level_from_env(default: str = "WARNING") -> str:
    return os.getenv(LOG_LEVEL_ENV, default).upper()


def log_file_from_env() -> Optional[str]:
    return os.getenv(LOG_FILE_ENV) or None
