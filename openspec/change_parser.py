"""Change parsing with per-capability delta spec files.

A change can describe its deltas two ways: bullets under ``## What Changes``
(``- **capability:** description``) and structured documents under
``specs/<capability>/spec.md``. Parsing runs in two steps: gather every
candidate source, then resolve them so that a structured document replaces
the bullets of the capability it belongs to.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from .errors import DeltaValidationError
from .markdown_parser import MarkdownParser, normalize_line_endings, parse_bullet_deltas, split_sections
from .models import Change, Delta, DeltaOperation, RenamePair, Requirement
from .openspec_logging import log_change_parsed, log_error_with_context
from .requirement_blocks import (
    RequirementBlock,
    collect_requirement_blocks,
    parse_removed_names,
    parse_renamed_pairs,
    has_delta_sections,
)

logger = logging.getLogger("openspec.parser")

DELTA_SPEC_FILE = "spec.md"


def find_delta_spec_files(change_dir: Union[str, Path]) -> Dict[str, Path]:
    """Map capability name to its delta spec file, in directory-name order.

    Only one delta document per capability is supported; a capability folder
    holding delta sections in more than one markdown file is rejected.
    """
    specs_dir = Path(change_dir) / "specs"
    if not specs_dir.is_dir():
        return {}

    found: Dict[str, Path] = {}
    for capability_dir in sorted(p for p in specs_dir.iterdir() if p.is_dir()):
        spec_file = capability_dir / DELTA_SPEC_FILE
        extras = [
            candidate.name
            for candidate in sorted(capability_dir.glob("*.md"))
            if candidate.name != DELTA_SPEC_FILE
            and has_delta_sections(candidate.read_text(encoding="utf-8"))
        ]
        if extras:
            raise DeltaValidationError(
                f"{capability_dir.name}: multiple delta spec files found "
                f"({', '.join([DELTA_SPEC_FILE] + extras)}). "
                f"Combine them into specs/{capability_dir.name}/{DELTA_SPEC_FILE}."
            )
        if spec_file.is_file():
            found[capability_dir.name] = spec_file
    return found


def requirement_from_block(block: RequirementBlock) -> Requirement:
    """Parse one ``### Requirement:`` block into a model requirement."""
    parser = MarkdownParser(block.raw)
    sections = parser.parse_sections()
    if not sections:
        return Requirement(text=block.name)
    return parser.requirement_from_section(sections[0], skip_metadata=True)


def deltas_from_delta_spec(capability: str, content: str) -> List[Delta]:
    """Turn a delta spec document into deltas, following its section order."""
    deltas: List[Delta] = []
    for section in split_sections(normalize_line_endings(content), 2):
        operation = section.kind.delta_operation
        if operation is None:
            continue
        if operation in (DeltaOperation.ADDED, DeltaOperation.MODIFIED):
            verb = "Add" if operation is DeltaOperation.ADDED else "Modify"
            for block in collect_requirement_blocks(section.body_lines):
                requirement = requirement_from_block(block)
                deltas.append(
                    Delta(
                        spec=capability,
                        operation=operation,
                        description=f"{verb} requirement: {requirement.text}",
                        requirement=requirement,
                    )
                )
        elif operation is DeltaOperation.REMOVED:
            for name in parse_removed_names("\n".join(section.body_lines)):
                deltas.append(
                    Delta(
                        spec=capability,
                        operation=operation,
                        description=f"Remove requirement: {name}",
                        requirement=Requirement(text=name),
                    )
                )
        else:
            for pair in parse_renamed_pairs("\n".join(section.body_lines)):
                deltas.append(
                    Delta(
                        spec=capability,
                        operation=operation,
                        description=f'Rename requirement from "{pair.from_name}" to "{pair.to_name}"',
                        rename=RenamePair(pair.from_name, pair.to_name),
                    )
                )
    return deltas


def resolve_delta_sources(bullet_deltas: List[Delta], structured: Dict[str, List[Delta]]) -> List[Delta]:
    """Merge bullet deltas with structured ones, structured winning per capability.

    A capability's structured deltas take the place of its first bullet;
    structured capabilities never mentioned in a bullet follow at the end.
    """
    resolved: List[Delta] = []
    emitted = set()
    for delta in bullet_deltas:
        capability = delta.spec
        if capability in structured:
            if capability not in emitted:
                resolved.extend(structured[capability])
                emitted.add(capability)
            continue
        resolved.append(delta)
    for capability, deltas in structured.items():
        if capability not in emitted:
            resolved.extend(deltas)
            emitted.add(capability)
    return resolved


class ChangeParser(MarkdownParser):
    """Parse ``proposal.md`` together with the delta specs next to it."""

    def __init__(self, content: str, change_dir: Optional[Union[str, Path]] = None):
        super().__init__(content)
        self.change_dir = Path(change_dir) if change_dir is not None else None

    def gather_structured_deltas(self) -> Dict[str, List[Delta]]:
        if self.change_dir is None:
            return {}
        structured: Dict[str, List[Delta]] = {}
        for capability, path in find_delta_spec_files(self.change_dir).items():
            deltas = deltas_from_delta_spec(capability, path.read_text(encoding="utf-8"))
            if deltas:
                structured[capability] = deltas
            else:
                logger.debug("Delta spec %s has no typed requirement sections", path)
        return structured

    def parse_change_with_deltas(self, name: str) -> Change:
        try:
            why, what_changes = self.parse_change_sections()
            bullet_deltas = parse_bullet_deltas(what_changes)
            structured = self.gather_structured_deltas()
        except Exception as e:
            log_error_with_context(e, {
                "operation": "parse_change_with_deltas",
                "change": name,
                "change_dir": str(self.change_dir),
            })
            raise

        change = Change(
            name=name,
            why=why,
            what_changes=what_changes,
            deltas=resolve_delta_sources(bullet_deltas, structured),
        )
        logger.debug(
            "Parsed change %s: %d bullet delta(s), %d structured capability(ies)",
            name,
            len(bullet_deltas),
            len(structured),
        )
        log_change_parsed(name, len(change.deltas), structured_capabilities=sorted(structured))
        return change
