"""Apply delta specs to main specs.

Every operation of a delta plan is checked before anything is rebuilt, and
a rebuild only returns text: callers decide when to write. Operations apply
in a fixed order, RENAMED then REMOVED then MODIFIED then ADDED, and a
MODIFIED entry must use the post-rename header.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set

from .change_parser import find_delta_spec_files
from .errors import DeltaValidationError
from .requirement_blocks import (
    DeltaPlan,
    RequirementBlock,
    extract_requirements_section,
    normalize_requirement_name,
    parse_delta_spec,
    requirement_header,
)

logger = logging.getLogger("openspec.archive")

OPERATION_COUNT_KEYS = ("added", "modified", "removed", "renamed")


@dataclass(slots=True)
class SpecUpdate:
    """A delta spec inside a change and the main spec it targets."""

    source: Path
    target: Path
    exists: bool

    @property
    def capability(self) -> str:
        return self.target.parent.name


@dataclass(slots=True)
class PreparedSpec:
    """The rebuilt text for one target spec, not yet written."""

    update: SpecUpdate
    rebuilt: str
    counts: Dict[str, int] = field(default_factory=dict)


def empty_counts() -> Dict[str, int]:
    return {key: 0 for key in OPERATION_COUNT_KEYS}


def find_spec_updates(change_dir: Path, main_specs_dir: Path) -> List[SpecUpdate]:
    """List ``specs/<capability>/spec.md`` files of a change with their targets.

    Raises ``DeltaValidationError`` when a capability spreads its delta
    sections over more than one file.
    """
    updates: List[SpecUpdate] = []
    for capability, source in find_delta_spec_files(change_dir).items():
        target = Path(main_specs_dir) / capability / "spec.md"
        updates.append(SpecUpdate(source=source, target=target, exists=target.is_file()))
    return updates


def build_spec_skeleton(capability: str, change_name: str) -> str:
    return (
        f"# {capability} Specification\n\n"
        "## Purpose\n"
        f"TBD - created by archiving change {change_name}. Update Purpose after archive.\n\n"
        "## Requirements\n"
    )


def _header(name: str) -> str:
    return f'"{requirement_header(name)}"'


def _unique(capability: str, section: str, names: List[str]) -> Set[str]:
    seen: Set[str] = set()
    for name in names:
        key = normalize_requirement_name(name)
        if key in seen:
            raise DeltaValidationError(
                f"{capability} validation failed - duplicate requirement in {section} for header {_header(name)}"
            )
        seen.add(key)
    return seen


def check_delta_plan(capability: str, plan: DeltaPlan) -> None:
    """Reject plans that contradict themselves, before looking at the target."""
    added = _unique(capability, "ADDED", [block.name for block in plan.added])
    modified = _unique(capability, "MODIFIED", [block.name for block in plan.modified])
    removed = _unique(capability, "REMOVED", plan.removed)
    _unique(capability, "RENAMED FROM", [pair.from_name for pair in plan.renamed])
    _unique(capability, "RENAMED TO", [pair.to_name for pair in plan.renamed])

    for pair in plan.renamed:
        if normalize_requirement_name(pair.from_name) in modified:
            raise DeltaValidationError(
                f"{capability} validation failed - when a rename exists, MODIFIED must reference "
                f"the NEW header {_header(pair.to_name)}"
            )
        if normalize_requirement_name(pair.to_name) in added:
            raise DeltaValidationError(
                f"{capability} validation failed - RENAMED TO header collides with ADDED for "
                f"{_header(pair.to_name)}"
            )

    conflicts = (
        [(name, "MODIFIED", "REMOVED") for name in sorted(modified & removed)]
        + [(name, "MODIFIED", "ADDED") for name in sorted(modified & added)]
        + [(name, "ADDED", "REMOVED") for name in sorted(added & removed)]
    )
    if conflicts:
        name, first, second = conflicts[0]
        raise DeltaValidationError(
            f"{capability} validation failed - requirement present in multiple sections "
            f"({first} and {second}) for header {_header(name)}"
        )

    if plan.operation_count == 0:
        raise DeltaValidationError(
            f"Delta parsing found no operations for {capability}. "
            "Provide ADDED/MODIFIED/REMOVED/RENAMED sections in change spec."
        )


def apply_delta_plan(
    capability: str,
    plan: DeltaPlan,
    target_content: Optional[str],
    change_name: str,
) -> str:
    """Return ``target_content`` with the plan applied.

    ``None`` means the main spec does not exist yet; it is created from a
    skeleton and may only receive ADDED requirements.
    """
    check_delta_plan(capability, plan)

    if target_content is None:
        if plan.modified or plan.removed or plan.renamed:
            raise DeltaValidationError(
                f"{capability}: target spec does not exist; only ADDED requirements are allowed for new specs."
            )
        target_content = build_spec_skeleton(capability, change_name)

    parts = extract_requirements_section(target_content)
    blocks: Dict[str, RequirementBlock] = {}
    order: List[str] = []
    for block in parts.blocks:
        if block.key in blocks:
            raise DeltaValidationError(
                f"{capability} validation failed - duplicate requirement in target spec "
                f"for header {_header(block.name)}"
            )
        order.append(block.key)
        blocks[block.key] = block

    for pair in plan.renamed:
        source = normalize_requirement_name(pair.from_name)
        target = normalize_requirement_name(pair.to_name)
        if source not in blocks:
            raise DeltaValidationError(
                f"{capability} RENAMED failed for header {_header(pair.from_name)} - source not found"
            )
        if target in blocks:
            raise DeltaValidationError(
                f"{capability} RENAMED failed for header {_header(pair.to_name)} - target already exists"
            )
        blocks[target] = blocks.pop(source).renamed(target)
        order[order.index(source)] = target

    for name in plan.removed:
        key = normalize_requirement_name(name)
        if key not in blocks:
            raise DeltaValidationError(f"{capability} REMOVED failed for header {_header(name)} - not found")
        del blocks[key]
        order.remove(key)

    for block in plan.modified:
        if block.key not in blocks:
            raise DeltaValidationError(f"{capability} MODIFIED failed for header {_header(block.name)} - not found")
        blocks[block.key] = block

    for block in plan.added:
        if block.key in blocks:
            raise DeltaValidationError(f"{capability} ADDED failed for header {_header(block.name)} - already exists")
        blocks[block.key] = block
        order.append(block.key)

    body: List[str] = []
    if parts.preamble.strip():
        body.append(parts.preamble.strip("\n"))
    body.extend(blocks[key].raw for key in order)

    pieces: List[str] = []
    if parts.before.strip():
        pieces.append(parts.before.rstrip())
    pieces.append(parts.header_line + ("\n\n" + "\n\n".join(body) if body else ""))
    if parts.after.strip():
        pieces.append(parts.after.strip("\n"))
    rebuilt = "\n\n".join(pieces) + "\n"

    logger.debug("Rebuilt %s with %s", capability, plan.counts())
    return rebuilt


def prepare_spec_updates(updates: List[SpecUpdate], change_name: str) -> List[PreparedSpec]:
    """Rebuild every target spec in memory; raises on the first unresolvable delta."""
    prepared: List[PreparedSpec] = []
    for update in updates:
        plan = parse_delta_spec(update.source.read_text(encoding="utf-8"))
        current = update.target.read_text(encoding="utf-8") if update.target.is_file() else None
        rebuilt = apply_delta_plan(update.capability, plan, current, change_name)
        prepared.append(PreparedSpec(update=update, rebuilt=rebuilt, counts=plan.counts()))
    return prepared


def write_prepared_spec(prepared: PreparedSpec) -> None:
    target = prepared.update.target
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(prepared.rebuilt, encoding="utf-8")
