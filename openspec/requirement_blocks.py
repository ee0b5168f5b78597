"""Requirement-block level view of spec and delta documents.

The archive engine edits specs as text rather than through the parsed
model, so that everything outside the touched requirement blocks (titles,
purpose, preamble, trailing sections) is preserved byte for byte.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List

from .markdown_parser import normalize_line_endings, split_sections
from .models import DeltaOperation, RenamePair

REQUIREMENT_HEADER = re.compile(r"^###\s*Requirement:\s*(?P<name>.+)\s*$")
_REQUIREMENT_START = re.compile(r"^###\s+Requirement:")
_LEVEL_TWO = re.compile(r"^##\s+")
_REQUIREMENTS_HEADER = re.compile(r"^##\s+Requirements\s*$", re.IGNORECASE)
_REMOVED_BULLET = re.compile(r"^\s*-\s*`?###\s*Requirement:\s*(?P<name>.+?)`?\s*$")
_RENAMED_FROM = re.compile(r"^\s*-?\s*FROM:\s*`?###\s*Requirement:\s*(?P<name>.+?)`?\s*$")
_RENAMED_TO = re.compile(r"^\s*-?\s*TO:\s*`?###\s*Requirement:\s*(?P<name>.+?)`?\s*$")
_SCENARIO_HEADER = re.compile(r"^####\s+Scenario:", re.MULTILINE)


def normalize_requirement_name(name: str) -> str:
    """Requirement headers are compared on trimmed text, case-sensitively."""
    return name.strip()


def requirement_header(name: str) -> str:
    return f"### Requirement: {name}"


@dataclass(slots=True)
class RequirementBlock:
    """A ``### Requirement:`` heading together with its body text."""

    header_line: str
    name: str
    raw: str

    @property
    def key(self) -> str:
        return normalize_requirement_name(self.name)

    def renamed(self, new_name: str) -> "RequirementBlock":
        header = requirement_header(new_name)
        lines = self.raw.split("\n")
        lines[0] = header
        return RequirementBlock(header_line=header, name=new_name, raw="\n".join(lines))

    def scenario_count(self) -> int:
        return len(_SCENARIO_HEADER.findall(self.raw))


@dataclass(slots=True)
class RequirementsSectionParts:
    """A spec split around its ``## Requirements`` section."""

    before: str
    header_line: str
    preamble: str
    blocks: List[RequirementBlock] = field(default_factory=list)
    after: str = ""


@dataclass(slots=True)
class DeltaPlan:
    """Typed operations found in one delta spec document."""

    added: List[RequirementBlock] = field(default_factory=list)
    modified: List[RequirementBlock] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    renamed: List[RenamePair] = field(default_factory=list)
    section_presence: Dict[DeltaOperation, bool] = field(default_factory=dict)

    @property
    def operation_count(self) -> int:
        return len(self.added) + len(self.modified) + len(self.removed) + len(self.renamed)

    def counts(self) -> Dict[str, int]:
        return {
            "added": len(self.added),
            "modified": len(self.modified),
            "removed": len(self.removed),
            "renamed": len(self.renamed),
        }


def collect_requirement_blocks(lines: List[str]) -> List[RequirementBlock]:
    blocks: List[RequirementBlock] = []
    index = 0
    while index < len(lines):
        match = REQUIREMENT_HEADER.match(lines[index])
        if not match or not _REQUIREMENT_START.match(lines[index]):
            index += 1
            continue
        header_line = lines[index]
        body = [header_line]
        index += 1
        while (
            index < len(lines)
            and not _REQUIREMENT_START.match(lines[index])
            and not _LEVEL_TWO.match(lines[index])
        ):
            body.append(lines[index])
            index += 1
        blocks.append(
            RequirementBlock(
                header_line=header_line,
                name=normalize_requirement_name(match.group("name")),
                raw="\n".join(body).rstrip(),
            )
        )
    return blocks


def extract_requirements_section(content: str) -> RequirementsSectionParts:
    """Split ``content`` into the text around and inside ``## Requirements``.

    A document without the section gets an empty one appended.
    """
    lines = normalize_line_endings(content).split("\n")
    header_index = next((i for i, line in enumerate(lines) if _REQUIREMENTS_HEADER.match(line)), -1)
    if header_index == -1:
        before = normalize_line_endings(content).rstrip()
        return RequirementsSectionParts(
            before=before + "\n\n" if before else "",
            header_line="## Requirements",
            preamble="",
            blocks=[],
            after="\n",
        )

    end_index = len(lines)
    for i in range(header_index + 1, len(lines)):
        if _LEVEL_TWO.match(lines[i]):
            end_index = i
            break

    body = lines[header_index + 1:end_index]
    cursor = 0
    while cursor < len(body) and not _REQUIREMENT_START.match(body[cursor]):
        cursor += 1

    return RequirementsSectionParts(
        before="\n".join(lines[:header_index]),
        header_line=lines[header_index],
        preamble="\n".join(body[:cursor]),
        blocks=collect_requirement_blocks(body[cursor:]),
        after="\n".join(lines[end_index:]),
    )


def parse_removed_names(body: str) -> List[str]:
    names: List[str] = []
    for line in body.split("\n"):
        header = REQUIREMENT_HEADER.match(line)
        if header:
            names.append(normalize_requirement_name(header.group("name")))
            continue
        bullet = _REMOVED_BULLET.match(line)
        if bullet:
            names.append(normalize_requirement_name(bullet.group("name")))
    return names


def parse_renamed_pairs(body: str) -> List[RenamePair]:
    pairs: List[RenamePair] = []
    pending_from = None
    for line in body.split("\n"):
        from_match = _RENAMED_FROM.match(line)
        if from_match:
            pending_from = normalize_requirement_name(from_match.group("name"))
            continue
        to_match = _RENAMED_TO.match(line)
        if to_match and pending_from:
            pairs.append(RenamePair(pending_from, normalize_requirement_name(to_match.group("name"))))
            pending_from = None
    return pairs


def parse_delta_spec(content: str) -> DeltaPlan:
    """Parse the ``## ADDED/MODIFIED/REMOVED/RENAMED Requirements`` sections."""
    bodies: Dict[DeltaOperation, List[str]] = {}
    for section in split_sections(content, 2):
        operation = section.kind.delta_operation
        if operation is not None:
            bodies.setdefault(operation, []).extend(section.body_lines)

    plan = DeltaPlan(section_presence={operation: operation in bodies for operation in DeltaOperation})
    plan.added = collect_requirement_blocks(bodies.get(DeltaOperation.ADDED, []))
    plan.modified = collect_requirement_blocks(bodies.get(DeltaOperation.MODIFIED, []))
    plan.removed = parse_removed_names("\n".join(bodies.get(DeltaOperation.REMOVED, [])))
    plan.renamed = parse_renamed_pairs("\n".join(bodies.get(DeltaOperation.RENAMED, [])))
    return plan


def has_delta_sections(content: str) -> bool:
    return any(section.kind.delta_operation is not None for section in split_sections(content, 2))

