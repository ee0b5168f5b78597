"""Markdown section parsing for specs and change proposals.

Documents are split into a tree of headed sections. Contract headers
(``Purpose``, ``Requirements``, ``Why``, ``What Changes``) are looked up by
exact title; delta operation headers (``ADDED Requirements`` and friends)
are matched without regard to case. Anything else is classified as
``SectionKind.UNKNOWN`` and only reachable through the tree.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from .errors import ParseError
from .models import Change, Delta, DeltaOperation, Requirement, Scenario, Spec
from .openspec_logging import log_change_parsed, log_spec_parsed

logger = logging.getLogger("openspec.parser")

_HEADING_PATTERN = re.compile(r"^(?P<hashes>#{1,6})\s+(?P<title>.+)$")
_SCENARIO_TITLE = re.compile(r"^scenario\b", re.IGNORECASE)
_BULLET_DELTA_PATTERN = re.compile(r"^\s*-\s*\*\*(?P<spec>[^*:]+)(?::\*\*|\*\*:)\s*(?P<description>.+)$")
_OPERATION_KEYWORDS = re.compile(
    r"\b(?P<word>add(?:s|ed|ing)?|modif(?:y|ies|ied|ying)|updat(?:e|es|ed|ing)|chang(?:e|es|ed|ing)"
    r"|remov(?:e|es|ed|ing)|delet(?:e|es|ed|ing)|renam(?:e|es|ed|ing))\b",
    re.IGNORECASE,
)
_METADATA_LINE = re.compile(r"^\*\*[^*]+\*\*:")


def normalize_line_endings(content: str) -> str:
    return content.replace("\r\n", "\n").replace("\r", "\n")


class SectionKind(Enum):
    """Section titles the engine knows about."""

    PURPOSE = "Purpose"
    REQUIREMENTS = "Requirements"
    WHY = "Why"
    WHAT_CHANGES = "What Changes"
    ADDED_REQUIREMENTS = "ADDED Requirements"
    MODIFIED_REQUIREMENTS = "MODIFIED Requirements"
    REMOVED_REQUIREMENTS = "REMOVED Requirements"
    RENAMED_REQUIREMENTS = "RENAMED Requirements"
    UNKNOWN = ""

    @classmethod
    def classify(cls, title: str) -> "SectionKind":
        title = title.strip()
        for kind in _CONTRACT_KINDS:
            if title == kind.value:
                return kind
        lowered = title.lower()
        for kind in _DELTA_KINDS:
            if lowered == kind.value.lower():
                return kind
        return cls.UNKNOWN

    @property
    def delta_operation(self) -> Optional[DeltaOperation]:
        return _DELTA_OPERATIONS.get(self)


_CONTRACT_KINDS = (
    SectionKind.PURPOSE,
    SectionKind.REQUIREMENTS,
    SectionKind.WHY,
    SectionKind.WHAT_CHANGES,
)
_DELTA_OPERATIONS = {
    SectionKind.ADDED_REQUIREMENTS: DeltaOperation.ADDED,
    SectionKind.MODIFIED_REQUIREMENTS: DeltaOperation.MODIFIED,
    SectionKind.REMOVED_REQUIREMENTS: DeltaOperation.REMOVED,
    SectionKind.RENAMED_REQUIREMENTS: DeltaOperation.RENAMED,
}
_DELTA_KINDS = tuple(_DELTA_OPERATIONS)


@dataclass(slots=True)
class Section:
    """A heading and the lines up to the next heading of equal or lower level."""

    level: int
    title: str
    body_lines: List[str] = field(default_factory=list)
    children: List["Section"] = field(default_factory=list)

    @property
    def kind(self) -> SectionKind:
        return SectionKind.classify(self.title)

    @property
    def content(self) -> str:
        return "\n".join(self.body_lines).strip()


def heading_level(line: str) -> Optional[int]:
    match = _HEADING_PATTERN.match(line)
    return len(match.group("hashes")) if match else None


def split_sections(content: str, level: int) -> Iterator[Section]:
    """Yield the sections headed at exactly ``level``, in document order.

    Deeper headings stay inside the body text. The input is never mutated,
    so the generator can be recreated as often as needed.
    """
    lines = normalize_line_endings(content).split("\n")
    current: Optional[Section] = None
    for line in lines:
        match = _HEADING_PATTERN.match(line)
        if match and len(match.group("hashes")) <= level:
            if current is not None:
                yield current
                current = None
            if len(match.group("hashes")) == level:
                current = Section(level=level, title=match.group("title").strip())
            continue
        if current is not None:
            current.body_lines.append(line)
    if current is not None:
        yield current


class MarkdownParser:
    """Parse spec and change documents into the OpenSpec model."""

    def __init__(self, content: str):
        self.lines = normalize_line_endings(content).split("\n")

    # ------------------------------------------------------------------
    # Section tree
    # ------------------------------------------------------------------

    def parse_sections(self) -> List[Section]:
        """Build the heading tree of the whole document."""
        roots: List[Section] = []
        stack: List[Section] = []
        for index, line in enumerate(self.lines):
            match = _HEADING_PATTERN.match(line)
            if not match:
                continue
            level = len(match.group("hashes"))
            section = Section(
                level=level,
                title=match.group("title").strip(),
                body_lines=self._body_until_next_heading(index + 1, level),
            )
            while stack and stack[-1].level >= level:
                stack.pop()
            if stack:
                stack[-1].children.append(section)
            else:
                roots.append(section)
            stack.append(section)
        return roots

    def _body_until_next_heading(self, start: int, level: int) -> List[str]:
        body: List[str] = []
        for line in self.lines[start:]:
            found = heading_level(line)
            if found is not None and found <= level:
                break
            body.append(line)
        return body

    @classmethod
    def find_section(cls, sections: List[Section], kind: SectionKind) -> Optional[Section]:
        for section in sections:
            if section.kind is kind:
                return section
            found = cls.find_section(section.children, kind)
            if found is not None:
                return found
        return None

    # ------------------------------------------------------------------
    # Specs
    # ------------------------------------------------------------------

    def parse_spec(self, name: str) -> Spec:
        sections = self.parse_sections()
        purpose = self.find_section(sections, SectionKind.PURPOSE)
        requirements_section = self.find_section(sections, SectionKind.REQUIREMENTS)

        if purpose is None or not purpose.content:
            raise ParseError("Spec must have a Purpose section")
        if requirements_section is None:
            raise ParseError("Spec must have a Requirements section")

        spec = Spec(
            name=name,
            overview=purpose.content,
            requirements=self.parse_requirements(requirements_section),
        )
        logger.debug("Parsed spec %s with %d requirement(s)", name, len(spec.requirements))
        log_spec_parsed(name, len(spec.requirements))
        return spec

    def parse_requirements(self, section: Section) -> List[Requirement]:
        return [self.requirement_from_section(child) for child in section.children]

    def requirement_from_section(self, section: Section, skip_metadata: bool = False) -> Requirement:
        """Build a requirement from a ``###`` section.

        The text is the first non-empty body line before any sub-heading,
        falling back to the heading itself. With ``skip_metadata`` lines such
        as ``**ID**: REQ-1`` are not considered requirement text.
        """
        text = section.title
        for line in section.body_lines:
            stripped = line.strip()
            if stripped.startswith("#"):
                break
            if not stripped:
                continue
            if skip_metadata and _METADATA_LINE.match(stripped):
                continue
            text = stripped
            break
        return Requirement(text=text, scenarios=self.parse_scenarios(section))

    def parse_scenarios(self, section: Section) -> List[Scenario]:
        scenarios: List[Scenario] = []
        for child in section.children:
            if not _SCENARIO_TITLE.match(child.title):
                continue
            if child.content:
                scenarios.append(Scenario(raw_text=child.content))
        return scenarios

    # ------------------------------------------------------------------
    # Changes
    # ------------------------------------------------------------------

    def parse_change_sections(self) -> Tuple[str, str]:
        sections = self.parse_sections()
        why = self.find_section(sections, SectionKind.WHY)
        what_changes = self.find_section(sections, SectionKind.WHAT_CHANGES)
        if why is None or not why.content:
            raise ParseError("Change must have a Why section")
        if what_changes is None or not what_changes.content:
            raise ParseError("Change must have a What Changes section")
        return why.content, what_changes.content

    def parse_change(self, name: str) -> Change:
        why, what_changes = self.parse_change_sections()
        change = Change(
            name=name,
            why=why,
            what_changes=what_changes,
            deltas=parse_bullet_deltas(what_changes),
        )
        log_change_parsed(name, len(change.deltas))
        return change


def infer_operation(description: str) -> DeltaOperation:
    """Pick the operation named by the earliest verb in ``description``."""
    match = _OPERATION_KEYWORDS.search(description)
    if not match:
        return DeltaOperation.ADDED
    word = match.group("word").lower()
    if word.startswith("add"):
        return DeltaOperation.ADDED
    if word.startswith(("remov", "delet")):
        return DeltaOperation.REMOVED
    if word.startswith("renam"):
        return DeltaOperation.RENAMED
    return DeltaOperation.MODIFIED


def parse_bullet_deltas(content: str) -> List[Delta]:
    """Read ``- **capability:** description`` bullets in document order."""
    deltas: List[Delta] = []
    for line in normalize_line_endings(content).split("\n"):
        match = _BULLET_DELTA_PATTERN.match(line)
        if not match:
            continue
        description = match.group("description").strip()
        deltas.append(
            Delta(
                spec=match.group("spec").strip(),
                operation=infer_operation(description),
                description=description,
            )
        )
    return deltas


def parse_spec(content: str, name: str) -> Spec:
    return MarkdownParser(content).parse_spec(name)


def parse_change(content: str, name: str) -> Change:
    return MarkdownParser(content).parse_change(name)
