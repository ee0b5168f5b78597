"""Validation of specs, change proposals and delta specs.

Structural problems (missing sections, zero deltas) are reported as errors
with remediation text appended. Content-quality findings are warnings,
which only make a report invalid in strict mode.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional, Set, Union

from .change_parser import ChangeParser, find_delta_spec_files
from .config import (
    MAX_REQUIREMENT_TEXT_LENGTH,
    MIN_DELTA_DESCRIPTION_LENGTH,
    MIN_PURPOSE_LENGTH,
)
from .errors import OpenSpecError
from .markdown_parser import MarkdownParser
from .models import (
    Change,
    DeltaOperation,
    IssueLevel,
    Spec,
    ValidationIssue,
    ValidationReport,
    contains_shall_or_must,
)
from .openspec_logging import log_performance, log_validation_report
from .requirement_blocks import RequirementBlock, normalize_requirement_name, parse_delta_spec

logger = logging.getLogger("openspec.validator")

_METADATA_LINE = re.compile(r"^\*\*[^*]+\*\*:")
_SCENARIO_HEADING = re.compile(r"^####\s+")


class ValidationMessages:
    """Messages and remediation guides shown to spec authors."""

    SCENARIO_EMPTY = "Scenario text cannot be empty"
    REQUIREMENT_NO_SHALL = "Requirement must contain SHALL or MUST keyword"
    REQUIREMENT_NO_SCENARIOS = "Requirement must have at least one scenario"
    SPEC_NO_REQUIREMENTS = "Spec must have at least one requirement"
    CHANGE_NO_DELTAS = "Change must have at least one delta"
    CHANGE_WHY_TOO_SHORT = "Why section must be at least 50 characters"
    CHANGE_TOO_MANY_DELTAS = "Consider splitting changes with more than 10 deltas"

    PURPOSE_TOO_BRIEF = f"Purpose section is too brief (less than {MIN_PURPOSE_LENGTH} characters)"
    REQUIREMENT_TOO_LONG = (
        f"Requirement text is very long (>{MAX_REQUIREMENT_TEXT_LENGTH} characters). "
        "Consider breaking it down."
    )
    DELTA_DESCRIPTION_TOO_BRIEF = "Delta description is too brief"
    DELTA_MISSING_REQUIREMENTS = "delta should include requirements"

    GUIDE_NO_DELTAS = (
        "No deltas found. Ensure your change has a specs/ directory with capability folders "
        "(e.g. specs/http-server/spec.md) containing .md files that use delta headers "
        "(## ADDED/MODIFIED/REMOVED/RENAMED Requirements) and that each requirement includes "
        'at least one "#### Scenario:" block. Tip: run "openspec change show <change-id> '
        '--json --deltas-only" to inspect parsed deltas.'
    )
    GUIDE_MISSING_SPEC_SECTIONS = (
        'Missing required sections. Expected headers: "## Purpose" and "## Requirements". Example:\n'
        "## Purpose\n[brief purpose]\n\n## Requirements\n"
        "### Requirement: Clear requirement statement\nUsers SHALL ...\n\n"
        "#### Scenario: Descriptive name\n- **WHEN** ...\n- **THEN** ..."
    )
    GUIDE_MISSING_CHANGE_SECTIONS = (
        'Missing required sections. Expected headers: "## Why" and "## What Changes". '
        "Ensure deltas are documented in specs/ using delta headers."
    )
    GUIDE_SCENARIO_FORMAT = (
        "Scenarios must use level-4 headers. Convert bullet lists into:\n"
        "#### Scenario: Short name\n- **WHEN** ...\n- **THEN** ...\n- **AND** ..."
    )


def enrich_top_level_error(message: str) -> str:
    """Append the matching remediation guide to a structural error."""
    msg = message.strip()
    if msg == ValidationMessages.CHANGE_NO_DELTAS:
        return f"{msg}. {ValidationMessages.GUIDE_NO_DELTAS}"
    if "Spec must have a Purpose section" in msg or "Spec must have a Requirements section" in msg:
        return f"{msg}. {ValidationMessages.GUIDE_MISSING_SPEC_SECTIONS}"
    if "Change must have a Why section" in msg or "Change must have a What Changes section" in msg:
        return f"{msg}. {ValidationMessages.GUIDE_MISSING_CHANGE_SECTIONS}"
    return msg


def extract_name_from_path(path: Union[str, Path]) -> str:
    """Name an item after the folder that follows ``specs`` or ``changes``.

    Paths outside that layout are named after the file stem.
    """
    parts = Path(path).parts
    for index in range(len(parts) - 1, -1, -1):
        if parts[index] in ("specs", "changes") and index < len(parts) - 1:
            return parts[index + 1]
    return Path(path).stem


def extract_requirement_text(block: RequirementBlock) -> Optional[str]:
    """First body line of a requirement block, skipping ``**Key**:`` metadata."""
    for line in block.raw.split("\n")[1:]:
        if _SCENARIO_HEADING.match(line):
            break
        stripped = line.strip()
        if not stripped or _METADATA_LINE.match(stripped):
            continue
        return stripped
    return None


class Validator:
    """Validate OpenSpec documents and produce a ``ValidationReport``."""

    def __init__(self, strict: bool = False):
        self.strict = strict

    # ------------------------------------------------------------------
    # Specs
    # ------------------------------------------------------------------

    @log_performance("validate_spec")
    def validate_spec(self, path: Union[str, Path]) -> ValidationReport:
        path = Path(path)
        name = extract_name_from_path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            return self._report(name, [ValidationIssue(IssueLevel.ERROR, "file", f"Cannot read {path}: {e}")])
        return self.validate_spec_content(name, content)

    def validate_spec_content(self, name: str, content: str) -> ValidationReport:
        issues: List[ValidationIssue] = []
        try:
            spec = MarkdownParser(content).parse_spec(name)
        except OpenSpecError as e:
            issues.append(ValidationIssue(IssueLevel.ERROR, "file", enrich_top_level_error(str(e))))
        else:
            issues.extend(self._schema_issues(spec.validate()))
            issues.extend(self._spec_rules(spec))
        return self._report(name, issues)

    def _spec_rules(self, spec: Spec) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        if len(spec.overview) < MIN_PURPOSE_LENGTH:
            issues.append(ValidationIssue(IssueLevel.WARNING, "overview", ValidationMessages.PURPOSE_TOO_BRIEF))
        for index, requirement in enumerate(spec.requirements):
            if len(requirement.text) > MAX_REQUIREMENT_TEXT_LENGTH:
                issues.append(
                    ValidationIssue(IssueLevel.INFO, f"requirements[{index}]", ValidationMessages.REQUIREMENT_TOO_LONG)
                )
            if not requirement.scenarios:
                issues.append(
                    ValidationIssue(
                        IssueLevel.WARNING,
                        f"requirements[{index}].scenarios",
                        f"{ValidationMessages.REQUIREMENT_NO_SCENARIOS}. {ValidationMessages.GUIDE_SCENARIO_FORMAT}",
                    )
                )
        return issues

    # ------------------------------------------------------------------
    # Change proposals
    # ------------------------------------------------------------------

    @log_performance("validate_change")
    def validate_change(self, path: Union[str, Path]) -> ValidationReport:
        path = Path(path)
        name = extract_name_from_path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            return self._report(name, [ValidationIssue(IssueLevel.ERROR, "file", f"Cannot read {path}: {e}")])
        return self.validate_change_content(name, content, path.parent)

    def validate_change_content(
        self,
        name: str,
        content: str,
        change_dir: Optional[Union[str, Path]] = None,
    ) -> ValidationReport:
        issues: List[ValidationIssue] = []
        try:
            change = ChangeParser(content, change_dir).parse_change_with_deltas(name)
        except OpenSpecError as e:
            issues.append(ValidationIssue(IssueLevel.ERROR, "file", enrich_top_level_error(str(e))))
        else:
            issues.extend(self._schema_issues(change.validate()))
            issues.extend(self._change_rules(change))
        return self._report(name, issues)

    def _change_rules(self, change: Change) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        for index, delta in enumerate(change.deltas):
            if len(delta.description) < MIN_DELTA_DESCRIPTION_LENGTH:
                issues.append(
                    ValidationIssue(
                        IssueLevel.WARNING,
                        f"deltas[{index}].description",
                        ValidationMessages.DELTA_DESCRIPTION_TOO_BRIEF,
                    )
                )
            if delta.operation in (DeltaOperation.ADDED, DeltaOperation.MODIFIED) and delta.requirement is None:
                issues.append(
                    ValidationIssue(
                        IssueLevel.WARNING,
                        f"deltas[{index}].requirements",
                        f"{delta.operation.value} {ValidationMessages.DELTA_MISSING_REQUIREMENTS}",
                    )
                )
        return issues

    @staticmethod
    def _schema_issues(issues: List[ValidationIssue]) -> List[ValidationIssue]:
        enriched: List[ValidationIssue] = []
        for issue in issues:
            if issue.message == ValidationMessages.CHANGE_NO_DELTAS:
                issue = ValidationIssue(issue.level, issue.path, enrich_top_level_error(issue.message))
            enriched.append(issue)
        return enriched

    # ------------------------------------------------------------------
    # Delta specs
    # ------------------------------------------------------------------

    @log_performance("validate_change_delta_specs")
    def validate_change_delta_specs(self, change_dir: Union[str, Path]) -> ValidationReport:
        """Check every ``specs/<capability>/spec.md`` of a change."""
        change_dir = Path(change_dir)
        issues: List[ValidationIssue] = []
        total_deltas = 0

        try:
            spec_files = find_delta_spec_files(change_dir)
        except OpenSpecError as e:
            issues.append(ValidationIssue(IssueLevel.ERROR, "specs", str(e)))
            spec_files = {}

        for capability, spec_file in spec_files.items():
            entry_path = f"{capability}/spec.md"
            plan = parse_delta_spec(spec_file.read_text(encoding="utf-8"))
            total_deltas += plan.operation_count

            if plan.operation_count == 0:
                present = [
                    f"## {operation.value} Requirements"
                    for operation in DeltaOperation
                    if plan.section_presence.get(operation)
                ]
                if present:
                    issues.append(
                        ValidationIssue(
                            IssueLevel.ERROR,
                            entry_path,
                            f"Delta sections {self._format_section_list(present)} were found, but no "
                            'requirement entries parsed. Ensure each section includes at least one '
                            '"### Requirement:" block (REMOVED may use bullet list syntax).',
                        )
                    )
                else:
                    issues.append(
                        ValidationIssue(
                            IssueLevel.ERROR,
                            entry_path,
                            'No delta sections found. Add headers such as "## ADDED Requirements" '
                            "or move non-delta notes outside specs/.",
                        )
                    )
                continue

            added = self._check_blocks("ADDED", plan.added, entry_path, issues)
            modified = self._check_blocks("MODIFIED", plan.modified, entry_path, issues)
            removed = self._check_duplicates("REMOVED", plan.removed, entry_path, issues)
            self._check_duplicates(
                "RENAMED FROM", [pair.from_name for pair in plan.renamed], entry_path, issues
            )
            self._check_duplicates("RENAMED TO", [pair.to_name for pair in plan.renamed], entry_path, issues)

            for name in sorted(modified & removed):
                issues.append(self._conflict(entry_path, "MODIFIED", "REMOVED", name))
            for name in sorted(modified & added):
                issues.append(self._conflict(entry_path, "MODIFIED", "ADDED", name))
            for name in sorted(added & removed):
                issues.append(self._conflict(entry_path, "ADDED", "REMOVED", name))

            for pair in plan.renamed:
                if normalize_requirement_name(pair.from_name) in modified:
                    issues.append(
                        ValidationIssue(
                            IssueLevel.ERROR,
                            entry_path,
                            f'MODIFIED references old name from RENAMED. Use new header for "{pair.to_name}"',
                        )
                    )
                if normalize_requirement_name(pair.to_name) in added:
                    issues.append(
                        ValidationIssue(
                            IssueLevel.ERROR,
                            entry_path,
                            f'RENAMED TO collides with ADDED for "{pair.to_name}"',
                        )
                    )

        if total_deltas == 0:
            issues.append(
                ValidationIssue(IssueLevel.ERROR, "file", enrich_top_level_error(ValidationMessages.CHANGE_NO_DELTAS))
            )
        return self._report(change_dir.name, issues)

    def _check_blocks(
        self,
        section: str,
        blocks: List[RequirementBlock],
        entry_path: str,
        issues: List[ValidationIssue],
    ) -> Set[str]:
        names: Set[str] = set()
        for block in blocks:
            key = block.key
            if key in names:
                issues.append(ValidationIssue(IssueLevel.ERROR, entry_path, f'Duplicate requirement in {section}: "{block.name}"'))
            names.add(key)

            text = extract_requirement_text(block)
            if text is None and not contains_shall_or_must(block.name):
                issues.append(
                    ValidationIssue(IssueLevel.ERROR, entry_path, f'{section} "{block.name}" is missing requirement text')
                )
            elif not contains_shall_or_must(block.name) and not contains_shall_or_must(text or ""):
                issues.append(
                    ValidationIssue(IssueLevel.ERROR, entry_path, f'{section} "{block.name}" must contain SHALL or MUST')
                )
            if block.scenario_count() < 1:
                issues.append(
                    ValidationIssue(
                        IssueLevel.ERROR, entry_path, f'{section} "{block.name}" must include at least one scenario'
                    )
                )
        return names

    @staticmethod
    def _check_duplicates(section: str, names: List[str], entry_path: str, issues: List[ValidationIssue]) -> Set[str]:
        seen: Set[str] = set()
        for name in names:
            key = normalize_requirement_name(name)
            if key in seen:
                issues.append(ValidationIssue(IssueLevel.ERROR, entry_path, f'Duplicate requirement in {section}: "{name}"'))
            seen.add(key)
        return seen

    @staticmethod
    def _conflict(entry_path: str, first: str, second: str, name: str) -> ValidationIssue:
        return ValidationIssue(
            IssueLevel.ERROR,
            entry_path,
            f'Requirement present in both {first} and {second}: "{name}"',
        )

    @staticmethod
    def _format_section_list(sections: List[str]) -> str:
        if len(sections) <= 1:
            return "".join(sections)
        return f"{', '.join(sections[:-1])} and {sections[-1]}"

    def _report(self, item_id: str, issues: List[ValidationIssue]) -> ValidationReport:
        report = ValidationReport.from_issues(issues, strict=self.strict)
        logger.debug("Validated %s: valid=%s %s", item_id, report.valid, report.summary)
        log_validation_report(item_id, report.valid, report.summary, strict=self.strict)
        return report
