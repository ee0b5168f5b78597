"""Data models for OpenSpec documents.

This module contains the document model parsed from markdown (specs,
requirements, scenarios, changes and deltas), the structural rules each
object enforces through ``validate()``, and the small value types used by
the validator and the archive workflow.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .config import (
    FORMAT_VERSION,
    MAX_DELTAS_PER_CHANGE,
    MAX_WHY_SECTION_LENGTH,
    MIN_WHY_SECTION_LENGTH,
)

_NORMATIVE_KEYWORD = re.compile(r"\b(SHALL|MUST)\b")


def contains_shall_or_must(text: str) -> bool:
    """Return True when ``text`` contains the literal SHALL or MUST token."""
    return bool(_NORMATIVE_KEYWORD.search(text or ""))


class DeltaOperation(str, Enum):
    """Kinds of requirement operations a change can carry."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    REMOVED = "REMOVED"
    RENAMED = "RENAMED"


class IssueLevel(str, Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


@dataclass(slots=True)
class ValidationIssue:
    """One finding produced while validating a document."""

    level: IssueLevel
    path: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"level": self.level.value, "path": self.path, "message": self.message}

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "ValidationIssue":
        return cls(level=IssueLevel(data["level"]), path=data["path"], message=data["message"])


def _error(path: str, message: str) -> ValidationIssue:
    return ValidationIssue(IssueLevel.ERROR, path, message)


def _warning(path: str, message: str) -> ValidationIssue:
    return ValidationIssue(IssueLevel.WARNING, path, message)


def _join(prefix: str, key: Any) -> str:
    return f"{prefix}.{key}" if prefix else str(key)


@dataclass(slots=True)
class Scenario:
    """A single acceptance example attached to a requirement."""

    raw_text: str

    def to_dict(self) -> Dict[str, str]:
        return {"rawText": self.raw_text}

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "Scenario":
        return cls(raw_text=data["rawText"])

    def validate(self, path: str = "") -> List[ValidationIssue]:
        if not self.raw_text.strip():
            return [_error(_join(path, "rawText"), "Scenario text cannot be empty")]
        return []


@dataclass(slots=True)
class Requirement:
    """A normative statement with its scenarios, in document order."""

    text: str
    scenarios: List[Scenario] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "scenarios": [scenario.to_dict() for scenario in self.scenarios],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Requirement":
        return cls(
            text=data["text"],
            scenarios=[Scenario.from_dict(item) for item in data.get("scenarios", [])],
        )

    def validate(self, path: str = "") -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        if not self.text.strip():
            issues.append(_error(_join(path, "text"), "Requirement text cannot be empty"))
        elif not contains_shall_or_must(self.text):
            issues.append(_error(_join(path, "text"), "Requirement must contain SHALL or MUST keyword"))
        if not self.scenarios:
            issues.append(_error(_join(path, "scenarios"), "Requirement must have at least one scenario"))
        for index, scenario in enumerate(self.scenarios):
            issues.extend(scenario.validate(_join(path, f"scenarios.{index}")))
        return issues


@dataclass(slots=True)
class Spec:
    """A capability specification parsed from ``specs/<name>/spec.md``."""

    name: str
    overview: str
    requirements: List[Requirement] = field(default_factory=list)
    metadata: Dict[str, Any] = field(
        default_factory=lambda: {"version": FORMAT_VERSION, "format": "openspec"}
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "overview": self.overview,
            "requirements": [requirement.to_dict() for requirement in self.requirements],
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Spec":
        return cls(
            name=data["name"],
            overview=data["overview"],
            requirements=[Requirement.from_dict(item) for item in data.get("requirements", [])],
            metadata=dict(data.get("metadata") or {"version": FORMAT_VERSION, "format": "openspec"}),
        )

    def validate(self) -> List[ValidationIssue]:
        """Structural rules for a parsed spec."""
        issues: List[ValidationIssue] = []
        if not self.name.strip():
            issues.append(_error("name", "Spec name cannot be empty"))
        if not self.overview.strip():
            issues.append(_error("overview", "Purpose section cannot be empty"))
        if not self.requirements:
            issues.append(_error("requirements", "Spec must have at least one requirement"))
        for index, requirement in enumerate(self.requirements):
            issues.extend(requirement.validate(f"requirements.{index}"))
        return issues


@dataclass(slots=True)
class RenamePair:
    from_name: str
    to_name: str

    def to_dict(self) -> Dict[str, str]:
        return {"from": self.from_name, "to": self.to_name}

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "RenamePair":
        return cls(from_name=data["from"], to_name=data["to"])


@dataclass(slots=True)
class Delta:
    """One capability-scoped entry of a change."""

    spec: str
    operation: DeltaOperation
    description: str
    requirement: Optional[Requirement] = None
    rename: Optional[RenamePair] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "spec": self.spec,
            "operation": self.operation.value,
            "description": self.description,
        }
        if self.requirement is not None:
            data["requirement"] = self.requirement.to_dict()
        if self.rename is not None:
            data["rename"] = self.rename.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Delta":
        requirement = data.get("requirement")
        rename = data.get("rename")
        return cls(
            spec=data["spec"],
            operation=DeltaOperation(data["operation"]),
            description=data["description"],
            requirement=Requirement.from_dict(requirement) if requirement else None,
            rename=RenamePair.from_dict(rename) if rename else None,
        )

    def validate(self, path: str = "") -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        if not self.spec.strip():
            issues.append(_error(_join(path, "spec"), "Spec name cannot be empty"))
        if not self.description.strip():
            issues.append(_error(_join(path, "description"), "Delta description cannot be empty"))
        # removed requirements only carry their header, so the body rules do not apply
        if self.requirement is not None and self.operation in (DeltaOperation.ADDED, DeltaOperation.MODIFIED):
            issues.extend(self.requirement.validate(_join(path, "requirement")))
        return issues


@dataclass(slots=True)
class Change:
    """A proposed change parsed from ``changes/<name>/proposal.md``."""

    name: str
    why: str
    what_changes: str
    deltas: List[Delta] = field(default_factory=list)
    metadata: Dict[str, Any] = field(
        default_factory=lambda: {"version": FORMAT_VERSION, "format": "openspec-change"}
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "why": self.why,
            "whatChanges": self.what_changes,
            "deltas": [delta.to_dict() for delta in self.deltas],
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Change":
        return cls(
            name=data["name"],
            why=data["why"],
            what_changes=data["whatChanges"],
            deltas=[Delta.from_dict(item) for item in data.get("deltas", [])],
            metadata=dict(data.get("metadata") or {"version": FORMAT_VERSION, "format": "openspec-change"}),
        )

    def validate(self) -> List[ValidationIssue]:
        """Structural rules for a parsed change."""
        issues: List[ValidationIssue] = []
        if not self.name.strip():
            issues.append(_error("name", "Change name cannot be empty"))
        if len(self.why) < MIN_WHY_SECTION_LENGTH:
            issues.append(_error("why", f"Why section must be at least {MIN_WHY_SECTION_LENGTH} characters"))
        elif len(self.why) > MAX_WHY_SECTION_LENGTH:
            issues.append(_warning("why", f"Why section should not exceed {MAX_WHY_SECTION_LENGTH} characters"))
        if not self.what_changes.strip():
            issues.append(_error("whatChanges", "What Changes section cannot be empty"))
        if not self.deltas:
            issues.append(_error("deltas", "Change must have at least one delta"))
        elif len(self.deltas) > MAX_DELTAS_PER_CHANGE:
            issues.append(_warning("deltas", f"Consider splitting changes with more than {MAX_DELTAS_PER_CHANGE} deltas"))
        for index, delta in enumerate(self.deltas):
            issues.extend(delta.validate(f"deltas.{index}"))
        return issues


@dataclass(slots=True)
class ValidationReport:
    """Outcome of validating one item."""

    valid: bool
    issues: List[ValidationIssue] = field(default_factory=list)

    @classmethod
    def from_issues(cls, issues: List[ValidationIssue], strict: bool = False) -> "ValidationReport":
        report = cls(valid=True, issues=list(issues))
        summary = report.summary
        if strict:
            report.valid = summary["errors"] == 0 and summary["warnings"] == 0
        else:
            report.valid = summary["errors"] == 0
        return report

    @property
    def summary(self) -> Dict[str, int]:
        return {
            "errors": sum(1 for issue in self.issues if issue.level is IssueLevel.ERROR),
            "warnings": sum(1 for issue in self.issues if issue.level is IssueLevel.WARNING),
            "info": sum(1 for issue in self.issues if issue.level is IssueLevel.INFO),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "issues": [issue.to_dict() for issue in self.issues],
            "summary": self.summary,
        }


@dataclass(slots=True)
class TaskItem:
    """Representation of a single tasks.md checklist entry."""

    description: str
    completed: bool
    line_index: int = -1
    indent: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "completed": self.completed,
            "line": self.line_index + 1,
        }


@dataclass(slots=True)
class TaskProgress:
    """Checklist counts for one change."""

    total: int = 0
    completed: int = 0

    @property
    def remaining(self) -> int:
        return max(self.total - self.completed, 0)

    @property
    def ratio(self) -> float:
        return self.completed / self.total if self.total else 0.0

    def to_dict(self) -> Dict[str, int]:
        return {"total": self.total, "completed": self.completed}
