"""Exception types raised by the OpenSpec engine."""

from __future__ import annotations


class OpenSpecError(Exception):
    """Base class for user-facing OpenSpec failures."""


class ParseError(OpenSpecError, ValueError):
    """A document is missing a required section."""


class DeltaValidationError(OpenSpecError, ValueError):
    """A delta operation cannot be resolved against the target spec."""


class WorkspaceError(OpenSpecError, RuntimeError):
    """Expected directories or items are missing from the project."""


class ToolSelectionError(OpenSpecError, ValueError):
    """The requested AI tool selection is invalid."""
