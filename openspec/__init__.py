"""OpenSpec: spec-driven development for AI coding assistants."""

import importlib
import logging

__version__ = "0.1.0"

# Public names resolve lazily so that ``openspec.cli`` can read
# ``__version__`` without a circular import.
_EXPORTS = {
    "Change": "models",
    "Delta": "models",
    "DeltaOperation": "models",
    "Requirement": "models",
    "Scenario": "models",
    "Spec": "models",
    "ValidationIssue": "models",
    "ValidationReport": "models",
    "OpenSpecError": "errors",
    "ParseError": "errors",
    "DeltaValidationError": "errors",
    "WorkspaceError": "errors",
    "MarkdownParser": "markdown_parser",
    "parse_spec": "markdown_parser",
    "parse_change": "markdown_parser",
    "ChangeParser": "change_parser",
    "Validator": "validator",
    "JsonConverter": "json_converter",
    "ArchiveCommand": "archive",
    "ListCommand": "listing",
    "ViewCommand": "listing",
    "ShowCommand": "items",
    "ValidateCommand": "items",
    "SpecCommand": "items",
    "ChangeCommand": "items",
    "InitCommand": "scaffold",
    "UpdateCommand": "scaffold",
    "Workspace": "workspace",
    "WorkflowManager": "workflow",
}

__all__ = list(_EXPORTS)


def __getattr__(name):
    module = _EXPORTS.get(name)
    if module is None:
        raise AttributeError(f"module 'openspec' has no attribute {name!r}")
    value = getattr(importlib.import_module(f"{__name__}.{module}"), name)
    globals()[name] = value
    return value


logging.getLogger("openspec").addHandler(logging.NullHandler())
