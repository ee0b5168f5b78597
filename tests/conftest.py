"""Shared fixtures for the OpenSpec test suite."""

import io
import logging
from pathlib import Path

import pytest
from rich.console import Console

from openspec.i18n import LanguageContext
from openspec.openspec_logging import performance_monitor


VALID_SPEC = """# auth Specification

## Purpose
Authentication lets users prove who they are before they reach protected resources.

## Requirements

### Requirement: User Login
The system SHALL authenticate users with email and password.

#### Scenario: Valid credentials
- **WHEN** a user submits valid credentials
- **THEN** a session is created
"""

VALID_PROPOSAL = """# Change: Add two-factor authentication

## Why
Accounts protected by passwords alone are vulnerable to credential stuffing attacks.

## What Changes
- **auth:** Add two-factor authentication to the login flow
"""

VALID_DELTA = """## ADDED Requirements

### Requirement: Two-Factor Authentication
Users MUST provide a one-time code after their password.

#### Scenario: OTP required
- **WHEN** valid credentials are provided
- **THEN** an OTP challenge is shown
"""


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def output_of(console: Console) -> str:
    return console.file.getvalue()


@pytest.fixture(autouse=True)
def quiet_environment(monkeypatch):
    """English messages, no prompts and a clean metrics store for every test."""
    monkeypatch.setenv("OPENSPEC_LANG", "en")
    monkeypatch.setenv("OPEN_SPEC_INTERACTIVE", "0")
    monkeypatch.delenv("OPENSPEC_PROJECT_ROOT", raising=False)
    monkeypatch.delenv("OPENSPEC_LOG_LEVEL", raising=False)
    monkeypatch.delenv("OPENSPEC_LOG_FILE", raising=False)
    performance_monitor.reset()
    yield
    performance_monitor.reset()
    root = logging.getLogger("openspec")
    for handler in list(root.handlers):
        if not isinstance(handler, logging.NullHandler):
            root.removeHandler(handler)
            handler.close()
    root.propagate = True
    root.setLevel(logging.NOTSET)


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=200, highlight=False, soft_wrap=True)


@pytest.fixture
def error_console():
    return Console(file=io.StringIO(), width=200, highlight=False, soft_wrap=True)


@pytest.fixture
def messages():
    return LanguageContext("en")


@pytest.fixture
def project(tmp_path):
    """An initialized project with no specs or changes."""
    for directory in ("openspec/specs", "openspec/changes/archive"):
        (tmp_path / directory).mkdir(parents=True)
    return tmp_path


@pytest.fixture
def populated_project(project):
    """A project with the ``auth`` spec and an ``add-2fa`` change touching it."""
    write(project / "openspec/specs/auth/spec.md", VALID_SPEC)
    change = project / "openspec/changes/add-2fa"
    write(change / "proposal.md", VALID_PROPOSAL)
    write(change / "specs/auth/spec.md", VALID_DELTA)
    write(change / "tasks.md", "## 1. Implementation\n- [x] 1.1 Add OTP model\n- [ ] 1.2 Wire login flow\n")
    return project
