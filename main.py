"""MCP server exposing OpenSpec read, validate and archive tools."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.resources import TextResource

from openspec.config import OPENSPEC_DIR_NAME, PROJECT_ROOT_ENV, log_file_from_env, log_level_from_env
from openspec.openspec_logging import setup_logging
from openspec.workflow import WorkflowManager

mcp = FastMCP("openspec")


SERVER_ROOT = Path(__file__).resolve().parent


def _candidate_bases() -> List[Path]:
    cwd = Path.cwd().resolve()
    bases: List[Path] = [cwd]
    bases.extend(cwd.parents)
    if SERVER_ROOT not in bases:
        bases.append(SERVER_ROOT)
    return bases


def _locate_project_root() -> Optional[Path]:
    for base in _candidate_bases():
        if (base / OPENSPEC_DIR_NAME).is_dir():
            return base
    return None


def _resolve_root(root: Optional[str]) -> Path:
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists():
            raise ValueError(f"Provided root '{root}' does not exist.")
        return resolved

    env_root = os.getenv(PROJECT_ROOT_ENV)
    if env_root:
        env_path = Path(env_root).expanduser().resolve()
        if not env_path.exists():
            raise ValueError(
                f"Environment variable {PROJECT_ROOT_ENV} points to '{env_root}', which does not exist."
            )
        return env_path

    detected_root = _locate_project_root()
    if detected_root:
        return detected_root

    raise ValueError(
        "Unable to determine project root automatically. Provide the 'root' argument when calling the tool "
        f"or set the {PROJECT_ROOT_ENV} environment variable."
    )


def _manager(root: Optional[str]) -> WorkflowManager:
    return WorkflowManager(_resolve_root(root))


@mcp.tool()
def list_changes(root: Optional[str] = None) -> Dict[str, Any]:
    """List active changes under openspec/changes with their task progress."""

    return _manager(root).list_changes()


@mcp.tool()
def list_specs(root: Optional[str] = None) -> Dict[str, Any]:
    """List specifications under openspec/specs with requirement counts."""

    return _manager(root).list_specs()


@mcp.tool()
def show_spec(
    spec_id: str,
    requirements_only: bool = False,
    no_scenarios: bool = False,
    requirement: Optional[int] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Return a spec as JSON. `requirement` selects one requirement by 1-based index."""

    return _manager(root).show_spec(spec_id, requirements_only, no_scenarios, requirement)


@mcp.tool()
def show_change(change_id: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Return a change proposal and its deltas as JSON."""

    return _manager(root).show_change(change_id)


@mcp.tool()
def validate_item(
    item_id: str,
    item_type: Optional[str] = None,
    strict: bool = False,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Validate a change or spec. Pass item_type ('change' or 'spec') when the id is ambiguous.
    In strict mode warnings also make the item invalid."""

    return _manager(root).validate_item(item_id, item_type, strict)


@mcp.tool()
def archive_change(
    change_id: str,
    skip_specs: bool = False,
    validate: bool = True,
    strict: bool = False,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Apply a change's delta specs to openspec/specs and move it to changes/archive.
    Runs without prompts. Nothing is written when validation or a delta conflict fails;
    strict treats validation warnings as errors."""

    return _manager(root).archive_change(change_id, skip_specs=skip_specs, validate=validate, strict=strict)


@mcp.tool()
def dashboard(root: Optional[str] = None) -> Dict[str, Any]:
    """Summary of specs, active and completed changes, and task progress."""

    return _manager(root).dashboard()


def _text_resource(text: str) -> TextResource:
    return TextResource(uri="openspec://specs", name="specs", text=text, mime_type="text/plain")


@mcp.resource("openspec://specs")
def resource_specs():
    """Resource view listing the project's specifications."""

    try:
        manager = _manager(None)
    except ValueError:
        return _text_resource(
            f"No project root detected. Launch tools with a 'root' argument or set {PROJECT_ROOT_ENV}."
        )

    result = manager.list_specs()
    if "error" in result:
        return _text_resource(result["error"])
    if not result["specs"]:
        return _text_resource("No specs found.")

    lines = ["OpenSpec Specifications"]
    for spec in result["specs"]:
        lines.append(f"- {spec['id']}: {spec['requirementCount']} requirement(s)")
    return _text_resource("\n".join(lines))


if __name__ == "__main__":
    setup_logging(log_level_from_env(), log_file_from_env())
    mcp.run(transport="stdio")
