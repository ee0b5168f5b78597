"""``openspec`` command line entry point."""

from __future__ import annotations

import logging
from typing import Optional

import typer

from . import __version__
from .archive import ArchiveCommand
from .config import is_interactive, log_file_from_env, log_level_from_env
from .console import echo, make_console, rich_select
from .errors import OpenSpecError
from .i18n import LanguageContext
from .items import ChangeCommand, ShowCommand, SpecCommand, ValidateCommand
from .listing import ListCommand, ViewCommand
from .openspec_logging import log_error_with_context, setup_logging
from .scaffold import InitCommand, UpdateCommand

logger = logging.getLogger("openspec.cli")

app = typer.Typer(
    name="openspec",
    help="AI-native system for spec-driven development",
    add_completion=False,
    no_args_is_help=True,
)
spec_app = typer.Typer(help="Manage and view OpenSpec specifications", no_args_is_help=True)
change_app = typer.Typer(help="Manage OpenSpec change proposals", no_args_is_help=True)
app.add_typer(spec_app, name="spec")
app.add_typer(change_app, name="change")


def _fail(message: str) -> None:
    echo(make_console(stderr=True), message, style="red")
    raise typer.Exit(1)


def _exit(code: int) -> None:
    if code:
        raise typer.Exit(code)


def _select():
    return rich_select(make_console(stderr=True)) if is_interactive() else None


def _version_callback(value: bool) -> None:
    if value:
        echo(make_console(), __version__)
        raise typer.Exit()


@app.callback()
def callback(
    version: bool = typer.Option(
        False, "--version", "-V", callback=_version_callback, is_eager=True, help="Show the version and exit"
    ),
) -> None:
    """Configure logging at WARNING unless OPENSPEC_LOG_LEVEL says otherwise."""
    setup_logging(log_level_from_env(), log_file_from_env())


@app.command()
def init(
    path: str = typer.Argument(".", help="Target directory"),
    tools: Optional[str] = typer.Option(
        None, "--tools", help="AI tools to configure: all, none or a comma separated list of tool ids"
    ),
) -> None:
    """Initialize OpenSpec in your project."""
    try:
        InitCommand(tools=tools).execute(path)
    except OpenSpecError as e:
        _fail(str(e))


@app.command()
def update(path: str = typer.Argument(".", help="Target directory")) -> None:
    """Update OpenSpec instruction files."""
    try:
        UpdateCommand().execute(path)
    except OpenSpecError as e:
        _fail(str(e))


@app.command("list")
def list_items(
    specs: bool = typer.Option(False, "--specs", help="List specs instead of changes"),
    changes: bool = typer.Option(False, "--changes", help="List changes explicitly (default)"),
) -> None:
    """List items (changes by default). Use --specs to list specs."""
    try:
        ListCommand().execute(".", "specs" if specs else "changes")
    except OpenSpecError as e:
        _fail(str(e))


@app.command()
def view() -> None:
    """Display an interactive dashboard of specs and changes."""
    try:
        ViewCommand().execute(".")
    except OpenSpecError as e:
        _fail(str(e))


@app.command()
def show(
    item: Optional[str] = typer.Argument(None, help="Change or spec id"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    type_: Optional[str] = typer.Option(None, "--type", help="Specify item type when ambiguous: change|spec"),
    requirements: bool = typer.Option(False, "--requirements", help="JSON only: show only requirements"),
    no_scenarios: bool = typer.Option(False, "--no-scenarios", help="JSON only: exclude scenario content"),
    requirement: Optional[int] = typer.Option(
        None, "--requirement", "-r", help="JSON only: show a specific requirement by 1-based index"
    ),
    deltas_only: bool = typer.Option(False, "--deltas-only", help="JSON only: show only deltas"),
) -> None:
    """Show a change or spec."""
    try:
        code = ShowCommand(select=_select()).execute(
            item, type_, json_output, requirements, no_scenarios, requirement, deltas_only
        )
    except OpenSpecError as e:
        _fail(str(e))
    _exit(code)


@app.command()
def validate(
    item: Optional[str] = typer.Argument(None, help="Change or spec id"),
    all_items: bool = typer.Option(False, "--all", help="Validate all changes and specs"),
    changes: bool = typer.Option(False, "--changes", help="Validate all changes"),
    specs: bool = typer.Option(False, "--specs", help="Validate all specs"),
    type_: Optional[str] = typer.Option(None, "--type", help="Specify item type when ambiguous: change|spec"),
    strict: bool = typer.Option(False, "--strict", help="Enable strict validation mode"),
    json_output: bool = typer.Option(False, "--json", help="Output validation results as JSON"),
) -> None:
    """Validate changes and specs."""
    try:
        code = ValidateCommand(select=_select()).execute(
            item, type_, all_items, changes, specs, strict, json_output
        )
    except OpenSpecError as e:
        _fail(str(e))
    _exit(code)


@app.command()
def archive(
    change_name: Optional[str] = typer.Argument(None, help="Change to archive"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompts"),
    skip_specs: bool = typer.Option(False, "--skip-specs", help="Skip spec update operations"),
    no_validate: bool = typer.Option(False, "--no-validate", help="Skip validation (not recommended)"),
    strict: bool = typer.Option(False, "--strict", help="Treat validation warnings as errors"),
) -> None:
    """Archive a completed change and update main specs."""
    messages = LanguageContext.detect()
    console = make_console()
    error_console = make_console(stderr=True)
    if is_interactive():
        command = ArchiveCommand(".", console=console, error_console=error_console, messages=messages)
    else:
        command = ArchiveCommand(
            ".",
            console=console,
            error_console=error_console,
            confirm=lambda message, default: default,
            select=lambda message, choices: None,
            messages=messages,
        )
    try:
        result = command.execute(
            change_name, yes=yes, skip_specs=skip_specs, validate=not no_validate, strict=strict
        )
    except OpenSpecError as e:
        log_error_with_context(e, {"operation": "archive", "change": change_name})
        _fail(messages.t("archive.failed", error=str(e)))
    if not result.archived:
        logger.info(result.message)
        if not result.cancelled:
            raise typer.Exit(1)


# ----------------------------------------------------------------------
# spec / change subcommands
# ----------------------------------------------------------------------


@spec_app.command("show")
def spec_show(
    spec_id: Optional[str] = typer.Argument(None, help="Spec id"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    requirements: bool = typer.Option(False, "--requirements", help="JSON only: show only requirements"),
    no_scenarios: bool = typer.Option(False, "--no-scenarios", help="JSON only: exclude scenario content"),
    requirement: Optional[int] = typer.Option(
        None, "--requirement", "-r", help="JSON only: show a specific requirement by 1-based index"
    ),
) -> None:
    """Display a specific specification."""
    try:
        code = SpecCommand(select=_select()).show(spec_id, json_output, requirements, no_scenarios, requirement)
    except OpenSpecError as e:
        _fail(str(e))
    _exit(code)


@spec_app.command("list")
def spec_list(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    long: bool = typer.Option(False, "--long", help="Show id and title with counts"),
) -> None:
    """List all available specifications."""
    try:
        code = SpecCommand().list(json_output, long)
    except OpenSpecError as e:
        _fail(str(e))
    _exit(code)


@spec_app.command("validate")
def spec_validate(
    spec_id: Optional[str] = typer.Argument(None, help="Spec id"),
    strict: bool = typer.Option(False, "--strict", help="Enable strict validation mode"),
    json_output: bool = typer.Option(False, "--json", help="Output validation report as JSON"),
) -> None:
    """Validate a specification structure."""
    try:
        code = SpecCommand(select=_select()).validate(spec_id, strict, json_output)
    except OpenSpecError as e:
        _fail(str(e))
    _exit(code)


@change_app.command("show")
def change_show(
    change_id: Optional[str] = typer.Argument(None, help="Change id"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    deltas_only: bool = typer.Option(False, "--deltas-only", help="Show only deltas (JSON only)"),
) -> None:
    """Show a change proposal."""
    try:
        code = ChangeCommand(select=_select()).show(change_id, json_output, deltas_only)
    except OpenSpecError as e:
        _fail(str(e))
    _exit(code)


@change_app.command("list")
def change_list(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    long: bool = typer.Option(False, "--long", help="Show id and title with counts"),
) -> None:
    """List all active changes."""
    try:
        code = ChangeCommand().list(json_output, long)
    except OpenSpecError as e:
        _fail(str(e))
    _exit(code)


@change_app.command("validate")
def change_validate(
    change_id: Optional[str] = typer.Argument(None, help="Change id"),
    strict: bool = typer.Option(False, "--strict", help="Enable strict validation mode"),
    json_output: bool = typer.Option(False, "--json", help="Output validation report as JSON"),
) -> None:
    """Validate a change proposal."""
    try:
        code = ChangeCommand(select=_select()).validate(change_id, strict, json_output)
    except OpenSpecError as e:
        _fail(str(e))
    _exit(code)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
