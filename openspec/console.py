"""Terminal output and prompts shared by the command classes."""

from __future__ import annotations

from typing import Callable, List, Optional

from rich.console import Console
from rich.prompt import Confirm, Prompt

ConfirmFn = Callable[[str, bool], bool]
SelectFn = Callable[[str, List[str]], Optional[str]]


def make_console(stderr: bool = False) -> Console:
    return Console(highlight=False, soft_wrap=True, stderr=stderr)


def echo(console: Console, text: str = "", style: Optional[str] = None) -> None:
    """Print ``text`` literally; bracketed text such as ``[x]`` is not markup."""
    console.print(text, style=style, markup=False, highlight=False, emoji=False)


def rich_confirm(console: Console) -> ConfirmFn:
    def confirm(message: str, default: bool) -> bool:
        return Confirm.ask(message, default=default, console=console)

    return confirm


def rich_select(console: Console) -> SelectFn:
    def select(message: str, choices: List[str]) -> Optional[str]:
        if not choices:
            return None
        for index, choice in enumerate(choices, start=1):
            echo(console, f"  {index}. {choice}")
        answer = Prompt.ask(
            message,
            choices=[str(index) for index in range(1, len(choices) + 1)],
            default="1",
            console=console,
        )
        return choices[int(answer) - 1]

    return select
