"""
Console implementations of the platform collaborators.

Used by the CLI to drive a prompt cycle from a terminal.
"""

import logging
from typing import Sequence

from rich.console import Console
from rich.prompt import Prompt

from .collaborators import Choice, ChoiceStyle

logger = logging.getLogger(__name__)


class ConsoleDialogPresenter:
    """Renders dialogs as numbered choices in the terminal."""

    def __init__(self, console: Console):
        self.console = console

    async def present(self, title: str, message: str, choices: Sequence[Choice]) -> str:
        self.console.print(f"\n[bold]{title}[/bold]")
        if message:
            self.console.print(message)
        for index, choice in enumerate(choices, start=1):
            hint = " [dim](cancel)[/]" if choice.style == ChoiceStyle.CANCEL else ""
            self.console.print(f"  {index}. {choice.label}{hint}")

        answer = Prompt.ask(
            "Choose",
            console=self.console,
            choices=[str(i) for i in range(1, len(choices) + 1)],
        )
        picked = choices[int(answer) - 1]
        logger.debug(f"User picked '{picked.key}' in dialog '{title}'")
        return picked.key


class ConsoleLinkOpener:
    """Prints the URL instead of launching a store app."""

    def __init__(self, console: Console):
        self.console = console

    def open_url(self, url: str) -> None:
        self.console.print(f"[green]→[/] Opening {url}")
