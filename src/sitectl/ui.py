"""Console output helpers built on Rich."""
from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from rich.console import Console

T = TypeVar("T")


class UI:
    """Thin wrapper over a Rich console used by every command."""

    def __init__(self, console: Console | None = None) -> None:
        """Use *console* or a fresh stdout console."""
        self.console = console or Console()

    def log(self, message: str, style: str | None = None) -> None:
        """Print *message*, optionally styled (``"yellow"``, ``"green"``...)."""
        self.console.print(message, style=style)

    def run(self, action: Callable[[], T], text: str | None = None, *, quiet: bool = False) -> T:
        """Run *action* under a spinner labelled *text*.

        The return value and any exception of *action* pass through unchanged.
        No spinner or status mark is drawn when *quiet* is set or *text* is
        empty.
        """
        if quiet or not text:
            return action()
        with self.console.status(text):
            try:
                result = action()
            except BaseException:
                self.console.print(f"[red]✖[/red] {text}")
                raise
        self.console.print(f"[green]✔[/green] {text}")
        return result


__all__ = ["UI"]
