"""Base class shared by commands that can invoke each other."""
from __future__ import annotations

from typing import Any, Protocol

from ..protocols import UI, Registry


class CommandFactory(Protocol):
    """Anything constructible the way commands are."""

    def __call__(self, ui: UI, system: Registry) -> Command: ...


class Command:
    """A unit of CLI behaviour operating on a UI and a System.

    Commands never read process state (``sys.argv``, the working directory);
    everything arrives through the constructor or ``run``.
    """

    def __init__(self, ui: UI, system: Registry) -> None:
        """Bind the command to its collaborators."""
        self.ui = ui
        self.system = system

    def run(self, options: Any) -> object:
        """Execute the command."""
        raise NotImplementedError

    def run_command(self, command: CommandFactory, options: Any) -> None:
        """Run *command* as a sub-command sharing this command's UI and System."""
        command(self.ui, self.system).run(options)


__all__ = ["Command", "CommandFactory"]
