"""Stop command, the idempotent counterpart of ``start``."""
from __future__ import annotations

from dataclasses import dataclass

from .base import Command


@dataclass(frozen=True)
class StopOptions:
    """Parsed ``stop`` invocation."""

    quiet: bool = False
    disable: bool = False


class StopCommand(Command):
    """Stop the selected instance."""

    name = "stop"

    def run(self, options: StopOptions) -> bool:
        """Stop the instance; returns ``False`` when it was already stopped."""
        instance = self.system.get_instance()
        if not instance.is_running():
            if not options.quiet:
                self.ui.log(f"Instance '{instance.name}' is already stopped.", "green")
            return False

        self.ui.run(
            lambda: instance.stop(options.disable),
            f"Stopping {instance.name}",
            quiet=options.quiet,
        )
        if not options.quiet:
            self.ui.log(f"Instance '{instance.name}' stopped.")
        return True


__all__ = ["StopCommand", "StopOptions"]
