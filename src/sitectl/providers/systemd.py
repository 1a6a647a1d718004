"""Drive ``sitectl-<name>.service`` units through ``systemctl``."""
from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass

from ..errors import SitectlError

LOGGER = logging.getLogger(__name__)

UNIT_PREFIX = "sitectl-"


class SystemdError(SitectlError):
    """A ``systemctl`` call failed or could not be made."""

    def __init__(self, message: str, *, unit: str | None = None, action: str | None = None) -> None:
        super().__init__(message)
        self.unit = unit
        self.action = action


@dataclass(slots=True)
class SystemdProvider:
    """Process manager backed by systemd; one unit per instance."""

    systemctl_bin: str = "systemctl"

    def unit_name(self, instance: str) -> str:
        """Return the unit for *instance* (``blog`` -> ``sitectl-blog.service``)."""
        return f"{UNIT_PREFIX}{instance.replace('/', '-')}.service"

    def start(self, instance: str) -> None:
        self._unit_action("start", instance)

    def stop(self, instance: str) -> None:
        self._unit_action("stop", instance)

    def enable(self, instance: str) -> None:
        self._unit_action("enable", instance)

    def disable(self, instance: str) -> None:
        self._unit_action("disable", instance)

    def is_active(self, instance: str) -> bool:
        """Return ``True`` when systemd reports the unit as active.

        ``systemctl is-active`` exits non-zero for inactive units, so only a
        missing binary raises here.
        """
        result = self._systemctl("is-active", self.unit_name(instance))
        return result.returncode == 0 and result.stdout.strip() == "active"

    def _unit_action(self, action: str, instance: str) -> None:
        unit = self.unit_name(instance)
        result = self._systemctl(action, unit)
        if result.returncode != 0:
            detail = (result.stderr or "").strip() or (result.stdout or "").strip() or "no output"
            raise SystemdError(
                f"{self.systemctl_bin} {action} {unit} failed (exit {result.returncode}): {detail}",
                unit=unit,
                action=action,
            )
        LOGGER.info("%s %s", action, unit)

    def _systemctl(self, action: str, unit: str) -> subprocess.CompletedProcess[str]:
        args = [self.systemctl_bin, action, unit]
        LOGGER.debug("Running %s", " ".join(args))
        try:
            return subprocess.run(args, capture_output=True, text=True, check=False)  # noqa: S603
        except FileNotFoundError as exc:
            raise SystemdError(
                f"{self.systemctl_bin} not found: {exc}", unit=unit, action=action
            ) from exc


__all__ = ["SystemdError", "SystemdProvider", "UNIT_PREFIX"]
