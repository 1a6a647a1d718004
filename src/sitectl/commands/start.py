"""Start command: bring an instance up once every gate has passed.

The gates run in a fixed order and the first failure aborts the start with the
original exception:

1. resolve the target instance (already running means nothing to do),
2. check the instance environment,
3. warn about insecure URLs in production,
4. run the ``start`` doctor checks,
5. start the instance under a progress spinner.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..doctor import DiagnosticRequest, DoctorCommand
from ..extensions import declared_options
from ..protocols import Instance, OptionSink
from .base import Command

LOGGER = logging.getLogger(__name__)

SECURE_SCHEME = "https://"
INSECURE_URL_WARNING = (
    "Using https on all URLs is highly recommended. In production, "
    "browsers and payment providers may refuse plain http."
)


@dataclass(frozen=True)
class StartOptions:
    """Parsed ``start`` invocation.

    ``flags`` holds every option registered at runtime (doctor flags and
    extension options) that was given a value.
    """

    quiet: bool = False
    enable: bool = False
    flags: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> StartOptions:
        """Split a flat mapping of option values into known fields and flags."""
        known = {"quiet", "enable"}
        return cls(
            quiet=bool(values.get("quiet", False)),
            enable=bool(values.get("enable", False)),
            flags={key: value for key, value in values.items() if key not in known},
        )


class StartCommand(Command):
    """Start the selected instance."""

    name = "start"

    @classmethod
    def configure_options(
        cls,
        command_name: str,
        sink: OptionSink,
        extensions: Iterable[object],
        quiet: bool = False,
    ) -> OptionSink:
        """Merge extension-declared ``start`` options and doctor flags into *sink*."""
        for extension in extensions:
            options = declared_options(extension, cls.name)
            if not options:
                continue
            LOGGER.debug("Registering %d extension option(s) on %s", len(options), command_name)
            for option_name, spec in options.items():
                sink.option(option_name, spec)
        return DoctorCommand.configure_options(sink, quiet)

    def run(self, options: StartOptions) -> bool:
        """Start the instance unless it is already running or a gate fails.

        Returns ``False`` when the instance was already running.
        """
        instance = self.system.get_instance()
        if instance.is_running():
            if not options.quiet:
                self.ui.log(
                    f"Instance '{instance.name}' is already running! "
                    "Run `sitectl ls` for details.",
                    "green",
                )
            return False

        instance.check_environment()

        url = instance.config.get("url")
        self._warn_insecure_url(instance, url)

        request = DiagnosticRequest(
            categories=("start",),
            quiet=options.quiet,
            flags=DoctorCommand.forwardable(options.flags),
        )
        self.run_command(DoctorCommand, request)

        self.ui.run(
            lambda: instance.start(options.enable),
            f"Starting {instance.name}",
            quiet=options.quiet,
        )

        if options.quiet:
            return True
        admin_url = instance.config.get("admin.url") or url
        self.ui.log(f"Instance '{instance.name}' is running at {url or '(no url configured)'}")
        self.ui.log(f"Admin interface: {admin_url or '(no url configured)'}")
        return True

    def _warn_insecure_url(self, instance: Instance, url: object) -> None:
        if instance.environment != "production":
            return
        if isinstance(url, str) and not url.startswith(SECURE_SCHEME):
            self.ui.log(INSECURE_URL_WARNING, "yellow")


__all__ = ["INSECURE_URL_WARNING", "StartCommand", "StartOptions"]
