"""The doctor command: runs a category of probes and fails loudly."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar

from ..commands.base import Command
from ..errors import InstanceNotFoundError, SitectlError
from ..exit_codes import ExitCode
from ..protocols import Instance, OptionSink
from .engine import DoctorEngine
from .models import DoctorReport, ProbeContext, ProbeExecutorOptions, ProbeStatus
from .probes import collect_probes
from .utils import DOCTOR_IMPACT_MESSAGES, status_identifiers


@dataclass(frozen=True)
class DiagnosticRequest:
    """What to check: probe categories, output mode and forwarded flags."""

    categories: tuple[str, ...] = ()
    quiet: bool = False
    flags: Mapping[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        """Return the flat form ``{"categories": [...], "quiet": ..., **flags}``."""
        return {"categories": list(self.categories), "quiet": self.quiet, **self.flags}


class DiagnosticsFailedError(SitectlError):
    """Raised when at least one requested probe reports a failure."""

    def __init__(self, report: DoctorReport) -> None:
        """Summarise the failing probes of *report*."""
        self.report = report
        failed = ", ".join(status_identifiers(report.results, ProbeStatus.RED))
        impact_message = DOCTOR_IMPACT_MESSAGES[report.summary.impact]
        super().__init__(f"{impact_message} Failed checks: {failed}.")
        self.exit_code = ExitCode(report.summary.exit_code or ExitCode.PROVIDER)


class DoctorCommand(Command):
    """Run diagnostic probes against the selected instance."""

    # Flags a caller may forward verbatim into a DiagnosticRequest.
    forwarded_flags: ClassVar[tuple[str, ...]] = ("check_mem",)

    @classmethod
    def configure_options(cls, sink: OptionSink, quiet: bool = False) -> OptionSink:
        """Register the doctor's own flags on *sink*."""
        sink.option(
            "check_mem",
            {
                "type": "boolean",
                "default": True,
                "description": "Check that enough free memory is available.",
            },
        )
        return sink

    @classmethod
    def forwardable(cls, values: Mapping[str, Any]) -> dict[str, Any]:
        """Return the allow-listed subset of *values*, preserving allow-list order."""
        return {name: values[name] for name in cls.forwarded_flags if name in values}

    def run(self, options: DiagnosticRequest) -> DoctorReport:
        """Run the requested probes; raise :class:`DiagnosticsFailedError` on failure."""
        config = self.system.config
        context = ProbeContext(
            config=config,
            instance=self._resolve_instance(),
            flags=dict(options.flags),
            options=ProbeExecutorOptions(max_concurrency=config.doctor.max_concurrency),
        )
        probes = collect_probes(options.categories)
        engine = DoctorEngine(context)
        report = self.ui.run(
            lambda: engine.run(probes, metadata={"categories": list(options.categories)}),
            "Running diagnostic checks",
            quiet=options.quiet,
        )
        if report.failures:
            raise DiagnosticsFailedError(report)
        return report

    def _resolve_instance(self) -> Instance | None:
        try:
            return self.system.get_instance()
        except InstanceNotFoundError:
            return None


__all__ = ["DiagnosticRequest", "DiagnosticsFailedError", "DoctorCommand"]
