"""Doctor command infrastructure."""

from __future__ import annotations

from .command import DiagnosticRequest, DiagnosticsFailedError, DoctorCommand
from .engine import DoctorEngine
from .models import (
    PROBE_CATEGORY_VALUES,
    DoctorImpact,
    DoctorReport,
    DoctorSummary,
    ProbeContext,
    ProbeDefinition,
    ProbeExecutorOptions,
    ProbeResult,
    ProbeStatus,
    aggregate_results,
    build_report,
)
from .probes import collect_probes

__all__ = [
    "DiagnosticRequest",
    "DiagnosticsFailedError",
    "DoctorCommand",
    "DoctorEngine",
    "DoctorImpact",
    "DoctorReport",
    "DoctorSummary",
    "PROBE_CATEGORY_VALUES",
    "ProbeContext",
    "ProbeDefinition",
    "ProbeExecutorOptions",
    "ProbeResult",
    "ProbeStatus",
    "aggregate_results",
    "build_report",
    "collect_probes",
]
