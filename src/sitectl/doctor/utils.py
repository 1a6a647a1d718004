"""Serialisation and console rendering for doctor reports."""
from __future__ import annotations

from collections.abc import Sequence

from ..logging import to_jsonable
from ..protocols import UI
from .models import DoctorImpact, DoctorReport, ProbeResult, ProbeStatus

_TAGS = {
    ProbeStatus.GREEN: "[green]PASS[/green]",
    ProbeStatus.YELLOW: "[yellow]WARN[/yellow]",
    ProbeStatus.RED: "[red]FAIL[/red]",
}
DOCTOR_IMPACT_MESSAGES = {
    DoctorImpact.OK: "Doctor run completed successfully.",
    DoctorImpact.VALIDATION: "Doctor detected configuration validation errors.",
    DoctorImpact.ENVIRONMENT: "Doctor detected environment problems.",
    DoctorImpact.PROVIDER: "Doctor detected provider/service failures.",
}


def serialize_result(result: ProbeResult) -> dict[str, object]:
    """Return the JSON form of one result; empty optional fields are left out."""
    payload: dict[str, object] = {
        "id": result.id,
        "status": result.status.value,
        "impact": result.impact.name.lower(),
        "message": result.message,
        "remediation": result.remediation,
        "duration_ms": result.duration_ms,
        "data": to_jsonable(result.data) if result.data else None,
        "warnings": list(result.warnings) or None,
    }
    return {key: value for key, value in payload.items() if value is not None}


def serialize_report(report: DoctorReport) -> dict[str, object]:
    """Convert a doctor report into the ``doctor --json`` payload."""
    summary = report.summary
    return {
        "summary": {
            "status": summary.status.value,
            "impact": summary.impact.name.lower(),
            "exit_code": summary.exit_code,
            "totals": {status.value: summary.totals.get(status, 0) for status in ProbeStatus},
        },
        "results": [serialize_result(result) for result in report.results],
        "metadata": to_jsonable(report.metadata or {}),
    }


def status_identifiers(results: Sequence[ProbeResult], status: ProbeStatus) -> list[str]:
    """Return probe ids whose result has *status*."""
    return [result.id for result in results if result.status is status]


def render_report(ui: UI, report: DoctorReport) -> None:
    """Print *report* through *ui*: a summary line, then one block per probe."""
    summary = report.summary
    counts = ", ".join(
        f"{summary.totals.get(status, 0)} {status.value}" for status in ProbeStatus
    )
    ui.log(f"Doctor summary: {_TAGS[summary.status]} ({counts}; exit {summary.exit_code})")
    if not report.results:
        ui.log("No probes were executed.")
        return
    for result in report.results:
        timing = f" [dim]({result.duration_ms} ms)[/dim]" if result.duration_ms is not None else ""
        ui.log(f"  {_TAGS[result.status]} {result.id}: {result.message}{timing}")
        if result.remediation and result.status is not ProbeStatus.GREEN:
            ui.log(f"      fix: {result.remediation}")


__all__ = [
    "DOCTOR_IMPACT_MESSAGES",
    "render_report",
    "serialize_report",
    "serialize_result",
    "status_identifiers",
]
