"""Result types shared by doctor probes, the engine and the renderers."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..config import AppConfig
    from ..protocols import Instance


class ProbeStatus(str, Enum):
    """Traffic-light outcome of a probe."""

    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {ProbeStatus.GREEN: 0, ProbeStatus.YELLOW: 1, ProbeStatus.RED: 2}


class DoctorImpact(Enum):
    """What a failing probe says about the host; the value is the exit code."""

    OK = 0
    VALIDATION = 2
    ENVIRONMENT = 3
    PROVIDER = 4


# Categories name the command a probe gates. ``doctor`` runs everything.
PROBE_CATEGORY_VALUES: tuple[str, ...] = ("start", "doctor")


@dataclass(slots=True, frozen=True)
class ProbeExecutorOptions:
    max_concurrency: int = 4


@dataclass(slots=True, frozen=True)
class ProbeContext:
    """Everything a probe may look at.

    ``instance`` is ``None`` when no instance could be resolved; instance
    probes report a warning in that case. ``flags`` carries the forwarded
    command-line flags (``check_mem``...).
    """

    config: AppConfig
    instance: Instance | None
    flags: Mapping[str, Any]
    options: ProbeExecutorOptions

    def flag(self, name: str, default: Any = None) -> Any:
        """Return forwarded flag *name*, or *default*."""
        return self.flags.get(name, default)


@dataclass(slots=True, frozen=True)
class ProbeResult:
    id: str
    status: ProbeStatus
    impact: DoctorImpact
    message: str
    remediation: str | None = None
    duration_ms: int | None = None
    data: Mapping[str, Any] | None = None
    warnings: Sequence[str] = field(default_factory=tuple)

    @property
    def is_failure(self) -> bool:
        return self.status is ProbeStatus.RED


@dataclass(slots=True, frozen=True)
class ProbeDefinition:
    """A named check, the commands it gates and the callable that runs it."""

    id: str
    categories: tuple[str, ...]
    run: Callable[[ProbeContext], ProbeResult]
    title: str = ""

    def matches(self, categories: Iterable[str]) -> bool:
        """Return ``True`` when the probe belongs to any of *categories*."""
        wanted = set(categories)
        return not wanted or bool(wanted.intersection(self.categories))


@dataclass(slots=True, frozen=True)
class DoctorSummary:
    status: ProbeStatus
    impact: DoctorImpact
    exit_code: int
    totals: Mapping[ProbeStatus, int]


@dataclass(slots=True, frozen=True)
class DoctorReport:
    results: Sequence[ProbeResult]
    summary: DoctorSummary
    metadata: Mapping[str, Any] | None = None

    @property
    def failures(self) -> list[ProbeResult]:
        """Return the red results."""
        return [result for result in self.results if result.is_failure]


def aggregate_results(results: Iterable[ProbeResult]) -> DoctorSummary:
    """Summarise *results*: the worst status and the worst impact win."""
    results = list(results)
    totals = {status: 0 for status in ProbeStatus}
    for result in results:
        totals[result.status] += 1
    status = max((r.status for r in results), key=lambda s: s.severity, default=ProbeStatus.GREEN)
    impact = max((r.impact for r in results), key=lambda i: i.value, default=DoctorImpact.OK)
    return DoctorSummary(status=status, impact=impact, exit_code=impact.value, totals=totals)


def build_report(
    results: Sequence[ProbeResult],
    metadata: Mapping[str, Any] | None = None,
) -> DoctorReport:
    """Wrap *results* and their summary into a :class:`DoctorReport`."""
    return DoctorReport(results=tuple(results), summary=aggregate_results(results), metadata=metadata)
