"""Runs doctor probes and folds their results into a report."""

from __future__ import annotations

import logging
import time
import traceback
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

from .models import (
    DoctorImpact,
    DoctorReport,
    ProbeContext,
    ProbeDefinition,
    ProbeResult,
    ProbeStatus,
    build_report,
)

LOGGER = logging.getLogger(__name__)


def elapsed_ms(started: float) -> int:
    """Milliseconds since the ``perf_counter`` reading *started*."""
    return int((time.perf_counter() - started) * 1000)


def crashed_result(probe: ProbeDefinition, exc: Exception, duration_ms: int) -> ProbeResult:
    """Describe a probe that raised instead of returning a result."""
    label = probe.title or probe.id
    return ProbeResult(
        id=probe.id,
        status=ProbeStatus.RED,
        impact=DoctorImpact.PROVIDER,
        message=f"{label} failed unexpectedly: {exc}",
        duration_ms=duration_ms,
        data={"exception": repr(exc), "traceback": traceback.format_exc()},
        warnings=("unhandled-exception",),
    )


class DoctorEngine:
    """Run probe definitions against a single :class:`ProbeContext`.

    Probes may run on a small thread pool (``doctor.max_concurrency``) but
    results always come back in the order the probes were given.
    """

    def __init__(self, context: ProbeContext) -> None:
        """Bind the engine to *context*."""
        self._context = context

    @property
    def concurrency(self) -> int:
        return max(1, self._context.options.max_concurrency)

    def check(self, probe: ProbeDefinition) -> ProbeResult:
        """Run one probe, stamping its id and timing onto the result."""
        started = time.perf_counter()
        try:
            result = probe.run(self._context)
        except Exception as exc:
            LOGGER.exception("Doctor probe %s raised", probe.id)
            return crashed_result(probe, exc, elapsed_ms(started))
        duration = result.duration_ms if result.duration_ms is not None else elapsed_ms(started)
        return replace(result, id=probe.id, duration_ms=duration)

    def check_all(self, probes: Sequence[ProbeDefinition]) -> list[ProbeResult]:
        """Run *probes*, returning their results in the same order."""
        workers = min(len(probes), self.concurrency)
        if workers <= 1:
            return [self.check(probe) for probe in probes]
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sitectl-doctor") as pool:
            return list(pool.map(self.check, probes))

    def run(
        self,
        probes: Sequence[ProbeDefinition],
        *,
        metadata: Mapping[str, object] | None = None,
    ) -> DoctorReport:
        """Run *probes* and build the report, merging *metadata* in."""
        started = time.perf_counter()
        results = self.check_all(probes)
        instance = self._context.instance
        run_metadata: dict[str, object] = {
            "instance": instance.name if instance is not None else None,
            "checked": [result.id for result in results],
            "concurrency": self.concurrency,
            "duration_ms": elapsed_ms(started),
        }
        if metadata:
            run_metadata.update(metadata)
        return build_report(results, metadata=run_metadata)


__all__ = ["DoctorEngine", "crashed_result", "elapsed_ms"]
