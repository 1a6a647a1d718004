"""Probe registration entry point for the doctor command."""

from __future__ import annotations

import os
import socket
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

from ..errors import InstanceEnvironmentError
from ..protocols import Instance
from .models import (
    DoctorImpact,
    ProbeContext,
    ProbeDefinition,
    ProbeResult,
    ProbeStatus,
)

MEMINFO_PATH = Path("/proc/meminfo")
START_CATEGORIES: tuple[str, ...] = ("start", "doctor")


def collect_probes(categories: Iterable[str] = ()) -> Sequence[ProbeDefinition]:
    """Return the probes belonging to any of *categories* (all when empty)."""
    wanted = tuple(categories)
    return tuple(probe for probe in _all_probes() if probe.matches(wanted))


def _all_probes() -> Sequence[ProbeDefinition]:
    return (
        ProbeDefinition("instance-config", START_CATEGORIES, _probe_instance_config,
                        title="Checking instance configuration"),
        ProbeDefinition("free-memory", START_CATEGORIES, _probe_free_memory,
                        title="Checking memory availability"),
        ProbeDefinition("content-writable", START_CATEGORIES, _probe_content_writable,
                        title="Checking content directory permissions"),
        ProbeDefinition("port-available", START_CATEGORIES, _probe_port_available,
                        title="Checking port availability"),
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _no_instance(probe_id: str) -> ProbeResult:
    return ProbeResult(
        id=probe_id,
        status=ProbeStatus.YELLOW,
        impact=DoctorImpact.OK,
        message="No instance selected; check skipped.",
        warnings=("no-instance",),
    )


def _requires_instance(
    handler: Callable[[ProbeContext, Instance], ProbeResult],
) -> Callable[[ProbeContext], ProbeResult]:
    def _run(context: ProbeContext) -> ProbeResult:
        instance = context.instance
        if instance is None:
            return _no_instance(handler.__name__.removeprefix("_probe_").replace("_", "-"))
        return handler(context, instance)

    _run.__name__ = handler.__name__
    return _run


def read_available_memory_mb(path: Path = MEMINFO_PATH) -> int | None:
    """Return ``MemAvailable`` from *path* in MiB, or ``None`` when unknown."""
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return None
    for line in lines:
        key, _, rest = line.partition(":")
        if key.strip() != "MemAvailable":
            continue
        parts = rest.split()
        if not parts:
            return None
        try:
            return int(parts[0]) // 1024
        except ValueError:
            return None
    return None


# ---------------------------------------------------------------------------
# Probes
# ---------------------------------------------------------------------------


@_requires_instance
def _probe_instance_config(context: ProbeContext, instance: Instance) -> ProbeResult:
    try:
        instance.check_environment()
    except InstanceEnvironmentError as exc:
        return ProbeResult(
            id="instance-config",
            status=ProbeStatus.RED,
            impact=DoctorImpact.ENVIRONMENT,
            message=str(exc),
        )
    return ProbeResult(
        id="instance-config",
        status=ProbeStatus.GREEN,
        impact=DoctorImpact.OK,
        message=f"Config for {instance.environment} environment found.",
    )


def _probe_free_memory(context: ProbeContext) -> ProbeResult:
    if context.flag("check_mem", True) is False:
        return ProbeResult(
            id="free-memory",
            status=ProbeStatus.GREEN,
            impact=DoctorImpact.OK,
            message="Memory check skipped (--no-check-mem).",
        )
    required = context.config.doctor.min_memory_mb
    available = read_available_memory_mb(MEMINFO_PATH)
    if available is None:
        return ProbeResult(
            id="free-memory",
            status=ProbeStatus.YELLOW,
            impact=DoctorImpact.OK,
            message=f"Unable to determine available memory from {MEMINFO_PATH}.",
            warnings=("meminfo-unavailable",),
        )
    data = {"available_mb": available, "required_mb": required}
    if available < required:
        return ProbeResult(
            id="free-memory",
            status=ProbeStatus.RED,
            impact=DoctorImpact.ENVIRONMENT,
            message=(
                f"Only {available} MB of memory available; at least {required} MB "
                "is recommended."
            ),
            remediation="Free up memory or pass --no-check-mem to skip this check.",
            data=data,
        )
    return ProbeResult(
        id="free-memory",
        status=ProbeStatus.GREEN,
        impact=DoctorImpact.OK,
        message=f"{available} MB of memory available.",
        data=data,
    )


@_requires_instance
def _probe_content_writable(context: ProbeContext, instance: Instance) -> ProbeResult:
    content_dir = getattr(instance, "content_dir", None)
    if not isinstance(content_dir, Path):
        return ProbeResult(
            id="content-writable",
            status=ProbeStatus.YELLOW,
            impact=DoctorImpact.OK,
            message="Instance does not expose a content directory; check skipped.",
        )
    if not content_dir.is_dir():
        return ProbeResult(
            id="content-writable",
            status=ProbeStatus.RED,
            impact=DoctorImpact.VALIDATION,
            message=f"Content directory {content_dir} is missing.",
            remediation=f"Create {content_dir} and make it writable by the service user.",
        )
    if not os.access(content_dir, os.W_OK | os.X_OK):
        return ProbeResult(
            id="content-writable",
            status=ProbeStatus.RED,
            impact=DoctorImpact.ENVIRONMENT,
            message=f"Content directory {content_dir} is not writable.",
            remediation="Fix ownership/permissions of the content directory.",
        )
    return ProbeResult(
        id="content-writable",
        status=ProbeStatus.GREEN,
        impact=DoctorImpact.OK,
        message=f"Content directory {content_dir} is writable.",
    )


@_requires_instance
def _probe_port_available(context: ProbeContext, instance: Instance) -> ProbeResult:
    port_raw = instance.config.get("server.port")
    if port_raw is None:
        return ProbeResult(
            id="port-available",
            status=ProbeStatus.YELLOW,
            impact=DoctorImpact.OK,
            message="No server.port configured; check skipped.",
        )
    try:
        port = int(port_raw)
    except (TypeError, ValueError):
        return ProbeResult(
            id="port-available",
            status=ProbeStatus.RED,
            impact=DoctorImpact.VALIDATION,
            message=f"server.port must be an integer, got {port_raw!r}.",
        )
    host = str(instance.config.get("server.host") or "127.0.0.1")
    if instance.is_running():
        return ProbeResult(
            id="port-available",
            status=ProbeStatus.GREEN,
            impact=DoctorImpact.OK,
            message=f"Port {port} is held by the running instance.",
        )
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind((host, port))
    except OSError as exc:
        return ProbeResult(
            id="port-available",
            status=ProbeStatus.RED,
            impact=DoctorImpact.ENVIRONMENT,
            message=f"Port {port} on {host} is unavailable: {exc}",
            remediation="Stop the process using the port or change server.port.",
            data={"host": host, "port": port},
        )
    return ProbeResult(
        id="port-available",
        status=ProbeStatus.GREEN,
        impact=DoctorImpact.OK,
        message=f"Port {port} on {host} is available.",
        data={"host": host, "port": port},
    )


__all__ = ["MEMINFO_PATH", "collect_probes", "read_available_memory_mb"]
