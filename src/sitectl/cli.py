"""Typer-powered command line interface for ``sitectl``.

The static command surface is declared with Typer. Options only known at
startup (extension-contributed ``start`` options and doctor flags) are grafted
onto the generated click commands by :func:`build_command` before parsing.
"""
from __future__ import annotations

import textwrap
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn, TypeVar

import click
import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .commands.start import StartCommand, StartOptions
from .commands.stop import StopCommand, StopOptions
from .config import AppConfig, ConfigError, load_config
from .doctor import (
    PROBE_CATEGORY_VALUES,
    DiagnosticRequest,
    DiagnosticsFailedError,
    DoctorCommand,
    DoctorImpact,
    DoctorReport,
    ProbeStatus,
)
from .doctor.utils import (
    DOCTOR_IMPACT_MESSAGES,
    render_report,
    serialize_report,
    status_identifiers,
)
from .errors import SitectlError
from .exit_codes import ExitCode
from .extensions import load_extensions
from .logging import OperationScope, StructuredLogger
from .options import CommandOptionSink, collected_flags
from .providers import SystemdProvider
from .state import StateRegistry
from .system import System
from .ui import UI

T = TypeVar("T")

console = Console()

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    help="Path to an alternate configuration file.",
    dir_okay=False,
    file_okay=True,
)
NAME_ARGUMENT = typer.Argument(
    None,
    help="Instance name. Defaults to the instance registered for --dir.",
)
DIR_OPTION = typer.Option(
    None,
    "--dir",
    "-d",
    help="Directory used to find the instance when no name is given.",
    file_okay=False,
    dir_okay=True,
)
QUIET_OPTION = typer.Option(
    False,
    "--quiet",
    "-q",
    help="Only print warnings and errors.",
)
JSON_OPTION = typer.Option(
    False,
    "--json",
    help="Emit machine-readable JSON output.",
)

_PROBE_CATEGORY_NAMES = ", ".join(PROBE_CATEGORY_VALUES)
_PROBE_CATEGORY_SET = frozenset(PROBE_CATEGORY_VALUES)

app = typer.Typer(
    add_completion=False,
    help=textwrap.dedent(
        """
        Manage locally installed site server instances.

        Instances are registered in the sitectl state directory and run as
        systemd services. Commands target an instance by name or by the
        directory they are run from.
        """
    ).strip(),
)


@dataclass
class RuntimeContext:
    """Aggregated runtime objects shared by commands."""

    config: AppConfig
    registry: StateRegistry
    systemd_provider: SystemdProvider
    logger: StructuredLogger
    ui: UI
    system: System


def _ensure_runtime(ctx: typer.Context, config_file: Path | None) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime

    try:
        config = load_config(config_file=config_file)
    except ConfigError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=int(exc.exit_code)) from exc

    registry = StateRegistry(config.registry_dir)
    logger = StructuredLogger(config.logs_dir)
    systemd_config = config.systemd
    systemd_provider = SystemdProvider(systemctl_bin=systemd_config.systemctl_bin)
    system = System(config, registry, systemd_provider, directory=Path.cwd())
    runtime = RuntimeContext(
        config=config,
        registry=registry,
        systemd_provider=systemd_provider,
        logger=logger,
        ui=UI(console),
        system=system,
    )
    ctx.obj = runtime
    return runtime


def _get_runtime(ctx: typer.Context) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime
    return _ensure_runtime(ctx, None)


@app.callback(invoke_without_command=True)
def _root(  # noqa: D401 - Typer displays help for us, docstring optional.
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the sitectl version and exit.",
    ),
    config_file: Path | None = CONFIG_FILE_OPTION,
) -> None:
    """Entry point callback invoked for every CLI execution."""
    if version:
        console.print(f"sitectl {__version__}")
        raise typer.Exit(code=0)

    _ensure_runtime(ctx, config_file)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(code=0)


def _command_error(
    op: OperationScope,
    message: str,
    *,
    rc: int = 2,
    errors: Sequence[str] | None = None,
) -> NoReturn:
    """Emit a structured error and terminate the command."""
    console.print(f"[red]{message}[/red]")
    op.error(message, errors=list(errors or [message]), rc=rc)
    raise typer.Exit(code=rc)


def _guarded(op: OperationScope, action: Callable[[], T]) -> T:
    """Run *action*, turning a :class:`SitectlError` into a command error."""
    try:
        return action()
    except SitectlError as exc:
        _command_error(op, str(exc), rc=int(exc.exit_code))


def _target(name: str | None, directory: Path | None) -> dict[str, object]:
    target: dict[str, object] = {"kind": "instance"}
    if name is not None:
        target["name"] = name
    if directory is not None:
        target["directory"] = str(directory)
    return target


@app.command()
def start(
    ctx: typer.Context,
    name: str | None = NAME_ARGUMENT,
    directory: Path | None = DIR_OPTION,
    quiet: bool = QUIET_OPTION,
    enable: bool = typer.Option(
        False,
        "--enable",
        help="Also enable the service so it starts at boot.",
    ),
) -> None:
    """Start an instance after running its pre-start checks."""
    runtime = _get_runtime(ctx)
    runtime.system.select(name=name, directory=directory)
    options = StartOptions.from_mapping(
        {"quiet": quiet, "enable": enable, **collected_flags(ctx)}
    )
    with runtime.logger.operation(
        "start",
        args={"quiet": quiet, "enable": enable, "flags": dict(options.flags)},
        target=_target(name, directory),
    ) as op:
        started = _guarded(op, lambda: StartCommand(runtime.ui, runtime.system).run(options))
        if started:
            op.success("Instance started.", changed=1)
        else:
            op.success("Instance already running.", changed=0)


@app.command()
def stop(
    ctx: typer.Context,
    name: str | None = NAME_ARGUMENT,
    directory: Path | None = DIR_OPTION,
    quiet: bool = QUIET_OPTION,
    disable: bool = typer.Option(
        False,
        "--disable",
        help="Also disable the service so it no longer starts at boot.",
    ),
) -> None:
    """Stop a running instance."""
    runtime = _get_runtime(ctx)
    runtime.system.select(name=name, directory=directory)
    options = StopOptions(quiet=quiet, disable=disable)
    with runtime.logger.operation(
        "stop",
        args={"quiet": quiet, "disable": disable},
        target=_target(name, directory),
    ) as op:
        stopped = _guarded(op, lambda: StopCommand(runtime.ui, runtime.system).run(options))
        if stopped:
            op.success("Instance stopped.", changed=1)
        else:
            op.success("Instance already stopped.", changed=0)


@app.command()
def doctor(
    ctx: typer.Context,
    categories: list[str] | None = typer.Argument(
        None,
        help=f"Probe categories to run ({_PROBE_CATEGORY_NAMES}). Defaults to all.",
    ),
    name: str | None = typer.Option(
        None,
        "--instance",
        "-i",
        help="Instance to diagnose. Defaults to the instance registered for --dir.",
    ),
    directory: Path | None = DIR_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Run diagnostic checks against an instance and the host."""
    runtime = _get_runtime(ctx)
    runtime.system.select(name=name, directory=directory)
    requested = tuple(categories or ())
    flags = DoctorCommand.forwardable(collected_flags(ctx))
    with runtime.logger.operation(
        "doctor",
        args={"categories": list(requested), "json": json_output, "flags": flags},
        target={**_target(name, directory), "scope": "health"},
    ) as op:
        invalid = set(requested) - _PROBE_CATEGORY_SET
        if invalid:
            _command_error(
                op,
                f"Unknown probe categories: {', '.join(sorted(invalid))}. "
                f"Allowed: {_PROBE_CATEGORY_NAMES}.",
                rc=int(ExitCode.VALIDATION),
            )

        request = DiagnosticRequest(categories=requested, quiet=json_output, flags=flags)

        def _diagnose() -> DoctorReport:
            try:
                return DoctorCommand(runtime.ui, runtime.system).run(request)
            except DiagnosticsFailedError as exc:
                return exc.report

        _finish_doctor(op, runtime.ui, _guarded(op, _diagnose), json_output=json_output)


def _finish_doctor(
    op: OperationScope,
    ui: UI,
    report: DoctorReport,
    *,
    json_output: bool,
) -> None:
    payload = serialize_report(report)
    if json_output:
        console.print_json(data=payload)
    else:
        render_report(ui, report)

    summary = report.summary
    warning_ids = status_identifiers(report.results, ProbeStatus.YELLOW)
    error_ids = status_identifiers(report.results, ProbeStatus.RED)
    log_context = {"report": payload}
    impact_message = DOCTOR_IMPACT_MESSAGES.get(summary.impact, "Doctor detected issues.")

    if summary.exit_code == 0:
        if summary.status is ProbeStatus.YELLOW:
            if not json_output:
                console.print("[yellow]Doctor completed with warnings.[/yellow]")
            op.warning(
                "Doctor completed with warnings.",
                warnings=warning_ids or None,
                context=log_context,
            )
        else:
            op.success(DOCTOR_IMPACT_MESSAGES[DoctorImpact.OK], context=log_context)
        return

    if not json_output:
        console.print(f"[red]{impact_message}[/red]")
    op.error(
        impact_message,
        rc=summary.exit_code,
        errors=error_ids or None,
        warnings=warning_ids or None,
        context=log_context,
    )
    raise typer.Exit(code=summary.exit_code)


@app.command("ls")
def list_instances(
    ctx: typer.Context,
    json_output: bool = JSON_OPTION,
) -> None:
    """List registered instances and their last recorded status."""
    runtime = _get_runtime(ctx)
    with runtime.logger.operation(
        "ls",
        args={"json": json_output},
        target={"kind": "instance", "scope": "registry"},
    ) as op:
        entries = _guarded(op, runtime.registry.list_instances)
        if json_output:
            console.print_json(data={"instances": entries})
            op.success("Reported instance list as JSON.", changed=0)
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Name", style="bold")
        table.add_column("Environment")
        table.add_column("Status")
        table.add_column("Location")

        if not entries:
            table.add_row("(none)", "", "", "")
        else:
            for entry in entries:
                name = str(entry.get("name", ""))
                root = entry.get("root") or runtime.config.instance_root / name
                table.add_row(
                    name,
                    str(entry.get("environment") or runtime.config.default_environment),
                    str(entry.get("status") or "unknown"),
                    str(root),
                )

        console.print(table)
        op.success("Reported instance list.", changed=0)


def build_command(extensions: Sequence[object] | None = None) -> click.Group:
    """Return the click group with runtime-contributed options attached.

    *extensions* defaults to the installed ``sitectl.extensions`` entry points.
    """
    group = typer.main.get_command(app)
    if not isinstance(group, click.Group):
        raise TypeError(
            f"sitectl needs a Typer release whose commands are click commands; got {type(group)!r}."
        )
    if extensions is None:
        extensions = load_extensions()
    StartCommand.configure_options("start", CommandOptionSink(group.commands["start"]), extensions)
    DoctorCommand.configure_options(CommandOptionSink(group.commands["doctor"]))
    return group


def main(argv: Sequence[str] | None = None) -> None:
    """Console script entry point."""
    command = build_command()
    command(args=list(argv) if argv is not None else None, prog_name="sitectl")


__all__ = ["RuntimeContext", "app", "build_command", "main"]
