"""Tests for merging extension and doctor options into a command."""
from __future__ import annotations

import click
import pytest
from click.testing import CliRunner
from fakes import FakeSink

from sitectl.commands.start import StartCommand
from sitectl.doctor import DoctorCommand
from sitectl.extensions import Extension
from sitectl.options import CommandOptionSink, OptionSpec, collected_flags


def test_declared_options_are_registered_once_before_doctor_flags() -> None:
    """``foo`` is registered once and the doctor hook runs once."""
    sink = FakeSink()
    extensions = [{"config": {"options": {"start": {"foo": {}}}}}, {}]

    returned = StartCommand.configure_options("start", sink, extensions)

    assert returned is sink
    assert sink.names == ["foo", "check_mem"]


def test_zero_extensions_still_get_doctor_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    """With no extensions the doctor hook is still invoked exactly once."""
    calls: list[bool] = []
    original = DoctorCommand.configure_options.__func__  # type: ignore[attr-defined]

    def counting(cls: type[DoctorCommand], sink: FakeSink, quiet: bool = False) -> FakeSink:
        calls.append(quiet)
        return original(cls, sink, quiet)

    monkeypatch.setattr(DoctorCommand, "configure_options", classmethod(counting))
    sink = FakeSink()

    StartCommand.configure_options("start", sink, [], quiet=True)

    assert calls == [True]
    assert sink.names == ["check_mem"]


def test_registration_order_follows_extension_order() -> None:
    """Options keep the order of extensions and of each declaration."""
    sink = FakeSink()
    extensions = [
        Extension("mailer", {"options": {"start": {"smtp-host": {}, "smtp-port": {}}}}),
        Extension("themes", {"options": {"stop": {"ignored": {}}}}),
        Extension("cdn", {"options": {"start": {"cdn": {"type": "boolean"}}}}),
    ]

    StartCommand.configure_options("start", sink, extensions)

    assert sink.names == ["smtp-host", "smtp-port", "cdn", "check_mem"]


def test_specs_are_passed_through_untouched() -> None:
    """The aggregator does not interpret option specs."""
    spec = {"type": "number", "default": 3, "custom": object()}
    sink = FakeSink()

    StartCommand.configure_options("start", sink, [{"config": {"options": {"start": {"n": spec}}}}])

    assert sink.registered[0] == ("n", spec)


def test_malformed_declarations_are_skipped() -> None:
    """Extensions whose options are not mappings contribute nothing."""
    sink = FakeSink()
    extensions = [
        {"config": None},
        {"config": {"options": ["foo"]}},
        {"config": {"options": {"start": "foo"}}},
        object(),
    ]

    StartCommand.configure_options("start", sink, extensions)

    assert sink.names == ["check_mem"]


def _echo_command() -> click.Command:
    @click.command()
    @click.pass_context
    def cmd(ctx: click.Context) -> None:
        click.echo(repr(sorted(collected_flags(ctx).items())))

    return cmd


def test_command_option_sink_adds_click_options() -> None:
    """Registered options parse into ``ctx.meta`` rather than kwargs."""
    command = _echo_command()
    sink = CommandOptionSink(command)
    StartCommand.configure_options(
        "start",
        sink,
        [{"config": {"options": {"start": {"foo": {"alias": "f"}}}}}],
    )

    result = CliRunner().invoke(command, ["-f", "bar", "--no-check-mem"])

    assert result.exit_code == 0, result.output
    assert result.output.strip() == repr([("check_mem", False), ("foo", "bar")])
    assert sink.registered == ["foo", "check_mem"]


def test_command_option_sink_ignores_duplicate_names() -> None:
    """A second registration of the same option is dropped."""
    command = _echo_command()
    sink = CommandOptionSink(command)

    sink.option("foo", {}).option("foo", {"type": "boolean"})

    assert [param.name for param in command.params] == ["foo"]


def test_option_spec_normalises_declarations() -> None:
    """Specs infer booleans from defaults and accept ``description`` as help."""
    spec = OptionSpec.from_declaration("check-disk", {"default": False, "description": "Disk"})

    assert spec.type == "boolean"
    assert spec.help == "Disk"
    assert spec.dest == "check_disk"
    assert spec.declarations() == ["check_disk", "--check-disk/--no-check-disk"]
    assert OptionSpec.from_declaration("foo", True) == OptionSpec(name="foo")


def test_array_options_collect_lists() -> None:
    """``array`` options may repeat and are stored as lists."""
    command = _echo_command()
    CommandOptionSink(command).option("tag", {"type": "array"})

    result = CliRunner().invoke(command, ["--tag", "a", "--tag", "b"])

    assert result.exit_code == 0, result.output
    assert result.output.strip() == repr([("tag", ["a", "b"])])
