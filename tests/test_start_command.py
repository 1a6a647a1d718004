"""Behavioural tests for the start orchestrator."""
from __future__ import annotations

from typing import Any

import pytest
from fakes import FakeInstance, FakeSystem, FakeUI

from sitectl.commands.start import INSECURE_URL_WARNING, StartCommand, StartOptions
from sitectl.doctor import DiagnosticRequest, DoctorCommand
from sitectl.errors import InstanceEnvironmentError


@pytest.fixture()
def doctor_calls(monkeypatch: pytest.MonkeyPatch) -> list[DiagnosticRequest]:
    """Replace the doctor with a recorder that always passes."""
    calls: list[DiagnosticRequest] = []

    def fake_run(self: DoctorCommand, options: DiagnosticRequest) -> None:
        self.ui.events.append("doctor")  # type: ignore[attr-defined]
        calls.append(options)

    monkeypatch.setattr(DoctorCommand, "run", fake_run)
    return calls


def _command(instance: FakeInstance) -> tuple[StartCommand, FakeUI]:
    ui = FakeUI(instance.events)
    return StartCommand(ui, FakeSystem(instance)), ui


def test_already_running_instance_is_a_no_op(doctor_calls: list[DiagnosticRequest]) -> None:
    """A running instance gets one log line and nothing else happens."""
    events: list[object] = []
    instance = FakeInstance(events, running=True)
    command, ui = _command(instance)

    assert command.run(StartOptions()) is False

    assert events == ["get_instance", "is_running"]
    assert doctor_calls == []
    assert ui.runs == []
    assert len(ui.logs) == 1
    assert "already running" in ui.logs[0][0]


def test_already_running_is_silent_when_quiet(doctor_calls: list[DiagnosticRequest]) -> None:
    """Quiet mode drops the informational already-running line."""
    events: list[object] = []
    command, ui = _command(FakeInstance(events, running=True))

    command.run(StartOptions(quiet=True))

    assert ui.logs == []
    assert events == ["get_instance", "is_running"]


def test_gates_run_in_order(doctor_calls: list[DiagnosticRequest]) -> None:
    """Environment check precedes diagnostics, which precede the start."""
    events: list[object] = []
    command, _ = _command(FakeInstance(events))

    assert command.run(StartOptions(enable=True)) is True

    assert events == [
        "get_instance",
        "is_running",
        "check_environment",
        "doctor",
        "ui.run",
        ("start", True),
    ]


def test_environment_failure_stops_before_diagnostics(
    doctor_calls: list[DiagnosticRequest],
) -> None:
    """A failing environment check propagates and nothing else runs."""
    events: list[object] = []
    error = InstanceEnvironmentError("no production config")
    command, ui = _command(FakeInstance(events, environment_error=error))

    with pytest.raises(InstanceEnvironmentError) as excinfo:
        command.run(StartOptions())

    assert excinfo.value is error
    assert doctor_calls == []
    assert ui.runs == []
    assert not any(isinstance(event, tuple) for event in events)


def test_insecure_production_url_warns_once(doctor_calls: list[DiagnosticRequest]) -> None:
    """Production with an http URL logs one warning and reads ``url`` once."""
    events: list[object] = []
    instance = FakeInstance(
        events,
        environment="production",
        config={"url": "http://localhost:2368"},
    )
    command, ui = _command(instance)

    command.run(StartOptions())

    assert ui.warnings == [INSECURE_URL_WARNING]
    assert "https" in ui.warnings[0]
    assert instance.config.calls.count("url") == 1


def test_secure_production_url_does_not_warn(doctor_calls: list[DiagnosticRequest]) -> None:
    """An https URL in production produces no warning."""
    events: list[object] = []
    instance = FakeInstance(
        events,
        environment="production",
        config={"url": "https://demo.example.org"},
    )
    command, ui = _command(instance)

    command.run(StartOptions())

    assert ui.warnings == []


def test_development_http_url_does_not_warn(doctor_calls: list[DiagnosticRequest]) -> None:
    """Plain http outside production is fine."""
    events: list[object] = []
    instance = FakeInstance(events, config={"url": "http://localhost:2368"})
    command, ui = _command(instance)

    command.run(StartOptions())

    assert ui.warnings == []


def test_insecure_url_warning_survives_quiet(doctor_calls: list[DiagnosticRequest]) -> None:
    """Quiet mode hides information, not warnings."""
    events: list[object] = []
    instance = FakeInstance(
        events,
        environment="production",
        config={"url": "http://localhost:2368"},
    )
    command, ui = _command(instance)

    command.run(StartOptions(quiet=True))

    assert ui.warnings == [INSECURE_URL_WARNING]
    assert ui.info == []


@pytest.mark.parametrize(("quiet", "expected_reads"), [(True, 1), (False, 2)])
def test_config_reads_per_run(
    doctor_calls: list[DiagnosticRequest],
    quiet: bool,
    expected_reads: int,
) -> None:
    """``url`` is read once; non-quiet runs also read the admin URL."""
    events: list[object] = []
    instance = FakeInstance(
        events,
        environment="production",
        config={"url": "https://demo.example.org"},
    )
    command, _ = _command(instance)

    command.run(StartOptions(quiet=quiet))

    assert len(instance.config.calls) == expected_reads
    assert instance.config.calls[0] == "url"


def test_diagnostic_request_forwards_only_known_flags(
    doctor_calls: list[DiagnosticRequest],
) -> None:
    """Only allow-listed flags reach the doctor, unmodified."""
    events: list[object] = []
    command, _ = _command(FakeInstance(events))
    options = StartOptions.from_mapping({"check_mem": False, "foo": "bar"})

    command.run(options)

    assert len(doctor_calls) == 1
    assert doctor_calls[0].as_dict() == {
        "categories": ["start"],
        "quiet": False,
        "check_mem": False,
    }


def test_diagnostic_request_follows_quiet(doctor_calls: list[DiagnosticRequest]) -> None:
    """The doctor runs quietly when the start does."""
    events: list[object] = []
    command, _ = _command(FakeInstance(events))

    command.run(StartOptions(quiet=True))

    assert doctor_calls[0].as_dict() == {"categories": ["start"], "quiet": True}


@pytest.mark.parametrize(("quiet", "expected_lines"), [(True, 0), (False, 2)])
def test_logging_volume_for_full_start(
    doctor_calls: list[DiagnosticRequest],
    quiet: bool,
    expected_lines: int,
) -> None:
    """A successful start logs two lines, or none when quiet."""
    events: list[object] = []
    instance = FakeInstance(
        events,
        config={"url": "http://localhost:2368", "admin": {"url": None}},
    )
    command, ui = _command(instance)

    command.run(StartOptions(quiet=quiet))

    assert len(ui.info) == expected_lines
    assert ("start", False) in events
    assert ui.runs == [("Starting blog", quiet)]


def test_diagnostic_failure_prevents_start(monkeypatch: pytest.MonkeyPatch) -> None:
    """The doctor's exception is the one the caller sees and start never runs."""
    error = RuntimeError("diagnostics exploded")

    def failing_run(self: DoctorCommand, options: Any) -> None:
        raise error

    monkeypatch.setattr(DoctorCommand, "run", failing_run)
    events: list[object] = []
    command, ui = _command(FakeInstance(events))

    with pytest.raises(RuntimeError) as excinfo:
        command.run(StartOptions())

    assert excinfo.value is error
    assert ui.runs == []
    assert not any(isinstance(event, tuple) for event in events)


def test_start_failure_propagates(doctor_calls: list[DiagnosticRequest]) -> None:
    """An error raised by ``instance.start`` reaches the caller unchanged."""
    error = OSError("unit failed")
    events: list[object] = []
    command, ui = _command(FakeInstance(events, start_error=error))

    with pytest.raises(OSError) as excinfo:
        command.run(StartOptions())

    assert excinfo.value is error
    assert ui.info == []


def test_start_options_from_mapping_splits_flags() -> None:
    """Known fields are lifted out and everything else becomes a flag."""
    options = StartOptions.from_mapping({"quiet": 1, "enable": True, "check_mem": False})

    assert options.quiet is True
    assert options.enable is True
    assert dict(options.flags) == {"check_mem": False}
