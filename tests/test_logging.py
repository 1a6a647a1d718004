"""Tests for the structured operation log."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from sitectl.logging import StructuredLogger


def _records(logger: StructuredLogger) -> list[dict[str, object]]:
    lines = logger.path.read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


def test_operation_writes_one_record(tmp_path: Path) -> None:
    """A successful operation appends a single JSON line."""
    logger = StructuredLogger(tmp_path / "logs")

    with logger.operation(
        "start",
        args={"quiet": False, "dir": Path("/srv/blog")},
        target={"kind": "instance", "name": "blog"},
    ) as op:
        op.add_step("doctor", detail="4 probes")
        op.success("Started.", changed=1)

    (record,) = _records(logger)
    assert record["command"] == "start"
    assert record["args"] == {"quiet": False, "dir": "/srv/blog"}
    assert record["target"] == {"kind": "instance", "name": "blog"}
    assert record["steps"] == [{"name": "doctor", "status": "success", "detail": "4 probes"}]
    assert record["result"] == {"status": "success", "message": "Started.", "changed": 1}
    assert str(record["op_id"]).startswith("op-")
    assert isinstance(record["duration_ms"], int)


def test_operation_records_unhandled_exception(tmp_path: Path) -> None:
    """Exceptions are recorded as errors and re-raised."""
    logger = StructuredLogger(tmp_path / "logs")

    with pytest.raises(RuntimeError, match="boom"):
        with logger.operation("stop"):
            raise RuntimeError("boom")

    (record,) = _records(logger)
    assert record["result"] == {
        "status": "error",
        "message": "boom",
        "changed": 0,
        "errors": ["boom"],
    }


def test_explicit_error_is_not_overwritten(tmp_path: Path) -> None:
    """An error recorded before raising keeps its rc and message."""
    logger = StructuredLogger(tmp_path / "logs")

    with pytest.raises(SystemExit):
        with logger.operation("doctor") as op:
            op.error("Doctor detected environment problems.", rc=3, errors=["free-memory"])
            raise SystemExit(3)

    (record,) = _records(logger)
    assert record["result"]["rc"] == 3  # type: ignore[index]
    assert record["result"]["errors"] == ["free-memory"]  # type: ignore[index]


def test_operation_scope_warning_sanitises_context(tmp_path: Path) -> None:
    """Warnings should be recorded with JSON-safe context values."""
    logger = StructuredLogger(tmp_path / "logs")

    class Custom:
        def __str__(self) -> str:
            return "<custom>"

    with logger.operation("doctor") as op:
        op.warning(
            "warned",
            warnings=("no-instance",),
            context={"path": Path("/var/lib"), "obj": Custom(), "items": (1, 2)},
        )

    (record,) = _records(logger)
    assert record["result"] == {
        "status": "warning",
        "message": "warned",
        "changed": 0,
        "warnings": ["no-instance"],
        "context": {"path": "/var/lib", "obj": "<custom>", "items": [1, 2]},
    }


def test_structured_logger_disables_when_directory_unavailable(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Logger gracefully disables itself when log directory cannot be created."""
    log_dir = tmp_path / "logs"

    original_mkdir = Path.mkdir

    def fail_mkdir(self: Path, *args: object, **kwargs: object) -> None:
        if self == log_dir:
            raise PermissionError("no access")
        original_mkdir(self, *args, **kwargs)

    monkeypatch.setattr(Path, "mkdir", fail_mkdir)

    logger = StructuredLogger(log_dir)
    assert logger._enabled is False  # type: ignore[attr-defined]

    with logger.operation("demo", args={"foo": "bar"}) as op:
        op.success("done", changed=0)

    assert not logger.path.exists()


def test_structured_logger_disables_after_write_failure(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Write failures mark the logger disabled so subsequent writes are skipped."""
    logger = StructuredLogger(tmp_path / "logs")
    operations_path = logger._operations_log_path  # type: ignore[attr-defined]

    original_open = Path.open

    def fail_once(self: Path, *args: object, **kwargs: object) -> object:
        if self == operations_path:
            raise OSError("disk full")
        return original_open(self, *args, **kwargs)

    monkeypatch.setattr(Path, "open", fail_once)

    with logger.operation("demo") as op:
        op.success("done", changed=0)

    assert logger._enabled is False  # type: ignore[attr-defined]

    # Subsequent operations should not raise even though logger is disabled.
    with logger.operation("demo-2") as op:
        op.success("done", changed=0)
