"""Structured operation logging for sitectl.

Every CLI command opens an *operation* and records its outcome as a single JSON
line in ``<logs_dir>/operations.jsonl``. The log is best effort: if the
directory cannot be created or a write fails, the logger disables itself and
commands keep running.
"""
from __future__ import annotations

import json
import logging
import secrets
import time
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

LOGGER = logging.getLogger(__name__)

OPERATIONS_LOG_NAME = "operations.jsonl"


def to_jsonable(value: object) -> object:
    """Return a JSON-safe representation of *value*."""
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return str(value)


class OperationScope:
    """Collects steps and the final result of one command invocation."""

    def __init__(
        self,
        command: str,
        *,
        args: Mapping[str, object] | None = None,
        target: Mapping[str, object] | None = None,
    ) -> None:
        """Initialise an open scope for *command*."""
        self.command = command
        self.op_id = f"op-{datetime.now(UTC):%Y%m%dT%H%M%SZ}-{secrets.token_hex(4)}"
        self.args = dict(args or {})
        self.target = dict(target or {})
        self.steps: list[dict[str, object]] = []
        self.result: dict[str, object] | None = None
        self._started = time.perf_counter()

    def add_step(self, name: str, *, status: str = "success", detail: str | None = None) -> None:
        """Record an intermediate step."""
        step: dict[str, object] = {"name": name, "status": status}
        if detail:
            step["detail"] = detail
        self.steps.append(step)

    def success(
        self,
        message: str,
        *,
        changed: int = 0,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as successful."""
        self._finish("success", message, changed=changed, context=context)

    def warning(
        self,
        message: str,
        *,
        warnings: Sequence[str] | None = None,
        errors: Sequence[str] | None = None,
        changed: int = 0,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as completed with warnings."""
        self._finish(
            "warning",
            message,
            warnings=warnings,
            errors=errors,
            changed=changed,
            context=context,
        )

    def error(
        self,
        message: str,
        *,
        rc: int | None = None,
        errors: Sequence[str] | None = None,
        warnings: Sequence[str] | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as failed."""
        self._finish(
            "error",
            message,
            rc=rc,
            errors=list(errors) if errors else [message],
            warnings=warnings,
            context=context,
        )

    def _finish(
        self,
        status: str,
        message: str,
        *,
        rc: int | None = None,
        errors: Sequence[str] | None = None,
        warnings: Sequence[str] | None = None,
        changed: int = 0,
        context: Mapping[str, object] | None = None,
    ) -> None:
        result: dict[str, object] = {
            "status": status,
            "message": message,
            "changed": changed,
        }
        if rc is not None:
            result["rc"] = rc
        if errors:
            result["errors"] = list(errors)
        if warnings:
            result["warnings"] = list(warnings)
        if context:
            result["context"] = to_jsonable(context)
        self.result = result

    def to_record(self) -> dict[str, object]:
        """Return the JSON record written for this operation."""
        return {
            "ts": datetime.now(UTC).isoformat(),
            "op_id": self.op_id,
            "command": self.command,
            "args": to_jsonable(self.args),
            "target": to_jsonable(self.target),
            "steps": list(self.steps),
            "result": self.result or {"status": "incomplete", "message": ""},
            "duration_ms": int((time.perf_counter() - self._started) * 1000),
        }


class StructuredLogger:
    """Append-only JSONL writer for operation records."""

    def __init__(self, log_dir: Path) -> None:
        """Prepare *log_dir*, disabling the logger if it is unusable."""
        self._log_dir = log_dir
        self._operations_log_path = log_dir / OPERATIONS_LOG_NAME
        self._enabled = True
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            LOGGER.debug("Operation log disabled; cannot create %s: %s", log_dir, exc)
            self._enabled = False

    @property
    def path(self) -> Path:
        """Return the operations log path."""
        return self._operations_log_path

    @contextmanager
    def operation(
        self,
        command: str,
        *,
        args: Mapping[str, object] | None = None,
        target: Mapping[str, object] | None = None,
    ) -> Iterator[OperationScope]:
        """Open an operation scope and write its record when the block exits."""
        scope = OperationScope(command, args=args, target=target)
        try:
            yield scope
        except BaseException as exc:
            if scope.result is None:
                scope.error(str(exc) or type(exc).__name__)
            raise
        finally:
            self._write(scope.to_record())

    def _write(self, record: Mapping[str, object]) -> None:
        if not self._enabled:
            return
        try:
            with self._operations_log_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record, sort_keys=False))
                handle.write("\n")
        except OSError as exc:
            LOGGER.debug("Operation log disabled after write failure: %s", exc)
            self._enabled = False


__all__ = ["OperationScope", "StructuredLogger", "to_jsonable"]
