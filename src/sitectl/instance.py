"""Concrete instance model backed by the registry and systemd."""
from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import yaml

from .config import KNOWN_ENVIRONMENTS
from .errors import InstanceEnvironmentError
from .providers.systemd import SystemdProvider
from .state import StateRegistry


def config_filename(environment: str) -> str:
    """Return the config file name used for *environment*."""
    return f"config.{environment}.yml"


class InstanceConfig:
    """Read-only view over an instance config file addressed by dotted keys.

    The file is parsed lazily on first access and cached for the lifetime of
    the object. A missing file behaves like an empty mapping.
    """

    def __init__(self, path: Path) -> None:
        """Bind the view to *path* without reading it yet."""
        self.path = path
        self._values: dict[str, Any] | None = None

    @property
    def exists(self) -> bool:
        """Return ``True`` when the backing file is present."""
        return self.path.is_file()

    @property
    def values(self) -> dict[str, Any]:
        """Return the parsed mapping."""
        if self._values is None:
            self._values = self._load()
        return self._values

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value under dotted *key* (``"admin.url"``), or *default*."""
        current: Any = self.values
        for segment in key.split("."):
            if not isinstance(current, Mapping) or segment not in current:
                return default
            current = current[segment]
        return current

    def _load(self) -> dict[str, Any]:
        if not self.exists:
            return {}
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise InstanceEnvironmentError(
                f"Failed to parse instance config {self.path}: {exc}"
            ) from exc
        if not isinstance(data, Mapping):
            raise InstanceEnvironmentError(
                f"Instance config {self.path} must contain a mapping at the top level."
            )
        return dict(data)


class Instance:
    """A registered installation rooted at ``root``."""

    def __init__(
        self,
        name: str,
        root: Path,
        *,
        environment: str,
        registry: StateRegistry,
        process: SystemdProvider,
    ) -> None:
        """Create an instance handle; nothing is read from disk yet."""
        self.name = name
        self.root = root
        self._environment = environment
        self._registry = registry
        self._process = process
        self._config: InstanceConfig | None = None

    def __repr__(self) -> str:
        return f"Instance(name={self.name!r}, root={str(self.root)!r})"

    @property
    def environment(self) -> str:
        """Return the environment the instance runs in."""
        return self._environment

    @property
    def config(self) -> InstanceConfig:
        """Return the config view for the current environment."""
        if self._config is None:
            self._config = InstanceConfig(self.config_path(self._environment))
        return self._config

    @property
    def content_dir(self) -> Path:
        """Return the directory the server writes content into."""
        configured = self.config.get("paths.content")
        if isinstance(configured, str) and configured.strip():
            path = Path(configured).expanduser()
            return path if path.is_absolute() else self.root / path
        return self.root / "content"

    def config_path(self, environment: str) -> Path:
        """Return the config file path for *environment*."""
        return self.root / config_filename(environment)

    def is_running(self) -> bool:
        """Return ``True`` when the service unit is active."""
        return self._process.is_active(self.name)

    def check_environment(self) -> None:
        """Ensure a config file exists for the current environment.

        When only another environment is configured, the error names it so the
        operator can switch rather than guess.
        """
        if self._environment not in KNOWN_ENVIRONMENTS:
            allowed = ", ".join(KNOWN_ENVIRONMENTS)
            raise InstanceEnvironmentError(
                f"Instance '{self.name}' uses unknown environment "
                f"'{self._environment}'. Allowed: {allowed}."
            )
        if self.config_path(self._environment).is_file():
            return
        others = [
            env
            for env in KNOWN_ENVIRONMENTS
            if env != self._environment and self.config_path(env).is_file()
        ]
        if others:
            raise InstanceEnvironmentError(
                f"Instance '{self.name}' has no {self._environment} config "
                f"({config_filename(self._environment)}) but a {others[0]} config "
                f"was found. Set the instance environment to '{others[0]}' or "
                f"create {config_filename(self._environment)}."
            )
        raise InstanceEnvironmentError(
            f"Instance '{self.name}' has no config file at "
            f"{self.config_path(self._environment)}."
        )

    def start(self, enable: bool = False) -> None:
        """Start the service unit and record the new state."""
        self._process.start(self.name)
        if enable:
            self._process.enable(self.name)
        self._record_state("running", "last_started_at", enabled=True if enable else None)

    def stop(self, disable: bool = False) -> None:
        """Stop the service unit and record the new state."""
        self._process.stop(self.name)
        if disable:
            self._process.disable(self.name)
        self._record_state("stopped", "last_stopped_at", enabled=False if disable else None)

    def _record_state(self, status: str, timestamp_key: str, *, enabled: bool | None) -> None:
        updates: dict[str, object] = {
            "status": status,
            timestamp_key: datetime.now(UTC).isoformat(),
        }
        if enabled is not None:
            updates["enabled"] = enabled
        self._registry.update_instance(self.name, updates)


__all__ = ["Instance", "InstanceConfig", "config_filename"]
