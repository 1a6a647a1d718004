"""Resolution of the targeted instance."""
from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from .config import AppConfig
from .errors import InstanceNotFoundError
from .instance import Instance
from .providers.systemd import SystemdProvider
from .state import StateRegistry


class System:
    """Owns the registry, the process manager and the current target.

    The target is either an instance name or a directory; a name wins when
    both are set. Resolved instances are cached by name so every command in
    one invocation shares the same :class:`Instance` object.
    """

    def __init__(
        self,
        config: AppConfig,
        registry: StateRegistry,
        process: SystemdProvider,
        *,
        directory: Path,
        name: str | None = None,
    ) -> None:
        """Create a system targeting *name* or *directory*."""
        self.config = config
        self.registry = registry
        self.process = process
        self.directory = directory
        self.name = name
        self._instances: dict[str, Instance] = {}

    def select(self, *, name: str | None = None, directory: Path | None = None) -> None:
        """Retarget the system; arguments left as ``None`` keep their value."""
        if name is not None:
            self.name = name
        if directory is not None:
            self.directory = directory

    def get_instance(self) -> Instance:
        """Return the targeted instance or raise :class:`InstanceNotFoundError`."""
        if self.name is not None:
            entry = self.registry.get_instance(self.name)
            if entry is None:
                raise InstanceNotFoundError(f"Instance '{self.name}' not found in registry.")
        else:
            entry = self.registry.find_instance_by_path(self.directory)
            if entry is None:
                raise InstanceNotFoundError(
                    f"No instance is registered for {self.directory}. "
                    "Pass an instance name or run from an instance directory."
                )
        return self._instance_from_entry(entry)

    def _instance_from_entry(self, entry: Mapping[str, object]) -> Instance:
        name = str(entry["name"])
        cached = self._instances.get(name)
        if cached is not None:
            return cached
        root_raw = entry.get("root")
        root = (
            Path(str(root_raw)).expanduser()
            if isinstance(root_raw, str) and root_raw.strip()
            else self.config.instance_root / name
        )
        environment_raw = entry.get("environment")
        environment = (
            environment_raw.strip()
            if isinstance(environment_raw, str) and environment_raw.strip()
            else self.config.default_environment
        )
        instance = Instance(
            name,
            root,
            environment=environment,
            registry=self.registry,
            process=self.process,
        )
        self._instances[name] = instance
        return instance


__all__ = ["System"]
