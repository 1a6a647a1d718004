"""The instance registry: ``instances.yml`` under the state directory.

Each entry is a mapping with at least a ``name``; ``root`` and
``environment`` are optional and fall back to the configured defaults. Start
and stop add ``status``, ``enabled`` and timestamp fields.

Writes go through a temporary file in the same directory followed by
``os.replace`` so a crash never leaves a half-written registry behind.
"""
from __future__ import annotations

import os
import tempfile
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from ..errors import SitectlError

INSTANCES_FILE = "instances.yml"
FILE_MODE = 0o640


class StateRegistryError(SitectlError):
    """The registry file is unreadable or an entry is missing."""


@dataclass(frozen=True)
class StateRegistry:
    root: Path

    def __post_init__(self) -> None:
        object.__setattr__(self, "root", Path(self.root).expanduser())

    @property
    def path(self) -> Path:
        return self.root / INSTANCES_FILE

    def list_instances(self) -> list[dict[str, Any]]:
        """Return every entry that has a string ``name``, in file order."""
        return [
            dict(entry)
            for entry in self._load()
            if isinstance(entry, Mapping) and isinstance(entry.get("name"), str)
        ]

    def get_instance(self, name: str) -> dict[str, Any] | None:
        return next((entry for entry in self.list_instances() if entry["name"] == name), None)

    def find_instance_by_path(self, directory: Path) -> dict[str, Any] | None:
        """Return the entry whose ``root`` contains *directory*.

        Nested roots resolve to the deepest one.
        """
        candidate = directory.expanduser().resolve()
        matches: list[tuple[int, dict[str, Any]]] = []
        for entry in self.list_instances():
            root_raw = entry.get("root")
            if not isinstance(root_raw, str) or not root_raw.strip():
                continue
            root = Path(root_raw).expanduser().resolve()
            if candidate == root or root in candidate.parents:
                matches.append((len(root.parts), entry))
        if not matches:
            return None
        return max(matches, key=lambda match: match[0])[1]

    def update_instance(self, name: str, updates: Mapping[str, object]) -> None:
        """Merge *updates* into the entry for *name*, keeping every other entry as is."""
        entries = self._load()
        for index, entry in enumerate(entries):
            if isinstance(entry, Mapping) and entry.get("name") == name:
                entries[index] = {**entry, **updates}
                break
        else:
            raise StateRegistryError(f"Instance '{name}' not found in registry {self.path}")
        self._save(entries)

    def write_instances(self, instances: Iterable[Mapping[str, object]]) -> None:
        """Replace the registry with *instances*."""
        self._save([dict(entry) for entry in instances])

    def _load(self) -> list[object]:
        if not self.path.exists():
            return []
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise StateRegistryError(f"Failed to parse registry file {self.path}: {exc}") from exc
        except OSError as exc:
            raise StateRegistryError(f"Failed to read registry file {self.path}: {exc}") from exc
        if data is None:
            return []
        if not isinstance(data, Mapping) or not isinstance(data.get("instances", []), list):
            raise StateRegistryError(
                f"Registry file {self.path} must map 'instances' to a list."
            )
        return list(data.get("instances", []))

    def _save(self, entries: list[object]) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=f".{INSTANCES_FILE}.")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                yaml.safe_dump({"instances": entries}, handle, sort_keys=False)
            os.chmod(tmp_path, FILE_MODE)
            os.replace(tmp_path, self.path)
        finally:
            tmp_path.unlink(missing_ok=True)


__all__ = ["INSTANCES_FILE", "StateRegistry", "StateRegistryError"]
