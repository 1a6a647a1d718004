"""Discovery of third-party sitectl extensions.

Extensions are distributed as regular Python packages that declare an entry
point in the ``sitectl.extensions`` group::

    [project.entry-points."sitectl.extensions"]
    mailer = "sitectl_mailer:extension"

The referenced object is either a mapping or an object with a ``config``
attribute. sitectl only reads ``config["options"][<command>]`` from it: a
mapping of option name to option spec that is merged into that command's
options.
"""
from __future__ import annotations

import importlib.metadata
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

LOGGER = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "sitectl.extensions"


@dataclass(frozen=True)
class Extension:
    """A loaded extension and its declared configuration."""

    name: str
    config: Mapping[str, Any] = field(default_factory=dict)


def extension_config(extension: object) -> Mapping[str, Any] | None:
    """Return the ``config`` mapping of *extension*, if it declares one."""
    if isinstance(extension, Mapping):
        config = extension.get("config")
    else:
        config = getattr(extension, "config", None)
    return config if isinstance(config, Mapping) else None


def declared_options(extension: object, command: str) -> Mapping[str, Any] | None:
    """Return the option mapping *extension* declares for *command*."""
    config = extension_config(extension)
    if config is None:
        return None
    options = config.get("options")
    if not isinstance(options, Mapping):
        return None
    command_options = options.get(command)
    return command_options if isinstance(command_options, Mapping) else None


def load_extensions(group: str = ENTRY_POINT_GROUP) -> list[Extension]:
    """Load every extension declared under *group*, in entry-point order.

    Entry points that fail to import are logged and skipped so a broken
    extension cannot take the whole CLI down.
    """
    extensions: list[Extension] = []
    seen: set[str] = set()
    for ep in importlib.metadata.entry_points(group=group):
        if ep.name in seen:
            LOGGER.debug("Extension %r declared twice in %r; skipping.", ep.name, group)
            continue
        try:
            loaded = ep.load()
        except Exception:
            LOGGER.exception("Failed to load extension %r from group %r; skipping.", ep.name, group)
            continue
        seen.add(ep.name)
        extensions.append(Extension(name=ep.name, config=extension_config(loaded) or {}))
        LOGGER.debug("Loaded extension %r", ep.name)
    return extensions


__all__ = [
    "ENTRY_POINT_GROUP",
    "Extension",
    "declared_options",
    "extension_config",
    "load_extensions",
]
