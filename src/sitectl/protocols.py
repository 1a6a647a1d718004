"""Structural interfaces for the collaborators commands depend on.

Commands only rely on these shapes, so tests can hand in lightweight fakes
without inheriting from the concrete classes.
"""
from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from .config import AppConfig

T = TypeVar("T")


class ConfigReader(Protocol):
    """Read access to an instance's dotted-key configuration."""

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under *key*."""
        ...


class Instance(Protocol):
    """One managed installation."""

    name: str

    @property
    def environment(self) -> str:
        """Return the environment name (``development`` or ``production``)."""
        ...

    @property
    def config(self) -> ConfigReader:
        """Return the configuration for the current environment."""
        ...

    def is_running(self) -> bool:
        """Return ``True`` when the instance process is up."""
        ...

    def check_environment(self) -> None:
        """Raise when the instance cannot run in its environment."""
        ...

    def start(self, enable: bool = False) -> None:
        """Start the instance, optionally enabling it at boot."""
        ...

    def stop(self, disable: bool = False) -> None:
        """Stop the instance, optionally disabling it at boot."""
        ...


class Registry(Protocol):
    """Resolves the current target to an :class:`Instance`."""

    config: AppConfig

    def get_instance(self) -> Instance:
        """Return the selected instance or raise ``InstanceNotFoundError``."""
        ...


class UI(Protocol):
    """User-facing output."""

    def log(self, message: str, style: str | None = None) -> None:
        """Print one line."""
        ...

    def run(self, action: Callable[[], T], text: str | None = None, *, quiet: bool = False) -> T:
        """Run *action* while showing progress, returning or raising exactly as it does."""
        ...


@runtime_checkable
class OptionSink(Protocol):
    """Receiver for option registrations."""

    def option(self, name: str, spec: Mapping[str, Any]) -> OptionSink:
        """Register option *name* described by *spec* and return the sink."""
        ...


__all__ = ["ConfigReader", "Instance", "OptionSink", "Registry", "UI"]
