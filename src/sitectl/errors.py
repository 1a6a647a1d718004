"""Exception hierarchy shared by sitectl components."""
from __future__ import annotations

from .exit_codes import ExitCode


class SitectlError(RuntimeError):
    """Base class for errors the CLI knows how to render."""

    exit_code: ExitCode = ExitCode.PROVIDER


class InstanceNotFoundError(SitectlError):
    """Raised when a target instance cannot be resolved."""

    exit_code = ExitCode.VALIDATION


class InstanceEnvironmentError(SitectlError):
    """Raised when an instance's environment is not usable for the requested action."""

    exit_code = ExitCode.ENVIRONMENT


__all__ = ["InstanceEnvironmentError", "InstanceNotFoundError", "SitectlError"]
