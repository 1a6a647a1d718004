"""Command implementations.

Submodules are imported directly (``sitectl.commands.start``); this package
only re-exports the shared base class.
"""
from __future__ import annotations

from .base import Command

__all__ = ["Command"]
