"""Shared pytest fixtures."""

from __future__ import annotations

import os

import pytest

from sitectl.config import ENV_PREFIX


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the caller's ``SITECTL_*`` variables out of config loading."""
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key, raising=False)
