"""Pytest configuration for test isolation.

Settings are read from ``SPENDING_INSIGHTS_*`` variables, and a local ``.env``
may already have been loaded into the process by a CLI test. To keep tests
hermetic, every test starts with those overrides cleared, a dummy provider
key, and ``DATABASE_URL`` unset.
"""

from __future__ import annotations

import os

import pytest


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("SPENDING_INSIGHTS_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("GROQ_API_KEY", "test-key")
