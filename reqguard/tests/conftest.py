"""
reqguard test configuration.

Tests run with error reporting disabled and library defaults pinned.
Override by setting environment variables before running pytest.
"""
from __future__ import annotations

import os

import pytest

# ── Pin defaults for all tests ─────────────────────────────────────────────
# These must be set before any reqguard modules are imported.

os.environ.setdefault("REQGUARD_ERROR_BACKEND", "none")
os.environ.setdefault("REQGUARD_DEFAULT_DRAFT", "draft7")
os.environ.setdefault("REQGUARD_ALL_ERRORS", "true")
os.environ.setdefault("REQGUARD_FORMAT_CHECK", "true")
os.environ.setdefault("REQGUARD_STRICT_SCHEMAS", "true")


# ── Fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def reset_config():
    """
    Clear the cached config between tests so env changes made with
    monkeypatch never leak into the next test.
    """
    from reqguard.tier0_core.config import _reset_config

    _reset_config()
    yield
    _reset_config()


@pytest.fixture
def person_schema():
    """Object schema requiring a string ``name``."""
    return {
        "type": "object",
        "required": ["name"],
        "properties": {"name": {"type": "string"}},
    }


@pytest.fixture
def completion():
    """An error-first completion callback that records every call."""

    class Completion:
        def __init__(self) -> None:
            self.calls: list[tuple] = []

        def __call__(self, *args):
            self.calls.append(args)
            return "next-called"

        @property
        def error(self):
            assert len(self.calls) == 1, f"expected one call, got {self.calls!r}"
            return self.calls[0][0] if self.calls[0] else None

    return Completion()
