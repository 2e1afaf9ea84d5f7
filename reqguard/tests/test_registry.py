"""Tests for the module registry and the public import surface."""
from __future__ import annotations

import reqguard
from reqguard._registry import TIER_MODULES, collect_exports, exported_names


def test_every_module_declares_exports():
    exports = collect_exports()
    assert len(exports) == len(TIER_MODULES)
    assert [meta["module"] for meta in exports] == [name for _, name in TIER_MODULES]


def test_qualified_paths():
    qualified = {meta["qualified"] for meta in collect_exports()}
    assert "reqguard.tier1_runtime.validate" in qualified


def test_exported_names_are_public():
    for name in exported_names():
        assert name in reqguard.__all__, name
        assert hasattr(reqguard, name)


def test_logging_exports_only_get_logger():
    (logging_meta,) = [meta for meta in collect_exports() if meta["module"] == "logging"]
    assert logging_meta["exports"] == ["get_logger"]
    assert not hasattr(reqguard, "bind_context")
    assert not hasattr(reqguard, "clear_context")
