"""
reqguard._registry
───────────────────
Internal module registry — the single source of truth for which modules
exist and what each one exports.

Adding a new module:
  1. Implement it in the right tier
  2. Add ``__sdk_export__`` to the module
  3. Add one tuple to TIER_MODULES below
"""
from __future__ import annotations

import importlib
from typing import Any

# ---------------------------------------------------------------------------
# Ordered list of (tier_path, module_name) for all implemented modules.
# ---------------------------------------------------------------------------
TIER_MODULES: list[tuple[str, str]] = [
    # tier0_core — foundational layer
    ("tier0_core", "config"),
    ("tier0_core", "logging"),
    ("tier0_core", "errors"),
    # tier1_runtime — request-level validation
    ("tier1_runtime", "engine"),
    ("tier1_runtime", "middleware"),
    ("tier1_runtime", "validate"),
]


def collect_exports() -> list[dict[str, Any]]:
    """
    Return every module's ``__sdk_export__`` metadata, in TIER_MODULES order.

    Each entry gains a ``qualified`` key with the module's import path so
    documentation tooling can link straight to it.
    """
    exports: list[dict[str, Any]] = []

    for tier_path, module_name in TIER_MODULES:
        qualified = f"reqguard.{tier_path}.{module_name}"
        mod = importlib.import_module(qualified)

        export_meta: dict[str, Any] | None = getattr(mod, "__sdk_export__", None)
        if not export_meta:
            continue
        exports.append({**export_meta, "qualified": qualified})

    return exports


def exported_names() -> list[str]:
    """Flat list of every name any module declares as exported."""
    return [name for meta in collect_exports() for name in meta["exports"]]
