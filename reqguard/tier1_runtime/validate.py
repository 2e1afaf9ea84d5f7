"""
reqguard.tier1_runtime.validate
────────────────────────────────
Validator: owns one SchemaEngine and turns rule sets into RequestMiddleware.

A rule set maps request sections to schema descriptors:

    schema document  → compiled now, reused for every request
    str              → key of a schema registered with the engine
    callable         → called with the request; its schema compiled per request

Usage:
    validator = Validator(schemas={"person": PERSON_SCHEMA})
    validate = validator.validate

    create_user = validate({"body": "person", "query": PAGING_SCHEMA})
    create_user(request, next_)
"""
from __future__ import annotations

from typing import Any, Mapping

from reqguard.tier1_runtime.engine import SchemaEngine
from reqguard.tier1_runtime.middleware import (
    CompiledRule,
    DynamicRule,
    NamedRule,
    RequestMiddleware,
    StaticRule,
)


class Validator:
    """
    Engine options are passed through untouched; the engine raises
    ConfigurationError if it rejects them.
    """

    def __init__(self, options: Mapping[str, Any] | None = None, **engine_options: Any) -> None:
        self.engine = SchemaEngine(options, **engine_options)

    def validate(self, rules: Mapping[str, Any]) -> RequestMiddleware:
        """Build a middleware for ``rules``. Static schemas are compiled here."""
        compiled: list[CompiledRule] = []
        for section, descriptor in rules.items():
            if callable(descriptor):
                compiled.append(DynamicRule(section, descriptor))
            elif isinstance(descriptor, str):
                compiled.append(NamedRule(section, descriptor))
            else:
                compiled.append(StaticRule(section, self.engine.compile(descriptor)))
        return RequestMiddleware(self.engine, compiled)


__sdk_export__ = {
    "surface": "service",
    "exports": ["Validator"],
    "description": "Rule-set compilation into per-request JSON Schema middleware",
    "tier": "tier1_runtime",
    "module": "validate",
}
