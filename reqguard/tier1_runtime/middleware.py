"""
reqguard.tier1_runtime.middleware
──────────────────────────────────
Per-request validation. A RequestMiddleware holds one compiled rule per
request section and, for every request, checks each section and hands the
outcome to an error-first completion callback:

    next_()                  # every section passed
    next_(ValidationError)   # at least one section failed

Every configured section is checked on every call, so one ValidationError
reports all failing sections at once. The request is never mutated.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable

from reqguard.tier0_core.errors import SchemaNotFoundError, ValidationError
from reqguard.tier0_core.logging import get_logger
from reqguard.tier1_runtime.engine import (
    CompiledSchema,
    ErrorDescriptor,
    SchemaDocument,
    SchemaEngine,
    ValidationResult,
)

SchemaResolver = Callable[[Any], SchemaDocument]


def read_section(request: Any, section: str) -> Any:
    """Return a request section from a mapping or an attribute; None when absent."""
    if isinstance(request, Mapping):
        return request.get(section)
    return getattr(request, section, None)


# ── Compiled rules ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class StaticRule:
    """Schema compiled once, when the rule set was built."""
    section: str
    compiled: CompiledSchema

    def run(self, engine: SchemaEngine, request: Any) -> ValidationResult:
        return self.compiled(read_section(request, self.section))


@dataclass(frozen=True)
class NamedRule:
    """Schema registered with the engine, looked up by key on every request."""
    section: str
    key: str

    def run(self, engine: SchemaEngine, request: Any) -> ValidationResult:
        compiled = engine.get_schema(self.key)
        if compiled is None:
            raise SchemaNotFoundError(self.key, section=self.section)
        return compiled(read_section(request, self.section))


@dataclass(frozen=True)
class DynamicRule:
    """Schema derived from the request itself; resolved and compiled per request."""
    section: str
    resolver: SchemaResolver

    def run(self, engine: SchemaEngine, request: Any) -> ValidationResult:
        compiled = engine.compile(self.resolver(request))
        return compiled(read_section(request, self.section))


CompiledRule = StaticRule | NamedRule | DynamicRule


# ── Middleware ───────────────────────────────────────────────────────────────

class RequestMiddleware:
    """
    Callable built by ``Validator.validate``.

    Usage::

        middleware = validator.validate({"body": USER_SCHEMA})
        middleware(request, next_)
    """

    def __init__(self, engine: SchemaEngine, rules: list[CompiledRule]) -> None:
        self.engine = engine
        self.rules = tuple(rules)

    @property
    def sections(self) -> tuple[str, ...]:
        return tuple(rule.section for rule in self.rules)

    def check(self, request: Any) -> ValidationError | None:
        """Validate every configured section; return the aggregate error, if any."""
        failures: dict[str, list[ErrorDescriptor]] = {}
        for rule in self.rules:
            result = rule.run(self.engine, request)
            if not result.valid:
                failures[rule.section] = list(result.errors)

        if not failures:
            return None

        get_logger(__name__).info(
            "request.validation_failed",
            sections=list(failures),
            error_count=sum(len(errors) for errors in failures.values()),
        )
        return ValidationError(failures)

    def __call__(self, request: Any, next_: Callable[..., Any]) -> Any:
        error = self.check(request)
        if error is not None:
            return next_(error)
        return next_()

    def __repr__(self) -> str:
        return f"RequestMiddleware(sections={self.sections!r})"


__all__ = [
    "RequestMiddleware", "StaticRule", "NamedRule", "DynamicRule",
    "CompiledRule", "read_section",
]


__sdk_export__ = {
    "surface": "service",
    "exports": ["RequestMiddleware"],
    "description": "Per-request section validation with error-first completion",
    "tier": "tier1_runtime",
    "module": "middleware",
}
