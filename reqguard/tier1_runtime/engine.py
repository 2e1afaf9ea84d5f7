"""
reqguard.tier1_runtime.engine
──────────────────────────────
Thin facade over the jsonschema library. Compiles schema documents into
callable validators that return a fresh ValidationResult on every call, and
keeps a table of named schemas that other schemas can ``$ref`` by key.

The engine holds no per-call state: errors are always read from the result
of the call that produced them, so one engine can be shared by every request
handler without locking. Compiling the same schema twice is wasted work but
never incorrect.

Minimal stack: jsonschema + referencing
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Union

from jsonschema import FormatChecker, validators
from jsonschema import (
    Draft4Validator,
    Draft6Validator,
    Draft7Validator,
    Draft201909Validator,
    Draft202012Validator,
)
from jsonschema.exceptions import SchemaError
from jsonschema.exceptions import ValidationError as JsonSchemaError
from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator
from pydantic import ValidationError as PydanticValidationError
from referencing import Registry, Resource
from referencing import jsonschema as referencing_jsonschema
from referencing.exceptions import Unresolvable

from reqguard.tier0_core.config import SUPPORTED_DRAFTS, get_config
from reqguard.tier0_core.errors import (
    ConfigurationError,
    SchemaCompilationError,
    SchemaNotFoundError,
)
from reqguard.tier0_core.logging import get_logger

log = get_logger(__name__)

SchemaDocument = Union[Mapping[str, Any], bool]

_DIALECTS = {
    "draft4": (Draft4Validator, referencing_jsonschema.DRAFT4),
    "draft6": (Draft6Validator, referencing_jsonschema.DRAFT6),
    "draft7": (Draft7Validator, referencing_jsonschema.DRAFT7),
    "draft2019-09": (Draft201909Validator, referencing_jsonschema.DRAFT201909),
    "draft2020-12": (Draft202012Validator, referencing_jsonschema.DRAFT202012),
}


# ── Results ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ErrorDescriptor:
    """One schema violation, located in both the instance and the schema."""
    keyword: str
    instance_path: str
    schema_path: str
    message: str
    params: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "keyword": self.keyword,
            "instance_path": self.instance_path,
            "schema_path": self.schema_path,
            "message": self.message,
            "params": dict(self.params),
        }


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one value. Truthy when the value is valid."""
    valid: bool
    errors: list[ErrorDescriptor] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.valid


def _pointer(parts: Iterable[Any]) -> str:
    return "".join(
        "/" + str(part).replace("~", "~0").replace("/", "~1") for part in parts
    )


def _describe(error: JsonSchemaError) -> ErrorDescriptor:
    # a ``false`` schema reports no keyword
    if error.validator is None:
        keyword, params = "false schema", {}
    else:
        keyword, params = str(error.validator), {error.validator: error.validator_value}
    if keyword == "required" and isinstance(error.instance, Mapping):
        for prop in error.validator_value:
            if prop not in error.instance and error.message.startswith(repr(prop)):
                params["missing_property"] = prop
                break
    return ErrorDescriptor(
        keyword=keyword,
        instance_path=_pointer(error.absolute_path),
        schema_path="#" + _pointer(error.absolute_schema_path),
        message=error.message,
        params=params,
    )


class CompiledSchema:
    """
    A schema bound to a jsonschema validator. Call it with a value to get a
    ValidationResult; the instance itself carries no errors between calls.
    """

    def __init__(self, schema: SchemaDocument, validator: Any, all_errors: bool) -> None:
        self._schema = schema
        self._validator = validator
        self._all_errors = all_errors

    @property
    def schema(self) -> SchemaDocument:
        return self._schema

    def __call__(self, instance: Any) -> ValidationResult:
        try:
            found = self._validator.iter_errors(instance)
            if self._all_errors:
                errors = [_describe(e) for e in found]
            else:
                first = next(iter(found), None)
                errors = [] if first is None else [_describe(first)]
        except Unresolvable as exc:
            raise SchemaCompilationError(
                user_message="Schema contains an unresolvable $ref.",
                detail=str(exc),
            ) from exc
        return ValidationResult(valid=not errors, errors=errors)

    def is_valid(self, instance: Any) -> bool:
        return self(instance).valid


# ── Engine options ───────────────────────────────────────────────────────────

class EngineOptions(BaseModel):
    """Accepted SchemaEngine options. Unset values fall back to ReqGuardConfig."""

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    schemas: dict[str, Union[dict[str, Any], StrictBool]] = Field(default_factory=dict)
    draft: str | None = None
    all_errors: bool | None = None
    format_check: bool | None = None
    formats: dict[str, Union[str, Callable[[Any], bool]]] = Field(default_factory=dict)
    strict: bool | None = None

    @field_validator("draft")
    @classmethod
    def validate_draft(cls, v: str | None) -> str | None:
        if v is not None and v.lower() not in SUPPORTED_DRAFTS:
            raise ValueError(f"draft must be one of {sorted(SUPPORTED_DRAFTS)}, got {v!r}")
        return v.lower() if v is not None else None

    @field_validator("formats")
    @classmethod
    def compile_formats(
        cls, v: dict[str, Union[str, Callable[[Any], bool]]]
    ) -> dict[str, Callable[[Any], bool]]:
        predicates: dict[str, Callable[[Any], bool]] = {}
        for name, predicate in v.items():
            if isinstance(predicate, str):
                try:
                    predicate = _format_predicate(re.compile(predicate))
                except re.error as exc:
                    raise ValueError(f"format {name!r} is not a valid regex: {exc}") from exc
            predicates[name] = predicate
        return predicates


def _format_predicate(regex: re.Pattern[str]) -> Callable[[Any], bool]:
    def check(value: Any) -> bool:
        return not isinstance(value, str) or regex.search(value) is not None

    return check


# ── Engine ───────────────────────────────────────────────────────────────────

class SchemaEngine:
    """
    Compiles and evaluates JSON Schemas.

    Usage::

        engine = SchemaEngine(schemas={"person": PERSON_SCHEMA})
        engine.validate("person", {"name": "Ada"}).valid   # True
        check = engine.compile({"type": "integer"})
        check("x").errors                                  # [ErrorDescriptor(...)]
    """

    def __init__(self, options: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        raw = {**(options or {}), **kwargs}
        try:
            opts = EngineOptions.model_validate(raw)
        except PydanticValidationError as exc:
            fields = {
                ".".join(str(loc) for loc in err["loc"]) or "options": err["msg"]
                for err in exc.errors()
            }
            log.error("validator.configuration_rejected", fields=sorted(fields))
            raise ConfigurationError(
                user_message="Schema engine options are invalid.",
                fields=fields,
            ) from exc

        config = get_config()
        self.options = opts
        self.draft = opts.draft or config.default_draft
        self._default_cls, self._default_spec = _DIALECTS[self.draft]
        self._all_errors = config.all_errors if opts.all_errors is None else opts.all_errors
        self._strict = config.strict_schemas if opts.strict is None else opts.strict

        format_check = config.format_check if opts.format_check is None else opts.format_check
        self._format_checker: FormatChecker | None = None
        if format_check:
            self._format_checker = FormatChecker()
            for name, predicate in opts.formats.items():
                self._format_checker.checks(name)(predicate)

        self._schemas: dict[str, SchemaDocument] = {}
        self._compiled: dict[str, CompiledSchema] = {}
        self._registry: Registry = Registry()

        for key, schema in opts.schemas.items():
            try:
                self.add_schema(schema, key=key)
            except SchemaCompilationError as exc:
                log.error("validator.configuration_rejected", schema_key=key)
                raise ConfigurationError(
                    user_message=f"Pre-registered schema {key!r} is invalid.",
                    fields={f"schemas.{key}": exc.detail},
                ) from exc

    # ── Compilation ───────────────────────────────────────────────────────────

    @property
    def registry(self) -> Registry:
        return self._registry

    def compile(self, schema: SchemaDocument) -> CompiledSchema:
        """Compile a schema document. Raises SchemaCompilationError if it is malformed."""
        validator_cls = self._check(schema)
        validator = validator_cls(
            schema,
            registry=self._registry,
            format_checker=self._format_checker,
        )
        log.debug("schema.compiled", dialect=validator_cls.__name__)
        return CompiledSchema(schema, validator, all_errors=self._all_errors)

    def _check(self, schema: Any) -> Any:
        if not isinstance(schema, (Mapping, bool)):
            raise SchemaCompilationError(
                user_message="Schema must be an object or a boolean.",
                detail=f"Got schema of type {type(schema).__name__}.",
            )
        validator_cls = validators.validator_for(schema, default=self._default_cls)
        if self._strict:
            try:
                validator_cls.check_schema(schema)
            except SchemaError as exc:
                raise SchemaCompilationError(
                    user_message="Schema is invalid against its meta-schema.",
                    detail=exc.message,
                ) from exc
        return validator_cls

    # ── Named schemas ─────────────────────────────────────────────────────────

    def add_schema(self, schema: SchemaDocument, key: str | None = None) -> None:
        """
        Register a schema under ``key``, or under its own id (``$id``, or
        ``id`` in draft 4). Registered schemas can be validated by key and
        referenced from other schemas via $ref.
        Validators compiled earlier keep the registry they were built with.
        """
        self._check(schema)
        if key is None:
            key = Resource.from_contents(schema, default_specification=self._default_spec).id()
        if not key:
            raise SchemaCompilationError(
                user_message="A schema needs a key or an id to be registered.",
            )
        if key in self._schemas:
            raise SchemaCompilationError(
                user_message=f"A schema is already registered with key {key!r}.",
            )
        self._schemas[key] = schema
        self._rebuild_registry()
        log.debug("schema.registered", schema_key=key)

    def remove_schema(self, key: str) -> None:
        if key not in self._schemas:
            raise SchemaNotFoundError(key)
        del self._schemas[key]
        self._rebuild_registry()

    def get_schema(self, key: str) -> CompiledSchema | None:
        """Return the compiled validator for ``key``, compiling it on first use."""
        compiled = self._compiled.get(key)
        if compiled is None:
            schema = self._schemas.get(key)
            if schema is None:
                return None
            registry = self._registry
            compiled = self.compile(schema)
            # a concurrent add/remove may have replaced the schema meanwhile
            if self._schemas.get(key) is schema and self._registry is registry:
                self._compiled[key] = compiled
        return compiled

    @property
    def registered_keys(self) -> tuple[str, ...]:
        return tuple(self._schemas)

    def __contains__(self, key: object) -> bool:
        return key in self._schemas

    def _rebuild_registry(self) -> None:
        resources: list[tuple[str, Resource]] = []
        for key, schema in self._schemas.items():
            resource = Resource.from_contents(schema, default_specification=self._default_spec)
            resources.append((key, resource))
            resource_id = resource.id()
            if resource_id and resource_id != key:
                resources.append((resource_id, resource))
        self._registry = Registry().with_resources(resources)
        self._compiled.clear()

    # ── Evaluation ────────────────────────────────────────────────────────────

    def validate(self, schema_or_key: SchemaDocument | str, data: Any) -> ValidationResult:
        """Validate ``data`` against a registered key or a schema document."""
        if isinstance(schema_or_key, str):
            compiled = self.get_schema(schema_or_key)
            if compiled is None:
                raise SchemaNotFoundError(schema_or_key)
        else:
            compiled = self.compile(schema_or_key)
        return compiled(data)

    @staticmethod
    def errors_text(
        errors: Iterable[ErrorDescriptor] | None,
        separator: str = ", ",
        data_var: str = "data",
    ) -> str:
        """Render descriptors as one human-readable line."""
        errors = list(errors or [])
        if not errors:
            return "No errors"
        return separator.join(
            f"{data_var}{e.instance_path}: {e.message}" for e in errors
        )


__all__ = [
    "SchemaEngine", "EngineOptions", "CompiledSchema",
    "ValidationResult", "ErrorDescriptor",
]


__sdk_export__ = {
    "surface": "service",
    "exports": ["SchemaEngine", "CompiledSchema", "ValidationResult", "ErrorDescriptor"],
    "description": "jsonschema-backed engine: compile, named schemas, per-call results",
    "tier": "tier1_runtime",
    "module": "engine",
}
