"""
reqguard.tier0_core.errors
───────────────────────────
Error taxonomy for the validation adapter. Configuration and schema
compilation errors are raised; ValidationError is handed to the request
pipeline's completion callback as data and never raised by the middleware.

Raising a ReqGuardError reports it if an error backend is configured.
Select via:    REQGUARD_ERROR_BACKEND=sentry|otel|none
"""
from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from reqguard.tier1_runtime.engine import ErrorDescriptor


# ── Base error ────────────────────────────────────────────────────────────────

class ReqGuardError(Exception):
    """
    Base class for all reqguard errors. Every error has:
    - code: stable machine-readable string (snake_case)
    - user_message: safe to surface to API clients
    - detail: internal context, never shown to clients
    - status_code: HTTP status code a handler should answer with
    """

    status_code: int = 500
    code: str = "internal_error"

    def __init__(
        self,
        code: str | None = None,
        user_message: str = "An unexpected error occurred.",
        detail: str | None = None,
        **metadata: Any,
    ) -> None:
        self.code = code or self.__class__.code
        self.user_message = user_message
        self.detail = detail or user_message
        self.metadata = metadata
        super().__init__(self.detail)
        _capture(self)

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.user_message,
            }
        }


# ── Developer-facing errors ───────────────────────────────────────────────────

class ConfigurationError(ReqGuardError):
    """Engine options or a pre-registered schema were rejected at startup."""
    status_code = 500
    code = "configuration_error"

    def __init__(
        self,
        code: str | None = None,
        user_message: str = "Validator configuration is invalid.",
        fields: dict | None = None,
        **metadata: Any,
    ) -> None:
        self.fields = fields or {}
        super().__init__(code, user_message, **metadata)


class SchemaCompilationError(ReqGuardError):
    """A schema document is not valid against its own meta-schema."""
    status_code = 500
    code = "schema_compilation_error"


class SchemaNotFoundError(SchemaCompilationError):
    """No schema is registered under the requested key."""
    code = "schema_not_found"

    def __init__(self, key: str, **metadata: Any) -> None:
        self.key = key
        super().__init__(
            user_message=f"No schema registered with key or ref {key!r}.",
            key=key,
            **metadata,
        )


# ── Client-facing validation failure ──────────────────────────────────────────

class ValidationError(ReqGuardError):
    """
    One or more request sections failed their schema.

    ``validation_errors`` maps each failing section name to the ordered list
    of error descriptors the engine produced for it. ``name`` is the stable
    discriminator downstream handlers match on.
    """

    status_code = 400
    code = "json_schema_validation_error"
    name = "JsonSchemaValidationError"

    def __init__(
        self,
        validation_errors: Mapping[str, list[ErrorDescriptor]],
        user_message: str = "Request validation failed.",
        **metadata: Any,
    ) -> None:
        self.validation_errors = dict(validation_errors)
        super().__init__(
            None,
            user_message,
            detail=f"{user_message} Invalid sections: {', '.join(self.validation_errors)}",
            **metadata,
        )

    @property
    def sections(self) -> tuple[str, ...]:
        return tuple(self.validation_errors)

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["error"]["name"] = self.name
        d["error"]["validation_errors"] = {
            section: [descriptor.to_dict() for descriptor in errors]
            for section, errors in self.validation_errors.items()
        }
        return d


# ── Error capture backend ─────────────────────────────────────────────────────

def _capture(error: ReqGuardError) -> None:
    """Send error to configured backend. Called automatically by ReqGuardError.__init__."""
    backend = os.getenv("REQGUARD_ERROR_BACKEND", "none").lower()
    if backend == "none":
        return
    if backend == "sentry":
        _capture_sentry(error)
    elif backend == "otel":
        _capture_otel(error)


def _capture_sentry(error: ReqGuardError) -> None:
    try:
        import sentry_sdk
    except ImportError:
        return
    if error.status_code >= 500:
        sentry_sdk.capture_exception(error)
    else:
        sentry_sdk.capture_message(
            str(error),
            level="warning",
            extras={"code": error.code, **error.metadata},
        )


def _capture_otel(error: ReqGuardError) -> None:
    try:
        from opentelemetry import trace
    except ImportError:
        return
    span = trace.get_current_span()
    span.record_exception(error)
    span.set_status(trace.StatusCode.ERROR, str(error))


def configure_sentry(dsn: str, **kwargs: Any) -> None:
    """Initialize Sentry — call once at application startup."""
    import sentry_sdk
    sentry_sdk.init(dsn=dsn, **kwargs)
    os.environ["REQGUARD_ERROR_BACKEND"] = "sentry"


__sdk_export__ = {
    "surface": "both",
    "exports": [
        "ReqGuardError", "ConfigurationError", "SchemaCompilationError",
        "SchemaNotFoundError", "ValidationError",
    ],
    "description": "Error taxonomy: configuration, schema compilation, validation failure",
    "tier": "tier0_core",
    "module": "errors",
}
