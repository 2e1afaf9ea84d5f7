"""Tests for tier0_core modules."""
from __future__ import annotations

import os
import sys
from types import ModuleType, SimpleNamespace

import pydantic
import pytest
import structlog

from reqguard.tier0_core import logging as reqguard_logging
from reqguard.tier0_core.config import ReqGuardConfig, get_config
from reqguard.tier0_core.errors import (
    ConfigurationError,
    ReqGuardError,
    SchemaCompilationError,
    SchemaNotFoundError,
    ValidationError,
    configure_sentry,
)
from reqguard.tier0_core.logging import _REDACTED, _redact_processor, get_logger
from reqguard.tier1_runtime.engine import ErrorDescriptor


def _required_name() -> ErrorDescriptor:
    return ErrorDescriptor(
        keyword="required",
        instance_path="",
        schema_path="#/required",
        message="'name' is a required property",
        params={"required": ["name"], "missing_property": "name"},
    )


# ── errors ─────────────────────────────────────────────────────────────────

class TestErrors:
    def test_base_error_has_code(self):
        e = ReqGuardError("boom", user_message="Something broke")
        assert e.code == "boom"
        assert "Something broke" in str(e)

    def test_configuration_error_carries_fields(self):
        e = ConfigurationError(fields={"draft": "unsupported"})
        assert isinstance(e, ReqGuardError)
        assert e.code == "configuration_error"
        assert e.fields == {"draft": "unsupported"}

    def test_schema_not_found_is_a_compilation_error(self):
        e = SchemaNotFoundError("personSchema")
        assert isinstance(e, SchemaCompilationError)
        assert e.key == "personSchema"
        assert "personSchema" in str(e)

    def test_validation_error_discriminator(self):
        e = ValidationError({"body": [_required_name()]})
        assert e.name == "JsonSchemaValidationError"
        assert e.code == "json_schema_validation_error"
        assert e.status_code == 400
        assert isinstance(e, ReqGuardError)

    def test_validation_error_keeps_section_order(self):
        e = ValidationError({"query": [_required_name()], "body": [_required_name()]})
        assert e.sections == ("query", "body")
        assert "query, body" in str(e)

    def test_validation_error_copies_mapping(self):
        failures = {"body": [_required_name()]}
        e = ValidationError(failures)
        failures["query"] = []
        assert "query" not in e.validation_errors

    def test_validation_error_to_dict(self):
        d = ValidationError({"body": [_required_name()]}).to_dict()
        assert d["error"]["name"] == "JsonSchemaValidationError"
        assert d["error"]["code"] == "json_schema_validation_error"
        body = d["error"]["validation_errors"]["body"]
        assert body == [{
            "keyword": "required",
            "instance_path": "",
            "schema_path": "#/required",
            "message": "'name' is a required property",
            "params": {"required": ["name"], "missing_property": "name"},
        }]


# ── error backends ─────────────────────────────────────────────────────────

class _Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple, dict]] = []

    def method(self, name: str):
        def record(*args, **kwargs):
            self.calls.append((name, args, kwargs))
        return record


@pytest.fixture
def fake_sentry(monkeypatch):
    recorder = _Recorder()
    module = ModuleType("sentry_sdk")
    module.capture_exception = recorder.method("capture_exception")
    module.capture_message = recorder.method("capture_message")
    module.init = recorder.method("init")
    monkeypatch.setitem(sys.modules, "sentry_sdk", module)
    return recorder


@pytest.fixture
def fake_otel(monkeypatch):
    recorder = _Recorder()
    span = SimpleNamespace(
        record_exception=recorder.method("record_exception"),
        set_status=recorder.method("set_status"),
    )
    trace = ModuleType("opentelemetry.trace")
    trace.get_current_span = lambda: span
    trace.StatusCode = SimpleNamespace(ERROR="ERROR")
    package = ModuleType("opentelemetry")
    package.trace = trace
    monkeypatch.setitem(sys.modules, "opentelemetry", package)
    monkeypatch.setitem(sys.modules, "opentelemetry.trace", trace)
    return recorder


class TestErrorBackends:
    def test_sentry_captures_server_errors_as_exceptions(self, monkeypatch, fake_sentry):
        monkeypatch.setenv("REQGUARD_ERROR_BACKEND", "sentry")
        e = ConfigurationError(fields={"draft": "unsupported"})
        assert fake_sentry.calls == [("capture_exception", (e,), {})]

    def test_sentry_captures_client_errors_as_warnings(self, monkeypatch, fake_sentry):
        monkeypatch.setenv("REQGUARD_ERROR_BACKEND", "sentry")
        e = ValidationError({"body": [_required_name()]})
        ((name, args, kwargs),) = fake_sentry.calls
        assert name == "capture_message"
        assert args == (str(e),)
        assert kwargs["level"] == "warning"
        assert kwargs["extras"]["code"] == "json_schema_validation_error"

    def test_otel_records_on_current_span(self, monkeypatch, fake_otel):
        monkeypatch.setenv("REQGUARD_ERROR_BACKEND", "otel")
        e = SchemaNotFoundError("personSchema")
        assert fake_otel.calls == [
            ("record_exception", (e,), {}),
            ("set_status", ("ERROR", str(e)), {}),
        ]

    def test_none_backend_reports_nothing(self, monkeypatch, fake_sentry):
        monkeypatch.setenv("REQGUARD_ERROR_BACKEND", "none")
        ConfigurationError(fields={"draft": "unsupported"})
        assert fake_sentry.calls == []

    def test_configure_sentry_selects_backend(self, monkeypatch, fake_sentry):
        monkeypatch.setenv("REQGUARD_ERROR_BACKEND", "none")
        configure_sentry("https://key@sentry.example.com/1", traces_sample_rate=0.1)
        assert fake_sentry.calls == [
            ("init", (), {"dsn": "https://key@sentry.example.com/1", "traces_sample_rate": 0.1}),
        ]
        assert os.environ["REQGUARD_ERROR_BACKEND"] == "sentry"


# ── config ─────────────────────────────────────────────────────────────────

class TestConfig:
    def test_defaults(self):
        config = ReqGuardConfig()
        assert config.default_draft == "draft7"
        assert config.all_errors is True
        assert config.strict_schemas is True

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("REQGUARD_DEFAULT_DRAFT", "DRAFT2020-12")
        monkeypatch.setenv("REQGUARD_ALL_ERRORS", "false")
        config = get_config()
        assert config.default_draft == "draft2020-12"
        assert config.all_errors is False

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_unknown_draft_rejected(self, monkeypatch):
        monkeypatch.setenv("REQGUARD_DEFAULT_DRAFT", "draft99")
        with pytest.raises(pydantic.ValidationError):
            ReqGuardConfig()

    def test_unknown_log_format_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            ReqGuardConfig(log_format="xml")


# ── logging ────────────────────────────────────────────────────────────────

class TestLogging:
    def test_redacts_sensitive_keys(self):
        event = _redact_processor(None, "info", {"event": "x", "token": "abc", "section": "body"})
        assert event["token"] == _REDACTED
        assert event["section"] == "body"

    def test_redaction_is_case_insensitive(self):
        event = _redact_processor(None, "info", {"Authorization": "Bearer abc"})
        assert event["Authorization"] == _REDACTED

    def test_get_logger_returns_usable_logger(self):
        log = get_logger("reqguard.tests")
        log.debug("test.event", section="body")

    def test_host_structlog_configuration_is_kept(self, monkeypatch):
        calls: list[None] = []
        monkeypatch.setattr(reqguard_logging, "_configured", False)
        monkeypatch.setattr(structlog, "is_configured", lambda: True)
        monkeypatch.setattr(reqguard_logging, "_configure_structlog", lambda: calls.append(None))
        get_logger("reqguard.tests")
        assert calls == []

    def test_configures_structlog_once_when_host_has_not(self, monkeypatch):
        calls: list[None] = []
        monkeypatch.setattr(reqguard_logging, "_configured", False)
        monkeypatch.setattr(structlog, "is_configured", lambda: False)
        monkeypatch.setattr(reqguard_logging, "_configure_structlog", lambda: calls.append(None))
        get_logger("reqguard.tests")
        get_logger("reqguard.tests")
        assert calls == [None]
