"""
reqguard
────────
Stable top-level exports. Import from here, not from sub-modules directly.
Every name exported here is part of the public API and subject to semver.
"""
from reqguard.tier0_core.logging import get_logger
from reqguard.tier0_core.errors import (
    ReqGuardError,
    ConfigurationError,
    SchemaCompilationError,
    SchemaNotFoundError,
    ValidationError,
)
from reqguard.tier0_core.config import get_config, ReqGuardConfig

from reqguard.tier1_runtime.engine import (
    SchemaEngine,
    CompiledSchema,
    ValidationResult,
    ErrorDescriptor,
)
from reqguard.tier1_runtime.middleware import RequestMiddleware
from reqguard.tier1_runtime.validate import Validator

__version__ = "0.1.0"
__all__ = [
    # logging
    "get_logger",
    # errors
    "ReqGuardError", "ConfigurationError", "SchemaCompilationError",
    "SchemaNotFoundError", "ValidationError",
    # config
    "get_config", "ReqGuardConfig",
    # engine
    "SchemaEngine", "CompiledSchema", "ValidationResult", "ErrorDescriptor",
    # middleware
    "RequestMiddleware",
    # validate
    "Validator",
]
