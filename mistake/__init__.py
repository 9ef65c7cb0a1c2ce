"""
Mistake - Fault interception for middleware pipelines.

Every fault raised in the pipeline (runtime error, uncaught exception or
fatal termination record) is logged once, normalized into an
``ErrorModel`` and delivered to the client as ``{"errors": {...}}``
through an error-only restart of the pipeline.

Core exports:
- Mistake: Fault interceptor (and pass-through stage)
- ErrorModel / normalize: Fault normalization
- build_error_body / compose_error_response: Response composition
- Pipeline / PipelineEngine: Restart protocol
- hooks.install: Process hook registration
"""

from .levels import (
    ErrorLevel,
    LEVEL_LABELS,
    FATAL_LEVELS,
    describe_level,
    is_fatal,
    level_for_warning,
)

from .errors import (
    RuntimeErrorRecord,
    HTTPError,
    BadRequest,
    Unauthorized,
    Forbidden,
    NotFound,
    MethodNotAllowed,
    NotAcceptable,
    Conflict,
    UnprocessableEntity,
    TooManyRequests,
    InternalServerError,
    NotImplementedYet,
    BadGateway,
    ServiceUnavailable,
    RegistrationError,
)

from .model import (
    ErrorModel,
    GENERIC_MESSAGE,
    INTERNAL_ERROR_STATUS,
    normalize,
    render_runtime_error,
    is_domain_error,
)

from .composer import build_error_body, compose_error_response
from .http import Request, Response
from .pipeline import Pipeline, PipelineEngine
from .serializers import JsonSerializer
from .interceptor import Mistake, InterceptorState, FaultHandled
from .config import MistakeConfig, ConfigError
from . import hooks

__version__ = "0.1.0"

__all__ = [
    # Classification
    "ErrorLevel",
    "LEVEL_LABELS",
    "FATAL_LEVELS",
    "describe_level",
    "is_fatal",
    "level_for_warning",

    # Faults
    "RuntimeErrorRecord",
    "HTTPError",
    "BadRequest",
    "Unauthorized",
    "Forbidden",
    "NotFound",
    "MethodNotAllowed",
    "NotAcceptable",
    "Conflict",
    "UnprocessableEntity",
    "TooManyRequests",
    "InternalServerError",
    "NotImplementedYet",
    "BadGateway",
    "ServiceUnavailable",
    "RegistrationError",

    # Normalization & composition
    "ErrorModel",
    "GENERIC_MESSAGE",
    "INTERNAL_ERROR_STATUS",
    "normalize",
    "render_runtime_error",
    "is_domain_error",
    "build_error_body",
    "compose_error_response",

    # Pipeline
    "Request",
    "Response",
    "Pipeline",
    "PipelineEngine",
    "JsonSerializer",

    # Runtime
    "Mistake",
    "InterceptorState",
    "FaultHandled",
    "MistakeConfig",
    "ConfigError",
    "hooks",
]
