"""
Mistake - Fault records and domain errors.

Defines:
- RuntimeErrorRecord (a captured runtime error / fatal termination record)
- HTTPError and its status-specific subclasses (domain errors)
- RegistrationError (hook installation misuse)

A domain error is any exception that carries its own status code,
description and link. Those fields are copied to the client verbatim,
so only raise them with messages that are safe to expose.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


# ============================================================================
# Runtime error records
# ============================================================================

@dataclass(frozen=True, slots=True)
class RuntimeErrorRecord:
    """
    A runtime error as reported by the platform.

    Attributes:
        level: Severity level (see ``mistake.levels.ErrorLevel``)
        message: Error text
        file: Source file the error was raised in
        line: Source line
        context: Variables in scope, passed to the log record as is
    """
    level: int
    message: str
    file: str = ""
    line: int = 0
    context: dict[str, Any] = field(default_factory=dict)


# ============================================================================
# Domain errors
# ============================================================================

class HTTPError(Exception):
    """
    Base domain error.

    Subclasses set ``status_code`` and a default ``message``; every field can
    be overridden per instance.

    Example:
        ```python
        raise NotFound(
            "User 42 was not found",
            code=1042,
            description="No user matches the given id.",
            link="https://docs.example.com/errors/1042",
        )
        ```
    """

    status_code: int = 500
    message: Optional[str] = None
    code: Optional[int] = None
    description: Optional[str] = None
    link: Optional[str] = None

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[int] = None,
        *,
        description: Optional[str] = None,
        link: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        if description is not None:
            self.description = description
        if link is not None:
            self.link = link
        if status_code is not None:
            self.status_code = status_code

        super().__init__(self.message or "")

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(status_code={self.status_code}, "
            f"message={self.message!r}, code={self.code!r})"
        )


class BadRequest(HTTPError):
    status_code = 400
    message = "Bad Request"


class Unauthorized(HTTPError):
    status_code = 401
    message = "Unauthorized"


class Forbidden(HTTPError):
    status_code = 403
    message = "Forbidden"


class NotFound(HTTPError):
    status_code = 404
    message = "Not Found"


class MethodNotAllowed(HTTPError):
    status_code = 405
    message = "Method Not Allowed"


class NotAcceptable(HTTPError):
    status_code = 406
    message = "Not Acceptable"


class Conflict(HTTPError):
    status_code = 409
    message = "Conflict"


class UnprocessableEntity(HTTPError):
    status_code = 422
    message = "Unprocessable Entity"


class TooManyRequests(HTTPError):
    status_code = 429
    message = "Too Many Requests"


class InternalServerError(HTTPError):
    status_code = 500
    message = "Internal Server Error"


class NotImplementedYet(HTTPError):
    """501; named to avoid clashing with the ``NotImplemented`` builtin."""
    status_code = 501
    message = "Not Implemented"


class BadGateway(HTTPError):
    status_code = 502
    message = "Bad Gateway"


class ServiceUnavailable(HTTPError):
    status_code = 503
    message = "Service Unavailable"


# ============================================================================
# Misuse
# ============================================================================

class RegistrationError(RuntimeError):
    """Raised when process hooks are installed while already installed."""
    pass
