"""
Mistake - Error model and normalization.

Every fault, whatever its shape, is normalized into one ``ErrorModel``
before anything is sent to the client. Normalization is total: a field
that cannot be read becomes empty, it never raises.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .errors import RuntimeErrorRecord
from .levels import describe_level


INTERNAL_ERROR_STATUS = 500
GENERIC_MESSAGE = "An unexpected error occurred."

_DOMAIN_ATTRIBUTES = ("status_code", "description", "link")


@dataclass(frozen=True, slots=True)
class ErrorModel:
    """
    Canonical error representation.

    Attributes:
        status_code: HTTP status code of the error response
        code: Application error code
        message: Client-safe message
        description: Longer explanation
        link: Reference URL documenting the error
    """
    status_code: int = INTERNAL_ERROR_STATUS
    code: Optional[int] = None
    message: Optional[str] = None
    description: Optional[str] = None
    link: Optional[str] = None


def _has(obj: Any, name: str) -> bool:
    try:
        getattr(obj, name)
    except AttributeError:
        return False
    except Exception:
        # Present but unreadable; the field is emptied later
        return True
    return True


def is_domain_error(fault: Any) -> bool:
    """True if ``fault`` is an exception carrying status, description and link."""
    if not isinstance(fault, BaseException):
        return False
    return all(_has(fault, name) for name in _DOMAIN_ATTRIBUTES)


def _read(obj: Any, name: str) -> Any:
    try:
        return getattr(obj, name, None)
    except Exception:
        return None


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    try:
        return value if isinstance(value, str) else str(value)
    except Exception:
        return None


def _as_status(value: Any) -> int:
    if isinstance(value, bool):
        return INTERNAL_ERROR_STATUS
    try:
        status = int(value)
    except Exception:
        return INTERNAL_ERROR_STATUS
    return status if 100 <= status <= 599 else INTERNAL_ERROR_STATUS


def _domain_message(fault: BaseException) -> Optional[str]:
    message = _read(fault, "message")
    if message is None:
        try:
            message = str(fault)
        except Exception:
            message = None
    return _as_text(message)


def normalize(fault: Any, *, generic_message: str = GENERIC_MESSAGE) -> ErrorModel:
    """
    Convert any fault into an ``ErrorModel``.

    Domain errors keep their own fields. Everything else (plain exceptions,
    runtime error records, unknown objects) becomes a generic internal
    error with ``generic_message``; the raw message is never copied.
    """
    if not is_domain_error(fault):
        return ErrorModel(
            status_code=INTERNAL_ERROR_STATUS,
            message=generic_message,
        )

    code = _read(fault, "code")
    if isinstance(code, bool) or not isinstance(code, (int, type(None))):
        try:
            code = int(code)
        except Exception:
            code = None

    return ErrorModel(
        status_code=_as_status(_read(fault, "status_code")),
        code=code,
        message=_domain_message(fault),
        description=_as_text(_read(fault, "description")),
        link=_as_text(_read(fault, "link")),
    )


def render_runtime_error(record: RuntimeErrorRecord) -> str:
    """
    Render a runtime error as a single descriptive log line.

    Fields that cannot be rendered are left empty.
    """
    label = describe_level(_read(record, "level"))
    text = _as_text(_read(record, "message")) or ""
    file = _as_text(_read(record, "file")) or ""

    line = _read(record, "line")
    try:
        line = int(line)
    except Exception:
        line = 0

    return (
        f"Error of level {label}. "
        f'Error message was "{text}" in file {file} at line {line}.'
    )
