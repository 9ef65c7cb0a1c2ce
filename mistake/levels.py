"""
Mistake - Error levels and fault classification.

Runtime errors carry an integer severity level. This module names those
levels for log lines and decides which of them count as fatal. Labels are
never sent to the client.
"""

from __future__ import annotations

from enum import IntEnum


class ErrorLevel(IntEnum):
    """Runtime error severity levels (bit flags)."""
    E_ERROR = 1
    E_WARNING = 2
    E_PARSE = 4
    E_NOTICE = 8
    E_CORE_ERROR = 16
    E_CORE_WARNING = 32
    E_COMPILE_ERROR = 64
    E_COMPILE_WARNING = 128
    E_USER_ERROR = 256
    E_USER_WARNING = 512
    E_USER_NOTICE = 1024
    E_STRICT = 2048
    E_RECOVERABLE_ERROR = 4096
    E_DEPRECATED = 8192
    E_USER_DEPRECATED = 16384


# Levels that may reach the runtime error handler
LEVEL_LABELS: dict[int, str] = {
    ErrorLevel.E_USER_ERROR: "E_USER_ERROR",
    ErrorLevel.E_USER_WARNING: "E_USER_WARNING",
    ErrorLevel.E_USER_NOTICE: "E_USER_NOTICE",
    ErrorLevel.E_STRICT: "E_STRICT",
    ErrorLevel.E_RECOVERABLE_ERROR: "E_RECOVERABLE_ERROR",
    ErrorLevel.E_DEPRECATED: "E_DEPRECATED",
    ErrorLevel.E_USER_DEPRECATED: "E_USER_DEPRECATED",
    ErrorLevel.E_NOTICE: "E_NOTICE",
    ErrorLevel.E_WARNING: "E_WARNING",
}

FATAL_LEVELS: int = (
    ErrorLevel.E_ERROR
    | ErrorLevel.E_USER_ERROR
    | ErrorLevel.E_COMPILE_ERROR
    | ErrorLevel.E_CORE_ERROR
    | ErrorLevel.E_PARSE
)


def describe_level(level: int) -> str:
    """
    Return the symbolic label for a severity level.

    Unknown levels never fail; the label embeds the code so the log line
    still says what was passed.
    """
    try:
        return LEVEL_LABELS[level]
    except (KeyError, TypeError):
        return f"Unknown error level, code of {level} passed"


def is_fatal(level: int | None) -> bool:
    """True if ``level`` belongs to the fatal set."""
    if not isinstance(level, int):
        return False
    return bool(level & FATAL_LEVELS)


# Ordered most specific first, issubclass() decides
_WARNING_LEVELS: tuple[tuple[type[Warning], int], ...] = (
    (DeprecationWarning, ErrorLevel.E_DEPRECATED),
    (PendingDeprecationWarning, ErrorLevel.E_DEPRECATED),
    (FutureWarning, ErrorLevel.E_USER_DEPRECATED),
    (SyntaxWarning, ErrorLevel.E_COMPILE_WARNING),
    (RuntimeWarning, ErrorLevel.E_WARNING),
    (ResourceWarning, ErrorLevel.E_NOTICE),
)


def level_for_warning(category: type[Warning]) -> int:
    """
    Map a Python warning category onto an error level.

    Anything not listed (``UserWarning`` and custom categories) is treated
    as a user warning.
    """
    try:
        for base, level in _WARNING_LEVELS:
            if issubclass(category, base):
                return int(level)
    except TypeError:
        pass
    return int(ErrorLevel.E_USER_WARNING)
