"""
Mistake - Process hook installation.

The host installs the interceptor once, at bootstrap::

    registration = hooks.install(mistake)
    ...
    registration.uninstall()

Installed hooks:
- ``sys.excepthook`` / ``threading.excepthook``: uncaught exceptions
- ``warnings.showwarning``: runtime errors (warnings are escalated)
- ``atexit``: the last recorded runtime error, handled if fatal

A second ``install`` while one registration is active raises
``RegistrationError`` instead of silently replacing the first.
"""

from __future__ import annotations

import atexit
import logging
import sys
import threading
import warnings
from typing import Any, Optional

from .errors import RegistrationError, RuntimeErrorRecord
from .interceptor import InterceptorState, Mistake
from .levels import level_for_warning

logger = logging.getLogger("mistake.hooks")

_PASSTHROUGH = (KeyboardInterrupt, SystemExit)

_active: Optional["HookRegistration"] = None


class HookRegistration:
    """
    Owned registration of the process hooks for one interceptor.

    ``last_error`` is the most recent runtime error observed or reported;
    it is what the shutdown hook hands to ``Mistake.handle_shutdown``.
    """

    def __init__(self, mistake: Mistake, *, capture_warnings: bool = True):
        self.mistake = mistake
        self.capture_warnings = capture_warnings
        self.last_error: Optional[RuntimeErrorRecord] = None
        self.installed = False

        self._previous_excepthook = None
        self._previous_thread_excepthook = None
        self._previous_showwarning = None

    # ========================================================================
    # Hooks
    # ========================================================================

    def excepthook(self, exc_type, exc, tb) -> None:
        if issubclass(exc_type, _PASSTHROUGH):
            self._previous_excepthook(exc_type, exc, tb)
            return

        if exc is not None and exc.__traceback__ is None:
            exc = exc.with_traceback(tb)
        self.mistake.handle_exception(exc)

        if self.mistake.display_errors:
            self._previous_excepthook(exc_type, exc, tb)

    def thread_excepthook(self, args: Any) -> None:
        if args.exc_value is None or issubclass(args.exc_type, _PASSTHROUGH):
            self._previous_thread_excepthook(args)
            return

        self.mistake.handle_exception(args.exc_value)

        if self.mistake.display_errors:
            self._previous_thread_excepthook(args)

    def showwarning(self, message, category, filename, lineno, file=None, line=None) -> None:
        record = RuntimeErrorRecord(
            level=level_for_warning(category),
            message=str(message),
            file=filename,
            line=lineno,
        )
        self.last_error = record
        try:
            self.mistake.handle_error(record)
        finally:
            if self.mistake.display_errors:
                self._previous_showwarning(message, category, filename, lineno, file, line)

    def shutdown(self) -> None:
        if self.installed:
            self.mistake.handle_shutdown(self.last_error)

    def report(self, record: RuntimeErrorRecord) -> None:
        """Record a runtime error without handling it (for the shutdown hook)."""
        self.last_error = record

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def _install(self) -> None:
        self._previous_excepthook = sys.excepthook
        self._previous_thread_excepthook = threading.excepthook
        sys.excepthook = self.excepthook
        threading.excepthook = self.thread_excepthook

        if self.capture_warnings:
            self._previous_showwarning = warnings.showwarning
            warnings.showwarning = self.showwarning

        atexit.register(self.shutdown)
        self.installed = True
        self.mistake.state = InterceptorState.REGISTERED
        logger.debug("Installed fault hooks for %r", self.mistake)

    def uninstall(self) -> None:
        """Restore the hooks that were active before ``install``."""
        global _active

        if not self.installed:
            return

        sys.excepthook = self._previous_excepthook
        threading.excepthook = self._previous_thread_excepthook
        if self.capture_warnings:
            warnings.showwarning = self._previous_showwarning

        atexit.unregister(self.shutdown)
        self.installed = False
        self.mistake.state = InterceptorState.UNREGISTERED
        if _active is self:
            _active = None
        logger.debug("Uninstalled fault hooks for %r", self.mistake)


def install(mistake: Mistake, *, capture_warnings: bool = True) -> HookRegistration:
    """
    Install the process hooks for ``mistake``.

    Raises:
        RegistrationError: hooks are already installed in this process
    """
    global _active

    if _active is not None and _active.installed:
        raise RegistrationError(
            f"Fault hooks already installed for {_active.mistake!r}; "
            f"uninstall the active registration first"
        )

    registration = HookRegistration(mistake, capture_warnings=capture_warnings)
    registration._install()
    _active = registration
    return registration


def active_registration() -> Optional[HookRegistration]:
    return _active
