"""
Mistake - Fault interceptor.

The interceptor handles runtime errors and exceptions and makes sure the
pipeline is reset to run only the stages needed to send the error
response to the client. Every fault is logged exactly once before the
response is composed.

Entry points are plain methods; ``mistake.hooks.install`` wires them into
the process hooks once, at bootstrap.

Usage:
    ```python
    mistake = Mistake(display_errors=False)
    pipeline = Pipeline([mistake, JsonSerializer(), router])
    hooks.install(mistake)
    ```
"""

from __future__ import annotations

import logging
import sys
import traceback
from enum import Enum
from typing import Any, Optional

from .composer import compose_error_response
from .errors import RuntimeErrorRecord
from .http import Request, Response
from .levels import describe_level, is_fatal
from .model import GENERIC_MESSAGE, ErrorModel, normalize, render_runtime_error
from .pipeline import Next, PipelineEngine


class InterceptorState(str, Enum):
    UNREGISTERED = "unregistered"
    REGISTERED = "registered"
    HANDLING = "handling"


class FaultHandled(BaseException):
    """
    Raised out of the stage that reported a runtime error.

    Carries the already restarted error response up to ``Mistake.__call__``.
    Derives from ``BaseException`` so stage-level ``except Exception``
    blocks do not resume the stage.
    """

    def __init__(self, response: Response):
        super().__init__(response)
        self.response = response


class Mistake:
    """
    Fault interceptor and pass-through pipeline stage.

    Args:
        pipeline: Pipeline engine to restart (set later by ``attach``)
        logger: Logger for fault records
        display_errors: Let the platform's own display hooks echo faults
            to the console as well. Never changes the client body.
        request: Original incoming request, used when the pipeline has not
            seen one
        response: Original response, same fallback rule
        generic_message: Client-safe message for non-domain faults
    """

    def __init__(
        self,
        pipeline: Optional[PipelineEngine] = None,
        *,
        logger: Optional[logging.Logger] = None,
        display_errors: bool = False,
        request: Optional[Request] = None,
        response: Optional[Response] = None,
        generic_message: str = GENERIC_MESSAGE,
    ):
        self.pipeline = pipeline
        self.logger = logger or logging.getLogger("mistake.faults")
        self.display_errors = display_errors
        self.request = request
        self.response = response
        self.generic_message = generic_message
        self.state = InterceptorState.UNREGISTERED
        self._chains = 0

    @classmethod
    def from_config(cls, config: Any, **kwargs: Any) -> "Mistake":
        """Build an interceptor from a ``MistakeConfig``."""
        kwargs.setdefault("display_errors", config.display_errors)
        kwargs.setdefault("generic_message", config.generic_message)
        kwargs.setdefault("logger", logging.getLogger(config.logger_name))
        return cls(**kwargs)

    def attach(self, pipeline: PipelineEngine) -> None:
        self.pipeline = pipeline

    # ========================================================================
    # Entry points
    # ========================================================================

    def handle_shutdown(self, record: Optional[RuntimeErrorRecord]) -> Optional[Response]:
        """
        Handle the last runtime error seen at process end.

        Only fatal records are handled; anything else is a normal exit.
        """
        if record is None or not is_fatal(getattr(record, "level", None)):
            return None
        return self.handle_error(record)

    def handle_error(self, record: RuntimeErrorRecord) -> Optional[Response]:
        """
        Handle a runtime error.

        Every runtime error, warnings included, ends in an internal error
        response. Inside a running chain the reporting stage does not
        resume: ``FaultHandled`` carries the response out to the
        interceptor stage. A runtime error raised while another fault is
        being handled is only logged.
        """
        message = render_runtime_error(record)
        context = {
            "level": getattr(record, "level", None),
            "label": describe_level(getattr(record, "level", None)),
            "file": getattr(record, "file", None),
            "line": getattr(record, "line", None),
            "context": getattr(record, "context", None) or {},
        }

        if self.state is InterceptorState.HANDLING:
            self._log(message, context)
            return None

        model = normalize(record, generic_message=self.generic_message)
        response = self._handle(model, message, context)
        if self._chains:
            raise FaultHandled(response)
        return response

    def handle_exception(self, exception: BaseException) -> Response:
        """Handle an exception that escaped all stage-level handling."""
        model = normalize(exception, generic_message=self.generic_message)
        message, context = self._describe_exception(exception)
        return self._handle(model, message, context)

    def __call__(self, request: Request, response: Response, next: Next) -> Response:
        self._chains += 1
        try:
            return next(request, response)
        except FaultHandled as handled:
            return handled.response
        except Exception as exc:
            return self.handle_exception(exc)
        finally:
            self._chains -= 1

    # ========================================================================
    # Handling
    # ========================================================================

    def _handle(self, model: ErrorModel, message: str, context: dict) -> Response:
        previous = self.state
        self.state = InterceptorState.HANDLING
        try:
            self._log(message, context)

            request = self._resolve_request()
            response = compose_error_response(model, self._resolve_response())

            if self.pipeline is None:
                return response

            # Restart pipeline
            self.pipeline.prepare_error_queue()
            return self.pipeline(request, response)
        finally:
            self.state = previous

    def _resolve_request(self) -> Request:
        latest = getattr(self.pipeline, "latest_request", None)
        if latest is not None:
            return latest
        if self.request is not None:
            return self.request
        return Request()

    def _resolve_response(self) -> Response:
        latest = getattr(self.pipeline, "latest_response", None)
        if latest is not None:
            return latest
        if self.response is not None:
            return self.response
        return Response()

    def _log(self, message: str, context: dict) -> None:
        # A broken logger must not stop the response
        try:
            self.logger.error(message, extra={"fault": context})
        except Exception:
            traceback.print_exc(file=sys.stderr)

    def _describe_exception(self, exception: BaseException) -> tuple[str, dict]:
        file, line = "unknown", 0
        try:
            frames = traceback.extract_tb(exception.__traceback__)
            if frames:
                file, line = frames[-1].filename, frames[-1].lineno
        except Exception:
            pass

        try:
            text = str(exception)
        except Exception:
            text = ""

        try:
            trace = "".join(
                traceback.format_exception(type(exception), exception, exception.__traceback__)
            )
        except Exception:
            trace = ""

        message = "Uncaught exception of type {} thrown in file {} at line {}{}.".format(
            type(exception).__name__,
            file,
            line,
            f' with message "{text}"' if text else "",
        )
        context = {
            "exception_file": file,
            "exception_line": line,
            "exception_trace": trace,
        }
        return message, context
