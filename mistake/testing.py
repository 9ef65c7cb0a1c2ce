"""
Mistake Testing - Pipeline double.

Provides :class:`RecordingPipeline`, a ``PipelineEngine`` that records the
restart protocol calls instead of running stages.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .http import Request, Response


@dataclass
class RecordedCall:
    """One protocol call seen by :class:`RecordingPipeline`."""
    name: str
    request: Optional[Request] = None
    response: Optional[Response] = None


class RecordingPipeline:
    """
    Records ``prepare_error_queue`` and invocation calls in order.

    Usage::

        pipeline = RecordingPipeline()
        mistake = Mistake(pipeline)
        mistake.handle_exception(ZeroDivisionError("division by zero"))

        assert pipeline.call_names == ["prepare_error_queue", "invoke"]
        assert pipeline.invocations[0].response.status == 500
    """

    def __init__(
        self,
        latest_request: Optional[Request] = None,
        latest_response: Optional[Response] = None,
    ):
        self.latest_request = latest_request
        self.latest_response = latest_response
        self.calls: List[RecordedCall] = []
        self.error_mode = False

    def prepare_error_queue(self) -> None:
        self.error_mode = True
        self.calls.append(RecordedCall("prepare_error_queue"))

    def __call__(self, request: Request, response: Response) -> Response:
        self.calls.append(RecordedCall("invoke", request, response))
        return response

    @property
    def call_names(self) -> List[str]:
        return [c.name for c in self.calls]

    @property
    def invocations(self) -> List[RecordedCall]:
        return [c for c in self.calls if c.name == "invoke"]

    def reset(self) -> None:
        self.calls.clear()
        self.error_mode = False

    def __repr__(self) -> str:
        return f"<RecordingPipeline calls={self.call_names!r}>"
