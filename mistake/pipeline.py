"""
Pipeline - Stage queue with an error-only restart mode.

Stages are synchronous callables::

    def stage(request: Request, response: Response, next: Next) -> Response

The fault interceptor only relies on the ``PipelineEngine`` protocol:
``prepare_error_queue()`` followed by a call with the request and the
composed error response. ``Pipeline`` is a reference implementation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, Sequence, runtime_checkable

from .http import Request, Response

Next = Callable[[Request, Response], Response]
Stage = Callable[[Request, Response, Next], Response]

logger = logging.getLogger("mistake.pipeline")


@runtime_checkable
class PipelineEngine(Protocol):
    """What the fault interceptor needs from the pipeline engine."""

    def prepare_error_queue(self) -> None:
        """Replace the active queue with the error-rendering stages only."""
        ...

    def __call__(self, request: Request, response: Response) -> Response:
        """Run the active queue."""
        ...


@dataclass
class StageDescriptor:
    """Descriptor for stage registration."""
    stage: Stage
    name: str
    error_stage: bool


def is_error_stage(stage: Any) -> bool:
    """True if the stage renders already-composed error responses."""
    return bool(getattr(stage, "error_stage", False))


class Pipeline:
    """
    Runs stages in insertion order.

    Each call runs a snapshot of the active queue, so replacing the queue
    while a chain is running does not affect that chain. The most recent
    request and response seen by any stage are kept in ``latest_request``
    and ``latest_response``.

    The error queue only lasts for the restart: once the outermost call
    returns, the full queue is active again for the next request.
    """

    def __init__(self, stages: Optional[Sequence[Stage]] = None):
        self.stages: List[StageDescriptor] = []
        self._queue: List[StageDescriptor] = []
        self.error_mode = False
        self.latest_request: Optional[Request] = None
        self.latest_response: Optional[Response] = None
        self._depth = 0

        for stage in stages or ():
            self.add(stage)

    def add(
        self,
        stage: Stage,
        *,
        name: Optional[str] = None,
        error_stage: Optional[bool] = None,
    ) -> "Pipeline":
        """
        Append a stage.

        Stages exposing ``attach(pipeline)`` receive this pipeline.
        ``error_stage`` defaults to the stage's own ``error_stage`` flag.
        """
        if name is None:
            name = getattr(stage, "__name__", None) or stage.__class__.__name__
        if error_stage is None:
            error_stage = is_error_stage(stage)

        descriptor = StageDescriptor(stage=stage, name=name, error_stage=error_stage)
        self.stages.append(descriptor)
        if not self.error_mode or error_stage:
            self._queue.append(descriptor)

        attach = getattr(stage, "attach", None)
        if callable(attach):
            attach(self)
        return self

    @property
    def queue(self) -> List[str]:
        """Names of the stages in the active queue."""
        return [d.name for d in self._queue]

    def prepare_error_queue(self) -> None:
        self._queue = [d for d in self.stages if d.error_stage]
        self.error_mode = True
        logger.debug("Error queue prepared: %s", self.queue)

    def reset(self) -> None:
        """Restore the full queue."""
        self._queue = list(self.stages)
        self.error_mode = False

    def __call__(self, request: Request, response: Response) -> Response:
        queue = tuple(self._queue)

        def dispatch(index: int, request: Request, response: Response) -> Response:
            self.latest_request = request
            self.latest_response = response
            if index >= len(queue):
                return response

            def next_stage(req: Request, resp: Response) -> Response:
                return dispatch(index + 1, req, resp)

            return queue[index].stage(request, response, next_stage)

        self._depth += 1
        try:
            return dispatch(0, request, response)
        finally:
            self._depth -= 1
            if self._depth == 0 and self.error_mode:
                self.reset()
