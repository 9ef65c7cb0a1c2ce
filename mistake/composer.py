"""
Mistake - Error response composition.

Turns an ``ErrorModel`` into the client-facing error body and attaches it
to a response. Serialization to bytes is left to the serializer stage of
the pipeline.
"""

from __future__ import annotations

from typing import Any

from .http import Response
from .model import ErrorModel


# Rendering order of the optional fields
_BODY_FIELDS = ("message", "code", "description", "link")


def build_error_body(model: ErrorModel) -> dict[str, Any]:
    """
    Build ``{"errors": {...}}`` from the model.

    Empty fields are omitted, never rendered as null. The ``errors`` key is
    always present, even when it is empty.
    """
    errors: dict[str, Any] = {}
    for name in _BODY_FIELDS:
        value = getattr(model, name, None)
        if value:
            errors[name] = value
    return {"errors": errors}


def compose_error_response(model: ErrorModel, response: Response) -> Response:
    """
    Return a copy of ``response`` carrying the error.

    Whatever the failing stage already wrote is discarded.
    """
    response = response.with_body(b"")
    response = response.with_status(model.status_code)
    return response.with_unserialized_body(build_error_body(model))
