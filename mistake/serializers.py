"""
Serializer stages.

Serializers run after the stages that produce a body: they turn the
response's unserialized body into bytes on the way back out of the chain.
They belong to the error queue, so a composed error response is always
delivered as bytes.
"""

from __future__ import annotations

import json
from typing import Any, Optional, Sequence

from .http import Request, Response
from .pipeline import Next


class JsonSerializer:
    """
    Serializes ``response.unserialized_body`` to JSON.

    The ``Accept`` header is only consulted to pick the content type among
    ``mime_types``; JSON is produced regardless, so error bodies are never
    dropped on content negotiation.
    """

    error_stage = True

    def __init__(
        self,
        mime_types: Optional[Sequence[str]] = None,
        *,
        charset: str = "utf-8",
    ):
        self.mime_types = list(mime_types or ["application/json"])
        self.charset = charset

    def _content_type(self, request: Request) -> str:
        accept = request.header("accept", "") or ""
        for part in accept.split(","):
            mime = part.split(";", 1)[0].strip().lower()
            if mime in self.mime_types:
                return mime
        return self.mime_types[0]

    def serialize(self, body: Any) -> bytes:
        return json.dumps(body, ensure_ascii=False, separators=(",", ":")).encode(self.charset)

    def __call__(self, request: Request, response: Response, next: Next) -> Response:
        response = next(request, response)

        if response.unserialized_body is None:
            return response

        content = self.serialize(response.unserialized_body)
        response = response.with_body(content)
        response = response.with_header(
            "content-type", f"{self._content_type(request)}; charset={self.charset}"
        )
        return response.with_header("content-length", str(len(content)))
