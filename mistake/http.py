"""
Minimal request/response objects.

Only what the fault layer needs: a request to hand back to the pipeline
and a response whose status and body can be replaced. Responses are
treated as values; the ``with_*`` methods return modified copies.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Mapping, Optional


class Request:
    """An incoming request."""

    def __init__(
        self,
        method: str = "GET",
        path: str = "/",
        headers: Optional[Mapping[str, str]] = None,
        body: bytes = b"",
    ):
        self.method = method
        self.path = path
        self.headers: Dict[str, str] = {
            k.lower(): v for k, v in (headers or {}).items()
        }
        self.body = body
        self.state: Dict[str, Any] = {}

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.path}>"


class Response:
    """
    An outgoing response.

    ``content`` holds the serialized bytes. ``unserialized_body`` holds a
    structure waiting for a serializer stage to turn it into ``content``.
    """

    def __init__(
        self,
        content: bytes = b"",
        status: int = 200,
        headers: Optional[Mapping[str, str]] = None,
        unserialized_body: Any = None,
    ):
        self.content = content
        self.status = status
        self.headers: Dict[str, str] = {
            k.lower(): v for k, v in (headers or {}).items()
        }
        self.unserialized_body = unserialized_body

    def _copy(self) -> "Response":
        clone = copy.copy(self)
        clone.headers = dict(self.headers)
        clone.unserialized_body = copy.deepcopy(self.unserialized_body)
        return clone

    def with_status(self, status: int) -> "Response":
        clone = self._copy()
        clone.status = status
        return clone

    def with_header(self, name: str, value: str) -> "Response":
        clone = self._copy()
        clone.headers[name.lower()] = value
        return clone

    def with_body(self, content: bytes = b"") -> "Response":
        """Replace the serialized content (an empty body by default)."""
        clone = self._copy()
        clone.content = content
        clone.headers.pop("content-length", None)
        return clone

    def with_unserialized_body(self, body: Any) -> "Response":
        clone = self._copy()
        clone.unserialized_body = body
        return clone

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    def __repr__(self) -> str:
        return f"<Response {self.status}>"
