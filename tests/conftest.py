"""
Shared test fixtures and helpers for the Stanza test suite.
"""

import json
from typing import Any, Dict, List, Optional

import pytest

from stanza.request import Request
from stanza.response import Response
from stanza.sessions import SessionStore


# ============================================================================
# Request Helpers
# ============================================================================


def make_scope(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
) -> dict:
    """Build a minimal ASGI HTTP scope."""
    raw_headers = []
    if headers:
        for name, value in headers:
            raw_headers.append(
                (name.encode("latin-1") if isinstance(name, str) else name,
                 value.encode("latin-1") if isinstance(value, str) else value)
            )
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": query_string.encode("utf-8"),
        "headers": raw_headers,
        "scheme": "http",
        "server": ("127.0.0.1", 3000),
        "client": ("127.0.0.1", 12345),
        "root_path": "",
    }


def make_receive(body: bytes = b"", *, chunks: Optional[List[bytes]] = None):
    """Create an ASGI receive callable from body bytes or chunked list."""
    if chunks:
        messages = [
            {"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1}
            for i, chunk in enumerate(chunks)
        ]
    else:
        messages = [{"type": "http.request", "body": body, "more_body": False}]

    idx = 0

    async def receive():
        nonlocal idx
        if idx < len(messages):
            msg = messages[idx]
            idx += 1
            return msg
        return {"type": "http.disconnect"}

    return receive


async def make_request(
    store: SessionStore,
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
    body: bytes = b"",
    **kwargs,
) -> Request:
    """Build a Request through the ASGI path."""
    scope = make_scope(method=method, path=path, query_string=query_string, headers=headers)
    return await Request.from_asgi(scope, make_receive(body), store=store, **kwargs)


# ============================================================================
# Send Collector
# ============================================================================


class SendCollector:
    """ASGI send callable that records every message."""

    def __init__(self):
        self.messages: List[dict] = []

    async def __call__(self, message: dict) -> None:
        self.messages.append(message)

    @property
    def status(self) -> int:
        return self.messages[0]["status"]

    @property
    def body(self) -> bytes:
        return b"".join(m.get("body", b"") for m in self.messages[1:])

    def json(self) -> Dict[str, Any]:
        return json.loads(self.body)

    def headers(self, name: str) -> List[str]:
        key = name.lower().encode("latin-1")
        return [v.decode("latin-1") for k, v in self.messages[0]["headers"] if k == key]

    def header(self, name: str) -> Optional[str]:
        values = self.headers(name)
        return values[0] if values else None


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def collector():
    return SendCollector()


@pytest.fixture
def json_headers():
    return [("accept", "application/json")]


@pytest.fixture
def make_response(collector):
    def _make(request: Optional[Request] = None, **kwargs) -> Response:
        return Response(collector, request, **kwargs)
    return _make
