"""
Request - Typed view of one inbound ASGI HTTP request.

Provides:
- Case-insensitive headers, parsed cookies, ordered query parameters
- Body parsing by Content-Type (url-encoded forms and JSON) into a flat
  mapping; a body that cannot be parsed becomes ``{}``
- Session resolution through an injected ``SessionStore``; the session is
  always present
- Path parameter accessors following the positional ``:id`` convention
- HTML form method override (``_method`` body field)
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union
from urllib.parse import parse_qsl

from ._datastructures import Headers, MultiDict
from .cookies import parse_cookie_header
from .faults import PayloadTooLarge
from .sessions import Session, SessionStore


logger = logging.getLogger("stanza.request")

DEFAULT_MAX_BODY_SIZE = 1_048_576  # 1 MiB

_OVERRIDABLE_METHODS = frozenset({"PUT", "PATCH", "DELETE"})


# ============================================================================
# NOT_A_NUMBER - Failed Numeric Coercion
# ============================================================================

class _NotANumber:
    """
    Falsy sentinel returned when a path parameter is not an integer.

    Handlers compare with ``is NOT_A_NUMBER`` and answer with a client error
    before doing any work.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_A_NUMBER"


NOT_A_NUMBER = _NotANumber()


def _to_int(value: Optional[str]) -> Union[int, _NotANumber]:
    if value is None:
        return NOT_A_NUMBER
    # int() accepts "+1", " 1" and "1_000"; path ids are plain digits
    if not value.isdigit() or not value.isascii():
        return NOT_A_NUMBER
    return int(value)


# ============================================================================
# Body Parsing
# ============================================================================

def parse_body(body: bytes, content_type: Optional[str]) -> Dict[str, Any]:
    """
    Parse a request body into a flat key/value mapping.

    Supports ``application/x-www-form-urlencoded`` and ``application/json``.
    Unknown content types, decode errors and JSON documents that are not
    objects all yield an empty mapping; field validation downstream
    reports the effective absence.
    """
    if not body:
        return {}

    media_type = (content_type or "").split(";", 1)[0].strip().lower()

    if media_type == "application/json" or media_type.endswith("+json"):
        try:
            data = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError, RecursionError):
            logger.debug("Discarding malformed JSON body")
            return {}
        return data if isinstance(data, dict) else {}

    if media_type == "application/x-www-form-urlencoded":
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("Discarding undecodable form body")
            return {}
        # Repeated keys: last one wins, like a plain object assignment
        return dict(parse_qsl(text, keep_blank_values=True))

    return {}


# ============================================================================
# Request Class
# ============================================================================

class Request:
    """
    Request object handed to every route handler.

    Attributes:
        method: Effective HTTP method (after ``_method`` override)
        path: Request path, without query string
        headers: Case-insensitive headers
        body: Parsed body mapping (never None)
        cookies: Inbound cookies
        search_params: Ordered query parameters
        path_params: Ordered path parameters bound by the router
        session: Resolved session (never None)
        session_is_new: True when the session was allocated for this request
        state: Per-request scratch space
    """

    def __init__(
        self,
        method: str,
        path: str,
        *,
        session: Session,
        session_is_new: bool = False,
        headers: Optional[Headers] = None,
        body: Optional[Mapping[str, Any]] = None,
        raw_body: bytes = b"",
        query_string: str = "",
        scope: Optional[Mapping[str, Any]] = None,
    ):
        self.raw_method = method.upper()
        self.path = path or "/"
        self.headers = headers if headers is not None else Headers()
        self.body: Dict[str, Any] = dict(body or {})
        self.raw_body = raw_body
        self.query_string = query_string
        self.search_params = MultiDict(parse_qsl(query_string, keep_blank_values=True))
        self.cookies = parse_cookie_header(self.headers.get("cookie"))
        self.path_params = MultiDict()
        self.session = session
        self.session_is_new = session_is_new
        self.scope = scope or {}
        self.state: Dict[str, Any] = {}

        self.method = self._effective_method()

    @classmethod
    async def from_asgi(
        cls,
        scope: Mapping[str, Any],
        receive: Callable[[], Awaitable[dict]],
        *,
        store: SessionStore,
        cookie_name: str = "session_id",
        max_body_size: int = DEFAULT_MAX_BODY_SIZE,
    ) -> "Request":
        """
        Build a Request from an ASGI HTTP scope.

        Reads the whole body, resolves the session from ``cookie_name`` and
        parses the body by Content-Type.

        Raises:
            PayloadTooLarge: If the body exceeds ``max_body_size``
        """
        headers = Headers(list(scope.get("headers", [])))
        raw_body = await cls._read_body(receive, max_body_size)

        cookies = parse_cookie_header(headers.get("cookie"))
        session, created = store.resolve(cookies.get(cookie_name))

        query_string = scope.get("query_string", b"")
        if isinstance(query_string, bytes):
            query_string = query_string.decode("latin-1")

        return cls(
            scope.get("method", "GET"),
            scope.get("path", "/"),
            session=session,
            session_is_new=created,
            headers=headers,
            body=parse_body(raw_body, headers.get("content-type")),
            raw_body=raw_body,
            query_string=query_string,
            scope=scope,
        )

    @staticmethod
    async def _read_body(receive: Callable[[], Awaitable[dict]], max_body_size: int) -> bytes:
        chunks = []
        size = 0
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                break

            chunk = message.get("body", b"")
            size += len(chunk)
            if size > max_body_size:
                raise PayloadTooLarge(
                    f"Request body exceeds {max_body_size} bytes",
                    metadata={"limit": max_body_size},
                )
            chunks.append(chunk)

            if not message.get("more_body", False):
                break
        return b"".join(chunks)

    def _effective_method(self) -> str:
        if self.raw_method != "POST":
            return self.raw_method
        override = self.body.get("_method")
        if isinstance(override, str) and override.upper() in _OVERRIDABLE_METHODS:
            return override.upper()
        return self.raw_method

    # ========================================================================
    # Headers & Negotiation
    # ========================================================================

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get a header value (case-insensitive)."""
        return self.headers.get(name, default)

    @property
    def content_type(self) -> str:
        """Media type of the body, without parameters."""
        return (self.headers.get("content-type") or "").split(";", 1)[0].strip().lower()

    @property
    def wants_json(self) -> bool:
        """
        True for API-style exchanges.

        A JSON request body, or an ``Accept`` header that lists
        ``application/json`` ahead of ``text/html``, selects JSON output.
        """
        if self.content_type == "application/json":
            return True

        accept = (self.headers.get("accept") or "").lower()
        json_at = accept.find("application/json")
        if json_at < 0:
            return False
        html_at = accept.find("text/html")
        return html_at < 0 or json_at < html_at

    # ========================================================================
    # Path Parameters
    # ========================================================================

    def path_param(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First raw value bound to ``name``."""
        return self.path_params.get(name, default)

    def int_param(self, name: str, *, last: bool = False) -> Union[int, _NotANumber]:
        """
        Path parameter coerced to ``int``.

        Args:
            name: Parameter name
            last: Use the last occurrence instead of the first

        Returns:
            The integer, or NOT_A_NUMBER if absent or not numeric
        """
        raw = self.path_params.get_last(name) if last else self.path_params.get(name)
        return _to_int(raw)

    def get_id(self) -> Union[int, _NotANumber]:
        """The first ``:id`` segment as an integer (e.g. the poem id)."""
        return self.int_param("id")

    def get_comment_id(self) -> Union[int, _NotANumber]:
        """The last ``:id`` segment as an integer (e.g. the comment id)."""
        return self.int_param("id", last=True)

    def get_search_params(self) -> MultiDict:
        """Ordered query parameters."""
        return self.search_params

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.path}>"
