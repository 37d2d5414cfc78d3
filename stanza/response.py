"""
Response - The single outbound envelope of an exchange.

Provides:
- Envelope: status code, message, optional payload/redirect/template
- Response: cookie accumulation and the write-once ``send``
- Sealed: marker returned by ``send``, proof the exchange completed

Output selection on ``send``:
- JSON exchanges (``request.wants_json``) always receive the envelope as
  a JSON document with HTTP status ``status_code``.
- Otherwise ``redirect`` wins (303 See Other), then ``template`` (rendered
  with ``payload``), then the envelope as JSON.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, TYPE_CHECKING
from urllib.parse import quote

from .cookies import Cookie
from .faults import ResponseAlreadySent, TemplateRenderError
from .status import StatusCode

if TYPE_CHECKING:
    from .request import Request
    from .templates import TemplateRenderer


logger = logging.getLogger("stanza.response")

ASGISend = Callable[[dict], Awaitable[None]]

JSON_MEDIA_TYPE = "application/json; charset=utf-8"
HTML_MEDIA_TYPE = "text/html; charset=utf-8"


def _json_default_serializer(o):
    """Default JSON serializer for non-standard types."""
    if isinstance(o, (set, tuple)):
        return list(o)
    if hasattr(o, "isoformat"):
        return o.isoformat()
    if hasattr(o, "to_dict"):
        return o.to_dict()
    return str(o)


# ============================================================================
# Envelope
# ============================================================================

@dataclass
class Envelope:
    """
    Uniform reply structure produced by every handler.

    Attributes:
        status_code: Member of ``StatusCode`` (plain ints are coerced)
        message: Human-readable summary
        payload: Arbitrary JSON-serializable value
        redirect: Path to send browsers to
        template: View id to render with ``payload``
    """

    status_code: StatusCode
    message: str
    payload: Any = None
    redirect: Optional[str] = None
    template: Optional[str] = None

    def __post_init__(self):
        # Raises ValueError for codes outside the closed set
        self.status_code = StatusCode(self.status_code)

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape: ``{statusCode, message, payload?, redirect?}``."""
        data: Dict[str, Any] = {
            "statusCode": int(self.status_code),
            "message": self.message,
        }
        if self.payload is not None:
            data["payload"] = self.payload
        if self.redirect is not None:
            data["redirect"] = self.redirect
        return data


@dataclass(frozen=True)
class Sealed:
    """Returned by ``Response.send``; the exchange is complete."""
    status: int
    envelope: Envelope


# ============================================================================
# Response
# ============================================================================

class Response:
    """
    Outbound side of one exchange.

    Cookies accumulate until ``send``; a later cookie with the same name
    replaces the earlier one but keeps its position. ``send`` may be
    called once; any further ``send`` or ``set_cookie`` raises
    ``ResponseAlreadySent``.

    The session cookie is managed here: a session allocated for this
    request gets a ``session_id`` cookie unless the handler set one, and a
    session destroyed during the exchange gets an expired one.
    """

    def __init__(
        self,
        send: ASGISend,
        request: Optional[Request] = None,
        *,
        renderer: Optional[TemplateRenderer] = None,
        session_cookie: str = "session_id",
        session_max_age: Optional[int] = None,
    ):
        """
        Initialize Response.

        Args:
            send: ASGI send callable
            request: The request being answered (drives negotiation and
                the session cookie)
            renderer: Template renderer for envelopes with ``template``
            session_cookie: Name of the session cookie
            session_max_age: Max-Age of a newly issued session cookie
        """
        self._asgi_send = send
        self.request = request
        self.renderer = renderer
        self.session_cookie = session_cookie
        self.session_max_age = session_max_age

        self._cookies: Dict[str, Cookie] = {}
        self._headers: Dict[str, str] = {}
        self._sending = False
        self._sent = False

        self.status: Optional[int] = None
        self.envelope: Optional[Envelope] = None

    # ========================================================================
    # Cookies & Headers
    # ========================================================================

    def set_cookie(self, cookie: Cookie) -> None:
        """Queue a cookie for the ``Set-Cookie`` headers."""
        if self._sent:
            raise ResponseAlreadySent(
                "Cannot set a cookie after the response was sent",
                metadata={"cookie": cookie.name},
            )
        self._cookies[cookie.name] = cookie

    def delete_cookie(self, name: str, path: str = "/") -> None:
        """Queue an expired cookie so the client drops ``name``."""
        self.set_cookie(Cookie.expired(name, path=path))

    @property
    def cookies(self) -> List[Cookie]:
        """Queued cookies in header order."""
        return list(self._cookies.values())

    def set_header(self, name: str, value: str) -> None:
        """Set an extra response header (replaces existing)."""
        if self._sent:
            raise ResponseAlreadySent(
                "Cannot set a header after the response was sent",
                metadata={"header": name},
            )
        if "\r" in value or "\n" in value:
            raise ValueError(f"Header {name!r} contains a line break")
        self._headers[name.lower()] = value

    @property
    def sent(self) -> bool:
        """True once ``send`` has completed."""
        return self._sent

    # ========================================================================
    # Send
    # ========================================================================

    async def send(self, envelope: Optional[Envelope] = None, /, **fields: Any) -> Sealed:
        """
        Emit the envelope and complete the exchange.

        Accepts an ``Envelope`` or its fields as keywords::

            await response.send(status_code=StatusCode.OK, message="Poem retrieved",
                                payload={"poem": poem}, template="PoemView")

        Returns:
            Sealed marker

        Raises:
            ResponseAlreadySent: On a second call
            TemplateRenderError: If the template cannot be rendered; nothing
                has been written and ``send`` may be called again
        """
        if self._sent or self._sending:
            raise ResponseAlreadySent(
                metadata={"path": getattr(self.request, "path", None)},
            )

        if envelope is None:
            envelope = Envelope(**fields)
        elif fields:
            raise TypeError("Pass either an Envelope or keyword fields, not both")

        self._sending = True
        try:
            status, media_type, body, location = await self._select_output(envelope)
        except BaseException:
            self._sending = False
            raise

        self._attach_session_cookie()
        headers = self._build_headers(media_type, body, location)

        try:
            await self._asgi_send({
                "type": "http.response.start",
                "status": status,
                "headers": headers,
            })
            await self._asgi_send({
                "type": "http.response.body",
                "body": body,
            })
        finally:
            # A transport failure still consumes the exchange
            self._sent = True
            self._sending = False
            self.status = status
            self.envelope = envelope

        logger.debug("Sent %d (%s)", status, media_type or "redirect")
        return Sealed(status=status, envelope=envelope)

    async def _select_output(self, envelope: Envelope) -> tuple[int, Optional[str], bytes, Optional[str]]:
        request = self.request
        status = int(envelope.status_code)

        if request is not None and request.wants_json:
            return status, JSON_MEDIA_TYPE, self._encode_json(envelope), None

        if envelope.redirect is not None:
            redirect_status = status if status in (301, 302, 303) else int(StatusCode.SeeOther)
            return redirect_status, None, b"", envelope.redirect

        if envelope.template is not None:
            html = await self._render(envelope)
            return status, HTML_MEDIA_TYPE, html.encode("utf-8"), None

        return status, JSON_MEDIA_TYPE, self._encode_json(envelope), None

    async def _render(self, envelope: Envelope) -> str:
        if self.renderer is None:
            raise TemplateRenderError(
                f"No template renderer configured for view {envelope.template!r}",
                metadata={"template": envelope.template},
            )

        payload = envelope.payload
        context: Dict[str, Any] = dict(payload) if isinstance(payload, Mapping) else {"payload": payload}
        context.setdefault("message", envelope.message)
        context.setdefault("statusCode", int(envelope.status_code))
        return await self.renderer.render(envelope.template, context)

    @staticmethod
    def _encode_json(envelope: Envelope) -> bytes:
        return json.dumps(envelope.to_dict(), default=_json_default_serializer).encode("utf-8")

    def _attach_session_cookie(self) -> None:
        request = self.request
        if request is None:
            return

        session = request.session
        if session.destroyed:
            self._cookies[self.session_cookie] = Cookie.expired(self.session_cookie)
        elif request.session_is_new and self.session_cookie not in self._cookies:
            self._cookies[self.session_cookie] = Cookie(
                self.session_cookie,
                str(session.id),
                max_age=self.session_max_age,
            )

    def _build_headers(
        self,
        media_type: Optional[str],
        body: bytes,
        location: Optional[str],
    ) -> List[tuple[bytes, bytes]]:
        headers: List[tuple[bytes, bytes]] = []

        if media_type is not None:
            headers.append((b"content-type", media_type.encode("latin-1")))
        headers.append((b"content-length", str(len(body)).encode("latin-1")))

        if location is not None:
            # Non-latin-1 paths are sent percent-encoded
            headers.append((b"location", quote(location, safe="/?&=%#:;+,@!$'()*~").encode("latin-1")))

        for name, value in self._headers.items():
            headers.append((name.encode("latin-1"), value.encode("latin-1")))

        for cookie in self._cookies.values():
            headers.append((b"set-cookie", cookie.serialize().encode("latin-1")))

        return headers

    def __repr__(self) -> str:
        state = "sent" if self._sent else "pending"
        return f"<Response {state} status={self.status}>"
