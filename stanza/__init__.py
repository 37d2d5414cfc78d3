"""
Stanza - Web kernel for small content-sharing services

Components:
- Router: ordered, method-segregated, first-match route table
- Request: parsed inbound exchange with an always-present session
- Response: write-once envelope with content negotiation
- Sessions: injected in-memory store keyed by a ``session_id`` cookie
- Cookies: record and wire format
- Faults: structured kernel errors
"""

__version__ = "0.1.0"

# ============================================================================
# Core
# ============================================================================

from .app import Stanza
from .config import StanzaConfig
from .router import Route, RouteMatch, RouteWarning, Router
from .request import NOT_A_NUMBER, Request
from .response import Envelope, Response, Sealed
from .status import StatusCode
from .cookies import Cookie, parse_cookie_header
from .templates import Jinja2Renderer, TemplateRenderer
from .results import Err, Ok, Result, is_ok, unwrap

# ============================================================================
# Sessions
# ============================================================================

from .sessions import ABSENT, Session, SessionID, SessionStore

# ============================================================================
# Faults
# ============================================================================

from .faults import (
    ConfigError,
    Fault,
    FaultDomain,
    InvalidCookieName,
    InvalidCookiePath,
    InvalidRoutePattern,
    PayloadTooLarge,
    ResponseAlreadySent,
    ResponseNotSent,
    SessionDestroyed,
    Severity,
    TemplateRenderError,
)

__all__ = [
    "__version__",
    "Stanza",
    "StanzaConfig",
    "Router",
    "Route",
    "RouteMatch",
    "RouteWarning",
    "Request",
    "NOT_A_NUMBER",
    "Response",
    "Envelope",
    "Sealed",
    "StatusCode",
    "Cookie",
    "parse_cookie_header",
    "TemplateRenderer",
    "Jinja2Renderer",
    "Ok",
    "Err",
    "Result",
    "is_ok",
    "unwrap",
    "ABSENT",
    "Session",
    "SessionID",
    "SessionStore",
    "Fault",
    "FaultDomain",
    "Severity",
    "ConfigError",
    "InvalidCookieName",
    "InvalidCookiePath",
    "InvalidRoutePattern",
    "PayloadTooLarge",
    "ResponseAlreadySent",
    "ResponseNotSent",
    "SessionDestroyed",
    "TemplateRenderError",
]
