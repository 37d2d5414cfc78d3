"""
Stanza faults - Structured error types.

Defines:
- Severity levels
- FaultDomain (functional area of a fault)
- Fault base class (code, message, domain, severity, public exposure)
- Concrete faults raised by the routing, request, response and
  session layers

Expected conditions (unmatched route, unparseable cookie, unparseable
body) are never faults; they resolve to well-formed responses. Faults
mark programming errors and infrastructure failures.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


# ============================================================================
# Severity & Domain
# ============================================================================

class Severity(str, Enum):
    """
    Fault severity levels.

    Determines the logging level used when a fault is reported.
    """
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class FaultDomain:
    """
    Fault domains (taxonomy).

    Identifies the functional area where a fault occurred.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.value = name
        self.description = description

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain(name='{self.name}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(self.name)


FaultDomain.CONFIG = FaultDomain("config", "Configuration errors")
FaultDomain.ROUTING = FaultDomain("routing", "Route table errors")
FaultDomain.FLOW = FaultDomain("flow", "Handler execution errors")
FaultDomain.IO = FaultDomain("io", "Request and response I/O")
FaultDomain.SECURITY = FaultDomain("security", "Sessions and cookies")


DOMAIN_DEFAULTS = {
    FaultDomain.CONFIG: Severity.FATAL,
    FaultDomain.ROUTING: Severity.ERROR,
    FaultDomain.FLOW: Severity.ERROR,
    FaultDomain.IO: Severity.WARN,
    FaultDomain.SECURITY: Severity.ERROR,
}


# ============================================================================
# Fault - Base Class
# ============================================================================

class Fault(Exception):
    """
    Base fault class - structured, typed fault object.

    Attributes:
        code: Stable machine-readable identifier (e.g., "RESPONSE_ALREADY_SENT")
        message: Human-readable summary
        domain: Fault domain
        severity: Fault severity
        public: Whether the message is safe to expose to clients
        metadata: Additional context data

    Subclasses usually declare ``code``, ``message`` and ``domain`` as class
    attributes and are raised with only the varying parts::

        raise ResponseAlreadySent(metadata={"path": request.path})
    """

    code: Optional[str] = None
    message: Optional[str] = None
    domain: Optional[FaultDomain] = None
    severity: Optional[Severity] = None
    public: bool = False

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        domain: FaultDomain | None = None,
        severity: Optional[Severity] = None,
        public: Optional[bool] = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        self.code = code if code is not None else type(self).code
        self.message = message if message is not None else type(self).message
        self.domain = domain if domain is not None else type(self).domain

        if self.code is None or self.message is None or self.domain is None:
            raise TypeError(f"{self.__class__.__name__} missing required code, message, or domain")

        super().__init__(self.message)

        self.severity = severity or type(self).severity or DOMAIN_DEFAULTS.get(self.domain, Severity.ERROR)
        self.public = public if public is not None else type(self).public
        self.metadata = metadata or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(code={self.code!r}, domain={self.domain.value}, "
            f"severity={self.severity.value}, public={self.public})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize fault to a dictionary suitable for logging."""
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "public": self.public,
            "metadata": self.metadata,
        }


# ============================================================================
# Routing Faults
# ============================================================================

class InvalidRoutePattern(Fault):
    """Route pattern is malformed or unreachable (strict mode)."""
    code = "INVALID_ROUTE_PATTERN"
    message = "Invalid route pattern"
    domain = FaultDomain.ROUTING
    severity = Severity.FATAL


# ============================================================================
# Flow Faults (handler contract)
# ============================================================================

class ResponseAlreadySent(Fault):
    """``send`` or ``set_cookie`` called after the exchange completed."""
    code = "RESPONSE_ALREADY_SENT"
    message = "Response has already been sent"
    domain = FaultDomain.FLOW


class ResponseNotSent(Fault):
    """Handler returned without ever calling ``send``."""
    code = "RESPONSE_NOT_SENT"
    message = "Handler returned without sending a response"
    domain = FaultDomain.FLOW


class TemplateRenderError(Fault):
    """Template could not be loaded or rendered."""
    code = "TEMPLATE_RENDER_ERROR"
    message = "Template rendering failed"
    domain = FaultDomain.FLOW


# ============================================================================
# I/O Faults
# ============================================================================

class PayloadTooLarge(Fault):
    """Request body exceeds the configured limit."""
    code = "PAYLOAD_TOO_LARGE"
    message = "Payload too large"
    domain = FaultDomain.IO
    public = True


# ============================================================================
# Security Faults (sessions, cookies)
# ============================================================================

class SessionDestroyed(Fault):
    """Session was used after ``destroy()``."""
    code = "SESSION_DESTROYED"
    message = "Session has been destroyed"
    domain = FaultDomain.SECURITY
    severity = Severity.WARN


class InvalidCookieName(Fault):
    """Cookie name contains characters outside the RFC 6265 token set."""
    code = "INVALID_COOKIE_NAME"
    message = "Invalid cookie name"
    domain = FaultDomain.SECURITY


class InvalidCookiePath(Fault):
    """Cookie path contains a control character or ``;``."""
    code = "INVALID_COOKIE_PATH"
    message = "Invalid cookie path"
    domain = FaultDomain.SECURITY


# ============================================================================
# Config Faults
# ============================================================================

class ConfigError(Fault):
    """Configuration value is missing or has the wrong type."""
    code = "CONFIG_ERROR"
    message = "Invalid configuration"
    domain = FaultDomain.CONFIG
