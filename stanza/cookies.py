"""
Cookies - Cookie record and wire format.

Provides:
- Cookie: name/value/attribute record with ``Set-Cookie`` serialization
- parse_cookie_header: inbound ``Cookie`` header parser

Values are percent-encoded on the way out and percent-decoded on the way
in, so any string survives a round trip.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import quote, unquote

from .faults import InvalidCookieName, InvalidCookiePath


# RFC 6265 cookie-name is an RFC 2616 token
_TOKEN_RE = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")

# RFC 6265 path-value: printable ASCII except ";"
_PATH_RE = re.compile(r"[\x20-\x3a\x3c-\x7e]+")


@dataclass
class Cookie:
    """
    A single outbound cookie.

    Attributes:
        name: Cookie name (RFC 6265 token)
        value: Cookie value (percent-encoded on serialization)
        max_age: Lifetime in seconds, omitted for session cookies
        path: Cookie path
        http_only: Hide the cookie from client-side scripts

    Example:
        >>> Cookie("session_id", "sess_abc").serialize()
        'session_id=sess_abc; Path=/; HttpOnly'
    """

    name: str
    value: str
    max_age: Optional[int] = None
    path: str = "/"
    http_only: bool = True

    def __post_init__(self):
        if not _TOKEN_RE.fullmatch(self.name):
            raise InvalidCookieName(
                f"Invalid cookie name: {self.name!r}",
                metadata={"name": self.name},
            )
        if not _PATH_RE.fullmatch(self.path):
            raise InvalidCookiePath(
                f"Invalid cookie path: {self.path!r}",
                metadata={"name": self.name, "path": self.path},
            )

    @classmethod
    def expired(cls, name: str, path: str = "/") -> "Cookie":
        """Cookie that tells the client to drop ``name`` immediately."""
        return cls(name, "", max_age=0, path=path)

    def serialize(self) -> str:
        """
        Render the ``Set-Cookie`` header value.

        Attribute order is fixed: ``Path``, ``Max-Age``, ``HttpOnly``.
        """
        parts = [f"{self.name}={quote(self.value, safe='')}"]
        parts.append(f"Path={self.path}")

        if self.max_age is not None:
            parts.append(f"Max-Age={int(self.max_age)}")

        if self.http_only:
            parts.append("HttpOnly")

        return "; ".join(parts)

    def __str__(self) -> str:
        return self.serialize()


def parse_cookie_header(header: Optional[str]) -> Dict[str, str]:
    """
    Parse an inbound ``Cookie`` header into a name -> value mapping.

    Pairs without ``=`` are skipped. When a name repeats, the first
    occurrence wins.

    Args:
        header: Raw header value (may be None or empty)

    Returns:
        Mapping of cookie names to percent-decoded values
    """
    cookies: Dict[str, str] = {}
    if not header:
        return cookies

    for chunk in header.split(";"):
        chunk = chunk.strip()
        if "=" not in chunk:
            continue

        name, _, value = chunk.partition("=")
        name = name.strip()
        if not name or name in cookies:
            continue

        value = value.strip()
        # Quoted values are legal per RFC 6265
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]

        cookies[name] = unquote(value)

    return cookies
