"""
Stanza sessions - Core types.

Defines:
- ABSENT: marker returned for missing session keys
- SessionID: opaque random identifier
- Session: server-side key/value bag bound to one store
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TYPE_CHECKING

from ..faults import SessionDestroyed

if TYPE_CHECKING:
    from .store import SessionStore


# ============================================================================
# ABSENT - Missing-key Marker
# ============================================================================

class _Absent:
    """Falsy singleton meaning "no value stored under this key"."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


# ============================================================================
# SessionID - Opaque Identifier
# ============================================================================

class SessionID:
    """
    Opaque session identifier.

    Rules:
    - Never encodes meaning (no user id, no timestamp)
    - 32 random bytes from ``secrets`` (256 bits)
    - URL-safe, cookie-safe encoding with a ``sess_`` prefix

    Example:
        >>> sid = SessionID()
        >>> SessionID.from_string(str(sid)) == sid
        True
    """

    __slots__ = ("_raw", "_encoded")

    PREFIX = "sess_"

    def __init__(self, raw: bytes | None = None):
        if raw is None:
            raw = secrets.token_bytes(32)
        elif len(raw) != 32:
            raise ValueError("Session ID must be exactly 32 bytes")

        self._raw = raw
        self._encoded = f"{self.PREFIX}{base64.urlsafe_b64encode(raw).decode().rstrip('=')}"

    def __str__(self) -> str:
        return self._encoded

    def __repr__(self) -> str:
        return f"SessionID({self._encoded[:12]}...)"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SessionID):
            return False
        return self._raw == other._raw

    def __hash__(self) -> int:
        return hash(self._raw)

    @classmethod
    def from_string(cls, encoded: str) -> SessionID:
        """
        Parse a session ID from its encoded form.

        Raises:
            ValueError: If the string is not a well-formed session ID
        """
        if not encoded.startswith(cls.PREFIX):
            raise ValueError(f"Invalid session ID format: must start with '{cls.PREFIX}'")

        raw_b64 = encoded[len(cls.PREFIX):]
        padding = -len(raw_b64) % 4
        try:
            raw = base64.urlsafe_b64decode(raw_b64 + "=" * padding)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid session ID encoding: {e}") from e

        return cls(raw)

    def fingerprint(self) -> str:
        """Short hash of the id, safe to put in logs."""
        return hashlib.sha256(self._raw).hexdigest()[:12]


# ============================================================================
# Session - State Container
# ============================================================================

@dataclass(eq=False)
class Session:
    """
    Server-side key/value bag keyed by an opaque session id.

    The store is schema-free; the domain layer sets ``isLoggedIn``,
    ``userId`` and ``isAdmin``. Writes are independent: two consecutive
    ``set`` calls are not a transaction.

    Once destroyed, every read or write raises ``SessionDestroyed``.

    Attributes:
        id: Opaque identifier
        data: Stored values
        created_at: When the session was allocated (UTC)
        destroyed: True after ``destroy()``
    """

    id: SessionID
    data: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    destroyed: bool = False
    _store: SessionStore | None = field(default=None, repr=False)

    def _check_alive(self) -> None:
        if self.destroyed:
            raise SessionDestroyed(metadata={"session": self.id.fingerprint()})

    def get(self, key: str, default: Any = ABSENT) -> Any:
        """Get a value, or ``default`` (ABSENT unless given) if missing."""
        self._check_alive()
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Store a value."""
        self._check_alive()
        self.data[key] = value

    def delete(self, key: str) -> None:
        """Remove a key if present."""
        self._check_alive()
        self.data.pop(key, None)

    def __getitem__(self, key: str) -> Any:
        self._check_alive()
        return self.data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __contains__(self, key: str) -> bool:
        self._check_alive()
        return key in self.data

    @property
    def is_logged_in(self) -> bool:
        """Whether the domain layer marked this session as authenticated."""
        return bool(self.get("isLoggedIn", False))

    def destroy(self) -> None:
        """
        Invalidate this session and remove it from its store.

        Idempotent. The id is never reissued, so replaying the old cookie
        yields a fresh anonymous session.
        """
        if self.destroyed:
            return

        if self._store is not None:
            self._store.delete(self.id)

        self.data.clear()
        self.destroyed = True

    def __str__(self) -> str:
        return f"Session({self.id.fingerprint()}, keys={len(self.data)})"
