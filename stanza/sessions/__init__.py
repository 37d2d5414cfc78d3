"""
Stanza sessions - server-side state correlated by a ``session_id`` cookie.

Components:
- Session: schema-free key/value bag with an explicit destroy lifecycle
- SessionID: opaque random identifier
- SessionStore: injected, lock-guarded process-wide store
- ABSENT: marker returned for missing keys
"""

from .core import ABSENT, Session, SessionID
from .store import SessionStore

__all__ = [
    "ABSENT",
    "Session",
    "SessionID",
    "SessionStore",
]
