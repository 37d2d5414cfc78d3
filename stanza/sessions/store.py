"""
Stanza sessions - Session storage.

``SessionStore`` is the one piece of shared mutable state in the kernel.
It is constructed once per application and injected into request parsing,
so tests can build isolated stores.

The internal mapping is guarded by a ``threading.RLock``; that keeps the
structure consistent whether the host runs one event loop or several
worker threads. Values inside a session are not locked: concurrent
requests for the same session race with last-write-wins per key.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Optional

from .core import Session, SessionID


logger = logging.getLogger("stanza.sessions")


class SessionStore:
    """
    In-memory, process-wide session store.

    Features:
    - O(1) load by id string
    - Optional ``max_sessions`` bound with least-recently-used eviction
    - Destroyed ids are removed and never reissued

    Example:
        >>> store = SessionStore()
        >>> session = store.create()
        >>> store.load(str(session.id)) is session
        True
    """

    def __init__(self, max_sessions: Optional[int] = None):
        """
        Initialize store.

        Args:
            max_sessions: Maximum live sessions (None = unbounded)
        """
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, Session] = OrderedDict()
        self._lock = threading.RLock()

    def create(self) -> Session:
        """Allocate and register a new anonymous session."""
        session = Session(id=SessionID(), _store=self)

        with self._lock:
            if self.max_sessions is not None and self._sessions and len(self._sessions) >= self.max_sessions:
                # Unmapped only; a request already holding it keeps using it
                _, evicted = self._sessions.popitem(last=False)
                logger.debug("Evicted least recently used session %s", evicted.id.fingerprint())
            self._sessions[str(session.id)] = session

        logger.debug("Created session %s", session.id.fingerprint())
        return session

    def load(self, raw_id: Optional[str]) -> Optional[Session]:
        """
        Look up a live session by its encoded id.

        Malformed or unknown ids return None.
        """
        if not raw_id:
            return None

        try:
            key = str(SessionID.from_string(raw_id))
        except ValueError:
            return None

        with self._lock:
            session = self._sessions.get(key)
            if session is not None:
                self._sessions.move_to_end(key)
            return session

    def resolve(self, raw_id: Optional[str]) -> tuple[Session, bool]:
        """
        Load the session for ``raw_id`` or allocate a new one.

        Returns:
            (session, created) where ``created`` is True for a new session
        """
        session = self.load(raw_id)
        if session is not None:
            return session, False
        return self.create(), True

    def delete(self, session_id: SessionID | str) -> None:
        """Remove a session. Unknown ids are ignored."""
        with self._lock:
            removed = self._sessions.pop(str(session_id), None)

        if removed is not None:
            logger.debug("Deleted session %s", removed.id.fingerprint())

    def clear(self) -> None:
        """Drop every live session."""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()

        for session in sessions:
            session.destroyed = True

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return str(session_id) in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
