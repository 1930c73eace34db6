"""
Session store for the Albi Mall assistant.

Process-wide mapping from session id to SessionContext. Contexts are
created lazily on the first message, updated after every processed turn,
and expire after a period of inactivity. Expired contexts are evicted when
next accessed; ``sweep_expired`` can also be run periodically to bound
memory (see core.cache.CacheSweeper).

The store is an explicitly owned object injected into the assistant, not
a module-level singleton, so tests can build as many as they need.

Usage:
    store = SessionStore(ttl_seconds=3600, max_history=10)
    session = store.get_or_create("abc123")
    store.update("abc123", TurnRecord(user_message="red bag", assistant_text="..."))
    store.stats()  # SessionStats(total=1, active=1)
"""

import threading
import time
import uuid
from copy import copy
from datetime import datetime
from typing import Callable, Optional

from core.context import Message, SessionContext, SessionStats, TurnRecord
from core.structured_logging import get_logger

# Module-level logger
_logger = get_logger("core.sessions")


def generate_session_id() -> str:
    """Generate a session id like 'session_20260101_134318_1a2b3c4d'."""
    return f"session_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"


class SessionStore:
    """
    Thread-safe in-memory session store with inactivity expiry.

    Example:
        store = SessionStore(ttl_seconds=60)
        ctx = store.get_or_create("s1")
        store.clear("s1")  # True
        store.clear("s1")  # False
    """

    def __init__(
        self,
        ttl_seconds: float = 3600,
        max_history: int = 10,
        context_pool_limit: int = 20,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            ttl_seconds: Inactivity window after which a session is treated as absent
            max_history: Maximum messages kept per session
            context_pool_limit: Maximum products retained for follow-ups
            clock: Time source in epoch seconds (injectable for tests)
        """
        self.ttl_seconds = ttl_seconds
        self.max_history = max_history
        self.context_pool_limit = context_pool_limit
        self._clock = clock
        self._sessions: dict[str, SessionContext] = {}
        self._lock = threading.RLock()

    # === Reads ===

    def _is_expired(self, session: SessionContext, now: float) -> bool:
        return now - session.last_touched > self.ttl_seconds

    def get(self, session_id: str) -> Optional[SessionContext]:
        """Return the live context, or None if absent or expired (expired ones are evicted)."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if self._is_expired(session, self._clock()):
                del self._sessions[session_id]
                _logger.info(
                    "Session expired",
                    extra={"event": "session_expired", "session_id": session_id},
                )
                return None
            return session

    def get_or_create(self, session_id: str) -> SessionContext:
        """Return the session's context, starting a fresh one if absent or expired."""
        with self._lock:
            session = self.get(session_id)
            if session is None:
                now = self._clock()
                session = SessionContext(session_id=session_id, created_at=now, last_touched=now)
                self._sessions[session_id] = session
                _logger.debug(
                    "Session created",
                    extra={"event": "session_created", "session_id": session_id},
                )
            return session

    def snapshot(self, session_id: str) -> Optional[dict]:
        """JSON-ready view of a session, or None."""
        with self._lock:
            session = self.get(session_id)
            return session.to_dict() if session else None

    # === Writes ===

    def update(self, session_id: str, turn: TurnRecord) -> SessionContext:
        """
        Apply one processed turn.

        Appends both messages (history bounded to max_history, oldest dropped),
        replaces the last query and filters, and replaces the retained products
        only when the turn supplies a new list (follow-ups pass None).

        Returns:
            The updated context
        """
        with self._lock:
            session = self.get_or_create(session_id)
            now = self._clock()
            stamp = datetime.fromtimestamp(now)

            meta = {"intent": turn.intent.value} if turn.intent else {}
            session.messages.append(Message("user", turn.user_message, stamp, dict(meta)))
            session.messages.append(Message("assistant", turn.assistant_text, stamp,
                                            {"products": list(turn.recommended_ids)}))
            if len(session.messages) > self.max_history:
                session.messages = session.messages[-self.max_history:]

            if turn.normalized_query:
                session.last_query = turn.normalized_query
            session.last_filters = copy(turn.filters)
            if turn.filters.product_type:
                session.locked_product_type = turn.filters.product_type
            if turn.products is not None:
                session.last_products = list(turn.products[:self.context_pool_limit])
            session.last_recommended_ids = list(turn.recommended_ids)
            session.last_touched = now
            return session

    def clear(self, session_id: str) -> bool:
        """Delete a session. Returns True if it existed."""
        with self._lock:
            existed = self._sessions.pop(session_id, None) is not None
        if existed:
            _logger.info("Session cleared", extra={"event": "session_cleared", "session_id": session_id})
        return existed

    def sweep_expired(self) -> int:
        """Evict every expired session. Returns the number evicted."""
        with self._lock:
            now = self._clock()
            expired = [sid for sid, s in self._sessions.items() if self._is_expired(s, now)]
            for sid in expired:
                del self._sessions[sid]
        return len(expired)

    # === Stats ===

    def stats(self) -> SessionStats:
        """
        total: sessions currently held (including not-yet-evicted stale ones)
        active: sessions whose latest message is within the inactivity window
        """
        with self._lock:
            now = self._clock()
            active = sum(
                1 for s in self._sessions.values()
                if s.messages and now - s.last_touched <= self.ttl_seconds
            )
            return SessionStats(total=len(self._sessions), active=active)

    def active_session_ids(self) -> list[str]:
        with self._lock:
            now = self._clock()
            return [
                sid for sid, s in self._sessions.items()
                if s.messages and now - s.last_touched <= self.ttl_seconds
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
