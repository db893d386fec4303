"""
In-memory hot tier for negotiation sessions.

WHAT: Session cache with last-access tracking and idle detection
WHY: Active negotiations are read on every turn; storage is the slow path
HOW: Dict guarded by a re-entrant lock, passed explicitly to the store
"""

import threading
from datetime import datetime, timedelta
from typing import Dict, List

from ..models.negotiation import NegotiationSession, utcnow


class CacheContext:
    """Hot tier of the conversation store."""

    def __init__(self, idle_ttl: timedelta = timedelta(minutes=30)):
        self.idle_ttl = idle_ttl
        self._entries: Dict[str, NegotiationSession] = {}
        self._last_access: Dict[str, datetime] = {}
        self.lock = threading.RLock()

    def get(self, session_id: str, now: datetime | None = None) -> NegotiationSession | None:
        with self.lock:
            session = self._entries.get(session_id)
            if session is not None:
                self._last_access[session_id] = now or utcnow()
            return session

    def put(self, session: NegotiationSession, now: datetime | None = None) -> None:
        with self.lock:
            self._entries[session.id] = session
            self._last_access[session.id] = now or utcnow()

    def remove(self, session_id: str) -> None:
        with self.lock:
            self._entries.pop(session_id, None)
            self._last_access.pop(session_id, None)

    def idle_sessions(self, now: datetime | None = None) -> List[NegotiationSession]:
        """Sessions not accessed within the idle TTL."""
        cutoff = (now or utcnow()) - self.idle_ttl
        with self.lock:
            return [
                self._entries[sid]
                for sid, last in self._last_access.items()
                if last < cutoff
            ]

    def __contains__(self, session_id: str) -> bool:
        with self.lock:
            return session_id in self._entries

    def __len__(self) -> int:
        with self.lock:
            return len(self._entries)
