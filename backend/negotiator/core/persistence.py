"""
Durable session persistence.

WHAT: Protocol for the durable tier plus a SQLAlchemy implementation
WHY: The conversation store should not care where snapshots live
HOW: load/save of whole-session JSON snapshots
"""

from typing import Protocol

from ..models.negotiation import NegotiationSession
from ..utils.logger import get_logger
from .database import Database
from .models import NegotiationSnapshot

logger = get_logger(__name__)


class SessionPersistence(Protocol):
    """Durable storage collaborator of the conversation store."""

    def load(self, session_id: str) -> NegotiationSession | None:
        """Return the stored session or None when unknown."""
        ...

    def save(self, session: NegotiationSession) -> None:
        """Persist the full session, replacing any previous snapshot."""
        ...


class SqlSessionPersistence:
    """Stores session snapshots in a SQL database."""

    def __init__(self, database: Database):
        self.database = database

    def load(self, session_id: str) -> NegotiationSession | None:
        with self.database.get_db() as db:
            row = db.get(NegotiationSnapshot, session_id)
            if row is None:
                return None
            payload = row.payload
        return NegotiationSession.model_validate(payload)

    def save(self, session: NegotiationSession) -> None:
        payload = session.model_dump(mode="json")
        with self.database.get_db() as db:
            row = db.get(NegotiationSnapshot, session.id)
            if row is None:
                row = NegotiationSnapshot(session_id=session.id)
                db.add(row)
            row.state = session.state.value
            row.round = session.round
            row.payload = payload
        logger.debug(f"Persisted session {session.id} (state={session.state.value}, round={session.round})")
