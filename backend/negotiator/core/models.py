"""
ORM models for durable session storage.

WHAT: SQLAlchemy table holding one JSON snapshot per negotiation session
WHY: Sessions are a nested aggregate; a snapshot keeps reads and writes atomic
HOW: Declarative model with indexed state and round columns for inspection
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, JSON, String, CheckConstraint

from .database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class NegotiationSnapshot(Base):
    """
    Latest snapshot of a negotiation session.

    WHAT: Full serialized session plus a few queryable columns
    WHY: Read-through on cache miss and write-through on every mutation
    HOW: Primary key on session_id, payload is the session's JSON dump
    """
    __tablename__ = "negotiation_sessions"

    session_id = Column(String(36), primary_key=True)
    state = Column(String(20), nullable=False, index=True)
    round = Column(Integer, nullable=False, default=0)
    payload = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        CheckConstraint("round >= 0", name="check_round_non_negative"),
    )

    def __repr__(self):
        return f"<NegotiationSnapshot(session_id={self.session_id}, state={self.state}, round={self.round})>"
