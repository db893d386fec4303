"""
Pydantic API schemas for the negotiation endpoints.

WHAT: Request and response models for FastAPI and the service facade
WHY: Type-safe validation and a stable view of sessions for callers
HOW: Pydantic v2 models with validators and constraints
"""

from typing import Dict, Optional, List, Literal
from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime

from .negotiation import (
    AIContext,
    CurrentOffer,
    NegotiationSession,
    Participants,
    ProductContext,
    Role,
    Turn,
)


# ========== Request Schemas ==========

class StartNegotiationRequest(BaseModel):
    """Request to open a negotiation on a listing."""
    product: ProductContext
    message: str = Field(..., min_length=1, max_length=2000, description="Opening message")
    initiator_role: Role = Field(default="buyer", description="Role played by the human")
    initial_offer: Optional[float] = Field(default=None, ge=0, description="Opening price, if any")
    max_rounds: Optional[int] = Field(default=None, gt=0, le=50, description="Round budget override")
    ai_context: Optional[AIContext] = Field(default=None, description="Persona, flexibility, urgency and market signals")

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message must not be blank")
        return v

    def participants(self) -> Participants:
        counterpart = "seller" if self.initiator_role == "buyer" else "buyer"
        return Participants(initiator_role=self.initiator_role, counterpart_role=counterpart)


class SubmitTurnRequest(BaseModel):
    """Request carrying one human turn."""
    actor_role: Role = Field(..., description="Must match the session's initiator role")
    message: str = Field(default="", max_length=2000, description="Turn text")
    offer: Optional[float] = Field(default=None, ge=0, description="Explicit price, overrides prices in text")

    @model_validator(mode="after")
    def require_content(self):
        if not self.message.strip() and self.offer is None:
            raise ValueError("A turn needs a message or an offer")
        return self


class CreateBranchRequest(BaseModel):
    """Request to fork a what-if branch."""
    name: str = Field(..., min_length=1, max_length=50, pattern=r"^[A-Za-z0-9_\-]+$")
    parent: Optional[str] = Field(default=None, description="Branch to fork from; defaults to the active one")
    fork_point: Optional[int] = Field(default=None, ge=0, description="Number of parent turns to keep")
    branch_type: Literal["scenario", "alternative", "backup", "test"] = "scenario"


# ========== Response Schemas ==========

class TurnOfferView(BaseModel):
    amount: float
    reasoning: str = ""


class TurnView(BaseModel):
    """One turn as shown to callers."""
    sequence: int
    actor: str
    message: str
    action: str
    offer: Optional[TurnOfferView] = None
    confidence: float
    timestamp: datetime
    branch: str
    degraded: bool = False
    scenario: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_turn(cls, turn: Turn) -> "TurnView":
        return cls(
            sequence=turn.sequence,
            actor=turn.actor.value,
            message=turn.raw_text,
            action=turn.action.value,
            offer=TurnOfferView(amount=turn.offer.amount, reasoning=turn.offer.reasoning) if turn.offer else None,
            confidence=turn.confidence,
            timestamp=turn.timestamp,
            branch=turn.branch,
            degraded=turn.degraded,
            scenario=turn.scenario,
            warnings=list(turn.warnings),
        )


class SessionView(BaseModel):
    """Snapshot of a session returned by every negotiation operation."""
    id: str
    state: Literal["initiated", "in_progress", "accepted", "rejected", "expired", "cancelled"]
    round: int
    max_rounds: int
    product_title: str
    currency: str
    current_offer: Optional[CurrentOffer] = None
    final_price: Optional[float] = None
    recent_turns: List[TurnView] = Field(default_factory=list)
    new_turns: List[TurnView] = Field(default_factory=list)
    health_score: Optional[int] = None
    active_branch: str
    branches: List[str] = Field(default_factory=list)
    branch_types: Dict[str, str] = Field(default_factory=dict)
    notice: Optional[str] = None

    @classmethod
    def from_session(
        cls,
        session: NegotiationSession,
        *,
        view_turns: int,
        new_turns: Optional[List[Turn]] = None,
        health_score: Optional[int] = None,
        notice: Optional[str] = None,
    ) -> "SessionView":
        history = session.history
        recent = history[-view_turns:] if view_turns > 0 else []
        return cls(
            id=session.id,
            state=session.state.value,
            round=session.round,
            max_rounds=session.max_rounds,
            product_title=session.product.title,
            currency=session.product.currency,
            current_offer=session.current_offer,
            final_price=session.final_price,
            recent_turns=[TurnView.from_turn(t) for t in recent],
            new_turns=[TurnView.from_turn(t) for t in new_turns or []],
            health_score=health_score,
            active_branch=session.active_branch,
            branches=list(session.branches),
            branch_types={name: b.branch_type for name, b in session.branches.items()},
            notice=notice,
        )


class ErrorResponse(BaseModel):
    """Error response body produced by the exception handlers."""
    error: str
    message: str
    details: Optional[dict] = None
    timestamp: datetime
