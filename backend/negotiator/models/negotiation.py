"""
Negotiation domain models.

WHAT: Core data structures for sessions, turns, offers and branches
WHY: Consistent typing across engine, store, analytics and API
HOW: Pydantic v2 models; turns live in one append-only arena and
     branches reference them by sequence number
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


MAIN_BRANCH = "main"

Role = Literal["buyer", "seller"]
Personality = Literal["friendly", "professional", "firm", "flexible"]
BranchType = Literal["main", "scenario", "alternative", "backup", "test"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionState(str, Enum):
    """Lifecycle states of a negotiation session."""
    INITIATED = "initiated"
    IN_PROGRESS = "in_progress"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({
    SessionState.ACCEPTED,
    SessionState.REJECTED,
    SessionState.EXPIRED,
    SessionState.CANCELLED,
})


class TurnActor(str, Enum):
    """Who produced a turn."""
    BUYER = "buyer"
    SELLER = "seller"
    AI = "ai"
    SYSTEM = "system"


class TurnAction(str, Enum):
    """Decision carried by a turn."""
    CONTINUE = "continue"
    ACCEPT = "accept"
    REJECT = "reject"
    COUNTER = "counter"


class ProductContext(BaseModel):
    """The listing being negotiated and its price bounds."""

    title: str = Field(min_length=1, max_length=200)
    base_price: float = Field(ge=0.0)
    min_price: float = Field(ge=0.0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    category: str = "general"
    condition: str = "good"
    features: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_price_bounds(self):
        """Ensure min_price <= base_price."""
        if self.min_price > self.base_price:
            raise ValueError(
                f"min_price ({self.min_price}) must not exceed base_price ({self.base_price})"
            )
        return self

    @property
    def price_range(self) -> float:
        return self.base_price - self.min_price


class Participants(BaseModel):
    """The human initiator and the role the AI plays against them."""

    initiator_role: Role = "buyer"
    counterpart_role: Role = "seller"

    @model_validator(mode="after")
    def validate_distinct_roles(self):
        if self.initiator_role == self.counterpart_role:
            raise ValueError("initiator_role and counterpart_role must differ")
        return self


class CurrentOffer(BaseModel):
    """Latest price on the table."""

    amount: float = Field(ge=0.0)
    currency: str = "USD"
    proposed_by: Literal["buyer", "seller", "ai"]


class TurnOffer(BaseModel):
    """Price attached to a single turn."""

    model_config = ConfigDict(frozen=True)

    amount: float = Field(ge=0.0)
    reasoning: str = ""


class Turn(BaseModel):
    """One message in the conversation. Never mutated after append."""

    model_config = ConfigDict(frozen=True)

    sequence: int = Field(ge=0)
    actor: TurnActor
    raw_text: str
    action: TurnAction = TurnAction.CONTINUE
    offer: TurnOffer | None = None
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=utcnow)
    branch: str = MAIN_BRANCH
    degraded: bool = False
    scenario: str | None = None
    warnings: tuple[str, ...] = ()
    latency_ms: float | None = None

    @property
    def is_human(self) -> bool:
        return self.actor in (TurnActor.BUYER, TurnActor.SELLER)

    @property
    def offer_amount(self) -> float | None:
        return self.offer.amount if self.offer else None


class MarketSignals(BaseModel):
    """External price context shown to the AI."""

    average_price: float | None = Field(default=None, ge=0.0)
    competitor_prices: list[float] = Field(default_factory=list)
    demand: Literal["low", "medium", "high"] = "medium"


class AIContext(BaseModel):
    """Persona and pressure settings for the AI counterpart."""

    personality: Personality = "professional"
    price_flexibility: float = Field(default=0.3, ge=0.0, le=1.0)
    urgency_level: float = Field(default=0.5, ge=0.0, le=1.0)
    market_signals: MarketSignals = Field(default_factory=MarketSignals)


class Branch(BaseModel):
    """
    Alternative continuation of a conversation.

    A branch sees the first `fork_point` turns of its parent's view followed
    by its own turns, referenced by arena sequence number.
    """

    name: str = Field(min_length=1, max_length=50)
    parent: str | None = None
    fork_point: int = Field(default=0, ge=0)
    branch_type: BranchType = "scenario"
    turn_sequences: list[int] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class BranchEvent(BaseModel):
    """Audit record of branch creation and switching."""

    kind: Literal["created", "switched"]
    branch: str
    previous: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)


def _default_branches() -> dict[str, Branch]:
    return {MAIN_BRANCH: Branch(name=MAIN_BRANCH, branch_type="main")}


class NegotiationSession(BaseModel):
    """Complete state of one negotiation."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    product: ProductContext
    participants: Participants = Field(default_factory=Participants)
    state: SessionState = SessionState.INITIATED
    round: int = Field(default=0, ge=0)
    max_rounds: int = Field(default=5, ge=1)
    current_offer: CurrentOffer | None = None
    final_price: float | None = None
    turns: list[Turn] = Field(default_factory=list)
    branches: dict[str, Branch] = Field(default_factory=_default_branches)
    active_branch: str = MAIN_BRANCH
    branch_events: list[BranchEvent] = Field(default_factory=list)
    ai_context: AIContext = Field(default_factory=AIContext)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_activity: datetime = Field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def ai_role(self) -> Role:
        return self.participants.counterpart_role

    @property
    def human_role(self) -> Role:
        return self.participants.initiator_role

    @property
    def history(self) -> list[Turn]:
        """Turns visible on the active branch, oldest first."""
        return self.branch_view(self.active_branch)

    def branch_view(self, name: str) -> list[Turn]:
        """Resolve a branch to its ordered list of turns."""
        branch = self.branches[name]
        base: list[Turn] = []
        if branch.parent is not None:
            base = self.branch_view(branch.parent)[:branch.fork_point]
        return base + [self.turns[seq] for seq in branch.turn_sequences]

    def last_offer_by(self, *actors: TurnActor) -> float | None:
        """Most recent offer amount made by any of the given actors on the active branch."""
        for turn in reversed(self.history):
            if turn.actor in actors and turn.offer is not None:
                return turn.offer.amount
        return None

    def last_ai_offer(self) -> float | None:
        return self.last_offer_by(TurnActor.AI)

    def last_human_offer(self) -> float | None:
        return self.last_offer_by(TurnActor.BUYER, TurnActor.SELLER)

    def touch(self, now: datetime | None = None) -> None:
        moment = now or utcnow()
        self.updated_at = moment
        self.last_activity = moment
