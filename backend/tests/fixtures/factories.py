"""
Builders for settings, turns and test doubles used across tests.

WHAT: Small constructors with test-friendly defaults
WHY: Keep fixtures and individual tests from repeating boilerplate
HOW: Plain functions returning real model instances
"""

from negotiator.core.config import Settings
from negotiator.models.negotiation import NegotiationSession, Turn, TurnAction, TurnActor, TurnOffer


def make_settings(**overrides) -> Settings:
    """Settings that ignore .env files, with fast retries and timeouts."""
    values = {
        "LLM_PROVIDER": "lm_studio",
        "LM_STUDIO_BASE_URL": "http://localhost:1234/v1",
        "LM_STUDIO_DEFAULT_MODEL": "test-model",
        "LLM_REQUEST_TIMEOUT": 1.0,
        "LLM_MAX_RETRIES": 2,
        "LLM_RETRY_DELAY": 0.0,
        "MAX_NEGOTIATION_ROUNDS": 5,
        "PERSISTENCE_ENABLED": False,
        "SESSION_CLEANUP_INTERVAL_SECONDS": 3600,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_turn(actor: TurnActor, text: str, amount: float | None = None, *,
              action: TurnAction | None = None, **extra) -> Turn:
    """Build a turn; the store assigns the real sequence on append."""
    if action is None:
        action = TurnAction.COUNTER if amount is not None else TurnAction.CONTINUE
    return Turn(
        sequence=0,
        actor=actor,
        raw_text=text,
        action=action,
        offer=TurnOffer(amount=amount) if amount is not None else None,
        **extra,
    )


class InMemoryPersistence:
    """Durable tier double keeping JSON snapshots in a dict."""

    def __init__(self):
        self.snapshots = {}

    def load(self, session_id):
        payload = self.snapshots.get(session_id)
        return NegotiationSession.model_validate(payload) if payload else None

    def save(self, session):
        self.snapshots[session.id] = session.model_dump(mode="json")
