"""
Unit tests for scenario detection and prompt composition.

WHAT: Scenario priority rules, template catalog and composed prompt content
WHY: The prompt is the only lever the engine has over the LLM
HOW: Sessions built through the store, analytics insights stubbed where needed
"""

from types import SimpleNamespace

import pytest

from negotiator.engine.prompt_composer import PromptComposer
from negotiator.engine.scenarios import SCENARIO_TEMPLATES, ScenarioKind, detect_scenario, urgency_label
from negotiator.models.negotiation import AIContext, MarketSignals, TurnActor
from negotiator.services.analytics import AnalyticsContext
from tests.fixtures.factories import make_turn


def _with_offer(store, session, amount, round_=0):
    store.append(session.id, make_turn(TurnActor.BUYER, f"I can pay ${amount}", amount))
    session.round = round_
    return session


@pytest.mark.unit
class TestDetectScenario:
    """Scenario priority."""

    @pytest.mark.parametrize("round_,expected", [
        (0, ScenarioKind.OPENING),
        (1, ScenarioKind.EXPLORATION),
        (2, ScenarioKind.EXPLORATION),
        (3, ScenarioKind.ACTIVE),
        (4, ScenarioKind.CLOSING),
    ])
    def test_stage_follows_round_ratio(self, session, round_, expected):
        session.round = round_
        assert detect_scenario(session) == expected

    def test_urgent_variants(self, session):
        session.ai_context = AIContext(urgency_level=0.8)
        session.round = 1
        assert detect_scenario(session) == ScenarioKind.URGENT_ACTIVE
        session.round = 4
        assert detect_scenario(session) == ScenarioKind.URGENT_CLOSING

    def test_near_acceptance_beats_stage(self, store, product):
        session = _with_offer(store, store.create(product), 440.0, round_=1)
        assert detect_scenario(session) == ScenarioKind.NEAR_ACCEPTANCE

    def test_closing_beats_near_acceptance(self, store, product):
        session = _with_offer(store, store.create(product), 440.0, round_=4)
        assert detect_scenario(session) == ScenarioKind.CLOSING

    def test_low_offer_is_not_near_acceptance(self, store, product):
        session = _with_offer(store, store.create(product), 400.0, round_=1)
        assert detect_scenario(session) == ScenarioKind.EXPLORATION

    def test_declining_health_moves_toward_urgency(self, session):
        session.round = 2
        session.ai_context = AIContext(urgency_level=0.6)
        declining = SimpleNamespace(health_trend="declining")
        assert detect_scenario(session) == ScenarioKind.EXPLORATION
        assert detect_scenario(session, declining) == ScenarioKind.URGENT_ACTIVE

    def test_every_kind_has_a_template(self):
        assert set(SCENARIO_TEMPLATES) == set(ScenarioKind)

    @pytest.mark.parametrize("level,label", [(0.9, "high"), (0.5, "medium"), (0.1, "low")])
    def test_urgency_label(self, level, label):
        assert urgency_label(level) == label


@pytest.mark.unit
class TestPromptComposer:
    """Composed prompt content."""

    def test_system_prompt_carries_product_and_walk_away(self, settings, store, product):
        session = _with_offer(store, store.create(product), 400.0)
        prompt = PromptComposer(settings).compose(session)
        assert "Vintage Road Bike" in prompt.system
        assert "$500.00" in prompt.system
        assert "Your minimum (never go below): $450.00" in prompt.system
        assert "```decision" in prompt.system

    def test_user_prompt_has_scenario_and_counter(self, settings, store, product):
        session = _with_offer(store, store.create(product), 400.0)
        prompt = PromptComposer(settings).compose(session)
        assert prompt.scenario == ScenarioKind.OPENING
        assert prompt.suggested_counter == 475.0
        assert "FIRST CONTACT" in prompt.user
        assert "SUGGESTED COUNTER: $475.00" in prompt.user
        assert "I can pay $400.0" in prompt.user

    def test_market_signals_rendered(self, settings, store, product):
        signals = MarketSignals(average_price=480.0, competitor_prices=[470.0, 495.0], demand="high")
        session = store.create(product, ai_context=AIContext(market_signals=signals))
        prompt = PromptComposer(settings).compose(_with_offer(store, session, 400.0))
        assert "MARKET CONTEXT" in prompt.system
        assert "$470.00, $495.00" in prompt.system

    def test_history_window_excludes_latest_turn(self, settings, store, product):
        session = store.create(product)
        store.append(session.id, make_turn(TurnActor.BUYER, "Opening at $400", 400.0))
        store.append(session.id, make_turn(TurnActor.AI, "I can do $480", 480.0), advance_round=True)
        latest = store.append(session.id, make_turn(TurnActor.BUYER, "Meet me at $440?", 440.0))
        prompt = PromptComposer(settings).compose(session, latest)
        history = prompt.user.split("CONVERSATION SO FAR:")[1]
        assert "You: I can do $480 [offer: $480.00]" in history
        assert "Meet me at $440?" not in history.split("SUGGESTED COUNTER")[0]

    def test_malformed_history_entries_are_skipped(self, settings, store, product):
        session = _with_offer(store, store.create(product), 400.0)
        history = [{"nonsense": True}, "text", None, session.turns[0].model_dump()]
        prompt = PromptComposer(settings).compose(session, history=history)
        assert prompt.scenario == ScenarioKind.OPENING

    def test_buying_ai_uses_budget_language(self, settings, store, product):
        from negotiator.models.negotiation import Participants
        session = store.create(product, participants=Participants(initiator_role="seller", counterpart_role="buyer"))
        store.append(session.id, make_turn(TurnActor.SELLER, "It's $520, firm-ish", 520.0))
        prompt = PromptComposer(settings).compose(session)
        assert "Your maximum budget (never go above): $500.00" in prompt.system
        assert 450.0 <= prompt.suggested_counter <= 500.0

    def test_insights_are_included(self, settings, store, product):
        analytics = AnalyticsContext()
        session = _with_offer(store, store.create(product), 400.0)
        prompt = PromptComposer(settings, analytics).compose(session)
        assert "NEGOTIATION SIGNALS" in prompt.user
        assert "Health:" in prompt.user
        assert "Their style:" in prompt.user
        assert "Outlook:" in prompt.user

    def test_decision_example_does_not_show_walk_away(self, settings, store, product):
        session = _with_offer(store, store.create(product), 400.0)
        prompt = PromptComposer(settings).compose(session)
        example = prompt.system.split("```decision")[1].split("```")[0]
        assert '"price": <amount>' in example
        assert "450" not in example

    def test_messages_shape(self, settings, store, product):
        prompt = PromptComposer(settings).compose(_with_offer(store, store.create(product), 400.0))
        messages = prompt.to_messages()
        assert [m["role"] for m in messages] == ["system", "user"]
        assert prompt.text.startswith(prompt.system)
