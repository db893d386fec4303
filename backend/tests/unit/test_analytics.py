"""
Unit tests for conversation analytics.

WHAT: Sentiment, health score and trend, price movement, behavior, insights
WHY: Analytics steer scenario choice and the prompt's guidance lines
HOW: Hand-built histories with known offer gaps and latencies
"""

from dataclasses import replace

import pytest

from negotiator.models.negotiation import Participants, TurnActor
from negotiator.services.analytics import AnalyticsContext, BehaviorReport, ConversationAnalytics
from tests.fixtures.factories import make_turn


def _exchange(store, session, human_text, human_amount, ai_text, ai_amount, **ai_extra):
    store.append(session.id, make_turn(TurnActor.BUYER, human_text, human_amount))
    store.append(session.id, make_turn(TurnActor.AI, ai_text, ai_amount, **ai_extra), advance_round=True)


@pytest.fixture
def analytics_engine():
    return ConversationAnalytics(max_latency_ms=15000)


@pytest.mark.unit
class TestHealthScore:

    def test_empty_session_scores_neutral(self, analytics_engine, session):
        assert analytics_engine.health_score(session) == 7

    def test_single_exchange(self, store, product, analytics_engine):
        session = store.create(product)
        _exchange(store, session, "Would you take $400?", 400.0, "I can do $480", 480.0, latency_ms=1500.0)
        assert analytics_engine.health_score(session) == 8

    def test_degraded_turns_count_as_slowest(self, store, product, analytics_engine):
        fast = store.create(product)
        _exchange(store, fast, "$400?", 400.0, "$480", 480.0, latency_ms=100.0)
        slow = store.create(product)
        _exchange(store, slow, "$400?", 400.0, "$480", 480.0, latency_ms=100.0, degraded=True)
        assert analytics_engine.health_score(slow) < analytics_engine.health_score(fast)

    def test_score_stays_in_range(self, store, product, analytics_engine):
        session = store.create(product)
        for _ in range(5):
            _exchange(store, session, "$10", 10.0, "$500", 500.0, degraded=True)
        assert 1 <= analytics_engine.health_score(session) <= 10

    def test_trend_declining_when_offers_diverge(self, store, product, analytics_engine):
        session = store.create(product)
        _exchange(store, session, "$400?", 400.0, "I can do $480", 480.0, latency_ms=1500.0)
        _exchange(store, session, "Fine, $300 then", 300.0, "No, $500", 500.0, degraded=True)
        assert analytics_engine.health_trend(session) == "declining"

    def test_trend_stable_with_single_exchange(self, store, product, analytics_engine):
        session = store.create(product)
        _exchange(store, session, "$400?", 400.0, "$480", 480.0, latency_ms=1500.0)
        assert analytics_engine.health_trend(session) == "stable"


@pytest.mark.unit
class TestPriceMovementAndSentiment:

    def test_converging(self, store, product, analytics_engine):
        session = store.create(product)
        _exchange(store, session, "$400?", 400.0, "$480", 480.0)
        _exchange(store, session, "$440?", 440.0, "$460", 460.0)
        movement = analytics_engine.price_movement(session)
        assert movement.direction == "converging"
        assert movement.gap == 20.0
        assert movement.gap_change_pct == -75.0

    def test_insufficient_data(self, analytics_engine, session):
        assert analytics_engine.price_movement(session).direction == "insufficient_data"

    def test_sentiment_turns_negative(self, store, product, analytics_engine):
        session = store.create(product)
        _exchange(store, session, "This is a great bike, thanks", None, "Thank you!", None)
        _exchange(store, session, "That is ridiculous and overpriced", None, "I understand.", None)
        report = analytics_engine.sentiment(session)
        assert report.trend == "declining"
        assert report.overall == "neutral"

    def test_ai_turns_do_not_count_for_sentiment(self, store, product, analytics_engine):
        session = store.create(product)
        _exchange(store, session, "ok", None, "This is a terrible, awful offer", None)
        assert analytics_engine.sentiment(session).overall == "neutral"

    def test_insights_guidance(self, store, product, analytics_engine):
        session = store.create(product)
        _exchange(store, session, "$400?", 400.0, "$480", 480.0)
        _exchange(store, session, "Great, $440?", 440.0, "$460", 460.0)
        insights = analytics_engine.insights(session)
        assert insights.price_movement.direction == "converging"
        assert any("converging" in line for line in insights.guidance)
        assert insights.counterpart_patience == "high"


@pytest.mark.unit
class TestBehavior:

    def test_reciprocal_cooperative_counterpart(self, store, product, analytics_engine):
        session = store.create(product)
        _exchange(store, session, "$400?", 400.0, "$480", 480.0)
        _exchange(store, session, "I understand, together we can find a fair price. $428?", 428.0, "$470", 470.0)

        report = analytics_engine.behavior(session)

        assert report.style == "cooperative"
        assert report.offer_strategy == "moderate"
        assert report.concession_pattern == "reciprocal"
        assert (report.human_concessions, report.ai_concessions) == (1, 1)
        assert report.reciprocity == 1.0

    def test_one_sided_concessions(self, store, product, analytics_engine):
        session = store.create(product)
        for amount in (400.0, 410.0, 420.0):
            _exchange(store, session, f"${amount:.0f}?", amount, "Still $480", 480.0)

        report = analytics_engine.behavior(session)

        assert report.concession_pattern == "one_sided"
        assert report.offer_strategy == "conservative"
        assert (report.human_concessions, report.ai_concessions) == (2, 0)
        assert report.reciprocity == 0.0
        guidance = analytics_engine.insights(session).guidance
        assert any("reciprocate" in line for line in guidance)

    def test_aggressive_assertive_counterpart(self, store, product, analytics_engine):
        session = store.create(product)
        _exchange(store, session, "$300, that is my limit", 300.0, "$490", 490.0)
        _exchange(store, session, "I need it, final offer $400", 400.0, "$480", 480.0)

        report = analytics_engine.behavior(session)

        assert report.offer_strategy == "aggressive"
        assert report.style == "assertive"
        guidance = analytics_engine.insights(session).guidance
        assert any("large jumps" in line for line in guidance)
        assert any("firmly" in line for line in guidance)

    def test_single_exchange_is_insufficient(self, store, product, analytics_engine):
        session = store.create(product)
        _exchange(store, session, "$400?", 400.0, "$480", 480.0)

        report = analytics_engine.behavior(session)

        assert report.style == "balanced"
        assert report.offer_strategy == "insufficient_data"
        assert report.concession_pattern == "insufficient_data"
        assert report.reciprocity == 1.0

    def test_human_seller_concedes_by_lowering(self, store, product, analytics_engine):
        session = store.create(product, participants=Participants(initiator_role="seller", counterpart_role="buyer"))
        store.append(session.id, make_turn(TurnActor.SELLER, "$520", 520.0))
        store.append(session.id, make_turn(TurnActor.AI, "$450", 450.0), advance_round=True)
        store.append(session.id, make_turn(TurnActor.SELLER, "$500", 500.0))
        store.append(session.id, make_turn(TurnActor.AI, "$460", 460.0), advance_round=True)

        report = analytics_engine.behavior(session)

        assert report.concession_pattern == "reciprocal"
        assert (report.human_concessions, report.ai_concessions) == (1, 1)

    def test_converging_talks_have_better_outlook(self, store, product, analytics_engine):
        converging = store.create(product)
        _exchange(store, converging, "$400?", 400.0, "$480", 480.0, latency_ms=1500.0)
        _exchange(store, converging, "$440?", 440.0, "$460", 460.0, latency_ms=1500.0)
        diverging = store.create(product)
        _exchange(store, diverging, "$400?", 400.0, "$480", 480.0, latency_ms=1500.0)
        _exchange(store, diverging, "$300", 300.0, "$500", 500.0, latency_ms=1500.0)

        good = analytics_engine.behavior(converging)
        bad = analytics_engine.behavior(diverging)

        assert good.success_probability > bad.success_probability
        outcomes = {"likely_deal", "possible_deal", "uncertain", "unlikely_deal"}
        assert {good.predicted_outcome, bad.predicted_outcome} <= outcomes

    def test_insights_carry_behavior(self, store, product, analytics_engine):
        session = store.create(product)
        _exchange(store, session, "$400?", 400.0, "$480", 480.0)
        assert isinstance(analytics_engine.insights(session).behavior, BehaviorReport)


class _ScriptedAnalytics:
    """Returns a fixed report with a scripted sequence of health scores."""

    def __init__(self, report, scores):
        self.report = report
        self.scores = iter(scores)

    def insights(self, session):
        return replace(self.report, health_score=next(self.scores))


@pytest.mark.unit
class TestAnalyticsContext:

    def test_records_and_forgets_health_history(self, store, product):
        context = AnalyticsContext()
        session = store.create(product)
        context.insights_for(session)
        _exchange(store, session, "$400?", 400.0, "$480", 480.0, latency_ms=1500.0)
        context.insights_for(session)
        assert context.health_history(session.id) == [7, 8]

        context.forget(session.id)
        assert context.health_history(session.id) == []

    @pytest.mark.parametrize("scores,sliding", [
        ([8, 7, 6], True),
        ([8, 7, 7], False),
        ([8, 6, 7], False),
    ])
    def test_sustained_health_slide_adds_guidance(self, store, product, analytics_engine, scores, sliding):
        session = store.create(product)
        context = AnalyticsContext(_ScriptedAnalytics(analytics_engine.insights(session), scores))

        results = [context.insights_for(session) for _ in scores]

        assert context.health_history(session.id) == scores
        assert not any("Health has dropped" in line for r in results[:2] for line in r.guidance)
        assert any("Health has dropped" in line for line in results[-1].guidance) == sliding
