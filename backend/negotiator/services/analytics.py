"""
Conversation analytics.

WHAT: Sentiment, health score, price movement, counterpart behavior and
      prompt guidance per session
WHY: The AI should adapt its tone and concessions to how the talk is going
HOW: Lexical cues over human turns, offer-gap convergence, AI latency and
     round utilisation; scores on history prefixes give the trend; offer
     steps and concessions on both sides give the behavior report
"""

import re
import threading
from dataclasses import dataclass, field, replace
from typing import Dict, List, Sequence

from ..models.negotiation import NegotiationSession, ProductContext, Turn, TurnActor
from ..utils.logger import get_logger

logger = get_logger(__name__)

POSITIVE_WORDS = frozenset({
    "good", "great", "excellent", "perfect", "love", "amazing", "wonderful",
    "fantastic", "nice", "fair", "thanks", "deal", "happy", "reasonable",
})
NEGATIVE_WORDS = frozenset({
    "bad", "terrible", "awful", "hate", "horrible", "disgusting", "worst",
    "ridiculous", "overpriced", "expensive", "ripoff", "unfair", "waste",
})

STYLE_WORDS = {
    "assertive": frozenset({"must", "need", "require", "final", "firm", "minimum"}),
    "cooperative": frozenset({"we", "together", "understand", "fair", "compromise", "halfway"}),
    "flexible": frozenset({"maybe", "consider", "flexible", "could", "might", "open"}),
}

_WORD = re.compile(r"[a-z']+")

DEFAULT_MAX_LATENCY_MS = 15000.0

# Step between consecutive offers, as a share of the earlier one
AGGRESSIVE_STEP = 0.1
MODERATE_STEP = 0.05
# Share of all concessions above which one side carries the negotiation
ONE_SIDED_SHARE = 0.7
# Consecutive falling health scores before guidance calls it a slide
HEALTH_SLIDE_EXCHANGES = 3


@dataclass(frozen=True)
class SentimentReport:
    """Lexical sentiment over the human side of the conversation."""
    overall: str  # positive | neutral | negative
    trend: str  # improving | declining | stable | insufficient_data
    score: float  # -1.0 .. 1.0


@dataclass(frozen=True)
class PriceMovement:
    """How the gap between the two sides' offers has evolved."""
    direction: str  # converging | diverging | stalled | insufficient_data
    gap: float | None
    gap_change_pct: float | None


@dataclass(frozen=True)
class BehaviorReport:
    """How the counterpart negotiates and where the talk is heading."""
    style: str  # assertive | cooperative | flexible | balanced
    offer_strategy: str  # aggressive | moderate | conservative | insufficient_data
    concession_pattern: str  # reciprocal | one_sided | mixed | insufficient_data
    reciprocity: float  # 0..1, 1.0 while nobody has conceded
    human_concessions: int
    ai_concessions: int
    success_probability: float
    predicted_outcome: str  # likely_deal | possible_deal | uncertain | unlikely_deal


@dataclass(frozen=True)
class AnalyticsInsights:
    """Everything the prompt composer needs from analytics."""
    sentiment: SentimentReport
    health_score: int
    health_trend: str  # improving | declining | stable
    counterpart_patience: str  # high | medium | low
    price_movement: PriceMovement
    behavior: BehaviorReport
    guidance: List[str] = field(default_factory=list)


def _turn_sentiment(text: str) -> float:
    words = _WORD.findall(text.lower())
    positive = sum(1 for w in words if w in POSITIVE_WORDS)
    negative = sum(1 for w in words if w in NEGATIVE_WORDS)
    total = positive + negative
    if total == 0:
        return 0.0
    return (positive - negative) / total


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _is_concession(role: str, previous: float, current: float) -> bool:
    """Sellers concede by going down, buyers by going up."""
    return current < previous if role == "seller" else current > previous


def _dominant(counts: Dict[str, int], default: str) -> str:
    """Label with the strictly highest count, else default."""
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    if not ranked or ranked[0][1] == 0 or (len(ranked) > 1 and ranked[0][1] == ranked[1][1]):
        return default
    return ranked[0][0]


class ConversationAnalytics:
    """Stateless analytics over a session's active-branch history."""

    def __init__(self, max_latency_ms: float = DEFAULT_MAX_LATENCY_MS):
        self.max_latency_ms = max_latency_ms

    def sentiment(self, session: NegotiationSession) -> SentimentReport:
        scores = [_turn_sentiment(t.raw_text) for t in session.history if t.is_human]
        score = round(_mean(scores), 3)

        if score > 0.2:
            overall = "positive"
        elif score < -0.2:
            overall = "negative"
        else:
            overall = "neutral"

        if len(scores) < 2:
            trend = "insufficient_data"
        else:
            half = len(scores) // 2
            delta = _mean(scores[half:]) - _mean(scores[:half])
            if delta > 0.2:
                trend = "improving"
            elif delta < -0.2:
                trend = "declining"
            else:
                trend = "stable"

        return SentimentReport(overall=overall, trend=trend, score=score)

    def health_score(self, session: NegotiationSession) -> int:
        """Overall negotiation health on a 1..10 scale."""
        return self._score_turns(session.history, session.product, session.max_rounds)

    def health_trend(self, session: NegotiationSession) -> str:
        """Compare health now against health one exchange ago."""
        history = session.history
        ai_positions = [i for i, t in enumerate(history) if t.actor == TurnActor.AI]
        if len(ai_positions) < 2:
            return "stable"

        previous = self._score_turns(history[:ai_positions[-2] + 1], session.product, session.max_rounds)
        current = self._score_turns(history, session.product, session.max_rounds)
        if current - previous >= 1:
            return "improving"
        if previous - current >= 1:
            return "declining"
        return "stable"

    def price_movement(self, session: NegotiationSession) -> PriceMovement:
        gaps = self._offer_gaps(session.history)
        if len(gaps) < 2:
            return PriceMovement(
                direction="insufficient_data",
                gap=gaps[-1] if gaps else None,
                gap_change_pct=None,
            )

        first, last = gaps[0], gaps[-1]
        change_pct = round((last - first) / first * 100, 1) if first > 0 else 0.0
        if first > 0 and last < first * 0.95:
            direction = "converging"
        elif last > first * 1.05:
            direction = "diverging"
        else:
            direction = "stalled"

        return PriceMovement(direction=direction, gap=round(last, 2), gap_change_pct=change_pct)

    def behavior(
        self,
        session: NegotiationSession,
        health: int | None = None,
        movement: PriceMovement | None = None,
    ) -> BehaviorReport:
        """
        Read how the counterpart negotiates.

        Style comes from word cues in human turns, offer strategy from the
        size of their steps between offers. Concessions on both sides give
        reciprocity and the concession pattern; health and price movement,
        weighted by negotiation phase, give the predicted outcome.
        """
        history = session.history
        human_turns = [t for t in history if t.is_human]

        style_counts = {name: 0 for name in STYLE_WORDS}
        for turn in human_turns:
            words = set(_WORD.findall(turn.raw_text.lower()))
            for name, cues in STYLE_WORDS.items():
                if words & cues:
                    style_counts[name] += 1
        style = _dominant(style_counts, "balanced")

        human_offers = [t.offer.amount for t in human_turns if t.offer is not None]
        step_labels = [
            self._step_label(abs(current - previous) / previous)
            for previous, current in zip(human_offers, human_offers[1:])
            if previous > 0
        ]
        if step_labels:
            strategy_counts = {label: step_labels.count(label) for label in ("aggressive", "moderate", "conservative")}
            offer_strategy = _dominant(strategy_counts, step_labels[-1])
        else:
            offer_strategy = "insufficient_data"

        conceders = self._conceders(session)
        human_concessions = conceders.count("human")
        ai_concessions = conceders.count("ai")
        total = human_concessions + ai_concessions
        reciprocity = 1.0 - abs(human_concessions - ai_concessions) / total if total else 1.0

        if total < 2:
            pattern = "insufficient_data"
        elif all(a != b for a, b in zip(conceders, conceders[1:])):
            pattern = "reciprocal"
        elif max(human_concessions, ai_concessions) / total > ONE_SIDED_SHARE:
            pattern = "one_sided"
        else:
            pattern = "mixed"

        if health is None:
            health = self.health_score(session)
        if movement is None:
            movement = self.price_movement(session)
        probability = health / 10.0
        if movement.direction == "converging":
            probability += 0.1
        elif movement.direction == "diverging":
            probability -= 0.1
        probability = round(min(max(probability * self._phase_weight(session), 0.0), 1.0), 3)

        if probability > 0.8:
            outcome = "likely_deal"
        elif probability > 0.6:
            outcome = "possible_deal"
        elif probability < 0.3:
            outcome = "unlikely_deal"
        else:
            outcome = "uncertain"

        return BehaviorReport(
            style=style,
            offer_strategy=offer_strategy,
            concession_pattern=pattern,
            reciprocity=round(reciprocity, 3),
            human_concessions=human_concessions,
            ai_concessions=ai_concessions,
            success_probability=probability,
            predicted_outcome=outcome,
        )

    def insights(self, session: NegotiationSession) -> AnalyticsInsights:
        sentiment = self.sentiment(session)
        movement = self.price_movement(session)
        health = self.health_score(session)
        trend = self.health_trend(session)
        behavior = self.behavior(session, health, movement)

        progress = session.round / session.max_rounds if session.max_rounds else 1.0
        if progress >= 0.8 or sentiment.overall == "negative":
            patience = "low"
        elif progress >= 0.5 or sentiment.trend == "declining":
            patience = "medium"
        else:
            patience = "high"

        guidance: List[str] = []
        if sentiment.overall == "negative":
            guidance.append("The other party sounds frustrated; acknowledge their concerns before talking price.")
        elif sentiment.overall == "positive":
            guidance.append("The other party is upbeat; keep the tone warm and move toward agreement.")
        if trend == "declining":
            guidance.append("Negotiation health is declining; a meaningful concession may keep the deal alive.")
        if movement.direction == "converging":
            guidance.append("Offers are converging; steer toward closing the deal.")
        elif movement.direction == "diverging":
            guidance.append("Offers are moving apart; restate the value of the item before conceding.")
        if patience == "low":
            guidance.append("Patience is running low; be concise and decisive.")
        guidance += self._behavior_guidance(behavior)

        return AnalyticsInsights(
            sentiment=sentiment,
            health_score=health,
            health_trend=trend,
            counterpart_patience=patience,
            price_movement=movement,
            behavior=behavior,
            guidance=guidance,
        )

    @staticmethod
    def _behavior_guidance(behavior: BehaviorReport) -> List[str]:
        lines: List[str] = []
        if behavior.concession_pattern == "one_sided":
            if behavior.human_concessions > behavior.ai_concessions:
                lines.append("They have made most of the concessions; reciprocate with a small one to keep goodwill.")
            else:
                lines.append("You have made most of the concessions; hold your price until they move.")
        if behavior.offer_strategy == "aggressive":
            lines.append("They move their offer in large jumps; answer with small steps.")
        if behavior.style == "assertive":
            lines.append("They negotiate firmly; stay calm and anchor on the item's value.")
        elif behavior.style == "cooperative":
            lines.append("They are cooperative; frame your price as a fair middle ground.")
        elif behavior.style == "flexible":
            lines.append("They sound flexible; a confident counter is likely to be considered.")
        if behavior.predicted_outcome == "unlikely_deal":
            lines.append("A deal looks unlikely on the current path; consider a clear final offer.")
        return lines

    @staticmethod
    def _step_label(step: float) -> str:
        if step > AGGRESSIVE_STEP:
            return "aggressive"
        if step > MODERATE_STEP:
            return "moderate"
        return "conservative"

    @staticmethod
    def _conceders(session: NegotiationSession) -> List[str]:
        """Side ("human" or "ai") of every concession, in turn order."""
        conceders: List[str] = []
        last: Dict[str, float] = {}
        for turn in session.history:
            if turn.offer is None:
                continue
            if turn.actor == TurnActor.AI:
                side, role = "ai", session.ai_role
            elif turn.is_human:
                side, role = "human", session.human_role
            else:
                continue
            previous = last.get(side)
            if previous is not None and _is_concession(role, previous, turn.offer.amount):
                conceders.append(side)
            last[side] = turn.offer.amount
        return conceders

    @staticmethod
    def _phase_weight(session: NegotiationSession) -> float:
        """Later phases make the current reading more predictive."""
        progress = session.round / session.max_rounds if session.max_rounds else 1.0
        if progress < 0.25:
            return 0.9
        if progress < 0.5:
            return 1.0
        if progress < 0.8:
            return 1.1
        return 1.2

    def _offer_gaps(self, history: Sequence[Turn]) -> List[float]:
        """Gap between the latest human and AI offers after each priced turn."""
        gaps: List[float] = []
        human_offer = ai_offer = None
        for turn in history:
            if turn.offer is None:
                continue
            if turn.actor == TurnActor.AI:
                ai_offer = turn.offer.amount
            elif turn.is_human:
                human_offer = turn.offer.amount
            if human_offer is not None and ai_offer is not None:
                gaps.append(abs(ai_offer - human_offer))
        return gaps

    def _score_turns(self, history: Sequence[Turn], product: ProductContext, max_rounds: int) -> int:
        """
        Score a history prefix.

        Convergence contributes up to 4 points, AI latency up to 3 and
        remaining round budget up to 3.
        """
        gaps = self._offer_gaps(history)
        if gaps:
            scale = max(product.base_price, 1.0)
            convergence = 4.0 * (1.0 - min(gaps[-1] / scale * 2.0, 1.0))
        else:
            convergence = 2.0

        ai_turns = [t for t in history if t.actor == TurnActor.AI]
        if ai_turns:
            latencies = [
                self.max_latency_ms if t.degraded or t.latency_ms is None else t.latency_ms
                for t in ai_turns
            ]
            latency = 3.0 * (1.0 - min(_mean(latencies) / self.max_latency_ms, 1.0))
        else:
            latency = 2.0

        rounds_used = len(ai_turns)
        utilisation = 3.0 * (1.0 - min(rounds_used / max_rounds, 1.0)) if max_rounds else 0.0

        return int(min(max(round(convergence + latency + utilisation), 1), 10))


class AnalyticsContext:
    """
    Analytics handle passed explicitly to the composer and state machine.

    Holds the analytics instance plus a per-session record of health scores
    observed at each exchange. A sustained slide in that record adds its own
    guidance line. Records are dropped through forget() once a session is
    closed or evicted.
    """

    def __init__(self, analytics: ConversationAnalytics | None = None):
        self.analytics = analytics or ConversationAnalytics()
        self._health_history: Dict[str, List[int]] = {}
        self._lock = threading.Lock()

    def insights_for(self, session: NegotiationSession) -> AnalyticsInsights:
        insights = self.analytics.insights(session)
        with self._lock:
            scores = self._health_history.setdefault(session.id, [])
            scores.append(insights.health_score)
            recent = scores[-HEALTH_SLIDE_EXCHANGES:]

        sliding = len(recent) == HEALTH_SLIDE_EXCHANGES and all(b < a for a, b in zip(recent, recent[1:]))
        if sliding:
            logger.debug(f"Session {session.id}: health sliding {recent}")
            guidance = insights.guidance + [
                f"Health has dropped for {HEALTH_SLIDE_EXCHANGES - 1} exchanges in a row; change your approach now."
            ]
            insights = replace(insights, guidance=guidance)
        return insights

    def health_history(self, session_id: str) -> List[int]:
        with self._lock:
            return list(self._health_history.get(session_id, []))

    def forget(self, session_id: str) -> None:
        with self._lock:
            self._health_history.pop(session_id, None)
