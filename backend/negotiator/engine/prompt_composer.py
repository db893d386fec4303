"""
Prompt composition for the AI counterpart.

WHAT: Build the system and user prompt for the next AI turn
WHY: Keep tone, bounds, price guidance and output format consistent
HOW: Scenario template + product facts + bounded history window +
     analytics guidance + the decision-block reply contract
"""

from dataclasses import dataclass
from typing import Any, Iterable, List

from pydantic import ValidationError

from ..core.config import Settings
from ..llm.types import ChatMessage
from ..models.negotiation import NegotiationSession, Turn, TurnActor
from ..services.analytics import AnalyticsContext, AnalyticsInsights
from ..utils.history_truncation import truncate_turn_history
from ..utils.logger import get_logger
from ..utils.offers import PRICE_PLACEHOLDER, format_decision_block, format_price
from .pricing import discount_pct, offer_quality, suggested_counter
from .scenarios import (
    PERSONALITY_DIRECTIVES,
    SCENARIO_TEMPLATES,
    URGENCY_DIRECTIVES,
    ScenarioKind,
    detect_scenario,
    urgency_label,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class ComposedPrompt:
    """A rendered prompt plus the facts it was built from."""
    system: str
    user: str
    scenario: ScenarioKind
    suggested_counter: float

    def to_messages(self) -> List[ChatMessage]:
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user},
        ]

    @property
    def text(self) -> str:
        return f"{self.system}\n\n{self.user}"


def _coerce_turn(entry: Any) -> Turn | None:
    """Accept Turn objects or turn-shaped dicts; anything else is skipped."""
    if isinstance(entry, Turn):
        return entry
    if isinstance(entry, dict):
        try:
            return Turn.model_validate(entry)
        except ValidationError:
            logger.debug("Skipping malformed history entry")
            return None
    return None


class PromptComposer:
    """Renders deterministic prompts from session state."""

    def __init__(self, settings: Settings, analytics: AnalyticsContext | None = None):
        self.settings = settings
        self.analytics = analytics

    def compose(
        self,
        session: NegotiationSession,
        latest_turn: Turn | None = None,
        insights: AnalyticsInsights | None = None,
        history: Iterable[Any] | None = None,
    ) -> ComposedPrompt:
        """
        Compose the prompt for the AI's reply to `latest_turn`.

        Args:
            session: Current session (history on its active branch)
            latest_turn: Human turn being answered; defaults to the last human turn
            insights: Analytics for this exchange; computed when an analytics
                      context was given and none is passed
            history: Override for the turn history (entries that are not
                     valid turns are skipped)

        Returns:
            ComposedPrompt with system/user text and the detected scenario
        """
        raw_history = session.history if history is None else history
        turns = [t for t in (_coerce_turn(e) for e in raw_history) if t is not None]

        if latest_turn is None:
            latest_turn = next((t for t in reversed(turns) if t.is_human), None)
        if insights is None and self.analytics is not None:
            insights = self.analytics.analytics.insights(session)

        scenario = detect_scenario(
            session,
            insights,
            near_acceptance_pct=self.settings.NEAR_ACCEPTANCE_PCT,
            urgency_threshold=self.settings.URGENCY_THRESHOLD,
        )

        product = session.product
        their_amount = latest_turn.offer_amount if latest_turn else None
        if their_amount is None:
            their_amount = session.last_human_offer()

        counter = suggested_counter(
            product,
            their_amount,
            session.round + 1,
            session.max_rounds,
            session.ai_context.urgency_level,
            ai_role=session.ai_role,
            anchor=session.last_ai_offer(),
            flexibility=session.ai_context.price_flexibility,
        )

        system = self._system_prompt(session)
        user = self._user_prompt(session, scenario, latest_turn, their_amount, counter, turns, insights)
        return ComposedPrompt(system=system, user=user, scenario=scenario, suggested_counter=counter)

    def _system_prompt(self, session: NegotiationSession) -> str:
        product = session.product
        currency = product.currency
        ctx = session.ai_context
        selling = session.ai_role == "seller"

        walk_away = product.min_price if selling else product.base_price
        walk_away_label = "Your minimum (never go below)" if selling else "Your maximum budget (never go above)"

        lines = [
            f"You are the {session.ai_role} negotiating the price of \"{product.title}\" in an online marketplace.",
            "",
            "PRODUCT DETAILS:",
            f"- Listed price: {format_price(product.base_price, currency)}",
            f"- {walk_away_label}: {format_price(walk_away, currency)}",
            f"- Condition: {product.condition}",
            f"- Category: {product.category}",
        ]
        if product.features:
            lines.append(f"- Features: {', '.join(product.features)}")

        signals = ctx.market_signals
        if signals.average_price is not None or signals.competitor_prices:
            lines.append("")
            lines.append("MARKET CONTEXT:")
            if signals.average_price is not None:
                lines.append(f"- Average market price: {format_price(signals.average_price, currency)}")
            if signals.competitor_prices:
                prices = ", ".join(format_price(p, currency) for p in signals.competitor_prices)
                lines.append(f"- Similar listings: {prices}")
            lines.append(f"- Demand: {signals.demand}")

        lines += [
            "",
            f"PERSONALITY: {PERSONALITY_DIRECTIVES[ctx.personality]} "
            f"{URGENCY_DIRECTIVES[urgency_label(ctx.urgency_level)]}",
            "",
            "RULES:",
            "- Never reveal your walk-away price.",
            "- Do NOT reveal your reasoning and never output <think> tags.",
            "- Keep your reply under 100 words.",
            "- End every reply with a decision block, for example:",
            format_decision_block("counter", PRICE_PLACEHOLDER),
            "- action must be one of: accept, reject, counter, continue. Include price for accept and counter,\n"
            f"  replacing {PRICE_PLACEHOLDER} with the amount as a plain number.",
        ]
        return "\n".join(lines)

    def _user_prompt(
        self,
        session: NegotiationSession,
        scenario: ScenarioKind,
        latest_turn: Turn | None,
        their_amount: float | None,
        counter: float,
        turns: List[Turn],
        insights: AnalyticsInsights | None,
    ) -> str:
        product = session.product
        currency = product.currency

        if their_amount is not None:
            their_offer = format_price(their_amount, currency)
            quality = offer_quality(their_amount, product)
            discount = discount_pct(their_amount, product)
            anchor = session.last_ai_offer()
            position = anchor if anchor is not None else (
                product.base_price if session.ai_role == "seller" else product.min_price
            )
            gap = format_price(abs(position - their_amount), currency)
        else:
            their_offer, quality, discount, gap = "no price stated", "unknown", 0.0, "unknown"

        section = SCENARIO_TEMPLATES[scenario].format(
            title=product.title,
            human_role=session.human_role,
            message=latest_turn.raw_text if latest_turn else "",
            their_offer=their_offer,
            offer_quality=quality,
            discount_pct=discount,
            price_gap=gap,
            round=min(session.round + 1, session.max_rounds),
            max_rounds=session.max_rounds,
        )

        parts = [section]

        previous = [t for t in turns if latest_turn is None or t.sequence != latest_turn.sequence]
        window = truncate_turn_history(
            previous,
            max_turns=self.settings.MAX_HISTORY_TURNS,
            max_chars=self.settings.MAX_HISTORY_CHARS,
        )
        if window:
            history_lines = [self._history_line(t, session) for t in window]
            parts.append("CONVERSATION SO FAR:\n" + "\n".join(history_lines))

        parts.append(f"SUGGESTED COUNTER: {format_price(counter, currency)}")

        if insights is not None:
            behavior = insights.behavior
            signal_lines = [
                f"- Health: {insights.health_score}/10 ({insights.health_trend})",
                f"- Their mood: {insights.sentiment.overall} ({insights.sentiment.trend})",
                f"- Their style: {behavior.style}, offers {behavior.offer_strategy}, "
                f"concessions {behavior.concession_pattern} (reciprocity {behavior.reciprocity:.2f})",
                f"- Outlook: {behavior.predicted_outcome.replace('_', ' ')}",
            ]
            signal_lines += [f"- {line}" for line in insights.guidance]
            parts.append("NEGOTIATION SIGNALS:\n" + "\n".join(signal_lines))

        return "\n\n".join(parts)

    @staticmethod
    def _history_line(turn: Turn, session: NegotiationSession) -> str:
        if turn.actor == TurnActor.AI:
            speaker = "You"
        elif turn.actor == TurnActor.SYSTEM:
            speaker = "System"
        else:
            speaker = turn.actor.value.capitalize()
        line = f"{speaker}: {turn.raw_text}"
        if turn.offer is not None:
            line += f" [offer: {format_price(turn.offer.amount, session.product.currency)}]"
        return line
