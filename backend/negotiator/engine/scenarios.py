"""
Negotiation scenarios and prompt templates.

WHAT: Scenario classification and the template catalog keyed by scenario
WHY: The AI should speak differently when opening, closing or under pressure
HOW: ScenarioKind enum, a total detect_scenario() and a template per kind
"""

from enum import Enum
from typing import Dict

from ..models.negotiation import NegotiationSession
from .pricing import is_near_acceptance


class ScenarioKind(str, Enum):
    """Situations the prompt composer distinguishes."""
    OPENING = "opening"
    EXPLORATION = "exploration"
    ACTIVE = "active"
    CLOSING = "closing"
    URGENT_ACTIVE = "urgent_active"
    URGENT_CLOSING = "urgent_closing"
    NEAR_ACCEPTANCE = "near_acceptance"


# Extra progress and urgency applied when negotiation health is declining
DECLINING_HEALTH_BOOST = 0.2


def detect_scenario(
    session: NegotiationSession,
    insights=None,
    *,
    near_acceptance_pct: float = 0.05,
    urgency_threshold: float = 0.7,
) -> ScenarioKind:
    """
    Classify the exchange about to be answered.

    Priority: closing (final exchange or ratio >= 0.9), then near acceptance,
    then urgency, then the stage given by completed rounds / max rounds.

    Args:
        session: Session whose latest human turn is being answered
        insights: Optional AnalyticsInsights; a declining health trend
                  pushes the session toward closing and urgency
        near_acceptance_pct: Tolerance around the AI's walk-away price
        urgency_threshold: Urgency level from which urgent variants apply

    Returns:
        The scenario; always one of ScenarioKind
    """
    ratio = session.round / session.max_rounds
    urgency = session.ai_context.urgency_level
    if insights is not None and insights.health_trend == "declining":
        ratio += DECLINING_HEALTH_BOOST
        urgency += DECLINING_HEALTH_BOOST

    urgent = urgency >= urgency_threshold
    final_exchange = session.round + 1 >= session.max_rounds

    if final_exchange or ratio >= 0.9:
        return ScenarioKind.URGENT_CLOSING if urgent else ScenarioKind.CLOSING

    offer = session.last_human_offer()
    if offer is not None and is_near_acceptance(offer, session.product, near_acceptance_pct, session.ai_role):
        return ScenarioKind.NEAR_ACCEPTANCE

    if urgent:
        return ScenarioKind.URGENT_ACTIVE
    if ratio < 0.2:
        return ScenarioKind.OPENING
    if ratio < 0.6:
        return ScenarioKind.EXPLORATION
    return ScenarioKind.ACTIVE


SCENARIO_TEMPLATES: Dict[ScenarioKind, str] = {
    ScenarioKind.OPENING: (
        "FIRST CONTACT about \"{title}\".\n"
        "The {human_role} opened with: \"{message}\"\n"
        "Their offer: {their_offer} ({offer_quality}, {discount_pct}% below list).\n"
        "Respond warmly but protect your price. Show interest in making a deal and "
        "end with a specific next step or question."
    ),
    ScenarioKind.EXPLORATION: (
        "ONGOING NEGOTIATION for \"{title}\", round {round}/{max_rounds}.\n"
        "Their latest: \"{message}\"\n"
        "Their offer: {their_offer} ({offer_quality}, {discount_pct}% below list).\n"
        "Explore what matters to them. Justify your price with the item's condition "
        "and features, and counter with a specific price if you move at all."
    ),
    ScenarioKind.ACTIVE: (
        "ACTIVE BARGAINING for \"{title}\", round {round}/{max_rounds}.\n"
        "Their latest: \"{message}\"\n"
        "Their offer: {their_offer}. Gap to your position: {price_gap}.\n"
        "Respond with COUNTER, ACCEPT, or REJECT. If countering, suggest a specific "
        "price and explain why in one or two sentences."
    ),
    ScenarioKind.CLOSING: (
        "FINAL NEGOTIATION ROUND for \"{title}\" (round {round}/{max_rounds}, LAST CHANCE).\n"
        "Their latest: \"{message}\"\n"
        "Their offer: {their_offer}. Gap to your position: {price_gap}.\n"
        "You must decide: ACCEPT, REJECT, or make one final counter. If accepting, be "
        "enthusiastic. If rejecting, be firm but polite. Explain your decision clearly."
    ),
    ScenarioKind.URGENT_ACTIVE: (
        "TIME PRESSURE on \"{title}\", round {round}/{max_rounds}.\n"
        "You need to close quickly. Their latest: \"{message}\"\n"
        "Their offer: {their_offer}.\n"
        "Show flexibility without sounding desperate. Consider accepting any "
        "reasonable offer that respects your walk-away price."
    ),
    ScenarioKind.URGENT_CLOSING: (
        "URGENT FINAL ROUND for \"{title}\" (round {round}/{max_rounds}).\n"
        "Their latest: \"{message}\"\n"
        "Their offer: {their_offer}. Gap to your position: {price_gap}.\n"
        "This deal matters and time is up. Accept if the offer respects your "
        "walk-away price; otherwise make your best and final counter."
    ),
    ScenarioKind.NEAR_ACCEPTANCE: (
        "DEAL WITHIN REACH for \"{title}\", round {round}/{max_rounds}.\n"
        "Their latest: \"{message}\"\n"
        "Their offer of {their_offer} is close to your walk-away price.\n"
        "Either accept graciously or close the small remaining gap with one "
        "precise counter. Do not reopen settled points."
    ),
}


PERSONALITY_DIRECTIVES: Dict[str, str] = {
    "friendly": "Be warm, upbeat and personable. Light enthusiasm is welcome.",
    "professional": "Be courteous, precise and businesslike.",
    "firm": "Be polite but firm. Emphasise value and concede slowly.",
    "flexible": "Be open and accommodating. Look for a price that works for both sides.",
}

URGENCY_DIRECTIVES: Dict[str, str] = {
    "high": "You are motivated to close soon.",
    "medium": "You would like to close, but you can wait for a fair price.",
    "low": "You are in no rush and can wait for the right offer.",
}


def urgency_label(level: float) -> str:
    if level >= 0.7:
        return "high"
    if level >= 0.4:
        return "medium"
    return "low"
