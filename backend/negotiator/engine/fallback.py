"""
Deterministic replies used when the LLM cannot answer.

WHAT: Personality-flavoured counter messages and per-action default text
WHY: A provider outage must never stall or corrupt a negotiation
HOW: Template lookup by personality; the price comes from PricingPolicy
"""

from ..models.negotiation import NegotiationSession, TurnAction
from ..utils.offers import format_price
from .pricing import suggested_counter

FALLBACK_COUNTERS = {
    "friendly": "Thanks so much for your patience! For \"{title}\" I could do {price}. How does that sound?",
    "professional": "Thank you for your offer on \"{title}\". I can propose {price}.",
    "firm": "My price for \"{title}\" reflects its value. The best I can do right now is {price}.",
    "flexible": "Let's find something that works for both of us. How about {price} for \"{title}\"?",
}

DEFAULT_ACTION_TEXT = {
    TurnAction.ACCEPT: "I accept your offer!",
    TurnAction.REJECT: "I cannot accept that offer.",
    TurnAction.COUNTER: "Let me make a counter-offer of {price}.",
    TurnAction.CONTINUE: "Let's continue our negotiation.",
}


def fallback_counter(session: NegotiationSession) -> tuple[float, str]:
    """
    Build the policy counter-offer and its message for a degraded turn.

    Raises:
        ValueError: If the product's price bounds are malformed
    """
    product = session.product
    if product.min_price < 0 or product.min_price > product.base_price:
        raise ValueError(
            f"Invalid price bounds for session {session.id}: "
            f"min={product.min_price}, base={product.base_price}"
        )

    price = suggested_counter(
        product,
        session.last_human_offer(),
        session.round + 1,
        session.max_rounds,
        session.ai_context.urgency_level,
        ai_role=session.ai_role,
        anchor=session.last_ai_offer(),
        flexibility=session.ai_context.price_flexibility,
    )
    template = FALLBACK_COUNTERS.get(session.ai_context.personality, FALLBACK_COUNTERS["professional"])
    return price, template.format(title=product.title, price=format_price(price, product.currency))


def default_text(action: TurnAction, price: float | None, currency: str = "USD") -> str:
    """Message to show when a reply carried only a decision block."""
    text = DEFAULT_ACTION_TEXT[action]
    if price is None:
        return text.replace(" of {price}", "")
    return text.format(price=format_price(price, currency))
