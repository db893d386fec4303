"""
Pricing policy for AI counter-offers.

WHAT: Pure functions that compute counter-offers and judge acceptability
WHY: Keep price decisions deterministic and testable, outside the LLM
HOW: Concede a growing share of the gap between the AI's anchor and the
     counterpart's offer, clamped to the product's price bounds
"""

from ..models.negotiation import ProductContext, Role


# Share of the remaining gap still held back on the final offer
FINAL_OFFER_RETAINED = 0.2
MAX_INCREMENTAL_CONCESSION = 0.9


def clamp_to_bounds(amount: float, product: ProductContext) -> float:
    """Clamp an amount into [min_price, base_price] and round to cents."""
    return round(min(max(amount, product.min_price), product.base_price), 2)


def is_acceptable(amount: float, product: ProductContext, ai_role: Role = "seller") -> bool:
    """
    Whether the AI side may agree to this price.

    A selling AI accepts anything at or above its minimum; a buying AI
    accepts anything at or below the listed price.
    """
    if amount < 0:
        return False
    if ai_role == "seller":
        return amount >= product.min_price
    return amount <= product.base_price


def suggested_counter(
    product: ProductContext,
    current_offer: float | None,
    round_number: int,
    max_rounds: int,
    urgency: float,
    *,
    ai_role: Role = "seller",
    anchor: float | None = None,
    flexibility: float = 0.3,
) -> float:
    """
    Compute the AI's next counter-offer.

    WHAT: Move from the AI's anchor toward the counterpart's offer
    WHY: Gives the LLM (and the fallback path) a concrete, bounded price
    HOW: Concession share starts at `flexibility`, grows with round progress
         and urgency; from the last round on a final offer is returned

    Args:
        product: Listing with price bounds
        current_offer: Counterpart's latest offer (None if not yet stated)
        round_number: Rounds completed so far
        max_rounds: Round budget of the session
        urgency: AI urgency level in [0, 1]
        ai_role: Side the AI negotiates for
        anchor: AI's previous offer (defaults to its opening position)
        flexibility: Base share of the gap conceded per step

    Returns:
        Counter-offer within [min_price, base_price], rounded to cents
    """
    if product.min_price == product.base_price:
        return round(product.base_price, 2)

    urgency = min(max(urgency, 0.0), 1.0)
    selling = ai_role == "seller"

    if anchor is None:
        anchor = product.base_price if selling else product.min_price
    anchor = clamp_to_bounds(anchor, product)

    if current_offer is None:
        target = product.min_price if selling else product.base_price
    elif selling:
        target = max(current_offer, product.min_price)
    else:
        target = min(current_offer, product.base_price)

    gap = anchor - target if selling else target - anchor
    if gap <= 0:
        # Counterpart already meets or beats the AI's own position
        return clamp_to_bounds(target, product)

    progress = min(round_number / max_rounds, 1.0) if max_rounds > 0 else 1.0

    if round_number >= max_rounds:
        retained = gap * FINAL_OFFER_RETAINED * (1.0 - urgency)
        price = target + retained if selling else target - retained
    else:
        concession = min(
            flexibility + 0.5 * progress + 0.2 * urgency,
            MAX_INCREMENTAL_CONCESSION,
        )
        price = anchor - gap * concession if selling else anchor + gap * concession

    return clamp_to_bounds(price, product)


def offer_quality(amount: float, product: ProductContext) -> str:
    """Describe an offer relative to the listed price."""
    if product.base_price <= 0:
        return "excellent"
    percentage = amount / product.base_price * 100
    if percentage >= 95:
        return "excellent"
    if percentage >= 85:
        return "good"
    if percentage >= 75:
        return "fair"
    if percentage >= 60:
        return "low"
    return "very low"


def discount_pct(amount: float, product: ProductContext) -> float:
    """Percentage below the listed price, one decimal."""
    if product.base_price <= 0:
        return 0.0
    return round((product.base_price - amount) / product.base_price * 100, 1)


def is_near_acceptance(amount: float, product: ProductContext, tolerance: float, ai_role: Role = "seller") -> bool:
    """True when an offer is within `tolerance` of the AI's walk-away price."""
    if ai_role == "seller":
        return amount >= product.min_price * (1.0 - tolerance)
    return amount <= product.base_price * (1.0 + tolerance)
