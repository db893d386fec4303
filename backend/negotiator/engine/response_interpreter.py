"""
Response interpretation for LLM replies and human messages.

WHAT: Turn free text into an action, an optional price and a confidence
WHY: Neither the model nor the human reliably follows a format
HOW: Strip reasoning, redact unsafe content, read the decision block,
     then fall back to phrase markers and price patterns. Never raises.
"""

import re
from dataclasses import dataclass
from typing import Tuple

from ..models.negotiation import NegotiationSession, ProductContext, TurnAction
from ..utils.exceptions import ParseAmbiguityWarning
from ..utils.logger import get_logger
from ..utils.offers import extract_price_candidates, parse_decision_block, strip_decision_block
from ..utils.text import normalize_whitespace, redact_unsafe, strip_reasoning_blocks
from ..utils.word_limit import enforce_word_limit

logger = get_logger(__name__)

# Confidence levels by evidence
CONFIDENCE_DECISION_BLOCK = 0.95
CONFIDENCE_EXPLICIT_PRICE = 0.85
CONFIDENCE_ACCEPT_PHRASE = 0.8
CONFIDENCE_REJECT_PHRASE = 0.75
CONFIDENCE_VAGUE_PRICE = 0.6
CONFIDENCE_AMBIGUOUS = 0.3
SANITIZED_PENALTY = 0.7

# Prices closer than this are the same offer
PRICE_EPSILON = 0.005

# Plausible offers lie in [0, base_price * PLAUSIBLE_CEILING]
PLAUSIBLE_CEILING = 1.5
# Bare numbers below this share of the list price are not read as prices
VAGUE_FLOOR = 0.1

_REJECT_PATTERNS = [
    re.compile(r"\b(can'?t|cannot|won'?t|will not|unable to)\s+(accept|agree|take|do that|go (?:that|any) (?:low|lower|high|higher))", re.IGNORECASE),
    re.compile(r"\bno deal\b", re.IGNORECASE),
    re.compile(r"\b(i|we)\s+(?:must\s+|have to\s+)?(reject|decline)\b", re.IGNORECASE),
    re.compile(r"\bnot interested\b", re.IGNORECASE),
    re.compile(r"\bwalk away\b", re.IGNORECASE),
]

_ACCEPT_PATTERNS = [
    re.compile(r"\b(i|we)\s+(?:happily\s+|gladly\s+|will\s+)?(accept|agree)\b", re.IGNORECASE),
    re.compile(r"\b(it'?s|that'?s|you'?ve got)\s+a\s+deal\b", re.IGNORECASE),
    re.compile(r"^\s*(deal|agreed|sold|accepted)\b(?!\s*\?)", re.IGNORECASE),
    re.compile(r"\b(i'?ll|i will|we'?ll)\s+take\s+it\b", re.IGNORECASE),
    re.compile(r"\bsounds good,?\s+(?:let'?s|deal)\b", re.IGNORECASE),
]


@dataclass(frozen=True)
class InterpretedResponse:
    """Structured reading of one message."""
    action: TurnAction
    offer_amount: float | None
    confidence: float
    message: str
    reasoning: str = ""
    warnings: Tuple[str, ...] = ()
    sanitized: bool = False


def _ambiguity_note(detail: str) -> str:
    return f"{ParseAmbiguityWarning.__name__}: {detail}"


def is_plausible(amount: float, product: ProductContext) -> bool:
    return 0.0 <= amount <= product.base_price * PLAUSIBLE_CEILING


def _matches(patterns, text: str) -> bool:
    return any(p.search(text) for p in patterns)


def _is_standing_offer(price: float, session: NegotiationSession) -> bool:
    """True when price is the counterpart's current offer."""
    current = session.current_offer
    if current is None or current.proposed_by == "ai":
        return False
    return abs(price - current.amount) < PRICE_EPSILON


def _pick_price(text: str, product: ProductContext) -> Tuple[float | None, float]:
    """
    Choose the most likely price in text.

    Returns the last plausible explicit amount with high confidence, else the
    last plausible bare number with lower confidence, else (None, 0).
    """
    candidates = extract_price_candidates(text)
    explicit = [c for c in candidates if c.explicit and is_plausible(c.amount, product)]
    if explicit:
        return explicit[-1].amount, CONFIDENCE_EXPLICIT_PRICE

    floor = product.base_price * VAGUE_FLOOR
    vague = [
        c for c in candidates
        if not c.explicit and is_plausible(c.amount, product) and c.amount >= floor
    ]
    if vague:
        return vague[-1].amount, CONFIDENCE_VAGUE_PRICE
    return None, 0.0


class ResponseInterpreter:
    """Reads AI replies and human messages into actions and prices."""

    def __init__(self, max_words: int = 120):
        self.max_words = max_words

    def interpret(self, raw_text: str, session: NegotiationSession) -> InterpretedResponse:
        """
        Interpret an LLM reply.

        Args:
            raw_text: Completion text exactly as returned by the provider
            session: Session the reply belongs to (bounds, current offer)

        Returns:
            InterpretedResponse; ambiguous replies become CONTINUE with a
            ParseAmbiguityWarning note and low confidence
        """
        try:
            return self._interpret(raw_text, session)
        except Exception as e:
            logger.error(f"Interpretation failed for session {session.id}: {e}", exc_info=True)
            return InterpretedResponse(
                action=TurnAction.CONTINUE,
                offer_amount=None,
                confidence=0.0,
                message="",
                warnings=(_ambiguity_note(f"interpretation failed: {e}"),),
            )

    def _interpret(self, raw_text: str, session: NegotiationSession) -> InterpretedResponse:
        product = session.product
        warnings: list[str] = []

        text = strip_reasoning_blocks(raw_text or "")
        text, categories = redact_unsafe(text)
        sanitized = bool(categories)
        if sanitized:
            warnings.append(f"sanitized: {', '.join(categories)}")

        decision = parse_decision_block(text)
        dialogue = strip_decision_block(text)
        message = enforce_word_limit(normalize_whitespace(dialogue), self.max_words)

        reasoning = ""
        price: float | None = None

        if decision is not None:
            action = TurnAction(decision["action"])
            price = decision["price"]
            reasoning = decision["reasoning"]
            confidence = CONFIDENCE_DECISION_BLOCK

            if price is not None and not is_plausible(price, product):
                warnings.append(f"implausible price {price} ignored")
                price = None

            if action == TurnAction.COUNTER and price is None:
                price, price_confidence = _pick_price(dialogue, product)
                if price is None:
                    action = TurnAction.CONTINUE
                    confidence = CONFIDENCE_AMBIGUOUS
                    warnings.append(_ambiguity_note("counter without a usable price"))
                else:
                    confidence = price_confidence
        elif _matches(_REJECT_PATTERNS, dialogue):
            action = TurnAction.REJECT
            confidence = CONFIDENCE_REJECT_PHRASE
            price, _ = _pick_price(dialogue, product)
            if price is not None:
                # A refusal that names a price is a counter
                action = TurnAction.COUNTER
        elif _matches(_ACCEPT_PATTERNS, dialogue):
            action = TurnAction.ACCEPT
            confidence = CONFIDENCE_ACCEPT_PHRASE
            price, _ = _pick_price(dialogue, product)
        else:
            price, confidence = _pick_price(dialogue, product)
            if price is not None:
                action = TurnAction.COUNTER
            else:
                action = TurnAction.CONTINUE
                confidence = CONFIDENCE_AMBIGUOUS
                warnings.append(_ambiguity_note("no decision or price found"))

        if action == TurnAction.ACCEPT and price is not None and not _is_standing_offer(price, session):
            # Agreeing while naming another price is a counter at that price
            action = TurnAction.COUNTER
            if decision is None:
                confidence = CONFIDENCE_EXPLICIT_PRICE

        if sanitized:
            confidence *= SANITIZED_PENALTY

        return InterpretedResponse(
            action=action,
            offer_amount=round(price, 2) if price is not None else None,
            confidence=round(min(max(confidence, 0.0), 1.0), 3),
            message=message,
            reasoning=reasoning,
            warnings=tuple(warnings),
            sanitized=sanitized,
        )

    def classify_human(
        self,
        text: str,
        session: NegotiationSession,
        explicit_offer: float | None = None,
    ) -> InterpretedResponse:
        """
        Classify a human turn.

        Accept only when the message carries acceptance markers and either
        names no price or names exactly the AI's last offer. Any other price
        makes the turn a counter.
        """
        clean, categories = redact_unsafe(text or "")
        clean = clean.strip()
        warnings = [f"sanitized: {', '.join(categories)}"] if categories else []

        amount = explicit_offer
        confidence = 1.0
        if amount is None:
            amount, confidence = _pick_price(clean, session.product)

        ai_offer = session.last_ai_offer()
        accepting = _matches(_ACCEPT_PATTERNS, clean) and not _matches(_REJECT_PATTERNS, clean)

        if accepting and ai_offer is not None and (amount is None or abs(amount - ai_offer) < PRICE_EPSILON):
            action = TurnAction.ACCEPT
            amount = ai_offer
            confidence = CONFIDENCE_ACCEPT_PHRASE if explicit_offer is None else 1.0
        elif amount is not None:
            action = TurnAction.COUNTER
        else:
            action = TurnAction.CONTINUE
            confidence = 0.5

        return InterpretedResponse(
            action=action,
            offer_amount=round(amount, 2) if amount is not None else None,
            confidence=confidence,
            message=clean,
            warnings=tuple(warnings),
            sanitized=bool(categories),
        )
