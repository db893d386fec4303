"""
Offer parsing and formatting utilities.

WHAT: Extract structured decisions and price mentions from free text
WHY: LLM replies and human messages state prices in many shapes
HOW: Fenced JSON decision block first, then regex price candidates
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict

from ..utils.logger import get_logger

logger = get_logger(__name__)

DECISION_FENCE = "decision"
PRICE_PLACEHOLDER = "<amount>"

_FENCE_PATTERN = re.compile(r'```\s*decision\s*(\{.*?\})\s*```', re.IGNORECASE | re.DOTALL)
_PREFIX_PATTERN = re.compile(r'Decision:\s*(\{[^}]+\})', re.IGNORECASE)
_FENCE_STRIP = re.compile(r'```\s*(?:decision|json)?\s*\{.*?\}\s*```', re.IGNORECASE | re.DOTALL)

_VALID_ACTIONS = {"accept", "reject", "counter", "continue"}

# $1,250.00 / $ 99 / 1,250 dollars / 99 USD
_CURRENCY_PATTERNS = [
    re.compile(r'\$\s*(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)'),
    re.compile(r'(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)\s*(?:USD|dollars?|bucks)\b', re.IGNORECASE),
]
_BARE_NUMBER = re.compile(r'(?<![\w.$])(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)(?![\w%])')


@dataclass(frozen=True)
class PriceCandidate:
    """A price mentioned in text and how explicitly it was stated."""
    amount: float
    explicit: bool
    position: int


def parse_decision_block(text: str) -> Dict[str, Any] | None:
    """
    Parse a decision block from LLM-generated text.

    Expected formats:
    - ```decision {"action": "counter", "price": 120.0}```
    - Decision: {"action": "accept"}

    Args:
        text: LLM response text potentially containing a decision

    Returns:
        Dict with action, optional price and reasoning, or None if absent/invalid
    """
    if not text:
        return None

    for pattern, label in ((_FENCE_PATTERN, "fenced block"), (_PREFIX_PATTERN, "Decision: prefix")):
        match = pattern.search(text)
        if not match:
            continue
        try:
            data = json.loads(match.group(1))
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in decision {label}: {e}")
            continue
        decision = _validate_decision(data)
        if decision is not None:
            logger.debug(f"Parsed decision from {label}")
            return decision

    return None


def _validate_decision(data: Any) -> Dict[str, Any] | None:
    """Normalise a decoded decision dict, or None when it is unusable."""
    if not isinstance(data, dict):
        return None

    action = str(data.get("action", "")).strip().lower()
    if action not in _VALID_ACTIONS:
        return None

    price = data.get("price", data.get("amount"))
    if price is not None:
        try:
            price = float(str(price).replace(",", "").replace("$", ""))
        except (TypeError, ValueError):
            return None

    return {
        "action": action,
        "price": price,
        "reasoning": str(data.get("reasoning", "") or ""),
    }


def strip_decision_block(text: str) -> str:
    """Remove machine-readable decision blocks so only dialogue remains."""
    text = _FENCE_STRIP.sub('', text or '')
    text = _PREFIX_PATTERN.sub('', text)
    return text.strip()


def _to_amount(raw: str) -> float | None:
    try:
        return float(raw.replace(",", ""))
    except ValueError:
        return None


def extract_price_candidates(text: str) -> list[PriceCandidate]:
    """
    Find every price-like number in natural language.

    Currency-marked amounts ($X, X USD) are explicit; other standalone
    numbers are kept as vague candidates. Ordered by position in text.
    """
    if not text:
        return []

    candidates: list[PriceCandidate] = []
    taken: list[tuple[int, int]] = []

    for pattern in _CURRENCY_PATTERNS:
        for match in pattern.finditer(text):
            amount = _to_amount(match.group(1))
            if amount is None:
                continue
            candidates.append(PriceCandidate(amount, True, match.start()))
            taken.append(match.span())

    for match in _BARE_NUMBER.finditer(text):
        start, end = match.span()
        if any(s <= start < e or s < end <= e for s, e in taken):
            continue
        amount = _to_amount(match.group(1))
        if amount is not None:
            candidates.append(PriceCandidate(amount, False, start))

    return sorted(candidates, key=lambda c: c.position)


def format_price(amount: float, currency: str = "USD") -> str:
    """Format an amount for prompts and messages."""
    if currency == "USD":
        return f"${amount:,.2f}"
    return f"{amount:,.2f} {currency}"


def format_decision_block(action: str, price: float | str | None = None) -> str:
    """
    Format a decision as structured text for LLM instruction examples.

    Args:
        action: One of accept, reject, counter, continue
        price: Optional price attached to the decision; a string is written
               unquoted as a placeholder such as PRICE_PLACEHOLDER

    Returns:
        Formatted decision string
    """
    payload: Dict[str, Any] = {"action": action}
    if isinstance(price, str):
        body = json.dumps(payload)[:-1] + f', "price": {price}}}'
    else:
        if price is not None:
            payload["price"] = price
        body = json.dumps(payload)
    return f'```{DECISION_FENCE}\n{body}\n```'
