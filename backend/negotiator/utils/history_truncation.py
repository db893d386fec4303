"""
Conversation history truncation utilities.

WHAT: Bound the turn window that goes into a prompt
WHY: LLM context windows are limited and old turns matter least
HOW: Keep the most recent turns while respecting a character budget
"""

from typing import List

from ..models.negotiation import Turn
from ..utils.logger import get_logger

logger = get_logger(__name__)


def truncate_turn_history(
    history: List[Turn],
    max_turns: int = 10,
    max_chars: int = 4000
) -> List[Turn]:
    """
    Truncate conversation history to fit a prompt.

    Strategy:
    1. Keep the most recent turns (up to max_turns)
    2. If total characters exceed max_chars, drop oldest turns first
    3. Always keep the most recent turn, even if it alone exceeds the limit

    Args:
        history: Turns on the active branch, oldest first
        max_turns: Maximum number of turns to keep
        max_chars: Maximum total characters across kept turns

    Returns:
        Truncated list of turns
    """
    if not history:
        return []

    truncated = list(history[-max_turns:]) if max_turns > 0 else list(history[-1:])
    total_chars = sum(len(turn.raw_text) for turn in truncated)

    while total_chars > max_chars and len(truncated) > 1:
        removed = truncated.pop(0)
        total_chars -= len(removed.raw_text)

    if len(truncated) < len(history):
        logger.debug(
            f"Truncated turn history: {len(history)} -> {len(truncated)} turns "
            f"({total_chars}/{max_chars} chars)"
        )

    return truncated
