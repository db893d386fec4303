"""
Word limit enforcement utilities.

WHAT: Keep AI replies to a readable length in the transcript
WHY: Small local models ramble; the chat surface expects short turns
HOW: Word counting and truncation at the nearest sentence boundary
"""

import re
from typing import Tuple

from ..utils.logger import get_logger

logger = get_logger(__name__)

MAX_WORDS_PER_MESSAGE = 120


def count_words(text: str) -> int:
    """Count whitespace-separated words."""
    if not text or not text.strip():
        return 0
    return len([w for w in re.split(r'\s+', text.strip()) if w])


def truncate_to_word_limit(text: str, max_words: int = MAX_WORDS_PER_MESSAGE) -> Tuple[str, bool]:
    """
    Truncate text to a maximum word count.

    WHAT: Cut long replies without leaving half a sentence when avoidable
    WHY: Transcript turns must stay short
    HOW: Look back up to ten words for sentence-ending punctuation,
         otherwise cut at the limit and append an ellipsis

    Args:
        text: Input text to truncate
        max_words: Maximum number of words allowed

    Returns:
        Tuple of (truncated_text, was_truncated)
    """
    if not text:
        return text, False

    words = text.split()
    if len(words) <= max_words:
        return text, False

    truncated = ' '.join(words[:max_words]) + '...'
    for i in range(max_words - 1, max(0, max_words - 10), -1):
        if words[i][-1] in '.!?':
            truncated = ' '.join(words[:i + 1])
            break

    logger.debug(f"Truncated reply from {len(words)} to {count_words(truncated)} words (limit: {max_words})")
    return truncated, True


def enforce_word_limit(text: str, max_words: int = MAX_WORDS_PER_MESSAGE) -> str:
    """Return text truncated to the word limit if needed."""
    truncated, _ = truncate_to_word_limit(text, max_words)
    return truncated
