"""
Text processing utilities.

WHAT: Helpers for cleaning and sanitizing LLM and user text
WHY: Reasoning traces and unsafe content must never reach a transcript
HOW: Regex-based stripping and category-tagged redaction
"""

import re


_REASONING_BLOCK = re.compile(
    r'<(think|thinking|reasoning)>.*?</\1>\s*', re.IGNORECASE | re.DOTALL
)
_UNCLOSED_REASONING = re.compile(r'<(think|thinking|reasoning)>.*\Z', re.IGNORECASE | re.DOTALL)
_STRAY_REASONING_TAG = re.compile(r'</?(think|thinking|reasoning)>\s*', re.IGNORECASE)

_MARKUP_PATTERNS = [
    ("script", re.compile(r'<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>', re.IGNORECASE)),
    ("iframe", re.compile(r'<iframe\b[^<]*(?:(?!</iframe>)<[^<]*)*</iframe>', re.IGNORECASE)),
    ("javascript", re.compile(r'javascript:', re.IGNORECASE)),
]

# Order matters: card and SSN before the looser phone pattern
_PERSONAL_INFO_PATTERNS = [
    ("credit_card", re.compile(r'\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b')),
    ("ssn", re.compile(r'\b\d{3}-\d{2}-\d{4}\b')),
    ("email", re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')),
    ("phone", re.compile(r'\b\d{3}[-.]\d{3}[-.]\d{4}\b|\(\d{3}\)\s*\d{3}[-.]\d{4}')),
]

_PROFANITY = re.compile(r'\b(fuck\w*|shit\w*|bitch\w*|asshole|crap)\b', re.IGNORECASE)
_SPAM = re.compile(r'\b(click here|free money|act now)\b', re.IGNORECASE)


def strip_reasoning_blocks(text: str) -> str:
    """
    Remove <think>...</think> style reasoning segments from LLM output.

    Unterminated blocks are dropped to the end of the text, and any
    orphaned tags are removed.
    """
    if not text:
        return ""
    text = _REASONING_BLOCK.sub('', text)
    text = _UNCLOSED_REASONING.sub('', text)
    text = _STRAY_REASONING_TAG.sub('', text)
    return text.strip()


def redact_unsafe(text: str) -> tuple[str, list[str]]:
    """
    Replace unsafe content with category markers.

    Args:
        text: Text to sanitize

    Returns:
        Tuple of (sanitized_text, categories_found)
    """
    if not text:
        return "", []

    found: list[str] = []

    for category, pattern in _MARKUP_PATTERNS + _PERSONAL_INFO_PATTERNS:
        text, count = pattern.subn(f"[{category.upper()}_REMOVED]", text)
        if count:
            found.append(category)

    text, count = _PROFANITY.subn("[FILTERED]", text)
    if count:
        found.append("profanity")

    text, count = _SPAM.subn("[FILTERED]", text)
    if count:
        found.append("spam")

    return text, found


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces."""
    return re.sub(r'\s+', ' ', text or '').strip()
