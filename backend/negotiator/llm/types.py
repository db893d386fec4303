"""
LLM provider types, dataclasses, and exceptions.

WHAT: Messages, results, sampling config and the provider error hierarchy
WHY: The engine treats every backend the same way, including how it fails
HOW: TypedDict for messages, dataclasses for values, ProviderError subclasses
"""

from typing import TypedDict, Literal
from dataclasses import dataclass


ChatMessage = TypedDict(
    "ChatMessage",
    {"role": Literal["system", "user", "assistant"], "content": str}
)


@dataclass
class LLMResult:
    """Completion text with token usage as reported by the backend."""
    text: str
    usage: dict
    model: str


@dataclass
class ProviderStatus:
    """Result of a provider health probe."""
    available: bool
    base_url: str
    models: list[str] | None = None
    error: str | None = None


@dataclass(frozen=True)
class GenerationConfig:
    """Sampling parameters for one completion."""
    temperature: float = 0.7
    max_tokens: int = 512
    stop: tuple[str, ...] | None = None
    model: str | None = None


class ProviderError(Exception):
    """Any failure to obtain a completion; the engine falls back on it."""


class ProviderTimeoutError(ProviderError):
    """Every attempt, or the whole completion, ran out of time."""


class ProviderUnavailableError(ProviderError):
    """Backend refused or dropped the connection."""


class ProviderDisabledError(ProviderError):
    """Backend selected in configuration but missing credentials."""


class ProviderResponseError(ProviderError):
    """HTTP error status or a body without completion text."""
