"""
LLM provider layer: HTTP backends, the provider factory and the
timeout-bounded completion client used by the negotiation engine.
"""

from .types import (
    ChatMessage,
    GenerationConfig,
    LLMResult,
    ProviderStatus,
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    ProviderDisabledError,
    ProviderResponseError,
)
from .provider import LLMProvider
from .provider_factory import create_provider
from .completion import Completion, CompletionClient

__all__ = [
    "LLMProvider",
    "create_provider",
    "Completion",
    "CompletionClient",
    "ChatMessage",
    "GenerationConfig",
    "LLMResult",
    "ProviderStatus",
    "ProviderError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "ProviderDisabledError",
    "ProviderResponseError",
]
