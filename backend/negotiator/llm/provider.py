"""
LLM provider protocol definition.

WHAT: The contract every chat-completion backend implements
WHY: The engine only ever needs "messages in, text out" plus a health probe
HOW: typing.Protocol; failures are reported as ProviderError subclasses
"""

from typing import Protocol, runtime_checkable

from .types import ChatMessage, LLMResult, ProviderStatus


@runtime_checkable
class LLMProvider(Protocol):
    """
    Chat-completion backend.

    generate() raises ProviderTimeoutError, ProviderUnavailableError or
    ProviderResponseError; ping() never raises and reports problems in the
    returned status instead.
    """

    async def ping(self) -> ProviderStatus:
        ...

    async def generate(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float,
        max_tokens: int,
        stop: list[str] | None = None,
        model: str | None = None
    ) -> LLMResult:
        ...

    async def aclose(self) -> None:
        """Release pooled HTTP connections."""
        ...
