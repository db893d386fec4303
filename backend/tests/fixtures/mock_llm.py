"""
Mock LLM provider for deterministic testing.

WHAT: Fake LLM provider that returns scripted responses
WHY: Test the negotiation engine without a real LLM
HOW: Implement the LLMProvider protocol with canned responses, an optional
     delay and an optional failure
"""

import asyncio
from typing import Dict, List

from negotiator.llm.types import ChatMessage, LLMResult, ProviderResponseError, ProviderStatus


class MockLLMProvider:
    """
    Mock LLM provider for testing with scripted responses.

    Can be configured to return specific responses, respond slowly or raise.
    """

    def __init__(
        self,
        responses: List[str] | None = None,
        should_fail: bool = False,
        delay: float = 0.0,
        error: Exception | None = None,
    ):
        """
        Initialize mock provider.

        Args:
            responses: List of canned responses (cycled through)
            should_fail: If True, raise errors instead of responding
            delay: Seconds to sleep before answering
            error: Exception raised when should_fail is set
        """
        self.responses = responses or ["Mock response"]
        self.should_fail = should_fail
        self.delay = delay
        self.error = error
        self.call_count = 0
        self.calls: List[Dict] = []
        self.closed = False

    async def ping(self) -> ProviderStatus:
        return ProviderStatus(
            available=not self.should_fail,
            base_url="http://mock:1234/v1",
            models=["mock-model"] if not self.should_fail else None,
            error="Mock failure" if self.should_fail else None
        )

    async def generate(
        self,
        messages: List[ChatMessage],
        *,
        temperature: float,
        max_tokens: int,
        stop: List[str] | None = None,
        model: str | None = None,
    ) -> LLMResult:
        self.calls.append({
            "method": "generate",
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stop": stop,
            "model": model,
        })

        if self.delay:
            await asyncio.sleep(self.delay)
        if self.should_fail:
            raise self.error or ProviderResponseError("Mock provider error")

        response_text = self.responses[self.call_count % len(self.responses)]
        self.call_count += 1

        return LLMResult(
            text=response_text,
            usage={"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
            model=model or "mock-model"
        )

    async def aclose(self) -> None:
        self.closed = True
