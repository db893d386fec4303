"""
Prompt-to-completion client.

WHAT: The engine's single entry point into the LLM layer
WHY: One place for the request budget and latency measurement
HOW: Wrap provider.generate in asyncio.wait_for and map timeouts
"""

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .provider import LLMProvider
from .types import GenerationConfig, ProviderTimeoutError
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from ..engine.prompt_composer import ComposedPrompt

logger = get_logger(__name__)


@dataclass(frozen=True)
class Completion:
    """Completion text plus how long it took."""
    text: str
    latency_ms: float
    model: str


class CompletionClient:
    """Calls the provider with a hard timeout."""

    def __init__(self, provider: LLMProvider, timeout: float = 15.0):
        self.provider = provider
        self.timeout = timeout

    async def complete(self, prompt: "ComposedPrompt", config: GenerationConfig) -> Completion:
        """
        Run one completion for a composed prompt.

        Raises:
            ProviderTimeoutError: The whole call exceeded the timeout
            ProviderError: Any provider failure
        """
        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(
                self.provider.generate(
                    prompt.to_messages(),
                    temperature=config.temperature,
                    max_tokens=config.max_tokens,
                    stop=list(config.stop) if config.stop else None,
                    model=config.model,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"LLM completion exceeded {self.timeout}s")
            raise ProviderTimeoutError(f"Completion exceeded {self.timeout}s") from e

        latency_ms = (time.perf_counter() - started) * 1000
        return Completion(text=result.text, latency_ms=round(latency_ms, 1), model=result.model)
