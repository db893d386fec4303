"""
LM Studio provider implementation.

WHAT: Local LLM inference via LM Studio
WHY: Enable local-first inference without external API dependencies
HOW: HTTPX client with retries against the OpenAI-compatible API
"""

import httpx

from .http_retry import post_json_with_retries
from .types import (
    ChatMessage,
    LLMResult,
    ProviderStatus,
    ProviderResponseError,
)
from ..utils.text import strip_reasoning_blocks
from ..utils.logger import get_logger

logger = get_logger(__name__)


class LMStudioProvider:
    """LM Studio LLM provider with retry logic."""

    def __init__(
        self,
        base_url: str = "http://localhost:1234/v1",
        default_model: str = "qwen/qwen3-1.7b",
        timeout: float = 15.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.default_model = default_model
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(5.0, read=self.timeout),
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
        )

    def _disable_thinking_in_messages(self, messages: list[ChatMessage]) -> list[ChatMessage]:
        """
        Add the /no_think directive for Qwen3 models.

        Appended to the system message, or to the first user message when
        there is no system message. Input messages are not modified.
        """
        modified = [dict(m) for m in messages]
        target = next((m for m in modified if m.get("role") == "system"), None)
        if target is None:
            target = next((m for m in modified if m.get("role") == "user"), None)
        if target is not None and "/no_think" not in target.get("content", ""):
            target["content"] = f"{target.get('content', '')}\n\n/no_think"
        return modified  # type: ignore[return-value]

    async def ping(self) -> ProviderStatus:
        """
        Check LM Studio availability.

        Returns:
            ProviderStatus with availability and model list
        """
        try:
            response = await self.client.get(f"{self.base_url}/models", timeout=5.0)
            response.raise_for_status()
            models = [m.get("id") for m in response.json().get("data", [])]
            return ProviderStatus(available=True, base_url=self.base_url, models=models or None)
        except httpx.TimeoutException:
            logger.warning("LM Studio ping timed out")
            return ProviderStatus(available=False, base_url=self.base_url, error="Connection timeout")
        except httpx.ConnectError:
            logger.warning("LM Studio not reachable")
            return ProviderStatus(
                available=False,
                base_url=self.base_url,
                error="Connection refused - is LM Studio running?"
            )
        except Exception as e:
            logger.error(f"LM Studio ping failed: {e}")
            return ProviderStatus(available=False, base_url=self.base_url, error=str(e))

    async def generate(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float,
        max_tokens: int,
        stop: list[str] | None = None,
        model: str | None = None
    ) -> LLMResult:
        """
        Generate a complete response.

        Raises:
            ProviderTimeoutError: Request timed out
            ProviderUnavailableError: LM Studio not reachable
            ProviderResponseError: Invalid response from LM Studio
        """
        model_to_use = model or self.default_model

        payload = {
            "model": model_to_use,
            "messages": self._disable_thinking_in_messages(messages),
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": False,
            # Qwen3-specific parameter to disable thinking mode
            "enable_thinking": False,
        }
        if stop:
            payload["stop"] = list(stop)

        data = await post_json_with_retries(
            self.client,
            f"{self.base_url}/chat/completions",
            payload,
            provider_name="LM Studio",
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
        )

        try:
            raw_text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            logger.error(f"Invalid response from LM Studio: {e}")
            raise ProviderResponseError(f"Invalid response format: {e}") from e

        usage = data.get("usage", {})
        response_model = data.get("model", model_to_use)
        logger.info(f"LM Studio generate success (model: {response_model}, tokens: {usage.get('total_tokens', 'unknown')})")

        return LLMResult(text=strip_reasoning_blocks(raw_text or ""), usage=usage, model=response_model)

    async def aclose(self) -> None:
        await self.client.aclose()
