"""
OpenRouter provider implementation.

WHAT: External LLM provider via OpenRouter API
WHY: Cloud-based models when local inference is insufficient
HOW: OpenAI-compatible API with authorization headers and retry logic
"""

import httpx

from .http_retry import post_json_with_retries
from .types import (
    ChatMessage,
    LLMResult,
    ProviderStatus,
    ProviderDisabledError,
    ProviderResponseError,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


class OpenRouterProvider:
    """OpenRouter LLM provider; requires an API key."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        default_model: str = "google/gemini-2.5-flash-lite",
        app_name: str = "Smart Marketplace Negotiator",
        timeout: float = 15.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ):
        if not api_key or not api_key.strip():
            logger.error("OpenRouter selected but OPENROUTER_API_KEY is not set or empty!")
            raise ProviderDisabledError(
                "OpenRouter requires OPENROUTER_API_KEY. "
                "Get a key from https://openrouter.ai/keys and set it in your .env file"
            )

        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.default_model = default_model
        self.max_retries = max_retries
        self.retry_delay = retry_delay

        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(5.0, read=timeout),
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
            headers={
                "Authorization": f"Bearer {api_key}",
                "HTTP-Referer": app_name,
                "X-Title": app_name,
            },
        )
        masked = '*' * 10 + api_key[-4:] if len(api_key) > 4 else '***'
        logger.info(f"OpenRouter provider initialized (model: {default_model}, API key: {masked})")

    async def ping(self) -> ProviderStatus:
        """
        Check OpenRouter availability by fetching models list.

        Returns:
            ProviderStatus with up to ten available models
        """
        try:
            response = await self.client.get(f"{self.base_url}/models", timeout=10.0)
            response.raise_for_status()
            models = [m.get("id") for m in response.json().get("data", [])]
            logger.info(f"OpenRouter ping success ({len(models)} models available)")
            return ProviderStatus(available=True, base_url=self.base_url, models=models[:10] or None)
        except httpx.TimeoutException:
            logger.warning("OpenRouter ping timeout")
            return ProviderStatus(available=False, base_url=self.base_url, error="Request timed out")
        except httpx.ConnectError:
            logger.warning("OpenRouter not reachable")
            return ProviderStatus(available=False, base_url=self.base_url, error="Connection refused")
        except Exception as e:
            logger.error(f"OpenRouter ping failed: {e}")
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
            ProviderUnavailableError: OpenRouter not reachable
            ProviderResponseError: Invalid response from OpenRouter
        """
        model_to_use = model or self.default_model
        payload = {
            "model": model_to_use,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": False
        }
        if stop:
            payload["stop"] = list(stop)

        data = await post_json_with_retries(
            self.client,
            f"{self.base_url}/chat/completions",
            payload,
            provider_name="OpenRouter",
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
        )

        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            logger.error(f"Invalid response from OpenRouter: {e}")
            raise ProviderResponseError(f"Invalid response format: {e}") from e

        usage = data.get("usage", {})
        response_model = data.get("model", model_to_use)
        logger.info(f"OpenRouter generate success (model: {response_model}, tokens: {usage.get('total_tokens', 'unknown')})")
        return LLMResult(text=text or "", usage=usage, model=response_model)

    async def aclose(self) -> None:
        await self.client.aclose()
