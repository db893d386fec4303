"""
Google Gemini provider implementation.

WHAT: Cloud inference through the Gemini generateContent REST API
WHY: Hosted model option with a free tier for marketplace deployments
HOW: HTTPX client, chat messages mapped to Gemini contents, shared retry logic
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


class GeminiProvider:
    """Gemini LLM provider; requires an API key."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        default_model: str = "gemini-1.5-flash",
        timeout: float = 15.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ):
        if not api_key or not api_key.strip():
            logger.error("Gemini selected but GEMINI_API_KEY is not set or empty!")
            raise ProviderDisabledError("Gemini requires GEMINI_API_KEY to be set")

        self.base_url = base_url.rstrip("/")
        self.default_model = default_model
        self.max_retries = max_retries
        self.retry_delay = retry_delay

        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(5.0, read=timeout),
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
            headers={"x-goog-api-key": api_key},
        )
        logger.info(f"Gemini provider initialized (model: {default_model})")

    @staticmethod
    def _to_gemini_payload(messages: list[ChatMessage]) -> dict:
        """Split system text into systemInstruction and map roles to user/model."""
        system_parts = [m["content"] for m in messages if m["role"] == "system"]
        contents = [
            {
                "role": "model" if m["role"] == "assistant" else "user",
                "parts": [{"text": m["content"]}],
            }
            for m in messages
            if m["role"] != "system"
        ]
        payload: dict = {"contents": contents}
        if system_parts:
            payload["systemInstruction"] = {"parts": [{"text": "\n\n".join(system_parts)}]}
        return payload

    async def ping(self) -> ProviderStatus:
        """Check Gemini availability by listing models."""
        try:
            response = await self.client.get(f"{self.base_url}/models", timeout=10.0)
            response.raise_for_status()
            models = [
                m.get("name", "").removeprefix("models/")
                for m in response.json().get("models", [])
            ]
            return ProviderStatus(available=True, base_url=self.base_url, models=models[:10] or None)
        except httpx.TimeoutException:
            logger.warning("Gemini ping timeout")
            return ProviderStatus(available=False, base_url=self.base_url, error="Request timed out")
        except httpx.ConnectError:
            logger.warning("Gemini not reachable")
            return ProviderStatus(available=False, base_url=self.base_url, error="Connection refused")
        except Exception as e:
            logger.error(f"Gemini ping failed: {e}")
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
            ProviderUnavailableError: Gemini not reachable
            ProviderResponseError: Invalid or blocked response
        """
        model_to_use = model or self.default_model
        payload = self._to_gemini_payload(messages)
        generation_config: dict = {"temperature": temperature, "maxOutputTokens": max_tokens}
        if stop:
            generation_config["stopSequences"] = list(stop)
        payload["generationConfig"] = generation_config

        data = await post_json_with_retries(
            self.client,
            f"{self.base_url}/models/{model_to_use}:generateContent",
            payload,
            provider_name="Gemini",
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
        )

        try:
            parts = data["candidates"][0]["content"]["parts"]
            text = "".join(part.get("text", "") for part in parts)
        except (KeyError, IndexError, TypeError) as e:
            reason = data.get("promptFeedback", {}).get("blockReason") if isinstance(data, dict) else None
            logger.error(f"Invalid response from Gemini: {e} (block reason: {reason})")
            raise ProviderResponseError(f"Invalid response format: {e}") from e

        meta = data.get("usageMetadata", {})
        usage = {
            "prompt_tokens": meta.get("promptTokenCount", 0),
            "completion_tokens": meta.get("candidatesTokenCount", 0),
            "total_tokens": meta.get("totalTokenCount", 0),
        }
        logger.info(f"Gemini generate success (model: {model_to_use}, tokens: {usage['total_tokens']})")
        return LLMResult(text=text, usage=usage, model=model_to_use)

    async def aclose(self) -> None:
        await self.client.aclose()
