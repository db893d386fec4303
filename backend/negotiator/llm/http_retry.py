"""
HTTP retry helper shared by the LLM providers.

WHAT: POST a JSON payload with exponential backoff
WHY: Local and cloud providers fail in the same transient ways
HOW: Retry timeouts, refused connections and 5xx; fail fast on 4xx
"""

import asyncio
import json

import httpx

from .types import ProviderResponseError, ProviderTimeoutError, ProviderUnavailableError
from ..utils.logger import get_logger

logger = get_logger(__name__)


async def post_json_with_retries(
    client: httpx.AsyncClient,
    url: str,
    payload: dict,
    *,
    provider_name: str,
    max_retries: int,
    retry_delay: float,
    params: dict | None = None,
) -> dict:
    """
    POST `payload` and return the decoded JSON body.

    Raises:
        ProviderTimeoutError: Every attempt timed out
        ProviderUnavailableError: Provider not reachable after all attempts
        ProviderResponseError: 4xx, persistent 5xx or a non-JSON body
    """
    attempts = max(max_retries, 1)
    for attempt in range(attempts):
        try:
            response = await client.post(url, json=payload, params=params)
            response.raise_for_status()
            return response.json()

        except httpx.TimeoutException as e:
            logger.warning(f"{provider_name} timeout (attempt {attempt + 1}/{attempts})")
            if attempt == attempts - 1:
                raise ProviderTimeoutError(f"Request timed out after {attempts} attempts") from e

        except httpx.ConnectError as e:
            logger.error(f"{provider_name} connection refused (attempt {attempt + 1}/{attempts})")
            if attempt == attempts - 1:
                raise ProviderUnavailableError(f"{provider_name} is not reachable") from e

        except httpx.HTTPStatusError as e:
            if e.response.status_code < 500:
                # Client errors don't retry
                raise ProviderResponseError(f"HTTP {e.response.status_code}: {e.response.text}") from e
            logger.error(f"{provider_name} server error {e.response.status_code} (attempt {attempt + 1}/{attempts})")
            if attempt == attempts - 1:
                raise ProviderResponseError(f"Server error: {e.response.status_code}") from e

        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON from {provider_name}: {e}")
            raise ProviderResponseError(f"Invalid response format: {e}") from e

        await asyncio.sleep(retry_delay * (2 ** attempt))

    raise ProviderResponseError(f"{provider_name} request failed")
