"""
LLM provider factory.

WHAT: Build the LLM provider selected in configuration
WHY: Centralize provider selection and its settings
HOW: Read LLM_PROVIDER from the given Settings, construct and log
"""

from typing import TYPE_CHECKING

from ..utils.logger import get_logger

if TYPE_CHECKING:
    from ..core.config import Settings
    from .provider import LLMProvider

logger = get_logger(__name__)


def create_provider(settings: "Settings") -> "LLMProvider":
    """
    Create the configured LLM provider.

    Args:
        settings: Application settings

    Returns:
        LLMProvider instance based on settings.LLM_PROVIDER

    Raises:
        ValueError: If provider name is unknown
        ProviderDisabledError: If the provider lacks required credentials
    """
    provider_name = settings.LLM_PROVIDER
    common = {
        "timeout": settings.LLM_REQUEST_TIMEOUT,
        "max_retries": settings.LLM_MAX_RETRIES,
        "retry_delay": settings.LLM_RETRY_DELAY,
    }

    if provider_name == "lm_studio":
        from .lm_studio import LMStudioProvider
        provider = LMStudioProvider(
            base_url=settings.LM_STUDIO_BASE_URL,
            default_model=settings.LM_STUDIO_DEFAULT_MODEL,
            **common,
        )
    elif provider_name == "openrouter":
        from .openrouter import OpenRouterProvider
        provider = OpenRouterProvider(
            api_key=settings.OPENROUTER_API_KEY,
            base_url=settings.OPENROUTER_BASE_URL,
            default_model=settings.OPENROUTER_DEFAULT_MODEL,
            app_name=settings.APP_NAME,
            **common,
        )
    elif provider_name == "gemini":
        from .gemini import GeminiProvider
        provider = GeminiProvider(
            api_key=settings.GEMINI_API_KEY,
            base_url=settings.GEMINI_BASE_URL,
            default_model=settings.GEMINI_DEFAULT_MODEL,
            **common,
        )
    else:
        raise ValueError(f"Unknown LLM provider: {provider_name}")

    logger.info(f"LLM provider initialized: {provider_name}")
    return provider
