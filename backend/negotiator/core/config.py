"""
Application configuration using pydantic-settings.

WHAT: Centralized config from environment variables
WHY: Type-safe, validated config with sensible defaults
HOW: Pydantic BaseSettings reads from .env and environment
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Literal
from pathlib import Path


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        # Project root .env first, then backend/.env
        env_file=[
            str(Path(__file__).parent.parent.parent.parent / ".env"),
            str(Path(__file__).parent.parent.parent / ".env"),
        ],
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # App metadata
    APP_NAME: str = "Smart Marketplace Negotiator"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Durable session snapshots
    PERSISTENCE_ENABLED: bool = False
    DATABASE_URL: str = "sqlite:///./data/negotiations.db"

    # LLM Provider Selection
    LLM_PROVIDER: Literal["lm_studio", "openrouter", "gemini"] = "lm_studio"

    # LM Studio Configuration
    LM_STUDIO_BASE_URL: str = "http://localhost:1234/v1"
    LM_STUDIO_DEFAULT_MODEL: str = "qwen/qwen3-1.7b"

    # OpenRouter Configuration
    OPENROUTER_API_KEY: str = ""
    OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"
    OPENROUTER_DEFAULT_MODEL: str = "google/gemini-2.5-flash-lite"

    # Gemini Configuration
    GEMINI_API_KEY: str = ""
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_DEFAULT_MODEL: str = "gemini-1.5-flash"

    # LLM Request Configuration
    LLM_REQUEST_TIMEOUT: float = 15.0  # seconds, whole completion budget
    LLM_MAX_RETRIES: int = 3
    LLM_RETRY_DELAY: float = 1.0  # seconds, base for exponential backoff
    LLM_DEFAULT_TEMPERATURE: float = 0.7
    LLM_DEFAULT_MAX_TOKENS: int = 512

    # Negotiation rules
    MAX_NEGOTIATION_ROUNDS: int = 5
    NEAR_ACCEPTANCE_PCT: float = 0.05
    URGENCY_THRESHOLD: float = 0.7
    CONCURRENCY_POLICY: Literal["queue", "fail_fast"] = "queue"

    # Conversation memory
    MAX_HISTORY_TURNS: int = 10
    MAX_HISTORY_CHARS: int = 4000
    SESSION_VIEW_TURNS: int = 10
    SESSION_IDLE_TTL_MINUTES: int = 30
    SESSION_CLEANUP_INTERVAL_SECONDS: int = 300

    # CORS - accepts comma-separated string or list
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:3001"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(v, list):
            return ",".join(v)
        return v

    def get_cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "./data/logs/app.log"


# Singleton instance used for application wiring
settings = Settings()
