"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ALLOWED_ORIGINS: str = "*"

    # LLM Providers (Intelligence Oracle)
    GEMINI_API_KEY: str = ""
    ANTHROPIC_API_KEY: str = ""
    OPENAI_API_KEY: str = ""
    ORACLE_MODEL: str = "gemini/gemini-2.5-flash"
    ORACLE_FALLBACK_MODEL: str = "openai/gpt-4o-mini"
    ORACLE_TEMPERATURE: float = 0.1
    ORACLE_MAX_TOKENS: int = 8192
    LLM_TIMEOUT: int = 60
    LLM_MAX_RETRIES: int = 1  # instructor validation re-asks, not transport retries

    # Monitoring
    SENTRY_DSN: str = ""

    # Google Workspace (user OAuth tokens supplied per request)
    GOOGLE_TASKLIST_ID: str = "@default"
    GOOGLE_CALENDAR_ID: str = "primary"

    # Microsoft Graph
    GRAPH_BASE_URL: str = "https://graph.microsoft.com/v1.0"
    GRAPH_TIMEOUT: float = 30.0
    GRAPH_TODO_LIST_NAME: str = "Tasks"

    # Calendar sync
    CALENDAR_TIMEZONE: str = "UTC"  # IANA name attached to synced events
    EVENT_DURATION_MINUTES: int = 60
    DEADLINE_FALLBACK_HOURS: int = 24

    # Intake
    MAX_MEDIA_BYTES: int = 25 * 1024 * 1024

    def has_llm_credentials(self) -> bool:
        """Return True when at least one oracle provider key is configured."""
        return bool(self.GEMINI_API_KEY or self.ANTHROPIC_API_KEY or self.OPENAI_API_KEY)


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
