"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.
"""

from typing import Optional
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Claude API (optional - generation steps fall back to defaults without it)
    ANTHROPIC_API_KEY: Optional[str] = None
    CLAUDE_MODEL: str = "claude-sonnet-4-20250514"

    # Perplexity (optional - domain info falls back to a generic description)
    PERPLEXITY_API_KEY: Optional[str] = None
    PERPLEXITY_MODEL: str = "sonar"

    # Application Settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Pipeline shape
    CATEGORY_COUNT: int = 4
    MAX_COMPETITORS: int = 5
    PROMPTS_PER_CATEGORY: int = 5
    KEYWORDS_PER_CATEGORY: int = 10
    HISTORY_LIMIT: int = 50

    # AI response collection
    PROMPT_BATCH_SIZE: int = 5
    PROMPT_BATCH_DELAY: float = 1.0
    RESPONSE_MAX_TOKENS: int = 600

    # Timeouts (seconds)
    API_TIMEOUT: int = 60
    COMPLETE_TIMEOUT: int = 600

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()
