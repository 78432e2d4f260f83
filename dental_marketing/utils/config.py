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

    # Model provider: "openrouter" (Gemini via OpenRouter) or "anthropic"
    AI_PROVIDER: str = "openrouter"

    # OpenRouter
    OPENROUTER_API_KEY: Optional[str] = None
    OPENROUTER_MODEL: str = "google/gemini-2.0-flash-001"

    # Claude API (alternative provider)
    ANTHROPIC_API_KEY: Optional[str] = None
    CLAUDE_MODEL: str = "claude-sonnet-4-20250514"

    # Sampling
    AI_TEMPERATURE: float = 0.7
    AI_MAX_TOKENS: int = 4096

    # Seconds before the analysis run gives up on the model
    AI_TIMEOUT: float = 60.0

    # Sent as HTTP-Referer to OpenRouter
    APP_URL: str = "http://localhost:3000"

    # Database (DATABASE_URL wins over SQLITE_PATH)
    DATABASE_URL: Optional[str] = None
    SQLITE_PATH: str = "./data/dental_marketing.db"

    # Application Settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()
