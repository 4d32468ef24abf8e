from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List, Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import os


class Settings(BaseSettings):
    """Snapbook configuration, read from the environment and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_name: str = "Snapbook"
    app_version: str = "1.0.0"
    debug: bool = False
    allowed_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )

    # Database (async SQLAlchemy URL, e.g. postgresql+asyncpg://...)
    database_url: str
    database_echo: bool = False

    # Bearer tokens
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(default=60 * 12, gt=0)

    # Snap text classification
    enable_ai_parsing: bool = True
    llm_provider: Literal["ollama", "openai"] = "ollama"
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "qwen2.5:7b"
    openai_api_key: str = "not-needed"
    openai_api_base: Optional[str] = None  # any OpenAI-compatible endpoint
    openai_model: str = "gpt-4o-mini"
    classifier_temperature: float = Field(default=0.1, ge=0, le=2)
    classifier_max_tokens: int = Field(default=500, gt=0)
    classifier_timeout_seconds: float = Field(default=30.0, gt=0)

    # Card RAG rules
    rag_stale_after_days: int = Field(default=7, gt=0)
    rag_deviation_red_threshold: float = Field(default=30.0, gt=0)  # percent over estimate
    rag_hours_per_day: int = Field(default=8, gt=0)
    rag_consecutive_gap_limit: int = Field(default=2, gt=0)

    # Day boundaries and the auto-lock job
    timezone: str = "UTC"
    enable_scheduled_tasks: bool = True

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone '{value}'")
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()


# Global settings instance
settings = Settings()


# Environment-specific configurations
class DevelopmentConfig(Settings):
    debug: bool = True
    log_level: str = "DEBUG"


class ProductionConfig(Settings):
    debug: bool = False
    database_echo: bool = False
    log_level: str = "WARNING"


class TestingConfig(Settings):
    database_url: str = "sqlite+aiosqlite:///:memory:"
    secret_key: str = "test-secret-key"
    enable_ai_parsing: bool = False
    enable_scheduled_tasks: bool = False


def get_settings() -> Settings:
    """Pick the configuration class from ``ENVIRONMENT`` (development by default)."""
    env = os.getenv("ENVIRONMENT", "development").lower()

    if env == "production":
        return ProductionConfig()
    elif env == "testing":
        return TestingConfig()
    else:
        return DevelopmentConfig()
