"""
Configuration settings for the quiz bank service.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///./data/quizbank.sqlite",
        description="SQLAlchemy connection string (SQLite or PostgreSQL)",
    )

    # ========================================
    # AI Integration (question generation)
    # ========================================
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key for chat-completions question generation",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model used for question generation",
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of the OpenAI-compatible API",
    )
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("gemini_api_key", "google_api_key"),
        description="Google Generative AI (Gemini) API key",
    )
    gemini_model: str = Field(
        default="gemini-2.0-flash",
        description="Gemini model used for question generation",
    )
    generation_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Upper bound for a single provider call before falling back",
    )
    generation_temperature: float = Field(
        default=0.7,
        description="Sampling temperature for question generation",
    )
    generation_max_tokens: int = Field(
        default=2000,
        description="Maximum output tokens per generation request",
    )

    # ========================================
    # Quiz Bank Allocation
    # ========================================
    quiz_difficulty_window: float = Field(
        default=0.15,
        ge=0.0,
        le=1.0,
        description="Half-width of the difficulty acceptance window for bank reuse",
    )
    quiz_default_question_count: int = Field(
        default=5,
        ge=1,
        description="Questions per bank when the caller does not specify a count",
    )
    quiz_max_question_count: int = Field(
        default=20,
        ge=1,
        description="Largest bank the allocator will ask the generator for",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default="logs/quizbank.log",
        description="Log file path (None for stderr only)",
    )

    def has_ai_configured(self) -> bool:
        """Check if at least one generation provider has a credential."""
        return bool(self.openai_api_key or self.gemini_api_key)

    def get_quiz_config(self) -> dict[str, float | int]:
        """Get quiz bank allocation configuration as a dictionary."""
        return {
            "difficulty_window": self.quiz_difficulty_window,
            "default_question_count": self.quiz_default_question_count,
            "max_question_count": self.quiz_max_question_count,
            "generation_timeout_seconds": self.generation_timeout_seconds,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
