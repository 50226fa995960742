"""
Question Generator with provider fallback.

Pipeline:
1. Try each configured model provider in order (OpenAI, then Gemini)
2. Skip providers without credentials (no network call is attempted)
3. On error, timeout or malformed output, move on to the next provider
4. When nothing succeeds, use the deterministic template generator

generate() never raises for provider problems; the result records which
path produced the questions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from quizbank.errors import GenerationFailure

from .providers import GeminiQuestionProvider, OpenAIQuestionProvider, QuestionProvider
from .schemas import RawQuestion
from .template_generator import TemplateQuestionGenerator

if TYPE_CHECKING:
    from config import Settings

SOURCE_AI = "ai"
SOURCE_TEMPLATE = "template"


@dataclass
class GenerationResult:
    """Questions produced for one request and the path that produced them."""

    questions: list[RawQuestion]
    source: str  # SOURCE_AI or SOURCE_TEMPLATE
    provider: str
    errors: list[str] = field(default_factory=list)

    @property
    def used_fallback(self) -> bool:
        return self.source == SOURCE_TEMPLATE


class QuestionGenerator:
    """Generates raw questions, falling back to templates on any provider failure."""

    def __init__(
        self,
        providers: list[QuestionProvider] | None = None,
        fallback: TemplateQuestionGenerator | None = None,
    ):
        self.providers = list(providers or [])
        self.fallback = fallback or TemplateQuestionGenerator()

    @classmethod
    def from_settings(cls, settings: Settings) -> QuestionGenerator:
        """Build the provider chain from application settings."""
        providers: list[QuestionProvider] = [
            OpenAIQuestionProvider(
                api_key=settings.openai_api_key,
                model=settings.openai_model,
                base_url=settings.openai_base_url,
                timeout_seconds=settings.generation_timeout_seconds,
                temperature=settings.generation_temperature,
                max_tokens=settings.generation_max_tokens,
            ),
            GeminiQuestionProvider(
                api_key=settings.gemini_api_key,
                model_name=settings.gemini_model,
                timeout_seconds=settings.generation_timeout_seconds,
                temperature=settings.generation_temperature,
                max_tokens=settings.generation_max_tokens,
            ),
        ]
        return cls(providers=providers)

    def generate(self, objective_text: str, difficulty: float, count: int) -> GenerationResult:
        """
        Generate up to `count` raw questions for an objective.

        Args:
            objective_text: Learning objective text
            difficulty: Difficulty level (0-1)
            count: Desired number of questions

        Returns:
            GenerationResult; questions may be fewer than requested
        """
        errors: list[str] = []

        for provider in self.providers:
            if not provider.is_configured:
                logger.debug("Skipping {} provider: no credential", provider.name)
                continue
            try:
                logger.info("Attempting question generation with {}...", provider.name)
                questions = provider.generate(objective_text, difficulty, count)
            except GenerationFailure as e:
                logger.warning("{} generation failed: {}", provider.name, e.reason)
                errors.append(str(e))
                continue
            except Exception as e:
                logger.warning("{} generation raised {}: {}", provider.name, type(e).__name__, e)
                errors.append(f"{provider.name}: {type(e).__name__}: {e}")
                continue

            questions = questions[:count]
            logger.info("Generated {} questions with {}", len(questions), provider.name)
            return GenerationResult(
                questions=questions,
                source=SOURCE_AI,
                provider=provider.name,
                errors=errors,
            )

        if errors:
            logger.warning("All AI providers failed, using template questions")
        else:
            logger.info("No AI provider configured, using template questions")

        questions = self.fallback.generate(objective_text, difficulty, count)
        return GenerationResult(
            questions=questions,
            source=SOURCE_TEMPLATE,
            provider=self.fallback.name,
            errors=errors,
        )
