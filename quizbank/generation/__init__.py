"""
Question generation for quiz banks.

This module provides:
- QuestionGenerator: provider chain with deterministic template fallback
- OpenAIQuestionProvider / GeminiQuestionProvider: hosted model providers
- TemplateQuestionGenerator: offline question templates
- RawQuestion: validated generator output (question, answer, 3 distractors, explanation)
"""

from .providers import GeminiQuestionProvider, OpenAIQuestionProvider, QuestionProvider
from .question_generator import (
    SOURCE_AI,
    SOURCE_TEMPLATE,
    GenerationResult,
    QuestionGenerator,
)
from .schemas import RawQuestion, parse_raw_questions
from .template_generator import TemplateQuestionGenerator

__all__ = [
    "SOURCE_AI",
    "SOURCE_TEMPLATE",
    "GenerationResult",
    "GeminiQuestionProvider",
    "OpenAIQuestionProvider",
    "QuestionGenerator",
    "QuestionProvider",
    "RawQuestion",
    "TemplateQuestionGenerator",
    "parse_raw_questions",
]
