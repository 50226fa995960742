"""
Raw question schema and provider-output parsing.

Providers are asked for a JSON array of objects:

    [
      {
        "question": "...",
        "correct_answer": "...",
        "distractors": ["...", "...", "..."],
        "explanation": "..."
      }
    ]

Anything that does not fit this shape raises MalformedGeneratorOutput so the
generator can move on to the next provider.
"""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from quizbank.errors import MalformedGeneratorOutput

DISTRACTOR_COUNT = 3

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


class RawQuestion(BaseModel):
    """One generated question before option shuffling."""

    question: str = Field(min_length=1)
    correct_answer: str = Field(min_length=1)
    distractors: list[str] = Field(min_length=DISTRACTOR_COUNT, max_length=DISTRACTOR_COUNT)
    explanation: str = ""

    @field_validator("question", "correct_answer", "explanation", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("distractors", mode="before")
    @classmethod
    def _coerce_distractors(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(v).strip() if isinstance(v, (str, int, float)) else v for v in value]
        return value

    @model_validator(mode="after")
    def _options_distinct(self) -> RawQuestion:
        options = [self.correct_answer, *self.distractors]
        normalized = {o.strip().casefold() for o in options}
        if any(not o.strip() for o in options):
            raise ValueError("options must be non-empty")
        if len(normalized) != len(options):
            raise ValueError("options must be distinct")
        return self

    @property
    def options(self) -> list[str]:
        """Correct answer followed by the distractors (unshuffled)."""
        return [self.correct_answer, *self.distractors]


def _extract_json(text: str) -> str:
    """Pull the JSON payload out of a model response."""
    fenced = _CODE_FENCE.search(text)
    if fenced:
        return fenced.group(1).strip()
    array = _JSON_ARRAY.search(text)
    if array:
        return array.group(0)
    return text.strip()


def parse_raw_questions(payload: str | list | dict, provider: str) -> list[RawQuestion]:
    """
    Parse provider output into validated raw questions.

    Args:
        payload: Response text, or an already-decoded JSON value
        provider: Provider name for error reporting

    Returns:
        List of RawQuestion (may be shorter than requested)

    Raises:
        MalformedGeneratorOutput: If the payload is not a list of valid questions
    """
    data: Any = payload
    if isinstance(payload, str):
        if not payload.strip():
            raise MalformedGeneratorOutput(provider, "empty response")
        try:
            data = json.loads(_extract_json(payload))
        except json.JSONDecodeError as e:
            raise MalformedGeneratorOutput(provider, f"invalid JSON: {e}") from e

    # Some models wrap the array: {"questions": [...]}
    if isinstance(data, dict):
        data = data.get("questions", data)
    if not isinstance(data, list):
        raise MalformedGeneratorOutput(provider, "expected a JSON array of questions")
    if not data:
        raise MalformedGeneratorOutput(provider, "no questions returned")

    questions: list[RawQuestion] = []
    for index, item in enumerate(data):
        try:
            questions.append(RawQuestion.model_validate(item))
        except ValidationError as e:
            raise MalformedGeneratorOutput(
                provider, f"question {index + 1} has the wrong shape: {e.errors()[0]['msg']}"
            ) from e
    return questions
