"""
Post-processing of generated questions before they are stored.

Each raw question carries its correct answer and three distractors. The four
options are shuffled with an unbiased permutation (random.shuffle is a
Fisher-Yates shuffle) and the slot that ends up holding the correct answer is
recorded as A-D.
"""

from __future__ import annotations

import random
from dataclasses import dataclass

from quizbank.db.models import OPTION_LETTERS
from quizbank.generation import RawQuestion

CONCEPT_FOCUS_LENGTH = 100


def cognitive_level(difficulty: float) -> str:
    """Derive the Bloom level targeted at a difficulty."""
    if difficulty < 0.4:
        return "remember"
    if difficulty < 0.7:
        return "understand"
    return "apply"


@dataclass
class PreparedQuestion:
    """A question with shuffled options, ready to persist."""

    question_text: str
    options: list[str]  # presentation order, index 0 == 'A'
    correct_option: str
    explanation: str
    difficulty_level: float
    cognitive_level: str
    concept_focus: str

    @property
    def correct_answer(self) -> str:
        return self.options[OPTION_LETTERS.index(self.correct_option)]


def shuffle_options(
    correct_answer: str,
    distractors: list[str],
    rng: random.Random | None = None,
) -> tuple[list[str], str]:
    """
    Shuffle the correct answer in among its distractors.

    Returns:
        Tuple of (options in presentation order, letter of the correct slot)
    """
    rng = rng or random.Random()
    options = [correct_answer, *distractors]
    if len(options) != len(OPTION_LETTERS):
        raise ValueError(f"Expected {len(OPTION_LETTERS)} options, got {len(options)}")

    order = list(range(len(options)))
    rng.shuffle(order)
    shuffled = [options[i] for i in order]
    return shuffled, OPTION_LETTERS[order.index(0)]


def build_question(
    raw: RawQuestion,
    difficulty: float,
    objective_text: str,
    rng: random.Random | None = None,
) -> PreparedQuestion:
    """Shuffle one raw question and attach its derived metadata."""
    options, correct = shuffle_options(raw.correct_answer, raw.distractors, rng)
    return PreparedQuestion(
        question_text=raw.question,
        options=options,
        correct_option=correct,
        explanation=raw.explanation,
        difficulty_level=difficulty,
        cognitive_level=cognitive_level(difficulty),
        concept_focus=objective_text[:CONCEPT_FOCUS_LENGTH],
    )


def prepare_questions(
    raws: list[RawQuestion],
    difficulty: float,
    objective_text: str,
    rng: random.Random | None = None,
) -> list[PreparedQuestion]:
    """Shuffle every raw question of a generation result."""
    rng = rng or random.Random()
    return [build_question(raw, difficulty, objective_text, rng) for raw in raws]
