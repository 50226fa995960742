"""
Mastery arithmetic used when a quiz is requested and when it is finished.

- Adaptive difficulty: aim slightly above the student's current mastery
- Mastery change: weighted blend of score gap, confidence and difficulty
- Improvement message: feedback text bucketed by the mastery change
"""

from __future__ import annotations

from collections.abc import Sequence

# Adaptive difficulty
DIFFICULTY_OFFSET = 0.2
MIN_DIFFICULTY = 0.1
MAX_DIFFICULTY = 0.9

# Mastery change weights
SCORE_WEIGHT = 0.3
CONFIDENCE_WEIGHT = 0.05
DIFFICULTY_WEIGHT = 0.1
NEUTRAL_CONFIDENCE = 3  # 1-5 self-reported scale
MAX_MASTERY_CHANGE = 0.3


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def adaptive_difficulty(current_mastery: float) -> float:
    """Difficulty for the next quiz: slightly above current mastery."""
    return _clamp(current_mastery + DIFFICULTY_OFFSET, MIN_DIFFICULTY, MAX_DIFFICULTY)


def score_percentage(correct: int, total: int) -> float:
    """Percentage of correct answers (0 for an empty quiz)."""
    if total <= 0:
        return 0.0
    return correct / total * 100


def mastery_change(
    current_mastery: float,
    quiz_score: float,
    confidences: Sequence[int | None] = (),
    difficulties: Sequence[float] = (),
) -> float:
    """
    Mastery delta earned by a finished quiz.

    Args:
        current_mastery: Mastery before the quiz (0-1)
        quiz_score: Fraction of correct answers (0-1)
        confidences: Self-reported confidence per response (1-5, None means neutral)
        difficulties: Difficulty of each answered question (0-1)

    Returns:
        Change in mastery, clamped to [-0.3, 0.3]
    """
    base = (quiz_score - current_mastery) * SCORE_WEIGHT

    if confidences:
        levels = [NEUTRAL_CONFIDENCE if c is None else c for c in confidences]
        avg_confidence = sum(levels) / len(levels)
    else:
        avg_confidence = NEUTRAL_CONFIDENCE
    confidence_bonus = (avg_confidence - NEUTRAL_CONFIDENCE) * CONFIDENCE_WEIGHT

    avg_difficulty = sum(difficulties) / len(difficulties) if difficulties else 0.0
    difficulty_bonus = avg_difficulty * DIFFICULTY_WEIGHT

    return _clamp(base + confidence_bonus + difficulty_bonus, -MAX_MASTERY_CHANGE, MAX_MASTERY_CHANGE)


def apply_mastery_change(current_mastery: float, change: float) -> float:
    """New mastery after a quiz, kept within [0, 1]."""
    return _clamp(current_mastery + change, 0.0, 1.0)


def improvement_message(change: float) -> str:
    if change > 0.1:
        return "Excellent progress! Your understanding has improved significantly."
    if change > 0.05:
        return "Good work! You're making steady progress."
    if change > 0:
        return "Nice job! Small improvements add up over time."
    if change > -0.05:
        return "Keep practicing! Every attempt helps you learn."
    return "Don't worry! This topic needs more study time. Try reviewing the material again."
