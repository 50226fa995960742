"""
Tests for option shuffling and question metadata.

Tests cover:
- Correct answer tracking through the shuffle
- Slot fairness of the shuffle
- Cognitive level boundaries
- Concept focus truncation
"""

import random
from collections import Counter

import pytest

from quizbank.quiz.question_builder import (
    CONCEPT_FOCUS_LENGTH,
    build_question,
    cognitive_level,
    prepare_questions,
    shuffle_options,
)


class TestShuffleOptions:
    """Tests for shuffle_options."""

    def test_correct_letter_points_at_correct_answer(self):
        rng = random.Random(1)
        for _ in range(50):
            options, letter = shuffle_options("right", ["w1", "w2", "w3"], rng)
            assert options["ABCD".index(letter)] == "right"

    def test_keeps_every_option(self):
        options, _ = shuffle_options("right", ["w1", "w2", "w3"], random.Random(3))
        assert sorted(options) == ["right", "w1", "w2", "w3"]

    def test_correct_answer_lands_in_each_slot_evenly(self):
        rng = random.Random(42)
        counts = Counter(shuffle_options("right", ["w1", "w2", "w3"], rng)[1] for _ in range(1000))

        assert set(counts) == {"A", "B", "C", "D"}
        for letter in "ABCD":
            assert 190 <= counts[letter] <= 310, counts

    def test_rejects_wrong_number_of_distractors(self):
        with pytest.raises(ValueError):
            shuffle_options("right", ["w1", "w2"])

    def test_same_seed_same_order(self):
        first = shuffle_options("right", ["w1", "w2", "w3"], random.Random(9))
        second = shuffle_options("right", ["w1", "w2", "w3"], random.Random(9))
        assert first == second


class TestCognitiveLevel:
    """Tests for difficulty to Bloom level mapping."""

    @pytest.mark.parametrize(
        "difficulty,expected",
        [
            (0.0, "remember"),
            (0.39, "remember"),
            (0.4, "understand"),
            (0.69, "understand"),
            (0.7, "apply"),
            (1.0, "apply"),
        ],
    )
    def test_boundaries(self, difficulty, expected):
        assert cognitive_level(difficulty) == expected


class TestBuildQuestion:
    """Tests for build_question / prepare_questions."""

    def test_preserves_content(self, raw_question):
        prepared = build_question(raw_question, 0.5, "Understand variables", random.Random(5))

        assert prepared.question_text == raw_question.question
        assert prepared.correct_answer == raw_question.correct_answer
        assert sorted(prepared.options) == sorted(raw_question.options)
        assert prepared.explanation == raw_question.explanation
        assert prepared.difficulty_level == 0.5
        assert prepared.cognitive_level == "understand"

    def test_concept_focus_is_truncated(self, raw_question):
        objective = "x" * 250
        prepared = build_question(raw_question, 0.2, objective)
        assert prepared.concept_focus == "x" * CONCEPT_FOCUS_LENGTH

    def test_prepare_questions_keeps_order(self, make_question):
        raws = [make_question(i) for i in range(1, 4)]
        prepared = prepare_questions(raws, 0.8, "Objective", random.Random(11))

        assert [p.question_text for p in prepared] == [r.question for r in raws]
        assert all(p.cognitive_level == "apply" for p in prepared)
