"""
Integration tests for QuizBankAllocator against SQLite.

Tests cover:
- Create-then-reuse flow across students
- Difficulty window and candidate ordering
- Atomic bank creation (no active bank without its questions)
- Input validation and unknown objectives
- Pre-population and deactivation
- Serialized concurrent requests for one student
"""

import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from quizbank.db import create_db_engine, create_session_factory, init_db, session_scope
from quizbank.db.models import (
    GeneratedQuestion,
    LearningObjective,
    QuizBank,
    QuizBankQuestion,
    StudentQuizBankUsage,
    Unit,
)
from quizbank.errors import InvalidRequest, NotFound, PersistenceFailure
from quizbank.generation import SOURCE_TEMPLATE
from quizbank.quiz import SOURCE_CREATED, SOURCE_REUSED, QuizBankAllocator, UsageLedger


def bank_row(session_factory, bank_id):
    with session_scope(session_factory) as session:
        return session.get(QuizBank, bank_id)


def count_rows(session_factory, model):
    with session_scope(session_factory) as session:
        return session.execute(select(func.count()).select_from(model)).scalar_one()


class TestAllocationScenario:
    """The create / reuse / create sequence for one objective."""

    def test_create_reuse_create(self, allocator, objective_ids, session_factory, stub_generator):
        objective = objective_ids[0]

        first = allocator.allocate(1, 10, objective, 0.5, 5)
        assert first.source == SOURCE_CREATED
        assert len(first.questions) == 5
        assert bank_row(session_factory, first.bank_id).usage_count == 1

        second = allocator.allocate(2, 20, objective, 0.5, 5)
        assert second.source == SOURCE_REUSED
        assert second.reused is True
        assert second.bank_id == first.bank_id
        assert bank_row(session_factory, first.bank_id).usage_count == 2
        assert [q.question_id for q in second.questions] == [q.question_id for q in first.questions]

        third = allocator.allocate(1, 10, objective, 0.5, 5)
        assert third.source == SOURCE_CREATED
        assert third.bank_id != first.bank_id

        assert len(stub_generator.calls) == 2

    def test_questions_in_presentation_order(self, allocator, objective_ids):
        result = allocator.allocate(1, 1, objective_ids[0], 0.5, 4)

        assert [q.order_index for q in result.questions] == [1, 2, 3, 4]
        for question in result.questions:
            assert question.correct_option in "ABCD"
            assert question.options[question.correct_option].startswith("Correct answer")
            assert question.cognitive_level == "understand"

    def test_bank_size_follows_generator_output(self, session_factory, objective_ids, make_stub):
        allocator = QuizBankAllocator(session_factory, make_stub(produce=3))

        result = allocator.allocate(1, 1, objective_ids[0], 0.5, 10)

        assert len(result.questions) == 3
        assert bank_row(session_factory, result.bank_id).questions_count == 3

    def test_generation_source_is_recorded(self, session_factory, objective_ids, make_stub):
        allocator = QuizBankAllocator(session_factory, make_stub(source=SOURCE_TEMPLATE))

        result = allocator.allocate(1, 1, objective_ids[0], 0.5, 2)

        assert bank_row(session_factory, result.bank_id).generation_source == SOURCE_TEMPLATE

    def test_student_never_gets_same_bank_twice(self, allocator, objective_ids):
        seen = {allocator.allocate(1, 1, objective_ids[0], 0.5, 2).bank_id for _ in range(4)}
        assert len(seen) == 4

    def test_objectives_do_not_share_banks(self, allocator, objective_ids):
        first = allocator.allocate(1, 1, objective_ids[0], 0.5, 2)
        other = allocator.allocate(2, 1, objective_ids[1], 0.5, 2)

        assert other.source == SOURCE_CREATED
        assert other.bank_id != first.bank_id


class TestDifficultyWindow:
    """Tests for window matching and candidate ordering."""

    def test_bank_within_window_is_reused(self, allocator, objective_ids):
        bank = allocator.prepopulate(objective_ids[0], 0.5, 3)

        result = allocator.allocate(1, 1, objective_ids[0], 0.6, 3)

        assert result.source == SOURCE_REUSED
        assert result.bank_id == bank.bank_id

    def test_bank_outside_window_is_not_reused(self, allocator, objective_ids):
        bank = allocator.prepopulate(objective_ids[0], 0.5, 3)

        result = allocator.allocate(1, 1, objective_ids[0], 0.8, 3)

        assert result.source == SOURCE_CREATED
        assert result.bank_id != bank.bank_id

    def test_window_edges_are_inclusive(self, allocator, objective_ids):
        bank = allocator.prepopulate(objective_ids[0], 0.35, 3)

        result = allocator.allocate(1, 1, objective_ids[0], 0.5, 3)

        assert result.bank_id == bank.bank_id

    def test_window_is_clamped(self, allocator):
        assert allocator.window(0.05) == (0.0, 0.2)
        assert allocator.window(0.95) == (0.8, 1.0)
        assert allocator.window(0.6) == (0.45, 0.75)

    def test_least_used_bank_wins(self, allocator, objective_ids, session_factory):
        busy = allocator.prepopulate(objective_ids[0], 0.5, 2)
        quiet = allocator.prepopulate(objective_ids[0], 0.5, 2)
        with session_scope(session_factory) as session:
            session.get(QuizBank, busy.bank_id).usage_count = 5

        result = allocator.allocate(1, 1, objective_ids[0], 0.5, 2)

        assert result.bank_id == quiet.bank_id

    def test_oldest_bank_wins_on_equal_usage(self, allocator, objective_ids):
        older = allocator.prepopulate(objective_ids[0], 0.5, 2)
        allocator.prepopulate(objective_ids[0], 0.55, 2)

        result = allocator.allocate(1, 1, objective_ids[0], 0.5, 2)

        assert result.bank_id == older.bank_id

    def test_custom_window(self, session_factory, objective_ids, stub_generator):
        allocator = QuizBankAllocator(session_factory, stub_generator, difficulty_window=0.05)
        allocator.prepopulate(objective_ids[0], 0.5, 2)

        result = allocator.allocate(1, 1, objective_ids[0], 0.6, 2)

        assert result.source == SOURCE_CREATED


class TestAtomicCreation:
    """A failed write leaves nothing behind."""

    def test_failed_ledger_write_rolls_back_bank(self, session_factory, objective_ids, stub_generator):
        class FailingLedger(UsageLedger):
            def mark_assigned(self, student_id, bank_id, enrollment_id, session=None):
                raise OperationalError("INSERT INTO student_quiz_bank_usage", {}, Exception("disk I/O error"))

        allocator = QuizBankAllocator(
            session_factory, stub_generator, ledger=FailingLedger(session_factory)
        )

        with pytest.raises(PersistenceFailure) as exc_info:
            allocator.allocate(1, 1, objective_ids[0], 0.5, 3)

        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert count_rows(session_factory, QuizBank) == 0
        assert count_rows(session_factory, GeneratedQuestion) == 0
        assert count_rows(session_factory, QuizBankQuestion) == 0
        assert count_rows(session_factory, StudentQuizBankUsage) == 0

    def test_created_bank_is_active_with_all_links(self, allocator, objective_ids, session_factory):
        result = allocator.allocate(1, 1, objective_ids[0], 0.5, 3)

        bank = bank_row(session_factory, result.bank_id)
        assert bank.is_active is True
        assert count_rows(session_factory, QuizBankQuestion) == 3


class TestValidation:
    """Tests for rejected requests."""

    @pytest.mark.parametrize("difficulty", [-0.1, 1.5])
    def test_difficulty_out_of_range(self, allocator, objective_ids, difficulty):
        with pytest.raises(InvalidRequest):
            allocator.allocate(1, 1, objective_ids[0], difficulty, 5)

    def test_count_below_one(self, allocator, objective_ids):
        with pytest.raises(ValueError):
            allocator.allocate(1, 1, objective_ids[0], 0.5, 0)

    def test_count_above_maximum(self, session_factory, objective_ids, stub_generator):
        allocator = QuizBankAllocator(session_factory, stub_generator, max_question_count=10)
        with pytest.raises(InvalidRequest):
            allocator.allocate(1, 1, objective_ids[0], 0.5, 11)

    def test_unknown_objective(self, allocator, objective_ids, stub_generator):
        with pytest.raises(NotFound):
            allocator.allocate(1, 1, 9999, 0.5, 5)
        assert stub_generator.calls == []

    def test_invalid_window(self, session_factory, stub_generator):
        with pytest.raises(InvalidRequest):
            QuizBankAllocator(session_factory, stub_generator, difficulty_window=2.0)


class TestMaintenance:
    """Tests for prepopulate / deactivate / get_bank."""

    def test_prepopulated_bank_is_unassigned(self, allocator, objective_ids, ledger, session_factory):
        summary = allocator.prepopulate(objective_ids[0], 0.3, 4)

        assert summary.usage_count == 0
        assert summary.questions_count == 4
        assert summary.last_used is None
        assert summary.is_active is True
        assert count_rows(session_factory, StudentQuizBankUsage) == 0

    def test_first_assignment_of_prepopulated_bank_counts(self, allocator, objective_ids, session_factory):
        summary = allocator.prepopulate(objective_ids[0], 0.5, 2)

        allocator.allocate(1, 1, objective_ids[0], 0.5, 2)

        bank = bank_row(session_factory, summary.bank_id)
        assert bank.usage_count == 1
        assert bank.last_used is not None

    def test_prepopulate_unknown_objective(self, allocator, objective_ids):
        with pytest.raises(NotFound):
            allocator.prepopulate(9999, 0.5, 2)

    def test_deactivated_bank_is_not_allocated(self, allocator, objective_ids):
        summary = allocator.prepopulate(objective_ids[0], 0.5, 2)

        allocator.deactivate(summary.bank_id)
        result = allocator.allocate(1, 1, objective_ids[0], 0.5, 2)

        assert result.source == SOURCE_CREATED
        assert result.bank_id != summary.bank_id

    def test_deactivate_unknown_bank(self, allocator, objective_ids):
        with pytest.raises(NotFound):
            allocator.deactivate(424242)

    def test_get_bank(self, allocator, objective_ids):
        created = allocator.allocate(1, 1, objective_ids[0], 0.7, 3)

        summary, questions = allocator.get_bank(created.bank_id)

        assert summary.difficulty_level == 0.7
        assert [q.question_id for q in questions] == [q.question_id for q in created.questions]

    def test_seeded_shuffle_is_reproducible(self, session_factory, objective_ids, make_stub):
        first = QuizBankAllocator(session_factory, make_stub(), rng=random.Random(3))
        second = QuizBankAllocator(session_factory, make_stub(), rng=random.Random(3))

        a = first.allocate(1, 1, objective_ids[0], 0.5, 5)
        b = second.allocate(2, 1, objective_ids[1], 0.5, 5)

        assert [q.correct_option for q in a.questions] == [q.correct_option for q in b.questions]


class TestConcurrentRequests:
    """Requests for the same (student, objective) run one at a time."""

    @pytest.fixture
    def file_session_factory(self, tmp_path):
        engine = create_db_engine(f"sqlite:///{tmp_path / 'quizbank.sqlite'}")
        init_db(engine)
        yield create_session_factory(engine)
        engine.dispose()

    def test_same_student_requests_are_serialized(self, file_session_factory, make_stub):
        class SlowGenerator:
            def __init__(self):
                self.inner = make_stub()

            def generate(self, objective_text, difficulty, count):
                time.sleep(0.2)
                return self.inner.generate(objective_text, difficulty, count)

        with session_scope(file_session_factory) as session:
            unit = Unit(name="Introduction to Algebra")
            unit.objectives = [LearningObjective(objective_text="Understand variables and expressions")]
            session.add(unit)
            session.flush()
            objective = unit.objectives[0].id

        generator = SlowGenerator()
        allocator = QuizBankAllocator(file_session_factory, generator)
        existing = allocator.prepopulate(objective, 0.5, 3).bank_id

        start = threading.Barrier(2)

        def request():
            start.wait()
            return allocator.allocate(1, 1, objective, 0.5, 3)

        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [pool.submit(request) for _ in range(2)]
            results = [future.result(timeout=30) for future in futures]

        assert sorted(result.source for result in results) == [SOURCE_CREATED, SOURCE_REUSED]
        reused = next(result for result in results if result.reused)
        created = next(result for result in results if not result.reused)
        assert reused.bank_id == existing
        assert created.bank_id != existing
        assert len(generator.inner.calls) == 2  # prepopulate + one creation
        assert bank_row(file_session_factory, existing).usage_count == 1
        assert count_rows(file_session_factory, StudentQuizBankUsage) == 2
