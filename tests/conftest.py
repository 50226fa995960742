"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from quizbank.db import create_db_engine, create_session_factory, init_db, session_scope  # noqa: E402
from quizbank.db.models import LearningObjective, Unit  # noqa: E402
from quizbank.generation import SOURCE_AI, GenerationResult, RawQuestion  # noqa: E402
from quizbank.quiz import QuizBankAllocator, QuizBankStatsReporter, UsageLedger  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (require database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


# ========================================
# Generation Fixtures
# ========================================


def make_raw_question(index: int, topic: str = "variables") -> RawQuestion:
    """Build a valid raw question with four distinct options."""
    return RawQuestion(
        question=f"Question {index} about {topic}?",
        correct_answer=f"Correct answer {index}",
        distractors=[f"Wrong answer {index}a", f"Wrong answer {index}b", f"Wrong answer {index}c"],
        explanation=f"Explanation {index}",
    )


class StubGenerator:
    """Question generator double that records every request."""

    def __init__(self, produce: int | None = None, source: str = SOURCE_AI):
        self.produce = produce
        self.source = source
        self.calls: list[tuple[str, float, int]] = []

    def generate(self, objective_text: str, difficulty: float, count: int) -> GenerationResult:
        self.calls.append((objective_text, difficulty, count))
        produced = count if self.produce is None else self.produce
        return GenerationResult(
            questions=[make_raw_question(i + 1) for i in range(produced)],
            source=self.source,
            provider="stub",
        )


@pytest.fixture
def raw_question():
    """Provide a sample raw question for testing."""
    return RawQuestion(
        question="What is a variable?",
        correct_answer="A symbol that stands for a value",
        distractors=["A fixed number", "An operation", "An equals sign"],
        explanation="Variables represent unknown or changing values.",
    )


@pytest.fixture
def make_question():
    return make_raw_question


@pytest.fixture
def make_stub():
    return StubGenerator


@pytest.fixture
def stub_generator():
    return StubGenerator()


# ========================================
# Database Fixtures
# ========================================


@pytest.fixture
def engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_db_engine("sqlite:///:memory:")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def objective_ids(session_factory):
    """Seed one unit with two objectives and return their ids."""
    with session_scope(session_factory) as session:
        unit = Unit(name="Introduction to Algebra", description="Algebra basics")
        unit.objectives = [
            LearningObjective(objective_text="Understand variables and expressions"),
            LearningObjective(objective_text="Solve linear equations with one variable"),
        ]
        session.add(unit)
        session.flush()
        return [objective.id for objective in unit.objectives]


@pytest.fixture
def ledger(session_factory):
    return UsageLedger(session_factory)


@pytest.fixture
def allocator(session_factory, stub_generator, ledger):
    return QuizBankAllocator(
        session_factory,
        stub_generator,
        ledger=ledger,
        rng=random.Random(7),
    )


@pytest.fixture
def reporter(session_factory):
    return QuizBankStatsReporter(session_factory)
