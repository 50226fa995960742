"""
Quiz Bank Allocator: reuse a bank or generate a new one.

Flow for allocate():
1. Look for an active bank of the objective whose difficulty lies within
   [difficulty - window, difficulty + window] that the student has never
   been given. Least-used banks win, then the oldest.
2. Hit: record the assignment in the usage ledger, bump usage_count and
   return the stored questions.
3. Miss: ask the question generator (outside any transaction), then persist
   the bank, its questions and the ledger row in a single transaction.

Duplicate banks created by racing requests from different students are
accepted; each is a valid bank and becomes reusable for everyone else.
Requests for the same (student, objective) are serialized by the allocator's
lock registry, so callers share one allocator (or one KeyedLocks) per process.
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from quizbank.db import session_scope
from quizbank.errors import InvalidRequest, PersistenceFailure
from quizbank.generation import QuestionGenerator

from .bank_store import BankSummary, QuizBankStore, QuizQuestionView, difficulty_window
from .locks import KeyedLocks
from .question_builder import prepare_questions
from .usage_ledger import UsageLedger

SOURCE_REUSED = "reused"
SOURCE_CREATED = "created"

DEFAULT_DIFFICULTY_WINDOW = 0.15


@dataclass
class AllocationResult:
    """Outcome of one allocate() call."""

    bank_id: int
    questions: list[QuizQuestionView] = field(default_factory=list)
    source: str = SOURCE_CREATED  # SOURCE_REUSED or SOURCE_CREATED

    @property
    def reused(self) -> bool:
        return self.source == SOURCE_REUSED


class QuizBankAllocator:
    """
    Allocates quiz banks to students.

    Collaborators are injected; the allocator owns no engine and no global
    state besides its lock registry.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        generator: QuestionGenerator,
        ledger: UsageLedger | None = None,
        locks: KeyedLocks | None = None,
        difficulty_window: float = DEFAULT_DIFFICULTY_WINDOW,
        max_question_count: int | None = None,
        rng: random.Random | None = None,
    ):
        if not 0.0 <= difficulty_window <= 1.0:
            raise InvalidRequest(f"difficulty_window must be within [0, 1], got {difficulty_window}")
        self.session_factory = session_factory
        self.generator = generator
        self.ledger = ledger or UsageLedger(session_factory)
        self.locks = locks or KeyedLocks()
        self.difficulty_window = difficulty_window
        self.max_question_count = max_question_count
        self.rng = rng or random.Random()

    def window(self, difficulty: float) -> tuple[float, float]:
        """Acceptance window for a requested difficulty."""
        return difficulty_window(difficulty, self.difficulty_window)

    # ========================================
    # Allocation
    # ========================================

    def allocate(
        self,
        student_id: int,
        enrollment_id: int,
        objective_id: int,
        difficulty: float,
        desired_count: int,
    ) -> AllocationResult:
        """
        Get a quiz bank for a student, reusing one when possible.

        Args:
            student_id: Student requesting the quiz
            enrollment_id: Enrollment the quiz belongs to
            objective_id: Learning objective to quiz on
            difficulty: Target difficulty (0-1)
            desired_count: Number of questions wanted for a new bank

        Returns:
            AllocationResult with the bank id, ordered questions and source

        Raises:
            InvalidRequest: difficulty outside [0, 1] or desired_count < 1
            NotFound: unknown objective
            PersistenceFailure: storage failed; nothing was committed
        """
        self._validate(difficulty, desired_count)
        window = self.window(difficulty)

        with self.locks.hold((student_id, objective_id)):
            reused = self._try_reuse(student_id, enrollment_id, objective_id, window)
            if reused is not None:
                return reused

            objective_text = self._run(
                "objective lookup",
                lambda session: QuizBankStore(session).get_objective_text(objective_id),
            )
            return self._create(
                student_id, enrollment_id, objective_id, objective_text, difficulty, desired_count
            )

    def _try_reuse(
        self,
        student_id: int,
        enrollment_id: int,
        objective_id: int,
        window: tuple[float, float],
    ) -> AllocationResult | None:
        def reuse(session: Session) -> AllocationResult | None:
            store = QuizBankStore(session)
            bank = store.find_available_bank(student_id, objective_id, window)
            if bank is None:
                return None

            if self.ledger.mark_assigned(student_id, bank.id, enrollment_id, session=session):
                store.record_usage(bank.id)
            return AllocationResult(
                bank_id=bank.id,
                questions=store.get_bank_questions(bank.id),
                source=SOURCE_REUSED,
            )

        result = self._run("bank reuse", reuse)
        if result is not None:
            logger.info(
                "Reusing quiz bank {} for student {} (objective {}, window {:.2f}-{:.2f})",
                result.bank_id,
                student_id,
                objective_id,
                *window,
            )
        return result

    def _create(
        self,
        student_id: int,
        enrollment_id: int,
        objective_id: int,
        objective_text: str,
        difficulty: float,
        desired_count: int,
    ) -> AllocationResult:
        logger.info(
            "No reusable bank for student {} (objective {}, difficulty {:.2f}); generating",
            student_id,
            objective_id,
            difficulty,
        )
        generated = self.generator.generate(objective_text, difficulty, desired_count)
        prepared = prepare_questions(generated.questions[:desired_count], difficulty, objective_text, self.rng)

        def write(session: Session) -> AllocationResult:
            store = QuizBankStore(session)
            bank = store.create_bank(
                objective_id=objective_id,
                difficulty=difficulty,
                questions=prepared,
                generation_source=generated.source,
                usage_count=1,
            )
            self.ledger.mark_assigned(student_id, bank.id, enrollment_id, session=session)
            return AllocationResult(
                bank_id=bank.id,
                questions=store.get_bank_questions(bank.id),
                source=SOURCE_CREATED,
            )

        result = self._run("bank creation", write)
        logger.info(
            "Created quiz bank {} with {} questions ({}) for student {}",
            result.bank_id,
            len(result.questions),
            generated.source,
            student_id,
        )
        return result

    # ========================================
    # Maintenance
    # ========================================

    def prepopulate(self, objective_id: int, difficulty: float, count: int) -> BankSummary:
        """
        Create a bank nobody has been assigned yet.

        The bank starts with usage_count 0 and no ledger rows, so it is
        immediately allocatable to every student.
        """
        self._validate(difficulty, count)
        objective_text = self._run(
            "objective lookup",
            lambda session: QuizBankStore(session).get_objective_text(objective_id),
        )
        generated = self.generator.generate(objective_text, difficulty, count)
        prepared = prepare_questions(generated.questions[:count], difficulty, objective_text, self.rng)

        summary = self._run(
            "bank pre-population",
            lambda session: BankSummary.from_model(
                QuizBankStore(session).create_bank(
                    objective_id=objective_id,
                    difficulty=difficulty,
                    questions=prepared,
                    generation_source=generated.source,
                    usage_count=0,
                )
            ),
        )
        logger.info(
            "Pre-populated quiz bank {} for objective {} at difficulty {:.2f} ({} questions)",
            summary.bank_id,
            objective_id,
            difficulty,
            summary.questions_count,
        )
        return summary

    def deactivate(self, bank_id: int) -> BankSummary:
        """Soft-delete a bank; existing ledger rows are kept."""
        summary = self._run(
            "bank deactivation",
            lambda session: BankSummary.from_model(QuizBankStore(session).deactivate(bank_id)),
        )
        logger.info("Deactivated quiz bank {}", bank_id)
        return summary

    def get_bank(self, bank_id: int) -> tuple[BankSummary, list[QuizQuestionView]]:
        """Get a bank and its questions in presentation order."""

        def read(session: Session) -> tuple[BankSummary, list[QuizQuestionView]]:
            store = QuizBankStore(session)
            return BankSummary.from_model(store.get_bank(bank_id)), store.get_bank_questions(bank_id)

        return self._run("bank lookup", read)

    # ========================================
    # Helpers
    # ========================================

    def _validate(self, difficulty: float, count: int) -> None:
        if not 0.0 <= difficulty <= 1.0:
            raise InvalidRequest(f"difficulty must be within [0, 1], got {difficulty}")
        if count < 1:
            raise InvalidRequest(f"question count must be at least 1, got {count}")
        if self.max_question_count is not None and count > self.max_question_count:
            raise InvalidRequest(
                f"question count must be at most {self.max_question_count}, got {count}"
            )

    def _run(self, operation: str, work):
        """Run `work(session)` in one transaction, mapping storage errors."""
        try:
            with session_scope(self.session_factory) as session:
                return work(session)
        except SQLAlchemyError as e:
            logger.error("Quiz bank {} failed: {}", operation, e)
            raise PersistenceFailure(f"Quiz bank {operation} failed: {e}") from e
