"""
Quiz Bank Store: persistence of banks, their questions and ordering.

Bound to one SQLAlchemy session; callers own the transaction.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, select, update
from sqlalchemy.orm import Session

from quizbank.db.models import (
    GeneratedQuestion,
    LearningObjective,
    QuizBank,
    QuizBankQuestion,
    StudentQuizBankUsage,
)
from quizbank.db.models.base import utcnow
from quizbank.errors import NotFound

from .question_builder import PreparedQuestion


@dataclass
class QuizQuestionView:
    """A stored question in bank presentation order."""

    question_id: int
    order_index: int
    question_text: str
    options: dict[str, str]
    correct_option: str
    explanation: str
    difficulty_level: float
    cognitive_level: str


@dataclass
class BankSummary:
    """Row-level view of a bank, detached from the session."""

    bank_id: int
    objective_id: int
    difficulty_level: float
    questions_count: int
    generation_source: str
    usage_count: int
    created_at: datetime
    last_used: datetime | None
    is_active: bool

    @classmethod
    def from_model(cls, bank: QuizBank) -> BankSummary:
        return cls(
            bank_id=bank.id,
            objective_id=bank.objective_id,
            difficulty_level=bank.difficulty_level,
            questions_count=bank.questions_count,
            generation_source=bank.generation_source,
            usage_count=bank.usage_count,
            created_at=bank.created_at,
            last_used=bank.last_used,
            is_active=bank.is_active,
        )


def difficulty_window(difficulty: float, epsilon: float) -> tuple[float, float]:
    """Acceptance window around a difficulty, clamped to [0, 1]."""
    low = round(max(0.0, difficulty - epsilon), 6)
    high = round(min(1.0, difficulty + epsilon), 6)
    return low, high


class QuizBankStore:
    """
    Repository for quiz banks.

    Handles:
    - Objective text lookup
    - Candidate search for reuse
    - Atomic bank creation with ordered questions
    - Usage counters and soft deletion
    """

    def __init__(self, session: Session):
        self.session = session

    # ========================================
    # Objectives
    # ========================================

    def get_objective_text(self, objective_id: int) -> str:
        """Get objective text by ID."""
        text = self.session.execute(
            select(LearningObjective.objective_text).where(LearningObjective.id == objective_id)
        ).scalar_one_or_none()
        if text is None:
            raise NotFound("Objective", objective_id)
        return text

    # ========================================
    # Bank Lookup
    # ========================================

    def get_bank(self, bank_id: int) -> QuizBank:
        bank = self.session.get(QuizBank, bank_id)
        if bank is None:
            raise NotFound("Quiz bank", bank_id)
        return bank

    def find_available_bank(
        self,
        student_id: int,
        objective_id: int,
        window: tuple[float, float],
    ) -> QuizBank | None:
        """
        Find the best active bank the student has not been assigned yet.

        Candidates are ordered least-used first, then oldest first.

        Args:
            student_id: Student requesting a quiz
            objective_id: Learning objective
            window: Inclusive (min, max) difficulty range

        Returns:
            Best matching QuizBank, or None
        """
        min_diff, max_diff = window
        used_by_student = select(StudentQuizBankUsage.quiz_bank_id).where(
            StudentQuizBankUsage.student_id == student_id
        )
        query = (
            select(QuizBank)
            .where(
                and_(
                    QuizBank.objective_id == objective_id,
                    QuizBank.is_active.is_(True),
                    QuizBank.difficulty_level >= min_diff,
                    QuizBank.difficulty_level <= max_diff,
                    QuizBank.id.notin_(used_by_student),
                )
            )
            .order_by(QuizBank.usage_count.asc(), QuizBank.created_at.asc(), QuizBank.id.asc())
            .limit(1)
        )
        return self.session.execute(query).scalar_one_or_none()

    def get_bank_questions(self, bank_id: int) -> list[QuizQuestionView]:
        """Get the questions of a bank in presentation order."""
        rows = self.session.execute(
            select(GeneratedQuestion, QuizBankQuestion.order_index)
            .join(QuizBankQuestion, QuizBankQuestion.question_id == GeneratedQuestion.id)
            .where(QuizBankQuestion.quiz_bank_id == bank_id)
            .order_by(QuizBankQuestion.order_index)
        ).all()
        return [
            QuizQuestionView(
                question_id=question.id,
                order_index=order_index,
                question_text=question.question_text,
                options=question.options,
                correct_option=question.correct_option,
                explanation=question.explanation,
                difficulty_level=question.difficulty_level,
                cognitive_level=question.cognitive_level,
            )
            for question, order_index in rows
        ]

    # ========================================
    # Bank Creation
    # ========================================

    def create_bank(
        self,
        objective_id: int,
        difficulty: float,
        questions: list[PreparedQuestion],
        generation_source: str,
        usage_count: int = 0,
    ) -> QuizBank:
        """
        Persist a bank with its questions and ordering.

        The bank row is written inactive and only activated once every
        question and link row has been flushed, so a failure part-way never
        exposes an allocatable bank without questions.

        Args:
            objective_id: Learning objective the questions target
            difficulty: Difficulty the questions were generated for
            questions: Shuffled questions in presentation order
            generation_source: 'ai' or 'template'
            usage_count: Initial usage (1 when created for a student, 0 when pre-populated)

        Returns:
            The created, active QuizBank
        """
        now = utcnow()
        bank = QuizBank(
            objective_id=objective_id,
            difficulty_level=difficulty,
            questions_count=len(questions),
            generation_source=generation_source,
            usage_count=usage_count,
            created_at=now,
            last_used=now if usage_count else None,
            is_active=False,
        )
        self.session.add(bank)
        self.session.flush()

        for order_index, prepared in enumerate(questions, start=1):
            option_a, option_b, option_c, option_d = prepared.options
            question = GeneratedQuestion(
                objective_id=objective_id,
                question_text=prepared.question_text,
                option_a=option_a,
                option_b=option_b,
                option_c=option_c,
                option_d=option_d,
                correct_option=prepared.correct_option,
                explanation=prepared.explanation,
                difficulty_level=prepared.difficulty_level,
                cognitive_level=prepared.cognitive_level,
                concept_focus=prepared.concept_focus,
            )
            self.session.add(question)
            self.session.flush()
            self.session.add(
                QuizBankQuestion(
                    quiz_bank_id=bank.id,
                    question_id=question.id,
                    order_index=order_index,
                )
            )

        self.session.flush()
        bank.is_active = True
        self.session.flush()
        return bank

    # ========================================
    # Usage and Lifecycle
    # ========================================

    def record_usage(self, bank_id: int) -> None:
        """Increment usage_count and stamp last_used."""
        self.session.execute(
            update(QuizBank)
            .where(QuizBank.id == bank_id)
            .values(usage_count=QuizBank.usage_count + 1, last_used=utcnow())
        )

    def deactivate(self, bank_id: int) -> QuizBank:
        """Soft-delete a bank so it is never allocated again."""
        bank = self.get_bank(bank_id)
        bank.is_active = False
        self.session.flush()
        return bank
