"""
Quiz bank models.

Implements:
- QuizBank: a reusable, generated question set for one objective/difficulty pairing
- GeneratedQuestion: a four-option multiple-choice item
- QuizBankQuestion: ordered link between a bank and its questions
- StudentQuizBankUsage: the usage ledger (which student got which bank, and how it went)

Cognitive Levels (derived from difficulty):
- remember: difficulty < 0.4
- understand: difficulty < 0.7
- apply: everything above
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow

if TYPE_CHECKING:
    from .curriculum import LearningObjective


OPTION_LETTERS = ("A", "B", "C", "D")


class QuizBank(Base):
    """
    A generated question set that can be served to many students.

    Attributes:
        difficulty_level: Difficulty the questions were generated for (0-1)
        questions_count: Number of questions actually linked to the bank
        generation_source: 'ai' (model provider) or 'template' (deterministic fallback)
        usage_count: Number of students the bank has been assigned to
        is_active: Soft-delete flag; inactive banks are never allocated. New banks
            stay inactive until all of their questions are written.
    """

    __tablename__ = "quiz_banks"
    __table_args__ = (
        CheckConstraint("usage_count >= 0", name="ck_quiz_banks_usage_nonnegative"),
        CheckConstraint(
            "difficulty_level >= 0 AND difficulty_level <= 1",
            name="ck_quiz_banks_difficulty_range",
        ),
        Index("ix_quiz_banks_lookup", "objective_id", "is_active", "difficulty_level"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    objective_id: Mapped[int] = mapped_column(
        ForeignKey("learning_objectives.id", ondelete="CASCADE"), nullable=False
    )
    difficulty_level: Mapped[float] = mapped_column(Float, nullable=False)
    questions_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    generation_source: Mapped[str] = mapped_column(Text, nullable=False, default="ai")
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    last_used: Mapped[datetime | None] = mapped_column()
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    objective: Mapped[LearningObjective] = relationship(back_populates="quiz_banks")
    question_links: Mapped[list[QuizBankQuestion]] = relationship(
        back_populates="quiz_bank",
        cascade="all, delete-orphan",
        order_by="QuizBankQuestion.order_index",
    )
    usages: Mapped[list[StudentQuizBankUsage]] = relationship(back_populates="quiz_bank")

    def __repr__(self) -> str:
        return (
            f"<QuizBank(id={self.id}, objective={self.objective_id}, "
            f"difficulty={self.difficulty_level:.2f}, usage={self.usage_count})>"
        )


class GeneratedQuestion(Base):
    """
    A multiple-choice question with four shuffled options.

    correct_option always refers to the post-shuffle slot that is presented
    to the student.
    """

    __tablename__ = "generated_questions"
    __table_args__ = (
        CheckConstraint(
            "correct_option IN ('A', 'B', 'C', 'D')", name="ck_generated_questions_correct_option"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    objective_id: Mapped[int] = mapped_column(
        ForeignKey("learning_objectives.id", ondelete="CASCADE"), nullable=False
    )
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    option_a: Mapped[str] = mapped_column(Text, nullable=False)
    option_b: Mapped[str] = mapped_column(Text, nullable=False)
    option_c: Mapped[str] = mapped_column(Text, nullable=False)
    option_d: Mapped[str] = mapped_column(Text, nullable=False)
    correct_option: Mapped[str] = mapped_column(Text, nullable=False)
    explanation: Mapped[str] = mapped_column(Text, nullable=False, default="")
    difficulty_level: Mapped[float] = mapped_column(Float, nullable=False)
    cognitive_level: Mapped[str] = mapped_column(Text, nullable=False)
    concept_focus: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    @property
    def options(self) -> dict[str, str]:
        """Options keyed by presentation letter."""
        return {
            "A": self.option_a,
            "B": self.option_b,
            "C": self.option_c,
            "D": self.option_d,
        }

    def __repr__(self) -> str:
        return f"<GeneratedQuestion(id={self.id}, correct={self.correct_option})>"


class QuizBankQuestion(Base):
    """Presentation order of a question inside a bank (1-based, gap-free)."""

    __tablename__ = "quiz_bank_questions"
    __table_args__ = (
        UniqueConstraint("quiz_bank_id", "order_index", name="uq_bank_question_order"),
        UniqueConstraint("quiz_bank_id", "question_id", name="uq_bank_question"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quiz_bank_id: Mapped[int] = mapped_column(
        ForeignKey("quiz_banks.id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[int] = mapped_column(
        ForeignKey("generated_questions.id", ondelete="CASCADE"), nullable=False
    )
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)

    quiz_bank: Mapped[QuizBank] = relationship(back_populates="question_links")
    question: Mapped[GeneratedQuestion] = relationship()


class StudentQuizBankUsage(Base):
    """
    Usage ledger entry: one row per (student, bank).

    Created at assignment time; score_percentage, mastery_change and
    completed_at are filled in exactly once when the student finishes the quiz.
    Rows are never deleted.
    """

    __tablename__ = "student_quiz_bank_usage"
    __table_args__ = (
        UniqueConstraint("student_id", "quiz_bank_id", name="uq_usage_student_bank"),
        Index("ix_usage_student", "student_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(Integer, nullable=False)
    quiz_bank_id: Mapped[int] = mapped_column(
        ForeignKey("quiz_banks.id", ondelete="CASCADE"), nullable=False
    )
    enrollment_id: Mapped[int] = mapped_column(Integer, nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(default=utcnow)
    score_percentage: Mapped[float | None] = mapped_column(Float)
    mastery_change: Mapped[float | None] = mapped_column(Float)
    completed_at: Mapped[datetime | None] = mapped_column()

    quiz_bank: Mapped[QuizBank] = relationship(back_populates="usages")

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    def __repr__(self) -> str:
        return (
            f"<StudentQuizBankUsage(student={self.student_id}, bank={self.quiz_bank_id}, "
            f"completed={self.is_completed})>"
        )
