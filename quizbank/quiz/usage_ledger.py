"""
Usage Ledger: which student received which bank, and how it went.

One row per (student, bank). Rows are written at assignment time, filled in
exactly once at completion, and never deleted.
"""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from loguru import logger
from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from quizbank.db import session_scope
from quizbank.db.models import StudentQuizBankUsage
from quizbank.db.models.base import utcnow
from quizbank.errors import AlreadyCompleted, InvalidRequest, NotFound, PersistenceFailure


class UsageLedger:
    """
    Ledger of bank assignments and quiz results.

    Every method accepts an optional `session` so it can join a caller's
    transaction; without one it runs in its own session_scope.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    @contextmanager
    def _scope(self, session: Session | None) -> Iterator[Session]:
        if session is not None:
            yield session
            return
        try:
            with session_scope(self.session_factory) as own:
                yield own
        except SQLAlchemyError as e:
            logger.error("Usage ledger write failed: {}", e)
            raise PersistenceFailure(f"Usage ledger operation failed: {e}") from e

    # ========================================
    # Assignment
    # ========================================

    def mark_assigned(
        self,
        student_id: int,
        bank_id: int,
        enrollment_id: int,
        session: Session | None = None,
    ) -> bool:
        """
        Record that a student was given a bank.

        Idempotent: a second call for the same (student, bank) writes nothing.

        Returns:
            True if a new ledger row was written
        """
        with self._scope(session) as s:
            values = {
                "student_id": student_id,
                "quiz_bank_id": bank_id,
                "enrollment_id": enrollment_id,
                "assigned_at": utcnow(),
            }
            dialect = s.get_bind().dialect.name

            if dialect in ("sqlite", "postgresql"):
                insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
                stmt = (
                    insert(StudentQuizBankUsage)
                    .values(**values)
                    .on_conflict_do_nothing(index_elements=["student_id", "quiz_bank_id"])
                )
                result = s.execute(stmt)
                inserted = result.rowcount == 1
            else:
                try:
                    with s.begin_nested():
                        s.add(StudentQuizBankUsage(**values))
                    inserted = True
                except IntegrityError:
                    inserted = False

            if inserted:
                logger.debug("Assigned bank {} to student {}", bank_id, student_id)
            return inserted

    # ========================================
    # Completion
    # ========================================

    def record_completion(
        self,
        student_id: int,
        bank_id: int,
        score_percentage: float,
        mastery_change: float,
        session: Session | None = None,
    ) -> StudentQuizBankUsage:
        """
        Store the result of a finished quiz.

        Args:
            student_id: Student who took the quiz
            bank_id: Bank the quiz was served from
            score_percentage: Score in [0, 100]
            mastery_change: Mastery delta applied for this quiz

        Raises:
            InvalidRequest: score outside [0, 100]
            NotFound: the bank was never assigned to the student
            AlreadyCompleted: the result was already recorded
        """
        if not 0 <= score_percentage <= 100:
            raise InvalidRequest(f"score_percentage must be within [0, 100], got {score_percentage}")

        with self._scope(session) as s:
            entry = self._get_row(s, student_id, bank_id)
            if entry is None:
                raise NotFound("Quiz bank assignment", (student_id, bank_id))
            if entry.completed_at is not None:
                raise AlreadyCompleted(student_id, bank_id)

            entry.score_percentage = score_percentage
            entry.mastery_change = mastery_change
            entry.completed_at = utcnow()
            s.flush()

            logger.info(
                "Student {} completed bank {}: {:.1f}% (mastery {:+.3f})",
                student_id,
                bank_id,
                score_percentage,
                mastery_change,
            )
            return entry

    # ========================================
    # Queries
    # ========================================

    def get_entry(
        self,
        student_id: int,
        bank_id: int,
        session: Session | None = None,
    ) -> StudentQuizBankUsage | None:
        with self._scope(session) as s:
            return self._get_row(s, student_id, bank_id)

    def used_bank_ids(self, student_id: int, session: Session | None = None) -> list[int]:
        """Bank ids the student has been assigned, oldest assignment first."""
        with self._scope(session) as s:
            rows = s.execute(
                select(StudentQuizBankUsage.quiz_bank_id)
                .where(StudentQuizBankUsage.student_id == student_id)
                .order_by(StudentQuizBankUsage.assigned_at, StudentQuizBankUsage.id)
            ).scalars()
            return list(rows)

    @staticmethod
    def _get_row(s: Session, student_id: int, bank_id: int) -> StudentQuizBankUsage | None:
        return s.execute(
            select(StudentQuizBankUsage).where(
                StudentQuizBankUsage.student_id == student_id,
                StudentQuizBankUsage.quiz_bank_id == bank_id,
            )
        ).scalar_one_or_none()
