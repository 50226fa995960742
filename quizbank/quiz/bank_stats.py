"""
Statistics over the quiz bank store and the usage ledger.

All aggregates cover active banks only and tolerate empty tables: sums
and counts come back as 0, averages and extremes as None.
"""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from quizbank.db import session_scope
from quizbank.db.models import LearningObjective, QuizBank, StudentQuizBankUsage
from quizbank.errors import PersistenceFailure


@dataclass
class ObjectiveBankStats:
    """Bank statistics for one objective."""

    objective_id: int
    total_banks: int
    total_usage: int
    avg_usage: float
    min_difficulty: float | None
    max_difficulty: float | None
    avg_difficulty: float | None
    oldest_bank: datetime | None
    newest_bank: datetime | None
    objective_text: str | None = None


@dataclass
class OverallBankStats:
    """Statistics across every active bank."""

    total_banks: int
    total_usage: int
    avg_usage: float
    objectives_covered: int


@dataclass
class RecentBank:
    """A recently created bank with its objective."""

    bank_id: int
    objective_id: int
    objective_text: str
    difficulty_level: float
    usage_count: int
    generation_source: str
    created_at: datetime
    last_used: datetime | None


@dataclass
class CompletionStats:
    """Aggregate quiz results from completed ledger rows."""

    unique_students: int
    total_completions: int
    avg_score: float | None


class QuizBankStatsReporter:
    """Read-only aggregate views; every call runs in its own session."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def get_stats(self, objective_id: int) -> ObjectiveBankStats:
        """Get bank statistics for one objective."""
        query = select(
            func.count(QuizBank.id),
            func.coalesce(func.sum(QuizBank.usage_count), 0),
            func.coalesce(func.avg(QuizBank.usage_count), 0.0),
            func.min(QuizBank.difficulty_level),
            func.max(QuizBank.difficulty_level),
            func.avg(QuizBank.difficulty_level),
            func.min(QuizBank.created_at),
            func.max(QuizBank.created_at),
        ).where(QuizBank.objective_id == objective_id, QuizBank.is_active.is_(True))

        with self._session() as session:
            row = session.execute(query).one()

        return ObjectiveBankStats(
            objective_id=objective_id,
            total_banks=int(row[0]),
            total_usage=int(row[1]),
            avg_usage=float(row[2]),
            min_difficulty=_maybe_float(row[3]),
            max_difficulty=_maybe_float(row[4]),
            avg_difficulty=_maybe_float(row[5]),
            oldest_bank=row[6],
            newest_bank=row[7],
        )

    def get_overall_stats(self) -> OverallBankStats:
        query = select(
            func.count(QuizBank.id),
            func.coalesce(func.sum(QuizBank.usage_count), 0),
            func.coalesce(func.avg(QuizBank.usage_count), 0.0),
            func.count(func.distinct(QuizBank.objective_id)),
        ).where(QuizBank.is_active.is_(True))

        with self._session() as session:
            row = session.execute(query).one()

        return OverallBankStats(
            total_banks=int(row[0]),
            total_usage=int(row[1]),
            avg_usage=float(row[2]),
            objectives_covered=int(row[3]),
        )

    def get_objective_breakdown(self) -> list[ObjectiveBankStats]:
        """Per-objective statistics, objectives with the most banks first."""
        bank_count = func.count(QuizBank.id).label("bank_count")
        query = (
            select(
                QuizBank.objective_id,
                LearningObjective.objective_text,
                bank_count,
                func.coalesce(func.sum(QuizBank.usage_count), 0),
                func.coalesce(func.avg(QuizBank.usage_count), 0.0),
                func.min(QuizBank.difficulty_level),
                func.max(QuizBank.difficulty_level),
                func.avg(QuizBank.difficulty_level),
                func.min(QuizBank.created_at),
                func.max(QuizBank.created_at),
            )
            .join(LearningObjective, LearningObjective.id == QuizBank.objective_id)
            .where(QuizBank.is_active.is_(True))
            .group_by(QuizBank.objective_id, LearningObjective.objective_text)
            .order_by(bank_count.desc(), QuizBank.objective_id)
        )

        with self._session() as session:
            rows = session.execute(query).all()

        return [
            ObjectiveBankStats(
                objective_id=row[0],
                objective_text=row[1],
                total_banks=int(row[2]),
                total_usage=int(row[3]),
                avg_usage=float(row[4]),
                min_difficulty=_maybe_float(row[5]),
                max_difficulty=_maybe_float(row[6]),
                avg_difficulty=_maybe_float(row[7]),
                oldest_bank=row[8],
                newest_bank=row[9],
            )
            for row in rows
        ]

    def get_recent_banks(self, limit: int = 10) -> list[RecentBank]:
        query = (
            select(QuizBank, LearningObjective.objective_text)
            .join(LearningObjective, LearningObjective.id == QuizBank.objective_id)
            .where(QuizBank.is_active.is_(True))
            .order_by(QuizBank.created_at.desc(), QuizBank.id.desc())
            .limit(limit)
        )

        with self._session() as session:
            rows = session.execute(query).all()
            return [
                RecentBank(
                    bank_id=bank.id,
                    objective_id=bank.objective_id,
                    objective_text=text,
                    difficulty_level=bank.difficulty_level,
                    usage_count=bank.usage_count,
                    generation_source=bank.generation_source,
                    created_at=bank.created_at,
                    last_used=bank.last_used,
                )
                for bank, text in rows
            ]

    def get_completion_stats(self, objective_id: int | None = None) -> CompletionStats:
        """Results over completed ledger rows, optionally for one objective."""
        query = select(
            func.count(func.distinct(StudentQuizBankUsage.student_id)),
            func.count(StudentQuizBankUsage.id),
            func.avg(StudentQuizBankUsage.score_percentage),
        ).where(StudentQuizBankUsage.completed_at.is_not(None))
        if objective_id is not None:
            query = query.join(QuizBank, QuizBank.id == StudentQuizBankUsage.quiz_bank_id).where(
                QuizBank.objective_id == objective_id
            )

        with self._session() as session:
            row = session.execute(query).one()

        return CompletionStats(
            unique_students=int(row[0]),
            total_completions=int(row[1]),
            avg_score=_maybe_float(row[2]),
        )

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with session_scope(self.session_factory) as session:
                yield session
        except SQLAlchemyError as e:
            logger.error("Statistics query failed: {}", e)
            raise PersistenceFailure(f"Statistics query failed: {e}") from e


def _maybe_float(value) -> float | None:
    return None if value is None else float(value)
