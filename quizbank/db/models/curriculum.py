"""
Curriculum models.

A Unit groups the learning objectives a teacher extracted from one
curriculum document. Objective text is immutable after creation; quiz banks
and generated questions reference objectives by id.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow

if TYPE_CHECKING:
    from .quiz_bank import QuizBank


class Unit(Base):
    """A curriculum unit owning a list of learning objectives."""

    __tablename__ = "units"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    objectives: Mapped[list[LearningObjective]] = relationship(
        back_populates="unit", cascade="all, delete-orphan", order_by="LearningObjective.id"
    )

    def __repr__(self) -> str:
        return f"<Unit(id={self.id}, name='{self.name}')>"


class LearningObjective(Base):
    """A discrete learning goal; the unit of quizzing and study."""

    __tablename__ = "learning_objectives"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id", ondelete="CASCADE"), nullable=False)
    objective_text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    unit: Mapped[Unit] = relationship(back_populates="objectives")
    quiz_banks: Mapped[list[QuizBank]] = relationship(back_populates="objective")

    def __repr__(self) -> str:
        return f"<LearningObjective(id={self.id}, text='{self.objective_text[:40]}')>"
