# SQLAlchemy models
from .base import Base
from .curriculum import LearningObjective, Unit
from .quiz_bank import (
    OPTION_LETTERS,
    GeneratedQuestion,
    QuizBank,
    QuizBankQuestion,
    StudentQuizBankUsage,
)

__all__ = [
    # Base
    "Base",
    # Curriculum
    "Unit",
    "LearningObjective",
    # Quiz banks
    "OPTION_LETTERS",
    "QuizBank",
    "GeneratedQuestion",
    "QuizBankQuestion",
    "StudentQuizBankUsage",
]
