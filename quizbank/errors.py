"""
Typed failures raised by the quiz bank service.

Callers of the allocator see NotFound, InvalidRequest or PersistenceFailure.
GenerationFailure and MalformedGeneratorOutput are recovered inside the
question generator by falling back to templates.
"""

from __future__ import annotations


class QuizBankError(Exception):
    """Base class for quiz bank failures."""


class NotFound(QuizBankError):
    """A referenced objective, bank or ledger row does not exist."""

    def __init__(self, entity: str, key: object):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")


class InvalidRequest(QuizBankError, ValueError):
    """Arguments outside the accepted range."""


class AlreadyCompleted(QuizBankError):
    """A ledger row that already carries a completion result."""

    def __init__(self, student_id: int, bank_id: int):
        self.student_id = student_id
        self.bank_id = bank_id
        super().__init__(f"Quiz bank {bank_id} already completed by student {student_id}")


class PersistenceFailure(QuizBankError):
    """Storage read/write failed; in-flight work was rolled back."""


class GenerationFailure(QuizBankError):
    """A question provider errored or timed out."""

    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__(f"{provider}: {reason}")


class MalformedGeneratorOutput(GenerationFailure):
    """Provider output could not be parsed into raw questions."""
