"""
Quiz bank allocation and lifecycle.

This module provides:
- QuizBankAllocator: reuse-or-generate allocation of quiz banks
- QuizBankStore: bank persistence and candidate search
- UsageLedger: per-student assignments and results
- QuizBankStatsReporter: aggregate views over banks and results
- Mastery helpers used around quiz completion
"""

from .bank_allocator import (
    SOURCE_CREATED,
    SOURCE_REUSED,
    AllocationResult,
    QuizBankAllocator,
)
from .bank_stats import (
    CompletionStats,
    ObjectiveBankStats,
    OverallBankStats,
    QuizBankStatsReporter,
    RecentBank,
)
from .bank_store import BankSummary, QuizBankStore, QuizQuestionView, difficulty_window
from .locks import KeyedLocks
from .mastery import (
    adaptive_difficulty,
    apply_mastery_change,
    improvement_message,
    mastery_change,
    score_percentage,
)
from .question_builder import PreparedQuestion, cognitive_level, prepare_questions, shuffle_options
from .usage_ledger import UsageLedger

__all__ = [
    # Allocation
    "SOURCE_CREATED",
    "SOURCE_REUSED",
    "AllocationResult",
    "QuizBankAllocator",
    "KeyedLocks",
    # Storage
    "BankSummary",
    "QuizBankStore",
    "QuizQuestionView",
    "UsageLedger",
    "difficulty_window",
    # Questions
    "PreparedQuestion",
    "cognitive_level",
    "prepare_questions",
    "shuffle_options",
    # Statistics
    "CompletionStats",
    "ObjectiveBankStats",
    "OverallBankStats",
    "QuizBankStatsReporter",
    "RecentBank",
    # Mastery
    "adaptive_difficulty",
    "apply_mastery_change",
    "improvement_message",
    "mastery_change",
    "score_percentage",
]
