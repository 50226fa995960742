"""
Typer CLI for the quiz bank service.

Commands:
    quizbank db init            - Create database tables
    quizbank db seed            - Insert the sample algebra unit and objectives
    quizbank bank populate      - Pre-populate banks for objectives and difficulties
    quizbank bank allocate      - Allocate a bank to a student and print its questions
    quizbank bank complete      - Record a finished quiz
    quizbank bank deactivate    - Soft-delete a bank
    quizbank bank stats         - Show bank and completion statistics
    quizbank version            - Show version

Usage:
    quizbank --help
    quizbank db init
    quizbank bank populate --objective 1 --objective 2 --difficulty 0.3 --difficulty 0.7
    quizbank bank allocate 1 1 1 --difficulty 0.5 --count 5
    quizbank bank complete 1 3 --correct 4 --total 5 --current-mastery 0.4
"""

from __future__ import annotations

import sys
from typing import NoReturn

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from sqlalchemy import Engine, select
from sqlalchemy.orm import Session, sessionmaker

from config import Settings, get_settings
from quizbank import __version__
from quizbank.db import create_db_engine, create_session_factory, init_db, session_scope
from quizbank.db.models import LearningObjective, Unit
from quizbank.errors import QuizBankError
from quizbank.generation import QuestionGenerator
from quizbank.quiz import (
    QuizBankAllocator,
    QuizBankStatsReporter,
    UsageLedger,
    adaptive_difficulty,
    improvement_message,
    mastery_change,
    score_percentage,
)

app = typer.Typer(
    help="quizbank CLI: reusable AI-generated quiz banks per objective and difficulty",
    no_args_is_help=True,
)
db_app = typer.Typer(help="Database management (init, seed)")
bank_app = typer.Typer(help="Quiz bank allocation, results and statistics")
app.add_typer(db_app, name="db")
app.add_typer(bank_app, name="bank")

console = Console()

SAMPLE_UNIT = "Introduction to Algebra"
SAMPLE_UNIT_DESCRIPTION = "Learn the fundamentals of algebraic thinking and problem solving"
SAMPLE_OBJECTIVES = (
    "Understand variables and expressions",
    "Solve linear equations with one variable",
    "Graph linear functions on a coordinate plane",
    "Apply algebraic methods to real-world problems",
    "Simplify and manipulate algebraic expressions",
)


# ========================================
# Logging and Context
# ========================================


def configure_logging(settings: Settings) -> None:
    """Route loguru output to stderr and the optional log file."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<level>{level: <8}</level> | <level>{message}</level>",
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            level="DEBUG",
            rotation="10 MB",
            retention=5,
            enqueue=True,
        )


class CLIContext:
    """
    Dependency container for CLI commands.

    Services are built lazily so `--help` never touches the database.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None
        self._allocator: QuizBankAllocator | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_db_engine(self.settings.database_url)
        return self._engine

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._session_factory is None:
            self._session_factory = create_session_factory(self.engine)
        return self._session_factory

    def allocator(self) -> QuizBankAllocator:
        """Shared allocator; its lock registry covers every command in this process."""
        if self._allocator is None:
            self._allocator = QuizBankAllocator(
                self.session_factory,
                QuestionGenerator.from_settings(self.settings),
                ledger=self.ledger(),
                difficulty_window=self.settings.quiz_difficulty_window,
                max_question_count=self.settings.quiz_max_question_count,
            )
        return self._allocator

    def ledger(self) -> UsageLedger:
        return UsageLedger(self.session_factory)

    def stats(self) -> QuizBankStatsReporter:
        return QuizBankStatsReporter(self.session_factory)


def _context(ctx: typer.Context) -> CLIContext:
    if ctx.obj is None:
        ctx.obj = CLIContext()
    return ctx.obj


def _fail(error: object) -> NoReturn:
    rprint(f"[red]✗ {escape(str(error))}[/red]")
    raise typer.Exit(code=1)


@app.callback()
def main_callback(ctx: typer.Context) -> None:
    """Adaptive quiz bank service."""
    cli = _context(ctx)
    configure_logging(cli.settings)


@app.command("version")
def version() -> None:
    """Show version."""
    rprint(f"quizbank [bold]{__version__}[/bold]")


# ========================================
# Database Commands
# ========================================


@db_app.command("init")
def db_init(ctx: typer.Context) -> None:
    """
    Create database tables from the SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    cli = _context(ctx)
    logger.info("Initializing database tables...")
    init_db(cli.engine)
    rprint("[green]✓[/green] Database initialized!")


@db_app.command("seed")
def db_seed(ctx: typer.Context) -> None:
    """Insert the sample algebra unit with five objectives (skipped if present)."""
    cli = _context(ctx)
    init_db(cli.engine)

    with session_scope(cli.session_factory) as session:
        existing = session.execute(select(Unit).where(Unit.name == SAMPLE_UNIT)).scalar_one_or_none()
        if existing is not None:
            rprint(f"[yellow]Sample unit already exists (id {existing.id})[/yellow]")
            return

        unit = Unit(name=SAMPLE_UNIT, description=SAMPLE_UNIT_DESCRIPTION)
        unit.objectives = [LearningObjective(objective_text=text) for text in SAMPLE_OBJECTIVES]
        session.add(unit)
        session.flush()

        table = Table(title=f"Unit {unit.id}: {unit.name}")
        table.add_column("Objective", justify="right", style="cyan")
        table.add_column("Text")
        for objective in unit.objectives:
            table.add_row(str(objective.id), objective.objective_text)

    console.print(table)
    rprint(f"[green]✓[/green] Seeded {len(SAMPLE_OBJECTIVES)} objectives")


# ========================================
# Bank Commands
# ========================================


@bank_app.command("populate")
def bank_populate(
    ctx: typer.Context,
    objective: list[int] = typer.Option(..., "--objective", "-o", help="Objective id (repeatable)"),
    difficulty: list[float] = typer.Option(
        [0.3, 0.5, 0.7], "--difficulty", "-d", help="Difficulty level (repeatable)"
    ),
    count: int = typer.Option(5, "--count", "-n", help="Questions per bank"),
) -> None:
    """Pre-populate unassigned banks for each objective and difficulty."""
    allocator = _context(ctx).allocator()

    table = Table(title="Pre-populated Quiz Banks")
    table.add_column("Bank", justify="right", style="cyan")
    table.add_column("Objective", justify="right")
    table.add_column("Difficulty", justify="right")
    table.add_column("Questions", justify="right")
    table.add_column("Source")

    try:
        for objective_id in objective:
            for level in difficulty:
                summary = allocator.prepopulate(objective_id, level, count)
                table.add_row(
                    str(summary.bank_id),
                    str(objective_id),
                    f"{level:.2f}",
                    str(summary.questions_count),
                    summary.generation_source,
                )
    except QuizBankError as e:
        console.print(table)
        _fail(e)

    console.print(table)


@bank_app.command("allocate")
def bank_allocate(
    ctx: typer.Context,
    student_id: int = typer.Argument(..., help="Student id"),
    enrollment_id: int = typer.Argument(..., help="Enrollment id"),
    objective_id: int = typer.Argument(..., help="Learning objective id"),
    difficulty: float | None = typer.Option(
        None, "--difficulty", "-d", help="Target difficulty (0-1); derived from --mastery if omitted"
    ),
    mastery: float = typer.Option(0.5, "--mastery", "-m", help="Current mastery (0-1)"),
    count: int | None = typer.Option(None, "--count", "-n", help="Questions for a new bank"),
    show_answers: bool = typer.Option(False, "--answers", help="Show correct options"),
) -> None:
    """Allocate a quiz bank to a student and print its questions."""
    cli = _context(ctx)
    target = difficulty if difficulty is not None else adaptive_difficulty(mastery)
    desired = count if count is not None else cli.settings.quiz_default_question_count

    try:
        result = cli.allocator().allocate(student_id, enrollment_id, objective_id, target, desired)
    except QuizBankError as e:
        _fail(e)

    status = "[green]reused[/green]" if result.reused else "[cyan]created[/cyan]"
    rprint(f"Quiz bank [bold]{result.bank_id}[/bold] ({status}) at difficulty {target:.2f}")

    for question in result.questions:
        rprint(f"\n[bold]{question.order_index}. {escape(question.question_text)}[/bold]")
        for letter, text in question.options.items():
            marker = "[green]*[/green]" if show_answers and letter == question.correct_option else " "
            rprint(f" {marker} {letter}) {escape(text)}")
        if show_answers and question.explanation:
            rprint(f"   [dim]{escape(question.explanation)}[/dim]")


@bank_app.command("complete")
def bank_complete(
    ctx: typer.Context,
    student_id: int = typer.Argument(..., help="Student id"),
    bank_id: int = typer.Argument(..., help="Quiz bank id"),
    score: float | None = typer.Option(None, "--score", "-s", help="Score percentage (0-100)"),
    correct: int | None = typer.Option(None, "--correct", help="Correct answers"),
    total: int | None = typer.Option(None, "--total", help="Questions answered"),
    change: float | None = typer.Option(
        None, "--mastery-change", help="Mastery delta; computed from the score if omitted"
    ),
    current_mastery: float = typer.Option(0.5, "--current-mastery", help="Mastery before the quiz"),
) -> None:
    """Record the result of a finished quiz."""
    cli = _context(ctx)

    if score is None:
        if correct is None or total is None:
            _fail("Provide --score or both --correct and --total")
        score = score_percentage(correct, total)

    try:
        if change is None:
            summary, _ = cli.allocator().get_bank(bank_id)
            answered = total if total is not None else summary.questions_count
            change = mastery_change(
                current_mastery,
                score / 100,
                difficulties=[summary.difficulty_level] * answered,
            )
        cli.ledger().record_completion(student_id, bank_id, score, change)
    except QuizBankError as e:
        _fail(e)

    rprint(f"[green]✓[/green] Recorded {score:.1f}% for student {student_id} on bank {bank_id}")
    rprint(f"Mastery change: {change:+.3f}")
    rprint(f"[dim]{improvement_message(change)}[/dim]")


@bank_app.command("deactivate")
def bank_deactivate(
    ctx: typer.Context,
    bank_id: int = typer.Argument(..., help="Quiz bank id"),
) -> None:
    """Soft-delete a bank so it is never allocated again."""
    try:
        _context(ctx).allocator().deactivate(bank_id)
    except QuizBankError as e:
        _fail(e)
    rprint(f"[green]✓[/green] Quiz bank {bank_id} deactivated")


@bank_app.command("stats")
def bank_stats(
    ctx: typer.Context,
    objective: int | None = typer.Option(None, "--objective", "-o", help="Limit to one objective"),
    recent: int = typer.Option(10, "--recent", help="Number of recent banks to list"),
) -> None:
    """Show quiz bank usage and completion statistics."""
    reporter = _context(ctx).stats()

    try:
        if objective is not None:
            _print_objective_stats(reporter, objective)
        else:
            _print_overall_stats(reporter, recent)
        completions = reporter.get_completion_stats(objective)
    except QuizBankError as e:
        _fail(e)

    table = Table(title="Student Usage")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Unique Students", str(completions.unique_students))
    table.add_row("Quiz Completions", str(completions.total_completions))
    table.add_row(
        "Average Score",
        f"{completions.avg_score:.1f}%" if completions.avg_score is not None else "N/A",
    )
    console.print(table)


def _print_objective_stats(reporter: QuizBankStatsReporter, objective_id: int) -> None:
    stats = reporter.get_stats(objective_id)

    table = Table(title=f"Objective {objective_id}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Quiz Banks", str(stats.total_banks))
    table.add_row("Total Usage", str(stats.total_usage))
    table.add_row("Average Usage", f"{stats.avg_usage:.2f}")
    if stats.total_banks:
        table.add_row(
            "Difficulty Range",
            f"{stats.min_difficulty:.2f} - {stats.max_difficulty:.2f} (avg {stats.avg_difficulty:.2f})",
        )
        table.add_row("Oldest Bank", str(stats.oldest_bank))
        table.add_row("Newest Bank", str(stats.newest_bank))
    console.print(table)


def _print_overall_stats(reporter: QuizBankStatsReporter, recent: int) -> None:
    overall = reporter.get_overall_stats()

    table = Table(title="Overall Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Quiz Banks", str(overall.total_banks))
    table.add_row("Total Usage", str(overall.total_usage))
    table.add_row("Average Usage per Bank", f"{overall.avg_usage:.2f}")
    table.add_row("Objectives Covered", str(overall.objectives_covered))
    console.print(table)

    breakdown = reporter.get_objective_breakdown()
    if breakdown:
        table = Table(title="Per-Objective Breakdown")
        table.add_column("Objective", justify="right", style="cyan")
        table.add_column("Text")
        table.add_column("Banks", justify="right")
        table.add_column("Usage", justify="right")
        table.add_column("Difficulty", justify="right")
        for stats in breakdown:
            table.add_row(
                str(stats.objective_id),
                (stats.objective_text or "")[:50],
                str(stats.total_banks),
                str(stats.total_usage),
                f"{stats.min_difficulty:.2f} - {stats.max_difficulty:.2f} (avg {stats.avg_difficulty:.2f})",
            )
        console.print(table)

    banks = reporter.get_recent_banks(recent)
    if banks:
        table = Table(title="Recent Quiz Banks")
        table.add_column("Bank", justify="right", style="cyan")
        table.add_column("Objective")
        table.add_column("Difficulty", justify="right")
        table.add_column("Usage", justify="right")
        table.add_column("Source")
        table.add_column("Created")
        table.add_column("Last Used")
        for bank in banks:
            table.add_row(
                str(bank.bank_id),
                bank.objective_text[:40],
                f"{bank.difficulty_level:.2f}",
                str(bank.usage_count),
                bank.generation_source,
                bank.created_at.strftime("%Y-%m-%d %H:%M"),
                bank.last_used.strftime("%Y-%m-%d %H:%M") if bank.last_used else "Never",
            )
        console.print(table)


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
