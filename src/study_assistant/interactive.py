"""Rich console loops for taking a quiz and working through a study plan.

The loops drive :class:`QuizSession` and :class:`PlanProgressTracker`; they
hold no state of their own beyond what is on screen. Input comes from an
``input_provider`` callable so tests can feed scripted commands.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .errors import SessionStateError
from .models import MCQQuestion, Question, StudyPlan, TrueFalseQuestion
from .plan_tracker import PlanProgressTracker
from .quiz_session import QuizSession
from .scoring import grade_label, percentage

__all__ = [
    "ExitAction",
    "InputProvider",
    "SessionCommand",
    "coerce_answer",
    "format_answer",
    "parse_plan_command",
    "parse_session_command",
    "render_plan",
    "render_quiz_summary",
    "run_plan_loop",
    "run_quiz_loop",
]

InputProvider = Callable[[], str]
ExitAction = Literal["submitted", "quit"]

_TRUE_WORDS = frozenset({"t", "true", "yes", "y"})
_FALSE_WORDS = frozenset({"f", "false", "no"})


@dataclass(frozen=True)
class SessionCommand:
    """Normalized command parsed from one line of quiz input."""

    type: Literal["next", "prev", "goto", "submit", "quit", "answer"]
    text: Optional[str] = None
    index: Optional[int] = None


def parse_session_command(raw: Optional[str]) -> Optional[SessionCommand]:
    """Parse a line of quiz input.

    Navigation words win over answers; prefix a line with ``=`` to record it
    verbatim as an answer (``=n`` answers "n").
    """

    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    if text.startswith("="):
        answer = text[1:].strip()
        return SessionCommand("answer", text=answer) if answer else None
    lowered = text.lower()
    if lowered in {"n", "next"}:
        return SessionCommand("next")
    if lowered in {"p", "prev", "previous"}:
        return SessionCommand("prev")
    if lowered in {"submit", "s"}:
        return SessionCommand("submit")
    if lowered in {"quit", "q", "exit"}:
        return SessionCommand("quit")
    head, _, tail = lowered.partition(" ")
    if head in {"g", "go", "goto"} and tail.strip().isdigit():
        return SessionCommand("goto", index=int(tail.strip()) - 1)
    return SessionCommand("answer", text=text)


def coerce_answer(question: Question, raw: str) -> Any:
    """Turn typed text into the value recorded for ``question``.

    Returns ``None`` when the text cannot answer this kind of question.
    """

    text = raw.strip()
    if isinstance(question, MCQQuestion):
        if len(text) == 1 and text.isalpha():
            position = ord(text.upper()) - ord("A")
            if 0 <= position < len(question.options):
                return question.options[position]
            return None
        for option in question.options:
            if option.lower() == text.lower():
                return option
        return None
    if isinstance(question, TrueFalseQuestion):
        lowered = text.lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
        return None
    return text or None


def format_answer(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "True" if value else "False"
    return str(value)


def run_quiz_loop(
    session: QuizSession,
    console: Console,
    input_provider: InputProvider,
    *,
    show_explanations: bool = True,
) -> ExitAction:
    """Run the question loop until the learner submits or quits."""

    while True:
        _render_question(console, session)
        try:
            raw = input_provider()
        except (EOFError, KeyboardInterrupt, StopIteration):
            console.print("\n[bold yellow]Session interrupted.[/]")
            return "quit"
        command = parse_session_command(raw)
        if command is None:
            console.print("[red]Unrecognized command. Try again.[/]")
            continue
        if command.type == "quit":
            console.print("\n[bold yellow]Ending quiz without submission.[/]")
            return "quit"
        try:
            submitted = _apply_command(command, session, console)
        except SessionStateError as exc:
            console.print(f"[red]{escape(str(exc))}[/red]")
            continue
        if submitted:
            render_quiz_summary(
                console, session, show_explanations=show_explanations
            )
            return "submitted"


def _apply_command(
    command: SessionCommand, session: QuizSession, console: Console
) -> bool:
    if command.type == "next":
        session.next()
    elif command.type == "prev":
        session.previous()
    elif command.type == "goto" and command.index is not None:
        session.go_to(command.index)
    elif command.type == "submit":
        session.submit()
        return True
    elif command.type == "answer" and command.text is not None:
        question = session.current_question
        value = coerce_answer(question, command.text)
        if value is None:
            console.print(
                f"[red]'{escape(command.text)}' does not answer this "
                "question.[/red]"
            )
            return False
        session.answer(question.id, value)
        console.print(f"Recorded [bold]{escape(format_answer(value))}[/].")
    return False


def _render_question(console: Console, session: QuizSession) -> None:
    quiz = session.quiz
    question = session.current_question
    total = len(quiz.questions)
    header = Text.assemble(
        (f"Question {session.index + 1}", "bold cyan"),
        (f" / {total}", "dim"),
        (f"  [{question.type}]", "dim"),
    )
    console.print()
    console.rule(header)
    console.print(Text(question.question, style="bold"))

    recorded = session.answers.get(question.id)
    if isinstance(question, MCQQuestion):
        table = Table(show_header=False, box=box.SIMPLE, expand=True)
        table.add_column("Key", justify="center", style="cyan")
        table.add_column("Choice")
        for position, option in enumerate(question.options):
            row = Text(option)
            if option == recorded:
                row.stylize("bold green")
            table.add_row(chr(ord("A") + position), row)
        console.print(table)
        hint = "option letter"
    elif isinstance(question, TrueFalseQuestion):
        hint = "t / f"
    else:
        hint = "type your answer"

    if question.id in session.answers:
        console.print(
            f"Current answer: [green]{escape(format_answer(recorded))}[/]"
        )
    answered = total - len(session.unanswered())
    console.print(
        Text(
            f"Answered {answered}/{total} | Commands: {hint}, n (next), "
            "p (prev), g N (go to), submit, quit",
            style="dim",
        )
    )


def render_quiz_summary(
    console: Console, session: QuizSession, *, show_explanations: bool
) -> None:
    result = session.result
    quiz = session.quiz
    report = session.live_score()
    pct = percentage(result.score, result.total_questions)

    console.print()
    console.rule(Text("Quiz Summary", style="bold magenta"))
    console.print(
        Panel(
            f"{result.score} / {result.total_questions} correct ({pct}%)",
            title=grade_label(pct),
            border_style="green" if pct >= 50 else "red",
            expand=False,
        )
    )

    table = Table(title="Responses", box=box.SIMPLE, expand=True)
    table.add_column("#", justify="right")
    table.add_column("Question", overflow="fold")
    table.add_column("Your answer")
    table.add_column("Correct answer")
    table.add_column("Result", justify="center")
    for position, question in enumerate(quiz.questions, start=1):
        outcome = report.outcome_for(question.id)
        correct = bool(outcome and outcome.is_correct)
        table.add_row(
            str(position),
            Text(question.question),
            Text(format_answer(result.answers.get(question.id))),
            Text(format_answer(question.correct_answer)),
            "[green]correct[/]" if correct else "[red]wrong[/]",
        )
    console.print(table)

    if not show_explanations:
        return
    for question in quiz.questions:
        if not question.explanation:
            continue
        outcome = report.outcome_for(question.id)
        border = "green" if outcome and outcome.is_correct else "red"
        console.print(
            Panel(
                Text(question.explanation),
                title=f"Explanation: question {question.id}",
                border_style=border,
            )
        )


def parse_plan_command(raw: Optional[str]) -> Optional[int | str]:
    """Return a day number to toggle, ``"quit"``, or ``None``."""

    if raw is None:
        return None
    text = raw.strip().lower()
    if text in {"q", "quit", "exit"}:
        return "quit"
    if text.isdigit():
        return int(text)
    return None


def render_plan(
    console: Console, plan: StudyPlan, tracker: PlanProgressTracker
) -> None:
    console.print()
    console.rule(Text(plan.title, style="bold cyan"))
    if plan.overview:
        console.print(Text(plan.overview))

    table = Table(box=box.SIMPLE, expand=True)
    table.add_column("Day", justify="right", style="cyan")
    table.add_column("Done", justify="center")
    table.add_column("Title", style="bold")
    table.add_column("Topics", overflow="fold")
    table.add_column("Duration")
    for day in plan.days:
        done = tracker.is_complete(day.day)
        table.add_row(
            str(day.day),
            "[green]x[/]" if done else "",
            Text(day.title),
            Text(", ".join(day.topics)),
            Text(day.duration or "-"),
        )
    console.print(table)

    if plan.tips:
        console.print(
            Panel(
                Text("\n".join(f"- {tip}" for tip in plan.tips)), title="Tips"
            )
        )
    ratio = tracker.completion_ratio()
    console.print(
        Text(
            f"Completed {tracker.completed_count()}/{len(plan.days)} days "
            f"({ratio * 100:.0f}%) | Commands: day number toggles, q (quit)",
            style="dim",
        )
    )


def run_plan_loop(
    tracker: PlanProgressTracker,
    console: Console,
    input_provider: InputProvider,
) -> None:
    """Show the plan and toggle days until the learner quits."""

    plan = tracker.plan
    while True:
        render_plan(console, plan, tracker)
        try:
            raw = input_provider()
        except (EOFError, KeyboardInterrupt, StopIteration):
            console.print("\n[bold yellow]Session interrupted.[/]")
            return
        command = parse_plan_command(raw)
        if command == "quit":
            return
        if command is None:
            console.print("[red]Enter a day number or q.[/red]")
            continue
        try:
            completed = tracker.toggle_day(command)
        except SessionStateError as exc:
            console.print(f"[red]{escape(str(exc))}[/red]")
            continue
        state = "complete" if completed else "not complete"
        console.print(f"Day {command} marked {state}.")
