"""Command-line entry point: ``study-assistant``."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Optional, Sequence, TextIO

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from .background import BackgroundWriter, InlineExecutor
from .core import config as core_config
from .core import workspace as workspace_mod
from .core.logging import configure_logger
from .errors import (
    ExtractionError,
    GenerationError,
    InputError,
    PersistenceError,
)
from .generation import default_generator
from .host import SessionHost
from .identity import IDENTITY_FILENAME, load_or_create_identity
from .interactive import InputProvider, run_plan_loop, run_quiz_loop
from .settings import (
    CONFIG_FILENAME,
    SETTINGS_TEMPLATE,
    LoadResult,
    SettingsError,
    SettingsOverrides,
    load_settings,
)
from .store import DocumentStore

__all__ = ["main"]

LOGGER_NAME = "study_assistant"

_HISTORY_KINDS = {
    "materials": "list_materials",
    "plans": "list_plans",
    "quizzes": "list_quizzes",
    "results": "list_quiz_results",
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="study-assistant",
        description=(
            "Turn study material into an AI-generated study plan or a scored "
            "quiz."
        ),
        epilog=(
            "Run `study-assistant config init` to scaffold the default "
            f"{CONFIG_FILENAME} template."
        ),
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to a TOML config file (defaults to the workspace config).",
    )
    parser.add_argument(
        "--workspace",
        type=Path,
        help="Override the workspace root holding config, logs and history.",
    )
    parser.add_argument(
        "--log-level",
        help="Set the logging level for the run (defaults to INFO).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Also write debug logs to stderr.",
    )
    parser.add_argument(
        "--sync-writes",
        action="store_true",
        help="Save history synchronously instead of in the background.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    config_parser = sub.add_parser("config", help="Manage the config file.")
    config_sub = config_parser.add_subparsers(
        dest="config_command", required=True
    )
    init_parser = config_sub.add_parser(
        "init", help=f"Write the default {CONFIG_FILENAME} template."
    )
    init_parser.add_argument(
        "--path",
        type=Path,
        help="Destination for the config TOML.",
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the destination if a config already exists.",
    )

    plan_parser = sub.add_parser(
        "plan", help="Generate a day-by-day study plan and track progress."
    )
    _add_source_arguments(plan_parser)
    plan_parser.add_argument(
        "--days", type=int, help="Number of days the plan should span."
    )

    quiz_parser = sub.add_parser("quiz", help="Generate and take a quiz.")
    _add_source_arguments(quiz_parser)
    quiz_parser.add_argument(
        "--num", type=int, help="Number of questions to generate."
    )
    quiz_parser.add_argument(
        "--no-explain",
        action="store_true",
        help="Hide explanations in the results summary.",
    )

    history_parser = sub.add_parser("history", help="List saved history.")
    history_parser.add_argument(
        "--kind",
        choices=sorted(_HISTORY_KINDS),
        default="results",
        help="Which documents to list (default: results).",
    )
    return parser


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "source",
        help=(
            "Study material file (pdf, docx, html, txt, md), or '-' to read "
            "pasted text from stdin."
        ),
    )
    parser.add_argument(
        "--title",
        help="Title for the material (defaults to the file name).",
    )


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    generator: Any = None,
    console: Optional[Console] = None,
    input_provider: Optional[InputProvider] = None,
    stdin: Optional[TextIO] = None,
) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.command == "config":
        return _handle_config_init(args)

    try:
        load_result = load_settings(
            config_path=args.config,
            overrides=SettingsOverrides(log_level=args.log_level),
            workspace_path=args.workspace,
        )
    except SettingsError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 2

    logger, log_path = configure_logger(
        LOGGER_NAME,
        log_dir=load_result.layout.path_for("logs"),
        level=load_result.settings.log_level,
        verbose=args.verbose,
    )
    logger.debug("study-assistant %s invoked", args.command)

    store = DocumentStore(load_result.layout.path_for("store"))
    try:
        user_id = load_or_create_identity(
            load_result.layout.path_for("config") / IDENTITY_FILENAME
        )
    except PersistenceError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 2

    console = console or Console()
    if args.command == "history":
        return _cmd_history(args, store, user_id, console)

    writer = BackgroundWriter(InlineExecutor() if args.sync_writes else None)
    host = SessionHost(
        generator or default_generator(load_result.settings),
        store=store,
        writer=writer,
        user_id=user_id,
        settings=load_result.settings,
    )
    prompt = input_provider or (lambda: console.input("> "))
    try:
        if args.command == "plan":
            return _cmd_plan(args, host, load_result, console, prompt, stdin)
        return _cmd_quiz(args, host, load_result, console, prompt, stdin)
    finally:
        writer.close()
        logger.debug("Log written to %s", log_path)


def _load_material(
    args: argparse.Namespace,
    host: SessionHost,
    console: Console,
    stdin: Optional[TextIO],
) -> Optional[int]:
    """Upload the material; return an exit code when that fails."""

    try:
        if args.source == "-":
            text = (stdin or sys.stdin).read()
            host.upload_text(args.title or "", text)
        else:
            host.upload_file(Path(args.source).expanduser(), title=args.title)
    except InputError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        return 2
    except ExtractionError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        return 1
    material = host.material
    console.print(
        f"Loaded [bold]{escape(material.title)}[/] "
        f"({len(material.content):,} characters)."
    )
    return None


def _cmd_plan(
    args: argparse.Namespace,
    host: SessionHost,
    load_result: LoadResult,
    console: Console,
    input_provider: InputProvider,
    stdin: Optional[TextIO],
) -> int:
    plan_settings = load_result.settings.plan
    days = args.days if args.days is not None else plan_settings.default_days
    if days not in plan_settings.day_options:
        options = ", ".join(str(item) for item in plan_settings.day_options)
        sys.stderr.write(f"Error: --days must be one of {options}.\n")
        return 2

    failed = _load_material(args, host, console, stdin)
    if failed is not None:
        return failed

    tracker = host.choose_plan()
    with console.status(f"Generating a {days}-day study plan..."):
        try:
            tracker.generate(days)
        except GenerationError:
            console.print(f"[red]{tracker.error}[/red]")
            return 1
    run_plan_loop(tracker, console, input_provider)
    return 0


def _cmd_quiz(
    args: argparse.Namespace,
    host: SessionHost,
    load_result: LoadResult,
    console: Console,
    input_provider: InputProvider,
    stdin: Optional[TextIO],
) -> int:
    quiz_settings = load_result.settings.quiz
    num = args.num if args.num is not None else quiz_settings.default_questions
    if num not in quiz_settings.question_options:
        options = ", ".join(
            str(item) for item in quiz_settings.question_options
        )
        sys.stderr.write(f"Error: --num must be one of {options}.\n")
        return 2

    failed = _load_material(args, host, console, stdin)
    if failed is not None:
        return failed

    session = host.choose_quiz()
    session.select_num_questions(num)
    with console.status(f"Generating a {num}-question quiz..."):
        try:
            session.generate()
        except GenerationError:
            console.print(f"[red]{session.error}[/red]")
            return 1
    run_quiz_loop(
        session,
        console,
        input_provider,
        show_explanations=not args.no_explain,
    )
    return 0


def _cmd_history(
    args: argparse.Namespace,
    store: DocumentStore,
    user_id: str,
    console: Console,
) -> int:
    try:
        documents = getattr(store, _HISTORY_KINDS[args.kind])(user_id)
    except PersistenceError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        return 1
    if not documents:
        console.print(f"No saved {args.kind} yet.")
        return 0

    table = Table(title=f"Saved {args.kind}", box=box.SIMPLE, expand=True)
    if args.kind == "results":
        table.add_column("Completed")
        table.add_column("Quiz")
        table.add_column("Score", justify="right")
        for doc in documents:
            total = doc.get("totalQuestions") or 0
            table.add_row(
                str(doc.get("completedAt", "")),
                str(doc.get("quizId", "")),
                f"{doc.get('score', 0)}/{total}",
            )
    else:
        table.add_column("Created")
        table.add_column("Title", overflow="fold")
        table.add_column("Id")
        for doc in documents:
            table.add_row(
                str(doc.get("createdAt", "")),
                Text(str(doc.get("title", ""))),
                str(doc.get("id", "")),
            )
    console.print(table)
    return 0


def _handle_config_init(args: argparse.Namespace) -> int:
    if args.path is not None:
        target = args.path.expanduser()
    else:
        try:
            layout = workspace_mod.ensure_workspace(path=args.workspace)
        except workspace_mod.WorkspaceError as exc:
            sys.stderr.write(f"Error: {exc}\n")
            return 2
        target = layout.path_for("config") / CONFIG_FILENAME
    try:
        written = core_config.write_toml_template(
            target, template=SETTINGS_TEMPLATE, overwrite=args.force
        )
    except core_config.TomlConfigError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 2
    sys.stdout.write(f"Wrote study assistant config to {written}\n")
    return 0


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
