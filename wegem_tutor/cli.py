"""Command line front end for the tutor."""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, List, Optional, Sequence

from rich.markdown import Markdown
from rich.table import Table

from .client import CompletionClient, MetricsTracker
from .config import SETUP_INSTRUCTIONS, AIConfig, AppPaths
from .errors import ConfigurationError
from .events import ActivityLogStore, EventSink, LoggingEventSink
from .logs import CONSOLE, LOGGER
from .models import MarkingResult, Quiz, SymposiumQuestion
from .orchestrator import TutorOrchestrator


def build_application(paths: Optional[AppPaths] = None) -> TutorOrchestrator:
    """Wire configuration, client, event sink and orchestrator together."""

    paths = paths or AppPaths()
    config = AIConfig.from_env(paths)
    metrics = MetricsTracker()
    client = CompletionClient(config, metrics)
    if config.admin_email:
        sink: EventSink = ActivityLogStore(paths.activity_log_path, config.admin_email)
    else:
        sink = LoggingEventSink()
    return TutorOrchestrator(config, client, sink=sink)


def _render_quiz(quiz: Quiz) -> None:
    table = Table(title=f"Quiz: {quiz.topic} ({quiz.count} questions)")
    table.add_column("#", justify="right")
    table.add_column("Question")
    table.add_column("Answer")
    table.add_column("Explanation")
    table.add_column("Diagram")
    for item in quiz.questions:
        table.add_row(
            str(item.id),
            item.question,
            item.answer,
            item.explanation,
            "yes" if item.has_diagram else "",
        )
    CONSOLE.print(table)


def _render_symposium(subject: str, questions: List[SymposiumQuestion]) -> None:
    if not questions:
        CONSOLE.print(f"[yellow]No symposium questions could be read for {subject}.[/yellow]")
        return
    table = Table(title=f"Symposium: {subject}")
    table.add_column("#", justify="right")
    table.add_column("Question")
    table.add_column("Answer")
    table.add_column("Time (s)", justify="right")
    table.add_column("Difficulty")
    for item in questions:
        table.add_row(str(item.id), item.question, item.answer, str(item.time_limit), item.difficulty)
    CONSOLE.print(table)


def _render_marking(result: MarkingResult) -> None:
    CONSOLE.print(f"[bold]Total:[/bold] {result.total_score}/100")
    CONSOLE.print(f"[bold]Percentage:[/bold] {result.percentage}%")
    CONSOLE.print(f"[bold]Feedback:[/bold] {result.feedback or '-'}")
    CONSOLE.print(f"[bold]Improvement:[/bold] {result.improvement or '-'}")


def _load_answers(value: str) -> Any:
    path = Path(value)
    text = path.read_text(encoding="utf-8") if path.exists() else value
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


async def _chat_loop(orchestrator: TutorOrchestrator, level: str, curriculum: str) -> None:
    CONSOLE.print("[bold green]WeGEM AI Tutor[/bold green] - empty line or 'exit' to quit")
    while True:
        question = (await asyncio.to_thread(input, "You: ")).strip()
        if not question or question.lower() in {"exit", "quit", "q"}:
            break
        result = await orchestrator.ask(question, level=level, curriculum=curriculum)
        if not result.success:
            CONSOLE.print(f"[yellow]Offline reply ({result.error})[/yellow]")
        CONSOLE.print(Markdown(result.message))


async def _run(args: argparse.Namespace, orchestrator: TutorOrchestrator) -> None:
    await orchestrator.connect()
    status = orchestrator.get_status()
    if not status["hasApiKey"]:
        CONSOLE.print(f"[bold yellow]API key required[/bold yellow]\n{SETUP_INSTRUCTIONS}")

    if args.command == "chat":
        await _chat_loop(orchestrator, args.level, args.curriculum)
    elif args.command == "quiz":
        _render_quiz(await orchestrator.generate_quiz(args.topic, args.count, args.difficulty))
    elif args.command == "symposium":
        questions = await orchestrator.generate_symposium_questions(args.subject, args.count)
        _render_symposium(args.subject, questions)
    elif args.command == "explain":
        CONSOLE.print(Markdown(await orchestrator.explain_topic(args.topic, args.level)))
    elif args.command == "mark":
        result = await orchestrator.mark_answers(
            _load_answers(args.student_answers),
            _load_answers(args.correct_answers),
            {"subject": args.subject, "level": args.level},
        )
        _render_marking(result)
    elif args.command == "status":
        table = Table(title="Tutor status")
        table.add_column("Field")
        table.add_column("Value")
        for key, value in status.items():
            table.add_row(key, str(value))
        for key, value in orchestrator.metrics_snapshot().items():
            table.add_row(f"latency.{key}", f"{value:.2f}" if isinstance(value, float) else str(value))
        CONSOLE.print(table)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wegem-tutor", description="WeGEM AI tutor")
    parser.add_argument("--base-dir", type=Path, default=None, help="directory holding wegem_config.json")
    sub = parser.add_subparsers(dest="command", required=True)

    chat = sub.add_parser("chat", help="interactive tutor chat")
    chat.add_argument("--level", default="Form 3")
    chat.add_argument("--curriculum", default="8-4-4")

    quiz = sub.add_parser("quiz", help="generate quiz questions")
    quiz.add_argument("topic")
    quiz.add_argument("--count", type=int, default=10)
    quiz.add_argument("--difficulty", default="medium")

    symposium = sub.add_parser("symposium", help="generate timed competition questions")
    symposium.add_argument("subject")
    symposium.add_argument("--count", type=int, default=15)

    explain = sub.add_parser("explain", help="explain a topic")
    explain.add_argument("topic")
    explain.add_argument("--level", default="Form 3")

    mark = sub.add_parser("mark", help="mark student answers")
    mark.add_argument("student_answers", help="JSON text or path to a JSON file")
    mark.add_argument("correct_answers", help="JSON text or path to a JSON file")
    mark.add_argument("--subject", default="General")
    mark.add_argument("--level", default="Form 3")

    sub.add_parser("status", help="show connection status")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:  # pragma: no cover - entry point
    args = build_parser().parse_args(argv)
    paths = AppPaths(base_dir=args.base_dir) if args.base_dir else AppPaths()
    try:
        orchestrator = build_application(paths)
    except ConfigurationError as exc:
        CONSOLE.print(f"[bold red]Configuration error:[/bold red] {exc}")
        return 2
    except Exception as exc:  # pragma: no cover - startup failure
        LOGGER.exception("Fatal error during application startup")
        CONSOLE.print(f"[bold red]Unexpected error:[/bold red] {exc}")
        return 1

    try:
        asyncio.run(_run(args, orchestrator))
    except KeyboardInterrupt:
        CONSOLE.print()
    finally:
        orchestrator.shutdown()
    return 0


if __name__ == "__main__":  # pragma: no cover - module executed directly
    raise SystemExit(main())
