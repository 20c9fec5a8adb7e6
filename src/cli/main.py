"""
Typer CLI for the lesson engine.

Commands:
    lesson-engine simulate LESSONS SCRIPT   - Replay a scripted student session
    lesson-engine grade SCORE               - Convert a 0-100 score to a letter grade
    lesson-engine validate LESSONS          - Check a lesson file
    lesson-engine report STUDENT            - Show a saved session's condition report
    lesson-engine version                   - Show version information

Usage:
    lesson-engine --help
    lesson-engine simulate lessons.json script.json --student "Jake Ferguson"
    lesson-engine grade 91 --plus-minus
    lesson-engine report "Jake Ferguson" --lessons lessons.json --json
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import get_settings
from src.lessons.errors import LessonDefinitionError
from src.lessons.grading import is_passing, score_to_grade
from src.lessons.loader import index_lessons, load_lessons
from src.lessons.logging_setup import configure_logging
from src.lessons.reactions import validate_definition
from src.lessons.session import LessonSession

app = typer.Typer(
    help="lesson-engine CLI: lesson conditions, reactions and completion scoring",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Lesson Condition & Completion Engine."""
    configure_logging(level="DEBUG" if verbose else "WARNING")


# ========================================
# Rendering
# ========================================


class ConsoleRenderer:
    """Renderer that prints reactions as rich panels."""

    def __init__(self, console: Console):
        self.console = console

    def show_modal(self, payload: dict[str, Any]) -> None:
        self.console.print(
            Panel(payload.get("message", ""), title=payload.get("title") or "Message", border_style="cyan")
        )

    def show_challenge(self, payload: dict[str, Any]) -> None:
        target = payload.get("target_amount")
        suffix = f" (target: ${target:,.2f})" if isinstance(target, (int, float)) else ""
        self.console.print(
            Panel(
                payload.get("message", ""),
                title=f"Challenge: {payload.get('challenge_type', '')}{suffix}",
                border_style="yellow",
            )
        )

    def append_slide(self, payload: dict[str, Any]) -> None:
        self.console.print(Panel(payload.get("content", ""), title=payload.get("title") or "Lesson", border_style="blue"))


def _load_or_exit(path: Path):
    try:
        return load_lessons(path)
    except LessonDefinitionError as exc:
        rprint(f"[red]✗[/red] {exc}")
        raise typer.Exit(code=1)


def _completed_table(session: LessonSession) -> Table:
    table = Table(title=f"Completed Lessons - {session.student_name}")
    table.add_column("Lesson", style="cyan")
    table.add_column("Completion", style="dim")
    table.add_column("Score", justify="right")
    table.add_column("Grade", justify="center")

    for record in session.registry.completed_records():
        style = "green" if is_passing(record.score.final_score) else "red"
        table.add_row(
            record.lesson_title,
            record.completion_type.value,
            str(record.score.final_score),
            f"[{style}]{record.score.grade}[/{style}]",
        )
    return table


def _active_table(session: LessonSession) -> Table:
    table = Table(title="Active Lessons")
    table.add_column("Lesson", style="cyan")
    table.add_column("Conditions", justify="right")
    table.add_column("Progress", justify="right")
    table.add_column("Score so far", justify="right")

    for lesson_id, state in session.registry.active_items():
        progress = session.progress(lesson_id)
        table.add_row(
            state.lesson.title,
            f"{state.met_count}/{state.total_count}",
            f"{progress.progress:.0f}%" if progress else "-",
            f"{progress.combined_score:.1f}" if progress else "-",
        )
    return table


def _run_step(session: LessonSession, lessons: dict, step: dict[str, Any]) -> None:
    if "start" in step:
        lesson = lessons.get(step["start"])
        if lesson is None:
            rprint(f"[yellow]⚠[/yellow] Unknown lesson in script: {step['start']}")
            return
        session.start_lesson(lesson)
    elif "action" in step:
        session.process_action(step["action"], step.get("params") or {})
    elif "mistake" in step:
        session.record_lesson_mistake(step["mistake"], step.get("details"), step.get("lesson"))
    elif "quiz" in step:
        quiz = step["quiz"]
        session.add_quiz_score(quiz["earned"], quiz["possible"], quiz.get("label", ""), step.get("lesson"))
    elif "advance" in step:
        for _, state in session.registry.active_items():
            state.elapsed_time += float(step["advance"])
        session.tick()
    elif "complete" in step:
        session.complete_lesson(step["complete"])
    else:
        rprint(f"[yellow]⚠[/yellow] Unrecognized script step: {step}")


# ========================================
# Commands
# ========================================


@app.command("simulate")
def simulate(
    lessons_file: Path = typer.Argument(..., help="Lesson definitions (JSON)"),
    script_file: Path = typer.Argument(..., help="Scripted student events (JSON list)"),
    student: str = typer.Option("Unknown Student", "--student", "-s", help="Student name"),
    send: bool = typer.Option(False, "--send", help="POST the final snapshot to the telemetry endpoint"),
    save: bool = typer.Option(False, "--save", help="Save the session for later resume"),
) -> None:
    """
    Replay a scripted session against a lesson file.

    Script steps: {"start": id}, {"action": type, "params": {...}},
    {"mistake": type}, {"quiz": {"earned", "possible"}}, {"advance": seconds},
    {"complete": id}.
    """
    lessons = index_lessons(_load_or_exit(lessons_file))
    try:
        with open(script_file, "r", encoding="utf-8") as f:
            script = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        rprint(f"[red]✗[/red] Cannot read script {script_file}: {exc}")
        raise typer.Exit(code=1)

    session = LessonSession(student, renderer=ConsoleRenderer(console))
    for step in script:
        _run_step(session, lessons, step)

    console.print(_completed_table(session))
    if len(session.registry):
        console.print(_active_table(session))

    if save:
        from src.lessons.session_store import SessionStore

        path = SessionStore().save_snapshot(session.snapshot())
        rprint(f"[green]✓[/green] Session saved to {path}")

    if send:
        from src.delivery.telemetry import SessionTelemetryReporter

        reporter = SessionTelemetryReporter(session, student)
        result = reporter.send_now(force=True)
        if result.ok:
            rprint(f"[green]✓[/green] Snapshot sent ({result.status})")
        else:
            rprint(f"[red]✗[/red] {result.error.message}")
        reporter.close()

    session.close()


@app.command("grade")
def grade(
    score: float = typer.Argument(..., help="Score from 0 to 100"),
    plus_minus: bool | None = typer.Option(None, "--plus-minus/--plain", help="Letter scale (default: from config)"),
) -> None:
    """Convert a score to a letter grade."""
    use_plus_minus = get_settings().plus_minus_grades if plus_minus is None else plus_minus
    letter = score_to_grade(score, plus_minus=use_plus_minus)
    style = "green" if is_passing(score) else "red"
    rprint(f"[bold]{score:g}[/bold] -> [{style}]{letter}[/{style}]")


@app.command("validate")
def validate(
    lessons_file: Path = typer.Argument(..., help="Lesson definitions (JSON)"),
) -> None:
    """Check a lesson file for malformed lessons and unknown reactions."""
    lessons = _load_or_exit(lessons_file)

    table = Table(title=f"Lessons in {lessons_file.name} ({len(lessons)})")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Conditions", justify="right")
    table.add_column("Required", justify="right")
    table.add_column("Unknown reactions", style="yellow")

    warnings = 0
    for lesson in lessons:
        problems = validate_definition(lesson)
        warnings += len(problems)
        table.add_row(
            lesson.id,
            lesson.title,
            str(len(lesson.conditions)),
            str(len(lesson.required_actions)),
            ", ".join(p.action_type for p in problems) or "-",
        )

    console.print(table)
    if warnings:
        rprint(f"[yellow]⚠[/yellow] {warnings} condition(s) reference unknown reactions")
    else:
        rprint("[green]✓[/green] All reactions resolved")


@app.command("report")
def report(
    student: str = typer.Argument(..., help="Student name"),
    lessons_file: Path = typer.Option(..., "--lessons", "-l", help="Lesson definitions (JSON)"),
    as_json: bool = typer.Option(False, "--json", help="Print exported tracking data as JSON"),
    session_dir: Path = typer.Option(None, "--session-dir", help="Session directory (default: from config)"),
) -> None:
    """Show the condition tracking report for a saved session."""
    from src.lessons.session_store import SessionStore
    from src.lessons.tracking import export_tracking_data, generate_tracking_report

    lessons = index_lessons(_load_or_exit(lessons_file))
    stored = SessionStore(session_dir).load(student)
    if stored is None:
        rprint(f"[yellow]⚠[/yellow] No saved session for {student}")
        raise typer.Exit(code=1)

    session = LessonSession(student)
    session.restore(stored.to_snapshot(), lessons)

    if as_json:
        typer.echo(json.dumps(export_tracking_data(session), indent=2))
    else:
        console.print(Panel(generate_tracking_report(session), title="Condition Tracking"))
        console.print(_completed_table(session))
    session.close()


@app.command("version")
def show_version() -> None:
    """Show version information."""
    rprint("[bold]lesson-engine[/bold] v0.1.0")
    rprint("  Lesson conditions, reactions and completion scoring")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
