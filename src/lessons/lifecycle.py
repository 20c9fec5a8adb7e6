"""
Lesson start validation.

Called when a student is about to start a lesson. Prevents restarting completed
lessons and tells the student when a lesson is being resumed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from loguru import logger
from pydantic import ValidationError

from src.lessons.models import LessonDefinition
from src.lessons.reactions import dispatch
from src.lessons.reactions.base import LoggingRenderer, Renderer
from src.lessons.registry import LessonRegistry

StartStatus = Literal["completed", "partial", "fresh", "error"]


@dataclass(frozen=True)
class StartValidation:
    """Outcome of validate_lesson_start."""

    should_proceed: bool
    status: StartStatus
    message: str
    completed_count: int = 0
    total_count: int = 0


def _coerce(lesson: LessonDefinition | dict[str, Any] | None) -> LessonDefinition | None:
    if lesson is None or isinstance(lesson, LessonDefinition):
        return lesson
    try:
        return LessonDefinition.model_validate(lesson)
    except ValidationError:
        return None


def validate_lesson_start(
    lesson: LessonDefinition | dict[str, Any] | None,
    registry: LessonRegistry,
    renderer: Renderer | None = None,
) -> StartValidation:
    """
    Decide whether a lesson may be started.

    Returns:
        StartValidation with status:
        - "completed": blocked, an already-completed notice is shown
        - "partial": resumes with some conditions already met
        - "fresh": nothing met yet
        - "error": no usable lesson id
    """
    definition = _coerce(lesson)
    if definition is None:
        logger.error("Invalid lesson object provided")
        return StartValidation(should_proceed=False, status="error", message="Invalid lesson object")

    renderer = renderer or LoggingRenderer()
    state = registry.state_of(definition.id)
    total_count = len(definition.conditions)
    if state is not None and state.total_count != total_count:
        # Conditions were added or removed since the student's last visit
        logger.warning(
            "Lesson {} changed since it was started ({} -> {} conditions); starting fresh",
            definition.id,
            state.total_count,
            total_count,
        )
        state = None
    completed_count = state.met_count if state else 0

    if registry.is_completed(definition.id):
        logger.info("Lesson {} is already fully completed", definition.title)
        dispatch(
            "notify_lesson_already_completed",
            {
                "message": f'You have already completed the lesson: "{definition.title}". '
                "All conditions have been met.",
                "lesson_id": definition.id,
            },
            renderer,
        )
        return StartValidation(
            should_proceed=False,
            status="completed",
            message="Lesson has already been completed",
            completed_count=completed_count,
            total_count=total_count,
        )

    if 0 < completed_count < total_count:
        logger.info("Lesson {} has partial completion ({}/{})", definition.title, completed_count, total_count)
        met = [
            f"- {c.condition_type} (action: {c.action_type})"
            for i, c in enumerate(definition.conditions)
            if state.is_met(i)
        ]
        dispatch(
            "notify_lesson_resumed",
            {
                "message": (
                    f'The lesson "{definition.title}" was previously started.\n\n'
                    f"{completed_count} out of {total_count} conditions have been completed:\n\n"
                    + "\n".join(met)
                    + "\n\nResuming from where you left off."
                ),
                "lesson_id": definition.id,
            },
            renderer,
        )
        return StartValidation(
            should_proceed=True,
            status="partial",
            message="Lesson is being resumed with some conditions already met",
            completed_count=completed_count,
            total_count=total_count,
        )

    logger.info("Lesson {} is starting fresh", definition.title)
    return StartValidation(
        should_proceed=True,
        status="fresh",
        message="Lesson is starting fresh",
        completed_count=completed_count,
        total_count=total_count,
    )
