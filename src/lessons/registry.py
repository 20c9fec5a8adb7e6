"""
Lesson Registry: active and completed lesson sets for one session.

Mutable condition state is kept in `LessonState`, indexed by condition position,
instead of on the lesson definition itself.
"""

from __future__ import annotations

import time
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from pydantic import ValidationError

from src.lessons.errors import InvalidLesson
from src.lessons.models import CompletionRecord, LessonDefinition


@dataclass
class LessonState:
    """Per-session progress through one lesson definition."""

    lesson: LessonDefinition
    condition_met: list[bool] = field(default_factory=list)
    fired_actions: set[str] = field(default_factory=set)
    elapsed_time: float = 0.0
    started_at: float | None = None  # time.monotonic() of begin_activities

    def __post_init__(self) -> None:
        if len(self.condition_met) != len(self.lesson.conditions):
            self.condition_met = [False] * len(self.lesson.conditions)

    @property
    def lesson_id(self) -> str:
        return self.lesson.id

    @property
    def met_count(self) -> int:
        return sum(1 for met in self.condition_met if met)

    @property
    def total_count(self) -> int:
        return len(self.condition_met)

    def is_met(self, index: int) -> bool:
        return self.condition_met[index]

    def mark_met(self, index: int) -> bool:
        """Mark a condition met. Returns False if it already was."""
        if self.condition_met[index]:
            return False
        self.condition_met[index] = True
        return True

    def start_clock(self, now: float | None = None) -> None:
        self.started_at = time.monotonic() if now is None else now

    def current_elapsed(self, now: float | None = None) -> float:
        """Accumulated seconds plus the running clock, if started."""
        if self.started_at is None:
            return self.elapsed_time
        now = time.monotonic() if now is None else now
        return self.elapsed_time + max(0.0, now - self.started_at)

    def stop_clock(self, now: float | None = None) -> None:
        self.elapsed_time = self.current_elapsed(now)
        self.started_at = None

    def clear(self) -> None:
        self.condition_met = [False] * len(self.lesson.conditions)
        self.fired_actions = set()
        self.elapsed_time = 0.0
        self.started_at = None


class LessonRegistry:
    """
    Active and completed lesson sets.

    A lesson id is never in both sets. States survive deactivation so that a
    lesson re-entered later in the same session keeps its met conditions.
    """

    def __init__(self) -> None:
        self._active: dict[str, LessonState] = {}
        self._completed: dict[str, CompletionRecord] = {}
        self._states: dict[str, LessonState] = {}

    def __len__(self) -> int:
        return len(self._active)

    def __contains__(self, lesson_id: object) -> bool:
        return lesson_id in self._active

    def activate(self, lesson: LessonDefinition | Mapping[str, Any] | None) -> LessonState | InvalidLesson:
        """
        Add a lesson to the active set.

        Re-activating an id replaces the definition but keeps its condition state.

        Returns:
            The lesson's state, or InvalidLesson if no valid id was supplied
        """
        if lesson is None:
            logger.error("Cannot activate lesson without a valid id: {}", lesson)
            return InvalidLesson("lesson is missing", lesson)

        if not isinstance(lesson, LessonDefinition):
            try:
                lesson = LessonDefinition.model_validate(lesson)
            except ValidationError as exc:
                logger.error("Cannot activate lesson without a valid id: {}", exc.errors()[0]["msg"])
                return InvalidLesson(str(exc), lesson)

        if lesson.id in self._completed:
            logger.info("Lesson {} is already completed; not activating", lesson.id)
            return InvalidLesson("lesson already completed", lesson)

        state = self._states.get(lesson.id)
        if state is None or len(state.condition_met) != len(lesson.conditions):
            state = LessonState(lesson=lesson)
            self._states[lesson.id] = state
        else:
            state.lesson = lesson

        logger.info("Activating lesson: {}", lesson.title)
        self._active[lesson.id] = state
        return state

    def deactivate(self, lesson_id: str) -> None:
        state = self._active.pop(lesson_id, None)
        if state is not None:
            state.stop_clock()
            logger.info("Deactivating lesson: {}", lesson_id)

    def is_active(self, lesson_id: str) -> bool:
        return lesson_id in self._active

    def is_completed(self, lesson_id: str) -> bool:
        return lesson_id in self._completed

    def get(self, lesson_id: str) -> LessonState | None:
        """Active state for a lesson id."""
        return self._active.get(lesson_id)

    def state_of(self, lesson_id: str) -> LessonState | None:
        """State for a lesson id whether or not it is currently active."""
        return self._states.get(lesson_id)

    def active_items(self) -> list[tuple[str, LessonState]]:
        # Copy so callers may deactivate while iterating
        return list(self._active.items())

    def active_states(self) -> Iterator[LessonState]:
        return iter(list(self._active.values()))

    def completed_record(self, lesson_id: str) -> CompletionRecord | None:
        return self._completed.get(lesson_id)

    def completed_records(self) -> list[CompletionRecord]:
        return list(self._completed.values())

    def mark_completed(self, record: CompletionRecord) -> None:
        """Move a lesson from the active set to the completed set."""
        state = self._active.pop(record.lesson_id, None)
        if state is not None:
            state.stop_clock()
        self._completed[record.lesson_id] = record
        logger.info("Lesson completed: {} ({})", record.lesson_title, record.score.grade)

    def restore_completed(self, record: CompletionRecord) -> None:
        """Load a completion recorded in an earlier session."""
        self._active.pop(record.lesson_id, None)
        self._completed[record.lesson_id] = record

    def reset(self, lesson_id: str) -> None:
        """Admin/debug only: forget all progress for a lesson."""
        logger.warning("Resetting condition state for lesson {}", lesson_id)
        state = self._states.get(lesson_id)
        if state is not None:
            state.clear()
        self._active.pop(lesson_id, None)
        self._completed.pop(lesson_id, None)
