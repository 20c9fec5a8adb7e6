"""
Error taxonomy for the lesson engine.

Only `LessonDefinitionError` is ever raised, and only while loading lesson files.
The others are returned or logged so a single malformed lesson or flaky network
call never stops processing of the remaining active lessons.
"""

from __future__ import annotations

from dataclasses import dataclass


class LessonEngineError(Exception):
    """Base class for lesson engine errors."""


class LessonDefinitionError(LessonEngineError):
    """Lesson JSON could not be turned into a LessonDefinition."""


@dataclass(frozen=True)
class InvalidLesson:
    """Activation was attempted without a usable lesson identifier."""

    reason: str
    lesson: object | None = None

    def __bool__(self) -> bool:
        return False


@dataclass(frozen=True)
class UnknownReaction:
    """A condition references a reaction with no registered handler."""

    action_type: str
    lesson_id: str | None = None
    condition_index: int | None = None

    def describe(self) -> str:
        where = f" in lesson {self.lesson_id}" if self.lesson_id else ""
        return f"Reaction '{self.action_type}' not found in reaction library{where}"


@dataclass(frozen=True)
class TransportFailure:
    """Telemetry POST failed or came back non-2xx."""

    message: str
    status: int | None = None
