"""
Lesson file loading.

Accepts a JSON file holding a single lesson, a list of lessons, or an object
with a "lessons" list. Malformed files raise LessonDefinitionError; this is the
only place the engine raises for bad lesson data.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from src.lessons.errors import LessonDefinitionError
from src.lessons.models import LessonDefinition
from src.lessons.reactions import validate_definition


def parse_lessons(data: Any, source: str = "<data>") -> list[LessonDefinition]:
    """Validate already-decoded lesson JSON."""
    if isinstance(data, dict) and "lessons" in data:
        data = data["lessons"]
    items = data if isinstance(data, list) else [data]

    lessons: list[LessonDefinition] = []
    seen: set[str] = set()
    for position, item in enumerate(items):
        try:
            lesson = LessonDefinition.model_validate(item)
        except ValidationError as exc:
            raise LessonDefinitionError(f"{source}: lesson #{position + 1} is invalid: {exc}") from exc
        if lesson.id in seen:
            raise LessonDefinitionError(f"{source}: duplicate lesson id {lesson.id!r}")
        seen.add(lesson.id)
        validate_definition(lesson)
        lessons.append(lesson)

    logger.debug("Loaded {} lesson(s) from {}", len(lessons), source)
    return lessons


def load_lessons(path: str | Path) -> list[LessonDefinition]:
    """
    Load lesson definitions from a JSON file.

    Raises:
        LessonDefinitionError: File missing, not JSON, or not valid lessons
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as exc:
        raise LessonDefinitionError(f"Lesson file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise LessonDefinitionError(f"{path}: not valid JSON ({exc})") from exc

    return parse_lessons(data, source=str(path))


def index_lessons(lessons: list[LessonDefinition]) -> dict[str, LessonDefinition]:
    return {lesson.id: lesson for lesson in lessons}
