"""
Lesson domain models.

Lesson definitions are immutable and validated when they are loaded. Everything a
student changes while working through a lesson lives in `LessonState`
(see src.lessons.registry), so one definition can back many sessions.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

ELAPSED_TIME = "elapsed_time"
CONTENT_VIEWED = "lesson_content_viewed"
BEGIN_ACTIVITIES = "begin_activities"


class Condition(BaseModel):
    """One declarative rule: trigger (type + optional guard) paired with a reaction."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    condition_type: str = Field(validation_alias=AliasChoices("condition_type", "conditionType", "type"))
    condition_value: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("condition_value", "conditionValue", "value"),
    )
    action_type: str = Field(validation_alias=AliasChoices("action_type", "actionType"))
    action_details: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("action_details", "actionDetails", "action_params"),
    )

    @model_validator(mode="before")
    @classmethod
    def _coerce_elapsed_seconds(cls, data: Any) -> Any:
        # Authoring tools store elapsed_time thresholds as a bare number of seconds
        if isinstance(data, dict):
            ctype = data.get("condition_type") or data.get("conditionType") or data.get("type")
            for key in ("condition_value", "conditionValue", "value"):
                raw = data.get(key)
                if ctype == ELAPSED_TIME and isinstance(raw, (int, float)) and not isinstance(raw, bool):
                    data = {**data, key: {"seconds": raw}}
        return data

    @field_validator("action_details", mode="before")
    @classmethod
    def _none_details(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("condition_value", mode="before")
    @classmethod
    def _empty_guard(cls, value: Any) -> Any:
        # An empty guard is the same as no guard at all
        if value == {}:
            return None
        return value


class LessonDefinition(BaseModel):
    """A pedagogical unit as authored by an instructor."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(validation_alias=AliasChoices("id", "_id", "lesson_id", "lessonId"))
    title: str = Field(
        default="Untitled lesson",
        validation_alias=AliasChoices("title", "lesson_title", "lessonTitle"),
    )
    conditions: tuple[Condition, ...] = Field(
        default=(),
        validation_alias=AliasChoices(
            "conditions", "completion_conditions", "lesson_conditions", "completionConditions"
        ),
    )
    required_actions: tuple[str, ...] = Field(
        default=(),
        validation_alias=AliasChoices("required_actions", "requiredActions"),
    )
    total_slides: int | None = Field(
        default=None,
        ge=1,
        validation_alias=AliasChoices("total_slides", "totalSlides"),
    )

    @field_validator("id", mode="before")
    @classmethod
    def _id_not_blank(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("lesson id must be a non-empty string")
        return str(value)

    @field_validator("conditions", "required_actions", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return () if value is None else value


class LessonStatus(str, Enum):
    """Tracker state for one lesson."""

    FRESH = "fresh"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class CompletionType(str, Enum):
    """What caused a lesson to complete."""

    REQUIRED_ACTIONS = "required_actions"
    CONTENT_ONLY = "content_only"
    REACTION = "reaction"
    QUIZ = "quiz"
    MANUAL = "manual"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuizScore(_CamelModel):
    earned: float
    possible: float
    label: str = ""

    @property
    def percent(self) -> float:
        if self.possible <= 0:
            return 0.0
        return self.earned / self.possible * 100


class ScoreSnapshot(_CamelModel):
    """Score breakdown captured at completion time."""

    content_score: float
    app_usage_score: float
    required_met: int
    required_total: int
    combined_score: float
    quiz_average: float | None = None
    mistakes: int = 0
    positive_conditions_met: list[str] = Field(default_factory=list)
    negative_conditions_triggered: list[str] = Field(default_factory=list)
    time_spent_seconds: float = 0.0


class FinalScore(_CamelModel):
    final_score: int
    grade: str


class CompletionRecord(_CamelModel):
    """Snapshot produced once when a lesson transitions to completed."""

    lesson_id: str
    lesson_title: str
    completed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    completion_type: CompletionType = CompletionType.MANUAL
    snapshot: ScoreSnapshot
    score: FinalScore

    def to_payload(self) -> dict[str, Any]:
        """camelCase JSON-ready dictionary for the persistence endpoint."""
        return self.model_dump(mode="json", by_alias=True)
