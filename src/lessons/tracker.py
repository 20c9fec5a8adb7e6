"""
Completion & Scoring Tracker.

Keeps a running score for every lesson the student has begun:
- Content score: earned by viewing lesson slides, capped (default 30)
- App usage score: starts at a ceiling (default 70), reduced by mistakes
- Quiz scores: optional, blended into the final score

Combined score:
    content + app_usage * (floor + (1 - floor) * required_ratio)

where required_ratio is the share of required actions performed. With quizzes:
    final = (1 - quiz_weight) * combined + quiz_weight * quiz_average

A lesson with no required actions completes as soon as its content has been
fully viewed, with a base score of 100 ("slider-only" lessons). A required action
that the lesson also lists as a condition only counts once that condition (and
its guard) is met. A quiz score completes a lesson with nothing else outstanding.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from numbers import Real
from typing import Any

from loguru import logger

from config import Settings, get_settings
from src.lessons.grading import score_to_grade
from src.lessons.models import (
    BEGIN_ACTIVITIES,
    CONTENT_VIEWED,
    CompletionRecord,
    CompletionType,
    FinalScore,
    LessonDefinition,
    LessonStatus,
    QuizScore,
    ScoreSnapshot,
)

# Actions that never count as positive app usage
_NEUTRAL_ACTIONS = frozenset({CONTENT_VIEWED, BEGIN_ACTIVITIES})


@dataclass
class ScoringPolicy:
    """Scoring constants."""

    content_score_cap: float = 30.0
    app_usage_ceiling: float = 70.0
    mistake_penalty: float = 5.0
    app_usage_floor_ratio: float = 0.65
    quiz_weight: float = 0.3
    plus_minus: bool = False

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ScoringPolicy:
        settings = settings or get_settings()
        return cls(
            content_score_cap=settings.content_score_cap,
            app_usage_ceiling=settings.app_usage_ceiling,
            mistake_penalty=settings.mistake_penalty,
            app_usage_floor_ratio=settings.app_usage_floor_ratio,
            quiz_weight=settings.quiz_weight,
            plus_minus=settings.plus_minus_grades,
        )


@dataclass
class ScoreState:
    """Running totals for one lesson."""

    lesson_id: str
    lesson_title: str
    required_actions: tuple[str, ...]
    app_usage_score: float
    # Required actions that have a condition in the lesson count only once it is met
    guarded_actions: frozenset[str] = frozenset()
    relevant_actions: frozenset[str] = frozenset()
    conditions_met: set[str] = field(default_factory=set)
    content_score: float = 0.0
    slides_viewed: int = 0
    total_slides: int | None = None
    quiz_scores: list[QuizScore] = field(default_factory=list)
    positive_conditions_met: list[str] = field(default_factory=list)
    negative_conditions_triggered: list[str] = field(default_factory=list)
    status: LessonStatus = LessonStatus.FRESH
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    ended_at: datetime | None = None

    @property
    def required_met(self) -> list[str]:
        done = set(self.positive_conditions_met)
        return [
            action
            for action in self.required_actions
            if (action in self.conditions_met if action in self.guarded_actions else action in done)
        ]

    @property
    def required_ratio(self) -> float:
        if not self.required_actions:
            return 1.0
        return len(self.required_met) / len(self.required_actions)

    @property
    def all_required_met(self) -> bool:
        return bool(self.required_actions) and len(self.required_met) == len(self.required_actions)

    @property
    def content_fully_viewed(self) -> bool:
        return self.total_slides is not None and self.slides_viewed >= self.total_slides

    @property
    def quiz_average(self) -> float | None:
        if not self.quiz_scores:
            return None
        return sum(q.percent for q in self.quiz_scores) / len(self.quiz_scores)

    @property
    def time_spent_seconds(self) -> float:
        end = self.ended_at or datetime.now(UTC)
        return (end - self.started_at).total_seconds()

    @property
    def is_complete(self) -> bool:
        return self.status == LessonStatus.COMPLETE


@dataclass
class LessonProgress:
    """Point-in-time progress report for one lesson."""

    lesson_id: str
    progress: float
    content_score: float
    app_usage_score: float
    combined_score: float
    required_met: int
    required_total: int
    quiz_average: float | None
    status: LessonStatus

    @property
    def is_complete(self) -> bool:
        return self.status == LessonStatus.COMPLETE


class CompletionTracker:
    """
    Accumulates scores and decides when lessons are complete.

    The tracker only produces CompletionRecords; moving a lesson into the
    registry's completed set is the session's job.
    """

    def __init__(self, policy: ScoringPolicy | None = None):
        """
        Initialize tracker.

        Args:
            policy: Scoring constants (defaults from settings if None)
        """
        self.policy = policy or ScoringPolicy.from_settings()
        self._states: dict[str, ScoreState] = {}

    # =========================================================================
    # State
    # =========================================================================

    def begin(self, lesson: LessonDefinition) -> ScoreState:
        """
        Start tracking a lesson.

        An already tracked lesson keeps its scores; only the parts taken from the
        definition (title, required actions, condition types) are refreshed.
        """
        state = self._states.get(lesson.id)
        if state is None:
            state = ScoreState(
                lesson_id=lesson.id,
                lesson_title=lesson.title,
                required_actions=tuple(lesson.required_actions),
                app_usage_score=self.policy.app_usage_ceiling,
                total_slides=lesson.total_slides,
            )
            self._states[lesson.id] = state
            logger.debug("Tracking lesson {} (required: {})", lesson.id, list(lesson.required_actions))

        if not state.is_complete:
            condition_types = {c.condition_type for c in lesson.conditions}
            state.lesson_title = lesson.title
            state.required_actions = tuple(lesson.required_actions)
            state.guarded_actions = frozenset(state.required_actions) & condition_types
            state.relevant_actions = frozenset(state.required_actions) | condition_types
        return state

    def get(self, lesson_id: str) -> ScoreState | None:
        return self._states.get(lesson_id)

    def reset(self, lesson_id: str) -> None:
        self._states.pop(lesson_id, None)

    def _touch(self, state: ScoreState) -> None:
        if state.status == LessonStatus.FRESH:
            state.status = LessonStatus.IN_PROGRESS

    # =========================================================================
    # Recording
    # =========================================================================

    def record_action(
        self,
        lesson_id: str,
        action_type: str,
        params: dict[str, Any] | None = None,
    ) -> CompletionType | None:
        """
        Record an action for a tracked lesson.

        Returns:
            The completion type if the lesson is now eligible to auto-complete
        """
        state = self._states.get(lesson_id)
        if state is None or state.is_complete:
            return None

        params = params or {}
        self._touch(state)

        if action_type == CONTENT_VIEWED:
            self._record_content(state, params)
        elif action_type not in _NEUTRAL_ACTIONS and action_type in state.relevant_actions:
            if action_type not in state.positive_conditions_met:
                state.positive_conditions_met.append(action_type)
            if action_type in state.required_met:
                logger.info(
                    "Required action met for {}: {} ({}/{})",
                    lesson_id,
                    action_type,
                    len(state.required_met),
                    len(state.required_actions),
                )

        return self.auto_completion(state)

    def record_condition_met(self, lesson_id: str, condition_type: str) -> None:
        """Note that a condition of this type was satisfied (guard included)."""
        state = self._states.get(lesson_id)
        if state is None or state.is_complete:
            return
        state.conditions_met.add(condition_type)

    def sync_conditions(self, lesson_id: str, condition_types: Iterable[str]) -> None:
        """Replace the met condition types, e.g. after a resume or a changed definition."""
        state = self._states.get(lesson_id)
        if state is None or state.is_complete:
            return
        state.conditions_met = set(condition_types)

    def _record_content(self, state: ScoreState, params: dict[str, Any]) -> None:
        viewed = params.get("slidesViewed", params.get("slides_viewed"))
        total = params.get("totalSlides", params.get("total_slides", state.total_slides))

        if not all(isinstance(v, Real) and not isinstance(v, bool) for v in (viewed, total)) or total <= 0:
            logger.warning("Ignoring content view with bad slide counts: {}", params)
            return

        state.total_slides = int(total)
        state.slides_viewed = max(state.slides_viewed, int(viewed))
        earned = self.policy.content_score_cap * min(1.0, state.slides_viewed / state.total_slides)
        state.content_score = max(state.content_score, round(earned, 2))
        logger.debug(
            "Content viewed for {}: {}/{} slides -> {}",
            state.lesson_id,
            state.slides_viewed,
            state.total_slides,
            state.content_score,
        )

    def record_mistake(
        self,
        lesson_id: str,
        mistake_type: str,
        details: dict[str, Any] | None = None,
    ) -> float | None:
        """
        Record a mistake, lowering the app usage score.

        Returns:
            The new app usage score, or None if the lesson is not tracked
        """
        state = self._states.get(lesson_id)
        if state is None or state.is_complete:
            return None

        self._touch(state)
        state.negative_conditions_triggered.append(mistake_type)
        state.app_usage_score = max(0.0, state.app_usage_score - self.policy.mistake_penalty)
        logger.info(
            "Mistake recorded for {}: {} {} (app usage now {})",
            lesson_id,
            mistake_type,
            details or {},
            state.app_usage_score,
        )
        return state.app_usage_score

    def add_quiz_score(self, lesson_id: str, earned: float, possible: float, label: str = "") -> bool:
        state = self._states.get(lesson_id)
        if state is None or state.is_complete:
            return False
        if possible <= 0:
            logger.warning("Ignoring quiz '{}' with non-positive maximum {}", label, possible)
            return False

        self._touch(state)
        state.quiz_scores.append(QuizScore(earned=earned, possible=possible, label=label))
        logger.info("Quiz score for {}: {}/{} ({})", lesson_id, earned, possible, label)
        return True

    # =========================================================================
    # Scoring
    # =========================================================================

    def combined_score(self, state: ScoreState) -> float:
        floor = self.policy.app_usage_floor_ratio
        app_credit = state.app_usage_score * (floor + (1 - floor) * state.required_ratio)
        return round(state.content_score + app_credit, 2)

    def final_score(self, state: ScoreState, base_score: float | None = None) -> int:
        """Blend the base (or combined) score with quiz results and clamp to 0-100."""
        score = self.combined_score(state) if base_score is None else float(base_score)
        quiz = state.quiz_average
        if quiz is not None:
            w = self.policy.quiz_weight
            score = (1 - w) * score + w * quiz
        return int(max(0, min(100, round(score))))

    def auto_completion(self, state: ScoreState) -> CompletionType | None:
        if state.is_complete:
            return None
        if state.all_required_met:
            return CompletionType.REQUIRED_ACTIONS
        if not state.required_actions and state.content_fully_viewed:
            return CompletionType.CONTENT_ONLY
        return None

    def quiz_completion(self, lesson_id: str) -> CompletionType | None:
        """
        Completion triggered by a quiz score.

        A quizzed lesson completes once nothing else is outstanding: its required
        actions (if any) are met and its content is fully viewed (or it has none).
        """
        state = self._states.get(lesson_id)
        if state is None or state.is_complete or not state.quiz_scores:
            return None
        required_done = not state.required_actions or state.all_required_met
        content_done = state.total_slides is None or state.content_fully_viewed
        if required_done and content_done:
            return CompletionType.QUIZ
        return None

    def progress(self, lesson_id: str) -> LessonProgress | None:
        state = self._states.get(lesson_id)
        if state is None:
            return None

        if state.required_actions:
            pct = state.required_ratio * 100
        elif state.total_slides:
            pct = min(1.0, state.slides_viewed / state.total_slides) * 100
        else:
            pct = 0.0

        return LessonProgress(
            lesson_id=lesson_id,
            progress=round(pct, 1),
            content_score=state.content_score,
            app_usage_score=state.app_usage_score,
            combined_score=self.combined_score(state),
            required_met=len(state.required_met),
            required_total=len(state.required_actions),
            quiz_average=state.quiz_average,
            status=state.status,
        )

    # =========================================================================
    # Completion
    # =========================================================================

    def complete(
        self,
        lesson_id: str,
        completion_type: CompletionType = CompletionType.MANUAL,
        base_score: float | None = None,
    ) -> CompletionRecord | None:
        """
        Finalize a lesson's score.

        Args:
            lesson_id: Tracked lesson
            completion_type: What triggered completion
            base_score: Score to use instead of the combined score
                (content-only lessons use 100)

        Returns:
            CompletionRecord, or None if untracked or already complete
        """
        state = self._states.get(lesson_id)
        if state is None or state.is_complete:
            return None

        if base_score is None and (
            completion_type == CompletionType.CONTENT_ONLY
            or (completion_type == CompletionType.QUIZ and not state.required_actions)
        ):
            base_score = 100

        state.status = LessonStatus.COMPLETE
        state.ended_at = datetime.now(UTC)
        final = self.final_score(state, base_score)

        snapshot = ScoreSnapshot(
            content_score=state.content_score,
            app_usage_score=state.app_usage_score,
            required_met=len(state.required_met),
            required_total=len(state.required_actions),
            combined_score=self.combined_score(state),
            quiz_average=state.quiz_average,
            mistakes=len(state.negative_conditions_triggered),
            positive_conditions_met=list(state.positive_conditions_met),
            negative_conditions_triggered=list(state.negative_conditions_triggered),
            time_spent_seconds=round(state.time_spent_seconds, 1),
        )
        return CompletionRecord(
            lesson_id=state.lesson_id,
            lesson_title=state.lesson_title,
            completed_at=state.ended_at,
            completion_type=completion_type,
            snapshot=snapshot,
            score=FinalScore(
                final_score=final,
                grade=score_to_grade(final, plus_minus=self.policy.plus_minus),
            ),
        )
