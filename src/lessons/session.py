"""
Lesson Session: orchestration layer for one student's lesson engine.

Owns the registry, matcher and tracker for a single student:
- Events -> src.lessons.matcher (conditions, reactions)
- Scores -> src.lessons.tracker (content/app usage/quiz, completion)
- Sets   -> src.lessons.registry (active/completed)

All mutation goes through an RLock because the lesson timer and telemetry
reporter run on background threads.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from src.lessons.errors import InvalidLesson
from src.lessons.lifecycle import StartValidation, validate_lesson_start
from src.lessons.matcher import ConditionMatcher, MatchResult
from src.lessons.models import BEGIN_ACTIVITIES, CompletionRecord, CompletionType, LessonDefinition
from src.lessons.reactions import ReactionKind, validate_definition
from src.lessons.reactions.base import LoggingRenderer, Renderer
from src.lessons.registry import LessonRegistry, LessonState
from src.lessons.tracker import CompletionTracker, LessonProgress, ScoringPolicy


@dataclass
class SessionSnapshot:
    """Read-only copy of session state for telemetry and persistence."""

    student_name: str
    active_lessons: list[dict[str, Any]]
    completed_lessons: list[CompletionRecord]
    condition_state: dict[str, list[bool]] = field(default_factory=dict)
    fired_actions: dict[str, list[str]] = field(default_factory=dict)
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))

    def to_payload(self) -> dict[str, Any]:
        """Telemetry body: {studentName, completedLessons, activeLessons, timestamp}."""
        return {
            "studentName": self.student_name,
            "completedLessons": [r.to_payload() for r in self.completed_lessons],
            "activeLessons": self.active_lessons,
            "timestamp": self.timestamp,
        }

    def fingerprint(self) -> tuple:
        """Identity of the snapshot content, ignoring the timestamp."""
        return (
            tuple(sorted(r.lesson_id for r in self.completed_lessons)),
            tuple((a["id"], a["elapsedTime"]) for a in self.active_lessons),
        )


class LessonSession:
    """
    One student's lesson engine.

    Usage:
        session = LessonSession("Jake Ferguson")
        session.start_lesson(lesson)
        session.process_action("deposit_made", {"amount": 500})
        ...
        session.close()
    """

    def __init__(
        self,
        student_name: str = "Unknown Student",
        renderer: Renderer | None = None,
        policy: ScoringPolicy | None = None,
    ):
        self.student_name = student_name
        self.renderer = renderer or LoggingRenderer()
        self.registry = LessonRegistry()
        self.matcher = ConditionMatcher(self.registry, self.renderer)
        self.tracker = CompletionTracker(policy)
        self._lock = threading.RLock()
        self._stop_handles: list[Callable[[], None]] = []
        self._closed = False

    # =========================================================================
    # Lesson lifecycle
    # =========================================================================

    def activate_lesson(self, lesson: LessonDefinition | Mapping[str, Any] | None) -> LessonState | InvalidLesson:
        """Add a lesson to the active set and start scoring it."""
        with self._lock:
            result = self.registry.activate(lesson)
            if isinstance(result, InvalidLesson):
                return result
            validate_definition(result.lesson)
            self.tracker.begin(result.lesson)
            self._sync_tracker(result)
            return result

    def _sync_tracker(self, state: LessonState) -> None:
        met = [c.condition_type for c, is_met in zip(state.lesson.conditions, state.condition_met) if is_met]
        self.tracker.sync_conditions(state.lesson_id, met)

    def deactivate_lesson(self, lesson_id: str) -> None:
        with self._lock:
            self.registry.deactivate(lesson_id)

    def validate_lesson_start(self, lesson: LessonDefinition | Mapping[str, Any] | None) -> StartValidation:
        with self._lock:
            return validate_lesson_start(lesson, self.registry, self.renderer)

    def start_lesson(self, lesson: LessonDefinition | Mapping[str, Any] | None) -> StartValidation:
        """
        Validate, activate and begin a lesson (the "Begin Activities" button).

        Completed lessons are not re-activated.
        """
        with self._lock:
            try:
                validation = self.validate_lesson_start(lesson)
                if not validation.should_proceed:
                    return validation

                state = self.activate_lesson(lesson)
                if isinstance(state, InvalidLesson):
                    return StartValidation(should_proceed=False, status="error", message=state.reason)

                self.process_action(
                    BEGIN_ACTIVITIES,
                    {"lessonTitle": state.lesson.title, "lessonId": state.lesson_id},
                )
                return validation
            except Exception:
                logger.exception("Error starting lesson")
                return StartValidation(should_proceed=False, status="error", message="Lesson could not be started")

    def reset_lesson(self, lesson_id: str) -> None:
        """Admin/debug only: wipe condition state, scores and completion."""
        with self._lock:
            self.registry.reset(lesson_id)
            self.tracker.reset(lesson_id)

    # =========================================================================
    # Events
    # =========================================================================

    def process_action(self, action_type: str, action_params: dict[str, Any] | None = None) -> list[MatchResult]:
        """
        Main entry point called after any in-app action.

        Returns:
            Conditions newly satisfied by the action
        """
        params = action_params or {}
        with self._lock:
            try:
                if action_type == BEGIN_ACTIVITIES:
                    self._begin_activities(params)

                results = self.matcher.process_action(action_type, params)
                for result in results:
                    self.tracker.record_condition_met(result.lesson_id, result.condition_type)

                # Score the action before any completion freezes the lesson
                eligible: dict[str, CompletionType] = {}
                for lesson_id, _ in self.registry.active_items():
                    completion = self.tracker.record_action(lesson_id, action_type, params)
                    if completion is not None:
                        eligible[lesson_id] = completion

                self._complete_from_reactions(results)
                for lesson_id, completion in eligible.items():
                    if self.registry.is_active(lesson_id):
                        self.complete_lesson(lesson_id, completion)
                return results
            except Exception:
                logger.exception("Error processing action {}", action_type)
                return []

    def _begin_activities(self, params: dict[str, Any]) -> None:
        lesson_id = params.get("lessonId") or params.get("lesson_id")
        if not lesson_id:
            logger.error("Action 'begin_activities' requires a lessonId: {}", params)
            return
        state = self.registry.get(lesson_id)
        if state is None:
            logger.warning("begin_activities for inactive lesson {}", lesson_id)
            return
        state.start_clock()
        logger.info("Timer started for lesson {}", lesson_id)

    def _complete_from_reactions(self, results: Iterable[MatchResult]) -> None:
        for result in results:
            if result.kind != ReactionKind.COMPLETION or not self.registry.is_active(result.lesson_id):
                continue
            base = result.action_details.get("base_score", result.action_details.get("baseScore"))
            self.complete_lesson(
                result.lesson_id,
                CompletionType.REACTION,
                base_score=base if isinstance(base, (int, float)) and not isinstance(base, bool) else None,
            )

    def tick(self, now: float | None = None) -> list[MatchResult]:
        """Evaluate elapsed_time conditions for lessons whose clock is running."""
        with self._lock:
            try:
                results: list[MatchResult] = []
                for _, state in self.registry.active_items():
                    if state.started_at is None:
                        continue
                    results.extend(self.matcher.check_elapsed_time(state, state.current_elapsed(now)))
                for result in results:
                    self.tracker.record_condition_met(result.lesson_id, result.condition_type)
                self._complete_from_reactions(results)
                return results
            except Exception:
                logger.exception("Error evaluating elapsed time conditions")
                return []

    def record_lesson_mistake(
        self,
        mistake_type: str,
        details: dict[str, Any] | None = None,
        lesson_id: str | None = None,
    ) -> None:
        """Lower app usage score for one lesson, or every active lesson."""
        with self._lock:
            for target in self._targets(lesson_id):
                self.tracker.record_mistake(target, mistake_type, details)

    def add_quiz_score(
        self,
        earned: float,
        possible: float,
        label: str = "",
        lesson_id: str | None = None,
    ) -> None:
        """Record a quiz result; a lesson with nothing else outstanding completes."""
        with self._lock:
            try:
                for target in self._targets(lesson_id):
                    if not self.tracker.add_quiz_score(target, earned, possible, label):
                        continue
                    completion = self.tracker.quiz_completion(target)
                    if completion is not None:
                        self.complete_lesson(target, completion)
            except Exception:
                logger.exception("Error recording quiz score {}", label)

    def _targets(self, lesson_id: str | None) -> list[str]:
        if lesson_id is not None:
            return [lesson_id] if self.registry.is_active(lesson_id) else []
        return [lid for lid, _ in self.registry.active_items()]

    # =========================================================================
    # Completion
    # =========================================================================

    def complete_lesson(
        self,
        lesson_id: str,
        completion_type: CompletionType = CompletionType.MANUAL,
        base_score: float | None = None,
    ) -> CompletionRecord | None:
        """Finalize an active lesson and move it to the completed set."""
        with self._lock:
            state = self.registry.get(lesson_id)
            if state is None:
                logger.warning("Cannot complete inactive lesson {}", lesson_id)
                return None

            self.tracker.begin(state.lesson)
            record = self.tracker.complete(lesson_id, completion_type, base_score)
            if record is None:
                return None
            self.registry.mark_completed(record)
            return record

    def is_completed(self, lesson_id: str) -> bool:
        with self._lock:
            return self.registry.is_completed(lesson_id)

    def progress(self, lesson_id: str) -> LessonProgress | None:
        with self._lock:
            return self.tracker.progress(lesson_id)

    # =========================================================================
    # Snapshots
    # =========================================================================

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            active = [
                {
                    "id": state.lesson_id,
                    "title": state.lesson.title,
                    "elapsedTime": int(state.current_elapsed()),
                }
                for _, state in self.registry.active_items()
            ]
            states = [s for s in (self.registry.state_of(a["id"]) for a in active) if s]
            return SessionSnapshot(
                student_name=self.student_name,
                active_lessons=active,
                completed_lessons=self.registry.completed_records(),
                condition_state={s.lesson_id: list(s.condition_met) for s in states},
                fired_actions={s.lesson_id: sorted(s.fired_actions) for s in states},
            )

    def restore(
        self,
        snapshot: SessionSnapshot,
        lessons: Mapping[str, LessonDefinition],
    ) -> None:
        """
        Resume a previous session.

        Args:
            snapshot: State saved earlier (see src.lessons.session_store)
            lessons: Lesson definitions by id; unknown active ids are skipped
        """
        with self._lock:
            for record in snapshot.completed_lessons:
                self.registry.restore_completed(record)

            for entry in snapshot.active_lessons:
                lesson = lessons.get(entry["id"])
                if lesson is None:
                    logger.warning("Cannot resume unknown lesson {}", entry["id"])
                    continue
                state = self.activate_lesson(lesson)
                if isinstance(state, InvalidLesson):
                    continue
                met = snapshot.condition_state.get(lesson.id)
                if met is not None and len(met) == len(lesson.conditions):
                    state.condition_met = list(met)
                    self._sync_tracker(state)
                state.fired_actions = set(snapshot.fired_actions.get(lesson.id, []))
                state.elapsed_time = float(entry.get("elapsedTime", 0))
            logger.info(
                "Restored session for {}: {} active, {} completed",
                snapshot.student_name,
                len(self.registry),
                len(snapshot.completed_lessons),
            )

    # =========================================================================
    # Teardown
    # =========================================================================

    def attach(self, stop: Callable[[], None]) -> None:
        """Register a background task's stop handle to be released on close()."""
        self._stop_handles.append(stop)

    def close(self) -> None:
        """Stop background tasks (logout / navigation away)."""
        if self._closed:
            return
        self._closed = True
        while self._stop_handles:
            stop = self._stop_handles.pop()
            try:
                stop()
            except Exception:
                logger.exception("Error stopping background task")
        logger.info("Lesson session closed for {}", self.student_name)
