"""
Condition Matcher.

Scans every active lesson for conditions whose type matches an incoming action,
checks value guards, marks satisfied conditions met and fires their reaction.
Reactions are strictly one-shot: a met condition is skipped on every later event.
"""

from __future__ import annotations

from dataclasses import dataclass
from numbers import Real
from typing import Any

from loguru import logger

from src.lessons.guards import guard_satisfied
from src.lessons.models import ELAPSED_TIME, Condition
from src.lessons.reactions import ReactionKind, dispatch
from src.lessons.reactions.base import LoggingRenderer, Renderer
from src.lessons.registry import LessonRegistry, LessonState


@dataclass(frozen=True)
class MatchResult:
    """One condition that was satisfied by an event."""

    lesson_id: str
    condition_index: int
    condition_type: str
    action_type: str
    action_details: dict[str, Any]
    kind: ReactionKind | None  # None when the reaction is unknown or failed

    @property
    def dispatched(self) -> bool:
        return self.kind is not None


class ConditionMatcher:
    """Evaluates action events against the conditions of active lessons."""

    def __init__(self, registry: LessonRegistry, renderer: Renderer | None = None):
        self.registry = registry
        self.renderer = renderer or LoggingRenderer()

    def process_action(self, action_type: str, action_params: dict[str, Any] | None = None) -> list[MatchResult]:
        """
        Match an action against all active lessons.

        Args:
            action_type: Event tag (e.g. "transfer_completed")
            action_params: Parameters reported with the event

        Returns:
            Conditions newly satisfied by this event, in lesson/condition order
        """
        params = action_params or {}
        logger.debug("Processing action: {} {}", action_type, params)

        if len(self.registry) == 0:
            logger.debug("No active lessons to check")
            return []

        results: list[MatchResult] = []
        for lesson_id, state in self.registry.active_items():
            matching = [
                (i, c) for i, c in enumerate(state.lesson.conditions) if c.condition_type == action_type
            ]
            if not matching:
                logger.debug("Action '{}' has no matching conditions in lesson {}", action_type, state.lesson.title)
                continue

            logger.debug("Found {} matching condition(s) in lesson {}", len(matching), state.lesson.title)
            for index, condition in matching:
                if state.is_met(index):
                    continue
                if not guard_satisfied(condition.condition_value, params):
                    logger.debug("Condition not met for action: {}", action_type)
                    continue
                results.append(self._fire(state, index, condition))

        return results

    def check_elapsed_time(self, state: LessonState, elapsed_seconds: float) -> list[MatchResult]:
        """Fire elapsed_time conditions whose threshold has been reached."""
        results: list[MatchResult] = []
        for index, condition in enumerate(state.lesson.conditions):
            if condition.condition_type != ELAPSED_TIME or state.is_met(index):
                continue
            threshold = (condition.condition_value or {}).get("seconds")
            if not isinstance(threshold, Real) or isinstance(threshold, bool):
                logger.warning(
                    "elapsed_time condition {} in {} has no numeric 'seconds'",
                    index + 1,
                    state.lesson_id,
                )
                continue
            if elapsed_seconds >= threshold:
                results.append(self._fire(state, index, condition))
        return results

    def _fire(self, state: LessonState, index: int, condition: Condition) -> MatchResult:
        state.mark_met(index)
        logger.info(
            "Condition matched in {}: {} -> {}",
            state.lesson.title,
            condition.condition_type,
            condition.action_type,
        )
        kind = dispatch(condition.action_type, condition.action_details, self.renderer)
        if kind is not None:
            state.fired_actions.add(condition.action_type)
        return MatchResult(
            lesson_id=state.lesson_id,
            condition_index=index,
            condition_type=condition.condition_type,
            action_type=condition.action_type,
            action_details=dict(condition.action_details),
            kind=kind,
        )
