"""
Condition tracking utilities.

Debugging and reporting helpers over a LessonSession:
- Per-lesson condition summaries
- Lesson lookup by condition state (all met / all unmet / partial / completed)
- Condition history and before/after comparisons
- Text report and JSON-friendly export
- ConditionMonitor: polls for condition changes in the background
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Callable, Literal

from loguru import logger

from src.lessons.registry import LessonState
from src.lessons.timer import StopHandle

if TYPE_CHECKING:
    from src.lessons.session import LessonSession

ConditionFilter = Literal["all-met", "all-unmet", "partial", "completed"]


@dataclass(frozen=True)
class ConditionStatus:
    index: int
    condition_type: str
    action_type: str
    is_met: bool


@dataclass(frozen=True)
class LessonConditionSummary:
    """Condition state of one lesson."""

    lesson_id: str
    title: str
    is_active: bool
    is_completed: bool
    conditions: tuple[ConditionStatus, ...]

    @property
    def met_count(self) -> int:
        return sum(1 for c in self.conditions if c.is_met)

    @property
    def total_count(self) -> int:
        return len(self.conditions)

    @property
    def percent_met(self) -> float:
        if not self.conditions:
            return 0.0
        return round(self.met_count / self.total_count * 100, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "lessonId": self.lesson_id,
            "title": self.title,
            "isActive": self.is_active,
            "isCompleted": self.is_completed,
            "metCount": self.met_count,
            "totalCount": self.total_count,
            "percentMet": self.percent_met,
            "conditions": [
                {
                    "index": c.index,
                    "conditionType": c.condition_type,
                    "actionType": c.action_type,
                    "isMet": c.is_met,
                }
                for c in self.conditions
            ],
        }


def _summarize(session: "LessonSession", state: LessonState) -> LessonConditionSummary:
    return LessonConditionSummary(
        lesson_id=state.lesson_id,
        title=state.lesson.title,
        is_active=session.registry.is_active(state.lesson_id),
        is_completed=session.registry.is_completed(state.lesson_id),
        conditions=tuple(
            ConditionStatus(
                index=i,
                condition_type=c.condition_type,
                action_type=c.action_type,
                is_met=state.is_met(i),
            )
            for i, c in enumerate(state.lesson.conditions)
        ),
    )


def lesson_condition_summary(session: "LessonSession", lesson_id: str) -> LessonConditionSummary | None:
    """Summary for any lesson the session has seen, or None."""
    with session._lock:
        state = session.registry.state_of(lesson_id)
        return _summarize(session, state) if state else None


def all_condition_summaries(session: "LessonSession") -> list[LessonConditionSummary]:
    """Summaries for active lessons, in activation order."""
    with session._lock:
        return [_summarize(session, state) for _, state in session.registry.active_items()]


def find_lessons_by_condition_state(
    session: "LessonSession",
    condition_filter: ConditionFilter,
) -> list[LessonConditionSummary]:
    """
    Find active lessons by how many conditions are met.

    "completed" returns lessons in the completed set that the session still has
    condition state for.
    """
    if condition_filter == "completed":
        with session._lock:
            states = [session.registry.state_of(r.lesson_id) for r in session.registry.completed_records()]
            return [_summarize(session, s) for s in states if s is not None]

    summaries = all_condition_summaries(session)
    if condition_filter == "all-met":
        return [s for s in summaries if s.total_count and s.met_count == s.total_count]
    if condition_filter == "all-unmet":
        return [s for s in summaries if s.met_count == 0]
    if condition_filter == "partial":
        return [s for s in summaries if 0 < s.met_count < s.total_count]

    logger.warning("Unknown condition filter: {}", condition_filter)
    return []


def condition_history(session: "LessonSession", lesson_id: str) -> dict[str, Any] | None:
    """Met and unmet conditions plus fired reactions for one lesson."""
    summary = lesson_condition_summary(session, lesson_id)
    if summary is None:
        return None
    with session._lock:
        state = session.registry.state_of(lesson_id)
        fired = sorted(state.fired_actions) if state else []
        elapsed = state.current_elapsed() if state else 0.0
    return {
        "lessonId": lesson_id,
        "title": summary.title,
        "met": [c.condition_type for c in summary.conditions if c.is_met],
        "unmet": [c.condition_type for c in summary.conditions if not c.is_met],
        "firedActions": fired,
        "elapsedTime": round(elapsed, 1),
    }


def snapshot_conditions(session: "LessonSession") -> dict[str, tuple[bool, ...]]:
    """Condition flags for every active lesson."""
    with session._lock:
        return {lid: tuple(state.condition_met) for lid, state in session.registry.active_items()}


def diff_conditions(
    before: dict[str, tuple[bool, ...]],
    after: dict[str, tuple[bool, ...]],
) -> dict[str, list[int]]:
    """Condition indexes that flipped from unmet to met, per lesson."""
    changes: dict[str, list[int]] = {}
    for lesson_id, flags in after.items():
        previous = before.get(lesson_id, ())
        flipped = [i for i, met in enumerate(flags) if met and not (i < len(previous) and previous[i])]
        if flipped:
            changes[lesson_id] = flipped
    return changes


def compare_before_after_action(
    session: "LessonSession",
    action_type: str,
    action_params: dict[str, Any] | None = None,
) -> dict[str, list[int]]:
    """Run an action and report which conditions it satisfied."""
    before = snapshot_conditions(session)
    session.process_action(action_type, action_params)
    changes = diff_conditions(before, snapshot_conditions(session))
    logger.debug("Action {} changed conditions: {}", action_type, changes)
    return changes


def generate_tracking_report(session: "LessonSession") -> str:
    """Plain-text condition report for logs and bug reports."""
    summaries = all_condition_summaries(session)
    completed = session.registry.completed_records()

    lines = [
        "=== Lesson Condition Tracking Report ===",
        f"Student: {session.student_name}",
        f"Generated: {datetime.now(UTC).isoformat(timespec='seconds')}",
        f"Active lessons: {len(summaries)}",
        f"Completed lessons: {len(completed)}",
        "",
    ]
    for summary in summaries:
        lines.append(f"{summary.title} ({summary.lesson_id}): {summary.met_count}/{summary.total_count} met")
        for c in summary.conditions:
            mark = "x" if c.is_met else " "
            lines.append(f"  [{mark}] {c.condition_type} -> {c.action_type}")
    for record in completed:
        lines.append(f"{record.lesson_title} ({record.lesson_id}): completed, {record.score.grade}")
    return "\n".join(lines)


def export_tracking_data(session: "LessonSession") -> dict[str, Any]:
    """JSON-serializable dump of all condition and completion state."""
    return {
        "studentName": session.student_name,
        "exportedAt": datetime.now(UTC).isoformat(),
        "activeLessons": [s.to_dict() for s in all_condition_summaries(session)],
        "completedLessons": [r.to_payload() for r in session.registry.completed_records()],
    }


@dataclass
class ConditionMonitor:
    """
    Background watcher that reports condition changes.

    Usage:
        monitor = ConditionMonitor(session, on_change=print)
        stop = monitor.start()
        ...
        stop()
    """

    session: "LessonSession"
    on_change: Callable[[dict[str, list[int]]], None] | None = None
    interval_seconds: float = 1.0

    _thread: threading.Thread | None = field(default=None, repr=False)
    _stop_event: threading.Event = field(default_factory=threading.Event, repr=False)
    _handle: StopHandle | None = field(default=None, repr=False)
    _last: dict[str, tuple[bool, ...]] = field(default_factory=dict, repr=False)

    def start(self) -> StopHandle:
        if self._handle is not None and not self._handle.stopped:
            return self._handle

        self._last = snapshot_conditions(self.session)
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="condition-monitor", daemon=True)
        self._thread.start()
        self._handle = StopHandle(self._shutdown, name="condition-monitor")
        self.session.attach(self._handle)
        logger.info("Condition change monitoring enabled")
        return self._handle

    def poll(self) -> dict[str, list[int]]:
        """Compare against the last poll and report changes."""
        current = snapshot_conditions(self.session)
        changes = diff_conditions(self._last, current)
        self._last = current
        if changes:
            logger.info("Condition changes detected: {}", changes)
            if self.on_change:
                try:
                    self.on_change(changes)
                except Exception as exc:
                    logger.warning("Condition monitor callback failed: {}", exc)
        return changes

    def _shutdown(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=5.0)
        logger.info("Condition change monitoring stopped")

    def _loop(self) -> None:
        while not self._stop_event.wait(timeout=self.interval_seconds):
            self.poll()
