"""
Lesson Condition & Completion Engine.

Watches in-app banking actions, matches them against per-lesson conditions,
fires one-shot pedagogical reactions and scores lesson completion.

Components:
- LessonRegistry: Active and completed lesson sets
- ConditionMatcher: Event -> condition matching with value guards
- reactions: Reaction library (display, challenge, content, completion)
- CompletionTracker: Content/app usage/quiz scoring and auto-completion
- LessonSession: Per-student facade owning all of the above
- LessonClock: Background elapsed_time checks
- SessionStore: Resumable JSON snapshots
"""

from .errors import InvalidLesson, LessonDefinitionError, LessonEngineError
from .grading import score_to_grade
from .lifecycle import StartValidation, validate_lesson_start
from .loader import load_lessons, parse_lessons
from .matcher import ConditionMatcher, MatchResult
from .models import CompletionRecord, CompletionType, Condition, LessonDefinition
from .registry import LessonRegistry, LessonState
from .session import LessonSession, SessionSnapshot
from .timer import LessonClock, StopHandle
from .tracker import CompletionTracker, ScoringPolicy

__all__ = [
    # Definitions
    "Condition",
    "LessonDefinition",
    "load_lessons",
    "parse_lessons",
    # Session
    "LessonSession",
    "SessionSnapshot",
    "LessonClock",
    "StopHandle",
    # Engine parts
    "LessonRegistry",
    "LessonState",
    "ConditionMatcher",
    "MatchResult",
    "CompletionTracker",
    "ScoringPolicy",
    "CompletionRecord",
    "CompletionType",
    "StartValidation",
    "validate_lesson_start",
    "score_to_grade",
    # Errors
    "LessonEngineError",
    "LessonDefinitionError",
    "InvalidLesson",
]
