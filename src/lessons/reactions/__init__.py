"""
Reaction handlers for lesson conditions.

Each action identifier authored on a condition (send_message, challenge_transfer,
add_text_block, ...) maps to one ReactionKind. Each kind has a handler module with:
- validate(): Check action details when the lesson is loaded
- build(): Turn raw details into the kind's payload struct
- fire(): Perform the side effect through the renderer
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from src.lessons.models import LessonDefinition
    from src.lessons.reactions.base import ReactionHandler, Renderer

from src.lessons.errors import UnknownReaction


class ReactionKind(str, Enum):
    """Categories of pedagogical reaction."""
    DISPLAY = "display"
    CHALLENGE = "challenge"
    CONTENT = "content"
    COMPLETION = "completion"
    STUB = "stub"


# Action identifier -> reaction kind
ACTION_KINDS: dict[str, ReactionKind] = {
    "send_message": ReactionKind.DISPLAY,
    "show_tip": ReactionKind.DISPLAY,
    "suggest_action": ReactionKind.DISPLAY,
    "praise_good_habit": ReactionKind.DISPLAY,
    "warn_poor_choice": ReactionKind.DISPLAY,
    "explain_consequence": ReactionKind.DISPLAY,
    "validate_smart_goal": ReactionKind.DISPLAY,
    "guide_goal_improvement": ReactionKind.DISPLAY,
    "congratulate_smart_goal": ReactionKind.DISPLAY,
    "notify_lesson_already_completed": ReactionKind.DISPLAY,
    "notify_lesson_resumed": ReactionKind.DISPLAY,

    "add_text_block": ReactionKind.CONTENT,

    "challenge_transfer": ReactionKind.CHALLENGE,
    "challenge_deposit": ReactionKind.CHALLENGE,
    "challenge_create_bill": ReactionKind.CHALLENGE,
    "challenge_create_income": ReactionKind.CHALLENGE,
    "challenge_save_amount": ReactionKind.CHALLENGE,
    "challenge_send_money": ReactionKind.CHALLENGE,
    "challenge_budget_balance": ReactionKind.CHALLENGE,

    "complete_lesson": ReactionKind.COMPLETION,
    "lesson_completion_trigger": ReactionKind.COMPLETION,

    # Placeholders until the simulator grows these features
    "add_virtual_transaction": ReactionKind.STUB,
    "advance_to_section": ReactionKind.STUB,
    "require_completion": ReactionKind.STUB,
    "unlock_feature": ReactionKind.STUB,
    "highlight_feature": ReactionKind.STUB,
    "force_account_switch": ReactionKind.STUB,
    "add_sample_bill": ReactionKind.STUB,
    "add_sample_income": ReactionKind.STUB,
    "show_calculation": ReactionKind.STUB,
    "compare_to_peers": ReactionKind.STUB,
    "restart_student": ReactionKind.STUB,
}


# Handler registry - populated by @register decorator
HANDLERS: dict[ReactionKind, "ReactionHandler"] = {}


def register(kind: ReactionKind):
    """Decorator to register a reaction handler."""
    def decorator(cls):
        HANDLERS[kind] = cls()
        return cls
    return decorator


def kind_of(action_type: str) -> ReactionKind | None:
    return ACTION_KINDS.get(action_type)


def get_handler(action_type: str | ReactionKind) -> "ReactionHandler | None":
    """Get the handler for an action identifier or reaction kind."""
    if isinstance(action_type, str) and not isinstance(action_type, ReactionKind):
        kind = ACTION_KINDS.get(action_type)
        if kind is None:
            return None
        action_type = kind
    return HANDLERS.get(action_type)


def dispatch(
    action_type: str,
    details: dict[str, Any] | None,
    renderer: "Renderer",
) -> ReactionKind | None:
    """
    Invoke the reaction registered for an action identifier.

    Never raises: unknown identifiers and renderer failures are logged.

    Returns:
        The kind of reaction that fired, or None if nothing fired
    """
    kind = ACTION_KINDS.get(action_type)
    handler = HANDLERS.get(kind) if kind else None
    if handler is None:
        logger.warning(UnknownReaction(action_type).describe())
        return None

    logger.info("Executing reaction: {}", action_type)
    try:
        payload = handler.build(action_type, dict(details or {}))
        handler.fire(payload, renderer)
    except Exception:
        logger.exception("Reaction '{}' failed", action_type)
        return None
    return kind


def validate_definition(lesson: "LessonDefinition") -> list[UnknownReaction]:
    """
    Check a lesson's conditions against the reaction library at load time.

    Returns:
        Conditions whose reaction is unknown (also logged as warnings)
    """
    problems: list[UnknownReaction] = []
    for index, condition in enumerate(lesson.conditions):
        handler = get_handler(condition.action_type)
        if handler is None:
            problem = UnknownReaction(condition.action_type, lesson.id, index)
            logger.warning(problem.describe())
            problems.append(problem)
        elif not handler.validate(condition.action_details):
            logger.warning(
                "Lesson {} condition {} ({}) has incomplete action details",
                lesson.id,
                index + 1,
                condition.action_type,
            )
    return problems


# Import handlers to trigger registration
from . import challenge
from . import completion
from . import content
from . import display
from . import stub

__all__ = [
    "ACTION_KINDS",
    "HANDLERS",
    "ReactionKind",
    "dispatch",
    "get_handler",
    "kind_of",
    "register",
    "validate_definition",
]
