"""
Display reactions: modal messages, tips, warnings and SMART-goal feedback.
"""

from typing import Any

from . import ReactionKind, register
from .base import MessagePayload, Renderer, split_known, text_field

# Default modal titles for authored messages that omit one
DEFAULT_TITLES = {
    "show_tip": "Tip",
    "suggest_action": "Suggestion",
    "praise_good_habit": "Nice Work!",
    "warn_poor_choice": "Careful",
    "explain_consequence": "What Happened?",
    "validate_smart_goal": "SMART Goal Check",
    "guide_goal_improvement": "Improve Your Goal",
    "congratulate_smart_goal": "Great Goal!",
    "notify_lesson_already_completed": "Lesson Complete",
    "notify_lesson_resumed": "Lesson Partially Started",
}


@register(ReactionKind.DISPLAY)
class DisplayHandler:
    """Handler for modal-style messages."""

    def validate(self, details: dict[str, Any]) -> bool:
        return text_field(details, "message", "text", "content") is not None

    def build(self, action_type: str, details: dict[str, Any]) -> MessagePayload:
        return MessagePayload(
            action_type=action_type,
            title=text_field(details, "title") or DEFAULT_TITLES.get(action_type),
            message=text_field(details, "message", "text", "content") or "",
            extra=split_known(details, "title", "message", "text", "content"),
        )

    def fire(self, payload: MessagePayload, renderer: Renderer) -> None:
        renderer.show_modal(payload.to_dict())
