"""
Content reactions: append a text block to the lesson narrative.
"""

from typing import Any

from . import ReactionKind, register
from .base import ContentPayload, Renderer, split_known, text_field


@register(ReactionKind.CONTENT)
class ContentHandler:
    """Handler for add_text_block."""

    def validate(self, details: dict[str, Any]) -> bool:
        return text_field(details, "content", "text", "message") is not None

    def build(self, action_type: str, details: dict[str, Any]) -> ContentPayload:
        return ContentPayload(
            action_type=action_type,
            title=text_field(details, "title", "header"),
            content=text_field(details, "content", "text", "message") or "",
            extra=split_known(details, "title", "header", "content", "text", "message"),
        )

    def fire(self, payload: ContentPayload, renderer: Renderer) -> None:
        renderer.append_slide(payload.to_dict())
