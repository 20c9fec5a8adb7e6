"""
Completion reactions.

Firing one only shows the optional congratulation message; moving the lesson
to the completed set is done by the session once dispatch reports COMPLETION.
"""

from numbers import Real
from typing import Any

from . import ReactionKind, register
from .base import CompletionPayload, Renderer, split_known, text_field


@register(ReactionKind.COMPLETION)
class CompletionHandler:

    def validate(self, details: dict[str, Any]) -> bool:
        base = details.get("base_score", details.get("baseScore"))
        return base is None or (isinstance(base, Real) and 0 <= base <= 100)

    def build(self, action_type: str, details: dict[str, Any]) -> CompletionPayload:
        base = details.get("base_score", details.get("baseScore"))
        if isinstance(base, bool) or not isinstance(base, Real):
            base = None
        return CompletionPayload(
            action_type=action_type,
            title=text_field(details, "title"),
            message=text_field(details, "message"),
            base_score=float(base) if base is not None else None,
            extra=split_known(details, "title", "message", "base_score", "baseScore"),
        )

    def fire(self, payload: CompletionPayload, renderer: Renderer) -> None:
        if payload.message:
            renderer.show_modal(payload.to_dict())
