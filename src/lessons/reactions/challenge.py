"""
Challenge reactions: ask the student to perform a banking task.
"""

from numbers import Real
from typing import Any

from . import ReactionKind, register
from .base import ChallengePayload, Renderer, split_known, text_field

_PREFIX = "challenge_"


@register(ReactionKind.CHALLENGE)
class ChallengeHandler:
    """Handler for interactive challenge surfaces."""

    def validate(self, details: dict[str, Any]) -> bool:
        amount = details.get("target_amount", details.get("amount"))
        return amount is None or (isinstance(amount, Real) and not isinstance(amount, bool))

    def build(self, action_type: str, details: dict[str, Any]) -> ChallengePayload:
        amount = details.get("target_amount", details.get("amount"))
        if isinstance(amount, bool) or not isinstance(amount, Real):
            amount = None
        return ChallengePayload(
            action_type=action_type,
            title=text_field(details, "title") or "Challenge",
            message=text_field(details, "message", "text", "instructions"),
            challenge_type=action_type.removeprefix(_PREFIX),
            target_amount=float(amount) if amount is not None else None,
            extra=split_known(details, "title", "message", "text", "instructions", "target_amount", "amount"),
        )

    def fire(self, payload: ChallengePayload, renderer: Renderer) -> None:
        renderer.show_challenge(payload.to_dict())
