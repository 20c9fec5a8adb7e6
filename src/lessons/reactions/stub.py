"""
Placeholder reactions for simulator features that do not exist yet.
"""

from typing import Any

from loguru import logger

from . import ReactionKind, register
from .base import ReactionPayload, Renderer


@register(ReactionKind.STUB)
class StubHandler:
    """Logs the request and does nothing else."""

    def validate(self, details: dict[str, Any]) -> bool:
        return True

    def build(self, action_type: str, details: dict[str, Any]) -> ReactionPayload:
        return ReactionPayload(action_type=action_type, extra=details)

    def fire(self, payload: ReactionPayload, renderer: Renderer) -> None:
        logger.info("Feature coming soon: {} {}", payload.action_type, payload.extra)
