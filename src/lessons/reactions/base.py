"""
Base protocol and payload types for reaction handlers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from loguru import logger


@dataclass
class ReactionPayload:
    """Common outbound shape: {title?, message?, ...details}."""

    action_type: str
    title: str | None = None
    message: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.extra)
        if self.title is not None:
            data["title"] = self.title
        if self.message is not None:
            data["message"] = self.message
        data["action_type"] = self.action_type
        return data


@dataclass
class MessagePayload(ReactionPayload):
    """Modal / tip / validation message."""


@dataclass
class ChallengePayload(ReactionPayload):
    """Interactive challenge surface."""

    challenge_type: str = ""
    target_amount: float | None = None

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["challenge_type"] = self.challenge_type
        if self.target_amount is not None:
            data["target_amount"] = self.target_amount
        return data


@dataclass
class ContentPayload(ReactionPayload):
    """Content block appended to the lesson narrative."""

    content: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["content"] = self.content
        return data


@dataclass
class CompletionPayload(ReactionPayload):
    """Author-declared lesson completion."""

    base_score: float | None = None


class Renderer(Protocol):
    """Rendering collaborator that owns modals, challenges and slides."""

    def show_modal(self, payload: dict[str, Any]) -> None:
        ...

    def show_challenge(self, payload: dict[str, Any]) -> None:
        ...

    def append_slide(self, payload: dict[str, Any]) -> None:
        ...


class LoggingRenderer:
    """Renderer used when no UI is attached; every surface becomes a log line."""

    def show_modal(self, payload: dict[str, Any]) -> None:
        logger.info("[modal] {}: {}", payload.get("title", ""), payload.get("message", ""))

    def show_challenge(self, payload: dict[str, Any]) -> None:
        logger.info("[challenge] {}: {}", payload.get("challenge_type", ""), payload.get("message", ""))

    def append_slide(self, payload: dict[str, Any]) -> None:
        logger.info("[slide] {}", payload.get("title") or payload.get("content", "")[:60])


class ReactionHandler(Protocol):
    """Protocol for reaction kind handlers."""

    def validate(self, details: dict[str, Any]) -> bool:
        """Check the payload at lesson load time. Returns True if usable."""
        ...

    def build(self, action_type: str, details: dict[str, Any]) -> ReactionPayload:
        """Turn raw action details into this kind's payload struct."""
        ...

    def fire(self, payload: ReactionPayload, renderer: Renderer) -> None:
        """Execute the reaction's side effect."""
        ...


def text_field(details: dict[str, Any], *keys: str) -> str | None:
    """First non-empty string among several alternative keys."""
    for key in keys:
        value = details.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def split_known(details: dict[str, Any], *known: str) -> dict[str, Any]:
    return {k: v for k, v in details.items() if k not in known}
