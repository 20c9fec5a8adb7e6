"""
Lesson session persistence.

Saves a student's lesson progress so elapsed time, met conditions and completed
lessons survive reloads. Sessions are stored as JSON files, one per student,
in the configured session directory (~/.lesson_engine/sessions/ by default).
"""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import ValidationError

from config import get_settings
from src.lessons.models import CompletionRecord
from src.lessons.session import SessionSnapshot


@dataclass
class StoredSession:
    """Serializable lesson session state."""

    student_name: str
    last_saved_at: str  # ISO format
    active_lessons: list[dict]  # [{id, title, elapsedTime}]
    condition_state: dict[str, list[bool]] = field(default_factory=dict)
    fired_actions: dict[str, list[str]] = field(default_factory=dict)
    completed_lessons: list[dict] = field(default_factory=list)  # camelCase CompletionRecords

    # Sessions older than this are considered stale
    expiry_hours: int = 168

    def is_expired(self) -> bool:
        last_saved = datetime.fromisoformat(self.last_saved_at)
        return datetime.now() - last_saved > timedelta(hours=self.expiry_hours)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "StoredSession":
        return cls(**data)

    @classmethod
    def from_snapshot(cls, snapshot: SessionSnapshot, expiry_hours: int | None = None) -> "StoredSession":
        return cls(
            student_name=snapshot.student_name,
            last_saved_at=datetime.now().isoformat(),
            active_lessons=[dict(a) for a in snapshot.active_lessons],
            condition_state={k: list(v) for k, v in snapshot.condition_state.items()},
            fired_actions={k: list(v) for k, v in snapshot.fired_actions.items()},
            completed_lessons=[r.to_payload() for r in snapshot.completed_lessons],
            expiry_hours=expiry_hours if expiry_hours is not None else get_settings().session_expiry_hours,
        )

    def to_snapshot(self) -> SessionSnapshot:
        records = []
        for data in self.completed_lessons:
            try:
                records.append(CompletionRecord.model_validate(data))
            except ValidationError as exc:
                logger.warning("Skipping unreadable completion record: {}", exc.errors()[0]["msg"])
        return SessionSnapshot(
            student_name=self.student_name,
            active_lessons=[dict(a) for a in self.active_lessons],
            completed_lessons=records,
            condition_state={k: list(v) for k, v in self.condition_state.items()},
            fired_actions={k: list(v) for k, v in self.fired_actions.items()},
        )


def _slug(student_name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", student_name.lower()).strip("-")
    return slug or "unknown-student"


class SessionStore:
    """
    Manages lesson session persistence.

    Sessions are stored as JSON files named after the student: {slug}.json
    """

    def __init__(self, session_dir: Optional[Path] = None):
        self.session_dir = session_dir or get_settings().session_dir
        self.session_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, student_name: str) -> Path:
        return self.session_dir / f"{_slug(student_name)}.json"

    def save(self, state: StoredSession) -> Path:
        """Save session state to disk."""
        state.last_saved_at = datetime.now().isoformat()
        filepath = self.path_for(state.student_name)

        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(state.to_dict(), f, indent=2)

        logger.debug("Saved lesson session for {} to {}", state.student_name, filepath)
        return filepath

    def save_snapshot(self, snapshot: SessionSnapshot) -> Path:
        return self.save(StoredSession.from_snapshot(snapshot))

    def load(self, student_name: str) -> Optional[StoredSession]:
        """Load a student's session, or None if missing, unreadable or expired."""
        filepath = self.path_for(student_name)
        if not filepath.exists():
            return None

        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
            state = StoredSession.from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError) as exc:
            logger.warning("Ignoring unreadable session file {}: {}", filepath, exc)
            return None

        if state.is_expired():
            logger.info("Session for {} has expired", student_name)
            return None
        return state

    def delete(self, student_name: str) -> bool:
        filepath = self.path_for(student_name)
        if filepath.exists():
            filepath.unlink()
            return True
        return False

    def cleanup_expired(self) -> int:
        """Remove all expired session files."""
        removed = 0
        for filepath in self.session_dir.glob("*.json"):
            try:
                with open(filepath, "r", encoding="utf-8") as f:
                    data = json.load(f)
                state = StoredSession.from_dict(data)
                if state.is_expired():
                    filepath.unlink()
                    removed += 1
            except (json.JSONDecodeError, KeyError, TypeError):
                # Remove corrupted files
                filepath.unlink()
                removed += 1

        return removed

    def list_sessions(self) -> list[StoredSession]:
        """List all non-expired sessions, most recent first."""
        sessions = []
        for filepath in self.session_dir.glob("*.json"):
            try:
                with open(filepath, "r", encoding="utf-8") as f:
                    data = json.load(f)
                state = StoredSession.from_dict(data)
                if not state.is_expired():
                    sessions.append(state)
            except (json.JSONDecodeError, KeyError, TypeError):
                continue

        return sorted(sessions, key=lambda x: x.last_saved_at, reverse=True)
