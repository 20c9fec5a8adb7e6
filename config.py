"""
Configuration settings for the lesson engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Session Telemetry (SDSM)
    # ========================================
    telemetry_endpoint: str = Field(
        default="http://localhost:4000/api/sdsm/session",
        description="Session persistence endpoint receiving lesson snapshots",
    )
    telemetry_interval_seconds: float = Field(
        default=1.0,
        description="Seconds between telemetry snapshots",
    )
    telemetry_timeout_seconds: float = Field(
        default=10.0,
        description="HTTP timeout for a single telemetry POST",
    )
    telemetry_enabled: bool = Field(
        default=True,
        description="Start the telemetry reporter with the session",
    )

    # ========================================
    # Scoring
    # ========================================
    content_score_cap: float = Field(
        default=30.0,
        description="Maximum points earned by viewing lesson content",
    )
    app_usage_ceiling: float = Field(
        default=70.0,
        description="Starting (and maximum) app usage score",
    )
    mistake_penalty: float = Field(
        default=5.0,
        description="App usage points removed per recorded mistake",
    )
    app_usage_floor_ratio: float = Field(
        default=0.65,
        ge=0.0,
        le=1.0,
        description="Share of app usage credited before any required action is met",
    )
    quiz_weight: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Weight of the quiz average in the final score",
    )
    plus_minus_grades: bool = Field(
        default=False,
        description="Use the A+/A/A- letter scale instead of plain letters",
    )

    # ========================================
    # Session Persistence
    # ========================================
    session_dir: Path = Field(
        default=Path.home() / ".lesson_engine" / "sessions",
        description="Directory for resumable session snapshots",
    )
    session_expiry_hours: int = Field(
        default=24 * 7,
        description="Snapshots older than this are ignored on resume",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Helper Methods
    # ========================================
    def get_scoring_config(self) -> dict[str, float | bool]:
        """Get scoring policy as a dictionary."""
        return {
            "content_score_cap": self.content_score_cap,
            "app_usage_ceiling": self.app_usage_ceiling,
            "mistake_penalty": self.mistake_penalty,
            "app_usage_floor_ratio": self.app_usage_floor_ratio,
            "quiz_weight": self.quiz_weight,
            "plus_minus_grades": self.plus_minus_grades,
        }

    def has_telemetry_configured(self) -> bool:
        """Check if snapshots should be pushed to the persistence endpoint."""
        return self.telemetry_enabled and bool(self.telemetry_endpoint)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
