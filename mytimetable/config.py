"""Timetable configuration loaded from environment variables.

Every field can be set with a MYTIMETABLE_ prefixed environment variable
(e.g. MYTIMETABLE_TOTAL_WEEKS=18) or from a local .env file.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


def default_store_path() -> Path:
    """
    Return the default location of the occurrence store inside the package.

    Keeps user data colocated with the package and avoids hard-coded absolute paths.
    """
    base_dir = Path(__file__).resolve().parent
    return base_dir / "data" / "occurrences.json"


class TimetableConfig(BaseSettings):
    """Timetable configuration with sensible defaults."""

    # Storage
    store_path: str = Field(
        default="",
        description="Path of the occurrence JSON store (empty = package data dir)",
    )

    # Term layout
    total_weeks: int = Field(
        default=20,
        ge=1,
        description="Number of teaching weeks in the term",
    )
    max_daily_slots: int = Field(
        default=12,
        ge=1,
        description="Number of periods in the fixed daily grid",
    )
    default_span: int = Field(
        default=2,
        ge=1,
        description="Default number of periods a new course occupies",
    )
    term_start: Optional[date] = Field(
        default=None,
        description="Monday of week 1, used to compute the current week",
    )

    # Display
    hide_non_current_week: bool = Field(
        default=False,
        description="Leave a slot empty instead of showing a course from another week",
    )
    show_weekend: bool = Field(
        default=True,
        description="Show Saturday and Sunday columns in the week grid",
    )

    # Rescheduling
    enforce_equal_week_count: bool = Field(
        default=False,
        description="Reject reschedules whose target weeks differ in count from the moved weeks",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format",
    )
    log_level: str = Field(
        default="WARNING",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "MYTIMETABLE_",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def resolved_store_path(self) -> Path:
        return Path(self.store_path) if self.store_path else default_store_path()


# Singleton pattern
_config: TimetableConfig | None = None


def get_config() -> TimetableConfig:
    """Get the timetable configuration singleton.

    Returns:
        TimetableConfig: configuration instance
    """
    global _config
    if _config is None:
        _config = TimetableConfig()
    return _config
