"""
Planner configuration using Pydantic Settings.

Values are read from AUTOPLANNER_* environment variables (or a local .env
file) and provide the defaults for a planning run and the engine limits.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from autoplanner.models.enums import (
    DayOrganization,
    OverdueTaskHandling,
    PlacementHeuristic,
    PrioritizationStrategy,
    ScheduleScope,
)
from autoplanner.utils.datetime_utils import parse_time_to_minutes


class Settings(BaseSettings):
    """Planner settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        env_prefix="AUTOPLANNER_",
        extra="ignore",
    )

    # ===========================================
    # Environment
    # ===========================================
    ENVIRONMENT: Literal["local", "test", "production"] = "local"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # ===========================================
    # Planning defaults
    # ===========================================
    # Work hours as "HH:MM"; an end before the start wraps past midnight
    DEFAULT_WORK_START: str = "09:00"
    DEFAULT_WORK_END: str = "17:00"
    DEFAULT_SCHEDULE_SCOPE: ScheduleScope = ScheduleScope.TODAY
    DEFAULT_PRIORITIZATION_STRATEGY: PrioritizationStrategy = PrioritizationStrategy.BY_URGENCY
    DEFAULT_DAY_ORGANIZATION: DayOrganization = DayOrganization.MAXIMIZE_PRODUCTIVITY
    DEFAULT_OVERDUE_HANDLING: OverdueTaskHandling = OverdueTaskHandling.NEXT_AVAILABLE
    DEFAULT_PLACEMENT_HEURISTIC: PlacementHeuristic = PlacementHeuristic.EARLIEST_FIT
    DEFAULT_ALLOW_SPLITTING: bool = True

    # ===========================================
    # Engine limits
    # ===========================================
    MAX_RECURRENCE_OCCURRENCES: int = Field(1000, ge=1)
    MAX_PLACEMENT_ATTEMPTS: int = Field(200, ge=1)
    MIN_SPLIT_CHUNK_MINUTES: int = Field(30, ge=1)

    # ===========================================
    # Runner
    # ===========================================
    # Wait for an in-flight run of the same user instead of rejecting
    WAIT_FOR_RUNNING_PLAN: bool = False

    @field_validator("DEFAULT_WORK_START", "DEFAULT_WORK_END")
    @classmethod
    def _validate_clock(cls, value: str) -> str:
        if parse_time_to_minutes(value) is None:
            raise ValueError(f"Invalid clock time '{value}', expected HH:MM")
        return value


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
