"""
Task model definitions.

Tasks are the immutable input of a planning run: what the user wants done
and the time constraints attached to it.
"""

from datetime import date, datetime, time
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from autoplanner.models.enums import DayPeriod, FrequencyType, IntervalUnit, Priority, Weekday

DEFAULT_TASK_MINUTES = 60
SPLITTABLE_MIN_MINUTES = 30


class TimePlanning(BaseModel):
    """A point in time with an optional day period."""

    model_config = ConfigDict(frozen=True)

    date_time: datetime = Field(..., description="Local date and time")
    day_period: DayPeriod = Field(DayPeriod.NONE, description="Preferred part of the day")

    @model_validator(mode="before")
    @classmethod
    def _normalize_all_day(cls, data: Any) -> Any:
        # ALLDAY carries no clock time
        if isinstance(data, dict) and data.get("day_period") in (DayPeriod.ALLDAY, DayPeriod.ALLDAY.value):
            value = data.get("date_time")
            if isinstance(value, datetime):
                data = {**data, "date_time": datetime.combine(value.date(), time.min)}
        return data


class DurationPlan(BaseModel):
    """Estimated task length."""

    model_config = ConfigDict(frozen=True)

    total_minutes: Optional[int] = Field(None, ge=0, description="Duration in minutes")


class OrdinalWeekday(BaseModel):
    """A weekday with an ordinal inside the month or year, e.g. 2nd Tuesday or last Friday (-1)."""

    model_config = ConfigDict(frozen=True)

    ordinal: int
    day_of_week: Weekday


class RepeatPlan(BaseModel):
    """Recurrence rule for a task."""

    model_config = ConfigDict(frozen=True)

    frequency_type: FrequencyType = FrequencyType.NONE
    interval: Optional[int] = Field(None, description="Repeat every N units (defaults to 1)")
    interval_unit: Optional[IntervalUnit] = Field(None, description="Unit for CUSTOM frequency")
    selected_days: list[Weekday] = Field(default_factory=list)
    ordinals_of_weekdays: list[OrdinalWeekday] = Field(default_factory=list)
    days_of_month: list[int] = Field(default_factory=list)
    months_of_year: list[int] = Field(default_factory=list)
    set_pos: list[int] = Field(default_factory=list)
    repeat_end_date: Optional[date] = Field(None, description="Last day (inclusive) of the series")
    repeat_occurrences: Optional[int] = Field(None, description="Total number of occurrences")

    @property
    def is_recurring(self) -> bool:
        return self.frequency_type != FrequencyType.NONE


class Task(BaseModel):
    """A user task with its time constraints."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=500)
    priority: Priority = Priority.NONE
    start_date_conf: Optional[TimePlanning] = Field(None, description="Start time or start date")
    end_date_conf: Optional[TimePlanning] = Field(None, description="Deadline")
    duration_conf: Optional[DurationPlan] = None
    allow_splitting: Optional[bool] = Field(None, description="None = decide from duration")
    repeat_plan: Optional[RepeatPlan] = None
    is_completed: bool = False

    @model_validator(mode="after")
    def validate_task(self) -> "Task":
        if not self.name.strip():
            raise ValueError("Task name cannot be blank")
        start = self.start_date_time
        end = self.end_date_time
        if start is not None and end is not None and start > end:
            raise ValueError("Task start cannot be after its end")
        return self

    @property
    def start_date_time(self) -> Optional[datetime]:
        return self.start_date_conf.date_time if self.start_date_conf else None

    @property
    def end_date_time(self) -> Optional[datetime]:
        return self.end_date_conf.date_time if self.end_date_conf else None

    @property
    def start_date(self) -> Optional[date]:
        start = self.start_date_time
        return start.date() if start else None

    @property
    def end_date(self) -> Optional[date]:
        end = self.end_date_time
        return end.date() if end else None

    @property
    def day_period(self) -> DayPeriod:
        return self.start_date_conf.day_period if self.start_date_conf else DayPeriod.NONE

    @property
    def has_period(self) -> bool:
        return self.day_period not in (DayPeriod.NONE, DayPeriod.ALLDAY)

    @property
    def has_specific_start_time(self) -> bool:
        start = self.start_date_time
        return start is not None and start.time() != time.min

    @property
    def is_recurring(self) -> bool:
        return self.repeat_plan is not None and self.repeat_plan.is_recurring

    @property
    def explicit_duration_minutes(self) -> Optional[int]:
        return self.duration_conf.total_minutes if self.duration_conf else None

    @property
    def effective_duration_minutes(self) -> int:
        minutes = self.explicit_duration_minutes
        if minutes is None:
            return DEFAULT_TASK_MINUTES
        return max(minutes, 0)

    @property
    def effective_allow_splitting(self) -> bool:
        if self.allow_splitting is not None:
            return self.allow_splitting
        return self.effective_duration_minutes >= SPLITTABLE_MIN_MINUTES

    def is_expired(self, now: datetime) -> bool:
        """
        Check whether the task's time has passed.

        Args:
            now: Run clock

        Returns:
            bool: True when the deadline is before now, or when a one-off task
                with no deadline and no duration started on an earlier day
        """
        end = self.end_date_time
        if end is not None:
            return end < now
        start = self.start_date_time
        if start is not None and self.explicit_duration_minutes is None and not self.is_recurring:
            return start.date() < now.date()
        return False

    def is_fixed_appointment(self) -> bool:
        """Start and end on the same calendar day with a positive duration."""
        start = self.start_date_time
        end = self.end_date_time
        if start is None or end is None or start.date() != end.date():
            return False
        explicit = self.explicit_duration_minutes
        return (explicit is not None and explicit > 0) or end > start
