"""
Timeline structures for one planning run.

These are mutable working structures owned by the TimelineManager, not
external value data, so they are plain dataclasses.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Optional
from uuid import UUID

from autoplanner.models.enums import DayPeriod, Occupancy, Priority
from autoplanner.models.task import Task
from autoplanner.utils.datetime_utils import MINUTES_PER_DAY, at_minutes, time_to_minutes


@dataclass
class TimeBlock:
    """A half-open interval [start, end) of one day."""

    start: datetime
    end: datetime
    occupancy: Occupancy
    task_priority: Optional[Priority] = None
    task_id: Optional[UUID] = None
    task_name: Optional[str] = None
    # blocks this one was placed over, restored on release
    replaced: list["TimeBlock"] = field(default_factory=list, repr=False, compare=False)

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    @property
    def is_free(self) -> bool:
        return self.occupancy == Occupancy.FREE

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and start < self.end


@dataclass
class DaySchedule:
    """All blocks of a single date, covering [00:00, 24:00) without gaps."""

    date: date
    work_start: time
    work_end: time
    blocks: list[TimeBlock] = field(default_factory=list)
    pending_period_tasks: dict[DayPeriod, list[Task]] = field(default_factory=dict)

    @property
    def is_all_day(self) -> bool:
        return self.work_start == self.work_end

    @property
    def wraps_midnight(self) -> bool:
        return self.work_end < self.work_start

    def work_intervals(self) -> list[tuple[int, int]]:
        """Working clock ranges of this date in minutes from midnight."""
        start = time_to_minutes(self.work_start)
        end = time_to_minutes(self.work_end)
        if self.is_all_day:
            return [(0, MINUTES_PER_DAY)]
        if self.wraps_midnight:
            return [(0, end), (start, MINUTES_PER_DAY)]
        return [(start, end)]

    def work_window(self) -> tuple[datetime, datetime]:
        """The work session that starts on this date, possibly ending on the next."""
        if self.is_all_day:
            return at_minutes(self.date, 0), at_minutes(self.date, MINUTES_PER_DAY)
        start = time_to_minutes(self.work_start)
        end = time_to_minutes(self.work_end)
        if self.wraps_midnight:
            end += MINUTES_PER_DAY
        return at_minutes(self.date, start), at_minutes(self.date, end)
