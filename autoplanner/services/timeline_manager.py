"""
Timeline management.

The TimelineManager owns one DaySchedule per date of the planning window and
is the only code that changes block geometry. Every day is always covered by
sorted, contiguous blocks from 00:00 to 24:00.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional
from uuid import UUID

from autoplanner.core.logger import setup_logger
from autoplanner.models.enums import (
    ConflictType,
    DayOrganization,
    DayPeriod,
    Occupancy,
    PlacementHeuristic,
    Priority,
)
from autoplanner.models.planning import BlockConflict, BlockFailure, BlockPlaced, BlockPlacementResult
from autoplanner.models.task import Task
from autoplanner.models.timeline import DaySchedule, TimeBlock
from autoplanner.utils.datetime_utils import (
    MINUTES_PER_DAY,
    at_minutes,
    date_range,
    end_of_day,
    start_of_day,
    time_to_minutes,
)

logger = setup_logger(__name__)

# Clock ranges of the day periods, minutes from midnight
PERIOD_WINDOWS: dict[DayPeriod, tuple[int, int]] = {
    DayPeriod.MORNING: (6 * 60, 12 * 60),
    DayPeriod.EVENING: (12 * 60, 18 * 60),
    DayPeriod.NIGHT: (18 * 60, 24 * 60),
}

BUFFER_GAP_MINUTES = 10
COFFEE_BREAK_MINUTES = 15
LUNCH_MINUTES = 60


@dataclass(frozen=True)
class Slot:
    """A candidate placement: [start, end) inside free space ending at available_end."""

    start: datetime
    end: datetime
    available_end: datetime

    @property
    def available_minutes(self) -> int:
        return int((self.available_end - self.start).total_seconds() // 60)


class TimelineManager:
    """Owns the day schedules of a planning run."""

    def __init__(self):
        self.day_schedules: dict[date, DaySchedule] = {}
        self.day_organization = DayOrganization.MAXIMIZE_PRODUCTIVITY
        self.work_start = time(9, 0)
        self.work_end = time(17, 0)

    # ===========================================
    # Setup
    # ===========================================

    def initialize(
        self,
        start_date: date,
        end_date: date,
        work_start: time,
        work_end: time,
        initial_period_tasks: Optional[dict[date, dict[DayPeriod, list[Task]]]] = None,
        day_organization: DayOrganization = DayOrganization.MAXIMIZE_PRODUCTIVITY,
    ) -> None:
        """
        Build one empty DaySchedule per date in [start_date, end_date].

        Args:
            start_date: First date of the window
            end_date: Last date of the window (inclusive)
            work_start: Daily work start
            work_end: Daily work end (before work_start wraps past midnight,
                equal to work_start means the whole day is workable)
            initial_period_tasks: Period tasks waiting for a slot, by date and period
            day_organization: Layout style; BALANCED_SCHEDULE adds breaks
        """
        self.day_schedules = {}
        self.day_organization = day_organization
        self.work_start = work_start
        self.work_end = work_end
        initial_period_tasks = initial_period_tasks or {}

        for day in date_range(start_date, end_date):
            schedule = DaySchedule(
                date=day,
                work_start=work_start,
                work_end=work_end,
                pending_period_tasks={
                    period: list(tasks) for period, tasks in initial_period_tasks.get(day, {}).items()
                },
            )
            schedule.blocks = self._initial_blocks(schedule)
            self.day_schedules[day] = schedule
            if day_organization == DayOrganization.BALANCED_SCHEDULE:
                self._add_regular_breaks(schedule)

        logger.info(
            f"Timeline initialized: {start_date} to {end_date} "
            f"({len(self.day_schedules)} day(s), work {work_start:%H:%M}-{work_end:%H:%M}, "
            f"{day_organization.value})"
        )

    def _initial_blocks(self, schedule: DaySchedule) -> list[TimeBlock]:
        blocks: list[TimeBlock] = []
        cursor = 0
        for start, end in self._work_intervals(schedule.date):
            if start > cursor:
                blocks.append(self._background_block(schedule.date, cursor, start, Occupancy.OUT_OF_HOURS))
            blocks.append(self._background_block(schedule.date, start, end, Occupancy.FREE))
            cursor = end
        if cursor < MINUTES_PER_DAY:
            blocks.append(self._background_block(schedule.date, cursor, MINUTES_PER_DAY, Occupancy.OUT_OF_HOURS))
        return self._merge(blocks)

    @staticmethod
    def _background_block(day: date, start: int, end: int, occupancy: Occupancy) -> TimeBlock:
        return TimeBlock(start=at_minutes(day, start), end=at_minutes(day, end), occupancy=occupancy)

    def _add_regular_breaks(self, schedule: DaySchedule) -> None:
        work_start, work_end = schedule.work_window()
        coffee = timedelta(minutes=COFFEE_BREAK_MINUTES)

        break_start = work_start + timedelta(hours=2, minutes=30)
        while break_start + coffee < work_end - timedelta(hours=1):
            self._convert_exact_free(break_start, break_start + coffee)
            break_start += timedelta(hours=3)

        lunch = timedelta(minutes=LUNCH_MINUTES)
        preferred = at_minutes(schedule.date, 12 * 60 + 30)
        if work_start < preferred and preferred + lunch < work_end and self._is_free(preferred, preferred + lunch):
            self._convert_exact_free(preferred, preferred + lunch)
            return
        slot = self.find_slot(
            LUNCH_MINUTES,
            max(work_start, at_minutes(schedule.date, 12 * 60)),
            min(work_end, at_minutes(schedule.date, 14 * 60)),
            PlacementHeuristic.EARLIEST_FIT,
        )
        if slot is not None:
            self._convert_exact_free(slot.start, slot.end)

    def _convert_exact_free(self, start: datetime, end: datetime) -> Optional[TimeBlock]:
        if not self._is_free(start, end):
            return None
        result = self.place_task(None, start, end, Occupancy.BUFFER)
        if isinstance(result, BlockPlaced):
            return result.block
        return None

    # ===========================================
    # Queries
    # ===========================================

    @property
    def dates(self) -> list[date]:
        return sorted(self.day_schedules)

    def get_day_schedule(self, day: date) -> Optional[DaySchedule]:
        return self.day_schedules.get(day)

    def pending_period_tasks(self) -> list[tuple[date, DayPeriod, Task]]:
        pending: list[tuple[date, DayPeriod, Task]] = []
        for day in self.dates:
            for period, tasks in self.day_schedules[day].pending_period_tasks.items():
                pending.extend((day, period, task) for task in tasks)
        return pending

    def blocks_for_task(self, task_id: UUID) -> list[TimeBlock]:
        return [
            block
            for day in self.dates
            for block in self.day_schedules[day].blocks
            if block.task_id == task_id
        ]

    def work_window(self, day: date) -> tuple[datetime, datetime]:
        """Work session starting on ``day`` (uses the run's work hours if the date is outside the window)."""
        schedule = self._schedule_or_default(day)
        return schedule.work_window()

    def period_window(self, day: date, period: DayPeriod) -> tuple[datetime, datetime]:
        """
        Intersection of a day period with the work hours of ``day``.

        Returns:
            tuple[datetime, datetime]: Window, or (midnight, midnight) when the
                period lies entirely outside work hours
        """
        period_start, period_end = PERIOD_WINDOWS[period]
        work_start_minutes = time_to_minutes(self.work_start)
        work_end_minutes = time_to_minutes(self.work_end)
        if self.work_start == self.work_end:
            work_start_minutes, work_end_minutes = 0, MINUTES_PER_DAY
        elif self.work_end < self.work_start:
            work_end_minutes = MINUTES_PER_DAY

        start = max(work_start_minutes, period_start)
        end = min(work_end_minutes, period_end)
        if end <= start:
            return start_of_day(day), start_of_day(day)
        return at_minutes(day, start), at_minutes(day, end)

    def is_within_work_hours(self, start: datetime, end: datetime) -> bool:
        """Check that every minute of [start, end) falls inside work hours."""
        cursor = start
        while cursor < end:
            day = cursor.date()
            segment_end = min(end, end_of_day(day))
            inside = any(
                at_minutes(day, interval_start) <= cursor and segment_end <= at_minutes(day, interval_end)
                for interval_start, interval_end in self._work_intervals(day)
            )
            if not inside:
                return False
            cursor = segment_end
        return True

    def _schedule_or_default(self, day: date) -> DaySchedule:
        schedule = self.get_day_schedule(day)
        if schedule is None:
            schedule = DaySchedule(date=day, work_start=self.work_start, work_end=self.work_end)
        return schedule

    def _work_intervals(self, day: date) -> list[tuple[int, int]]:
        schedule = self._schedule_or_default(day)
        return [(start, end) for start, end in schedule.work_intervals() if end > start]

    def _is_free(self, start: datetime, end: datetime) -> bool:
        schedule = self.get_day_schedule(start.date())
        if schedule is None:
            return False
        return any(block.is_free and block.start <= start and end <= block.end for block in schedule.blocks)

    # ===========================================
    # Slot search
    # ===========================================

    def find_slot(
        self,
        duration_minutes: int,
        min_time: datetime,
        max_time: datetime,
        heuristic: PlacementHeuristic = PlacementHeuristic.EARLIEST_FIT,
    ) -> Optional[Slot]:
        """
        Find free space for ``duration_minutes`` inside [min_time, max_time).

        Free blocks that touch across midnight count as one stretch, so the
        returned slot may span two dates.

        Args:
            duration_minutes: Required length
            min_time: Earliest start
            max_time: Latest end
            heuristic: EARLIEST_FIT (smallest start) or BEST_FIT (smallest leftover)

        Returns:
            Optional[Slot]: Best slot, or None when nothing fits
        """
        if duration_minutes <= 0 or max_time <= min_time:
            return None
        needed = timedelta(minutes=duration_minutes)

        candidates = [
            Slot(start=run_start, end=run_start + needed, available_end=run_end)
            for run_start, run_end in self._free_runs(min_time, max_time)
            if run_end - run_start >= needed
        ]
        if not candidates:
            return None
        if heuristic == PlacementHeuristic.BEST_FIT:
            return min(candidates, key=lambda slot: (slot.available_end - slot.end, slot.start))
        return min(candidates, key=lambda slot: slot.start)

    def _free_runs(self, min_time: datetime, max_time: datetime) -> list[tuple[datetime, datetime]]:
        last_day = (max_time - timedelta(microseconds=1)).date()
        runs: list[tuple[datetime, datetime]] = []
        for day in date_range(min_time.date(), last_day):
            schedule = self.get_day_schedule(day)
            if schedule is None:
                continue
            for block in schedule.blocks:
                if not block.is_free or not block.overlaps(min_time, max_time):
                    continue
                start = max(block.start, min_time)
                end = min(block.end, max_time)
                if runs and runs[-1][1] == start:
                    runs[-1] = (runs[-1][0], end)
                else:
                    runs.append((start, end))
        return runs

    # ===========================================
    # Mutation
    # ===========================================

    def place_task(
        self,
        task: Optional[Task],
        start: datetime,
        end: datetime,
        occupancy: Occupancy,
    ) -> BlockPlacementResult:
        """
        Occupy [start, end) on the start's date.

        Args:
            task: Owning task, or None for buffers and breaks
            start: Block start
            end: Block end (at most the following midnight)
            occupancy: Occupancy of the new block

        Returns:
            BlockPlacementResult: Placed block, the blocking conflict, or a failure
        """
        if start >= end:
            return BlockFailure("Invalid time range")
        schedule = self.get_day_schedule(start.date())
        if schedule is None:
            return BlockFailure("No schedule found for date")
        if end > end_of_day(schedule.date):
            return BlockFailure("Block crosses midnight")

        task_id = task.id if task else None
        for block in schedule.blocks:
            if block.overlaps(start, end) and self._is_blocking(block, occupancy, task_id):
                return BlockConflict(
                    reason=self._conflict_reason(block),
                    conflicting_task_id=block.task_id,
                    conflict_time=max(start, block.start),
                    conflict_type=(
                        ConflictType.FIXED_VS_FIXED
                        if block.occupancy == Occupancy.FIXED_TASK
                        else ConflictType.PLACEMENT_ERROR
                    ),
                )

        new_block = TimeBlock(
            start=start,
            end=end,
            occupancy=occupancy,
            task_priority=task.priority if task else None,
            task_id=task_id,
            task_name=task.name if task else None,
            replaced=_clip(schedule.blocks, start, end),
        )
        schedule.blocks = self._merge(self._carve(schedule.blocks, start, end) + [new_block])
        return BlockPlaced(new_block)

    def release_block(self, block: TimeBlock) -> None:
        """Restore what a placed block covered before it was placed."""
        schedule = self.get_day_schedule(block.start.date())
        if schedule is None:
            return
        kept: list[TimeBlock] = []
        for existing in schedule.blocks:
            owned = (
                existing.overlaps(block.start, block.end)
                and existing.occupancy == block.occupancy
                and existing.task_id == block.task_id
            )
            if not owned:
                kept.append(existing)
                continue
            kept.extend(self._carve([existing], block.start, block.end))
            released_start = max(existing.start, block.start)
            released_end = min(existing.end, block.end)
            restored = _clip(block.replaced, released_start, released_end)
            if not restored:
                restored = self._background_segments(schedule.date, released_start, released_end)
            kept.extend(restored)
        schedule.blocks = self._merge(kept)

    def add_buffer_or_break(
        self,
        task_end: datetime,
        task: Task,
        organization: DayOrganization,
    ) -> Optional[TimeBlock]:
        """
        Reserve a short buffer right after a task.

        Only buffer-generating organizations add one, and only when the exact
        range is free and stays inside work hours.

        Returns:
            Optional[TimeBlock]: The buffer block, or None when none was added
        """
        if not organization.uses_buffers:
            return None
        buffer_end = task_end + timedelta(minutes=self.buffer_minutes(task))
        day = task_end.date()
        if buffer_end > end_of_day(day):
            return None
        inside_work = any(
            at_minutes(day, start) <= task_end and buffer_end <= at_minutes(day, end)
            for start, end in self._work_intervals(day)
        )
        if not inside_work:
            return None
        return self._convert_exact_free(task_end, buffer_end)

    @staticmethod
    def buffer_minutes(task: Task) -> int:
        if task.priority == Priority.HIGH:
            return 20
        minutes = task.effective_duration_minutes
        if minutes >= 120:
            return 15
        if minutes >= 60:
            return 10
        return 5

    @staticmethod
    def buffer_gap(organization: DayOrganization) -> timedelta:
        """Minimum gap between consecutive chunks of a split task."""
        return timedelta(minutes=BUFFER_GAP_MINUTES if organization.uses_buffers else 0)

    # ===========================================
    # Block helpers
    # ===========================================

    @staticmethod
    def _is_blocking(block: TimeBlock, occupancy: Occupancy, task_id: Optional[UUID]) -> bool:
        if block.is_free:
            return False
        if block.occupancy == Occupancy.BUFFER and occupancy != Occupancy.FIXED_TASK:
            return False
        if block.occupancy == Occupancy.OUT_OF_HOURS and occupancy == Occupancy.FIXED_TASK:
            return False
        if task_id is not None and block.task_id == task_id:
            return False
        return True

    @staticmethod
    def _conflict_reason(block: TimeBlock) -> str:
        if block.occupancy == Occupancy.FIXED_TASK:
            return f"Overlaps fixed task '{block.task_name}'"
        if block.occupancy in (Occupancy.PERIOD_TASK, Occupancy.FLEXIBLE_TASK):
            return f"Overlaps scheduled task '{block.task_name}'"
        if block.occupancy == Occupancy.BUFFER:
            return "Overlaps a buffer or break"
        return "Outside work hours"

    @staticmethod
    def _carve(blocks: list[TimeBlock], start: datetime, end: datetime) -> list[TimeBlock]:
        """Blocks with [start, end) cut out."""
        remaining: list[TimeBlock] = []
        for block in blocks:
            if not block.overlaps(start, end):
                remaining.append(block)
                continue
            if block.start < start:
                remaining.append(_copy_block(block, block.start, start))
            if block.end > end:
                remaining.append(_copy_block(block, end, block.end))
        return remaining

    def _background_segments(self, day: date, start: datetime, end: datetime) -> list[TimeBlock]:
        """FREE inside work hours and OUT_OF_HOURS elsewhere, covering [start, end)."""
        segments: list[TimeBlock] = []
        cursor = start
        for interval_start, interval_end in self._work_intervals(day):
            free_start = max(cursor, at_minutes(day, interval_start))
            free_end = min(end, at_minutes(day, interval_end))
            if free_end <= free_start:
                continue
            if free_start > cursor:
                segments.append(TimeBlock(start=cursor, end=free_start, occupancy=Occupancy.OUT_OF_HOURS))
            segments.append(TimeBlock(start=free_start, end=free_end, occupancy=Occupancy.FREE))
            cursor = free_end
        if cursor < end:
            segments.append(TimeBlock(start=cursor, end=end, occupancy=Occupancy.OUT_OF_HOURS))
        return segments

    @staticmethod
    def _merge(blocks: list[TimeBlock]) -> list[TimeBlock]:
        """Sort, drop empty blocks and join touching non-task blocks of the same kind."""
        merged: list[TimeBlock] = []
        for block in sorted(blocks, key=lambda item: item.start):
            if block.end <= block.start:
                continue
            previous = merged[-1] if merged else None
            if (
                previous is not None
                and previous.end == block.start
                and previous.occupancy == block.occupancy
                and not block.occupancy.is_task
                and previous.task_id is None
                and block.task_id is None
            ):
                joined = _copy_block(previous, previous.start, block.end)
                joined.replaced = previous.replaced + block.replaced
                merged[-1] = joined
            else:
                merged.append(block)
        return merged


def _copy_block(block: TimeBlock, start: datetime, end: datetime) -> TimeBlock:
    return TimeBlock(
        start=start,
        end=end,
        occupancy=block.occupancy,
        task_priority=block.task_priority,
        task_id=block.task_id,
        task_name=block.task_name,
        replaced=_clip(block.replaced, start, end),
    )


def _clip(blocks: list[TimeBlock], start: datetime, end: datetime) -> list[TimeBlock]:
    """Copies of the blocks overlapping [start, end), cut to that range."""
    return [
        _copy_block(block, max(block.start, start), min(block.end, end)) for block in blocks if block.overlaps(start, end)
    ]
