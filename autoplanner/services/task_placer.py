"""
Task placement.

Two passes over the timeline: fixed-time tasks first, at their exact
occurrence times, then every other task in priority order inside a search
window derived from its constraints.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, assert_never
from uuid import UUID

from autoplanner.core.exceptions import PlanningInvariantError
from autoplanner.core.logger import setup_logger
from autoplanner.models.enums import ConflictType, DayOrganization, Occupancy, PlacementHeuristic
from autoplanner.models.planner import ConflictItem, InfoItem, ScheduledTaskItem
from autoplanner.models.planning import (
    BlockConflict,
    BlockFailure,
    BlockPlaced,
    FixedOccurrence,
    PlacementConflict,
    PlacementFailure,
    PlacementResult,
    PlacementSuccess,
    PlanningTask,
)
from autoplanner.models.task import Task
from autoplanner.models.timeline import TimeBlock
from autoplanner.services.planning_context import PlanningContext
from autoplanner.services.timeline_manager import TimelineManager
from autoplanner.utils.datetime_utils import end_of_day, minutes_between, start_of_day

logger = setup_logger(__name__)

MIN_SPLIT_CHUNK_MINUTES = 30
MAX_PLACEMENT_ATTEMPTS = 200


@dataclass(frozen=True)
class PlacementScope:
    """Run-wide parameters shared by every placement."""

    today: date
    scope_start: date
    scope_end: date
    now: datetime
    day_organization: DayOrganization = DayOrganization.MAXIMIZE_PRODUCTIVITY
    heuristic: PlacementHeuristic = PlacementHeuristic.EARLIEST_FIT
    allow_splitting: bool = True

    @property
    def window_start(self) -> datetime:
        return start_of_day(self.scope_start)

    @property
    def window_end(self) -> datetime:
        return end_of_day(self.scope_end)


class SearchCategory(str, Enum):
    """Which constraint decided a task's search window."""

    OVERDUE_TODAY = "OVERDUE_TODAY"
    OVERDUE_ON_DATE = "OVERDUE_ON_DATE"
    OVERDUE = "OVERDUE"
    PERIOD = "PERIOD"
    DATE = "DATE"
    FLEXIBLE = "FLEXIBLE"


@dataclass(frozen=True)
class SearchWindow:
    min_time: datetime
    max_time: datetime
    occupancy: Occupancy
    category: SearchCategory
    is_flexible: bool
    target_date: Optional[date] = None

    def contains(self, min_time: datetime, max_time: datetime) -> bool:
        return self.min_time <= min_time and max_time <= self.max_time


_FAILURE_TYPES = {
    SearchCategory.OVERDUE_TODAY: ConflictType.NO_SLOT_ON_DATE,
    SearchCategory.OVERDUE_ON_DATE: ConflictType.NO_SLOT_ON_DATE,
    SearchCategory.DATE: ConflictType.NO_SLOT_ON_DATE,
    SearchCategory.PERIOD: ConflictType.CANNOT_FIT_PERIOD,
    SearchCategory.OVERDUE: ConflictType.NO_SLOT_IN_SCOPE,
    SearchCategory.FLEXIBLE: ConflictType.NO_SLOT_IN_SCOPE,
}


class TaskPlacer:
    """Places tasks on the timeline and records the outcome on the context."""

    def __init__(
        self,
        min_split_chunk_minutes: int = MIN_SPLIT_CHUNK_MINUTES,
        max_placement_attempts: int = MAX_PLACEMENT_ATTEMPTS,
    ):
        self.min_split_chunk_minutes = min_split_chunk_minutes
        self.max_placement_attempts = max_placement_attempts

    # ===========================================
    # Fixed pass
    # ===========================================

    def place_fixed_tasks(
        self,
        fixed_tasks: list[FixedOccurrence],
        timeline: TimelineManager,
        context: PlanningContext,
    ) -> None:
        """
        Place fixed-time occurrences at exactly their start time.

        Every occurrence of a recurring task is placed. Tasks resolved before
        this pass are skipped, as are tasks that are hard-conflicted before
        their first occurrence is placed. A series that already has placed
        occurrences keeps placing the rest after blocking another task.

        Args:
            fixed_tasks: Fixed occurrences (one per occurrence of recurring tasks)
            timeline: Timeline to place on
            context: Planning context
        """
        resolved_before = context.placed_task_ids
        conflicted: set[UUID] = set()
        placed: list[UUID] = []

        for occurrence in sorted(fixed_tasks, key=lambda item: item.start):
            planning_task = occurrence.planning_task
            task_id = planning_task.id
            if task_id in resolved_before or task_id in conflicted:
                continue
            if planning_task.flags.is_hard_conflict and task_id not in placed:
                continue
            if self._place_fixed_occurrence(planning_task, occurrence.start, timeline, context):
                if task_id not in placed:
                    placed.append(task_id)
            else:
                conflicted.add(task_id)

        for task_id in placed:
            context.mark_placed(task_id)
        logger.info(f"Fixed pass: {len(placed)} task(s) placed, {len(conflicted)} conflicted")

    def _place_fixed_occurrence(
        self,
        planning_task: PlanningTask,
        start: datetime,
        timeline: TimelineManager,
        context: PlanningContext,
    ) -> bool:
        task = planning_task.task
        minutes = task.effective_duration_minutes
        if minutes <= 0:
            self._add_conflict(context, [task], "Task has zero duration", start, ConflictType.ZERO_DURATION)
            return False

        end = start + timedelta(minutes=minutes)
        last_day = (end - timedelta(microseconds=1)).date()
        if timeline.get_day_schedule(start.date()) is None or timeline.get_day_schedule(last_day) is None:
            self._add_conflict(
                context, [task], "Fixed task extends beyond the planning window", start, ConflictType.OUTSIDE_SCOPE
            )
            return False

        blocks: list[TimeBlock] = []
        for piece_start, piece_end in _split_at_midnight(start, end):
            result = timeline.place_task(task, piece_start, piece_end, Occupancy.FIXED_TASK)
            if isinstance(result, BlockPlaced):
                blocks.append(result.block)
            elif isinstance(result, BlockConflict):
                self._release(timeline, blocks)
                blocker = context.find(result.conflicting_task_id) if result.conflicting_task_id else None
                tasks = [task] + ([blocker.task] if blocker is not None else [])
                self._add_conflict(context, tasks, result.reason, result.conflict_time, result.conflict_type)
                if result.conflict_type == ConflictType.FIXED_VS_FIXED and blocker is not None:
                    context.mark_hard_conflict(blocker.id)
                return False
            elif isinstance(result, BlockFailure):
                self._release(timeline, blocks)
                self._add_conflict(context, [task], result.reason, piece_start, ConflictType.PLACEMENT_ERROR)
                return False
            else:
                assert_never(result)

        for block in blocks:
            context.add_scheduled_item(_scheduled_item(task, block))
        if not timeline.is_within_work_hours(start, end):
            context.add_info(InfoItem(task=task, message="Placed outside defined work hours", relevant_date=start.date()))
        logger.debug(f"Fixed task '{task.name}' placed at {start:%Y-%m-%d %H:%M}")
        return True

    # ===========================================
    # Prioritized pass
    # ===========================================

    def place_prioritized_task(
        self,
        planning_task: PlanningTask,
        timeline: TimelineManager,
        context: PlanningContext,
        scope: PlacementScope,
    ) -> None:
        """
        Place one non-fixed task inside the window its constraints allow.

        When the preferred window has no room and the task's own date range
        is wider, the remaining duration is retried across that range.

        Args:
            planning_task: Task to place
            timeline: Timeline to place on
            context: Planning context
            scope: Run-wide placement parameters
        """
        task = planning_task.task
        total_minutes = task.effective_duration_minutes
        if total_minutes <= 0:
            self._add_conflict(
                context, [task], "Task has zero duration", task.start_date_time, ConflictType.ZERO_DURATION
            )
            return

        allow_split = task.effective_allow_splitting and scope.allow_splitting
        window = self._search_window(planning_task, timeline, scope)
        result = self.find_and_place_flexible_task(
            task, total_minutes, window.min_time, window.max_time, window.occupancy, allow_split, timeline, context, scope
        )
        placed_minutes = 0

        if isinstance(result, PlacementSuccess):
            context.mark_placed(task.id)
            return
        elif isinstance(result, PlacementConflict):
            self._add_conflict(context, [task], result.reason, result.conflict_time, result.conflict_type)
            return
        elif isinstance(result, PlacementFailure):
            placed_minutes = result.placed_minutes
        else:
            assert_never(result)

        if window.is_flexible:
            fallback_min = max(task.start_date_time or scope.window_start, scope.window_start, scope.now)
            fallback_max = min(task.end_date_time or scope.window_end, scope.window_end)
            if fallback_max > fallback_min and not window.contains(fallback_min, fallback_max):
                if window.category == SearchCategory.PERIOD:
                    context.mark_failed_period(task.id)
                fallback = self.find_and_place_flexible_task(
                    task,
                    total_minutes - placed_minutes,
                    fallback_min,
                    fallback_max,
                    Occupancy.FLEXIBLE_TASK,
                    allow_split,
                    timeline,
                    context,
                    scope,
                )
                if isinstance(fallback, PlacementSuccess):
                    context.add_info(
                        InfoItem(task=task, message="Placed outside preferred time/period", relevant_date=window.target_date)
                    )
                    context.mark_placed(task.id)
                    return
                elif isinstance(fallback, PlacementConflict):
                    self._add_conflict(context, [task], fallback.reason, fallback.conflict_time, fallback.conflict_type)
                    return
                elif isinstance(fallback, PlacementFailure):
                    placed_minutes += fallback.placed_minutes
                else:
                    assert_never(fallback)

        conflict_type = _FAILURE_TYPES[window.category]
        if placed_minutes > 0:
            reason = f"Could only place partially ({placed_minutes}m placed)"
        elif conflict_type == ConflictType.CANNOT_FIT_PERIOD:
            reason = f"Cannot fit Period constraint ({task.day_period.value}) on {window.target_date}"
        else:
            reason = "No suitable time slot found"
        self._add_conflict(context, [task], reason, window.min_time, conflict_type)

    def _search_window(
        self,
        planning_task: PlanningTask,
        timeline: TimelineManager,
        scope: PlacementScope,
    ) -> SearchWindow:
        task = planning_task.task
        flags = planning_task.flags
        fully_flexible = SearchWindow(
            min_time=max(task.start_date_time or scope.window_start, scope.window_start),
            max_time=min(task.end_date_time or scope.window_end, scope.window_end),
            occupancy=Occupancy.FLEXIBLE_TASK,
            category=SearchCategory.FLEXIBLE,
            is_flexible=True,
        )

        if flags.is_overdue and flags.constraint_date == scope.today:
            work_start, _ = timeline.work_window(scope.today)
            window = SearchWindow(
                min_time=max(scope.now, work_start),
                max_time=end_of_day(scope.today),
                occupancy=Occupancy.FLEXIBLE_TASK,
                category=SearchCategory.OVERDUE_TODAY,
                is_flexible=True,
                target_date=scope.today,
            )
        elif flags.is_overdue and flags.constraint_date is not None:
            target = flags.constraint_date
            min_time, max_time = timeline.work_window(target)
            occupancy = Occupancy.FLEXIBLE_TASK
            if task.has_period:
                min_time, max_time = timeline.period_window(target, task.day_period)
                occupancy = Occupancy.PERIOD_TASK
            window = SearchWindow(min_time, max_time, occupancy, SearchCategory.OVERDUE_ON_DATE, True, target)
        elif flags.is_overdue:
            work_start, _ = timeline.work_window(scope.scope_start)
            window = SearchWindow(
                min_time=max(scope.now, work_start),
                max_time=scope.window_end,
                occupancy=Occupancy.FLEXIBLE_TASK,
                category=SearchCategory.OVERDUE,
                is_flexible=True,
            )
        elif task.has_period:
            target = self._period_target_date(planning_task, scope)
            if timeline.get_day_schedule(target) is None:
                window = fully_flexible
            else:
                min_time, max_time = timeline.period_window(target, task.day_period)
                last_date = task.end_date or scope.scope_end
                window = SearchWindow(
                    min_time, max_time, Occupancy.PERIOD_TASK, SearchCategory.PERIOD, last_date > target, target
                )
        elif task.start_date is not None:
            target = task.start_date
            if scope.scope_start <= target <= scope.scope_end and timeline.get_day_schedule(target) is not None:
                work_start, work_end = timeline.work_window(target)
                min_time = max(work_start, task.start_date_time)
                max_time = min(work_end, task.end_date_time) if task.end_date_time else work_end
                last_date = task.end_date or scope.scope_end
                window = SearchWindow(
                    min_time, max_time, Occupancy.FLEXIBLE_TASK, SearchCategory.DATE, last_date > target, target
                )
            else:
                window = fully_flexible
        else:
            window = fully_flexible

        min_time, max_time = window.min_time, window.max_time
        if max_time <= min_time:
            if flags.is_overdue:
                max_time = scope.window_end
            else:
                min_time = scope.window_start
        min_time = max(min_time, scope.now)

        return SearchWindow(
            min_time, max_time, window.occupancy, window.category, window.is_flexible, window.target_date
        )

    @staticmethod
    def _period_target_date(planning_task: PlanningTask, scope: PlacementScope) -> date:
        if planning_task.flags.constraint_date is not None:
            return planning_task.flags.constraint_date
        start_date = planning_task.task.start_date
        if start_date is not None and scope.scope_start <= start_date <= scope.scope_end:
            return start_date
        return scope.scope_start

    # ===========================================
    # Slot filling
    # ===========================================

    def find_and_place_flexible_task(
        self,
        task: Task,
        duration_minutes: int,
        min_time: datetime,
        max_time: datetime,
        occupancy: Occupancy,
        allow_split: bool,
        timeline: TimelineManager,
        context: PlanningContext,
        scope: PlacementScope,
    ) -> PlacementResult:
        """
        Fill free slots in [min_time, max_time) until the duration is placed.

        Each placed chunk is recorded immediately as a scheduled item, so a
        failure after some chunks leaves those chunks scheduled and reports
        how many minutes were placed.

        Args:
            task: Task being placed
            duration_minutes: Minutes still to place
            min_time: Window start
            max_time: Window end
            occupancy: Occupancy of the placed blocks
            allow_split: Whether the task may be cut into chunks
            timeline: Timeline to place on
            context: Planning context
            scope: Run-wide placement parameters

        Returns:
            PlacementResult: Success with every placed block, a conflict, or a failure
        """
        if duration_minutes <= 0:
            raise PlanningInvariantError(
                f"Cannot place '{task.name}' with {duration_minutes} minute(s)", details={"task_id": str(task.id)}
            )

        remaining = duration_minutes
        placed_blocks: list[TimeBlock] = []
        last_end: Optional[datetime] = None
        gap = timeline.buffer_gap(scope.day_organization)
        attempts = 0

        while remaining > 0 and attempts < self.max_placement_attempts:
            attempts += 1
            earliest = min_time if last_end is None else max(min_time, last_end + gap)
            if earliest >= max_time:
                break

            slot = timeline.find_slot(remaining, earliest, max_time, scope.heuristic)
            if slot is not None:
                chunk_end = slot.end
            elif allow_split:
                slot = timeline.find_slot(min(remaining, self.min_split_chunk_minutes), earliest, max_time, scope.heuristic)
                if slot is None:
                    break
                chunk_end = slot.start + timedelta(minutes=min(remaining, slot.available_minutes))
            else:
                break

            chunk_start = slot.start
            pieces = _split_at_midnight(chunk_start, chunk_end)
            if len(pieces) > 1 and not allow_split:
                last_end = chunk_end
                continue

            chunk_blocks: list[TimeBlock] = []
            for piece_start, piece_end in pieces:
                result = timeline.place_task(task, piece_start, piece_end, occupancy)
                if isinstance(result, BlockPlaced):
                    chunk_blocks.append(result.block)
                elif isinstance(result, BlockConflict):
                    self._release(timeline, chunk_blocks)
                    return PlacementConflict(
                        reason=result.reason,
                        conflicting_task_id=result.conflicting_task_id,
                        conflict_time=result.conflict_time,
                        conflict_type=result.conflict_type,
                    )
                elif isinstance(result, BlockFailure):
                    self._release(timeline, chunk_blocks)
                    return PlacementFailure(
                        reason=result.reason,
                        conflict_type=ConflictType.PLACEMENT_ERROR,
                        placed_minutes=duration_minutes - remaining,
                    )
                else:
                    assert_never(result)

            for block in chunk_blocks:
                context.add_scheduled_item(_scheduled_item(task, block))
            placed_blocks.extend(chunk_blocks)
            remaining -= minutes_between(chunk_start, chunk_end)
            last_end = chunk_end
            timeline.add_buffer_or_break(chunk_end, task, scope.day_organization)

        if remaining <= 0:
            logger.debug(f"Task '{task.name}' placed in {len(placed_blocks)} block(s)")
            return PlacementSuccess(blocks=placed_blocks)

        placed_minutes = duration_minutes - remaining
        if placed_minutes > 0:
            reason = f"Could only place partially ({placed_minutes}m placed)"
        else:
            reason = "No suitable time slot found"
        return PlacementFailure(reason=reason, conflict_type=ConflictType.NO_SLOT_IN_SCOPE, placed_minutes=placed_minutes)

    # ===========================================
    # Helpers
    # ===========================================

    @staticmethod
    def _release(timeline: TimelineManager, blocks: list[TimeBlock]) -> None:
        for block in blocks:
            timeline.release_block(block)

    @staticmethod
    def _add_conflict(
        context: PlanningContext,
        tasks: list[Task],
        reason: str,
        when: Optional[datetime],
        conflict_type: ConflictType,
    ) -> None:
        context.add_conflict(
            ConflictItem(conflicting_tasks=tasks, reason=reason, conflict_time=when, conflict_type=conflict_type)
        )


def _split_at_midnight(start: datetime, end: datetime) -> list[tuple[datetime, datetime]]:
    pieces: list[tuple[datetime, datetime]] = []
    cursor = start
    while cursor < end:
        piece_end = min(end, end_of_day(cursor.date()))
        pieces.append((cursor, piece_end))
        cursor = piece_end
    return pieces


def _scheduled_item(task: Task, block: TimeBlock) -> ScheduledTaskItem:
    return ScheduledTaskItem(task=task, start_time=block.start.time(), end_time=block.end.time(), day=block.start.date())
