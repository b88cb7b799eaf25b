"""
Run-scoped accumulator for a planning run.

PlanningContext owns every PlanningTask and is the only place where task
flags and resolution states change. Components ask it to record outcomes;
they never mutate a PlanningTask directly.
"""

from dataclasses import replace
from datetime import date
from typing import Iterable, Optional
from uuid import UUID

from autoplanner.core.exceptions import PlanningInvariantError
from autoplanner.core.logger import setup_logger
from autoplanner.models.enums import TaskResolution
from autoplanner.models.planner import ConflictItem, InfoItem, ScheduledTaskItem
from autoplanner.models.planning import PlanningTask
from autoplanner.models.task import Task

logger = setup_logger(__name__)


class PlanningContext:
    """Holds the state of one planning run."""

    def __init__(self, tasks: Iterable[Task]):
        self.planning_task_map: dict[UUID, PlanningTask] = {
            task.id: PlanningTask(task=task) for task in tasks if not task.is_completed
        }
        self._placed_task_ids: set[UUID] = set()
        self.conflicts: list[ConflictItem] = []
        self.postponed_tasks: list[Task] = []
        self.expired_for_resolution: list[Task] = []
        self.info_items: list[InfoItem] = []
        self.scheduled_items_map: dict[date, list[ScheduledTaskItem]] = {}

        self._conflict_keys: set[tuple] = set()
        self._info_keys: set[tuple[UUID, str]] = set()

    # ===========================================
    # Queries
    # ===========================================

    @property
    def placed_task_ids(self) -> frozenset[UUID]:
        return frozenset(self._placed_task_ids)

    def get(self, task_id: UUID) -> PlanningTask:
        try:
            return self.planning_task_map[task_id]
        except KeyError:
            raise PlanningInvariantError(f"Unknown task {task_id}") from None

    def find(self, task_id: UUID) -> Optional[PlanningTask]:
        return self.planning_task_map.get(task_id)

    def is_placed(self, task_id: UUID) -> bool:
        return task_id in self._placed_task_ids

    def unplaced_tasks(self) -> list[PlanningTask]:
        return [
            planning_task
            for task_id, planning_task in self.planning_task_map.items()
            if task_id not in self._placed_task_ids
        ]

    def has_conflict_for(self, task_id: UUID) -> bool:
        return any(task_id in conflict.task_ids for conflict in self.conflicts)

    # ===========================================
    # Flag updates
    # ===========================================

    def mark_overdue(self, task_id: UUID, constraint_date: Optional[date]) -> None:
        planning_task = self.get(task_id)
        planning_task.flags = replace(
            planning_task.flags,
            is_overdue=True,
            constraint_date=constraint_date,
            needs_manual_resolution=False,
        )

    def mark_hard_conflict(self, task_id: UUID) -> None:
        planning_task = self.find(task_id)
        if planning_task is None:
            return
        planning_task.flags = replace(planning_task.flags, is_hard_conflict=True)

    def mark_failed_period(self, task_id: UUID) -> None:
        planning_task = self.get(task_id)
        planning_task.flags = replace(planning_task.flags, failed_period=True)

    # ===========================================
    # Resolutions
    # ===========================================

    def postpone(self, task_id: UUID) -> None:
        """Move a task out of this run; it is reported as postponed."""
        planning_task = self.get(task_id)
        planning_task.flags = replace(planning_task.flags, is_postponed=True)
        if not any(task.id == task_id for task in self.postponed_tasks):
            self.postponed_tasks.append(planning_task.task)
        self._resolve(planning_task, TaskResolution.POSTPONED)

    def require_manual_resolution(self, task_id: UUID) -> None:
        planning_task = self.get(task_id)
        planning_task.flags = replace(planning_task.flags, needs_manual_resolution=True)
        if not any(task.id == task_id for task in self.expired_for_resolution):
            self.expired_for_resolution.append(planning_task.task)
        self._resolve(planning_task, TaskResolution.NEEDS_MANUAL_RESOLUTION)

    def add_scheduled_item(self, item: ScheduledTaskItem) -> None:
        """Record a placed piece of a task; the task counts as scheduled."""
        self.scheduled_items_map.setdefault(item.day, []).append(item)
        planning_task = self.find(item.task.id)
        if planning_task is not None and not planning_task.is_resolved:
            planning_task.resolution = TaskResolution.SCHEDULED

    def mark_placed(self, task_id: UUID) -> None:
        """Finalize a task so later phases skip it."""
        planning_task = self.find(task_id)
        if planning_task is None:
            return
        if not planning_task.is_resolved:
            planning_task.resolution = (
                TaskResolution.CONFLICTED if self.has_conflict_for(task_id) else TaskResolution.SCHEDULED
            )
        self._placed_task_ids.add(task_id)

    def add_conflict(self, conflict: ConflictItem, *, resolve: bool = True) -> bool:
        """
        Record a conflict once.

        Args:
            conflict: Conflict to record
            resolve: Also finalize every task named in the conflict

        Returns:
            bool: False when an identical conflict was already recorded
        """
        key = conflict.dedup_key()
        added = key not in self._conflict_keys
        if added:
            self._conflict_keys.add(key)
            self.conflicts.append(conflict)
            logger.debug(
                f"Conflict {conflict.conflict_type.value}: {conflict.reason} "
                f"({', '.join(task.name for task in conflict.conflicting_tasks)})"
            )
        if resolve:
            for task in conflict.conflicting_tasks:
                planning_task = self.find(task.id)
                if planning_task is not None and not planning_task.is_resolved:
                    planning_task.resolution = TaskResolution.CONFLICTED
                self._placed_task_ids.add(task.id)
        return added

    def add_info(self, item: InfoItem) -> None:
        key = (item.task.id, item.message)
        if key in self._info_keys:
            return
        self._info_keys.add(key)
        self.info_items.append(item)

    def sort_scheduled_items(self) -> None:
        for items in self.scheduled_items_map.values():
            items.sort(key=lambda item: item.start_time)

    def _resolve(self, planning_task: PlanningTask, resolution: TaskResolution) -> None:
        if planning_task.is_resolved:
            raise PlanningInvariantError(
                f"Task '{planning_task.task.name}' is already {planning_task.resolution.value}",
                details={"task_id": str(planning_task.id), "requested": resolution.value},
            )
        planning_task.resolution = resolution
        self._placed_task_ids.add(planning_task.id)
