"""
Run-scoped planning structures.

PlanningTask wraps an input Task with the flags the pipeline attaches to
it. Only the PlanningContext writes those flags.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Union
from uuid import UUID

from autoplanner.models.enums import ConflictType, DayPeriod, TaskResolution
from autoplanner.models.task import Task
from autoplanner.models.timeline import TimeBlock


@dataclass(frozen=True)
class PlanningFlags:
    """Per-run state attached to a task."""

    is_overdue: bool = False
    constraint_date: Optional[date] = None
    is_hard_conflict: bool = False
    needs_manual_resolution: bool = False
    is_postponed: bool = False
    failed_period: bool = False


@dataclass
class PlanningTask:
    task: Task
    flags: PlanningFlags = field(default_factory=PlanningFlags)
    resolution: TaskResolution = TaskResolution.UNRESOLVED

    @property
    def id(self) -> UUID:
        return self.task.id

    @property
    def is_resolved(self) -> bool:
        return self.resolution != TaskResolution.UNRESOLVED


@dataclass(frozen=True)
class FixedOccurrence:
    """A task pinned to a concrete start datetime."""

    planning_task: PlanningTask
    start: datetime


@dataclass
class CategorizationResult:
    """Tasks sorted into placement buckets."""

    fixed_time_tasks: list[FixedOccurrence] = field(default_factory=list)
    period_tasks_pending: dict[date, dict[DayPeriod, list[PlanningTask]]] = field(default_factory=dict)
    date_flexible_pending: dict[date, list[PlanningTask]] = field(default_factory=dict)
    deadline_flexible_pending: list[PlanningTask] = field(default_factory=list)
    fully_flexible_pending: list[PlanningTask] = field(default_factory=list)

    def pending_in_order(self) -> list[PlanningTask]:
        """Period, date-flexible, deadline and fully flexible tasks, de-duplicated."""
        ordered: list[PlanningTask] = []
        for day in sorted(self.period_tasks_pending):
            for tasks in self.period_tasks_pending[day].values():
                ordered.extend(tasks)
        for day in sorted(self.date_flexible_pending):
            ordered.extend(self.date_flexible_pending[day])
        ordered.extend(self.deadline_flexible_pending)
        ordered.extend(self.fully_flexible_pending)

        seen: set[UUID] = set()
        unique: list[PlanningTask] = []
        for planning_task in ordered:
            if planning_task.id in seen:
                continue
            seen.add(planning_task.id)
            unique.append(planning_task)
        return unique


# ===========================================
# Placement results
# ===========================================


@dataclass(frozen=True)
class BlockPlaced:
    block: TimeBlock


@dataclass(frozen=True)
class BlockConflict:
    reason: str
    conflicting_task_id: Optional[UUID]
    conflict_time: Optional[datetime]
    conflict_type: ConflictType


@dataclass(frozen=True)
class BlockFailure:
    reason: str


BlockPlacementResult = Union[BlockPlaced, BlockConflict, BlockFailure]


@dataclass(frozen=True)
class PlacementSuccess:
    blocks: list[TimeBlock]


@dataclass(frozen=True)
class PlacementFailure:
    reason: str
    conflict_type: ConflictType
    placed_minutes: int = 0


@dataclass(frozen=True)
class PlacementConflict:
    reason: str
    conflicting_task_id: Optional[UUID]
    conflict_time: Optional[datetime]
    conflict_type: ConflictType


PlacementResult = Union[PlacementSuccess, PlacementFailure, PlacementConflict]
