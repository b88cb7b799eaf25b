"""
Planner input and output models.
"""

from datetime import date, datetime, time
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from autoplanner.models.enums import (
    ConflictType,
    DayOrganization,
    OverdueTaskHandling,
    PlacementHeuristic,
    PrioritizationStrategy,
    ScheduleScope,
)
from autoplanner.models.task import Task
from autoplanner.utils.datetime_utils import truncate_to_minute


class PlannerInput(BaseModel):
    """Everything one planning run needs."""

    tasks: list[Task] = Field(default_factory=list)
    work_start_time: time = time(9, 0)
    work_end_time: time = time(17, 0)
    schedule_scope: ScheduleScope = ScheduleScope.TODAY
    prioritization_strategy: PrioritizationStrategy = PrioritizationStrategy.BY_URGENCY
    day_organization: DayOrganization = DayOrganization.MAXIMIZE_PRODUCTIVITY
    flexible_placement_heuristic: PlacementHeuristic = PlacementHeuristic.EARLIEST_FIT
    allow_splitting: bool = Field(True, description="Global switch for splitting tasks into chunks")
    overdue_task_handling: OverdueTaskHandling = OverdueTaskHandling.NEXT_AVAILABLE


class ScheduledTaskItem(BaseModel):
    """A placed piece of a task."""

    model_config = ConfigDict(frozen=True)

    task: Task
    start_time: time
    end_time: time
    day: date

    @property
    def task_id(self) -> UUID:
        return self.task.id


class ConflictItem(BaseModel):
    """A task (or group of tasks) the planner could not schedule."""

    model_config = ConfigDict(frozen=True)

    conflicting_tasks: list[Task]
    reason: str
    conflict_time: Optional[datetime] = None
    conflict_type: ConflictType

    @property
    def task_ids(self) -> list[UUID]:
        return [task.id for task in self.conflicting_tasks]

    def dedup_key(self) -> tuple:
        """Identity used to record each conflict once."""
        moment = truncate_to_minute(self.conflict_time) if self.conflict_time else None
        return (tuple(sorted(str(task_id) for task_id in self.task_ids)), self.reason, moment)


class InfoItem(BaseModel):
    """Non-fatal notice about a placement."""

    model_config = ConfigDict(frozen=True)

    task: Task
    message: str
    relevant_date: Optional[date] = None


class PlannerOutput(BaseModel):
    """Result of one planning run."""

    scheduled_tasks: dict[date, list[ScheduledTaskItem]] = Field(default_factory=dict)
    unresolved_expired: list[Task] = Field(default_factory=list)
    unresolved_conflicts: list[ConflictItem] = Field(default_factory=list)
    postponed_tasks: list[Task] = Field(default_factory=list)
    info_items: list[InfoItem] = Field(default_factory=list)

    def items_for_task(self, task_id: UUID) -> list[ScheduledTaskItem]:
        """All scheduled pieces of one task in chronological order."""
        items = [
            item
            for day in sorted(self.scheduled_tasks)
            for item in self.scheduled_tasks[day]
            if item.task.id == task_id
        ]
        return items

    def conflicts_for_task(self, task_id: UUID) -> list[ConflictItem]:
        return [conflict for conflict in self.unresolved_conflicts if task_id in conflict.task_ids]
