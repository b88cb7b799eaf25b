"""Pydantic models and planning structures for the planner."""

from autoplanner.models.enums import (
    ConflictType,
    DayOrganization,
    DayPeriod,
    FrequencyType,
    IntervalUnit,
    Occupancy,
    OverdueTaskHandling,
    PlacementHeuristic,
    PrioritizationStrategy,
    Priority,
    ScheduleScope,
    TaskResolution,
    Weekday,
)
from autoplanner.models.task import DurationPlan, OrdinalWeekday, RepeatPlan, Task, TimePlanning
from autoplanner.models.planner import (
    ConflictItem,
    InfoItem,
    PlannerInput,
    PlannerOutput,
    ScheduledTaskItem,
)
from autoplanner.models.timeline import DaySchedule, TimeBlock
from autoplanner.models.planning import CategorizationResult, FixedOccurrence, PlanningFlags, PlanningTask

__all__ = [
    # Enums
    "ConflictType",
    "DayOrganization",
    "DayPeriod",
    "FrequencyType",
    "IntervalUnit",
    "Occupancy",
    "OverdueTaskHandling",
    "PlacementHeuristic",
    "PrioritizationStrategy",
    "Priority",
    "ScheduleScope",
    "TaskResolution",
    "Weekday",
    # Task
    "Task",
    "TimePlanning",
    "DurationPlan",
    "RepeatPlan",
    "OrdinalWeekday",
    # Planner I/O
    "PlannerInput",
    "PlannerOutput",
    "ScheduledTaskItem",
    "ConflictItem",
    "InfoItem",
    # Run-scoped structures
    "DaySchedule",
    "TimeBlock",
    "PlanningFlags",
    "PlanningTask",
    "FixedOccurrence",
    "CategorizationResult",
]
