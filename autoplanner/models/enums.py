"""
Enum definitions for the planner.

These enums are used across models and provide type-safe values for task
constraints, planning options and the outcome of a planning run.
"""

from enum import Enum


class Priority(str, Enum):
    """Task priority."""

    NONE = "NONE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        """Ordering value, higher is more important."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.NONE: 0,
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
}


class DayPeriod(str, Enum):
    """
    Part of the day a task prefers.

    MORNING = 06:00-12:00
    EVENING = 12:00-18:00
    NIGHT = 18:00-24:00
    ALLDAY and NONE carry no clock constraint.
    """

    NONE = "NONE"
    MORNING = "MORNING"
    EVENING = "EVENING"
    NIGHT = "NIGHT"
    ALLDAY = "ALLDAY"


class FrequencyType(str, Enum):
    """Recurrence frequency."""

    NONE = "NONE"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"
    CUSTOM = "CUSTOM"


class IntervalUnit(str, Enum):
    """Unit of a CUSTOM recurrence interval."""

    DAY = "DAY"
    WEEK = "WEEK"
    MONTH = "MONTH"
    YEAR = "YEAR"


class Weekday(str, Enum):
    """Day of week (Monday first)."""

    MON = "MON"
    TUE = "TUE"
    WED = "WED"
    THU = "THU"
    FRI = "FRI"
    SAT = "SAT"
    SUN = "SUN"


class ScheduleScope(str, Enum):
    """Planning window."""

    TODAY = "TODAY"
    TOMORROW = "TOMORROW"
    THIS_WEEK = "THIS_WEEK"


class PrioritizationStrategy(str, Enum):
    """How flexible tasks are ordered before placement."""

    BY_URGENCY = "BY_URGENCY"
    BY_IMPORTANCE = "BY_IMPORTANCE"
    BY_DURATION = "BY_DURATION"


class DayOrganization(str, Enum):
    """
    How a day is laid out around tasks.

    MAXIMIZE_PRODUCTIVITY = tasks back to back
    SMART_BUFFERS = short buffers after each task
    BALANCED_SCHEDULE = buffers plus regular coffee and lunch breaks
    """

    MAXIMIZE_PRODUCTIVITY = "MAXIMIZE_PRODUCTIVITY"
    SMART_BUFFERS = "SMART_BUFFERS"
    BALANCED_SCHEDULE = "BALANCED_SCHEDULE"

    @property
    def uses_buffers(self) -> bool:
        return self in (DayOrganization.SMART_BUFFERS, DayOrganization.BALANCED_SCHEDULE)


class OverdueTaskHandling(str, Enum):
    """What happens to tasks whose deadline has already passed."""

    POSTPONE_TO_TOMORROW = "POSTPONE_TO_TOMORROW"
    USER_REVIEW_REQUIRED = "USER_REVIEW_REQUIRED"
    NEXT_AVAILABLE = "NEXT_AVAILABLE"


class PlacementHeuristic(str, Enum):
    """Slot selection rule for flexible tasks."""

    EARLIEST_FIT = "EARLIEST_FIT"
    BEST_FIT = "BEST_FIT"


class Occupancy(str, Enum):
    """What a time block is used for."""

    FREE = "FREE"
    OUT_OF_HOURS = "OUT_OF_HOURS"
    BUFFER = "BUFFER"
    FIXED_TASK = "FIXED_TASK"
    PERIOD_TASK = "PERIOD_TASK"
    FLEXIBLE_TASK = "FLEXIBLE_TASK"

    @property
    def is_task(self) -> bool:
        return self in (Occupancy.FIXED_TASK, Occupancy.PERIOD_TASK, Occupancy.FLEXIBLE_TASK)


class ConflictType(str, Enum):
    """Why a task could not be scheduled."""

    ZERO_DURATION = "ZERO_DURATION"
    OUTSIDE_SCOPE = "OUTSIDE_SCOPE"
    FIXED_VS_FIXED = "FIXED_VS_FIXED"
    RECURRENCE_ERROR = "RECURRENCE_ERROR"
    CANNOT_FIT_PERIOD = "CANNOT_FIT_PERIOD"
    NO_SLOT_ON_DATE = "NO_SLOT_ON_DATE"
    NO_SLOT_IN_SCOPE = "NO_SLOT_IN_SCOPE"
    PLACEMENT_ERROR = "PLACEMENT_ERROR"


class TaskResolution(str, Enum):
    """Lifecycle of a task within one planning run."""

    UNRESOLVED = "UNRESOLVED"
    SCHEDULED = "SCHEDULED"
    CONFLICTED = "CONFLICTED"
    POSTPONED = "POSTPONED"
    NEEDS_MANUAL_RESOLUTION = "NEEDS_MANUAL_RESOLUTION"
