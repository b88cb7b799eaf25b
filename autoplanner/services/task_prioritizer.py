"""
Task scoring for the prioritized placement pass.
"""

from datetime import datetime
from typing import assert_never

from autoplanner.models.enums import PrioritizationStrategy, Priority
from autoplanner.models.planning import PlanningTask

_URGENCY_MULTIPLIER = {
    Priority.HIGH: 2.0,
    Priority.MEDIUM: 1.5,
    Priority.LOW: 1.0,
    Priority.NONE: 0.5,
}

_IMPORTANCE_BASE = {
    Priority.HIGH: 100000.0,
    Priority.MEDIUM: 50000.0,
    Priority.LOW: 10000.0,
    Priority.NONE: 1000.0,
}

_DURATION_PRIORITY_BOOST = {
    Priority.HIGH: 500.0,
    Priority.MEDIUM: 200.0,
    Priority.LOW: 100.0,
    Priority.NONE: 0.0,
}


class TaskPrioritizer:
    """
    Scores tasks under a prioritization strategy.

    Scores depend only on the task, the strategy and the run clock, so the
    same inputs always produce the same order.
    """

    def score(self, planning_task: PlanningTask, strategy: PrioritizationStrategy, now: datetime) -> float:
        """
        Calculate a task's placement score (higher goes first).

        Args:
            planning_task: Task to score
            strategy: Prioritization strategy
            now: Run clock used for deadline distances

        Returns:
            float: Score
        """
        task = planning_task.task
        hours = self._hours_until_deadline(planning_task, now)

        if strategy == PrioritizationStrategy.BY_URGENCY:
            return self._deadline_urgency(hours) * _URGENCY_MULTIPLIER[task.priority]
        if strategy == PrioritizationStrategy.BY_IMPORTANCE:
            return _IMPORTANCE_BASE[task.priority] + self._deadline_boost(hours)
        if strategy == PrioritizationStrategy.BY_DURATION:
            minutes = task.effective_duration_minutes
            return 100000.0 / (minutes + 1) + _DURATION_PRIORITY_BOOST[task.priority]
        assert_never(strategy)

    @staticmethod
    def _hours_until_deadline(planning_task: PlanningTask, now: datetime) -> int | None:
        deadline = planning_task.task.end_date_time
        if deadline is None:
            return None
        # Whole hours, truncated toward zero
        return int((deadline - now).total_seconds() / 3600)

    @staticmethod
    def _deadline_urgency(hours: int | None) -> float:
        if hours is None:
            return 0.0
        if hours < 0:
            return 100000.0
        if hours <= 8:
            return 50000.0
        if hours <= 24:
            return 25000.0
        if hours <= 72:
            return 10000.0
        return 1000.0

    @staticmethod
    def _deadline_boost(hours: int | None) -> float:
        if hours is None:
            return 0.0
        if hours < 0:
            return 500.0
        if hours <= 24:
            return 200.0
        if hours <= 72:
            return 100.0
        return 10.0
