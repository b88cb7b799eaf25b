"""
Overdue task pre-processing.

Runs before categorization and decides what happens to tasks whose time
has already passed.
"""

from datetime import date, datetime
from typing import assert_never

from autoplanner.core.logger import setup_logger
from autoplanner.models.enums import OverdueTaskHandling
from autoplanner.models.planning import PlanningTask
from autoplanner.services.planning_context import PlanningContext
from autoplanner.utils.datetime_utils import date_range

logger = setup_logger(__name__)


class OverdueTaskHandler:
    """Applies the overdue strategy to expired tasks."""

    def handle(
        self,
        context: PlanningContext,
        strategy: OverdueTaskHandling,
        today: date,
        scope_start: date,
        scope_end: date,
        now: datetime,
    ) -> None:
        """
        Postpone, flag or re-date every expired task that is not placed yet.

        Fixed appointments (start and end on one day) are left alone; they
        simply fall out of scope.

        Args:
            context: Planning context
            strategy: Overdue handling strategy
            today: Date of the run clock
            scope_start: First date of the window
            scope_end: Last date of the window
            now: Run clock
        """
        overdue = [
            planning_task
            for planning_task in context.unplaced_tasks()
            if planning_task.task.is_expired(now) and not planning_task.task.is_fixed_appointment()
        ]
        if not overdue:
            return

        logger.info(f"Handling {len(overdue)} overdue task(s) with {strategy.value}")

        if strategy == OverdueTaskHandling.POSTPONE_TO_TOMORROW:
            for planning_task in overdue:
                context.postpone(planning_task.id)
        elif strategy == OverdueTaskHandling.USER_REVIEW_REQUIRED:
            for planning_task in overdue:
                context.require_manual_resolution(planning_task.id)
        elif strategy == OverdueTaskHandling.NEXT_AVAILABLE:
            self._assign_next_available(context, overdue, today, scope_start, scope_end)
        else:
            assert_never(strategy)

    def _assign_next_available(
        self,
        context: PlanningContext,
        overdue: list[PlanningTask],
        today: date,
        scope_start: date,
        scope_end: date,
    ) -> None:
        available_days = date_range(max(today, scope_start), scope_end)
        if not available_days:
            logger.warning("No day left in scope for overdue tasks, asking for manual resolution")
            for planning_task in overdue:
                context.require_manual_resolution(planning_task.id)
            return

        # Round-robin, most important first
        ordered = sorted(overdue, key=lambda planning_task: planning_task.task.priority.rank, reverse=True)
        for index, planning_task in enumerate(ordered):
            target = available_days[index % len(available_days)]
            context.mark_overdue(planning_task.id, target)
            logger.debug(f"Overdue task '{planning_task.task.name}' moved to {target}")
