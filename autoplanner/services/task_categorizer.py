"""
Task categorization.

Sorts every unplaced task into one of five placement buckets, depending on
which time constraints it carries.
"""

from datetime import date, timedelta

from autoplanner.core.logger import setup_logger
from autoplanner.models.planning import CategorizationResult, FixedOccurrence, PlanningTask
from autoplanner.models.task import Task
from autoplanner.services.planning_context import PlanningContext
from autoplanner.services.recurrence_expander import RecurrenceExpander

logger = setup_logger(__name__)


def task_fits_scope(task: Task, scope_start: date, scope_end: date) -> bool:
    """Whether a non-recurring task can take part in the [scope_start, scope_end] window."""
    start = task.start_date
    end = task.end_date
    if start is None and end is None:
        return True
    if start is not None and start > scope_end:
        return False
    if end is not None and end < scope_start:
        return False
    if start is not None and end is None:
        # A multi-day duration keeps a task alive after its start date
        estimated_end = start + timedelta(days=task.effective_duration_minutes // (24 * 60))
        if estimated_end < scope_start:
            return False
    return True


class TaskCategorizer:
    """Routes tasks to the fixed, period, date, deadline or fully flexible bucket."""

    def __init__(self, recurrence_expander: RecurrenceExpander | None = None):
        self.recurrence_expander = recurrence_expander or RecurrenceExpander()

    def categorize(
        self,
        context: PlanningContext,
        scope_start: date,
        scope_end: date,
        today: date,
    ) -> CategorizationResult:
        """
        Categorize every task that is neither placed nor hard-conflicted.

        Args:
            context: Planning context
            scope_start: First date of the window
            scope_end: Last date of the window
            today: Date of the run clock

        Returns:
            CategorizationResult: Placement buckets
        """
        result = CategorizationResult()

        for planning_task in context.unplaced_tasks():
            if planning_task.flags.is_hard_conflict:
                continue
            task = planning_task.task

            if planning_task.flags.is_overdue:
                self._route_overdue(planning_task, result, scope_start, scope_end, today)
                continue

            if task.is_recurring:
                occurrences = self.recurrence_expander.expand(planning_task, scope_start, scope_end, context)
                if not occurrences and not planning_task.flags.is_hard_conflict:
                    logger.debug(f"Recurring task '{task.name}' has no occurrence in scope")
                result.fixed_time_tasks.extend(
                    FixedOccurrence(planning_task=planning_task, start=occurrence) for occurrence in occurrences
                )
                continue

            if not task_fits_scope(task, scope_start, scope_end):
                logger.debug(f"Task '{task.name}' is outside the planning window")
                continue

            self._route_by_constraints(planning_task, result, scope_start, scope_end)

        logger.info(
            f"Categorized tasks: fixed={len(result.fixed_time_tasks)}, "
            f"period={sum(len(tasks) for periods in result.period_tasks_pending.values() for tasks in periods.values())}, "
            f"date={sum(len(tasks) for tasks in result.date_flexible_pending.values())}, "
            f"deadline={len(result.deadline_flexible_pending)}, "
            f"flexible={len(result.fully_flexible_pending)}"
        )
        return result

    @staticmethod
    def _route_overdue(
        planning_task: PlanningTask,
        result: CategorizationResult,
        scope_start: date,
        scope_end: date,
        today: date,
    ) -> None:
        constraint_date = planning_task.flags.constraint_date
        if constraint_date == today:
            result.date_flexible_pending.setdefault(today, []).append(planning_task)
        elif constraint_date is None:
            result.fully_flexible_pending.append(planning_task)
        elif scope_start <= constraint_date <= scope_end:
            result.date_flexible_pending.setdefault(constraint_date, []).append(planning_task)
        else:
            result.fully_flexible_pending.append(planning_task)

    @staticmethod
    def _route_by_constraints(
        planning_task: PlanningTask,
        result: CategorizationResult,
        scope_start: date,
        scope_end: date,
    ) -> None:
        task = planning_task.task
        start = task.start_date_time
        has_end = task.end_date_conf is not None
        has_period = task.has_period

        if start is None:
            if has_end:
                result.deadline_flexible_pending.append(planning_task)
            else:
                result.fully_flexible_pending.append(planning_task)
            return

        if has_end:
            result.deadline_flexible_pending.append(planning_task)
            return

        start_date = start.date()
        if not scope_start <= start_date <= scope_end:
            # Keyed on its own date, which the window does not contain
            result.fully_flexible_pending.append(planning_task)
            return

        if task.has_specific_start_time and not has_period:
            result.fixed_time_tasks.append(FixedOccurrence(planning_task=planning_task, start=start))
        elif has_period:
            result.period_tasks_pending.setdefault(start_date, {}).setdefault(task.day_period, []).append(
                planning_task
            )
        else:
            result.date_flexible_pending.setdefault(start_date, []).append(planning_task)
