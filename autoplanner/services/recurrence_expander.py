"""
Recurrence expansion.

Turns a task's RepeatPlan into the concrete occurrence datetimes that fall
inside the planning window, using dateutil's RFC 5545 rule engine.
"""

from datetime import date, datetime, time
from typing import Any

from dateutil import rrule

from autoplanner.core.exceptions import RecurrenceRuleError
from autoplanner.core.logger import setup_logger
from autoplanner.models.enums import ConflictType, FrequencyType, IntervalUnit, Weekday
from autoplanner.models.planner import ConflictItem, InfoItem
from autoplanner.models.planning import PlanningTask
from autoplanner.models.task import RepeatPlan
from autoplanner.services.planning_context import PlanningContext
from autoplanner.utils.datetime_utils import end_of_day, start_of_day

logger = setup_logger(__name__)

MAX_GENERATED_OCCURRENCES = 1000

_FREQUENCIES = {
    FrequencyType.DAILY: rrule.DAILY,
    FrequencyType.WEEKLY: rrule.WEEKLY,
    FrequencyType.MONTHLY: rrule.MONTHLY,
    FrequencyType.YEARLY: rrule.YEARLY,
}

_UNIT_FREQUENCIES = {
    IntervalUnit.DAY: rrule.DAILY,
    IntervalUnit.WEEK: rrule.WEEKLY,
    IntervalUnit.MONTH: rrule.MONTHLY,
    IntervalUnit.YEAR: rrule.YEARLY,
}

_WEEKDAYS = {
    Weekday.MON: rrule.MO,
    Weekday.TUE: rrule.TU,
    Weekday.WED: rrule.WE,
    Weekday.THU: rrule.TH,
    Weekday.FRI: rrule.FR,
    Weekday.SAT: rrule.SA,
    Weekday.SUN: rrule.SU,
}


def build_rule(plan: RepeatPlan, start: datetime) -> rrule.rrule:
    """
    Build a recurrence rule from a repeat plan.

    Args:
        plan: Task repeat plan (must be recurring)
        start: First occurrence of the series

    Returns:
        rrule.rrule: Rule anchored at ``start``

    Raises:
        RecurrenceRuleError: If the frequency and unit do not describe a rule
    """
    frequency = _resolve_frequency(plan)
    kwargs: dict[str, Any] = {
        "dtstart": start,
        "interval": max(plan.interval or 1, 1),
        "wkst": rrule.MO,
    }

    # End date wins over an occurrence count
    if plan.repeat_end_date is not None:
        kwargs["until"] = datetime.combine(plan.repeat_end_date, time.max)
    elif plan.repeat_occurrences is not None:
        kwargs["count"] = max(plan.repeat_occurrences, 1)

    by_weekday = [
        _WEEKDAYS[entry.day_of_week](entry.ordinal)
        for entry in plan.ordinals_of_weekdays
        if entry.ordinal != 0
    ]
    if not by_weekday:
        by_weekday = [_WEEKDAYS[day] for day in plan.selected_days]
    if by_weekday:
        kwargs["byweekday"] = by_weekday

    by_month_day = [day for day in plan.days_of_month if 1 <= day <= 31 or -31 <= day <= -1]
    if not by_month_day and frequency in (rrule.MONTHLY, rrule.YEARLY) and not by_weekday:
        by_month_day = [start.day]
    if by_month_day:
        kwargs["bymonthday"] = by_month_day

    by_month = [month for month in plan.months_of_year if 1 <= month <= 12]
    if not by_month and frequency == rrule.YEARLY and not by_weekday:
        by_month = [start.month]
    if by_month:
        kwargs["bymonth"] = by_month

    set_positions = [position for position in plan.set_pos if position != 0]
    if set_positions:
        kwargs["bysetpos"] = set_positions

    return rrule.rrule(frequency, **kwargs)


def _resolve_frequency(plan: RepeatPlan) -> int:
    if plan.frequency_type == FrequencyType.CUSTOM:
        if plan.interval_unit is None:
            raise RecurrenceRuleError("Invalid frequency/unit combination")
        return _UNIT_FREQUENCIES[plan.interval_unit]
    try:
        return _FREQUENCIES[plan.frequency_type]
    except KeyError:
        raise RecurrenceRuleError("Invalid frequency/unit combination") from None


class RecurrenceExpander:
    """Expands recurring tasks into occurrences within a date window."""

    def __init__(self, max_occurrences: int = MAX_GENERATED_OCCURRENCES):
        self.max_occurrences = max_occurrences

    def expand(
        self,
        planning_task: PlanningTask,
        scope_start: date,
        scope_end: date,
        context: PlanningContext,
    ) -> list[datetime]:
        """
        List the task's occurrences inside [scope_start, scope_end].

        Failures are recorded on the context as RECURRENCE_ERROR conflicts and
        the task is hard-conflicted; an empty list is returned in that case.

        Args:
            planning_task: Task to expand
            scope_start: First date of the window
            scope_end: Last date of the window (inclusive)
            context: Planning context for conflicts and info items

        Returns:
            list[datetime]: Occurrence start datetimes in chronological order
        """
        task = planning_task.task
        plan = task.repeat_plan
        start = task.start_date_time

        if plan is None or not plan.is_recurring:
            if start is not None and scope_start <= start.date() <= scope_end:
                return [start]
            return []

        if start is None:
            self._record_failure(planning_task, context, "Recurring task missing start date")
            return []

        window_start = start_of_day(scope_start)
        window_end = end_of_day(scope_end)

        try:
            rule = build_rule(plan, start)
            occurrences: list[datetime] = []
            limited = False
            for occurrence in rule.xafter(window_start, inc=True):
                if occurrence >= window_end:
                    break
                if len(occurrences) >= self.max_occurrences:
                    limited = True
                    break
                if occurrence not in occurrences:
                    occurrences.append(occurrence)
        except RecurrenceRuleError as e:
            self._record_failure(planning_task, context, e.message)
            return []
        except Exception as e:
            logger.warning(f"Recurrence expansion failed for '{task.name}': {e}")
            self._record_failure(planning_task, context, f"Invalid recurrence rule: {e}")
            return []

        if limited:
            context.add_info(
                InfoItem(
                    task=task,
                    message=(
                        f"Recurrence expansion limited to {self.max_occurrences} "
                        "occurrences within the search scope"
                    ),
                    relevant_date=scope_start,
                )
            )

        logger.debug(f"Expanded '{task.name}' into {len(occurrences)} occurrence(s)")
        return occurrences

    def _record_failure(
        self,
        planning_task: PlanningTask,
        context: PlanningContext,
        reason: str,
    ) -> None:
        context.add_conflict(
            ConflictItem(
                conflicting_tasks=[planning_task.task],
                reason=reason,
                conflict_time=planning_task.task.start_date_time,
                conflict_type=ConflictType.RECURRENCE_ERROR,
            )
        )
        context.mark_hard_conflict(planning_task.id)
