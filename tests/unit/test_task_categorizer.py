"""
Unit tests for TaskCategorizer.
"""

from datetime import date, datetime, timedelta

import pytest

from autoplanner.models.enums import DayPeriod, FrequencyType
from autoplanner.models.task import DurationPlan, RepeatPlan, Task, TimePlanning
from autoplanner.services.planning_context import PlanningContext
from autoplanner.services.task_categorizer import TaskCategorizer, task_fits_scope

TODAY = date(2026, 10, 19)
WEEK_END = TODAY + timedelta(days=6)


def dt(day_offset: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime.combine(TODAY + timedelta(days=day_offset), datetime.min.time()).replace(hour=hour, minute=minute)


def make_task(
    name: str = "Task",
    start: datetime | None = None,
    end: datetime | None = None,
    period: DayPeriod = DayPeriod.NONE,
    minutes: int | None = None,
    repeat: RepeatPlan | None = None,
) -> Task:
    return Task(
        name=name,
        start_date_conf=TimePlanning(date_time=start, day_period=period) if start else None,
        end_date_conf=TimePlanning(date_time=end) if end else None,
        duration_conf=DurationPlan(total_minutes=minutes) if minutes is not None else None,
        repeat_plan=repeat,
    )


def categorize(tasks: list[Task], scope_end: date = WEEK_END, context: PlanningContext | None = None):
    context = context or PlanningContext(tasks)
    result = TaskCategorizer().categorize(context, TODAY, scope_end, TODAY)
    return result, context


def ids(planning_tasks) -> list:
    return [planning_task.id for planning_task in planning_tasks]


class TestTaskFitsScope:
    def test_unconstrained(self):
        assert task_fits_scope(make_task(), TODAY, TODAY) is True

    def test_starts_after_scope(self):
        assert task_fits_scope(make_task(start=dt(1, 9)), TODAY, TODAY) is False

    def test_ends_before_scope(self):
        assert task_fits_scope(make_task(end=dt(-1, 9)), TODAY, TODAY) is False

    def test_started_earlier_with_short_duration(self):
        assert task_fits_scope(make_task(start=dt(-2, 9), minutes=60), TODAY, TODAY) is False

    def test_started_earlier_with_multi_day_duration(self):
        assert task_fits_scope(make_task(start=dt(-2, 9), minutes=3 * 24 * 60), TODAY, TODAY) is True


class TestRouting:
    def test_exact_start_without_end_is_fixed(self):
        task = make_task(start=dt(0, 10))

        result, _ = categorize([task])

        assert [(item.planning_task.id, item.start) for item in result.fixed_time_tasks] == [(task.id, dt(0, 10))]

    def test_exact_start_with_end_is_deadline_flexible(self):
        task = make_task(start=dt(0, 10), end=dt(0, 15))

        result, _ = categorize([task])

        assert ids(result.deadline_flexible_pending) == [task.id]

    def test_start_date_with_period_is_period_pending(self):
        task = make_task(start=dt(1), period=DayPeriod.MORNING)

        result, _ = categorize([task])

        assert ids(result.period_tasks_pending[TODAY + timedelta(days=1)][DayPeriod.MORNING]) == [task.id]

    def test_period_with_end_is_deadline_flexible(self):
        task = make_task(start=dt(1), end=dt(3), period=DayPeriod.EVENING)

        result, _ = categorize([task])

        assert ids(result.deadline_flexible_pending) == [task.id]

    def test_start_date_only_is_date_flexible(self):
        task = make_task(start=dt(2))

        result, _ = categorize([task])

        assert ids(result.date_flexible_pending[TODAY + timedelta(days=2)]) == [task.id]

    def test_end_only_is_deadline_flexible(self):
        task = make_task(end=dt(2, 18))

        result, _ = categorize([task])

        assert ids(result.deadline_flexible_pending) == [task.id]

    def test_unconstrained_is_fully_flexible(self):
        task = make_task()

        result, _ = categorize([task])

        assert ids(result.fully_flexible_pending) == [task.id]

    def test_own_date_outside_scope_is_retargeted(self):
        task = make_task(start=dt(-2, 9), minutes=3 * 24 * 60)

        result, _ = categorize([task])

        assert result.fixed_time_tasks == []
        assert ids(result.fully_flexible_pending) == [task.id]

    def test_out_of_scope_tasks_are_excluded(self):
        task = make_task(start=dt(10))

        result, context = categorize([task])

        assert result.pending_in_order() == []
        assert result.fixed_time_tasks == []
        assert context.is_placed(task.id) is False

    def test_recurring_task_becomes_fixed_occurrences(self):
        task = make_task(
            start=dt(0, 7),
            minutes=30,
            repeat=RepeatPlan(frequency_type=FrequencyType.DAILY, repeat_occurrences=3),
        )

        result, _ = categorize([task])

        assert [item.start for item in result.fixed_time_tasks] == [dt(0, 7), dt(1, 7), dt(2, 7)]

    def test_broken_recurrence_is_not_categorized(self):
        task = make_task(repeat=RepeatPlan(frequency_type=FrequencyType.WEEKLY))

        result, context = categorize([task])

        assert result.fixed_time_tasks == []
        assert len(context.conflicts) == 1

    def test_hard_conflicted_tasks_are_skipped(self):
        task = make_task()
        context = PlanningContext([task])
        context.mark_hard_conflict(task.id)

        result, _ = categorize([task], context=context)

        assert result.pending_in_order() == []


class TestOverdueRouting:
    @pytest.mark.parametrize(
        "constraint_offset,expected_bucket",
        [
            (0, "date"),
            (None, "flexible"),
            (3, "date"),
            (10, "flexible"),
        ],
    )
    def test_routing_by_constraint_date(self, constraint_offset, expected_bucket):
        task = make_task(end=dt(-1, 17))
        context = PlanningContext([task])
        constraint = TODAY + timedelta(days=constraint_offset) if constraint_offset is not None else None
        context.mark_overdue(task.id, constraint)

        result, _ = categorize([task], context=context)

        if expected_bucket == "date":
            assert ids(result.date_flexible_pending[constraint]) == [task.id]
        else:
            assert ids(result.fully_flexible_pending) == [task.id]


def test_pending_order_is_period_date_deadline_flexible_without_duplicates():
    flexible = make_task("Flexible")
    deadline = make_task("Deadline", end=dt(2, 12))
    dated = make_task("Dated", start=dt(1))
    period = make_task("Period", start=dt(2), period=DayPeriod.NIGHT)

    result, _ = categorize([flexible, deadline, dated, period])
    result.fully_flexible_pending.append(result.deadline_flexible_pending[0])

    assert [planning_task.task.name for planning_task in result.pending_in_order()] == [
        "Period",
        "Dated",
        "Deadline",
        "Flexible",
    ]
