"""
Unit tests for OverdueTaskHandler.
"""

from datetime import date, datetime, timedelta

from autoplanner.models.enums import OverdueTaskHandling, Priority
from autoplanner.models.task import Task, TimePlanning
from autoplanner.services.overdue_task_handler import OverdueTaskHandler
from autoplanner.services.planning_context import PlanningContext

NOW = datetime(2026, 10, 19, 8, 0)
TODAY = NOW.date()
WEEK_END = TODAY + timedelta(days=6)


def make_task(
    name: str,
    end: datetime | None = None,
    start: datetime | None = None,
    priority: Priority = Priority.NONE,
) -> Task:
    return Task(
        name=name,
        priority=priority,
        start_date_conf=TimePlanning(date_time=start) if start else None,
        end_date_conf=TimePlanning(date_time=end) if end else None,
    )


def yesterday_at(hour: int) -> datetime:
    return datetime.combine(TODAY - timedelta(days=1), datetime.min.time()).replace(hour=hour)


def handle(tasks: list[Task], strategy: OverdueTaskHandling, scope_start: date = TODAY, scope_end: date = TODAY):
    context = PlanningContext(tasks)
    OverdueTaskHandler().handle(context, strategy, TODAY, scope_start, scope_end, NOW)
    return context


def test_postpone_to_tomorrow():
    overdue = make_task("Report", end=yesterday_at(17))
    current = make_task("Future", end=NOW + timedelta(days=1))

    context = handle([overdue, current], OverdueTaskHandling.POSTPONE_TO_TOMORROW)

    assert context.postponed_tasks == [overdue]
    assert context.is_placed(overdue.id) is True
    assert context.is_placed(current.id) is False


def test_user_review_required():
    overdue = make_task("Report", end=yesterday_at(17))

    context = handle([overdue], OverdueTaskHandling.USER_REVIEW_REQUIRED)

    assert context.expired_for_resolution == [overdue]
    assert context.get(overdue.id).flags.needs_manual_resolution is True
    assert context.postponed_tasks == []


def test_next_available_assigns_round_robin_by_priority():
    low = make_task("Low", end=yesterday_at(9), priority=Priority.LOW)
    high = make_task("High", end=yesterday_at(10), priority=Priority.HIGH)
    medium = make_task("Medium", end=yesterday_at(11), priority=Priority.MEDIUM)

    context = handle([low, high, medium], OverdueTaskHandling.NEXT_AVAILABLE, TODAY, WEEK_END)

    assert context.get(high.id).flags.constraint_date == TODAY
    assert context.get(medium.id).flags.constraint_date == TODAY + timedelta(days=1)
    assert context.get(low.id).flags.constraint_date == TODAY + timedelta(days=2)
    assert all(context.get(task.id).flags.is_overdue for task in (low, high, medium))
    assert context.placed_task_ids == frozenset()


def test_next_available_wraps_around_short_scope():
    first = make_task("First", end=yesterday_at(9))
    second = make_task("Second", end=yesterday_at(10))

    context = handle([first, second], OverdueTaskHandling.NEXT_AVAILABLE)

    assert context.get(first.id).flags.constraint_date == TODAY
    assert context.get(second.id).flags.constraint_date == TODAY


def test_next_available_starts_at_scope_start():
    tomorrow = TODAY + timedelta(days=1)
    overdue = make_task("Report", end=yesterday_at(17))

    context = handle([overdue], OverdueTaskHandling.NEXT_AVAILABLE, tomorrow, tomorrow)

    assert context.get(overdue.id).flags.constraint_date == tomorrow


def test_next_available_without_days_falls_back_to_review():
    overdue = make_task("Report", end=yesterday_at(17))
    past = TODAY - timedelta(days=3)

    context = handle([overdue], OverdueTaskHandling.NEXT_AVAILABLE, past, past)

    assert context.expired_for_resolution == [overdue]


def test_fixed_appointments_are_left_alone():
    appointment = make_task("Dentist", start=yesterday_at(10), end=yesterday_at(11))

    context = handle([appointment], OverdueTaskHandling.POSTPONE_TO_TOMORROW)

    assert context.postponed_tasks == []
    assert context.is_placed(appointment.id) is False
    assert context.get(appointment.id).flags.is_overdue is False


def test_start_only_task_from_yesterday_is_overdue():
    errand = make_task("Errand", start=yesterday_at(0))

    context = handle([errand], OverdueTaskHandling.NEXT_AVAILABLE)

    assert context.get(errand.id).flags.is_overdue is True
