"""
Unit tests for TimelineManager.
"""

from datetime import date, datetime, time, timedelta

import pytest

from autoplanner.models.enums import ConflictType, DayOrganization, DayPeriod, Occupancy, PlacementHeuristic, Priority
from autoplanner.models.planning import BlockConflict, BlockPlaced
from autoplanner.models.task import DurationPlan, Task
from autoplanner.services.timeline_manager import TimelineManager

TODAY = date(2026, 10, 19)


def dt(hour: int, minute: int = 0, day: date = TODAY) -> datetime:
    return datetime.combine(day, time(hour, minute))


def make_task(name: str = "Task", minutes: int = 60, priority: Priority = Priority.NONE) -> Task:
    return Task(name=name, priority=priority, duration_conf=DurationPlan(total_minutes=minutes))


def make_timeline(
    work_start: time = time(9, 0),
    work_end: time = time(17, 0),
    days: int = 1,
    organization: DayOrganization = DayOrganization.MAXIMIZE_PRODUCTIVITY,
) -> TimelineManager:
    timeline = TimelineManager()
    timeline.initialize(TODAY, TODAY + timedelta(days=days - 1), work_start, work_end, None, organization)
    return timeline


def layout(timeline: TimelineManager, day: date = TODAY) -> list[tuple[time, time, Occupancy]]:
    return [(block.start.time(), block.end.time(), block.occupancy) for block in timeline.get_day_schedule(day).blocks]


def assert_covers_day(timeline: TimelineManager, day: date = TODAY) -> None:
    blocks = timeline.get_day_schedule(day).blocks
    assert blocks[0].start == datetime.combine(day, time.min)
    assert blocks[-1].end == datetime.combine(day + timedelta(days=1), time.min)
    for previous, current in zip(blocks, blocks[1:]):
        assert previous.end == current.start
        assert current.end > current.start


class TestInitialize:
    def test_regular_work_hours(self):
        timeline = make_timeline()

        assert layout(timeline) == [
            (time(0, 0), time(9, 0), Occupancy.OUT_OF_HOURS),
            (time(9, 0), time(17, 0), Occupancy.FREE),
            (time(17, 0), time(0, 0), Occupancy.OUT_OF_HOURS),
        ]
        assert_covers_day(timeline)

    def test_work_hours_wrapping_past_midnight(self):
        timeline = make_timeline(time(22, 0), time(6, 0))

        assert layout(timeline) == [
            (time(0, 0), time(6, 0), Occupancy.FREE),
            (time(6, 0), time(22, 0), Occupancy.OUT_OF_HOURS),
            (time(22, 0), time(0, 0), Occupancy.FREE),
        ]
        assert_covers_day(timeline)

    def test_equal_start_and_end_is_a_free_day(self):
        timeline = make_timeline(time(8, 0), time(8, 0))

        assert layout(timeline) == [(time(0, 0), time(0, 0), Occupancy.FREE)]
        assert_covers_day(timeline)

    def test_one_schedule_per_date(self):
        timeline = make_timeline(days=7)

        assert timeline.dates == [TODAY + timedelta(days=offset) for offset in range(7)]

    def test_period_tasks_are_kept_per_day(self):
        task = make_task()
        timeline = TimelineManager()
        timeline.initialize(TODAY, TODAY, time(9, 0), time(17, 0), {TODAY: {DayPeriod.MORNING: [task]}})

        assert timeline.pending_period_tasks() == [(TODAY, DayPeriod.MORNING, task)]

    def test_balanced_schedule_adds_breaks_and_lunch(self):
        timeline = make_timeline(organization=DayOrganization.BALANCED_SCHEDULE)

        buffers = [(start, end) for start, end, occupancy in layout(timeline) if occupancy == Occupancy.BUFFER]

        assert buffers == [
            (time(11, 30), time(11, 45)),
            (time(12, 30), time(13, 30)),
            (time(14, 30), time(14, 45)),
        ]
        assert_covers_day(timeline)

    def test_lunch_moves_when_a_break_takes_half_past_twelve(self):
        timeline = make_timeline(time(10, 0), time(18, 0), organization=DayOrganization.BALANCED_SCHEDULE)

        buffers = [(start, end) for start, end, occupancy in layout(timeline) if occupancy == Occupancy.BUFFER]

        # 12:30 coffee break and the lunch hour after it merge into one buffer
        assert buffers == [(time(12, 30), time(13, 45)), (time(15, 30), time(15, 45))]


class TestFindSlot:
    def test_earliest_fit_and_best_fit(self):
        timeline = make_timeline()
        timeline.place_task(make_task("Block"), dt(10), dt(16, 30), Occupancy.FIXED_TASK)

        earliest = timeline.find_slot(30, dt(0), dt(0, day=TODAY + timedelta(days=1)), PlacementHeuristic.EARLIEST_FIT)
        best = timeline.find_slot(30, dt(0), dt(0, day=TODAY + timedelta(days=1)), PlacementHeuristic.BEST_FIT)

        assert earliest.start == dt(9)
        assert earliest.available_end == dt(10)
        assert best.start == dt(16, 30)
        assert best.end == dt(17)

    def test_respects_window_bounds(self):
        timeline = make_timeline()

        slot = timeline.find_slot(60, dt(15, 30), dt(20))

        assert slot.start == dt(15, 30)
        assert slot.available_end == dt(17)
        assert timeline.find_slot(120, dt(15, 30), dt(20)) is None

    def test_free_space_joins_across_midnight(self):
        timeline = make_timeline(time(22, 0), time(6, 0), days=2)
        tomorrow = TODAY + timedelta(days=1)

        slot = timeline.find_slot(240, dt(20), dt(12, day=tomorrow))

        assert slot.start == dt(22)
        assert slot.end == dt(2, day=tomorrow)
        assert slot.available_end == dt(6, day=tomorrow)

    def test_empty_window(self):
        timeline = make_timeline()

        assert timeline.find_slot(30, dt(12), dt(12)) is None
        assert timeline.find_slot(0, dt(9), dt(17)) is None


class TestPlaceTask:
    def test_fixed_over_fixed_is_a_hard_conflict(self):
        timeline = make_timeline()
        first = make_task("Standup")
        timeline.place_task(first, dt(10), dt(11), Occupancy.FIXED_TASK)

        result = timeline.place_task(make_task("Review"), dt(10, 30), dt(11, 30), Occupancy.FIXED_TASK)

        assert isinstance(result, BlockConflict)
        assert result.conflict_type == ConflictType.FIXED_VS_FIXED
        assert result.conflicting_task_id == first.id
        assert result.conflict_time == dt(10, 30)
        assert result.reason == "Overlaps fixed task 'Standup'"

    def test_flexible_task_cannot_use_out_of_hours(self):
        timeline = make_timeline()

        result = timeline.place_task(make_task(), dt(7), dt(8), Occupancy.FLEXIBLE_TASK)

        assert isinstance(result, BlockConflict)
        assert result.conflict_type == ConflictType.PLACEMENT_ERROR
        assert result.reason == "Outside work hours"

    def test_fixed_task_may_use_out_of_hours(self):
        timeline = make_timeline()
        task = make_task()

        result = timeline.place_task(task, dt(7), dt(8), Occupancy.FIXED_TASK)

        assert isinstance(result, BlockPlaced)
        assert result.block.task_id == task.id
        assert layout(timeline)[1] == (time(7, 0), time(8, 0), Occupancy.FIXED_TASK)
        assert_covers_day(timeline)

    def test_placed_block_splits_free_space(self):
        timeline = make_timeline()
        task = make_task()

        timeline.place_task(task, dt(10), dt(11), Occupancy.FLEXIBLE_TASK)

        assert layout(timeline) == [
            (time(0, 0), time(9, 0), Occupancy.OUT_OF_HOURS),
            (time(9, 0), time(10, 0), Occupancy.FREE),
            (time(10, 0), time(11, 0), Occupancy.FLEXIBLE_TASK),
            (time(11, 0), time(17, 0), Occupancy.FREE),
            (time(17, 0), time(0, 0), Occupancy.OUT_OF_HOURS),
        ]
        assert [block.task_id for block in timeline.blocks_for_task(task.id)] == [task.id]

    def test_flexible_task_may_replace_a_buffer(self):
        timeline = make_timeline()
        timeline.place_task(None, dt(10), dt(10, 15), Occupancy.BUFFER)

        result = timeline.place_task(make_task(), dt(10), dt(11), Occupancy.FLEXIBLE_TASK)

        assert isinstance(result, BlockPlaced)

    def test_invalid_ranges_fail(self):
        timeline = make_timeline()

        assert not isinstance(timeline.place_task(make_task(), dt(11), dt(10), Occupancy.FLEXIBLE_TASK), BlockPlaced)
        missing_day = TODAY + timedelta(days=3)
        assert timeline.place_task(make_task(), dt(10, day=missing_day), dt(11, day=missing_day), Occupancy.FIXED_TASK).reason == (
            "No schedule found for date"
        )

    def test_release_restores_free_and_out_of_hours(self):
        timeline = make_timeline()
        before = layout(timeline)
        fixed = timeline.place_task(make_task("Early"), dt(7), dt(9, 30), Occupancy.FIXED_TASK)
        flexible = timeline.place_task(make_task("Work"), dt(13), dt(14), Occupancy.FLEXIBLE_TASK)

        timeline.release_block(fixed.block)
        timeline.release_block(flexible.block)

        assert layout(timeline) == before

    def test_release_gives_back_a_covered_break(self):
        timeline = make_timeline(organization=DayOrganization.BALANCED_SCHEDULE)
        before = layout(timeline)
        fixed = timeline.place_task(make_task("Call"), dt(11), dt(12), Occupancy.FIXED_TASK)
        assert (time(11, 0), time(12, 0), Occupancy.FIXED_TASK) in layout(timeline)

        timeline.release_block(fixed.block)

        assert layout(timeline) == before
        assert_covers_day(timeline)


class TestBuffers:
    @pytest.mark.parametrize(
        "priority,minutes,expected",
        [
            (Priority.HIGH, 15, 20),
            (Priority.LOW, 150, 15),
            (Priority.MEDIUM, 60, 10),
            (Priority.NONE, 45, 5),
        ],
    )
    def test_buffer_length(self, priority, minutes, expected):
        assert TimelineManager.buffer_minutes(make_task(minutes=minutes, priority=priority)) == expected

    def test_buffer_follows_task(self):
        timeline = make_timeline()
        task = make_task(minutes=60)
        timeline.place_task(task, dt(10), dt(11), Occupancy.FLEXIBLE_TASK)

        block = timeline.add_buffer_or_break(dt(11), task, DayOrganization.SMART_BUFFERS)

        assert block.start == dt(11)
        assert block.end == dt(11, 10)
        assert block.occupancy == Occupancy.BUFFER

    def test_no_buffer_when_maximizing(self):
        timeline = make_timeline()

        assert timeline.add_buffer_or_break(dt(11), make_task(), DayOrganization.MAXIMIZE_PRODUCTIVITY) is None
        assert timeline.buffer_gap(DayOrganization.MAXIMIZE_PRODUCTIVITY) == timedelta(0)
        assert timeline.buffer_gap(DayOrganization.SMART_BUFFERS) == timedelta(minutes=10)

    def test_no_buffer_past_work_end(self):
        timeline = make_timeline()

        assert timeline.add_buffer_or_break(dt(17), make_task(), DayOrganization.SMART_BUFFERS) is None
        assert timeline.add_buffer_or_break(dt(16, 55), make_task(), DayOrganization.SMART_BUFFERS) is None

    def test_no_buffer_on_occupied_time(self):
        timeline = make_timeline()
        timeline.place_task(make_task("Next"), dt(11, 5), dt(12), Occupancy.FIXED_TASK)

        assert timeline.add_buffer_or_break(dt(11), make_task(), DayOrganization.SMART_BUFFERS) is None


class TestWorkHours:
    def test_period_window_is_clipped_to_work_hours(self):
        timeline = make_timeline()

        assert timeline.period_window(TODAY, DayPeriod.MORNING) == (dt(9), dt(12))
        assert timeline.period_window(TODAY, DayPeriod.EVENING) == (dt(12), dt(17))
        assert timeline.period_window(TODAY, DayPeriod.NIGHT) == (dt(0), dt(0))

    def test_is_within_work_hours(self):
        timeline = make_timeline()

        assert timeline.is_within_work_hours(dt(9), dt(10)) is True
        assert timeline.is_within_work_hours(dt(8), dt(10)) is False

    def test_is_within_wrapped_work_hours(self):
        timeline = make_timeline(time(22, 0), time(6, 0), days=2)
        tomorrow = TODAY + timedelta(days=1)

        assert timeline.is_within_work_hours(dt(23), dt(1, day=tomorrow)) is True
        assert timeline.is_within_work_hours(dt(5), dt(7)) is False
