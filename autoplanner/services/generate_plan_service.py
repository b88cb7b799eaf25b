"""
Plan generation use case.

Orchestrates one planning run: overdue handling, categorization, timeline
setup, the fixed pass, the prioritized pass and consolidation.
"""

from datetime import date, datetime, timedelta
from typing import Any, Callable, Optional, assert_never

from autoplanner.core.config import Settings, get_settings
from autoplanner.core.logger import setup_logger
from autoplanner.models.enums import ConflictType, DayPeriod, ScheduleScope
from autoplanner.models.planner import ConflictItem, PlannerInput, PlannerOutput
from autoplanner.models.planning import CategorizationResult
from autoplanner.models.task import Task
from autoplanner.services.overdue_task_handler import OverdueTaskHandler
from autoplanner.services.planning_context import PlanningContext
from autoplanner.services.recurrence_expander import RecurrenceExpander
from autoplanner.services.task_categorizer import TaskCategorizer
from autoplanner.services.task_placer import PlacementScope, TaskPlacer
from autoplanner.services.task_prioritizer import TaskPrioritizer
from autoplanner.services.timeline_manager import TimelineManager
from autoplanner.utils.datetime_utils import parse_clock

logger = setup_logger(__name__)


def resolve_scope(scope: ScheduleScope, today: date) -> tuple[date, date]:
    """First and last date (inclusive) of a planning window."""
    if scope == ScheduleScope.TODAY:
        return today, today
    if scope == ScheduleScope.TOMORROW:
        tomorrow = today + timedelta(days=1)
        return tomorrow, tomorrow
    if scope == ScheduleScope.THIS_WEEK:
        return today, today + timedelta(days=6)
    assert_never(scope)


def build_planner_input(
    tasks: list[Task],
    settings: Optional[Settings] = None,
    **overrides: Any,
) -> PlannerInput:
    """
    Create a PlannerInput with configured defaults.

    Args:
        tasks: Tasks to plan
        settings: Settings to read defaults from (None = cached settings)
        **overrides: PlannerInput fields that replace the defaults

    Returns:
        PlannerInput: Input for GeneratePlanUseCase.execute
    """
    settings = settings or get_settings()
    values: dict[str, Any] = {
        "tasks": tasks,
        "work_start_time": parse_clock(settings.DEFAULT_WORK_START),
        "work_end_time": parse_clock(settings.DEFAULT_WORK_END),
        "schedule_scope": settings.DEFAULT_SCHEDULE_SCOPE,
        "prioritization_strategy": settings.DEFAULT_PRIORITIZATION_STRATEGY,
        "day_organization": settings.DEFAULT_DAY_ORGANIZATION,
        "flexible_placement_heuristic": settings.DEFAULT_PLACEMENT_HEURISTIC,
        "allow_splitting": settings.DEFAULT_ALLOW_SPLITTING,
        "overdue_task_handling": settings.DEFAULT_OVERDUE_HANDLING,
    }
    values.update(overrides)
    return PlannerInput(**values)


class GeneratePlanUseCase:
    """
    Generates a plan from a PlannerInput.

    The run clock is read once per call and passed to every component, so a
    fixed clock makes the result fully deterministic.
    """

    def __init__(
        self,
        overdue_task_handler: Optional[OverdueTaskHandler] = None,
        task_categorizer: Optional[TaskCategorizer] = None,
        task_prioritizer: Optional[TaskPrioritizer] = None,
        task_placer: Optional[TaskPlacer] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.overdue_task_handler = overdue_task_handler or OverdueTaskHandler()
        self.task_categorizer = task_categorizer or TaskCategorizer()
        self.task_prioritizer = task_prioritizer or TaskPrioritizer()
        self.task_placer = task_placer or TaskPlacer()
        self.clock = clock or datetime.now

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "GeneratePlanUseCase":
        settings = settings or get_settings()
        return cls(
            task_categorizer=TaskCategorizer(RecurrenceExpander(max_occurrences=settings.MAX_RECURRENCE_OCCURRENCES)),
            task_placer=TaskPlacer(
                min_split_chunk_minutes=settings.MIN_SPLIT_CHUNK_MINUTES,
                max_placement_attempts=settings.MAX_PLACEMENT_ATTEMPTS,
            ),
            clock=clock,
        )

    def execute(self, planner_input: PlannerInput) -> PlannerOutput:
        """
        Run the full planning pipeline.

        Args:
            planner_input: Tasks and planning options

        Returns:
            PlannerOutput: Scheduled items, conflicts, postponed tasks,
                tasks needing manual resolution and info items
        """
        now = self.clock()
        today = now.date()
        scope_start, scope_end = resolve_scope(planner_input.schedule_scope, today)
        logger.info(
            f"Generating plan for {scope_start} to {scope_end}: "
            f"{len(planner_input.tasks)} task(s), now={now:%Y-%m-%d %H:%M}"
        )

        context = PlanningContext(planner_input.tasks)

        self.overdue_task_handler.handle(
            context,
            planner_input.overdue_task_handling,
            today,
            scope_start,
            scope_end,
            now,
        )

        categorization = self.task_categorizer.categorize(context, scope_start, scope_end, today)

        timeline = TimelineManager()
        timeline.initialize(
            scope_start,
            scope_end,
            planner_input.work_start_time,
            planner_input.work_end_time,
            self._period_buckets(categorization),
            planner_input.day_organization,
        )

        self.task_placer.place_fixed_tasks(categorization.fixed_time_tasks, timeline, context)

        scope = PlacementScope(
            today=today,
            scope_start=scope_start,
            scope_end=scope_end,
            now=now,
            day_organization=planner_input.day_organization,
            heuristic=planner_input.flexible_placement_heuristic,
            allow_splitting=planner_input.allow_splitting,
        )
        pending = [
            planning_task
            for planning_task in categorization.pending_in_order()
            if not context.is_placed(planning_task.id) and not planning_task.flags.is_hard_conflict
        ]
        strategy = planner_input.prioritization_strategy
        # sorted() is stable with reverse=True, ties keep bucket order
        ordered = sorted(
            pending,
            key=lambda planning_task: self.task_prioritizer.score(planning_task, strategy, now),
            reverse=True,
        )
        for planning_task in ordered:
            if context.is_placed(planning_task.id) or planning_task.flags.is_hard_conflict:
                continue
            self.task_placer.place_prioritized_task(planning_task, timeline, context, scope)

        self._consolidate(context, timeline)

        output = PlannerOutput(
            scheduled_tasks={day: context.scheduled_items_map[day] for day in sorted(context.scheduled_items_map)},
            unresolved_expired=list(context.expired_for_resolution),
            unresolved_conflicts=list(context.conflicts),
            postponed_tasks=list(context.postponed_tasks),
            info_items=list(context.info_items),
        )
        logger.info(
            f"Plan generated: {sum(len(items) for items in output.scheduled_tasks.values())} item(s), "
            f"{len(output.unresolved_conflicts)} conflict(s), {len(output.postponed_tasks)} postponed, "
            f"{len(output.unresolved_expired)} need review"
        )
        return output

    @staticmethod
    def _period_buckets(categorization: CategorizationResult) -> dict[date, dict[DayPeriod, list[Task]]]:
        return {
            day: {
                period: [planning_task.task for planning_task in planning_tasks]
                for period, planning_tasks in periods.items()
            }
            for day, periods in categorization.period_tasks_pending.items()
        }

    @staticmethod
    def _consolidate(context: PlanningContext, timeline: TimelineManager) -> None:
        for day, period, task in timeline.pending_period_tasks():
            if context.find(task.id) is None or context.is_placed(task.id):
                continue
            window_start, _ = timeline.period_window(day, period)
            context.add_conflict(
                ConflictItem(
                    conflicting_tasks=[task],
                    reason=f"Cannot fit Period constraint ({period.value}) on {day}",
                    conflict_time=window_start,
                    conflict_type=ConflictType.CANNOT_FIT_PERIOD,
                )
            )

        for planning_task in context.unplaced_tasks():
            if not planning_task.flags.is_hard_conflict:
                continue
            if context.has_conflict_for(planning_task.id):
                context.mark_placed(planning_task.id)
                continue
            context.add_conflict(
                ConflictItem(
                    conflicting_tasks=[planning_task.task],
                    reason="Remains unplaced due to prior hard conflict",
                    conflict_time=planning_task.task.start_date_time,
                    conflict_type=ConflictType.PLACEMENT_ERROR,
                )
            )

        context.sort_scheduled_items()
