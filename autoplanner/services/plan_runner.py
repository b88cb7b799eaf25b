"""
Async entry point for plan generation.

Planning is synchronous and CPU-bound, so it runs in a worker thread. One
lock per user keeps at most one run per user in flight.
"""

import asyncio
from typing import Optional

from autoplanner.core.config import get_settings
from autoplanner.core.exceptions import PlanInProgressError
from autoplanner.core.logger import setup_logger
from autoplanner.models.planner import PlannerInput, PlannerOutput
from autoplanner.services.generate_plan_service import GeneratePlanUseCase

logger = setup_logger(__name__)


class PlanRunner:
    def __init__(
        self,
        use_case: Optional[GeneratePlanUseCase] = None,
        wait_for_running_plan: Optional[bool] = None,
    ) -> None:
        settings = get_settings()
        self.use_case = use_case or GeneratePlanUseCase.from_settings(settings)
        self.wait_for_running_plan = (
            settings.WAIT_FOR_RUNNING_PLAN if wait_for_running_plan is None else wait_for_running_plan
        )
        self._locks: dict[str, asyncio.Lock] = {}
        # runs holding or waiting on each user's lock
        self._pending: dict[str, int] = {}

    def is_running(self, user_id: str) -> bool:
        lock = self._locks.get(user_id)
        return lock is not None and lock.locked()

    async def generate(self, user_id: str, planner_input: PlannerInput) -> PlannerOutput:
        """
        Generate a plan for a user off the event loop.

        Args:
            user_id: Owner of the plan
            planner_input: Planning input

        Returns:
            PlannerOutput: Generated plan

        Raises:
            PlanInProgressError: A run for this user is in flight and waiting is disabled
        """
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        if lock.locked() and not self.wait_for_running_plan:
            logger.warning(f"Rejected plan request for user {user_id}: run already in progress")
            raise PlanInProgressError(user_id)
        self._pending[user_id] = self._pending.get(user_id, 0) + 1
        try:
            async with lock:
                logger.info(f"Plan run started for user {user_id}")
                return await asyncio.to_thread(self.use_case.execute, planner_input)
        finally:
            self._pending[user_id] -= 1
            if self._pending[user_id] == 0:
                del self._pending[user_id]
                del self._locks[user_id]
