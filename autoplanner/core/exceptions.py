"""
Custom exceptions for the planner.
"""

from typing import Any, Optional


class AutoPlannerError(Exception):
    """Base exception for autoplanner."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(AutoPlannerError):
    """Validation error."""

    pass


class PlanningInvariantError(AutoPlannerError):
    """
    A planning precondition was violated.

    Raised when a component receives a task in a state the pipeline should
    never produce. This is a programming error and aborts the run.
    """

    pass


class RecurrenceRuleError(AutoPlannerError):
    """A repeat plan cannot be turned into a recurrence rule."""

    pass


class BusinessLogicError(AutoPlannerError):
    """Business logic constraint violation."""

    pass


class PlanInProgressError(BusinessLogicError):
    """A plan is already being generated for this user."""

    def __init__(self, user_id: str):
        super().__init__(f"Plan generation already running for user {user_id}", details={"user_id": user_id})
        self.user_id = user_id
