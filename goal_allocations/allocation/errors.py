"""
Allocation Errors

Edit-time errors (InvalidPercent) are resolved locally.
Pre-submit errors (AllocationOverflow, DuplicateAllocation,
SubmissionBlocked) stop the save before any storage call.
Only SubmissionFailed comes back from the storage boundary.
"""

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from goal_allocations.models.allocation import AllocationValidationResult


class AllocationError(Exception):
    """Base exception for allocation errors."""
    pass


class InvalidPercent(AllocationError):
    """A cell value is non-numeric, non-finite, or outside [0, 100]."""

    def __init__(
        self,
        value: Any,
        account_id: Optional[str] = None,
        goal_id: Optional[str] = None,
    ):
        self.value = value
        self.account_id = account_id
        self.goal_id = goal_id
        where = f" for {account_id}/{goal_id}" if account_id and goal_id else ""
        super().__init__(
            f"Invalid percentage {value!r}{where}: must be a number between 0 and 100"
        )


class AllocationOverflow(AllocationError):
    """An account's allocations add up to more than 100%."""

    def __init__(self, account_id: str, excess: float):
        self.account_id = account_id
        self.excess = excess
        super().__init__(
            f"Account {account_id} is over-allocated by {excess:g}%"
        )


class DuplicateAllocation(AllocationError):
    """The same (account, goal) pair appears more than once in a list."""

    def __init__(self, account_id: str, goal_id: str):
        self.account_id = account_id
        self.goal_id = goal_id
        super().__init__(
            f"Duplicate allocation for account {account_id} and goal {goal_id}"
        )


class SubmissionBlocked(AllocationError):
    """Validation errors are present; nothing was sent to storage."""

    def __init__(self, result: "AllocationValidationResult"):
        self.result = result
        super().__init__(
            f"Submission blocked by {result.error_count} validation error(s)"
        )


class SubmissionInProgress(AllocationError):
    """A bulk replace is already in flight."""
    pass


class SubmissionFailed(AllocationError):
    """Storage rejected the bulk replace. The local matrix is unchanged."""
    pass
