"""Allocation matrix package."""

from goal_allocations.allocation.changes import diff_allocations
from goal_allocations.allocation.errors import (
    AllocationError,
    AllocationOverflow,
    DuplicateAllocation,
    InvalidPercent,
    SubmissionBlocked,
    SubmissionFailed,
    SubmissionInProgress,
)
from goal_allocations.allocation.matrix import (
    MAX_PERCENT,
    AllocationMatrix,
    coerce_percent,
)

__all__ = [
    "MAX_PERCENT",
    "AllocationError",
    "AllocationMatrix",
    "AllocationOverflow",
    "DuplicateAllocation",
    "InvalidPercent",
    "SubmissionBlocked",
    "SubmissionFailed",
    "SubmissionInProgress",
    "coerce_percent",
    "diff_allocations",
]
