"""
Allocation Models

An Allocation is one cell of the sparse account x goal matrix:
"this account sends `percent` of its funding to this goal".

DESIGN DECISION: Percentages are floats, not Decimals.
Users type values like 33.33 and the row-sum rule is checked with a
small tolerance, so binary rounding never rejects a valid row.
Absence of a row means 0%; a zero row is never stored.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Allocation(BaseModel):
    """
    One (account, goal) weighting.

    The pair (account_id, goal_id) is the unique key.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    account_id: str = Field(
        ...,
        min_length=1,
        description="Funding account"
    )
    goal_id: str = Field(
        ...,
        min_length=1,
        description="Funded goal"
    )
    percent: float = Field(
        ...,
        ge=0.0,
        le=100.0,
        allow_inf_nan=False,
        description="Share of the account's funding, 0-100"
    )

    @property
    def key(self) -> tuple[str, str]:
        return (self.account_id, self.goal_id)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class AllocationIssue(BaseModel):
    """A single problem found in the allocation matrix."""

    issue_type: str = Field(
        ...,
        pattern=(
            "^(invalid_percent|allocation_overflow|duplicate_allocation"
            "|inactive_account|incomplete_allocation|achieved_goal)$"
        ),
        description="Kind of issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    account_id: Optional[str] = None
    goal_id: Optional[str] = None
    value: Optional[float] = Field(
        default=None,
        description="Offending cell value, for invalid_percent"
    )
    excess: Optional[float] = Field(
        default=None,
        description="How far a row total is over the limit"
    )


class AllocationValidationResult(BaseModel):
    """
    Verdict on one state of the matrix.

    Errors block submission. Warnings and info are shown but never block.
    """

    validated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    is_valid: bool = Field(
        ...,
        description="Can this matrix be submitted?"
    )
    issues: list[AllocationIssue] = Field(
        default_factory=list,
        description="All issues found"
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def overflowing_accounts(self) -> dict[str, float]:
        """Account id -> excess percentage, for row highlighting."""
        return {
            issue.account_id: issue.excess
            for issue in self.issues
            if issue.issue_type == "allocation_overflow"
        }

    @property
    def invalid_cells(self) -> set[tuple[str, str]]:
        """Cells holding values that can never be submitted."""
        return {
            (issue.account_id, issue.goal_id)
            for issue in self.issues
            if issue.issue_type == "invalid_percent"
        }

    def issues_for_account(self, account_id: str) -> list[AllocationIssue]:
        return [i for i in self.issues if i.account_id == account_id]


# =============================================================================
# SAVE PROTOCOL MODELS
# =============================================================================

class AllocationChangeSet(BaseModel):
    """
    Difference between the server-known allocations and a submission.

    Removals are implicit in a bulk replace; they are listed here only
    so they can be reported and audited.
    """

    upserts: list[Allocation] = Field(default_factory=list)
    removals: list[Allocation] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.upserts and not self.removals

    @property
    def change_count(self) -> int:
        return len(self.upserts) + len(self.removals)


class SaveResult(BaseModel):
    """Outcome of one bulk replace."""

    success: bool
    submitted: list[Allocation] = Field(default_factory=list)
    changes: AllocationChangeSet = Field(default_factory=AllocationChangeSet)
    error_message: Optional[str] = None
    saved_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
