"""
Two-Stage Allocation Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - CELL VALIDATION:
- Every stored cell is a finite number in [0, 100]
- Duplicate keys seen while loading are reported
- This catches malformed data that slipped in through load()

STAGE 2 - ROW VALIDATION:
- No account commits more than 100% (within a rounding tolerance)
- Optional full-allocation policy (every used account totals 100%)
- Inactive accounts and achieved goals still receiving money
- This catches matrices that are well-formed but logically invalid

The validator is PURE: same matrix, same verdict. It never touches
storage and never changes the matrix.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them so the UI can highlight the row or cell.
"""

import math
from collections.abc import Iterable
from typing import Optional

from goal_allocations.allocation.errors import (
    AllocationOverflow,
    DuplicateAllocation,
    InvalidPercent,
    SubmissionBlocked,
)
from goal_allocations.allocation.matrix import AllocationMatrix
from goal_allocations.config import AllocationSettings, get_settings
from goal_allocations.models.allocation import (
    Allocation,
    AllocationIssue,
    AllocationValidationResult,
)


class AllocationValidator:
    """
    Decides whether an allocation matrix can be submitted.

    Stage 1: Cell validation
    Stage 2: Row validation
    """

    def __init__(
        self,
        settings: Optional[AllocationSettings] = None,
    ):
        """
        Initialize validator.

        Args:
            settings: Allocation rules. Defaults to the application settings.
        """
        self._settings = settings or get_settings().allocation

    @property
    def max_row_total(self) -> float:
        return self._settings.max_row_total

    @property
    def tolerance(self) -> float:
        return self._settings.tolerance

    def _validate_cells(
        self,
        matrix: AllocationMatrix,
    ) -> tuple[bool, list[AllocationIssue]]:
        """
        Stage 1: Cell validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        for account_id, goal_id in matrix.invalid_cells():
            percent = matrix.get_cell(account_id, goal_id)
            issues.append(AllocationIssue(
                issue_type="invalid_percent",
                severity="error",
                message=(
                    f"{self._account_label(matrix, account_id)} -> "
                    f"{self._goal_label(matrix, goal_id)}: "
                    f"{percent} is not a percentage between 0 and 100"
                ),
                account_id=account_id,
                goal_id=goal_id,
                value=percent,
            ))

        for account_id, goal_id in matrix.duplicates:
            # Already resolved by last-wins on load
            issues.append(AllocationIssue(
                issue_type="duplicate_allocation",
                severity="warning",
                message=(
                    f"{self._account_label(matrix, account_id)} -> "
                    f"{self._goal_label(matrix, goal_id)} was listed more than "
                    "once; the last value was kept"
                ),
                account_id=account_id,
                goal_id=goal_id,
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def _validate_rows(
        self,
        matrix: AllocationMatrix,
    ) -> tuple[bool, list[AllocationIssue]]:
        """
        Stage 2: Row validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        limit = self._settings.max_row_total
        tolerance = self._settings.tolerance

        for account_id in matrix.allocated_account_ids():
            total = matrix.row_sum(account_id)
            account = matrix.get_account(account_id)
            label = self._account_label(matrix, account_id)

            if total > limit + tolerance:
                excess = total - limit
                issues.append(AllocationIssue(
                    issue_type="allocation_overflow",
                    severity="error",
                    message=f"{label} is allocated {total:g}% ({excess:g}% over {limit:g}%)",
                    account_id=account_id,
                    excess=excess,
                ))
            elif (
                self._settings.require_full_allocation
                and abs(total - limit) > tolerance
            ):
                issues.append(AllocationIssue(
                    issue_type="incomplete_allocation",
                    severity="error",
                    message=f"{label} is allocated {total:g}% but must total {limit:g}%",
                    account_id=account_id,
                ))

            if (
                self._settings.warn_inactive_accounts
                and account is not None
                and not account.is_active
            ):
                issues.append(AllocationIssue(
                    issue_type="inactive_account",
                    severity="warning",
                    message=f"{label} is inactive but still funds goals",
                    account_id=account_id,
                ))

        for goal in matrix.goals:
            if goal.is_achieved and any(True for _ in matrix.get_column(goal.id)):
                issues.append(AllocationIssue(
                    issue_type="achieved_goal",
                    severity="info",
                    message=f"Goal '{goal.title}' is already achieved but still receives allocations",
                    goal_id=goal.id,
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def validate(
        self,
        matrix: AllocationMatrix,
    ) -> AllocationValidationResult:
        """
        Run both stages and collect every issue.

        Row validation runs even when cell validation fails, so the UI
        can highlight over-allocated rows and bad cells at the same time.
        """
        cells_valid, cell_issues = self._validate_cells(matrix)
        rows_valid, row_issues = self._validate_rows(matrix)
        all_issues = cell_issues + row_issues

        warnings = [
            issue.message for issue in all_issues if issue.severity == "warning"
        ]

        return AllocationValidationResult(
            is_valid=cells_valid and rows_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def check_submission_list(
        self,
        allocations: Iterable[Allocation],
    ) -> list[Allocation]:
        """
        Last guard before a list goes to storage.

        Raises DuplicateAllocation for a repeated key and
        AllocationOverflow for an over-committed account.
        Returns the list unchanged.
        """
        allocations = list(allocations)
        seen: set[tuple[str, str]] = set()
        totals: dict[str, list[float]] = {}

        for allocation in allocations:
            if allocation.key in seen:
                raise DuplicateAllocation(allocation.account_id, allocation.goal_id)
            seen.add(allocation.key)
            totals.setdefault(allocation.account_id, []).append(allocation.percent)

        limit = self._settings.max_row_total
        for account_id, percents in totals.items():
            total = math.fsum(percents)
            if total > limit + self._settings.tolerance:
                raise AllocationOverflow(account_id, total - limit)

        return allocations

    def raise_for_errors(self, result: AllocationValidationResult) -> None:
        """
        Raise the first blocking issue as its typed exception.

        Error kinds without a dedicated exception raise SubmissionBlocked.
        """
        for issue in result.issues:
            if issue.severity != "error":
                continue
            if issue.issue_type == "allocation_overflow":
                raise AllocationOverflow(issue.account_id, issue.excess)
            if issue.issue_type == "invalid_percent":
                raise InvalidPercent(issue.value, issue.account_id, issue.goal_id)
            raise SubmissionBlocked(result)

    def get_user_friendly_summary(
        self,
        result: AllocationValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show next to the Save button.
        """
        if result.is_valid and not result.warnings:
            return "✅ All allocations are within limits."

        lines = []

        if result.has_errors:
            lines.append("❌ These allocations must be fixed before saving:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")

        if result.warnings:
            lines.append("")
            lines.append("⚠️ Please check the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        lines.append("")
        if result.is_valid:
            lines.append("You can still save.")
        else:
            lines.append("Saving is disabled until the issues above are fixed.")

        return "\n".join(lines).strip()

    @staticmethod
    def _account_label(matrix: AllocationMatrix, account_id: str) -> str:
        account = matrix.get_account(account_id)
        return account.name if account else account_id

    @staticmethod
    def _goal_label(matrix: AllocationMatrix, goal_id: str) -> str:
        goal = matrix.get_goal(goal_id)
        return goal.title if goal else goal_id
