"""Tests for two-stage allocation validation."""

import math
from decimal import Decimal

import pytest

from goal_allocations.allocation import (
    AllocationMatrix,
    AllocationOverflow,
    DuplicateAllocation,
    InvalidPercent,
    SubmissionBlocked,
)
from goal_allocations.config import AllocationSettings
from goal_allocations.models.allocation import Allocation
from goal_allocations.models.registry import Account, Goal
from goal_allocations.validation import AllocationValidator


class TestCellValidation:
    """Tests for stage 1."""

    def test_empty_matrix_is_valid(self, matrix, validator):
        """An account with no allocations has nothing to report."""
        result = validator.validate(matrix)
        assert result.is_valid is True
        assert result.issues == []

    def test_bad_loaded_cells_are_reported(self, matrix, validator):
        """Out-of-range values that came from storage are flagged per cell."""
        matrix.load([
            {"account_id": "A", "goal_id": "G1", "percent": math.nan},
            {"account_id": "A", "goal_id": "G2", "percent": -5},
            {"account_id": "B", "goal_id": "G1", "percent": 150},
        ])
        result = validator.validate(matrix)

        assert result.is_valid is False
        assert result.invalid_cells == {("A", "G1"), ("A", "G2"), ("B", "G1")}

    def test_duplicates_are_warnings(self, matrix, validator):
        """Duplicate keys on load were resolved, so they only warn."""
        matrix.load([
            Allocation(account_id="A", goal_id="G1", percent=20),
            Allocation(account_id="A", goal_id="G1", percent=30),
        ])
        result = validator.validate(matrix)

        assert result.is_valid is True
        assert len(result.warnings) == 1
        assert result.issues[0].issue_type == "duplicate_allocation"


class TestRowValidation:
    """Tests for stage 2."""

    def test_overflow_reports_excess(self, matrix, validator):
        """60% + 50% on one account is 10% over."""
        matrix.set_cell("A", "G1", 60)
        matrix.set_cell("A", "G2", 50)
        result = validator.validate(matrix)

        assert result.is_valid is False
        assert result.overflowing_accounts == pytest.approx({"A": 10.0})
        assert "Brokerage" in result.issues[0].message

    def test_exactly_full_is_valid(self, matrix, validator):
        matrix.set_cell("A", "G1", 100)
        matrix.set_cell("B", "G1", 30)
        matrix.set_cell("B", "G2", 70)
        assert validator.validate(matrix).is_valid is True

    def test_rounding_within_tolerance_is_valid(self, matrix, validator):
        """Float noise below the tolerance does not block a save."""
        matrix.set_cell("A", "G1", 50.0000000005)
        matrix.set_cell("A", "G2", 50)
        assert validator.validate(matrix).is_valid is True

    def test_small_real_overflow_is_caught(self, matrix, validator):
        matrix.set_cell("A", "G1", 50.000001)
        matrix.set_cell("A", "G2", 50)
        result = validator.validate(matrix)
        assert result.is_valid is False
        assert result.overflowing_accounts["A"] == pytest.approx(0.000001)

    def test_rows_are_independent(self, matrix, validator):
        """Only the overflowing account is flagged."""
        matrix.set_cell("A", "G1", 90)
        matrix.set_cell("A", "G2", 20)
        matrix.set_cell("B", "G1", 40)
        result = validator.validate(matrix)
        assert set(result.overflowing_accounts) == {"A"}

    def test_full_allocation_policy(self, matrix):
        """With the policy on, a partly allocated account blocks saving."""
        validator = AllocationValidator(
            AllocationSettings(require_full_allocation=True)
        )
        matrix.set_cell("A", "G1", 100)
        matrix.set_cell("B", "G1", 40)
        result = validator.validate(matrix)

        assert result.is_valid is False
        assert [i.issue_type for i in result.issues] == ["incomplete_allocation"]
        assert result.issues[0].account_id == "B"

    def test_partial_allocation_allowed_by_default(self, matrix, validator):
        matrix.set_cell("B", "G1", 40)
        assert validator.validate(matrix).is_valid is True

    def test_inactive_account_warns(self, goals, validator):
        accounts = [Account(id="C", name="Old IRA", currency="USD", is_active=False)]
        matrix = AllocationMatrix(accounts, goals)
        matrix.set_cell("C", "G1", 10)
        result = validator.validate(matrix)

        assert result.is_valid is True
        assert result.warnings == ["Old IRA is inactive but still funds goals"]

    def test_inactive_warning_can_be_disabled(self, goals):
        validator = AllocationValidator(
            AllocationSettings(warn_inactive_accounts=False)
        )
        accounts = [Account(id="C", name="Old IRA", currency="USD", is_active=False)]
        matrix = AllocationMatrix(accounts, goals)
        matrix.set_cell("C", "G1", 10)
        assert validator.validate(matrix).issues == []

    def test_achieved_goal_is_info(self, accounts, validator):
        goals = [Goal(id="G3", title="Car", target_amount=Decimal("20000"), is_achieved=True)]
        matrix = AllocationMatrix(accounts, goals)
        matrix.set_cell("A", "G3", 10)
        result = validator.validate(matrix)

        assert result.is_valid is True
        assert result.warnings == []
        assert result.issues[0].issue_type == "achieved_goal"
        assert result.issues[0].severity == "info"

    def test_validation_does_not_touch_matrix(self, matrix, validator):
        """Same matrix, same verdict, same cells."""
        matrix.set_cell("A", "G1", 60)
        matrix.set_cell("A", "G2", 50)
        before = matrix.cells()

        first = validator.validate(matrix)
        second = validator.validate(matrix)

        assert matrix.cells() == before
        assert first.issues == second.issues


class TestSubmissionChecks:
    """Tests for the guard on the list sent to storage."""

    def test_duplicate_key_rejected(self, validator):
        allocations = [
            Allocation(account_id="A", goal_id="G1", percent=20),
            Allocation(account_id="A", goal_id="G1", percent=30),
        ]
        with pytest.raises(DuplicateAllocation) as exc_info:
            validator.check_submission_list(allocations)
        assert exc_info.value.goal_id == "G1"

    def test_overflow_rejected(self, validator):
        allocations = [
            Allocation(account_id="A", goal_id="G1", percent=60),
            Allocation(account_id="A", goal_id="G2", percent=50),
        ]
        with pytest.raises(AllocationOverflow) as exc_info:
            validator.check_submission_list(allocations)
        assert exc_info.value.account_id == "A"
        assert exc_info.value.excess == pytest.approx(10.0)

    def test_valid_list_returned(self, validator):
        allocations = [Allocation(account_id="A", goal_id="G1", percent=60)]
        assert validator.check_submission_list(iter(allocations)) == allocations


class TestRaiseForErrors:
    """Tests for typed errors from a verdict."""

    def test_overflow_raised(self, matrix, validator):
        matrix.set_cell("A", "G1", 60)
        matrix.set_cell("A", "G2", 50)
        with pytest.raises(AllocationOverflow) as exc_info:
            validator.raise_for_errors(validator.validate(matrix))
        assert exc_info.value.excess == pytest.approx(10.0)

    def test_invalid_percent_raised(self, matrix, validator):
        matrix.load([{"account_id": "A", "goal_id": "G1", "percent": 150}])
        with pytest.raises(InvalidPercent):
            validator.raise_for_errors(validator.validate(matrix))

    def test_other_errors_raise_blocked(self, matrix):
        validator = AllocationValidator(
            AllocationSettings(require_full_allocation=True)
        )
        matrix.set_cell("A", "G1", 40)
        with pytest.raises(SubmissionBlocked):
            validator.raise_for_errors(validator.validate(matrix))

    def test_valid_result_raises_nothing(self, matrix, validator):
        matrix.set_cell("A", "G1", 40)
        validator.raise_for_errors(validator.validate(matrix))


class TestSummary:
    """Tests for the text shown next to the Save button."""

    def test_summary_all_good(self, matrix, validator):
        summary = validator.get_user_friendly_summary(validator.validate(matrix))
        assert summary.startswith("✅")

    def test_summary_lists_errors(self, matrix, validator):
        matrix.set_cell("A", "G1", 60)
        matrix.set_cell("A", "G2", 50)
        summary = validator.get_user_friendly_summary(validator.validate(matrix))

        assert "❌" in summary
        assert "Brokerage" in summary
        assert summary.endswith("Saving is disabled until the issues above are fixed.")
