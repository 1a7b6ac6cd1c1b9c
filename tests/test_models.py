"""
Tests for Goal Allocations

Test strategy:
1. Unit tests for individual components (models, matrix, validator)
2. Flow tests for the editor (with in-memory and fake storage)
3. No real API calls in tests
"""

import math
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from goal_allocations.models.allocation import (
    Allocation,
    AllocationChangeSet,
    AllocationIssue,
    AllocationValidationResult,
    SaveResult,
)
from goal_allocations.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from goal_allocations.models.registry import Account, Goal


class TestRegistryModels:
    """Tests for account and goal models."""

    def test_account_creation(self):
        """Test Account model creation."""
        account = Account(id="acc-1", name="Brokerage", currency="USD")
        assert account.name == "Brokerage"
        assert account.is_active is True
        assert account.account_type == "SECURITIES"

    def test_account_currency_upper_cased(self):
        """Test that currency codes are normalized."""
        account = Account(id="acc-1", name="Brokerage", currency=" cad ")
        assert account.currency == "CAD"

    def test_account_rejects_bad_currency(self):
        """Test that non-ISO currency codes are rejected."""
        with pytest.raises(ValidationError):
            Account(id="acc-1", name="Brokerage", currency="DOLLARS")

    def test_account_strips_whitespace(self):
        """Test that whitespace is stripped from names."""
        account = Account(id="acc-1", name="  Brokerage  ", currency="USD")
        assert account.name == "Brokerage"

    def test_goal_creation(self):
        """Test Goal model creation."""
        goal = Goal(id="g-1", title="House", target_amount=Decimal("80000"))
        assert goal.is_achieved is False
        assert goal.description is None

    def test_goal_rejects_negative_target(self):
        """Test that negative targets are rejected."""
        with pytest.raises(ValidationError):
            Goal(id="g-1", title="House", target_amount=Decimal("-1"))


class TestAllocationModel:
    """Tests for the Allocation record."""

    def test_allocation_creation(self):
        """Test Allocation model creation."""
        allocation = Allocation(account_id="A", goal_id="G1", percent=33.33)
        assert allocation.key == ("A", "G1")
        assert allocation.percent == pytest.approx(33.33)

    @pytest.mark.parametrize("percent", [-0.01, 100.01, math.nan, math.inf])
    def test_allocation_rejects_out_of_range(self, percent):
        """Test percent must be a finite number in [0, 100]."""
        with pytest.raises(ValidationError):
            Allocation(account_id="A", goal_id="G1", percent=percent)

    def test_allocation_is_hashable(self):
        """Test allocations can be compared as sets."""
        a = Allocation(account_id="A", goal_id="G1", percent=50)
        b = Allocation(account_id="A", goal_id="G1", percent=50)
        assert {a} == {b}

    def test_change_set_counts(self):
        """Test change set helpers."""
        changes = AllocationChangeSet(
            upserts=[Allocation(account_id="A", goal_id="G1", percent=10)],
            removals=[Allocation(account_id="B", goal_id="G2", percent=20)],
        )
        assert changes.change_count == 2
        assert changes.is_empty is False
        assert AllocationChangeSet().is_empty is True


class TestValidationResult:
    """Tests for AllocationValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors and overflow lookup."""
        result = AllocationValidationResult(
            is_valid=False,
            issues=[
                AllocationIssue(
                    issue_type="allocation_overflow",
                    severity="error",
                    message="Brokerage is over-allocated",
                    account_id="A",
                    excess=10.0,
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1
        assert result.overflowing_accounts == {"A": 10.0}
        assert result.issues_for_account("A")[0].excess == 10.0

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = AllocationValidationResult(
            is_valid=True,
            issues=[
                AllocationIssue(
                    issue_type="inactive_account",
                    severity="warning",
                    message="Savings is inactive",
                    account_id="B",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0
        assert result.overflowing_accounts == {}

    def test_issue_rejects_unknown_type(self):
        """Test issue types are a closed set."""
        with pytest.raises(ValidationError):
            AllocationIssue(issue_type="typo", severity="error", message="x")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.ALLOCATIONS_LOADED,
            description="Loaded allocations",
        )
        assert event.severity == AuditSeverity.INFO

    def test_timestamps_are_timezone_aware(self):
        """Test that generated timestamps carry a UTC offset."""
        event = AuditEvent(
            event_type=AuditEventType.ALLOCATIONS_LOADED,
            description="Loaded allocations",
        )
        result = AllocationValidationResult(is_valid=True)
        saved = SaveResult(success=True)
        for stamp in (event.timestamp, result.validated_at, saved.saved_at):
            assert stamp.utcoffset() == timedelta(0)
        assert event.to_sheets_row()[1].endswith("+00:00")

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEventBuilder.allocations_saved(
            allocation_count=3,
            upserts=2,
            removals=1,
            correlation_id=uuid4(),
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "allocations_saved"
        assert log_dict["details"]["removals"] == 1

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEventBuilder.goal_deleted(goal_id="G1", correlation_id=uuid4())
        row = event.to_sheets_row()
        assert len(row) == 11
        assert row[2] == "goal_deleted"
        assert row[5] == "G1"
        assert row[10] == "True"

    def test_audit_event_builder_loaded_with_duplicates_warns(self):
        """Duplicates on load raise the event severity."""
        event = AuditEventBuilder.allocations_loaded(
            allocation_count=2,
            dropped_count=0,
            duplicate_count=1,
            correlation_id=uuid4(),
        )
        assert event.severity == AuditSeverity.WARNING

    def test_audit_event_builder_save_failed(self):
        """Test AuditEventBuilder.save_failed."""
        event = AuditEventBuilder.save_failed(
            error_message="Unknown goal: G9",
            correlation_id=uuid4(),
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "Unknown goal: G9"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
