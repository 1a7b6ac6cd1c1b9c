"""Tests for the allocation matrix."""

import math
from decimal import Decimal

import pytest

from goal_allocations.allocation import (
    AllocationMatrix,
    InvalidPercent,
    coerce_percent,
    diff_allocations,
)
from goal_allocations.models.allocation import Allocation


def alloc(account_id, goal_id, percent):
    return Allocation(account_id=account_id, goal_id=goal_id, percent=percent)


class TestCoercePercent:
    """Tests for turning user input into percentages."""

    @pytest.mark.parametrize(
        "value, expected",
        [(0, 0.0), (100, 100.0), (33.33, 33.33), ("12.5", 12.5), (" 40% ", 40.0),
         (Decimal("7.25"), 7.25)],
    )
    def test_accepts_numbers(self, value, expected):
        assert coerce_percent(value) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "value",
        [-1, 100.5, math.nan, math.inf, "abc", "", None, True, [10]],
    )
    def test_rejects_invalid(self, value):
        with pytest.raises(InvalidPercent):
            coerce_percent(value)

    def test_rejects_int_too_large_for_float(self):
        """Huge integers are out of range, not a crash."""
        with pytest.raises(InvalidPercent):
            coerce_percent(10**400)

    def test_error_carries_cell(self):
        with pytest.raises(InvalidPercent) as exc_info:
            coerce_percent(150, "A", "G1")
        assert exc_info.value.account_id == "A"
        assert exc_info.value.goal_id == "G1"
        assert exc_info.value.value == 150


class TestSetCell:
    """Tests for cell edits."""

    def test_set_and_get(self, matrix):
        matrix.set_cell("A", "G1", 60)
        assert matrix.get_cell("A", "G1") == 60.0
        assert matrix.get_cell("A", "G2") == 0.0

    def test_invalid_percent_leaves_cell_unchanged(self, matrix):
        matrix.set_cell("A", "G1", 60)
        with pytest.raises(InvalidPercent):
            matrix.set_cell("A", "G1", 120)
        assert matrix.get_cell("A", "G1") == 60.0

    def test_huge_int_raises_invalid_percent(self, matrix):
        with pytest.raises(InvalidPercent):
            matrix.set_cell("A", "G1", 10**400)
        assert matrix.get_cell("A", "G1") == 0.0

    def test_unknown_ids_raise_key_error(self, matrix):
        with pytest.raises(KeyError):
            matrix.set_cell("Z", "G1", 10)
        with pytest.raises(KeyError):
            matrix.set_cell("A", "G9", 10)

    def test_zero_removes_cell(self, matrix):
        matrix.set_cell("A", "G1", 60)
        matrix.set_cell("A", "G1", 0)
        assert len(matrix) == 0
        assert matrix.to_allocation_list() == []

    def test_set_cell_does_not_enforce_row_sum(self, matrix):
        matrix.set_cell("A", "G1", 60)
        matrix.set_cell("A", "G2", 50)
        assert matrix.row_sum("A") == pytest.approx(110.0)


class TestRowsAndColumns:
    """Tests for row/column reads."""

    def test_get_row_is_restartable(self, matrix):
        matrix.set_cell("A", "G1", 30)
        matrix.set_cell("A", "G2", 20)
        matrix.set_cell("B", "G1", 70)

        first = dict(matrix.get_row("A"))
        second = dict(matrix.get_row("A"))
        assert first == second == {"G1": 30.0, "G2": 20.0}

    def test_get_row_empty_account(self, matrix):
        assert list(matrix.get_row("B")) == []
        assert matrix.row_sum("B") == 0.0
        assert matrix.remaining("B") == 100.0

    def test_get_column(self, matrix):
        matrix.set_cell("A", "G1", 30)
        matrix.set_cell("B", "G1", 70)
        assert dict(matrix.get_column("G1")) == {"A": 30.0, "B": 70.0}

    def test_row_sum_decimal_inputs(self, matrix):
        matrix.set_cell("A", "G1", 33.33)
        matrix.set_cell("A", "G2", 66.67)
        assert matrix.row_sum("A") == pytest.approx(100.0)
        assert matrix.remaining("A") == pytest.approx(0.0, abs=1e-9)

    def test_worked_example(self, matrix):
        matrix.set_cell("A", "G1", 100)
        matrix.set_cell("B", "G1", 30)
        matrix.set_cell("B", "G2", 70)

        assert set(matrix.to_allocation_list()) == {
            alloc("A", "G1", 100),
            alloc("B", "G1", 30),
            alloc("B", "G2", 70),
        }
        assert matrix.row_sum("A") == 100.0
        assert matrix.row_sum("B") == 100.0

    def test_as_table(self, matrix):
        matrix.set_cell("B", "G2", 25)
        table = matrix.as_table()
        assert [row["account_id"] for row in table] == ["A", "B"]
        assert table[1]["G2"] == 25.0
        assert table[1]["total"] == 25.0
        assert table[0]["G1"] == 0.0


class TestLoad:
    """Tests for loading existing allocations."""

    def test_load_then_serialize_is_idempotent(self, accounts, goals):
        existing = [alloc("B", "G2", 70), alloc("A", "G1", 100), alloc("B", "G1", 30)]

        forward = AllocationMatrix(accounts, goals)
        forward.load(existing)
        backward = AllocationMatrix(accounts, goals)
        backward.load(list(reversed(existing)))

        assert set(forward.to_allocation_list()) == set(existing)
        assert set(backward.to_allocation_list()) == set(existing)

        reloaded = AllocationMatrix(accounts, goals)
        reloaded.load(forward.to_allocation_list())
        assert reloaded.to_allocation_list() == forward.to_allocation_list()

    def test_duplicate_keys_last_wins(self, matrix):
        matrix.load([alloc("A", "G1", 20), alloc("A", "G1", 45)])
        assert matrix.get_cell("A", "G1") == 45.0
        assert matrix.row_sum("A") == 45.0
        assert matrix.duplicates == [("A", "G1")]

    def test_duplicate_ending_in_zero_removes_cell(self, matrix):
        matrix.load([alloc("A", "G1", 20), alloc("A", "G1", 0)])
        assert matrix.get_cell("A", "G1") == 0.0
        assert len(matrix) == 0

    def test_unknown_ids_dropped(self, matrix):
        matrix.load([alloc("A", "G1", 20), alloc("Z", "G1", 10), alloc("A", "G9", 5)])
        assert len(matrix) == 1
        assert len(matrix.dropped) == 2

    def test_load_replaces_previous_state(self, matrix):
        matrix.set_cell("B", "G2", 50)
        matrix.load([alloc("A", "G1", 20)])
        assert matrix.get_cell("B", "G2") == 0.0

    def test_load_accepts_mappings(self, matrix):
        matrix.load([
            {"account_id": "A", "goal_id": "G1", "percent": "25"},
            {"account_id": "A", "goal_id": "G2", "percent": "lots"},
            {"goal_id": "G2", "percent": 5},
        ])
        assert matrix.get_cell("A", "G1") == 25.0
        assert len(matrix.dropped) == 2

    def test_load_keeps_out_of_range_for_validator(self, matrix):
        matrix.load([{"account_id": "A", "goal_id": "G1", "percent": -5}])
        assert matrix.get_cell("A", "G1") == -5.0

    def test_load_drops_int_too_large_for_float(self, matrix):
        matrix.load([
            {"account_id": "A", "goal_id": "G1", "percent": 10**400},
            {"account_id": "B", "goal_id": "G2", "percent": 20},
        ])
        assert matrix.get_cell("A", "G1") == 0.0
        assert matrix.get_cell("B", "G2") == 20.0
        assert len(matrix.dropped) == 1

    def test_invalid_cells_left_out_of_allocation_list(self, matrix):
        """Out-of-range cells stay visible but are never serialized."""
        matrix.load([
            {"account_id": "A", "goal_id": "G1", "percent": 150},
            {"account_id": "A", "goal_id": "G2", "percent": math.nan},
            {"account_id": "B", "goal_id": "G2", "percent": 20},
        ])
        assert set(matrix.invalid_cells()) == {("A", "G1"), ("A", "G2")}
        assert matrix.get_cell("A", "G1") == 150.0
        assert matrix.to_allocation_list() == [alloc("B", "G2", 20)]


class TestStructuralChanges:
    """Tests for goal removal and copies."""

    def test_drop_goal(self, matrix):
        matrix.set_cell("A", "G1", 40)
        matrix.set_cell("B", "G1", 10)
        matrix.set_cell("B", "G2", 10)

        assert matrix.drop_goal("G1") == 2
        assert [g.id for g in matrix.goals] == ["G2"]
        assert matrix.to_allocation_list() == [alloc("B", "G2", 10)]
        with pytest.raises(KeyError):
            matrix.set_cell("A", "G1", 10)

    def test_copy_is_independent(self, matrix):
        matrix.set_cell("A", "G1", 40)
        clone = matrix.copy()
        clone.set_cell("A", "G1", 10)
        assert matrix.get_cell("A", "G1") == 40.0


class TestDiff:
    """Tests for change detection."""

    def test_upserts_and_removals(self):
        baseline = [alloc("A", "G1", 50), alloc("B", "G1", 30)]
        submitted = [alloc("A", "G1", 60), alloc("B", "G2", 70)]

        changes = diff_allocations(baseline, submitted)
        assert set(changes.upserts) == {alloc("A", "G1", 60), alloc("B", "G2", 70)}
        assert changes.removals == [alloc("B", "G1", 30)]

    def test_no_changes(self):
        same = [alloc("A", "G1", 50)]
        assert diff_allocations(same, list(same)).is_empty
