"""
Allocation Matrix

The editable working copy of every goal allocation, shaped like a table:
rows are accounts, columns are goals, cells are percentages.

DESIGN DECISION: The matrix is sparse. Only non-zero cells are stored,
keyed by the composite (account_id, goal_id). Setting a cell to 0
removes it, so "absent" and "0%" are the same thing everywhere.

The matrix does NOT enforce the row-sum rule. Edits are accepted
one cell at a time and the validator runs after each edit, so the
UI can highlight an over-allocated row while the user is still
typing the value that will fix it.
"""

import math
from collections.abc import Iterable, Iterator, Mapping
from typing import Any, Optional, Union

from goal_allocations.allocation.errors import InvalidPercent
from goal_allocations.models.allocation import Allocation
from goal_allocations.models.registry import Account, Goal

MAX_PERCENT = 100.0

CellKey = tuple[str, str]


def coerce_percent(
    value: Any,
    account_id: Optional[str] = None,
    goal_id: Optional[str] = None,
) -> float:
    """
    Turn user input into a percentage.

    Accepts ints, floats, Decimals and numeric strings ("33.33").
    Raises InvalidPercent for anything else, including booleans,
    NaN, infinities and values outside [0, 100].
    """
    if isinstance(value, bool) or value is None:
        raise InvalidPercent(value, account_id, goal_id)

    if isinstance(value, str):
        value = value.strip().rstrip("%").strip()

    try:
        percent = float(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidPercent(value, account_id, goal_id)

    if not math.isfinite(percent) or percent < 0 or percent > MAX_PERCENT:
        raise InvalidPercent(value, account_id, goal_id)

    return percent


class AllocationMatrix:
    """
    Sparse account x goal percentage table.

    The registries are the source of truth for which ids exist:
    the matrix is built from the current accounts and goals and
    ignores allocations that point anywhere else.
    """

    def __init__(
        self,
        accounts: Iterable[Account],
        goals: Iterable[Goal],
    ):
        self._accounts: dict[str, Account] = {a.id: a for a in accounts}
        self._goals: dict[str, Goal] = {g.id: g for g in goals}
        self._cells: dict[CellKey, float] = {}

        # Bookkeeping from the last load(), surfaced by the validator
        self._duplicates: list[CellKey] = []
        self._dropped: list[Any] = []

    # -------------------------------------------------------------------------
    # Registry views
    # -------------------------------------------------------------------------

    @property
    def accounts(self) -> list[Account]:
        return list(self._accounts.values())

    @property
    def goals(self) -> list[Goal]:
        return list(self._goals.values())

    def get_account(self, account_id: str) -> Optional[Account]:
        return self._accounts.get(account_id)

    def get_goal(self, goal_id: str) -> Optional[Goal]:
        return self._goals.get(goal_id)

    @property
    def duplicates(self) -> list[CellKey]:
        """Keys that appeared more than once in the last load."""
        return list(self._duplicates)

    @property
    def dropped(self) -> list[Any]:
        """Rows from the last load that named an unknown account or goal."""
        return list(self._dropped)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def load(self, existing: Iterable[Union[Allocation, Mapping]]) -> None:
        """
        Replace the working copy with `existing`.

        Never raises. Rows for unknown accounts or goals and rows with
        non-numeric percentages are dropped. When a key repeats, the
        last occurrence wins and the key is recorded as a duplicate.
        Out-of-range numbers are kept so the validator can flag them.
        """
        cells: dict[CellKey, float] = {}
        seen: set[CellKey] = set()
        duplicates: list[CellKey] = []
        dropped: list[Any] = []

        for item in existing:
            unpacked = self._unpack(item)
            if unpacked is None:
                dropped.append(item)
                continue

            account_id, goal_id, percent = unpacked
            if account_id not in self._accounts or goal_id not in self._goals:
                dropped.append(item)
                continue

            key = (account_id, goal_id)
            if key in seen:
                duplicates.append(key)
            seen.add(key)

            cells.pop(key, None)
            if percent != 0:
                cells[key] = percent

        self._cells = cells
        self._duplicates = duplicates
        self._dropped = dropped

    @staticmethod
    def _unpack(item: Union[Allocation, Mapping]) -> Optional[tuple[str, str, float]]:
        if isinstance(item, Allocation):
            return item.account_id, item.goal_id, item.percent

        try:
            account_id = str(item["account_id"])
            goal_id = str(item["goal_id"])
            raw = item["percent"]
        except (KeyError, TypeError):
            return None

        if isinstance(raw, bool):
            return None
        try:
            percent = float(raw)
        except (TypeError, ValueError, OverflowError):
            return None

        return account_id, goal_id, percent

    # -------------------------------------------------------------------------
    # Cell access
    # -------------------------------------------------------------------------

    def _require_known(self, account_id: str, goal_id: str) -> None:
        if account_id not in self._accounts:
            raise KeyError(f"Unknown account: {account_id}")
        if goal_id not in self._goals:
            raise KeyError(f"Unknown goal: {goal_id}")

    def set_cell(self, account_id: str, goal_id: str, percent: Any) -> float:
        """
        Set one cell and return the stored value.

        Raises InvalidPercent for values that can never be valid,
        and KeyError for ids the registries don't know.
        Setting 0 removes the cell.
        """
        self._require_known(account_id, goal_id)
        value = coerce_percent(percent, account_id, goal_id)

        key = (account_id, goal_id)
        if value == 0:
            self._cells.pop(key, None)
        else:
            self._cells[key] = value
        return value

    def get_cell(self, account_id: str, goal_id: str) -> float:
        return self._cells.get((account_id, goal_id), 0.0)

    def get_row(self, account_id: str) -> Iterator[tuple[str, float]]:
        """
        Yield (goal_id, percent) for every non-zero cell of an account.

        Lazy; call again to iterate again.
        """
        for (cell_account, goal_id), percent in list(self._cells.items()):
            if cell_account == account_id:
                yield goal_id, percent

    def get_column(self, goal_id: str) -> Iterator[tuple[str, float]]:
        """Yield (account_id, percent) for every non-zero cell of a goal."""
        for (account_id, cell_goal), percent in list(self._cells.items()):
            if cell_goal == goal_id:
                yield account_id, percent

    def row_sum(self, account_id: str) -> float:
        """Total percentage committed by one account."""
        return math.fsum(percent for _, percent in self.get_row(account_id))

    def remaining(self, account_id: str) -> float:
        """Percentage of an account still free to allocate."""
        return max(0.0, MAX_PERCENT - self.row_sum(account_id))

    def allocated_account_ids(self) -> list[str]:
        """Accounts with at least one non-zero cell, in registry order."""
        present = {account_id for account_id, _ in self._cells}
        return [a for a in self._accounts if a in present]

    def cells(self) -> dict[CellKey, float]:
        """Snapshot of every non-zero cell."""
        return dict(self._cells)

    def invalid_cells(self) -> list[CellKey]:
        """Cells whose value is non-finite or outside [0, 100]."""
        return [
            key for key, percent in self._cells.items()
            if not math.isfinite(percent) or percent < 0 or percent > MAX_PERCENT
        ]

    def __len__(self) -> int:
        return len(self._cells)

    # -------------------------------------------------------------------------
    # Submission and structural changes
    # -------------------------------------------------------------------------

    def to_allocation_list(self) -> list[Allocation]:
        """
        Every valid non-zero cell as an Allocation, ordered by registry order.

        Cells holding invalid values (see invalid_cells()) are not
        representable as Allocations and are left out; the validator
        blocks submission while any exist.
        """
        account_order = {a: i for i, a in enumerate(self._accounts)}
        goal_order = {g: i for i, g in enumerate(self._goals)}
        invalid = set(self.invalid_cells())
        keys = sorted(
            (key for key in self._cells if key not in invalid),
            key=lambda k: (account_order[k[0]], goal_order[k[1]]),
        )
        return [
            Allocation(account_id=a, goal_id=g, percent=self._cells[(a, g)])
            for a, g in keys
        ]

    def drop_goal(self, goal_id: str) -> int:
        """
        Remove a goal column (after the goal was deleted).

        Returns the number of cells removed.
        """
        self._goals.pop(goal_id, None)
        removed = [key for key in self._cells if key[1] == goal_id]
        for key in removed:
            del self._cells[key]
        return len(removed)

    def copy(self) -> "AllocationMatrix":
        clone = AllocationMatrix(self._accounts.values(), self._goals.values())
        clone._cells = dict(self._cells)
        clone._duplicates = list(self._duplicates)
        clone._dropped = list(self._dropped)
        return clone

    def as_table(self) -> list[dict[str, Any]]:
        """
        One dict per account, for grid rendering.

        Keys: account_id, account_name, currency, is_active, total,
        plus one key per goal id holding that cell's percentage.
        """
        table = []
        for account in self._accounts.values():
            row: dict[str, Any] = {
                "account_id": account.id,
                "account_name": account.name,
                "currency": account.currency,
                "is_active": account.is_active,
            }
            for goal_id in self._goals:
                row[goal_id] = self.get_cell(account.id, goal_id)
            row["total"] = self.row_sum(account.id)
            table.append(row)
        return table
