"""Shared fixtures: two accounts (A, B) and two goals (G1, G2)."""

from decimal import Decimal

import pytest

from goal_allocations.allocation import AllocationMatrix
from goal_allocations.config import AllocationSettings
from goal_allocations.models.registry import Account, Goal
from goal_allocations.validation import AllocationValidator


@pytest.fixture
def accounts():
    return [
        Account(id="A", name="Brokerage", currency="usd"),
        Account(id="B", name="Savings", currency="EUR"),
    ]


@pytest.fixture
def goals():
    return [
        Goal(id="G1", title="Retirement", target_amount=Decimal("500000")),
        Goal(id="G2", title="House", target_amount=Decimal("80000")),
    ]


@pytest.fixture
def matrix(accounts, goals):
    return AllocationMatrix(accounts, goals)


@pytest.fixture
def validator():
    return AllocationValidator(AllocationSettings())
