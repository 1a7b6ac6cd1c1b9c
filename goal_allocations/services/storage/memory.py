"""
In-Memory Storage Implementation

Used for tests and for running the app without Google credentials.
All four storage classes share one InMemoryDatabase, the same way the
Google Sheets classes share one GoogleSheetsClient.

Like a real backend, the allocation store rejects a bulk replace that
names an account or goal which no longer exists.
"""

from typing import Optional
from uuid import UUID

from goal_allocations.models.allocation import Allocation
from goal_allocations.models.audit import AuditEvent
from goal_allocations.models.registry import Account, Goal
from goal_allocations.services.storage.interface import (
    AccountRegistryInterface,
    AllocationStorageInterface,
    AuditStorageInterface,
    GoalRegistryInterface,
    StorageError,
)


class InMemoryDatabase:
    """Shared state for the in-memory storage classes."""

    def __init__(
        self,
        accounts: Optional[list[Account]] = None,
        goals: Optional[list[Goal]] = None,
        allocations: Optional[list[Allocation]] = None,
    ):
        self.accounts: dict[str, Account] = {a.id: a for a in accounts or []}
        self.goals: dict[str, Goal] = {g.id: g for g in goals or []}
        self.allocations: list[Allocation] = list(allocations or [])
        self.events: list[AuditEvent] = []


class InMemoryAccountRegistry(AccountRegistryInterface):
    """Accounts held in memory."""

    def __init__(self, db: Optional[InMemoryDatabase] = None):
        self._db = db or InMemoryDatabase()

    async def list_accounts(self) -> list[Account]:
        return list(self._db.accounts.values())


class InMemoryGoalRegistry(GoalRegistryInterface):
    """Goals held in memory. Deleting a goal cascades to its allocations."""

    def __init__(self, db: Optional[InMemoryDatabase] = None):
        self._db = db or InMemoryDatabase()

    async def list_goals(self) -> list[Goal]:
        return list(self._db.goals.values())

    async def delete_goal(self, goal_id: str) -> bool:
        if goal_id not in self._db.goals:
            return False
        del self._db.goals[goal_id]
        self._db.allocations = [
            a for a in self._db.allocations if a.goal_id != goal_id
        ]
        return True


class InMemoryAllocationStorage(AllocationStorageInterface):
    """Allocation set held in memory, replaced wholesale on save."""

    def __init__(self, db: Optional[InMemoryDatabase] = None):
        self._db = db or InMemoryDatabase()

    async def load_allocations(self) -> list[Allocation]:
        return list(self._db.allocations)

    async def save_allocations(self, allocations: list[Allocation]) -> bool:
        for allocation in allocations:
            if allocation.account_id not in self._db.accounts:
                raise StorageError(f"Unknown account: {allocation.account_id}")
            if allocation.goal_id not in self._db.goals:
                raise StorageError(f"Unknown goal: {allocation.goal_id}")

        self._db.allocations = [a for a in allocations if a.percent != 0]
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log held in memory."""

    def __init__(self, db: Optional[InMemoryDatabase] = None):
        self._db = db or InMemoryDatabase()

    async def append_event(self, event: AuditEvent) -> bool:
        self._db.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._db.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._db.events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
