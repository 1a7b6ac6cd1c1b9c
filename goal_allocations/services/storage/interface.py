"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Add caching layers transparently
4. Keep the allocation engine decoupled from storage implementation

The registries are read-only from the engine's point of view, except
that deleting a goal must also delete that goal's allocations.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from goal_allocations.models.allocation import Allocation
from goal_allocations.models.audit import AuditEvent
from goal_allocations.models.registry import Account, Goal


class AccountRegistryInterface(ABC):
    """Read access to funding accounts."""

    @abstractmethod
    async def list_accounts(self) -> list[Account]:
        """
        List all accounts, active and inactive.

        Raises:
            StorageError: If the accounts cannot be read
        """
        pass


class GoalRegistryInterface(ABC):
    """Read access to goals, plus goal deletion."""

    @abstractmethod
    async def list_goals(self) -> list[Goal]:
        """
        List all goals.

        Raises:
            StorageError: If the goals cannot be read
        """
        pass

    @abstractmethod
    async def delete_goal(self, goal_id: str) -> bool:
        """
        Delete a goal by ID.

        Implementations must also remove the goal's allocation rows.

        Returns:
            True if deleted, False if no such goal

        Raises:
            StorageError: If delete fails
        """
        pass


class AllocationStorageInterface(ABC):
    """
    Persistence for the allocation set.

    There is no per-row write: the whole set is replaced at once.
    """

    @abstractmethod
    async def load_allocations(self) -> list[Allocation]:
        """
        Load every stored allocation.

        Raises:
            StorageError: If the allocations cannot be read
        """
        pass

    @abstractmethod
    async def save_allocations(self, allocations: list[Allocation]) -> bool:
        """
        Replace the stored allocation set with `allocations`.

        Pairs not in the list are removed (read as 0%).

        Returns:
            True if saved successfully

        Raises:
            StorageError: If the replace fails or is rejected
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one save).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
