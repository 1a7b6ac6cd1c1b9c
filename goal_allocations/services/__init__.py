"""Services package."""

from goal_allocations.services.cache import (
    ACCOUNTS_KEY,
    ALLOCATIONS_KEY,
    GOALS_KEY,
    QueryCache,
)
from goal_allocations.services.storage import (
    AccountRegistryInterface,
    AllocationStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    GoalRegistryInterface,
    GoogleSheetsAccountRegistry,
    GoogleSheetsAllocationStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsGoalRegistry,
    InMemoryAccountRegistry,
    InMemoryAllocationStorage,
    InMemoryAuditStorage,
    InMemoryDatabase,
    InMemoryGoalRegistry,
    StorageError,
)

__all__ = [
    # Query cache
    "ACCOUNTS_KEY",
    "ALLOCATIONS_KEY",
    "GOALS_KEY",
    "QueryCache",
    # Storage services
    "AccountRegistryInterface",
    "AllocationStorageInterface",
    "AuditStorageInterface",
    "ConnectionError",
    "GoalRegistryInterface",
    "GoogleSheetsAccountRegistry",
    "GoogleSheetsAllocationStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsGoalRegistry",
    "InMemoryAccountRegistry",
    "InMemoryAllocationStorage",
    "InMemoryAuditStorage",
    "InMemoryDatabase",
    "InMemoryGoalRegistry",
    "StorageError",
]
