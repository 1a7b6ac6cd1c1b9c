"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the persistent backend; the in-memory backend is used for
tests and local runs. Both are swappable behind the same interfaces.
"""

from goal_allocations.services.storage.interface import (
    AccountRegistryInterface,
    AllocationStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    GoalRegistryInterface,
    StorageError,
)
from goal_allocations.services.storage.memory import (
    InMemoryAccountRegistry,
    InMemoryAllocationStorage,
    InMemoryAuditStorage,
    InMemoryDatabase,
    InMemoryGoalRegistry,
)
from goal_allocations.services.storage.google_sheets import (
    GoogleSheetsAccountRegistry,
    GoogleSheetsAllocationStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsGoalRegistry,
)

__all__ = [
    # Interfaces
    "AccountRegistryInterface",
    "AllocationStorageInterface",
    "AuditStorageInterface",
    "GoalRegistryInterface",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAccountRegistry",
    "InMemoryAllocationStorage",
    "InMemoryAuditStorage",
    "InMemoryDatabase",
    "InMemoryGoalRegistry",
    # Google Sheets implementation
    "GoogleSheetsAccountRegistry",
    "GoogleSheetsAllocationStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsGoalRegistry",
]
