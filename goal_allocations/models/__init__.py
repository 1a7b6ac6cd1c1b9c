"""
Data Models Package

This package contains all Pydantic models used by the allocation engine.
All data flowing through the system must conform to these schemas.
"""

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

__all__ = [
    # Registry models
    "Account",
    "Goal",
    # Allocation models
    "Allocation",
    "AllocationChangeSet",
    "AllocationIssue",
    "AllocationValidationResult",
    "SaveResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
