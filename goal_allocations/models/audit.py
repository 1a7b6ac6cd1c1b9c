"""
Audit Models for Goal Allocations

Every significant action on the allocation matrix is logged for audit purposes.
This provides:
1. Complete traceability of every bulk replace
2. Debugging information when a save is rejected
3. A record of blocked submissions and why they were blocked

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of an editing session has its own event type.
    """
    # Editing session
    ALLOCATIONS_LOADED = "allocations_loaded"
    ALLOCATIONS_RESET = "allocations_reset"

    # Validation
    SUBMISSION_BLOCKED = "submission_blocked"
    SUBMISSION_REJECTED_IN_FLIGHT = "submission_rejected_in_flight"

    # Persistence
    SUBMISSION_STARTED = "submission_started"
    ALLOCATIONS_SAVED = "allocations_saved"
    SAVE_FAILED = "save_failed"

    # Registry
    GOAL_DELETED = "goal_deleted"
    CACHE_INVALIDATED = "cache_invalidated"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'allocations', 'goal', 'account')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one save)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.allocations_loaded(count, correlation_id)
        event = AuditEventBuilder.allocations_saved(count, changes, correlation_id)
    """

    @staticmethod
    def allocations_loaded(
        allocation_count: int,
        dropped_count: int,
        duplicate_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALLOCATIONS_LOADED,
            severity=AuditSeverity.WARNING if duplicate_count else AuditSeverity.INFO,
            entity_type="allocations",
            correlation_id=correlation_id,
            description=f"Loaded {allocation_count} goal allocations",
            details={
                "allocation_count": allocation_count,
                "dropped_count": dropped_count,
                "duplicate_count": duplicate_count,
            },
        )

    @staticmethod
    def allocations_reset(
        discarded_changes: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALLOCATIONS_RESET,
            entity_type="allocations",
            correlation_id=correlation_id,
            description=f"Discarded {discarded_changes} unsaved allocation changes",
            details={"discarded_changes": discarded_changes},
            is_user_action=True,
        )

    @staticmethod
    def submission_blocked(
        issues: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBMISSION_BLOCKED,
            severity=AuditSeverity.WARNING,
            entity_type="allocations",
            correlation_id=correlation_id,
            description=f"Submission blocked by {len(issues)} validation errors",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def submission_rejected_in_flight(correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBMISSION_REJECTED_IN_FLIGHT,
            severity=AuditSeverity.WARNING,
            entity_type="allocations",
            correlation_id=correlation_id,
            description="Submission rejected: a save is already in progress",
            is_user_action=True,
        )

    @staticmethod
    def submission_started(
        allocation_count: int,
        change_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBMISSION_STARTED,
            entity_type="allocations",
            correlation_id=correlation_id,
            description=f"Submitting {allocation_count} allocations",
            details={
                "allocation_count": allocation_count,
                "change_count": change_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def allocations_saved(
        allocation_count: int,
        upserts: int,
        removals: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALLOCATIONS_SAVED,
            entity_type="allocations",
            correlation_id=correlation_id,
            description=f"Allocations saved: {upserts} set, {removals} removed",
            details={
                "allocation_count": allocation_count,
                "upserts": upserts,
                "removals": removals,
            },
        )

    @staticmethod
    def save_failed(
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="allocations",
            correlation_id=correlation_id,
            description="Saving allocations failed",
            error_message=error_message,
        )

    @staticmethod
    def goal_deleted(
        goal_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_DELETED,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Goal deleted: {goal_id}",
            is_user_action=True,
        )

    @staticmethod
    def cache_invalidated(
        keys: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CACHE_INVALIDATED,
            severity=AuditSeverity.DEBUG,
            correlation_id=correlation_id,
            description=f"Invalidated cached queries: {', '.join(keys)}",
            details={"keys": keys},
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
