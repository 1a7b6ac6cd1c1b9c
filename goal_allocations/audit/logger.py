"""
Audit Logger

DESIGN DECISION: Every significant action on the allocations is logged.
This provides:
1. Complete traceability of every bulk replace
2. Debugging capability when a save is rejected
3. A history the user can inspect

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from goal_allocations.models.audit import AuditEvent, AuditEventBuilder
from goal_allocations.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("goal_allocations.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        severity = event.severity.value
        if severity in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif severity == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif severity == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_allocations_loaded(
        self,
        allocation_count: int,
        dropped_count: int,
        duplicate_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log the start of an editing session."""
        event = AuditEventBuilder.allocations_loaded(
            allocation_count=allocation_count,
            dropped_count=dropped_count,
            duplicate_count=duplicate_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_allocations_reset(
        self,
        discarded_changes: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.allocations_reset(
            discarded_changes=discarded_changes,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_submission_blocked(
        self,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log a submission stopped by validation."""
        event = AuditEventBuilder.submission_blocked(
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_submission_rejected_in_flight(
        self,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.submission_rejected_in_flight(
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_submission_started(
        self,
        allocation_count: int,
        change_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.submission_started(
            allocation_count=allocation_count,
            change_count=change_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_allocations_saved(
        self,
        allocation_count: int,
        upserts: int,
        removals: int,
        correlation_id: UUID,
    ) -> None:
        """Log a successful bulk replace."""
        event = AuditEventBuilder.allocations_saved(
            allocation_count=allocation_count,
            upserts=upserts,
            removals=removals,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_save_failed(
        self,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.save_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_goal_deleted(
        self,
        goal_id: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.goal_deleted(
            goal_id=goal_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_cache_invalidated(
        self,
        keys: list[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.cache_invalidated(
            keys=keys,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a save).
    Pass it through all subsequent operations.
    """
    return uuid4()
