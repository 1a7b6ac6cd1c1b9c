"""
Main Orchestrator for Goal Allocations

This module ties together all the components and defines the
end-to-end flows for:
1. Allocation editing (load -> edit cells -> validate -> bulk save)
2. Goal deletion (delete -> invalidate caches -> drop the column)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches storage while any row overflows or any cell is invalid
- One bulk replace in flight at a time
- A failed save never touches the local matrix
- Every step is audited

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

import structlog

from goal_allocations.allocation import (
    AllocationMatrix,
    SubmissionBlocked,
    SubmissionFailed,
    SubmissionInProgress,
    diff_allocations,
)
from goal_allocations.audit import AuditLogger, create_correlation_id
from goal_allocations.config import get_settings
from goal_allocations.models.allocation import (
    Allocation,
    AllocationChangeSet,
    AllocationValidationResult,
    SaveResult,
)
from goal_allocations.models.registry import Goal
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
from goal_allocations.validation import AllocationValidator

logger = structlog.get_logger(__name__)


class AllocationEditor:
    """
    One editing session over the allocation matrix.

    Flow:
    1. Load -> accounts, goals and allocations through the query cache
    2. Edit -> set_cell(), validated after every edit
    3. Submit -> validate, then ONE bulk replace of the full list
    4. Success -> new baseline, "goals" and "goals_allocations" invalidated
    5. Failure -> matrix untouched, SubmissionFailed raised

    Edits are accepted while a save is in flight; a second submit is not.
    """

    def __init__(
        self,
        account_registry: AccountRegistryInterface,
        goal_registry: GoalRegistryInterface,
        allocation_storage: AllocationStorageInterface,
        validator: Optional[AllocationValidator] = None,
        cache: Optional[QueryCache] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._account_registry = account_registry
        self._goal_registry = goal_registry
        self._allocation_storage = allocation_storage
        self._validator = validator or AllocationValidator()
        self._cache = cache or QueryCache()
        self._audit_logger = audit_logger

        self._matrix: Optional[AllocationMatrix] = None
        self._baseline: list[Allocation] = []
        self._in_flight = False

    # -------------------------------------------------------------------------
    # Session state
    # -------------------------------------------------------------------------

    @property
    def matrix(self) -> AllocationMatrix:
        if self._matrix is None:
            raise RuntimeError("No allocations loaded; call load() first")
        return self._matrix

    @property
    def is_loaded(self) -> bool:
        return self._matrix is not None

    @property
    def baseline(self) -> list[Allocation]:
        """The allocation set storage is known to hold."""
        return list(self._baseline)

    @property
    def is_submitting(self) -> bool:
        return self._in_flight

    @property
    def validator(self) -> AllocationValidator:
        return self._validator

    async def load(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> AllocationMatrix:
        """
        Start (or restart) the session from the registries and storage.

        Storage errors propagate; there is nothing to edit without data.
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            accounts = await self._cache.fetch(
                ACCOUNTS_KEY, self._account_registry.list_accounts
            )
            goals = await self._cache.fetch(
                GOALS_KEY, self._goal_registry.list_goals
            )
            existing = await self._cache.fetch(
                ALLOCATIONS_KEY, self._allocation_storage.load_allocations
            )
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="storage",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        matrix = AllocationMatrix(accounts, goals)
        matrix.load(existing)

        self._matrix = matrix
        self._baseline = matrix.to_allocation_list()

        if self._audit_logger:
            await self._audit_logger.log_allocations_loaded(
                allocation_count=len(self._baseline),
                dropped_count=len(matrix.dropped),
                duplicate_count=len(matrix.duplicates),
                correlation_id=correlation_id,
            )

        return matrix

    # -------------------------------------------------------------------------
    # Editing
    # -------------------------------------------------------------------------

    def set_cell(
        self,
        account_id: str,
        goal_id: str,
        percent: Any,
    ) -> AllocationValidationResult:
        """
        Edit one cell and return the fresh verdict for live feedback.

        Raises InvalidPercent (cell unchanged) for unusable input.
        """
        self.matrix.set_cell(account_id, goal_id, percent)
        return self.validate()

    def validate(self) -> AllocationValidationResult:
        return self._validator.validate(self.matrix)

    def pending_changes(self) -> AllocationChangeSet:
        """What a submit would change relative to storage."""
        return diff_allocations(
            self._baseline,
            self.matrix.to_allocation_list(),
            tolerance=self._validator.tolerance,
        )

    @property
    def is_dirty(self) -> bool:
        return not self.pending_changes().is_empty

    async def reset(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> AllocationMatrix:
        """Discard local edits and go back to the stored allocations."""
        correlation_id = correlation_id or create_correlation_id()

        discarded = self.pending_changes().change_count
        self.matrix.load(self._baseline)

        if self._audit_logger:
            await self._audit_logger.log_allocations_reset(
                discarded_changes=discarded,
                correlation_id=correlation_id,
            )
        return self.matrix

    def drop_goal(self, goal_id: str) -> None:
        """Forget a deleted goal in both the matrix and the baseline."""
        if self._matrix is not None:
            self._matrix.drop_goal(goal_id)
        self._baseline = [a for a in self._baseline if a.goal_id != goal_id]

    # -------------------------------------------------------------------------
    # Save protocol
    # -------------------------------------------------------------------------

    async def submit(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> SaveResult:
        """
        Validate and bulk-replace the stored allocation set.

        Raises:
            SubmissionInProgress: another submit has not finished yet
            SubmissionBlocked: validation errors; storage was not called
            SubmissionFailed: storage rejected the save; matrix unchanged
        """
        correlation_id = correlation_id or create_correlation_id()

        # Checked and set before the first await
        if self._in_flight:
            if self._audit_logger:
                await self._audit_logger.log_submission_rejected_in_flight(
                    correlation_id=correlation_id,
                )
            raise SubmissionInProgress("A save is already in progress")

        self._in_flight = True
        try:
            return await self._submit(correlation_id)
        finally:
            self._in_flight = False

    async def _submit(self, correlation_id: UUID) -> SaveResult:
        matrix = self.matrix

        result = self._validator.validate(matrix)
        if not result.is_valid:
            if self._audit_logger:
                issues = [
                    {
                        "type": i.issue_type,
                        "account_id": i.account_id,
                        "goal_id": i.goal_id,
                        "message": i.message,
                    }
                    for i in result.issues
                    if i.severity == "error"
                ]
                await self._audit_logger.log_submission_blocked(
                    issues=issues,
                    correlation_id=correlation_id,
                )
            raise SubmissionBlocked(result)

        # Snapshot: edits made while the save is in flight stay pending
        submitted = self._validator.check_submission_list(
            matrix.to_allocation_list()
        )
        changes = diff_allocations(
            self._baseline, submitted, tolerance=self._validator.tolerance
        )

        if self._audit_logger:
            await self._audit_logger.log_submission_started(
                allocation_count=len(submitted),
                change_count=changes.change_count,
                correlation_id=correlation_id,
            )

        try:
            await self._allocation_storage.save_allocations(submitted)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_save_failed(
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise SubmissionFailed(f"Could not save allocations: {e}") from e

        self._baseline = submitted
        invalidated = self._cache.invalidate(GOALS_KEY, ALLOCATIONS_KEY)

        if self._audit_logger:
            await self._audit_logger.log_allocations_saved(
                allocation_count=len(submitted),
                upserts=len(changes.upserts),
                removals=len(changes.removals),
                correlation_id=correlation_id,
            )
            await self._audit_logger.log_cache_invalidated(
                keys=invalidated,
                correlation_id=correlation_id,
            )

        return SaveResult(success=True, submitted=submitted, changes=changes)


class GoalManagementFlow:
    """
    Goal list and goal deletion.

    Deleting a goal orphans its allocation column, so it invalidates
    the cached allocations as well as the cached goals.
    """

    def __init__(
        self,
        goal_registry: GoalRegistryInterface,
        cache: Optional[QueryCache] = None,
        editor: Optional[AllocationEditor] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._goal_registry = goal_registry
        self._cache = cache or QueryCache()
        self._editor = editor
        self._audit_logger = audit_logger

    async def list_goals(self) -> list[Goal]:
        return await self._cache.fetch(GOALS_KEY, self._goal_registry.list_goals)

    async def delete_goal(
        self,
        goal_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete a goal.

        Returns False if the registry had no such goal.
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            deleted = await self._goal_registry.delete_goal(goal_id)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="storage",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        if not deleted:
            return False

        invalidated = self._cache.invalidate(GOALS_KEY, ALLOCATIONS_KEY)
        if self._editor:
            self._editor.drop_goal(goal_id)

        if self._audit_logger:
            await self._audit_logger.log_goal_deleted(
                goal_id=goal_id,
                correlation_id=correlation_id,
            )
            await self._audit_logger.log_cache_invalidated(
                keys=invalidated,
                correlation_id=correlation_id,
            )

        return True


@dataclass
class StorageBackends:
    """
    Storage shared by every editing session of one process.

    Holds no per-user state, so it is safe to build once and share.
    """
    account_registry: AccountRegistryInterface
    goal_registry: GoalRegistryInterface
    allocation_storage: AllocationStorageInterface
    audit_storage: AuditStorageInterface
    sheets_client: Optional[GoogleSheetsClient] = None


def create_storage_backends(
    use_storage: bool = True,
    db: Optional[InMemoryDatabase] = None,
) -> StorageBackends:
    """
    Build the configured storage backend.

    Args:
        use_storage: Whether to use the configured persistent backend.
                    Set to False to run purely in memory.
        db: In-memory data to use when running in memory.
    """
    backend = get_settings().app.storage_backend if use_storage else "memory"

    if backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
            return StorageBackends(
                account_registry=GoogleSheetsAccountRegistry(sheets_client),
                goal_registry=GoogleSheetsGoalRegistry(sheets_client),
                allocation_storage=GoogleSheetsAllocationStorage(sheets_client),
                audit_storage=GoogleSheetsAuditStorage(sheets_client),
                sheets_client=sheets_client,
            )
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))

    db = db or InMemoryDatabase()
    return StorageBackends(
        account_registry=InMemoryAccountRegistry(db),
        goal_registry=InMemoryGoalRegistry(db),
        allocation_storage=InMemoryAllocationStorage(db),
        audit_storage=InMemoryAuditStorage(db),
    )


def create_app_components(
    use_storage: bool = True,
    db: Optional[InMemoryDatabase] = None,
    backends: Optional[StorageBackends] = None,
) -> tuple[AllocationEditor, GoalManagementFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create one editing session.

    Every call returns a fresh editor, goal flow and query cache.
    Pass `backends` to share storage between sessions; otherwise
    storage is built from `use_storage` and `db`.

    Returns:
        (allocation_editor, goal_flow, sheets_client)
    """
    backends = backends or create_storage_backends(use_storage=use_storage, db=db)

    cache = QueryCache()
    audit_logger = AuditLogger(backends.audit_storage)

    editor = AllocationEditor(
        account_registry=backends.account_registry,
        goal_registry=backends.goal_registry,
        allocation_storage=backends.allocation_storage,
        cache=cache,
        audit_logger=audit_logger,
    )
    goal_flow = GoalManagementFlow(
        goal_registry=backends.goal_registry,
        cache=cache,
        editor=editor,
        audit_logger=audit_logger,
    )

    return editor, goal_flow, backends.sheets_client
