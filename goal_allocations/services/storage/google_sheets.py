"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the default persistent backend because:
1. Users can view accounts, goals and allocations directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (a few hundred rows at most here)
- No transactions (the bulk replace writes the new rows first and only
  then clears leftovers, so the sheet is never empty mid-save)
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interfaces, so we can swap
to PostgreSQL/SQLite later without changing the allocation engine.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from goal_allocations.config import get_settings
from goal_allocations.models.allocation import Allocation
from goal_allocations.models.audit import AuditEvent, AuditEventType, AuditSeverity
from goal_allocations.models.registry import Account, Goal
from goal_allocations.services.storage.interface import (
    AccountRegistryInterface,
    AllocationStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    GoalRegistryInterface,
    StorageError,
)

logger = structlog.get_logger(__name__)


ACCOUNT_COLUMNS = [
    "id",
    "name",
    "group",
    "account_type",
    "currency",
    "is_default",
    "is_active",
]

GOAL_COLUMNS = [
    "id",
    "title",
    "description",
    "target_amount",
    "is_achieved",
]

ALLOCATION_COLUMNS = [
    "account_id",
    "goal_id",
    "percent",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


def _as_utc(value: datetime) -> datetime:
    """Older audit rows were written without an offset."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_accounts_sheet(self) -> gspread.Worksheet:
        """Get or create the Accounts worksheet."""
        return self._get_or_create_sheet(
            self._settings.accounts_sheet_name, ACCOUNT_COLUMNS
        )

    def get_goals_sheet(self) -> gspread.Worksheet:
        """Get or create the Goals worksheet."""
        return self._get_or_create_sheet(
            self._settings.goals_sheet_name, GOAL_COLUMNS
        )

    def get_allocations_sheet(self) -> gspread.Worksheet:
        """Get or create the GoalAllocations worksheet."""
        return self._get_or_create_sheet(
            self._settings.allocations_sheet_name, ALLOCATION_COLUMNS
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsAccountRegistry(AccountRegistryInterface):
    """Accounts read from the Accounts worksheet, one account per row."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_account(self, row: list) -> Account:
        return Account(
            id=_safe_get(row, 0),
            name=_safe_get(row, 1),
            group=_safe_get(row, 2) or None,
            account_type=_safe_get(row, 3, "SECURITIES"),
            currency=_safe_get(row, 4),
            is_default=_as_bool(_safe_get(row, 5, "false")),
            is_active=_as_bool(_safe_get(row, 6, "true")),
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def list_accounts(self) -> list[Account]:
        try:
            sheet = self._client.get_accounts_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list accounts: {e}")

        accounts = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                accounts.append(self._row_to_account(row))
            except ValidationError as e:
                logger.warning("malformed_account_row", row=row, error=str(e))
        return accounts


class GoogleSheetsGoalRegistry(GoalRegistryInterface):
    """Goals read from the Goals worksheet, one goal per row."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_goal(self, row: list) -> Goal:
        try:
            target_amount = Decimal(_safe_get(row, 3, "0"))
        except InvalidOperation:
            raise ValueError(f"Invalid target amount: {_safe_get(row, 3)}")
        return Goal(
            id=_safe_get(row, 0),
            title=_safe_get(row, 1),
            description=_safe_get(row, 2) or None,
            target_amount=target_amount,
            is_achieved=_as_bool(_safe_get(row, 4, "false")),
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def list_goals(self) -> list[Goal]:
        try:
            sheet = self._client.get_goals_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list goals: {e}")

        goals = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                goals.append(self._row_to_goal(row))
            except (ValidationError, ValueError) as e:
                logger.warning("malformed_goal_row", row=row, error=str(e))
        return goals

    async def delete_goal(self, goal_id: str) -> bool:
        """Delete the goal row, then every allocation row that funds it."""
        try:
            goals_sheet = self._client.get_goals_sheet()
            all_rows = goals_sheet.get_all_values()

            deleted = False
            for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
                if row and row[0] == goal_id:
                    goals_sheet.delete_rows(idx)
                    deleted = True
                    break

            if not deleted:
                return False

            allocations_sheet = self._client.get_allocations_sheet()
            allocation_rows = allocations_sheet.get_all_values()
            # Delete bottom-up so earlier indexes stay valid
            for idx in range(len(allocation_rows), 1, -1):
                row = allocation_rows[idx - 1]
                if len(row) > 1 and row[1] == goal_id:
                    allocations_sheet.delete_rows(idx)

            return True
        except Exception as e:
            raise StorageError(f"Failed to delete goal: {e}")


class GoogleSheetsAllocationStorage(AllocationStorageInterface):
    """
    Allocations stored as (account_id, goal_id, percent) rows.

    Every save rewrites the whole sheet.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _allocation_to_row(allocation: Allocation) -> list:
        return [allocation.account_id, allocation.goal_id, allocation.percent]

    @staticmethod
    def _row_to_allocation(row: list) -> Allocation:
        return Allocation(
            account_id=_safe_get(row, 0),
            goal_id=_safe_get(row, 1),
            percent=float(_safe_get(row, 2, "0")),
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def load_allocations(self) -> list[Allocation]:
        try:
            sheet = self._client.get_allocations_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to load allocations: {e}")

        allocations = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                allocations.append(self._row_to_allocation(row))
            except (ValidationError, ValueError) as e:
                logger.warning("malformed_allocation_row", row=row, error=str(e))
        return allocations

    async def save_allocations(self, allocations: list[Allocation]) -> bool:
        """
        Bulk replace.

        Not retried: a failed replace is reported to the user, who
        decides whether to submit again.
        """
        try:
            sheet = self._client.get_allocations_sheet()
            previous_row_count = len(sheet.get_all_values())

            rows = [ALLOCATION_COLUMNS] + [
                self._allocation_to_row(a) for a in allocations if a.percent != 0
            ]
            sheet.update(values=rows, range_name="A1", value_input_option="RAW")

            if previous_row_count > len(rows):
                sheet.batch_clear(
                    [f"A{len(rows) + 1}:C{previous_row_count}"]
                )
            return True
        except Exception as e:
            raise StorageError(f"Failed to save allocations: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=_as_utc(datetime.fromisoformat(_safe_get(row, 1))),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            entity_type=_safe_get(row, 4) or None,
            entity_id=_safe_get(row, 5) or None,
            correlation_id=UUID(_safe_get(row, 6)) if _safe_get(row, 6) else None,
            description=_safe_get(row, 7),
            details=json.loads(_safe_get(row, 8)) if _safe_get(row, 8) else {},
            error_message=_safe_get(row, 9) or None,
            is_user_action=_safe_get(row, 10).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValidationError, ValueError):
                continue
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = [
                e for e in self._read_events() if e.correlation_id == correlation_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        # Sort chronologically
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._read_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
