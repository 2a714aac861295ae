"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a shared storage backend because:
1. Both partners in a household can open the same budget from anywhere
2. No database setup required
3. Built-in backup (Google's infrastructure)

The budget sheet is a plain key/value table. A single cell holds at most
50,000 characters, so the blob is split into numbered chunks ("index/count"), and
updated_at identifies the version the chunks belong to:

    key               | chunk | value            | updated_at
    home_budget_data  | 0/2   | {"income": [...  | 2024-05-01T10:00:00.000000
    home_budget_data  | 1/2   | ...]}            | 2024-05-01T10:00:00.000000

TRADEOFFS:
- No transactions: a save appends the new version before deleting the
  old one, so the sheet briefly holds both
- Limited query capabilities (we filter audit rows in Python)
"""

import json
from datetime import datetime
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from homebudget.config import GoogleSheetsSettings, get_settings
from homebudget.models.audit import AuditEvent, AuditEventType, AuditSeverity
from homebudget.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    StorageError,
)


logger = structlog.get_logger(__name__)

# Sheets rejects cells longer than 50,000 characters
CELL_CHUNK_SIZE = 45_000

BUDGET_COLUMNS = ["key", "chunk", "value", "updated_at"]

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


def split_blob(blob: str, size: int = CELL_CHUNK_SIZE) -> list[str]:
    """Split a blob into cell-sized chunks (at least one, even if empty)."""
    return [blob[i:i + size] for i in range(0, len(blob), size)] or [""]


def parse_chunk_label(label: str) -> tuple[int, Optional[int]]:
    """
    "2/5" -> (2, 5). Rows written before chunk counts were recorded
    carry only the index: "2" -> (2, None).
    """
    index, _, count = label.partition("/")
    return int(index), (int(count) if count else None)


def _is_complete(chunks: dict[int, str], count: Optional[int]) -> bool:
    expected = count if count is not None else len(chunks)
    return set(chunks) == set(range(expected))


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

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
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_budget_sheet(self) -> gspread.Worksheet:
        """Get or create the key/value Budget worksheet."""
        return self._get_or_create_sheet(
            self._settings.budget_sheet_name, BUDGET_COLUMNS, rows=100
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsBudgetStorage(BudgetStorageInterface):
    """
    Google Sheets implementation of budget storage.

    Every save appends a complete new version of the blob, tagged with
    its updated_at timestamp, and only then deletes the older rows. A
    read joins the chunks of the latest complete version, so a save that
    fails part way leaves the previous budget readable.
    """

    backend_name = "sheets"

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        storage_key: str = "home_budget_data",
    ):
        super().__init__(storage_key)
        self._client = client or GoogleSheetsClient()

    def _key_rows(
        self,
        all_rows: list[list[str]],
        key: str,
    ) -> list[tuple[int, list[str]]]:
        """(sheet row number, row) for every data row under key."""
        return [
            (idx, row)
            for idx, row in enumerate(all_rows[1:], start=2)  # Row 1 is header
            if row and row[0] == key
        ]

    async def read_blob(self, key: Optional[str] = None) -> Optional[str]:
        key = key or self.storage_key
        try:
            sheet = self._client.get_budget_sheet()
            all_rows = sheet.get_all_values()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read budget: {e}")

        versions: dict[str, dict[int, str]] = {}
        counts: dict[str, Optional[int]] = {}
        for _, row in self._key_rows(all_rows, key):
            try:
                index, count = parse_chunk_label(row[1])
            except (IndexError, ValueError):
                raise StorageError(f"Malformed budget row: {row[:2]}")
            version = row[3] if len(row) > 3 else ""
            versions.setdefault(version, {})[index] = row[2] if len(row) > 2 else ""
            counts[version] = count

        if not versions:
            return None

        complete = [
            version for version, chunks in versions.items()
            if _is_complete(chunks, counts[version])
        ]
        if not complete:
            raise StorageError(f"No complete copy of {key} is stored")

        chunks = versions[max(complete)]
        return "".join(chunks[index] for index in sorted(chunks))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def write_blob(self, blob: str, key: Optional[str] = None) -> None:
        key = key or self.storage_key
        try:
            sheet = self._client.get_budget_sheet()
            stale_rows = self._key_rows(sheet.get_all_values(), key)

            version = datetime.utcnow().isoformat(timespec="microseconds")
            chunks = split_blob(blob)
            new_rows = [
                [key, f"{n}/{len(chunks)}", chunk, version]
                for n, chunk in enumerate(chunks)
            ]
            sheet.append_rows(new_rows, value_input_option="RAW")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save budget: {e}")

        # The new version is complete; older rows are no longer read.
        # Delete bottom-up so earlier row numbers stay valid.
        try:
            for idx, _ in reversed(stale_rows):
                sheet.delete_rows(idx)
        except Exception as e:
            logger.warning(
                "budget_cleanup_failed",
                key=key,
                stale_rows=len(stale_rows),
                error=str(e),
            )


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, ValidationError) as e:
                logger.warning("audit_row_skipped", event_id=row[0], error=str(e))
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _append_row(self, row: list) -> None:
        sheet = self._client.get_audit_sheet()
        sheet.append_row(row, value_input_option="RAW")

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            await self._append_row(event.to_sheets_row())
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning(
                "audit_write_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = [
            e for e in self._read_events() if e.correlation_id == correlation_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = self._read_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
