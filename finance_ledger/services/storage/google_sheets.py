"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the remote ledger backend because:
1. Users can view and fix their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (a personal ledger is small)
- No transactions (batch inserts use a single append call)
- Limited query capabilities (we filter in Python)

Months are stored one-based in the sheet so the rows read naturally;
the rest of the system uses zero-based months.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_ledger.config import get_settings
from finance_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from finance_ledger.models.ledger import Category, Entry, EntryPatch, MoneyType
from finance_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    FinanceStoreInterface,
    NotFoundError,
    RemoteWriteFailed,
    StorageError,
)


CATEGORY_COLUMNS = [
    "id",
    "user_id",
    "name",
    "type",
    "parent_id",
    "created_at",
]

ENTRY_COLUMNS = [
    "id",
    "user_id",
    "category_id",
    "year",
    "month",
    "amount",
    "note",
    "included",
    "position",
    "created_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "user_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _safe_getter(row: list):
    """Return a getter that tolerates short rows."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


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

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(columns))
            sheet.append_row(columns)
        return sheet

    def get_categories_sheet(self) -> gspread.Worksheet:
        """Get or create the categories worksheet."""
        return self._get_or_create(
            self._settings.categories_sheet_name, CATEGORY_COLUMNS, rows=500
        )

    def get_entries_sheet(self) -> gspread.Worksheet:
        """Get or create the entries worksheet."""
        return self._get_or_create(
            self._settings.entries_sheet_name, ENTRY_COLUMNS, rows=5000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the audit worksheet."""
        return self._get_or_create(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsFinanceStore(FinanceStoreInterface):
    """
    Google Sheets implementation of the ledger store.

    One category per row on the categories sheet, one entry per row
    on the entries sheet.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # -------------------------------------------------------------------------
    # Row conversion
    # -------------------------------------------------------------------------

    @staticmethod
    def _category_to_row(category: Category) -> list:
        return [
            category.id,
            category.user_id,
            category.name,
            category.type.value,
            category.parent_id or "",
            category.created_at.isoformat(),
        ]

    @staticmethod
    def _row_to_category(row: list) -> Category:
        safe_get = _safe_getter(row)
        created = safe_get(5)
        return Category(
            id=safe_get(0),
            user_id=safe_get(1),
            name=safe_get(2),
            type=MoneyType(safe_get(3)),
            parent_id=safe_get(4) or None,
            created_at=datetime.fromisoformat(created) if created else datetime.min,
        )

    @staticmethod
    def _entry_to_row(entry: Entry) -> list:
        return [
            entry.id,
            entry.user_id,
            entry.category_id,
            str(entry.year),
            str(entry.month + 1),
            str(entry.amount),
            entry.note or "",
            str(entry.included),
            str(entry.position),
            entry.created_at.isoformat(),
        ]

    @staticmethod
    def _row_to_entry(row: list) -> Entry:
        safe_get = _safe_getter(row)
        created = safe_get(9)
        return Entry(
            id=safe_get(0),
            user_id=safe_get(1),
            category_id=safe_get(2),
            year=int(safe_get(3)),
            month=int(safe_get(4)) - 1,
            amount=Decimal(safe_get(5, "0")),
            note=safe_get(6) or None,
            included=safe_get(7, "True").lower() == "true",
            position=int(safe_get(8, "0")),
            created_at=datetime.fromisoformat(created) if created else datetime.min,
        )

    def _read_entries(self) -> list[Entry]:
        entries = []
        for row in self._client.get_entries_sheet().get_all_values()[1:]:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                entries.append(self._row_to_entry(row))
            except (ValueError, ArithmeticError):
                continue  # Skip malformed rows
        return entries

    @staticmethod
    def _find_row(sheet: gspread.Worksheet, row_id: str) -> tuple[int, list]:
        """Find a row by id. Returns (1-based sheet row index, row values)."""
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):  # Row 1 is header
            if row and row[0] == row_id:
                return idx, row
        raise NotFoundError(f"Row not found: {row_id}")

    @staticmethod
    def _rewrite_row(sheet: gspread.Worksheet, idx: int, values: list) -> None:
        for col_idx, value in enumerate(values, start=1):
            sheet.update_cell(idx, col_idx, value)

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    async def list_entries(self, category_id: str, month: int, year: int) -> list[Entry]:
        try:
            cell = [
                e for e in self._read_entries()
                if e.category_id == category_id and e.month == month and e.year == year
            ]
        except Exception as e:
            raise StorageError(f"Failed to list entries: {e}")
        return sorted(cell, key=lambda e: (e.position, e.created_at))

    async def list_entries_for_year(self, user_id: str, year: int) -> list[Entry]:
        try:
            rows = [
                e for e in self._read_entries()
                if e.year == year and e.user_id == user_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to list entries: {e}")
        return sorted(rows, key=lambda e: (e.position, e.created_at))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def insert_entry(self, entry: Entry) -> Entry:
        try:
            sheet = self._client.get_entries_sheet()
            sheet.append_row(self._entry_to_row(entry), value_input_option="RAW")
            return entry
        except Exception as e:
            raise RemoteWriteFailed("insert_entry", str(e))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def insert_entries(self, entries: list[Entry]) -> list[Entry]:
        if not entries:
            return []
        try:
            sheet = self._client.get_entries_sheet()
            # One append call, so the batch lands together or not at all
            sheet.append_rows(
                [self._entry_to_row(entry) for entry in entries],
                value_input_option="RAW",
            )
            return list(entries)
        except Exception as e:
            raise RemoteWriteFailed("insert_entries", str(e))

    async def update_entry(self, entry_id: str, patch: EntryPatch) -> Entry:
        try:
            sheet = self._client.get_entries_sheet()
            idx, row = self._find_row(sheet, entry_id)
            updated = self._row_to_entry(row).model_copy(update=patch.changes())
            self._rewrite_row(sheet, idx, self._entry_to_row(updated))
            return updated
        except NotFoundError:
            raise
        except Exception as e:
            raise RemoteWriteFailed("update_entry", str(e))

    async def delete_entry(self, entry_id: str) -> None:
        try:
            sheet = self._client.get_entries_sheet()
            idx, _ = self._find_row(sheet, entry_id)
            sheet.delete_rows(idx)
        except NotFoundError:
            return
        except Exception as e:
            raise RemoteWriteFailed("delete_entry", str(e))

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def list_categories(self, user_id: str) -> list[Category]:
        try:
            all_rows = self._client.get_categories_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list categories: {e}")

        categories = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                category = self._row_to_category(row)
            except ValueError:
                continue
            if category.user_id == user_id:
                categories.append(category)
        return sorted(categories, key=lambda c: c.created_at)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def insert_category(self, category: Category) -> Category:
        try:
            sheet = self._client.get_categories_sheet()
            sheet.append_row(self._category_to_row(category), value_input_option="RAW")
            return category
        except Exception as e:
            raise RemoteWriteFailed("insert_category", str(e))

    async def _update_category(self, category_id: str, operation: str, **changes) -> Category:
        try:
            sheet = self._client.get_categories_sheet()
            idx, row = self._find_row(sheet, category_id)
            current = self._row_to_category(row)
            updated = Category.model_validate({**current.model_dump(), **changes})
            self._rewrite_row(sheet, idx, self._category_to_row(updated))
            return updated
        except NotFoundError:
            raise
        except Exception as e:
            raise RemoteWriteFailed(operation, str(e))

    async def rename_category(self, category_id: str, name: str) -> Category:
        return await self._update_category(category_id, "rename_category", name=name)

    async def reparent_category(self, category_id: str, parent_id: Optional[str]) -> Category:
        return await self._update_category(category_id, "reparent_category", parent_id=parent_id)

    async def delete_category(self, category_id: str) -> None:
        try:
            entries_sheet = self._client.get_entries_sheet()
            doomed = [
                idx
                for idx, row in enumerate(entries_sheet.get_all_values()[1:], start=2)
                if len(row) > 2 and row[2] == category_id
            ]
            # Bottom-up so earlier deletions don't shift later indexes
            for idx in reversed(doomed):
                entries_sheet.delete_rows(idx)

            categories_sheet = self._client.get_categories_sheet()
            idx, _ = self._find_row(categories_sheet, category_id)
            categories_sheet.delete_rows(idx)
        except NotFoundError:
            return
        except Exception as e:
            raise RemoteWriteFailed("delete_category", str(e))


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        safe_get = _safe_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            user_id=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        sheet = self._client.get_audit_sheet()
        sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
        return True

    def _read_events(self) -> list[AuditEvent]:
        try:
            all_rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except ValueError:
                    continue
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = self._read_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
