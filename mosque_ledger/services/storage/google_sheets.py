"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a shared backend because:
1. Several admins can work against one spreadsheet without a server
2. The treasurer can open the ledger directly in Sheets
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- No transactions: a save clears and rewrites the whole sheet
- Last write wins, exactly like the key-value sync
- Filtering happens in Python
"""

import json
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from mosque_ledger.config import GoogleSheetsSettings, get_settings
from mosque_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from mosque_ledger.models.transaction import (
    CategoryState,
    Transaction,
    TransactionType,
)
from mosque_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    StorageError,
)


TRANSACTION_COLUMNS = ["id", "date", "description", "amount", "type", "category"]

CATEGORY_COLUMNS = ["type", "name"]

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

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]

logger = structlog.get_logger(__name__)


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
        """Establish connection using service account credentials."""
        if self._client is None:
            try:
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=SCOPES,
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
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(
        self,
        title: str,
        headers: list[str],
        rows: int = 1000,
        write_header: bool = True,
    ) -> gspread.Worksheet:
        """
        Get or create a worksheet.

        Snapshot sheets (ledger, categories) are created blank so that a blank
        sheet means "never saved"; every save writes the header row.
        """
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(headers))
            if write_header:
                sheet.append_row(headers)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, write_header=False
        )

    def get_categories_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.categories_sheet_name, CATEGORY_COLUMNS, rows=200, write_header=False
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


def _rewrite(sheet: gspread.Worksheet, headers: list[str], rows: list[list]) -> None:
    sheet.clear()
    sheet.update([headers] + rows, value_input_option="RAW")


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    One transaction per row, in ledger order (newest first).
    Categories are stored as (type, name) rows in list order.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _transaction_to_row(transaction: Transaction) -> list:
        return [
            transaction.id,
            transaction.date.isoformat(),
            transaction.description,
            str(transaction.amount),
            transaction.type.value,
            transaction.category,
        ]

    @staticmethod
    def _row_to_transaction(row: list) -> Transaction:
        def safe_get(index: int) -> str:
            try:
                return row[index] or ""
            except IndexError:
                return ""

        try:
            amount = Decimal(safe_get(3).replace(",", ""))
        except InvalidOperation:
            raise StorageError(f"Invalid amount in row for id {safe_get(0)}")

        return Transaction(
            id=safe_get(0),
            date=date.fromisoformat(safe_get(1)),
            description=safe_get(2),
            amount=amount,
            type=TransactionType(safe_get(4)),
            category=safe_get(5),
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def load_transactions(self) -> Optional[list[Transaction]]:
        try:
            sheet = self._client.get_transactions_sheet()
            values = sheet.get_all_values()
        except Exception as e:
            raise StorageError(f"Failed to load ledger: {e}")

        # Blank sheet: nothing saved yet. Header only: an empty ledger.
        if not values:
            return None
        rows = values[1:]

        transactions = []
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                transactions.append(self._row_to_transaction(row))
            except (ValueError, StorageError) as e:
                logger.warning("sheet_row_skipped", row_id=row[0], error=str(e))
        return transactions

    async def save_transactions(self, transactions: list[Transaction]) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            _rewrite(
                sheet,
                TRANSACTION_COLUMNS,
                [self._transaction_to_row(t) for t in transactions],
            )
            return True
        except Exception as e:
            raise StorageError(f"Failed to save ledger: {e}")

    async def load_categories(self) -> Optional[CategoryState]:
        try:
            sheet = self._client.get_categories_sheet()
            values = sheet.get_all_values()
        except Exception as e:
            raise StorageError(f"Failed to load categories: {e}")

        if not values:
            return None
        rows = values[1:]

        lists: dict[str, list[str]] = {t.value: [] for t in TransactionType}
        for row in rows:
            if len(row) < 2 or row[0] not in lists or not row[1]:
                continue
            lists[row[0]].append(row[1])
        return CategoryState(**lists)

    async def save_categories(self, categories: CategoryState) -> bool:
        rows = [
            [transaction_type.value, name]
            for transaction_type in TransactionType
            for name in categories.for_type(transaction_type)
        ]
        try:
            _rewrite(self._client.get_categories_sheet(), CATEGORY_COLUMNS, rows)
            return True
        except Exception as e:
            raise StorageError(f"Failed to save categories: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _row_to_event(row: list) -> AuditEvent:
        def safe_get(index: int) -> str:
            try:
                return row[index] or ""
            except IndexError:
                return ""

        return AuditEvent(
            event_id=safe_get(0),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=safe_get(6) or None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning("audit_append_failed", error=str(e))
            return False

    def _all_events(self) -> list[AuditEvent]:
        try:
            rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, json.JSONDecodeError):
                continue
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._all_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = self._all_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
