"""
Main Orchestrator for the Mosque Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Ledger edits (validate -> assign id -> prepend -> persist -> audit)
2. Sync (key-value group snapshots, Drive backup, share links)
3. Data exchange (CSV / JSON / cash-book / PDF exports and imports)
4. The admin gate

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every mutation is persisted immediately
- Every mutation, restore and sync round is audited
- A pull or import replaces the whole ledger (last write wins)

Streamlit pages only ever talk to these flows, never to storage directly.
"""

import hmac
import time
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, NamedTuple, Optional, Union
from uuid import UUID

import structlog

from mosque_ledger.agents import FinancialSummaryAgent
from mosque_ledger.audit import AuditLogger, create_correlation_id
from mosque_ledger.config import get_settings
from mosque_ledger.config.settings import AppSettings
from mosque_ledger.exports import (
    build_cashbook,
    build_period_pdf,
    build_public_pdf,
    cashbook_file_name,
    csv_file_name,
    export_csv,
    export_json,
    import_cashbook,
    import_json,
    json_file_name,
    pdf_file_name,
)
from mosque_ledger.models.report import PeriodReport
from mosque_ledger.models.transaction import (
    CategoryState,
    Transaction,
    TransactionDraft,
    TransactionType,
    initial_transactions,
)
from mosque_ledger.models.validation import ValidationResult
from mosque_ledger.reports.aggregator import full_period_text, recent
from mosque_ledger.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    LedgerStorageInterface,
    LocalJsonAuditStorage,
    LocalJsonLedgerStorage,
    LocalPreferences,
    NotFoundError,
    StorageError,
)
from mosque_ledger.services.sync import (
    GoogleDriveBackupClient,
    KeyValueSyncClient,
    PullResult,
    SyncError,
    SyncPoller,
)
from mosque_ledger.services.sync.kv_store import normalize_sync_id
from mosque_ledger.services.sync.share import (
    GROUP_GREETING,
    SNAPSHOT_GREETING,
    group_link,
    magic_link,
    parse_fragment,
    whatsapp_url,
)
from mosque_ledger.validation import TransactionValidator, ValidationFailedError


logger = structlog.get_logger(__name__)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class LedgerFlow:
    """
    Owns the in-memory ledger and the category lists.

    Entries are kept newest first: new entries are prepended.
    With no storage the ledger lives in memory only.
    """

    def __init__(
        self,
        storage: Optional[LedgerStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[TransactionValidator] = None,
        clock: Callable[[], int] = _epoch_ms,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._validator = validator or TransactionValidator()
        self._clock = clock
        self._transactions: list[Transaction] = []
        self._categories = CategoryState()
        self._last_id = 0
        self._loaded = False

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._transactions)

    @property
    def categories(self) -> CategoryState:
        return self._categories

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    async def load(self) -> None:
        """
        Read ledger and categories from storage.

        Nothing saved yet means the seed ledger and default categories.
        """
        saved = await self._storage.load_transactions() if self._storage else None
        self._transactions = saved if saved is not None else initial_transactions()

        categories = await self._storage.load_categories() if self._storage else None
        self._categories = categories if categories is not None else CategoryState()
        self._loaded = True

        logger.info(
            "ledger_loaded",
            count=len(self._transactions),
            seeded=saved is None,
        )

    async def _storage_failed(self, operation: str, error: StorageError) -> None:
        logger.error("ledger_save_failed", operation=operation, error=str(error))
        if self._audit_logger:
            await self._audit_logger.log_error(
                error_type="storage_error",
                error_message=str(error),
                details={"operation": operation},
            )

    async def _commit_transactions(self, transactions: list[Transaction], operation: str) -> None:
        """Save first; the in-memory ledger only changes once storage has it."""
        if self._storage:
            try:
                await self._storage.save_transactions(transactions)
            except StorageError as e:
                await self._storage_failed(operation, e)
                raise
        self._transactions = transactions

    async def _commit_categories(self, categories: CategoryState, operation: str) -> None:
        if self._storage:
            try:
                await self._storage.save_categories(categories)
            except StorageError as e:
                await self._storage_failed(operation, e)
                raise
        self._categories = categories

    def _next_id(self) -> str:
        candidate = self._clock()
        existing = {t.id for t in self._transactions}
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        while str(candidate) in existing:
            candidate += 1
        self._last_id = candidate
        return str(candidate)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, transaction_id: str) -> Optional[Transaction]:
        for t in self._transactions:
            if t.id == transaction_id:
                return t
        return None

    def by_type(self, transaction_type: TransactionType) -> list[Transaction]:
        transaction_type = TransactionType(transaction_type)
        return [t for t in self._transactions if t.type == transaction_type]

    def recent(self, limit: int = 10) -> list[Transaction]:
        return recent(self._transactions, limit)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def validate_entry(
        self,
        description: str,
        amount: Union[Decimal, int, float, str, None],
        entry_date: date,
        transaction_type: TransactionType,
        category: str,
    ) -> ValidationResult:
        return self._validator.validate(
            description, amount, entry_date, transaction_type, category, self._categories
        )

    async def add_entry(
        self,
        description: str,
        amount: Union[Decimal, int, float, str, None],
        entry_date: date,
        transaction_type: TransactionType,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Transaction, ValidationResult]:
        """
        Validate raw form values and add the entry.

        Raises:
            ValidationFailedError: blocking issues found (audited)
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            draft, result = self._validator.build_draft(
                description, amount, entry_date, transaction_type, category, self._categories
            )
        except ValidationFailedError as e:
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    issues=[issue.model_dump() for issue in e.result.issues],
                    correlation_id=correlation_id,
                )
            raise

        transaction = await self.add(draft, correlation_id=correlation_id)
        return transaction, result

    async def add(
        self,
        draft: TransactionDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        transaction = Transaction.from_draft(draft, self._next_id())
        await self._commit_transactions([transaction] + self._transactions, "add")

        if self._audit_logger:
            await self._audit_logger.log_transaction_added(
                transaction_id=transaction.id,
                description=transaction.description,
                amount=str(transaction.amount),
                transaction_type=transaction.type.value,
                correlation_id=correlation_id,
            )
        return transaction

    async def update(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Replace the entry with the same id, keeping its position.

        Raises:
            NotFoundError: no entry with this id
        """
        for idx, existing in enumerate(self._transactions):
            if existing.id == transaction.id:
                break
        else:
            raise NotFoundError(f"Transaction not found: {transaction.id}")

        old = existing.model_dump(mode="json")
        new = transaction.model_dump(mode="json")
        changes = {
            key: {"from": old[key], "to": new[key]}
            for key in new
            if old.get(key) != new[key]
        }

        updated = list(self._transactions)
        updated[idx] = transaction
        await self._commit_transactions(updated, "update")

        if self._audit_logger:
            await self._audit_logger.log_transaction_updated(
                transaction_id=transaction.id,
                changes=changes,
                correlation_id=correlation_id,
            )
        return transaction

    async def delete(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Remove an entry. Unknown ids are a no-op returning False."""
        remaining = [t for t in self._transactions if t.id != transaction_id]
        if len(remaining) == len(self._transactions):
            return False

        await self._commit_transactions(remaining, "delete")

        if self._audit_logger:
            await self._audit_logger.log_transaction_deleted(
                transaction_id=transaction_id,
                correlation_id=correlation_id,
            )
        return True

    async def restore(
        self,
        transactions: list[Transaction],
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """Replace the whole ledger. Returns the new entry count."""
        previous_count = len(self._transactions)
        await self._commit_transactions(list(transactions), "restore")

        if self._audit_logger:
            await self._audit_logger.log_ledger_restored(
                source=source,
                previous_count=previous_count,
                new_count=len(self._transactions),
                correlation_id=correlation_id,
            )
        return len(self._transactions)

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def update_categories(self, state: CategoryState) -> CategoryState:
        await self._commit_categories(state, "categories_replace")
        if self._audit_logger:
            await self._audit_logger.log_categories_updated(
                transaction_type="all", action="replace", name="",
            )
        return self._categories

    async def add_category(self, transaction_type: TransactionType, name: str) -> CategoryState:
        await self._commit_categories(
            self._categories.add(transaction_type, name), "category_add"
        )
        if self._audit_logger:
            await self._audit_logger.log_categories_updated(
                transaction_type=TransactionType(transaction_type).value,
                action="add",
                name=name.strip(),
            )
        return self._categories

    async def rename_category(
        self,
        transaction_type: TransactionType,
        index: int,
        name: str,
    ) -> CategoryState:
        await self._commit_categories(
            self._categories.rename(transaction_type, index, name), "category_rename"
        )
        if self._audit_logger:
            await self._audit_logger.log_categories_updated(
                transaction_type=TransactionType(transaction_type).value,
                action="rename",
                name=name.strip(),
            )
        return self._categories

    async def remove_category(self, transaction_type: TransactionType, index: int) -> CategoryState:
        updated = self._categories.remove(transaction_type, index)
        name = self._categories.for_type(transaction_type)[index]
        await self._commit_categories(updated, "category_remove")
        if self._audit_logger:
            await self._audit_logger.log_categories_updated(
                transaction_type=TransactionType(transaction_type).value,
                action="remove",
                name=name,
            )
        return self._categories


class SyncFlow:
    """
    Moves whole-ledger snapshots between this installation and the outside.

    Channels:
    - key-value store, addressed by a group name (sync id)
    - a single Google Drive backup file
    - share links (group link and magic link carrying the data itself)
    """

    GROUP_PREFERENCE = "sync_group"
    KV_CHANNEL = "kv_store"
    DRIVE_CHANNEL = "google_drive"

    def __init__(
        self,
        ledger: LedgerFlow,
        kv_client: Optional[KeyValueSyncClient] = None,
        drive_client: Optional[GoogleDriveBackupClient] = None,
        preferences: Optional[LocalPreferences] = None,
        audit_logger: Optional[AuditLogger] = None,
        app_url: Optional[str] = None,
    ):
        self._ledger = ledger
        self._kv = kv_client or KeyValueSyncClient()
        self._drive = drive_client
        self._preferences = preferences
        self._audit_logger = audit_logger
        self._app_url = app_url or get_settings().app.public_url
        self._group = ""

        if preferences is not None:
            self._group = preferences.get(self.GROUP_PREFERENCE, "") or ""
        if not self._group:
            self._group = normalize_sync_id(get_settings().sync.default_group)

    @property
    def group(self) -> str:
        return self._group

    def set_group(self, raw: str) -> str:
        """Normalize and remember the group name."""
        self._group = normalize_sync_id(raw)
        if self._preferences is not None:
            self._preferences.set(self.GROUP_PREFERENCE, self._group)
        return self._group

    def _drive_client(self) -> GoogleDriveBackupClient:
        if self._drive is None:
            try:
                self._drive = GoogleDriveBackupClient()
            except Exception as e:
                raise SyncError(f"Google Drive belum dikonfigurasi: {e}")
        return self._drive

    # -------------------------------------------------------------------------
    # Key-value store
    # -------------------------------------------------------------------------

    async def push(self, group: Optional[str] = None) -> bool:
        target = self.set_group(group) if group is not None else self._group
        transactions = self._ledger.transactions
        ok = await self._kv.push(target, transactions)

        if self._audit_logger:
            if ok:
                await self._audit_logger.log_sync_pushed(
                    channel=self.KV_CHANNEL, target=target, count=len(transactions),
                )
            else:
                await self._audit_logger.log_sync_failed(
                    channel=self.KV_CHANNEL, target=target, direction="push",
                )
        return ok

    async def pull(self, group: Optional[str] = None) -> PullResult:
        """Fetch the group snapshot and, on success, replace the ledger."""
        target = self.set_group(group) if group is not None else self._group
        correlation_id = create_correlation_id()
        result = await self._kv.pull(target)

        if result.ok:
            await self._ledger.restore(result.data, source=self.KV_CHANNEL, correlation_id=correlation_id)
            if self._audit_logger:
                await self._audit_logger.log_sync_pulled(
                    channel=self.KV_CHANNEL,
                    target=target,
                    count=len(result.data),
                    correlation_id=correlation_id,
                )
        elif self._audit_logger and not result.is_new_group and result.status != 0:
            await self._audit_logger.log_sync_failed(
                channel=self.KV_CHANNEL,
                target=target,
                direction="pull",
                status=result.status,
                correlation_id=correlation_id,
            )
        return result

    async def poll_tick(self) -> bool:
        """
        One background pull. The ledger is replaced only when the remote
        snapshot differs from it. Returns True when it was replaced.
        """
        if not self._group:
            return False
        result = await self._kv.pull(self._group)
        if not result.ok:
            return False
        if result.data == self._ledger.transactions:
            return False

        await self._ledger.restore(result.data, source="kv_store_poll")
        return True

    def create_poller(self, interval_seconds: Optional[float] = None) -> SyncPoller:
        interval = interval_seconds or get_settings().sync.poll_interval_seconds
        return SyncPoller(self.poll_tick, interval)

    async def test_connection(self) -> bool:
        return await self._kv.test_connection()

    # -------------------------------------------------------------------------
    # Google Drive
    # -------------------------------------------------------------------------

    async def backup_to_drive(self) -> str:
        """Upload the ledger; returns the Drive file id."""
        client = self._drive_client()
        transactions = self._ledger.transactions
        try:
            file_id = await client.backup(transactions)
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="google_drive", error_message=str(e),
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_sync_pushed(
                channel=self.DRIVE_CHANNEL, target=file_id, count=len(transactions),
            )
        return file_id

    async def restore_from_drive(self) -> int:
        """
        Replace the ledger with the Drive backup.

        Raises:
            BackupNotFoundError: there is no backup file yet
        """
        client = self._drive_client()
        correlation_id = create_correlation_id()
        transactions = await client.restore()
        count = await self._ledger.restore(
            transactions, source=self.DRIVE_CHANNEL, correlation_id=correlation_id
        )
        if self._audit_logger:
            await self._audit_logger.log_sync_pulled(
                channel=self.DRIVE_CHANNEL,
                target=client.file_name,
                count=count,
                correlation_id=correlation_id,
            )
        return count

    # -------------------------------------------------------------------------
    # Share links
    # -------------------------------------------------------------------------

    async def group_share(self, group: Optional[str] = None) -> tuple[str, str]:
        """(group link, WhatsApp URL) for the current or given group."""
        target = normalize_sync_id(group) if group is not None else self._group
        link = group_link(self._app_url, target)
        if self._audit_logger:
            await self._audit_logger.log_share_link(kind="group", target=target)
        return link, whatsapp_url(GROUP_GREETING, link)

    async def snapshot_share(self) -> tuple[str, str]:
        """(magic link, WhatsApp URL) carrying the whole ledger."""
        link = magic_link(self._app_url, self._ledger.transactions)
        if self._audit_logger:
            await self._audit_logger.log_share_link(
                kind="magic_link", target=str(len(self._ledger.transactions)),
            )
        return link, whatsapp_url(SNAPSHOT_GREETING, link)

    async def handle_incoming_link(self, url: str) -> Optional[Union[str, int]]:
        """
        Apply an opened share link.

        "#g=<group>" selects the group and returns its name;
        "#data=<payload>" replaces the ledger and returns the entry count;
        anything else returns None.
        """
        parsed = parse_fragment(url)
        if parsed is None:
            return None
        if isinstance(parsed, str):
            return self.set_group(parsed)
        return await self._ledger.restore(parsed, source="magic_link")


class DataFlow:
    """
    File exports and imports, each one audited.
    """

    def __init__(
        self,
        ledger: LedgerFlow,
        audit_logger: Optional[AuditLogger] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        self._ledger = ledger
        self._audit_logger = audit_logger
        self._app = app_settings or get_settings().app

    async def _exported(self, fmt: str, file_name: str, count: int) -> None:
        if self._audit_logger:
            await self._audit_logger.log_report_exported(fmt=fmt, file_name=file_name, count=count)

    async def csv(
        self,
        transactions: list[Transaction],
        stem: str,
        excel: bool = False,
    ) -> tuple[str, bytes]:
        file_name = csv_file_name(stem, excel=excel)
        content = export_csv(transactions, delimiter=";" if excel else ",")
        await self._exported("xls" if excel else "csv", file_name, len(transactions))
        return file_name, content.encode("utf-8")

    async def report_csv(self, report: PeriodReport, excel: bool = False) -> tuple[str, bytes]:
        return await self.csv(report.transactions, report.file_stem, excel=excel)

    async def json_backup(self, on: Optional[date] = None) -> tuple[str, bytes]:
        transactions = self._ledger.transactions
        file_name = json_file_name(on)
        await self._exported("json", file_name, len(transactions))
        return file_name, export_json(transactions).encode("utf-8")

    async def cashbook(self, on: Optional[date] = None) -> tuple[str, bytes]:
        transactions = self._ledger.transactions
        file_name = cashbook_file_name(on)
        content = build_cashbook(
            transactions,
            subtitle=self._app.report_subtitle,
            period_text=full_period_text(transactions),
        )
        await self._exported("xlsx", file_name, len(transactions))
        return file_name, content

    async def period_pdf(self, report: PeriodReport) -> tuple[str, bytes]:
        file_name = pdf_file_name(report.file_stem)
        content = build_period_pdf(report, self._app)
        await self._exported("pdf", file_name, len(report.transactions))
        return file_name, content

    async def public_pdf(self, printed_at: Optional[datetime] = None) -> tuple[str, bytes]:
        printed_at = printed_at or datetime.now()
        transactions = self._ledger.transactions
        file_name = pdf_file_name(f"Laporan_Keuangan_Masjid_{printed_at.date().isoformat()}")
        content = build_public_pdf(transactions, self._app, printed_at=printed_at)
        await self._exported("pdf", file_name, min(len(transactions), self._app.public_recent_limit))
        return file_name, content

    async def import_json_backup(self, content: Union[str, bytes], file_name: Optional[str] = None) -> int:
        """
        Replace the ledger with a JSON backup.

        Raises:
            ImportFormatError: the file is not a transaction array
        """
        transactions = import_json(content, file_name=file_name)
        return await self._ledger.restore(transactions, source="json_import")

    async def import_cashbook_file(self, content: bytes) -> int:
        transactions = import_cashbook(content)
        return await self._ledger.restore(transactions, source="cashbook_import")


class AuthGate:
    """
    Convenience gate in front of the admin pages.

    Credentials come from settings and are compared in constant time.
    """

    def __init__(
        self,
        app_settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._app = app_settings or get_settings().app
        self._audit_logger = audit_logger

    def check(self, username: str, password: str) -> bool:
        user_ok = hmac.compare_digest(
            (username or "").encode("utf-8"), self._app.admin_username.encode("utf-8")
        )
        password_ok = hmac.compare_digest(
            (password or "").encode("utf-8"), self._app.admin_password.encode("utf-8")
        )
        return user_ok and password_ok

    async def login(self, username: str, password: str) -> bool:
        success = self.check(username, password)
        if self._audit_logger:
            await self._audit_logger.log_admin_login(username=username or "", success=success)
        return success

    async def logout(self, username: str) -> None:
        if self._audit_logger:
            await self._audit_logger.log_admin_logout(username=username)


class AppComponents(NamedTuple):
    ledger: LedgerFlow
    sync: SyncFlow
    data: DataFlow
    auth: AuthGate
    summary_agent: FinancialSummaryAgent
    audit_storage: Optional[AuditStorageInterface]


def create_app_components(use_storage: bool = True) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to persist the ledger and audit trail.
                    Set to False for an in-memory ledger (tests, demos).

    The ledger still has to be loaded with `await components.ledger.load()`.
    """
    settings = get_settings()
    app = settings.app

    ledger_storage: Optional[LedgerStorageInterface] = None
    audit_storage: Optional[AuditStorageInterface] = None
    preferences: Optional[LocalPreferences] = None

    if use_storage:
        preferences = LocalPreferences(app.data_dir)
        if app.storage_backend == "sheets":
            try:
                sheets_client = GoogleSheetsClient()
                ledger_storage = GoogleSheetsLedgerStorage(sheets_client)
                audit_storage = GoogleSheetsAuditStorage(sheets_client)
            except Exception as e:
                # Sheets not configured - fall back to local files
                logger.warning("sheets_storage_unavailable", error=str(e))
                ledger_storage = None
        if ledger_storage is None:
            ledger_storage = LocalJsonLedgerStorage(app.data_dir)
            audit_storage = LocalJsonAuditStorage(app.data_dir)

    audit_logger = AuditLogger(audit_storage)

    ledger = LedgerFlow(
        storage=ledger_storage,
        audit_logger=audit_logger,
        validator=TransactionValidator(app),
    )
    sync = SyncFlow(
        ledger=ledger,
        preferences=preferences,
        audit_logger=audit_logger,
        app_url=app.public_url,
    )
    data = DataFlow(ledger=ledger, audit_logger=audit_logger, app_settings=app)
    auth = AuthGate(app_settings=app, audit_logger=audit_logger)

    return AppComponents(
        ledger=ledger,
        sync=sync,
        data=data,
        auth=auth,
        summary_agent=FinancialSummaryAgent(),
        audit_storage=audit_storage,
    )
