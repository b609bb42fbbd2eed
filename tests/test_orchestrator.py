"""
Tests for the orchestrator flows.

The ledger runs in memory or against temporary JSON files; cloud clients
and the audit logger are mocks.
"""

import json
import pytest
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import MagicMock

from mosque_ledger.audit import AuditLogger
from mosque_ledger.config.settings import AppSettings
from mosque_ledger.exports import ImportFormatError
from mosque_ledger.models import (
    CategoryState,
    TransactionDraft,
    TransactionType,
    initial_transactions,
)
from mosque_ledger.orchestrator import (
    AuthGate,
    DataFlow,
    LedgerFlow,
    SyncFlow,
    create_app_components,
)
from mosque_ledger.reports import monthly_report
from mosque_ledger.services.storage import (
    LedgerStorageInterface,
    LocalJsonLedgerStorage,
    LocalPreferences,
    NotFoundError,
    StorageError,
)
from mosque_ledger.services.sync import (
    BackupNotFoundError,
    GoogleDriveBackupClient,
    KeyValueSyncClient,
    PullResult,
)
from mosque_ledger.services.sync.share import magic_link
from mosque_ledger.validation import TransactionValidator, ValidationFailedError


APP_URL = "https://kas.example/"


@pytest.fixture
def app_settings(tmp_path):
    return AppSettings(
        admin_username="bendahara",
        admin_password="rahasia",
        data_dir=tmp_path,
        public_url=APP_URL,
    )


@pytest.fixture
def audit():
    return MagicMock(spec=AuditLogger)


@pytest.fixture
async def ledger(audit, app_settings):
    flow = LedgerFlow(
        audit_logger=audit,
        validator=TransactionValidator(app_settings),
        clock=lambda: 1720000000000,
    )
    await flow.load()
    return flow


def _draft(description="Infaq Jumat", amount=250000, type_=TransactionType.INCOME, category="Infaq"):
    return TransactionDraft(
        date=date(2024, 7, 19),
        description=description,
        amount=Decimal(amount),
        type=type_,
        category=category,
    )


class TestLedgerLoad:

    async def test_in_memory_starts_with_seeds(self):
        flow = LedgerFlow()
        assert not flow.is_loaded
        await flow.load()
        assert flow.is_loaded
        assert len(flow.transactions) == 9
        assert flow.categories == CategoryState()

    async def test_saved_ledger_wins_over_seeds(self, tmp_path):
        storage = LocalJsonLedgerStorage(tmp_path)
        await storage.save_transactions(initial_transactions()[:2])
        flow = LedgerFlow(storage=storage)
        await flow.load()
        assert [t.id for t in flow.transactions] == ["1", "2"]

    async def test_empty_saved_ledger_is_kept(self, tmp_path):
        storage = LocalJsonLedgerStorage(tmp_path)
        await storage.save_transactions([])
        flow = LedgerFlow(storage=storage)
        await flow.load()
        assert flow.transactions == []


class TestLedgerMutations:

    async def test_add_prepends_with_clock_id(self, ledger, audit):
        added = await ledger.add(_draft())
        assert added.id == "1720000000000"
        assert ledger.transactions[0] == added
        audit.log_transaction_added.assert_awaited_once()

    async def test_ids_bumped_on_collision(self, ledger):
        first = await ledger.add(_draft())
        second = await ledger.add(_draft("Infaq Subuh"))
        assert int(second.id) == int(first.id) + 1

    async def test_clock_colliding_with_existing_ids(self):
        flow = LedgerFlow(clock=lambda: 1)
        await flow.load()
        added = await flow.add(_draft())
        assert added.id == "10"

    async def test_transactions_is_a_copy(self, ledger):
        ledger.transactions.clear()
        assert len(ledger.transactions) == 9

    async def test_add_entry_from_form_values(self, ledger):
        transaction, result = await ledger.add_entry(
            "Kotak amal", "150000", date(2024, 7, 19), TransactionType.INCOME, "Infaq"
        )
        assert transaction.amount == Decimal(150000)
        assert result.is_valid
        assert ledger.get(transaction.id) == transaction

    async def test_add_entry_rejects_and_audits(self, ledger, audit):
        with pytest.raises(ValidationFailedError):
            await ledger.add_entry("", 0, date(2024, 7, 19), TransactionType.INCOME, "Infaq")
        audit.log_validation_failed.assert_awaited_once()
        assert len(ledger.transactions) == 9

    async def test_add_entry_warns_on_unknown_category(self, ledger):
        _, result = await ledger.add_entry(
            "Sewa tenda", 500000, date(2024, 7, 19), TransactionType.EXPENSE, "Sewa"
        )
        assert [w.issue_type for w in result.warnings] == ["unknown_category"]

    async def test_update_keeps_position(self, ledger, audit):
        target = ledger.transactions[3]
        changed = target.model_copy(update={"amount": Decimal(1)})
        await ledger.update(changed)
        assert ledger.transactions[3].amount == Decimal(1)
        changes = audit.log_transaction_updated.await_args.kwargs["changes"]
        assert list(changes) == ["amount"]

    async def test_update_unknown_id(self, ledger):
        ghost = initial_transactions()[0].model_copy(update={"id": "nope"})
        with pytest.raises(NotFoundError):
            await ledger.update(ghost)

    async def test_delete(self, ledger, audit):
        assert await ledger.delete("3") is True
        assert ledger.get("3") is None
        audit.log_transaction_deleted.assert_awaited_once()

    async def test_delete_unknown_is_noop(self, ledger, audit):
        assert await ledger.delete("nope") is False
        assert len(ledger.transactions) == 9
        audit.log_transaction_deleted.assert_not_awaited()

    async def test_restore_replaces_everything(self, ledger, audit):
        count = await ledger.restore(initial_transactions()[:4], source="json_import")
        assert count == 4
        kwargs = audit.log_ledger_restored.await_args.kwargs
        assert (kwargs["previous_count"], kwargs["new_count"]) == (9, 4)

    async def test_queries(self, ledger):
        assert [t.id for t in ledger.by_type("transfer")] == ["9"]
        assert len(ledger.recent(2)) == 2

    async def test_mutations_are_persisted(self, tmp_path):
        storage = LocalJsonLedgerStorage(tmp_path)
        flow = LedgerFlow(storage=storage, clock=lambda: 1720000000000)
        await flow.load()
        await flow.add(_draft())
        await flow.delete("1")

        reloaded = LedgerFlow(storage=storage)
        await reloaded.load()
        ids = [t.id for t in reloaded.transactions]
        assert ids[0] == "1720000000000"
        assert "1" not in ids


class TestLedgerSaveFailures:
    """A failed save leaves the in-memory ledger as it was stored."""

    @pytest.fixture
    async def failing(self, audit):
        storage = MagicMock(spec=LedgerStorageInterface)
        storage.load_transactions.return_value = None
        storage.load_categories.return_value = None
        storage.save_transactions.side_effect = StorageError("sheet locked")
        storage.save_categories.side_effect = StorageError("sheet locked")
        flow = LedgerFlow(storage=storage, audit_logger=audit, clock=lambda: 1720000000000)
        await flow.load()
        return flow

    async def test_delete(self, failing, audit):
        with pytest.raises(StorageError):
            await failing.delete("1")
        assert failing.get("1") is not None
        assert len(failing.transactions) == 9
        audit.log_transaction_deleted.assert_not_awaited()
        assert audit.log_error.await_args.kwargs["details"] == {"operation": "delete"}

    async def test_add(self, failing, audit):
        with pytest.raises(StorageError):
            await failing.add(_draft())
        assert len(failing.transactions) == 9
        audit.log_transaction_added.assert_not_awaited()

    async def test_update(self, failing):
        changed = failing.get("2").model_copy(update={"amount": Decimal(1)})
        with pytest.raises(StorageError):
            await failing.update(changed)
        assert failing.get("2").amount == Decimal(1200000)

    async def test_restore(self, failing):
        with pytest.raises(StorageError):
            await failing.restore([], source="json_import")
        assert len(failing.transactions) == 9

    async def test_category_edit(self, failing):
        with pytest.raises(StorageError):
            await failing.add_category(TransactionType.INCOME, "Wakaf")
        assert "Wakaf" not in failing.categories.income


class TestLedgerCategories:

    async def test_add_rename_remove(self, ledger, audit):
        await ledger.add_category(TransactionType.INCOME, " Wakaf ")
        assert ledger.categories.income[-1] == "Wakaf"

        await ledger.rename_category(TransactionType.INCOME, 0, "Donasi Umum")
        assert ledger.categories.income[0] == "Donasi Umum"

        await ledger.remove_category(TransactionType.INCOME, 0)
        assert "Donasi Umum" not in ledger.categories.income
        assert audit.log_categories_updated.await_args.kwargs["name"] == "Donasi Umum"

    async def test_remove_keeps_transactions(self, ledger):
        await ledger.remove_category(TransactionType.INCOME, 0)
        assert ledger.get("1").category == "Donasi"

    async def test_remove_out_of_range(self, ledger):
        with pytest.raises(IndexError):
            await ledger.remove_category(TransactionType.EXPENSE, 99)

    async def test_replace_all(self, ledger):
        state = CategoryState(income=["A"], expense=["B"], transfer=[])
        await ledger.update_categories(state)
        assert ledger.categories.transfer == []


@pytest.fixture
def kv():
    return MagicMock(spec=KeyValueSyncClient)


@pytest.fixture
def sync(ledger, kv, audit, tmp_path):
    flow = SyncFlow(
        ledger,
        kv_client=kv,
        preferences=LocalPreferences(tmp_path),
        audit_logger=audit,
        app_url=APP_URL,
    )
    flow.set_group("Masjid Kita")
    return flow


class TestSyncFlowKeyValue:

    def test_group_is_remembered(self, sync, tmp_path):
        assert sync.group == "masjid-kita"
        assert LocalPreferences(tmp_path).get(SyncFlow.GROUP_PREFERENCE) == "masjid-kita"

    async def test_push(self, sync, kv, audit):
        kv.push.return_value = True
        assert await sync.push() is True
        assert kv.push.await_args.args[0] == "masjid-kita"
        assert len(kv.push.await_args.args[1]) == 9
        audit.log_sync_pushed.assert_awaited_once()

    async def test_push_failure_is_audited(self, sync, kv, audit):
        kv.push.return_value = False
        assert await sync.push("Grup Lain") is False
        assert sync.group == "grup-lain"
        audit.log_sync_failed.assert_awaited_once()

    async def test_pull_replaces_ledger(self, sync, kv, ledger):
        kv.pull.return_value = PullResult(data=initial_transactions()[:3], status=200)
        result = await sync.pull()
        assert result.ok
        assert len(ledger.transactions) == 3

    async def test_pull_new_group_keeps_ledger(self, sync, kv, ledger, audit):
        kv.pull.return_value = PullResult(data=None, status=404)
        result = await sync.pull()
        assert result.is_new_group
        assert len(ledger.transactions) == 9
        audit.log_sync_failed.assert_not_awaited()

    async def test_pull_error_is_audited(self, sync, kv, audit):
        kv.pull.return_value = PullResult(data=None, status=500)
        await sync.pull()
        assert audit.log_sync_failed.await_args.kwargs["status"] == 500

    async def test_poll_tick_only_replaces_on_change(self, sync, kv, ledger):
        kv.pull.return_value = PullResult(data=ledger.transactions, status=200)
        assert await sync.poll_tick() is False

        kv.pull.return_value = PullResult(data=initial_transactions()[:1], status=200)
        assert await sync.poll_tick() is True
        assert len(ledger.transactions) == 1

    async def test_poll_tick_without_group(self, ledger, kv):
        flow = SyncFlow(ledger, kv_client=kv, app_url=APP_URL)
        flow.set_group("")
        assert await flow.poll_tick() is False
        kv.pull.assert_not_awaited()

    async def test_poller_uses_tick(self, sync, kv):
        kv.pull.return_value = PullResult(data=None, status=404)
        poller = sync.create_poller(interval_seconds=30)
        await poller.run_once()
        assert poller.ticks == 1
        assert poller.failures == 0


class TestSyncFlowDrive:

    async def test_backup(self, ledger, kv, audit):
        drive = MagicMock(spec=GoogleDriveBackupClient)
        drive.backup.return_value = "file-1"
        flow = SyncFlow(ledger, kv_client=kv, drive_client=drive, audit_logger=audit, app_url=APP_URL)
        assert await flow.backup_to_drive() == "file-1"
        audit.log_sync_pushed.assert_awaited_once()

    async def test_backup_failure_is_reported(self, ledger, kv, audit):
        drive = MagicMock(spec=GoogleDriveBackupClient)
        drive.backup.side_effect = RuntimeError("quota")
        flow = SyncFlow(ledger, kv_client=kv, drive_client=drive, audit_logger=audit, app_url=APP_URL)
        with pytest.raises(RuntimeError):
            await flow.backup_to_drive()
        audit.log_external_service_error.assert_awaited_once()

    async def test_restore(self, ledger, kv, audit):
        drive = MagicMock(spec=GoogleDriveBackupClient)
        drive.file_name = "backup.json"
        drive.restore.return_value = initial_transactions()[:5]
        flow = SyncFlow(ledger, kv_client=kv, drive_client=drive, audit_logger=audit, app_url=APP_URL)
        assert await flow.restore_from_drive() == 5
        assert audit.log_sync_pulled.await_args.kwargs["target"] == "backup.json"

    async def test_restore_without_backup(self, ledger, kv):
        drive = MagicMock(spec=GoogleDriveBackupClient)
        drive.restore.side_effect = BackupNotFoundError("tidak ditemukan")
        flow = SyncFlow(ledger, kv_client=kv, drive_client=drive, app_url=APP_URL)
        with pytest.raises(BackupNotFoundError):
            await flow.restore_from_drive()
        assert len(ledger.transactions) == 9


class TestSyncFlowShareLinks:

    async def test_group_share(self, sync):
        link, wa = await sync.group_share()
        assert link == "https://kas.example/#g=masjid-kita"
        assert wa.startswith("https://wa.me/?text=")

    async def test_snapshot_share(self, sync):
        link, _ = await sync.snapshot_share()
        assert link.startswith("https://kas.example/#data=")

    async def test_incoming_group_link(self, sync):
        assert await sync.handle_incoming_link("https://kas.example/#g=Grup Baru") == "grup-baru"
        assert sync.group == "grup-baru"

    async def test_incoming_magic_link(self, sync, ledger):
        link = magic_link(APP_URL, initial_transactions()[:2])
        assert await sync.handle_incoming_link(link) == 2
        assert [t.id for t in ledger.transactions] == ["1", "2"]

    async def test_plain_url_is_ignored(self, sync):
        assert await sync.handle_incoming_link(APP_URL) is None


class TestDataFlow:

    @pytest.fixture
    def data(self, ledger, audit, app_settings):
        return DataFlow(ledger, audit_logger=audit, app_settings=app_settings)

    async def test_json_backup(self, data, audit):
        name, content = await data.json_backup(on=date(2024, 7, 18))
        assert name == "Data_Masjid_AdzDzurriyyah_2024-07-18.json"
        assert len(json.loads(content)) == 9
        assert audit.log_report_exported.await_args.kwargs["fmt"] == "json"

    async def test_report_csv_excel(self, data, ledger):
        report = monthly_report(ledger.transactions, "2024-07")
        name, content = await data.report_csv(report, excel=True)
        assert name == "Laporan_Bulanan_Juli_2024.xls"
        assert b";" in content

    async def test_cashbook(self, data):
        name, content = await data.cashbook(on=date(2024, 7, 18))
        assert name == "Laporan_Kas_Lengkap_2024-07-18.xlsx"
        assert content[:2] == b"PK"

    async def test_pdfs(self, data, ledger):
        report = monthly_report(ledger.transactions, "2024-07")
        name, content = await data.period_pdf(report)
        assert name == "Laporan_Bulanan_Juli_2024.pdf"
        assert content.startswith(b"%PDF")

        name, content = await data.public_pdf(printed_at=datetime(2024, 7, 18, 8, 0))
        assert name == "Laporan_Keuangan_Masjid_2024-07-18.pdf"
        assert content.startswith(b"%PDF")

    async def test_import_json_backup(self, data, ledger):
        _, content = await data.json_backup()
        await ledger.delete("1")
        assert await data.import_json_backup(content, "backup.json") == 9

    async def test_import_bad_file_keeps_ledger(self, data, ledger):
        with pytest.raises(ImportFormatError):
            await data.import_json_backup(b"{}", "backup.json")
        assert len(ledger.transactions) == 9

    async def test_import_cashbook(self, data, ledger):
        _, content = await data.cashbook()
        assert await data.import_cashbook_file(content) == 9
        assert ledger.transactions[0].category == "Lain-lain"


class TestAuthGate:

    def test_check(self, app_settings):
        gate = AuthGate(app_settings)
        assert gate.check("bendahara", "rahasia")
        assert not gate.check("bendahara", "salah")
        assert not gate.check("", "")

    async def test_login_is_audited(self, app_settings, audit):
        gate = AuthGate(app_settings, audit_logger=audit)
        assert await gate.login("bendahara", "salah") is False
        assert audit.log_admin_login.await_args.kwargs == {"username": "bendahara", "success": False}
        await gate.logout("bendahara")
        audit.log_admin_logout.assert_awaited_once()


class TestCreateAppComponents:

    async def test_in_memory_components(self):
        components = create_app_components(use_storage=False)
        assert components.audit_storage is None
        await components.ledger.load()
        assert len(components.ledger.transactions) == 9
