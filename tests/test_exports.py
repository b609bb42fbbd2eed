"""
Tests for file exports and imports.
"""

import io
import json
import pytest
from datetime import date, datetime
from decimal import Decimal

from openpyxl import Workbook, load_workbook

from mosque_ledger.config.settings import AppSettings
from mosque_ledger.exports import (
    ImportFormatError,
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
    parse_cashbook_rows,
)
from mosque_ledger.models import Transaction, TransactionType, initial_transactions
from mosque_ledger.reports import monthly_report


@pytest.fixture
def ledger():
    return initial_transactions()


class TestCsvExport:

    def test_header_and_bom(self, ledger):
        content = export_csv(ledger)
        assert content.startswith("\ufeff")
        assert content.lstrip("\ufeff").split("\n")[0] == "ID,Tanggal,Deskripsi,Kategori,Tipe,Jumlah"

    def test_row_format(self, ledger):
        lines = export_csv(ledger).split("\n")
        assert lines[1] == '1,2024-07-01,"Donasi Hamba Allah",Donasi,income,500000'
        assert len(lines) == 10

    def test_description_quotes_doubled(self):
        entry = initial_transactions()[0].model_copy(update={"description": 'Infaq "Jumat"'})
        line = export_csv([entry]).split("\n")[1]
        assert '"Infaq ""Jumat"""' in line

    def test_excel_flavour_uses_semicolon(self, ledger):
        lines = export_csv(ledger, delimiter=";").split("\n")
        assert lines[2] == '2;2024-07-01;"Pembelian Karpet Baru";Perbaikan;expense;1200000'

    def test_category_with_delimiter_is_quoted(self):
        entry = initial_transactions()[0].model_copy(update={"category": "Infaq, Jumat"})
        line = export_csv([entry]).split("\n")[1]
        assert line.endswith('"Infaq, Jumat",income,500000')

    def test_unknown_delimiter(self, ledger):
        with pytest.raises(ValueError):
            export_csv(ledger, delimiter="|")

    def test_file_names(self):
        assert csv_file_name("Laporan_Bulanan_Juli_2024") == "Laporan_Bulanan_Juli_2024.csv"
        assert csv_file_name("Laporan", excel=True) == "Laporan.xls"


class TestJson:

    def test_export_is_pretty_array(self, ledger):
        content = export_json(ledger)
        assert content.startswith("[\n  {")
        assert json.loads(content)[0]["amount"] == 500000

    def test_file_name(self):
        assert json_file_name(date(2024, 7, 18)) == "Data_Masjid_AdzDzurriyyah_2024-07-18.json"

    def test_import_accepts_bytes_with_bom(self, ledger):
        content = ("\ufeff" + export_json(ledger)).encode("utf-8")
        assert import_json(content, "backup.json") == ledger

    def test_import_rejects_other_extension(self, ledger):
        with pytest.raises(ImportFormatError, match=".json"):
            import_json(export_json(ledger), "backup.txt")

    def test_import_rejects_non_utf8_bytes(self):
        with pytest.raises(ImportFormatError, match="UTF-8"):
            import_json(b"\xff\xfe[not utf8", "backup.json")

    def test_import_rejects_invalid_json(self):
        with pytest.raises(ImportFormatError):
            import_json("{not json")

    def test_import_rejects_object(self):
        with pytest.raises(ImportFormatError, match="bukan array"):
            import_json('{"id": "1"}')

    def test_import_rejects_bad_entries(self):
        with pytest.raises(ImportFormatError):
            import_json('[{"id": "1", "amount": "banyak"}]')


class TestCashbookExport:

    def _rows(self, content: bytes) -> list[tuple]:
        wb = load_workbook(io.BytesIO(content))
        return [tuple(r) for r in wb.active.iter_rows(values_only=True)]

    def test_layout(self, ledger):
        rows = self._rows(build_cashbook(ledger, "Masjid Adzdzurriyyah", "01 Juli 2024 s/d 18 Juli 2024"))
        assert rows[0][0] == "LAPORAN KAS MASUK KAS KELUAR"
        assert rows[1][0] == "Masjid Adzdzurriyyah"
        assert rows[2][0] == "Periode : 01 Juli 2024 s/d 18 Juli 2024"
        assert list(rows[3]) == ["Tanggal", "Transaksi", "Pemasukan", "Pengeluaran", "Saldo Akhir"]
        assert rows[4][:2] == ("Bulan :", "Juli 2024")

    def test_running_balance_and_closing_row(self, ledger):
        rows = self._rows(build_cashbook(ledger, "Masjid", "Juli 2024"))
        first = rows[5]
        assert first[0] == "01"
        assert first[4] == 500000
        closing = rows[-1]
        assert closing[0] == "SALDO AKHIR"
        assert closing[4] == -400000

    def test_transfer_contributes_zero(self):
        transfer = [t for t in initial_transactions() if t.type == TransactionType.TRANSFER]
        rows = self._rows(build_cashbook(transfer, "Masjid", ""))
        assert rows[5][2] == 0 and rows[5][3] == 0
        assert rows[-1][4] == 0

    def test_month_separator_on_change(self):
        ledger = initial_transactions() + [
            Transaction(
                id="x",
                date=date(2024, 8, 2),
                description="Infaq Agustus",
                amount=Decimal(100000),
                type=TransactionType.INCOME,
                category="Infaq",
            )
        ]
        rows = self._rows(build_cashbook(ledger, "Masjid", ""))
        markers = [r[1] for r in rows if r[0] == "Bulan :"]
        assert markers == ["Juli 2024", "Agustus 2024"]

    def test_file_name(self):
        assert cashbook_file_name(date(2024, 7, 18)) == "Laporan_Kas_Lengkap_2024-07-18.xlsx"


class TestCashbookImport:

    def test_round_trip_recovers_entries(self, ledger):
        imported = import_cashbook(build_cashbook(ledger, "Masjid", "Juli 2024"))
        # The transfer row has no income or expense and still carries a description
        assert len(imported) == 9
        first = imported[0]
        assert first.date == date(2024, 7, 1)
        assert first.type == TransactionType.INCOME
        assert first.category == "Lain-lain"
        assert first.amount == Decimal(500000)
        second = imported[1]
        assert second.type == TransactionType.EXPENSE
        assert second.category == "Operasional"

    def test_new_ids_are_unique(self, ledger):
        imported = import_cashbook(build_cashbook(ledger, "Masjid", ""))
        assert len({t.id for t in imported}) == len(imported)
        assert not {t.id for t in imported} & {t.id for t in ledger}

    def test_hand_typed_sheet(self):
        rows = [
            ("LAPORAN KAS", None, None, None, None),
            ("Periode : Maret 2023", None, None, None, None),
            ("Tanggal", "Transaksi", "Pemasukan", "Pengeluaran", "Saldo Akhir"),
            ("Bulan :", "Maret 2023", None, None, None),
            ("5", "Kotak amal", "1.250.000", None, None),
            (None, None, None, None, None),
            ("07", None, 0, 30000, None),
            ("Bulan :", "April", None, None, None),
            ("2", "Sabun", None, "15000", None),
            ("SALDO AKHIR", None, None, None, 1205000),
            ("9", "ignored", 1, None, None),
        ]
        imported = parse_cashbook_rows(rows, today=date(2024, 1, 1))
        assert [t.date for t in imported] == [
            date(2023, 3, 5), date(2023, 3, 7), date(2023, 4, 2),
        ]
        assert imported[0].amount == Decimal(1250000)
        assert imported[1].description == "Tanpa Keterangan"
        assert imported[1].type == TransactionType.EXPENSE
        assert imported[2].amount == Decimal(15000)

    def test_missing_header(self):
        with pytest.raises(ImportFormatError, match="Tanggal"):
            parse_cashbook_rows([("Nama", "Jumlah")])

    def test_header_without_entries(self):
        rows = [("Tanggal", "Transaksi", "Pemasukan", "Pengeluaran"), ("SALDO AKHIR", None, None, 0)]
        with pytest.raises(ImportFormatError, match="Tidak ada data"):
            parse_cashbook_rows(rows)

    def test_not_a_workbook(self):
        with pytest.raises(ImportFormatError):
            import_cashbook(b"not an xlsx file")

    def test_real_dates_are_kept(self):
        wb = Workbook()
        ws = wb.active
        ws.append(["Tanggal", "Transaksi", "Pemasukan", "Pengeluaran"])
        ws.append([datetime(2024, 2, 14), "Zakat", 200000, None])
        out = io.BytesIO()
        wb.save(out)
        imported = import_cashbook(out.getvalue())
        assert imported[0].date == date(2024, 2, 14)


class TestPdf:

    def test_period_pdf(self, ledger):
        report = monthly_report(ledger, "2024-07")
        content = build_period_pdf(report, AppSettings())
        assert content.startswith(b"%PDF")

    def test_period_pdf_empty(self, ledger):
        report = monthly_report(ledger, "2020-01")
        assert build_period_pdf(report, AppSettings()).startswith(b"%PDF")

    def test_public_pdf(self, ledger):
        content = build_public_pdf(ledger, AppSettings(), printed_at=datetime(2024, 7, 18, 9, 30))
        assert content.startswith(b"%PDF")
