"""
Cash-book Workbook ("Laporan Kas Masuk Kas Keluar")

The treasurer's traditional paper layout, as an .xlsx workbook:

    title / subtitle / "Periode : ..."
    Tanggal | Transaksi | Pemasukan | Pengeluaran | Saldo Akhir
    Bulan : | Juli 2024
    01      | Donasi Hamba Allah | 500000 | 0 | 500000
    ...
    SALDO AKHIR |  |  |  | <closing balance>

The importer reads the same layout back, including sheets typed by hand
that only carry the day of month in the date column.
"""

import io
import re
import uuid
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from mosque_ledger.exports.tabular import ImportFormatError
from mosque_ledger.models.transaction import (
    IMPORTED_EXPENSE_CATEGORY,
    IMPORTED_INCOME_CATEGORY,
    Transaction,
    TransactionType,
)
from mosque_ledger.reports.aggregator import running_balance
from mosque_ledger.reports.formatting import MONTHS_ID


CASHBOOK_TITLE = "LAPORAN KAS MASUK KAS KELUAR"
HEADERS = ["Tanggal", "Transaksi", "Pemasukan", "Pengeluaran", "Saldo Akhir"]
MONTH_MARKER = "Bulan :"
CLOSING_MARKER = "SALDO AKHIR"
NO_DESCRIPTION = "Tanpa Keterangan"
NUMBER_FORMAT = "#,##0"

_THIN = Side(style="thin", color="000000")
_BORDER = Border(left=_THIN, right=_THIN, top=_THIN, bottom=_THIN)
_GREY = PatternFill("solid", fgColor="D1D5DB")
_HEADER_FILL = PatternFill("solid", fgColor="F3F4F6")
_BOLD = Font(bold=True)


def build_cashbook(
    transactions: list[Transaction],
    subtitle: str,
    period_text: str,
    title: str = CASHBOOK_TITLE,
) -> bytes:
    """Render the cash-book workbook and return the .xlsx bytes."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Kas"

    for row_idx, (text, size) in enumerate(
        [(title, 16), (subtitle, 14), (f"Periode : {period_text}", 11)], start=1
    ):
        ws.merge_cells(start_row=row_idx, start_column=1, end_row=row_idx, end_column=5)
        cell = ws.cell(row=row_idx, column=1, value=text)
        cell.font = Font(bold=row_idx < 3, size=size)
        cell.alignment = Alignment(horizontal="center")

    ws.append(HEADERS)
    header_row = ws.max_row
    for col in range(1, 6):
        cell = ws.cell(row=header_row, column=col)
        cell.font = _BOLD
        cell.fill = _HEADER_FILL
        cell.border = _BORDER
        cell.alignment = Alignment(horizontal="center")

    current_month = None
    balance = Decimal(0)
    for t, balance in running_balance(transactions):
        month_label = f"{MONTHS_ID[t.date.month - 1]} {t.date.year}"
        if month_label != current_month:
            current_month = month_label
            ws.append([MONTH_MARKER, month_label])
            row = ws.max_row
            ws.merge_cells(start_row=row, start_column=2, end_row=row, end_column=5)
            for col in range(1, 6):
                ws.cell(row=row, column=col).fill = _GREY
                ws.cell(row=row, column=col).font = _BOLD
                ws.cell(row=row, column=col).border = _BORDER

        income = t.amount if t.type == TransactionType.INCOME else Decimal(0)
        expense = t.amount if t.type == TransactionType.EXPENSE else Decimal(0)
        ws.append([f"{t.date.day:02d}", t.description, income, expense, balance])
        row = ws.max_row
        for col in range(1, 6):
            cell = ws.cell(row=row, column=col)
            cell.border = _BORDER
            if col >= 3:
                cell.number_format = NUMBER_FORMAT
        ws.cell(row=row, column=1).alignment = Alignment(horizontal="center")
        ws.cell(row=row, column=5).font = _BOLD

    ws.append([CLOSING_MARKER, None, None, None, balance])
    row = ws.max_row
    ws.merge_cells(start_row=row, start_column=1, end_row=row, end_column=2)
    for col in range(1, 6):
        cell = ws.cell(row=row, column=col)
        cell.fill = _GREY
        cell.font = _BOLD
        cell.border = _BORDER
    ws.cell(row=row, column=5).number_format = NUMBER_FORMAT

    for col, width in zip(range(1, 6), (12, 45, 18, 18, 18)):
        ws.column_dimensions[get_column_letter(col)].width = width

    out = io.BytesIO()
    wb.save(out)
    return out.getvalue()


def cashbook_file_name(on: Optional[date] = None) -> str:
    on = on or date.today()
    return f"Laporan_Kas_Lengkap_{on.isoformat()}.xlsx"


# =============================================================================
# IMPORT
# =============================================================================

def _to_amount(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal(0)
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))
    text = str(value).strip().replace("Rp", "").replace(" ", "")
    # Indonesian grouping: 1.500.000 or 1.500.000,50
    if re.fullmatch(r"-?\d{1,3}(\.\d{3})+(,\d+)?", text):
        text = text.replace(".", "").replace(",", ".")
    else:
        text = text.replace(",", "")
    try:
        return Decimal(text)
    except InvalidOperation:
        return Decimal(0)


def _parse_month_marker(value: Any) -> tuple[Optional[int], Optional[int]]:
    """'Juli 2024' -> (7, 2024); unknown parts are None."""
    if value is None:
        return None, None
    text = str(value).strip().lower()
    month = None
    for idx, name in enumerate(MONTHS_ID, start=1):
        if name.lower() in text:
            month = idx
            break
    year_match = re.search(r"\b(19|20)\d{2}\b", text)
    year = int(year_match.group(0)) if year_match else None
    return month, year


def _to_date(value: Any, month: int, year: int, today: date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None or str(value).strip() == "":
        return today

    text = str(value).strip()
    if text.isdigit() and len(text) <= 2:
        try:
            return date(year, month, int(text))
        except ValueError:
            return today
    for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return today


def parse_cashbook_rows(
    rows: list[tuple],
    today: Optional[date] = None,
) -> list[Transaction]:
    """
    Turn cash-book rows (as value tuples) into transactions.

    Raises:
        ImportFormatError: no header row with Tanggal and Transaksi, or no entries
    """
    today = today or date.today()

    header_idx = None
    for idx, row in enumerate(rows):
        values = [str(v).strip() if v is not None else "" for v in row]
        if "Tanggal" in values and "Transaksi" in values:
            header_idx = idx
            headers = values
            break

    if header_idx is None:
        raise ImportFormatError(
            "Format file Excel tidak dikenali. "
            "Pastikan kolom 'Tanggal' dan 'Transaksi' tersedia."
        )

    col_date = headers.index("Tanggal")
    col_desc = headers.index("Transaksi")
    col_income = headers.index("Pemasukan") if "Pemasukan" in headers else None
    col_expense = headers.index("Pengeluaran") if "Pengeluaran" in headers else None

    # Day-only dates fall back to the period line, then to today
    year, month = today.year, today.month
    for row in rows[:header_idx]:
        for value in row:
            _, found_year = _parse_month_marker(value)
            if found_year:
                year = found_year

    def cell(row: tuple, idx: Optional[int]) -> Any:
        if idx is None or idx >= len(row):
            return None
        return row[idx]

    imported: list[Transaction] = []
    for row in rows[header_idx + 1:]:
        if not row or all(v is None or str(v).strip() == "" for v in row):
            continue

        first = str(row[0]).strip() if row[0] is not None else ""
        second = str(cell(row, 1)).strip() if cell(row, 1) is not None else ""

        if first == CLOSING_MARKER or second == CLOSING_MARKER:
            break
        if first.startswith("Bulan"):
            marker = cell(row, 1) or first.split(":", 1)[-1]
            found_month, found_year = _parse_month_marker(marker)
            month = found_month or month
            year = found_year or year
            continue

        description = cell(row, col_desc)
        description = str(description).strip() if description is not None else ""
        income = _to_amount(cell(row, col_income))
        expense = _to_amount(cell(row, col_expense))

        if not description and income == 0 and expense == 0:
            continue

        is_income = income > 0
        imported.append(Transaction(
            id=uuid.uuid4().hex[:9],
            date=_to_date(cell(row, col_date), month, year, today),
            description=description or NO_DESCRIPTION,
            amount=income if is_income else expense,
            type=TransactionType.INCOME if is_income else TransactionType.EXPENSE,
            category=IMPORTED_INCOME_CATEGORY if is_income else IMPORTED_EXPENSE_CATEGORY,
        ))

    if not imported:
        raise ImportFormatError("Tidak ada data transaksi yang ditemukan.")
    return imported


def import_cashbook(content: bytes, today: Optional[date] = None) -> list[Transaction]:
    """Read the first sheet of an .xlsx cash-book."""
    try:
        wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise ImportFormatError(f"File Excel tidak dapat dibaca: {e}")
    try:
        ws = wb.worksheets[0]
        rows = [tuple(row) for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()
    return parse_cashbook_rows(rows, today=today)
