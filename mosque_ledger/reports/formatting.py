"""
Indonesian display formatting for amounts and dates.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from mosque_ledger.models.transaction import TransactionType


MONTHS_ID = [
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
]
MONTHS_ID_SHORT = [
    "Jan", "Feb", "Mar", "Apr", "Mei", "Jun",
    "Jul", "Agu", "Sep", "Okt", "Nov", "Des",
]

TYPE_LABELS = {
    TransactionType.INCOME: "Pemasukan",
    TransactionType.EXPENSE: "Pengeluaran",
    TransactionType.TRANSFER: "Transfer",
}


def format_currency(amount: Union[Decimal, int, float]) -> str:
    """Rupiah without decimals: Rp 1.500.000, -Rp 1.500."""
    value = Decimal(str(amount)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    grouped = f"{abs(int(value)):,}".replace(",", ".")
    return f"{sign}Rp {grouped}"


def format_number(amount: Union[Decimal, int, float]) -> str:
    """Thousands-grouped number without currency symbol."""
    value = Decimal(str(amount)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    return sign + f"{abs(int(value)):,}".replace(",", ".")


def format_date(value: date) -> str:
    """01 Juli 2024"""
    return f"{value.day:02d} {MONTHS_ID[value.month - 1]} {value.year}"


def month_key(value: date) -> str:
    return value.strftime("%Y-%m")


def parse_month_key(key: str) -> tuple[int, int]:
    year, month = key.split("-")
    year_i, month_i = int(year), int(month)
    if not 1 <= month_i <= 12:
        raise ValueError(f"Invalid month key: {key}")
    return year_i, month_i


def format_month_label(key: str, short: bool = False) -> str:
    """'2024-07' -> 'Juli 2024' (or 'Jul 2024')."""
    year, month = parse_month_key(key)
    names = MONTHS_ID_SHORT if short else MONTHS_ID
    return f"{names[month - 1]} {year}"


def type_label(transaction_type: TransactionType) -> str:
    return TYPE_LABELS[TransactionType(transaction_type)]
