"""
CSV and JSON exports / JSON import.

CSV files start with a UTF-8 BOM so Excel opens them with the right
encoding. The "excel" flavour uses ';' as delimiter, which is what Excel
expects under an Indonesian locale.
"""

import json
from datetime import date
from typing import Optional, Union

from pydantic import ValidationError

from mosque_ledger.models.transaction import (
    Transaction,
    parse_transactions,
    transactions_to_wire,
)


CSV_HEADERS = ["ID", "Tanggal", "Deskripsi", "Kategori", "Tipe", "Jumlah"]
BOM = "\ufeff"


class ImportFormatError(ValueError):
    """Uploaded file cannot be turned into transactions."""
    pass


def _amount_text(transaction: Transaction) -> str:
    amount = transaction.amount
    if amount == amount.to_integral_value():
        return str(int(amount))
    return str(amount)


def export_csv(transactions: list[Transaction], delimiter: str = ",") -> str:
    """
    Render transactions as CSV text (with BOM).

    The description column is always quoted; other columns only when needed.
    """
    if delimiter not in (",", ";"):
        raise ValueError("Delimiter must be ',' or ';'")

    lines = [delimiter.join(CSV_HEADERS)]
    for t in transactions:
        description = '"' + t.description.replace('"', '""') + '"'
        lines.append(delimiter.join([
            t.id,
            t.date.isoformat(),
            description,
            _quote_if_needed(t.category, delimiter),
            t.type.value,
            _amount_text(t),
        ]))
    return BOM + "\n".join(lines)


def _quote_if_needed(value: str, delimiter: str) -> str:
    if delimiter in value or '"' in value or "\n" in value:
        return '"' + value.replace('"', '""') + '"'
    return value


def csv_file_name(stem: str, excel: bool = False) -> str:
    return f"{stem}.{'xls' if excel else 'csv'}"


def export_json(transactions: list[Transaction]) -> str:
    return json.dumps(transactions_to_wire(transactions), indent=2, ensure_ascii=False)


def json_file_name(on: Optional[date] = None) -> str:
    on = on or date.today()
    return f"Data_Masjid_AdzDzurriyyah_{on.isoformat()}.json"


def import_json(content: Union[str, bytes], file_name: Optional[str] = None) -> list[Transaction]:
    """
    Parse an exported JSON backup.

    Raises:
        ImportFormatError: wrong extension, invalid JSON, not an array,
            or entries that are not transactions
    """
    if file_name is not None and not file_name.lower().endswith(".json"):
        raise ImportFormatError("Mohon unggah file dengan format .json")

    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ImportFormatError(f"File bukan teks UTF-8: {e}")
    else:
        content = content.lstrip(BOM)

    try:
        payload = json.loads(content)
    except json.JSONDecodeError as e:
        raise ImportFormatError(f"Gagal menguraikan file JSON: {e}")

    if not isinstance(payload, list):
        raise ImportFormatError("Format JSON tidak valid (bukan array transaksi).")

    try:
        return parse_transactions(payload)
    except ValidationError as e:
        raise ImportFormatError(f"Data transaksi tidak valid: {e.error_count()} kesalahan")
