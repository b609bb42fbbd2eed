"""File exports and imports: CSV, JSON, cash-book workbook, PDF."""

from mosque_ledger.exports.cashbook import (
    build_cashbook,
    cashbook_file_name,
    import_cashbook,
    parse_cashbook_rows,
)
from mosque_ledger.exports.pdf import build_period_pdf, build_public_pdf, pdf_file_name
from mosque_ledger.exports.tabular import (
    ImportFormatError,
    csv_file_name,
    export_csv,
    export_json,
    import_json,
    json_file_name,
)

__all__ = [
    "ImportFormatError",
    "build_cashbook",
    "build_period_pdf",
    "build_public_pdf",
    "cashbook_file_name",
    "csv_file_name",
    "export_csv",
    "export_json",
    "import_cashbook",
    "import_json",
    "json_file_name",
    "parse_cashbook_rows",
    "pdf_file_name",
]
