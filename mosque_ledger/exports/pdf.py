"""
PDF reports (reportlab platypus).

Two documents:
- period report: summary table plus every non-transfer entry of the period
- public report: letterhead, print date, overall summary and the latest
  entries, meant to be handed to the congregation
"""

import io
from datetime import datetime
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from mosque_ledger.config.settings import AppSettings
from mosque_ledger.models.report import LedgerSummary, PeriodReport
from mosque_ledger.models.transaction import Transaction, TransactionType
from mosque_ledger.reports.aggregator import summarize
from mosque_ledger.reports.formatting import format_currency, format_date, type_label


HEADER_COLOR = colors.HexColor("#047857")
INCOME_COLOR = colors.HexColor("#059669")
EXPENSE_COLOR = colors.HexColor("#DC2626")
ROW_ALT_COLOR = colors.HexColor("#F0FDF4")


def _styles() -> dict:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("LedgerTitle", parent=base["Title"], fontSize=16, spaceAfter=4),
        "subtitle": ParagraphStyle(
            "LedgerSubtitle", parent=base["Normal"], alignment=TA_CENTER, fontSize=11
        ),
        "small": ParagraphStyle(
            "LedgerSmall", parent=base["Normal"], alignment=TA_CENTER, fontSize=9,
            textColor=colors.grey,
        ),
        "heading": base["Heading3"],
        "normal": base["Normal"],
    }


def _summary_table(summary: LedgerSummary) -> Table:
    table = Table(
        [
            ["Total Pemasukan", format_currency(summary.total_income)],
            ["Total Pengeluaran", format_currency(summary.total_expense)],
            ["Saldo Akhir", format_currency(summary.balance)],
        ],
        colWidths=[200, 180],
        hAlign="LEFT",
    )
    table.setStyle(TableStyle([
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("TEXTCOLOR", (1, 0), (1, 0), INCOME_COLOR),
        ("TEXTCOLOR", (1, 1), (1, 1), EXPENSE_COLOR),
        ("FONTNAME", (0, 2), (-1, 2), "Helvetica-Bold"),
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("BACKGROUND", (0, 0), (0, -1), ROW_ALT_COLOR),
    ]))
    return table


def _transactions_table(transactions: list[Transaction]) -> Table:
    data = [["Tanggal", "Deskripsi", "Kategori", "Tipe", "Jumlah"]]
    styles = [
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("ALIGN", (4, 1), (4, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]
    cell_style = ParagraphStyle("Cell", fontSize=8, leading=10)

    for row, t in enumerate(transactions, start=1):
        sign = "+" if t.type == TransactionType.INCOME else "-"
        data.append([
            format_date(t.date),
            Paragraph(t.description, cell_style),
            t.category,
            type_label(t.type),
            f"{sign}{format_currency(t.amount)}",
        ])
        color = INCOME_COLOR if t.type == TransactionType.INCOME else EXPENSE_COLOR
        styles.append(("TEXTCOLOR", (4, row), (4, row), color))
        if row % 2 == 0:
            styles.append(("BACKGROUND", (0, row), (-1, row), ROW_ALT_COLOR))

    table = Table(data, colWidths=[75, 190, 90, 65, 85], repeatRows=1)
    table.setStyle(TableStyle(styles))
    return table


def _render(elements: list) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=A4, rightMargin=36, leftMargin=36, topMargin=36, bottomMargin=36
    )
    doc.build(elements)
    return buffer.getvalue()


def build_period_pdf(report: PeriodReport, app: AppSettings) -> bytes:
    styles = _styles()
    title = report.title.replace("_", " ")
    elements = [
        Paragraph(f"{title} {app.masjid_name}", styles["title"]),
        Paragraph(report.subtitle, styles["subtitle"]),
        Spacer(1, 14),
        Paragraph("<b>Ringkasan</b>", styles["heading"]),
        _summary_table(report.summary),
        Spacer(1, 14),
        Paragraph("<b>Rincian Transaksi</b>", styles["heading"]),
    ]

    rows = [t for t in report.transactions if t.type != TransactionType.TRANSFER]
    if rows:
        elements.append(_transactions_table(rows))
    else:
        elements.append(Paragraph("Tidak ada transaksi pada periode ini.", styles["normal"]))
    return _render(elements)


def build_public_pdf(
    transactions: list[Transaction],
    app: AppSettings,
    printed_at: Optional[datetime] = None,
) -> bytes:
    styles = _styles()
    printed_at = printed_at or datetime.now()
    latest = transactions[:app.public_recent_limit]

    elements = [
        Paragraph(f"LAPORAN KEUANGAN {app.masjid_name.upper()}", styles["title"]),
        Paragraph(app.masjid_organization, styles["subtitle"]),
    ]
    if app.masjid_address:
        elements.append(Paragraph(app.masjid_address, styles["small"]))
    elements.extend([
        Paragraph(
            f"Dicetak: {format_date(printed_at.date())} {printed_at:%H:%M}",
            styles["small"],
        ),
        Spacer(1, 14),
        Paragraph("<b>Ringkasan Keuangan</b>", styles["heading"]),
        _summary_table(summarize(transactions)),
        Spacer(1, 14),
        Paragraph(f"<b>{len(latest)} Transaksi Terakhir</b>", styles["heading"]),
    ])
    if latest:
        elements.append(_transactions_table(latest))
    else:
        elements.append(Paragraph("Belum ada transaksi.", styles["normal"]))
    return _render(elements)


def pdf_file_name(stem: str) -> str:
    return f"{stem}.pdf"
