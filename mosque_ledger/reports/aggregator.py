"""
Report Aggregation

DESIGN DECISION: Reports are computed deterministically from the ledger
snapshot on every render. The ledger is small (one mosque, a few thousand
entries a year), so there is no cache to go stale after a sync.

Transfers move money between internal funds. They appear in transaction
lists but never in income, expense or balance totals.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Optional

from mosque_ledger.models.report import (
    CategoryBreakdown,
    CategoryTotal,
    LedgerSummary,
    MonthlyCashflow,
    PeriodReport,
)
from mosque_ledger.models.transaction import Transaction, TransactionType
from mosque_ledger.reports.formatting import (
    format_date,
    format_month_label,
    parse_month_key,
)


MONTHLY_REPORT_TITLE = "Laporan_Bulanan"
PERIOD_REPORT_TITLE = "Laporan_Periode"


def summarize(transactions: list[Transaction]) -> LedgerSummary:
    income = Decimal(0)
    expense = Decimal(0)
    for t in transactions:
        if t.type == TransactionType.INCOME:
            income += t.amount
        elif t.type == TransactionType.EXPENSE:
            expense += t.amount
    return LedgerSummary(total_income=income, total_expense=expense)


def category_totals(
    transactions: list[Transaction],
    transaction_type: TransactionType,
) -> list[CategoryTotal]:
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for t in transactions:
        if t.type == transaction_type:
            totals[t.category] += t.amount

    grand_total = sum(totals.values(), Decimal(0))
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [
        CategoryTotal(
            category=category,
            amount=amount,
            percentage=float(amount / grand_total * 100) if grand_total > 0 else 0.0,
        )
        for category, amount in ranked
    ]


def category_breakdown(transactions: list[Transaction]) -> CategoryBreakdown:
    return CategoryBreakdown(
        income=category_totals(transactions, TransactionType.INCOME),
        expense=category_totals(transactions, TransactionType.EXPENSE),
    )


def filter_month(transactions: list[Transaction], key: str) -> list[Transaction]:
    year, month = parse_month_key(key)
    return [t for t in transactions if t.date.year == year and t.date.month == month]


def filter_period(
    transactions: list[Transaction],
    start: Optional[date],
    end: Optional[date],
) -> list[Transaction]:
    """Entries with start <= date <= end; an open bound matches everything."""
    return [
        t for t in transactions
        if (start is None or t.date >= start) and (end is None or t.date <= end)
    ]


def _build_report(
    title: str,
    subtitle: str,
    transactions: list[Transaction],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> PeriodReport:
    return PeriodReport(
        title=title,
        subtitle=subtitle,
        start=start,
        end=end,
        transactions=transactions,
        summary=summarize(transactions),
        breakdown=category_breakdown(transactions),
    )


def monthly_report(transactions: list[Transaction], key: str) -> PeriodReport:
    """Report for one calendar month given as YYYY-MM."""
    return _build_report(
        MONTHLY_REPORT_TITLE,
        format_month_label(key),
        filter_month(transactions, key),
    )


def period_report(
    transactions: list[Transaction],
    start: date,
    end: date,
) -> PeriodReport:
    """Report for an inclusive custom date range."""
    if end < start:
        raise ValueError("Tanggal akhir tidak boleh sebelum tanggal awal")
    return _build_report(
        PERIOD_REPORT_TITLE,
        f"{format_date(start)} - {format_date(end)}",
        filter_period(transactions, start, end),
        start=start,
        end=end,
    )


def full_period_text(transactions: list[Transaction]) -> str:
    """'01 Juli 2024 s/d 18 Juli 2024' spanning the whole ledger."""
    if not transactions:
        return ""
    dates = sorted(t.date for t in transactions)
    return f"{format_date(dates[0])} s/d {format_date(dates[-1])}"


def monthly_cashflow(transactions: list[Transaction]) -> list[MonthlyCashflow]:
    """Income and expense per month, transfers excluded, oldest month first."""
    months: dict[str, MonthlyCashflow] = {}
    for t in transactions:
        if t.type == TransactionType.TRANSFER:
            continue
        key = t.month_key
        if key not in months:
            months[key] = MonthlyCashflow(
                month=key,
                label=format_month_label(key, short=True),
            )
        entry = months[key]
        if t.type == TransactionType.INCOME:
            entry.income += t.amount
        else:
            entry.expense += t.amount
    return [months[key] for key in sorted(months)]


def category_monthly(
    transactions: list[Transaction],
    transaction_type: TransactionType,
) -> tuple[list[dict], list[str]]:
    """
    Per-month per-category totals for one type.

    Returns (rows, categories): each row holds month, label and one key per
    category seen in that month; categories are in first-seen order.
    """
    rows: dict[str, dict] = {}
    categories: list[str] = []
    for t in transactions:
        if t.type != transaction_type:
            continue
        if t.category not in categories:
            categories.append(t.category)
        key = t.month_key
        row = rows.setdefault(
            key, {"month": key, "label": format_month_label(key, short=True)}
        )
        row[t.category] = row.get(t.category, Decimal(0)) + t.amount
    return [rows[key] for key in sorted(rows)], categories


def running_balance(transactions: list[Transaction]) -> list[tuple[Transaction, Decimal]]:
    """Entries sorted by date with the cash balance after each one."""
    balance = Decimal(0)
    result = []
    for t in sorted(transactions, key=lambda t: t.date):
        balance += t.signed_amount
        result.append((t, balance))
    return result


def recent(transactions: list[Transaction], limit: int = 10) -> list[Transaction]:
    """First entries in ledger order (newest entries are prepended)."""
    return transactions[:limit]


def recent_public(transactions: list[Transaction], limit: int = 30) -> list[Transaction]:
    return recent(transactions, limit)
