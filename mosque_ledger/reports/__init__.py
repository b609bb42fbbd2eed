"""Reporting package."""

from mosque_ledger.reports.aggregator import (
    category_breakdown,
    category_monthly,
    category_totals,
    filter_month,
    filter_period,
    full_period_text,
    monthly_cashflow,
    monthly_report,
    period_report,
    recent,
    recent_public,
    running_balance,
    summarize,
)
from mosque_ledger.reports.formatting import (
    format_currency,
    format_date,
    format_month_label,
    format_number,
    type_label,
)

__all__ = [
    "category_breakdown",
    "category_monthly",
    "category_totals",
    "filter_month",
    "filter_period",
    "format_currency",
    "format_date",
    "format_month_label",
    "format_number",
    "full_period_text",
    "monthly_cashflow",
    "monthly_report",
    "period_report",
    "recent",
    "recent_public",
    "running_balance",
    "summarize",
    "type_label",
]
