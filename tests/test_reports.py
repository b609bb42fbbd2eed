"""
Tests for report aggregation and Indonesian formatting.
"""

import pytest
from datetime import date
from decimal import Decimal

from mosque_ledger.models import Transaction, TransactionType, initial_transactions
from mosque_ledger.reports import (
    category_breakdown,
    category_monthly,
    filter_period,
    format_currency,
    format_date,
    format_month_label,
    format_number,
    full_period_text,
    monthly_cashflow,
    monthly_report,
    period_report,
    recent,
    recent_public,
    running_balance,
    summarize,
    type_label,
)


def _entry(id_, day, amount, type_, category="Lain-lain", description="Test"):
    return Transaction(
        id=id_,
        date=date.fromisoformat(day),
        description=description,
        amount=Decimal(amount),
        type=TransactionType(type_),
        category=category,
    )


class TestSummary:
    """Totals always leave transfers out."""

    def test_seed_totals(self):
        summary = summarize(initial_transactions())
        assert summary.total_income == Decimal(4050000)
        assert summary.total_expense == Decimal(4450000)
        assert summary.balance == Decimal(-400000)

    def test_transfers_ignored(self):
        summary = summarize([_entry("1", "2024-07-01", 1000000, "transfer")])
        assert summary.total_income == 0
        assert summary.total_expense == 0
        assert summary.balance == 0

    def test_empty(self):
        assert summarize([]).balance == 0


class TestCategoryBreakdown:

    def test_sorted_descending_with_percentages(self):
        breakdown = category_breakdown(initial_transactions())
        income = breakdown.income
        assert [c.category for c in income] == ["Sumbangan Acara", "Infaq", "Donasi"]
        assert income[1].amount == Decimal(1050000)
        assert sum(c.percentage for c in income) == pytest.approx(100.0)

    def test_transfer_not_in_breakdown(self):
        breakdown = category_breakdown(initial_transactions())
        names = [c.category for c in breakdown.income + breakdown.expense]
        assert "Kas Umum ke Dana Pembangunan" not in names

    def test_empty_type(self):
        breakdown = category_breakdown([_entry("1", "2024-07-01", 100, "income", "Infaq")])
        assert breakdown.expense == []
        assert breakdown.income[0].percentage == 100.0


class TestPeriodReports:

    def test_monthly_report(self):
        ledger = initial_transactions() + [_entry("x", "2024-08-02", 100000, "income", "Infaq")]
        report = monthly_report(ledger, "2024-07")
        assert len(report.transactions) == 9
        assert report.subtitle == "Juli 2024"
        assert report.file_stem == "Laporan_Bulanan_Juli_2024"

    def test_monthly_report_empty_month(self):
        report = monthly_report(initial_transactions(), "2023-01")
        assert report.is_empty
        assert report.summary.balance == 0

    def test_period_is_inclusive(self):
        report = period_report(initial_transactions(), date(2024, 7, 1), date(2024, 7, 3))
        assert {t.id for t in report.transactions} == {"1", "2", "3"}
        assert report.start == date(2024, 7, 1)

    def test_period_end_before_start(self):
        with pytest.raises(ValueError):
            period_report(initial_transactions(), date(2024, 7, 3), date(2024, 7, 1))

    def test_open_bounds(self):
        assert len(filter_period(initial_transactions(), None, None)) == 9

    def test_full_period_text(self):
        assert full_period_text(initial_transactions()) == "01 Juli 2024 s/d 18 Juli 2024"
        assert full_period_text([]) == ""


class TestMonthlySeries:

    def test_cashflow_sorted_and_excludes_transfers(self):
        ledger = [
            _entry("1", "2024-08-01", 300, "income"),
            _entry("2", "2024-07-01", 100, "expense"),
            _entry("3", "2024-07-02", 999, "transfer"),
        ]
        months = monthly_cashflow(ledger)
        assert [m.month for m in months] == ["2024-07", "2024-08"]
        assert months[0].expense == 100
        assert months[0].income == 0
        assert months[0].label == "Jul 2024"

    def test_category_monthly(self):
        ledger = [
            _entry("1", "2024-07-01", 100, "income", "Infaq"),
            _entry("2", "2024-07-10", 50, "income", "Infaq"),
            _entry("3", "2024-08-01", 70, "income", "Zakat"),
            _entry("4", "2024-08-01", 70, "expense", "Operasional"),
        ]
        rows, categories = category_monthly(ledger, TransactionType.INCOME)
        assert categories == ["Infaq", "Zakat"]
        assert rows[0]["Infaq"] == 150
        assert "Zakat" not in rows[0]
        assert rows[1]["label"] == "Agu 2024"

    def test_running_balance(self):
        ledger = [
            _entry("2", "2024-07-02", 40, "expense"),
            _entry("1", "2024-07-01", 100, "income"),
            _entry("3", "2024-07-03", 500, "transfer"),
        ]
        balances = [(t.id, b) for t, b in running_balance(ledger)]
        assert balances == [("1", 100), ("2", 60), ("3", 60)]

    def test_recent_keeps_ledger_order(self):
        ledger = initial_transactions()
        assert [t.id for t in recent(ledger, 3)] == ["1", "2", "3"]
        assert len(recent_public(ledger)) == 9


class TestFormatting:

    @pytest.mark.parametrize("amount,expected", [
        (1500000, "Rp 1.500.000"),
        (0, "Rp 0"),
        (-1500, "-Rp 1.500"),
        (Decimal("999.6"), "Rp 1.000"),
    ])
    def test_currency(self, amount, expected):
        assert format_currency(amount) == expected

    def test_number(self):
        assert format_number(Decimal(2500000)) == "2.500.000"

    def test_date(self):
        assert format_date(date(2024, 7, 1)) == "01 Juli 2024"

    def test_month_labels(self):
        assert format_month_label("2024-12") == "Desember 2024"
        assert format_month_label("2024-08", short=True) == "Agu 2024"

    def test_invalid_month_key(self):
        with pytest.raises(ValueError):
            format_month_label("2024-13")

    def test_type_labels(self):
        assert type_label(TransactionType.INCOME) == "Pemasukan"
        assert type_label("transfer") == "Transfer"
