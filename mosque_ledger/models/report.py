"""
Report Models

Aggregates computed from the ledger for dashboards, reports and exports.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from mosque_ledger.models.transaction import Transaction


class LedgerSummary(BaseModel):
    """Income, expense and cash balance. Transfers never contribute."""

    total_income: Decimal = Decimal(0)
    total_expense: Decimal = Decimal(0)

    @property
    def balance(self) -> Decimal:
        return self.total_income - self.total_expense


class CategoryTotal(BaseModel):
    category: str
    amount: Decimal
    percentage: float = Field(
        ...,
        ge=0.0,
        le=100.0,
        description="Share of the type total (0 when the total is 0)"
    )


class CategoryBreakdown(BaseModel):
    """Per-category totals, each list sorted by amount descending."""

    income: list[CategoryTotal] = Field(default_factory=list)
    expense: list[CategoryTotal] = Field(default_factory=list)


class MonthlyCashflow(BaseModel):
    month: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    label: str
    income: Decimal = Decimal(0)
    expense: Decimal = Decimal(0)


class PeriodReport(BaseModel):
    """
    A filtered slice of the ledger with its totals.

    Used for the monthly report, the custom period report and exports.
    """

    title: str
    subtitle: str
    start: Optional[date] = None
    end: Optional[date] = None
    transactions: list[Transaction] = Field(default_factory=list)
    summary: LedgerSummary = Field(default_factory=LedgerSummary)
    breakdown: CategoryBreakdown = Field(default_factory=CategoryBreakdown)

    @property
    def is_empty(self) -> bool:
        return not self.transactions

    @property
    def file_stem(self) -> str:
        """Base name for exported files, e.g. Laporan_Bulanan_Juli_2024."""
        return f"{self.title}_{self.subtitle.replace(' ', '_')}"
