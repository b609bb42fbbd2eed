"""
Plotly figure builders for the dashboards.

Figures are built from aggregator output only; they never read storage.
"""

from typing import Optional

import plotly.graph_objects as go

from mosque_ledger.models.transaction import Transaction, TransactionType
from mosque_ledger.reports.aggregator import category_monthly, category_totals, monthly_cashflow
from mosque_ledger.reports.formatting import type_label


INCOME_COLOR = "#10B981"
EXPENSE_COLOR = "#EF4444"
PALETTE = [
    "#047857", "#0EA5E9", "#F59E0B", "#8B5CF6", "#EC4899",
    "#14B8A6", "#F97316", "#6366F1", "#84CC16", "#64748B",
]

_LAYOUT = dict(
    margin=dict(l=10, r=10, t=50, b=10),
    legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
    separators=",.",
)


def cashflow_figure(transactions: list[Transaction], title: str = "Arus Kas Bulanan") -> go.Figure:
    """Grouped bars of monthly income against expense."""
    months = monthly_cashflow(transactions)
    labels = [m.label for m in months]

    fig = go.Figure()
    fig.add_trace(go.Bar(
        name="Pemasukan",
        x=labels,
        y=[float(m.income) for m in months],
        marker_color=INCOME_COLOR,
    ))
    fig.add_trace(go.Bar(
        name="Pengeluaran",
        x=labels,
        y=[float(m.expense) for m in months],
        marker_color=EXPENSE_COLOR,
    ))
    fig.update_layout(title=title, barmode="group", yaxis_tickprefix="Rp ", **_LAYOUT)
    return fig


def category_pie_figure(
    transactions: list[Transaction],
    transaction_type: TransactionType,
    title: Optional[str] = None,
) -> go.Figure:
    """Share of each category within one transaction type."""
    totals = category_totals(transactions, TransactionType(transaction_type))
    fig = go.Figure(go.Pie(
        labels=[t.category for t in totals],
        values=[float(t.amount) for t in totals],
        hole=0.45,
        marker=dict(colors=PALETTE[:len(totals)] or None),
        sort=False,
    ))
    fig.update_layout(
        title=title or f"{type_label(transaction_type)} per Kategori",
        **_LAYOUT,
    )
    return fig


def category_monthly_figure(
    transactions: list[Transaction],
    transaction_type: TransactionType,
    title: Optional[str] = None,
) -> go.Figure:
    """Stacked bars: one bar per month, one segment per category."""
    rows, categories = category_monthly(transactions, TransactionType(transaction_type))
    labels = [row["label"] for row in rows]

    fig = go.Figure()
    for idx, category in enumerate(categories):
        fig.add_trace(go.Bar(
            name=category,
            x=labels,
            y=[float(row.get(category, 0)) for row in rows],
            marker_color=PALETTE[idx % len(PALETTE)],
        ))
    fig.update_layout(
        title=title or f"{type_label(transaction_type)} per Kategori per Bulan",
        barmode="stack",
        yaxis_tickprefix="Rp ",
        **_LAYOUT,
    )
    return fig
