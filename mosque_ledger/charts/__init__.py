"""Chart builders."""

from mosque_ledger.charts.figures import (
    cashflow_figure,
    category_monthly_figure,
    category_pie_figure,
)

__all__ = ["cashflow_figure", "category_monthly_figure", "category_pie_figure"]
