"""AI Agents package."""

from mosque_ledger.agents.summary_agent import FinancialSummaryAgent, build_prompt

__all__ = [
    "FinancialSummaryAgent",
    "build_prompt",
]
