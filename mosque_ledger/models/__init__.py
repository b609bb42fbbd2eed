"""
Data Models Package

All Pydantic models used in the Mosque Ledger.
Every entry flowing through the system must conform to these schemas.
"""

from mosque_ledger.models.transaction import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    TRANSFER_CATEGORIES,
    CategoryState,
    DuplicateCategoryError,
    Transaction,
    TransactionDraft,
    TransactionType,
    initial_transactions,
    parse_transactions,
    transactions_to_wire,
)
from mosque_ledger.models.report import (
    CategoryBreakdown,
    CategoryTotal,
    LedgerSummary,
    MonthlyCashflow,
    PeriodReport,
)
from mosque_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from mosque_ledger.models.validation import ValidationIssue, ValidationResult

__all__ = [
    # Ledger models
    "EXPENSE_CATEGORIES",
    "INCOME_CATEGORIES",
    "TRANSFER_CATEGORIES",
    "CategoryState",
    "DuplicateCategoryError",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "initial_transactions",
    "parse_transactions",
    "transactions_to_wire",
    # Report models
    "CategoryBreakdown",
    "CategoryTotal",
    "LedgerSummary",
    "MonthlyCashflow",
    "PeriodReport",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
]
