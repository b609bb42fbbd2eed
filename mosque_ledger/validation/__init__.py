"""Validation package."""

from mosque_ledger.validation.validator import TransactionValidator, ValidationFailedError

__all__ = ["TransactionValidator", "ValidationFailedError"]
