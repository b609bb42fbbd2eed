"""
Entry Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - FIELD VALIDATION:
- Description present
- Amount strictly positive
- This catches incomplete forms

STAGE 2 - SEMANTIC VALIDATION:
- Absurd amount detection
- Future date detection
- Category known for the entry type
- Only runs when stage 1 passes

IMPORTANT: Validation NEVER silently fixes issues.
Errors block the save; warnings are reported for the administrator to confirm.
"""

from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from mosque_ledger.config import get_settings
from mosque_ledger.config.settings import AppSettings
from mosque_ledger.models.transaction import (
    CategoryState,
    TransactionDraft,
    TransactionType,
)
from mosque_ledger.models.validation import ValidationIssue, ValidationResult
from mosque_ledger.reports.formatting import format_currency, format_date


class ValidationFailedError(Exception):
    """Raised when an entry with blocking issues is about to be saved."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(issue.message for issue in result.errors)
        super().__init__(messages or "Validation failed")


class TransactionValidator:
    """
    Checks entry form values before they become a TransactionDraft.
    """

    def __init__(self, app_settings: Optional[AppSettings] = None):
        self._settings = app_settings or get_settings().app

    def _validate_fields(
        self,
        description: str,
        amount: Optional[Decimal],
    ) -> list[ValidationIssue]:
        issues = []

        if not (description or "").strip():
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Deskripsi wajib diisi",
                severity="error",
            ))

        if amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Jumlah harus berupa angka",
                severity="error",
            ))
        elif amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Jumlah harus lebih dari nol",
                severity="error",
                suggested_fix="Masukkan nominal dalam Rupiah tanpa tanda minus",
            ))

        return issues

    def _validate_semantic(
        self,
        amount: Decimal,
        entry_date: date,
        transaction_type: TransactionType,
        category: str,
        categories: Optional[CategoryState],
        today: date,
    ) -> list[ValidationIssue]:
        issues = []

        max_amount = Decimal(str(self._settings.max_transaction_amount_idr))
        if amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=(
                    f"Jumlah ({format_currency(amount)}) melebihi batas "
                    f"{format_currency(max_amount)}"
                ),
                severity="error",
                suggested_fix="Periksa kembali jumlah digit nominal",
            ))

        max_future = today + timedelta(days=self._settings.future_date_tolerance_days)
        if entry_date > max_future:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Tanggal ({format_date(entry_date)}) berada di masa depan",
                severity="warning",
                suggested_fix="Pastikan tanggal sudah benar",
            ))

        if categories is not None and category not in categories.for_type(transaction_type):
            issues.append(ValidationIssue(
                field="category",
                issue_type="unknown_category",
                message=f"Kategori '{category}' tidak ada di daftar kategori",
                severity="warning",
                suggested_fix="Tambahkan kategori di menu Pengaturan",
            ))

        return issues

    def validate(
        self,
        description: str,
        amount: Union[Decimal, int, float, str, None],
        entry_date: date,
        transaction_type: TransactionType,
        category: str,
        categories: Optional[CategoryState] = None,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Run both stages on raw form values.

        Args:
            categories: When given, unknown categories produce a warning.
            today: Reference date for the future-date check.
        """
        parsed = _to_decimal(amount)
        issues = self._validate_fields(description, parsed)

        if not issues:
            issues.extend(self._validate_semantic(
                parsed,
                entry_date,
                TransactionType(transaction_type),
                category,
                categories,
                today or date.today(),
            ))

        return ValidationResult(issues=issues)

    def build_draft(
        self,
        description: str,
        amount: Union[Decimal, int, float, str, None],
        entry_date: date,
        transaction_type: TransactionType,
        category: str,
        categories: Optional[CategoryState] = None,
    ) -> tuple[TransactionDraft, ValidationResult]:
        """
        Validate and build the draft.

        Raises:
            ValidationFailedError: when any error-level issue is found
        """
        result = self.validate(
            description, amount, entry_date, transaction_type, category, categories
        )
        if not result.is_valid:
            raise ValidationFailedError(result)

        draft = TransactionDraft(
            date=entry_date,
            description=description,
            amount=_to_decimal(amount),
            type=TransactionType(transaction_type),
            category=category,
        )
        return draft, result

    @staticmethod
    def get_user_friendly_summary(result: ValidationResult) -> str:
        if result.is_valid and not result.warnings:
            return "✅ Data valid."

        lines = []
        if result.errors:
            lines.append("❌ Data belum bisa disimpan:")
            lines.extend(f"  • {issue.message}" for issue in result.errors)
        if result.warnings:
            lines.append("⚠️ Mohon diperiksa:")
            lines.extend(f"  • {issue.message}" for issue in result.warnings)
        return "\n".join(lines)


def _to_decimal(value) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        parsed = Decimal(str(value))
    except InvalidOperation:
        return None
    # NaN and Infinity are not amounts
    return parsed if parsed.is_finite() else None
