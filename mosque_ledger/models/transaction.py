"""
Core Data Models for the Mosque Ledger

These models define the strict schemas for every ledger entry and for the
category lists the administrators maintain.

DESIGN DECISION: Amounts are stored as non-negative Decimals.
The direction of money is carried by the transaction type, never by a sign.
Transfers move money between internal funds and never count as income
or expense.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """The three kinds of ledger entries."""
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionDraft(BaseModel):
    """
    A ledger entry as produced by the entry form, before it has an id.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: date
    description: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="What the money was for / where it came from"
    )
    amount: Annotated[
        Decimal,
        Field(ge=0, description="Amount in IDR, always non-negative")
    ]
    type: TransactionType
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )

    @field_serializer("amount", when_used="json")
    def serialize_amount(self, amount: Decimal) -> Union[int, float]:
        """Amounts travel as plain JSON numbers."""
        if amount == amount.to_integral_value():
            return int(amount)
        return float(amount)


class Transaction(TransactionDraft):
    """
    A single ledger entry.

    The JSON wire form uses exactly the keys
    id, date, description, amount, type, category.
    """

    id: str = Field(
        ...,
        min_length=1,
        description="Unique entry id (epoch milliseconds for manual entries)"
    )

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        # Older snapshots may carry numeric ids
        if isinstance(v, int):
            return str(v)
        return v

    @classmethod
    def from_draft(cls, draft: TransactionDraft, transaction_id: str) -> "Transaction":
        return cls(id=transaction_id, **draft.model_dump())

    def to_wire(self) -> dict:
        return self.model_dump(mode="json")

    @property
    def month_key(self) -> str:
        """YYYY-MM key used for monthly grouping."""
        return self.date.strftime("%Y-%m")

    @property
    def signed_amount(self) -> Decimal:
        """Effect of this entry on the cash balance."""
        if self.type == TransactionType.INCOME:
            return self.amount
        if self.type == TransactionType.EXPENSE:
            return -self.amount
        return Decimal(0)


# =============================================================================
# CATEGORIES
# =============================================================================

INCOME_CATEGORIES = ["Donasi", "Infaq", "Sumbangan Acara", "Zakat", "Lain-lain"]
EXPENSE_CATEGORIES = [
    "Operasional",
    "Listrik & Air",
    "Gaji Staff",
    "Perbaikan",
    "Acara Keagamaan",
    "Lain-lain",
]
TRANSFER_CATEGORIES = [
    "Kas Umum ke Dana Pembangunan",
    "Kas Umum ke Dana Zakat",
    "Dana Acara ke Kas Umum",
]

# Categories given to rows imported from a cash-book workbook
IMPORTED_INCOME_CATEGORY = "Lain-lain"
IMPORTED_EXPENSE_CATEGORY = "Operasional"


class DuplicateCategoryError(ValueError):
    """Category name already exists for this transaction type."""
    pass


class CategoryState(BaseModel):
    """
    Per-type category lists maintained by the administrators.

    Lists are ordered; edits address entries by position.
    Removing a category does not touch transactions that still use it.
    """

    income: list[str] = Field(default_factory=lambda: list(INCOME_CATEGORIES))
    expense: list[str] = Field(default_factory=lambda: list(EXPENSE_CATEGORIES))
    transfer: list[str] = Field(default_factory=lambda: list(TRANSFER_CATEGORIES))

    def for_type(self, transaction_type: TransactionType) -> list[str]:
        return getattr(self, TransactionType(transaction_type).value)

    def add(self, transaction_type: TransactionType, name: str) -> "CategoryState":
        name = (name or "").strip()
        if not name:
            raise ValueError("Category name cannot be blank")
        current = self.for_type(transaction_type)
        if name in current:
            raise DuplicateCategoryError(f"Kategori sudah ada: {name}")
        return self._replace(transaction_type, current + [name])

    def rename(
        self,
        transaction_type: TransactionType,
        index: int,
        name: str,
    ) -> "CategoryState":
        name = (name or "").strip()
        if not name:
            raise ValueError("Category name cannot be blank")
        updated = list(self.for_type(transaction_type))
        updated[index] = name
        return self._replace(transaction_type, updated)

    def remove(self, transaction_type: TransactionType, index: int) -> "CategoryState":
        current = self.for_type(transaction_type)
        if not 0 <= index < len(current):
            raise IndexError(f"No category at position {index}")
        updated = [c for i, c in enumerate(current) if i != index]
        return self._replace(transaction_type, updated)

    def _replace(self, transaction_type: TransactionType, values: list[str]) -> "CategoryState":
        return self.model_copy(update={TransactionType(transaction_type).value: values})


# =============================================================================
# SEED DATA
# =============================================================================

def _seed(id_: str, day: str, description: str, amount: int, type_: str, category: str) -> Transaction:
    return Transaction(
        id=id_,
        date=date.fromisoformat(day),
        description=description,
        amount=Decimal(amount),
        type=TransactionType(type_),
        category=category,
    )


def initial_transactions() -> list[Transaction]:
    """Sample ledger shown until real data has been saved."""
    return [
        _seed("1", "2024-07-01", "Donasi Hamba Allah", 500000, "income", "Donasi"),
        _seed("2", "2024-07-01", "Pembelian Karpet Baru", 1200000, "expense", "Perbaikan"),
        _seed("3", "2024-07-03", "Infaq Kotak Amal Jumat", 750000, "income", "Infaq"),
        _seed("4", "2024-07-05", "Biaya Listrik & Air", 450000, "expense", "Listrik & Air"),
        _seed("5", "2024-07-07", "Sumbangan Idul Adha", 2500000, "income", "Sumbangan Acara"),
        _seed("6", "2024-07-10", "Perbaikan Atap Bocor", 800000, "expense", "Perbaikan"),
        _seed("7", "2024-07-12", "Infaq Pengajian Rutin", 300000, "income", "Infaq"),
        _seed("8", "2024-07-15", "Gaji Marbot & Imam", 2000000, "expense", "Gaji Staff"),
        _seed(
            "9", "2024-07-18", "Pindah buku ke dana renovasi", 1000000,
            "transfer", "Kas Umum ke Dana Pembangunan",
        ),
    ]


def parse_transactions(payload: Optional[list]) -> list[Transaction]:
    """Validate a decoded JSON array into transactions."""
    if payload is None:
        return []
    return [Transaction.model_validate(item) for item in payload]


def transactions_to_wire(transactions: list[Transaction]) -> list[dict]:
    return [t.to_wire() for t in transactions]
