"""
Storage Services Package

Provides abstract interfaces and concrete implementations for ledger storage.
Local JSON files are the default backend; Google Sheets is optional.
"""

from mosque_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from mosque_ledger.services.storage.local_json import (
    LocalJsonAuditStorage,
    LocalJsonLedgerStorage,
    LocalPreferences,
)
from mosque_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Local implementation
    "LocalJsonAuditStorage",
    "LocalJsonLedgerStorage",
    "LocalPreferences",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
