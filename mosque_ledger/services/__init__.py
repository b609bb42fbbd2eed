"""Services package."""

from mosque_ledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    LedgerStorageInterface,
    LocalJsonAuditStorage,
    LocalJsonLedgerStorage,
    LocalPreferences,
    NotFoundError,
    StorageError,
)
from mosque_ledger.services.sync import (
    BackupNotFoundError,
    DriveRequestError,
    GoogleDriveBackupClient,
    KeyValueSyncClient,
    PullResult,
    SyncError,
    SyncPoller,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "LedgerStorageInterface",
    "LocalJsonAuditStorage",
    "LocalJsonLedgerStorage",
    "LocalPreferences",
    "NotFoundError",
    "StorageError",
    # Sync services
    "BackupNotFoundError",
    "DriveRequestError",
    "GoogleDriveBackupClient",
    "KeyValueSyncClient",
    "PullResult",
    "SyncError",
    "SyncPoller",
]
