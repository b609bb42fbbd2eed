"""Sync services package: key-value store, Google Drive, share links."""

from mosque_ledger.services.sync.kv_store import (
    KeyValueSyncClient,
    PullResult,
    SyncError,
    normalize_sync_id,
)
from mosque_ledger.services.sync.google_drive import (
    BackupNotFoundError,
    DriveRequestError,
    GoogleDriveBackupClient,
)
from mosque_ledger.services.sync.poller import SyncPoller
from mosque_ledger.services.sync import share

__all__ = [
    "BackupNotFoundError",
    "DriveRequestError",
    "GoogleDriveBackupClient",
    "KeyValueSyncClient",
    "PullResult",
    "SyncError",
    "SyncPoller",
    "normalize_sync_id",
    "share",
]
