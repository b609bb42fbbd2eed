"""Configuration package."""

from mosque_ledger.config.settings import (
    AppSettings,
    GeminiSettings,
    GoogleDriveSettings,
    GoogleSheetsSettings,
    KeyValueStoreSettings,
    Settings,
    SyncSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GeminiSettings",
    "GoogleDriveSettings",
    "GoogleSheetsSettings",
    "KeyValueStoreSettings",
    "Settings",
    "SyncSettings",
    "get_settings",
    "validate_all_settings",
]
