"""
Configuration Management for the Mosque Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every cloud shim (key-value store, Google Drive, Google Sheets, Gemini)
has its own settings class so a missing integration only disables that
integration, never the whole app.
"""

import warnings
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class KeyValueStoreSettings(BaseSettings):
    """Hosted key-value store used for group sync."""

    model_config = SettingsConfigDict(
        env_prefix="KVSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    base_url: str = Field(
        default="https://kvdb.io",
        description="Root URL of the key-value service"
    )
    bucket_id: str = Field(
        default="6rG6YvTf2yK7m8m9p8q8w2",
        description="Bucket that namespaces this mosque's snapshots"
    )
    timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        le=120,
    )

    @property
    def bucket_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.bucket_id}"


class SyncSettings(BaseSettings):
    """Behaviour of background sync between devices."""

    model_config = SettingsConfigDict(
        env_prefix="SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    default_group: str = Field(
        default="",
        description="Group pre-filled on a fresh device"
    )
    poll_interval_seconds: float = Field(
        default=60.0,
        ge=5.0,
        description="Interval between automatic pulls"
    )
    auto_pull: bool = Field(
        default=False,
        description="Start the background poller on startup"
    )


class GoogleDriveSettings(BaseSettings):
    """Google Drive backup configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_DRIVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    backup_file_name: str = Field(
        default="adzdzurriyyah_cloud_backup.json",
        description="Name of the single backup file kept in Drive"
    )
    scopes: str = Field(
        default="https://www.googleapis.com/auth/drive.file",
        description="Comma-separated OAuth scopes"
    )

    @property
    def scopes_list(self) -> list[str]:
        return [s.strip() for s in self.scopes.split(",") if s.strip()]

    @field_validator("credentials_path")
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (it may be mounted later)."""
        if not Path(v).exists():
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before using Drive backup."
            )
        return v


class GoogleSheetsSettings(BaseSettings):
    """Optional Google Sheets storage backend."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(...)
    spreadsheet_id: str = Field(...)

    transactions_sheet_name: str = Field(default="Transaksi")
    categories_sheet_name: str = Field(default="Kategori")
    audit_sheet_name: str = Field(default="AuditLog")


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration for the donor summary."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="Gemini API key; summary is disabled without it"
    )
    model_name: str = Field(default="gemini-1.5-flash")
    max_tokens: int = Field(default=512, ge=64, le=8192)
    temperature: float = Field(default=0.4, ge=0.0, le=1.0)
    recent_limit: int = Field(
        default=20,
        ge=1,
        le=200,
        description="How many recent entries are shown to the model"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(default="development")
    debug_mode: bool = Field(default=False)

    # Identity shown on reports and dashboards
    masjid_name: str = Field(default="Masjid Adzdzurriyyah")
    masjid_organization: str = Field(default="Kemendukbangga/BKKBN")
    masjid_address: str = Field(
        default="Jl. Permata No. 1 Halim Perdanakusuma - Jakarta Timur"
    )
    public_url: str = Field(
        default="http://localhost:8501/",
        description="URL of the deployed app, used in share links"
    )

    # Storage
    storage_backend: str = Field(
        default="local",
        pattern="^(local|sheets)$",
        description="Where the ledger lives: local JSON files or Google Sheets"
    )
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory for the local ledger and audit files"
    )

    # Admin gate
    admin_username: str = Field(default="admin")
    admin_password: str = Field(default="admin")

    # Validation thresholds
    max_transaction_amount_idr: float = Field(
        default=1_000_000_000.0,
        description="Maximum reasonable single entry (sanity check)"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        description="How many days in the future an entry date may be"
    )

    # Dashboard
    recent_limit: int = Field(default=10, ge=1, le=100)
    public_recent_limit: int = Field(default=30, ge=1, le=200)

    @property
    def report_subtitle(self) -> str:
        return f"{self.masjid_name} - {self.masjid_organization}"


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    Sub-settings are loaded lazily to allow partial configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def kv_store(self) -> KeyValueStoreSettings:
        return KeyValueStoreSettings()

    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()

    @property
    def google_drive(self) -> GoogleDriveSettings:
        return GoogleDriveSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid} plus "<name>_error" entries
    for the ones that failed. Useful for the settings page.
    """
    results = {}
    settings = get_settings()

    checks = {
        "app": lambda: settings.app,
        "kv_store": lambda: settings.kv_store,
        "sync": lambda: settings.sync,
        "google_drive": lambda: settings.google_drive,
        "google_sheets": lambda: settings.google_sheets,
        "gemini": lambda: settings.gemini,
    }

    for name, load in checks.items():
        try:
            loaded = load()
            results[name] = True
            if name == "gemini" and not loaded.api_key:
                results[name] = False
                results[f"{name}_error"] = "GEMINI_API_KEY not set"
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
