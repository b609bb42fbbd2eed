"""
Tests for environment-driven configuration.
"""

import pytest
from pydantic import ValidationError

from mosque_ledger.config import get_settings
from mosque_ledger.config.settings import (
    AppSettings,
    GoogleDriveSettings,
    KeyValueStoreSettings,
    SyncSettings,
    validate_all_settings,
)


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestKeyValueStoreSettings:

    def test_bucket_url_strips_trailing_slash(self):
        settings = KeyValueStoreSettings(base_url="https://kv.example/", bucket_id="abc")
        assert settings.bucket_url == "https://kv.example/abc"

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("KVSTORE_BUCKET_ID", "dari-env")
        assert KeyValueStoreSettings().bucket_id == "dari-env"

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            KeyValueStoreSettings(timeout_seconds=0)


class TestAppSettings:

    def test_storage_backend_is_restricted(self):
        with pytest.raises(ValidationError):
            AppSettings(storage_backend="postgres")

    def test_report_subtitle(self):
        app = AppSettings(masjid_name="Masjid A", masjid_organization="Yayasan B")
        assert app.report_subtitle == "Masjid A - Yayasan B"

    def test_admin_credentials_from_environment(self, monkeypatch):
        monkeypatch.setenv("ADMIN_PASSWORD", "rahasia")
        assert get_settings().app.admin_password == "rahasia"


class TestSyncSettings:

    def test_poll_interval_floor(self):
        with pytest.raises(ValidationError):
            SyncSettings(poll_interval_seconds=1)


class TestGoogleDriveSettings:

    def test_missing_file_only_warns(self, tmp_path):
        with pytest.warns(UserWarning):
            settings = GoogleDriveSettings(credentials_path=str(tmp_path / "missing.json"))
        assert settings.scopes_list == ["https://www.googleapis.com/auth/drive.file"]


class TestValidateAllSettings:

    def test_reports_missing_integrations(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)

        results = validate_all_settings()
        assert results["app"] is True
        assert results["kv_store"] is True
        assert results["gemini"] is False
        assert results["gemini_error"] == "GEMINI_API_KEY not set"
