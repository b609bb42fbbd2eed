"""
Google Drive Backup

Keeps exactly one backup file in the service account's Drive: it is
created on the first backup and overwritten on later ones.

Uses google-auth's AuthorizedSession against the Drive v3 REST API with a
multipart/related upload (metadata part + JSON content part).
"""

import json
import uuid
from typing import Optional

import requests
import structlog
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from mosque_ledger.config import GoogleDriveSettings, get_settings
from mosque_ledger.models.transaction import (
    Transaction,
    parse_transactions,
    transactions_to_wire,
)
from mosque_ledger.services.sync.kv_store import SyncError


DRIVE_FILES_URL = "https://www.googleapis.com/drive/v3/files"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"

logger = structlog.get_logger(__name__)


class BackupNotFoundError(SyncError):
    """No backup file exists in this Drive."""
    pass


class DriveRequestError(SyncError):
    """Drive API call failed."""
    pass


def build_multipart_body(metadata: dict, content: str, boundary: str) -> bytes:
    """Assemble a multipart/related body for a Drive upload."""
    delimiter = f"\r\n--{boundary}\r\n"
    close_delim = f"\r\n--{boundary}--"
    body = (
        delimiter
        + "Content-Type: application/json; charset=UTF-8\r\n\r\n"
        + json.dumps(metadata)
        + delimiter
        + "Content-Type: application/json\r\n\r\n"
        + content
        + close_delim
    )
    return body.encode("utf-8")


class GoogleDriveBackupClient:
    """
    Backup / restore of the whole ledger to a single Drive file.
    """

    def __init__(
        self,
        settings: Optional[GoogleDriveSettings] = None,
        session: Optional[AuthorizedSession] = None,
    ):
        self._settings = settings or get_settings().google_drive
        self._session = session

    @property
    def file_name(self) -> str:
        return self._settings.backup_file_name

    def _get_session(self) -> AuthorizedSession:
        if self._session is None:
            try:
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=self._settings.scopes_list,
                )
            except FileNotFoundError:
                raise DriveRequestError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            self._session = AuthorizedSession(credentials)
        return self._session

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self._get_session().request(method, url, **kwargs)
        except (requests.RequestException, GoogleAuthError) as e:
            logger.error("drive_transport_failed", method=method, error=str(e))
            raise DriveRequestError(f"Google Drive tidak dapat dihubungi: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def find_file_id(self) -> Optional[str]:
        """Id of the backup file, or None when there is none yet."""
        name = self._settings.backup_file_name.replace("'", "\\'")
        response = self._send(
            "GET",
            DRIVE_FILES_URL,
            params={
                "q": f"name='{name}' and trashed=false",
                "fields": "files(id, name)",
                "spaces": "drive",
            },
        )
        if not response.ok:
            raise DriveRequestError(f"Drive lookup failed with status {response.status_code}")

        files = response.json().get("files") or []
        if files:
            return files[0]["id"]
        return None

    async def backup(self, transactions: list[Transaction]) -> str:
        """
        Upload the ledger; PATCH the existing file or POST a new one.

        Returns the Drive file id.
        """
        file_id = await self.find_file_id()
        boundary = f"-------{uuid.uuid4().hex}"
        metadata = {"name": self._settings.backup_file_name, "mimeType": "application/json"}
        content = json.dumps(transactions_to_wire(transactions), indent=2, ensure_ascii=False)

        url = f"{DRIVE_UPLOAD_URL}/{file_id}" if file_id else DRIVE_UPLOAD_URL
        method = "PATCH" if file_id else "POST"

        response = self._send(
            method,
            url,
            params={"uploadType": "multipart"},
            headers={"Content-Type": f'multipart/related; boundary="{boundary}"'},
            data=build_multipart_body(metadata, content, boundary),
        )
        if not response.ok:
            logger.error("drive_backup_failed", status=response.status_code)
            raise DriveRequestError(f"Backup failed with status {response.status_code}")

        saved_id = response.json().get("id", file_id)
        logger.info("drive_backup_ok", file_id=saved_id, count=len(transactions))
        return saved_id

    async def restore(self) -> list[Transaction]:
        """
        Download and parse the backup.

        Raises:
            BackupNotFoundError: when this Drive holds no backup file
            DriveRequestError: unreachable Drive or an unreadable backup
        """
        file_id = await self.find_file_id()
        if not file_id:
            raise BackupNotFoundError(
                "File backup tidak ditemukan di Google Drive ini."
            )

        response = self._send(
            "GET",
            f"{DRIVE_FILES_URL}/{file_id}",
            params={"alt": "media"},
        )
        if not response.ok:
            raise DriveRequestError(f"Download failed with status {response.status_code}")

        try:
            payload = json.loads(response.text)
        except json.JSONDecodeError as e:
            raise DriveRequestError(f"Backup file is not valid JSON: {e}")
        if not isinstance(payload, list):
            raise DriveRequestError("Backup file does not hold a transaction list")

        try:
            transactions = parse_transactions(payload)
        except ValidationError as e:
            raise DriveRequestError(f"Backup file holds invalid transactions: {e}")
        logger.info("drive_restore_ok", file_id=file_id, count=len(transactions))
        return transactions
