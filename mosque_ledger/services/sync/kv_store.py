"""
Key-Value Cloud Sync

Admins on different devices share one ledger through a hosted key-value
store. A snapshot (the full JSON array of transactions) is kept under
{bucket_url}/{sync_id}.

DESIGN DECISION: Sync is best-effort and at-most-once.
- push never raises: office networks often block the store, and the UI
  then points the admin to the WhatsApp file share instead
- pull reports an HTTP-like status so "new group, nothing saved yet" (404)
  can be told apart from "blocked / broken" (500)
- there is no versioning: whatever was pushed last wins
"""

import re
from typing import Optional

import requests
import structlog
from pydantic import BaseModel, ValidationError

from mosque_ledger.config import KeyValueStoreSettings, get_settings
from mosque_ledger.models.transaction import (
    Transaction,
    parse_transactions,
    transactions_to_wire,
)


logger = structlog.get_logger(__name__)

CONNECTION_PROBE_KEY = "test-connection"


class SyncError(Exception):
    """Base exception for sync operations."""
    pass


class PullResult(BaseModel):
    """
    Outcome of a pull.

    status is 200 on success, 0 when no sync id was given, the HTTP status
    on an HTTP failure (404 = nothing saved yet), 500 on network/decode errors.
    """

    data: Optional[list[Transaction]] = None
    status: int

    @property
    def ok(self) -> bool:
        return self.status == 200 and self.data is not None

    @property
    def is_new_group(self) -> bool:
        return self.status == 404


def normalize_sync_id(raw: str) -> str:
    """Group names are lowercase with dashes instead of whitespace."""
    return re.sub(r"\s+", "-", (raw or "").strip().lower())


class KeyValueSyncClient:
    """
    Thin client for the hosted key-value store.
    """

    def __init__(
        self,
        settings: Optional[KeyValueStoreSettings] = None,
        session: Optional[requests.Session] = None,
    ):
        self._settings = settings or get_settings().kv_store
        self._session = session or requests.Session()

    def _url(self, key: str) -> str:
        return f"{self._settings.bucket_url}/{key}"

    async def push(self, sync_id: str, transactions: list[Transaction]) -> bool:
        """
        Store the snapshot under sync_id.

        Returns True when the store accepted it, False otherwise.
        """
        sync_id = normalize_sync_id(sync_id)
        if not sync_id:
            return False

        try:
            response = self._session.post(
                self._url(sync_id),
                json=transactions_to_wire(transactions),
                timeout=self._settings.timeout_seconds,
            )
        except requests.RequestException as e:
            logger.error("kv_push_failed", sync_id=sync_id, error=str(e))
            return False

        if not response.ok:
            logger.warning("kv_push_rejected", sync_id=sync_id, status=response.status_code)
            return False

        logger.info("kv_push_ok", sync_id=sync_id, count=len(transactions))
        return True

    async def pull(self, sync_id: str) -> PullResult:
        """Fetch the snapshot stored under sync_id."""
        sync_id = normalize_sync_id(sync_id)
        if not sync_id:
            return PullResult(data=None, status=0)

        try:
            response = self._session.get(
                self._url(sync_id),
                timeout=self._settings.timeout_seconds,
            )
        except requests.RequestException as e:
            logger.error("kv_pull_failed", sync_id=sync_id, error=str(e))
            return PullResult(data=None, status=500)

        if response.status_code == 404:
            return PullResult(data=None, status=404)
        if not response.ok:
            return PullResult(data=None, status=response.status_code)

        try:
            payload = response.json()
            if not isinstance(payload, list):
                raise ValueError("snapshot is not a list")
            data = parse_transactions(payload)
        except (ValueError, ValidationError) as e:
            logger.error("kv_pull_undecodable", sync_id=sync_id, error=str(e))
            return PullResult(data=None, status=500)

        logger.info("kv_pull_ok", sync_id=sync_id, count=len(data))
        return PullResult(data=data, status=200)

    async def test_connection(self) -> bool:
        """Simple diagnosis: can we write to the bucket at all?"""
        try:
            response = self._session.post(
                self._url(CONNECTION_PROBE_KEY),
                data="ping",
                timeout=self._settings.timeout_seconds,
            )
            return response.ok
        except requests.RequestException as e:
            logger.warning("kv_probe_failed", error=str(e))
            return False
