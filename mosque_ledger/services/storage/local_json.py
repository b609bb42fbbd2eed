"""
Local JSON Storage Implementation

The default backend: the ledger lives on the admin's own device, in two
JSON documents named after the keys the browser version kept in local
storage (mosque-transactions, mosque-categories).

Writes go to a temporary file first and are moved into place, so a crash
mid-write leaves the previous snapshot intact.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from mosque_ledger.models.audit import AuditEvent
from mosque_ledger.models.transaction import (
    CategoryState,
    Transaction,
    parse_transactions,
    transactions_to_wire,
)
from mosque_ledger.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
    StorageError,
)


TRANSACTIONS_FILE = "mosque-transactions.json"
CATEGORIES_FILE = "mosque-categories.json"
PREFERENCES_FILE = "mosque-preferences.json"
AUDIT_FILE = "audit-log.jsonl"

logger = structlog.get_logger(__name__)


def _write_atomic(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, ensure_ascii=False, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def _read_json(path: Path) -> Optional[Any]:
    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as fh:
            return json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        raise StorageError(f"Failed to read {path.name}: {e}")


class LocalJsonLedgerStorage(LedgerStorageInterface):
    """Ledger and categories as JSON files in one data directory."""

    def __init__(self, data_dir: Path):
        self._data_dir = Path(data_dir)

    @property
    def transactions_path(self) -> Path:
        return self._data_dir / TRANSACTIONS_FILE

    @property
    def categories_path(self) -> Path:
        return self._data_dir / CATEGORIES_FILE

    async def load_transactions(self) -> Optional[list[Transaction]]:
        payload = _read_json(self.transactions_path)
        if payload is None:
            return None
        if not isinstance(payload, list):
            raise StorageError(f"{TRANSACTIONS_FILE} does not hold a list")
        try:
            return parse_transactions(payload)
        except ValidationError as e:
            raise StorageError(f"Saved ledger is malformed: {e}")

    async def save_transactions(self, transactions: list[Transaction]) -> bool:
        try:
            _write_atomic(self.transactions_path, transactions_to_wire(transactions))
            return True
        except OSError as e:
            raise StorageError(f"Failed to save ledger: {e}")

    async def load_categories(self) -> Optional[CategoryState]:
        payload = _read_json(self.categories_path)
        if payload is None:
            return None
        try:
            return CategoryState.model_validate(payload)
        except ValidationError as e:
            raise StorageError(f"Saved categories are malformed: {e}")

    async def save_categories(self, categories: CategoryState) -> bool:
        try:
            _write_atomic(self.categories_path, categories.model_dump())
            return True
        except OSError as e:
            raise StorageError(f"Failed to save categories: {e}")


class LocalPreferences:
    """
    Small per-device key/value preferences (e.g. the last sync group).
    """

    def __init__(self, data_dir: Path):
        self._path = Path(data_dir) / PREFERENCES_FILE

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        try:
            payload = _read_json(self._path) or {}
        except StorageError:
            logger.warning("preferences_unreadable", path=str(self._path))
            return default
        return payload.get(key, default)

    def set(self, key: str, value: str) -> None:
        try:
            payload = _read_json(self._path) or {}
        except StorageError:
            payload = {}
        payload[key] = value
        _write_atomic(self._path, payload)


class LocalJsonAuditStorage(AuditStorageInterface):
    """
    Append-only JSON-lines audit log.
    """

    def __init__(self, data_dir: Path):
        self._path = Path(data_dir) / AUDIT_FILE

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as fh:
                fh.write(event.model_dump_json() + "\n")
            return True
        except OSError as e:
            logger.warning("audit_append_failed", error=str(e))
            return False

    def _read_all(self) -> list[AuditEvent]:
        if not self._path.exists():
            return []
        events = []
        with self._path.open("r", encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if not line:
                    continue
                try:
                    events.append(AuditEvent.model_validate_json(line))
                except ValidationError:
                    continue  # Skip malformed lines
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._read_all()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = self._read_all()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
