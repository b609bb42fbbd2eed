"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the ledger in local JSON files on a single device
2. Swap to Google Sheets when several admins share one spreadsheet
3. Use temporary directories in tests
4. Keep ledger logic decoupled from storage implementation

The ledger is always read and written as a whole snapshot, the same way
the sync shims move it between devices.
"""

from abc import ABC, abstractmethod
from typing import Optional

from mosque_ledger.models.audit import AuditEvent
from mosque_ledger.models.transaction import CategoryState, Transaction


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger persistence.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def load_transactions(self) -> Optional[list[Transaction]]:
        """
        Load the saved ledger.

        Returns:
            The transactions in ledger order, or None if nothing was saved yet

        Raises:
            StorageError: If the saved data cannot be read
        """
        pass

    @abstractmethod
    async def save_transactions(self, transactions: list[Transaction]) -> bool:
        """
        Replace the saved ledger with this snapshot.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def load_categories(self) -> Optional[CategoryState]:
        """Load saved category lists, or None if nothing was saved yet."""
        pass

    @abstractmethod
    async def save_categories(self, categories: CategoryState) -> bool:
        """Replace the saved category lists."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Returns True if logged successfully."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """All events for one entity in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
