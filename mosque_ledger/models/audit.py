"""
Audit Models for the Mosque Ledger

Every change to the ledger and every sync attempt is recorded.
Donor money demands accountability: the audit trail shows who changed
what, when, and which device pulled or pushed which snapshot.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger entries
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    LEDGER_RESTORED = "ledger_restored"
    VALIDATION_FAILED = "validation_failed"

    # Categories
    CATEGORIES_UPDATED = "categories_updated"

    # Sync
    SYNC_PUSHED = "sync_pushed"
    SYNC_PULLED = "sync_pulled"
    SYNC_FAILED = "sync_failed"
    DRIVE_BACKUP_COMPLETED = "drive_backup_completed"
    DRIVE_RESTORE_COMPLETED = "drive_restore_completed"
    SHARE_LINK_CREATED = "share_link_created"

    # Exports
    REPORT_EXPORTED = "report_exported"

    # Access
    ADMIN_LOGIN = "admin_login"
    ADMIN_LOGIN_FAILED = "admin_login_failed"
    ADMIN_LOGOUT = "admin_logout"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about? Transaction ids are strings, not UUIDs.
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g. 'transaction', 'ledger', 'categories')"
    )
    entity_id: Optional[str] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g. one sync round)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row for spreadsheet storage.

        Columns: [event_id, timestamp, event_type, severity, entity_type,
        entity_id, correlation_id, description, details_json, error_message,
        is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(transaction_id, ...)
        event = AuditEventBuilder.sync_pushed(group, count, correlation_id)
    """

    @staticmethod
    def transaction_added(
        transaction_id: str,
        description: str,
        amount: str,
        transaction_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaksi ditambahkan: {description[:200]}",
            details={"amount": amount, "type": transaction_type},
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(
        transaction_id: str,
        changes: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaksi diperbarui: {transaction_id}",
            details={"changes": changes},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaksi dihapus: {transaction_id}",
            is_user_action=True,
        )

    @staticmethod
    def ledger_restored(
        source: str,
        previous_count: int,
        new_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_RESTORED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Ledger replaced from {source}: {previous_count} -> {new_count} entries",
            details={
                "source": source,
                "previous_count": previous_count,
                "new_count": new_count,
            },
        )

    @staticmethod
    def validation_failed(
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def categories_updated(
        transaction_type: str,
        action: str,
        name: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORIES_UPDATED,
            entity_type="categories",
            entity_id=transaction_type,
            description=f"Kategori {transaction_type} {action}: {name}",
            details={"action": action, "name": name},
            is_user_action=True,
        )

    @staticmethod
    def sync_pushed(
        channel: str,
        target: str,
        count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.DRIVE_BACKUP_COMPLETED
            if channel == "google_drive"
            else AuditEventType.SYNC_PUSHED
        )
        return AuditEvent(
            event_type=event_type,
            entity_type="ledger",
            entity_id=target,
            correlation_id=correlation_id,
            description=f"Pushed {count} entries to {channel}",
            details={"channel": channel, "count": count},
        )

    @staticmethod
    def sync_pulled(
        channel: str,
        target: str,
        count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.DRIVE_RESTORE_COMPLETED
            if channel == "google_drive"
            else AuditEventType.SYNC_PULLED
        )
        return AuditEvent(
            event_type=event_type,
            entity_type="ledger",
            entity_id=target,
            correlation_id=correlation_id,
            description=f"Pulled {count} entries from {channel}",
            details={"channel": channel, "count": count},
        )

    @staticmethod
    def sync_failed(
        channel: str,
        target: str,
        direction: str,
        status: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            entity_id=target,
            correlation_id=correlation_id,
            description=f"Sync {direction} via {channel} failed",
            details={"channel": channel, "direction": direction, "status": status},
        )

    @staticmethod
    def share_link_created(kind: str, target: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SHARE_LINK_CREATED,
            entity_type="ledger",
            entity_id=target,
            description=f"Share link created ({kind})",
            details={"kind": kind},
            is_user_action=True,
        )

    @staticmethod
    def report_exported(fmt: str, file_name: str, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_EXPORTED,
            entity_type="report",
            entity_id=file_name,
            description=f"Report exported as {fmt}: {file_name}",
            details={"format": fmt, "count": count},
            is_user_action=True,
        )

    @staticmethod
    def admin_login(username: str, success: bool) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.ADMIN_LOGIN if success else AuditEventType.ADMIN_LOGIN_FAILED
            ),
            severity=AuditSeverity.INFO if success else AuditSeverity.WARNING,
            entity_type="session",
            entity_id=username,
            description="Admin login" if success else "Admin login rejected",
            is_user_action=True,
        )

    @staticmethod
    def admin_logout(username: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADMIN_LOGOUT,
            entity_type="session",
            entity_id=username,
            description="Admin logout",
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
