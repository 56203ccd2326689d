"""
Audit Models for ExpenseFlow

Every store write, sync pass and family membership change produces an
audit event. Events are emitted to the structured log; they are not
persisted.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Sync
    SYNC_STARTED = "sync_started"
    SYNC_COMPLETED = "sync_completed"
    SYNC_READ_FAILED = "sync_read_failed"
    SYNC_DISCARDED = "sync_discarded"
    LOCAL_STATE_HYDRATED = "local_state_hydrated"
    LOCAL_STORAGE_INVALID = "local_storage_invalid"

    # Persistence
    RECORD_CREATED = "record_created"
    RECORD_UPDATED = "record_updated"
    RECORD_DELETED = "record_deleted"
    REMOTE_DELETE_FAILED = "remote_delete_failed"
    WRITE_FAILED = "write_failed"
    DATA_CLEARED = "data_cleared"

    # Family sharing
    FAMILY_CREATED = "family_created"
    FAMILY_DELETED = "family_deleted"
    INVITATION_SENT = "invitation_sent"
    INVITATION_ACCEPTED = "invitation_accepted"
    INVITATION_DECLINED = "invitation_declined"
    INVITATION_CANCELLED = "invitation_cancelled"
    MEMBER_LEFT = "member_left"
    MEMBER_REMOVED = "member_removed"
    ADMIN_REASSIGNED = "admin_reassigned"
    FAMILY_OPERATION_REJECTED = "family_operation_rejected"

    # State container
    UNKNOWN_ACTION = "unknown_action"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    ``actor`` is the uid of the signed-in user, or None while running
    on local storage.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    actor: Optional[str] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'family', 'invitation')"
    )
    entity_id: Optional[str] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "actor": self.actor,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_written(
            AuditEventType.RECORD_CREATED, "transaction", "abc123", actor="uid-1"
        )
    """

    @staticmethod
    def record_written(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[str],
        actor: Optional[str] = None,
        collection: Optional[str] = None,
    ) -> AuditEvent:
        verb = event_type.value.replace("record_", "")
        return AuditEvent(
            event_type=event_type,
            actor=actor,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.capitalize()} {verb}",
            details={"collection": collection} if collection else {},
        )

    @staticmethod
    def write_failed(
        entity_type: str,
        operation: str,
        error: Exception,
        actor: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            actor=actor,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"Failed to {operation} {entity_type}",
            details={"operation": operation},
            error_message=str(error),
        )

    @staticmethod
    def remote_delete_failed(
        entity_type: str,
        entity_id: Optional[str],
        error: Exception,
        actor: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_DELETE_FAILED,
            severity=AuditSeverity.WARNING,
            actor=actor,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"Remote delete of {entity_type} failed; local state already updated",
            error_message=str(error),
        )

    @staticmethod
    def family_event(
        event_type: AuditEventType,
        family_id: str,
        actor: Optional[str],
        description: str,
        **details: Any,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            actor=actor,
            entity_type="family",
            entity_id=family_id,
            description=description,
            details=details,
        )

    @staticmethod
    def family_rejected(
        operation: str,
        error: Exception,
        actor: Optional[str],
        family_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FAMILY_OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            actor=actor,
            entity_type="family",
            entity_id=family_id,
            description=f"Family operation '{operation}' rejected",
            details={"operation": operation},
            error_message=str(error),
        )

    @staticmethod
    def sync_read_failed(
        resource: str,
        error: Exception,
        actor: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_READ_FAILED,
            severity=AuditSeverity.WARNING,
            actor=actor,
            entity_type=resource,
            description=f"Could not read {resource} during sync",
            error_message=str(error),
        )
