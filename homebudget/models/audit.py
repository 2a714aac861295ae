"""
Audit Models for Home Budget

Every significant action on the budget is logged for audit purposes.
This provides:
1. Traceability of every edit to the household budget
2. Debugging information when a load, save or AI call goes wrong
3. Ability to reconstruct how a snapshot came to be

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Persistence
    SNAPSHOT_LOADED = "snapshot_loaded"
    SNAPSHOT_DEFAULTED = "snapshot_defaulted"
    SNAPSHOT_SAVED = "snapshot_saved"
    SAVE_FAILED = "save_failed"

    # Editing
    ENTRY_ADDED = "entry_added"
    ENTRY_UPDATED = "entry_updated"
    ENTRY_REMOVED = "entry_removed"
    EDIT_REJECTED = "edit_rejected"

    # Validation
    VALIDATION_PASSED = "validation_passed"
    VALIDATION_FAILED = "validation_failed"

    # AI capabilities
    AI_SUMMARY_REQUESTED = "ai_summary_requested"
    AI_SUMMARY_GENERATED = "ai_summary_generated"
    AI_EXTRACTION_COMPLETED = "ai_extraction_completed"
    AI_UNAVAILABLE = "ai_unavailable"

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

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'income', 'expenses', 'snapshot')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entry this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one bill image import)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
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
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
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
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.snapshot_saved(backend="local")
        event = AuditEventBuilder.entry_added("expenses", "exp-20")
    """

    @staticmethod
    def snapshot_loaded(backend: str, defaulted: bool) -> AuditEvent:
        if defaulted:
            return AuditEvent(
                event_type=AuditEventType.SNAPSHOT_DEFAULTED,
                entity_type="snapshot",
                description=f"No saved budget in {backend}; using default budget",
                details={"backend": backend},
            )
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_LOADED,
            entity_type="snapshot",
            description=f"Budget loaded from {backend}",
            details={"backend": backend},
        )

    @staticmethod
    def snapshot_saved(backend: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_SAVED,
            entity_type="snapshot",
            description=f"Budget saved to {backend}",
            details={"backend": backend},
        )

    @staticmethod
    def save_failed(backend: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="snapshot",
            description=f"Failed to save budget to {backend}",
            error_message=error_message,
            details={"backend": backend},
        )

    @staticmethod
    def entry_added(list_name: str, entry_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_ADDED,
            entity_type=list_name,
            entity_id=entry_id,
            description=f"Added {entry_id} to {list_name}",
            is_user_action=True,
        )

    @staticmethod
    def entry_updated(list_name: str, entry_id: str, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_UPDATED,
            entity_type=list_name,
            entity_id=entry_id,
            description=f"Updated {entry_id} in {list_name}",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def entry_removed(list_name: str, entry_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_REMOVED,
            entity_type=list_name,
            entity_id=entry_id,
            description=f"Removed {entry_id} from {list_name}",
            is_user_action=True,
        )

    @staticmethod
    def edit_rejected(operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EDIT_REJECTED,
            severity=AuditSeverity.WARNING,
            description=f"Edit rejected: {operation}",
            error_message=error_message,
            details={"operation": operation},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="snapshot",
            description=f"Budget validation found {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def ai_summary_requested(correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AI_SUMMARY_REQUESTED,
            correlation_id=correlation_id,
            description="AI budget summary requested",
            is_user_action=True,
        )

    @staticmethod
    def ai_summary_generated(length: int, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AI_SUMMARY_GENERATED,
            correlation_id=correlation_id,
            description="AI budget summary generated",
            details={"length": length},
        )

    @staticmethod
    def ai_extraction_completed(
        capability: str,
        item_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AI_EXTRACTION_COMPLETED,
            correlation_id=correlation_id,
            description=f"{capability} extracted {item_count} entries",
            details={"capability": capability, "item_count": item_count},
        )

    @staticmethod
    def ai_unavailable(
        capability: str,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AI_UNAVAILABLE,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"AI capability unavailable: {capability}",
            error_message=reason,
            details={"capability": capability},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
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
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
