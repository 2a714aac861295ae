"""
Audit Logger

DESIGN DECISION: Every load, save and edit of the budget is logged.
This provides:
1. Traceability of how the budget reached its current state
2. Debugging capability when a save or an AI call fails

The audit logger:
- Is async to match the storage backends
- Gracefully handles failures (a broken audit sheet never blocks an edit)
- Supports correlation IDs to trace the events of one image import
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from homebudget.models.audit import AuditEvent, AuditEventBuilder
from homebudget.models.validation import ValidationResult
from homebudget.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (always)
    2. An audit storage backend, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("homebudget.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    # =========================================================================
    # Persistence
    # =========================================================================

    async def log_snapshot_loaded(self, backend: str, defaulted: bool) -> None:
        await self.log(AuditEventBuilder.snapshot_loaded(backend, defaulted))

    async def log_snapshot_saved(self, backend: str) -> None:
        await self.log(AuditEventBuilder.snapshot_saved(backend))

    async def log_save_failed(self, backend: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.save_failed(backend, error_message))

    # =========================================================================
    # Editing
    # =========================================================================

    async def log_entry_added(self, list_name: str, entry_id: str) -> None:
        await self.log(AuditEventBuilder.entry_added(list_name, entry_id))

    async def log_entry_updated(
        self,
        list_name: str,
        entry_id: str,
        fields: list[str],
    ) -> None:
        await self.log(AuditEventBuilder.entry_updated(list_name, entry_id, fields))

    async def log_entry_removed(self, list_name: str, entry_id: str) -> None:
        await self.log(AuditEventBuilder.entry_removed(list_name, entry_id))

    async def log_edit_rejected(self, operation: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.edit_rejected(operation, error_message))

    async def log_validation(self, result: ValidationResult) -> None:
        """Record a validation run; only runs with issues are persisted."""
        if not result.issues:
            self._logger.info("validation_passed")
            return
        await self.log(AuditEventBuilder.validation_failed(
            [issue.model_dump() for issue in result.issues]
        ))

    # =========================================================================
    # AI capabilities
    # =========================================================================

    async def log_ai_summary_requested(self, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.ai_summary_requested(correlation_id))

    async def log_ai_summary_generated(
        self,
        length: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.ai_summary_generated(length, correlation_id))

    async def log_ai_extraction_completed(
        self,
        capability: str,
        item_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.ai_extraction_completed(
            capability=capability,
            item_count=item_count,
            correlation_id=correlation_id,
        ))

    async def log_ai_unavailable(
        self,
        capability: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.ai_unavailable(
            capability=capability,
            reason=reason,
            correlation_id=correlation_id,
        ))

    # =========================================================================
    # Errors
    # =========================================================================

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action that spans several events
    (e.g., importing a grocery bill image).
    """
    return uuid4()
