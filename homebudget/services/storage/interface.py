"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the budget in a local JSON file or in Google Sheets
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The budget is persisted as ONE flat text blob under one key, exactly
like the browser key-value store the budget originally lived in.
Backends only need to read and write that blob; loading, parsing and
falling back to the default budget is shared here.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from homebudget.models.audit import AuditEvent
from homebudget.models.budget import BudgetSnapshot, default_snapshot


logger = structlog.get_logger(__name__)

# Suffix of the key an unreadable blob is kept under
UNREADABLE_SUFFIX = ".corrupt"


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class BudgetStorageInterface(ABC):
    """
    Abstract interface for budget snapshot storage.

    Subclasses implement read_blob/write_blob. load() never raises:
    an absent, unreadable or corrupt blob yields the default budget.

    IMPORTANT: A default budget loaded in place of stored data must not
    silently replace it. A blob that fails to parse is copied to
    backup_key first; if that copy fails, or the backend could not be
    read at all, save() refuses until called with force=True.
    """

    backend_name: str = "unknown"

    def __init__(self, storage_key: str = "home_budget_data"):
        self.storage_key = storage_key
        self.overwrite_blocked = False

    @property
    def backup_key(self) -> str:
        """Key an unreadable blob is copied to before it can be replaced."""
        return f"{self.storage_key}{UNREADABLE_SUFFIX}"

    @abstractmethod
    async def read_blob(self, key: Optional[str] = None) -> Optional[str]:
        """
        Read the raw blob stored under key (default: storage_key).

        Returns:
            The stored text, or None if nothing has been saved yet

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def write_blob(self, blob: str, key: Optional[str] = None) -> None:
        """
        Replace the blob stored under key (default: storage_key).

        Raises:
            StorageError: If the write fails
        """
        pass

    async def load_with_status(self) -> tuple[BudgetSnapshot, bool]:
        """
        Load the stored snapshot.

        Returns:
            (snapshot, loaded_from_storage). The flag is False when the
            default budget was substituted.
        """
        try:
            blob = await self.read_blob()
        except StorageError as e:
            logger.warning(
                "budget_load_failed",
                backend=self.backend_name,
                error=str(e),
            )
            self.overwrite_blocked = True
            return default_snapshot(), False

        self.overwrite_blocked = False
        if not blob:
            logger.info("budget_not_found", backend=self.backend_name)
            return default_snapshot(), False

        try:
            return BudgetSnapshot.from_blob(blob), True
        except ValidationError as e:
            logger.warning(
                "budget_blob_corrupt",
                backend=self.backend_name,
                error_count=e.error_count(),
            )
            await self._keep_unreadable_blob(blob)
            return default_snapshot(), False

    async def _keep_unreadable_blob(self, blob: str) -> None:
        try:
            await self.write_blob(blob, key=self.backup_key)
        except StorageError as e:
            logger.error(
                "budget_backup_failed",
                backend=self.backend_name,
                backup_key=self.backup_key,
                error=str(e),
            )
            self.overwrite_blocked = True
            return
        logger.warning(
            "budget_blob_preserved",
            backend=self.backend_name,
            backup_key=self.backup_key,
        )

    async def load(self) -> BudgetSnapshot:
        """Load the stored snapshot, or the default budget if absent."""
        snapshot, _ = await self.load_with_status()
        return snapshot

    async def save(self, snapshot: BudgetSnapshot, force: bool = False) -> None:
        """
        Persist a snapshot, replacing whatever was stored.

        Args:
            snapshot: The budget to store
            force: Replace stored data even if it could not be read

        Raises:
            StorageError: If the save fails, or is refused because the
                stored budget could not be read
        """
        if self.overwrite_blocked and not force:
            raise StorageError(
                f"The stored budget in {self.backend_name} could not be read; "
                "refusing to overwrite it (save with force=True to replace it)"
            )
        await self.write_blob(snapshot.to_blob())
        self.overwrite_blocked = False


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one bill image import).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass
