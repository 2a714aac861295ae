"""
In-Memory Storage

Used by tests and by the "memory" backend for throwaway sessions.
Nothing survives the process.
"""

from typing import Optional
from uuid import UUID

from homebudget.models.audit import AuditEvent
from homebudget.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
)


class InMemoryBudgetStorage(BudgetStorageInterface):
    """Budget blobs kept in a dict keyed by storage key."""

    backend_name = "memory"

    def __init__(
        self,
        storage_key: str = "home_budget_data",
        store: Optional[dict[str, str]] = None,
    ):
        super().__init__(storage_key)
        self.store = store if store is not None else {}

    async def read_blob(self, key: Optional[str] = None) -> Optional[str]:
        return self.store.get(key or self.storage_key)

    async def write_blob(self, blob: str, key: Optional[str] = None) -> None:
        self.store[key or self.storage_key] = blob


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self.events))[:limit]
