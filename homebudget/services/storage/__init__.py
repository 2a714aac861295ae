"""
Storage Services Package

Provides abstract interfaces and concrete implementations for budget storage.
A local JSON file is the default backend; Google Sheets and in-memory
backends implement the same interface.
"""

from homebudget.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    NotFoundError,
    StorageError,
)
from homebudget.services.storage.local_file import LocalFileBudgetStorage
from homebudget.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
)
from homebudget.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsClient,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BudgetStorageInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "LocalFileBudgetStorage",
    "InMemoryAuditStorage",
    "InMemoryBudgetStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBudgetStorage",
    "GoogleSheetsClient",
]
