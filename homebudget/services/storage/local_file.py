"""
Local JSON File Storage

The default backend. The file holds a single JSON object mapping the
storage key to the snapshot blob, mirroring a browser key-value store:

    {"home_budget_data": "{\"income\": [...], ...}"}

Writes go to a temporary file first and are then moved into place, so
a crash mid-write never leaves a half-written budget behind. A file
that is not valid JSON is moved aside to "<name>.corrupt" before it is
replaced, never deleted.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

import structlog

from homebudget.services.storage.interface import (
    UNREADABLE_SUFFIX,
    BudgetStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


class LocalFileBudgetStorage(BudgetStorageInterface):
    """Budget blob stored in a JSON file on disk."""

    backend_name = "local"

    def __init__(self, path: Path, storage_key: str = "home_budget_data"):
        super().__init__(storage_key)
        self.path = Path(path)

    @property
    def corrupt_path(self) -> Path:
        return self.path.with_name(self.path.name + UNREADABLE_SUFFIX)

    def _read_store(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                store = json.load(handle)
        except (json.JSONDecodeError, OSError) as e:
            raise StorageError(f"Failed to read {self.path}: {e}")
        if not isinstance(store, dict):
            raise StorageError(f"Unexpected content in {self.path}")
        return store

    def _move_unreadable_file(self) -> None:
        try:
            os.replace(self.path, self.corrupt_path)
        except OSError as e:
            raise StorageError(f"Failed to move aside {self.path}: {e}")
        logger.warning(
            "budget_file_moved_aside",
            path=str(self.path),
            moved_to=str(self.corrupt_path),
        )

    async def read_blob(self, key: Optional[str] = None) -> Optional[str]:
        return self._read_store().get(key or self.storage_key)

    async def write_blob(self, blob: str, key: Optional[str] = None) -> None:
        try:
            store = self._read_store()
        except StorageError:
            self._move_unreadable_file()
            store = {}
        store[key or self.storage_key] = blob

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=".budget-", suffix=".json"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(store, handle, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except OSError as e:
            raise StorageError(f"Failed to write {self.path}: {e}")
