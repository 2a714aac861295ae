"""
Tests for budget storage backends.

No real Google API calls: the Sheets backend runs against an in-memory
fake worksheet.
"""

import asyncio
import json
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from tenacity import wait_none

from homebudget.editing import add_savings_addition, update_income
from homebudget.models import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    BudgetSnapshot,
    SavingsEntry,
    default_snapshot,
)
from homebudget.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    LocalFileBudgetStorage,
    StorageError,
)
from homebudget.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    BUDGET_COLUMNS,
    split_blob,
)


def run(coro):
    return asyncio.run(coro)


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the storage backends."""

    def __init__(self, header: list[str]):
        self.rows = [list(header)]

    def get_all_values(self) -> list[list[str]]:
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append([str(v) for v in row])

    def append_rows(self, rows, value_input_option=None):
        for row in rows:
            self.append_row(row)

    def delete_rows(self, index):
        del self.rows[index - 1]


class BrokenWriteWorksheet(FakeWorksheet):
    """A worksheet that stops accepting appends or deletes on demand."""

    def __init__(self, header: list[str]):
        super().__init__(header)
        self.fail_appends = False
        self.fail_deletes = False

    def append_rows(self, rows, value_input_option=None):
        if self.fail_appends:
            raise RuntimeError("APIError: [429] Quota exceeded")
        super().append_rows(rows, value_input_option)

    def delete_rows(self, index):
        if self.fail_deletes:
            raise RuntimeError("APIError: [503] Service unavailable")
        super().delete_rows(index)


class FakeSheetsClient:
    def __init__(self, budget_sheet=None):
        self.budget_sheet = budget_sheet or FakeWorksheet(BUDGET_COLUMNS)
        self.audit_sheet = FakeWorksheet(AUDIT_COLUMNS)

    def get_budget_sheet(self):
        return self.budget_sheet

    def get_audit_sheet(self):
        return self.audit_sheet


@pytest.fixture
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(GoogleSheetsBudgetStorage.write_blob.retry, "wait", wait_none())


def edited_snapshot() -> BudgetSnapshot:
    snapshot = update_income(default_snapshot(), "inc-1", amount=Decimal("400000.50"))
    return add_savings_addition(
        snapshot, SavingsEntry(id="s-1", amount=Decimal("50000"), date=date(2024, 3, 1))
    )


class TestLocalFileStorage:
    """JSON file backend."""

    def test_missing_file_loads_default(self, tmp_path):
        storage = LocalFileBudgetStorage(tmp_path / "budget.json")
        snapshot, from_storage = run(storage.load_with_status())
        assert from_storage is False
        assert snapshot == default_snapshot()

    def test_save_then_load(self, tmp_path):
        storage = LocalFileBudgetStorage(tmp_path / "nested" / "budget.json")
        snapshot = edited_snapshot()
        run(storage.save(snapshot))

        loaded, from_storage = run(storage.load_with_status())
        assert from_storage is True
        assert loaded == snapshot
        assert loaded.income[0].amount == Decimal("400000.50")

    def test_file_is_keyed_blob(self, tmp_path):
        path = tmp_path / "budget.json"
        run(LocalFileBudgetStorage(path).save(default_snapshot()))

        store = json.loads(path.read_text(encoding="utf-8"))
        assert list(store) == ["home_budget_data"]
        blob = json.loads(store["home_budget_data"])
        assert "oneTimePayments" in blob
        assert blob["expenses"][0]["sourceType"] == "Salary"

    def test_other_keys_are_preserved(self, tmp_path):
        path = tmp_path / "budget.json"
        path.write_text(json.dumps({"other_app": "keep me"}), encoding="utf-8")
        run(LocalFileBudgetStorage(path).save(default_snapshot()))

        store = json.loads(path.read_text(encoding="utf-8"))
        assert store["other_app"] == "keep me"

    def test_corrupt_file_loads_default(self, tmp_path):
        path = tmp_path / "budget.json"
        path.write_text("{not json", encoding="utf-8")
        storage = LocalFileBudgetStorage(path)
        snapshot, from_storage = run(storage.load_with_status())
        assert from_storage is False
        assert snapshot == default_snapshot()

        with pytest.raises(StorageError):
            run(storage.save(edited_snapshot()))
        assert path.read_text(encoding="utf-8") == "{not json"

    def test_corrupt_blob_loads_default(self, tmp_path):
        path = tmp_path / "budget.json"
        path.write_text(
            json.dumps({"home_budget_data": '{"income": "lots"}'}), encoding="utf-8"
        )
        storage = LocalFileBudgetStorage(path)
        assert run(storage.load()) == default_snapshot()

        run(storage.save(edited_snapshot()))
        store = json.loads(path.read_text(encoding="utf-8"))
        assert store["home_budget_data.corrupt"] == '{"income": "lots"}'
        assert run(storage.load()) == edited_snapshot()

    def test_corrupt_file_is_replaced_on_save(self, tmp_path):
        path = tmp_path / "budget.json"
        path.write_text("[1, 2", encoding="utf-8")
        storage = LocalFileBudgetStorage(path)
        run(storage.save(edited_snapshot()))
        assert run(storage.load()) == edited_snapshot()
        assert path.with_name("budget.json.corrupt").read_text(encoding="utf-8") == "[1, 2"


class TestBlobCompatibility:
    """Older blobs written before newer sections existed."""

    def test_missing_sections_are_back_filled(self):
        blob = json.dumps({
            "income": [{"id": "1", "name": "Salary", "amount": 385000}],
            "expenses": [
                {"id": "2", "name": "Food", "amount": 90000,
                 "category": "Automatic Payments", "sourceType": "Salary"},
            ],
            "oneTimePayments": [
                {"id": "3", "title": "School Fees", "totalAmount": 0,
                 "paidAmount": 0, "dueDate": ""},
            ],
        })
        storage = InMemoryBudgetStorage(store={"home_budget_data": blob})
        snapshot, from_storage = run(storage.load_with_status())

        assert from_storage is True
        assert snapshot.loans == []
        assert snapshot.grocery_bills == []
        assert snapshot.savings.opening_balance == 0
        assert len(snapshot.grocery_categories) == 6
        assert snapshot.one_time_payments[0].due_date is None


class TestInMemoryStorage:
    """Dict-backed storage used in tests and throwaway sessions."""

    def test_empty_store_loads_default(self):
        assert run(InMemoryBudgetStorage().load()) == default_snapshot()

    def test_keys_are_isolated(self):
        store = {}
        first = InMemoryBudgetStorage("budget_a", store)
        second = InMemoryBudgetStorage("budget_b", store)
        run(first.save(edited_snapshot()))

        assert run(second.load()) == default_snapshot()
        assert set(store) == {"budget_a"}


class TestGoogleSheetsBudgetStorage:
    """Key/value worksheet backend."""

    def test_empty_sheet_loads_default(self):
        storage = GoogleSheetsBudgetStorage(client=FakeSheetsClient())
        snapshot, from_storage = run(storage.load_with_status())
        assert from_storage is False
        assert snapshot == default_snapshot()

    def test_save_then_load(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsBudgetStorage(client=client)
        run(storage.save(edited_snapshot()))

        assert run(storage.load()) == edited_snapshot()
        assert client.budget_sheet.rows[1][:2] == ["home_budget_data", "0/1"]

    def test_save_replaces_previous_rows(self):
        client = FakeSheetsClient()
        client.budget_sheet.append_row(["unrelated_key", "0", "x", ""])
        storage = GoogleSheetsBudgetStorage(client=client)

        run(storage.save(default_snapshot()))
        run(storage.save(edited_snapshot()))

        keyed = [r for r in client.budget_sheet.rows if r[0] == "home_budget_data"]
        assert len(keyed) == len(split_blob(edited_snapshot().to_blob()))
        assert ["unrelated_key", "0", "x", ""] in client.budget_sheet.rows
        assert run(storage.load()) == edited_snapshot()

    def test_chunks_are_joined_in_order(self):
        client = FakeSheetsClient()
        blob = default_snapshot().to_blob()
        middle = len(blob) // 2
        client.budget_sheet.append_row(["home_budget_data", "1", blob[middle:], ""])
        client.budget_sheet.append_row(["home_budget_data", "0", blob[:middle], ""])

        storage = GoogleSheetsBudgetStorage(client=client)
        assert run(storage.read_blob()) == blob

    def test_malformed_row_loads_default(self):
        client = FakeSheetsClient()
        client.budget_sheet.append_row(["home_budget_data", "first", "{}", ""])
        snapshot, from_storage = run(
            GoogleSheetsBudgetStorage(client=client).load_with_status()
        )
        assert from_storage is False
        assert snapshot == default_snapshot()

    def test_failed_append_keeps_previous_budget(self, no_retry_wait):
        sheet = BrokenWriteWorksheet(BUDGET_COLUMNS)
        storage = GoogleSheetsBudgetStorage(client=FakeSheetsClient(sheet))
        run(storage.save(default_snapshot()))

        sheet.fail_appends = True
        with pytest.raises(StorageError):
            run(storage.save(edited_snapshot()))

        assert run(storage.load()) == default_snapshot()

    def test_failed_cleanup_still_saves(self):
        sheet = BrokenWriteWorksheet(BUDGET_COLUMNS)
        storage = GoogleSheetsBudgetStorage(client=FakeSheetsClient(sheet))
        run(storage.save(default_snapshot()))

        sheet.fail_deletes = True
        run(storage.save(edited_snapshot()))

        # both versions are on the sheet; the newer one is read
        assert len(sheet.rows) == 3
        assert run(storage.load()) == edited_snapshot()

    def test_incomplete_version_is_ignored(self):
        client = FakeSheetsClient()
        blob = default_snapshot().to_blob()
        newer = edited_snapshot().to_blob()
        client.budget_sheet.append_row(
            ["home_budget_data", "0/1", blob, "2024-05-01T10:00:00.000000"]
        )
        client.budget_sheet.append_row(
            ["home_budget_data", "0/2", newer[:100], "2024-05-02T10:00:00.000000"]
        )

        storage = GoogleSheetsBudgetStorage(client=client)
        assert run(storage.read_blob()) == blob

    def test_no_complete_version_blocks_save(self):
        client = FakeSheetsClient()
        client.budget_sheet.append_row(
            ["home_budget_data", "1/2", "]}", "2024-05-02T10:00:00.000000"]
        )
        storage = GoogleSheetsBudgetStorage(client=client)

        assert run(storage.load()) == default_snapshot()
        with pytest.raises(StorageError):
            run(storage.save(edited_snapshot()))
        assert len(client.budget_sheet.rows) == 2

    def test_split_blob(self):
        assert split_blob("abcdefg", size=3) == ["abc", "def", "g"]
        assert split_blob("") == [""]


class TestAuditStorage:
    """Append-only audit backends."""

    def test_in_memory_audit(self):
        storage = InMemoryAuditStorage()
        correlation_id = uuid4()
        run(storage.append_event(AuditEventBuilder.snapshot_saved("local")))
        run(storage.append_event(AuditEventBuilder.ai_summary_requested(correlation_id)))

        recent = run(storage.get_recent_events(limit=1))
        assert recent[0].event_type == AuditEventType.AI_SUMMARY_REQUESTED

        related = run(storage.get_events_by_correlation_id(correlation_id))
        assert len(related) == 1

    def test_sheets_audit_round_trip(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsAuditStorage(client=client)
        correlation_id = uuid4()

        event = AuditEventBuilder.ai_extraction_completed("grocery_bill", 4, correlation_id)
        assert run(storage.append_event(event)) is True
        run(storage.append_event(AuditEventBuilder.entry_added("expenses", "exp-20")))

        related = run(storage.get_events_by_correlation_id(correlation_id))
        assert [e.event_id for e in related] == [event.event_id]
        assert related[0].details == {"capability": "grocery_bill", "item_count": 4}

        recent = run(storage.get_recent_events())
        assert len(recent) == 2
        assert any(e.entity_id == "exp-20" for e in recent)

    def test_sheets_audit_skips_malformed_rows(self):
        client = FakeSheetsClient()
        client.audit_sheet.append_row(["not-a-uuid", "yesterday", "?"])
        storage = GoogleSheetsAuditStorage(client=client)
        run(storage.append_event(AuditEvent(
            event_type=AuditEventType.SNAPSHOT_SAVED,
            description="Budget saved to sheets",
        )))

        events = run(storage.get_recent_events())
        assert [e.event_type for e in events] == [AuditEventType.SNAPSHOT_SAVED]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
