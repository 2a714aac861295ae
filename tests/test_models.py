"""
Tests for Home Budget

Test strategy:
1. Unit tests for individual components (models, calculator, editor, validator)
2. Integration tests for the session (with in-memory storage and a fake AI)
3. No real API calls in tests (use fakes)
"""

import json
import pytest
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from homebudget.models import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    BudgetSnapshot,
    ExpenseItem,
    ExpenseSourceType,
    ExtractedGroceryItem,
    GroceryBill,
    GrocerySpendStats,
    IncomeRole,
    IncomeSource,
    OneTimePayment,
    ValidationIssue,
    ValidationResult,
    default_grocery_categories,
    default_snapshot,
)


class TestBudgetModels:
    """Tests for budget snapshot models."""

    def test_income_source_creation(self):
        source = IncomeSource(id="inc-1", name="  Salary  ", amount="385000")
        assert source.name == "Salary"
        assert source.amount == Decimal("385000")
        assert source.role is None
        assert source.is_cash_handled is False

    def test_models_are_frozen(self):
        source = IncomeSource(id="inc-1", name="Salary")
        with pytest.raises(ValidationError):
            source.amount = Decimal("1")

    def test_expense_requires_known_source(self):
        with pytest.raises(ValidationError):
            ExpenseItem(id="exp-1", name="Food", source_type="Lottery")

    def test_expense_accepts_camel_case(self):
        item = ExpenseItem.model_validate({
            "id": "exp-1", "name": "Food", "amount": 90000,
            "sourceType": "Salary", "isCashHandled": True,
        })
        assert item.source_type == ExpenseSourceType.SALARY
        assert item.is_cash_handled is True

    def test_empty_due_date(self):
        payment = OneTimePayment.model_validate(
            {"id": "otp-1", "title": "School Fees", "dueDate": ""}
        )
        assert payment.due_date is None

    def test_id_is_required(self):
        with pytest.raises(ValidationError):
            IncomeSource(id="", name="Salary")


class TestSnapshotBlob:
    """The flat JSON blob used for persistence."""

    def test_blob_uses_camel_case_keys(self):
        blob = json.loads(default_snapshot().to_blob())
        assert set(blob) == {
            "income", "expenses", "oneTimePayments", "savings", "cash",
            "loans", "groceryCategories", "groceryBills", "mappingOverrides",
        }
        assert blob["savings"] == {
            "openingBalance": "0", "additions": [], "withdrawals": [],
        }

    def test_blob_round_trip_keeps_exact_amounts(self):
        snapshot = BudgetSnapshot(income=[
            IncomeSource(id="inc-1", name="Salary", amount=Decimal("0.10")),
        ])
        loaded = BudgetSnapshot.from_blob(snapshot.to_blob())
        assert loaded.income[0].amount == Decimal("0.10")
        assert loaded == snapshot

    def test_from_blob_rejects_garbage(self):
        with pytest.raises(ValidationError):
            BudgetSnapshot.from_blob("not json")

    def test_cleared_inputs_in_stored_blob(self):
        # Cleared date and number inputs are saved as empty strings
        blob = json.dumps({
            "income": [{"id": "inc-1", "name": "Salary", "amount": 999999}],
            "expenses": [],
            "oneTimePayments": [],
            "savings": {
                "openingBalance": "",
                "additions": [{"id": "sav-1", "amount": 500, "date": ""}],
                "withdrawals": [],
            },
            "cash": {
                "openingBalance": 0,
                "income": [{"id": "cash-1", "date": "", "description": "Gift", "amount": ""}],
                "expenses": [],
            },
            "loans": [{
                "id": "loan-1", "name": "Car", "openingBalance": 1000,
                "transactions": [{"id": "ltx-1", "date": "", "amount": 200, "type": "repayment"}],
            }],
            "groceryCategories": [],
            "groceryBills": [{
                "id": "bill-1", "date": "", "shopName": "Corner Shop", "totalAmount": 300,
                "items": [{
                    "id": "item-1", "description": "Eggs",
                    "quantity": "", "unitCost": "", "totalCost": 300,
                }],
            }],
        })
        snapshot = BudgetSnapshot.from_blob(blob)
        assert snapshot.income[0].amount == Decimal("999999")
        assert snapshot.savings.opening_balance == 0
        assert snapshot.savings.additions[0].date is None
        assert snapshot.cash.income[0].date is None
        assert snapshot.cash.income[0].amount == 0
        assert snapshot.loans[0].transactions[0].date is None
        bill = snapshot.grocery_bills[0]
        assert bill.date is None
        assert bill.items[0].quantity == 0
        assert bill.items[0].unit_cost == 0
        assert bill.items[0].total_cost == Decimal("300")

    def test_image_url_round_trip(self):
        snapshot = BudgetSnapshot(grocery_bills=[
            GroceryBill(id="bill-1", image_url="data:image/jpeg;base64,AAEC"),
        ])
        blob = json.loads(snapshot.to_blob())
        assert blob["groceryBills"][0]["imageUrl"] == "data:image/jpeg;base64,AAEC"
        loaded = BudgetSnapshot.from_blob(snapshot.to_blob())
        assert loaded.grocery_bills[0].image_url == "data:image/jpeg;base64,AAEC"


class TestDefaultSnapshot:
    """The starting budget."""

    def test_default_income(self):
        snapshot = default_snapshot()
        assert [(i.name, i.amount, i.role) for i in snapshot.income] == [
            ("Salary", Decimal("385000"), IncomeRole.SALARY),
            ("Rent Income", Decimal("110000"), IncomeRole.RENT),
        ]

    def test_default_lists(self):
        snapshot = default_snapshot()
        assert len(snapshot.expenses) == 19
        assert len({e.id for e in snapshot.expenses}) == 19
        assert [p.title for p in snapshot.one_time_payments][:2] == [
            "School Fees", "Income Tax",
        ]
        assert all(p.total_amount == 0 for p in snapshot.one_time_payments)

    def test_default_grocery_categories(self):
        categories = default_grocery_categories()
        assert categories[0].id == "gcat-1"
        assert categories[0].sub_categories[0].id == "gsub-1-1"
        assert categories[-1].name == "Miscellaneous"


class TestExtractionModels:
    """AI extraction models are lenient."""

    def test_null_numbers_become_zero(self):
        item = ExtractedGroceryItem.model_validate(
            {"description": "Eggs", "quantity": None, "unitCost": "", "totalCost": 300}
        )
        assert item.quantity == 0
        assert item.unit_cost == 0
        assert item.total_cost == Decimal("300")

    def test_grocery_stats_average(self):
        stats = GrocerySpendStats(total_amount=Decimal("500"), total_quantity=Decimal("0"))
        assert stats.avg_unit_cost == Decimal("500")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.SNAPSHOT_SAVED,
            description="Budget saved",
        )
        assert event.event_type == AuditEventType.SNAPSHOT_SAVED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        event = AuditEventBuilder.entry_updated("expenses", "exp-3", ["amount"])
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "entry_updated"
        assert log_dict["details"]["fields"] == ["amount"]

    def test_audit_event_to_sheets_row(self):
        event = AuditEventBuilder.entry_added("income", "inc-3")
        row = event.to_sheets_row()
        assert len(row) == 11
        assert row[2] == "entry_added"
        assert row[5] == "inc-3"
        assert row[10] == "True"

    def test_snapshot_loaded_vs_defaulted(self):
        loaded = AuditEventBuilder.snapshot_loaded("local", defaulted=False)
        defaulted = AuditEventBuilder.snapshot_loaded("local", defaulted=True)
        assert loaded.event_type == AuditEventType.SNAPSHOT_LOADED
        assert defaulted.event_type == AuditEventType.SNAPSHOT_DEFAULTED

    def test_ai_unavailable_event(self):
        correlation_id = uuid4()
        event = AuditEventBuilder.ai_unavailable("grocery_bill", "timeout", correlation_id)
        assert event.severity == AuditSeverity.WARNING
        assert event.correlation_id == correlation_id
        assert event.error_message == "timeout"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        result = ValidationResult(
            structure_valid=False,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="expenses",
                    issue_type="duplicate_id",
                    message="Id 'exp-1' appears 2 times in expenses",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        result = ValidationResult(
            structure_valid=True,
            semantic_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="savings",
                    issue_type="negative_balance",
                    message="Savings withdrawals exceed what was saved",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0

    def test_severity_is_restricted(self):
        with pytest.raises(ValidationError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
