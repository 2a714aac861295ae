"""
Data Models Package

This package contains all Pydantic models used in the Home Budget system.
All data flowing through the system must conform to these schemas.
"""

from homebudget.models.budget import (
    MISC,
    UNASSIGNED,
    BudgetSnapshot,
    BudgetTotals,
    CashEntry,
    CashLedger,
    CategoryOverride,
    ExpenseItem,
    ExpenseSourceType,
    GroceryBill,
    GroceryBillItem,
    GroceryCategory,
    GrocerySpendStats,
    GrocerySubCategory,
    IncomeRole,
    IncomeSource,
    LoanAccount,
    LoanTransaction,
    LoanTransactionType,
    OneTimePayment,
    Savings,
    SavingsEntry,
    SavingsWithdrawal,
    default_grocery_categories,
    default_snapshot,
)
from homebudget.models.extraction import (
    NO_INSIGHTS_MESSAGE,
    UNAVAILABLE_MESSAGE,
    AIUnavailable,
    ExtractedGroceryItem,
    ExtractedLoanTransaction,
    GroceryBillExtraction,
    LoanScreenshotExtraction,
)
from homebudget.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from homebudget.models.validation import (
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    # Budget models
    "MISC",
    "UNASSIGNED",
    "BudgetSnapshot",
    "BudgetTotals",
    "CashEntry",
    "CashLedger",
    "CategoryOverride",
    "ExpenseItem",
    "ExpenseSourceType",
    "GroceryBill",
    "GroceryBillItem",
    "GroceryCategory",
    "GrocerySpendStats",
    "GrocerySubCategory",
    "IncomeRole",
    "IncomeSource",
    "LoanAccount",
    "LoanTransaction",
    "LoanTransactionType",
    "OneTimePayment",
    "Savings",
    "SavingsEntry",
    "SavingsWithdrawal",
    "default_grocery_categories",
    "default_snapshot",
    # Extraction models
    "NO_INSIGHTS_MESSAGE",
    "UNAVAILABLE_MESSAGE",
    "AIUnavailable",
    "ExtractedGroceryItem",
    "ExtractedLoanTransaction",
    "GroceryBillExtraction",
    "LoanScreenshotExtraction",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
]
