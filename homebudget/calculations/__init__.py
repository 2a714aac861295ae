"""Derived-totals calculations package."""

from homebudget.calculations.totals import (
    TotalsCalculator,
    calculate_totals,
    grocery_spend_by_category,
    grocery_spend_by_subcategory,
    loan_account_balance,
    payment_progress,
    resolve_income_amount,
    unassigned_grocery_items,
)

__all__ = [
    "TotalsCalculator",
    "calculate_totals",
    "grocery_spend_by_category",
    "grocery_spend_by_subcategory",
    "loan_account_balance",
    "payment_progress",
    "resolve_income_amount",
    "unassigned_grocery_items",
]
