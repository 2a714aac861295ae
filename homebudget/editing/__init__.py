"""Snapshot editing package."""

from homebudget.editing.editor import (
    BudgetEditError,
    CashSide,
    DuplicateEntryError,
    EntryNotFoundError,
    add_cash_entry,
    add_expense,
    add_grocery_bill,
    add_grocery_item,
    add_income,
    add_loan_account,
    add_loan_transaction,
    add_one_time_payment,
    add_savings_addition,
    add_savings_withdrawal,
    apply_loan_extraction,
    build_grocery_bill,
    categorize_grocery_item,
    image_data_url,
    move_grocery_category,
    move_grocery_subcategory,
    new_entry_id,
    remove_cash_entry,
    remove_expense,
    remove_grocery_bill,
    remove_grocery_item,
    remove_income,
    remove_loan_account,
    remove_loan_transaction,
    remove_one_time_payment,
    remove_savings_addition,
    remove_savings_withdrawal,
    set_cash_opening_balance,
    set_loan_opening_balance,
    set_savings_opening_balance,
    sync_cash_handled,
    toggle_loan_transaction_type,
    update_cash_entry,
    update_expense,
    update_grocery_bill,
    update_grocery_item,
    update_income,
    update_loan_account,
    update_loan_transaction,
    update_one_time_payment,
    update_savings_addition,
    update_savings_withdrawal,
)

__all__ = [
    # Errors
    "BudgetEditError",
    "DuplicateEntryError",
    "EntryNotFoundError",
    # Helpers
    "CashSide",
    "new_entry_id",
    "image_data_url",
    "sync_cash_handled",
    "build_grocery_bill",
    "apply_loan_extraction",
    # Income & expenses
    "add_income",
    "update_income",
    "remove_income",
    "add_expense",
    "update_expense",
    "remove_expense",
    # One-time payments
    "add_one_time_payment",
    "update_one_time_payment",
    "remove_one_time_payment",
    # Savings
    "set_savings_opening_balance",
    "add_savings_addition",
    "update_savings_addition",
    "remove_savings_addition",
    "add_savings_withdrawal",
    "update_savings_withdrawal",
    "remove_savings_withdrawal",
    # Cash
    "set_cash_opening_balance",
    "add_cash_entry",
    "update_cash_entry",
    "remove_cash_entry",
    # Loans
    "add_loan_account",
    "update_loan_account",
    "set_loan_opening_balance",
    "remove_loan_account",
    "add_loan_transaction",
    "update_loan_transaction",
    "toggle_loan_transaction_type",
    "remove_loan_transaction",
    # Groceries
    "add_grocery_bill",
    "update_grocery_bill",
    "remove_grocery_bill",
    "add_grocery_item",
    "update_grocery_item",
    "remove_grocery_item",
    "categorize_grocery_item",
    "move_grocery_category",
    "move_grocery_subcategory",
]
