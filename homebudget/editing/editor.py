"""
Budget Editor

Every user edit to the budget is a function from snapshot to a NEW
snapshot. Nothing here mutates its input.

DESIGN DECISION: Entry ids are checked at insertion time.
A duplicate id within a list is rejected with DuplicateEntryError rather
than trusting callers to generate unique ids. Use new_entry_id() to
generate one.

IMPORTANT: No referential integrity is enforced across lists.
Removing an income source does not touch the expenses charged to it.
"""

import base64
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, TypeVar
from uuid import uuid4

from homebudget.models.budget import (
    UNASSIGNED,
    BudgetModel,
    BudgetSnapshot,
    CashEntry,
    CategoryOverride,
    ExpenseItem,
    GroceryBill,
    GroceryBillItem,
    GroceryCategory,
    IncomeSource,
    LoanAccount,
    LoanTransaction,
    LoanTransactionType,
    OneTimePayment,
    SavingsEntry,
    SavingsWithdrawal,
)
from homebudget.models.extraction import (
    GroceryBillExtraction,
    LoanScreenshotExtraction,
)


EntryT = TypeVar("EntryT", bound=BudgetModel)

SYNC_PREFIX = "cash-sync-"
SYNC_INCOME_PREFIX = f"{SYNC_PREFIX}inc-"
SYNC_EXPENSE_PREFIX = f"{SYNC_PREFIX}exp-"
DEFAULT_LOAN_ACCOUNT = "General Loan Account"


class CashSide(str, Enum):
    """Which side of the cash ledger an entry belongs to."""
    INCOME = "income"
    EXPENSES = "expenses"


class BudgetEditError(Exception):
    """Base exception for invalid budget edits."""
    pass


class DuplicateEntryError(BudgetEditError):
    """An entry with this id already exists in the target list."""

    def __init__(self, list_name: str, entry_id: str):
        self.list_name = list_name
        self.entry_id = entry_id
        super().__init__(f"Duplicate id '{entry_id}' in {list_name}")


class EntryNotFoundError(BudgetEditError):
    """No entry with this id exists in the target list."""

    def __init__(self, list_name: str, entry_id: str):
        self.list_name = list_name
        self.entry_id = entry_id
        super().__init__(f"No entry with id '{entry_id}' in {list_name}")


def image_data_url(image_bytes: bytes, mime_type: str) -> str:
    """Inline data URL for an uploaded image, kept with the entry read from it."""
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def new_entry_id(prefix: str) -> str:
    """Generate a fresh entry id, e.g. 'exp-3f2a...'."""
    return f"{prefix}-{uuid4().hex[:12]}"


# =============================================================================
# GENERIC LIST OPERATIONS
# =============================================================================

def _find(entries: list[EntryT], entry_id: str, list_name: str) -> EntryT:
    for entry in entries:
        if entry.id == entry_id:
            return entry
    raise EntryNotFoundError(list_name, entry_id)


def _added(entries: list[EntryT], entry: EntryT, list_name: str) -> list[EntryT]:
    if any(existing.id == entry.id for existing in entries):
        raise DuplicateEntryError(list_name, entry.id)
    return [*entries, entry]


def _apply_changes(entry: EntryT, changes: dict[str, Any]) -> EntryT:
    """
    Return a validated copy of entry with changes applied.

    The id is the entry's identity and cannot be changed.
    """
    unknown = set(changes) - set(type(entry).model_fields)
    if unknown:
        raise BudgetEditError(
            f"Unknown field(s) for {type(entry).__name__}: {', '.join(sorted(unknown))}"
        )
    if "id" in changes and changes["id"] != entry.id:
        raise BudgetEditError("Entry id cannot be changed")

    # model_copy skips validation; re-validate so "500" becomes Decimal
    return type(entry).model_validate({**entry.model_dump(), **changes})


def _updated(
    entries: list[EntryT],
    entry_id: str,
    changes: dict[str, Any],
    list_name: str,
) -> list[EntryT]:
    _find(entries, entry_id, list_name)
    return [
        _apply_changes(entry, changes) if entry.id == entry_id else entry
        for entry in entries
    ]


def _removed(entries: list[EntryT], entry_id: str, list_name: str) -> list[EntryT]:
    _find(entries, entry_id, list_name)
    return [entry for entry in entries if entry.id != entry_id]


def _with(snapshot: BudgetSnapshot, **sections) -> BudgetSnapshot:
    return snapshot.model_copy(update=sections)


# =============================================================================
# INCOME & EXPENSES
# =============================================================================

def add_income(snapshot: BudgetSnapshot, source: IncomeSource) -> BudgetSnapshot:
    updated = _with(snapshot, income=_added(snapshot.income, source, "income"))
    return sync_cash_handled(updated) if source.is_cash_handled else updated


def update_income(
    snapshot: BudgetSnapshot,
    income_id: str,
    today: Optional[date] = None,
    **changes,
) -> BudgetSnapshot:
    """Edit an income source; the cash ledger mirror is re-synced."""
    income = _updated(snapshot.income, income_id, changes, "income")
    return sync_cash_handled(_with(snapshot, income=income), today=today)


def remove_income(snapshot: BudgetSnapshot, income_id: str) -> BudgetSnapshot:
    income = _removed(snapshot.income, income_id, "income")
    return sync_cash_handled(_with(snapshot, income=income))


def add_expense(snapshot: BudgetSnapshot, expense: ExpenseItem) -> BudgetSnapshot:
    updated = _with(snapshot, expenses=_added(snapshot.expenses, expense, "expenses"))
    return sync_cash_handled(updated) if expense.is_cash_handled else updated


def update_expense(
    snapshot: BudgetSnapshot,
    expense_id: str,
    today: Optional[date] = None,
    **changes,
) -> BudgetSnapshot:
    """Edit a recurring expense; the cash ledger mirror is re-synced."""
    expenses = _updated(snapshot.expenses, expense_id, changes, "expenses")
    return sync_cash_handled(_with(snapshot, expenses=expenses), today=today)


def remove_expense(snapshot: BudgetSnapshot, expense_id: str) -> BudgetSnapshot:
    expenses = _removed(snapshot.expenses, expense_id, "expenses")
    return sync_cash_handled(_with(snapshot, expenses=expenses))


# =============================================================================
# ONE-TIME PAYMENTS
# =============================================================================

def add_one_time_payment(
    snapshot: BudgetSnapshot,
    payment: OneTimePayment,
) -> BudgetSnapshot:
    payments = _added(snapshot.one_time_payments, payment, "one_time_payments")
    return _with(snapshot, one_time_payments=payments)


def update_one_time_payment(
    snapshot: BudgetSnapshot,
    payment_id: str,
    **changes,
) -> BudgetSnapshot:
    payments = _updated(
        snapshot.one_time_payments, payment_id, changes, "one_time_payments"
    )
    return _with(snapshot, one_time_payments=payments)


def remove_one_time_payment(
    snapshot: BudgetSnapshot,
    payment_id: str,
) -> BudgetSnapshot:
    payments = _removed(snapshot.one_time_payments, payment_id, "one_time_payments")
    return _with(snapshot, one_time_payments=payments)


# =============================================================================
# SAVINGS
# =============================================================================

def set_savings_opening_balance(
    snapshot: BudgetSnapshot,
    amount: Decimal,
) -> BudgetSnapshot:
    savings = _apply_changes(snapshot.savings, {"opening_balance": amount})
    return _with(snapshot, savings=savings)


def add_savings_addition(
    snapshot: BudgetSnapshot,
    entry: SavingsEntry,
) -> BudgetSnapshot:
    additions = _added(snapshot.savings.additions, entry, "savings.additions")
    return _with(snapshot, savings=snapshot.savings.model_copy(update={"additions": additions}))


def update_savings_addition(
    snapshot: BudgetSnapshot,
    entry_id: str,
    **changes,
) -> BudgetSnapshot:
    additions = _updated(snapshot.savings.additions, entry_id, changes, "savings.additions")
    return _with(snapshot, savings=snapshot.savings.model_copy(update={"additions": additions}))


def remove_savings_addition(snapshot: BudgetSnapshot, entry_id: str) -> BudgetSnapshot:
    additions = _removed(snapshot.savings.additions, entry_id, "savings.additions")
    return _with(snapshot, savings=snapshot.savings.model_copy(update={"additions": additions}))


def add_savings_withdrawal(
    snapshot: BudgetSnapshot,
    withdrawal: SavingsWithdrawal,
) -> BudgetSnapshot:
    withdrawals = _added(snapshot.savings.withdrawals, withdrawal, "savings.withdrawals")
    return _with(
        snapshot,
        savings=snapshot.savings.model_copy(update={"withdrawals": withdrawals}),
    )


def update_savings_withdrawal(
    snapshot: BudgetSnapshot,
    withdrawal_id: str,
    **changes,
) -> BudgetSnapshot:
    withdrawals = _updated(
        snapshot.savings.withdrawals, withdrawal_id, changes, "savings.withdrawals"
    )
    return _with(
        snapshot,
        savings=snapshot.savings.model_copy(update={"withdrawals": withdrawals}),
    )


def remove_savings_withdrawal(
    snapshot: BudgetSnapshot,
    withdrawal_id: str,
) -> BudgetSnapshot:
    withdrawals = _removed(
        snapshot.savings.withdrawals, withdrawal_id, "savings.withdrawals"
    )
    return _with(
        snapshot,
        savings=snapshot.savings.model_copy(update={"withdrawals": withdrawals}),
    )


# =============================================================================
# CASH LEDGER
# =============================================================================

def _cash_list(snapshot: BudgetSnapshot, side: CashSide) -> list[CashEntry]:
    return snapshot.cash.income if side == CashSide.INCOME else snapshot.cash.expenses


def _with_cash_list(
    snapshot: BudgetSnapshot,
    side: CashSide,
    entries: list[CashEntry],
) -> BudgetSnapshot:
    cash = snapshot.cash.model_copy(update={CashSide(side).value: entries})
    return _with(snapshot, cash=cash)


def set_cash_opening_balance(
    snapshot: BudgetSnapshot,
    amount: Decimal,
) -> BudgetSnapshot:
    cash = _apply_changes(snapshot.cash, {"opening_balance": amount})
    return _with(snapshot, cash=cash)


def add_cash_entry(
    snapshot: BudgetSnapshot,
    side: CashSide,
    entry: CashEntry,
) -> BudgetSnapshot:
    side = CashSide(side)
    if entry.id.startswith(SYNC_PREFIX):
        raise BudgetEditError(f"Ids starting with '{SYNC_PREFIX}' are reserved")
    entries = _added(_cash_list(snapshot, side), entry, f"cash.{side.value}")
    return _with_cash_list(snapshot, side, entries)


def update_cash_entry(
    snapshot: BudgetSnapshot,
    side: CashSide,
    entry_id: str,
    **changes,
) -> BudgetSnapshot:
    side = CashSide(side)
    entries = _updated(_cash_list(snapshot, side), entry_id, changes, f"cash.{side.value}")
    return _with_cash_list(snapshot, side, entries)


def remove_cash_entry(
    snapshot: BudgetSnapshot,
    side: CashSide,
    entry_id: str,
) -> BudgetSnapshot:
    """
    Remove a cash ledger entry.

    Removing a synced entry un-flags its source income/expense as
    cash-handled instead; the next sync then drops the mirror.
    """
    side = CashSide(side)
    list_name = f"cash.{side.value}"
    _find(_cash_list(snapshot, side), entry_id, list_name)

    if entry_id.startswith(SYNC_PREFIX):
        source_id = _synced_source_id(entry_id)
        income = [
            i.model_copy(update={"is_cash_handled": False}) if i.id == source_id else i
            for i in snapshot.income
        ]
        expenses = [
            e.model_copy(update={"is_cash_handled": False}) if e.id == source_id else e
            for e in snapshot.expenses
        ]
        return sync_cash_handled(_with(snapshot, income=income, expenses=expenses))

    entries = _removed(_cash_list(snapshot, side), entry_id, list_name)
    return _with_cash_list(snapshot, side, entries)


def _synced_source_id(entry_id: str) -> str:
    for prefix in (SYNC_INCOME_PREFIX, SYNC_EXPENSE_PREFIX):
        if entry_id.startswith(prefix):
            return entry_id[len(prefix):]
    return entry_id[len(SYNC_PREFIX):]


def sync_cash_handled(
    snapshot: BudgetSnapshot,
    today: Optional[date] = None,
) -> BudgetSnapshot:
    """
    Rebuild the synced cash entries from cash-handled income and expenses.

    Manually entered cash entries are kept as-is. A synced entry keeps
    its original date if it already existed; new mirrors are dated today.
    """
    today = today or date.today()
    previous_dates = {
        entry.id: entry.date
        for entry in [*snapshot.cash.income, *snapshot.cash.expenses]
        if entry.id.startswith(SYNC_PREFIX)
    }

    def mirror(entry_id: str, label: str, amount: Decimal) -> CashEntry:
        return CashEntry(
            id=entry_id,
            date=previous_dates.get(entry_id, today),
            description=label,
            amount=amount,
            is_synced=True,
        )

    manual_income = [c for c in snapshot.cash.income if not c.id.startswith(SYNC_PREFIX)]
    manual_expenses = [c for c in snapshot.cash.expenses if not c.id.startswith(SYNC_PREFIX)]

    synced_income = [
        mirror(f"{SYNC_INCOME_PREFIX}{i.id}", f"Income: {i.name}", i.amount)
        for i in snapshot.income
        if i.is_cash_handled
    ]
    synced_expenses = [
        mirror(f"{SYNC_EXPENSE_PREFIX}{e.id}", f"Expense: {e.name}", e.amount)
        for e in snapshot.expenses
        if e.is_cash_handled
    ]

    cash = snapshot.cash.model_copy(update={
        "income": manual_income + synced_income,
        "expenses": manual_expenses + synced_expenses,
    })
    return _with(snapshot, cash=cash)


# =============================================================================
# LOANS
# =============================================================================

def add_loan_account(snapshot: BudgetSnapshot, account: LoanAccount) -> BudgetSnapshot:
    return _with(snapshot, loans=_added(snapshot.loans, account, "loans"))


def update_loan_account(
    snapshot: BudgetSnapshot,
    account_id: str,
    **changes,
) -> BudgetSnapshot:
    return _with(snapshot, loans=_updated(snapshot.loans, account_id, changes, "loans"))


def set_loan_opening_balance(
    snapshot: BudgetSnapshot,
    account_id: str,
    amount: Decimal,
) -> BudgetSnapshot:
    return update_loan_account(snapshot, account_id, opening_balance=amount)


def remove_loan_account(snapshot: BudgetSnapshot, account_id: str) -> BudgetSnapshot:
    return _with(snapshot, loans=_removed(snapshot.loans, account_id, "loans"))


def _replace_account(
    snapshot: BudgetSnapshot,
    account_id: str,
    transactions: list[LoanTransaction],
) -> BudgetSnapshot:
    loans = [
        a.model_copy(update={"transactions": transactions}) if a.id == account_id else a
        for a in snapshot.loans
    ]
    return _with(snapshot, loans=loans)


def add_loan_transaction(
    snapshot: BudgetSnapshot,
    account_id: str,
    transaction: LoanTransaction,
) -> BudgetSnapshot:
    account = _find(snapshot.loans, account_id, "loans")
    transactions = _added(
        account.transactions, transaction, f"loans[{account_id}].transactions"
    )
    return _replace_account(snapshot, account_id, transactions)


def update_loan_transaction(
    snapshot: BudgetSnapshot,
    account_id: str,
    transaction_id: str,
    **changes,
) -> BudgetSnapshot:
    account = _find(snapshot.loans, account_id, "loans")
    transactions = _updated(
        account.transactions, transaction_id, changes,
        f"loans[{account_id}].transactions",
    )
    return _replace_account(snapshot, account_id, transactions)


def toggle_loan_transaction_type(
    snapshot: BudgetSnapshot,
    account_id: str,
    transaction_id: str,
) -> BudgetSnapshot:
    """Flip a transaction between 'taken' and 'repayment'."""
    account = _find(snapshot.loans, account_id, "loans")
    tx = _find(account.transactions, transaction_id, f"loans[{account_id}].transactions")
    flipped = (
        LoanTransactionType.REPAYMENT
        if tx.type == LoanTransactionType.TAKEN
        else LoanTransactionType.TAKEN
    )
    return update_loan_transaction(snapshot, account_id, transaction_id, type=flipped)


def remove_loan_transaction(
    snapshot: BudgetSnapshot,
    account_id: str,
    transaction_id: str,
) -> BudgetSnapshot:
    account = _find(snapshot.loans, account_id, "loans")
    transactions = _removed(
        account.transactions, transaction_id, f"loans[{account_id}].transactions"
    )
    return _replace_account(snapshot, account_id, transactions)


def apply_loan_extraction(
    snapshot: BudgetSnapshot,
    extraction: LoanScreenshotExtraction,
    today: Optional[date] = None,
    image_url: Optional[str] = None,
) -> BudgetSnapshot:
    """
    File extracted loan transactions under their suggested accounts.

    Accounts are matched by name, case-insensitively. A missing account
    is created with a zero opening balance. Extracted transactions are
    always recorded as money taken; the user flips them if needed.
    """
    today = today or date.today()
    loans = list(snapshot.loans)

    for extracted in extraction.transactions:
        account_name = extracted.suggested_account or DEFAULT_LOAN_ACCOUNT
        index = next(
            (i for i, a in enumerate(loans) if a.name.lower() == account_name.lower()),
            None,
        )
        if index is None:
            loans.append(LoanAccount(id=new_entry_id("loan"), name=account_name))
            index = len(loans) - 1

        account = loans[index]
        transaction = LoanTransaction(
            id=new_entry_id("tx"),
            date=extracted.tx_date or today,
            description=extracted.description or "Extracted Payment",
            amount=extracted.amount,
            type=LoanTransactionType.TAKEN,
            image_url=image_url,
        )
        loans[index] = account.model_copy(
            update={"transactions": [*account.transactions, transaction]}
        )

    return _with(snapshot, loans=loans)


# =============================================================================
# GROCERIES
# =============================================================================

def _with_recomputed_total(bill: GroceryBill, items: list[GroceryBillItem]) -> GroceryBill:
    total = sum((item.total_cost for item in items), Decimal("0"))
    return bill.model_copy(update={"items": items, "total_amount": total})


def _replace_bill(snapshot: BudgetSnapshot, bill: GroceryBill) -> BudgetSnapshot:
    bills = [bill if b.id == bill.id else b for b in snapshot.grocery_bills]
    return _with(snapshot, grocery_bills=bills)


def add_grocery_bill(snapshot: BudgetSnapshot, bill: GroceryBill) -> BudgetSnapshot:
    """Add a bill; newest bills are listed first."""
    if any(b.id == bill.id for b in snapshot.grocery_bills):
        raise DuplicateEntryError("grocery_bills", bill.id)
    return _with(snapshot, grocery_bills=[bill, *snapshot.grocery_bills])


def update_grocery_bill(
    snapshot: BudgetSnapshot,
    bill_id: str,
    **changes,
) -> BudgetSnapshot:
    if "items" in changes or "total_amount" in changes:
        raise BudgetEditError("Edit bill items individually; the total is derived")
    bills = _updated(snapshot.grocery_bills, bill_id, changes, "grocery_bills")
    return _with(snapshot, grocery_bills=bills)


def remove_grocery_bill(snapshot: BudgetSnapshot, bill_id: str) -> BudgetSnapshot:
    bills = _removed(snapshot.grocery_bills, bill_id, "grocery_bills")
    return _with(snapshot, grocery_bills=bills)


def add_grocery_item(
    snapshot: BudgetSnapshot,
    bill_id: str,
    item: Optional[GroceryBillItem] = None,
) -> BudgetSnapshot:
    """Append an item (a blank 'New Item' by default) and recompute the total."""
    bill = _find(snapshot.grocery_bills, bill_id, "grocery_bills")
    item = item or GroceryBillItem(id=new_entry_id("item"), raw_description="New Item")
    items = _added(bill.items, item, f"grocery_bills[{bill_id}].items")
    return _replace_bill(snapshot, _with_recomputed_total(bill, items))


def update_grocery_item(
    snapshot: BudgetSnapshot,
    bill_id: str,
    item_id: str,
    **changes,
) -> BudgetSnapshot:
    bill = _find(snapshot.grocery_bills, bill_id, "grocery_bills")
    items = _updated(bill.items, item_id, changes, f"grocery_bills[{bill_id}].items")
    return _replace_bill(snapshot, _with_recomputed_total(bill, items))


def remove_grocery_item(
    snapshot: BudgetSnapshot,
    bill_id: str,
    item_id: str,
) -> BudgetSnapshot:
    bill = _find(snapshot.grocery_bills, bill_id, "grocery_bills")
    items = _removed(bill.items, item_id, f"grocery_bills[{bill_id}].items")
    return _replace_bill(snapshot, _with_recomputed_total(bill, items))


def categorize_grocery_item(
    snapshot: BudgetSnapshot,
    bill_id: str,
    item_id: str,
    category_id: str,
    sub_category_id: str,
) -> BudgetSnapshot:
    """
    Assign a category to a bill item and remember the choice.

    The raw description is recorded as a mapping override so future
    bill extractions categorise the same text the same way.
    """
    bill = _find(snapshot.grocery_bills, bill_id, "grocery_bills")
    item = _find(bill.items, item_id, f"grocery_bills[{bill_id}].items")

    overrides = dict(snapshot.mapping_overrides)
    category = next((c for c in snapshot.grocery_categories if c.id == category_id), None)
    sub = None
    if category is not None:
        sub = next((s for s in category.sub_categories if s.id == sub_category_id), None)
    raw = item.raw_description or item.description
    if raw and category is not None and sub is not None:
        overrides[raw] = CategoryOverride(
            category_name=category.name,
            sub_category_name=sub.name,
        )

    updated = update_grocery_item(
        snapshot, bill_id, item_id,
        category_id=category_id,
        sub_category_id=sub_category_id,
    )
    return _with(updated, mapping_overrides=overrides)


def build_grocery_bill(
    extraction: GroceryBillExtraction,
    categories: list[GroceryCategory],
    today: Optional[date] = None,
    image_url: Optional[str] = None,
) -> GroceryBill:
    """
    Turn an AI extraction into a grocery bill.

    Category and sub-category names are resolved against the current
    category list; names that don't match leave the item unassigned.
    """
    today = today or date.today()
    items = []
    for extracted in extraction.items:
        category = next(
            (c for c in categories if c.name == extracted.category_name), None
        )
        sub = None
        if category is not None:
            sub = next(
                (s for s in category.sub_categories
                 if s.name == extracted.sub_category_name),
                None,
            )
        description = extracted.description or "Item"
        items.append(GroceryBillItem(
            id=new_entry_id("item"),
            description=description,
            raw_description=description,
            quantity=extracted.quantity,
            unit=extracted.unit or "unit",
            unit_cost=extracted.unit_cost,
            total_cost=extracted.total_cost,
            category_id=category.id if category else UNASSIGNED,
            sub_category_id=sub.id if sub else UNASSIGNED,
        ))

    return GroceryBill(
        id=new_entry_id("bill"),
        date=extraction.bill_date or today,
        shop_name=extraction.shop_name or "Unknown Shop",
        total_amount=sum((i.total_cost for i in items), Decimal("0")),
        items=items,
        image_url=image_url,
    )


def move_grocery_category(
    snapshot: BudgetSnapshot,
    index: int,
    direction: str,
) -> BudgetSnapshot:
    """Swap a category with its neighbour ('up' or 'down'). Out of range is a no-op."""
    categories = list(snapshot.grocery_categories)
    target = index - 1 if direction == "up" else index + 1
    if not (0 <= index < len(categories)) or not (0 <= target < len(categories)):
        return snapshot
    categories[index], categories[target] = categories[target], categories[index]
    return _with(snapshot, grocery_categories=categories)


def move_grocery_subcategory(
    snapshot: BudgetSnapshot,
    category_index: int,
    sub_index: int,
    direction: str,
) -> BudgetSnapshot:
    """Swap a sub-category with its neighbour within its category."""
    categories = list(snapshot.grocery_categories)
    if not 0 <= category_index < len(categories):
        return snapshot
    category = categories[category_index]
    subs = list(category.sub_categories)
    target = sub_index - 1 if direction == "up" else sub_index + 1
    if not (0 <= sub_index < len(subs)) or not (0 <= target < len(subs)):
        return snapshot
    subs[sub_index], subs[target] = subs[target], subs[sub_index]
    categories[category_index] = category.model_copy(update={"sub_categories": subs})
    return _with(snapshot, grocery_categories=categories)
