"""
Core Budget Models for Home Budget

These models define the schema of the household budget snapshot.
They are designed to:
1. Enforce type safety at runtime
2. Be immutable, so every edit produces a new snapshot value
3. Serialize to (and load from) a single flat JSON blob
4. Stay readable by blobs written before newer sections existed

DESIGN DECISION: Models are frozen Pydantic v2 models.
The totals calculator treats a snapshot as a value; freezing it means
nothing can edit a snapshot while totals are being computed from it.

DESIGN DECISION: The stored blob uses camelCase keys (openingBalance,
sourceType, ...). Python code uses snake_case attribute names.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel


UNASSIGNED = "unassigned"
MISC = "misc"


def _blank_date_is_none(v):
    """A cleared date input is stored as ''."""
    if v == "":
        return None
    return v


def _blank_number_is_zero(v):
    """A cleared number input is stored as '' (or null)."""
    if v is None or (isinstance(v, str) and not v.strip()):
        return Decimal("0")
    return v


# Field types for values the stored blob may hold as raw input text
BlobDate = Annotated[Optional[date], BeforeValidator(_blank_date_is_none)]
Amount = Annotated[Decimal, BeforeValidator(_blank_number_is_zero)]


class BudgetModel(BaseModel):
    """Base for every budget model: frozen, camelCase on the wire."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseSourceType(str, Enum):
    """
    Which income stream pays for an expense.

    Recurring expenses are partitioned between the two canonical
    income streams. The values match the stored blob exactly.
    """
    SALARY = "Salary"
    RENT = "Rent"


class IncomeRole(str, Enum):
    """
    Explicit role of an income entry.

    DESIGN DECISION: The two canonical income streams are tagged with a
    role so renaming "Salary" in the UI does not silently zero the
    salary sub-account. Entries without a role fall back to name lookup.
    """
    SALARY = "salary"
    RENT = "rent"


class LoanTransactionType(str, Enum):
    """Direction of a loan transaction."""
    TAKEN = "taken"
    REPAYMENT = "repayment"


# Income names used when no entry carries an explicit role
ROLE_FALLBACK_NAMES = {
    IncomeRole.SALARY: "Salary",
    IncomeRole.RENT: "Rent Income",
}


# =============================================================================
# RECURRING INCOME & EXPENSES
# =============================================================================

class IncomeSource(BudgetModel):
    """A recurring monthly income stream."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., description="Display name of the income source")
    amount: Amount = Field(default=Decimal("0"), description="Monthly amount")
    role: Optional[IncomeRole] = Field(
        default=None,
        description="Canonical role (salary/rent) if this is a named stream"
    )
    is_cash_handled: bool = Field(
        default=False,
        description="Received in cash; mirrored into the cash ledger"
    )


class ExpenseItem(BudgetModel):
    """A recurring monthly expense charged against one income stream."""

    id: str = Field(..., min_length=1)
    name: str
    amount: Amount = Decimal("0")
    category: str = "General"
    source_type: ExpenseSourceType
    is_cash_handled: bool = False


class OneTimePayment(BudgetModel):
    """
    A one-off payment tracked towards its total (school fees, taxes, ...).

    Progress is derived, never stored. See
    homebudget.calculations.totals.payment_progress.
    """

    id: str = Field(..., min_length=1)
    title: str
    total_amount: Amount = Decimal("0")
    paid_amount: Amount = Decimal("0")
    due_date: BlobDate = None


# =============================================================================
# SAVINGS
# =============================================================================

class SavingsEntry(BudgetModel):
    """Money added to savings."""

    id: str = Field(..., min_length=1)
    amount: Amount = Decimal("0")
    date: BlobDate = None


class SavingsWithdrawal(BudgetModel):
    """Money taken out of savings, with a reason."""

    id: str = Field(..., min_length=1)
    amount: Amount = Decimal("0")
    date: BlobDate = None
    reason: str = "General"


class Savings(BudgetModel):
    """
    Savings account.

    The balance may go negative; nothing prevents over-withdrawal.
    """

    opening_balance: Amount = Decimal("0")
    additions: list[SavingsEntry] = Field(default_factory=list)
    withdrawals: list[SavingsWithdrawal] = Field(default_factory=list)


# =============================================================================
# CASH IN HAND
# =============================================================================

class CashEntry(BudgetModel):
    """
    One line of the cash ledger (income or expense side).

    Entries with is_synced=True are mirrors of income/expense items
    flagged as cash-handled and are rebuilt on every sync.
    """

    id: str = Field(..., min_length=1)
    date: BlobDate = None
    description: str = ""
    amount: Amount = Decimal("0")
    is_synced: bool = False


class CashLedger(BudgetModel):
    """Cash in hand: opening balance plus cash income and cash expenses."""

    opening_balance: Amount = Decimal("0")
    income: list[CashEntry] = Field(default_factory=list)
    expenses: list[CashEntry] = Field(default_factory=list)


# =============================================================================
# LOANS
# =============================================================================

class LoanTransaction(BudgetModel):
    """Money borrowed (taken) or paid back (repayment) on a loan account."""

    id: str = Field(..., min_length=1)
    date: BlobDate = None
    description: str = "Extracted Payment"
    amount: Amount = Decimal("0")
    type: LoanTransactionType = LoanTransactionType.TAKEN
    image_url: Optional[str] = Field(
        default=None,
        description="Screenshot the transaction was read from (URL or data URL)"
    )


class LoanAccount(BudgetModel):
    """A named loan account (who/what the money is owed for)."""

    id: str = Field(..., min_length=1)
    name: str
    opening_balance: Amount = Decimal("0")
    transactions: list[LoanTransaction] = Field(default_factory=list)


# =============================================================================
# GROCERIES
# =============================================================================

class GrocerySubCategory(BudgetModel):
    id: str = Field(..., min_length=1)
    name: str


class GroceryCategory(BudgetModel):
    """A grocery category with its ordered sub-categories."""

    id: str = Field(..., min_length=1)
    name: str
    sub_categories: list[GrocerySubCategory] = Field(default_factory=list)


class GroceryBillItem(BudgetModel):
    """
    A single line on a grocery bill.

    raw_description keeps what the bill actually said, so manual
    categorisations can be remembered as mapping overrides.
    """

    id: str = Field(..., min_length=1)
    description: str = "New Item"
    raw_description: Optional[str] = None
    quantity: Amount = Decimal("1")
    unit: str = "unit"
    unit_cost: Amount = Decimal("0")
    total_cost: Amount = Decimal("0")
    category_id: str = UNASSIGNED
    sub_category_id: str = UNASSIGNED


class GroceryBill(BudgetModel):
    """
    A scanned or manually entered grocery bill.

    total_amount is kept equal to the sum of item total costs by the
    editing functions; it is stored so old blobs keep their totals.
    """

    id: str = Field(..., min_length=1)
    date: BlobDate = None
    shop_name: str = "Unknown Shop"
    total_amount: Amount = Decimal("0")
    items: list[GroceryBillItem] = Field(default_factory=list)
    image_url: Optional[str] = Field(
        default=None,
        description="Receipt image (URL or data URL)"
    )


class CategoryOverride(BudgetModel):
    """Remembered manual categorisation for a raw bill description."""

    category_name: str
    sub_category_name: str


def default_grocery_categories() -> list[GroceryCategory]:
    """Starter grocery categories for a new budget."""
    starter = {
        "Staples": ["Rice", "Flour", "Sugar", "Lentils", "Oil"],
        "Dairy & Eggs": ["Milk", "Milk Powder", "Yoghurt", "Cheese", "Eggs"],
        "Produce": ["Vegetables", "Fruits"],
        "Meat & Fish": ["Chicken", "Fish", "Meat"],
        "Household": ["Cleaning", "Toiletries"],
        "Miscellaneous": ["Snacks", "Beverages", "Other"],
    }
    categories = []
    for cat_index, (name, subs) in enumerate(starter.items(), start=1):
        categories.append(GroceryCategory(
            id=f"gcat-{cat_index}",
            name=name,
            sub_categories=[
                GrocerySubCategory(id=f"gsub-{cat_index}-{sub_index}", name=sub)
                for sub_index, sub in enumerate(subs, start=1)
            ],
        ))
    return categories


# =============================================================================
# SNAPSHOT
# =============================================================================

class BudgetSnapshot(BudgetModel):
    """
    The complete budget state at a point in time.

    CRITICAL: Snapshots are values. Editing functions return a new
    snapshot; nothing edits a snapshot in place.

    Sections missing from an older stored blob are back-filled with
    their defaults on load.
    """

    income: list[IncomeSource] = Field(default_factory=list)
    expenses: list[ExpenseItem] = Field(default_factory=list)
    one_time_payments: list[OneTimePayment] = Field(default_factory=list)
    savings: Savings = Field(default_factory=Savings)
    cash: CashLedger = Field(default_factory=CashLedger)
    loans: list[LoanAccount] = Field(default_factory=list)
    grocery_categories: list[GroceryCategory] = Field(
        default_factory=default_grocery_categories
    )
    grocery_bills: list[GroceryBill] = Field(default_factory=list)
    mapping_overrides: dict[str, CategoryOverride] = Field(default_factory=dict)

    def to_blob(self) -> str:
        """Serialize to the flat JSON text blob used for persistence."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_blob(cls, blob: str) -> "BudgetSnapshot":
        """
        Load a snapshot from a JSON text blob.

        Raises pydantic.ValidationError on malformed data;
        callers decide whether to fall back to the default snapshot.
        """
        return cls.model_validate_json(blob)


def default_snapshot() -> BudgetSnapshot:
    """
    The well-known starting budget used when nothing has been saved yet.
    """
    salary_expenses = [
        ("Food", 90000, "Automatic Payments"),
        ("Electricity Pedris", 8000, "Automatic Payments"),
        ("Water Pedris", 2500, "Automatic Payments"),
        ("Internet", 1099, "Automatic Payments"),
        ("Phone internet+reload", 1787, "Automatic Payments"),
        ("Life Insurance", 30000, "Automatic Payments"),
        ("Credit Card Payments", 6000, "Automatic Payments"),
        ("Inshi", 80000, "Automatic Payments"),
        ("Adhila", 28000, "Automatic Payments"),
        ("School Fees to Mama", 18500, "Automatic Payments"),
        ("Vehicle Lease Payments", 29000, "Automatic & Manual Payments"),
        ("NDB Savings", 50000, "Automatic & Manual Payments"),
        ("Petrol", 18000, "Specific Card"),
        ("Entertainment & Other", 20000, "Specific Card"),
    ]
    rent_expenses = [
        ("Psychiatrist Doctor", 54000, "Medical/Personal"),
        ("Medical Claim Allocation", 15000, "Medical/Personal"),
        ("Mgt fee allocation", 15000, "Allocations"),
        ("Car Insurance allocation", 5000, "Allocations"),
        ("Car Maintenance Allocation", 10000, "Allocations"),
    ]

    expenses = []
    rows = [(r, ExpenseSourceType.SALARY) for r in salary_expenses]
    rows += [(r, ExpenseSourceType.RENT) for r in rent_expenses]
    for index, ((name, amount, category), source) in enumerate(rows, start=1):
        expenses.append(ExpenseItem(
            id=f"exp-{index}",
            name=name,
            amount=Decimal(amount),
            category=category,
            source_type=source,
        ))

    one_time_titles = [
        "School Fees",
        "Income Tax",
        "Municipal Taxes",
        "Google AI Studio",
        "Management Fees",
        "Continental Insurance",
        "Car Service",
    ]

    return BudgetSnapshot(
        income=[
            IncomeSource(
                id="inc-1", name="Salary", amount=Decimal("385000"),
                role=IncomeRole.SALARY,
            ),
            IncomeSource(
                id="inc-2", name="Rent Income", amount=Decimal("110000"),
                role=IncomeRole.RENT,
            ),
        ],
        expenses=expenses,
        one_time_payments=[
            OneTimePayment(id=f"otp-{index}", title=title)
            for index, title in enumerate(one_time_titles, start=1)
        ],
    )


# =============================================================================
# DERIVED TOTALS
# =============================================================================

class BudgetTotals(BaseModel):
    """
    Derived values computed from a snapshot.

    Display only: never persisted, never fed back as input.
    """
    model_config = ConfigDict(frozen=True)

    total_income: Decimal
    total_expenses: Decimal
    salary_expenses: Decimal
    rent_expenses: Decimal
    total_one_time: Decimal
    salary_income: Decimal
    rent_income: Decimal
    balance: Decimal
    salary_remaining: Decimal
    rent_remaining: Decimal
    total_savings_additions: Decimal
    total_savings_withdrawals: Decimal
    savings_balance: Decimal
    total_cash_income: Decimal
    total_cash_expenses: Decimal
    closing_cash_balance: Decimal

    # Supplementary aggregates
    total_one_time_paid: Decimal = Decimal("0")
    total_grocery_spend: Decimal = Decimal("0")
    total_loan_debt: Decimal = Decimal("0")


class GrocerySpendStats(BaseModel):
    """Spend statistics for one grocery sub-category."""

    total_amount: Decimal = Decimal("0")
    total_quantity: Decimal = Decimal("0")
    item_count: int = 0

    @property
    def avg_unit_cost(self) -> Decimal:
        """Average cost per unit bought; quantity 0 counts as 1."""
        return self.total_amount / (self.total_quantity or Decimal("1"))
