"""
Totals Calculator

DESIGN DECISION: Totals are a pure function of the snapshot.
No I/O, no mutation of the input, no error taxonomy:
- empty lists sum to 0
- a missing Salary / Rent Income entry reads as 0
- a one-time payment with total 0 has progress 0

No rounding is applied here. Amounts are Decimal end to end, so the
same snapshot always yields identical totals.
"""

from decimal import Decimal
from typing import Iterable, Optional

from homebudget.models.budget import (
    MISC,
    ROLE_FALLBACK_NAMES,
    UNASSIGNED,
    BudgetSnapshot,
    BudgetTotals,
    ExpenseSourceType,
    GroceryBill,
    GroceryBillItem,
    GrocerySpendStats,
    IncomeRole,
    IncomeSource,
    LoanAccount,
    LoanTransactionType,
    OneTimePayment,
)


ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _sum(amounts: Iterable[Decimal]) -> Decimal:
    return sum(amounts, ZERO)


def resolve_income_amount(
    income: list[IncomeSource],
    role: IncomeRole,
) -> Decimal:
    """
    Amount of the income entry playing the given role.

    The first entry tagged with the role wins. If no entry carries the
    role, the untagged entry named "Salary" / "Rent Income" is used; an
    entry tagged with the other role never matches by name. Absent
    entirely, the amount is 0.
    """
    for source in income:
        if source.role == role:
            return source.amount

    fallback_name = ROLE_FALLBACK_NAMES[role]
    for source in income:
        if source.role is None and source.name == fallback_name:
            return source.amount

    return ZERO


def payment_progress(payment: OneTimePayment) -> Decimal:
    """
    Percent paid of a one-time payment, clamped to [0, 100].

    A payment with no total yet has 0 progress.
    """
    if payment.total_amount <= 0:
        return ZERO
    progress = payment.paid_amount / payment.total_amount * HUNDRED
    return max(ZERO, min(HUNDRED, progress))


def loan_account_balance(account: LoanAccount) -> Decimal:
    """Outstanding balance: opening + taken - repaid."""
    balance = account.opening_balance
    for tx in account.transactions:
        if tx.type == LoanTransactionType.TAKEN:
            balance += tx.amount
        else:
            balance -= tx.amount
    return balance


def calculate_totals(snapshot: BudgetSnapshot) -> BudgetTotals:
    """
    Compute the derived totals of a budget snapshot.

    Total over any well-formed snapshot; never raises.
    """
    total_income = _sum(i.amount for i in snapshot.income)
    total_expenses = _sum(e.amount for e in snapshot.expenses)
    salary_expenses = _sum(
        e.amount for e in snapshot.expenses
        if e.source_type == ExpenseSourceType.SALARY
    )
    rent_expenses = _sum(
        e.amount for e in snapshot.expenses
        if e.source_type == ExpenseSourceType.RENT
    )

    salary_income = resolve_income_amount(snapshot.income, IncomeRole.SALARY)
    rent_income = resolve_income_amount(snapshot.income, IncomeRole.RENT)

    savings = snapshot.savings
    total_savings_additions = _sum(a.amount for a in savings.additions)
    total_savings_withdrawals = _sum(w.amount for w in savings.withdrawals)

    cash = snapshot.cash
    total_cash_income = _sum(c.amount for c in cash.income)
    total_cash_expenses = _sum(c.amount for c in cash.expenses)

    return BudgetTotals(
        total_income=total_income,
        total_expenses=total_expenses,
        salary_expenses=salary_expenses,
        rent_expenses=rent_expenses,
        total_one_time=_sum(p.total_amount for p in snapshot.one_time_payments),
        salary_income=salary_income,
        rent_income=rent_income,
        balance=total_income - total_expenses,
        salary_remaining=salary_income - salary_expenses,
        rent_remaining=rent_income - rent_expenses,
        total_savings_additions=total_savings_additions,
        total_savings_withdrawals=total_savings_withdrawals,
        savings_balance=(
            savings.opening_balance
            + total_savings_additions
            - total_savings_withdrawals
        ),
        total_cash_income=total_cash_income,
        total_cash_expenses=total_cash_expenses,
        closing_cash_balance=(
            cash.opening_balance + total_cash_income - total_cash_expenses
        ),
        total_one_time_paid=_sum(p.paid_amount for p in snapshot.one_time_payments),
        total_grocery_spend=_sum(b.total_amount for b in snapshot.grocery_bills),
        total_loan_debt=_sum(loan_account_balance(a) for a in snapshot.loans),
    )


# =============================================================================
# GROCERY ANALYSIS
# =============================================================================

def grocery_spend_by_subcategory(
    bills: list[GroceryBill],
) -> dict[str, GrocerySpendStats]:
    """Spend, quantity and item count per grocery sub-category id."""
    stats: dict[str, GrocerySpendStats] = {}
    for bill in bills:
        for item in bill.items:
            sub_id = item.sub_category_id or UNASSIGNED
            current = stats.get(sub_id) or GrocerySpendStats()
            stats[sub_id] = GrocerySpendStats(
                total_amount=current.total_amount + item.total_cost,
                total_quantity=current.total_quantity + item.quantity,
                item_count=current.item_count + 1,
            )
    return stats


def grocery_spend_by_category(bills: list[GroceryBill]) -> dict[str, Decimal]:
    """Total spend per grocery category id."""
    totals: dict[str, Decimal] = {}
    for bill in bills:
        for item in bill.items:
            cat_id = item.category_id or UNASSIGNED
            totals[cat_id] = totals.get(cat_id, ZERO) + item.total_cost
    return totals


def unassigned_grocery_items(
    bills: list[GroceryBill],
) -> list[tuple[GroceryBill, GroceryBillItem]]:
    """Items still waiting for a category, paired with their bill."""
    return [
        (bill, item)
        for bill in bills
        for item in bill.items
        if not item.sub_category_id or item.sub_category_id in (UNASSIGNED, MISC)
    ]


# =============================================================================
# MEMOIZATION
# =============================================================================

class TotalsCalculator:
    """
    Memoizing wrapper around calculate_totals.

    Remembers the last snapshot it computed. A snapshot that is the same
    object, or equal to it, returns the cached totals. This is only an
    optimization: calculate_totals is pure, so a miss is always safe.
    """

    def __init__(self):
        self._last_snapshot: Optional[BudgetSnapshot] = None
        self._last_totals: Optional[BudgetTotals] = None
        self.hits = 0
        self.misses = 0

    def __call__(self, snapshot: BudgetSnapshot) -> BudgetTotals:
        return self.totals_for(snapshot)

    def totals_for(self, snapshot: BudgetSnapshot) -> BudgetTotals:
        if self._last_totals is not None and (
            snapshot is self._last_snapshot or snapshot == self._last_snapshot
        ):
            self.hits += 1
            return self._last_totals

        self.misses += 1
        totals = calculate_totals(snapshot)
        self._last_snapshot = snapshot
        self._last_totals = totals
        return totals

    def cache_info(self) -> dict[str, int]:
        return {"hits": self.hits, "misses": self.misses}

    def clear(self) -> None:
        """Forget the cached snapshot."""
        self._last_snapshot = None
        self._last_totals = None
