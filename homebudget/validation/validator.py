"""
Two-Stage Snapshot Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - STRUCTURAL VALIDATION:
- Duplicate ids within a list
- Negative amounts in recurring income/expenses
- This catches hand-edited or corrupted blobs

STAGE 2 - SEMANTIC VALIDATION:
- Missing Salary / Rent Income streams
- One-time payments paid beyond their total
- Negative savings or cash balances
- Grocery items pointing at categories that no longer exist
- Absurd amounts

IMPORTANT: Validation NEVER silently fixes issues.
A negative savings balance, for example, is allowed by the budget
model; it is reported so the user can take a look.
"""

from collections import Counter
from decimal import Decimal
from typing import Iterable, Optional

from homebudget.calculations import calculate_totals
from homebudget.config import AppSettings, get_settings
from homebudget.models.budget import (
    MISC,
    ROLE_FALLBACK_NAMES,
    UNASSIGNED,
    BudgetSnapshot,
    IncomeRole,
)
from homebudget.models.validation import ValidationIssue, ValidationResult


class SnapshotValidator:
    """
    Validates a budget snapshot through a two-stage pipeline.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def _duplicate_issues(
        self,
        list_name: str,
        ids: Iterable[str],
    ) -> list[ValidationIssue]:
        counts = Counter(ids)
        return [
            ValidationIssue(
                field=list_name,
                issue_type="duplicate_id",
                message=f"Id '{entry_id}' appears {count} times in {list_name}",
                severity="error",
                suggested_fix="Remove or re-add one of the duplicated entries",
            )
            for entry_id, count in counts.items()
            if count > 1
        ]

    def _validate_structure(
        self,
        snapshot: BudgetSnapshot,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Structural validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        id_lists = {
            "income": (i.id for i in snapshot.income),
            "expenses": (e.id for e in snapshot.expenses),
            "one_time_payments": (p.id for p in snapshot.one_time_payments),
            "savings.additions": (a.id for a in snapshot.savings.additions),
            "savings.withdrawals": (w.id for w in snapshot.savings.withdrawals),
            "cash.income": (c.id for c in snapshot.cash.income),
            "cash.expenses": (c.id for c in snapshot.cash.expenses),
            "loans": (a.id for a in snapshot.loans),
            "grocery_bills": (b.id for b in snapshot.grocery_bills),
        }
        for account in snapshot.loans:
            id_lists[f"loans[{account.id}].transactions"] = (
                t.id for t in account.transactions
            )
        for bill in snapshot.grocery_bills:
            id_lists[f"grocery_bills[{bill.id}].items"] = (i.id for i in bill.items)

        for list_name, ids in id_lists.items():
            issues.extend(self._duplicate_issues(list_name, ids))

        for source in snapshot.income:
            if source.amount < 0:
                issues.append(ValidationIssue(
                    field=f"income[{source.id}]",
                    issue_type="negative_amount",
                    message=f"Income '{source.name}' has a negative amount",
                    severity="error",
                    suggested_fix="Enter income as a positive amount",
                ))

        for expense in snapshot.expenses:
            if expense.amount < 0:
                issues.append(ValidationIssue(
                    field=f"expenses[{expense.id}]",
                    issue_type="negative_amount",
                    message=f"Expense '{expense.name}' has a negative amount",
                    severity="error",
                    suggested_fix="Enter expenses as a positive amount",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        snapshot: BudgetSnapshot,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        totals = calculate_totals(snapshot)

        names = {i.name for i in snapshot.income}
        roles = {i.role for i in snapshot.income if i.role}
        for role in (IncomeRole.SALARY, IncomeRole.RENT):
            fallback = ROLE_FALLBACK_NAMES[role]
            if role not in roles and fallback not in names:
                issues.append(ValidationIssue(
                    field="income",
                    issue_type="missing_income_stream",
                    message=(
                        f"No '{fallback}' income entry; its remaining balance "
                        f"counts from zero"
                    ),
                    severity="warning",
                    suggested_fix=f"Add an income entry named '{fallback}'",
                ))

        for payment in snapshot.one_time_payments:
            if payment.total_amount > 0 and payment.paid_amount > payment.total_amount:
                issues.append(ValidationIssue(
                    field=f"one_time_payments[{payment.id}]",
                    issue_type="overpaid",
                    message=f"'{payment.title}' is paid beyond its total",
                    severity="warning",
                    suggested_fix="Check the paid and total amounts",
                ))

        if totals.savings_balance < 0:
            issues.append(ValidationIssue(
                field="savings",
                issue_type="negative_balance",
                message="Savings withdrawals exceed what was saved",
                severity="warning",
            ))

        if totals.closing_cash_balance < 0:
            issues.append(ValidationIssue(
                field="cash",
                issue_type="negative_balance",
                message="More cash was spent than was available",
                severity="warning",
            ))

        if totals.salary_remaining < 0:
            issues.append(ValidationIssue(
                field="expenses",
                issue_type="overcommitted",
                message="Salary-funded expenses exceed the salary",
                severity="info",
            ))

        known_sub_ids = {
            sub.id
            for category in snapshot.grocery_categories
            for sub in category.sub_categories
        }
        for bill in snapshot.grocery_bills:
            for item in bill.items:
                sub_id = item.sub_category_id
                if sub_id and sub_id not in (UNASSIGNED, MISC) and sub_id not in known_sub_ids:
                    issues.append(ValidationIssue(
                        field=f"grocery_bills[{bill.id}].items[{item.id}]",
                        issue_type="unknown_category",
                        message=f"'{item.description}' points at a deleted category",
                        severity="warning",
                        suggested_fix="Re-categorise the item",
                    ))

        max_amount = Decimal(str(self._settings.max_entry_amount))
        amounts = [
            (f"income[{i.id}]", i.amount) for i in snapshot.income
        ] + [
            (f"expenses[{e.id}]", e.amount) for e in snapshot.expenses
        ] + [
            (f"one_time_payments[{p.id}]", p.total_amount)
            for p in snapshot.one_time_payments
        ]
        for field, amount in amounts:
            if amount > max_amount:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="suspicious_value",
                    message=f"Amount ({amount:,.2f}) seems unusually high",
                    severity="warning",
                    suggested_fix="Please verify this amount is correct",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(self, snapshot: BudgetSnapshot) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Stage 2 only runs when stage 1 passes.
        """
        all_issues = []

        structure_valid, structure_issues = self._validate_structure(snapshot)
        all_issues.extend(structure_issues)

        semantic_valid = False
        if structure_valid:
            semantic_valid, semantic_issues = self._validate_semantic(snapshot)
            all_issues.extend(semantic_issues)

        warnings = [
            issue.message for issue in all_issues if issue.severity == "warning"
        ]

        return ValidationResult(
            structure_valid=structure_valid,
            semantic_valid=semantic_valid,
            is_valid=structure_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.
        """
        if result.is_valid and not result.warnings:
            return "✅ Your budget looks consistent."

        lines = []

        if result.has_errors:
            lines.append("❌ Some entries need fixing:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please take a look at:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
