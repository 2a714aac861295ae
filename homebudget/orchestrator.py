"""
Main Orchestrator for Home Budget

This module ties together all the components and defines the
end-to-end flows for:
1. Load → edit → save of the budget snapshot
2. Totals for the dashboard (memoized per snapshot)
3. AI requests (budget summary, grocery bill image, loan screenshot)

DESIGN DECISION: The session owns the current snapshot.
- Edits are pure functions from the editing package; the session swaps
  in the returned snapshot and persists it (like the browser app saving
  on every change)
- A rejected edit leaves the current snapshot untouched
- Every step is audited
"""

from datetime import date
from enum import Enum
from typing import Callable, Optional, Union

import structlog
from pydantic import ValidationError

from homebudget.agents import BudgetAIService, GeminiBudgetAgent
from homebudget.audit import AuditLogger, create_correlation_id
from homebudget.calculations import TotalsCalculator
from homebudget.config import Settings, get_settings
from homebudget.editing import (
    BudgetEditError,
    add_grocery_bill,
    apply_loan_extraction,
    build_grocery_bill,
    image_data_url,
)
from homebudget.models.budget import BudgetSnapshot, BudgetTotals, GroceryBill, default_snapshot
from homebudget.models.extraction import (
    UNAVAILABLE_MESSAGE,
    AIUnavailable,
    LoanScreenshotExtraction,
)
from homebudget.models.validation import ValidationResult
from homebudget.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsClient,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    LocalFileBudgetStorage,
    StorageError,
)
from homebudget.validation import SnapshotValidator


logger = structlog.get_logger(__name__)

EDIT_VERBS = ("add", "update", "remove")

# Editors that change a section rather than a single list entry,
# with the section they touch and the fields they change
SECTION_EDITS = {
    "set_savings_opening_balance": ("savings", ["opening_balance"]),
    "set_cash_opening_balance": ("cash", ["opening_balance"]),
    "set_loan_opening_balance": ("loans", ["opening_balance"]),
    "toggle_loan_transaction_type": ("loans", ["type"]),
    "apply_loan_extraction": ("loans", ["transactions"]),
    "sync_cash_handled": ("cash", ["income", "expenses"]),
    "categorize_grocery_item": ("grocery_bills", ["category_id", "sub_category_id"]),
    "move_grocery_category": ("grocery_categories", ["order"]),
    "move_grocery_subcategory": ("grocery_categories", ["order"]),
}


def _describe_edit(
    fn: Callable,
    args: tuple,
    kwargs: dict,
) -> tuple[str, str, str, list[str]]:
    """
    (verb, list_name, entry_id, fields) for an editing function call.

    add_expense(snapshot, ExpenseItem(id="exp-20")) → ("add", "expense", "exp-20", [])
    set_cash_opening_balance(snapshot, 500) → ("update", "cash", "", ["opening_balance"])
    """
    verb, _, list_name = fn.__name__.partition("_")
    fields = sorted(kwargs)
    if verb not in EDIT_VERBS:
        verb = "update"
        list_name, fields = SECTION_EDITS.get(fn.__name__, (fn.__name__, fields))

    # Keyword values are field changes, except an explicit *_id
    candidates = [*args, *(v for k, v in kwargs.items() if k.endswith("id"))]
    entry_id = ""
    for arg in candidates:
        if isinstance(arg, Enum):
            continue
        if isinstance(arg, str):
            entry_id = arg
            break
        if hasattr(arg, "id"):
            entry_id = str(arg.id)
            break
    return verb, list_name, entry_id, list(fields)


class BudgetSession:
    """
    One household's budget, from load to save.

    Flow:
    1. load() → snapshot from storage (or the default budget)
    2. apply(edit_fn, ...) → new snapshot, saved when autosave is on
    3. totals() → BudgetTotals for the current snapshot
    """

    def __init__(
        self,
        storage: BudgetStorageInterface,
        ai_service: Optional[BudgetAIService] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[SnapshotValidator] = None,
        calculator: Optional[TotalsCalculator] = None,
        autosave: bool = True,
    ):
        self._storage = storage
        self._ai_service = ai_service
        self._audit_logger = audit_logger or AuditLogger()
        self._validator = validator or SnapshotValidator()
        self._calculator = calculator or TotalsCalculator()
        self._autosave = autosave
        self._snapshot = default_snapshot()

    @property
    def snapshot(self) -> BudgetSnapshot:
        """The current snapshot (the default budget until load())."""
        return self._snapshot

    # =========================================================================
    # Persistence
    # =========================================================================

    async def load(self) -> BudgetSnapshot:
        """Load the stored snapshot; absent or unreadable data yields the default."""
        snapshot, from_storage = await self._storage.load_with_status()
        self._snapshot = snapshot
        await self._audit_logger.log_snapshot_loaded(
            backend=self._storage.backend_name,
            defaulted=not from_storage,
        )
        return snapshot

    async def save(self, force: bool = False) -> None:
        """
        Persist the current snapshot.

        If the stored budget could not be read at load time, saving is
        refused (and autosave fails) until force=True confirms that the
        unreadable data may be replaced.

        Raises:
            StorageError: If the backend write fails or is refused
        """
        try:
            await self._storage.save(self._snapshot, force=force)
        except StorageError as e:
            await self._audit_logger.log_save_failed(
                backend=self._storage.backend_name,
                error_message=str(e),
            )
            raise
        await self._audit_logger.log_snapshot_saved(self._storage.backend_name)

    # =========================================================================
    # Editing
    # =========================================================================

    async def apply(self, edit_fn: Callable[..., BudgetSnapshot], *args, **kwargs) -> BudgetSnapshot:
        """
        Apply an editing function to the current snapshot.

        Usage:
            await session.apply(add_expense, ExpenseItem(...))
            await session.apply(update_income, "inc-1", amount=400000)

        Raises:
            BudgetEditError: If the edit is rejected (snapshot unchanged)
            ValidationError: If changed values fail model validation
        """
        try:
            updated = edit_fn(self._snapshot, *args, **kwargs)
        except (BudgetEditError, ValidationError) as e:
            await self._audit_logger.log_edit_rejected(edit_fn.__name__, str(e))
            raise

        self._snapshot = updated

        verb, list_name, entry_id, fields = _describe_edit(edit_fn, args, kwargs)
        if verb == "add":
            await self._audit_logger.log_entry_added(list_name, entry_id)
        elif verb == "remove":
            await self._audit_logger.log_entry_removed(list_name, entry_id)
        else:
            await self._audit_logger.log_entry_updated(list_name, entry_id, fields)

        if self._autosave:
            await self.save()
        return updated

    # =========================================================================
    # Derived views
    # =========================================================================

    def totals(self) -> BudgetTotals:
        """Totals for the current snapshot, recomputed only when it changes."""
        return self._calculator(self._snapshot)

    async def validate(self) -> ValidationResult:
        result = self._validator.validate(self._snapshot)
        await self._audit_logger.log_validation(result)
        return result

    # =========================================================================
    # AI
    # =========================================================================

    async def request_ai_summary(self) -> str:
        """Ask for financial tips; never raises, falls back to a fixed message."""
        correlation_id = create_correlation_id()
        await self._audit_logger.log_ai_summary_requested(correlation_id)

        if self._ai_service is None:
            await self._audit_logger.log_ai_unavailable(
                "summary", "AI service not configured", correlation_id
            )
            return UNAVAILABLE_MESSAGE

        summary = await self._ai_service.summarize_budget(self._snapshot)
        if summary == UNAVAILABLE_MESSAGE:
            await self._audit_logger.log_ai_unavailable(
                "summary", "Provider call failed", correlation_id
            )
        else:
            await self._audit_logger.log_ai_summary_generated(len(summary), correlation_id)
        return summary

    async def import_grocery_bill_image(
        self,
        image_bytes: bytes,
        mime_type: str = "image/jpeg",
        today: Optional[date] = None,
    ) -> Union[GroceryBill, AIUnavailable]:
        """
        Read a grocery bill image and add it to the budget.

        Returns the new bill, or AIUnavailable (budget unchanged).
        """
        correlation_id = create_correlation_id()
        if self._ai_service is None:
            outcome = AIUnavailable(reason="AI service not configured")
        else:
            outcome = await self._ai_service.extract_grocery_bill(
                image_bytes,
                mime_type,
                self._snapshot.grocery_categories,
                self._snapshot.mapping_overrides,
            )

        if isinstance(outcome, AIUnavailable):
            await self._audit_logger.log_ai_unavailable(
                "grocery_bill", outcome.reason, correlation_id
            )
            return outcome

        await self._audit_logger.log_ai_extraction_completed(
            "grocery_bill", len(outcome.items), correlation_id
        )
        bill = build_grocery_bill(
            outcome,
            self._snapshot.grocery_categories,
            today,
            image_url=image_data_url(image_bytes, mime_type),
        )
        await self.apply(add_grocery_bill, bill)
        return bill

    async def import_loan_screenshot(
        self,
        image_bytes: bytes,
        mime_type: str = "image/png",
        today: Optional[date] = None,
    ) -> Union[LoanScreenshotExtraction, AIUnavailable]:
        """
        Read a loan screenshot and file its payments under loan accounts.

        Returns the extraction, or AIUnavailable (budget unchanged).
        """
        correlation_id = create_correlation_id()
        if self._ai_service is None:
            outcome = AIUnavailable(reason="AI service not configured")
        else:
            outcome = await self._ai_service.extract_loan_screenshot(image_bytes, mime_type)

        if isinstance(outcome, AIUnavailable):
            await self._audit_logger.log_ai_unavailable(
                "loan_screenshot", outcome.reason, correlation_id
            )
            return outcome

        await self._audit_logger.log_ai_extraction_completed(
            "loan_screenshot", len(outcome.transactions), correlation_id
        )
        await self.apply(
            apply_loan_extraction,
            outcome,
            today=today,
            image_url=image_data_url(image_bytes, mime_type),
        )
        return outcome


def create_app_components(
    settings: Optional[Settings] = None,
) -> BudgetSession:
    """
    Factory function to create a session from configuration.

    The storage backend comes from BUDGET_STORAGE_BACKEND. Without a
    Gemini API key the session still works; AI requests fall back.
    """
    settings = settings or get_settings()
    storage_settings = settings.storage

    audit_storage: Optional[AuditStorageInterface] = None
    storage: BudgetStorageInterface
    if storage_settings.storage_backend == "sheets":
        sheets_client = GoogleSheetsClient(settings.google_sheets)
        storage = GoogleSheetsBudgetStorage(sheets_client, storage_settings.storage_key)
        audit_storage = GoogleSheetsAuditStorage(sheets_client)
    elif storage_settings.storage_backend == "memory":
        storage = InMemoryBudgetStorage(storage_settings.storage_key)
        audit_storage = InMemoryAuditStorage()
    else:
        storage = LocalFileBudgetStorage(
            storage_settings.data_file, storage_settings.storage_key
        )

    ai_service: Optional[BudgetAIService] = None
    try:
        ai_service = GeminiBudgetAgent(settings.gemini)
    except ValidationError as e:
        logger.warning("gemini_not_configured", error_count=e.error_count())

    return BudgetSession(
        storage=storage,
        ai_service=ai_service,
        audit_logger=AuditLogger(audit_storage),
        validator=SnapshotValidator(settings.app),
    )
