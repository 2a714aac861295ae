"""
AI Extraction Models

CRITICAL: Everything here is PROPOSED data read off an image by the
AI service. It is NOT trusted: it is converted into budget entries by
the editing layer, where ids are assigned and categories resolved.

All fields are optional or defaulted because the model might fail to
read some of them.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


UNAVAILABLE_MESSAGE = "AI Analysis temporarily unavailable."
NO_INSIGHTS_MESSAGE = "Could not generate insights."


def _lenient_date(v):
    """Unreadable dates become None rather than failing the extraction."""
    if v in (None, ""):
        return None
    if isinstance(v, date):
        return v
    try:
        return date.fromisoformat(str(v)[:10])
    except ValueError:
        return None


class ExtractedGroceryItem(BaseModel):
    """One line item as read off a grocery bill."""
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    description: Optional[str] = None
    quantity: Decimal = Field(default=Decimal("1"))
    unit: Optional[str] = None
    unit_cost: Decimal = Field(default=Decimal("0"), alias="unitCost")
    total_cost: Decimal = Field(default=Decimal("0"), alias="totalCost")
    category_name: Optional[str] = Field(default=None, alias="categoryName")
    sub_category_name: Optional[str] = Field(default=None, alias="subCategoryName")

    @field_validator("quantity", "unit_cost", "total_cost", mode="before")
    @classmethod
    def unreadable_number_is_zero(cls, v):
        if v in (None, ""):
            return Decimal("0")
        return v


class GroceryBillExtraction(BaseModel):
    """Result of reading a grocery bill image."""
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    extracted_at: datetime = Field(default_factory=datetime.utcnow)
    shop_name: Optional[str] = Field(default=None, alias="shopName")
    bill_date: Optional[date] = Field(default=None, alias="date")
    items: list[ExtractedGroceryItem] = Field(default_factory=list)

    @field_validator("bill_date", mode="before")
    @classmethod
    def parse_bill_date(cls, v):
        return _lenient_date(v)

    @property
    def total_amount(self) -> Decimal:
        return sum((item.total_cost for item in self.items), Decimal("0"))


class ExtractedLoanTransaction(BaseModel):
    """A payment read off a transfer/loan screenshot."""
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    tx_date: Optional[date] = Field(default=None, alias="date")
    description: Optional[str] = None
    amount: Decimal = Field(default=Decimal("0"))
    suggested_account: Optional[str] = Field(default=None, alias="suggestedAccount")

    @field_validator("tx_date", mode="before")
    @classmethod
    def parse_tx_date(cls, v):
        return _lenient_date(v)

    @field_validator("amount", mode="before")
    @classmethod
    def unreadable_amount_is_zero(cls, v):
        if v in (None, ""):
            return Decimal("0")
        return v


class LoanScreenshotExtraction(BaseModel):
    """Result of reading a loan evidence screenshot."""
    model_config = ConfigDict(populate_by_name=True)

    extracted_at: datetime = Field(default_factory=datetime.utcnow)
    transactions: list[ExtractedLoanTransaction] = Field(default_factory=list)


class AIUnavailable(BaseModel):
    """
    The single recoverable failure outcome of every AI capability.

    DESIGN DECISION: Network, auth and malformed-response failures are
    not propagated as exceptions. Callers check for this type and show
    the message.
    """

    reason: str = Field(..., description="What went wrong, for logs")
    message: str = Field(default=UNAVAILABLE_MESSAGE)
