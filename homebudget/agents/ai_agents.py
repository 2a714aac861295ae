"""
AI Agents for Home Budget

CRITICAL BOUNDARIES:

1. BUDGET SUMMARY:
   - CAN: Turn the income, expense and one-time payment lists into tips
   - CANNOT: Change the budget
   - Result is display text only; it never feeds back into the totals

2. GROCERY BILL / LOAN SCREENSHOT EXTRACTION:
   - CAN: Read line items, dates and amounts off an image
   - CAN: Suggest a grocery category/sub-category by name
   - CANNOT: Persist anything; the editing layer turns an extraction
     into entries, assigns ids and resolves category names

Every capability degrades to a fixed, recoverable outcome: the summary
falls back to a fixed message and extractions return AIUnavailable.
Network, auth and malformed-JSON failures never escape this module.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Optional, Union

import google.generativeai as genai
import structlog
from pydantic import ValidationError

from homebudget.config import GeminiSettings, get_settings
from homebudget.models.budget import BudgetSnapshot, CategoryOverride, GroceryCategory
from homebudget.models.extraction import (
    NO_INSIGHTS_MESSAGE,
    UNAVAILABLE_MESSAGE,
    AIUnavailable,
    GroceryBillExtraction,
    LoanScreenshotExtraction,
)


logger = structlog.get_logger(__name__)


GroceryExtractionOutcome = Union[GroceryBillExtraction, AIUnavailable]
LoanExtractionOutcome = Union[LoanScreenshotExtraction, AIUnavailable]


class BudgetAIService(ABC):
    """
    The AI capabilities the budget uses.

    Implementations must not raise for provider failures.
    """

    @abstractmethod
    async def summarize_budget(self, snapshot: BudgetSnapshot) -> str:
        """
        Produce 3-5 short financial tips for the budget.

        Returns the fixed unavailable message on any failure.
        """
        pass

    @abstractmethod
    async def extract_grocery_bill(
        self,
        image_bytes: bytes,
        mime_type: str,
        categories: list[GroceryCategory],
        overrides: Optional[dict[str, CategoryOverride]] = None,
    ) -> GroceryExtractionOutcome:
        """Read shop, date and line items off a grocery bill image."""
        pass

    @abstractmethod
    async def extract_loan_screenshot(
        self,
        image_bytes: bytes,
        mime_type: str,
    ) -> LoanExtractionOutcome:
        """Read payments off a transfer or loan screenshot."""
        pass


# =============================================================================
# PROMPTS
# =============================================================================

def build_summary_prompt(snapshot: BudgetSnapshot) -> str:
    """Prompt for the budget summary; only the monthly lists are sent."""
    def dump(entries) -> str:
        return json.dumps(
            [entry.model_dump(mode="json", by_alias=True) for entry in entries]
        )

    return f"""Analyze the following monthly budget and provide 3-5 concise, actionable financial tips.
Income: {dump(snapshot.income)}
Monthly Expenses: {dump(snapshot.expenses)}
One-time Payments: {dump(snapshot.one_time_payments)}
Format the output as a professional brief with clear bullet points."""


def build_grocery_prompt(
    categories: list[GroceryCategory],
    overrides: Optional[dict[str, CategoryOverride]] = None,
) -> str:
    category_context = "\n".join(
        f"{c.name}: [{', '.join(s.name for s in c.sub_categories)}]"
        for c in categories
    )

    hints = ""
    if overrides:
        hint_lines = "\n".join(
            f'- "{raw}" -> {o.category_name} / {o.sub_category_name}'
            for raw, o in overrides.items()
        )
        hints = f"""
The user has corrected these items before. When an item description
matches one of them, use the same category and subcategory:
{hint_lines}
"""

    return f"""Analyze this grocery bill image. Extract all items.
For each item, determine its category and subcategory based on this list:
{category_context}
{hints}
Return a JSON object with:
- shopName (string)
- date (string, YYYY-MM-DD)
- items (array):
  - description (string)
  - quantity (number)
  - unit (string, e.g., kg, g, pkt, unit)
  - unitCost (number)
  - totalCost (number)
  - categoryName (matching one from the list)
  - subCategoryName (matching one from the list)

If a value cannot be read, use null. Do NOT guess amounts."""


LOAN_SCREENSHOT_PROMPT = """Analyze this screenshot of a bank transfer or loan statement.
Extract every payment it shows.

Return a JSON object with:
- transactions (array):
  - date (string, YYYY-MM-DD)
  - description (string)
  - amount (number, always positive)
  - suggestedAccount (string, the person or lender the money relates to)

If a value cannot be read, use null. Do NOT guess amounts."""


def _parse_json(text: str) -> Any:
    """Parse a JSON response, tolerating a Markdown code fence around it."""
    text = (text or "").strip()
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise ValueError("No JSON object in response")
    return json.loads(text[start:end])


# =============================================================================
# GEMINI IMPLEMENTATION
# =============================================================================

class GeminiBudgetAgent(BudgetAIService):
    """
    BudgetAIService backed by Google Gemini.

    A pre-built model can be injected (tests pass a fake exposing
    generate_content_async); otherwise one is configured from settings.
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Optional[Any] = None,
    ):
        self._settings = settings or get_settings().gemini
        if model is None:
            model = self._configure_genai()
        self._model = model

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        return genai.GenerativeModel(model_name=self._settings.model_name)

    def _summary_config(self) -> dict:
        return {
            "temperature": self._settings.temperature,
            "max_output_tokens": self._settings.max_tokens,
        }

    def _extraction_config(self) -> dict:
        return {
            "temperature": self._settings.extraction_temperature,
            "max_output_tokens": self._settings.max_tokens,
            "response_mime_type": "application/json",
        }

    async def summarize_budget(self, snapshot: BudgetSnapshot) -> str:
        prompt = build_summary_prompt(snapshot)
        try:
            response = await self._model.generate_content_async(
                prompt,
                generation_config=self._summary_config(),
            )
            text = (response.text or "").strip()
        except Exception as e:
            logger.warning("ai_summary_failed", error=str(e))
            return UNAVAILABLE_MESSAGE

        return text or NO_INSIGHTS_MESSAGE

    async def _generate_json(
        self,
        prompt: str,
        image_bytes: bytes,
        mime_type: str,
    ) -> Any:
        response = await self._model.generate_content_async(
            [prompt, {"mime_type": mime_type, "data": image_bytes}],
            generation_config=self._extraction_config(),
        )
        return _parse_json(response.text)

    async def extract_grocery_bill(
        self,
        image_bytes: bytes,
        mime_type: str,
        categories: list[GroceryCategory],
        overrides: Optional[dict[str, CategoryOverride]] = None,
    ) -> GroceryExtractionOutcome:
        prompt = build_grocery_prompt(categories, overrides)
        try:
            data = await self._generate_json(prompt, image_bytes, mime_type)
            extraction = GroceryBillExtraction.model_validate(data)
        except (ValueError, ValidationError) as e:
            logger.warning("grocery_extraction_malformed", error=str(e))
            return AIUnavailable(reason=f"Malformed response: {e}")
        except Exception as e:
            logger.warning("grocery_extraction_failed", error=str(e))
            return AIUnavailable(reason=str(e))

        logger.info(
            "grocery_extraction_completed",
            item_count=len(extraction.items),
            shop_name=extraction.shop_name,
        )
        return extraction

    async def extract_loan_screenshot(
        self,
        image_bytes: bytes,
        mime_type: str,
    ) -> LoanExtractionOutcome:
        try:
            data = await self._generate_json(
                LOAN_SCREENSHOT_PROMPT, image_bytes, mime_type
            )
            extraction = LoanScreenshotExtraction.model_validate(data)
        except (ValueError, ValidationError) as e:
            logger.warning("loan_extraction_malformed", error=str(e))
            return AIUnavailable(reason=f"Malformed response: {e}")
        except Exception as e:
            logger.warning("loan_extraction_failed", error=str(e))
            return AIUnavailable(reason=str(e))

        logger.info(
            "loan_extraction_completed",
            transaction_count=len(extraction.transactions),
        )
        return extraction
