"""
Tests for the Gemini budget agent.

The Gemini model is replaced with a fake; no real API calls.
"""

import asyncio
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from homebudget.agents import GeminiBudgetAgent, build_grocery_prompt, build_summary_prompt
from homebudget.config import GeminiSettings
from homebudget.models import (
    NO_INSIGHTS_MESSAGE,
    UNAVAILABLE_MESSAGE,
    AIUnavailable,
    CategoryOverride,
    GroceryBillExtraction,
    LoanScreenshotExtraction,
    default_grocery_categories,
    default_snapshot,
)


def run(coro):
    return asyncio.run(coro)


class FakeModel:
    """Stands in for genai.GenerativeModel."""

    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def generate_content_async(self, contents, generation_config=None):
        self.calls.append((contents, generation_config))
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.text)


def make_agent(**model_kwargs) -> tuple[GeminiBudgetAgent, FakeModel]:
    model = FakeModel(**model_kwargs)
    agent = GeminiBudgetAgent(settings=GeminiSettings(api_key="test-key"), model=model)
    return agent, model


GROCERY_JSON = """```json
{
  "shopName": "Keells Super",
  "date": "2024-06-02",
  "items": [
    {"description": "Fresh Milk 1L", "quantity": 2, "unit": "pkt",
     "unitCost": 450, "totalCost": 900,
     "categoryName": "Dairy & Eggs", "subCategoryName": "Milk"},
    {"description": "Tomatoes", "quantity": 0.5, "unit": "kg",
     "unitCost": 600, "totalCost": 300,
     "categoryName": "Produce", "subCategoryName": "Vegetables"}
  ]
}
```"""


class TestSummarizeBudget:
    """Budget summary and its fallbacks."""

    def test_returns_model_text(self):
        agent, model = make_agent(text="  - Cut entertainment spend\n")
        summary = run(agent.summarize_budget(default_snapshot()))

        assert summary == "- Cut entertainment spend"
        prompt, config = model.calls[0]
        assert prompt.startswith("Analyze the following monthly budget")
        assert "response_mime_type" not in config

    def test_empty_response_has_fixed_message(self):
        agent, _ = make_agent(text="")
        assert run(agent.summarize_budget(default_snapshot())) == NO_INSIGHTS_MESSAGE

    def test_failure_has_fixed_message(self):
        agent, _ = make_agent(error=RuntimeError("403 API key not valid"))
        assert run(agent.summarize_budget(default_snapshot())) == UNAVAILABLE_MESSAGE

    def test_prompt_contains_monthly_lists_only(self):
        prompt = build_summary_prompt(default_snapshot())
        assert '"name": "Salary"' in prompt
        assert "School Fees" in prompt
        assert "groceryCategories" not in prompt


class TestExtractGroceryBill:
    """Grocery bill image extraction."""

    def test_parses_fenced_json(self):
        agent, model = make_agent(text=GROCERY_JSON)
        result = run(agent.extract_grocery_bill(
            b"\x89PNG", "image/png", default_grocery_categories()
        ))

        assert isinstance(result, GroceryBillExtraction)
        assert result.shop_name == "Keells Super"
        assert result.bill_date == date(2024, 6, 2)
        assert result.items[1].quantity == Decimal("0.5")
        assert result.total_amount == Decimal("1200")

        contents, config = model.calls[0]
        assert contents[1] == {"mime_type": "image/png", "data": b"\x89PNG"}
        assert config["response_mime_type"] == "application/json"

    def test_unreadable_date_becomes_none(self):
        agent, _ = make_agent(text='{"shopName": "Shop", "date": "02/06", "items": []}')
        result = run(agent.extract_grocery_bill(b"img", "image/jpeg", []))
        assert isinstance(result, GroceryBillExtraction)
        assert result.bill_date is None

    def test_non_json_is_unavailable(self):
        agent, _ = make_agent(text="Sorry, I can't read this image.")
        result = run(agent.extract_grocery_bill(b"img", "image/jpeg", []))
        assert isinstance(result, AIUnavailable)
        assert result.message == UNAVAILABLE_MESSAGE
        assert "Malformed" in result.reason

    def test_wrong_shape_is_unavailable(self):
        agent, _ = make_agent(text='{"items": "none"}')
        result = run(agent.extract_grocery_bill(b"img", "image/jpeg", []))
        assert isinstance(result, AIUnavailable)

    def test_provider_error_is_unavailable(self):
        agent, _ = make_agent(error=ConnectionResetError("network down"))
        result = run(agent.extract_grocery_bill(b"img", "image/jpeg", []))
        assert isinstance(result, AIUnavailable)
        assert result.reason == "network down"

    def test_prompt_lists_categories_and_overrides(self):
        prompt = build_grocery_prompt(
            default_grocery_categories(),
            {"BASMATHI RICE 5KG": CategoryOverride(
                category_name="Staples", sub_category_name="Rice",
            )},
        )
        assert "Staples: [Rice, Flour, Sugar, Lentils, Oil]" in prompt
        assert '"BASMATHI RICE 5KG" -> Staples / Rice' in prompt

    def test_prompt_without_overrides(self):
        prompt = build_grocery_prompt(default_grocery_categories())
        assert "corrected these items" not in prompt


class TestExtractLoanScreenshot:
    """Loan screenshot extraction."""

    def test_parses_transactions(self):
        agent, _ = make_agent(text=(
            '{"transactions": [{"date": "2024-05-02", "description": "CEFT transfer",'
            ' "amount": 25000, "suggestedAccount": "Uncle Sunil"}]}'
        ))
        result = run(agent.extract_loan_screenshot(b"img", "image/png"))

        assert isinstance(result, LoanScreenshotExtraction)
        [tx] = result.transactions
        assert tx.tx_date == date(2024, 5, 2)
        assert tx.amount == Decimal("25000")
        assert tx.suggested_account == "Uncle Sunil"

    def test_null_amount_is_zero(self):
        agent, _ = make_agent(text='{"transactions": [{"amount": null}]}')
        result = run(agent.extract_loan_screenshot(b"img", "image/png"))
        assert result.transactions[0].amount == 0

    def test_failure_is_unavailable(self):
        agent, _ = make_agent(error=ValueError("blocked by safety filters"))
        result = run(agent.extract_loan_screenshot(b"img", "image/png"))
        assert isinstance(result, AIUnavailable)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
