"""AI Agents package."""

from homebudget.agents.ai_agents import (
    BudgetAIService,
    GeminiBudgetAgent,
    build_grocery_prompt,
    build_summary_prompt,
)

__all__ = [
    "BudgetAIService",
    "GeminiBudgetAgent",
    "build_grocery_prompt",
    "build_summary_prompt",
]
