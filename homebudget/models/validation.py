"""
Validation Models

Results of checking a budget snapshot for consistency problems.
Validation never fixes anything; it only reports.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Section or entry with the issue (e.g. 'expenses[exp-3]')"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'duplicate_id', 'negative_amount', 'overpaid')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage snapshot validation.

    Stage 1: Structural validation (ids, amounts)
    Stage 2: Semantic validation (balances, references, sanity)
    """

    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    structure_valid: bool = Field(
        ...,
        description="Did structural validation pass?"
    )
    semantic_valid: bool = Field(
        ...,
        description="Did semantic validation pass?"
    )
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    # Warnings don't block but should be shown
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
