"""Data models for ``spending_insights``.

Transactions arrive from the store as plain frozen dataclasses. Everything the
language model produces is validated through pydantic models before it is
trusted: :class:`Insight` for spending-analysis entries and the stored batch,
:class:`BudgetRecommendation` and :class:`SavingsOpportunity` for the two
transient shapes that are converted into insights before storage.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal, NamedTuple

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

type InsightCategory = Literal["spending", "budget", "savings", "income", "general", "cost reduction"]
type Priority = Literal["high", "medium", "low"]
type Difficulty = Literal["easy", "medium", "hard"]

INSIGHT_CATEGORIES: tuple[str, ...] = (
    "spending",
    "budget",
    "savings",
    "income",
    "general",
    "cost reduction",
)
PRIORITIES: tuple[str, ...] = ("high", "medium", "low")

# Sort weight per priority; higher sorts first.
PRIORITY_WEIGHT: dict[str, int] = {"high": 3, "medium": 2, "low": 1}

DEFAULT_CONFIDENCE: float = 0.8


# ---------------------------------------------------------------------------
# Transactions (read side of the persistence boundary)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Transaction:
    """A synced bank transaction.

    ``amount`` follows the aggregator's sign convention: positive is money out
    (expense), negative is money in (income).
    """

    amount: Decimal
    date: date
    name: str
    created_at: datetime
    category: str | None = None
    pending: bool = False
    merchant_name: str | None = None

    @property
    def is_expense(self) -> bool:
        return self.amount > 0

    @property
    def is_income(self) -> bool:
        return self.amount < 0


class IncomeSummary(NamedTuple):
    total_income: Decimal
    count: int


# ---------------------------------------------------------------------------
# Model output shapes
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    """Accept and emit the camelCase keys the prompts ask the model for."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


class Insight(_CamelModel):
    """A single AI-generated financial observation or recommendation."""

    title: str
    description: str
    category: InsightCategory
    priority: Priority
    potential_savings: float | None = None
    confidence: float = DEFAULT_CONFIDENCE

    @field_validator("title", "description")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("must be a non-empty string")
        return v

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, v: Any) -> float:
        # A missing or zero confidence falls back to the default.
        if not v:
            return DEFAULT_CONFIDENCE
        return min(1.0, max(0.0, float(v)))

    def to_record(self) -> dict[str, Any]:
        """Return the JSON-ready mapping stored in the ``content`` column."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class BudgetRecommendation(_CamelModel):
    category: str
    suggested_amount: float
    current_average: float
    reasoning: str
    priority: Priority

    @field_validator("reasoning")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("must be a non-empty string")
        return v


class SavingsOpportunity(_CamelModel):
    title: str
    description: str
    potential_monthly_savings: float
    potential_yearly_savings: float
    difficulty: Difficulty
    category: str

    @field_validator("title", "description")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("must be a non-empty string")
        return v


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class AllInsights(NamedTuple):
    """Per-flow outputs of one generation plus the merged, sorted list."""

    spending_insights: list[Insight]
    budget_recommendations: list[BudgetRecommendation]
    savings_opportunities: list[SavingsOpportunity]
    all_insights: list[Insight]


@dataclass(frozen=True, slots=True)
class StoredInsight:
    """An insight row read back from the store."""

    id: str
    user_id: str
    type: str
    created_at: datetime
    updated_at: datetime
    insight: Insight


@dataclass(frozen=True, slots=True)
class GenerationResult:
    """Caller-facing result of a generate/refresh request.

    ``stored`` holds the persisted rows when the batch was saved (or the
    cached rows when reused); it is empty when persistence failed, in which
    case ``warning`` explains why.
    """

    insights: list[Insight]
    from_cache: bool
    generated_at: datetime
    stored: tuple[StoredInsight, ...] = ()
    message: str | None = None
    warning: str | None = None


__all__ = [
    "AllInsights",
    "BudgetRecommendation",
    "DEFAULT_CONFIDENCE",
    "Difficulty",
    "GenerationResult",
    "INSIGHT_CATEGORIES",
    "IncomeSummary",
    "Insight",
    "InsightCategory",
    "PRIORITIES",
    "PRIORITY_WEIGHT",
    "Priority",
    "SavingsOpportunity",
    "StoredInsight",
    "Transaction",
]
