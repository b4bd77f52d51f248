"""Prompt construction for the three insight flows.

Templates live as package data under ``spending_insights/prompts`` and use
``{{PLACEHOLDER}}`` markers. Each builder embeds the formatted transactions
between ``BEGIN_TRANSACTIONS_JSON`` / ``END_TRANSACTIONS_JSON`` markers and
returns the full prompt text; :func:`build_messages` wraps it as the single
user message sent to the model.
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from datetime import datetime
from functools import cache
from importlib.resources import files
from typing import Any

from .formatting import (
    format_transactions_for_model,
    monthly_averages,
    recurring_savings,
    spending_by_category,
)
from .models import Transaction

SPENDING_ANALYSIS = "spending-analysis"
BUDGET_RECOMMENDATIONS = "budget-recommendations"
SAVINGS_OPPORTUNITIES = "savings-opportunities"

PROMPT_NAMES: tuple[str, ...] = (SPENDING_ANALYSIS, BUDGET_RECOMMENDATIONS, SAVINGS_OPPORTUNITIES)


@cache
def load_prompt(name: str) -> str:
    """Return the raw template text for ``name``."""

    if name not in PROMPT_NAMES:
        raise ValueError(f"Unknown prompt template: {name!r}")
    return files(__package__).joinpath("prompts", f"{name}.md").read_text(encoding="utf-8")


_PLACEHOLDER = re.compile(r"\{\{([A-Z_]+)\}\}")


def _render(name: str, values: dict[str, str]) -> str:
    # Single pass: substituted text is never scanned for placeholders again.
    return _PLACEHOLDER.sub(lambda m: values.get(m.group(1), m.group(0)), load_prompt(name))


def _pretty(obj: Any) -> str:
    return json.dumps(obj, indent=2, ensure_ascii=False)


def _format_income(monthly_income: float | None) -> str:
    if monthly_income:
        return f"Monthly income: ${monthly_income:.2f}"
    return "Monthly income: Not provided"


def build_spending_analysis_prompt(
    transactions: Sequence[Transaction], *, now: datetime | None = None
) -> str:
    return _render(
        SPENDING_ANALYSIS,
        {
            "TRANSACTIONS_JSON": format_transactions_for_model(transactions, now=now),
            "SPENDING_BY_CATEGORY": _pretty(spending_by_category(transactions)),
            "MONTHLY_AVERAGES": _pretty(monthly_averages(transactions)),
        },
    )


def build_budget_recommendations_prompt(
    transactions: Sequence[Transaction],
    monthly_income: float | None = None,
    *,
    now: datetime | None = None,
) -> str:
    return _render(
        BUDGET_RECOMMENDATIONS,
        {
            "TRANSACTIONS_JSON": format_transactions_for_model(transactions, now=now),
            "SPENDING_BY_CATEGORY": _pretty(spending_by_category(transactions)),
            "MONTHLY_AVERAGES": _pretty(monthly_averages(transactions)),
            "MONTHLY_INCOME": _format_income(monthly_income),
        },
    )


def build_savings_opportunities_prompt(
    transactions: Sequence[Transaction], *, now: datetime | None = None
) -> str:
    return _render(
        SAVINGS_OPPORTUNITIES,
        {
            "TRANSACTIONS_JSON": format_transactions_for_model(transactions, now=now),
            "RECURRING_EXPENSES": _pretty(recurring_savings(transactions).to_payload()),
        },
    )


def build_messages(prompt: str) -> list[dict[str, str]]:
    """Wrap a prompt as the role-tagged message list for a chat completion."""

    return [{"role": "user", "content": prompt}]


__all__ = [
    "BUDGET_RECOMMENDATIONS",
    "PROMPT_NAMES",
    "SAVINGS_OPPORTUNITIES",
    "SPENDING_ANALYSIS",
    "build_budget_recommendations_prompt",
    "build_messages",
    "build_savings_opportunities_prompt",
    "build_spending_analysis_prompt",
    "load_prompt",
]
