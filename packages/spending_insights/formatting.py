"""Reduce transaction history to bounded payloads for prompting.

The prompt payload only ever contains expenses (positive amounts) from the
trailing 30 days, newest first, capped at 50 rows. Income is summarized
separately for budget context. The aggregate helpers below feed the summary
sections of the prompts.

All functions are pure; "now" is a parameter so tests can pin it.
"""

from __future__ import annotations

import json
import math
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, time, timedelta
from decimal import Decimal
from typing import Any, NamedTuple

from .models import IncomeSummary, Transaction

PROMPT_WINDOW_DAYS: int = 30
MAX_PROMPT_TRANSACTIONS: int = 50
UNCATEGORIZED: str = "uncategorized"


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(UTC)


def _in_window(tx: Transaction, now: datetime) -> bool:
    # A row dated D counts from midnight of D, so the cutoff is exact to the second.
    start = datetime.combine(tx.date, time.min, tzinfo=now.tzinfo)
    return start >= now - timedelta(days=PROMPT_WINDOW_DAYS)


def project_expenses(
    transactions: Iterable[Transaction], *, now: datetime | None = None
) -> list[dict[str, Any]]:
    """Return the prompt projection of recent expenses.

    Keeps ``amount > 0`` rows dated within the last 30 days, newest first
    (ties keep input order), truncated to 50. Each row is projected to
    ``{amount, category, date, name}`` with a missing category reported as
    ``"uncategorized"``.
    """

    current = _now(now)
    expenses = [t for t in transactions if t.is_expense and _in_window(t, current)]
    expenses.sort(key=lambda t: t.date, reverse=True)
    return [
        {
            "amount": float(t.amount),
            "category": t.category or UNCATEGORIZED,
            "date": t.date.isoformat(),
            "name": t.name,
        }
        for t in expenses[:MAX_PROMPT_TRANSACTIONS]
    ]


def format_transactions_for_model(
    transactions: Iterable[Transaction], *, now: datetime | None = None
) -> str:
    """Serialize :func:`project_expenses` as indented JSON for the prompt body."""

    return json.dumps(project_expenses(transactions, now=now), indent=2, ensure_ascii=False)


def summarize_income(
    transactions: Iterable[Transaction], *, now: datetime | None = None
) -> IncomeSummary:
    """Total and count of income (``amount < 0``) over the last 30 days."""

    current = _now(now)
    amounts = [abs(t.amount) for t in transactions if t.is_income and _in_window(t, current)]
    return IncomeSummary(total_income=sum(amounts, Decimal("0")), count=len(amounts))


def estimate_monthly_income(transactions: Sequence[Transaction]) -> float | None:
    """Rough monthly income over a 90-day load: total income divided by 3.

    Returns ``None`` when no income is present.
    """

    total = sum((abs(t.amount) for t in transactions if t.is_income), Decimal("0"))
    if not total:
        return None
    return float(total / 3)


# ---------------------------------------------------------------------------
# Aggregates used as prompt context
# ---------------------------------------------------------------------------


def spending_by_category(transactions: Iterable[Transaction]) -> dict[str, float]:
    """Expense totals per category label, in first-seen order."""

    totals: dict[str, Decimal] = {}
    for t in transactions:
        if not t.is_expense:
            continue
        key = t.category or UNCATEGORIZED
        totals[key] = totals.get(key, Decimal("0")) + t.amount
    return {k: float(v) for k, v in totals.items()}


def monthly_averages(transactions: Sequence[Transaction]) -> dict[str, float]:
    """Category totals divided by a rough month count.

    The month count is ``ceil(len(transactions) / 30)`` (at least 1): a row
    count heuristic, not a calendar span.
    """

    months = max(1, math.ceil(len(transactions) / 30))
    return {k: v / months for k, v in spending_by_category(transactions).items()}


class RecurringOpportunity(NamedTuple):
    merchant: str
    monthly_amount: float
    yearly_amount: float
    frequency: int


class RecurringSavings(NamedTuple):
    monthly_savings: float
    yearly_savings: float
    opportunities: list[RecurringOpportunity]

    def to_payload(self) -> dict[str, Any]:
        return {
            "monthlySavings": self.monthly_savings,
            "yearlySavings": self.yearly_savings,
            "opportunities": [
                {
                    "merchant": o.merchant,
                    "monthlyAmount": o.monthly_amount,
                    "yearlyAmount": o.yearly_amount,
                    "frequency": o.frequency,
                }
                for o in self.opportunities
            ],
        }


def find_recurring_transactions(transactions: Sequence[Transaction]) -> list[Transaction]:
    """Transactions whose merchant appears at least twice (likely subscriptions)."""

    counts: dict[str, int] = defaultdict(int)
    for t in transactions:
        if t.merchant_name:
            counts[t.merchant_name] += 1
    recurring: list[Transaction] = []
    for merchant, count in counts.items():
        if count >= 2:
            recurring.extend(t for t in transactions if t.merchant_name == merchant)
    return recurring


def recurring_savings(transactions: Sequence[Transaction]) -> RecurringSavings:
    """Estimate monthly/yearly spend on recurring merchants.

    Per merchant the monthly estimate is ``total / max(1, count / 3)``.
    """

    per_merchant: dict[str, list[Decimal]] = defaultdict(list)
    for t in find_recurring_transactions(transactions):
        if t.merchant_name:
            per_merchant[t.merchant_name].append(abs(t.amount))

    opportunities: list[RecurringOpportunity] = []
    for merchant, amounts in per_merchant.items():
        monthly = float(sum(amounts, Decimal("0"))) / max(1.0, len(amounts) / 3)
        opportunities.append(
            RecurringOpportunity(
                merchant=merchant,
                monthly_amount=monthly,
                yearly_amount=monthly * 12,
                frequency=len(amounts),
            )
        )
    monthly_total = sum(o.monthly_amount for o in opportunities)
    return RecurringSavings(
        monthly_savings=monthly_total,
        yearly_savings=monthly_total * 12,
        opportunities=opportunities,
    )


__all__ = [
    "MAX_PROMPT_TRANSACTIONS",
    "PROMPT_WINDOW_DAYS",
    "RecurringOpportunity",
    "RecurringSavings",
    "estimate_monthly_income",
    "find_recurring_transactions",
    "format_transactions_for_model",
    "monthly_averages",
    "project_expenses",
    "recurring_savings",
    "spending_by_category",
    "summarize_income",
]
