"""Staleness policy for stored insights.

At most one generation per 24h window unless 10 or more new transactions
arrive. Concretely, stored insights are reused when either

(a) insights exist and were generated within the last ``window``, or
(b) insights exist, a last-generated time is known, and fewer than
    ``new_transaction_threshold`` transactions were created after it.

The clauses are independent (OR). Otherwise a full generation runs.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from .generation import InsightGenerator
from .logging_setup import get_logger
from .models import GenerationResult, Insight, Transaction

DEFAULT_WINDOW: timedelta = timedelta(hours=24)
DEFAULT_NEW_TRANSACTION_THRESHOLD: int = 10

_logger = get_logger("spending_insights.caching")


def count_new_transactions(transactions: Sequence[Transaction], since: datetime) -> int:
    return sum(1 for t in transactions if t.created_at > since)


def should_use_cache(
    transactions: Sequence[Transaction],
    existing: Sequence[object] | None,
    last_generated: datetime | None,
    *,
    now: datetime | None = None,
    window: timedelta = DEFAULT_WINDOW,
    new_transaction_threshold: int = DEFAULT_NEW_TRANSACTION_THRESHOLD,
) -> bool:
    """Return ``True`` when stored insights should be reused."""

    if not existing or last_generated is None:
        return False
    current = now if now is not None else datetime.now(UTC)

    if last_generated > current - window:
        _logger.info("caching:hit reason=recent")
        return True

    if count_new_transactions(transactions, last_generated) < new_transaction_threshold:
        _logger.info("caching:hit reason=few_new_transactions")
        return True

    return False


async def generate_insights_with_caching(
    generator: InsightGenerator,
    transactions: Sequence[Transaction],
    monthly_income: float | None = None,
    existing: Sequence[Insight] | None = None,
    last_generated: datetime | None = None,
    *,
    now: datetime | None = None,
    window: timedelta = DEFAULT_WINDOW,
    new_transaction_threshold: int = DEFAULT_NEW_TRANSACTION_THRESHOLD,
) -> GenerationResult:
    """Reuse ``existing`` insights per the policy or run a fresh generation."""

    current = now if now is not None else datetime.now(UTC)
    if (
        existing
        and last_generated is not None
        and should_use_cache(
            transactions,
            existing,
            last_generated,
            now=current,
            window=window,
            new_transaction_threshold=new_transaction_threshold,
        )
    ):
        return GenerationResult(
            insights=list(existing),
            from_cache=True,
            generated_at=last_generated,
            message="Using cached insights",
        )

    _logger.info("caching:miss generating=true")
    result = await generator.generate_all(transactions, monthly_income, now=current)
    return GenerationResult(
        insights=result.all_insights,
        from_cache=False,
        generated_at=current,
        message=f"Generated {len(result.all_insights)} new insights",
    )


__all__ = [
    "DEFAULT_NEW_TRANSACTION_THRESHOLD",
    "DEFAULT_WINDOW",
    "count_new_transactions",
    "generate_insights_with_caching",
    "should_use_cache",
]
