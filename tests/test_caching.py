from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest

from spending_insights.caching import (
    count_new_transactions,
    generate_insights_with_caching,
    should_use_cache,
)
from spending_insights.models import AllInsights, Insight, Transaction

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=UTC)

CACHED = [Insight(title="Old", description="Cached insight", category="general", priority="low")]
FRESH = [Insight(title="New", description="Fresh insight", category="spending", priority="high")]


def _txs_created(*hours_ago: float) -> list[Transaction]:
    return [
        Transaction(
            amount=Decimal("10"),
            date=date(2025, 6, 1),
            name=f"tx{i}",
            created_at=NOW - timedelta(hours=h),
        )
        for i, h in enumerate(hours_ago)
    ]


class _FakeGenerator:
    def __init__(self) -> None:
        self.calls = 0

    async def generate_all(self, transactions, monthly_income=None, *, now=None) -> AllInsights:
        self.calls += 1
        return AllInsights(list(FRESH), [], [], list(FRESH))


@pytest.mark.parametrize(
    ("generated_hours_ago", "new_tx_count", "expected"),
    [
        (23, 0, True),
        (1, 15, True),  # recent wins regardless of new transactions
        (25, 3, True),  # stale, but few new transactions
        (25, 9, True),
        (25, 10, False),  # threshold is exclusive
        (25, 15, False),
    ],
)
def test_policy_is_either_recent_or_quiet(generated_hours_ago, new_tx_count, expected) -> None:
    last_generated = NOW - timedelta(hours=generated_hours_ago)
    # New transactions arrive after the last generation; older ones before it.
    txs = _txs_created(*([0.5] * new_tx_count), generated_hours_ago + 5)

    assert should_use_cache(txs, CACHED, last_generated, now=NOW) is expected


def test_no_existing_insights_never_uses_cache() -> None:
    assert should_use_cache([], [], NOW - timedelta(minutes=5), now=NOW) is False
    assert should_use_cache([], None, NOW, now=NOW) is False


def test_unknown_last_generated_never_uses_cache() -> None:
    assert should_use_cache([], CACHED, None, now=NOW) is False


def test_window_and_threshold_are_tunable() -> None:
    last_generated = NOW - timedelta(hours=3)
    txs = _txs_created(1, 1)

    def check(threshold: int) -> bool:
        return should_use_cache(
            txs,
            CACHED,
            last_generated,
            now=NOW,
            window=timedelta(hours=2),
            new_transaction_threshold=threshold,
        )

    assert check(2) is False
    assert check(3) is True


def test_count_new_transactions_is_strictly_after() -> None:
    txs = _txs_created(2, 1, 0)

    assert count_new_transactions(txs, NOW - timedelta(hours=1)) == 1


def test_cache_hit_returns_existing_without_generating() -> None:
    gen = _FakeGenerator()
    last_generated = NOW - timedelta(hours=2)

    result = asyncio.run(
        generate_insights_with_caching(gen, _txs_created(30), None, CACHED, last_generated, now=NOW)
    )

    assert gen.calls == 0
    assert result.from_cache is True
    assert result.insights == CACHED
    assert result.generated_at == last_generated
    assert result.message == "Using cached insights"


def test_cache_miss_generates_fresh_batch() -> None:
    gen = _FakeGenerator()
    txs = _txs_created(*([1] * 12))

    result = asyncio.run(
        generate_insights_with_caching(
            gen, txs, 3000.0, CACHED, NOW - timedelta(hours=30), now=NOW
        )
    )

    assert gen.calls == 1
    assert result.from_cache is False
    assert result.insights == FRESH
    assert result.generated_at == NOW
    assert result.message == "Generated 1 new insights"


@pytest.mark.parametrize(
    ("existing", "last_generated"),
    [
        (None, NOW - timedelta(hours=1)),
        ([], NOW - timedelta(hours=1)),
        (CACHED, None),
    ],
)
def test_incomplete_cache_state_generates(existing, last_generated) -> None:
    gen = _FakeGenerator()

    result = asyncio.run(
        generate_insights_with_caching(gen, [], None, existing, last_generated, now=NOW)
    )

    assert gen.calls == 1
    assert result.from_cache is False
    assert result.generated_at == NOW
