"""Request-level orchestration for insights.

:class:`InsightService` is what an HTTP handler or the CLI calls. It checks
preconditions before any model call, applies the cache policy, persists fresh
batches atomically, and keeps generated insights when only the write fails.
Collaborators (store, transaction source, generator) are injected so each
caller decides their lifetime.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from .caching import generate_insights_with_caching
from .config import InsightSettings
from .errors import InsightNotFound, NoAccountsConnected, NoTransactionsAvailable
from .formatting import estimate_monthly_income
from .generation import InsightGenerator, sort_insights
from .logging_setup import get_logger
from .models import INSIGHT_CATEGORIES, GenerationResult, Insight, StoredInsight, Transaction
from .persistence import DEFAULT_LIST_LIMIT, InsightStore, TransactionSource

_logger = get_logger("spending_insights.service")

STORAGE_WARNING = "Insights generated but not saved. Please check database connection."


def group_by_category(insights: Sequence[Insight]) -> dict[str, list[Insight]]:
    """Bucket insights by category; every known category is present."""

    groups: dict[str, list[Insight]] = {c: [] for c in INSIGHT_CATEGORIES}
    for insight in insights:
        groups.setdefault(insight.category or "general", []).append(insight)
    return groups


class InsightService:
    def __init__(
        self,
        *,
        generator: InsightGenerator,
        store: InsightStore,
        transactions: TransactionSource,
        settings: InsightSettings | None = None,
    ) -> None:
        self.generator = generator
        self.store = store
        self.transactions = transactions
        self.settings = settings or generator.settings

    # ---- Helpers -------------------------------------------------------------

    def _load_transactions(self, user_id: str, now: datetime) -> list[Transaction]:
        since = (now - timedelta(days=self.settings.transaction_window_days)).date()
        loaded = self.transactions.load_for_user(user_id, since=since)
        if loaded.account_count == 0:
            raise NoAccountsConnected()
        if not loaded.transactions:
            raise NoTransactionsAvailable()
        return loaded.transactions

    def _persist(self, user_id: str, result: GenerationResult) -> GenerationResult:
        try:
            stored = self.store.create_batch(user_id, result.insights, result.generated_at)
        except SQLAlchemyError as e:
            _logger.error(
                "service:persist_failed operation=generate insights=%d error=%s",
                len(result.insights),
                e.__class__.__name__,
            )
            return GenerationResult(
                insights=result.insights,
                from_cache=False,
                generated_at=result.generated_at,
                message=f"Generated {len(result.insights)} insights (not saved due to database error)",
                warning=STORAGE_WARNING,
            )
        return GenerationResult(
            insights=result.insights,
            from_cache=False,
            generated_at=result.generated_at,
            stored=tuple(stored),
            message=f"Generated {len(result.insights)} new insights",
        )

    # ---- Operations ----------------------------------------------------------

    async def generate(
        self, user_id: str, *, force_refresh: bool = False, now: datetime | None = None
    ) -> GenerationResult:
        """Return cached insights when fresh enough, else generate and store.

        ``force_refresh`` skips the cache policy. Raises
        ``NoAccountsConnected`` / ``NoTransactionsAvailable`` before any model
        call, and ``InsightGenerationError`` when a prompt flow fails.
        """

        current = now if now is not None else datetime.now(UTC)
        transactions = self._load_transactions(user_id, current)
        existing = self.store.list_for_user(user_id, limit=DEFAULT_LIST_LIMIT)
        last_generated = existing[0].created_at if existing else None
        monthly_income = estimate_monthly_income(transactions)

        _logger.info(
            "service:generate transactions=%d existing=%d force_refresh=%s",
            len(transactions),
            len(existing),
            force_refresh,
        )

        if force_refresh:
            all_insights = await self.generator.generate_all(transactions, monthly_income, now=current)
            result = GenerationResult(
                insights=all_insights.all_insights, from_cache=False, generated_at=current
            )
        else:
            result = await generate_insights_with_caching(
                self.generator,
                transactions,
                monthly_income,
                [s.insight for s in existing],
                last_generated,
                now=current,
                window=self.settings.cache_window,
                new_transaction_threshold=self.settings.new_transaction_threshold,
            )
            if result.from_cache:
                return GenerationResult(
                    insights=sort_insights(result.insights),
                    from_cache=True,
                    generated_at=result.generated_at,
                    stored=tuple(existing),
                    message=result.message,
                )

        return self._persist(user_id, result)

    async def refresh(self, user_id: str, *, now: datetime | None = None) -> GenerationResult:
        """Delete stored insights, then generate and store a fresh batch.

        Unlike :meth:`generate`, storage errors propagate.
        """

        current = now if now is not None else datetime.now(UTC)
        self.store.delete_for_user(user_id)
        transactions = self._load_transactions(user_id, current)
        monthly_income = estimate_monthly_income(transactions)

        all_insights = await self.generator.generate_all(transactions, monthly_income, now=current)
        stored = self.store.create_batch(user_id, all_insights.all_insights, current)
        return GenerationResult(
            insights=all_insights.all_insights,
            from_cache=False,
            generated_at=current,
            stored=tuple(stored),
            message=f"Refreshed {len(stored)} insights",
        )

    def list_insights(
        self, user_id: str, *, limit: int = DEFAULT_LIST_LIMIT, category: str | None = None
    ) -> list[StoredInsight]:
        return self.store.list_for_user(user_id, limit=limit, category=category)

    def delete(self, user_id: str, insight_id: str) -> None:
        if not insight_id:
            raise ValueError("Insight ID is required")
        if not self.store.delete(user_id, insight_id):
            raise InsightNotFound()


__all__ = ["InsightService", "STORAGE_WARNING", "group_by_category"]
