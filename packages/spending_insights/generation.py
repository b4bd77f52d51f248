"""Insight generation: three prompt flows, fan-out/fan-in, merge and sort.

Public API:
    - :class:`InsightGenerator`
    - :func:`budget_to_insight`, :func:`savings_to_insight`
    - :func:`sort_insights`

Each flow builds its prompt, calls the model through :func:`retry_async`,
and parses the raw text. :meth:`InsightGenerator.generate_all` runs the flows
concurrently; if any one fails, the whole generation fails with
:class:`~spending_insights.errors.InsightGenerationError` and nothing is
returned.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from typing import TypeVar

from . import parsing, prompting
from .config import InsightSettings
from .errors import InsightGenerationError, InsightsError
from .fanout import gather_all
from .llm_client import ModelClient
from .logging_setup import get_logger
from .models import (
    PRIORITY_WEIGHT,
    AllInsights,
    BudgetRecommendation,
    Insight,
    Priority,
    SavingsOpportunity,
    Transaction,
)
from .parsing import DroppedHook, ParseOutcome
from .retry import retry_async

T = TypeVar("T")

BUDGET_CONFIDENCE: float = 0.8
SAVINGS_CONFIDENCE: float = 0.85

_logger = get_logger("spending_insights.generation")


# ---- Conversion and ordering -------------------------------------------------


def budget_to_insight(rec: BudgetRecommendation) -> Insight:
    return Insight(
        title=f"Budget: {rec.category}",
        description=rec.reasoning,
        category="budget",
        priority=rec.priority,
        potential_savings=rec.current_average - rec.suggested_amount,
        confidence=BUDGET_CONFIDENCE,
    )


def savings_priority(monthly_savings: float) -> Priority:
    if monthly_savings > 50:
        return "high"
    if monthly_savings > 20:
        return "medium"
    return "low"


def savings_to_insight(opp: SavingsOpportunity) -> Insight:
    return Insight(
        title=opp.title,
        description=opp.description,
        category="savings",
        priority=savings_priority(opp.potential_monthly_savings),
        potential_savings=opp.potential_monthly_savings,
        confidence=SAVINGS_CONFIDENCE,
    )


def _sort_key(insight: Insight) -> tuple[int, float]:
    return (PRIORITY_WEIGHT[insight.priority], insight.potential_savings or 0.0)


def sort_insights(insights: Sequence[Insight]) -> list[Insight]:
    """Priority descending, then potential savings descending.

    ``sorted`` is stable, so ties keep generation order.
    """

    return sorted(insights, key=_sort_key, reverse=True)


# ---- Generator ---------------------------------------------------------------


class InsightGenerator:
    """Run the spending, budget and savings flows against a model client.

    Parameters
    ----------
    client:
        The :class:`ModelClient` used for every flow.
    settings:
        Temperatures, token ceiling and retry tunables; defaults to
        ``client.settings``.
    on_dropped:
        Optional hook called as ``on_dropped(flow, count)`` when validation
        drops entries from a flow's response.
    sleep:
        Awaitable sleep used between retries (injectable for tests).
    """

    def __init__(
        self,
        client: ModelClient,
        settings: InsightSettings | None = None,
        *,
        on_dropped: DroppedHook | None = None,
        sleep: Callable[[float], Awaitable[object]] | None = None,
    ) -> None:
        self.client = client
        self.settings = settings or client.settings
        self.on_dropped = on_dropped
        self._sleep = sleep

    async def _run_flow(
        self,
        flow: str,
        prompt: str,
        *,
        temperature: float,
        parse: Callable[[str], ParseOutcome[T]],
    ) -> list[T]:
        messages = prompting.build_messages(prompt)

        async def _call() -> str:
            return await self.client.complete(
                messages,
                temperature=temperature,
                max_tokens=self.settings.max_tokens,
                operation=flow,
            )

        retry_kwargs = {} if self._sleep is None else {"sleep": self._sleep}
        t0 = time.perf_counter()
        try:
            # Credential problems surface once instead of being retried.
            self.client.connect()
            raw = await retry_async(
                _call,
                max_retries=self.settings.max_retries,
                base_delay=self.settings.retry_base_delay,
                label=flow,
                **retry_kwargs,
            )
            items = parsing.unwrap(parse(raw), flow=flow, on_dropped=self.on_dropped)
        except InsightsError as e:
            _logger.error(
                "generation:flow_failed flow=%s latency_ms=%.2f error=%s",
                flow,
                (time.perf_counter() - t0) * 1000.0,
                e.__class__.__name__,
            )
            raise InsightGenerationError(f"Failed to generate {flow}: {e}", flow=flow, cause=e) from e

        _logger.info(
            "generation:flow_done flow=%s items=%d latency_ms=%.2f",
            flow,
            len(items),
            (time.perf_counter() - t0) * 1000.0,
        )
        return items

    async def spending_analysis(
        self, transactions: Sequence[Transaction], *, now: datetime | None = None
    ) -> list[Insight]:
        if not transactions:
            return []
        return await self._run_flow(
            prompting.SPENDING_ANALYSIS,
            prompting.build_spending_analysis_prompt(transactions, now=now),
            temperature=self.settings.temperature_spending,
            parse=parsing.parse_spending_insights,
        )

    async def budget_recommendations(
        self,
        transactions: Sequence[Transaction],
        monthly_income: float | None = None,
        *,
        now: datetime | None = None,
    ) -> list[BudgetRecommendation]:
        if not transactions:
            return []
        return await self._run_flow(
            prompting.BUDGET_RECOMMENDATIONS,
            prompting.build_budget_recommendations_prompt(transactions, monthly_income, now=now),
            temperature=self.settings.temperature_budget,
            parse=parsing.parse_budget_recommendations,
        )

    async def savings_opportunities(
        self, transactions: Sequence[Transaction], *, now: datetime | None = None
    ) -> list[SavingsOpportunity]:
        if not transactions:
            return []
        return await self._run_flow(
            prompting.SAVINGS_OPPORTUNITIES,
            prompting.build_savings_opportunities_prompt(transactions, now=now),
            temperature=self.settings.temperature_savings,
            parse=parsing.parse_savings_opportunities,
        )

    async def generate_all(
        self,
        transactions: Sequence[Transaction],
        monthly_income: float | None = None,
        *,
        now: datetime | None = None,
    ) -> AllInsights:
        """Run all three flows concurrently and merge their results.

        The first flow to fail aborts the generation (its error propagates
        as soon as it happens).
        """

        if not transactions:
            return AllInsights([], [], [], [])

        _logger.info("generation:start transactions=%d", len(transactions))
        spending, budget, savings = await gather_all(
            self.spending_analysis(transactions, now=now),
            self.budget_recommendations(transactions, monthly_income, now=now),
            self.savings_opportunities(transactions, now=now),
        )

        merged = [
            *spending,
            *(budget_to_insight(r) for r in budget),
            *(savings_to_insight(o) for o in savings),
        ]
        all_insights = sort_insights(merged)
        _logger.info("generation:done insights=%d", len(all_insights))
        return AllInsights(
            spending_insights=spending,
            budget_recommendations=budget,
            savings_opportunities=savings,
            all_insights=all_insights,
        )


__all__ = [
    "BUDGET_CONFIDENCE",
    "InsightGenerator",
    "SAVINGS_CONFIDENCE",
    "budget_to_insight",
    "savings_priority",
    "savings_to_insight",
    "sort_insights",
]
