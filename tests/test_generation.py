from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from spending_insights.config import InsightSettings
from spending_insights.errors import InsightGenerationError, InvalidCredentials, QuotaExceeded
from spending_insights.generation import (
    InsightGenerator,
    budget_to_insight,
    savings_priority,
    savings_to_insight,
    sort_insights,
)
from spending_insights.llm_client import ModelClient
from spending_insights.models import BudgetRecommendation, Insight, SavingsOpportunity, Transaction
from tests.helpers.openai_stub import AsyncOpenAIStub, canned_response, flow_of

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=UTC)


async def _no_sleep(_delay: float) -> None:
    return None


def _transactions() -> list[Transaction]:
    rows = [
        ("42.10", 2, "Pasta Place", "Dining Out"),
        ("18.00", 4, "Taco Stand", "Dining Out"),
        ("95.30", 6, "FreshMart", "Groceries"),
        ("12.99", 8, "StreamCo", "Entertainment"),
        ("-2500.00", 10, "Payroll", "Income"),
    ]
    return [
        Transaction(
            amount=Decimal(amount),
            date=(NOW - timedelta(days=days)).date(),
            name=name,
            created_at=NOW - timedelta(days=days),
            category=category,
            merchant_name=name,
        )
        for amount, days, name, category in rows
    ]


def _generator(stub: AsyncOpenAIStub, **kwargs) -> InsightGenerator:
    settings = InsightSettings()
    return InsightGenerator(ModelClient(settings, client=stub), sleep=_no_sleep, **kwargs)


# ---- Full generation ---------------------------------------------------------


def test_generate_all_merges_and_sorts() -> None:
    stub = AsyncOpenAIStub()

    result = asyncio.run(_generator(stub).generate_all(_transactions(), 2000.0, now=NOW))

    assert [i.title for i in result.all_insights] == [
        "Dining out is climbing",
        "Budget: Dining Out",
        "Drop one streaming service",
        "Groceries are steady",
    ]
    assert len(result.spending_insights) == 2
    assert len(result.budget_recommendations) == 1
    assert len(result.savings_opportunities) == 1

    budget = result.all_insights[1]
    assert budget.category == "budget"
    assert budget.potential_savings == 120.0
    assert budget.confidence == 0.8

    savings = result.all_insights[2]
    assert savings.category == "savings"
    assert savings.priority == "medium"
    assert savings.confidence == 0.85


def test_each_flow_is_called_once_with_its_temperature() -> None:
    stub = AsyncOpenAIStub()

    asyncio.run(_generator(stub).generate_all(_transactions(), 2000.0, now=NOW))

    temps = {flow_of(c): c["temperature"] for c in stub.calls}
    assert len(stub.calls) == 3
    assert temps == {
        "spending-analysis": 0.3,
        "budget-recommendations": 0.3,
        "savings-opportunities": 0.4,
    }
    assert {c["max_tokens"] for c in stub.calls} == {1000}
    assert {c["model"] for c in stub.calls} == {"llama-3.1-8b-instant"}


def test_prompts_embed_transactions_and_income() -> None:
    stub = AsyncOpenAIStub()

    asyncio.run(_generator(stub).generate_all(_transactions(), 2000.0, now=NOW))

    budget_prompt = stub.calls_for("budget-recommendations")[0]["messages"][0]["content"]
    spending_prompt = stub.calls_for("spending-analysis")[0]["messages"][0]["content"]
    assert "Monthly income: $2000.00" in budget_prompt
    assert "BEGIN_TRANSACTIONS_JSON" in spending_prompt
    assert "Pasta Place" in spending_prompt
    # Income never reaches the transaction payload.
    assert "Payroll" not in spending_prompt


def test_budget_prompt_without_income() -> None:
    stub = AsyncOpenAIStub()

    asyncio.run(_generator(stub).budget_recommendations(_transactions(), None, now=NOW))

    assert "Monthly income: Not provided" in stub.calls[0]["messages"][0]["content"]


def test_empty_transactions_make_no_model_calls() -> None:
    stub = AsyncOpenAIStub()

    result = asyncio.run(_generator(stub).generate_all([], now=NOW))

    assert result.all_insights == []
    assert stub.calls == []


# ---- Failures ----------------------------------------------------------------


def test_one_failing_flow_fails_the_generation() -> None:
    def respond(kwargs):
        if flow_of(kwargs) == "savings-opportunities":
            return RuntimeError("You exceeded your current quota")
        return canned_response(kwargs)

    stub = AsyncOpenAIStub(respond)

    with pytest.raises(InsightGenerationError) as info:
        asyncio.run(_generator(stub).generate_all(_transactions(), now=NOW))

    err = info.value
    assert err.flow == "savings-opportunities"
    assert err.kind == "quota_exceeded"
    assert err.user_message == QuotaExceeded.user_message
    assert isinstance(err.__cause__, QuotaExceeded)
    # Initial attempt plus three retries.
    assert len(stub.calls_for("savings-opportunities")) == 4


def test_missing_api_key_fails_without_retrying(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GROQ_API_KEY")
    delays: list[float] = []

    async def _record(delay: float) -> None:
        delays.append(delay)

    generator = InsightGenerator(ModelClient(InsightSettings()), sleep=_record)

    with pytest.raises(InsightGenerationError) as info:
        asyncio.run(generator.generate_all(_transactions(), now=NOW))

    assert info.value.kind == "configuration_error"
    assert info.value.user_message == InvalidCredentials.user_message
    assert delays == []


def test_transient_failure_recovers_within_retries() -> None:
    attempts = {"n": 0}

    def respond(kwargs):
        if flow_of(kwargs) == "spending-analysis":
            attempts["n"] += 1
            if attempts["n"] < 3:
                return RuntimeError("rate_limit_exceeded")
        return canned_response(kwargs)

    stub = AsyncOpenAIStub(respond)

    result = asyncio.run(_generator(stub).generate_all(_transactions(), now=NOW))

    assert attempts["n"] == 3
    assert len(result.all_insights) == 4


def test_unparsable_response_is_not_retried() -> None:
    def respond(kwargs):
        if flow_of(kwargs) == "budget-recommendations":
            return "I cannot help with that."
        return canned_response(kwargs)

    stub = AsyncOpenAIStub(respond)

    with pytest.raises(InsightGenerationError) as info:
        asyncio.run(_generator(stub).generate_all(_transactions(), now=NOW))

    assert info.value.flow == "budget-recommendations"
    assert len(stub.calls_for("budget-recommendations")) == 1


def test_dropped_entries_reach_the_hook() -> None:
    def respond(kwargs):
        if flow_of(kwargs) == "spending-analysis":
            return (
                '{"insights": [{"title": "Ok", "description": "Fine", "category": "general",'
                ' "priority": "low"}, {"title": "", "description": "x", "category": "general",'
                ' "priority": "low"}]}'
            )
        return canned_response(kwargs)

    seen: list[tuple[str, int]] = []
    stub = AsyncOpenAIStub(respond)
    gen = _generator(stub, on_dropped=lambda flow, n: seen.append((flow, n)))

    insights = asyncio.run(gen.spending_analysis(_transactions(), now=NOW))

    assert [i.title for i in insights] == ["Ok"]
    assert seen == [("spending-analysis", 1)]


# ---- Conversion and ordering -------------------------------------------------


@pytest.mark.parametrize(
    ("monthly", "expected"),
    [(60, "high"), (50.01, "high"), (50, "medium"), (20.5, "medium"), (20, "low"), (0, "low")],
)
def test_savings_priority_thresholds(monthly: float, expected: str) -> None:
    assert savings_priority(monthly) == expected


def test_budget_increase_yields_negative_savings() -> None:
    rec = BudgetRecommendation(
        category="Groceries",
        suggested_amount=400,
        current_average=350,
        reasoning="Groceries are under-budgeted.",
        priority="low",
    )

    insight = budget_to_insight(rec)

    assert insight.title == "Budget: Groceries"
    assert insight.potential_savings == -50.0


def test_savings_to_insight_uses_monthly_amount() -> None:
    opp = SavingsOpportunity(
        title="Refinance",
        description="Lower the rate on your car loan.",
        potential_monthly_savings=75,
        potential_yearly_savings=900,
        difficulty="hard",
        category="loans",
    )

    insight = savings_to_insight(opp)

    assert (insight.priority, insight.potential_savings) == ("high", 75.0)


def _mk(title: str, priority: str, savings: float | None = None) -> Insight:
    return Insight(
        title=title,
        description="d",
        category="general",
        priority=priority,
        potential_savings=savings,
    )


def test_sort_by_priority_then_savings() -> None:
    insights = [
        _mk("low-big", "low", 500),
        _mk("med-none", "medium"),
        _mk("high-small", "high", 5),
        _mk("med-big", "medium", 90),
    ]

    ordered = [i.title for i in sort_insights(insights)]

    assert ordered == ["high-small", "med-big", "med-none", "low-big"]


def test_sort_is_stable_for_ties() -> None:
    insights = [_mk("a", "medium", 10), _mk("b", "medium", 10), _mk("c", "medium", 10)]

    assert [i.title for i in sort_insights(insights)] == ["a", "b", "c"]
