from __future__ import annotations

import json

import pytest

from spending_insights.errors import ResponseParseError
from spending_insights.models import Insight
from spending_insights.parsing import (
    ParseFailure,
    Parsed,
    parse_budget_recommendations,
    parse_model_json,
    parse_savings_opportunities,
    parse_spending_insights,
    strip_code_fence,
    unwrap,
)


def _insight(**overrides):
    base = {
        "title": "Coffee adds up",
        "description": "Daily coffee runs cost $90 this month.",
        "category": "spending",
        "priority": "medium",
    }
    base.update(overrides)
    return base


# ---- Fences and JSON ---------------------------------------------------------


@pytest.mark.parametrize(
    "raw",
    [
        '```json\n{"insights": []}\n```',
        '```\n{"insights": []}\n```',
        '  {"insights": []}  ',
    ],
)
def test_strip_code_fence_variants(raw: str) -> None:
    assert strip_code_fence(raw) == '{"insights": []}'


def test_strip_code_fence_leaves_inner_text_alone() -> None:
    assert strip_code_fence('{"a": "```"}') == '{"a": "```"}'


def test_parse_model_json_raises_on_garbage() -> None:
    with pytest.raises(ResponseParseError, match="Failed to parse AI response"):
        parse_model_json("Sure! Here are your insights:")


# ---- Spending insights -------------------------------------------------------


def test_valid_entries_are_kept_and_invalid_dropped() -> None:
    body = {
        "insights": [
            _insight(),
            _insight(category="luxury"),
            _insight(title="   "),
            _insight(priority=None),
            "not an object",
            _insight(title="Trim subscriptions", category="cost reduction"),
        ]
    }

    outcome = parse_spending_insights(json.dumps(body))

    assert isinstance(outcome, Parsed)
    assert [i.title for i in outcome.items] == ["Coffee adds up", "Trim subscriptions"]
    assert outcome.items[1].category == "cost reduction"
    assert outcome.dropped == 4


def test_fenced_response_parses() -> None:
    raw = "```json\n" + json.dumps({"insights": [_insight(potentialSavings=45.5)]}) + "\n```"

    outcome = parse_spending_insights(raw)

    assert isinstance(outcome, Parsed)
    assert outcome.items[0].potential_savings == 45.5


@pytest.mark.parametrize(
    ("confidence", "expected"),
    [(None, 0.8), (0, 0.8), (0.42, 0.42), (1.7, 1.0), (-0.3, 0.0)],
)
def test_confidence_defaults_and_clamps(confidence, expected) -> None:
    item = _insight()
    if confidence is not None:
        item["confidence"] = confidence

    outcome = parse_spending_insights(json.dumps({"insights": [item]}))

    assert isinstance(outcome, Parsed)
    assert outcome.items[0].confidence == pytest.approx(expected)


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        json.dumps({"recommendations": []}),
        json.dumps({"insights": {"title": "x"}}),
        json.dumps([_insight()]),
    ],
)
def test_failures_are_tagged(raw: str) -> None:
    assert isinstance(parse_spending_insights(raw), ParseFailure)


def test_empty_list_is_a_valid_result() -> None:
    outcome = parse_spending_insights('{"insights": []}')

    assert outcome == Parsed(items=[], dropped=0)


# ---- Budget and savings ------------------------------------------------------


def test_budget_recommendations_validate_each_entry() -> None:
    body = {
        "recommendations": [
            {
                "category": "Dining Out",
                "suggestedAmount": 200,
                "currentAverage": 320,
                "reasoning": "Cut back to a realistic target.",
                "priority": "medium",
            },
            {"category": "Travel", "suggestedAmount": "lots", "priority": "low"},
        ]
    }

    outcome = parse_budget_recommendations(json.dumps(body))

    assert isinstance(outcome, Parsed)
    assert outcome.dropped == 1
    rec = outcome.items[0]
    assert (rec.suggested_amount, rec.current_average) == (200.0, 320.0)


def test_savings_opportunities_reject_unknown_difficulty() -> None:
    good = {
        "title": "Switch phone plan",
        "description": "A prepaid plan covers your usage.",
        "potentialMonthlySavings": 30,
        "potentialYearlySavings": 360,
        "difficulty": "easy",
        "category": "utilities",
    }
    bad = dict(good, difficulty="trivial")

    outcome = parse_savings_opportunities(json.dumps({"opportunities": [good, bad]}))

    assert isinstance(outcome, Parsed)
    assert [o.title for o in outcome.items] == ["Switch phone plan"]
    assert outcome.dropped == 1


# ---- unwrap ------------------------------------------------------------------


def test_unwrap_reports_drops_through_hook() -> None:
    seen: list[tuple[str, int]] = []
    outcome = Parsed(items=["a"], dropped=2)

    items = unwrap(outcome, flow="spending-analysis", on_dropped=lambda f, n: seen.append((f, n)))

    assert items == ["a"]
    assert seen == [("spending-analysis", 2)]


def test_unwrap_skips_hook_without_drops() -> None:
    seen: list[tuple[str, int]] = []

    unwrap(Parsed(items=[]), flow="x", on_dropped=lambda f, n: seen.append((f, n)))

    assert seen == []


def test_unwrap_raises_for_failure() -> None:
    with pytest.raises(ResponseParseError, match="budget-recommendations"):
        unwrap(ParseFailure("bad shape"), flow="budget-recommendations")


def test_insight_record_uses_camel_case() -> None:
    insight = Insight(
        title="t", description="d", category="budget", priority="low", potential_savings=12.0
    )

    assert insight.to_record() == {
        "title": "t",
        "description": "d",
        "category": "budget",
        "priority": "low",
        "potentialSavings": 12.0,
        "confidence": 0.8,
    }
