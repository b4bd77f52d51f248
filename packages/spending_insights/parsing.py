"""Parse and validate raw model output.

Pipeline per flow:

1. :func:`strip_code_fence` removes one surrounding markdown fence
   (```` ```json ```` or bare ```` ``` ````).
2. :func:`parse_model_json` decodes JSON; failure raises
   :class:`~spending_insights.errors.ResponseParseError`.
3. :func:`parse_items` checks the flow's top-level key holds a list and
   validates each element with pydantic, returning a tagged outcome:
   :class:`Parsed` (kept items plus a dropped count) or :class:`ParseFailure`.

Elements that fail validation are dropped without raising. The count is
reported through the optional ``on_dropped(flow, count)`` hook passed to
:func:`unwrap`.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from .errors import ResponseParseError
from .logging_setup import get_logger
from .models import INSIGHT_CATEGORIES, PRIORITIES, BudgetRecommendation, Insight, SavingsOpportunity

type DroppedHook = Callable[[str, int], None]

_logger = get_logger("spending_insights.parsing")


@dataclass(frozen=True, slots=True)
class Parsed[T]:
    items: list[T]
    dropped: int = 0


@dataclass(frozen=True, slots=True)
class ParseFailure:
    reason: str


type ParseOutcome[T] = Parsed[T] | ParseFailure


def strip_code_fence(text: str) -> str:
    """Remove a single leading/trailing triple-backtick fence if present."""

    cleaned = text.strip()
    if cleaned.startswith("```json") and cleaned.endswith("```") and len(cleaned) >= 10:
        return cleaned[7:-3].strip()
    if cleaned.startswith("```") and cleaned.endswith("```") and len(cleaned) >= 6:
        return cleaned[3:-3].strip()
    return cleaned


def parse_model_json(text: str) -> Any:
    """Decode model output as JSON after stripping a markdown fence."""

    try:
        return json.loads(strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"Failed to parse AI response: {e}") from e


def is_valid_insight(item: Any) -> bool:
    """Structural gate for spending-analysis entries.

    Title and description must be non-empty strings; category and priority
    must be among the enumerated values.
    """

    if not isinstance(item, Mapping):
        return False
    title = item.get("title")
    description = item.get("description")
    return (
        isinstance(title, str)
        and bool(title.strip())
        and isinstance(description, str)
        and bool(description.strip())
        and item.get("category") in INSIGHT_CATEGORIES
        and item.get("priority") in PRIORITIES
    )


def parse_items[M: BaseModel](
    text: str,
    key: str,
    model: type[M],
    *,
    gate: Callable[[Any], bool] | None = None,
) -> ParseOutcome[M]:
    """Decode ``text`` and validate every element under ``key`` as ``model``."""

    try:
        body = parse_model_json(text)
    except ResponseParseError as e:
        return ParseFailure(str(e))

    if not isinstance(body, Mapping) or not isinstance(body.get(key), list):
        return ParseFailure(f"Invalid response format from AI: expected a list under {key!r}")

    kept: list[M] = []
    dropped = 0
    for raw in body[key]:
        if gate is not None and not gate(raw):
            dropped += 1
            continue
        try:
            kept.append(model.model_validate(raw))
        except ValidationError:
            dropped += 1
    return Parsed(items=kept, dropped=dropped)


def parse_spending_insights(text: str) -> ParseOutcome[Insight]:
    return parse_items(text, "insights", Insight, gate=is_valid_insight)


def parse_budget_recommendations(text: str) -> ParseOutcome[BudgetRecommendation]:
    return parse_items(text, "recommendations", BudgetRecommendation)


def parse_savings_opportunities(text: str) -> ParseOutcome[SavingsOpportunity]:
    return parse_items(text, "opportunities", SavingsOpportunity)


def unwrap[T](outcome: ParseOutcome[T], *, flow: str, on_dropped: DroppedHook | None = None) -> list[T]:
    """Return the kept items or raise ``ResponseParseError`` for a failure."""

    if isinstance(outcome, ParseFailure):
        raise ResponseParseError(f"{flow}: {outcome.reason}")
    if outcome.dropped:
        _logger.debug("parsing:dropped flow=%s count=%d", flow, outcome.dropped)
        if on_dropped is not None:
            on_dropped(flow, outcome.dropped)
    return outcome.items


__all__ = [
    "DroppedHook",
    "ParseFailure",
    "ParseOutcome",
    "Parsed",
    "is_valid_insight",
    "parse_budget_recommendations",
    "parse_items",
    "parse_model_json",
    "parse_savings_opportunities",
    "parse_spending_insights",
    "strip_code_fence",
    "unwrap",
]
