# ruff: noqa: I001
"""CLI for the ``spending_insights`` package.

Typer-based console interface over :class:`~spending_insights.service.InsightService`.
Environment variables (``DATABASE_URL``, the provider API key and any
``SPENDING_INSIGHTS_*`` overrides) are loaded from a local ``.env`` using
``python-dotenv`` before any command runs.

Errors print the user-facing message to stderr and exit with status 1; the
structured error is logged.
"""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .config import InsightSettings
from .errors import InsightsError, user_message
from .logging_setup import configure_logging, get_logger
from .models import Insight, StoredInsight

app = typer.Typer(add_completion=False, help="Generate and manage AI spending insights.")

_console = Console()
_err_console = Console(stderr=True)
_logger = get_logger("spending_insights.cli")


def _build_service():
    """Wire the service from the environment (local imports keep startup light)."""

    from db.client import Database

    from .generation import InsightGenerator
    from .llm_client import ModelClient
    from .persistence import InsightStore, TransactionSource
    from .service import InsightService

    settings = InsightSettings.from_env()
    database = Database.from_env()
    return InsightService(
        generator=InsightGenerator(ModelClient(settings)),
        store=InsightStore(database),
        transactions=TransactionSource(database),
        settings=settings,
    )


def _render(insights: list[Insight], *, title: str) -> None:
    table = Table(title=title)
    table.add_column("Priority")
    table.add_column("Category")
    table.add_column("Title")
    table.add_column("Savings/mo", justify="right")
    table.add_column("Confidence", justify="right")
    for i in insights:
        savings = f"${i.potential_savings:,.2f}" if i.potential_savings is not None else "-"
        table.add_row(i.priority, i.category, i.title, savings, f"{i.confidence:.2f}")
    _console.print(table)


def _render_stored(rows: list[StoredInsight], *, title: str) -> None:
    table = Table(title=title)
    table.add_column("ID")
    table.add_column("Created")
    table.add_column("Priority")
    table.add_column("Category")
    table.add_column("Title")
    for r in rows:
        table.add_row(
            r.id,
            r.created_at.isoformat(timespec="seconds"),
            r.insight.priority,
            r.insight.category,
            r.insight.title,
        )
    _console.print(table)


def _fail(operation: str, exc: Exception) -> typer.Exit:
    # Unexpected errors keep their traceback in the log; users only see the generic message.
    _logger.error(
        "cli:%s_failed error=%s",
        operation,
        exc.__class__.__name__,
        exc_info=not isinstance(exc, InsightsError),
    )
    _err_console.print(f"Error: {user_message(exc)}")
    return typer.Exit(code=1)


@app.callback()
def main(
    log_level: Annotated[str | None, typer.Option("--log-level", help="Logging level")] = None,
) -> None:
    load_dotenv()
    configure_logging(log_level)


@app.command()
def generate(
    user_id: Annotated[str, typer.Argument(help="Owner of the accounts")],
    force_refresh: Annotated[bool, typer.Option("--force-refresh", help="Skip the cache")] = False,
) -> None:
    """Return cached insights or generate a fresh batch."""

    try:
        service = _build_service()
        result = asyncio.run(service.generate(user_id, force_refresh=force_refresh))
    except Exception as e:  # noqa: BLE001 - every failure reaches the user as a message
        raise _fail("generate", e) from e

    source = "cached" if result.from_cache else "generated"
    _render(result.insights, title=f"Insights ({source} {result.generated_at:%Y-%m-%d %H:%M} UTC)")
    if result.warning:
        _err_console.print(f"Warning: {result.warning}")


@app.command()
def refresh(user_id: Annotated[str, typer.Argument(help="Owner of the accounts")]) -> None:
    """Delete stored insights and generate a new batch."""

    try:
        service = _build_service()
        result = asyncio.run(service.refresh(user_id))
    except Exception as e:  # noqa: BLE001 - every failure reaches the user as a message
        raise _fail("refresh", e) from e
    _render(result.insights, title=result.message or "Insights")


@app.command("list")
def list_insights(
    user_id: Annotated[str, typer.Argument(help="Owner of the insights")],
    limit: Annotated[int, typer.Option(min=1, help="Maximum rows")] = 50,
    category: Annotated[str | None, typer.Option(help="Filter by category ('all' for none)")] = None,
) -> None:
    """Show stored insights, newest first."""

    try:
        rows = _build_service().list_insights(user_id, limit=limit, category=category)
    except Exception as e:  # noqa: BLE001 - every failure reaches the user as a message
        raise _fail("list", e) from e
    _render_stored(rows, title=f"{len(rows)} stored insights")


@app.command()
def delete(
    user_id: Annotated[str, typer.Argument(help="Owner of the insight")],
    insight_id: Annotated[str, typer.Argument(help="Insight id")],
) -> None:
    """Delete one stored insight."""

    try:
        _build_service().delete(user_id, insight_id)
    except Exception as e:  # noqa: BLE001 - every failure reaches the user as a message
        raise _fail("delete", e) from e
    _console.print("Insight deleted successfully")


if __name__ == "__main__":  # pragma: no cover
    app()
