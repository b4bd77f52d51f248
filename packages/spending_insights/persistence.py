"""Persistence boundary for the insight pipeline.

Reads transactions and writes insights through the shared ``db`` library:

- :class:`TransactionSource` loads a user's connected accounts and their
  transactions over a trailing window and converts rows to
  :class:`~spending_insights.models.Transaction`.
- :class:`InsightStore` batch-creates insights in a single transaction, lists
  them newest first, and deletes by user or by id.

Both take a :class:`db.client.Database`; nothing here opens connections at
import time.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import UTC, date, datetime
from typing import NamedTuple

from pydantic import ValidationError
from sqlalchemy import delete, func, select

from db.client import Database
from db.models.insights import Account, InsightRow
from db.models.insights import Transaction as TransactionRow

from .logging_setup import get_logger
from .models import Insight, StoredInsight, Transaction

_logger = get_logger("spending_insights.persistence")

DEFAULT_LIST_LIMIT: int = 50

PARSE_ERROR_INSIGHT = Insight(
    title="Parsing Error",
    description="Unable to parse insight content",
    category="general",
    priority="low",
)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _to_transaction(row: TransactionRow) -> Transaction:
    return Transaction(
        amount=row.amount,
        date=row.date,
        name=row.name,
        created_at=_as_utc(row.created_at),
        category=row.category,
        pending=row.pending,
        merchant_name=row.merchant_name,
    )


def _decode_insight(content: str) -> Insight:
    try:
        return Insight.model_validate_json(content)
    except ValidationError:
        _logger.warning("persistence:decode_failed chars=%d", len(content))
        return PARSE_ERROR_INSIGHT


def _to_stored(row: InsightRow) -> StoredInsight:
    return StoredInsight(
        id=row.id,
        user_id=row.user_id,
        type=row.type,
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
        insight=_decode_insight(row.content),
    )


class UserTransactions(NamedTuple):
    account_count: int
    transactions: list[Transaction]


class TransactionSource:
    """Read connected accounts and recent transactions for a user."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def load_for_user(self, user_id: str, *, since: date) -> UserTransactions:
        """Return the account count and transactions dated on/after ``since``.

        Transactions are ordered by date, newest first.
        """

        with self.database.session_scope() as session:
            account_count = session.scalar(
                select(func.count()).select_from(Account).where(Account.user_id == user_id)
            )
            rows = session.scalars(
                select(TransactionRow)
                .join(Account, TransactionRow.account_id == Account.id)
                .where(Account.user_id == user_id, TransactionRow.date >= since)
                .order_by(TransactionRow.date.desc())
            ).all()
            transactions = [_to_transaction(r) for r in rows]
        return UserTransactions(account_count=int(account_count or 0), transactions=transactions)


class InsightStore:
    """Create, list and delete persisted insights."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def create_batch(
        self, user_id: str, insights: Sequence[Insight], generated_at: datetime
    ) -> list[StoredInsight]:
        """Insert all ``insights`` in one transaction; all or nothing."""

        with self.database.session_scope() as session:
            rows = [
                InsightRow(
                    user_id=user_id,
                    content=json.dumps(insight.to_record(), ensure_ascii=False),
                    type=insight.category,
                    created_at=generated_at,
                    updated_at=generated_at,
                )
                for insight in insights
            ]
            session.add_all(rows)
            session.flush()
            stored = [_to_stored(r) for r in rows]
        _logger.info("persistence:batch_created count=%d", len(stored))
        return stored

    def list_for_user(
        self,
        user_id: str,
        *,
        limit: int = DEFAULT_LIST_LIMIT,
        category: str | None = None,
    ) -> list[StoredInsight]:
        """Newest first; ``category`` of ``None`` or ``"all"`` means no filter."""

        stmt = select(InsightRow).where(InsightRow.user_id == user_id)
        if category and category != "all":
            stmt = stmt.where(InsightRow.type == category)
        stmt = stmt.order_by(InsightRow.created_at.desc()).limit(limit)
        with self.database.session_scope() as session:
            return [_to_stored(r) for r in session.scalars(stmt).all()]

    def delete_for_user(self, user_id: str) -> int:
        with self.database.session_scope() as session:
            result = session.execute(delete(InsightRow).where(InsightRow.user_id == user_id))
        count = result.rowcount or 0
        _logger.info("persistence:deleted_for_user count=%d", count)
        return count

    def delete(self, user_id: str, insight_id: str) -> bool:
        """Delete one insight owned by ``user_id``; ``False`` when not found."""

        with self.database.session_scope() as session:
            result = session.execute(
                delete(InsightRow).where(InsightRow.id == insight_id, InsightRow.user_id == user_id)
            )
        return bool(result.rowcount)


__all__ = [
    "DEFAULT_LIST_LIMIT",
    "InsightStore",
    "PARSE_ERROR_INSIGHT",
    "TransactionSource",
    "UserTransactions",
]
