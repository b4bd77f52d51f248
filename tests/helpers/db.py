"""DB helpers for tests: bootstrap a temporary SQLite DB and seed accounts."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from db.client import Database
from db.models.insights import Account
from db.models.insights import Transaction as TransactionRow


def bootstrap_sqlite_db(db_file: Path) -> Database:
    """Create a SQLite database file with the full schema.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    db_file.parent.mkdir(parents=True, exist_ok=True)
    database = Database(f"sqlite+pysqlite:///{db_file}")
    database.create_all()
    return database


def seed_account(database: Database, user_id: str, *, name: str = "Checking") -> str:
    """Insert one account for ``user_id`` and return its id."""

    with database.session_scope() as session:
        account = Account(user_id=user_id, name=name, institution="Test Bank")
        session.add(account)
        session.flush()
        return account.id


def seed_transactions(
    database: Database,
    account_id: str,
    rows: Iterable[tuple[str, date, str, str | None, datetime]],
) -> None:
    """Insert ``(amount, date, name, category, created_at)`` rows."""

    with database.session_scope() as session:
        session.add_all(
            TransactionRow(
                account_id=account_id,
                amount=Decimal(amount),
                date=tx_date,
                name=name,
                merchant_name=name,
                category=category,
                pending=False,
                created_at=created_at,
            )
            for amount, tx_date, name, category, created_at in rows
        )
