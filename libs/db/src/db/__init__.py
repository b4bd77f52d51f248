"""db: shared database library (SQLAlchemy/Alembic).

Public exports
--------------
- ``Base`` and ``metadata`` for Alembic autogenerate/targeting
- ORM models in ``db.models.insights`` (re-exported for convenience)
- ``Database`` engine/session holder in ``db.client``
"""

from __future__ import annotations

from .client import Database
from .models.insights import Account, Base, InsightRow, Transaction

# Re-export SQLAlchemy metadata for Alembic's env.py
metadata = Base.metadata

__all__ = [
    "Account",
    "Base",
    "Database",
    "InsightRow",
    "Transaction",
    "metadata",
]
