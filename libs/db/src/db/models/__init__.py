"""Shared SQLAlchemy models registry.

Includes the account, transaction and insight tables used by
``spending_insights``.
"""

from .insights import Account, Base, InsightRow, Transaction

__all__ = [
    "Account",
    "Base",
    "InsightRow",
    "Transaction",
]
