"""
Base service class.
Services contain business logic and coordinate repositories.
"""

from abc import ABC

from sqlalchemy.ext.asyncio import AsyncSession

from teamreview.db.transactions import TransactionPolicy


class BaseService(ABC):
    """Base service class for workflow services."""

    def __init__(self, session: AsyncSession, transactions: TransactionPolicy):
        self.session = session
        self.transactions = transactions
