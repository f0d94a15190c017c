"""
Transaction policies for workflow operations.

Every approve/reject/bulk call runs inside ``policy.unit_of_work(session)``
and calls ``policy.checkpoint(session)`` after each write step.

AtomicTransactionPolicy
    One transaction per call, timesheet and ledger rows read FOR UPDATE,
    commit at the end, rollback on any error. Calls on the same timesheet
    are serialized by the row locks.

BestEffortTransactionPolicy
    For storage without transaction support. Each checkpoint commits, no
    row locks are taken, and a failure leaves earlier steps committed.
    This gives up the at-most-one-writer guarantee per timesheet.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from teamreview.core.exceptions import AppException, StorageError

logger = logging.getLogger(__name__)


class TransactionPolicy(ABC):
    """How a workflow operation groups its writes."""

    name: str = "abstract"
    locks_rows: bool = False

    @asynccontextmanager
    async def unit_of_work(self, session: AsyncSession) -> AsyncIterator[AsyncSession]:
        try:
            yield session
            await self._finish(session)
        except AppException:
            await session.rollback()
            raise
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.exception(
                "Storage failure, rolling back",
                extra={"transaction_policy": self.name, "error": str(exc)},
            )
            raise StorageError() from exc
        except Exception:
            await session.rollback()
            raise

    @abstractmethod
    async def checkpoint(self, session: AsyncSession) -> None:
        """Called after each write step of an operation."""

    @abstractmethod
    async def _finish(self, session: AsyncSession) -> None:
        """Called once the operation body completed without error."""


class AtomicTransactionPolicy(TransactionPolicy):
    name = "atomic"
    locks_rows = True

    async def checkpoint(self, session: AsyncSession) -> None:
        await session.flush()

    async def _finish(self, session: AsyncSession) -> None:
        await session.commit()


class BestEffortTransactionPolicy(TransactionPolicy):
    name = "best_effort"
    locks_rows = False

    async def checkpoint(self, session: AsyncSession) -> None:
        await session.commit()

    async def _finish(self, session: AsyncSession) -> None:
        await session.commit()


def build_transaction_policy(use_transactions: bool) -> TransactionPolicy:
    """Select the policy from configuration."""
    policy = AtomicTransactionPolicy() if use_transactions else BestEffortTransactionPolicy()
    logger.info("Transaction policy selected", extra={"transaction_policy": policy.name})
    return policy
