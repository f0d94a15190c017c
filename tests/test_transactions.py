"""
Transaction policy tests with mocked sessions.
"""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from teamreview.core.exceptions import InvalidTransitionError, StorageError
from teamreview.db.transactions import (
    AtomicTransactionPolicy,
    BestEffortTransactionPolicy,
    build_transaction_policy,
)


def test_policy_selected_from_flag():
    assert isinstance(build_transaction_policy(True), AtomicTransactionPolicy)
    assert isinstance(build_transaction_policy(False), BestEffortTransactionPolicy)
    assert build_transaction_policy(True).locks_rows
    assert not build_transaction_policy(False).locks_rows


async def test_atomic_checkpoint_flushes_and_commits_once():
    session = AsyncMock()
    policy = AtomicTransactionPolicy()

    async with policy.unit_of_work(session):
        await policy.checkpoint(session)
        await policy.checkpoint(session)

    assert session.flush.await_count == 2
    session.commit.assert_awaited_once()
    session.rollback.assert_not_awaited()


async def test_best_effort_checkpoint_commits_each_step():
    session = AsyncMock()
    policy = BestEffortTransactionPolicy()

    async with policy.unit_of_work(session):
        await policy.checkpoint(session)
        await policy.checkpoint(session)

    assert session.commit.await_count == 3
    session.flush.assert_not_awaited()


async def test_business_error_rolls_back_and_propagates():
    session = AsyncMock()
    policy = AtomicTransactionPolicy()

    with pytest.raises(InvalidTransitionError):
        async with policy.unit_of_work(session):
            raise InvalidTransitionError("Cannot approve", current_status="draft")

    session.rollback.assert_awaited_once()
    session.commit.assert_not_awaited()


async def test_database_error_becomes_storage_error():
    session = AsyncMock()
    policy = AtomicTransactionPolicy()

    with pytest.raises(StorageError) as exc_info:
        async with policy.unit_of_work(session):
            raise OperationalError("UPDATE timesheets", {}, Exception("database is locked"))

    session.rollback.assert_awaited_once()
    assert exc_info.value.status_code == 500
    assert exc_info.value.message == "Storage operation failed"
    assert isinstance(exc_info.value.__cause__, OperationalError)


async def test_commit_failure_becomes_storage_error():
    session = AsyncMock()
    session.commit.side_effect = OperationalError("COMMIT", {}, Exception("disk I/O error"))
    policy = AtomicTransactionPolicy()

    with pytest.raises(StorageError):
        async with policy.unit_of_work(session):
            await policy.checkpoint(session)

    session.rollback.assert_awaited_once()


async def test_best_effort_keeps_earlier_steps_on_failure():
    session = AsyncMock()
    policy = BestEffortTransactionPolicy()

    with pytest.raises(InvalidTransitionError):
        async with policy.unit_of_work(session):
            await policy.checkpoint(session)
            raise InvalidTransitionError("Cannot approve")

    session.commit.assert_awaited_once()
    session.rollback.assert_awaited_once()
