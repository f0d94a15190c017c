"""
Health service.
Reports database connectivity and the active transaction policy.
"""

import time
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from teamreview.db.repositories.health_repository import HealthRepository
from teamreview.db.session import get_session_factory
from teamreview.db.transactions import TransactionPolicy
from teamreview.schemas.health import HealthResponse


class HealthService:
    """Service for health check operations."""

    def __init__(
        self,
        transactions: TransactionPolicy,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
    ):
        self.transactions = transactions
        self.session_factory = session_factory
        self.start_time = time.time()

    async def get_health(self) -> HealthResponse:
        """
        Get system health status.

        Returns:
            HealthResponse with status, uptime, transaction policy and checks
        """
        uptime_seconds = int(time.time() - self.start_time)
        uptime_str = f"PT{uptime_seconds}S"  # ISO 8601 duration

        checks = {}
        session_factory = self.session_factory or get_session_factory()

        try:
            async with session_factory() as session:
                repo = HealthRepository(session=session)
                checks["database"] = "ok" if await repo.check_database() else "error"
                checks["ledger"] = "ok" if await repo.check_ledger() else "error"
        except (OSError, ConnectionError) as e:
            checks["database"] = f"error: {str(e)}"

        status = "ok" if all(check == "ok" for check in checks.values()) else "degraded"

        return HealthResponse(
            status=status,
            uptime=uptime_str,
            transaction_policy=self.transactions.name,
            checks=checks,
        )
