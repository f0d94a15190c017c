"""
Dependency injection container using dependency-injector.
Wires the transaction policy and health controller.
"""

from dependency_injector import containers, providers

from teamreview.controllers.health_controller import HealthController
from teamreview.db.transactions import TransactionPolicy, build_transaction_policy
from teamreview.services.health_service import HealthService


class Container(containers.DeclarativeContainer):
    """Dependency injection container."""

    # Configuration
    config = providers.Configuration()

    # One policy per process, chosen from USE_TRANSACTIONS
    transaction_policy = providers.Singleton(
        build_transaction_policy,
        use_transactions=config.use_transactions,
    )

    # Services
    health_service = providers.Singleton(
        HealthService,
        transactions=transaction_policy,
    )

    # Controllers
    health_controller = providers.Factory(
        HealthController,
        health_service=health_service,
    )


# Global container instance
_container: Container = None


def get_container() -> Container:
    """Get the global dependency injection container."""
    global _container
    if _container is None:
        from teamreview.core.config import settings

        _container = Container()
        _container.config.from_dict({
            "database_url": settings.DATABASE_URL,
            "use_transactions": settings.USE_TRANSACTIONS,
        })
    return _container


def get_transaction_policy() -> TransactionPolicy:
    """FastAPI dependency returning the configured transaction policy."""
    return get_container().transaction_policy()
