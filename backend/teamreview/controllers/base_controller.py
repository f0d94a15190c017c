"""
Base controller class.
Controllers sit between the endpoints and the workflow services and return Pydantic schemas.
"""

from abc import ABC
from typing import Tuple
from uuid import UUID

from teamreview.models.user import User


class BaseController(ABC):
    """Base controller class for all controllers."""

    @staticmethod
    def actor_identity(actor: User) -> Tuple[UUID, str]:
        """Return the (id, role) pair the services record for an action."""
        return actor.id, getattr(actor.role, "value", actor.role)
