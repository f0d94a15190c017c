"""
Project model. Project CRUD lives elsewhere; the workflow reads reviewer
assignments and approval settings from it.
"""

from sqlalchemy import Column, String, ForeignKey, JSON
from sqlalchemy.dialects.postgresql import UUID
import uuid

from teamreview.db.base import Base


def _default_approval_settings() -> dict:
    return {"lead_approval_auto_escalates": False}


class Project(Base):
    """Project with one primary manager and an optional lead."""

    __tablename__ = "projects"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String(200), nullable=False)
    primary_manager_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    lead_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    approval_settings = Column(JSON, nullable=False, default=_default_approval_settings)

    @property
    def lead_approval_auto_escalates(self) -> bool:
        """Lead approval doubles as manager approval for this project."""
        return bool((self.approval_settings or {}).get("lead_approval_auto_escalates", False))
