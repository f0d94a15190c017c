"""
Time entry model. Entries are written by the timesheet editor; the workflow
only groups them by project when a timesheet is submitted.
"""

from sqlalchemy import Column, String, Date, ForeignKey, Numeric
from sqlalchemy.dialects.postgresql import UUID
import uuid

from teamreview.db.base import Base


class TimeEntry(Base):
    """Hours logged against one project on one day."""

    __tablename__ = "time_entries"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    timesheet_id = Column(UUID(as_uuid=True), ForeignKey("timesheets.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False, index=True)
    entry_date = Column(Date, nullable=False)
    hours = Column(Numeric(10, 2), nullable=False, default=0)
    description = Column(String(2000), nullable=True)
