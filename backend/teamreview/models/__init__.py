"""
Database models.
Import all models here to ensure they're registered with Base.
"""

from teamreview.models.user import User, UserRole
from teamreview.models.project import Project
from teamreview.models.timesheet import Timesheet, TimesheetStatus
from teamreview.models.time_entry import TimeEntry
from teamreview.models.approval import (
    ApprovalAction,
    ApprovalHistory,
    ApprovalTier,
    ApproverRole,
    ProjectApproval,
    TierStatus,
)

__all__ = [
    "User",
    "UserRole",
    "Project",
    "Timesheet",
    "TimesheetStatus",
    "TimeEntry",
    "ApprovalAction",
    "ApprovalHistory",
    "ApprovalTier",
    "ApproverRole",
    "ProjectApproval",
    "TierStatus",
]
