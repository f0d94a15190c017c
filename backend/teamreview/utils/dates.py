"""
Date helpers shared by models and workflow services.
"""

from datetime import date, datetime, timezone

_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def utc_now() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_week_label(start: date, end: date) -> str:
    """
    Human-readable label for a project-week.

    >>> format_week_label(date(2025, 2, 3), date(2025, 2, 9))
    'Feb 3-9, 2025'
    >>> format_week_label(date(2025, 1, 27), date(2025, 2, 2))
    'Jan 27 - Feb 2, 2025'
    """
    start_month = _MONTHS[start.month - 1]
    end_month = _MONTHS[end.month - 1]
    if start.year != end.year:
        return f"{start_month} {start.day}, {start.year} - {end_month} {end.day}, {end.year}"
    if start.month == end.month:
        return f"{start_month} {start.day}-{end.day}, {start.year}"
    return f"{start_month} {start.day} - {end_month} {end.day}, {start.year}"
