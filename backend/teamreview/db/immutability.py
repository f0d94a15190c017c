"""
ORM-level immutability for the approval audit trail.

ApprovalHistory rows are append-only: any UPDATE or DELETE issued through the
ORM is stopped before SQL reaches the database.
"""

import logging

from sqlalchemy import event

from teamreview.core.exceptions import ImmutabilityViolationError

logger = logging.getLogger(__name__)


def _block_history_update(mapper, connection, target):
    logger.error(
        "Blocked update of approval history row",
        extra={"entity_id": str(target.id), "operation": "UPDATE"},
    )
    raise ImmutabilityViolationError("ApprovalHistory", str(target.id))


def _block_history_delete(mapper, connection, target):
    logger.error(
        "Blocked delete of approval history row",
        extra={"entity_id": str(target.id), "operation": "DELETE"},
    )
    raise ImmutabilityViolationError("ApprovalHistory", str(target.id))


def register_immutability_listeners() -> None:
    """Install the listeners once; safe to call repeatedly."""
    from teamreview.models.approval import ApprovalHistory

    if not event.contains(ApprovalHistory, "before_update", _block_history_update):
        event.listen(ApprovalHistory, "before_update", _block_history_update)
    if not event.contains(ApprovalHistory, "before_delete", _block_history_delete):
        event.listen(ApprovalHistory, "before_delete", _block_history_delete)


def unregister_immutability_listeners() -> None:
    """Remove the listeners. Tests only."""
    from teamreview.models.approval import ApprovalHistory

    if event.contains(ApprovalHistory, "before_update", _block_history_update):
        event.remove(ApprovalHistory, "before_update", _block_history_update)
    if event.contains(ApprovalHistory, "before_delete", _block_history_delete):
        event.remove(ApprovalHistory, "before_delete", _block_history_delete)
