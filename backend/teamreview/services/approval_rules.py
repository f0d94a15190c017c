"""
Approval rules - pure functions over in-memory ledger entries.

Nothing in this module touches the database. The single-record and the bulk
services both go through the same three steps per ledger entry:

    check_can_approve / check_can_reject   -> raises InvalidTransitionError
    mark_approved / mark_rejected          -> mutates the ProjectApproval
    status_after_approval / _rejection     -> new timesheet status

Tier readiness (``all_leads_approved`` / ``all_managers_approved``) is always
recomputed from the full ledger of the timesheet, never cached.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional
from uuid import UUID

from teamreview.core.config import settings
from teamreview.core.exceptions import InvalidTransitionError, ValidationError
from teamreview.models.approval import ApprovalTier, ApproverRole, ProjectApproval, TierStatus
from teamreview.models.timesheet import Timesheet, TimesheetStatus
from teamreview.models.user import UserRole

S = TimesheetStatus

TIER_BY_ROLE: Dict[ApproverRole, ApprovalTier] = {
    ApproverRole.LEAD: ApprovalTier.LEAD,
    ApproverRole.MANAGER: ApprovalTier.MANAGER,
    ApproverRole.SUPER_ADMIN: ApprovalTier.MANAGER,
    ApproverRole.MANAGEMENT: ApprovalTier.MANAGEMENT,
}

REJECTED_STATUS_BY_TIER: Dict[ApprovalTier, TimesheetStatus] = {
    ApprovalTier.LEAD: S.LEAD_REJECTED,
    ApprovalTier.MANAGER: S.MANAGER_REJECTED,
    ApprovalTier.MANAGEMENT: S.MANAGEMENT_REJECTED,
}

# Statuses a freeze must never skip over
CONTESTED_STATUSES: FrozenSet[TimesheetStatus] = frozenset(
    {S.SUBMITTED, S.MANAGER_REJECTED, S.MANAGEMENT_REJECTED}
)

TERMINAL_STATUSES: FrozenSet[TimesheetStatus] = frozenset({S.FROZEN, S.BILLED})

SATISFIED = (TierStatus.APPROVED, TierStatus.NOT_REQUIRED)


@dataclass
class TransitionContext:
    """Everything a guard or recompute needs to know besides the ledger."""
    tier: ApprovalTier
    acting_role: str
    owner_role: UserRole
    current_status: TimesheetStatus
    auto_escalates: bool = False
    # Status of the acting tier on the ledger entry being reviewed
    tier_status: Optional[TierStatus] = None


@dataclass
class MarkResult:
    """What marking a ledger entry did beyond the tier itself."""
    lead_bypassed: bool = False
    notes: List[str] = field(default_factory=list)


def resolve_tier(role) -> ApprovalTier:
    """Map an acting role to the tier it reviews."""
    role_value = getattr(role, "value", role)
    try:
        return TIER_BY_ROLE[ApproverRole(role_value)]
    except ValueError:
        raise InvalidTransitionError(
            f"Role '{role_value}' cannot approve or reject timesheets",
            acting_role=str(role_value),
        )


def _require(ctx: TransitionContext, allowed: Iterable[TimesheetStatus], action: str) -> None:
    allowed = set(allowed)
    if ctx.current_status not in allowed:
        raise InvalidTransitionError(
            f"Cannot {action} timesheet with status {ctx.current_status.value} "
            f"as {ctx.acting_role} (owner role {ctx.owner_role.value})",
            current_status=ctx.current_status.value,
            required_status=[s.value for s in allowed],
            acting_role=ctx.acting_role,
        )


def _require_employee_owner(ctx: TransitionContext) -> None:
    if ctx.owner_role != UserRole.EMPLOYEE:
        raise InvalidTransitionError(
            "Lead can only review Employee timesheets",
            current_status=ctx.current_status.value,
            acting_role=ctx.acting_role,
            details={"owner_role": ctx.owner_role.value},
        )


def _require_lead_tier(ctx: TransitionContext) -> None:
    if ctx.tier_status == TierStatus.NOT_REQUIRED:
        raise InvalidTransitionError(
            "Lead review is not required for this project",
            current_status=ctx.current_status.value,
            acting_role=ctx.acting_role,
            details={"lead_status": TierStatus.NOT_REQUIRED.value},
        )


# -- guards -----------------------------------------------------------------

def _guard_lead_approve(ctx: TransitionContext) -> None:
    _require_employee_owner(ctx)
    _require_lead_tier(ctx)
    _require(ctx, {S.SUBMITTED, S.LEAD_APPROVED}, "approve")


def _guard_manager_approve(ctx: TransitionContext) -> None:
    # Lead-approved is the recommended path; submitted allows the direct
    # path and the reviewers' own timesheets.
    if ctx.current_status == S.SUBMITTED and ctx.owner_role in (
        UserRole.EMPLOYEE, UserRole.LEAD, UserRole.MANAGER,
    ):
        return
    _require(ctx, {S.LEAD_APPROVED, S.MANAGEMENT_REJECTED}, "approve")


def _guard_management_approve(ctx: TransitionContext) -> None:
    _require(ctx, {S.MANAGER_APPROVED, S.MANAGEMENT_PENDING}, "verify")


def _guard_lead_reject(ctx: TransitionContext) -> None:
    _require_employee_owner(ctx)
    _require_lead_tier(ctx)
    _require(ctx, {S.SUBMITTED, S.LEAD_APPROVED}, "reject")


def _guard_manager_reject(ctx: TransitionContext) -> None:
    _require(
        ctx,
        {S.SUBMITTED, S.LEAD_APPROVED, S.MANAGER_APPROVED, S.MANAGEMENT_PENDING, S.MANAGEMENT_REJECTED},
        "reject",
    )


def _guard_management_reject(ctx: TransitionContext) -> None:
    _require(ctx, {S.MANAGER_APPROVED, S.MANAGEMENT_PENDING}, "reject")


APPROVE_GUARDS: Dict[ApprovalTier, Callable[[TransitionContext], None]] = {
    ApprovalTier.LEAD: _guard_lead_approve,
    ApprovalTier.MANAGER: _guard_manager_approve,
    ApprovalTier.MANAGEMENT: _guard_management_approve,
}

REJECT_GUARDS: Dict[ApprovalTier, Callable[[TransitionContext], None]] = {
    ApprovalTier.LEAD: _guard_lead_reject,
    ApprovalTier.MANAGER: _guard_manager_reject,
    ApprovalTier.MANAGEMENT: _guard_management_reject,
}


def check_can_approve(ctx: TransitionContext) -> None:
    APPROVE_GUARDS[ctx.tier](ctx)


def check_can_reject(ctx: TransitionContext) -> None:
    REJECT_GUARDS[ctx.tier](ctx)


# -- markers ----------------------------------------------------------------

def _mark_lead(approval: ProjectApproval, ctx: TransitionContext, now: datetime) -> MarkResult:
    approval.set_tier(ApprovalTier.LEAD, TierStatus.APPROVED, approved_at=now)
    if ctx.auto_escalates:
        approval.set_tier(ApprovalTier.MANAGER, TierStatus.APPROVED, approved_at=now)
        return MarkResult(notes=["Lead approval auto-escalated to manager"])
    return MarkResult()


def _mark_manager(approval: ProjectApproval, ctx: TransitionContext, now: datetime) -> MarkResult:
    approval.set_tier(ApprovalTier.MANAGER, TierStatus.APPROVED, approved_at=now)
    if (
        ctx.current_status == S.SUBMITTED
        and ctx.owner_role == UserRole.EMPLOYEE
        and approval.lead_status == TierStatus.PENDING
    ):
        approval.set_tier(ApprovalTier.LEAD, TierStatus.NOT_REQUIRED)
        return MarkResult(lead_bypassed=True, notes=["Lead review bypassed by direct manager approval"])
    return MarkResult()


def _mark_management(approval: ProjectApproval, ctx: TransitionContext, now: datetime) -> MarkResult:
    approval.set_tier(ApprovalTier.MANAGEMENT, TierStatus.APPROVED, approved_at=now)
    return MarkResult()


APPROVE_MARKERS: Dict[ApprovalTier, Callable[[ProjectApproval, TransitionContext, datetime], MarkResult]] = {
    ApprovalTier.LEAD: _mark_lead,
    ApprovalTier.MANAGER: _mark_manager,
    ApprovalTier.MANAGEMENT: _mark_management,
}


def mark_approved(approval: ProjectApproval, ctx: TransitionContext, now: datetime) -> MarkResult:
    return APPROVE_MARKERS[ctx.tier](approval, ctx, now)


def mark_rejected(approval: ProjectApproval, tier: ApprovalTier, reason: str) -> None:
    approval.set_tier(tier, TierStatus.REJECTED, rejection_reason=reason)


# -- derivation -------------------------------------------------------------

def all_leads_approved(approvals: Iterable[ProjectApproval]) -> bool:
    """Every entry with a required lead tier is lead-approved."""
    return all(a.lead_status in SATISFIED for a in approvals)


def all_managers_approved(approvals: Iterable[ProjectApproval]) -> bool:
    """Every entry is manager-approved (or has no manager to approve)."""
    return all(a.manager_status in SATISFIED for a in approvals)


def _recompute_after_lead(approvals: List[ProjectApproval], ctx: TransitionContext) -> TimesheetStatus:
    if not all_leads_approved(approvals):
        return ctx.current_status
    if ctx.auto_escalates:
        if all_managers_approved(approvals):
            return S.MANAGER_APPROVED
        return ctx.current_status
    return S.LEAD_APPROVED


def _recompute_after_manager(approvals: List[ProjectApproval], ctx: TransitionContext) -> TimesheetStatus:
    if not all_managers_approved(approvals):
        return ctx.current_status
    # A manager's own timesheet needs the management tier as well
    if ctx.owner_role == UserRole.MANAGER:
        return S.MANAGEMENT_PENDING
    return S.MANAGER_APPROVED


def _recompute_after_management(approvals: List[ProjectApproval], ctx: TransitionContext) -> TimesheetStatus:
    return S.FROZEN


STATUS_AFTER_APPROVAL: Dict[ApprovalTier, Callable[[List[ProjectApproval], TransitionContext], TimesheetStatus]] = {
    ApprovalTier.LEAD: _recompute_after_lead,
    ApprovalTier.MANAGER: _recompute_after_manager,
    ApprovalTier.MANAGEMENT: _recompute_after_management,
}


def status_after_approval(approvals: Iterable[ProjectApproval], ctx: TransitionContext) -> TimesheetStatus:
    """Timesheet status once the acting tier has been marked on the ledger."""
    return STATUS_AFTER_APPROVAL[ctx.tier](list(approvals), ctx)


def status_after_rejection(tier: ApprovalTier) -> TimesheetStatus:
    return REJECTED_STATUS_BY_TIER[tier]


# -- ledger (re)initialisation ----------------------------------------------

def initial_tier_statuses(
    owner_role: UserRole,
    lead_id: Optional[UUID],
    manager_id: Optional[UUID],
) -> Dict[ApprovalTier, TierStatus]:
    """
    Baseline status of each tier for a fresh or reset ledger entry.

    The lead tier only applies to employee work on projects with a lead; the
    manager tier needs a manager on the project.
    """
    lead_required = lead_id is not None and owner_role == UserRole.EMPLOYEE
    return {
        ApprovalTier.LEAD: TierStatus.PENDING if lead_required else TierStatus.NOT_REQUIRED,
        ApprovalTier.MANAGER: TierStatus.PENDING if manager_id is not None else TierStatus.NOT_REQUIRED,
        ApprovalTier.MANAGEMENT: TierStatus.PENDING,
    }


def reinitialize(approval: ProjectApproval, owner_role: UserRole) -> None:
    """Put every tier back to its baseline and clear timestamps and reasons."""
    baseline = initial_tier_statuses(owner_role, approval.lead_id, approval.manager_id)
    for tier, tier_status in baseline.items():
        approval.set_tier(tier, tier_status)


def mark_not_required(approval: ProjectApproval) -> None:
    """Entry whose project no longer has hours on the timesheet."""
    for tier in ApprovalTier:
        approval.set_tier(tier, TierStatus.NOT_REQUIRED)


def reset_other_approvals(
    approvals: Iterable[ProjectApproval],
    exclude_project_id: UUID,
    owner_role: UserRole,
) -> List[ProjectApproval]:
    """
    Rejection reset: every entry except the rejected project's goes back to
    its baseline. Returns the entries that were reset.
    """
    reset = []
    for approval in approvals:
        if approval.project_id == exclude_project_id:
            continue
        reinitialize(approval, owner_role)
        reset.append(approval)
    return reset


# -- timesheet stamps -------------------------------------------------------

def require_reason(reason: Optional[str], min_length: int = settings.REJECTION_REASON_MIN_LENGTH) -> str:
    """A rejection needs a reason of at least ``min_length`` characters once stripped."""
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Rejection reason is required", details={"field": "reason"})
    if len(reason) < min_length:
        raise ValidationError(
            f"Rejection reason must be at least {min_length} characters",
            details={"field": "reason", "min_length": min_length},
        )
    return reason


def stamp_frozen(timesheet: Timesheet, approver_id: UUID, now: datetime) -> None:
    """Management sign-off: the timesheet is verified and frozen."""
    timesheet.status = S.FROZEN
    timesheet.is_frozen = True
    timesheet.is_verified = True
    timesheet.verified_by_id = approver_id
    timesheet.verified_at = now
    timesheet.approved_by_management_id = approver_id
    timesheet.approved_by_management_at = now


def stamp_approval(
    timesheet: Timesheet,
    tier: ApprovalTier,
    new_status: TimesheetStatus,
    approver_id: UUID,
    now: datetime,
) -> None:
    """Apply the derived status and the approver stamp that goes with it."""
    if tier == ApprovalTier.MANAGEMENT:
        stamp_frozen(timesheet, approver_id, now)
        return
    timesheet.status = new_status
    if tier == ApprovalTier.LEAD and new_status == S.LEAD_APPROVED:
        timesheet.approved_by_lead_id = approver_id
        timesheet.approved_by_lead_at = now
    elif new_status in (S.MANAGER_APPROVED, S.MANAGEMENT_PENDING):
        timesheet.approved_by_manager_id = approver_id
        timesheet.approved_by_manager_at = now


def stamp_rejection(timesheet: Timesheet, tier: ApprovalTier, reason: str, now: datetime) -> None:
    timesheet.status = status_after_rejection(tier)
    setattr(timesheet, f"{tier.value}_rejection_reason", reason)
    setattr(timesheet, f"{tier.value}_rejected_at", now)


FINALIZER_ROLES: FrozenSet[str] = frozenset({ApproverRole.MANAGEMENT.value, ApproverRole.SUPER_ADMIN.value})


def require_finalizer_role(role, action: str) -> str:
    """Freeze, verify and bill are management actions."""
    role_value = getattr(role, "value", role)
    if role_value not in FINALIZER_ROLES:
        raise InvalidTransitionError(
            f"Only management can {action}",
            acting_role=str(role_value),
        )
    return role_value
