"""
Approval rule tests. Pure functions, no database.
"""

import uuid
from datetime import date, datetime

import pytest

from teamreview.core.exceptions import InvalidTransitionError, ValidationError
from teamreview.models.approval import ApprovalTier, ApproverRole, ProjectApproval, TierStatus
from teamreview.models.timesheet import TimesheetStatus
from teamreview.models.user import UserRole
from teamreview.services import approval_rules as rules
from teamreview.utils.dates import format_week_label

NOW = datetime(2025, 2, 10, 9, 0, 0)


def make_approval(
    lead=TierStatus.PENDING,
    manager=TierStatus.PENDING,
    management=TierStatus.PENDING,
    lead_id=None,
    manager_id=None,
) -> ProjectApproval:
    return ProjectApproval(
        timesheet_id=uuid.uuid4(),
        project_id=uuid.uuid4(),
        lead_id=lead_id if lead_id is not None else uuid.uuid4(),
        manager_id=manager_id if manager_id is not None else uuid.uuid4(),
        lead_status=lead,
        manager_status=manager,
        management_status=management,
    )


def ctx(tier, status, owner=UserRole.EMPLOYEE, auto=False, role=None, tier_status=None):
    return rules.TransitionContext(
        tier=tier,
        acting_role=role or tier.value,
        owner_role=owner,
        current_status=status,
        auto_escalates=auto,
        tier_status=tier_status,
    )


def test_every_tier_has_handlers_for_both_actions():
    for tier in ApprovalTier:
        assert tier in rules.APPROVE_GUARDS
        assert tier in rules.REJECT_GUARDS
        assert tier in rules.APPROVE_MARKERS
        assert tier in rules.STATUS_AFTER_APPROVAL
        assert tier in rules.REJECTED_STATUS_BY_TIER


def test_every_approver_role_resolves_to_a_tier():
    for role in ApproverRole:
        assert rules.resolve_tier(role) in ApprovalTier
    assert rules.resolve_tier("super_admin") == ApprovalTier.MANAGER
    assert rules.resolve_tier(UserRole.MANAGEMENT) == ApprovalTier.MANAGEMENT


def test_employee_cannot_act_as_approver():
    with pytest.raises(InvalidTransitionError) as exc_info:
        rules.resolve_tier(UserRole.EMPLOYEE)
    assert exc_info.value.details["acting_role"] == "employee"


def test_all_leads_approved_counts_not_required_as_satisfied():
    approvals = [
        make_approval(lead=TierStatus.APPROVED),
        make_approval(lead=TierStatus.NOT_REQUIRED),
    ]
    assert rules.all_leads_approved(approvals)

    approvals.append(make_approval(lead=TierStatus.PENDING))
    assert not rules.all_leads_approved(approvals)


def test_all_managers_approved():
    assert rules.all_managers_approved([
        make_approval(manager=TierStatus.APPROVED),
        make_approval(manager=TierStatus.NOT_REQUIRED),
    ])
    assert not rules.all_managers_approved([
        make_approval(manager=TierStatus.APPROVED),
        make_approval(manager=TierStatus.REJECTED),
    ])


def test_initial_tier_statuses():
    lead_id, manager_id = uuid.uuid4(), uuid.uuid4()

    employee = rules.initial_tier_statuses(UserRole.EMPLOYEE, lead_id, manager_id)
    assert employee == {
        ApprovalTier.LEAD: TierStatus.PENDING,
        ApprovalTier.MANAGER: TierStatus.PENDING,
        ApprovalTier.MANAGEMENT: TierStatus.PENDING,
    }

    # Leads never review a lead's or manager's own work
    manager_owned = rules.initial_tier_statuses(UserRole.MANAGER, lead_id, manager_id)
    assert manager_owned[ApprovalTier.LEAD] == TierStatus.NOT_REQUIRED

    no_lead = rules.initial_tier_statuses(UserRole.EMPLOYEE, None, manager_id)
    assert no_lead[ApprovalTier.LEAD] == TierStatus.NOT_REQUIRED
    assert no_lead[ApprovalTier.MANAGER] == TierStatus.PENDING


def test_lead_approve_guard():
    rules.check_can_approve(ctx(ApprovalTier.LEAD, TimesheetStatus.SUBMITTED))
    rules.check_can_approve(ctx(ApprovalTier.LEAD, TimesheetStatus.LEAD_APPROVED))

    with pytest.raises(InvalidTransitionError):
        rules.check_can_approve(ctx(ApprovalTier.LEAD, TimesheetStatus.SUBMITTED, owner=UserRole.LEAD))

    for status in (TimesheetStatus.FROZEN, TimesheetStatus.BILLED, TimesheetStatus.DRAFT):
        with pytest.raises(InvalidTransitionError):
            rules.check_can_approve(ctx(ApprovalTier.LEAD, status))


def test_lead_guards_refuse_entry_without_lead_tier():
    rules.check_can_approve(
        ctx(ApprovalTier.LEAD, TimesheetStatus.SUBMITTED, tier_status=TierStatus.PENDING)
    )
    for check in (rules.check_can_approve, rules.check_can_reject):
        with pytest.raises(InvalidTransitionError) as exc_info:
            check(ctx(ApprovalTier.LEAD, TimesheetStatus.SUBMITTED, tier_status=TierStatus.NOT_REQUIRED))
        assert exc_info.value.details["lead_status"] == "not_required"

    # Only the lead tier cares; a manager may act where there is no lead
    rules.check_can_approve(
        ctx(ApprovalTier.MANAGER, TimesheetStatus.SUBMITTED, tier_status=TierStatus.PENDING)
    )


def test_manager_approve_guard():
    for owner in (UserRole.EMPLOYEE, UserRole.LEAD, UserRole.MANAGER):
        rules.check_can_approve(ctx(ApprovalTier.MANAGER, TimesheetStatus.SUBMITTED, owner=owner))
    rules.check_can_approve(ctx(ApprovalTier.MANAGER, TimesheetStatus.LEAD_APPROVED))
    rules.check_can_approve(ctx(ApprovalTier.MANAGER, TimesheetStatus.MANAGEMENT_REJECTED))

    with pytest.raises(InvalidTransitionError) as exc_info:
        rules.check_can_approve(ctx(ApprovalTier.MANAGER, TimesheetStatus.FROZEN))
    details = exc_info.value.details
    assert details["current_status"] == "frozen"
    assert details["acting_role"] == "manager"
    assert "lead_approved" in details["required_status"]


def test_management_guards():
    rules.check_can_approve(ctx(ApprovalTier.MANAGEMENT, TimesheetStatus.MANAGER_APPROVED))
    rules.check_can_approve(ctx(ApprovalTier.MANAGEMENT, TimesheetStatus.MANAGEMENT_PENDING))
    rules.check_can_reject(ctx(ApprovalTier.MANAGEMENT, TimesheetStatus.MANAGEMENT_PENDING))

    with pytest.raises(InvalidTransitionError):
        rules.check_can_approve(ctx(ApprovalTier.MANAGEMENT, TimesheetStatus.SUBMITTED))
    with pytest.raises(InvalidTransitionError):
        rules.check_can_reject(ctx(ApprovalTier.MANAGEMENT, TimesheetStatus.LEAD_APPROVED))


@pytest.mark.parametrize("status", [TimesheetStatus.FROZEN, TimesheetStatus.BILLED, TimesheetStatus.DRAFT])
def test_closed_timesheets_cannot_be_rejected(status):
    for tier in ApprovalTier:
        with pytest.raises(InvalidTransitionError):
            rules.check_can_reject(ctx(tier, status))


def test_lead_marker_auto_escalates():
    approval = make_approval()
    result = rules.mark_approved(approval, ctx(ApprovalTier.LEAD, TimesheetStatus.SUBMITTED, auto=True), NOW)

    assert approval.lead_status == TierStatus.APPROVED
    assert approval.manager_status == TierStatus.APPROVED
    assert approval.manager_approved_at == NOW
    assert result.notes


def test_manager_marker_bypasses_pending_lead():
    approval = make_approval()
    result = rules.mark_approved(approval, ctx(ApprovalTier.MANAGER, TimesheetStatus.SUBMITTED), NOW)

    assert result.lead_bypassed
    assert approval.lead_status == TierStatus.NOT_REQUIRED
    assert approval.manager_status == TierStatus.APPROVED


def test_manager_marker_keeps_approved_lead():
    approval = make_approval(lead=TierStatus.APPROVED)
    result = rules.mark_approved(approval, ctx(ApprovalTier.MANAGER, TimesheetStatus.SUBMITTED), NOW)

    assert not result.lead_bypassed
    assert approval.lead_status == TierStatus.APPROVED


def test_status_after_lead_approval():
    pending = [make_approval(lead=TierStatus.APPROVED), make_approval()]
    assert rules.status_after_approval(
        pending, ctx(ApprovalTier.LEAD, TimesheetStatus.SUBMITTED)
    ) == TimesheetStatus.SUBMITTED

    done = [make_approval(lead=TierStatus.APPROVED), make_approval(lead=TierStatus.NOT_REQUIRED)]
    assert rules.status_after_approval(
        done, ctx(ApprovalTier.LEAD, TimesheetStatus.SUBMITTED)
    ) == TimesheetStatus.LEAD_APPROVED

    escalated = [make_approval(lead=TierStatus.APPROVED, manager=TierStatus.APPROVED)]
    assert rules.status_after_approval(
        escalated, ctx(ApprovalTier.LEAD, TimesheetStatus.SUBMITTED, auto=True)
    ) == TimesheetStatus.MANAGER_APPROVED


def test_status_after_manager_approval_depends_on_owner():
    approvals = [make_approval(manager=TierStatus.APPROVED)]
    assert rules.status_after_approval(
        approvals, ctx(ApprovalTier.MANAGER, TimesheetStatus.SUBMITTED, owner=UserRole.MANAGER)
    ) == TimesheetStatus.MANAGEMENT_PENDING
    assert rules.status_after_approval(
        approvals, ctx(ApprovalTier.MANAGER, TimesheetStatus.LEAD_APPROVED)
    ) == TimesheetStatus.MANAGER_APPROVED


def test_management_approval_always_freezes():
    approvals = [make_approval(manager=TierStatus.APPROVED, management=TierStatus.APPROVED)]
    assert rules.status_after_approval(
        approvals, ctx(ApprovalTier.MANAGEMENT, TimesheetStatus.MANAGEMENT_PENDING)
    ) == TimesheetStatus.FROZEN


def test_status_after_rejection():
    assert rules.status_after_rejection(ApprovalTier.LEAD) == TimesheetStatus.LEAD_REJECTED
    assert rules.status_after_rejection(ApprovalTier.MANAGER) == TimesheetStatus.MANAGER_REJECTED
    assert rules.status_after_rejection(ApprovalTier.MANAGEMENT) == TimesheetStatus.MANAGEMENT_REJECTED


def test_reset_keeps_rejected_project_and_not_required_tiers():
    rejected = make_approval(lead=TierStatus.APPROVED)
    rules.mark_rejected(rejected, ApprovalTier.MANAGER, "Hours do not match the plan")

    approved = make_approval(lead=TierStatus.APPROVED, manager=TierStatus.APPROVED)
    approved.lead_approved_at = NOW
    no_lead = make_approval(lead=TierStatus.NOT_REQUIRED, manager=TierStatus.APPROVED)
    no_lead.lead_id = None

    reset = rules.reset_other_approvals([rejected, approved, no_lead], rejected.project_id, UserRole.EMPLOYEE)

    assert reset == [approved, no_lead]
    assert rejected.manager_status == TierStatus.REJECTED
    assert rejected.manager_rejection_reason == "Hours do not match the plan"

    assert approved.lead_status == TierStatus.PENDING
    assert approved.manager_status == TierStatus.PENDING
    assert approved.lead_approved_at is None

    assert no_lead.lead_status == TierStatus.NOT_REQUIRED
    assert no_lead.manager_status == TierStatus.PENDING


def test_require_reason():
    assert rules.require_reason("  Too many hours on Friday  ") == "Too many hours on Friday"
    for blank in (None, "", "   "):
        with pytest.raises(ValidationError):
            rules.require_reason(blank)

    with pytest.raises(ValidationError) as exc_info:
        rules.require_reason("x         ")
    assert exc_info.value.message == "Rejection reason must be at least 10 characters"
    assert rules.require_reason("  Too short  ", min_length=5) == "Too short"


def test_require_finalizer_role():
    assert rules.require_finalizer_role(UserRole.SUPER_ADMIN, "bill timesheets") == "super_admin"
    with pytest.raises(InvalidTransitionError):
        rules.require_finalizer_role(UserRole.MANAGER, "bill timesheets")


@pytest.mark.parametrize(
    "start,end,label",
    [
        (date(2025, 2, 3), date(2025, 2, 9), "Feb 3-9, 2025"),
        (date(2025, 1, 27), date(2025, 2, 2), "Jan 27 - Feb 2, 2025"),
        (date(2024, 12, 30), date(2025, 1, 5), "Dec 30, 2024 - Jan 5, 2025"),
    ],
)
def test_format_week_label(start, end, label):
    assert format_week_label(start, end) == label
