"""
Timesheet workflow endpoint tests using httpx.AsyncClient.
"""

import uuid

from teamreview.models import UserRole

from conftest import WEEK_END, WEEK_START

API = "/api/v1/timesheets"


def as_user(user):
    return {"X-User-Id": str(user.id)}


async def test_submit_approve_and_read_back(test_client, factory):
    manager = await factory.user(UserRole.MANAGER)
    employee = await factory.user(UserRole.EMPLOYEE)
    project = await factory.project(manager)
    ts = await factory.timesheet(employee, hours=[(project, "8"), (project, "8")])

    response = await test_client.post(f"{API}/{ts.id}/submit", headers=as_user(employee))
    assert response.status_code == 200
    assert response.json()["status"] == "submitted"

    response = await test_client.post(
        f"{API}/{ts.id}/approve",
        json={"project_id": str(project.id)},
        headers=as_user(manager),
    )
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["all_approved"] is True
    assert data["new_status"] == "manager_approved"

    response = await test_client.get(f"{API}/{ts.id}/approvals", headers=as_user(manager))
    assert response.status_code == 200
    ledger = response.json()
    assert ledger["status"] == "manager_approved"
    assert len(ledger["approvals"]) == 1
    assert ledger["approvals"][0]["manager_status"] == "approved"
    assert ledger["approvals"][0]["entries_count"] == 2

    response = await test_client.get(f"{API}/{ts.id}/history", headers=as_user(manager))
    assert response.status_code == 200
    history = response.json()
    assert history["total"] == 2
    assert sorted(item["action"] for item in history["items"]) == ["approved", "submitted"]


async def test_missing_actor_header_is_unauthorized(test_client):
    response = await test_client.get(f"{API}/{uuid.uuid4()}/approvals")

    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Missing X-User-Id header"


async def test_unknown_timesheet_is_not_found(test_client, factory):
    manager = await factory.user(UserRole.MANAGER)

    response = await test_client.post(
        f"{API}/{uuid.uuid4()}/approve",
        json={"project_id": str(uuid.uuid4())},
        headers=as_user(manager),
    )

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Timesheet not found"


async def test_short_rejection_reason_is_a_validation_error(test_client, factory):
    manager = await factory.user(UserRole.MANAGER)

    response = await test_client.post(
        f"{API}/{uuid.uuid4()}/reject",
        json={"project_id": str(uuid.uuid4()), "reason": "too short"},
        headers=as_user(manager),
    )

    assert response.status_code == 422
    assert response.json()["error"]["message"] == "Validation error"


async def test_invalid_transition_is_a_conflict(test_client, factory):
    manager = await factory.user(UserRole.MANAGER)
    lead = await factory.user(UserRole.LEAD)
    owner = await factory.user(UserRole.LEAD)
    project = await factory.project(manager, lead=lead)
    ts = await factory.timesheet(owner, hours=[(project, "40")])
    await test_client.post(f"{API}/{ts.id}/submit", headers=as_user(owner))

    response = await test_client.post(
        f"{API}/{ts.id}/approve",
        json={"project_id": str(project.id)},
        headers=as_user(lead),
    )

    assert response.status_code == 409
    details = response.json()["error"]["details"]
    assert details["current_status"] == "submitted"
    assert details["acting_role"] == "lead"


async def test_project_week_routes(test_client, factory):
    manager = await factory.user(UserRole.MANAGER)
    management = await factory.user(UserRole.MANAGEMENT)
    project = await factory.project(manager, name="Orion")
    employees = [await factory.user(UserRole.EMPLOYEE) for _ in range(2)]
    for employee in employees:
        ts = await factory.timesheet(employee, hours=[(project, "40")])
        await test_client.post(f"{API}/{ts.id}/submit", headers=as_user(employee))
    body = {
        "project_id": str(project.id),
        "week_start": WEEK_START.isoformat(),
        "week_end": WEEK_END.isoformat(),
    }

    response = await test_client.post(f"{API}/project-week/freeze", json=body, headers=as_user(manager))
    assert response.status_code == 409

    response = await test_client.post(f"{API}/project-week/approve", json=body, headers=as_user(manager))
    assert response.status_code == 200
    data = response.json()
    assert data["affected_users"] == 2
    assert data["project_week"] == {"project_name": "Orion", "week_label": "Feb 3-9, 2025"}

    response = await test_client.post(f"{API}/project-week/freeze", json=body, headers=as_user(management))
    assert response.status_code == 200
    assert response.json()["frozen_count"] == 2


async def test_project_week_rejects_inverted_range(test_client, factory):
    manager = await factory.user(UserRole.MANAGER)

    response = await test_client.post(
        f"{API}/project-week/approve",
        json={
            "project_id": str(uuid.uuid4()),
            "week_start": WEEK_END.isoformat(),
            "week_end": WEEK_START.isoformat(),
        },
        headers=as_user(manager),
    )

    assert response.status_code == 422


async def test_bulk_verify_and_bill(test_client, factory):
    manager = await factory.user(UserRole.MANAGER)
    management = await factory.user(UserRole.MANAGEMENT)
    employee = await factory.user(UserRole.EMPLOYEE)
    project = await factory.project(manager)
    ts = await factory.timesheet(employee, hours=[(project, "40")])
    await test_client.post(f"{API}/{ts.id}/submit", headers=as_user(employee))
    await test_client.post(
        f"{API}/{ts.id}/approve", json={"project_id": str(project.id)}, headers=as_user(manager),
    )

    response = await test_client.post(
        f"{API}/bulk/verify",
        json={"timesheet_ids": [str(ts.id), str(uuid.uuid4())]},
        headers=as_user(management),
    )
    assert response.status_code == 200
    assert response.json() == {"processed_count": 1, "failed_count": 1}

    response = await test_client.post(f"{API}/{ts.id}/mark-billed", headers=as_user(management))
    assert response.status_code == 200
    assert response.json()["status"] == "billed"

    response = await test_client.post(
        f"{API}/bulk/bill", json={"timesheet_ids": [str(ts.id)]}, headers=as_user(management),
    )
    assert response.json() == {"processed_count": 0, "failed_count": 1}


async def test_bulk_requires_ids(test_client, factory):
    management = await factory.user(UserRole.MANAGEMENT)

    response = await test_client.post(f"{API}/bulk/verify", json={"timesheet_ids": []}, headers=as_user(management))

    assert response.status_code == 422


async def test_padded_rejection_reason_is_a_validation_error(test_client, factory):
    manager = await factory.user(UserRole.MANAGER)
    employee = await factory.user(UserRole.EMPLOYEE)
    project = await factory.project(manager)
    ts = await factory.timesheet(employee, hours=[(project, "40")])
    await test_client.post(f"{API}/{ts.id}/submit", headers=as_user(employee))

    response = await test_client.post(
        f"{API}/{ts.id}/reject",
        json={"project_id": str(project.id), "reason": "x         "},
        headers=as_user(manager),
    )
    assert response.status_code == 422

    response = await test_client.post(
        f"{API}/project-week/reject",
        json={
            "project_id": str(project.id),
            "week_start": WEEK_START.isoformat(),
            "week_end": WEEK_END.isoformat(),
            "reason": "   short   ",
        },
        headers=as_user(manager),
    )
    assert response.status_code == 422

    response = await test_client.get(f"{API}/{ts.id}/approvals", headers=as_user(manager))
    assert response.json()["status"] == "submitted"
