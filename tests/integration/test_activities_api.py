"""Integration tests for Activities API endpoints."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

pytestmark = pytest.mark.integration

BASE_URL = "/api/v1/activities"


def _create(client, headers, payload):
    response = client.post(BASE_URL, json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _parse(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_create_task(client, auth_headers, organization_id, user_id):
    data = _create(
        client,
        auth_headers,
        {
            "kind": "task",
            "subject": "Prepare quote",
            "checklist": [
                {"text": "Collect requirements", "completed": True},
                {"text": "Price items"},
                {"text": "Review"},
                {"text": "Send"},
            ],
        },
    )

    assert data["kind"] == "task"
    assert data["subject"] == "Prepare quote"
    assert data["organization_id"] == str(organization_id)
    assert data["user_id"] == str(user_id)
    assert data["priority"] == "medium"
    assert data["progress"] == 25
    assert data["ticket_number"] is None


def test_create_support_ticket(client, auth_headers):
    data = _create(
        client,
        auth_headers,
        {"kind": "support_ticket", "subject": "Login broken", "severity": "high"},
    )

    assert data["ticket_number"].startswith("TKT-")
    assert data["ticket_status"] == "open"
    assert data["sla_breached"] is False
    assert _parse(data["sla_due_at"]) - _parse(data["created_at"]) == timedelta(hours=4)


def test_create_with_field_of_other_kind(client, auth_headers):
    response = client.post(
        BASE_URL, json={"kind": "note", "severity": "high"}, headers=auth_headers
    )
    # Not part of the note schema, so it is ignored
    assert response.status_code == 201
    assert response.json()["data"]["severity"] is None


def test_create_unknown_kind(client, auth_headers):
    response = client.post(BASE_URL, json={"kind": "fax"}, headers=auth_headers)

    assert response.status_code == 422
    body = response.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["data"] is None


def test_requires_authentication(client):
    response = client.get(BASE_URL)
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "AUTH_UNAUTHORIZED"


def test_viewer_cannot_create(client, viewer_headers):
    response = client.post(BASE_URL, json={"kind": "task"}, headers=viewer_headers)
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "AUTH_INSUFFICIENT_PERMISSIONS"


def test_list_get_and_tenant_isolation(client, auth_headers, viewer_headers):
    task = _create(client, auth_headers, {"kind": "task", "subject": "Visible"})
    _create(client, auth_headers, {"kind": "note", "subject": "Note"})

    listing = client.get(BASE_URL, params={"kind": "task"}, headers=viewer_headers)
    assert listing.status_code == 200
    body = listing.json()
    assert [item["id"] for item in body["data"]] == [task["id"]]
    assert body["meta"] == {"total": 1, "page": 1, "page_size": 20, "total_pages": 1}

    fetched = client.get(f"{BASE_URL}/{task['id']}", headers=viewer_headers)
    assert fetched.status_code == 200
    assert fetched.json()["data"]["subject"] == "Visible"

    from app.core.auth import create_access_token

    other_org_token = create_access_token(
        {"sub": str(uuid4()), "organization_id": str(uuid4()), "roles": ["admin"]}
    )
    other = client.get(
        f"{BASE_URL}/{task['id']}", headers={"Authorization": f"Bearer {other_org_token}"}
    )
    assert other.status_code == 404
    assert other.json()["error"]["code"] == "ACTIVITY_NOT_FOUND"


def test_update_activity(client, auth_headers):
    task = _create(client, auth_headers, {"kind": "task", "subject": "Old"})

    response = client.put(
        f"{BASE_URL}/{task['id']}", json={"subject": "New", "priority": "urgent"}, headers=auth_headers
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["subject"] == "New"
    assert data["priority"] == "urgent"


def test_update_rejects_organization_change(client, auth_headers):
    task = _create(client, auth_headers, {"kind": "task"})

    response = client.put(
        f"{BASE_URL}/{task['id']}", json={"organization_id": str(uuid4())}, headers=auth_headers
    )

    assert response.status_code == 422


def test_update_rejects_field_of_other_kind(client, auth_headers):
    task = _create(client, auth_headers, {"kind": "task"})

    response = client.put(f"{BASE_URL}/{task['id']}", json={"severity": "low"}, headers=auth_headers)

    assert response.status_code == 422
    assert response.json()["error"]["details"] == {
        "severity": ["Field 'severity' is not valid for activity kind 'task'"]
    }


def test_invalid_ticket_transition(client, auth_headers):
    ticket = _create(client, auth_headers, {"kind": "support_ticket", "severity": "low"})

    response = client.put(
        f"{BASE_URL}/{ticket['id']}", json={"ticket_status": "closed"}, headers=auth_headers
    )

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["code"] == "INVALID_TRANSITION"
    assert error["details"]["from"] == "open"


def test_complete_recurring_activity(client, auth_headers):
    scheduled = datetime(2030, 1, 6, 9, 0, tzinfo=UTC)
    task = _create(
        client,
        auth_headers,
        {
            "kind": "task",
            "subject": "Weekly pipeline review",
            "scheduled_at": scheduled.isoformat(),
            "is_recurring": True,
            "recurrence_pattern": "weekly",
            "recurrence_interval": 2,
        },
    )

    response = client.put(f"{BASE_URL}/{task['id']}/complete", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["data"]["is_completed"] is True
    assert body["data"]["progress"] == 100
    child = body["meta"]["next_activity"]
    assert child["is_completed"] is False
    assert child["recurrence_source_id"] == task["id"]
    assert _parse(child["scheduled_at"]) == scheduled + timedelta(days=14)
    assert _parse(body["data"]["next_occurrence"]) == scheduled + timedelta(days=14)

    again = client.put(f"{BASE_URL}/{task['id']}/complete", headers=auth_headers)
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "ACTIVITY_ALREADY_COMPLETED"


def test_complete_ticket(client, auth_headers):
    ticket = _create(client, auth_headers, {"kind": "support_ticket", "severity": "medium"})

    data = client.put(f"{BASE_URL}/{ticket['id']}/complete", headers=auth_headers).json()["data"]

    assert data["ticket_status"] == "resolved"
    assert data["resolution_time_minutes"] == 0


def test_checklist_endpoint(client, auth_headers):
    task = _create(
        client,
        auth_headers,
        {"kind": "task", "checklist": [{"text": "a"}, {"text": "b"}]},
    )
    item_id = task["checklist"][0]["id"]

    response = client.put(
        f"{BASE_URL}/{task['id']}/checklist",
        json={"item_id": item_id, "completed": True},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["data"]["progress"] == 50

    missing = client.put(
        f"{BASE_URL}/{task['id']}/checklist",
        json={"item_id": "missing", "completed": True},
        headers=auth_headers,
    )
    assert missing.status_code == 422


def test_attendee_status_endpoint(client, auth_headers):
    meeting = _create(
        client,
        auth_headers,
        {"kind": "meeting", "attendees": [{"email": "ana@example.com", "name": "Ana"}]},
    )

    response = client.put(
        f"{BASE_URL}/{meeting['id']}/attendee-status",
        json={"attendee": "ana@example.com", "status": "declined"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["data"]["attendees"][0]["status"] == "declined"


def test_escalate_and_rate(client, auth_headers):
    ticket = _create(client, auth_headers, {"kind": "support_ticket", "severity": "critical"})
    manager = str(uuid4())

    escalated = client.put(
        f"{BASE_URL}/{ticket['id']}/escalate",
        json={"escalate_to": manager, "reason": "Customer threatens to churn"},
        headers=auth_headers,
    )
    assert escalated.status_code == 200
    data = escalated.json()["data"]
    assert data["ticket_status"] == "escalated"
    assert data["escalated_to"] == manager
    assert data["custom_fields"]["escalation_reason"] == "Customer threatens to churn"

    rated = client.put(
        f"{BASE_URL}/{ticket['id']}/rate", json={"rating": 4, "feedback": "ok"}, headers=auth_headers
    )
    assert rated.status_code == 200
    assert rated.json()["data"]["satisfaction_rating"] == 4

    out_of_range = client.put(
        f"{BASE_URL}/{ticket['id']}/rate", json={"rating": 9}, headers=auth_headers
    )
    assert out_of_range.status_code == 422


def test_escalate_non_ticket(client, auth_headers):
    task = _create(client, auth_headers, {"kind": "task"})

    response = client.put(
        f"{BASE_URL}/{task['id']}/escalate", json={"escalate_to": str(uuid4())}, headers=auth_headers
    )

    assert response.status_code == 404


def test_snooze_endpoint(client, auth_headers):
    task = _create(client, auth_headers, {"kind": "task"})

    response = client.put(f"{BASE_URL}/{task['id']}/snooze", json={"minutes": 30}, headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["snoozed_until"] is not None
    assert data["reminder_sent"] is False

    default = client.put(f"{BASE_URL}/{task['id']}/snooze", headers=auth_headers)
    assert default.status_code == 200


def test_log_call(client, auth_headers):
    response = client.post(
        f"{BASE_URL}/log-call",
        json={"call_direction": "inbound", "call_duration_seconds": 120, "call_outcome": "interested"},
        headers=auth_headers,
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["kind"] == "call"
    assert data["is_completed"] is True
    assert data["call_direction"] == "inbound"


def test_overdue_and_stats(client, auth_headers):
    yesterday = (datetime.now(UTC) - timedelta(days=1)).isoformat()
    overdue = _create(client, auth_headers, {"kind": "task", "due_date": yesterday})
    _create(client, auth_headers, {"kind": "support_ticket", "severity": "low"})

    listing = client.get(f"{BASE_URL}/overdue", headers=auth_headers).json()
    assert [item["id"] for item in listing["data"]] == [overdue["id"]]

    stats = client.get(f"{BASE_URL}/stats", headers=auth_headers).json()["data"]
    assert stats["total"] == 2
    assert stats["overdue"] == 1
    assert stats["open_tickets"] == 1
    assert stats["by_kind"] == {"task": 1, "support_ticket": 1}


def test_delete_activity(client, auth_headers):
    task = _create(client, auth_headers, {"kind": "task"})

    response = client.delete(f"{BASE_URL}/{task['id']}", headers=auth_headers)
    assert response.status_code == 204

    assert client.get(f"{BASE_URL}/{task['id']}", headers=auth_headers).status_code == 404
    assert client.delete(f"{BASE_URL}/{task['id']}", headers=auth_headers).status_code == 404


def test_assignment_with_unconfigured_smtp_has_no_warnings(client, auth_headers):
    response = client.post(
        BASE_URL, json={"kind": "task", "assigned_to": str(uuid4())}, headers=auth_headers
    )

    assert response.status_code == 201
    assert "warnings" not in response.json()["meta"]


def test_update_rejects_null_priority(client, auth_headers):
    task = _create(client, auth_headers, {"kind": "task", "priority": "high"})

    response = client.put(f"{BASE_URL}/{task['id']}", json={"priority": None}, headers=auth_headers)

    assert response.status_code == 422
    body = response.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert "priority" in body["error"]["details"]
    fetched = client.get(f"{BASE_URL}/{task['id']}", headers=auth_headers).json()["data"]
    assert fetched["priority"] == "high"


@pytest.mark.parametrize("ticket_status", ["escalated", "resolved", "closed"])
def test_create_ticket_in_later_status_rejected(client, auth_headers, ticket_status):
    response = client.post(
        BASE_URL,
        json={"kind": "support_ticket", "severity": "low", "ticket_status": ticket_status},
        headers=auth_headers,
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_notifier_dependency_can_be_overridden(client, auth_headers, notifier):
    from app.api.v1.activities import get_notification_service
    from app.main import app

    app.dependency_overrides[get_notification_service] = lambda: notifier
    assignee = uuid4()

    response = client.post(
        BASE_URL, json={"kind": "task", "assigned_to": str(assignee)}, headers=auth_headers
    )

    assert response.status_code == 201
    notifier.notify.assert_awaited_once()
    event_type, recipient_id, activity = notifier.notify.await_args.args[:3]
    assert event_type == "activity.assigned"
    assert recipient_id == assignee
    assert str(activity.id) == response.json()["data"]["id"]
