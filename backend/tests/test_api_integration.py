import pytest

from app.models.user import UserRole
from app.services.booking_lock import booking_lock

from conftest import COORDINATOR_EMAIL, auth_headers, next_weekday


@pytest.fixture()
def people(make_teacher, make_user):
    observer = make_teacher("observer@lincolnms.org", "Olivia Observer", grades=("7",))
    target = make_teacher("target@lincolnms.org", "Terry Target", grades=("6",))
    make_user("principal@lincolnms.org", UserRole.admin)
    return observer, target


def _book(client, observer, target, periods, needs_sub=False):
    return client.post(
        "/api/observations",
        json={
            "teacher_id": target.id,
            "observation_date": next_weekday().isoformat(),
            "periods": periods,
            "needs_sub": needs_sub,
        },
        headers=auth_headers(observer.email),
    )


def test_health(client):
    assert client.get("/api/health").json()["status"] == "ok"
    ready = client.get("/api/health/ready")
    assert ready.status_code == 200
    assert ready.json()["database"]["schema_ok"] is True


def test_requests_require_identity(client):
    assert client.get("/api/teachers").status_code in {401, 403}
    response = client.get("/api/teachers", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_unknown_account_must_request_access(client):
    response = client.get("/api/teachers", headers=auth_headers("stranger@lincolnms.org"))
    assert response.status_code == 403
    assert client.get("/api/account", headers=auth_headers("stranger@lincolnms.org")).status_code == 403


def test_account_reports_role_and_roster_link(client, people):
    observer, _ = people
    mine = client.get("/api/account", headers=auth_headers(observer.email)).json()
    assert mine["role"] == "teacher"
    assert mine["teacher_id"] == observer.id

    admin = client.get("/api/account", headers=auth_headers("principal@lincolnms.org")).json()
    assert admin["role"] == "admin"
    assert admin["name"] == "Principal"
    assert admin["teacher_id"] is None


def test_access_request_approval_creates_roster_entry(client, people):
    email = "newhire@lincolnms.org"
    submitted = client.post(
        "/api/access-requests",
        json={"name": "New Hire", "requested_role": "teacher", "room": "305", "grades": "Grade 8"},
        headers=auth_headers(email),
    )
    assert submitted.status_code == 201
    assert submitted.json()["grades"] == ["8"]

    duplicate = client.post("/api/access-requests", json={"name": "New Hire"}, headers=auth_headers(email))
    assert duplicate.status_code == 409

    denied_admin = client.post(
        "/api/access-requests",
        json={"name": "Sneaky", "requested_role": "admin"},
        headers=auth_headers("sneaky@lincolnms.org"),
    )
    assert denied_admin.status_code == 422

    approved = client.post(
        f"/api/access-requests/{submitted.json()['id']}/approve",
        headers=auth_headers("principal@lincolnms.org"),
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"

    me = client.get("/api/teachers/me", headers=auth_headers(email))
    assert me.status_code == 200
    assert me.json()["room"] == "305"

    again = client.post(
        f"/api/access-requests/{submitted.json()['id']}/deny",
        headers=auth_headers("principal@lincolnms.org"),
    )
    assert again.status_code == 409
    assert again.json()["code"] == "conflict"


def test_bell_and_lunch_schedule(client, people):
    observer, _ = people
    bell = client.get("/api/schedule/bell", params={"grade": "6"}, headers=auth_headers(observer.email))
    assert bell.status_code == 200
    assert bell.json()["cohort"] == "6"
    assert len(bell.json()["periods"]) == 7

    lunch = client.get("/api/schedule/lunch", params={"grade": "Grade 8"}, headers=auth_headers(observer.email))
    assert lunch.json() == {"grade": "8", "periods": [6]}


def test_availability_then_booking(client, people, mailer):
    observer, target = people
    availability = client.get(
        "/api/observations/availability",
        params={"teacher_id": target.id, "date": next_weekday().isoformat()},
        headers=auth_headers(observer.email),
    )
    assert availability.status_code == 200
    slots = {item["period"]: item for item in availability.json()}
    assert slots[4]["reason"] == "Teacher unavailable"
    assert slots[3]["available"] is True

    booked = _book(client, observer, target, [3])
    assert booked.status_code == 201
    assert booked.json()["status"] == "confirmed"
    assert mailer.recipients() == [target.email]

    again = client.get(
        "/api/observations/availability",
        params={"teacher_id": target.id, "date": next_weekday().isoformat()},
        headers=auth_headers(observer.email),
    )
    assert {item["period"]: item["reason"] for item in again.json()}[3] == "Already has observer"


def test_validation_errors_use_error_envelope(client, people):
    observer, target = people
    assert _book(client, observer, target, [3]).status_code == 201

    response = _book(client, observer, target, [3])
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "validation"
    assert body["retryable"] is False
    assert body["details"]["rule"] == "double_booking"
    assert body["message"] == "Period 3 already has an observer scheduled."


@pytest.mark.parametrize(
    "periods",
    [[-2, 3], [0], "4 or maybe 6", [7.9], ["5"], [2, 2], {"a": 1}, [13]],
)
def test_malformed_periods_are_rejected_not_rewritten(client, people, periods):
    observer, target = people
    response = _book(client, observer, target, periods)
    assert response.status_code == 422
    assert client.get("/api/observations", headers=auth_headers(observer.email)).json() == []


def test_empty_period_list_reports_required_fields(client, people):
    observer, target = people
    response = _book(client, observer, target, [])
    assert response.status_code == 400
    assert response.json()["details"]["rule"] == "required_fields"


def test_reschedule_rejects_malformed_periods(client, people):
    observer, target = people
    booked = _book(client, observer, target, [3])
    response = client.put(
        f"/api/observations/{booked.json()['observation_id']}/reschedule",
        json={"observation_date": next_weekday().isoformat(), "periods": "5,6"},
        headers=auth_headers(observer.email),
    )
    assert response.status_code == 422
    detail = client.get(f"/api/observations/{booked.json()['observation_id']}", headers=auth_headers(observer.email))
    assert detail.json()["periods"] == [3]


@pytest.mark.parametrize(
    "payload",
    [
        {"grades": {"x": 1}},
        {"grades": ["7", {"x": 1}]},
        {"unavailable_periods": "3,4"},
        {"unavailable_periods": [0, 4]},
    ],
)
def test_roster_payloads_with_bad_shapes_are_rejected(client, people, payload):
    response = client.post(
        "/api/teachers",
        json={"email": "new.hire@lincolnms.org", "name": "New Hire", **payload},
        headers=auth_headers("principal@lincolnms.org"),
    )
    assert response.status_code == 422


def test_busy_lock_returns_retryable_error(client, people):
    observer, target = people
    with booking_lock.hold(1):
        response = _book(client, observer, target, [3])
    assert response.status_code == 503
    assert response.json()["retryable"] is True

    listing = client.get("/api/observations", headers=auth_headers(observer.email))
    assert listing.json() == []


def test_substitute_flow_over_http(client, people, mailer):
    observer, target = people
    booked = _book(client, observer, target, [2], needs_sub=True)
    assert booked.status_code == 201
    assert booked.json()["status"] == "pending_sub"
    assert COORDINATOR_EMAIL in mailer.recipients()

    forbidden = client.get("/api/substitute-requests", headers=auth_headers(observer.email))
    assert forbidden.status_code == 403

    admin_headers = auth_headers("principal@lincolnms.org")
    pending = client.get("/api/substitute-requests", params={"status": "pending"}, headers=admin_headers)
    assert [item["id"] for item in pending.json()] == [booked.json()["substitute_request_id"]]

    denied = client.post(
        f"/api/substitute-requests/{booked.json()['substitute_request_id']}/deny",
        json={"reason": "No coverage that day"},
        headers=admin_headers,
    )
    assert denied.status_code == 200
    assert denied.json()["status"] == "denied"

    detail = client.get(f"/api/observations/{booked.json()['observation_id']}", headers=auth_headers(observer.email))
    assert detail.json()["status"] == "canceled"
    assert detail.json()["cancel_reason"] == "Substitute coverage denied"

    approve_late = client.post(
        f"/api/substitute-requests/{booked.json()['substitute_request_id']}/approve",
        headers=admin_headers,
    )
    assert approve_late.status_code == 409
    assert approve_late.json()["message"] == "Substitute request is not pending"

    notifications = client.get("/api/notifications", headers=auth_headers(observer.email)).json()
    assert notifications[0]["title"] == "Substitute Coverage Denied"
    marked = client.post(f"/api/notifications/{notifications[0]['id']}/read", headers=auth_headers(observer.email))
    assert marked.json()["is_read"] is True
    summary = client.get("/api/notifications/summary", headers=auth_headers(observer.email))
    assert summary.json()["unread"] == 0

    target_headers = auth_headers(target.email)
    assert client.get("/api/notifications/summary", headers=target_headers).json()["unread"] >= 1
    read_all = client.post("/api/notifications/read-all", headers=target_headers)
    assert read_all.json()["marked"] >= 1
    assert client.get("/api/notifications", params={"unread_only": True}, headers=target_headers).json() == []


def test_cancel_and_requirement_over_http(client, people):
    observer, target = people
    headers = auth_headers(observer.email)
    booked = _book(client, observer, target, [2])
    observation_id = booked.json()["observation_id"]

    assert client.get("/api/requirements/me", headers=headers).json()["has_met_requirement"] is True

    not_mine = client.post(f"/api/observations/{observation_id}/cancel", headers=auth_headers(target.email))
    assert not_mine.status_code == 403

    canceled = client.post(f"/api/observations/{observation_id}/cancel", json={"reason": "Sick day"}, headers=headers)
    assert canceled.status_code == 200
    assert canceled.json()["status"] == "canceled"

    twice = client.post(f"/api/observations/{observation_id}/cancel", headers=headers)
    assert twice.status_code == 409

    assert client.get("/api/requirements/me", headers=headers).json()["count"] == 0

    observed = client.get(
        "/api/observations",
        params={"scope": "observed", "include_canceled": True},
        headers=auth_headers(target.email),
    )
    assert [item["id"] for item in observed.json()] == [observation_id]


def test_admin_views(client, people):
    observer, target = people
    _book(client, observer, target, [2])
    admin_headers = auth_headers("principal@lincolnms.org")

    logs = client.get("/api/activity/logs", headers=admin_headers)
    assert logs.status_code == 200
    assert logs.json()[0]["action"] == "observation.create"
    assert client.get("/api/activity/logs", headers=auth_headers(observer.email)).status_code == 403

    dashboard = client.get("/api/requirements", headers=admin_headers)
    assert {row["teacher_email"]: row["count"] for row in dashboard.json()} == {
        observer.email: 1,
        target.email: 0,
    }

    everything = client.get("/api/observations", params={"scope": "all"}, headers=admin_headers)
    assert len(everything.json()) == 1
    assert client.get("/api/observations", params={"scope": "all"}, headers=auth_headers(observer.email)).status_code == 403


def test_admin_roster_management(client, people):
    _, target = people
    admin_headers = auth_headers("principal@lincolnms.org")
    created = client.post(
        "/api/teachers",
        json={"email": "Coach@LincolnMS.org", "name": "Coach", "grades": ["support"], "teacher_type": "support"},
        headers=admin_headers,
    )
    assert created.status_code == 201
    assert created.json()["email"] == "coach@lincolnms.org"

    updated = client.put(f"/api/teachers/{target.id}", json={"lunch_period": 5}, headers=admin_headers)
    assert updated.json()["lunch_period"] == 5

    deactivated = client.post(f"/api/teachers/{target.id}/deactivate", headers=admin_headers)
    assert deactivated.json()["is_active"] is False
    roster = client.get("/api/teachers", headers=admin_headers).json()
    assert target.id not in {item["id"] for item in roster}
