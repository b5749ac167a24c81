"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from clinic_scheduler.api.app import create_app

STAFF = {"X-Caller-Role": "receptionist", "X-Caller-Id": "desk-1"}

BOOKING = {
    "provider_id": "vet-1",
    "patient_id": "pet-1",
    "service_id": "svc-consult",
    "date": "2030-01-07",
    "time": "09:00",
    "motive": "Annual check-up",
}


@pytest.fixture
def client(coordinator):
    return TestClient(create_app(coordinator))


@pytest.fixture
def booked(client):
    response = client.post("/appointments", json=BOOKING, headers=STAFF)
    assert response.status_code == 201
    return response.json()


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_request_id_generated(self, client):
        response = client.get("/health")
        assert response.headers["X-Request-ID"].startswith("REQ-")

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "trace-42"})
        assert response.headers["X-Request-ID"] == "trace-42"


class TestCreateAppointment:
    def test_created(self, booked):
        assert booked["id"].startswith("apt_")
        assert booked["state"] == "scheduled"
        assert booked["final_price"] == "40.00"
        assert booked["time"] == "09:00:00"

    def test_emergency_price(self, client):
        body = dict(BOOKING, service_id="svc-emergency", is_emergency=True)
        response = client.post("/appointments", json=body, headers=STAFF)
        assert response.status_code == 201
        assert response.json()["final_price"] == "120.00"

    def test_double_booking_conflict(self, client, booked):
        body = dict(BOOKING, patient_id="pet-2")
        response = client.post("/appointments", json=body, headers=STAFF)
        assert response.status_code == 409
        assert response.json()["error"] == "OverlapError"

    def test_missing_motive_is_bad_request(self, client):
        body = {k: v for k, v in BOOKING.items() if k != "motive"}
        response = client.post("/appointments", json=body, headers=STAFF)
        assert response.status_code == 400
        assert "Motive" in response.json()["detail"]

    def test_unknown_patient(self, client):
        response = client.post(
            "/appointments", json=dict(BOOKING, patient_id="pet-99"), headers=STAFF
        )
        assert response.status_code == 404

    def test_owner_of_other_pet_forbidden(self, client):
        headers = {"X-Caller-Role": "owner", "X-Owner-Id": "owner-2"}
        response = client.post("/appointments", json=BOOKING, headers=headers)
        assert response.status_code == 403

    def test_caller_role_required(self, client):
        response = client.post("/appointments", json=BOOKING)
        assert response.status_code == 422

    def test_unknown_role_rejected(self, client):
        response = client.post("/appointments", json=BOOKING, headers={"X-Caller-Role": "intern"})
        assert response.status_code == 422


class TestAppointmentLifecycle:
    def test_get_appointment(self, client, booked):
        response = client.get(f"/appointments/{booked['id']}")
        assert response.status_code == 200
        assert response.json() == booked

    def test_get_unknown(self, client):
        response = client.get("/appointments/apt_missing")
        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    def test_confirm_start_finish(self, client, booked):
        url = f"/appointments/{booked['id']}"
        assert client.put(f"{url}/confirm", headers=STAFF).json()["state"] == "confirmed"
        assert client.put(f"{url}/start-attention", headers=STAFF).json()["state"] == "in_progress"
        assert client.put(f"{url}/finish-attention", headers=STAFF).json()["state"] == "attended"

    def test_invalid_transition(self, client, booked):
        url = f"/appointments/{booked['id']}"
        client.put(f"{url}/attend", headers=STAFF)
        response = client.put(f"{url}/confirm", headers=STAFF)
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidTransitionError"

    def test_cancel_requires_reason(self, client, booked):
        response = client.put(f"/appointments/{booked['id']}/cancel", headers=STAFF)
        assert response.status_code == 400

    def test_cancel_with_reason(self, client, booked):
        response = client.put(
            f"/appointments/{booked['id']}/cancel", json={"reason": "Owner travelling"},
            headers=STAFF,
        )
        assert response.status_code == 200
        assert response.json()["state"] == "cancelled"
        assert response.json()["cancellation_reason"] == "Owner travelling"

    def test_no_show(self, client, booked):
        url = f"/appointments/{booked['id']}"
        client.put(f"{url}/confirm", headers=STAFF)
        assert client.put(f"{url}/no-show", headers=STAFF).json()["state"] == "no_show"

    def test_reschedule(self, client, booked):
        response = client.put(
            f"/appointments/{booked['id']}", json={"time": "10:30"}, headers=STAFF
        )
        assert response.status_code == 200
        assert response.json()["time"] == "10:30:00"
        assert response.json()["date"] == "2030-01-07"

    def test_reschedule_attended_is_locked(self, client, booked):
        url = f"/appointments/{booked['id']}"
        client.put(f"{url}/attend", headers=STAFF)
        response = client.put(url, json={"time": "10:30"}, headers=STAFF)
        assert response.status_code == 422
        assert response.json()["error"] == "AppointmentLockedError"


class TestProviderSchedule:
    def test_availability(self, client, booked):
        response = client.get("/providers/vet-1/availability", params={"date": "2030-01-07"})
        assert response.status_code == 200
        body = response.json()
        assert body["day_of_week"] == "MONDAY"
        assert len(body["slots"]) == 9
        assert body["slots"][0]["available"] is False
        assert [a["id"] for a in body["appointments"]] == [booked["id"]]

    def test_availability_unknown_provider(self, client):
        response = client.get("/providers/vet-99/availability", params={"date": "2030-01-07"})
        assert response.status_code == 404

    def test_add_window(self, client):
        body = {"day_of_week": "TUESDAY", "start_time": "08:00", "end_time": "10:00"}
        response = client.post("/providers/vet-2/windows", json=body)
        assert response.status_code == 201
        assert response.json()["slot_duration_minutes"] == 30
        assert response.json()["id"].startswith("win_")

    def test_overlapping_window_conflict(self, client):
        body = {"day_of_week": "MONDAY", "start_time": "11:00", "end_time": "13:00"}
        response = client.post("/providers/vet-1/windows", json=body)
        assert response.status_code == 409

    def test_window_bad_bounds(self, client):
        body = {"day_of_week": "TUESDAY", "start_time": "10:00", "end_time": "09:00"}
        response = client.post("/providers/vet-2/windows", json=body)
        assert response.status_code == 400

    def test_window_unknown_provider(self, client):
        body = {"day_of_week": "TUESDAY", "start_time": "08:00", "end_time": "10:00"}
        assert client.post("/providers/vet-99/windows", json=body).status_code == 404

    def test_deactivate_and_list(self, client):
        windows = client.get("/providers/vet-2/windows").json()
        assert len(windows) == 1
        window_id = windows[0]["id"]

        response = client.put(f"/windows/{window_id}/deactivate")
        assert response.json()["active"] is False
        assert client.get("/providers/vet-2/windows").json() == []
        history = client.get(
            "/providers/vet-2/windows", params={"include_inactive": "true"}
        ).json()
        assert [w["id"] for w in history] == [window_id]

        assert client.put(f"/windows/{window_id}/reactivate").json()["active"] is True

    def test_unknown_window(self, client):
        assert client.put("/windows/win_missing/deactivate").status_code == 404
