"""
Tests for the notification endpoints.
"""
from introspect.config import settings
from introspect.notifications.senders import SendResult
from tests.conftest import auth_header

URGENT_SMS = {"type": "sms", "recipient": "+254700000010", "message": "Positive result", "priority": "urgent"}


def test_send_records_intent(client, field_worker, sms_sender):
    user, token = field_worker
    response = client.post("/api/notifications/send", json=URGENT_SMS, headers=auth_header(token))

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "sent"
    assert data["retry_count"] == 0
    assert data["user_id"] == user.id
    assert sms_sender.sent[0]["recipient"] == "+254700000010"


def test_failed_delivery_is_reported_not_raised(client, field_worker, sms_sender):
    _, token = field_worker
    sms_sender.outcomes = [SendResult(success=False, error="carrier rejected")]

    response = client.post("/api/notifications/send", json=URGENT_SMS, headers=auth_header(token))

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "failed"
    assert data["retry_count"] == 1
    assert data["error_message"] == "carrier rejected"


def test_blank_recipient_is_validation_error(client, field_worker):
    _, token = field_worker
    response = client.post("/api/notifications/send", json={**URGENT_SMS, "recipient": " "}, headers=auth_header(token))
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_urgent_rate_limit(client, field_worker, monkeypatch):
    _, token = field_worker
    monkeypatch.setattr(settings, "urgent_notifications_per_day", 2)

    for _ in range(2):
        assert client.post("/api/notifications/send", json=URGENT_SMS, headers=auth_header(token)).status_code == 201

    limited = client.post("/api/notifications/send", json=URGENT_SMS, headers=auth_header(token))
    assert limited.status_code == 429
    assert limited.json()["error"]["code"] == "RATE_LIMITED"

    routine = client.post("/api/notifications/send", json={**URGENT_SMS, "priority": "routine"}, headers=auth_header(token))
    assert routine.status_code == 201

    count = client.get("/api/notifications/urgent-count", params={"recipient": "+254700000010"}, headers=auth_header(token))
    assert count.json()["data"] == {
        "recipient": "+254700000010",
        "window_hours": 24,
        "count": 2,
        "limit": 2,
        "remaining": 0,
    }


def test_history_filters_by_status(client, field_worker, sms_sender):
    _, token = field_worker
    sms_sender.outcomes = [SendResult(success=False, error="busy")]
    client.post("/api/notifications/send", json=URGENT_SMS, headers=auth_header(token))
    client.post("/api/notifications/send", json=URGENT_SMS, headers=auth_header(token))

    failed = client.get("/api/notifications/history", params={"status": "failed"}, headers=auth_header(token))
    everything = client.get("/api/notifications/history", headers=auth_header(token))

    assert len(failed.json()["data"]) == 1
    assert len(everything.json()["data"]) == 2


def test_status_reports_and_retry(client, field_worker, admin, sms_sender):
    _, worker_token = field_worker
    _, admin_token = admin
    sms_sender.outcomes = [SendResult(success=False, error="busy"), SendResult(success=False, error="busy")]
    notification_id = client.post(
        "/api/notifications/send", json=URGENT_SMS, headers=auth_header(worker_token)
    ).json()["data"]["id"]

    forbidden = client.post(f"/api/notifications/{notification_id}/retry", headers=auth_header(worker_token))
    assert forbidden.status_code == 403

    retried = client.post(f"/api/notifications/{notification_id}/retry", headers=auth_header(admin_token))
    assert retried.json()["data"]["retry_count"] == 2

    report = {"status": "failed", "error_message": "driver failure", "attempt": 2}
    first = client.put(f"/api/notifications/{notification_id}/status", json=report, headers=auth_header(worker_token))
    replay = client.put(f"/api/notifications/{notification_id}/status", json=report, headers=auth_header(worker_token))
    assert first.json()["data"]["retry_count"] == 3
    assert replay.json()["data"]["retry_count"] == 3

    delivered = client.put(
        f"/api/notifications/{notification_id}/status", json={"status": "sent"}, headers=auth_header(worker_token)
    )
    again = client.put(
        f"/api/notifications/{notification_id}/status", json={"status": "sent"}, headers=auth_header(worker_token)
    )
    assert delivered.json()["data"]["status"] == "sent"
    assert again.json()["data"]["sent_at"] == delivered.json()["data"]["sent_at"]

    late_failure = client.put(
        f"/api/notifications/{notification_id}/status", json={"status": "failed"}, headers=auth_header(worker_token)
    )
    assert late_failure.status_code == 409

    late_retry = client.post(f"/api/notifications/{notification_id}/retry", headers=auth_header(admin_token))
    assert late_retry.status_code == 409


def test_pending_is_not_a_reportable_status(client, field_worker):
    _, token = field_worker
    notification_id = client.post("/api/notifications/send", json=URGENT_SMS, headers=auth_header(token)).json()["data"]["id"]

    response = client.put(f"/api/notifications/{notification_id}/status", json={"status": "pending"}, headers=auth_header(token))
    assert response.status_code == 422
