"""
Tests for the diagnostic endpoints.
"""
import json
from datetime import datetime

import pytest

from tests.conftest import auth_header

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _submit(client, token, subject_id, **overrides):
    form = {
        "subject_id": subject_id,
        "result": "positive",
        "confidence_score": "94",
        "parasite_count": "120",
        "symptoms": json.dumps(["fever", "chills"]),
    }
    form.update(overrides)
    return client.post(
        "/api/diagnostics/submit",
        data=form,
        files={"image": ("sample.png", PNG_BYTES, "image/png")},
        headers=auth_header(token),
    )


@pytest.fixture
def submitted(client, field_worker, patient):
    _, token = field_worker
    response = _submit(client, token, patient.id)
    assert response.status_code == 201
    return response.json()["data"]


def test_submit_starts_pending(submitted, field_worker, patient):
    assert submitted["review_status"] == "pending"
    assert submitted["subject_id"] == patient.id
    assert submitted["submitted_by_id"] == field_worker[0].id
    assert submitted["confidence_score"] == 94
    assert submitted["symptoms"] == ["fever", "chills"]
    assert submitted["image_locator"].endswith(".png")
    assert submitted["reviewed_by_id"] is None


def test_timestamps_carry_utc_offset(submitted):
    for field in ("test_date", "created_at"):
        assert datetime.fromisoformat(submitted[field]).utcoffset().total_seconds() == 0


def test_submit_ignores_review_status_field(client, field_worker, patient):
    _, token = field_worker
    response = _submit(client, token, patient.id, review_status="verified")
    assert response.json()["data"]["review_status"] == "pending"


def test_submit_accepts_comma_separated_symptoms(client, field_worker, patient):
    _, token = field_worker
    response = _submit(client, token, patient.id, symptoms="fever, headache")
    assert response.json()["data"]["symptoms"] == ["fever", "headache"]


def test_submit_for_unregistered_patient_is_not_found(client, field_worker):
    _, token = field_worker
    response = _submit(client, token, "not-a-patient")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_submit_requires_authentication(client, patient):
    response = client.post(
        "/api/diagnostics/submit",
        data={"subject_id": patient.id, "result": "positive"},
        files={"image": ("sample.png", PNG_BYTES, "image/png")},
    )
    assert response.status_code == 401


def test_submit_requires_image(client, field_worker, patient):
    _, token = field_worker
    response = client.post(
        "/api/diagnostics/submit",
        data={"subject_id": patient.id, "result": "positive"},
        headers=auth_header(token),
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_submit_rejects_non_image_upload(client, field_worker, patient):
    _, token = field_worker
    response = client.post(
        "/api/diagnostics/submit",
        data={"subject_id": patient.id, "result": "positive"},
        files={"image": ("notes.txt", b"hello", "text/plain")},
        headers=auth_header(token),
    )
    assert response.status_code == 422


def test_submit_rejects_out_of_range_confidence(client, field_worker, patient):
    _, token = field_worker
    response = _submit(client, token, patient.id, confidence_score="140")
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_get_includes_patient_and_history_filters(client, submitted, field_worker, patient):
    _, token = field_worker

    response = client.get(f"/api/diagnostics/{submitted['id']}", headers=auth_header(token))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["id"] == submitted["id"]
    assert data["patient"] == {
        "id": patient.id,
        "patient_code": patient.patient_code,
        "age": 34,
        "gender": None,
        "district": "Kisumu",
    }

    history = client.get(f"/api/diagnostics/history?subject_id={patient.id}", headers=auth_header(token))
    assert [item["id"] for item in history.json()["data"]] == [submitted["id"]]

    missing = client.get("/api/diagnostics/does-not-exist", headers=auth_header(token))
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "NOT_FOUND"


def test_admin_verifies(client, submitted, admin):
    user, token = admin
    response = client.put(
        f"/api/diagnostics/{submitted['id']}/review",
        json={"review_status": "verified", "review_notes": "confirmed"},
        headers=auth_header(token),
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["review_status"] == "verified"
    assert data["reviewed_by_id"] == user.id
    assert data["review_notes"] == "confirmed"
    assert datetime.fromisoformat(data["reviewed_at"]).utcoffset().total_seconds() == 0


def test_field_worker_review_is_forbidden(client, submitted, field_worker):
    _, token = field_worker
    response = client.put(
        f"/api/diagnostics/{submitted['id']}/review",
        json={"review_status": "verified"},
        headers=auth_header(token),
    )
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"


def test_stale_review_conflicts(client, submitted, admin, super_admin):
    _, admin_token = admin
    _, super_token = super_admin
    url = f"/api/diagnostics/{submitted['id']}/review"

    first = client.put(url, json={"review_status": "verified", "expected_status": "pending"}, headers=auth_header(super_token))
    second = client.put(url, json={"review_status": "reviewed", "expected_status": "pending"}, headers=auth_header(admin_token))

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "CONFLICT"


def test_second_verification_conflicts_and_alerts_once(client, submitted, admin, super_admin, sms_sender):
    admin_user, admin_token = admin
    _, super_token = super_admin
    url = f"/api/diagnostics/{submitted['id']}/review"

    first = client.put(url, json={"review_status": "verified", "review_notes": "first"}, headers=auth_header(admin_token))
    second = client.put(url, json={"review_status": "verified", "review_notes": "second"}, headers=auth_header(super_token))

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "CONFLICT"

    stored = client.get(f"/api/diagnostics/{submitted['id']}", headers=auth_header(admin_token)).json()["data"]
    assert stored["reviewed_by_id"] == admin_user.id
    assert stored["review_notes"] == "first"
    assert len(sms_sender.sent) == 1
