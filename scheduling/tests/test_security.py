import pytest
from django.urls import reverse

from scheduling.models import Hospital, User
from scheduling.tests.conftest import enable

pytestmark = pytest.mark.django_db


def test_login_returns_tokens_and_account_role(api, patient):
    r = api().post(
        reverse("login_view"), {"username": "patient1", "password": "P@ssw0rd1", "role": "super"}, format="json",
    )
    assert r.status_code == 200
    data = r.json()
    assert data["ok"] is True
    assert data["token"]
    assert data["jwt_access"] and data["jwt_refresh"]
    # A role in the request body never overrides the stored one.
    assert data["role"] == "patient"
    patient.refresh_from_db()
    assert patient.role == "patient"


def test_login_with_wrong_password(api, patient):
    r = api().post(reverse("login_view"), {"username": "patient1", "password": "nope"}, format="json")
    assert r.status_code == 400
    assert r.json()["ok"] is False


def test_drf_token_authenticates(api, patient):
    token = api().post(
        reverse("login_view"), {"username": "patient1", "password": "P@ssw0rd1"}, format="json",
    ).json()["token"]
    client = api()
    client.credentials(HTTP_AUTHORIZATION=f"Token {token}")
    assert client.get(reverse("my_bookings")).status_code == 200


def test_jwt_refresh_and_logout(api, patient):
    tokens = api().post(
        reverse("login_view"), {"username": "patient1", "password": "P@ssw0rd1"}, format="json",
    ).json()
    r = api().post(reverse("jwt_refresh"), {"refresh": tokens["jwt_refresh"]}, format="json")
    assert r.status_code == 200
    assert r.json()["jwt_access"]

    client = api()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['jwt_access']}")
    r = client.post(reverse("jwt_logout"), {"refresh": tokens["jwt_refresh"]}, format="json")
    assert r.status_code == 200
    assert r.json()["blacklisted"] == 1


def test_patient_cannot_manage_serial_policies(api, patient, doctor, hospital):
    r = api(patient).put(
        "/api/serial-policies", {"subject": "doctor", "subjectId": doctor.id, "hospitalId": hospital.id},
        format="json",
    )
    assert r.status_code == 403


def test_other_hospital_admin_is_forbidden(api, doctor_policy, booking_day):
    other = Hospital.objects.create(name="Elsewhere", status="approved")
    admin = User.objects.create_user(username="other_admin", password="x", role="hospital_admin", hospital=other)
    client = api(admin)
    r = client.put(
        f"/api/serial-policies/{doctor_policy.id}/overrides", {"date": booking_day.isoformat()}, format="json",
    )
    assert r.status_code == 403
    assert client.get(f"/api/serial-policies/{doctor_policy.id}/stats").status_code == 403


def test_other_hospital_admin_cannot_change_booking(api, patient, doctor, doctor_policy, booking_day):
    enable(doctor_policy, booking_day)
    booking_id = api(patient).post(
        "/api/bookings",
        {"subject": "doctor", "subjectId": doctor.id, "date": booking_day.isoformat(), "serialNumber": 2},
        format="json",
    ).json()["data"]["id"]
    other = Hospital.objects.create(name="Elsewhere", status="approved")
    admin = User.objects.create_user(username="other_admin", password="x", role="hospital_admin", hospital=other)
    r = api(admin).post(f"/api/bookings/{booking_id}/status", {"status": "accepted"}, format="json")
    assert r.status_code == 403
    assert api(admin).get("/api/bookings").json()["data"] == []


def test_doctor_cannot_manage_hospital_policy(api, doctor_user, doctor, hospital):
    r = api(doctor_user).put(
        "/api/serial-policies", {"subject": "doctor", "subjectId": doctor.id, "hospitalId": hospital.id},
        format="json",
    )
    assert r.status_code == 403


def test_independent_doctor_manages_own_policy(api, doctor_user, doctor):
    doctor.hospital = None
    doctor.save()
    r = api(doctor_user).put("/api/serial-policies", {"subject": "doctor", "subjectId": doctor.id}, format="json")
    assert r.status_code == 201
    assert r.json()["data"]["hospitalId"] is None
