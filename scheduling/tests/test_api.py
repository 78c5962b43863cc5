"""
Integration tests for the scheduling API.

These exercise the booking flow end to end: availability, allocation,
conflicts, cancellation, staff status changes, and the management
endpoints for serial policies, date overrides and weekly schedules.
"""
from datetime import timedelta
from decimal import Decimal

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from ..models import (
    AuditEvent,
    Booking,
    Chamber,
    DateOverride,
    Doctor,
    Hospital,
    Schedule,
    SerialPolicy,
    User,
)


class SchedulingAPITests(APITestCase):
    def setUp(self) -> None:
        self.hospital = Hospital.objects.create(name="City General", status="approved")
        self.patient = User.objects.create_user(username="p1", password="P@ssw0rd1", role="patient")
        self.other_patient = User.objects.create_user(username="p2", password="P@ssw0rd1", role="patient")
        self.admin = User.objects.create_user(
            username="hadmin", password="P@ssw0rd1", role="hospital_admin", hospital=self.hospital,
        )
        doctor_user = User.objects.create_user(username="doc", password="P@ssw0rd1", role="doctor")
        self.doctor = Doctor.objects.create(user=doctor_user, name="A. Rahman", status="approved",
                                            hospital=self.hospital)
        self.chamber = Chamber.objects.create(doctor=self.doctor, hospital=self.hospital, name="Room 3",
                                              consultation_fee=Decimal("800.00"), follow_up_fee=Decimal("400.00"))
        self.policy = SerialPolicy.objects.create(
            doctor=self.doctor, hospital=self.hospital, total_serials_per_day=20,
            start_time="09:00", end_time="17:00", price=Decimal("500.00"),
        )
        self.day = timezone.localdate() + timedelta(days=7)
        DateOverride.objects.create(policy=self.policy, date=self.day)

    def client_for(self, user) -> APIClient:
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    def book_serial(self, user, serial, day=None):
        payload = {
            "subject": "doctor", "subjectId": self.doctor.id,
            "date": (day or self.day).isoformat(), "serialNumber": serial,
        }
        return self.client_for(user).post(reverse("bookings"), payload, format="json")

    # --- availability -------------------------------------------------
    def test_availability_requires_authentication(self):
        r = self.client.get(reverse("availability"),
                            {"subject": "doctor", "subjectId": self.doctor.id, "date": self.day.isoformat()})
        self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_availability_for_doctor_serials(self):
        r = self.client_for(self.patient).get(
            reverse("availability"), {"subject": "doctor", "subjectId": self.doctor.id, "date": self.day.isoformat()},
        )
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        data = r.data["data"]
        self.assertTrue(data["available"])
        self.assertEqual(data["count"], 10)
        self.assertEqual(data["slots"][0]["serialNumber"], 2)
        self.assertEqual(data["slots"][0]["price"], "500.00")

    def test_closed_date_is_not_an_error(self):
        closed = self.day + timedelta(days=1)
        r = self.client_for(self.patient).get(
            reverse("availability"), {"subject": "doctor", "subjectId": self.doctor.id, "date": closed.isoformat()},
        )
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertFalse(r.data["data"]["available"])
        self.assertTrue(r.data["data"]["reason"])

    def test_malformed_date_is_rejected(self):
        r = self.client_for(self.patient).get(
            reverse("availability"), {"subject": "doctor", "subjectId": self.doctor.id, "date": "2025/03/10"},
        )
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(r.data["ok"])

    def test_public_serial_policy_info(self):
        r = self.client_for(self.patient).get(
            reverse("serial_policy_info"),
            {"subject": "doctor", "subjectId": self.doctor.id, "hospitalId": self.hospital.id},
        )
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data["data"]["totalSerialsPerDay"], 20)

    # --- bookings -----------------------------------------------------
    def test_book_serial_then_conflict(self):
        r = self.book_serial(self.patient, 2)
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertEqual(r.data["data"]["status"], "pending")
        self.assertEqual(r.data["data"]["startTime"], "09:24")
        self.assertTrue(r.data["data"]["reference"].startswith("SR-"))

        r = self.book_serial(self.other_patient, 2)
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(r.data["error"]["code"], "already_booked")

    def test_odd_serial_is_rejected(self):
        r = self.book_serial(self.patient, 3)
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data["error"]["code"], "invalid_input")

    def test_booking_a_closed_date(self):
        r = self.book_serial(self.patient, 2, day=self.day + timedelta(days=1))
        self.assertEqual(r.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(r.data["error"]["code"], "unavailable")

    def test_staff_cannot_create_bookings(self):
        r = self.book_serial(self.admin, 2)
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)

    def test_book_chamber_slot_follow_up(self):
        schedule = Schedule.objects.create(doctor=self.doctor, chamber=self.chamber,
                                           day_of_week=self.day.isoweekday() % 7)
        schedule.windows.create(start_time="10:00", end_time="11:00", session_minutes=20)
        payload = {
            "subject": "doctor", "subjectId": self.doctor.id, "chamberId": self.chamber.id,
            "date": self.day.isoformat(), "startTime": "10:20", "endTime": "10:40",
            "consultationType": "follow_up", "notes": "<b>back pain</b>",
        }
        r = self.client_for(self.patient).post(reverse("bookings"), payload, format="json")
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertEqual(r.data["data"]["price"], "400.00")
        self.assertEqual(r.data["data"]["notes"], "back pain")
        self.assertTrue(r.data["data"]["reference"].startswith("APT-"))

    def test_my_bookings_and_cancel(self):
        booking_id = self.book_serial(self.patient, 4).data["data"]["id"]
        client = self.client_for(self.patient)

        r = client.get(reverse("my_bookings"))
        self.assertEqual([b["id"] for b in r.data["data"]], [booking_id])
        self.assertEqual(r.data["pagination"]["total"], 1)

        r = client.post(reverse("booking_cancel", args=[booking_id]), {"reason": "<a href=\"x\">travel</a>"}, format="json")
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data["data"]["status"], "cancelled")
        self.assertEqual(r.data["data"]["cancelledBy"], "patient")
        self.assertEqual(r.data["data"]["cancellationReason"], "travel")

        r = client.post(reverse("booking_cancel", args=[booking_id]), {}, format="json")
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)

        # The released serial can be booked again.
        self.assertEqual(self.book_serial(self.other_patient, 4).status_code, status.HTTP_201_CREATED)
        self.assertEqual(Booking.objects.filter(serial_number=4, status="pending").count(), 1)

    def test_cancelling_someone_elses_booking_is_not_found(self):
        booking_id = self.book_serial(self.patient, 4).data["data"]["id"]
        r = self.client_for(self.other_patient).post(reverse("booking_cancel", args=[booking_id]), {}, format="json")
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)

    def test_staff_list_and_status_update(self):
        booking_id = self.book_serial(self.patient, 2).data["data"]["id"]
        staff = self.client_for(self.admin)

        r = staff.get(reverse("bookings"), {"date": self.day.isoformat()})
        self.assertEqual([b["id"] for b in r.data["data"]], [booking_id])

        r = staff.post(reverse("booking_status", args=[booking_id]), {"status": "accepted"}, format="json")
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data["data"]["status"], "accepted")

        r = staff.post(reverse("booking_status", args=[booking_id]), {"status": "pending"}, format="json")
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(r.data["error"]["code"], "invalid_transition")
        self.assertEqual(AuditEvent.objects.filter(action="booking_status", object_id=booking_id).count(), 1)

    def test_patient_cannot_list_facility_bookings(self):
        r = self.client_for(self.patient).get(reverse("bookings"))
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)

    # --- serial policies and overrides --------------------------------
    def test_policy_create_with_defaults_then_update(self):
        other = Doctor.objects.create(name="B. Karim", status="approved", hospital=self.hospital)
        base = {"subject": "doctor", "subjectId": other.id, "hospitalId": self.hospital.id}
        staff = self.client_for(self.admin)

        r = staff.put(reverse("serial_policies"), base, format="json")
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        data = r.data["data"]
        self.assertEqual((data["totalSerialsPerDay"], data["startTime"], data["endTime"]), (20, "09:00", "17:00"))

        r = staff.put(reverse("serial_policies"), {**base, "totalSerialsPerDay": 30, "price": "300.00"},
                      format="json")
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertFalse(r.data["created"])

        r = staff.get(reverse("serial_policies"), base)
        self.assertEqual(r.data["data"]["totalSerialsPerDay"], 30)
        self.assertEqual(r.data["data"]["price"], "300.00")

    def test_policy_rejects_serials_that_do_not_fit(self):
        r = self.client_for(self.admin).put(
            reverse("serial_policies"),
            {"subject": "doctor", "subjectId": self.doctor.id, "hospitalId": self.hospital.id,
             "totalSerialsPerDay": 100, "startTime": "09:00", "endTime": "10:00"},
            format="json",
        )
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

    def test_override_lifecycle(self):
        day = self.day + timedelta(days=2)
        url = reverse("policy_overrides", args=[self.policy.id])
        staff = self.client_for(self.admin)

        r = staff.put(url, {"date": day.isoformat(), "startTime": "10:00", "endTime": "12:00",
                            "adminNote": "<i>Morning</i> only"}, format="json")
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        override = r.data["data"]
        self.assertEqual(r.data["data"]["adminNote"], "Morning only")
        # Capacity is copied from the policy on create.
        self.assertEqual(override["totalSerialsPerDay"], 20)
        self.assertTrue(override["isEnabled"])

        r = staff.put(url, {"date": day.isoformat(), "startTime": "11:00"}, format="json")
        self.assertEqual(r.status_code, status.HTTP_200_OK)

        r = staff.put(url, {"date": day.isoformat(), "startTime": "12:00", "endTime": None}, format="json")
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

        r = staff.get(url)
        self.assertEqual([o["date"] for o in r.data["data"]], [self.day.isoformat(), day.isoformat()])

        detail = reverse("policy_override_detail", args=[self.policy.id, override["id"]])
        self.assertEqual(staff.delete(detail).status_code, status.HTTP_200_OK)
        self.assertFalse(DateOverride.objects.filter(pk=override["id"]).exists())
        self.assertEqual(staff.delete(detail).status_code, status.HTTP_404_NOT_FOUND)

    def test_override_that_cannot_fit_is_rejected(self):
        r = self.client_for(self.admin).put(
            reverse("policy_overrides", args=[self.policy.id]),
            {"date": self.day.isoformat(), "totalSerialsPerDay": 200, "startTime": "09:00", "endTime": "10:00"},
            format="json",
        )
        self.assertEqual(r.status_code, status.HTTP_412_PRECONDITION_FAILED)
        self.assertEqual(r.data["error"]["code"], "configuration_error")

    def test_policy_stats(self):
        self.book_serial(self.patient, 2)
        r = self.client_for(self.admin).get(
            reverse("serial_policy_stats", args=[self.policy.id]), {"date": self.day.isoformat()},
        )
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        data = r.data["data"]
        self.assertTrue(data["enabled"])
        self.assertEqual((data["totalSerials"], data["onlineSerials"]), (20, 10))
        self.assertEqual((data["bookedCount"], data["availableCount"]), (1, 9))
        self.assertEqual(data["bookedSerials"][0]["serialNumber"], 2)

    # --- weekly schedules ---------------------------------------------
    def test_schedule_upsert_and_list(self):
        staff = self.client_for(self.admin)
        payload = {
            "chamberId": self.chamber.id,
            "dayOfWeek": 2,
            "windows": [
                {"startTime": "09:00", "endTime": "12:00", "sessionDuration": 20},
                {"startTime": "14:00", "endTime": "16:00"},
            ],
        }
        r = staff.put(reverse("schedules"), payload, format="json")
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertEqual([w["sessionDuration"] for w in r.data["data"]["windows"]], [20, 15])

        payload["windows"] = [{"startTime": "08:00", "endTime": "10:00"}]
        r = staff.put(reverse("schedules"), payload, format="json")
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(len(r.data["data"]["windows"]), 1)

        r = staff.get(reverse("schedules"), {"chamberId": self.chamber.id})
        self.assertEqual([s["dayOfWeek"] for s in r.data["data"]], [2])

    def test_schedule_window_must_end_after_start(self):
        r = self.client_for(self.admin).put(
            reverse("schedules"),
            {"chamberId": self.chamber.id, "dayOfWeek": 1, "windows": [{"startTime": "12:00", "endTime": "11:00"}]},
            format="json",
        )
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
