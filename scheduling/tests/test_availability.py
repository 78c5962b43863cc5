from decimal import Decimal

import pytest

from scheduling.exceptions import ConfigurationError, NotFound
from scheduling.models import Booking
from scheduling.services.availability import DATE_DISABLED, DATE_NOT_ENABLED, AvailabilityResolver
from scheduling.services.facilities import FacilityKind, FacilityRef
from scheduling.tests.conftest import MONDAY, enable

pytestmark = pytest.mark.django_db


def _book(policy, day, serial, start, end, status=Booking.STATUS_PENDING, **extra):
    subject = f"doctor:{policy.doctor_id}" if policy.doctor_id else f"test:{policy.test_id}"
    if policy.hospital_id:
        facility = f"hospital:{policy.hospital_id}"
    elif policy.diagnostic_center_id:
        facility = f"diagnostic_center:{policy.diagnostic_center_id}"
    else:
        facility = "none"
    return Booking.objects.create(
        reference=f"X-{serial}-{status}", kind=extra.pop("kind", Booking.KIND_DOCTOR_SERIAL),
        patient=extra.pop("patient"), policy=policy, doctor_id=policy.doctor_id, test_id=policy.test_id,
        hospital_id=policy.hospital_id, diagnostic_center_id=policy.diagnostic_center_id,
        subject_ref=subject, facility_ref=facility, date=day, slot_key=f"s{serial}",
        start_time=start, end_time=end, serial_number=serial, status=status, price=Decimal("0"),
    )


def test_date_without_override_is_closed(doctor, doctor_policy):
    result = AvailabilityResolver().doctor_serials(doctor.id, MONDAY)
    assert not result.is_open
    assert result.slots == []
    assert result.reason == DATE_NOT_ENABLED
    assert result.as_dict()["available"] is False


def test_disabled_override_reports_admin_note(doctor, doctor_policy):
    enable(doctor_policy, MONDAY, is_enabled=False, admin_note="Doctor on leave")
    result = AvailabilityResolver().doctor_serials(doctor.id, MONDAY)
    assert result.reason == "Doctor on leave"


def test_disabled_override_without_note_uses_default_reason(doctor, doctor_policy):
    enable(doctor_policy, MONDAY, is_enabled=False)
    assert AvailabilityResolver().doctor_serials(doctor.id, MONDAY).reason == DATE_DISABLED


def test_enabled_date_offers_even_serials(doctor, doctor_policy):
    enable(doctor_policy, MONDAY)
    result = AvailabilityResolver().doctor_serials(doctor.id, MONDAY)
    assert result.is_open
    assert [s.serial_number for s in result.slots] == list(range(2, 21, 2))
    first, last = result.slots[0], result.slots[-1]
    assert (first.start_time, first.end_time) == ("09:24", "09:48")
    assert (last.start_time, last.end_time) == ("16:36", "17:00")
    payload = result.as_dict()
    assert payload["count"] == 10
    assert payload["totalSerials"] == 20
    assert payload["slots"][0]["price"] == "500.00"


def test_override_values_replace_policy_values(doctor, doctor_policy):
    enable(doctor_policy, MONDAY, total_serials_per_day=4, start_time="10:00", end_time="12:00",
           price=Decimal("650.00"), admin_note="Short day")
    result = AvailabilityResolver().doctor_serials(doctor.id, MONDAY)
    assert [(s.serial_number, s.start_time, s.end_time) for s in result.slots] == [
        (2, "10:30", "11:00"),
        (4, "11:30", "12:00"),
    ]
    assert result.price == Decimal("650.00")
    assert result.admin_note == "Short day"


def test_override_with_only_one_time_keeps_policy_window(doctor, doctor_policy):
    enable(doctor_policy, MONDAY, start_time="12:00")
    result = AvailabilityResolver().doctor_serials(doctor.id, MONDAY)
    assert result.as_dict()["startTime"] == "09:00"


def test_capacity_too_large_for_window_is_configuration_error(doctor, doctor_policy):
    enable(doctor_policy, MONDAY, total_serials_per_day=200, start_time="09:00", end_time="10:00")
    with pytest.raises(ConfigurationError):
        AvailabilityResolver().doctor_serials(doctor.id, MONDAY)


def test_booked_doctor_serial_is_excluded_by_start_time(doctor, doctor_policy, patient):
    enable(doctor_policy, MONDAY)
    _book(doctor_policy, MONDAY, 4, "10:12", "10:36", patient=patient)
    _book(doctor_policy, MONDAY, 6, "11:00", "11:24", status=Booking.STATUS_CANCELLED, patient=patient)
    result = AvailabilityResolver().doctor_serials(doctor.id, MONDAY)
    numbers = [s.serial_number for s in result.slots]
    assert 4 not in numbers
    assert 6 in numbers
    assert result.booked == 1


def test_unapproved_hospital_closes_the_date(doctor, doctor_policy, hospital):
    enable(doctor_policy, MONDAY)
    hospital.status = "suspended"
    hospital.save()
    result = AvailabilityResolver().doctor_serials(doctor.id, MONDAY)
    assert not result.is_open
    assert result.slots == []


def test_unapproved_doctor_is_not_found(doctor, doctor_policy):
    doctor.status = "pending"
    doctor.save()
    with pytest.raises(NotFound):
        AvailabilityResolver().doctor_serials(doctor.id, MONDAY)


def test_missing_policy_is_not_found(doctor):
    with pytest.raises(NotFound):
        AvailabilityResolver().doctor_serials(doctor.id, MONDAY)


def test_test_serials_are_excluded_by_serial_number(blood_test, cbc_policy, center, patient):
    enable(cbc_policy, MONDAY)
    _book(cbc_policy, MONDAY, 2, "09:24", "09:48", kind=Booking.KIND_TEST_SERIAL, patient=patient)
    facility = FacilityRef(FacilityKind.DIAGNOSTIC_CENTER, center.id)
    result = AvailabilityResolver().test_serials(blood_test.id, facility, MONDAY)
    assert [s.serial_number for s in result.slots][:2] == [4, 6]
    assert result.price == Decimal("350.00")


def test_chamber_slots_follow_the_weekly_schedule(doctor, chamber, monday_schedule, patient):
    resolver = AvailabilityResolver()
    result = resolver.chamber_slots(doctor.id, chamber.id, MONDAY)
    assert len(result.slots) == 32
    assert result.price == Decimal("800.00")
    # Tuesday has no schedule.
    assert resolver.chamber_slots(doctor.id, chamber.id, MONDAY.replace(day=11)).slots == []


def test_booked_chamber_slot_is_excluded(doctor, chamber, monday_schedule, patient):
    Booking.objects.create(
        reference="APT-1", kind=Booking.KIND_CHAMBER, patient=patient, doctor=doctor, chamber=chamber,
        hospital_id=chamber.hospital_id, subject_ref=f"doctor:{doctor.id}", facility_ref=f"chamber:{chamber.id}",
        date=MONDAY, slot_key="t09:15", start_time="09:15", end_time="09:30", price=Decimal("800.00"),
    )
    result = AvailabilityResolver().chamber_slots(doctor.id, chamber.id, MONDAY)
    starts = [s.start_time for s in result.slots]
    assert len(starts) == 31
    assert "09:15" not in starts


def test_schedule_outside_validity_is_ignored(doctor, chamber, monday_schedule):
    monday_schedule.valid_until = MONDAY.replace(day=9)
    monday_schedule.save()
    assert AvailabilityResolver().chamber_slots(doctor.id, chamber.id, MONDAY).slots == []


def test_booking_straddling_two_slots_removes_both(doctor, chamber, monday_schedule, patient):
    Booking.objects.create(
        reference="APT-2", kind=Booking.KIND_CHAMBER, patient=patient, doctor=doctor, chamber=chamber,
        hospital_id=chamber.hospital_id, subject_ref=f"doctor:{doctor.id}", facility_ref=f"chamber:{chamber.id}",
        date=MONDAY, slot_key="t09:10", start_time="09:10", end_time="09:25", price=Decimal("800.00"),
    )
    starts = [s.start_time for s in AvailabilityResolver().chamber_slots(doctor.id, chamber.id, MONDAY).slots]
    assert len(starts) == 30
    assert "09:00" not in starts
    assert "09:15" not in starts
    assert starts[0] == "09:30"
