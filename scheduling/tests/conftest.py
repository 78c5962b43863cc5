from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from scheduling.models import (
    Chamber,
    DateOverride,
    DiagnosticCenter,
    DiagnosticTest,
    Doctor,
    Hospital,
    Schedule,
    ScheduleWindow,
    SerialPolicy,
    User,
)
from scheduling.services.booking import BookingAllocator

# Monday.  Service tests run against this fixed "today".
TODAY = date(2025, 3, 3)
MONDAY = date(2025, 3, 10)


@pytest.fixture(autouse=True)
def _clean_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def hospital(db):
    return Hospital.objects.create(name="City General", status="approved")


@pytest.fixture
def center(db):
    return DiagnosticCenter.objects.create(name="Prime Diagnostics", status="approved")


@pytest.fixture
def patient(db):
    return User.objects.create_user(username="patient1", password="P@ssw0rd1", role="patient")


@pytest.fixture
def other_patient(db):
    return User.objects.create_user(username="patient2", password="P@ssw0rd1", role="patient")


@pytest.fixture
def doctor_user(db):
    return User.objects.create_user(username="doctor1", password="P@ssw0rd1", role="doctor")


@pytest.fixture
def doctor(doctor_user, hospital):
    return Doctor.objects.create(user=doctor_user, name="A. Rahman", status="approved", hospital=hospital)


@pytest.fixture
def hospital_admin(hospital):
    return User.objects.create_user(username="hadmin", password="P@ssw0rd1", role="hospital_admin", hospital=hospital)


@pytest.fixture
def center_admin(center):
    return User.objects.create_user(username="cadmin", password="P@ssw0rd1", role="center_admin",
                                    diagnostic_center=center)


@pytest.fixture
def doctor_policy(doctor, hospital):
    return SerialPolicy.objects.create(
        doctor=doctor, hospital=hospital, total_serials_per_day=20,
        start_time="09:00", end_time="17:00", price=Decimal("500.00"),
    )


@pytest.fixture
def blood_test(center):
    return DiagnosticTest.objects.create(name="Complete Blood Count", code="CBC", diagnostic_center=center,
                                         price=Decimal("350.00"))


@pytest.fixture
def cbc_policy(blood_test, center):
    return SerialPolicy.objects.create(
        test=blood_test, diagnostic_center=center, total_serials_per_day=20,
        start_time="09:00", end_time="17:00", price=Decimal("350.00"),
    )


@pytest.fixture
def chamber(doctor, hospital):
    return Chamber.objects.create(doctor=doctor, hospital=hospital, name="Room 3",
                                  consultation_fee=Decimal("800.00"), follow_up_fee=Decimal("400.00"))


@pytest.fixture
def monday_schedule(doctor, chamber):
    schedule = Schedule.objects.create(doctor=doctor, chamber=chamber, day_of_week=1)
    ScheduleWindow.objects.create(schedule=schedule, start_time="09:00", end_time="17:00", session_minutes=15)
    return schedule


def enable(policy, day, **fields):
    return DateOverride.objects.create(policy=policy, date=day, **fields)


@pytest.fixture
def allocator():
    return BookingAllocator(clock=lambda: TODAY, notifier=lambda booking: None)


@pytest.fixture
def booking_day():
    """A date inside the live booking horizon, for API tests."""
    return timezone.localdate() + timedelta(days=7)


@pytest.fixture
def api():
    def _client(user=None):
        client = APIClient()
        if user is not None:
            client.force_authenticate(user=user)
        return client
    return _client
