"""
Database models for the booking scheduler.

The facility side (hospitals, diagnostic centers, doctors, chambers and
tests) is kept deliberately thin: the scheduler only needs identity,
ownership and approval state from it.  The scheduling side holds the
weekly chamber schedules, the serial policies with their per-date
overrides and the booking ledger.

Times of day are stored as ``HH:MM`` strings and calendar dates as plain
``DateField`` values so that an override keyed on ``2025-03-10`` can never
drift across a timezone boundary.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import Q


APPROVAL_CHOICES = [
    ('pending', 'Pending'),
    ('approved', 'Approved'),
    ('rejected', 'Rejected'),
    ('suspended', 'Suspended'),
]


class Hospital(models.Model):
    name = models.CharField(max_length=255)
    # Only approved facilities accept bookings.
    status = models.CharField(max_length=16, choices=APPROVAL_CHOICES, default='pending', db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    @property
    def is_approved(self) -> bool:
        return self.status == 'approved'

    def __str__(self) -> str:
        return f"{self.name} (hospital {self.pk})"


class DiagnosticCenter(models.Model):
    name = models.CharField(max_length=255)
    status = models.CharField(max_length=16, choices=APPROVAL_CHOICES, default='pending', db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    @property
    def is_approved(self) -> bool:
        return self.status == 'approved'

    def __str__(self) -> str:
        return f"{self.name} (center {self.pk})"


class User(AbstractUser):
    """Custom user model with a platform role.

    Facility administrators are bound to exactly one hospital or
    diagnostic center; the binding scopes what policies, overrides and
    bookings they may manage.  Doctors link to their :class:`Doctor`
    profile through ``doctor_profile``.
    """
    ROLE_CHOICES = [
        ('patient', 'Patient'),
        ('doctor', 'Doctor'),
        ('hospital_admin', 'Hospital Administrator'),
        ('center_admin', 'Diagnostic Center Administrator'),
        ('super', 'Super Administrator'),
    ]
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default='patient')
    phone = models.CharField(max_length=20, blank=True)
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='admins'
    )
    diagnostic_center = models.ForeignKey(
        DiagnosticCenter, null=True, blank=True, on_delete=models.SET_NULL, related_name='admins'
    )

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Doctor(models.Model):
    """A practitioner, either independent or attached to one facility."""
    user = models.OneToOneField(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='doctor_profile'
    )
    name = models.CharField(max_length=255)
    specialization = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=16, choices=APPROVAL_CHOICES, default='pending', db_index=True)
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='doctors'
    )
    diagnostic_center = models.ForeignKey(
        DiagnosticCenter, null=True, blank=True, on_delete=models.SET_NULL, related_name='doctors'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    @property
    def is_approved(self) -> bool:
        return self.status == 'approved'

    def __str__(self) -> str:
        return f"Dr. {self.name} ({self.pk})"


class Chamber(models.Model):
    """A place where a doctor sees patients by appointment."""
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='chambers')
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='chambers'
    )
    name = models.CharField(max_length=255, blank=True)
    consultation_fee = models.DecimalField(max_digits=10, decimal_places=2)
    follow_up_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.name or f"chamber {self.pk}"


class DiagnosticTest(models.Model):
    """A bookable test offered by exactly one hospital or diagnostic center."""
    name = models.CharField(max_length=255)
    code = models.CharField(max_length=50, blank=True)
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.CASCADE, related_name='tests'
    )
    diagnostic_center = models.ForeignKey(
        DiagnosticCenter, null=True, blank=True, on_delete=models.CASCADE, related_name='tests'
    )
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.name} ({self.code or self.pk})"


# ---------------------------------------------------------------------------
# Recurring chamber schedules
# ---------------------------------------------------------------------------

class Schedule(models.Model):
    """Weekly availability template for one doctor in one chamber.

    ``day_of_week`` follows the 0 = Sunday convention.  Windows within the
    same day are expected not to overlap; storage does not enforce it.
    """
    DAY_CHOICES = [
        (0, 'Sunday'),
        (1, 'Monday'),
        (2, 'Tuesday'),
        (3, 'Wednesday'),
        (4, 'Thursday'),
        (5, 'Friday'),
        (6, 'Saturday'),
    ]
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='schedules')
    chamber = models.ForeignKey(Chamber, on_delete=models.CASCADE, related_name='schedules')
    day_of_week = models.PositiveSmallIntegerField(choices=DAY_CHOICES)
    is_active = models.BooleanField(default=True)
    valid_from = models.DateField(null=True, blank=True)
    valid_until = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['doctor', 'chamber', 'day_of_week'], name='schedule_doc_chamber_dow'),
        ]

    def __str__(self) -> str:
        return f"Schedule(d={self.doctor_id}, c={self.chamber_id}, dow={self.day_of_week})"


class ScheduleWindow(models.Model):
    schedule = models.ForeignKey(Schedule, on_delete=models.CASCADE, related_name='windows')
    position = models.PositiveSmallIntegerField(default=0)
    start_time = models.CharField(max_length=5)
    end_time = models.CharField(max_length=5)
    session_minutes = models.PositiveSmallIntegerField(default=15)
    max_patients = models.PositiveSmallIntegerField(default=1)

    class Meta:
        ordering = ['position', 'start_time']

    def __str__(self) -> str:
        return f"{self.start_time}-{self.end_time}/{self.session_minutes}m"


# ---------------------------------------------------------------------------
# Serial policies and per-date overrides
# ---------------------------------------------------------------------------

class SerialPolicy(models.Model):
    """Base serial capacity for a doctor or a test at one facility.

    The subject is either a doctor or a test; the facility is at most one
    of hospital / diagnostic center (none means independent practice).
    One policy exists per (subject, facility) pair.
    """
    doctor = models.ForeignKey(
        Doctor, null=True, blank=True, on_delete=models.CASCADE, related_name='serial_policies'
    )
    test = models.ForeignKey(
        DiagnosticTest, null=True, blank=True, on_delete=models.CASCADE, related_name='serial_policies'
    )
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.CASCADE, related_name='serial_policies'
    )
    diagnostic_center = models.ForeignKey(
        DiagnosticCenter, null=True, blank=True, on_delete=models.CASCADE, related_name='serial_policies'
    )
    chamber = models.ForeignKey(
        Chamber, null=True, blank=True, on_delete=models.SET_NULL, related_name='serial_policies'
    )
    total_serials_per_day = models.PositiveIntegerField(default=20)
    start_time = models.CharField(max_length=5)
    end_time = models.CharField(max_length=5)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    available_weekdays = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(doctor__isnull=False, test__isnull=True)
                    | Q(doctor__isnull=True, test__isnull=False)
                ),
                name='serialpolicy_single_subject',
            ),
            models.CheckConstraint(
                condition=Q(hospital__isnull=True) | Q(diagnostic_center__isnull=True),
                name='serialpolicy_single_facility',
            ),
            models.CheckConstraint(
                condition=Q(total_serials_per_day__gte=1),
                name='serialpolicy_capacity_positive',
            ),
            models.UniqueConstraint(
                fields=['doctor', 'hospital'],
                condition=Q(doctor__isnull=False, hospital__isnull=False),
                name='uniq_policy_doctor_hospital',
            ),
            models.UniqueConstraint(
                fields=['doctor', 'diagnostic_center'],
                condition=Q(doctor__isnull=False, diagnostic_center__isnull=False),
                name='uniq_policy_doctor_center',
            ),
            models.UniqueConstraint(
                fields=['doctor'],
                condition=Q(doctor__isnull=False, hospital__isnull=True, diagnostic_center__isnull=True),
                name='uniq_policy_doctor_independent',
            ),
            models.UniqueConstraint(
                fields=['test', 'hospital'],
                condition=Q(test__isnull=False, hospital__isnull=False),
                name='uniq_policy_test_hospital',
            ),
            models.UniqueConstraint(
                fields=['test', 'diagnostic_center'],
                condition=Q(test__isnull=False, diagnostic_center__isnull=False),
                name='uniq_policy_test_center',
            ),
        ]

    def __str__(self) -> str:
        subject = f"doctor {self.doctor_id}" if self.doctor_id else f"test {self.test_id}"
        return f"SerialPolicy({subject}, {self.total_serials_per_day} @ {self.start_time}-{self.end_time})"


class DateOverride(models.Model):
    """Opt-in configuration of one calendar date for a serial policy.

    A date without an override is not bookable.  Null fields fall back to
    the policy's values.
    """
    policy = models.ForeignKey(SerialPolicy, on_delete=models.CASCADE, related_name='overrides')
    date = models.DateField(db_index=True)
    total_serials_per_day = models.PositiveIntegerField(null=True, blank=True)
    start_time = models.CharField(max_length=5, null=True, blank=True)
    end_time = models.CharField(max_length=5, null=True, blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    admin_note = models.CharField(max_length=500, blank=True)
    is_enabled = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['policy', 'date'], name='uniq_override_policy_date'),
        ]
        ordering = ['date']

    def __str__(self) -> str:
        state = 'on' if self.is_enabled else 'off'
        return f"Override(p={self.policy_id}, {self.date:%Y-%m-%d}, {state})"


# ---------------------------------------------------------------------------
# Booking ledger
# ---------------------------------------------------------------------------

class Booking(models.Model):
    """One allocated slot or serial.

    ``subject_ref``/``facility_ref``/``slot_key`` form the natural key of the
    allocation.  ``occupies`` is True while the booking holds capacity and
    NULL afterwards, so the unique constraint below only ever sees one
    holder per key while released rows never collide.
    """
    KIND_CHAMBER = 'chamber'
    KIND_DOCTOR_SERIAL = 'doctor_serial'
    KIND_TEST_SERIAL = 'test_serial'
    KIND_CHOICES = (
        (KIND_CHAMBER, 'chamber'),
        (KIND_DOCTOR_SERIAL, 'doctor_serial'),
        (KIND_TEST_SERIAL, 'test_serial'),
    )

    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_REJECTED = 'rejected'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_NO_SHOW = 'no_show'
    STATUS_CHOICES = (
        (STATUS_PENDING, 'pending'),
        (STATUS_ACCEPTED, 'accepted'),
        (STATUS_CONFIRMED, 'confirmed'),
        (STATUS_REJECTED, 'rejected'),
        (STATUS_COMPLETED, 'completed'),
        (STATUS_CANCELLED, 'cancelled'),
        (STATUS_NO_SHOW, 'no_show'),
    )
    OCCUPYING_STATUSES = (STATUS_PENDING, STATUS_ACCEPTED, STATUS_CONFIRMED, STATUS_COMPLETED)

    CONSULT_NEW = 'new'
    CONSULT_FOLLOW_UP = 'follow_up'
    CONSULT_CHOICES = ((CONSULT_NEW, 'new'), (CONSULT_FOLLOW_UP, 'follow_up'))

    CANCELLED_BY_CHOICES = (
        ('patient', 'patient'),
        ('staff', 'staff'),
        ('system', 'system'),
    )

    reference = models.CharField(max_length=40, unique=True)
    kind = models.CharField(max_length=16, choices=KIND_CHOICES)
    patient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='bookings')
    doctor = models.ForeignKey(
        Doctor, null=True, blank=True, on_delete=models.CASCADE, related_name='bookings'
    )
    test = models.ForeignKey(
        DiagnosticTest, null=True, blank=True, on_delete=models.CASCADE, related_name='bookings'
    )
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='bookings'
    )
    diagnostic_center = models.ForeignKey(
        DiagnosticCenter, null=True, blank=True, on_delete=models.SET_NULL, related_name='bookings'
    )
    chamber = models.ForeignKey(
        Chamber, null=True, blank=True, on_delete=models.SET_NULL, related_name='bookings'
    )
    policy = models.ForeignKey(
        SerialPolicy, null=True, blank=True, on_delete=models.SET_NULL, related_name='bookings'
    )

    subject_ref = models.CharField(max_length=32)
    facility_ref = models.CharField(max_length=32)
    date = models.DateField()
    slot_key = models.CharField(max_length=16)
    start_time = models.CharField(max_length=5)
    end_time = models.CharField(max_length=5)
    serial_number = models.PositiveIntegerField(null=True, blank=True)
    occupies = models.BooleanField(null=True, default=True)

    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    consultation_type = models.CharField(max_length=16, choices=CONSULT_CHOICES, default=CONSULT_NEW)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    notes = models.TextField(blank=True)

    cancelled_by = models.CharField(max_length=16, choices=CANCELLED_BY_CHOICES, blank=True)
    cancellation_reason = models.CharField(max_length=255, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['subject_ref', 'facility_ref', 'date', 'slot_key', 'occupies'],
                name='uniq_booking_occupied_slot',
            ),
        ]
        indexes = [
            models.Index(fields=['subject_ref', 'date', 'status'], name='booking_subject_date_status'),
            models.Index(fields=['doctor', 'date'], name='booking_doctor_date'),
            models.Index(fields=['patient', 'created_at'], name='booking_patient_created'),
        ]

    def save(self, *args, **kwargs):
        self.occupies = True if self.status in self.OCCUPYING_STATUSES else None
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'status' in update_fields and 'occupies' not in update_fields:
            kwargs['update_fields'] = [*update_fields, 'occupies']
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        label = f"#{self.serial_number}" if self.serial_number else self.start_time
        return f"{self.reference} {self.subject_ref} {self.date:%Y-%m-%d} {label} [{self.status}]"


class Notification(models.Model):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    kind = models.CharField(max_length=64)
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True)
    booking = models.ForeignKey(
        Booking, null=True, blank=True, on_delete=models.SET_NULL, related_name='notifications'
    )
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['user', 'is_read', 'created_at'], name='notif_user_read_created')]

    def __str__(self) -> str:
        return f"notif {self.pk} -> u={self.user_id} {self.kind}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_created'),
        ]
