"""
Booking allocation and status changes.

The allocator is the only writer of :class:`Booking` rows.  Every
allocation re-derives the schedule on the primary database, performs a
fast "already taken?" check for a friendly error, and then inserts.  The
unique constraint on ``(subject_ref, facility_ref, date, slot_key,
occupies)`` is what actually guarantees that two concurrent requests for
the same slot cannot both succeed: the losing insert raises
``IntegrityError`` inside its own savepoint and is reported as
``AlreadyBooked``.
"""
from __future__ import annotations

import logging
import secrets
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied

from ..exceptions import AlreadyBooked, InvalidInput, InvalidTransition, NotFound
from ..models import Booking, Chamber, SerialPolicy, User
from ..permissions import can_manage_booking
from .audit import log_action
from .availability import AvailabilityResolver, effective_policy, matcher_for, occupied_keys
from .facilities import FacilityRef, Subject, diagnostic_test_context, doctor_context
from .notifications import notify_booking_created, notify_status_changed
from .timewindows import Window, serial_window

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = {
    Booking.KIND_CHAMBER: 'APT',
    Booking.KIND_DOCTOR_SERIAL: 'SR',
    Booking.KIND_TEST_SERIAL: 'TSB',
}

# Staff-driven status machine.  accepted and confirmed are both
# "acceptance" states; confirmed is what test centers use.
STAFF_TRANSITIONS = {
    Booking.STATUS_PENDING: {Booking.STATUS_ACCEPTED, Booking.STATUS_CONFIRMED, Booking.STATUS_REJECTED},
    Booking.STATUS_ACCEPTED: {Booking.STATUS_COMPLETED, Booking.STATUS_CANCELLED, Booking.STATUS_NO_SHOW},
    Booking.STATUS_CONFIRMED: {Booking.STATUS_COMPLETED, Booking.STATUS_CANCELLED, Booking.STATUS_NO_SHOW},
}
PATIENT_CANCELLABLE = {Booking.STATUS_PENDING, Booking.STATUS_ACCEPTED, Booking.STATUS_CONFIRMED}
TERMINAL_STATUSES = {
    Booking.STATUS_REJECTED, Booking.STATUS_COMPLETED, Booking.STATUS_CANCELLED, Booking.STATUS_NO_SHOW,
}


def can_transition(current: str, new: str) -> bool:
    """Return True if staff may move a booking from ``current`` to ``new``."""
    return new in STAFF_TRANSITIONS.get(current, set())


def booking_reference(kind: str, day: date) -> str:
    return f"{REFERENCE_PREFIX[kind]}-{day:%Y%m%d}-{secrets.token_hex(6).upper()}"


def time_slot_key(start_time: str) -> str:
    return f"t{start_time}"


def format_booking(b: Booking) -> dict:
    return {
        'id': b.id,
        'reference': b.reference,
        'kind': b.kind,
        'status': b.status,
        'date': b.date.isoformat(),
        'startTime': b.start_time,
        'endTime': b.end_time,
        'serialNumber': b.serial_number,
        'price': str(b.price),
        'consultationType': b.consultation_type,
        'doctorId': b.doctor_id,
        'testId': b.test_id,
        'hospitalId': b.hospital_id,
        'diagnosticCenterId': b.diagnostic_center_id,
        'chamberId': b.chamber_id,
        'patientId': b.patient_id,
        'notes': b.notes,
        'cancelledBy': b.cancelled_by or None,
        'cancellationReason': b.cancellation_reason or None,
        'cancelledAt': b.cancelled_at.isoformat() if b.cancelled_at else None,
        'createdAt': b.created_at.isoformat() if b.created_at else None,
    }


class BookingAllocator:
    """Allocates chamber slots and serials against the primary database.

    ``clock`` returns today's date and bounds the booking horizon;
    ``notifier`` is called with the new booking after commit.
    """

    def __init__(
        self,
        *,
        using: str = 'default',
        clock: Optional[Callable[[], date]] = None,
        notifier: Optional[Callable[[Booking], None]] = None,
    ):
        self.using = using
        self.clock = clock or timezone.localdate
        self.notifier = notifier or notify_booking_created
        self.resolver = AvailabilityResolver(using=using)

    # ---------------------------------------------------------------
    # validation
    # ---------------------------------------------------------------
    def check_horizon(self, day: date) -> None:
        today = self.clock()
        if day < today:
            raise InvalidInput('Cannot book a date in the past.')
        limit = settings.SCHEDULING_MAX_ADVANCE_DAYS
        if day > today + timedelta(days=limit):
            raise InvalidInput(f'Bookings can be made at most {limit} days in advance.')

    @staticmethod
    def check_serial_number(serial_number) -> int:
        if isinstance(serial_number, bool) or not isinstance(serial_number, int) or serial_number < 1:
            raise InvalidInput('Serial number must be a positive integer.')
        if serial_number % 2:
            raise InvalidInput('Only even-numbered serials can be booked online.')
        return serial_number

    # ---------------------------------------------------------------
    # fast-path occupancy checks
    # ---------------------------------------------------------------
    def is_serial_taken(self, subject: Subject, facility: FacilityRef, day: date, serial_number: int, slot: Window) -> bool:
        occupied = occupied_keys(Booking.objects.using(self.using), subject, facility, day)
        return matcher_for(subject)(serial_number, slot, occupied)

    def is_chamber_slot_taken(self, doctor_id: int, chamber_id: int, day: date, slot: Window) -> bool:
        booked = (
            Booking.objects.using(self.using)
            .filter(doctor_id=doctor_id, chamber_id=chamber_id, date=day, status__in=Booking.OCCUPYING_STATUSES)
            .values_list('start_time', 'end_time')
        )
        return any(slot.overlaps(Window.parse(s, e)) for s, e in booked)

    # ---------------------------------------------------------------
    # serial modes
    # ---------------------------------------------------------------
    def book_doctor_serial(self, patient: User, doctor_id: int, day: date, serial_number, *, notes: str = '') -> Booking:
        self.check_serial_number(serial_number)
        self.check_horizon(day)
        doctor, facility = doctor_context(doctor_id, using=self.using)
        return self._book_serial(
            patient, Subject(Subject.DOCTOR, doctor.id), facility, day, serial_number,
            kind=Booking.KIND_DOCTOR_SERIAL, notes=notes, fields={'doctor': doctor},
        )

    def book_test_serial(
        self, patient: User, test_id: int, facility: FacilityRef, day: date, serial_number, *, notes: str = '',
    ) -> Booking:
        self.check_serial_number(serial_number)
        self.check_horizon(day)
        test = diagnostic_test_context(test_id, facility, using=self.using)
        return self._book_serial(
            patient, Subject(Subject.TEST, test.id), facility, day, serial_number,
            kind=Booking.KIND_TEST_SERIAL, notes=notes, fields={'test': test},
        )

    def _book_serial(
        self, patient: User, subject: Subject, facility: FacilityRef, day: date, serial_number: int,
        *, kind: str, notes: str, fields: dict,
    ) -> Booking:
        with transaction.atomic(using=self.using):
            policy = self.resolver.policy_for(subject, facility)
            # Serialise allocations per policy on backends with row locks.
            policy = SerialPolicy.objects.using(self.using).select_for_update().get(pk=policy.pk)
            effective = effective_policy(policy, self.resolver.override_for(policy, day))
            if serial_number > effective.capacity:
                raise InvalidInput(f'Serial number must be between 1 and {effective.capacity}.')
            slot = serial_window(effective.window, effective.capacity, serial_number)
            if self.is_serial_taken(subject, facility, day, serial_number, slot):
                raise AlreadyBooked('This serial is already booked. Please select another serial.')

            start_time, end_time = slot.as_strings()
            slot_key = time_slot_key(start_time) if subject.is_doctor else f"s{serial_number}"
            booking = Booking(
                reference=booking_reference(kind, day),
                kind=kind,
                patient=patient,
                policy=policy,
                hospital_id=facility.hospital_id,
                diagnostic_center_id=facility.diagnostic_center_id,
                subject_ref=subject.key,
                facility_ref=facility.key,
                date=day,
                slot_key=slot_key,
                start_time=start_time,
                end_time=end_time,
                serial_number=serial_number,
                status=Booking.STATUS_PENDING,
                price=effective.price,
                notes=notes or '',
                **fields,
            )
            return self._insert(booking)

    # ---------------------------------------------------------------
    # chamber mode
    # ---------------------------------------------------------------
    def book_chamber_slot(
        self, patient: User, doctor_id: int, chamber_id: int, day: date, start_time: str, end_time: str,
        *, consultation_type: str = Booking.CONSULT_NEW, notes: str = '',
    ) -> Booking:
        try:
            requested = Window.parse(start_time, end_time)
        except ValueError:
            raise InvalidInput('Invalid time range. Use HH:MM with the end after the start.')
        if consultation_type not in dict(Booking.CONSULT_CHOICES):
            raise InvalidInput('Consultation type must be new or follow_up.')
        self.check_horizon(day)

        with transaction.atomic(using=self.using):
            chamber = self.resolver.chamber(doctor_id, chamber_id)
            chamber = Chamber.objects.using(self.using).select_for_update().get(pk=chamber.pk)
            if requested not in self.resolver.chamber_slot_windows(doctor_id, chamber_id, day):
                raise InvalidInput('Requested time is not an available slot for this chamber on this date.')
            if self.is_chamber_slot_taken(doctor_id, chamber_id, day, requested):
                raise AlreadyBooked('This time slot is already booked. Please select another time.')

            price: Decimal = chamber.consultation_fee
            if consultation_type == Booking.CONSULT_FOLLOW_UP and chamber.follow_up_fee:
                price = chamber.follow_up_fee
            booking = Booking(
                reference=booking_reference(Booking.KIND_CHAMBER, day),
                kind=Booking.KIND_CHAMBER,
                patient=patient,
                doctor_id=doctor_id,
                chamber=chamber,
                hospital_id=chamber.hospital_id,
                subject_ref=Subject(Subject.DOCTOR, doctor_id).key,
                facility_ref=f"chamber:{chamber.pk}",
                date=day,
                slot_key=time_slot_key(start_time),
                start_time=start_time,
                end_time=end_time,
                status=Booking.STATUS_PENDING,
                consultation_type=consultation_type,
                price=price,
                notes=notes or '',
            )
            return self._insert(booking)

    # ---------------------------------------------------------------
    def _insert(self, booking: Booking) -> Booking:
        try:
            with transaction.atomic(using=self.using):
                booking.save(using=self.using)
        except IntegrityError:
            logger.warning(
                'booking conflict on %s %s %s %s', booking.subject_ref, booking.facility_ref,
                booking.date, booking.slot_key,
            )
            raise AlreadyBooked()
        log_action(
            user=booking.patient, action='booking_create', object_type='booking', object_id=booking.id,
            detail={'reference': booking.reference, 'kind': booking.kind, 'date': booking.date.isoformat(),
                    'slot': booking.slot_key},
            using=self.using,
        )
        logger.info('booked %s %s %s %s', booking.reference, booking.subject_ref, booking.date, booking.slot_key)
        notifier = self.notifier
        transaction.on_commit(lambda: notifier(booking), using=self.using, robust=True)
        return booking


# ---------------------------------------------------------------------
# Status changes
# ---------------------------------------------------------------------
def _locked(booking_id: int, using: str) -> Booking:
    booking = (
        Booking.objects.using(using)
        .select_for_update()
        .filter(pk=booking_id)
        .first()
    )
    if booking is None:
        raise NotFound('Booking not found.')
    return booking


def _cancel(booking: Booking, *, by: str, reason: str) -> list[str]:
    booking.status = Booking.STATUS_CANCELLED
    booking.cancelled_by = by
    booking.cancellation_reason = (reason or '')[:255]
    booking.cancelled_at = timezone.now()
    return ['status', 'cancelled_by', 'cancellation_reason', 'cancelled_at', 'updated_at']


def _after_change(booking: Booking, old_status: str, *, actor: Optional[User], action: str, using: str) -> None:
    log_action(
        user=actor, action=action, object_type='booking', object_id=booking.id,
        detail={'from': old_status, 'to': booking.status, 'reference': booking.reference},
        using=using,
    )
    logger.info('booking %s %s -> %s', booking.reference, old_status, booking.status)
    transaction.on_commit(lambda: notify_status_changed(booking, old_status), using=using, robust=True)


def change_status(booking_id: int, new_status: str, *, actor: User, reason: str = '', using: str = 'default') -> Booking:
    """Staff status update following :data:`STAFF_TRANSITIONS`."""
    with transaction.atomic(using=using):
        booking = _locked(booking_id, using)
        if not can_manage_booking(actor, booking):
            raise PermissionDenied('You cannot manage this booking.')
        old = booking.status
        if not can_transition(old, new_status):
            raise InvalidTransition(f'Cannot change status from {old} to {new_status}.')
        if new_status == Booking.STATUS_CANCELLED:
            update_fields = _cancel(booking, by='staff', reason=reason)
        else:
            booking.status = new_status
            update_fields = ['status', 'updated_at']
        booking.save(using=using, update_fields=update_fields)
        _after_change(booking, old, actor=actor, action='booking_status', using=using)
    return booking


def cancel_booking(booking_id: int, patient: User, *, reason: str = '', using: str = 'default') -> Booking:
    """Patient cancellation of their own booking."""
    with transaction.atomic(using=using):
        booking = _locked(booking_id, using)
        if booking.patient_id != patient.id:
            raise NotFound('Booking not found.')
        old = booking.status
        if old not in PATIENT_CANCELLABLE:
            raise InvalidTransition(f'Cannot cancel a booking with status {old}.')
        booking.save(using=using, update_fields=_cancel(booking, by='patient', reason=reason))
        _after_change(booking, old, actor=patient, action='booking_cancel', using=using)
    return booking


def force_cancel(booking_id: int, *, reason: str, using: str = 'default') -> Booking:
    """System cancellation; skips the staff table but not terminal states."""
    with transaction.atomic(using=using):
        booking = _locked(booking_id, using)
        old = booking.status
        if old in TERMINAL_STATUSES:
            raise InvalidTransition(f'Booking is already {old}.')
        booking.save(using=using, update_fields=_cancel(booking, by='system', reason=reason))
        _after_change(booking, old, actor=None, action='booking_cancel', using=using)
    return booking
