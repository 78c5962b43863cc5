"""
Availability resolution.

Three schedule modes share the same shape: compute the candidate slots
for a date, then subtract whatever the booking ledger already holds.

* chamber slots: weekly :class:`Schedule` windows expanded into
  fixed-length sessions;
* doctor serials and test serials: a :class:`SerialPolicy` window
  partitioned into ``capacity`` equal serials, of which only the even
  numbers are offered.  A date is closed unless an enabled
  :class:`DateOverride` opens it.

The resolver only reads.  Its answer is advisory; the allocator re-checks
everything on the primary database before writing.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Optional

from django.db.models import Q

from ..exceptions import ConfigurationError, NotFound, Unavailable
from ..models import Booking, Chamber, DateOverride, Schedule, SerialPolicy
from .facilities import FacilityRef, Subject, diagnostic_test_context, doctor_context
from .timewindows import Window, day_of_week, expand, parse_hhmm, partition

logger = logging.getLogger(__name__)

DATE_NOT_ENABLED = 'This date is not available for serial booking. Please select an enabled date.'
DATE_DISABLED = 'Serial booking is not available for this date.'


@dataclass
class Slot:
    start_time: str
    end_time: str
    serial_number: Optional[int] = None
    duration: Optional[int] = None

    def as_dict(self, price: Optional[Decimal] = None) -> dict:
        data = {
            'slotOrSerial': self.serial_number if self.serial_number is not None
            else f'{self.start_time}-{self.end_time}',
            'startTime': self.start_time,
            'endTime': self.end_time,
            'price': str(price) if price is not None else None,
        }
        if self.serial_number is not None:
            data['serialNumber'] = self.serial_number
        if self.duration is not None:
            data['duration'] = self.duration
        return data


@dataclass
class Availability:
    day: date
    slots: list[Slot] = field(default_factory=list)
    price: Optional[Decimal] = None
    reason: Optional[str] = None
    admin_note: Optional[str] = None
    capacity: Optional[int] = None
    window: Optional[Window] = None
    booked: int = 0

    @property
    def is_open(self) -> bool:
        return self.reason is None

    def as_dict(self) -> dict:
        data = {
            'date': self.day.isoformat(),
            'available': self.is_open,
            'slots': [s.as_dict(self.price) for s in self.slots],
            'count': len(self.slots),
        }
        if self.reason:
            data['reason'] = self.reason
        if self.admin_note:
            data['adminNote'] = self.admin_note
        if self.capacity is not None:
            data['totalSerials'] = self.capacity
            data['bookedSerials'] = self.booked
        if self.window is not None:
            data['startTime'], data['endTime'] = self.window.as_strings()
        return data


@dataclass(frozen=True)
class EffectivePolicy:
    """Policy values for one date after applying its override."""
    policy: SerialPolicy
    override: DateOverride
    capacity: int
    window: Window
    price: Decimal

    @property
    def admin_note(self) -> Optional[str]:
        return self.override.admin_note or None


# ---------------------------------------------------------------------
# Serial generation
# ---------------------------------------------------------------------
OccupancyMatcher = Callable[[int, Window, set], bool]


def match_by_start_time(serial_number: int, slot: Window, occupied: set) -> bool:
    return slot.start in occupied


def match_by_serial_number(serial_number: int, slot: Window, occupied: set) -> bool:
    return serial_number in occupied


def available_serials(
    capacity: int,
    window: Window,
    occupied: Iterable,
    matcher: OccupancyMatcher,
) -> list[Slot]:
    """Even-numbered serials of ``window`` that ``matcher`` does not report as taken."""
    taken = set(occupied)
    try:
        serial_windows = partition(window, capacity)
    except ValueError as exc:
        raise ConfigurationError(str(exc))
    slots: list[Slot] = []
    for number, sw in enumerate(serial_windows, start=1):
        # Odd serials are held back for walk-ins.
        if number % 2:
            continue
        if matcher(number, sw, taken):
            continue
        start, end = sw.as_strings()
        slots.append(Slot(start_time=start, end_time=end, serial_number=number))
    return slots


def effective_policy(policy: SerialPolicy, override: Optional[DateOverride]) -> EffectivePolicy:
    """Merge ``override`` into ``policy``.

    Raises ``Unavailable`` when the date has no enabled override and
    ``ConfigurationError`` when the merged values cannot form a schedule.
    """
    if override is None:
        raise Unavailable(DATE_NOT_ENABLED)
    if not override.is_enabled:
        raise Unavailable(override.admin_note or DATE_DISABLED)

    capacity = override.total_serials_per_day
    if capacity is None:
        capacity = policy.total_serials_per_day
    if not capacity or capacity <= 0:
        raise ConfigurationError('Total serials per day is missing or invalid.')

    # An override's times only apply as a pair.
    if override.start_time and override.end_time:
        start, end = override.start_time, override.end_time
    else:
        start, end = policy.start_time, policy.end_time
    if not start or not end:
        raise ConfigurationError('Serial time range is not configured properly.')
    try:
        window = Window.parse(start, end)
    except ValueError as exc:
        raise ConfigurationError(f'Serial time range is invalid: {exc}')
    if window.length // capacity == 0:
        raise ConfigurationError(
            f'{capacity} serials do not fit between {start} and {end}.'
        )

    price = override.price if override.price is not None else policy.price
    return EffectivePolicy(policy=policy, override=override, capacity=capacity, window=window, price=price)


def occupied_keys(bookings, subject: Subject, facility: FacilityRef, day: date) -> set:
    """Occupancy set for a serial date: start minutes for doctors, serial numbers for tests."""
    qs = bookings.filter(date=day, status__in=Booking.OCCUPYING_STATUSES)
    if subject.is_doctor:
        # A doctor cannot be in two places at the same start time,
        # whatever the booking was made through.
        qs = qs.filter(doctor_id=subject.id)
        return {parse_hhmm(t) for t in qs.values_list('start_time', flat=True)}
    qs = qs.filter(subject_ref=subject.key, facility_ref=facility.key)
    return {n for n in qs.values_list('serial_number', flat=True) if n is not None}


def matcher_for(subject: Subject) -> OccupancyMatcher:
    return match_by_start_time if subject.is_doctor else match_by_serial_number


class AvailabilityResolver:
    """Read-only availability queries.

    ``using`` selects a database alias; ``None`` leaves the choice to the
    configured routers (the replica, when there is one).
    """

    def __init__(self, using: Optional[str] = None):
        self.using = using

    # --- lookups ---------------------------------------------------
    def policy_for(self, subject: Subject, facility: FacilityRef) -> SerialPolicy:
        policy = (
            SerialPolicy.objects.using(self.using)
            .filter(is_active=True, **subject.lookup(), **facility.lookup())
            .first()
        )
        if policy is None:
            raise NotFound('Serial settings not found.')
        return policy

    def override_for(self, policy: SerialPolicy, day: date) -> Optional[DateOverride]:
        return DateOverride.objects.using(self.using).filter(policy=policy, date=day).first()

    def _bookings(self):
        return Booking.objects.using(self.using)

    # --- serial modes ----------------------------------------------
    def serials(self, subject: Subject, facility: FacilityRef, day: date) -> Availability:
        policy = self.policy_for(subject, facility)
        try:
            effective = effective_policy(policy, self.override_for(policy, day))
        except Unavailable as exc:
            return Availability(day=day, reason=str(exc.detail))
        occupied = occupied_keys(self._bookings(), subject, facility, day)
        slots = available_serials(effective.capacity, effective.window, occupied, matcher_for(subject))
        logger.debug('availability %s@%s %s: %d open', subject.key, facility.key, day, len(slots))
        return Availability(
            day=day,
            slots=slots,
            price=effective.price,
            admin_note=effective.admin_note,
            capacity=effective.capacity,
            window=effective.window,
            booked=len(occupied),
        )

    def doctor_serials(self, doctor_id: int, day: date) -> Availability:
        try:
            _, facility = doctor_context(doctor_id, using=self.using)
        except Unavailable as exc:
            return Availability(day=day, reason=str(exc.detail))
        return self.serials(Subject(Subject.DOCTOR, doctor_id), facility, day)

    def test_serials(self, test_id: int, facility: FacilityRef, day: date) -> Availability:
        try:
            diagnostic_test_context(test_id, facility, using=self.using)
        except Unavailable as exc:
            return Availability(day=day, reason=str(exc.detail))
        return self.serials(Subject(Subject.TEST, test_id), facility, day)

    # --- chamber mode ----------------------------------------------
    def chamber(self, doctor_id: int, chamber_id: int) -> Chamber:
        chamber = (
            Chamber.objects.using(self.using)
            .select_related('doctor', 'hospital')
            .filter(pk=chamber_id, doctor_id=doctor_id, is_active=True)
            .first()
        )
        if chamber is None or not chamber.doctor.is_approved:
            raise NotFound('Chamber not found.')
        if chamber.hospital_id and not chamber.hospital.is_approved:
            raise Unavailable('Facility is not approved for bookings.')
        return chamber

    def schedule_windows(self, doctor_id: int, chamber_id: int, day: date) -> list[tuple[Window, int]]:
        """(window, session minutes) pairs active for ``day``."""
        schedules = (
            Schedule.objects.using(self.using)
            .filter(doctor_id=doctor_id, chamber_id=chamber_id, day_of_week=day_of_week(day), is_active=True)
            .filter(Q(valid_from__isnull=True) | Q(valid_from__lte=day))
            .filter(Q(valid_until__isnull=True) | Q(valid_until__gte=day))
            .prefetch_related('windows')
        )
        pairs: list[tuple[Window, int]] = []
        for schedule in schedules:
            for w in schedule.windows.all():
                try:
                    window = Window.parse(w.start_time, w.end_time)
                except ValueError:
                    logger.warning('schedule %s has an invalid window %s-%s', schedule.pk, w.start_time, w.end_time)
                    continue
                pairs.append((window, w.session_minutes))
        return pairs

    def chamber_slot_windows(self, doctor_id: int, chamber_id: int, day: date) -> list[Window]:
        candidates: list[Window] = []
        for window, minutes in self.schedule_windows(doctor_id, chamber_id, day):
            if minutes <= 0:
                raise ConfigurationError('Schedule session duration must be positive.')
            candidates.extend(expand(window, minutes))
        return sorted(set(candidates), key=lambda w: (w.start, w.end))

    def chamber_slots(self, doctor_id: int, chamber_id: int, day: date) -> Availability:
        try:
            chamber = self.chamber(doctor_id, chamber_id)
        except Unavailable as exc:
            return Availability(day=day, reason=str(exc.detail))
        booked = [
            Window.parse(s, e)
            for s, e in self._bookings()
            .filter(doctor_id=doctor_id, chamber_id=chamber_id, date=day, status__in=Booking.OCCUPYING_STATUSES)
            .values_list('start_time', 'end_time')
        ]
        slots: list[Slot] = []
        for candidate in self.chamber_slot_windows(doctor_id, chamber_id, day):
            if any(candidate.overlaps(b) for b in booked):
                continue
            start, end = candidate.as_strings()
            slots.append(Slot(start_time=start, end_time=end, duration=candidate.length))
        return Availability(day=day, slots=slots, price=chamber.consultation_fee, booked=len(booked))
