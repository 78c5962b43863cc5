"""
Serial policy, date override and weekly schedule management.

These are the write paths used by facility administrators (and by doctors
for their independent practice).  Scope checks live in
``scheduling.permissions``; here we validate data, persist it and audit.
"""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Optional

from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from rest_framework.exceptions import PermissionDenied

from ..exceptions import InvalidInput, NotFound
from ..models import Booking, Chamber, DateOverride, Doctor, Schedule, ScheduleWindow, SerialPolicy, User
from ..permissions import can_manage_facility, can_manage_schedule, own_doctor_id
from .audit import log_action
from .availability import EffectivePolicy, effective_policy
from .facilities import FacilityKind, FacilityRef, Subject, diagnostic_test_context, ensure_facility_approved
from .timewindows import Window, partition

logger = logging.getLogger(__name__)

# Validation reads on write paths must not see replica lag.
PRIMARY = 'default'

POLICY_DEFAULTS = {
    'total_serials_per_day': 20,
    'start_time': '09:00',
    'end_time': '17:00',
}


def policy_cache_key(subject: Subject, facility: FacilityRef) -> str:
    return f"serial_policy:{subject.key}:{facility.key}"


def policy_subject(policy: SerialPolicy) -> Subject:
    if policy.doctor_id:
        return Subject(Subject.DOCTOR, policy.doctor_id)
    return Subject(Subject.TEST, policy.test_id)


def policy_facility(policy: SerialPolicy) -> FacilityRef:
    return FacilityRef.from_ids(policy.hospital_id, policy.diagnostic_center_id)


def format_policy(p: SerialPolicy) -> dict:
    return {
        'id': p.id,
        'doctorId': p.doctor_id,
        'testId': p.test_id,
        'hospitalId': p.hospital_id,
        'diagnosticCenterId': p.diagnostic_center_id,
        'chamberId': p.chamber_id,
        'totalSerialsPerDay': p.total_serials_per_day,
        'startTime': p.start_time,
        'endTime': p.end_time,
        'price': str(p.price),
        'availableWeekdays': list(p.available_weekdays or []),
        'isActive': p.is_active,
        'updatedAt': p.updated_at.isoformat() if p.updated_at else None,
    }


def format_override(o: DateOverride) -> dict:
    return {
        'id': o.id,
        'policyId': o.policy_id,
        'date': o.date.isoformat(),
        'totalSerialsPerDay': o.total_serials_per_day,
        'startTime': o.start_time,
        'endTime': o.end_time,
        'price': str(o.price) if o.price is not None else None,
        'adminNote': o.admin_note,
        'isEnabled': o.is_enabled,
    }


def _check_window(start: Optional[str], end: Optional[str]) -> None:
    try:
        Window.parse(start, end)
    except ValueError:
        raise InvalidInput('End time must be after start time (HH:MM).')


def _ensure_subject_at_facility(subject: Subject, facility: FacilityRef) -> None:
    if subject.is_doctor:
        doctor = Doctor.objects.using(PRIMARY).filter(pk=subject.id).first()
        if doctor is None:
            raise NotFound('Doctor not found.')
        if facility.kind is FacilityKind.HOSPITAL and doctor.hospital_id != facility.id:
            raise InvalidInput('Doctor is not associated with this hospital.')
        if facility.kind is FacilityKind.DIAGNOSTIC_CENTER and doctor.diagnostic_center_id != facility.id:
            raise InvalidInput('Doctor is not associated with this diagnostic center.')
    else:
        diagnostic_test_context(subject.id, facility, using=PRIMARY)


def manageable_policy(user: User, policy_id: int) -> SerialPolicy:
    policy = SerialPolicy.objects.using(PRIMARY).filter(pk=policy_id).first()
    if policy is None:
        raise NotFound('Serial settings not found.')
    if not can_manage_schedule(user, policy_subject(policy), policy_facility(policy)):
        raise PermissionDenied('You cannot manage these serial settings.')
    return policy


# ---------------------------------------------------------------------
# Serial policies
# ---------------------------------------------------------------------
def get_policy(subject: Subject, facility: FacilityRef) -> dict:
    """Public policy metadata, cached briefly."""
    key = policy_cache_key(subject, facility)
    payload = cache.get(key)
    if payload is not None:
        return payload
    policy = SerialPolicy.objects.filter(**subject.lookup(), **facility.lookup()).first()
    if policy is None:
        raise NotFound('Serial settings not found.')
    payload = format_policy(policy)
    cache.set(key, payload, settings.SCHEDULING_POLICY_CACHE_SECONDS)
    return payload


@transaction.atomic
def upsert_policy(user: User, subject: Subject, facility: FacilityRef, data: dict[str, Any]) -> tuple[SerialPolicy, bool]:
    """Create or partially update the policy for ``(subject, facility)``.

    ``data`` uses model field names; absent keys keep their current value
    (or the defaults on create).
    """
    if not can_manage_schedule(user, subject, facility):
        raise PermissionDenied('You cannot manage serial settings for this facility.')
    if facility.kind is not FacilityKind.NONE:
        ensure_facility_approved(facility, using=PRIMARY)
    _ensure_subject_at_facility(subject, facility)

    policy = (
        SerialPolicy.objects.select_for_update()
        .filter(**subject.lookup(), **facility.lookup())
        .first()
    )
    created = policy is None
    if created:
        policy = SerialPolicy(
            doctor_id=subject.id if subject.is_doctor else None,
            test_id=None if subject.is_doctor else subject.id,
            hospital_id=facility.hospital_id,
            diagnostic_center_id=facility.diagnostic_center_id,
            **POLICY_DEFAULTS,
        )
    for field in ('total_serials_per_day', 'start_time', 'end_time', 'price',
                  'available_weekdays', 'is_active', 'chamber_id'):
        if field in data:
            setattr(policy, field, data[field])
    if policy.chamber_id and not Chamber.objects.using(PRIMARY).filter(pk=policy.chamber_id, doctor_id=policy.doctor_id).exists():
        raise InvalidInput('Chamber does not belong to this doctor.')

    _check_window(policy.start_time, policy.end_time)
    try:
        partition(Window.parse(policy.start_time, policy.end_time), policy.total_serials_per_day)
    except ValueError as exc:
        raise InvalidInput(str(exc))
    policy.available_weekdays = sorted(set(policy.available_weekdays or []))
    policy.save()

    cache.delete(policy_cache_key(subject, facility))
    log_action(user=user, action='policy_upsert', object_type='serial_policy', object_id=policy.id,
               detail={'created': created, 'subject': subject.key, 'facility': facility.key})
    logger.info('serial policy %s %s for %s@%s', policy.id, 'created' if created else 'updated',
                subject.key, facility.key)
    return policy, created


def policy_stats(policy: SerialPolicy, day: date) -> dict:
    """Capacity and occupancy figures for one date."""
    override = DateOverride.objects.filter(policy=policy, date=day).first()
    effective: Optional[EffectivePolicy] = None
    if override is not None and override.is_enabled:
        effective = effective_policy(policy, override)
    capacity = effective.capacity if effective else policy.total_serials_per_day
    online = capacity // 2

    bookings = (
        Booking.objects.filter(policy=policy, date=day, status__in=Booking.OCCUPYING_STATUSES)
        .select_related('patient')
        .order_by('serial_number')
    )
    booked = [
        {
            'id': b.id,
            'reference': b.reference,
            'serialNumber': b.serial_number,
            'startTime': b.start_time,
            'endTime': b.end_time,
            'status': b.status,
            'patientName': b.patient.get_full_name() or b.patient.username,
        }
        for b in bookings
    ]
    booked_even = sum(1 for b in booked if b['serialNumber'] and b['serialNumber'] % 2 == 0)
    return {
        'date': day.isoformat(),
        'enabled': effective is not None,
        'totalSerials': capacity,
        'onlineSerials': online,
        'bookedCount': len(booked),
        'availableCount': max(online - booked_even, 0),
        'bookedSerials': booked,
    }


# ---------------------------------------------------------------------
# Date overrides
# ---------------------------------------------------------------------
@transaction.atomic
def upsert_override(user: User, policy: SerialPolicy, day: date, data: dict[str, Any]) -> tuple[DateOverride, bool]:
    override = DateOverride.objects.select_for_update().filter(policy=policy, date=day).first()
    created = override is None
    if created:
        override = DateOverride(
            policy=policy,
            date=day,
            total_serials_per_day=policy.total_serials_per_day,
        )
    for field in ('total_serials_per_day', 'start_time', 'end_time', 'price', 'admin_note', 'is_enabled'):
        if field in data:
            setattr(override, field, data[field])

    if bool(override.start_time) != bool(override.end_time):
        raise InvalidInput('Both start time and end time are required for a custom window.')
    if override.start_time:
        _check_window(override.start_time, override.end_time)
    if override.is_enabled:
        # Surface an unusable combination now rather than at booking time.
        effective_policy(policy, override)
    override.save()

    log_action(user=user, action='override_upsert', object_type='date_override', object_id=override.id,
               detail={'policyId': policy.id, 'date': day.isoformat(), 'enabled': override.is_enabled,
                       'created': created})
    return override, created


def list_overrides(
    policy: SerialPolicy,
    *,
    today: date,
    day: Optional[date] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[DateOverride]:
    qs = DateOverride.objects.filter(policy=policy)
    if day is not None:
        qs = qs.filter(date=day)
    elif start is not None or end is not None:
        if start is not None:
            qs = qs.filter(date__gte=start)
        if end is not None:
            qs = qs.filter(date__lte=end)
    else:
        horizon = today + timedelta(days=settings.SCHEDULING_OVERRIDE_LOOKAHEAD_DAYS)
        qs = qs.filter(date__gte=today, date__lte=horizon)
    return list(qs.order_by('date'))


def delete_override(user: User, policy: SerialPolicy, override_id: int) -> None:
    override = DateOverride.objects.using(PRIMARY).filter(pk=override_id, policy=policy).first()
    if override is None:
        raise NotFound('Date override not found.')
    day = override.date
    override.delete()
    log_action(user=user, action='override_delete', object_type='date_override', object_id=override_id,
               detail={'policyId': policy.id, 'date': day.isoformat()})


# ---------------------------------------------------------------------
# Weekly chamber schedules
# ---------------------------------------------------------------------
def format_schedule(s: Schedule) -> dict:
    return {
        'id': s.id,
        'doctorId': s.doctor_id,
        'chamberId': s.chamber_id,
        'dayOfWeek': s.day_of_week,
        'isActive': s.is_active,
        'validFrom': s.valid_from.isoformat() if s.valid_from else None,
        'validUntil': s.valid_until.isoformat() if s.valid_until else None,
        'windows': [
            {
                'startTime': w.start_time,
                'endTime': w.end_time,
                'sessionDuration': w.session_minutes,
                'maxPatients': w.max_patients,
            }
            for w in s.windows.all()
        ],
    }


def manageable_chamber(user: User, chamber_id: int) -> Chamber:
    chamber = Chamber.objects.using(PRIMARY).select_related('doctor').filter(pk=chamber_id).first()
    if chamber is None:
        raise NotFound('Chamber not found.')
    role = getattr(user, 'role', None)
    allowed = (
        role == 'super'
        or (role == 'doctor' and chamber.doctor_id == own_doctor_id(user))
        or (chamber.hospital_id is not None
            and can_manage_facility(user, FacilityRef(FacilityKind.HOSPITAL, chamber.hospital_id)))
    )
    if not allowed:
        raise PermissionDenied('You cannot manage schedules for this chamber.')
    return chamber


@transaction.atomic
def upsert_schedule(user: User, chamber_id: int, day_of_week: int, windows: list[dict], *,
                    valid_from: Optional[date] = None, valid_until: Optional[date] = None,
                    is_active: bool = True) -> tuple[Schedule, bool]:
    """Replace the windows of the (doctor, chamber, weekday) schedule."""
    chamber = manageable_chamber(user, chamber_id)
    if valid_from and valid_until and valid_until < valid_from:
        raise InvalidInput('validUntil must not be before validFrom.')
    parsed = []
    for w in windows:
        _check_window(w['start_time'], w['end_time'])
        parsed.append(Window.parse(w['start_time'], w['end_time']))
    for i, a in enumerate(parsed):
        for b in parsed[i + 1:]:
            if a.overlaps(b):
                logger.warning('overlapping windows in schedule for chamber %s day %s', chamber_id, day_of_week)

    schedule, created = Schedule.objects.select_for_update().get_or_create(
        doctor_id=chamber.doctor_id, chamber=chamber, day_of_week=day_of_week,
        defaults={'is_active': is_active, 'valid_from': valid_from, 'valid_until': valid_until},
    )
    if not created:
        schedule.is_active = is_active
        schedule.valid_from = valid_from
        schedule.valid_until = valid_until
        schedule.save(update_fields=['is_active', 'valid_from', 'valid_until', 'updated_at'])
    schedule.windows.all().delete()
    ScheduleWindow.objects.bulk_create([
        ScheduleWindow(
            schedule=schedule,
            position=i,
            start_time=w['start_time'],
            end_time=w['end_time'],
            session_minutes=w.get('session_minutes') or settings.SCHEDULING_DEFAULT_SESSION_MINUTES,
            max_patients=w.get('max_patients') or 1,
        )
        for i, w in enumerate(windows)
    ])
    log_action(user=user, action='schedule_upsert', object_type='schedule', object_id=schedule.id,
               detail={'chamberId': chamber.id, 'dayOfWeek': day_of_week, 'windows': len(windows)})
    return schedule, created
