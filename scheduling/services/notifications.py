"""
Booking notifications.

A notification row is stored for each recipient and pushed to the
recipient's ``user.<id>`` channel group.  Delivery is best effort: it runs
after the booking transaction commits and a failure here is logged, never
raised back into the booking flow.
"""
from __future__ import annotations

import logging
from typing import Iterable

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from ..models import Booking, Notification, User

logger = logging.getLogger(__name__)


def user_group(user_id: int) -> str:
    return f"user.{user_id}"


def booking_recipients(booking: Booking) -> list[User]:
    """Patient, the doctor's own account, and the facility administrators."""
    recipients: dict[int, User] = {booking.patient_id: booking.patient}
    if booking.doctor_id and booking.doctor.user_id:
        recipients.setdefault(booking.doctor.user_id, booking.doctor.user)
    admins = User.objects.none()
    if booking.hospital_id:
        admins = User.objects.filter(role='hospital_admin', hospital_id=booking.hospital_id)
    elif booking.diagnostic_center_id:
        admins = User.objects.filter(role='center_admin', diagnostic_center_id=booking.diagnostic_center_id)
    for admin in admins:
        recipients.setdefault(admin.id, admin)
    return list(recipients.values())


def _describe(booking: Booking) -> str:
    if booking.serial_number:
        slot = f"serial #{booking.serial_number} ({booking.start_time}-{booking.end_time})"
    else:
        slot = f"{booking.start_time}-{booking.end_time}"
    return f"Booking {booking.reference} on {booking.date:%Y-%m-%d}, {slot}."


def push(users: Iterable[User], *, kind: str, title: str, message: str, booking: Booking | None = None) -> list[Notification]:
    rows = [
        Notification(user=u, kind=kind, title=title, message=message, booking=booking)
        for u in users
    ]
    Notification.objects.bulk_create(rows)

    channel_layer = get_channel_layer()
    if channel_layer is not None:
        for row in rows:
            payload = {
                "type": "notification.push",
                "kind": kind,
                "title": title,
                "message": message,
                "bookingId": booking.id if booking else None,
                "reference": booking.reference if booking else None,
            }
            async_to_sync(channel_layer.group_send)(user_group(row.user_id), payload)
    return rows


def notify_booking_created(booking: Booking) -> None:
    try:
        push(
            booking_recipients(booking),
            kind='booking_created',
            title='New booking',
            message=_describe(booking),
            booking=booking,
        )
    except Exception:
        logger.exception('failed to deliver notifications for booking %s', booking.reference)


def notify_status_changed(booking: Booking, old_status: str) -> None:
    try:
        push(
            [booking.patient],
            kind='booking_status',
            title=f'Booking {booking.status}',
            message=f"{_describe(booking)} Status changed from {old_status} to {booking.status}.",
            booking=booking,
        )
    except Exception:
        logger.exception('failed to deliver status notification for booking %s', booking.reference)
