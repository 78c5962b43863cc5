"""
Booking endpoints.

Patients create and cancel their own bookings; doctors and facility
administrators list the bookings they are responsible for and move them
through the status machine.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from scheduling.models import Booking, User
from scheduling.permissions import IsPatientRole, IsScheduleManager, own_doctor_id
from scheduling.serializers.booking import (
    BookingCancelSerializer,
    BookingCreateSerializer,
    BookingListQuerySerializer,
    BookingStatusSerializer,
)
from scheduling.services.booking import BookingAllocator, cancel_booking, change_status, format_booking
from scheduling.services.facilities import FacilityRef


def _paginate(qs, vd):
    page = vd.get('page', 1)
    page_size = vd.get('pageSize', 20)
    total = qs.count()
    start = (page - 1) * page_size
    items = [format_booking(b) for b in qs[start:start + page_size]]
    return items, {'total': total, 'page': page, 'pageSize': page_size}


def _filtered(qs, vd):
    if vd.get('status'):
        qs = qs.filter(status=vd['status'])
    if vd.get('date'):
        qs = qs.filter(date=vd['date'])
    if vd.get('doctorId'):
        qs = qs.filter(doctor_id=vd['doctorId'])
    if vd.get('testId'):
        qs = qs.filter(test_id=vd['testId'])
    return qs


def _create_booking(request):
    s = BookingCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    allocator = BookingAllocator()
    if vd.get('chamberId'):
        booking = allocator.book_chamber_slot(
            request.user, vd['subjectId'], vd['chamberId'], vd['date'], vd['startTime'], vd['endTime'],
            consultation_type=vd.get('consultationType', Booking.CONSULT_NEW),
            notes=vd.get('notes', ''),
        )
    elif vd['subject'] == 'doctor':
        booking = allocator.book_doctor_serial(
            request.user, vd['subjectId'], vd['date'], vd['serialNumber'], notes=vd.get('notes', ''),
        )
    else:
        facility = FacilityRef.from_ids(vd.get('hospitalId'), vd.get('diagnosticCenterId'))
        booking = allocator.book_test_serial(
            request.user, vd['subjectId'], facility, vd['date'], vd['serialNumber'], notes=vd.get('notes', ''),
        )
    return Response({'ok': True, 'data': format_booking(booking)}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPatientRole])
def my_bookings(request):
    q = BookingListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = _filtered(Booking.objects.filter(patient=request.user), q.validated_data)
    items, pagination = _paginate(qs.order_by('-date', '-start_time', '-id'), q.validated_data)
    return Response({'ok': True, 'data': items, 'pagination': pagination})


def _facility_bookings(request):
    """Bookings within the caller's scope: their facility, or their own practice."""
    user: User = request.user  # type: ignore[assignment]
    q = BookingListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = Booking.objects.all()
    if user.role == 'hospital_admin':
        qs = qs.filter(hospital_id=user.hospital_id) if user.hospital_id else qs.none()
    elif user.role == 'center_admin':
        qs = qs.filter(diagnostic_center_id=user.diagnostic_center_id) if user.diagnostic_center_id else qs.none()
    elif user.role == 'doctor':
        doctor_id = own_doctor_id(user)
        qs = qs.filter(doctor_id=doctor_id) if doctor_id else qs.none()
    qs = _filtered(qs, q.validated_data).select_related('patient')
    items, pagination = _paginate(qs.order_by('date', 'start_time', 'id'), q.validated_data)
    return Response({'ok': True, 'data': items, 'pagination': pagination})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPatientRole])
def cancel_my_booking(request, pk: int):
    s = BookingCancelSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    booking = cancel_booking(pk, request.user, reason=s.validated_data.get('reason', ''))
    return Response({'ok': True, 'data': format_booking(booking)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsScheduleManager])
def update_booking_status(request, pk: int):
    s = BookingStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    booking = change_status(
        pk, s.validated_data['status'], actor=request.user, reason=s.validated_data.get('reason', ''),
    )
    return Response({'ok': True, 'data': format_booking(booking)})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def bookings(request):
    """POST: a patient books a slot or serial.  GET: staff list bookings in scope."""
    if request.method == 'POST':
        if not IsPatientRole().has_permission(request, None):
            return Response({'ok': False, 'detail': 'forbidden'}, status=status.HTTP_403_FORBIDDEN)
        return _create_booking(request)
    if not IsScheduleManager().has_permission(request, None):
        return Response({'ok': False, 'detail': 'forbidden'}, status=status.HTTP_403_FORBIDDEN)
    return _facility_bookings(request)
