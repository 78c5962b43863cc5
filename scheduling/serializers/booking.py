import bleach
from rest_framework import serializers

from scheduling.models import Booking
from .common import CalendarDateField, SubjectQuerySerializer, TimeOfDayField


class BookingCreateSerializer(SubjectQuerySerializer):
    date = CalendarDateField()
    serialNumber = serializers.IntegerField(required=False, allow_null=True)
    chamberId = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    startTime = TimeOfDayField(required=False)
    endTime = TimeOfDayField(required=False)
    consultationType = serializers.ChoiceField(choices=[c for c, _ in Booking.CONSULT_CHOICES], required=False)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=1000)

    def validate_notes(self, v):
        return bleach.clean((v or '').strip(), tags=set(), strip=True)

    def validate(self, attrs):
        attrs = super().validate(attrs)
        if attrs.get('chamberId'):
            if attrs['subject'] != 'doctor':
                raise serializers.ValidationError('Chamber bookings are for doctors only.')
            if not attrs.get('startTime') or not attrs.get('endTime'):
                raise serializers.ValidationError('startTime and endTime are required for chamber bookings.')
        elif attrs.get('serialNumber') is None:
            raise serializers.ValidationError('serialNumber is required.')
        if attrs['subject'] == 'test' and not (attrs.get('hospitalId') or attrs.get('diagnosticCenterId')):
            raise serializers.ValidationError('Test bookings need hospitalId or diagnosticCenterId.')
        return attrs


class BookingStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[s for s, _ in Booking.STATUS_CHOICES])
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)


class BookingCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)

    def validate_reason(self, v):
        return bleach.clean((v or '').strip(), tags=set(), strip=True)


class BookingListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[s for s, _ in Booking.STATUS_CHOICES], required=False)
    date = CalendarDateField(required=False)
    doctorId = serializers.IntegerField(required=False, min_value=1)
    testId = serializers.IntegerField(required=False, min_value=1)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=200)
