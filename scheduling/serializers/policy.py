import bleach
from rest_framework import serializers

from .common import CalendarDateField, SubjectQuerySerializer, TimeOfDayField


class SerialPolicyUpsertSerializer(SubjectQuerySerializer):
    totalSerialsPerDay = serializers.IntegerField(required=False, min_value=1)
    startTime = TimeOfDayField(required=False)
    endTime = TimeOfDayField(required=False)
    price = serializers.DecimalField(required=False, max_digits=10, decimal_places=2, min_value=0)
    availableWeekdays = serializers.ListField(
        child=serializers.IntegerField(min_value=0, max_value=6), required=False,
    )
    chamberId = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    isActive = serializers.BooleanField(required=False)

    FIELD_MAP = {
        'totalSerialsPerDay': 'total_serials_per_day',
        'startTime': 'start_time',
        'endTime': 'end_time',
        'price': 'price',
        'availableWeekdays': 'available_weekdays',
        'chamberId': 'chamber_id',
        'isActive': 'is_active',
    }

    def model_values(self) -> dict:
        vd = self.validated_data
        return {field: vd[key] for key, field in self.FIELD_MAP.items() if key in vd}


class OverrideUpsertSerializer(serializers.Serializer):
    date = CalendarDateField()
    totalSerialsPerDay = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    startTime = TimeOfDayField(required=False, allow_null=True)
    endTime = TimeOfDayField(required=False, allow_null=True)
    price = serializers.DecimalField(required=False, allow_null=True, max_digits=10, decimal_places=2, min_value=0)
    adminNote = serializers.CharField(required=False, allow_blank=True, max_length=500)
    isEnabled = serializers.BooleanField(required=False)

    FIELD_MAP = {
        'totalSerialsPerDay': 'total_serials_per_day',
        'startTime': 'start_time',
        'endTime': 'end_time',
        'price': 'price',
        'adminNote': 'admin_note',
        'isEnabled': 'is_enabled',
    }

    def validate_adminNote(self, v):
        return bleach.clean((v or '').strip(), tags=set(), strip=True)

    def model_values(self) -> dict:
        vd = self.validated_data
        return {field: vd[key] for key, field in self.FIELD_MAP.items() if key in vd}


class OverrideListQuerySerializer(serializers.Serializer):
    date = CalendarDateField(required=False)
    startDate = CalendarDateField(required=False)
    endDate = CalendarDateField(required=False)

    def validate(self, attrs):
        if attrs.get('startDate') and attrs.get('endDate') and attrs['endDate'] < attrs['startDate']:
            raise serializers.ValidationError('endDate must not be before startDate.')
        return attrs


class StatsQuerySerializer(serializers.Serializer):
    date = CalendarDateField(required=False)


class ScheduleWindowSerializer(serializers.Serializer):
    startTime = TimeOfDayField()
    endTime = TimeOfDayField()
    sessionDuration = serializers.IntegerField(required=False, min_value=1, max_value=600)
    maxPatients = serializers.IntegerField(required=False, min_value=1, max_value=100)


class ScheduleUpsertSerializer(serializers.Serializer):
    chamberId = serializers.IntegerField(min_value=1)
    dayOfWeek = serializers.IntegerField(min_value=0, max_value=6)
    windows = ScheduleWindowSerializer(many=True, allow_empty=False)
    validFrom = CalendarDateField(required=False, allow_null=True)
    validUntil = CalendarDateField(required=False, allow_null=True)
    isActive = serializers.BooleanField(required=False, default=True)

    def window_values(self) -> list[dict]:
        return [
            {
                'start_time': w['startTime'],
                'end_time': w['endTime'],
                'session_minutes': w.get('sessionDuration'),
                'max_patients': w.get('maxPatients'),
            }
            for w in self.validated_data['windows']
        ]


class ScheduleListQuerySerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(required=False, min_value=1)
    chamberId = serializers.IntegerField(required=False, min_value=1)
