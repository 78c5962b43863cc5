from rest_framework import serializers

from scheduling.services.timewindows import TIME_RE, parse_calendar_date


class CalendarDateField(serializers.Field):
    """Strict ``YYYY-MM-DD`` date with no timezone handling."""
    default_error_messages = {
        'invalid': 'Invalid date format. Use YYYY-MM-DD.',
    }

    def to_internal_value(self, data):
        try:
            return parse_calendar_date(data)
        except ValueError:
            self.fail('invalid')

    def to_representation(self, value):
        return value.isoformat()


class TimeOfDayField(serializers.RegexField):
    def __init__(self, **kwargs):
        kwargs.setdefault('error_messages', {'invalid': 'Invalid time format. Use HH:MM.'})
        super().__init__(TIME_RE, **kwargs)


class SubjectQuerySerializer(serializers.Serializer):
    subject = serializers.ChoiceField(choices=['doctor', 'test'])
    subjectId = serializers.IntegerField(min_value=1)
    hospitalId = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    diagnosticCenterId = serializers.IntegerField(required=False, allow_null=True, min_value=1)

    def validate(self, attrs):
        if attrs.get('hospitalId') and attrs.get('diagnosticCenterId'):
            raise serializers.ValidationError('Specify either hospitalId or diagnosticCenterId, not both.')
        return attrs
