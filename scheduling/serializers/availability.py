from rest_framework import serializers

from .common import CalendarDateField, SubjectQuerySerializer


class AvailabilityQuerySerializer(SubjectQuerySerializer):
    date = CalendarDateField()
    chamberId = serializers.IntegerField(required=False, allow_null=True, min_value=1)

    def validate(self, attrs):
        attrs = super().validate(attrs)
        if attrs.get('chamberId') and attrs['subject'] != 'doctor':
            raise serializers.ValidationError('chamberId only applies to doctors.')
        if attrs['subject'] == 'test' and not (attrs.get('hospitalId') or attrs.get('diagnosticCenterId')):
            raise serializers.ValidationError('Test availability needs hospitalId or diagnosticCenterId.')
        return attrs
