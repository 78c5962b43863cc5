from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from scheduling.serializers.availability import AvailabilityQuerySerializer
from scheduling.serializers.common import SubjectQuerySerializer
from scheduling.services.availability import AvailabilityResolver
from scheduling.services.facilities import FacilityRef, Subject
from scheduling.services.policies import get_policy


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def availability(request):
    """Open slots or serials for one subject on one date.

    A closed date is not an error: the response carries an empty list and
    a ``reason``.
    """
    q = AvailabilityQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    resolver = AvailabilityResolver()
    if vd['subject'] == 'doctor' and vd.get('chamberId'):
        result = resolver.chamber_slots(vd['subjectId'], vd['chamberId'], vd['date'])
    elif vd['subject'] == 'doctor':
        result = resolver.doctor_serials(vd['subjectId'], vd['date'])
    else:
        facility = FacilityRef.from_ids(vd.get('hospitalId'), vd.get('diagnosticCenterId'))
        result = resolver.test_serials(vd['subjectId'], facility, vd['date'])
    return Response({'ok': True, 'data': result.as_dict()})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def serial_policy_info(request):
    """Public serial policy metadata (capacity, window, price, weekdays)."""
    q = SubjectQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    facility = FacilityRef.from_ids(vd.get('hospitalId'), vd.get('diagnosticCenterId'))
    return Response({'ok': True, 'data': get_policy(Subject(vd['subject'], vd['subjectId']), facility)})
