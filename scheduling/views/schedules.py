from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from scheduling.models import Schedule, User
from scheduling.permissions import IsScheduleManager, own_doctor_id
from scheduling.serializers.policy import ScheduleListQuerySerializer, ScheduleUpsertSerializer
from scheduling.services.policies import format_schedule, upsert_schedule


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsScheduleManager])
def schedules(request):
    user: User = request.user  # type: ignore[assignment]
    if request.method == 'GET':
        q = ScheduleListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        qs = Schedule.objects.prefetch_related('windows')
        if user.role == 'doctor':
            qs = qs.filter(doctor_id=own_doctor_id(user))
        elif user.role == 'hospital_admin':
            qs = qs.filter(chamber__hospital_id=user.hospital_id)
        elif user.role == 'center_admin':
            qs = qs.none()
        if q.validated_data.get('doctorId'):
            qs = qs.filter(doctor_id=q.validated_data['doctorId'])
        if q.validated_data.get('chamberId'):
            qs = qs.filter(chamber_id=q.validated_data['chamberId'])
        data = [format_schedule(s) for s in qs.order_by('day_of_week', 'chamber_id')]
        return Response({'ok': True, 'data': data})

    s = ScheduleUpsertSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    schedule, created = upsert_schedule(
        user, vd['chamberId'], vd['dayOfWeek'], s.window_values(),
        valid_from=vd.get('validFrom'), valid_until=vd.get('validUntil'), is_active=vd.get('isActive', True),
    )
    return Response(
        {'ok': True, 'created': created, 'data': format_schedule(schedule)},
        status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
    )
