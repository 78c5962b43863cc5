"""
Serial policy and date override management for facility staff.
"""
from __future__ import annotations

from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from scheduling.exceptions import NotFound
from scheduling.models import SerialPolicy
from scheduling.permissions import IsScheduleManager, can_manage_schedule
from scheduling.serializers.common import SubjectQuerySerializer
from scheduling.serializers.policy import (
    OverrideListQuerySerializer,
    OverrideUpsertSerializer,
    SerialPolicyUpsertSerializer,
    StatsQuerySerializer,
)
from scheduling.services.facilities import FacilityRef, Subject
from scheduling.services.policies import (
    delete_override,
    format_override,
    format_policy,
    list_overrides,
    manageable_policy,
    policy_stats,
    upsert_override,
    upsert_policy,
)


def _subject_and_facility(vd) -> tuple[Subject, FacilityRef]:
    subject = Subject(vd['subject'], vd['subjectId'])
    facility = FacilityRef.from_ids(vd.get('hospitalId'), vd.get('diagnosticCenterId'))
    return subject, facility


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsScheduleManager])
def serial_policies(request):
    if request.method == 'GET':
        q = SubjectQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        subject, facility = _subject_and_facility(q.validated_data)
        if not can_manage_schedule(request.user, subject, facility):
            return Response({'ok': False, 'detail': 'forbidden'}, status=status.HTTP_403_FORBIDDEN)
        policy = SerialPolicy.objects.filter(**subject.lookup(), **facility.lookup()).first()
        if policy is None:
            raise NotFound('Serial settings not found.')
        return Response({'ok': True, 'data': format_policy(policy)})

    s = SerialPolicyUpsertSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    subject, facility = _subject_and_facility(s.validated_data)
    policy, created = upsert_policy(request.user, subject, facility, s.model_values())
    return Response(
        {'ok': True, 'created': created, 'data': format_policy(policy)},
        status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsScheduleManager])
def serial_policy_stats(request, pk: int):
    policy = manageable_policy(request.user, pk)
    q = StatsQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    day = q.validated_data.get('date') or timezone.localdate()
    return Response({'ok': True, 'data': policy_stats(policy, day)})


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsScheduleManager])
def policy_overrides(request, pk: int):
    policy = manageable_policy(request.user, pk)
    if request.method == 'GET':
        q = OverrideListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        vd = q.validated_data
        overrides = list_overrides(
            policy,
            today=timezone.localdate(),
            day=vd.get('date'),
            start=vd.get('startDate'),
            end=vd.get('endDate'),
        )
        return Response({'ok': True, 'data': [format_override(o) for o in overrides]})

    s = OverrideUpsertSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    override, created = upsert_override(request.user, policy, s.validated_data['date'], s.model_values())
    return Response(
        {'ok': True, 'created': created, 'data': format_override(override)},
        status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
    )


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsScheduleManager])
def policy_override_detail(request, pk: int, override_id: int):
    policy = manageable_policy(request.user, pk)
    delete_override(request.user, policy, override_id)
    return Response({'ok': True})
