"""
Scheduling errors and the unified API exception handler.

Every service-level failure is one of the ``SchedulingError`` subclasses
below.  They are DRF ``APIException``s so views can simply let them
propagate; the handler turns them into ``{'ok': False, 'error': {...}}``.
"""
from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class SchedulingError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Scheduling request failed.'
    default_code = 'scheduling_error'


class InvalidInput(SchedulingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'invalid_input'


class NotFound(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class AlreadyBooked(SchedulingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This slot is already booked. Please choose another.'
    default_code = 'already_booked'


class InvalidTransition(SchedulingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Status change not allowed.'
    default_code = 'invalid_transition'


class ConfigurationError(SchedulingError):
    """Stored policy data cannot produce a schedule (e.g. zero-length serials)."""
    status_code = status.HTTP_412_PRECONDITION_FAILED
    default_detail = 'Scheduling configuration is invalid.'
    default_code = 'configuration_error'


class Unavailable(SchedulingError):
    """The date or facility is not open for booking."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = 'Not available for booking.'
    default_code = 'unavailable'


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('unhandled error in %s', context.get('view'), exc_info=exc)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    if isinstance(exc, SchedulingError):
        code = exc.default_code
        detail = str(exc.detail)
    else:
        code = 'api_error'
        if isinstance(resp.data, dict):
            detail = resp.data.get('detail') or resp.data
        else:
            detail = resp.data
    return Response({'ok': False, 'error': {'code': code, 'message': detail}}, status=resp.status_code)
