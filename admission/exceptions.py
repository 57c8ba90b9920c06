"""
Failure classes for the admission queue and the unified API error body.

Bad caller input is reported with DRF's own ``ValidationError``.  The
remaining classes are raised by the queue services and rendered by
:func:`api_exception_handler` as ``{"ok": false, "error": {...}}``.
"""
import logging

from rest_framework import status
from rest_framework.exceptions import APIException, NotFound
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class PatientNotFound(NotFound):
    """Unknown token, or a patient that is already ``done``."""
    default_detail = 'Patient not found'
    default_code = 'not_found'


class InvalidArgument(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Count must be positive'
    default_code = 'invalid_argument'


class StorageFailure(APIException):
    """The transaction could not be completed; nothing was committed."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Queue storage is unavailable'
    default_code = 'storage_failure'


class ConfigurationFault(APIException):
    """The store or settings are misprovisioned.  Never retried."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Queue is misconfigured'
    default_code = 'configuration_fault'


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.error('unhandled API error', exc_info=exc)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    if isinstance(exc, ConfigurationFault):
        logger.critical('queue configuration fault: %s', exc.detail)
    code = exc.get_codes() if isinstance(exc, APIException) else 'api_error'
    if not isinstance(code, str):
        # field errors from serializers
        code = 'invalid'
    # normalize response
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    return Response({'ok': False, 'error': {'code': code, 'message': detail}}, status=resp.status_code)
