"""
Waiting-room endpoints.

Check-in is used by the kiosk; the remaining mutating endpoints are used
by staff to admit, remove or batch-admit patients.  Every mutation is a
single transaction in :mod:`admission.services.queue`; connected screens
are updated over the ``ws/queue/`` socket once it commits.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, throttle_classes
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle

from admission.serializers.patient import AdmitNextSerializer, PatientSerializer
from admission.services import queue as queue_service


class CheckInRateThrottle(AnonRateThrottle):
    scope = 'checkin'


@api_view(['POST'])
@throttle_classes([CheckInRateThrottle])
def checkin(request):
    """Register a patient and hand out their token."""
    result = queue_service.check_in(request.data)
    return Response({
        'success': True,
        'token': result.token,
        'patient': PatientSerializer(result.patient).data,
    })


@api_view(['GET'])
def list_patients(request):
    """Every patient still waiting or allowed, in check-in order."""
    return Response(PatientSerializer(queue_service.list_active(), many=True).data)


@api_view(['GET'])
def list_allowed(request):
    """Allowed patients; the first entry is the next to be evicted."""
    return Response(PatientSerializer(queue_service.list_allowed(), many=True).data)


@api_view(['POST'])
def admit(request, token: str):
    result = queue_service.admit(token)
    return Response({
        'success': True,
        'patient': PatientSerializer(result.patient).data,
        'evicted': result.evicted_tokens,
    })


@api_view(['POST'])
def remove(request, token: str):
    result = queue_service.remove(token)
    return Response({'success': True, 'wasAllowed': result.was_allowed})


@api_view(['POST'])
def admit_next(request):
    """Admit the next ``count`` (or ``num``) waiting patients."""
    s = AdmitNextSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    result = queue_service.admit_next(s.batch_size())
    if not result.promoted:
        return Response({'success': True, 'admitted': 0, 'message': 'No waiting patients'})
    return Response({
        'success': True,
        'admitted': result.promoted_count,
        'evicted': result.evicted_tokens,
    })
