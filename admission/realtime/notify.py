"""
Fan-out of queue changes to connected WebSocket clients.

Publishing is best effort: it runs after the database commit and a
failing channel layer is logged, never raised, so it cannot undo or
block an admission that already happened.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from admission.models import Patient
from admission.serializers.patient import PatientSerializer

logger = logging.getLogger(__name__)

QUEUE_GROUP = "queue"

PATIENT_NEW = "patient.new"
PATIENT_FINISHED = "patient.finished"
ALLOWED_UPDATE = "allowed.update"


def publish(event: str, data: Any) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    try:
        async_to_sync(channel_layer.group_send)(
            QUEUE_GROUP, {"type": "queue.event", "event": event, "data": data}
        )
    except Exception:
        logger.exception("failed to publish %s", event)


def patient_new(patient: Patient) -> None:
    publish(PATIENT_NEW, dict(PatientSerializer(patient).data))


def patients_finished(tokens: Iterable[str]) -> None:
    for token in tokens:
        publish(PATIENT_FINISHED, token)


def allowed_update(allowed: list[Patient]) -> None:
    publish(ALLOWED_UPDATE, [dict(row) for row in PatientSerializer(allowed, many=True).data])
