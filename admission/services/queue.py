"""
Entry points used by the API views, the Django admin and management
commands.

Each mutating call is one database transaction: it either commits in full
or rolls back and leaves the queue untouched.  Database faults surface as
:class:`StorageFailure`.  WebSocket notifications are scheduled with
``transaction.on_commit`` so clients only hear about committed changes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from django.db import DatabaseError, transaction
from django.utils import timezone

from admission.exceptions import StorageFailure
from admission.models import Patient
from admission.realtime import notify
from admission.serializers.patient import CheckInSerializer
from admission.services import admission, batch, identity, snapshots, store
from admission.services.batch import BatchPromotion

logger = logging.getLogger(__name__)


@dataclass
class CheckIn:
    token: str
    patient: Patient


@dataclass
class Admission:
    patient: Patient
    evicted_tokens: list[str] = field(default_factory=list)
    allowed: list[Patient] = field(default_factory=list)


@dataclass
class Removal:
    patient: Patient
    was_allowed: bool
    allowed: list[Patient] = field(default_factory=list)


def _storage_failure(action: str, exc: DatabaseError) -> StorageFailure:
    logger.error('%s failed; transaction rolled back', action, exc_info=exc)
    return StorageFailure()


def check_in(attributes: Mapping[str, Any]) -> CheckIn:
    """Register a new waiting patient.  Raises DRF ``ValidationError``."""
    serializer = CheckInSerializer(data=attributes)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    try:
        with transaction.atomic():
            identity_value = identity.allocate()
            patient = store.create_waiting(
                identity_value,
                name=data['name'],
                age=data['age'],
                country=data['country'],
                details=data.get('details'),
                now=timezone.now(),
            )
            transaction.on_commit(lambda: notify.patient_new(patient))
    except DatabaseError as exc:
        raise _storage_failure('check-in', exc) from exc
    logger.info('checked in %s', patient.token)
    return CheckIn(token=patient.token, patient=patient)


def admit(token: str) -> Admission:
    try:
        with transaction.atomic():
            promotion = admission.promote(token)
            allowed = snapshots.allowed_snapshot()

            def _notify():
                notify.patients_finished(promotion.evicted_tokens)
                notify.allowed_update(allowed)

            transaction.on_commit(_notify)
    except DatabaseError as exc:
        raise _storage_failure('admit', exc) from exc
    return Admission(patient=promotion.patient, evicted_tokens=promotion.evicted_tokens, allowed=allowed)


def remove(token: str) -> Removal:
    try:
        with transaction.atomic():
            removal = admission.remove(token)
            allowed = snapshots.allowed_snapshot()
            if removal.was_allowed:
                def _notify():
                    notify.patients_finished([removal.patient.token])
                    notify.allowed_update(allowed)

                transaction.on_commit(_notify)
    except DatabaseError as exc:
        raise _storage_failure('remove', exc) from exc
    return Removal(patient=removal.patient, was_allowed=removal.was_allowed, allowed=allowed)


def admit_next(n: int) -> BatchPromotion:
    """Admit up to ``n`` waiting patients in check-in order."""
    try:
        with transaction.atomic():
            result = batch.promote_next(n)
            if result.promoted:
                def _notify():
                    notify.patients_finished(result.evicted_tokens)
                    notify.allowed_update(result.allowed)

                transaction.on_commit(_notify)
    except DatabaseError as exc:
        raise _storage_failure('admit-next', exc) from exc
    return result


def list_active() -> list[Patient]:
    try:
        return snapshots.active_snapshot()
    except DatabaseError as exc:
        raise _storage_failure('list-active', exc) from exc


def list_allowed() -> list[Patient]:
    try:
        return snapshots.allowed_snapshot()
    except DatabaseError as exc:
        raise _storage_failure('list-allowed', exc) from exc
