"""
Locking reads and one-way mutations on :class:`Patient` rows.

Every function here expects to run inside ``transaction.atomic()``; the
``select_for_update()`` reads hold their row locks until the caller's
transaction ends.  Nothing is cached between calls.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from django.conf import settings

from admission.exceptions import ConfigurationFault
from admission.models import ADMISSION_ORDER, Patient, can_transition


def format_token(identity: int) -> str:
    return f"{settings.QUEUE_TOKEN_PREFIX}{identity}"


def normalize_token(raw: str) -> str:
    return (raw or '').strip().upper()


def max_allowed() -> int:
    value = settings.QUEUE_MAX_ALLOWED
    if not isinstance(value, int) or value < 1:
        raise ConfigurationFault(f'QUEUE_MAX_ALLOWED must be a positive integer, got {value!r}')
    return value


def create_waiting(identity: int, *, name: str, age: int, country: str, details: Optional[str], now: datetime) -> Patient:
    return Patient.objects.create(
        id=identity,
        token=format_token(identity),
        name=name,
        age=age,
        country=country,
        details=details,
        status=Patient.STATUS_WAITING,
        created_at=now,
    )


def lock_by_token(token: str) -> Optional[Patient]:
    """Row-lock the patient with ``token``; None when unknown."""
    return Patient.objects.select_for_update().filter(token=normalize_token(token)).first()


def count_allowed() -> int:
    return Patient.objects.filter(status=Patient.STATUS_ALLOWED).count()


def lock_oldest_allowed() -> Optional[Patient]:
    """Row-lock the next eviction candidate."""
    return (
        Patient.objects.select_for_update()
        .filter(status=Patient.STATUS_ALLOWED)
        .order_by(*ADMISSION_ORDER)
        .first()
    )


def waiting_tokens(limit: int) -> list[str]:
    qs = Patient.objects.filter(status=Patient.STATUS_WAITING).order_by('id')
    return list(qs.values_list('token', flat=True)[:limit])


def _transition(patient: Patient, new_status: str) -> None:
    if not can_transition(patient.status, new_status):
        raise ValueError(f'{patient.token}: cannot move from {patient.status} to {new_status}')
    patient.status = new_status


def mark_allowed(patient: Patient, now: datetime) -> Patient:
    _transition(patient, Patient.STATUS_ALLOWED)
    patient.admitted_at = now
    patient.save(update_fields=['status', 'admitted_at'])
    return patient


def mark_done(patient: Patient, now: datetime) -> Patient:
    _transition(patient, Patient.STATUS_DONE)
    patient.finished_at = now
    patient.save(update_fields=['status', 'finished_at'])
    return patient
