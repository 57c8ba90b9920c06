"""
Admission control: promotion into the allowed set, eviction and removal.

At most ``QUEUE_MAX_ALLOWED`` patients are ``allowed`` at any time.  The
capacity check, the evictions it triggers and the promotion itself run
under the ``ADMISSION`` transaction lock, so two concurrent promotions can
never both see the same free slot.  Removals take the same lock: a slot
freed between the capacity count and the eviction would otherwise cost
someone their place.  The lock is always taken before any patient row
lock.

These functions must be called inside ``transaction.atomic()``; the
caller owns commit and rollback.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from django.utils import timezone

from admission.exceptions import PatientNotFound
from admission.models import Patient
from admission.services import store
from admission.services.locks import ADMISSION_LOCK, xact_lock

logger = logging.getLogger(__name__)


@dataclass
class Promotion:
    patient: Patient
    evicted_tokens: list[str] = field(default_factory=list)


@dataclass
class Removal:
    patient: Patient
    was_allowed: bool


def evict_oldest(now: datetime) -> Optional[str]:
    """Move the longest-admitted patient to ``done``; return its token."""
    oldest = store.lock_oldest_allowed()
    if oldest is None:
        return None
    store.mark_done(oldest, now)
    return oldest.token


def make_room(now: datetime) -> list[str]:
    """Evict until a slot is free, oldest admission first."""
    limit = store.max_allowed()
    evicted: list[str] = []
    while store.count_allowed() >= limit:
        token = evict_oldest(now)
        if token is None:
            # count and candidates disagree; nothing left to evict
            logger.warning('allowed count at capacity but no eviction candidate found')
            break
        evicted.append(token)
    return evicted


def promote(token: str, now: Optional[datetime] = None) -> Promotion:
    """Admit the patient holding ``token``, evicting to make room if needed.

    Promoting a patient that is already allowed is a no-op and keeps its
    original ``admitted_at``.
    """
    now = now or timezone.now()
    xact_lock(ADMISSION_LOCK)
    patient = store.lock_by_token(token)
    if patient is None or patient.status == Patient.STATUS_DONE:
        raise PatientNotFound()
    if patient.status == Patient.STATUS_ALLOWED:
        return Promotion(patient=patient)
    evicted = make_room(now)
    store.mark_allowed(patient, now)
    if evicted:
        logger.info('admitted %s, evicted %s', patient.token, ', '.join(evicted))
    else:
        logger.info('admitted %s', patient.token)
    return Promotion(patient=patient, evicted_tokens=evicted)


def remove(token: str, now: Optional[datetime] = None) -> Removal:
    """Finish a waiting or allowed patient without admitting anyone."""
    now = now or timezone.now()
    xact_lock(ADMISSION_LOCK)
    patient = store.lock_by_token(token)
    if patient is None or patient.status == Patient.STATUS_DONE:
        raise PatientNotFound()
    was_allowed = patient.status == Patient.STATUS_ALLOWED
    store.mark_done(patient, now)
    logger.info('removed %s (was %s)', patient.token, 'allowed' if was_allowed else 'waiting')
    return Removal(patient=patient, was_allowed=was_allowed)
