"""
Database models for the admission queue.

A :class:`Patient` row is the single record of one check-in and its
lifecycle (``waiting`` -> ``allowed`` -> ``done``).  Identities are not
taken from the table's auto-increment: they come from a named
:class:`IdentityCounter` so that they survive independently of any
single patient row.  :class:`QueueLock` backs transaction-scoped named
locks on databases without native advisory locks.
"""
from __future__ import annotations

from django.db import models
from django.db.models import F
from django.utils import timezone


class Patient(models.Model):
    """One registrant in the clinic waiting room.

    ``token`` is the display identifier handed to the patient at check-in.
    ``admitted_at`` is stamped exactly once, on promotion to ``allowed``,
    and orders the allowed set for eviction.
    """
    STATUS_WAITING = 'waiting'
    STATUS_ALLOWED = 'allowed'
    STATUS_DONE = 'done'
    STATUS_CHOICES = (
        (STATUS_WAITING, 'Waiting'),
        (STATUS_ALLOWED, 'Allowed'),
        (STATUS_DONE, 'Done'),
    )

    id = models.BigIntegerField(primary_key=True)
    token = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=255)
    age = models.PositiveIntegerField()
    country = models.CharField(max_length=128)
    details = models.TextField(blank=True, null=True)
    # Every admission query filters on status
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_WAITING, db_index=True)
    created_at = models.DateTimeField(default=timezone.now)
    admitted_at = models.DateTimeField(null=True, blank=True)
    finished_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=['status', 'admitted_at', 'id'], name='patient_admission_order'),
        ]

    def __str__(self) -> str:
        return f"{self.token} ({self.status})"


# Eviction candidate first: the same order serves the allowed snapshot.
ADMISSION_ORDER = (F('admitted_at').asc(nulls_first=True), F('id').asc())

TRANSITIONS = {
    Patient.STATUS_WAITING: (Patient.STATUS_ALLOWED, Patient.STATUS_DONE),
    Patient.STATUS_ALLOWED: (Patient.STATUS_DONE,),
    Patient.STATUS_DONE: (),
}


def can_transition(current: str, new: str) -> bool:
    """Return True if a patient may move from ``current`` to ``new``."""
    return new in TRANSITIONS.get(current, ())


class IdentityCounter(models.Model):
    """Persistent named counter issuing patient identities."""
    name = models.CharField(max_length=64, unique=True)
    value = models.BigIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.name}={self.value}"


class QueueLock(models.Model):
    """Lock row for :func:`admission.services.locks.xact_lock` fallbacks."""
    key = models.PositiveIntegerField(unique=True)

    def __str__(self) -> str:
        return f"lock:{self.key}"
