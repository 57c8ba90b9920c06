"""Read-only views of the queue for screens and notifications."""
from __future__ import annotations

from admission.models import ADMISSION_ORDER, Patient
from admission.services.store import max_allowed


def allowed_snapshot() -> list[Patient]:
    """Allowed patients in eviction order; the first one goes next."""
    qs = Patient.objects.filter(status=Patient.STATUS_ALLOWED).order_by(*ADMISSION_ORDER)
    return list(qs[:max_allowed()])


def active_snapshot() -> list[Patient]:
    return list(Patient.objects.exclude(status=Patient.STATUS_DONE).order_by('id'))
