"""
"Let the next N in": promotion of the oldest waiting patients as a batch.

Runs inside the caller's transaction.  A token that went stale between
selection and promotion (removed or finished meanwhile) is skipped rather
than failing the batch; any other error aborts and rolls back the whole
batch.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from django.utils import timezone

from admission.exceptions import InvalidArgument, PatientNotFound
from admission.models import Patient
from admission.services import admission, store
from admission.services.locks import ADMISSION_LOCK, xact_lock
from admission.services.snapshots import allowed_snapshot

logger = logging.getLogger(__name__)


@dataclass
class BatchPromotion:
    promoted: list[Patient] = field(default_factory=list)
    evicted_tokens: list[str] = field(default_factory=list)
    allowed: list[Patient] = field(default_factory=list)

    @property
    def promoted_count(self) -> int:
        return len(self.promoted)


def promote_next(n: int, now: Optional[datetime] = None) -> BatchPromotion:
    if isinstance(n, bool) or not isinstance(n, int) or n <= 0:
        raise InvalidArgument()
    now = now or timezone.now()
    # gate before selecting, so the selection cannot go stale under another promoter
    xact_lock(ADMISSION_LOCK)
    result = BatchPromotion()
    for token in store.waiting_tokens(n):
        try:
            promotion = admission.promote(token, now)
        except PatientNotFound:
            logger.info('skipping stale token %s in batch', token)
            continue
        result.promoted.append(promotion.patient)
        result.evicted_tokens.extend(promotion.evicted_tokens)
    result.allowed = allowed_snapshot()
    logger.info(
        'batch of %d: promoted %d, evicted %d',
        n, result.promoted_count, len(result.evicted_tokens),
    )
    return result
