"""
Patient identity allocation.

Identities come from a named :class:`IdentityCounter` row rather than the
patient table, so they keep increasing even if patient rows are archived.
The counter is normally created by ``manage.py provision_queue``; when it
is missing, the first allocation creates it under the ``IDENTITY``
transaction lock so that concurrent first-time callers initialise it
exactly once.
"""
from __future__ import annotations

import logging

from django.conf import settings
from django.db import DatabaseError, connection, transaction
from django.db.models import F, Max

from admission.exceptions import ConfigurationFault
from admission.models import IdentityCounter, Patient
from admission.services.locks import IDENTITY_LOCK, xact_lock

logger = logging.getLogger(__name__)


def sequence_name() -> str:
    name = (settings.QUEUE_IDENTITY_SEQUENCE or '').strip()
    if not name:
        raise ConfigurationFault('QUEUE_IDENTITY_SEQUENCE is not set')
    return name


def counter_table_exists() -> bool:
    return IdentityCounter._meta.db_table in connection.introspection.table_names()


def counter_exists(name: str) -> bool:
    """Unlocked peek; a False answer must be confirmed under the lock."""
    return IdentityCounter.objects.filter(name=name).exists()


def bootstrap_counter(name: str) -> bool:
    """Create the counter if nobody else has.  Returns True if this call did.

    Starts from the highest identity already issued so that a lost
    counter row never causes an identity to be handed out twice.
    """
    xact_lock(IDENTITY_LOCK)
    if IdentityCounter.objects.filter(name=name).exists():
        return False
    start = Patient.objects.aggregate(top=Max('id'))['top'] or 0
    IdentityCounter.objects.create(name=name, value=start)
    logger.info('identity counter %r initialised at %d', name, start)
    return True


def allocate() -> int:
    """Return a fresh identity, strictly greater than any issued before."""
    name = sequence_name()
    try:
        with transaction.atomic():
            if not counter_exists(name):
                bootstrap_counter(name)
            counter = IdentityCounter.objects.select_for_update().filter(name=name).first()
            if counter is None:
                raise ConfigurationFault(f'identity counter {name!r} could not be resolved')
            IdentityCounter.objects.filter(pk=counter.pk).update(value=F('value') + 1)
            counter.refresh_from_db(fields=['value'])
            return counter.value
    except DatabaseError as exc:
        if not counter_table_exists():
            # migrations were never applied
            raise ConfigurationFault(f'identity counter {name!r} is not provisioned') from exc
        raise
