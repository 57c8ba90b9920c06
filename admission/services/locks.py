"""
Transaction-scoped named locks.

PostgreSQL gets real advisory locks (``pg_advisory_xact_lock``), released
automatically at commit or rollback.  Other backends lock a
:class:`~admission.models.QueueLock` row with ``SELECT ... FOR UPDATE``,
which is held for the same span.  Both are re-entrant inside one
transaction.
"""
from __future__ import annotations

from django.db import DEFAULT_DB_ALIAS, connections
from django.db.transaction import TransactionManagementError

from admission.models import QueueLock

# (classid, objid) pairs for pg_advisory_xact_lock
LOCK_NAMESPACE = 42
IDENTITY_LOCK = 0
ADMISSION_LOCK = 1


def xact_lock(key: int, *, using: str | None = None) -> None:
    """Block until the named lock ``key`` is held by the current transaction."""
    alias = using or DEFAULT_DB_ALIAS
    connection = connections[alias]
    if not connection.in_atomic_block:
        raise TransactionManagementError("xact_lock() must run inside transaction.atomic()")
    if connection.vendor == 'postgresql':
        with connection.cursor() as c:
            c.execute('SELECT pg_advisory_xact_lock(%s, %s)', [LOCK_NAMESPACE, key])
        return
    QueueLock.objects.using(alias).select_for_update().get_or_create(key=key)
