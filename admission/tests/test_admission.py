"""
Admission controller: capacity, eviction order, idempotence and removal.

Timestamps are passed explicitly so ordering never depends on clock
resolution.
"""
from datetime import timedelta

import pytest
from django.db import connection, transaction
from django.utils import timezone

from admission.exceptions import ConfigurationFault, PatientNotFound
from admission.models import Patient
from admission.services import admission, store
from admission.services.locks import ADMISSION_LOCK
from admission.services.snapshots import active_snapshot, allowed_snapshot

pytestmark = pytest.mark.django_db

T0 = timezone.now()


def at(minutes):
    return T0 + timedelta(minutes=minutes)


def promote(token, minutes):
    with transaction.atomic():
        return admission.promote(token, at(minutes))


def test_third_promotion_evicts_the_oldest(make_patient, capacity):
    capacity(2)
    a, b, c = make_patient(name='A'), make_patient(name='B'), make_patient(name='C')

    assert promote(a.token, 1).evicted_tokens == []
    assert promote(b.token, 2).evicted_tokens == []
    result = promote(c.token, 3)

    assert result.evicted_tokens == [a.token]
    assert result.patient.status == Patient.STATUS_ALLOWED
    a.refresh_from_db()
    assert a.status == Patient.STATUS_DONE
    assert a.finished_at == at(3)
    assert [p.token for p in allowed_snapshot()] == [b.token, c.token]


def test_allowed_count_never_exceeds_capacity(make_patient, capacity):
    capacity(3)
    patients = [make_patient(name=f'P{i}') for i in range(10)]
    for minute, p in enumerate(patients):
        promote(p.token, minute)
        assert Patient.objects.filter(status=Patient.STATUS_ALLOWED).count() <= 3
    assert [p.token for p in allowed_snapshot()] == [p.token for p in patients[-3:]]


def test_first_allowed_in_snapshot_is_next_evicted(make_patient, capacity):
    capacity(2)
    a, b, c = make_patient(), make_patient(), make_patient()
    # admitted out of check-in order
    promote(b.token, 1)
    promote(a.token, 2)
    head = allowed_snapshot()[0]
    assert head.token == b.token
    assert promote(c.token, 3).evicted_tokens == [head.token]


def test_equal_admission_times_fall_back_to_id(make_patient, capacity):
    capacity(2)
    a, b, c = make_patient(), make_patient(), make_patient()
    promote(b.token, 1)
    promote(a.token, 1)
    assert [p.token for p in allowed_snapshot()] == [a.token, b.token]
    assert promote(c.token, 2).evicted_tokens == [a.token]


def test_promoting_allowed_patient_is_idempotent(make_patient, capacity):
    capacity(1)
    a = make_patient()
    promote(a.token, 1)
    again = promote(a.token, 5)
    assert again.evicted_tokens == []
    a.refresh_from_db()
    assert a.status == Patient.STATUS_ALLOWED
    assert a.admitted_at == at(1)


def test_admitted_at_is_not_before_created_at(make_patient):
    a = make_patient()
    with transaction.atomic():
        admission.promote(a.token)
    a.refresh_from_db()
    assert a.admitted_at >= a.created_at


def test_promote_normalizes_token(make_patient):
    a = make_patient()
    result = promote(f'  {a.token.lower()} ', 1)
    assert result.patient.pk == a.pk


def test_unknown_token_is_not_found_and_changes_nothing(make_patient):
    a = make_patient()
    with pytest.raises(PatientNotFound):
        promote('unknown-token', 1)
    a.refresh_from_db()
    assert a.status == Patient.STATUS_WAITING
    assert a.admitted_at is None


def test_done_patient_cannot_be_promoted(make_patient):
    a = make_patient()
    with transaction.atomic():
        admission.remove(a.token, at(1))
    with pytest.raises(PatientNotFound):
        promote(a.token, 2)
    a.refresh_from_db()
    assert a.status == Patient.STATUS_DONE
    assert a.admitted_at is None


def test_remove_reports_whether_patient_held_a_slot(make_patient):
    waiting, allowed = make_patient(), make_patient()
    promote(allowed.token, 1)
    with transaction.atomic():
        assert admission.remove(waiting.token, at(2)).was_allowed is False
        assert admission.remove(allowed.token, at(2)).was_allowed is True
    assert active_snapshot() == []


def test_remove_twice_is_not_found(make_patient):
    a = make_patient()
    with transaction.atomic():
        admission.remove(a.token, at(1))
    with pytest.raises(PatientNotFound):
        with transaction.atomic():
            admission.remove(a.token, at(2))
    a.refresh_from_db()
    assert a.finished_at == at(1)


def test_make_room_stops_when_no_candidate_is_left(make_patient, capacity, monkeypatch):
    capacity(1)
    a, b = make_patient(), make_patient()
    promote(a.token, 1)
    monkeypatch.setattr(store, 'lock_oldest_allowed', lambda: None)
    result = promote(b.token, 2)
    assert result.evicted_tokens == []


def test_done_is_terminal(make_patient):
    a = make_patient()
    with transaction.atomic():
        store.mark_done(a, at(1))
    with pytest.raises(ValueError):
        store.mark_allowed(a, at(2))


def test_non_positive_capacity_is_a_configuration_fault(make_patient, capacity):
    capacity(0)
    a = make_patient()
    with pytest.raises(ConfigurationFault):
        promote(a.token, 1)
    a.refresh_from_db()
    assert a.status == Patient.STATUS_WAITING


def test_active_snapshot_is_in_check_in_order(make_patient):
    a, b, c = make_patient(), make_patient(), make_patient()
    promote(c.token, 1)
    with transaction.atomic():
        admission.remove(b.token, at(2))
    assert [p.token for p in active_snapshot()] == [a.token, c.token]


def test_allowed_snapshot_is_capped_at_capacity(make_patient, capacity):
    capacity(5)
    patients = [make_patient() for _ in range(4)]
    for minute, p in enumerate(patients):
        promote(p.token, minute)
    # capacity lowered after the fact: snapshot still returns at most that many
    capacity(2)
    assert len(allowed_snapshot()) == 2


@pytest.mark.skipif(connection.vendor != 'postgresql', reason='needs real row and advisory locks')
@pytest.mark.django_db(transaction=True)
def test_concurrent_admissions_respect_capacity(capacity):
    from concurrent.futures import ThreadPoolExecutor

    from django.db import connections

    from admission.services import queue as queue_service

    capacity(3)
    tokens = [
        queue_service.check_in({'name': f'P{i}', 'age': 20 + i, 'country': 'Chile'}).token
        for i in range(12)
    ]

    def worker(token):
        try:
            return queue_service.admit(token).evicted_tokens
        finally:
            connections.close_all()

    with ThreadPoolExecutor(max_workers=12) as pool:
        evicted = [t for batch_ in pool.map(worker, tokens) for t in batch_]

    assert Patient.objects.filter(status=Patient.STATUS_ALLOWED).count() == 3
    assert len(evicted) == 9
    assert len(set(evicted)) == 9


def test_remove_waits_for_the_admission_lock(make_patient, monkeypatch):
    calls = []
    monkeypatch.setattr(admission, 'xact_lock', lambda key: calls.append(key))
    a = make_patient()
    with transaction.atomic():
        admission.remove(a.token, at(1))
    assert calls == [ADMISSION_LOCK]


@pytest.mark.skipif(connection.vendor != 'postgresql', reason='needs real row and advisory locks')
@pytest.mark.django_db(transaction=True)
def test_concurrent_removals_never_cause_an_extra_eviction(capacity):
    from concurrent.futures import ThreadPoolExecutor

    from django.db import connections

    from admission.services import queue as queue_service

    capacity(3)
    tokens = [
        queue_service.check_in({'name': f'P{i}', 'age': 30 + i, 'country': 'Peru'}).token
        for i in range(9)
    ]
    seated, arriving = tokens[:3], tokens[3:]
    for token in seated:
        queue_service.admit(token)

    def worker(job):
        action, token = job
        try:
            if action == 'admit':
                return 'admit', len(queue_service.admit(token).evicted_tokens)
            try:
                queue_service.remove(token)
            except PatientNotFound:
                return 'remove', 0
            return 'remove', 1
        finally:
            connections.close_all()

    jobs = [('admit', t) for t in arriving] + [('remove', t) for t in seated]
    with ThreadPoolExecutor(max_workers=len(jobs)) as pool:
        results = list(pool.map(worker, jobs))

    evictions = sum(n for action, n in results if action == 'admit')
    removed = sum(n for action, n in results if action == 'remove')
    # every slot a removal freed was taken by an admission instead of an eviction
    assert evictions == len(arriving) - removed
    assert Patient.objects.filter(status=Patient.STATUS_ALLOWED).count() == 3
