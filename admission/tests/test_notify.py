import pytest

from admission.models import Patient
from admission.realtime import notify
from admission.services import queue as queue_service

pytestmark = pytest.mark.django_db


def names(events):
    return [event for event, _ in events]


def test_check_in_announces_new_patient(published, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        result = queue_service.check_in({'name': 'Morgan', 'age': 64, 'country': 'Fiji'})
    assert names(published) == [notify.PATIENT_NEW]
    assert published[0][1]['token'] == result.token


def test_admit_publishes_evictions_then_allowed_set(make_patient, capacity, published, django_capture_on_commit_callbacks):
    capacity(1)
    a, b = make_patient(), make_patient()
    queue_service.admit(a.token)
    with django_capture_on_commit_callbacks(execute=True):
        queue_service.admit(b.token)
    assert published == [
        (notify.PATIENT_FINISHED, a.token),
        (notify.ALLOWED_UPDATE, published[1][1]),
    ]
    assert [p['token'] for p in published[1][1]] == [b.token]


def test_removing_waiting_patient_is_silent(make_patient, published, django_capture_on_commit_callbacks):
    a = make_patient()
    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        queue_service.remove(a.token)
    assert callbacks == []
    assert published == []


def test_removing_allowed_patient_is_announced(make_patient, published, django_capture_on_commit_callbacks):
    a = make_patient()
    queue_service.admit(a.token)
    with django_capture_on_commit_callbacks(execute=True):
        queue_service.remove(a.token)
    assert names(published) == [notify.PATIENT_FINISHED, notify.ALLOWED_UPDATE]
    assert published[0][1] == a.token
    assert published[1][1] == []


def test_nothing_is_published_for_a_failed_admit(make_patient, published, django_capture_on_commit_callbacks):
    make_patient()
    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        with pytest.raises(Exception):
            queue_service.admit('T999')
    assert callbacks == []
    assert published == []


def test_broken_channel_layer_does_not_undo_admission(make_patient, monkeypatch, django_capture_on_commit_callbacks, caplog):
    class BrokenLayer:
        async def group_send(self, group, message):
            raise ConnectionError('redis down')

    monkeypatch.setattr(notify, 'get_channel_layer', lambda: BrokenLayer())
    a = make_patient()
    with django_capture_on_commit_callbacks(execute=True):
        result = queue_service.admit(a.token)
    assert result.patient.status == Patient.STATUS_ALLOWED
    a.refresh_from_db()
    assert a.status == Patient.STATUS_ALLOWED
    assert 'failed to publish' in caplog.text


def test_broadcast_queue_command_republishes_allowed_set(make_patient, published):
    from django.core.management import call_command

    a = make_patient()
    queue_service.admit(a.token)
    call_command('broadcast_queue')
    assert names(published) == [notify.ALLOWED_UPDATE]
    assert [p['token'] for p in published[0][1]] == [a.token]


def test_consumer_relays_queue_events():
    import json

    from asgiref.sync import async_to_sync
    from channels.layers import get_channel_layer
    from channels.testing import WebsocketCommunicator

    from admission.realtime.consumers import QueueUpdatesConsumer

    async def scenario():
        communicator = WebsocketCommunicator(QueueUpdatesConsumer.as_asgi(), "/ws/queue/")
        connected, _ = await communicator.connect()
        assert connected
        welcome = json.loads(await communicator.receive_from())
        await get_channel_layer().group_send(
            notify.QUEUE_GROUP, {"type": "queue.event", "event": notify.PATIENT_FINISHED, "data": "T3"}
        )
        frame = json.loads(await communicator.receive_from())
        await communicator.disconnect()
        return welcome, frame

    welcome, frame = async_to_sync(scenario)()
    assert welcome["type"] == "welcome"
    assert frame == {"type": "patient.finished", "data": "T3"}
