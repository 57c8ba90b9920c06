import pytest

from admission.services import queue as queue_service


@pytest.fixture
def make_patient(db):
    """Check a patient in through the real allocator and return the record."""
    def _make(name='Alex Smith', age=30, country='Kenya', **extra):
        return queue_service.check_in({'name': name, 'age': age, 'country': country, **extra}).patient
    return _make


@pytest.fixture
def capacity(settings):
    """Set QUEUE_MAX_ALLOWED for one test."""
    def _set(n):
        settings.QUEUE_MAX_ALLOWED = n
    return _set


@pytest.fixture
def published(monkeypatch):
    """Record fan-out events instead of sending them to the channel layer."""
    from admission.realtime import notify

    events = []
    monkeypatch.setattr(notify, 'publish', lambda event, data: events.append((event, data)))
    return events
