"""Event sink for the real-time notification collaborator.

The queue engine only decides *what* to announce. Delivery belongs to
whatever `QUEUE_ENGINE['EVENT_PUBLISHER']` points at. Emission is scheduled
on commit and is fire-and-forget: a failing publisher is logged and never
turns a committed state change into an error.
"""
import logging
import threading

from django.conf import settings
from django.db import transaction
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

NEW_TOKEN = 'NEW_TOKEN'
TOKEN_CALLED = 'TOKEN_CALLED'
TOKEN_SKIPPED = 'TOKEN_SKIPPED'
TOKEN_RECALLED = 'TOKEN_RECALLED'
TOKEN_COMPLETED = 'TOKEN_COMPLETED'
TOKEN_PRIORITY_UPDATED = 'TOKEN_PRIORITY_UPDATED'
OFFICER_STATUS_CHANGE = 'OFFICER_STATUS_CHANGE'
DAILY_RESET = 'DAILY_RESET'
LONG_WAIT = 'LONG_WAIT'


class EventPublisher:
    def publish(self, event_type: str, payload: dict) -> None:
        raise NotImplementedError


class LoggingPublisher(EventPublisher):
    def publish(self, event_type, payload):
        logger.info('event %s %s', event_type, payload)


class MemoryPublisher(EventPublisher):
    """Keeps published events in a process-wide list, newest last."""

    events = []
    _lock = threading.Lock()

    def publish(self, event_type, payload):
        with self._lock:
            self.events.append((event_type, payload))

    @classmethod
    def clear(cls):
        with cls._lock:
            del cls.events[:]

    @classmethod
    def of_type(cls, event_type):
        with cls._lock:
            return [payload for kind, payload in cls.events if kind == event_type]


_publisher = None
_publisher_path = None


def get_publisher() -> EventPublisher:
    global _publisher, _publisher_path
    path = settings.QUEUE_ENGINE.get('EVENT_PUBLISHER', 'notifications.publisher.LoggingPublisher')
    if _publisher is None or path != _publisher_path:
        _publisher = import_string(path)()
        _publisher_path = path
    return _publisher


def _deliver(event_type, payload):
    """Never raises."""
    try:
        get_publisher().publish(event_type, payload)
    except Exception:
        logger.exception('Publishing %s failed', event_type)


def _dispatch(event_type, payload):
    if settings.QUEUE_ENGINE.get('EVENTS_ASYNC', True):
        thread = threading.Thread(target=_deliver, args=(event_type, payload), daemon=True)
        thread.start()
    else:
        _deliver(event_type, payload)


def publish_event(event_type, payload):
    """Announce an event once the surrounding transaction commits."""
    transaction.on_commit(lambda: _dispatch(event_type, payload))
