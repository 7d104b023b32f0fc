import threading
from datetime import datetime
from itertools import count

import pytest
from django.db import connection
from django.utils import timezone

from accounts.models import Customer
from notifications.publisher import MemoryPublisher
from officers.models import Officer
from outlets.models import Outlet
from queue_system.models import Token
from queue_system.window import last_reset

_seq = count(1)


def local(year, month, day, hour=0, minute=0):
    return timezone.make_aware(datetime(year, month, day, hour, minute))


# afternoon of a queue day, well inside the noon-to-noon window
NOW = local(2026, 3, 10, 14, 0)


def run_concurrently(calls):
    """Run each callable on its own thread, released together.

    Returns what each call returned or raised, in order. Every thread closes
    its own database connection.
    """
    barrier = threading.Barrier(len(calls))
    results = [None] * len(calls)

    def worker(i, call):
        barrier.wait()
        try:
            results[i] = call()
        except Exception as e:
            results[i] = e
        finally:
            connection.close()

    threads = [threading.Thread(target=worker, args=(i, call)) for i, call in enumerate(calls)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results


@pytest.fixture(autouse=True)
def engine_settings(settings):
    settings.QUEUE_ENGINE = {
        **settings.QUEUE_ENGINE,
        'DAILY_RESET_HOUR': 12,
        'DAILY_RESET_MINUTE': 0,
        'EVENT_PUBLISHER': 'notifications.publisher.MemoryPublisher',
        'EVENTS_ASYNC': False,
        'MATCH_RETRIES': 3,
        'BREAK_COOLDOWN_MINUTES': 30,
        'MAX_BREAKS_PER_DAY': 6,
        'MAX_BREAK_MINUTES_PER_DAY': 90,
        'LONG_WAIT_MINUTES': 10,
        'MINUTES_PER_TOKEN': 5,
        'QR_TOKEN_TTL_SECONDS': 0,
    }
    MemoryPublisher.clear()
    yield settings
    MemoryPublisher.clear()


@pytest.fixture
def events():
    return MemoryPublisher


@pytest.fixture(autouse=True)
def sent_sms(monkeypatch):
    sent = []
    monkeypatch.setattr('queue_system.lifecycle.send_completion_sms', sent.append)
    return sent


@pytest.fixture
def outlet(db):
    return Outlet.objects.create(name='Colombo Central', location='Colombo 01', counter_count=4)


@pytest.fixture
def make_officer(outlet):
    def _make(services=('bill_payment',), languages=('en',), status=Officer.AVAILABLE,
              counter_number=1, officer_outlet=None):
        n = next(_seq)
        return Officer.objects.create(
            name=f'Officer {n}',
            mobile_number=f'071{n:07d}',
            outlet=officer_outlet or outlet,
            counter_number=counter_number,
            assigned_services=list(services),
            languages=list(languages),
            status=status,
        )
    return _make


@pytest.fixture
def make_customer(db):
    def _make(name=None):
        n = next(_seq)
        return Customer.objects.create(name=name or f'Customer {n}', mobile_number=f'077{n:07d}')
    return _make


@pytest.fixture
def make_token(outlet, make_customer):
    def _make(number, services=('bill_payment',), languages=('en',), status=Token.WAITING,
              created_at=NOW, token_outlet=None, customer=None):
        return Token.objects.create(
            outlet=token_outlet or outlet,
            customer=customer or make_customer(),
            token_number=number,
            status=status,
            service_types=list(services),
            preferred_languages=list(languages),
            window_start=last_reset(created_at),
            created_at=created_at,
        )
    return _make
