import pytest
from django.core.cache.backends.locmem import LocMemCache

from accounts.qr_tokens import RegistrationTokenRegistry
from notifications import publisher
from notifications.models import SMSLog
from notifications.sms_service import format_e164, send_completion_sms
from queue_system.lifecycle import complete_service
from queue_system.matching import next_token

from conftest import NOW


class ExplodingPublisher(publisher.EventPublisher):
    def publish(self, event_type, payload):
        raise RuntimeError('socket closed')


def test_publisher_failure_is_swallowed(monkeypatch):
    monkeypatch.setattr(publisher, 'get_publisher', lambda: ExplodingPublisher())
    publisher._dispatch(publisher.NEW_TOKEN, {'id': 1})


def test_configured_publisher_is_resolved(engine_settings):
    assert isinstance(publisher.get_publisher(), publisher.MemoryPublisher)
    engine_settings.QUEUE_ENGINE = {
        **engine_settings.QUEUE_ENGINE,
        'EVENT_PUBLISHER': 'notifications.publisher.LoggingPublisher',
    }
    assert isinstance(publisher.get_publisher(), publisher.LoggingPublisher)


@pytest.mark.parametrize('raw, expected', [
    ('0771234567', '+94771234567'),
    ('771234567', '+94771234567'),
    ('94771234567', '+94771234567'),
    ('12', None),
    (None, None),
])
def test_format_e164(raw, expected):
    assert format_e164(raw) == expected


@pytest.fixture
def completed(make_officer, make_token):
    officer = make_officer()
    make_token(1)
    token = next_token(officer.pk, now=NOW)
    return complete_service(token.pk, officer.pk, now=NOW)


@pytest.mark.django_db
def test_completion_sms_is_simulated_without_credentials(completed, monkeypatch):
    for name in ('SMS_ACCOUNT_SID', 'SMS_AUTH_TOKEN', 'SMS_FROM_NUMBER'):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv('SMS_SIMULATE', '1')

    log = send_completion_sms(completed, background=False)

    log.refresh_from_db()
    assert log.success is True
    assert log.provider_id == 'SIMULATED'
    assert log.phone_number.startswith('+94')
    assert completed.reference_number in log.message
    # the same completion is never texted twice
    assert send_completion_sms(completed, background=False) is None
    assert SMSLog.objects.count() == 1


@pytest.mark.django_db
def test_completion_sms_records_missing_provider(completed, monkeypatch):
    for name in ('SMS_ACCOUNT_SID', 'SMS_AUTH_TOKEN', 'SMS_FROM_NUMBER', 'SMS_SIMULATE'):
        monkeypatch.delenv(name, raising=False)

    log = send_completion_sms(completed, background=False)

    log.refresh_from_db()
    assert log.success is False
    assert 'credentials' in log.details


def test_qr_registry_issue_validate_revoke():
    registry = RegistrationTokenRegistry(cache=LocMemCache('qr-test', {}))
    token = registry.issue(outlet_id=7)

    assert registry.validate(token, 7)
    assert not registry.validate(token, 8)
    assert not registry.validate('forged', 7)
    assert not registry.validate(None, 7)

    registry.revoke(token)
    assert not registry.validate(token, 7)


def test_qr_registry_ttl_policy():
    assert RegistrationTokenRegistry(cache=LocMemCache('qr-a', {})).ttl is None
    assert RegistrationTokenRegistry(cache=LocMemCache('qr-b', {}), ttl=300).ttl == 300
