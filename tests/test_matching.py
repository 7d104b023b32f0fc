from functools import partial

import pytest

from notifications.publisher import TOKEN_CALLED
from officers.models import Officer
from queue_system.exceptions import BusinessRuleViolation, ConflictError, NoMatch, NotFoundError, ValidationError
from queue_system.matching import MatchMode, next_token
from queue_system.models import Token

from conftest import NOW, local, run_concurrently


@pytest.fixture
def scenario_tokens(make_token):
    return [
        make_token(1, services=['tech_support'], languages=['en']),
        make_token(2, services=['bill_payment'], languages=['si']),
        make_token(3, services=['bill_payment'], languages=['en']),
    ]


@pytest.mark.django_db
def test_strict_match_needs_service_and_language(make_officer, scenario_tokens, events,
                                                 django_capture_on_commit_callbacks):
    officer = make_officer(services=['bill_payment'], languages=['en'], counter_number=3)

    with django_capture_on_commit_callbacks(execute=True):
        token = next_token(officer.pk, now=NOW)

    assert token.token_number == 3
    assert token.status == Token.IN_SERVICE
    assert token.assigned_officer_id == officer.pk
    assert token.counter_number == 3
    assert token.called_at == NOW
    assert token.started_at == NOW
    officer.refresh_from_db()
    assert officer.status == Officer.SERVING
    (payload,) = events.of_type(TOKEN_CALLED)
    assert payload['token_number'] == 3


@pytest.mark.django_db
def test_lowest_eligible_number_wins_and_priority_does_not_reorder(make_officer, make_token):
    make_token(1, services=['bill_payment'], languages=['en'])
    priority = make_token(2, services=['bill_payment'], languages=['en'])
    Token.objects.filter(pk=priority.pk).update(is_priority=True)
    officer = make_officer()

    assert next_token(officer.pk, now=NOW).token_number == 1


@pytest.mark.django_db
def test_token_without_language_is_never_matched(make_officer, make_token):
    make_token(1, services=['bill_payment'], languages=[])
    officer = make_officer()

    result = next_token(officer.pk, now=NOW)

    assert isinstance(result, NoMatch)
    assert not result
    assert Token.objects.get().status == Token.WAITING
    officer.refresh_from_db()
    assert officer.status == Officer.AVAILABLE


@pytest.mark.django_db
def test_strict_result_always_shares_a_service(make_officer, make_token):
    make_token(1, services=['tech_support'], languages=['en'])
    make_token(2, services=['new_connection'], languages=['en'])
    officer = make_officer(services=['bill_payment'], languages=['en'])

    assert isinstance(next_token(officer.pk, now=NOW), NoMatch)


@pytest.mark.django_db
def test_previous_window_tokens_are_not_offered(make_officer, make_token):
    make_token(1, created_at=local(2026, 3, 10, 11, 0))
    officer = make_officer()

    assert isinstance(next_token(officer.pk, now=NOW), NoMatch)


@pytest.mark.django_db
def test_tokens_at_other_outlets_are_not_offered(make_officer, make_token):
    from outlets.models import Outlet

    elsewhere = Outlet.objects.create(name='Galle', counter_count=1)
    make_token(1, token_outlet=elsewhere)
    officer = make_officer()

    assert isinstance(next_token(officer.pk, now=NOW), NoMatch)


@pytest.mark.django_db
@pytest.mark.parametrize('services, languages, message', [
    ([], ['en'], 'no assigned services'),
    (['bill_payment'], [], 'no assigned languages'),
])
def test_unprovisioned_officer_cannot_serve(make_officer, make_token, services, languages, message):
    make_token(1)
    officer = make_officer(services=services, languages=languages)

    with pytest.raises(BusinessRuleViolation, match=message):
        next_token(officer.pk, now=NOW)


@pytest.mark.django_db
@pytest.mark.parametrize('status', [Officer.ON_BREAK, Officer.OFFLINE])
def test_officer_off_the_floor_cannot_take_tokens(make_officer, make_token, status):
    make_token(1)
    officer = make_officer(status=status)

    with pytest.raises(BusinessRuleViolation):
        next_token(officer.pk, now=NOW)


@pytest.mark.django_db
def test_unmatched_bypass_takes_oldest_waiting(make_officer, scenario_tokens):
    officer = make_officer(services=['bill_payment'], languages=['ta'])

    token = next_token(officer.pk, mode=MatchMode.UNMATCHED_BYPASS, now=NOW)

    assert token.token_number == 1


@pytest.mark.django_db
def test_unmatched_bypass_with_empty_queue(make_officer):
    officer = make_officer(services=[], languages=[])
    assert isinstance(next_token(officer.pk, mode=MatchMode.UNMATCHED_BYPASS, now=NOW), NoMatch)


@pytest.mark.django_db
def test_unknown_officer_and_mode(make_officer):
    with pytest.raises(NotFoundError):
        next_token(999999, now=NOW)
    with pytest.raises(ValidationError) as exc:
        next_token(make_officer().pk, mode='fastest', now=NOW)
    assert 'mode' in exc.value.errors


@pytest.mark.django_db
def test_lost_race_is_retried_then_reported(make_officer, make_token, monkeypatch):
    stale = make_token(1)
    Token.objects.filter(pk=stale.pk).update(status=Token.IN_SERVICE)
    officer = make_officer()
    calls = []

    def select(officer, window_start):
        calls.append(1)
        return stale

    monkeypatch.setattr('queue_system.matching.select_strict', select)

    with pytest.raises(ConflictError):
        next_token(officer.pk, now=NOW)
    assert len(calls) == 3
    officer.refresh_from_db()
    assert officer.status == Officer.AVAILABLE


@pytest.mark.django_db
def test_lost_race_recovers_with_next_candidate(make_officer, make_token, monkeypatch):
    stale = make_token(1)
    Token.objects.filter(pk=stale.pk).update(status=Token.IN_SERVICE)
    fresh = make_token(2)
    officer = make_officer()
    picks = iter([stale, fresh])
    monkeypatch.setattr('queue_system.matching.select_strict', lambda officer, window_start: next(picks))

    assert next_token(officer.pk, now=NOW).pk == fresh.pk


@pytest.mark.django_db
def test_capabilities_stored_in_other_shapes_are_normalised(make_officer, make_token):
    officer = make_officer()
    officer.assigned_services = '["bill_payment"]'
    officer.languages = {'primary': 'en', 'secondary': 'si'}
    officer.save()
    officer.refresh_from_db()
    assert officer.assigned_services == ['bill_payment']
    assert officer.languages == ['en', 'si']

    make_token(1, languages=['si'])
    assert next_token(officer.pk, now=NOW).token_number == 1


@pytest.mark.django_db(transaction=True)
def test_concurrent_officers_never_share_a_token(make_officer, make_token):
    token = make_token(1)
    officers = [make_officer(counter_number=n) for n in range(1, 5)]

    results = run_concurrently([partial(next_token, o.pk, now=NOW) for o in officers])

    served = [r for r in results if isinstance(r, Token)]
    assert len(served) == 1
    assert all(isinstance(r, (NoMatch, ConflictError)) for r in results if not isinstance(r, Token)), results
    token.refresh_from_db()
    assert token.status == Token.IN_SERVICE
    assert token.assigned_officer_id == served[0].assigned_officer_id
    assert Officer.objects.filter(status=Officer.SERVING).count() == 1
