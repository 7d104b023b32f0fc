import pytest

from officers.models import Officer
from queue_system.exceptions import NotFoundError
from queue_system.models import Token
from queue_system.unmatched import unmatched_tokens

from conftest import NOW


@pytest.fixture
def only_token_two(make_token):
    make_token(1, services=['tech_support'], languages=['en'], status=Token.COMPLETED)
    token = make_token(2, services=['bill_payment'], languages=['si'])
    make_token(3, services=['bill_payment'], languages=['en'], status=Token.IN_SERVICE)
    return token


@pytest.mark.django_db
def test_token_covered_by_an_online_officer_is_not_unmatched(outlet, make_officer, only_token_two):
    make_officer(services=['bill_payment'], languages=['en'])
    make_officer(services=['bill_payment'], languages=['si'])

    assert unmatched_tokens(outlet.pk, now=NOW) == []


@pytest.mark.django_db
def test_token_becomes_unmatched_when_its_officer_goes_offline(outlet, make_officer, only_token_two):
    make_officer(services=['bill_payment'], languages=['en'])
    make_officer(services=['bill_payment'], languages=['si'], status=Officer.OFFLINE)

    assert unmatched_tokens(outlet.pk, now=NOW) == [only_token_two]


@pytest.mark.django_db
def test_officers_on_break_do_not_cover_tokens(outlet, make_officer, only_token_two):
    make_officer(services=['bill_payment'], languages=['si'], status=Officer.ON_BREAK)

    assert unmatched_tokens(outlet.pk, now=NOW) == [only_token_two]


@pytest.mark.django_db
def test_serving_officer_still_covers(outlet, make_officer, only_token_two):
    make_officer(services=['bill_payment'], languages=['si'], status=Officer.SERVING)

    assert unmatched_tokens(outlet.pk, now=NOW) == []


@pytest.mark.django_db
def test_service_and_language_must_both_match_one_officer(outlet, make_officer, make_token):
    token = make_token(1, services=['bill_payment'], languages=['si'])
    make_officer(services=['bill_payment'], languages=['en'])
    make_officer(services=['tech_support'], languages=['si'])

    assert unmatched_tokens(outlet.pk, now=NOW) == [token]


@pytest.mark.django_db
def test_skipped_tokens_are_checked_and_language_less_tokens_are_not(outlet, make_token):
    skipped = make_token(1, languages=['ta'], status=Token.SKIPPED)
    make_token(2, languages=[])

    assert unmatched_tokens(outlet.pk, now=NOW) == [skipped]


@pytest.mark.django_db
def test_unknown_outlet():
    with pytest.raises(NotFoundError):
        unmatched_tokens(424242, now=NOW)
