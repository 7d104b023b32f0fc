"""Pick the next token an officer may serve and assign it.

Strict mode requires both a service and a language in common between the
token and the officer. A token with no preferred language cannot be
confirmed as a match, so strict mode passes over it rather than treating it
as a wildcard. Among eligible tokens the lowest token number wins; the
priority flag does not reorder this path, it only guides explicit calls.

The unmatched-bypass mode is the operator override: it ignores capabilities
and takes the oldest waiting token.
"""
import logging

from django.conf import settings
from django.utils import timezone

from notifications.publisher import TOKEN_CALLED
from officers.models import Officer

from .events import emit_token_event
from .exceptions import BusinessRuleViolation, ConflictError, NoMatch, NotFoundError, ValidationError
from .models import Token
from .transactions import bounded_atomic, conflict_on_integrity
from .window import last_reset

logger = logging.getLogger(__name__)


class MatchMode:
    STRICT = 'strict'
    UNMATCHED_BYPASS = 'unmatched_bypass'

    ALL = (STRICT, UNMATCHED_BYPASS)


class _AssignmentRace(Exception):
    """The chosen token stopped being `waiting` before we could claim it."""


def can_serve(services, languages, token):
    """True when an officer with these capability sets may serve `token`."""
    token_services = token.service_set
    token_languages = token.language_set
    if not (services and languages and token_services and token_languages):
        return False
    return not services.isdisjoint(token_services) and not languages.isdisjoint(token_languages)


def waiting_tokens(outlet_id, window_start):
    return (
        Token.objects.filter(outlet_id=outlet_id, status=Token.WAITING, created_at__gte=window_start)
        .order_by('token_number')
    )


def select_strict(officer, window_start):
    services = officer.service_set
    languages = officer.language_set
    if not services:
        raise BusinessRuleViolation('You have no assigned services. Please contact your manager.')
    if not languages:
        raise BusinessRuleViolation('You have no assigned languages. Please contact your manager.')

    for token in waiting_tokens(officer.outlet_id, window_start).iterator():
        if services.isdisjoint(token.service_set):
            continue
        if not token.language_set:
            logger.debug('Token #%s has no language preference, skipping', token.token_number)
            continue
        if can_serve(services, languages, token):
            return token
        logger.debug('Token #%s language mismatch for officer %s', token.token_number, officer.pk)
    return None


def select_any(officer, window_start):
    return waiting_tokens(officer.outlet_id, window_start).first()


def assign(token, officer, now):
    """Write the "called to a counter" fields onto `token` in memory."""
    token.status = Token.IN_SERVICE
    token.assigned_officer = officer
    token.counter_number = officer.counter_number
    token.called_at = now
    token.started_at = now


def _assign_next(officer_id, mode, now):
    with bounded_atomic():
        try:
            officer = Officer.objects.select_for_update().get(pk=officer_id)
        except Officer.DoesNotExist:
            raise NotFoundError('Officer not found')
        if officer.status in (Officer.OFFLINE, Officer.ON_BREAK):
            raise BusinessRuleViolation(f'Officer is {officer.status.replace("_", " ")} and cannot take tokens')

        window_start = last_reset(now)
        if mode == MatchMode.UNMATCHED_BYPASS:
            logger.warning('Officer %s calling in unmatched mode, capability matching bypassed', officer.pk)
            candidate = select_any(officer, window_start)
            if candidate is None:
                return NoMatch('No waiting tokens available')
        else:
            candidate = select_strict(officer, window_start)
            if candidate is None:
                logger.info('No match for officer %s', officer.pk)
                return NoMatch()

        claimed = Token.objects.filter(pk=candidate.pk, status=Token.WAITING).update(
            status=Token.IN_SERVICE,
            assigned_officer=officer,
            counter_number=officer.counter_number,
            called_at=now,
            started_at=now,
        )
        if not claimed:
            raise _AssignmentRace()

        officer.status = Officer.SERVING
        officer.save(update_fields=['status'])

        token = Token.objects.select_related('customer', 'assigned_officer').get(pk=candidate.pk)
        emit_token_event(TOKEN_CALLED, token)

    logger.info('Assigned token #%s to officer %s (%s)', token.token_number, officer.pk, mode)
    return token


def next_token(officer_id, mode=MatchMode.STRICT, now=None):
    """Assign the officer the next token they can serve.

    Returns the assigned Token, or a NoMatch when nothing qualifies. A token
    claimed by another officer mid-selection is retried a bounded number of
    times before giving up with ConflictError.
    """
    if mode not in MatchMode.ALL:
        raise ValidationError(
            f'Unknown match mode {mode!r}',
            errors={'mode': [f'Expected one of: {", ".join(MatchMode.ALL)}']},
        )
    now = now or timezone.now()
    retries = max(1, settings.QUEUE_ENGINE.get('MATCH_RETRIES', 3))

    for attempt in range(1, retries + 1):
        try:
            with conflict_on_integrity('Customer already has a token in service at this outlet'):
                return _assign_next(officer_id, mode, now)
        except _AssignmentRace:
            logger.info('Token claimed concurrently for officer %s (attempt %s/%s)', officer_id, attempt, retries)
    raise ConflictError('Another officer took the token, try again')
