"""Token state transitions driven by officers.

    waiting ──call──▶ in_service ──complete──▶ completed
       │                 │  ▲
       │               skip │ recall / call
       │                 ▼  │
       └────call─────▶ skipped

Every transition locks the officer row then the token row, in that order
(the order matching uses too), and announces itself once committed.
Nothing leaves `completed`.
"""
import logging

from django.db import transaction
from django.utils import timezone

from notifications.publisher import (
    TOKEN_CALLED,
    TOKEN_COMPLETED,
    TOKEN_PRIORITY_UPDATED,
    TOKEN_RECALLED,
    TOKEN_SKIPPED,
)
from notifications.sms_service import send_completion_sms
from officers.models import Officer

from .events import emit_token_event
from .exceptions import BusinessRuleViolation, NotFoundError
from .matching import assign
from .models import Token
from .transactions import bounded_atomic, conflict_on_integrity

logger = logging.getLogger(__name__)

_ACTIVE_CONFLICT = 'Customer already has another active token at this outlet'


def _lock_officer(officer_id):
    try:
        return Officer.objects.select_for_update().get(pk=officer_id)
    except Officer.DoesNotExist:
        raise NotFoundError('Officer not found')


def _lock_token(token_id):
    try:
        return Token.objects.select_for_update().select_related('customer', 'outlet').get(pk=token_id)
    except Token.DoesNotExist:
        raise NotFoundError('Token not found')


def _reject_completed(token, action):
    if token.status == Token.COMPLETED:
        raise BusinessRuleViolation(f'Cannot {action} a completed token')


def _set_officer_status(officer, status):
    officer.status = status
    officer.save(update_fields=['status'])


def _require_on_floor(officer):
    if officer.status in (Officer.OFFLINE, Officer.ON_BREAK):
        raise BusinessRuleViolation(f'Officer is {officer.status.replace("_", " ")} and cannot take tokens')


def _require_same_outlet(officer, token):
    if token.outlet_id != officer.outlet_id:
        raise BusinessRuleViolation('Token belongs to a different outlet')


def _require_owner(officer, token):
    if token.assigned_officer_id != officer.pk:
        raise BusinessRuleViolation('Token is being served by another officer')


def _call(officer_id, token_id, event_type, allowed_from, now):
    now = now or timezone.now()
    with conflict_on_integrity(_ACTIVE_CONFLICT):
        with bounded_atomic():
            officer = _lock_officer(officer_id)
            token = _lock_token(token_id)
            _reject_completed(token, 'call')
            if token.status not in allowed_from:
                raise BusinessRuleViolation('Token is not skipped')
            _require_same_outlet(officer, token)
            _require_on_floor(officer)
            if token.status == Token.IN_SERVICE:
                _require_owner(officer, token)

            assign(token, officer, now)
            token.save()
            _set_officer_status(officer, Officer.SERVING)
            emit_token_event(event_type, token)

    logger.info('%s token #%s by officer %s', event_type, token.token_number, officer.pk)
    return token


def call_token(officer_id, token_id, now=None):
    """Call a specific token to the officer's counter, bypassing matching."""
    return _call(officer_id, token_id, TOKEN_CALLED, (Token.WAITING, Token.IN_SERVICE, Token.SKIPPED), now)


def recall_token(officer_id, token_id, now=None):
    """Bring a skipped token back into service."""
    return _call(officer_id, token_id, TOKEN_RECALLED, (Token.SKIPPED,), now)


def skip_token(officer_id, token_id):
    """Skip the token in service. It stays in the queue for recall."""
    with bounded_atomic():
        officer = _lock_officer(officer_id)
        token = _lock_token(token_id)
        _reject_completed(token, 'skip')
        if token.status != Token.IN_SERVICE:
            raise BusinessRuleViolation('Only a token in service can be skipped')
        _require_same_outlet(officer, token)
        _require_owner(officer, token)

        token.status = Token.SKIPPED
        token.assigned_officer = None
        token.counter_number = None
        token.save(update_fields=['status', 'assigned_officer', 'counter_number'])
        _set_officer_status(officer, Officer.AVAILABLE)
        emit_token_event(TOKEN_SKIPPED, token)

    logger.info('Skipped token #%s by officer %s', token.token_number, officer.pk)
    return token


def reference_number(token):
    """YYYY-MM-DD/<outlet>/<token number>, dated by the queue window the token was issued in.

    Token numbers restart each window, so the window date keeps references
    unique per outlet even when two windows overlap one calendar date.
    """
    outlet_name = (token.outlet.name or 'Outlet').replace('/', '-')
    return f'{timezone.localdate(token.window_start).isoformat()}/{outlet_name}/{token.token_number}'


def complete_service(token_id, officer_id, account_ref=None, now=None):
    """Finish service on a token and free the officer.

    Only the officer serving the token may complete it. A second completion
    of the same token is rejected. The customer is sent their service
    reference by SMS after commit.
    """
    now = now or timezone.now()
    with conflict_on_integrity('Service reference already issued'), bounded_atomic():
        officer = _lock_officer(officer_id)
        token = _lock_token(token_id)
        if token.status == Token.COMPLETED:
            raise BusinessRuleViolation('Token is already completed')
        if token.status != Token.IN_SERVICE:
            raise BusinessRuleViolation('Only a token in service can be completed')
        _require_same_outlet(officer, token)
        _require_owner(officer, token)

        token.status = Token.COMPLETED
        token.completed_at = now
        token.reference_number = reference_number(token)
        if account_ref:
            token.account_ref = account_ref.strip()
        token.save(update_fields=['status', 'completed_at', 'reference_number', 'account_ref'])
        _set_officer_status(officer, Officer.AVAILABLE)
        emit_token_event(TOKEN_COMPLETED, token)
        transaction.on_commit(lambda: send_completion_sms(token))

    logger.info('Completed token #%s (%s)', token.token_number, token.reference_number)
    return token


def set_priority(token_id):
    """Toggle the advisory priority flag. The token's state is unchanged."""
    with bounded_atomic():
        token = _lock_token(token_id)
        token.is_priority = not token.is_priority
        token.save(update_fields=['is_priority'])
        emit_token_event(TOKEN_PRIORITY_UPDATED, token)
    return token
