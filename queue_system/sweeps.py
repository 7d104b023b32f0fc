"""Periodic jobs that sit beside the request-driven engine."""
import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from notifications.publisher import DAILY_RESET, LONG_WAIT, publish_event
from outlets.counters import clear_counter_assignments

from .events import token_payload
from .models import Alert, Token

logger = logging.getLogger(__name__)


def detect_long_waits(now=None):
    """Raise one long-wait alert per token waiting beyond the threshold.

    Returns the alerts created on this pass.
    """
    now = now or timezone.now()
    minutes = settings.QUEUE_ENGINE.get('LONG_WAIT_MINUTES', 10)
    cutoff = now - timedelta(minutes=minutes)
    overdue = (
        Token.objects.filter(status=Token.WAITING, created_at__lt=cutoff)
        .exclude(alerts__type=Alert.LONG_WAIT)
        .select_related('outlet', 'customer')
    )

    created = []
    for token in overdue:
        with transaction.atomic():
            alert, is_new = Alert.objects.get_or_create(
                type=Alert.LONG_WAIT,
                token=token,
                defaults={
                    'message': (
                        f'Token #{token.token_number} has been waiting more than '
                        f'{minutes} minutes at {token.outlet.name}'
                    ),
                },
            )
            if not is_new:
                continue
            publish_event(LONG_WAIT, {
                'alert': {'id': alert.pk, 'severity': alert.severity, 'message': alert.message},
                'token': token_payload(token),
            })
        created.append(alert)
    if created:
        logger.info('Raised %s long-wait alerts', len(created))
    return created


def perform_daily_reset(now=None):
    """Start a new queue day: unseat all officers and announce the boundary.

    The counters are cleared in a single UPDATE so it cannot interleave with
    a counter assignment.
    """
    now = now or timezone.now()
    with transaction.atomic():
        cleared = clear_counter_assignments()
        publish_event(DAILY_RESET, {'timestamp': now.isoformat(), 'counters_cleared': cleared})
    logger.info('Daily reset boundary reached at %s', timezone.localtime(now))
    return cleared
