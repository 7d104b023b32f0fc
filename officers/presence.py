"""Login/logout hooks that move an officer on and off the floor."""
import logging

from django.utils import timezone

from queue_system.events import emit_officer_status
from queue_system.exceptions import NotFoundError
from queue_system.transactions import bounded_atomic

from .models import Officer

logger = logging.getLogger(__name__)


def _set_status(officer_id, status, now, **extra):
    with bounded_atomic():
        try:
            officer = Officer.objects.select_for_update().get(pk=officer_id)
        except Officer.DoesNotExist:
            raise NotFoundError('Officer not found')
        officer.status = status
        for field, value in extra.items():
            setattr(officer, field, value)
        officer.save(update_fields=['status', *extra])
        emit_officer_status(officer, now)
    logger.info('Officer %s is now %s', officer.pk, status)
    return officer


def login(officer_id, now=None):
    now = now or timezone.now()
    return _set_status(officer_id, Officer.AVAILABLE, now, last_login_at=now)


def logout(officer_id, now=None):
    return _set_status(officer_id, Officer.OFFLINE, now or timezone.now())
