"""Officer break policy.

Quotas are counted per local calendar day (not per queue window):
at most MAX_BREAKS_PER_DAY breaks and MAX_BREAK_MINUTES_PER_DAY minutes of
ended breaks, with BREAK_COOLDOWN_MINUTES between the end of one break and
the start of the next. Only an available officer may start a break, so a
token in service is finished or skipped first. Each check-and-insert runs
under a lock on the officer row so two near-simultaneous starts cannot
both pass.
"""
import logging
import math
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from queue_system.events import emit_officer_status
from queue_system.exceptions import BusinessRuleViolation, ConflictError, NotFoundError
from queue_system.transactions import bounded_atomic, conflict_on_integrity
from queue_system.window import calendar_day

from .models import BreakLog, Officer

logger = logging.getLogger(__name__)


def _policy(name, default):
    return settings.QUEUE_ENGINE.get(name, default)


def _lock_officer(officer_id):
    try:
        return Officer.objects.select_for_update().get(pk=officer_id)
    except Officer.DoesNotExist:
        raise NotFoundError('Officer not found')


def active_break(officer_id):
    return BreakLog.objects.filter(officer_id=officer_id, ended_at__isnull=True).first()


def breaks_on_day(officer_id, now=None):
    start, end = calendar_day(now)
    return list(BreakLog.objects.filter(officer_id=officer_id, started_at__gte=start, started_at__lt=end))


def _minutes_used(breaks):
    return sum(b.duration_minutes for b in breaks if b.ended_at is not None)


def check_can_start(officer_id, now):
    if active_break(officer_id):
        raise ConflictError('Break already in progress')

    cooldown = timedelta(minutes=_policy('BREAK_COOLDOWN_MINUTES', 30))
    last = (
        BreakLog.objects.filter(officer_id=officer_id, ended_at__isnull=False)
        .order_by('-ended_at')
        .first()
    )
    if last is not None:
        elapsed = now - last.ended_at
        if elapsed < cooldown:
            remaining = math.ceil((cooldown - elapsed).total_seconds() / 60)
            raise BusinessRuleViolation(f'Must wait {remaining} more minutes before taking another break')

    today = breaks_on_day(officer_id, now)
    max_breaks = _policy('MAX_BREAKS_PER_DAY', 6)
    if len(today) >= max_breaks:
        raise BusinessRuleViolation(f'Maximum daily breaks reached ({max_breaks} breaks)')

    cap = _policy('MAX_BREAK_MINUTES_PER_DAY', 90)
    if _minutes_used(today) >= cap:
        raise BusinessRuleViolation(f'Daily break time limit reached ({cap} minutes)')


def start_break(officer_id, now=None):
    now = now or timezone.now()
    with conflict_on_integrity('Break already in progress'):
        with bounded_atomic():
            officer = _lock_officer(officer_id)
            try:
                if officer.status in (Officer.SERVING, Officer.OFFLINE):
                    raise BusinessRuleViolation(f'Officer is {officer.status} and cannot start a break')
                check_can_start(officer.pk, now)
            except (BusinessRuleViolation, ConflictError) as e:
                logger.info('Break refused for officer %s: %s', officer.pk, e.message)
                raise
            brk = BreakLog.objects.create(officer=officer, started_at=now)
            officer.status = Officer.ON_BREAK
            officer.save(update_fields=['status'])
            emit_officer_status(officer, now)
    return brk


def end_break(officer_id, now=None):
    """Close the officer's running break; its `duration_minutes` is the result."""
    now = now or timezone.now()
    with bounded_atomic():
        officer = _lock_officer(officer_id)
        brk = BreakLog.objects.select_for_update().filter(officer=officer, ended_at__isnull=True).first()
        if brk is None:
            raise BusinessRuleViolation('No active break found')
        brk.ended_at = now
        brk.save(update_fields=['ended_at'])
        officer.status = Officer.AVAILABLE
        officer.save(update_fields=['status'])
        emit_officer_status(officer, now)

    logger.info('Officer %s back from a %s minute break', officer.pk, brk.duration_minutes)
    return brk


def break_summary(officer_id, now=None):
    now = now or timezone.now()
    today = breaks_on_day(officer_id, now)
    used = _minutes_used(today)
    max_breaks = _policy('MAX_BREAKS_PER_DAY', 6)
    cap = _policy('MAX_BREAK_MINUTES_PER_DAY', 90)
    running = active_break(officer_id)
    return {
        'breaks_taken': len(today),
        'breaks_remaining': max(0, max_breaks - len(today)),
        'minutes_used': used,
        'minutes_remaining': max(0, cap - used),
        'active_break': running,
        'active_minutes': int((now - running.started_at).total_seconds() // 60) if running else None,
    }
