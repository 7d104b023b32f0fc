"""Rolling business-day window.

The queue day runs from one reset boundary to the next (noon to noon by
default), not midnight to midnight. Token numbering and waiting-list
visibility are scoped to `created_at >= last_reset(now)`.
"""
from datetime import datetime, time, timedelta

from django.conf import settings
from django.utils import timezone


def _reset_time():
    conf = settings.QUEUE_ENGINE
    return time(conf.get('DAILY_RESET_HOUR', 12), conf.get('DAILY_RESET_MINUTE', 0))


def _boundary_on(day):
    return timezone.make_aware(datetime.combine(day, _reset_time()))


def last_reset(now=None):
    """Most recent reset boundary at or before `now`."""
    now = timezone.localtime(now or timezone.now())
    boundary = _boundary_on(now.date())
    if now < boundary:
        boundary = _boundary_on(now.date() - timedelta(days=1))
    return boundary


def next_reset(now=None):
    """First reset boundary strictly after `now`."""
    now = timezone.localtime(now or timezone.now())
    boundary = _boundary_on(now.date())
    if now >= boundary:
        boundary = _boundary_on(now.date() + timedelta(days=1))
    return boundary


def calendar_day(now=None):
    """Local midnight-to-midnight bounds containing `now`.

    Break quotas are counted per calendar day, not per reset window.
    """
    now = timezone.localtime(now or timezone.now())
    start = timezone.make_aware(datetime.combine(now.date(), time.min))
    end = timezone.make_aware(datetime.combine(now.date() + timedelta(days=1), time.min))
    return start, end
