"""Tokens that no online officer at the outlet can serve.

Waiting and skipped tokens are checked against every officer currently
available or serving, using the same service-and-language rule as strict
matching. Tokens without a declared language are never flagged: strict
matching passes over them rather than escalating them.
"""
import logging

from django.utils import timezone

from officers.models import Officer
from outlets.models import Outlet

from .exceptions import NotFoundError
from .matching import can_serve
from .models import Token
from .window import last_reset

logger = logging.getLogger(__name__)


def unmatched_tokens(outlet_id, now=None):
    if not Outlet.objects.filter(pk=outlet_id).exists():
        raise NotFoundError('Outlet not found')

    window_start = last_reset(now or timezone.now())
    tokens = (
        Token.objects.filter(
            outlet_id=outlet_id,
            status__in=[Token.WAITING, Token.SKIPPED],
            created_at__gte=window_start,
        )
        .select_related('customer')
        .order_by('token_number')
    )
    capabilities = [
        (officer.service_set, officer.language_set)
        for officer in Officer.objects.filter(outlet_id=outlet_id, status__in=Officer.ONLINE_STATUSES)
    ]

    unmatched = []
    for token in tokens:
        if not token.service_set or not token.language_set:
            continue
        if any(can_serve(services, languages, token) for services, languages in capabilities):
            continue
        logger.info(
            'Token #%s is unmatched - services: %s, languages: %s',
            token.token_number, ','.join(sorted(token.service_set)), ','.join(sorted(token.language_set)),
        )
        unmatched.append(token)
    return unmatched
