from django.conf import settings
from django.utils import timezone

from officers.models import Officer
from outlets.models import Outlet

from .exceptions import NotFoundError
from .models import Token
from .window import last_reset


def outlet_queue(outlet_id, now=None):
    """Snapshot of an outlet's queue for the current window.

    Returns dict: {
        'waiting': [Token],          # waiting and skipped, by token number
        'in_service': [Token],
        'available_officers': int,
        'total_waiting': int,
    }
    """
    if not Outlet.objects.filter(pk=outlet_id).exists():
        raise NotFoundError('Outlet not found')
    window_start = last_reset(now or timezone.now())
    tokens = Token.objects.filter(outlet_id=outlet_id, created_at__gte=window_start).select_related(
        'customer', 'assigned_officer'
    )
    waiting = list(tokens.filter(status__in=[Token.WAITING, Token.SKIPPED]).order_by('token_number'))
    return {
        'waiting': waiting,
        'in_service': list(tokens.filter(status=Token.IN_SERVICE).order_by('token_number')),
        'available_officers': Officer.objects.filter(outlet_id=outlet_id, status=Officer.AVAILABLE).count(),
        'total_waiting': len(waiting),
    }


def token_position(token_id):
    """Return position and ETA information for a token.

    Returns dict: {
        'token_id': int,
        'token_number': int,
        'status': str,
        'tokens_ahead': int,
        'position': int,
        'eta_minutes': int,
    }
    """
    try:
        token = Token.objects.get(pk=token_id)
    except Token.DoesNotExist:
        raise NotFoundError('Token not found')

    tokens_ahead = Token.objects.filter(
        outlet_id=token.outlet_id,
        window_start=token.window_start,
        status=Token.WAITING,
        token_number__lt=token.token_number,
    ).count()
    per_token = settings.QUEUE_ENGINE.get('MINUTES_PER_TOKEN', 5)

    return {
        'token_id': token.pk,
        'token_number': token.token_number,
        'status': token.status,
        'tokens_ahead': tokens_ahead,
        'position': tokens_ahead + 1,
        'eta_minutes': tokens_ahead * per_token,
    }
