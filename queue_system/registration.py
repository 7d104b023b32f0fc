"""Customer registration and token issue.

Registration runs as one transaction that locks the outlet row, so
concurrent registrations at the same outlet are serialised. The outlet lock
makes the duplicate check and the next-number read consistent with any
insert committing at the same time. The database constraints on `Token`
catch anything that slips past, and those violations come back as
ConflictError.
"""
import logging

from django.db.models import Max
from django.utils import timezone

from accounts.forms import TokenRegistrationForm
from accounts.models import Customer
from notifications.publisher import NEW_TOKEN
from outlets.models import Outlet

from .events import emit_token_event
from .exceptions import ConflictError, NotFoundError, ValidationError
from .models import Token
from .transactions import bounded_atomic, conflict_on_integrity
from .window import last_reset

logger = logging.getLogger(__name__)


def _clean(data):
    form = TokenRegistrationForm(data=data)
    if not form.is_valid():
        errors = {field: [str(m) for m in messages] for field, messages in form.errors.items()}
        raise ValidationError('Missing or invalid registration fields', errors=errors)
    return form.cleaned_data


def _find_or_update_customer(cleaned):
    customer, created = Customer.objects.get_or_create(
        mobile_number=cleaned['mobile_number'],
        defaults={
            'name': cleaned['name'],
            'nic_number': cleaned.get('nic_number') or None,
            'email': cleaned.get('email') or None,
        },
    )
    if not created:
        customer.name = cleaned['name']
        customer.nic_number = cleaned.get('nic_number') or customer.nic_number
        customer.email = cleaned.get('email') or customer.email
        customer.save(update_fields=['name', 'nic_number', 'email', 'updated_at'])
    return customer


def next_token_number(outlet, window_start):
    agg = Token.objects.filter(outlet=outlet, created_at__gte=window_start).aggregate(max_token=Max('token_number'))
    return (agg.get('max_token') or 0) + 1


def register_customer(name, mobile_number, outlet_id, service_types, languages=None,
                      authorized=False, nic_number=None, email=None, now=None):
    """Find or create the customer and issue them a waiting token.

    `authorized` is the outcome of the QR/OTP gate checked by the caller.
    Raises ValidationError, NotFoundError, ConflictError (with the number of
    the customer's existing active token) or TransactionTimeoutError.
    """
    if not authorized:
        raise ValidationError('QR verification required')

    cleaned = _clean({
        'name': name,
        'mobile_number': mobile_number,
        'outlet_id': outlet_id,
        'service_types': service_types,
        'preferred_languages': languages,
        'nic_number': nic_number,
        'email': email,
    })

    now = now or timezone.now()
    window_start = last_reset(now)

    with conflict_on_integrity('Customer already has an active token at this outlet'):
        with bounded_atomic():
            try:
                outlet = Outlet.objects.select_for_update().get(pk=cleaned['outlet_id'], is_active=True)
            except Outlet.DoesNotExist:
                raise NotFoundError('Outlet not found or inactive')

            existing = (
                Token.objects.filter(
                    outlet=outlet,
                    customer__mobile_number=cleaned['mobile_number'],
                    status__in=Token.ACTIVE_STATUSES,
                    created_at__gte=window_start,
                )
                .order_by('-token_number')
                .first()
            )
            if existing:
                raise ConflictError(
                    f'You already have token #{existing.token_number} at this outlet',
                    token_number=existing.token_number,
                )

            customer = _find_or_update_customer(cleaned)
            token = Token.objects.create(
                outlet=outlet,
                customer=customer,
                token_number=next_token_number(outlet, window_start),
                status=Token.WAITING,
                service_types=cleaned['service_types'],
                preferred_languages=cleaned['preferred_languages'],
                window_start=window_start,
                created_at=now,
            )
            emit_token_event(NEW_TOKEN, token)

    logger.info('Issued token #%s at outlet %s', token.token_number, outlet.pk)
    return token
