"""Payloads for queue events handed to the notification publisher."""
from django.utils import timezone

from notifications.publisher import OFFICER_STATUS_CHANGE, publish_event


def _iso(value):
    return value.isoformat() if value else None


def token_payload(token):
    customer = token.customer
    return {
        'id': token.pk,
        'token_number': token.token_number,
        'status': token.status,
        'outlet_id': token.outlet_id,
        'customer': {'name': customer.name, 'mobile_number': customer.mobile_number},
        'service_types': sorted(token.service_set),
        'preferred_languages': sorted(token.language_set),
        'is_priority': token.is_priority,
        'officer_id': token.assigned_officer_id,
        'counter_number': token.counter_number,
        'reference_number': token.reference_number,
        'created_at': _iso(token.created_at),
        'called_at': _iso(token.called_at),
        'started_at': _iso(token.started_at),
        'completed_at': _iso(token.completed_at),
    }


def emit_token_event(event_type, token):
    publish_event(event_type, token_payload(token))


def emit_officer_status(officer, now=None):
    publish_event(OFFICER_STATUS_CHANGE, {
        'officer_id': officer.pk,
        'outlet_id': officer.outlet_id,
        'status': officer.status,
        'timestamp': _iso(now or timezone.now()),
    })
