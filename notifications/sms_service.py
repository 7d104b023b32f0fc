"""Customer SMS for completed services.

Provides a Twilio adapter and `send_completion_sms`, the entrypoint used
when a token is completed to text the customer their service reference.

Design decisions:
- Read provider credentials only from environment variables.
- Normalise Sri Lankan numbers (0XXXXXXXXX) to E.164 (+94XXXXXXXXX).
- Do not raise on provider errors; record results to `SMSLog`.
- Background send so the state transition never waits on the provider.
"""
import os
import threading
import logging
from typing import Optional

import requests
from twilio.rest import Client

logger = logging.getLogger(__name__)


def _get_env(name: str) -> Optional[str]:
    return os.environ.get(name)


class _ProviderError(Exception):
    pass


class TwilioAdapter:
    def __init__(self):
        self.account_sid = _get_env('SMS_ACCOUNT_SID')
        self.auth_token = _get_env('SMS_AUTH_TOKEN')
        self.from_number = _get_env('SMS_FROM_NUMBER')
        if not (self.account_sid and self.auth_token and self.from_number):
            raise _ProviderError('Missing SMS provider credentials in env')
        # 'rest' posts to the HTTP API directly instead of using the SDK client
        self.transport = (_get_env('SMS_TRANSPORT') or 'sdk').lower()
        self._client = Client(self.account_sid, self.auth_token) if self.transport == 'sdk' else None

    def _uses_messaging_service(self) -> bool:
        return self.from_number.upper().startswith('MG')

    def send(self, to_number: str, body: str) -> dict:
        if self._client is not None:
            try:
                if self._uses_messaging_service():
                    msg = self._client.messages.create(body=body, messaging_service_sid=self.from_number, to=to_number)
                else:
                    msg = self._client.messages.create(body=body, from_=self.from_number, to=to_number)
                return {'sid': getattr(msg, 'sid', None), 'status': getattr(msg, 'status', None)}
            except Exception as e:
                raise _ProviderError(str(e))

        url = f'https://api.twilio.com/2010-04-01/Accounts/{self.account_sid}/Messages.json'
        if self._uses_messaging_service():
            payload = {'MessagingServiceSid': self.from_number, 'To': to_number, 'Body': body}
        else:
            payload = {'From': self.from_number, 'To': to_number, 'Body': body}
        try:
            r = requests.post(url, data=payload, auth=(self.account_sid, self.auth_token), timeout=10)
        except requests.RequestException as e:
            raise _ProviderError(str(e))
        if r.status_code >= 400:
            raise _ProviderError(f'HTTP {r.status_code}: {r.text}')
        return r.json()


def format_e164(phone: str) -> Optional[str]:
    """Format a canonical local number (0XXXXXXXXX) as +94XXXXXXXXX.

    Returns None if the number cannot be formatted.
    """
    if not phone:
        return None
    digits = ''.join(c for c in phone if c.isdigit())
    if len(digits) == 10 and digits.startswith('0'):
        return f'+94{digits[1:]}'
    if len(digits) == 9:
        return f'+94{digits}'
    if digits.startswith('94') and len(digits) == 11:
        return f'+{digits}'
    return None


def completion_message(token) -> str:
    services = ', '.join(token.service_types or [])
    officer = token.assigned_officer.name if token.assigned_officer_id else 'Officer'
    return (
        f"Ref: {token.reference_number} | Officer: {officer} | "
        f"Outlet: {token.outlet.name} | Services: {services}"
    )


def _background_send(log_obj, to_number: str, body: str):
    """Background worker that calls provider and updates SMSLog. Never raises."""
    simulate = os.environ.get('SMS_SIMULATE', '').lower() in ('1', 'true', 'yes')
    try:
        provider = TwilioAdapter()
    except _ProviderError as e:
        if simulate:
            log_obj.success = True
            log_obj.provider_id = 'SIMULATED'
            log_obj.details = f'Simulated send: {e}'
            log_obj.save()
            logger.info('Simulated SMS to %s for token %s', to_number, log_obj.token_id)
            return
        logger.warning('SMS provider unavailable: %s', e)
        log_obj.success = False
        log_obj.details = str(e)
        log_obj.save()
        return

    try:
        resp = provider.send(to_number, body)
        log_obj.success = True
        log_obj.provider_id = resp.get('sid') if isinstance(resp, dict) else None
        log_obj.details = str(resp)
        log_obj.save()
        logger.info('SMS sent to %s for token %s', to_number, log_obj.token_id)
    except Exception as e:
        logger.exception('SMS send failed for %s: %s', to_number, e)
        log_obj.success = False
        log_obj.details = str(e)
        log_obj.save()


def send_completion_sms(token, background=True):
    """Text the customer the reference for a completed token.

    Creates the `SMSLog` row immediately and returns it (or None when the
    number cannot be formatted or the event was already texted). Never raises.
    """
    from notifications.models import SMSLog

    try:
        formatted = format_e164(token.customer.mobile_number)
        if not formatted:
            logger.info('No usable mobile number for token %s', token.pk)
            return None

        body = completion_message(token)
        log, created = SMSLog.objects.get_or_create(
            token_id=token.pk,
            event_type='token_completed',
            defaults={'phone_number': formatted, 'message': body[:320]},
        )
        if not created:
            return None
    except Exception:
        logger.exception('Could not record completion SMS for token %s', token.pk)
        return None

    if background:
        thread = threading.Thread(target=_background_send, args=(log, formatted, body), daemon=True)
        thread.start()
    else:
        _background_send(log, formatted, body)
    return log
