"""Registration QR tokens.

Outlet managers print a QR code that embeds a random token; a customer
registration is authorised only when it presents a live token for the same
outlet. The registry owns the token lifetime and is built on Django's cache
framework, so tokens live as long as the configured TTL (or until revoked).
Build one registry at startup and hand it to whoever needs it.
"""
import logging
import secrets

from django.conf import settings
from django.core.cache import caches
from django.utils import timezone

logger = logging.getLogger(__name__)


class RegistrationTokenRegistry:
    key_prefix = 'qr-registration'

    def __init__(self, cache=None, ttl=None):
        self.cache = cache if cache is not None else caches['default']
        if ttl is None:
            ttl = settings.QUEUE_ENGINE.get('QR_TOKEN_TTL_SECONDS', 0)
        # None tells the cache to keep the entry until it is deleted
        self.ttl = ttl or None

    def _key(self, token):
        return f'{self.key_prefix}:{token}'

    def issue(self, outlet_id):
        token = secrets.token_urlsafe(16)
        self.cache.set(
            self._key(token),
            {'outlet_id': outlet_id, 'generated_at': timezone.now().isoformat()},
            timeout=self.ttl,
        )
        logger.info('Issued registration QR token for outlet %s', outlet_id)
        return token

    def lookup(self, token):
        if not token:
            return None
        return self.cache.get(self._key(token))

    def validate(self, token, outlet_id):
        data = self.lookup(token)
        return bool(data) and data['outlet_id'] == outlet_id

    def revoke(self, token):
        self.cache.delete(self._key(token))
