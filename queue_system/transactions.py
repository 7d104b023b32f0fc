"""Transaction helpers shared by the queue operations."""
import logging
from contextlib import contextmanager

from django.conf import settings
from django.db import IntegrityError, OperationalError, connection, transaction

from .exceptions import ConflictError, TransactionTimeoutError

logger = logging.getLogger(__name__)

_TIMEOUT_MARKERS = (
    'lock timeout',
    'statement timeout',
    'canceling statement',
    'database is locked',
)


def timeout_seconds():
    return settings.QUEUE_ENGINE.get('TRANSACTION_TIMEOUT_SECONDS', 10)


def _is_timeout(exc):
    text = str(exc).lower()
    return any(marker in text for marker in _TIMEOUT_MARKERS)


@contextmanager
def bounded_atomic(seconds=None):
    """`transaction.atomic()` that gives up after `seconds`.

    On PostgreSQL the bound is applied with SET LOCAL so it ends with the
    transaction. SQLite applies its own busy timeout from the connection
    options. Either way a timeout surfaces as TransactionTimeoutError and the
    transaction is rolled back, leaving no partial rows.
    """
    seconds = seconds or timeout_seconds()
    try:
        with transaction.atomic():
            if connection.vendor == 'postgresql':
                ms = int(seconds * 1000)
                with connection.cursor() as cursor:
                    cursor.execute(f"SET LOCAL lock_timeout = '{ms}ms'")
                    cursor.execute(f"SET LOCAL statement_timeout = '{ms}ms'")
            yield
    except OperationalError as e:
        if _is_timeout(e):
            logger.warning('Transaction exceeded %ss: %s', seconds, e)
            raise TransactionTimeoutError(f'Transaction exceeded {seconds}s, retry the operation') from e
        raise


@contextmanager
def conflict_on_integrity(message, token_number=None):
    """Re-raise a unique-constraint violation from a concurrent writer as ConflictError."""
    try:
        yield
    except IntegrityError as e:
        logger.info('Integrity conflict: %s', e)
        raise ConflictError(message, token_number=token_number) from e
