"""Error taxonomy shared by every queue operation.

Errors are local to the operation that raised them. `as_dict()` gives the
same envelope for each so callers can render them uniformly.
"""
from typing import Any, Optional


class QueueError(Exception):
    code = 'queue_error'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def as_dict(self) -> dict[str, Any]:
        return {'type': 'error', 'code': self.code, 'message': self.message}


class ValidationError(QueueError):
    """Malformed or missing input. Not retryable without a client fix."""
    code = 'validation_error'

    def __init__(self, message: str, errors: Optional[dict] = None):
        super().__init__(message)
        self.errors = errors or {}

    def as_dict(self):
        data = super().as_dict()
        if self.errors:
            data['errors'] = self.errors
        return data


class ConflictError(QueueError):
    """Duplicate active token, assignment race or break already running."""
    code = 'conflict'

    def __init__(self, message: str, token_number: Optional[int] = None):
        super().__init__(message)
        self.token_number = token_number

    def as_dict(self):
        data = super().as_dict()
        if self.token_number is not None:
            data['token_number'] = self.token_number
        return data


class BusinessRuleViolation(QueueError):
    code = 'business_rule'


class NotFoundError(QueueError):
    code = 'not_found'


class TransactionTimeoutError(QueueError, TimeoutError):
    """The transaction exceeded its time bound; retry the whole operation."""
    code = 'timeout'


class CapacityError(QueueError):
    code = 'capacity'


class NoMatch:
    """Returned by `next_token` when nothing can be served right now."""

    def __init__(self, message: str = 'No tokens match your assigned services and languages right now'):
        self.message = message

    def __bool__(self):
        return False

    def __repr__(self):
        return f'NoMatch({self.message!r})'
