import logging

from officers.models import Officer
from queue_system.exceptions import CapacityError, NotFoundError, ValidationError
from queue_system.transactions import bounded_atomic

logger = logging.getLogger(__name__)


def assign_counter(officer_id, counter_number):
    """Seat an officer at a counter of their outlet. None clears the assignment."""
    if counter_number is not None:
        if isinstance(counter_number, bool) or not isinstance(counter_number, int) or counter_number < 0:
            raise ValidationError('counterNumber must be a non-negative integer')

    with bounded_atomic():
        try:
            officer = Officer.objects.select_for_update().select_related('outlet').get(pk=officer_id)
        except Officer.DoesNotExist:
            raise NotFoundError('Officer not found')
        capacity = officer.outlet.counter_count or 0
        if counter_number is not None and counter_number > capacity:
            raise CapacityError(
                f'Counter number {counter_number} exceeds available counters ({capacity}) for this outlet'
            )
        officer.counter_number = counter_number
        officer.save(update_fields=['counter_number'])
    return officer


def clear_counter_assignments():
    """Unseat every officer in one UPDATE; returns how many were seated."""
    cleared = Officer.objects.filter(counter_number__isnull=False).update(counter_number=None)
    logger.info('Cleared counter assignments for %s officers', cleared)
    return cleared
