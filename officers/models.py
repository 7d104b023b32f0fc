from django.db import models
from django.db.models import Q

from outlets.models import Outlet
from queue_system.capabilities import to_list, to_set


class Officer(models.Model):
    OFFLINE = 'offline'
    AVAILABLE = 'available'
    SERVING = 'serving'
    ON_BREAK = 'on_break'

    STATUS_CHOICES = [
        (OFFLINE, 'Offline'),
        (AVAILABLE, 'Available'),
        (SERVING, 'Serving'),
        (ON_BREAK, 'On Break'),
    ]
    ONLINE_STATUSES = (AVAILABLE, SERVING)

    name = models.CharField(max_length=150)
    mobile_number = models.CharField(max_length=15, unique=True)
    outlet = models.ForeignKey(Outlet, on_delete=models.PROTECT, related_name='officers')
    counter_number = models.IntegerField(null=True, blank=True)
    assigned_services = models.JSONField(default=list, blank=True)
    languages = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=OFFLINE)
    is_training = models.BooleanField(default=False)
    last_login_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"{self.name} at {self.outlet_id} ({self.status})"

    @property
    def service_set(self):
        return to_set(self.assigned_services)

    @property
    def language_set(self):
        return to_set(self.languages)

    def save(self, *args, **kwargs):
        # Capability fields may arrive as lists, JSON strings or mappings.
        self.assigned_services = to_list(self.assigned_services)
        self.languages = to_list(self.languages)
        super().save(*args, **kwargs)


class BreakLog(models.Model):
    officer = models.ForeignKey(Officer, on_delete=models.CASCADE, related_name='breaks')
    started_at = models.DateTimeField()
    ended_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-started_at']
        constraints = [
            models.UniqueConstraint(
                fields=['officer'],
                condition=Q(ended_at__isnull=True),
                name='one_active_break_per_officer',
            ),
        ]

    def __str__(self):
        return f"Break {self.officer_id} {self.started_at:%H:%M}-{self.ended_at or '...'}"

    @property
    def is_active(self):
        return self.ended_at is None

    @property
    def duration_minutes(self):
        """Whole minutes, rounded down. None while the break is running."""
        if self.ended_at is None:
            return None
        return int((self.ended_at - self.started_at).total_seconds() // 60)
