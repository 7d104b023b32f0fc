from django.db import models
from django.db.models import Q
from django.utils import timezone

from accounts.models import Customer
from officers.models import Officer
from outlets.models import Outlet

from .capabilities import to_list, to_set


class Token(models.Model):
    WAITING = 'waiting'
    IN_SERVICE = 'in_service'
    SKIPPED = 'skipped'
    COMPLETED = 'completed'

    STATUS_CHOICES = [
        (WAITING, 'Waiting'),
        (IN_SERVICE, 'In Service'),
        (SKIPPED, 'Skipped'),
        (COMPLETED, 'Completed'),
    ]
    ACTIVE_STATUSES = (WAITING, IN_SERVICE)

    outlet = models.ForeignKey(Outlet, on_delete=models.PROTECT, related_name='tokens')
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='tokens')
    token_number = models.IntegerField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=WAITING)
    service_types = models.JSONField(default=list)
    preferred_languages = models.JSONField(default=list, blank=True)
    is_priority = models.BooleanField(default=False)
    assigned_officer = models.ForeignKey(
        Officer, null=True, blank=True, on_delete=models.SET_NULL, related_name='tokens'
    )
    counter_number = models.IntegerField(null=True, blank=True)
    # The reset boundary this token was issued under; numbering restarts per window.
    window_start = models.DateTimeField()
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    called_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    reference_number = models.CharField(max_length=200, blank=True, null=True, unique=True)
    account_ref = models.CharField(max_length=100, blank=True, null=True)

    class Meta:
        ordering = ['token_number']
        constraints = [
            models.UniqueConstraint(
                fields=['outlet', 'window_start', 'token_number'],
                name='unique_token_number_per_outlet_window',
            ),
            models.UniqueConstraint(
                fields=['customer', 'outlet', 'window_start'],
                condition=Q(status__in=['waiting', 'in_service']),
                name='one_active_token_per_customer_outlet',
            ),
        ]
        indexes = [
            models.Index(fields=['outlet', 'status', 'created_at'], name='token_outlet_status_idx'),
        ]

    def __str__(self):
        return f"Token {self.token_number} ({self.status}) at {self.outlet_id}"

    @property
    def service_set(self):
        return to_set(self.service_types)

    @property
    def language_set(self):
        return to_set(self.preferred_languages)

    def save(self, *args, **kwargs):
        self.service_types = to_list(self.service_types)
        self.preferred_languages = to_list(self.preferred_languages)
        super().save(*args, **kwargs)


class Alert(models.Model):
    LONG_WAIT = 'long_wait'

    TYPE_CHOICES = [
        (LONG_WAIT, 'Long Wait'),
    ]

    type = models.CharField(max_length=32, choices=TYPE_CHOICES)
    severity = models.CharField(max_length=16, default='medium')
    message = models.TextField()
    token = models.ForeignKey(Token, on_delete=models.CASCADE, related_name='alerts')
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ('type', 'token')
        ordering = ['-created_at']

    def __str__(self):
        return f"Alert({self.type}, token={self.token_id})"
