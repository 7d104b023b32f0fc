from django.db import models


class Customer(models.Model):
    name = models.CharField(max_length=150)
    # canonical local form, 0XXXXXXXXX
    mobile_number = models.CharField(max_length=15, unique=True)
    nic_number = models.CharField(max_length=20, blank=True, null=True)
    email = models.EmailField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.mobile_number})"
