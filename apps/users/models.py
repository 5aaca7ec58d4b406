from decimal import Decimal
from django.db import models
from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.utils import timezone
from core.constants import USER_ROLE_CHOICES, WORKLOAD_ENTRY_KIND_CHOICES


class User(AbstractUser):
    email = models.EmailField(blank=True, null=True, unique=True)
    phone_number = models.CharField(max_length=15, blank=True, null=True, unique=True)
    role = models.CharField(max_length=20, choices=USER_ROLE_CHOICES, default='customer')

    @property
    def is_customer(self):
        return self.role == 'customer'

    @property
    def is_contractor(self):
        return self.role == 'contractor'

    @property
    def is_admin(self):
        return self.role == 'admin' or self.is_superuser

    @property
    def display_name(self):
        full_name = self.get_full_name()
        return full_name or self.username


class ContractorProfile(models.Model):
    """Contractor details plus the workload counters kept by the workload ledger."""
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='contractor_profile')
    company = models.CharField(max_length=200, blank=True, default='')
    specializations = models.JSONField(default=list, blank=True)
    location = models.CharField(max_length=100, blank=True, null=True)
    active_projects = models.PositiveIntegerField(default=0)
    completed_projects = models.PositiveIntegerField(default=0)
    total_earnings = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    join_date = models.DateTimeField(default=timezone.now)

    def __str__(self):
        return f"Contractor: {self.user.username}"


class WorkloadEntry(models.Model):
    """One applied workload movement; the unique key makes replays no-ops."""
    contractor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='workload_entries')
    job_id = models.BigIntegerField()
    kind = models.CharField(max_length=20, choices=WORKLOAD_ENTRY_KIND_CHOICES)
    amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['contractor', 'job_id', 'kind'], name='unique_workload_entry'),
        ]

    def __str__(self):
        return f"{self.kind} for job {self.job_id} ({self.contractor.username})"
