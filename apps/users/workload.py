"""Contractor workload ledger.

Counters on ContractorProfile are moved only through this module. Each
movement is keyed by (contractor, job, kind) in WorkloadEntry, so replaying
a side effect after a retry leaves the counters untouched.
"""
import logging
from decimal import Decimal
from django.db import transaction
from django.db.models import F
from .models import ContractorProfile, WorkloadEntry

logger = logging.getLogger(__name__)


class ContractorWorkloadLedger:

    def record_assignment(self, contractor_id, job_id):
        """Count a newly assigned job as active. Returns False on a replay."""
        with transaction.atomic():
            _, created = WorkloadEntry.objects.get_or_create(
                contractor_id=contractor_id, job_id=job_id, kind='assignment'
            )
            if not created:
                logger.info(f"Assignment of job {job_id} to contractor {contractor_id} already recorded")
                return False
            profile = self._profile(contractor_id)
            ContractorProfile.objects.filter(pk=profile.pk).update(active_projects=F('active_projects') + 1)
        logger.info(f"Contractor {contractor_id} active workload incremented for job {job_id}")
        return True

    def record_completion(self, contractor_id, job_id, amount):
        """Move a job from active to completed and accrue its earnings."""
        amount = Decimal(str(amount or 0))
        with transaction.atomic():
            _, created = WorkloadEntry.objects.get_or_create(
                contractor_id=contractor_id, job_id=job_id, kind='completion',
                defaults={'amount': amount},
            )
            if not created:
                logger.info(f"Completion of job {job_id} by contractor {contractor_id} already recorded")
                return False
            profile = self._profile(contractor_id)
            # active_projects never drops below zero
            ContractorProfile.objects.filter(pk=profile.pk, active_projects__gt=0).update(
                active_projects=F('active_projects') - 1
            )
            ContractorProfile.objects.filter(pk=profile.pk).update(
                completed_projects=F('completed_projects') + 1,
                total_earnings=F('total_earnings') + amount,
            )
        logger.info(f"Contractor {contractor_id} completed job {job_id}, earned {amount}")
        return True

    def stats(self, contractor_id):
        profile = self._profile(contractor_id)
        return {
            'active_projects': profile.active_projects,
            'completed_projects': profile.completed_projects,
            'total_earnings': profile.total_earnings,
        }

    def _profile(self, contractor_id):
        profile, _ = ContractorProfile.objects.get_or_create(user_id=contractor_id)
        return profile
