"""Durable storage for Job aggregates.

Writes use optimistic concurrency: the job row is updated with
``WHERE version = <version seen at load>`` and the bids touched since load
are written in the same transaction. When the row count is zero another
writer got there first, the transaction is rolled back and Conflict is
raised, so a half-applied cascade is never visible.
"""
import logging
from django.db import transaction
from django.db.models import F
from django.utils import timezone
from core.exceptions import Conflict, InvalidTransition, JobNotFound
from .models import Job

logger = logging.getLogger(__name__)

# Never copied by a versioned update.
_SKIPPED_FIELDS = ('id', 'version', 'created_at', 'view_count')


class JobRepository:

    def load(self, job_id):
        try:
            job = Job.objects.select_related('project', 'posted_by').get(pk=job_id)
        except (Job.DoesNotExist, ValueError):
            raise JobNotFound()
        job.bid_list  # attach bids in submission order
        return job

    def add(self, job):
        """Insert a new job. Its version starts at 1."""
        job.version = 1
        job.bid_count = 0
        job.save()
        logger.info(f"Job {job.pk} created by user {job.posted_by_id} with status {job.status}")
        return job

    def save(self, job):
        violations = job.invariant_violations()
        if violations:
            raise InvalidTransition("; ".join(violations))

        job.updated_at = timezone.now()
        values = {
            field.attname: getattr(job, field.attname)
            for field in Job._meta.concrete_fields
            if field.attname not in _SKIPPED_FIELDS
        }
        with transaction.atomic():
            updated = Job.objects.filter(pk=job.pk, version=job.version).update(
                version=F('version') + 1, **values
            )
            if not updated:
                logger.warning(f"Stale write rejected for job {job.pk} at version {job.version}")
                raise Conflict()
            for bid in job.drain_bid_writes():
                bid.job_id = job.pk
                bid.save()
        job.version += 1
        return job

    def record_view(self, job_id):
        """Bump the view counter without touching the aggregate version."""
        Job.objects.filter(pk=job_id).update(view_count=F('view_count') + 1)
