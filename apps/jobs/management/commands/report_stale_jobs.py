"""
Report jobs that have been assigned or in progress for too long.

Nothing is changed: the command only lists candidates for follow-up. The
threshold comes from JOB_STALE_AFTER_DAYS unless --days is given.
"""

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from apps.jobs.models import Job


class Command(BaseCommand):
    help = 'List jobs stuck in assigned or in_progress longer than the configured threshold'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            help='Override JOB_STALE_AFTER_DAYS for this run'
        )

    def handle(self, *args, **options):
        days = options.get('days') or settings.JOB_STALE_AFTER_DAYS
        if not days:
            self.stdout.write("Stale-job reporting is disabled (JOB_STALE_AFTER_DAYS is not set)")
            return
        if days < 0:
            raise CommandError("--days must be positive")

        jobs = Job.objects.stale(timezone.now(), days).select_related('assigned_contractor').order_by('assigned_at')
        count = 0
        for job in jobs:
            count += 1
            contractor = job.assigned_contractor.username if job.assigned_contractor else '-'
            self.stdout.write(
                f"Job {job.pk} '{job.title}' {job.status} since {job.assigned_at:%Y-%m-%d} (contractor: {contractor})"
            )

        if count:
            self.stdout.write(self.style.WARNING(f"{count} stale job(s) older than {days} days"))
        else:
            self.stdout.write(self.style.SUCCESS(f"No jobs older than {days} days"))
