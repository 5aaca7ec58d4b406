"""
Replay workload and project-assignment side effects for assigned jobs.

Accepting and completing a job moves contractor counters and the project's
contractor after the job itself is committed. If one of those steps failed,
this command re-applies it. Workload entries are keyed by (contractor, job,
kind), so jobs that are already consistent are left alone and the command
can run as often as needed.
"""

from django.core.management.base import BaseCommand
from apps.jobs.models import Job
from apps.projects.registry import ProjectRegistry
from apps.users.models import WorkloadEntry
from apps.users.workload import ContractorWorkloadLedger


class Command(BaseCommand):
    help = 'Re-apply missing workload counters and project contractors for assigned jobs'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List jobs with missing side effects without repairing them'
        )

    def handle(self, *args, **options):
        dry_run = options.get('dry_run')
        ledger = ContractorWorkloadLedger()
        registry = ProjectRegistry()

        jobs = (
            Job.objects.filter(status__in=('assigned', 'in_progress', 'completed'), assigned_contractor__isnull=False)
            .select_related('project')
            .prefetch_related('bids')
            .order_by('pk')
        )
        checked = assignments = completions = projects = 0
        for job in jobs:
            checked += 1
            contractor_id = job.assigned_contractor_id
            recorded = set(
                WorkloadEntry.objects.filter(contractor_id=contractor_id, job_id=job.pk).values_list('kind', flat=True)
            )

            # a completion already moved the job out of active work
            if 'completion' not in recorded:
                if 'assignment' not in recorded:
                    self.stdout.write(f"Job {job.pk}: assignment to contractor {contractor_id} not recorded")
                    if dry_run or ledger.record_assignment(contractor_id, job.pk):
                        assignments += 1
                if job.status == 'completed':
                    self.stdout.write(f"Job {job.pk}: completion by contractor {contractor_id} not recorded")
                    if dry_run or ledger.record_completion(contractor_id, job.pk, job.accepted_bid_amount):
                        completions += 1

            if job.project.contractor_id is None:
                self.stdout.write(f"Job {job.pk}: project {job.project_id} has no contractor")
                if dry_run or registry.assign_contractor(job.project_id, contractor_id):
                    projects += 1

        if not (assignments or completions or projects):
            self.stdout.write(self.style.SUCCESS(f"Workload is consistent for {checked} job(s)"))
            return

        summary = (
            f"{assignments} assignment(s), {completions} completion(s), "
            f"{projects} project contractor(s) across {checked} job(s)"
        )
        if dry_run:
            self.stdout.write(self.style.WARNING(f"Would repair {summary}"))
        else:
            self.stdout.write(self.style.SUCCESS(f"Repaired {summary}"))
