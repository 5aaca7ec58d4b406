"""Job-level transitions: accept, start, complete, cancel.

The authoritative change is always a single JobRepository.save. Workload
counters, the project's contractor assignment and notifications are queued
with ``transaction.on_commit`` afterwards; they are logged and swallowed on
failure and can never roll the transition back.

Two acceptances racing on one job cannot both win: the loser either loads
the already-assigned job and gets InvalidTransition, or saves against a
stale version and gets Conflict.
"""
import logging
from django.utils import timezone
from core.exceptions import InvalidInput, InvalidTransition, NotAssignee, NotPoster
from core.utils import run_after_commit
from apps.notifications.dispatcher import NotificationDispatcher
from apps.projects.registry import ProjectRegistry
from apps.users.workload import ContractorWorkloadLedger
from .repository import JobRepository

logger = logging.getLogger(__name__)


class AssignmentCoordinator:

    def __init__(self, repository=None, workload=None, projects=None, dispatcher=None, clock=timezone.now):
        self.repository = repository or JobRepository()
        self.workload = workload or ContractorWorkloadLedger()
        self.projects = projects or ProjectRegistry()
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.clock = clock

    def accept_bid(self, job_id, bid_id, poster, note=''):
        job = self.repository.load(job_id)
        self._ensure_not_terminal(job)
        if not job.is_poster_or_admin(poster):
            raise NotPoster("You can only accept bids on your own jobs")
        bid = job.get_bid(bid_id)
        cascaded = job.accept_bid(bid, note or '', now=self.clock())
        self.repository.save(job)
        logger.info(
            f"User {poster.pk} accepted bid {bid.pk} on job {job.pk}; "
            f"contractor {bid.contractor_id} assigned, {len(cascaded)} other bids rejected"
        )

        run_after_commit(self.workload.record_assignment, bid.contractor_id, job.pk,
                         description=f"workload assignment for job {job.pk}")
        run_after_commit(self.projects.assign_contractor, job.project_id, bid.contractor_id,
                         description=f"project contractor for job {job.pk}")
        base = self._payload(job)
        self.dispatcher.notify_after_commit(
            bid.contractor_id, 'bid-accepted', {**base, 'bid_id': bid.pk, 'amount': bid.amount, 'note': note or ''}
        )
        for other in cascaded:
            self.dispatcher.notify_after_commit(
                other.contractor_id, 'bid-rejected', {**base, 'bid_id': other.pk, 'note': other.response_note}
            )
        return job, bid

    def start_job(self, job_id, contractor):
        job = self.repository.load(job_id)
        self._ensure_not_terminal(job)
        self._ensure_assignee(job, contractor)
        if job.status != 'assigned':
            raise InvalidTransition("Job must be in assigned status to start")
        job.start()
        self.repository.save(job)
        logger.info(f"Contractor {contractor.pk} started job {job.pk}")

        self.dispatcher.notify_after_commit(
            job.posted_by_id, 'job-started', {**self._payload(job), 'contractor_name': contractor.display_name}
        )
        return job

    def complete_job(self, job_id, contractor):
        job = self.repository.load(job_id)
        self._ensure_not_terminal(job)
        self._ensure_assignee(job, contractor)
        if job.status != 'in_progress':
            raise InvalidTransition("Job must be in progress to complete")
        job.complete(now=self.clock())
        self.repository.save(job)
        amount = job.accepted_bid_amount
        logger.info(f"Contractor {contractor.pk} completed job {job.pk} for {amount}")

        run_after_commit(self.workload.record_completion, contractor.pk, job.pk, amount,
                         description=f"workload completion for job {job.pk}")
        self.dispatcher.notify_after_commit(
            job.posted_by_id, 'job-completed', {**self._payload(job), 'contractor_name': contractor.display_name}
        )
        return job

    def cancel_job(self, job_id, poster, reason):
        reason = (reason or '').strip()
        job = self.repository.load(job_id)
        self._ensure_not_terminal(job)
        if not job.is_poster_or_admin(poster):
            raise NotPoster("You can only cancel your own jobs")
        if not reason:
            raise InvalidInput("A cancellation reason is required")
        if job.status in ('assigned', 'in_progress'):
            raise InvalidTransition("Cannot cancel a job that has been assigned or is in progress")
        cascaded = job.cancel(reason, now=self.clock())
        self.repository.save(job)
        logger.info(f"User {poster.pk} cancelled job {job.pk}: {reason}")

        payload = {**self._payload(job), 'reason': reason}
        for bid in cascaded:
            self.dispatcher.notify_after_commit(bid.contractor_id, 'job-cancelled', payload)
        return job

    def assignment_for(self, job_id):
        """Current assignment of a job, read fresh from storage."""
        job = self.repository.load(job_id)
        return {
            'job_id': job.pk,
            'project_id': job.project_id,
            'poster_id': job.posted_by_id,
            'contractor_id': job.assigned_contractor_id,
            'status': job.status,
        }

    def _ensure_not_terminal(self, job):
        if job.is_terminal:
            raise InvalidTransition(f"Job {job.pk} is {job.status} and can no longer change")

    def _ensure_assignee(self, job, contractor):
        if job.assigned_contractor_id is None or job.assigned_contractor_id != contractor.pk:
            raise NotAssignee()

    def _payload(self, job):
        return {
            'job_id': job.pk,
            'job_title': job.title,
            'project_id': job.project_id,
            'link': f"/jobs/{job.pk}/",
        }
