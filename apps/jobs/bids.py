"""Bid-level rules: who may submit, revise, withdraw and reject bids.

Each operation is one load -> mutate -> save cycle on the Job aggregate.
This layer fires no notifications; callers decide what to announce.
"""
import logging
from decimal import Decimal, InvalidOperation
from django.utils import timezone
from core.exceptions import InvalidInput, NotOwner, NotPoster
from .repository import JobRepository

logger = logging.getLogger(__name__)

MAX_PROPOSAL_LENGTH = 2000
MAX_DURATION_LENGTH = 100


def _clean_amount(amount):
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInput("Bid amount must be a number")
    if value < 0:
        raise InvalidInput("Bid amount must be positive")
    return value


def _clean_text(value, field, limit):
    value = (value or '').strip()
    if len(value) > limit:
        raise InvalidInput(f"{field} cannot exceed {limit} characters")
    return value


class BidLifecycleManager:

    def __init__(self, repository=None, clock=timezone.now):
        self.repository = repository or JobRepository()
        self.clock = clock

    def submit_bid(self, job_id, contractor, amount, proposal, estimated_duration=''):
        if amount is None or amount == '' or not (proposal or '').strip():
            raise InvalidInput("Amount and proposal are required")
        amount = _clean_amount(amount)
        proposal = _clean_text(proposal, 'Proposal', MAX_PROPOSAL_LENGTH)
        estimated_duration = _clean_text(estimated_duration, 'Duration', MAX_DURATION_LENGTH)

        job = self.repository.load(job_id)
        bid = job.add_bid(contractor.pk, amount, proposal, estimated_duration, now=self.clock())
        self.repository.save(job)
        logger.info(f"Contractor {contractor.pk} submitted bid {bid.pk} of {amount} on job {job.pk}")
        return job, bid

    def edit_bid(self, job_id, bid_id, contractor, amount=None, proposal=None, estimated_duration=None):
        job = self.repository.load(job_id)
        bid = job.get_bid(bid_id)
        if bid.contractor_id != contractor.pk:
            raise NotOwner("You can only update your own bids")
        if amount is not None and amount != '':
            amount = _clean_amount(amount)
        else:
            amount = None
        if proposal:
            proposal = _clean_text(proposal, 'Proposal', MAX_PROPOSAL_LENGTH)
        if estimated_duration:
            estimated_duration = _clean_text(estimated_duration, 'Duration', MAX_DURATION_LENGTH)
        job.revise_bid(bid, amount=amount, proposal=proposal, estimated_duration=estimated_duration)
        self.repository.save(job)
        logger.info(f"Contractor {contractor.pk} revised bid {bid.pk} on job {job.pk}")
        return job, bid

    def withdraw_bid(self, job_id, bid_id, contractor):
        job = self.repository.load(job_id)
        bid = job.get_bid(bid_id)
        if bid.contractor_id != contractor.pk:
            raise NotOwner("You can only withdraw your own bids")
        job.withdraw_bid(bid)
        self.repository.save(job)
        logger.info(f"Contractor {contractor.pk} withdrew bid {bid.pk} on job {job.pk}")
        return job, bid

    def reject_bid(self, job_id, bid_id, poster, note=''):
        job = self.repository.load(job_id)
        if not job.is_poster_or_admin(poster):
            raise NotPoster("You can only reject bids on your own jobs")
        bid = job.get_bid(bid_id)
        job.reject_bid(bid, note, now=self.clock())
        self.repository.save(job)
        logger.info(f"User {poster.pk} rejected bid {bid.pk} on job {job.pk}")
        return job, bid
