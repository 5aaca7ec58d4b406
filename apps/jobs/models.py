from decimal import Decimal
from datetime import timedelta
from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db.models import Q
from django.utils import timezone
from core.constants import (
    JOB_STATUS_CHOICES, BID_STATUS_CHOICES, BUDGET_TYPE_CHOICES, WORK_TYPE_CHOICES,
    TIMELINE_FLEXIBILITY_CHOICES, JOB_TRANSITIONS, TERMINAL_JOB_STATUSES,
    ANOTHER_BID_ACCEPTED_NOTE, JOB_CANCELLED_NOTE,
)
from core.exceptions import (
    BidNotFound, BidNotPending, DuplicateBid, InvalidTransition, JobNotOpen,
)
from apps.projects.models import Project


class JobQuerySet(models.QuerySet):

    def open_jobs(self, **filters):
        return self.filter(status='open').matching(**filters)

    def matching(self, city=None, specialization=None, budget_min=None, budget_max=None,
                 work_type=None, search=None):
        query = self
        if city:
            query = query.filter(city__icontains=city)
        if specialization:
            query = query.filter(required_specializations__icontains=specialization)
        if budget_min is not None:
            query = query.filter(budget_max__gte=budget_min)
        if budget_max is not None:
            query = query.filter(budget_min__lte=budget_max)
        if work_type:
            query = query.filter(work_type=work_type)
        if search:
            query = query.filter(Q(title__icontains=search) | Q(description__icontains=search))
        return query

    def posted_by(self, user):
        return self.filter(posted_by=user)

    def bid_on_by(self, contractor):
        return self.filter(bids__contractor=contractor).distinct()

    def assigned_to(self, contractor):
        return self.filter(assigned_contractor=contractor, status__in=['assigned', 'in_progress'])

    def stale(self, now, days):
        """Jobs sitting in assigned/in_progress for longer than ``days``."""
        return self.filter(
            status__in=['assigned', 'in_progress'],
            assigned_at__lt=now - timedelta(days=days),
        )


class Job(models.Model):
    """A work request posted against a project.

    The job is the aggregate root for its bids: bids are loaded into
    ``bid_list`` and every bid mutation goes through a method here, so the
    single-winner rules are checked in one place. JobRepository persists the
    job row and the touched bids together.
    """
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='jobs')
    posted_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='posted_jobs')
    title = models.CharField(max_length=200)
    description = models.TextField(max_length=3000, blank=True, default='')

    budget_min = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True,
                                     validators=[MinValueValidator(0)])
    budget_max = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True,
                                     validators=[MinValueValidator(0)])
    budget_currency = models.CharField(max_length=3, default='INR')
    budget_type = models.CharField(max_length=20, choices=BUDGET_TYPE_CHOICES, default='fixed')

    required_specializations = models.CharField(max_length=500, blank=True, default='')

    address = models.CharField(max_length=255, blank=True, default='')
    city = models.CharField(max_length=100, blank=True, default='')
    state = models.CharField(max_length=100, blank=True, default='')
    pincode = models.CharField(max_length=20, blank=True, default='')

    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    duration = models.CharField(max_length=100, blank=True, default='')
    flexibility = models.CharField(max_length=20, choices=TIMELINE_FLEXIBILITY_CHOICES, default='flexible')

    work_type = models.CharField(max_length=30, choices=WORK_TYPE_CHOICES, default='specific_task')
    requirements = models.JSONField(default=list, blank=True)

    status = models.CharField(max_length=20, choices=JOB_STATUS_CHOICES, default='open')
    accepted_bid = models.ForeignKey('Bid', on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    assigned_contractor = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='assigned_jobs'
    )
    assigned_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True, default='')

    view_count = models.PositiveIntegerField(default=0)
    bid_count = models.PositiveIntegerField(default=0)
    # Bumped by every repository save; a stale version means a lost race.
    version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = JobQuerySet.as_manager()

    _bid_cache = None
    _touched_bids = None

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status']),
            models.Index(fields=['city']),
            models.Index(fields=['-created_at']),
        ]

    def __str__(self):
        return f"{self.title} - {self.posted_by.username}"

    # --- read helpers -------------------------------------------------

    @property
    def bid_list(self):
        if self._bid_cache is None:
            # sorted in Python so a prefetch_related('bids') is reused
            self._bid_cache = sorted(self.bids.all(), key=lambda b: (b.submitted_at, b.pk)) if self.pk else []
        return self._bid_cache

    @property
    def is_terminal(self):
        return self.status in TERMINAL_JOB_STATUSES

    @property
    def specialization_list(self):
        return [s.strip() for s in self.required_specializations.split(',') if s.strip()]

    @property
    def budget_display(self):
        if self.budget_min and self.budget_max:
            return f"{self.budget_currency} {self.budget_min:,.0f} - {self.budget_max:,.0f}"
        if self.budget_min:
            return f"{self.budget_currency} {self.budget_min:,.0f}+"
        if self.budget_max:
            return f"Up to {self.budget_currency} {self.budget_max:,.0f}"
        return 'Negotiable'

    @property
    def accepted_bid_amount(self):
        for bid in self.bid_list:
            if bid.pk == self.accepted_bid_id:
                return bid.amount
        return Decimal('0')

    def bid_summary(self):
        summary = {'total': len(self.bid_list), 'pending': 0, 'accepted': 0, 'rejected': 0, 'withdrawn': 0}
        for bid in self.bid_list:
            summary[bid.status] += 1
        return summary

    def is_poster_or_admin(self, user):
        return user.pk == self.posted_by_id or user.is_admin

    def get_bid(self, bid_id):
        for bid in self.bid_list:
            if str(bid.pk) == str(bid_id):
                return bid
        raise BidNotFound()

    def active_bid_for(self, contractor_id):
        for bid in self.bid_list:
            if bid.contractor_id == contractor_id and bid.status != 'withdrawn':
                return bid
        return None

    def invariant_violations(self):
        """Return single-winner violations (empty = OK)."""
        errors = []
        accepted = [b for b in self.bid_list if b.status == 'accepted']
        if len(accepted) > 1:
            errors.append(f"Job {self.pk} has {len(accepted)} accepted bids")
        if (self.assigned_contractor_id is not None) != (len(accepted) == 1):
            errors.append(f"Job {self.pk} assigned contractor does not match its accepted bids")
        elif accepted and accepted[0].contractor_id != self.assigned_contractor_id:
            errors.append(f"Job {self.pk} is assigned to someone other than the accepted bidder")
        return errors

    # --- mutations ----------------------------------------------------

    def transition_to(self, target):
        allowed = JOB_TRANSITIONS.get(self.status, set())
        if target not in allowed:
            allowed_str = ", ".join(sorted(allowed))
            raise InvalidTransition(
                f"Invalid job transition: {self.status} -> {target}. "
                f"Allowed from {self.status}: [{allowed_str}]"
            )
        self.status = target

    def add_bid(self, contractor_id, amount, proposal, estimated_duration='', now=None):
        if self.status != 'open':
            raise JobNotOpen()
        if self.active_bid_for(contractor_id) is not None:
            raise DuplicateBid()
        bid = Bid(
            job=self,
            contractor_id=contractor_id,
            amount=amount,
            proposal=proposal,
            estimated_duration=estimated_duration or '',
            submitted_at=now or timezone.now(),
        )
        self.bid_list.append(bid)
        self._touch(bid)
        self.bid_count = len(self.bid_list)
        return bid

    def revise_bid(self, bid, amount=None, proposal=None, estimated_duration=None):
        bid.ensure_pending()
        if amount is not None:
            bid.amount = amount
        if proposal:
            bid.proposal = proposal
        if estimated_duration:
            bid.estimated_duration = estimated_duration
        self._touch(bid)
        return bid

    def withdraw_bid(self, bid):
        bid.ensure_pending()
        bid.status = 'withdrawn'
        self._touch(bid)
        return bid

    def reject_bid(self, bid, note='', now=None):
        bid.respond('rejected', note, now or timezone.now())
        self._touch(bid)
        return bid

    def accept_bid(self, bid, note='', now=None):
        """Accept ``bid`` and reject every other pending bid.

        Returns the bids rejected by the cascade.
        """
        if self.status not in ('open', 'in_review'):
            raise InvalidTransition(f"Cannot accept a bid while the job is {self.status}")
        bid.ensure_pending()
        now = now or timezone.now()

        cascaded = []
        for other in self.bid_list:
            if other is bid or other.status != 'pending':
                continue
            other.respond('rejected', ANOTHER_BID_ACCEPTED_NOTE, now)
            self._touch(other)
            cascaded.append(other)
        bid.respond('accepted', note, now)
        self._touch(bid)

        self.transition_to('assigned')
        self.accepted_bid = bid
        self.assigned_contractor_id = bid.contractor_id
        self.assigned_at = now
        return cascaded

    def start(self):
        self.transition_to('in_progress')

    def complete(self, now=None):
        self.transition_to('completed')
        self.completed_at = now or timezone.now()

    def cancel(self, reason, now=None):
        """Cancel the job and reject its pending bids. Returns those bids."""
        self.transition_to('cancelled')
        self.cancellation_reason = reason
        now = now or timezone.now()
        cascaded = []
        for bid in self.bid_list:
            if bid.status == 'pending':
                bid.respond('rejected', JOB_CANCELLED_NOTE, now)
                self._touch(bid)
                cascaded.append(bid)
        return cascaded

    def drain_bid_writes(self):
        touched, self._touched_bids = self._touched_bids or [], []
        return touched

    def _touch(self, bid):
        if self._touched_bids is None:
            self._touched_bids = []
        if not any(b is bid for b in self._touched_bids):
            self._touched_bids.append(bid)


class Bid(models.Model):
    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name='bids')
    contractor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='bids')
    amount = models.DecimalField(max_digits=14, decimal_places=2, validators=[MinValueValidator(0)])
    proposal = models.TextField(max_length=2000)
    estimated_duration = models.CharField(max_length=100, blank=True, default='')
    status = models.CharField(max_length=20, choices=BID_STATUS_CHOICES, default='pending')
    submitted_at = models.DateTimeField(default=timezone.now)
    responded_at = models.DateTimeField(null=True, blank=True)
    response_note = models.TextField(blank=True, default='')

    class Meta:
        ordering = ['submitted_at', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['job', 'contractor'],
                condition=~Q(status='withdrawn'),
                name='unique_active_bid_per_contractor',
            ),
        ]

    def __str__(self):
        return f"Bid by {self.contractor.username} on {self.job.title} ({self.status})"

    def ensure_pending(self):
        if self.status != 'pending':
            raise BidNotPending(f"Bid {self.pk} is already {self.status}")

    def respond(self, status, note, now):
        self.ensure_pending()
        self.status = status
        self.responded_at = now
        self.response_note = note or ''
