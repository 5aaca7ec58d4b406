import threading
from decimal import Decimal

import pytest
from django.db import connection

from apps.jobs.assignment import AssignmentCoordinator
from apps.jobs.models import Job, Bid
from apps.jobs.repository import JobRepository
from apps.notifications.dispatcher import NotificationDispatcher
from apps.notifications.models import Notification
from apps.projects.models import Project
from apps.users.models import ContractorProfile
from core.constants import ANOTHER_BID_ACCEPTED_NOTE, JOB_CANCELLED_NOTE
from core.exceptions import (
    BidNotPending, Conflict, InvalidInput, InvalidTransition, NotAssignee, NotPoster,
)
from conftest import FailingTransport, JobFactory


pytestmark = pytest.mark.django_db


def _submit_three(job, bids, *contractors):
    return [
        bids.submit_bid(job.pk, c, Decimal(amount), f'proposal {amount}')[1]
        for c, amount in zip(contractors, ('10000', '9000', '9500'))
    ]


class TestAcceptBid:

    def test_single_winner_cascade(self, open_job, contractor, other_contractor, third_contractor, bids,
                                   coordinator):
        winner, loser, other_loser = _submit_three(open_job, bids, contractor, other_contractor, third_contractor)

        job, bid = coordinator.accept_bid(open_job.pk, winner.pk, open_job.posted_by, 'See you Monday')

        assert job.status == 'assigned'
        assert job.assigned_contractor_id == contractor.pk
        assert job.accepted_bid_id == winner.pk
        assert job.assigned_at is not None
        stored = {b.pk: b for b in Bid.objects.filter(job=open_job)}
        assert stored[winner.pk].status == 'accepted'
        assert stored[winner.pk].response_note == 'See you Monday'
        for loser_bid in (loser, other_loser):
            assert stored[loser_bid.pk].status == 'rejected'
            assert stored[loser_bid.pk].response_note == ANOTHER_BID_ACCEPTED_NOTE

    def test_withdrawn_bids_are_left_alone(self, open_job, contractor, other_contractor, bids, coordinator):
        _, winner = bids.submit_bid(open_job.pk, contractor, Decimal('100'), 'a')
        _, withdrawn = bids.submit_bid(open_job.pk, other_contractor, Decimal('90'), 'b')
        bids.withdraw_bid(open_job.pk, withdrawn.pk, other_contractor)

        coordinator.accept_bid(open_job.pk, winner.pk, open_job.posted_by)

        assert Bid.objects.get(pk=withdrawn.pk).status == 'withdrawn'

    def test_job_in_review_can_be_accepted(self, open_job, contractor, bids, coordinator):
        _, bid = bids.submit_bid(open_job.pk, contractor, Decimal('100'), 'a')
        Job.objects.filter(pk=open_job.pk).update(status='in_review')

        job, _ = coordinator.accept_bid(open_job.pk, bid.pk, open_job.posted_by)
        assert job.status == 'assigned'

    def test_only_poster_or_admin(self, open_job, contractor, other_contractor, marketplace_admin, bids,
                                  coordinator):
        _, bid = bids.submit_bid(open_job.pk, contractor, Decimal('100'), 'a')
        with pytest.raises(NotPoster):
            coordinator.accept_bid(open_job.pk, bid.pk, other_contractor)

        job, _ = coordinator.accept_bid(open_job.pk, bid.pk, marketplace_admin)
        assert job.assigned_contractor_id == contractor.pk

    def test_rejected_bid_cannot_be_accepted(self, open_job, contractor, bids, coordinator):
        _, bid = bids.submit_bid(open_job.pk, contractor, Decimal('100'), 'a')
        bids.reject_bid(open_job.pk, bid.pk, open_job.posted_by)
        with pytest.raises(BidNotPending):
            coordinator.accept_bid(open_job.pk, bid.pk, open_job.posted_by)

    def test_second_acceptance_is_an_invalid_transition(self, open_job, contractor, other_contractor, bids,
                                                        coordinator):
        _, first = bids.submit_bid(open_job.pk, contractor, Decimal('100'), 'a')
        _, second = bids.submit_bid(open_job.pk, other_contractor, Decimal('90'), 'b')
        coordinator.accept_bid(open_job.pk, first.pk, open_job.posted_by)

        with pytest.raises(InvalidTransition):
            coordinator.accept_bid(open_job.pk, second.pk, open_job.posted_by)

        assert Bid.objects.filter(job=open_job, status='accepted').count() == 1
        assert Job.objects.get(pk=open_job.pk).assigned_contractor_id == contractor.pk

    def test_racing_acceptance_loses_with_conflict(self, open_job, contractor, other_contractor, bids,
                                                   coordinator, monkeypatch):
        _, first = bids.submit_bid(open_job.pk, contractor, Decimal('100'), 'a')
        _, second = bids.submit_bid(open_job.pk, other_contractor, Decimal('90'), 'b')
        # both callers read the job before either writes
        stale = JobRepository().load(open_job.pk)
        coordinator.accept_bid(open_job.pk, first.pk, open_job.posted_by)

        monkeypatch.setattr(coordinator.repository, 'load', lambda job_id: stale)
        with pytest.raises(Conflict):
            coordinator.accept_bid(open_job.pk, second.pk, open_job.posted_by)

        stored = Job.objects.get(pk=open_job.pk)
        assert stored.assigned_contractor_id == contractor.pk
        assert Bid.objects.filter(job=open_job, status='accepted').count() == 1
        assert Bid.objects.get(pk=second.pk).status == 'rejected'


class TestAcceptSideEffects:

    def test_effects_wait_for_commit(self, open_job, contractor, bids, coordinator,
                                     django_capture_on_commit_callbacks):
        _, bid = bids.submit_bid(open_job.pk, contractor, Decimal('100'), 'a')

        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            coordinator.accept_bid(open_job.pk, bid.pk, open_job.posted_by)

        assert callbacks
        assert not Notification.objects.exists()
        assert ContractorProfile.objects.get(user=contractor).active_projects == 0

    def test_effects_after_commit(self, open_job, contractor, other_contractor, bids, coordinator, transport,
                                  django_capture_on_commit_callbacks):
        _, winner = bids.submit_bid(open_job.pk, contractor, Decimal('100'), 'a')
        _, loser = bids.submit_bid(open_job.pk, other_contractor, Decimal('90'), 'b')

        with django_capture_on_commit_callbacks(execute=True):
            coordinator.accept_bid(open_job.pk, winner.pk, open_job.posted_by)

        assert ContractorProfile.objects.get(user=contractor).active_projects == 1
        assert Project.objects.get(pk=open_job.project_id).contractor_id == contractor.pk
        assert Notification.objects.get(user=contractor).type == 'bid-accepted'
        rejected = Notification.objects.get(user=other_contractor)
        assert rejected.type == 'bid-rejected'
        assert rejected.data['note'] == ANOTHER_BID_ACCEPTED_NOTE
        assert len(transport.delivered) == 2

    def test_failing_transport_does_not_undo_acceptance(self, open_job, contractor, bids,
                                                        django_capture_on_commit_callbacks):
        coordinator = AssignmentCoordinator(dispatcher=NotificationDispatcher(transport=FailingTransport()))
        _, bid = bids.submit_bid(open_job.pk, contractor, Decimal('100'), 'a')

        with django_capture_on_commit_callbacks(execute=True):
            job, _ = coordinator.accept_bid(open_job.pk, bid.pk, open_job.posted_by)

        assert Job.objects.get(pk=job.pk).status == 'assigned'
        assert Notification.objects.filter(user=contractor, type='bid-accepted').exists()
        assert ContractorProfile.objects.get(user=contractor).active_projects == 1

    def test_failing_workload_ledger_does_not_undo_acceptance(self, open_job, contractor, bids, dispatcher,
                                                              django_capture_on_commit_callbacks):
        class BrokenLedger:
            def record_assignment(self, contractor_id, job_id):
                raise RuntimeError("ledger offline")

        coordinator = AssignmentCoordinator(workload=BrokenLedger(), dispatcher=dispatcher)
        _, bid = bids.submit_bid(open_job.pk, contractor, Decimal('100'), 'a')

        with django_capture_on_commit_callbacks(execute=True):
            coordinator.accept_bid(open_job.pk, bid.pk, open_job.posted_by)

        assert Job.objects.get(pk=open_job.pk).status == 'assigned'
        assert Notification.objects.filter(user=contractor, type='bid-accepted').exists()


class TestStartAndComplete:

    def test_assigned_contractor_starts(self, assigned_job, contractor, coordinator):
        job = coordinator.start_job(assigned_job.pk, contractor)
        assert job.status == 'in_progress'

    def test_other_contractor_is_not_assignee(self, assigned_job, other_contractor, coordinator):
        with pytest.raises(NotAssignee):
            coordinator.start_job(assigned_job.pk, other_contractor)
        assert Job.objects.get(pk=assigned_job.pk).status == 'assigned'

    def test_open_job_cannot_start(self, open_job, contractor, coordinator):
        Job.objects.filter(pk=open_job.pk).update(assigned_contractor=contractor)
        with pytest.raises(InvalidTransition):
            coordinator.start_job(open_job.pk, contractor)

    def test_start_twice_fails(self, assigned_job, contractor, coordinator):
        coordinator.start_job(assigned_job.pk, contractor)
        with pytest.raises(InvalidTransition):
            coordinator.start_job(assigned_job.pk, contractor)

    def test_complete_requires_in_progress(self, assigned_job, contractor, coordinator):
        with pytest.raises(InvalidTransition):
            coordinator.complete_job(assigned_job.pk, contractor)

    def test_complete_moves_workload(self, assigned_job, contractor, coordinator,
                                     django_capture_on_commit_callbacks):
        coordinator.start_job(assigned_job.pk, contractor)
        profile = ContractorProfile.objects.get(user=contractor)
        assert profile.active_projects == 1

        with django_capture_on_commit_callbacks(execute=True):
            job = coordinator.complete_job(assigned_job.pk, contractor)

        assert job.status == 'completed'
        assert job.completed_at is not None
        profile.refresh_from_db()
        assert profile.active_projects == 0
        assert profile.completed_projects == 1
        assert profile.total_earnings == Decimal('10000')
        assert Notification.objects.filter(user=assigned_job.posted_by, type='job-completed').exists()


class TestCancelJob:

    def test_cancel_rejects_pending_bids(self, open_job, contractor, other_contractor, bids, coordinator,
                                         django_capture_on_commit_callbacks):
        _, pending = bids.submit_bid(open_job.pk, contractor, Decimal('100'), 'a')
        _, withdrawn = bids.submit_bid(open_job.pk, other_contractor, Decimal('90'), 'b')
        bids.withdraw_bid(open_job.pk, withdrawn.pk, other_contractor)

        with django_capture_on_commit_callbacks(execute=True):
            job = coordinator.cancel_job(open_job.pk, open_job.posted_by, 'Budget cut')

        assert job.status == 'cancelled'
        assert job.cancellation_reason == 'Budget cut'
        stored = Bid.objects.get(pk=pending.pk)
        assert stored.status == 'rejected'
        assert stored.response_note == JOB_CANCELLED_NOTE
        assert Bid.objects.get(pk=withdrawn.pk).status == 'withdrawn'
        assert Notification.objects.filter(user=contractor, type='job-cancelled').exists()
        assert not Notification.objects.filter(user=other_contractor).exists()

    def test_draft_job_can_be_cancelled(self, project, coordinator):
        job = JobFactory(project=project, status='draft')
        assert coordinator.cancel_job(job.pk, project.owner, 'Changed plans').status == 'cancelled'

    def test_reason_is_required(self, open_job, coordinator):
        with pytest.raises(InvalidInput):
            coordinator.cancel_job(open_job.pk, open_job.posted_by, '   ')

    def test_only_poster_cancels(self, open_job, contractor, coordinator):
        with pytest.raises(NotPoster):
            coordinator.cancel_job(open_job.pk, contractor, 'mine now')

    def test_assigned_job_cannot_be_cancelled(self, assigned_job, coordinator):
        with pytest.raises(InvalidTransition):
            coordinator.cancel_job(assigned_job.pk, assigned_job.posted_by, 'too late')
        assert Job.objects.get(pk=assigned_job.pk).status == 'assigned'


class TestTerminalJobs:

    @pytest.fixture
    def completed_job(self, assigned_job, contractor, coordinator):
        coordinator.start_job(assigned_job.pk, contractor)
        return coordinator.complete_job(assigned_job.pk, contractor)

    def test_completed_job_rejects_every_transition(self, completed_job, contractor, coordinator):
        poster = completed_job.posted_by
        bid_id = completed_job.accepted_bid_id
        for attempt in (
            lambda: coordinator.accept_bid(completed_job.pk, bid_id, poster),
            lambda: coordinator.start_job(completed_job.pk, contractor),
            lambda: coordinator.complete_job(completed_job.pk, contractor),
            lambda: coordinator.cancel_job(completed_job.pk, poster, 'late'),
        ):
            with pytest.raises(InvalidTransition):
                attempt()

    def test_terminal_check_comes_before_authorization(self, completed_job, other_contractor, coordinator):
        with pytest.raises(InvalidTransition):
            coordinator.cancel_job(completed_job.pk, other_contractor, 'not mine')
        with pytest.raises(InvalidTransition):
            coordinator.start_job(completed_job.pk, other_contractor)

    def test_cancelled_job_rejects_every_transition(self, open_job, contractor, bids, coordinator):
        _, bid = bids.submit_bid(open_job.pk, contractor, Decimal('100'), 'a')
        coordinator.cancel_job(open_job.pk, open_job.posted_by, 'Budget cut')

        with pytest.raises(InvalidTransition):
            coordinator.accept_bid(open_job.pk, bid.pk, open_job.posted_by)
        with pytest.raises(InvalidTransition):
            coordinator.cancel_job(open_job.pk, open_job.posted_by, 'again')


def test_scenario_assign_start_complete(open_job, contractor, other_contractor, bids, coordinator,
                                        django_capture_on_commit_callbacks):
    _, c1_bid = bids.submit_bid(open_job.pk, contractor, Decimal('10000'), 'C1 offer')
    _, c2_bid = bids.submit_bid(open_job.pk, other_contractor, Decimal('9000'), 'C2 offer')

    with django_capture_on_commit_callbacks(execute=True):
        job, _ = coordinator.accept_bid(open_job.pk, c1_bid.pk, open_job.posted_by)
    assert job.status == 'assigned'
    assert Bid.objects.get(pk=c1_bid.pk).status == 'accepted'
    c2 = Bid.objects.get(pk=c2_bid.pk)
    assert c2.status == 'rejected'
    assert c2.response_note == 'Another bid was accepted'

    assert coordinator.start_job(open_job.pk, contractor).status == 'in_progress'
    with pytest.raises(NotAssignee):
        coordinator.start_job(open_job.pk, other_contractor)

    with django_capture_on_commit_callbacks(execute=True):
        job = coordinator.complete_job(open_job.pk, contractor)
    assert job.status == 'completed'
    profile = ContractorProfile.objects.get(user=contractor)
    assert profile.completed_projects == 1
    assert profile.active_projects == 0

    with pytest.raises(InvalidTransition):
        coordinator.cancel_job(open_job.pk, open_job.posted_by, 'too late')


def test_assignment_for_reads_current_state(assigned_job, contractor, coordinator):
    assignment = coordinator.assignment_for(assigned_job.pk)
    assert assignment['contractor_id'] == contractor.pk
    assert assignment['status'] == 'assigned'
    assert assignment['project_id'] == assigned_job.project_id


class LockstepRepository(JobRepository):
    """Holds every load until both racing callers have read the job."""

    def __init__(self, barrier):
        self.barrier = barrier

    def load(self, job_id):
        job = super().load(job_id)
        self.barrier.wait(timeout=10)
        return job


@pytest.mark.django_db(transaction=True)
def test_racing_acceptances_have_a_single_winner(open_job, contractor, other_contractor, bids, dispatcher):
    offers = [
        bids.submit_bid(open_job.pk, contractor, Decimal('10000'), 'C1 offer')[1],
        bids.submit_bid(open_job.pk, other_contractor, Decimal('9000'), 'C2 offer')[1],
    ]
    barrier = threading.Barrier(len(offers))
    outcomes = {}

    def accept(bid):
        coordinator = AssignmentCoordinator(repository=LockstepRepository(barrier), dispatcher=dispatcher)
        try:
            coordinator.accept_bid(open_job.pk, bid.pk, open_job.posted_by)
            outcomes[bid.pk] = 'accepted'
        except (Conflict, InvalidTransition) as e:
            outcomes[bid.pk] = type(e)
        except Exception as e:
            outcomes[bid.pk] = repr(e)
        finally:
            connection.close()

    threads = [threading.Thread(target=accept, args=(bid,)) for bid in offers]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    results = list(outcomes.values())
    assert len(results) == 2
    assert results.count('accepted') == 1
    assert [r for r in results if r != 'accepted'][0] in (Conflict, InvalidTransition)

    winner = next(pk for pk, outcome in outcomes.items() if outcome == 'accepted')
    job = Job.objects.get(pk=open_job.pk)
    assert job.status == 'assigned'
    assert job.accepted_bid_id == winner
    assert list(Bid.objects.filter(job=job, status='accepted').values_list('pk', flat=True)) == [winner]
