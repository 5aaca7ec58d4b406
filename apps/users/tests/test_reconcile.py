from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command

from apps.jobs.assignment import AssignmentCoordinator
from apps.projects.models import Project
from apps.projects.registry import ProjectRegistry
from apps.users.models import WorkloadEntry
from apps.users.workload import ContractorWorkloadLedger


pytestmark = pytest.mark.django_db


class UnreachableLedger(ContractorWorkloadLedger):

    def record_assignment(self, contractor_id, job_id):
        raise ConnectionError("database went away")

    def record_completion(self, contractor_id, job_id, amount):
        raise ConnectionError("database went away")


class UnreachableRegistry(ProjectRegistry):

    def assign_contractor(self, project_id, contractor_id):
        raise ConnectionError("database went away")


@pytest.fixture
def broken_coordinator(dispatcher):
    return AssignmentCoordinator(workload=UnreachableLedger(), projects=UnreachableRegistry(), dispatcher=dispatcher)


def _reconcile(*args):
    out = StringIO()
    call_command('reconcile_workload', *args, stdout=out)
    return out.getvalue()


def _accept(open_job, contractor, bids, coordinator, django_capture_on_commit_callbacks):
    _, bid = bids.submit_bid(open_job.pk, contractor, Decimal('10000'), 'Full rewiring in 5 days')
    with django_capture_on_commit_callbacks(execute=True):
        coordinator.accept_bid(open_job.pk, bid.pk, open_job.posted_by)


def test_failed_assignment_is_repaired_once(open_job, contractor, bids, broken_coordinator,
                                            django_capture_on_commit_callbacks):
    _accept(open_job, contractor, bids, broken_coordinator, django_capture_on_commit_callbacks)
    ledger = ContractorWorkloadLedger()
    assert ledger.stats(contractor.pk)['active_projects'] == 0
    assert Project.objects.get(pk=open_job.project_id).contractor_id is None

    output = _reconcile()

    assert 'Repaired 1 assignment(s), 0 completion(s), 1 project contractor(s)' in output
    assert ledger.stats(contractor.pk)['active_projects'] == 1
    assert Project.objects.get(pk=open_job.project_id).contractor_id == contractor.pk

    assert 'Workload is consistent for 1 job(s)' in _reconcile()
    assert ledger.stats(contractor.pk)['active_projects'] == 1
    assert WorkloadEntry.objects.filter(contractor=contractor).count() == 1


def test_failed_completion_is_repaired(open_job, contractor, bids, broken_coordinator,
                                       django_capture_on_commit_callbacks):
    _accept(open_job, contractor, bids, broken_coordinator, django_capture_on_commit_callbacks)
    with django_capture_on_commit_callbacks(execute=True):
        broken_coordinator.start_job(open_job.pk, contractor)
        broken_coordinator.complete_job(open_job.pk, contractor)

    _reconcile()

    assert ContractorWorkloadLedger().stats(contractor.pk) == {
        'active_projects': 0,
        'completed_projects': 1,
        'total_earnings': Decimal('10000'),
    }


def test_consistent_jobs_are_left_alone(assigned_job, contractor):
    assert 'Workload is consistent for 1 job(s)' in _reconcile()
    assert ContractorWorkloadLedger().stats(contractor.pk)['active_projects'] == 1


def test_dry_run_changes_nothing(open_job, contractor, bids, broken_coordinator,
                                 django_capture_on_commit_callbacks):
    _accept(open_job, contractor, bids, broken_coordinator, django_capture_on_commit_callbacks)

    output = _reconcile('--dry-run')

    assert 'Would repair 1 assignment(s)' in output
    assert not WorkloadEntry.objects.exists()
    assert Project.objects.get(pk=open_job.project_id).contractor_id is None
