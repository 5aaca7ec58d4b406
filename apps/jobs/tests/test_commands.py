from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from apps.jobs.models import Job


pytestmark = pytest.mark.django_db


def test_stale_report_disabled_by_default(assigned_job):
    out = StringIO()
    call_command('report_stale_jobs', stdout=out)
    assert 'disabled' in out.getvalue()


def test_stale_report_lists_old_assignments(assigned_job, settings):
    settings.JOB_STALE_AFTER_DAYS = 14
    Job.objects.filter(pk=assigned_job.pk).update(assigned_at=timezone.now() - timedelta(days=20))

    out = StringIO()
    call_command('report_stale_jobs', stdout=out)

    assert f"Job {assigned_job.pk}" in out.getvalue()
    assert '1 stale job(s)' in out.getvalue()
    assert Job.objects.get(pk=assigned_job.pk).status == 'assigned'


def test_recent_assignment_is_not_stale(assigned_job):
    out = StringIO()
    call_command('report_stale_jobs', days=14, stdout=out)
    assert 'No jobs older than 14 days' in out.getvalue()
