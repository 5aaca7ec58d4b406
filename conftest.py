"""
BuildConnect test configuration: factory_boy factories and shared fixtures.

Jobs are created with version 1, the way JobRepository.add stores them. Bids
are never built directly: tests submit them through BidLifecycleManager so
the aggregate's rules apply.
"""

import uuid
from decimal import Decimal

import pytest
import factory
from factory.django import DjangoModelFactory
from rest_framework.test import APIClient


# ============================================================================
# USER FACTORIES
# ============================================================================

class UserFactory(DjangoModelFactory):

    class Meta:
        model = 'users.User'

    username = factory.LazyAttribute(lambda o: f"user_{uuid.uuid4().hex[:8]}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    first_name = factory.Faker('first_name')
    last_name = factory.Faker('last_name')
    role = 'customer'


class CustomerFactory(UserFactory):
    role = 'customer'


class ContractorProfileFactory(DjangoModelFactory):

    class Meta:
        model = 'users.ContractorProfile'
        django_get_or_create = ('user',)

    company = factory.Faker('company')
    specializations = factory.LazyFunction(lambda: ['plumbing', 'electrical'])


class ContractorFactory(UserFactory):
    role = 'contractor'
    profile = factory.RelatedFactory(ContractorProfileFactory, factory_related_name='user')


class AdminFactory(UserFactory):
    role = 'admin'


# ============================================================================
# PROJECT / JOB FACTORIES
# ============================================================================

class ProjectFactory(DjangoModelFactory):

    class Meta:
        model = 'projects.Project'

    owner = factory.SubFactory(CustomerFactory)
    name = factory.Sequence(lambda n: f"House renovation {n}")
    address = '12 MG Road'
    city = 'Pune'
    state = 'Maharashtra'
    pincode = '411001'


class StageFactory(DjangoModelFactory):

    class Meta:
        model = 'projects.Stage'

    project = factory.SubFactory(ProjectFactory)
    name = factory.Sequence(lambda n: f"Stage {n}")
    order = factory.Sequence(lambda n: n)


class JobFactory(DjangoModelFactory):

    class Meta:
        model = 'jobs.Job'

    project = factory.SubFactory(ProjectFactory)
    posted_by = factory.LazyAttribute(lambda o: o.project.owner)
    title = factory.Sequence(lambda n: f"Rewire kitchen {n}")
    description = 'Replace old wiring and fit new sockets.'
    budget_min = Decimal('5000.00')
    budget_max = Decimal('15000.00')
    required_specializations = 'electrical'
    city = 'Pune'
    work_type = 'renovation'
    status = 'open'
    version = 1


# ============================================================================
# TRANSPORTS
# ============================================================================

class RecordingTransport:
    def __init__(self):
        self.delivered = []

    def deliver(self, notification):
        self.delivered.append(notification)


class FailingTransport:
    def deliver(self, notification):
        raise ConnectionError("SMTP server unreachable")


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(autouse=True)
def clear_throttle_cache():
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def customer(db):
    return CustomerFactory()


@pytest.fixture
def contractor(db):
    return ContractorFactory()


@pytest.fixture
def other_contractor(db):
    return ContractorFactory()


@pytest.fixture
def third_contractor(db):
    return ContractorFactory()


@pytest.fixture
def marketplace_admin(db):
    return AdminFactory()


@pytest.fixture
def project(customer):
    return ProjectFactory(owner=customer)


@pytest.fixture
def open_job(project):
    return JobFactory(project=project, posted_by=project.owner)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def dispatcher(transport):
    from apps.notifications.dispatcher import NotificationDispatcher
    return NotificationDispatcher(transport=transport)


@pytest.fixture
def bids():
    from apps.jobs.bids import BidLifecycleManager
    return BidLifecycleManager()


@pytest.fixture
def coordinator(dispatcher):
    from apps.jobs.assignment import AssignmentCoordinator
    return AssignmentCoordinator(dispatcher=dispatcher)


@pytest.fixture
def assigned_job(open_job, contractor, other_contractor, bids, coordinator, django_capture_on_commit_callbacks):
    """An open job with two bids where ``contractor``'s bid was accepted."""
    _, winning = bids.submit_bid(open_job.pk, contractor, Decimal('10000'), 'Full rewiring in 5 days')
    bids.submit_bid(open_job.pk, other_contractor, Decimal('9000'), 'Can start next week')
    with django_capture_on_commit_callbacks(execute=True):
        job, _ = coordinator.accept_bid(open_job.pk, winning.pk, open_job.posted_by)
    return job


@pytest.fixture
def api_client():
    return APIClient()
