import logging
from core.exceptions import Forbidden, InvalidInput, InvalidTransition, NotPoster
from apps.projects.registry import ProjectRegistry
from .models import Job
from .repository import JobRepository

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    'title', 'description', 'budget_min', 'budget_max', 'budget_currency', 'budget_type',
    'required_specializations', 'address', 'city', 'state', 'pincode',
    'start_date', 'end_date', 'duration', 'flexibility', 'work_type', 'requirements',
)
LOCATION_FIELDS = ('address', 'city', 'state', 'pincode')


class JobPostingService:
    """Creating and editing job postings before any bid is accepted."""

    def __init__(self, repository=None, projects=None):
        self.repository = repository or JobRepository()
        self.projects = projects or ProjectRegistry()

    def create_job(self, project_id, poster, fields, publish=True):
        project = self.projects.get(project_id)
        if project.owner_id != poster.pk and not poster.is_admin:
            raise Forbidden("You can only create jobs for your own projects")
        if not (fields.get('title') or '').strip():
            raise InvalidInput("Job title is required")

        values = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}
        self._check_budget(values.get('budget_min'), values.get('budget_max'))
        if not any(values.get(k) for k in LOCATION_FIELDS):
            for key in LOCATION_FIELDS:
                values[key] = getattr(project, key)

        job = Job(project=project, posted_by=poster, status='open' if publish else 'draft', **values)
        return self.repository.add(job)

    def publish_job(self, job_id, poster):
        job = self.repository.load(job_id)
        if not job.is_poster_or_admin(poster):
            raise NotPoster("You can only publish your own jobs")
        if job.status != 'draft':
            raise InvalidTransition("Only draft jobs can be published")
        job.transition_to('open')
        self.repository.save(job)
        logger.info(f"User {poster.pk} published job {job.pk}")
        return job

    def update_job(self, job_id, poster, fields):
        job = self.repository.load(job_id)
        if not job.is_poster_or_admin(poster):
            raise NotPoster("You can only update your own jobs")
        if job.status not in ('draft', 'open', 'in_review'):
            raise InvalidTransition("Cannot update a job that has been assigned, completed or cancelled")

        for key, value in fields.items():
            if key in EDITABLE_FIELDS:
                setattr(job, key, value)
        self._check_budget(job.budget_min, job.budget_max)

        target = fields.get('status')
        if target and target != job.status:
            if target not in ('open', 'in_review') or job.status == 'draft':
                raise InvalidTransition(f"Status can only move between open and in_review here, not to {target}")
            job.transition_to(target)
        self.repository.save(job)
        logger.info(f"User {poster.pk} updated job {job.pk}")
        return job

    def _check_budget(self, budget_min, budget_max):
        if budget_min is not None and budget_max is not None and budget_min > budget_max:
            raise InvalidInput("Minimum budget cannot exceed maximum budget")
