"""Contractor progress reports against assigned work.

Updates are independent rows: nothing here needs the job aggregate's
versioning. Assignment is re-read on every create through
AssignmentCoordinator.assignment_for and the project registry, never cached.
"""
import logging
from datetime import timedelta
from django.conf import settings
from django.db import transaction
from django.utils import timezone
from core.exceptions import (
    DeleteWindowExpired, EditWindowExpired, Forbidden, InvalidInput, IssueNotFound,
    NotAssignee, NotAuthor, NotPoster, ProgressUpdateNotFound,
)
from apps.jobs.assignment import AssignmentCoordinator
from apps.jobs.models import Job
from apps.notifications.dispatcher import NotificationDispatcher
from apps.projects.models import Stage
from apps.projects.registry import ProjectRegistry
from .models import ProgressUpdate, ProgressComment

logger = logging.getLogger(__name__)

CONTENT_FIELDS = (
    'title', 'description', 'photo_urls', 'work_done', 'materials_used', 'issues', 'weather',
    'workers_on_site', 'hours_worked', 'progress_percentage', 'next_steps', 'blockers', 'customer_visible',
)


class ProgressUpdateLedger:

    def __init__(self, assignments=None, projects=None, dispatcher=None, clock=timezone.now):
        self.assignments = assignments or AssignmentCoordinator()
        self.projects = projects or ProjectRegistry()
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.clock = clock

    # --- writes -------------------------------------------------------

    def create(self, contractor, fields, project_id=None, job_id=None, stage_id=None):
        if project_id is None and job_id is None:
            raise InvalidInput("A project or job is required")
        if not (fields.get('description') or '').strip():
            raise InvalidInput("Description is required")
        self._check_percentage(fields)

        assignment = None
        if job_id is not None:
            assignment = self.assignments.assignment_for(job_id)
            if project_id is None:
                project_id = assignment['project_id']
            elif str(project_id) != str(assignment['project_id']):
                raise InvalidInput("The job does not belong to this project")
        project = self.projects.get(project_id)

        if not self._is_assigned(contractor, project, assignment):
            raise NotAssignee("You are not assigned to this project")

        if stage_id is not None and not Stage.objects.filter(pk=stage_id, project=project).exists():
            raise InvalidInput("The stage does not belong to this project")

        values = {k: v for k, v in fields.items() if k in CONTENT_FIELDS}
        update = ProgressUpdate.objects.create(
            project=project,
            job_id=job_id,
            stage_id=stage_id,
            contractor=contractor,
            type=fields.get('type') or 'general',
            **values
        )
        logger.info(
            f"Contractor {contractor.pk} posted {update.type} update {update.pk} on project {project.pk}"
            + (f" (job {job_id})" if job_id else "")
        )

        self.dispatcher.notify_after_commit(project.owner_id, 'progress-update', {
            **self._payload(update, project),
            'contractor_name': contractor.display_name,
            'description': update.description[:100],
            'photo_count': len(update.photo_urls),
        })
        return update

    def edit(self, update_id, contractor, fields):
        update = self._load(update_id)
        if update.contractor_id != contractor.pk:
            raise NotAuthor("You can only edit your own updates")
        window = timedelta(hours=settings.PROGRESS_EDIT_WINDOW_HOURS)
        if self.clock() - update.created_at > window:
            raise EditWindowExpired(
                f"Updates can only be edited within {settings.PROGRESS_EDIT_WINDOW_HOURS:g} hours of creation"
            )
        self._check_percentage(fields)
        if 'description' in fields and not (fields['description'] or '').strip():
            raise InvalidInput("Description cannot be empty")

        changed = [k for k in fields if k in CONTENT_FIELDS]
        for key in changed:
            setattr(update, key, fields[key])
        if changed:
            update.save(update_fields=changed + ['updated_at'])
        logger.info(f"Contractor {contractor.pk} edited update {update.pk}: {', '.join(changed) or 'no changes'}")
        return update

    def delete(self, update_id, contractor):
        update = self._load(update_id)
        if update.contractor_id != contractor.pk:
            raise NotAuthor("You can only delete your own updates")
        window = timedelta(hours=settings.PROGRESS_DELETE_WINDOW_HOURS)
        if self.clock() - update.created_at > window:
            raise DeleteWindowExpired(
                f"Updates can only be deleted within {settings.PROGRESS_DELETE_WINDOW_HOURS:g} hours of creation"
            )
        update.delete()
        logger.info(f"Contractor {contractor.pk} deleted update {update_id}")

    def acknowledge(self, update_id, user):
        """Mark an update as seen by the customer. Acknowledging twice is a no-op."""
        update = self._load(update_id)
        job = update.job
        if not (user.is_admin or update.project.owner_id == user.pk or (job and job.posted_by_id == user.pk)):
            raise NotPoster("Only the project owner can acknowledge updates")

        now = self.clock()
        # conditional write keeps the first acknowledgment's timestamp
        first = ProgressUpdate.objects.filter(pk=update.pk, customer_acknowledged=False).update(
            customer_acknowledged=True, acknowledged_at=now, acknowledged_by=user, updated_at=now
        )
        update.refresh_from_db()
        if not first:
            return update

        logger.info(f"User {user.pk} acknowledged update {update.pk}")
        self.dispatcher.notify_after_commit(update.contractor_id, 'progress-acknowledged', {
            **self._payload(update, update.project),
            'acknowledged_by': user.display_name,
        })
        return update

    def add_comment(self, update_id, user, text):
        update = self._load(update_id)
        self._ensure_can_view(update, user, "You do not have access to comment on this update")
        text = (text or '').strip()
        if not text:
            raise InvalidInput("Comment text is required")

        comment = ProgressComment.objects.create(update=update, user=user, text=text)
        logger.info(f"User {user.pk} commented on update {update.pk}")

        recipient = update.project.owner_id if user.pk == update.contractor_id else update.contractor_id
        if recipient != user.pk:
            self.dispatcher.notify_after_commit(recipient, 'comment-added', {
                **self._payload(update, update.project),
                'author_name': user.display_name,
                'text': text[:100],
            })
        return comment

    def resolve_issue(self, update_id, user, issue_index, resolution=''):
        try:
            index = int(issue_index)
        except (TypeError, ValueError):
            raise IssueNotFound()

        with transaction.atomic():
            try:
                update = ProgressUpdate.objects.select_for_update().get(pk=update_id)
            except (ProgressUpdate.DoesNotExist, ValueError):
                raise ProgressUpdateNotFound()
            self._ensure_can_view(update, user, "You do not have access to this update")
            if index < 0 or index >= len(update.issues):
                raise IssueNotFound()

            issue = update.issues[index]
            if not issue.get('resolved'):
                issue['resolved'] = True
                issue['resolved_at'] = self.clock().isoformat()
                issue['resolution'] = resolution or ''
                update.save(update_fields=['issues', 'updated_at'])
                logger.info(f"User {user.pk} resolved issue {index} on update {update.pk}")
        return update

    # --- reads --------------------------------------------------------

    def get(self, update_id, user):
        update = self._load(update_id)
        self._ensure_can_view(update, user, "You do not have access to this update")
        return update

    def list_for_project(self, project_id, user, update_type=None):
        """Updates for a project plus its summary. Customers only see customer-visible ones."""
        project = self.projects.get(project_id)
        allowed = (
            user.is_admin
            or project.owner_id == user.pk
            or project.contractor_id == user.pk
            or Job.objects.filter(project=project, assigned_contractor=user).exists()
        )
        if not allowed:
            raise Forbidden("You do not have access to this project")

        updates = ProgressUpdate.objects.for_project(
            project.pk, update_type=update_type, customer_visible_only=user.is_customer
        ).select_related('contractor', 'stage').prefetch_related('comments__user')
        return updates, ProgressUpdate.objects.project_summary(project.pk)

    def list_for_contractor(self, contractor, project_id=None):
        return ProgressUpdate.objects.for_contractor(contractor, project_id).select_related(
            'project', 'stage'
        ).prefetch_related('comments__user')

    # --- helpers ------------------------------------------------------

    def can_view(self, update, user):
        job = update.job
        return (
            user.is_admin
            or update.contractor_id == user.pk
            or update.project.owner_id == user.pk
            or update.project.contractor_id == user.pk
            or (job is not None and user.pk in (job.posted_by_id, job.assigned_contractor_id))
        )

    def _ensure_can_view(self, update, user, message):
        if not self.can_view(update, user):
            raise Forbidden(message)

    def _is_assigned(self, contractor, project, assignment):
        if project.contractor_id == contractor.pk:
            return True
        if assignment is not None:
            return assignment['contractor_id'] == contractor.pk
        return Job.objects.assigned_to(contractor).filter(project=project).exists()

    def _load(self, update_id):
        try:
            return ProgressUpdate.objects.select_related('project', 'job', 'contractor').get(pk=update_id)
        except (ProgressUpdate.DoesNotExist, ValueError):
            raise ProgressUpdateNotFound()

    def _check_percentage(self, fields):
        value = fields.get('progress_percentage')
        if value is not None and not 0 <= value <= 100:
            raise InvalidInput("Progress percentage must be between 0 and 100")

    def _payload(self, update, project):
        return {
            'update_id': update.pk,
            'update_type': update.type,
            'project_id': project.pk,
            'project_name': project.name,
            'job_id': update.job_id,
            'link': f"/progress/{update.pk}/",
        }
