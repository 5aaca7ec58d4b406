from decimal import Decimal
from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db.models import Avg, Count, Max, Sum
from core.constants import PROGRESS_UPDATE_TYPE_CHOICES
from apps.projects.models import Project, Stage


class ProgressUpdateQuerySet(models.QuerySet):

    def for_project(self, project_id, update_type=None, customer_visible_only=False):
        query = self.filter(project_id=project_id)
        if update_type:
            query = query.filter(type=update_type)
        if customer_visible_only:
            query = query.filter(customer_visible=True)
        return query

    def for_contractor(self, contractor, project_id=None):
        query = self.filter(contractor=contractor)
        if project_id:
            query = query.filter(project_id=project_id)
        return query

    def project_summary(self, project_id):
        updates = self.filter(project_id=project_id)
        totals = updates.aggregate(
            total_updates=Count('id'),
            total_hours_worked=Sum('hours_worked'),
            avg_workers_on_site=Avg('workers_on_site'),
            last_update=Max('created_at'),
        )
        # issues live in a JSON list, so they are counted in Python
        total_issues = 0
        unresolved_issues = 0
        for issues in updates.values_list('issues', flat=True):
            total_issues += len(issues or [])
            unresolved_issues += sum(1 for issue in issues or [] if not issue.get('resolved'))
        return {
            'total_updates': totals['total_updates'],
            'total_hours_worked': totals['total_hours_worked'] or 0,
            'avg_workers_on_site': round(totals['avg_workers_on_site'] or 0, 1),
            'total_issues': total_issues,
            'unresolved_issues': unresolved_issues,
            'last_update': totals['last_update'],
        }


class ProgressUpdate(models.Model):
    """A contractor's report on work done for a project or one of its jobs.

    The structured parts (work done, materials, issues, blockers) are JSON
    lists of small dicts validated by the serializers before they land here.
    """
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='progress_updates')
    stage = models.ForeignKey(Stage, on_delete=models.SET_NULL, null=True, blank=True, related_name='progress_updates')
    job = models.ForeignKey('jobs.Job', on_delete=models.SET_NULL, null=True, blank=True,
                            related_name='progress_updates')
    contractor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE,
                                   related_name='progress_updates')
    type = models.CharField(max_length=20, choices=PROGRESS_UPDATE_TYPE_CHOICES, default='general')
    title = models.CharField(max_length=200, blank=True, default='')
    description = models.TextField(max_length=5000)

    photo_urls = models.JSONField(default=list, blank=True)
    work_done = models.JSONField(default=list, blank=True)
    materials_used = models.JSONField(default=list, blank=True)
    issues = models.JSONField(default=list, blank=True)
    weather = models.JSONField(default=dict, blank=True)
    blockers = models.JSONField(default=list, blank=True)

    workers_on_site = models.PositiveIntegerField(default=0)
    hours_worked = models.DecimalField(max_digits=8, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    progress_percentage = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    next_steps = models.TextField(max_length=1000, blank=True, default='')

    customer_visible = models.BooleanField(default=True)
    customer_acknowledged = models.BooleanField(default=False)
    acknowledged_at = models.DateTimeField(null=True, blank=True)
    acknowledged_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                        related_name='+')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ProgressUpdateQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['project', '-created_at']),
            models.Index(fields=['contractor']),
            models.Index(fields=['type']),
        ]

    def __str__(self):
        return f"{self.get_type_display()} update on {self.project.name} by {self.contractor.username}"

    @property
    def total_materials_cost(self):
        return sum((Decimal(str(m.get('cost') or 0)) for m in self.materials_used), Decimal('0'))

    @property
    def unresolved_issues_count(self):
        return sum(1 for issue in self.issues if not issue.get('resolved'))


class ProgressComment(models.Model):
    update = models.ForeignKey(ProgressUpdate, on_delete=models.CASCADE, related_name='comments')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='progress_comments')
    text = models.TextField(max_length=2000)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"Comment by {self.user.username} on update {self.update_id}"
