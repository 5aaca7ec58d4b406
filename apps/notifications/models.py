from datetime import timedelta
from django.db import models
from django.conf import settings
from django.utils import timezone
from core.constants import NOTIFICATION_TYPE_CHOICES


def default_expiry():
    return timezone.now() + timedelta(days=settings.NOTIFICATION_TTL_DAYS)


class NotificationQuerySet(models.QuerySet):

    def active(self, now=None):
        return self.filter(expires_at__gt=now or timezone.now())

    def expired(self, now=None):
        return self.filter(expires_at__lte=now or timezone.now())

    def for_user(self, user):
        return self.filter(user=user)

    def unread_count(self, user):
        return self.for_user(user).active().filter(read=False).count()

    def mark_all_read(self, user):
        return self.for_user(user).filter(read=False).update(read=True)


class Notification(models.Model):
    """An advisory, addressed fact about a lifecycle event.

    Not the system of record: jobs, bids and progress updates are. Rows
    expire after NOTIFICATION_TTL_DAYS and may be purged at any time.
    """
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notifications')
    type = models.CharField(max_length=40, choices=NOTIFICATION_TYPE_CHOICES)
    title = models.CharField(max_length=200)
    message = models.CharField(max_length=500)
    data = models.JSONField(default=dict, blank=True)
    read = models.BooleanField(default=False)
    link = models.CharField(max_length=255, blank=True, null=True)
    project = models.ForeignKey('projects.Project', on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    job = models.ForeignKey('jobs.Job', on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField(default=default_expiry)

    objects = NotificationQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', '-created_at']),
            models.Index(fields=['user', 'read', '-created_at']),
            models.Index(fields=['expires_at']),
        ]

    def __str__(self):
        return f"Notification to {self.user.username} - {self.type}"

    def mark_as_read(self):
        if not self.read:
            self.read = True
            self.save(update_fields=['read'])
