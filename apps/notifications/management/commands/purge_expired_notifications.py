"""
Delete notifications past their expiry.

Notifications are advisory, so expired rows are removed outright.
"""

from django.core.management.base import BaseCommand
from django.utils import timezone
from apps.notifications.models import Notification


class Command(BaseCommand):
    help = 'Delete notifications whose expiry has passed'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show how many notifications would be deleted without deleting them'
        )

    def handle(self, *args, **options):
        expired = Notification.objects.expired(timezone.now())

        if options.get('dry_run'):
            self.stdout.write(self.style.WARNING(f"Would delete {expired.count()} expired notification(s)"))
            return

        deleted, _ = expired.delete()
        self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} expired notification(s)"))
