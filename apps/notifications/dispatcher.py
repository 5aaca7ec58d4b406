"""Fire-and-forget notification delivery.

``notify`` stores an in-app Notification and hands it to the transport
(email, optionally SMS). Every failure is logged and swallowed: a
notification is advisory and must never decide whether the lifecycle
operation that produced it succeeded.
"""
import json
import logging
from django.conf import settings
from django.core.mail import send_mail
from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction
from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client as TwilioClient
from core.utils import run_after_commit
from .models import Notification
from .templates import render

logger = logging.getLogger(__name__)


class NotificationTransport:
    """Email and SMS delivery for stored notifications."""

    def deliver(self, notification):
        user = notification.user
        if user.email:
            send_mail(
                subject=notification.title,
                message=notification.message,
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[user.email],
                fail_silently=False,
            )
            logger.info(f"Email notification sent to {user.email}")

        if settings.NOTIFICATION_SMS_ENABLED and user.phone_number:
            try:
                client = TwilioClient(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)
                client.messages.create(
                    body=notification.message,
                    from_=settings.TWILIO_PHONE_NUMBER,
                    to=user.phone_number,
                )
                logger.info(f"SMS notification sent to {user.phone_number}")
            except TwilioRestException as e:
                logger.error(f"Failed to send SMS to {user.phone_number}: {str(e)}")


class NotificationDispatcher:

    def __init__(self, transport=None):
        self.transport = transport or NotificationTransport()

    def notify(self, user_id, event_type, payload=None):
        """Store and deliver one notification. Returns it, or None on failure."""
        payload = payload or {}
        try:
            title, message = render(event_type, payload)
            with transaction.atomic():
                notification = Notification.objects.create(
                    user_id=user_id,
                    type=event_type,
                    title=title,
                    message=message,
                    data=json.loads(json.dumps(payload, cls=DjangoJSONEncoder)),
                    link=payload.get('link'),
                    job_id=payload.get('job_id'),
                    project_id=payload.get('project_id'),
                )
        except Exception as e:
            logger.error(f"Failed to store '{event_type}' notification for user {user_id}: {str(e)}")
            return None

        try:
            self.transport.deliver(notification)
        except Exception as e:
            logger.error(f"Failed to deliver notification {notification.pk} to user {user_id}: {str(e)}")
        return notification

    def notify_after_commit(self, user_id, event_type, payload=None):
        run_after_commit(
            self.notify, user_id, event_type, payload,
            description=f"notify {event_type} to user {user_id}",
        )
