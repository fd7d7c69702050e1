import logging

from anymail.signals import tracking
from django.dispatch import receiver

from .models import SUPPRESSING_EVENTS, EmailEvent

logger = logging.getLogger(__name__)


@receiver(tracking)
def handle_tracking(sender, event, esp_name, **kwargs):
    metadata = event.metadata or {}
    user_id = metadata.get("user_id")
    EmailEvent.objects.create(
        user_id=user_id,
        notification_id=metadata.get("notification_id"),
        event=event.event_type,
        provider_id=event.event_id,
        email=event.recipient or "",
        payload=event.esp_event if isinstance(event.esp_event, dict) else {},
    )
    if event.event_type in SUPPRESSING_EVENTS and user_id:
        from notifications.models import NotificationPreference

        disabled = NotificationPreference.objects.filter(user_id=user_id).update(email_enabled=False)
        if not disabled:
            NotificationPreference.objects.get_or_create(user_id=user_id, defaults={"email_enabled": False})
        logger.warning("Email disabled for user %s after %s event from %s", user_id, event.event_type, esp_name)
