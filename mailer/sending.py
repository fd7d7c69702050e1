import logging

from anymail.message import AnymailMessage
from django.conf import settings
from django.core.signing import TimestampSigner
from django.urls import reverse
from django.utils import timezone

from notifications.models import section_for
from notifications.services import get_preferences
from .rendering import render_email, render_notification_email

logger = logging.getLogger(__name__)


def unsubscribe_link(user):
    token = TimestampSigner().sign(str(user.pk))
    return f"{settings.SITE_URL}{reverse('mailer:unsubscribe')}?t={token}"


def _provider_id(msg):
    status = getattr(msg, "anymail_status", None)
    return getattr(status, "message_id", None)


def send_notification_email(notification):
    """Sends one email-channel notification and stamps sent_at. Returns False when skipped."""
    if notification.sent_at is not None:
        return False
    user = notification.user
    if not user.email:
        logger.warning("Notification %s: user %s has no email address", notification.pk, user.pk)
        return False
    pref = get_preferences(user)
    if not pref.email_enabled or not pref.section_enabled(section_for(notification.type)):
        # opted out after the row was queued
        logger.info("Notification %s dropped: user %s opted out of email", notification.pk, user.pk)
        notification.delete()
        return False
    subject, text, html = render_notification_email(notification, unsubscribe_link(user))
    msg = AnymailMessage(subject=subject, body=text, to=[user.email])
    msg.attach_alternative(html, "text/html")
    msg.metadata = {"notification_id": notification.pk, "user_id": user.pk}
    msg.tags = [notification.type]
    msg.send()
    notification.sent_at = timezone.now()
    notification.save(update_fields=["sent_at"])
    logger.info("Notification %s emailed (provider id %s)", notification.pk, _provider_id(msg))
    return True


def send_credentials(user, password):
    profile = user.profile
    context = {
        "name": profile.display_name,
        "school": profile.school,
        "role": profile.role,
        "email": user.email,
        "password": password,
        "site_url": settings.SITE_URL,
    }
    text, html = render_email("credentials", context)
    msg = AnymailMessage(subject=f"Your {profile.school.name} account", body=text, to=[user.email])
    msg.attach_alternative(html, "text/html")
    msg.metadata = {"user_id": user.pk}
    msg.tags = ["credentials"]
    msg.send()
    logger.info("Credentials emailed to user %s", user.pk)
