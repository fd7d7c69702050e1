import logging
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.utils import timezone
from django_rq import job

from assignments.lifecycle import notify_deadline
from assignments.models import OPEN_STATUSES, Assignment
from mailer.sending import send_credentials, send_notification_email
from notifications.models import Notification
from notifications.services import in_quiet_hours, pending_email_filter

logger = logging.getLogger(__name__)

DUE_SOON_WINDOW = timedelta(hours=24)
DISPATCH_BATCH_SIZE = 500


@job("mail")
def deliver_notification_email(notification_id: int):
    notification = (
        Notification.objects.filter(pk=notification_id)
        .select_related("user__profile", "school")
        .first()
    )
    if notification is None:
        logger.warning("Notification %s vanished before delivery", notification_id)
        return False
    return send_notification_email(notification)


@job("mail")
def send_credentials_email(user_id: int, password: str):
    user = get_user_model().objects.select_related("profile__school").get(pk=user_id)
    send_credentials(user, password)


@job("default")
def dispatch_pending_emails():
    """Queues unsent email notifications whose recipients are outside quiet hours."""
    pending = (
        Notification.objects.filter(pending_email_filter())
        .exclude(user__notification_pref__email_enabled=False)
        .select_related("user__profile", "school")
        .order_by("created_at")[:DISPATCH_BATCH_SIZE]
    )
    queued = 0
    for notification in pending:
        if in_quiet_hours(notification.user, notification.school):
            continue
        deliver_notification_email.delay(notification.pk)
        queued += 1
    logger.info("Queued %s pending notification emails", queued)
    return queued


@job("default")
def sweep_assignment_deadlines():
    now = timezone.now()
    open_qs = Assignment.objects.filter(status__in=OPEN_STATUSES).select_related("student__user", "school")

    due_soon = open_qs.filter(
        due_at__gt=now, due_at__lte=now + DUE_SOON_WINDOW, due_soon_notified_at__isnull=True
    )
    soon_count = 0
    for assignment in due_soon:
        notify_deadline(assignment, "assignment_due_soon")
        assignment.due_soon_notified_at = now
        assignment.save(update_fields=["due_soon_notified_at"])
        soon_count += 1

    overdue = open_qs.filter(due_at__lte=now, overdue_notified_at__isnull=True)
    overdue_count = 0
    for assignment in overdue:
        assignment.late = True
        assignment.overdue_notified_at = now
        assignment.save(update_fields=["late", "overdue_notified_at"])
        notify_deadline(assignment, "assignment_overdue")
        overdue_count += 1

    logger.info("Deadline sweep: %s due soon, %s overdue", soon_count, overdue_count)
    return {"due_soon": soon_count, "overdue": overdue_count}
