import logging
from zoneinfo import ZoneInfo

from django.db import transaction
from django.db.models import Case, CharField, Count, Q, Value, When
from django.utils import timezone

from .models import EMAIL, IN_APP, SECTIONS, Notification, NotificationPreference, section_for

logger = logging.getLogger(__name__)

SECTION_EXPRESSION = Case(
    When(type__startswith="assignment_", then=Value("assignments")),
    When(type__startswith="homework_", then=Value("homework")),
    When(type__startswith="target_", then=Value("targets")),
    When(type__in=["grade_submitted", "mastery_improved"], then=Value("gradebook")),
    When(type="message_received", then=Value("messages")),
    default=Value("announcements"),
    output_field=CharField(),
)


def get_preferences(user):
    pref, _ = NotificationPreference.objects.get_or_create(user=user)
    return pref


def _local_time(school):
    try:
        tz = ZoneInfo(school.timezone or "UTC")
    except (KeyError, ValueError):
        tz = ZoneInfo("UTC")
    return timezone.localtime(timezone.now(), tz).time()


def in_quiet_hours(user, school=None):
    school = school or user.profile.school
    return get_preferences(user).in_quiet_hours(_local_time(school))


def _queue_email(notification_id):
    from jobs.tasks import deliver_notification_email

    deliver_notification_email.delay(notification_id)


def notify(user, type, title="", body="", payload=None, channels=(IN_APP,), school=None):
    """
    Fans one event out to the requested channels of a single recipient,
    honouring their preferences. Email rows start unsent; delivery is queued
    after commit unless the recipient is inside quiet hours, in which case the
    pending-email sweep picks the row up later.
    """
    pref = get_preferences(user)
    if not pref.section_enabled(section_for(type)):
        return []
    school = school or user.profile.school
    now = timezone.now()
    created = []
    for channel in channels:
        if not pref.channel_enabled(channel):
            continue
        notification = Notification.objects.create(
            school=school,
            user=user,
            channel=channel,
            type=type,
            title=title,
            body=body,
            payload=payload or {},
            sent_at=now if channel == IN_APP else None,
        )
        created.append(notification)
        if channel == EMAIL and not pref.in_quiet_hours(_local_time(school)):
            transaction.on_commit(lambda pk=notification.pk: _queue_email(pk))
    logger.debug("notify %s -> user %s: %s rows", type, user.pk, len(created))
    return created


def unread_counts(user):
    """Unread in-app notifications per section, from one grouped query."""
    counts = {section: 0 for section in SECTIONS}
    rows = (
        Notification.objects.filter(user=user, channel=IN_APP, read_at__isnull=True)
        .annotate(section=SECTION_EXPRESSION)
        .values("section")
        .annotate(n=Count("id"))
        .order_by()
    )
    for row in rows:
        counts[row["section"]] = row["n"]
    return counts, sum(counts.values())


def mark_read(queryset):
    return queryset.filter(read_at__isnull=True).update(read_at=timezone.now())


def mark_section_read(user, section):
    ids = list(
        Notification.objects.filter(user=user, channel=IN_APP, read_at__isnull=True)
        .annotate(section=SECTION_EXPRESSION)
        .filter(section=section)
        .values_list("id", flat=True)
    )
    return mark_read(Notification.objects.filter(id__in=ids))


def pending_email_filter():
    return Q(channel=EMAIL, sent_at__isnull=True)
