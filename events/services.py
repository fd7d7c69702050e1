"""
School calendar events.

A recurring event is stored as a parent row carrying the rule plus one child
row per later occurrence, so every occurrence can be queried by date.
"""
import logging

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from accounts.models import ADMIN_ROLES, STAFF_ROLES
from .models import MAX_DURATION, TYPE_COLORS, Event, EventParticipant
from .recurrence import occurrences

logger = logging.getLogger(__name__)

# fields copied from the parent onto each occurrence
SERIES_FIELDS = (
    "school_id", "created_by_id", "title", "description", "event_type", "all_day",
    "location", "color", "school_class_id", "assignment_id", "homework_id", "target_id",
)
# series edits never move occurrences in time
SERIES_EDITABLE = ("title", "description", "event_type", "all_day", "location", "color")


class EventError(Exception):
    def __init__(self, message, code="VALIDATION_ERROR", status=400):
        super().__init__(message)
        self.code = code
        self.status = status


def can_manage(profile, event):
    if profile.school_id != event.school_id or profile.role not in STAFF_ROLES:
        return False
    return profile.role in ADMIN_ROLES or event.created_by_id == profile.user_id


def _stored_rule(rule):
    stored = dict(rule)
    if stored.get("until"):
        stored["until"] = stored["until"].isoformat()
    return stored


@transaction.atomic
def create_event(school, actor, data, links=None, participants=()):
    """
    Saves the event and, for a recurring one, every later occurrence.
    `links` maps school_class/assignment/homework/target to resolved objects.
    """
    rule = data.get("recurrence_rule")
    event = Event.objects.create(
        school=school,
        created_by=actor,
        title=data["title"],
        description=data.get("description") or "",
        event_type=data["event_type"],
        start_at=data["start_at"],
        end_at=data["end_at"],
        all_day=data.get("all_day", False),
        location=data.get("location") or "",
        color=data.get("color") or TYPE_COLORS[data["event_type"]],
        recurrence_rule=_stored_rule(rule) if rule else None,
        **(links or {}),
    )
    created = 0
    if rule:
        duration = event.end_at - event.start_at
        Event.objects.bulk_create([
            Event(
                recurrence_parent=event,
                start_at=start,
                end_at=start + duration,
                **{field: getattr(event, field) for field in SERIES_FIELDS},
            )
            for start in occurrences(rule, event.start_at)
        ])
        created = event.instances.count()
    for user in participants:
        EventParticipant.objects.get_or_create(event=event, user=user)
    logger.info("Event %s created by user %s with %s occurrences", event.pk, actor.pk, created)
    return event


def series(event):
    """Every row of the event's series, the event itself included."""
    root = event.series_root_id
    return Event.objects.filter(Q(pk=root) | Q(recurrence_parent_id=root))


@transaction.atomic
def update_event(event, changes, update_series=False):
    start = changes.get("start_at", event.start_at)
    end = changes.get("end_at", event.end_at)
    if start > end:
        raise EventError("start_at must not be after end_at")
    if end - start > MAX_DURATION:
        raise EventError("An event cannot last longer than 30 days")
    for field, value in changes.items():
        setattr(event, field, value)
    event.save()
    updated = 1
    if update_series and event.is_recurring:
        shared = {f: changes[f] for f in SERIES_EDITABLE if f in changes}
        if shared:
            updated += series(event).exclude(pk=event.pk).update(updated_at=timezone.now(), **shared)
    return updated


@transaction.atomic
def delete_event(event, delete_series=False):
    event_id = event.pk
    if delete_series and event.is_recurring:
        rows = series(event)
        deleted = rows.count()
        rows.delete()
    else:
        deleted = 1
        if event.recurrence_parent_id is None and event.recurrence_rule:
            # the next occurrence takes over as the head of the series
            successor = event.instances.order_by("start_at", "id").first()
            if successor is not None:
                event.instances.exclude(pk=successor.pk).update(recurrence_parent=successor)
                successor.recurrence_parent = None
                successor.recurrence_rule = event.recurrence_rule
                successor.save(update_fields=["recurrence_parent", "recurrence_rule", "updated_at"])
        event.delete()
    logger.info("Event %s deleted, %s rows (series=%s)", event_id, deleted, delete_series)
    return deleted


def respond(event, user, response_status):
    participant = EventParticipant.objects.filter(event=event, user=user).first()
    if participant is None:
        raise EventError("You are not invited to this event", "FORBIDDEN", 403)
    participant.status = response_status
    participant.responded_at = timezone.now()
    participant.save(update_fields=["status", "responded_at"])
    return participant
