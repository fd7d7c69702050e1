import logging
from collections import Counter
from datetime import datetime, time, timedelta

from django.http import HttpResponse
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from accounts.api import error, positive_int, query_bool
from accounts.models import STAFF_ROLES, User
from assignments.models import Assignment
from highlights.models import HOMEWORK, Highlight
from schools.models import SchoolClass
from targets.models import Target
from . import ical, services
from .models import TYPE_CHOICES, Event
from .serializers import (
    EventCreateSerializer,
    EventDetailSerializer,
    EventSerializer,
    EventUpdateSerializer,
    RespondSerializer,
)
from .services import EventError

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 500
MAX_RANGE_DAYS = 730

# payload key -> (model field, model, not-found message, extra filters)
LINKS = {
    "class_id": ("school_class", SchoolClass, "Class not found", {}),
    "assignment_id": ("assignment", Assignment, "Assignment not found", {}),
    "homework_id": ("homework", Highlight, "Homework not found", {"type": HOMEWORK}),
    "target_id": ("target", Target, "Target not found", {}),
}


def event_error(e):
    return error(str(e), e.status, e.code)


def _bound(value, end_of_day=False):
    """A date or datetime query value as an aware datetime."""
    if not value:
        return None
    try:
        day = parse_date(value)
        parsed = None if day else parse_datetime(value)
    except ValueError:
        return None
    if day is not None:
        parsed = datetime.combine(day, time.max if end_of_day else time.min)
    elif parsed is None:
        return None
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def _filtered(request):
    """Returns (queryset, error_response) for the shared calendar filters."""
    params = request.query_params
    qs = Event.objects.filter(school_id=request.user.profile.school_id)
    start = _bound(params.get("start_date"))
    end = _bound(params.get("end_date"), end_of_day=True)
    if start and end:
        if start > end:
            return None, error("start_date must not be after end_date")
        if end - start > timedelta(days=MAX_RANGE_DAYS):
            return None, error(f"Date range cannot exceed {MAX_RANGE_DAYS} days")
    if start:
        qs = qs.filter(end_at__gte=start)
    if end:
        qs = qs.filter(start_at__lte=end)
    event_type = params.get("event_type")
    if event_type in dict(TYPE_CHOICES):
        qs = qs.filter(event_type=event_type)
    class_id = positive_int(params.get("class_id"), None)
    if class_id:
        qs = qs.filter(school_class_id=class_id)
    creator = positive_int(params.get("created_by_user_id"), None)
    if creator:
        qs = qs.filter(created_by_id=creator)
    return qs.select_related("created_by__profile").order_by("start_at", "id"), None


@api_view(["GET", "POST"])
def events(request):
    profile = request.user.profile
    if request.method == "POST":
        return _create(request, profile)

    qs, err = _filtered(request)
    if err:
        return err
    limit = min(positive_int(request.query_params.get("limit"), DEFAULT_LIMIT), MAX_LIMIT)
    try:
        offset = max(int(request.query_params.get("offset", 0)), 0)
    except (TypeError, ValueError):
        offset = 0
    total = qs.count()
    items = list(qs[offset:offset + limit])
    by_type = Counter(qs.values_list("event_type", flat=True))
    return Response({
        "success": True,
        "events": EventSerializer(items, many=True).data,
        "pagination": {"total": total, "limit": limit, "offset": offset, "has_more": offset + len(items) < total},
        "summary": {"total_events": total, "by_type": dict(by_type)},
    })


def _create(request, profile):
    if profile.role not in STAFF_ROLES:
        return error("Only teachers and admins can create events", status.HTTP_403_FORBIDDEN)
    serializer = EventCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    links = {}
    for key, (field, model, missing, extra) in LINKS.items():
        if not data.get(key):
            continue
        obj = model.objects.filter(pk=data[key], school_id=profile.school_id, **extra).first()
        if obj is None:
            return error(missing, status.HTTP_404_NOT_FOUND)
        links[field] = obj
    ids = set(data["participant_user_ids"])
    participants = list(User.objects.filter(pk__in=ids, profile__school_id=profile.school_id))
    if len(participants) != len(ids):
        return error("Participants must belong to this school")
    event = services.create_event(profile.school, request.user, data, links=links, participants=participants)
    return Response(
        {
            "success": True,
            "event": EventDetailSerializer(event).data,
            "occurrences": event.instances.count() + 1 if event.recurrence_rule else 1,
        },
        status=status.HTTP_201_CREATED,
    )


def _get_event(request, event_id):
    return (
        Event.objects.filter(pk=event_id, school_id=request.user.profile.school_id)
        .select_related("created_by__profile")
        .prefetch_related("participants__user__profile")
        .first()
    )


@api_view(["GET", "PATCH", "DELETE"])
def event_detail(request, event_id):
    profile = request.user.profile
    event = _get_event(request, event_id)
    if event is None:
        return error("Event not found", status.HTTP_404_NOT_FOUND)
    if request.method == "GET":
        related = []
        if event.is_recurring:
            related = services.series(event).exclude(pk=event.pk).order_by("start_at", "id")
        return Response({
            "success": True,
            "event": EventDetailSerializer(event).data,
            "related_events": EventSerializer(related, many=True).data,
        })
    if not services.can_manage(profile, event):
        return error("Only the creator or an admin can change this event", status.HTTP_403_FORBIDDEN)
    if request.method == "DELETE":
        deleted = services.delete_event(event, delete_series=query_bool(request, "delete_series", False))
        return Response({"success": True, "deleted_count": deleted})

    serializer = EventUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    changes = dict(serializer.validated_data)
    update_series = changes.pop("update_series", False)
    try:
        updated = services.update_event(event, changes, update_series=update_series)
    except EventError as e:
        return event_error(e)
    return Response({"success": True, "event": EventDetailSerializer(event).data, "updated_count": updated})


@api_view(["POST"])
def respond(request, event_id):
    event = _get_event(request, event_id)
    if event is None:
        return error("Event not found", status.HTTP_404_NOT_FOUND)
    serializer = RespondSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    try:
        services.respond(event, request.user, serializer.validated_data["status"])
    except EventError as e:
        return event_error(e)
    return Response({"success": True, "status": serializer.validated_data["status"]})


@api_view(["GET"])
def calendar_feed(request):
    qs, err = _filtered(request)
    if err:
        return err
    body = ical.build_calendar(qs[:MAX_LIMIT], name=request.user.profile.school.name)
    response = HttpResponse(body, content_type="text/calendar; charset=utf-8")
    response["Content-Disposition"] = 'attachment; filename="calendar.ics"'
    return response
