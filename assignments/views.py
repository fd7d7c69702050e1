import logging

from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from accounts.api import error, id_list, page_params, paginate, positive_int, query_bool
from accounts.models import ADMIN_ROLES, PARENT, STAFF_ROLES, STUDENT, TEACHER
from highlights.models import Highlight
from students.models import Student
from . import lifecycle
from .lifecycle import TransitionError
from .models import LOCKED_STATUSES, OPEN_STATUSES, Assignment, AssignmentHighlight
from .serializers import (
    AssignmentCreateSerializer,
    AssignmentDetailSerializer,
    AssignmentSerializer,
    AssignmentUpdateSerializer,
    ReopenSerializer,
    SubmitSerializer,
    TransitionSerializer,
)

logger = logging.getLogger(__name__)

SORT_FIELDS = ("due_at", "created_at", "updated_at", "status", "title")


def transition_error(e):
    return error(str(e), e.status, e.code)


def scoped_assignments(profile):
    qs = Assignment.objects.filter(school_id=profile.school_id).select_related("student__user__profile")
    if profile.role in ADMIN_ROLES:
        return qs
    if profile.role == TEACHER:
        return qs.filter(created_by_id=profile.user_id)
    if profile.role == STUDENT:
        return qs.filter(student__user_id=profile.user_id)
    if profile.role == PARENT:
        return qs.filter(student__parent_links__parent__user_id=profile.user_id).distinct()
    return qs.none()


def _get_assignment(request, assignment_id):
    assignment = (
        Assignment.objects.filter(pk=assignment_id, school_id=request.user.profile.school_id)
        .select_related("student__user__profile", "school", "created_by")
        .first()
    )
    if assignment is None or not lifecycle.can_view(request.user.profile, assignment):
        return None
    return assignment


def _link_highlights(assignment, highlight_ids):
    highlights = Highlight.objects.filter(
        id__in=id_list(highlight_ids), student_id=assignment.student_id, school_id=assignment.school_id
    )
    for highlight in highlights:
        AssignmentHighlight.objects.get_or_create(assignment=assignment, highlight=highlight)
    return [h.id for h in highlights]


@api_view(["GET", "POST"])
def assignments(request):
    profile = request.user.profile
    if request.method == "POST":
        return _create(request, profile)

    params = request.query_params
    qs = scoped_assignments(profile).prefetch_related("highlight_links")
    student_id = positive_int(params.get("student_id"), None)
    if student_id:
        qs = qs.filter(student_id=student_id)
    if params.get("status"):
        qs = qs.filter(status__in=[s.strip() for s in params["status"].split(",") if s.strip()])
    if query_bool(request, "late_only", False):
        qs = qs.filter(Q(late=True) | Q(status__in=OPEN_STATUSES, due_at__lt=timezone.now()))
    due_before = parse_datetime(params.get("due_before") or "")
    if due_before:
        qs = qs.filter(due_at__lte=due_before)
    due_after = parse_datetime(params.get("due_after") or "")
    if due_after:
        qs = qs.filter(due_at__gte=due_after)
    sort_by = params.get("sort_by", "due_at")
    if sort_by not in SORT_FIELDS:
        sort_by = "due_at"
    prefix = "-" if params.get("sort_order", "asc").lower() == "desc" else ""
    qs = qs.order_by(f"{prefix}{sort_by}", "id")
    page, limit = page_params(request)
    items, meta = paginate(qs, page, limit)
    return Response({
        "success": True,
        "assignments": AssignmentSerializer(items, many=True).data,
        "pagination": meta,
    })


def _create(request, profile):
    if profile.role not in STAFF_ROLES:
        return error("Only teachers and admins can create assignments", status.HTTP_403_FORBIDDEN)
    serializer = AssignmentCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    student = Student.objects.filter(pk=data["student_id"]).first()
    if student is None:
        return error("Student not found", status.HTTP_404_NOT_FOUND)
    if student.school_id != profile.school_id:
        return error("Student belongs to another school", status.HTTP_403_FORBIDDEN)
    highlights = Highlight.objects.filter(
        id__in=data["highlight_ids"], student=student, school_id=profile.school_id
    )
    try:
        assignment = lifecycle.create_assignment(
            profile.school,
            student,
            request.user,
            data["title"],
            data["due_at"],
            description=data["description"],
            highlights=list(highlights),
        )
    except TransitionError as e:
        return transition_error(e)
    return Response(
        {"success": True, "assignment": AssignmentDetailSerializer(assignment).data},
        status=status.HTTP_201_CREATED,
    )


@api_view(["GET", "PATCH", "DELETE"])
def assignment_detail(request, assignment_id):
    profile = request.user.profile
    assignment = _get_assignment(request, assignment_id)
    if assignment is None:
        return error("Assignment not found", status.HTTP_404_NOT_FOUND)
    if request.method == "GET":
        return Response({"success": True, "assignment": AssignmentDetailSerializer(assignment).data})
    if not lifecycle.can_manage(profile, assignment):
        return error("Only the assigning teacher or an admin can change this assignment", status.HTTP_403_FORBIDDEN)
    if assignment.status in LOCKED_STATUSES:
        return error(
            f"Assignment cannot be changed once {assignment.status}",
            status.HTTP_400_BAD_REQUEST,
            "INVALID_TRANSITION",
        )
    if request.method == "DELETE":
        assignment.delete()
        logger.info("Assignment %s deleted by %s", assignment_id, request.user.pk)
        return Response({"success": True})

    serializer = AssignmentUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    if "due_at" in data:
        try:
            lifecycle.validate_due_at(data["due_at"])
        except TransitionError as e:
            return transition_error(e)
    changed = [f for f in ("title", "description", "due_at") if f in data]
    for f in changed:
        setattr(assignment, f, data[f])
    if changed:
        assignment.save(update_fields=changed + ["updated_at"])
        lifecycle.record_event(assignment, request.user, "updated", meta={"fields": changed})
    return Response({"success": True, "assignment": AssignmentDetailSerializer(assignment).data})


@api_view(["POST"])
def transition(request, assignment_id):
    assignment = _get_assignment(request, assignment_id)
    if assignment is None:
        return error("Assignment not found", status.HTTP_404_NOT_FOUND)
    serializer = TransitionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    from_status = assignment.status
    to_status = serializer.validated_data["to_status"]
    try:
        event = lifecycle.transition(
            assignment, request.user.profile, to_status, serializer.validated_data.get("reason")
        )
    except TransitionError as e:
        return transition_error(e)
    return Response({
        "success": True,
        "assignment": AssignmentSerializer(assignment).data,
        "event_id": event.id,
        "message": f"Assignment status changed from {from_status} to {to_status}",
    })


@api_view(["POST"])
def submit(request, assignment_id):
    assignment = _get_assignment(request, assignment_id)
    if assignment is None:
        return error("Assignment not found", status.HTTP_404_NOT_FOUND)
    serializer = SubmitSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    try:
        submission = lifecycle.submit(
            assignment,
            request.user.profile,
            text=serializer.validated_data["text"],
            attachments=serializer.validated_data["attachments"],
        )
    except TransitionError as e:
        return transition_error(e)
    return Response(
        {
            "success": True,
            "assignment": AssignmentSerializer(assignment).data,
            "submission_id": submission.id,
        },
        status=status.HTTP_201_CREATED,
    )


@api_view(["POST"])
def reopen(request, assignment_id):
    assignment = _get_assignment(request, assignment_id)
    if assignment is None:
        return error("Assignment not found", status.HTTP_404_NOT_FOUND)
    serializer = ReopenSerializer(data=request.data)
    if not serializer.is_valid():
        return error("A reason is required to reopen an assignment", code="VALIDATION_ERROR")
    try:
        event = lifecycle.reopen(assignment, request.user.profile, serializer.validated_data["reason"])
    except TransitionError as e:
        return transition_error(e)
    return Response({
        "success": True,
        "assignment": AssignmentSerializer(assignment).data,
        "event_id": event.id,
        "remaining_reopens": event.meta["remaining_reopens"],
    })


@api_view(["PUT"])
def complete(request, assignment_id):
    assignment = _get_assignment(request, assignment_id)
    if assignment is None:
        return error("Assignment not found", status.HTTP_404_NOT_FOUND)
    try:
        count, _ = lifecycle.complete(assignment, request.user.profile)
    except TransitionError as e:
        return transition_error(e)
    return Response({
        "success": True,
        "assignment": AssignmentSerializer(assignment).data,
        "highlights_completed": count,
    })


@api_view(["GET", "POST"])
def assignment_highlights(request, assignment_id):
    from highlights.serializers import HighlightSerializer

    assignment = _get_assignment(request, assignment_id)
    if assignment is None:
        return error("Assignment not found", status.HTTP_404_NOT_FOUND)
    if request.method == "POST":
        if not lifecycle.can_manage(request.user.profile, assignment):
            return error("Only the assigning teacher or an admin can link highlights", status.HTTP_403_FORBIDDEN)
        ids = request.data.get("highlight_ids")
        if not isinstance(ids, list) or not ids:
            return error("highlight_ids must be a non-empty list")
        linked = _link_highlights(assignment, ids)
        return Response({"success": True, "linked": linked}, status=status.HTTP_201_CREATED)
    highlights = Highlight.objects.filter(assignment_links__assignment=assignment)
    return Response({"success": True, "highlights": HighlightSerializer(highlights, many=True).data})
