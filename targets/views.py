import logging

from django.db.models import Count, F, FloatField, Q, Value
from django.db.models.functions import Cast, NullIf
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from accounts.api import error, page_params, paginate, positive_int, query_bool
from accounts.models import STAFF_ROLES, TEACHER
from attendance.models import AttendanceRecord
from attendance.services import summarize
from schools.models import SchoolClass
from students.decorators import require_student_access
from students.models import Student
from . import services
from .models import ACTIVE, CATEGORY_CHOICES, CLASS, INDIVIDUAL, SCHOOL, STATUS_CHOICES, TYPE_CHOICES, Target
from .serializers import (
    MilestoneInputSerializer,
    MilestoneSerializer,
    MilestoneUpdateSerializer,
    TargetCreateSerializer,
    TargetSerializer,
    TargetUpdateSerializer,
)
from .services import TargetError

logger = logging.getLogger(__name__)

SORT_FIELDS = ("created_at", "due_date", "title", "progress")


def target_error(e):
    return error(str(e), e.status, e.code)


def _with_relations(qs):
    return qs.select_related("student__user__profile", "school_class", "created_by__profile").prefetch_related(
        "milestones"
    )


def _get_target(request, target_id):
    qs = services.scoped_targets(request.user.profile).filter(pk=target_id)
    return _with_relations(qs).first()


def _choice(value, choices):
    return value if value in dict(choices) else None


@api_view(["GET", "POST"])
def targets(request):
    profile = request.user.profile
    if request.method == "POST":
        return _create(request, profile)

    params = request.query_params
    qs = services.scoped_targets(profile)
    student_id = positive_int(params.get("student_id"), None)
    if student_id:
        qs = qs.filter(student_id=student_id)
    class_id = positive_int(params.get("class_id"), None)
    if class_id:
        qs = qs.filter(school_class_id=class_id)
    teacher_id = positive_int(params.get("teacher_id"), None)
    if teacher_id:
        qs = qs.filter(created_by__teacher__id=teacher_id)
    kind = _choice(params.get("type"), TYPE_CHOICES)
    if kind:
        qs = qs.filter(type=kind)
    category = _choice(params.get("category"), CATEGORY_CHOICES)
    if category:
        qs = qs.filter(category=category)
    target_status = _choice(params.get("status"), STATUS_CHOICES)
    if target_status:
        qs = qs.filter(status=target_status)
    elif not query_bool(request, "include_completed", False):
        qs = qs.filter(status=ACTIVE)

    sort_by = params.get("sort_by", "created_at")
    if sort_by not in SORT_FIELDS:
        sort_by = "created_at"
    descending = params.get("sort_order", "desc").lower() != "asc"
    if sort_by == "progress":
        qs = qs.annotate(
            milestone_total=Count("milestones", distinct=True),
            milestone_done=Count("milestones", filter=Q(milestones__completed=True), distinct=True),
        ).annotate(
            progress_ratio=Cast("milestone_done", FloatField())
            / NullIf(Cast("milestone_total", FloatField()), Value(0.0)),
        )
        order = F("progress_ratio").desc(nulls_last=True) if descending else F("progress_ratio").asc(nulls_first=True)
        qs = qs.order_by(order, "id")
    else:
        qs = qs.order_by(f"{'-' if descending else ''}{sort_by}", "id")

    page, limit = page_params(request)
    items, meta = paginate(_with_relations(qs), page, limit)
    return Response({
        "success": True,
        "targets": TargetSerializer(items, many=True).data,
        "pagination": meta,
    })


def _create(request, profile):
    if profile.role not in STAFF_ROLES:
        return error("Only teachers and admins can create targets", status.HTTP_403_FORBIDDEN)
    serializer = TargetCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    student = school_class = None
    if data["type"] == INDIVIDUAL:
        student = Student.objects.filter(pk=data["student_id"], school_id=profile.school_id).first()
        if student is None:
            return error("Student not found", status.HTTP_404_NOT_FOUND)
    elif data["type"] == CLASS:
        qs = SchoolClass.objects.filter(pk=data["class_id"], school_id=profile.school_id)
        if profile.role == TEACHER:
            qs = qs.filter(teacher_links__teacher__user=request.user)
        school_class = qs.first()
        if school_class is None:
            return error("Class not found", status.HTTP_404_NOT_FOUND)
    target = services.create_target(profile.school, request.user, data, student=student, school_class=school_class)
    target = _with_relations(Target.objects.filter(pk=target.pk)).get()
    return Response(
        {"success": True, "target": TargetSerializer(target).data},
        status=status.HTTP_201_CREATED,
    )


@api_view(["GET", "PATCH", "DELETE"])
def target_detail(request, target_id):
    profile = request.user.profile
    target = _get_target(request, target_id)
    if target is None:
        return error("Target not found", status.HTTP_404_NOT_FOUND)
    if request.method == "GET":
        stats = {
            "total_milestones": len(target.milestones.all()),
            "completed_milestones": sum(1 for m in target.milestones.all() if m.completed),
            "progress": target.progress,
        }
        return Response({"success": True, "target": TargetSerializer(target).data, "stats": stats})
    if not services.can_manage(profile, target):
        return error("Only the creator or an admin can change this target", status.HTTP_403_FORBIDDEN)
    if request.method == "DELETE":
        target.delete()
        logger.info("Target %s deleted by %s", target_id, request.user.pk)
        return Response({"success": True})

    serializer = TargetUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    try:
        services.update_target(target, request.user, dict(serializer.validated_data))
    except TargetError as e:
        return target_error(e)
    target = _get_target(request, target_id)
    return Response({"success": True, "target": TargetSerializer(target).data})


@api_view(["POST"])
def milestones(request, target_id):
    profile = request.user.profile
    target = _get_target(request, target_id)
    if target is None:
        return error("Target not found", status.HTTP_404_NOT_FOUND)
    if not services.can_manage(profile, target):
        return error("Only the creator or an admin can change this target", status.HTTP_403_FORBIDDEN)
    serializer = MilestoneInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    try:
        milestone = services.add_milestone(target, serializer.validated_data)
    except TargetError as e:
        return target_error(e)
    return Response(
        {"success": True, "milestone": MilestoneSerializer(milestone).data},
        status=status.HTTP_201_CREATED,
    )


@api_view(["PATCH"])
def milestone_detail(request, target_id, milestone_id):
    profile = request.user.profile
    target = _get_target(request, target_id)
    if target is None:
        return error("Target not found", status.HTTP_404_NOT_FOUND)
    milestone = target.milestones.filter(pk=milestone_id).first()
    if milestone is None:
        return error("Milestone not found", status.HTTP_404_NOT_FOUND)
    serializer = MilestoneUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    changes = dict(serializer.validated_data)
    # any staff member may tick a milestone off; editing it is for the creator
    only_completion = set(changes) <= {"completed", "current_value"}
    if profile.role not in STAFF_ROLES or not (only_completion or services.can_manage(profile, target)):
        return error("Not allowed to change this milestone", status.HTTP_403_FORBIDDEN)
    milestone.target = target
    try:
        services.update_milestone(milestone, request.user, changes)
    except TargetError as e:
        return target_error(e)
    target = _with_relations(Target.objects.filter(pk=target.pk)).get()
    return Response({
        "success": True,
        "milestone": MilestoneSerializer(milestone).data,
        "target_status": target.status,
        "progress": target.progress,
    })


@api_view(["GET"])
@require_student_access("student_id")
def student_progress(request, student):
    """Targets, milestones and attendance for one student."""
    qs = Target.objects.filter(school_id=student.school_id).filter(
        Q(type=INDIVIDUAL, student=student)
        | Q(type=CLASS, school_class__enrollments__student=student)
        | Q(type=SCHOOL)
    ).distinct()
    if not query_bool(request, "include_completed", True):
        qs = qs.filter(status=ACTIVE)
    stats = services.target_stats(qs)
    attendance = summarize(AttendanceRecord.objects.filter(student=student))
    return Response({
        "success": True,
        "student_id": student.pk,
        "targets": TargetSerializer(_with_relations(qs.order_by("-created_at", "-id")), many=True).data,
        "attendance": attendance,
        "stats": stats,
    })
