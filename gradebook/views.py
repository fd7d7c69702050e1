import csv
import logging

from django.http import HttpResponse
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from accounts.api import error, page_params, paginate, positive_int
from accounts.permissions import IsParent, IsSchoolAdmin, IsSchoolStaff, IsTeacher
from assignments import lifecycle
from assignments.models import Assignment
from assignments.views import scoped_assignments
from schools.serializers import display_name
from students.decorators import require_student_access
from students.models import Student
from students.permissions import visible_students
from . import services
from .models import Grade, Rubric, RubricCriterion
from .serializers import (
    AttachRubricSerializer,
    CriterionInputSerializer,
    CriterionSerializer,
    CriterionUpdateSerializer,
    GradeInputSerializer,
    GradeSerializer,
    RubricCreateSerializer,
    RubricSerializer,
    RubricUpdateSerializer,
)
from .services import GradeError

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "Student", "Assignment", "Due Date", "Status", "Rubric",
    "Overall Score", "Percentage", "Letter Grade", "Graded At",
]
RECENT_GRADES = 20


def grade_error(e):
    return error(str(e), e.status, e.code)


def _get_rubric(request, rubric_id):
    return (
        Rubric.objects.filter(pk=rubric_id, school_id=request.user.profile.school_id)
        .select_related("created_by__profile")
        .prefetch_related("criteria")
        .first()
    )


def _get_assignment(request, assignment_id):
    assignment = (
        Assignment.objects.filter(pk=assignment_id, school_id=request.user.profile.school_id)
        .select_related("student__user__profile", "school", "rubric_link__rubric")
        .first()
    )
    if assignment is None or not lifecycle.can_view(request.user.profile, assignment):
        return None
    return assignment


def _rubric_assignments(qs):
    return (
        qs.filter(rubric_link__isnull=False)
        .select_related("rubric_link__rubric", "student__user__profile")
        .prefetch_related("rubric_link__rubric__criteria")
        .order_by("due_at", "id")
    )


def _grades(**filters):
    return Grade.objects.filter(**filters).select_related("criterion")


# -- rubrics ---------------------------------------------------------------

@api_view(["GET", "POST"])
@permission_classes([IsSchoolStaff])
def rubrics(request):
    profile = request.user.profile
    if request.method == "POST":
        serializer = RubricCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            rubric = services.create_rubric(profile.school, request.user, serializer.validated_data)
        except GradeError as e:
            return grade_error(e)
        return Response(
            {"success": True, "rubric": RubricSerializer(_get_rubric(request, rubric.pk)).data},
            status=status.HTTP_201_CREATED,
        )
    qs = (
        Rubric.objects.filter(school_id=profile.school_id)
        .select_related("created_by__profile")
        .prefetch_related("criteria")
    )
    page, limit = page_params(request)
    items, meta = paginate(qs, page, limit)
    return Response({"success": True, "rubrics": RubricSerializer(items, many=True).data, "pagination": meta})


@api_view(["GET", "PATCH", "DELETE"])
@permission_classes([IsSchoolStaff])
def rubric_detail(request, rubric_id):
    rubric = _get_rubric(request, rubric_id)
    if rubric is None:
        return error("Rubric not found", status.HTTP_404_NOT_FOUND)
    if request.method == "GET":
        return Response({
            "success": True,
            "rubric": RubricSerializer(rubric).data,
            "assignments_using": rubric.assignment_links.count(),
        })
    if not services.can_manage_rubric(request.user.profile, rubric):
        return error("Only the creator or an admin can change this rubric", status.HTTP_403_FORBIDDEN)
    if request.method == "DELETE":
        try:
            services.delete_rubric(rubric)
        except GradeError as e:
            return grade_error(e)
        logger.info("Rubric %s deleted by %s", rubric_id, request.user.pk)
        return Response({"success": True})
    serializer = RubricUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    for field, value in serializer.validated_data.items():
        setattr(rubric, field, value)
    rubric.save()
    return Response({"success": True, "rubric": RubricSerializer(rubric).data})


@api_view(["POST"])
@permission_classes([IsSchoolStaff])
def criteria(request, rubric_id):
    rubric = _get_rubric(request, rubric_id)
    if rubric is None:
        return error("Rubric not found", status.HTTP_404_NOT_FOUND)
    if not services.can_manage_rubric(request.user.profile, rubric):
        return error("Only the creator or an admin can change this rubric", status.HTTP_403_FORBIDDEN)
    serializer = CriterionInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    try:
        criterion = services.add_criterion(rubric, serializer.validated_data)
    except GradeError as e:
        return grade_error(e)
    return Response(
        {"success": True, "criterion": CriterionSerializer(criterion).data},
        status=status.HTTP_201_CREATED,
    )


@api_view(["PATCH", "DELETE"])
@permission_classes([IsSchoolStaff])
def criterion_detail(request, rubric_id, criterion_id):
    rubric = _get_rubric(request, rubric_id)
    if rubric is None:
        return error("Rubric not found", status.HTTP_404_NOT_FOUND)
    criterion = RubricCriterion.objects.filter(pk=criterion_id, rubric=rubric).first()
    if criterion is None:
        return error("Criterion not found", status.HTTP_404_NOT_FOUND)
    if not services.can_manage_rubric(request.user.profile, rubric):
        return error("Only the creator or an admin can change this rubric", status.HTTP_403_FORBIDDEN)
    try:
        if request.method == "DELETE":
            services.delete_criterion(criterion)
            return Response({"success": True})
        serializer = CriterionUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.update_criterion(criterion, dict(serializer.validated_data))
    except GradeError as e:
        return grade_error(e)
    return Response({"success": True, "criterion": CriterionSerializer(criterion).data})


@api_view(["GET", "POST", "DELETE"])
def assignment_rubric(request, assignment_id):
    profile = request.user.profile
    assignment = _get_assignment(request, assignment_id)
    if assignment is None:
        return error("Assignment not found", status.HTTP_404_NOT_FOUND)
    link = getattr(assignment, "rubric_link", None)
    if request.method == "GET":
        rubric = link.rubric if link else None
        return Response({"success": True, "rubric": RubricSerializer(rubric).data if rubric else None})
    if not lifecycle.can_manage(profile, assignment):
        return error("Only the assigning teacher or an admin can change this assignment", status.HTTP_403_FORBIDDEN)
    if request.method == "DELETE":
        if link is None:
            return error("Assignment has no rubric attached", status.HTTP_404_NOT_FOUND)
        if assignment.grades.exists():
            return error("Assignment already has grades", status.HTTP_409_CONFLICT, "GRADES_EXIST")
        link.delete()
        return Response({"success": True})
    serializer = AttachRubricSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    rubric = _get_rubric(request, serializer.validated_data["rubric_id"])
    if rubric is None:
        return error("Rubric not found", status.HTTP_404_NOT_FOUND)
    try:
        services.attach_rubric(assignment, rubric, request.user)
    except GradeError as e:
        return grade_error(e)
    return Response({
        "success": True,
        "message": f'Rubric "{rubric.name}" attached to assignment successfully',
        "rubric": RubricSerializer(rubric).data,
    })


# -- grades ----------------------------------------------------------------

@api_view(["POST"])
@permission_classes([IsSchoolStaff])
def grades(request):
    profile = request.user.profile
    serializer = GradeInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    assignment = _get_assignment(request, data["assignment_id"])
    if assignment is None:
        return error("Assignment not found", status.HTTP_404_NOT_FOUND)
    if not lifecycle.can_manage(profile, assignment):
        return error("Only the assigning teacher or an admin can grade this assignment", status.HTTP_403_FORBIDDEN)
    student = Student.objects.filter(pk=data["student_id"], school_id=profile.school_id).select_related("user").first()
    if student is None:
        return error("Student not found", status.HTTP_404_NOT_FOUND)
    criterion = RubricCriterion.objects.filter(pk=data["criterion_id"], rubric__school_id=profile.school_id).first()
    if criterion is None:
        return error("Criterion not found", status.HTTP_404_NOT_FOUND)
    try:
        grade, created, progress = services.submit_grade(
            assignment,
            student,
            criterion,
            data["score"],
            request.user,
            max_score=data.get("max_score"),
            comments=data["comments"],
        )
    except GradeError as e:
        return grade_error(e)
    return Response(
        {"success": True, "grade": GradeSerializer(grade).data, "overall_progress": progress},
        status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
    )


@api_view(["GET"])
def assignment_grades(request, assignment_id):
    assignment = _get_assignment(request, assignment_id)
    if assignment is None:
        return error("Assignment not found", status.HTTP_404_NOT_FOUND)
    link = getattr(assignment, "rubric_link", None)
    graded = list(_grades(assignment=assignment).order_by("criterion__order", "criterion_id"))
    summary = services.assignment_summary(assignment, graded)
    return Response({
        "success": True,
        "assignment_id": assignment.pk,
        "rubric": RubricSerializer(link.rubric).data if link else None,
        "grades": GradeSerializer(graded, many=True).data,
        **summary,
    })


@api_view(["GET"])
@require_student_access("student_id")
def student_grades(request, student):
    assignments = _rubric_assignments(Assignment.objects.filter(student=student))
    entries = services.gradebook_entries(assignments, _grades(student=student))
    return Response({
        "success": True,
        "student_id": student.pk,
        "entries": entries,
        "stats": services.entry_stats(entries),
    })


@api_view(["GET"])
@permission_classes([IsTeacher])
def assignments_with_rubrics(request):
    """Rubric assignments of the teacher's students, with criteria and any grades so far."""
    profile = request.user.profile
    assignments = list(_rubric_assignments(
        Assignment.objects.filter(school_id=profile.school_id)
        .filter(student__enrollments__school_class__teacher_links__teacher__user=request.user)
        .distinct()
    ))
    grades_by_assignment = {}
    for grade in _grades(assignment__in=[a.pk for a in assignments]):
        grades_by_assignment.setdefault(grade.assignment_id, []).append(grade)
    rows = []
    for assignment in assignments:
        rows.append({
            "assignment_id": assignment.pk,
            "title": assignment.title,
            "status": assignment.status,
            "due_at": assignment.due_at,
            "student_id": assignment.student_id,
            "student_name": display_name(assignment.student.user),
            "rubric": RubricSerializer(assignment.rubric_link.rubric).data,
            "existing_grades": GradeSerializer(grades_by_assignment.get(assignment.pk, []), many=True).data,
        })
    return Response({"success": True, "assignments": rows})


# -- gradebook -------------------------------------------------------------

def _student_book(student):
    assignments = _rubric_assignments(Assignment.objects.filter(student=student))
    entries = services.gradebook_entries(assignments, _grades(student=student))
    return {
        "student_id": student.pk,
        "student_name": display_name(student.user),
        "entries": entries,
        "stats": services.entry_stats(entries),
        "recent_trend": services.trend(entries),
    }


@api_view(["GET"])
@require_student_access("student_id")
def student_gradebook(request, student):
    return Response({"success": True, **_student_book(student)})


@api_view(["GET"])
@permission_classes([IsParent])
@require_student_access("child_id")
def parent_gradebook(request, student):
    return Response({"success": True, **_student_book(student)})


@api_view(["GET"])
@permission_classes([IsSchoolAdmin])
def school_gradebook(request):
    profile = request.user.profile
    assignments = list(_rubric_assignments(Assignment.objects.filter(school_id=profile.school_id)))
    entries = services.gradebook_entries(assignments, _grades(assignment__school_id=profile.school_id))
    by_student = {}
    for entry in entries:
        by_student.setdefault(entry["student_id"], []).append(entry)
    names = {a.student_id: display_name(a.student.user) for a in assignments}
    students = []
    for student_id, rows in by_student.items():
        stats = services.entry_stats(rows)
        students.append({
            "student_id": student_id,
            "student_name": names[student_id],
            "graded_assignments": stats["graded"],
            "average": stats["average"],
        })
    students.sort(key=lambda s: s["student_name"])
    recent = _grades(assignment__school_id=profile.school_id).order_by("-graded_at", "-id")[:RECENT_GRADES]
    return Response({
        "success": True,
        "students": students,
        "school_wide_average": services.entry_stats(entries)["average"],
        "recent_grades": GradeSerializer(recent, many=True).data,
    })


def _format_time(value):
    return timezone.localtime(value).strftime("%Y-%m-%d %H:%M") if value else ""


@api_view(["GET"])
@permission_classes([IsSchoolStaff])
def export(request):
    """CSV of gradebook rows, optionally for one student and a due-date window."""
    params = request.query_params
    if params.get("format", "csv") == "pdf":
        return error("PDF export is not available", status.HTTP_501_NOT_IMPLEMENTED, "NOT_IMPLEMENTED")
    profile = request.user.profile
    qs = scoped_assignments(profile)
    student_id = positive_int(params.get("student_id"), None)
    if student_id:
        if not visible_students(profile).filter(pk=student_id).exists():
            return error("Student not found", status.HTTP_404_NOT_FOUND)
        qs = qs.filter(student_id=student_id)
    try:
        start = parse_date(params.get("start_date") or "")
        end = parse_date(params.get("end_date") or "")
    except ValueError:
        return error("Dates must look like YYYY-MM-DD")
    if start:
        qs = qs.filter(due_at__date__gte=start)
    if end:
        qs = qs.filter(due_at__date__lte=end)
    assignments = list(_rubric_assignments(qs))
    entries = services.gradebook_entries(
        assignments, _grades(assignment__in=[a.pk for a in assignments])
    )
    names = {a.pk: display_name(a.student.user) for a in assignments}

    response = HttpResponse(content_type="text/csv; charset=utf-8")
    filename = f"gradebook_export_{timezone.localdate():%Y-%m-%d}.csv"
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    writer = csv.writer(response)
    writer.writerow(EXPORT_COLUMNS)
    for entry in entries:
        writer.writerow([
            names[entry["assignment_id"]],
            entry["title"],
            _format_time(entry["due_at"]),
            entry["status"],
            entry["rubric"],
            "" if entry["overall_score"] is None else entry["overall_score"],
            "" if entry["percentage"] is None else entry["percentage"],
            entry["letter_grade"] or "",
            _format_time(entry["graded_at"]),
        ])
    logger.info("Gradebook export by user %s: %s rows", request.user.pk, len(entries))
    return response
