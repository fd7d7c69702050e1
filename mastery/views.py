import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from accounts.api import error, positive_int
from accounts.permissions import IsSchoolAdmin, IsSchoolStaff
from assignments import lifecycle
from assignments.models import Assignment
from quran.models import SURAH_COUNT
from students.decorators import require_student_access
from students.permissions import visible_students
from . import services
from .serializers import AutoUpdateSerializer, MasterySerializer, UpsertSerializer
from .services import MasteryError

logger = logging.getLogger(__name__)


def mastery_error(e):
    return error(str(e), e.status, e.code)


def _student(request, student_id):
    return visible_students(request.user.profile).filter(pk=student_id).select_related("user", "school").first()


@api_view(["POST"])
@permission_classes([IsSchoolStaff])
def upsert(request):
    serializer = UpsertSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    student = _student(request, data["student_id"])
    if student is None:
        return error("Student not found", status.HTTP_404_NOT_FOUND)
    try:
        mastery, created, previous, improved, message = services.upsert(
            student, data["surah"], data["ayah"], data["level"], request.user
        )
    except MasteryError as e:
        return mastery_error(e)
    return Response(
        {
            "success": True,
            "mastery": MasterySerializer(mastery).data,
            "previous_level": previous,
            "improved": improved,
            "message": message,
        },
        status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
    )


@api_view(["POST"])
@permission_classes([IsSchoolStaff])
def auto_update(request):
    """Derives mastery for the ayahs an assignment covers from its rubric grades."""
    serializer = AutoUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    student = _student(request, data["student_id"])
    if student is None:
        return error("Student not found", status.HTTP_404_NOT_FOUND)
    profile = request.user.profile
    assignment = Assignment.objects.filter(pk=data["assignment_id"], school_id=profile.school_id).first()
    if assignment is None or not lifecycle.can_view(profile, assignment):
        return error("Assignment not found", status.HTTP_404_NOT_FOUND)
    if assignment.student_id != student.pk:
        return error("Assignment does not belong to this student")
    try:
        level, updated, improvements = services.auto_update(
            assignment, student, request.user, new_level=data.get("new_level")
        )
    except MasteryError as e:
        return mastery_error(e)
    return Response({
        "success": True,
        "level": level,
        "mastery": MasterySerializer(updated, many=True).data,
        "improved": improvements > 0,
        "message": (
            f"Auto-updated mastery for {len(updated)} ayah(s) to {level}. "
            f"{improvements} improvement(s) recorded"
        ),
    })


@api_view(["GET"])
@require_student_access("student_id")
def heatmap(request, surah, student):
    if not 1 <= surah <= SURAH_COUNT:
        return error(f"surah must be between 1 and {SURAH_COUNT}")
    return Response({"success": True, "student_id": student.pk, **services.heatmap(student, surah)})


@api_view(["GET"])
@require_student_access("student_id")
def student_mastery(request, student):
    surah = positive_int(request.query_params.get("surah"), None)
    if surah is not None and surah > SURAH_COUNT:
        return error(f"surah must be between 1 and {SURAH_COUNT}")
    return Response({"success": True, **services.student_overview(student, surah)})


@api_view(["GET"])
@permission_classes([IsSchoolAdmin])
def school_mastery(request):
    return Response({"success": True, **services.school_overview(request.user.profile.school)})
