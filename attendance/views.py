import logging

from django.utils.dateparse import parse_date
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from accounts.api import error, positive_int
from accounts.models import TEACHER
from accounts.permissions import IsSchoolStaff
from schools.models import SchoolClass
from students.models import Student
from students.permissions import can_view_student
from .models import AttendanceRecord
from .serializers import AttendanceRecordSerializer, AttendanceUpdateSerializer, SessionSerializer
from .services import AttendanceError, record_session, summarize

logger = logging.getLogger(__name__)


def _get_class(request, class_id):
    """Class in the caller's school; teachers only see classes they teach."""
    profile = request.user.profile
    qs = SchoolClass.objects.filter(pk=class_id, school_id=profile.school_id)
    if profile.role == TEACHER:
        qs = qs.filter(teacher_links__teacher__user=request.user)
    return qs.first()


def _filtered(request):
    """Returns (queryset, error_response) for the class_id/student_id filters."""
    profile = request.user.profile
    params = request.query_params
    class_id = positive_int(params.get("class_id"), None)
    student_id = positive_int(params.get("student_id"), None)
    if not class_id and not student_id:
        return None, error("class_id or student_id is required", code="MISSING_FILTER")

    qs = AttendanceRecord.objects.filter(school_id=profile.school_id)
    if class_id:
        if not profile.is_staff_member or _get_class(request, class_id) is None:
            return None, error("Class not found", status.HTTP_404_NOT_FOUND)
        qs = qs.filter(school_class_id=class_id)
    if student_id:
        student = Student.objects.filter(pk=student_id, school_id=profile.school_id).first()
        if student is None or not can_view_student(profile, student):
            return None, error("Student not found", status.HTTP_404_NOT_FOUND)
        qs = qs.filter(student=student)
    date_from = parse_date(params.get("date_from") or "")
    if date_from:
        qs = qs.filter(session_date__gte=date_from)
    date_to = parse_date(params.get("date_to") or "")
    if date_to:
        qs = qs.filter(session_date__lte=date_to)
    return qs, None


@api_view(["POST"])
@permission_classes([IsSchoolStaff])
def record(request):
    serializer = SessionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    school_class = _get_class(request, data["class_id"])
    if school_class is None:
        return error("Class not found", status.HTTP_404_NOT_FOUND)
    try:
        records = record_session(school_class, data["session_date"], data["attendance"], request.user)
    except AttendanceError as e:
        return error(str(e), e.status, e.code)
    return Response(
        {"success": True, "records": AttendanceRecordSerializer(records, many=True).data},
        status=status.HTTP_201_CREATED,
    )


@api_view(["GET"])
def attendance(request):
    qs, err = _filtered(request)
    if err:
        return err
    qs = qs.select_related("student__user__profile")
    return Response({"success": True, "records": AttendanceRecordSerializer(qs, many=True).data})


@api_view(["PATCH"])
@permission_classes([IsSchoolStaff])
def update_record(request, record_id):
    record = (
        AttendanceRecord.objects.filter(pk=record_id, school_id=request.user.profile.school_id)
        .select_related("student__user__profile")
        .first()
    )
    if record is None or _get_class(request, record.school_class_id) is None:
        return error("Attendance record not found", status.HTTP_404_NOT_FOUND)
    serializer = AttendanceUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    changed = list(serializer.validated_data)
    for field in changed:
        setattr(record, field, serializer.validated_data[field])
    record.marked_by = request.user
    record.save(update_fields=changed + ["marked_by", "updated_at"])
    return Response({"success": True, "record": AttendanceRecordSerializer(record).data})


@api_view(["GET"])
def summary(request):
    qs, err = _filtered(request)
    if err:
        return err
    return Response({"success": True, "summary": summarize(qs)})
