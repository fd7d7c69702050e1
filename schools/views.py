import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Prefetch
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from accounts.api import error, id_list
from accounts.models import ADMIN_ROLES, TEACHER
from accounts.permissions import IsSchoolAdmin, IsSchoolStaff, IsTeacher
from accounts.provisioning import (
    ProvisioningError,
    provision_account,
    reset_account_password,
    run_bulk,
)
from jobs.tasks import send_credentials_email
from .models import ClassEnrollment, ClassTeacher, SchoolClass, Teacher
from .serializers import (
    SchoolClassInputSerializer,
    SchoolClassSerializer,
    SchoolSerializer,
    TeacherInputSerializer,
    TeacherSerializer,
    TeacherUpdateSerializer,
)
from .services import (
    assign_teacher_classes,
    cleanup_orphaned_users as run_cleanup,
    delete_role_accounts,
    enroll_students,
)

logger = logging.getLogger(__name__)

TEACHER_FIELDS = ("bio", "subject", "qualification", "experience_years", "address")


def queue_credentials(user, password):
    transaction.on_commit(lambda: send_credentials_email.delay(user.pk, password))


@api_view(["GET", "PATCH"])
def school_settings(request):
    profile = request.user.profile
    school = profile.school
    if request.method == "GET":
        return Response({"success": True, "school": SchoolSerializer(school).data})
    if profile.role not in ADMIN_ROLES:
        return error("Insufficient permissions", status.HTTP_403_FORBIDDEN)
    serializer = SchoolSerializer(school, data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    serializer.save()
    return Response({"success": True, "school": serializer.data})


def _create_teacher(school, payload):
    serializer = TeacherInputSerializer(data=payload)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    user, password = provision_account(
        school,
        TEACHER,
        data["email"],
        data["name"],
        password=data.get("password"),
        phone=data.get("phone", ""),
        **{k: data[k] for k in TEACHER_FIELDS if k in data},
    )
    class_ids = assign_teacher_classes(user.teacher, data.get("class_ids"))
    if data.get("send_credentials"):
        queue_credentials(user, password)
    return {
        "id": user.teacher.id,
        "user_id": user.id,
        "email": user.email,
        "password": password,
        "name": data["name"],
        "class_ids": class_ids,
    }


@api_view(["GET"])
@permission_classes([IsSchoolStaff])
def list_teachers(request):
    teachers = (
        Teacher.objects.filter(school_id=request.user.profile.school_id)
        .select_related("user__profile")
        .prefetch_related("class_links")
        .order_by("user__profile__display_name")
    )
    return Response({"success": True, "teachers": TeacherSerializer(teachers, many=True).data})


@api_view(["POST"])
@permission_classes([IsSchoolAdmin])
def create_teacher(request):
    try:
        with transaction.atomic():
            data = _create_teacher(request.user.profile.school, request.data)
    except ProvisioningError as e:
        return error(str(e))
    return Response({"success": True, "data": data}, status=status.HTTP_201_CREATED)


@api_view(["POST"])
@permission_classes([IsSchoolAdmin])
def bulk_create_teachers(request):
    items = request.data.get("teachers")
    if not isinstance(items, list) or not items:
        return error("teachers must be a non-empty list")
    school = request.user.profile.school
    results, summary = run_bulk(items, lambda item: _create_teacher(school, item))
    return Response({"success": True, "results": results, "summary": summary})


@api_view(["POST"])
@permission_classes([IsSchoolAdmin])
def update_teacher(request):
    serializer = TeacherUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    teacher = (
        Teacher.objects.filter(pk=data["teacher_id"], school_id=request.user.profile.school_id)
        .select_related("user__profile")
        .first()
    )
    if teacher is None:
        return error("Teacher not found", status.HTTP_404_NOT_FOUND)
    with transaction.atomic():
        profile = teacher.user.profile
        if "name" in data:
            profile.display_name = data["name"]
        if "phone" in data:
            profile.phone = data["phone"]
        profile.save(update_fields=["display_name", "phone", "updated_at"])
        fields = [f for f in TEACHER_FIELDS + ("active",) if f in data]
        for f in fields:
            setattr(teacher, f, data[f])
        if fields:
            teacher.save(update_fields=fields)
        if "class_ids" in data:
            assign_teacher_classes(teacher, data["class_ids"], replace=True)
    teacher = Teacher.objects.prefetch_related("class_links").get(pk=teacher.pk)
    return Response({"success": True, "teacher": TeacherSerializer(teacher).data})


@api_view(["POST"])
@permission_classes([IsSchoolAdmin])
def delete_teachers(request):
    ids = id_list(request.data.get("teacher_ids"))
    if not ids:
        return error("teacher_ids is required")
    deleted, errors = delete_role_accounts(Teacher, request.user.profile.school, ids)
    return Response({"success": not errors, "deleted": deleted, "errors": errors})


@api_view(["POST"])
@permission_classes([IsSchoolAdmin])
def reset_password(request):
    user_id = request.data.get("user_id")
    if not user_id:
        return error("user_id is required")
    user = (
        get_user_model().objects
        .filter(pk__in=id_list([user_id]), profile__school_id=request.user.profile.school_id)
        .first()
    )
    if user is None:
        return error("User not found", status.HTTP_404_NOT_FOUND)
    try:
        password = reset_account_password(user, request.data.get("new_password"))
    except ProvisioningError as e:
        return error(str(e))
    logger.info("Password reset for user %s by %s", user.pk, request.user.pk)
    return Response({"success": True, "data": {"user_id": user.pk, "email": user.email, "password": password}})


@api_view(["POST"])
@permission_classes([IsSchoolAdmin])
def cleanup_orphaned_users(request):
    counts = run_cleanup(
        request.user.profile.school,
        keep_student_ids=id_list(request.data.get("keep_student_ids")),
        keep_teacher_ids=id_list(request.data.get("keep_teacher_ids")),
    )
    return Response({
        "success": True,
        "message": (
            f"Removed {counts['students']} students, {counts['teachers']} teachers "
            f"and {counts['profiles']} orphaned profiles"
        ),
        "counts": counts,
    })


# Classes


def _class_queryset(profile):
    return (
        SchoolClass.objects.filter(school_id=profile.school_id)
        .prefetch_related(
            "teacher_links",
            Prefetch("enrollments", queryset=ClassEnrollment.objects.select_related("student__user__profile")),
        )
    )


def _apply_class_links(school_class, data, replace):
    teacher_id = data.get("teacher_id")
    if teacher_id:
        teacher = Teacher.objects.filter(pk=teacher_id, school_id=school_class.school_id).first()
        if teacher is None:
            raise ProvisioningError("Teacher not found in this school")
        if replace:
            ClassTeacher.objects.filter(school_class=school_class).exclude(teacher=teacher).delete()
        ClassTeacher.objects.get_or_create(school_class=school_class, teacher=teacher)
    if "student_ids" in data:
        enroll_students(school_class, data["student_ids"], replace=replace)


@api_view(["GET", "POST"])
@permission_classes([IsSchoolStaff])
def classes(request):
    profile = request.user.profile
    if request.method == "GET":
        qs = _class_queryset(profile)
        return Response({"success": True, "classes": SchoolClassSerializer(qs, many=True).data})
    serializer = SchoolClassInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    try:
        with transaction.atomic():
            school_class = SchoolClass.objects.create(
                school_id=profile.school_id,
                name=data["name"],
                room=data.get("room", ""),
                schedule=data.get("schedule") or {},
                capacity=data.get("capacity"),
                created_by=request.user,
            )
            if profile.role == TEACHER and not data.get("teacher_id"):
                data["teacher_id"] = request.user.teacher.id
            _apply_class_links(school_class, data, replace=False)
    except ProvisioningError as e:
        return error(str(e))
    school_class = _class_queryset(profile).get(pk=school_class.pk)
    return Response({"success": True, "class": SchoolClassSerializer(school_class).data}, status=status.HTTP_201_CREATED)


@api_view(["GET", "PATCH", "DELETE"])
@permission_classes([IsSchoolStaff])
def class_detail(request, class_id):
    profile = request.user.profile
    school_class = _class_queryset(profile).filter(pk=class_id).first()
    if school_class is None:
        return error("Class not found", status.HTTP_404_NOT_FOUND)
    if request.method == "GET":
        return Response({"success": True, "class": SchoolClassSerializer(school_class).data})
    if profile.role == TEACHER and not school_class.teacher_links.filter(teacher__user=request.user).exists():
        return error("Only the class teacher or an admin can change this class", status.HTTP_403_FORBIDDEN)
    if request.method == "DELETE":
        school_class.delete()
        return Response({"success": True})
    serializer = SchoolClassInputSerializer(data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    try:
        with transaction.atomic():
            fields = [f for f in ("name", "room", "schedule", "capacity") if f in data]
            for f in fields:
                setattr(school_class, f, data[f])
            if fields:
                school_class.save(update_fields=fields)
            _apply_class_links(school_class, data, replace=True)
    except ProvisioningError as e:
        return error(str(e))
    school_class = _class_queryset(profile).get(pk=school_class.pk)
    return Response({"success": True, "class": SchoolClassSerializer(school_class).data})


@api_view(["GET"])
@permission_classes([IsTeacher])
def my_classes(request):
    qs = _class_queryset(request.user.profile).filter(teacher_links__teacher__user=request.user)
    return Response({"success": True, "classes": SchoolClassSerializer(qs, many=True).data})


@api_view(["GET"])
@permission_classes([IsTeacher])
def teacher_students(request):
    from students.models import Student
    from students.serializers import StudentSerializer

    students = (
        Student.objects.filter(
            school_id=request.user.profile.school_id,
            enrollments__school_class__teacher_links__teacher__user=request.user,
        )
        .distinct()
        .select_related("user__profile")
    )
    return Response({"success": True, "students": StudentSerializer(students, many=True).data})
