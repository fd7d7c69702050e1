import logging
from datetime import date

from django.db import IntegrityError, transaction
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from accounts.api import error, id_list
from accounts.models import PARENT, STUDENT
from accounts.permissions import IsParent, IsSchoolAdmin, IsSchoolStaff, IsStudent
from accounts.provisioning import ProvisioningError, provision_account, run_bulk
from schools.services import delete_role_accounts
from schools.views import queue_credentials
from .models import Parent, ParentStudentLink, Student
from .serializers import (
    LastPageSerializer,
    ParentInputSerializer,
    ParentSerializer,
    ParentUpdateSerializer,
    StudentInputSerializer,
    StudentSerializer,
    StudentUpdateSerializer,
)

logger = logging.getLogger(__name__)


def dob_from_age(age):
    return date(date.today().year - age, 1, 1)


def _create_student(school, payload):
    from schools.models import ClassEnrollment, SchoolClass

    serializer = StudentInputSerializer(data=payload)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    dob = data.get("dob")
    if dob is None and data.get("age"):
        dob = dob_from_age(data["age"])
    user, password = provision_account(
        school,
        STUDENT,
        data["email"],
        data["name"],
        password=data.get("password"),
        phone=data.get("phone", ""),
        dob=dob,
        gender=data.get("gender", ""),
        grade=data.get("grade", ""),
    )
    for school_class in SchoolClass.objects.filter(school=school, id__in=data.get("class_ids") or []):
        ClassEnrollment.objects.create(school_class=school_class, student=user.student)
    if data.get("send_credentials"):
        queue_credentials(user, password)
    return {
        "id": user.student.id,
        "user_id": user.id,
        "email": user.email,
        "password": password,
        "name": data["name"],
        "age": user.student.age,
    }


@api_view(["GET"])
@permission_classes([IsSchoolStaff])
def list_students(request):
    students = (
        Student.objects.filter(school_id=request.user.profile.school_id)
        .select_related("user__profile")
        .order_by("user__profile__display_name")
    )
    return Response({"success": True, "students": StudentSerializer(students, many=True).data})


@api_view(["POST"])
@permission_classes([IsSchoolStaff])
def create_student(request):
    try:
        with transaction.atomic():
            data = _create_student(request.user.profile.school, request.data)
    except ProvisioningError as e:
        return error(str(e))
    return Response({"success": True, "data": data}, status=status.HTTP_201_CREATED)


@api_view(["POST"])
@permission_classes([IsSchoolStaff])
def bulk_create_students(request):
    items = request.data.get("students")
    if not isinstance(items, list) or not items:
        return error("students must be a non-empty list")
    school = request.user.profile.school
    results, summary = run_bulk(items, lambda item: _create_student(school, item))
    return Response({"success": True, "results": results, "summary": summary})


@api_view(["POST"])
@permission_classes([IsSchoolAdmin])
def update_student(request):
    serializer = StudentUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    student = (
        Student.objects.filter(pk=data["student_id"], school_id=request.user.profile.school_id)
        .select_related("user__profile")
        .first()
    )
    if student is None:
        return error("Student not found", status.HTTP_404_NOT_FOUND)
    if "age" in data and "dob" not in data and data["age"]:
        data["dob"] = dob_from_age(data["age"])
    with transaction.atomic():
        profile = student.user.profile
        if "name" in data:
            profile.display_name = data["name"]
        if "phone" in data:
            profile.phone = data["phone"]
        profile.save(update_fields=["display_name", "phone", "updated_at"])
        fields = [f for f in ("dob", "gender", "grade", "active") if f in data]
        for f in fields:
            setattr(student, f, data[f])
        if fields:
            student.save(update_fields=fields)
    return Response({"success": True, "student": StudentSerializer(student).data})


@api_view(["POST"])
@permission_classes([IsSchoolAdmin])
def delete_students(request):
    ids = id_list(request.data.get("student_ids"))
    if not ids:
        return error("student_ids is required")
    deleted, errors = delete_role_accounts(Student, request.user.profile.school, ids)
    return Response({"success": not errors, "deleted": deleted, "errors": errors})


@api_view(["GET"])
@permission_classes([IsSchoolAdmin])
def list_parents(request):
    parents = (
        Parent.objects.filter(school_id=request.user.profile.school_id)
        .select_related("user__profile")
        .prefetch_related("links")
    )
    return Response({"success": True, "parents": ParentSerializer(parents, many=True).data})


@api_view(["POST"])
@permission_classes([IsSchoolAdmin])
def create_parent(request):
    serializer = ParentInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    school = request.user.profile.school
    student_ids = sorted(set(data.get("student_ids") or []))
    students = list(Student.objects.filter(school=school, id__in=student_ids))
    if len(students) != len(student_ids):
        return error("One or more students were not found in this school")
    try:
        with transaction.atomic():
            user, password = provision_account(
                school,
                PARENT,
                data["email"],
                data["name"],
                password=data.get("password"),
                phone=data.get("phone", ""),
                address=data.get("address", ""),
            )
            for student in students:
                ParentStudentLink.objects.create(parent=user.parent, student=student)
            if data.get("send_credentials"):
                queue_credentials(user, password)
    except ProvisioningError as e:
        return error(str(e))
    return Response(
        {
            "success": True,
            "data": {
                "id": user.parent.id,
                "user_id": user.id,
                "email": user.email,
                "password": password,
                "name": data["name"],
                "student_ids": [s.id for s in students],
            },
        },
        status=status.HTTP_201_CREATED,
    )


@api_view(["POST"])
@permission_classes([IsSchoolAdmin])
def update_parent(request):
    serializer = ParentUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    parent = (
        Parent.objects.filter(pk=data["parent_id"], school_id=request.user.profile.school_id)
        .select_related("user__profile")
        .first()
    )
    if parent is None:
        return error("Parent not found", status.HTTP_404_NOT_FOUND)
    with transaction.atomic():
        profile = parent.user.profile
        if "name" in data:
            profile.display_name = data["name"]
        if "phone" in data:
            profile.phone = data["phone"]
        profile.save(update_fields=["display_name", "phone", "updated_at"])
        if "address" in data:
            parent.address = data["address"]
            parent.save(update_fields=["address"])
    return Response({"success": True, "parent": ParentSerializer(parent).data})


@api_view(["POST"])
@permission_classes([IsSchoolAdmin])
def delete_parents(request):
    ids = id_list(request.data.get("parent_ids"))
    if not ids:
        return error("parent_ids is required")
    deleted, errors = delete_role_accounts(Parent, request.user.profile.school, ids)
    return Response({"success": not errors, "deleted": deleted, "errors": errors})


@api_view(["POST", "DELETE"])
@permission_classes([IsSchoolAdmin])
def link_parent_student(request):
    parent_id = request.data.get("parent_id") or request.query_params.get("parent_id")
    student_id = request.data.get("student_id") or request.query_params.get("student_id")
    if not parent_id or not student_id:
        return error("parent_id and student_id are required")
    school_id = request.user.profile.school_id
    parent = Parent.objects.filter(pk__in=id_list([parent_id]), school_id=school_id).first()
    student = Student.objects.filter(pk__in=id_list([student_id]), school_id=school_id).first()
    if parent is None or student is None:
        return error("Parent or student not found in this school", status.HTTP_404_NOT_FOUND)

    if request.method == "DELETE":
        deleted, _ = ParentStudentLink.objects.filter(parent=parent, student=student).delete()
        if not deleted:
            return error("Link not found", status.HTTP_404_NOT_FOUND)
        return Response({"success": True})

    try:
        with transaction.atomic():
            link = ParentStudentLink.objects.create(parent=parent, student=student)
    except IntegrityError:
        return error("Parent is already linked to this student")
    logger.info("Linked parent %s to student %s", parent.pk, student.pk)
    return Response(
        {"success": True, "data": {"id": link.id, "parent_id": parent.id, "student_id": student.id}},
        status=status.HTTP_201_CREATED,
    )


@api_view(["GET"])
@permission_classes([IsParent])
def my_children(request):
    students = (
        Student.objects.filter(parent_links__parent__user=request.user)
        .select_related("user__profile")
        .order_by("user__profile__display_name")
    )
    return Response({"success": True, "children": StudentSerializer(students, many=True).data})


@api_view(["POST"])
@permission_classes([IsStudent])
def update_last_page(request):
    serializer = LastPageSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    student = request.user.student
    student.last_page = serializer.validated_data["page"]
    student.save(update_fields=["last_page"])
    return Response({"success": True, "last_page": student.last_page})
