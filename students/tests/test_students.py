"""Student, parent and family endpoints."""

from datetime import date

from django.contrib.auth import get_user_model
from rest_framework import status

from schools.models import ClassEnrollment
from students.models import Parent, ParentStudentLink, Student
from accounts.tests.base import TestBase

User = get_user_model()


class StudentAdminTests(TestBase):

    def test_teacher_creates_student_from_age(self):
        self.authenticate(self.teacher_user)
        response = self.client.post(
            "/api/school/create-student",
            {"email": "kid@example.com", "name": "Kid Ahmad", "age": 9, "gender": "male",
             "class_ids": [self.school_class.id]},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        student = Student.objects.get(pk=response.data["data"]["id"])
        self.assertEqual(student.dob, date(date.today().year - 9, 1, 1))
        self.assertTrue(ClassEnrollment.objects.filter(school_class=self.school_class, student=student).exists())

    def test_parent_cannot_create_student(self):
        self.authenticate(self.parent_user)
        response = self.client.post(
            "/api/school/create-student", {"email": "kid@example.com", "name": "Kid"}, format="json"
        )
        self.assertError(response, status.HTTP_403_FORBIDDEN)

    def test_bulk_create_students(self):
        self.authenticate(self.admin_user)
        response = self.client.post(
            "/api/school/bulk-create-students",
            {"students": [{"email": "s1@example.com", "name": "S1"}, {"email": "s2@example.com", "name": "S2"}]},
            format="json",
        )
        self.assertEqual(response.data["summary"]["succeeded"], 2)

    def test_bulk_requires_list(self):
        self.authenticate(self.admin_user)
        response = self.client.post("/api/school/bulk-create-students", {"students": []}, format="json")
        self.assertError(response, status.HTTP_400_BAD_REQUEST)

    def test_update_student(self):
        self.authenticate(self.admin_user)
        response = self.client.post(
            "/api/school/update-student",
            {"student_id": self.student.id, "grade": "5", "active": False},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.student.refresh_from_db()
        self.assertEqual(self.student.grade, "5")
        self.assertFalse(self.student.active)

    def test_delete_students(self):
        self.authenticate(self.admin_user)
        response = self.client.post("/api/school/delete-students", {"student_ids": [self.student.id]}, format="json")
        self.assertTrue(response.data["success"])
        self.assertFalse(User.objects.filter(pk=self.student_user.pk).exists())
        self.assertFalse(ParentStudentLink.objects.exists())


class ParentAdminTests(TestBase):

    def test_create_parent_with_children(self):
        self.authenticate(self.admin_user)
        response = self.client.post(
            "/api/school/create-parent",
            {"email": "mum@example.com", "name": "Mum", "student_ids": [self.student.id]},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        parent = Parent.objects.get(pk=response.data["data"]["id"])
        self.assertEqual(list(parent.links.values_list("student_id", flat=True)), [self.student.id])

    def test_create_parent_rejects_foreign_student(self):
        self.authenticate(self.admin_user)
        response = self.client.post(
            "/api/school/create-parent",
            {"email": "mum@example.com", "name": "Mum", "student_ids": [self.other_student.id]},
            format="json",
        )
        self.assertError(response, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(User.objects.filter(email="mum@example.com").exists())

    def test_list_and_update_parent(self):
        self.authenticate(self.owner_user)
        response = self.client.get("/api/school/parents")
        self.assertEqual(response.data["parents"][0]["student_ids"], [self.student.id])
        response = self.client.post(
            "/api/school/update-parent", {"parent_id": self.parent.id, "address": "1 Mosque Lane"}, format="json"
        )
        self.assertEqual(response.data["parent"]["address"], "1 Mosque Lane")

    def test_delete_parents(self):
        self.authenticate(self.admin_user)
        response = self.client.post("/api/school/delete-parents", {"parent_ids": [self.parent.id]}, format="json")
        self.assertEqual(response.data["deleted"], [self.parent.id])
        self.assertTrue(Student.objects.filter(pk=self.student.pk).exists())


class LinkTests(TestBase):

    def setUp(self):
        super().setUp()
        self.second = self.make_user("student", "second@example.com", "Second").student
        self.authenticate(self.admin_user)

    def test_link_and_unlink(self):
        payload = {"parent_id": self.parent.id, "student_id": self.second.id}
        response = self.client.post("/api/school/link-parent-student", payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.post("/api/school/link-parent-student", payload, format="json")
        self.assertError(response, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], "Parent is already linked to this student")
        response = self.client.delete(
            f"/api/school/link-parent-student?parent_id={self.parent.id}&student_id={self.second.id}"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(ParentStudentLink.objects.filter(student=self.second).exists())

    def test_link_requires_both_ids(self):
        response = self.client.post("/api/school/link-parent-student", {"parent_id": self.parent.id}, format="json")
        self.assertError(response, status.HTTP_400_BAD_REQUEST)

    def test_link_across_schools(self):
        response = self.client.post(
            "/api/school/link-parent-student",
            {"parent_id": self.parent.id, "student_id": self.other_student.id},
            format="json",
        )
        self.assertError(response, status.HTTP_404_NOT_FOUND)


class FamilyTests(TestBase):

    def test_my_children(self):
        self.authenticate(self.parent_user)
        response = self.client.get("/api/parents/my-children")
        self.assertEqual([c["id"] for c in response.data["children"]], [self.student.id])

    def test_my_children_is_parent_only(self):
        self.authenticate(self.student_user)
        response = self.client.get("/api/parents/my-children")
        self.assertError(response, status.HTTP_403_FORBIDDEN)

    def test_update_last_page_bounds(self):
        self.authenticate(self.student_user)
        response = self.client.post("/api/students/update-last-page", {"page": 605}, format="json")
        self.assertError(response, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR")
        response = self.client.post("/api/students/update-last-page", {"page": 42}, format="json")
        self.assertEqual(response.data["last_page"], 42)
        self.student.refresh_from_db()
        self.assertEqual(self.student.last_page, 42)
