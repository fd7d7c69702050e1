"""Teacher administration endpoints."""

from unittest import mock

from django.contrib.auth import get_user_model
from django.core.management import call_command
from rest_framework import status

from accounts.models import Profile
from schools.models import ClassTeacher, Teacher
from accounts.tests.base import TestBase

User = get_user_model()


class SchoolSettingsTests(TestBase):

    def test_any_member_reads_settings(self):
        self.authenticate(self.student_user)
        response = self.client.get("/api/school/settings")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["school"]["name"], "Al-Noor Academy")

    def test_only_admins_update_settings(self):
        self.authenticate(self.teacher_user)
        response = self.client.patch("/api/school/settings", {"name": "Renamed"}, format="json")
        self.assertError(response, status.HTTP_403_FORBIDDEN, "FORBIDDEN")

        self.authenticate(self.admin_user)
        response = self.client.patch(
            "/api/school/settings", {"timezone": "Asia/Karachi", "settings": {"term": "spring"}}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.school.refresh_from_db()
        self.assertEqual(self.school.timezone, "Asia/Karachi")
        self.assertEqual(self.school.settings, {"term": "spring"})


class TeacherTests(TestBase):

    def test_create_teacher_returns_generated_password(self):
        self.authenticate(self.admin_user)
        response = self.client.post(
            "/api/school/create-teacher",
            {"email": "ustadh@example.com", "name": "Ustadh Idris", "subject": "Tajweed",
             "class_ids": [self.school_class.id]},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.data["data"]
        user = User.objects.get(pk=data["user_id"])
        self.assertTrue(user.check_password(data["password"]))
        self.assertEqual(data["class_ids"], [self.school_class.id])
        self.assertEqual(user.teacher.subject, "Tajweed")

    def test_teacher_cannot_create_teacher(self):
        self.authenticate(self.teacher_user)
        response = self.client.post(
            "/api/school/create-teacher", {"email": "x@example.com", "name": "X"}, format="json"
        )
        self.assertError(response, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["error"], "Insufficient permissions")

    def test_create_teacher_duplicate_email(self):
        self.authenticate(self.admin_user)
        response = self.client.post(
            "/api/school/create-teacher", {"email": "teacher@example.com", "name": "Dup"}, format="json"
        )
        self.assertError(response, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], "A teacher with this email already exists")

    def test_send_credentials_is_queued_after_commit(self):
        self.authenticate(self.admin_user)
        with mock.patch("schools.views.send_credentials_email") as task:
            with self.captureOnCommitCallbacks(execute=True):
                response = self.client.post(
                    "/api/school/create-teacher",
                    {"email": "mail@example.com", "name": "Mailed", "send_credentials": True},
                    format="json",
                )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        task.delay.assert_called_once_with(response.data["data"]["user_id"], response.data["data"]["password"])

    def test_bulk_create_reports_each_row(self):
        self.authenticate(self.owner_user)
        response = self.client.post(
            "/api/school/bulk-create-teachers",
            {"teachers": [
                {"email": "t1@example.com", "name": "T1"},
                {"email": "teacher@example.com", "name": "Dup"},
                {"email": "not-an-email", "name": "Bad"},
            ]},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["summary"], {"total": 3, "succeeded": 1, "failed": 2})
        self.assertTrue(Teacher.objects.filter(user__email="t1@example.com").exists())

    def test_bulk_create_keeps_rows_around_an_out_of_range_value(self):
        self.authenticate(self.owner_user)
        response = self.client.post(
            "/api/school/bulk-create-teachers",
            {"teachers": [
                {"email": "ok1@example.com", "name": "Ok One"},
                {"email": "huge@example.com", "name": "Huge", "experience_years": 10 ** 20},
                {"email": "ok2@example.com", "name": "Ok Two"},
            ]},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["summary"], {"total": 3, "succeeded": 2, "failed": 1})
        results = response.data["results"]
        self.assertFalse(results[1]["success"])
        self.assertFalse(User.objects.filter(email="huge@example.com").exists())
        for row in (results[0], results[2]):
            user = User.objects.get(pk=row["data"]["user_id"])
            self.assertTrue(user.check_password(row["data"]["password"]))

    def test_list_teachers(self):
        self.authenticate(self.teacher_user)
        response = self.client.get("/api/school/teachers")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        emails = [t["email"] for t in response.data["teachers"]]
        self.assertEqual(emails, ["teacher@example.com"])

    def test_update_teacher(self):
        self.authenticate(self.admin_user)
        response = self.client.post(
            "/api/school/update-teacher",
            {"teacher_id": self.teacher.id, "name": "Ustadh Yusuf Ali", "phone": "555-0101", "class_ids": []},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["teacher"]["name"], "Ustadh Yusuf Ali")
        self.assertEqual(response.data["teacher"]["phone"], "555-0101")
        self.assertFalse(ClassTeacher.objects.filter(teacher=self.teacher).exists())

    def test_update_teacher_of_other_school(self):
        self.authenticate(self.admin_user)
        response = self.client.post(
            "/api/school/update-teacher",
            {"teacher_id": self.other_teacher_user.teacher.id, "name": "Hijack"},
            format="json",
        )
        self.assertError(response, status.HTTP_404_NOT_FOUND, "NOT_FOUND")

    def test_delete_teachers_removes_logins(self):
        self.authenticate(self.admin_user)
        foreign_id = self.other_teacher_user.teacher.id
        response = self.client.post(
            "/api/school/delete-teachers", {"teacher_ids": [self.teacher.id, foreign_id]}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["deleted"], [self.teacher.id])
        self.assertEqual(response.data["errors"], [{"id": foreign_id, "error": "Not found"}])
        self.assertFalse(User.objects.filter(email="teacher@example.com").exists())

    def test_reset_password(self):
        self.authenticate(self.admin_user)
        response = self.client.post(
            "/api/school/reset-password", {"user_id": self.student_user.id, "new_password": "fresh-pass"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.student_user.refresh_from_db()
        self.assertTrue(self.student_user.check_password("fresh-pass"))

    def test_reset_password_other_school(self):
        self.authenticate(self.admin_user)
        response = self.client.post(
            "/api/school/reset-password", {"user_id": self.other_student_user.id}, format="json"
        )
        self.assertError(response, status.HTTP_404_NOT_FOUND)


class CleanupTests(TestBase):

    def test_cleanup_keeps_listed_rows(self):
        self.authenticate(self.admin_user)
        Profile.objects.create(
            user=User.objects.create_user(email="ghost@example.com", password="x"),
            school=self.school,
            role="teacher",
            display_name="Ghost",
        )
        response = self.client.post(
            "/api/school/cleanup-orphaned-users",
            {"keep_student_ids": [self.student.id], "keep_teacher_ids": []},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["counts"], {"students": 0, "teachers": 1, "profiles": 1})
        self.assertTrue(User.objects.filter(pk=self.student_user.pk).exists())
        self.assertFalse(User.objects.filter(email="ghost@example.com").exists())
        self.assertTrue(User.objects.filter(pk=self.other_teacher_user.pk).exists())

    def test_management_command(self):
        call_command("cleanup_orphaned_users", str(self.school.id), "--keep-teachers", str(self.teacher.id))
        self.assertFalse(User.objects.filter(pk=self.student_user.pk).exists())
        self.assertTrue(User.objects.filter(pk=self.teacher_user.pk).exists())
