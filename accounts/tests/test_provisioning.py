"""Account provisioning helpers."""

from django.db import DatabaseError
from rest_framework.authtoken.models import Token

from accounts.models import STUDENT, TEACHER, Profile, User
from accounts.provisioning import (
    ProvisioningError,
    generate_temp_password,
    provision_account,
    reset_account_password,
    run_bulk,
)
from .base import TestBase


class ProvisioningTests(TestBase):

    def test_generated_password_shape(self):
        password = generate_temp_password()
        self.assertEqual(len(password), 11)
        self.assertTrue(password.endswith("A1!"))

    def test_provision_creates_role_row(self):
        user, password = provision_account(self.school, TEACHER, "New@Example.com", "New Teacher")
        self.assertEqual(user.email, "new@example.com")
        self.assertTrue(user.check_password(password))
        self.assertEqual(user.profile.role, TEACHER)
        self.assertEqual(user.teacher.school, self.school)

    def test_duplicate_role_in_same_school(self):
        with self.assertRaisesMessage(ProvisioningError, "A student with this email already exists"):
            provision_account(self.school, STUDENT, "student@example.com", "Again")

    def test_email_used_by_other_role(self):
        with self.assertRaisesMessage(ProvisioningError, "A user with this email already exists"):
            provision_account(self.school, TEACHER, "student@example.com", "Again")

    def test_short_password_rejected(self):
        with self.assertRaises(ProvisioningError):
            provision_account(self.school, TEACHER, "short@example.com", "Short", password="abc")
        self.assertFalse(User.objects.filter(email="short@example.com").exists())

    def test_orphaned_login_is_adopted(self):
        orphan = User.objects.create_user(email="orphan@example.com", password="whatever")
        user, _ = provision_account(self.school, STUDENT, "orphan@example.com", "Orphan")
        self.assertEqual(user.pk, orphan.pk)
        self.assertTrue(Profile.objects.filter(user=orphan, role=STUDENT).exists())

    def test_reset_password_revokes_tokens(self):
        self.token_for(self.student_user)
        password = reset_account_password(self.student_user)
        self.student_user.refresh_from_db()
        self.assertTrue(self.student_user.check_password(password))
        self.assertFalse(Token.objects.filter(user=self.student_user).exists())

    def test_run_bulk_isolates_failures(self):
        def create(item):
            user, _ = provision_account(self.school, STUDENT, item["email"], item["name"])
            return {"user_id": user.pk}

        results, summary = run_bulk(
            [
                {"email": "a@example.com", "name": "A"},
                {"email": "student@example.com", "name": "Dup"},
                {"email": "b@example.com", "name": "B"},
            ],
            create,
        )
        self.assertEqual(summary, {"total": 3, "succeeded": 2, "failed": 1})
        self.assertFalse(results[1]["success"])
        self.assertTrue(User.objects.filter(email="b@example.com").exists())

    def test_run_bulk_reports_database_errors_per_row(self):
        def create(item):
            if item["email"] == "bad@example.com":
                raise OverflowError("Python int too large to convert to SQLite INTEGER")
            if item["email"] == "db@example.com":
                raise DatabaseError("value out of range")
            user, _ = provision_account(self.school, STUDENT, item["email"], item["name"])
            return {"user_id": user.pk}

        results, summary = run_bulk(
            [
                {"email": "a@example.com", "name": "A"},
                {"email": "bad@example.com", "name": "Bad"},
                {"email": "db@example.com", "name": "Db"},
                {"email": "b@example.com", "name": "B"},
            ],
            create,
        )
        self.assertEqual(summary, {"total": 4, "succeeded": 2, "failed": 2})
        self.assertEqual(results[1]["error"], "Could not save this record")
        self.assertTrue(User.objects.filter(email="b@example.com").exists())
