"""Shared fixtures: one school with a user for every role, plus a second school."""

from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient, APITestCase

from accounts.models import ADMIN, OWNER, PARENT, STUDENT, TEACHER
from accounts.provisioning import provision_account
from schools.models import ClassEnrollment, ClassTeacher, School, SchoolClass
from students.models import ParentStudentLink

PASSWORD = "testpass123"


class TestBase(APITestCase):

    def setUp(self):
        self.client = APIClient()
        self.school = School.objects.create(name="Al-Noor Academy", timezone="UTC")
        self.other_school = School.objects.create(name="Darul Quran", timezone="UTC")

        self.owner_user = self.make_user(OWNER, "owner@example.com", "Owner Aisha")
        self.admin_user = self.make_user(ADMIN, "admin@example.com", "Admin Bilal")
        self.teacher_user = self.make_user(TEACHER, "teacher@example.com", "Ustadh Yusuf")
        self.student_user = self.make_user(STUDENT, "student@example.com", "Student Maryam")
        self.parent_user = self.make_user(PARENT, "parent@example.com", "Parent Khalid")

        self.teacher = self.teacher_user.teacher
        self.student = self.student_user.student
        self.parent = self.parent_user.parent
        ParentStudentLink.objects.create(parent=self.parent, student=self.student)

        self.school_class = SchoolClass.objects.create(school=self.school, name="Hifz A")
        ClassTeacher.objects.create(school_class=self.school_class, teacher=self.teacher)
        ClassEnrollment.objects.create(school_class=self.school_class, student=self.student)

        self.other_teacher_user = self.make_user(
            TEACHER, "teacher2@example.com", "Ustadha Hafsa", school=self.other_school
        )
        self.other_student_user = self.make_user(
            STUDENT, "student2@example.com", "Student Umar", school=self.other_school
        )
        self.other_student = self.other_student_user.student

    def make_user(self, role, email, name, school=None, **extra):
        user, _ = provision_account(school or self.school, role, email, name, password=PASSWORD, **extra)
        return user

    def token_for(self, user):
        token, _ = Token.objects.get_or_create(user=user)
        return token.key

    def authenticate(self, user):
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {self.token_for(user)}")

    def assertError(self, response, status_code, code=None):
        self.assertEqual(response.status_code, status_code, response.data)
        self.assertFalse(response.data["success"])
        if code:
            self.assertEqual(response.data["code"], code)
