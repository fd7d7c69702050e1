import csv
import io
from datetime import timedelta
from decimal import Decimal

from django.test import SimpleTestCase
from django.utils import timezone
from rest_framework import status

from accounts.models import STUDENT, TEACHER
from accounts.tests.base import TestBase
from assignments.models import Assignment
from gradebook import calculations
from gradebook.models import AssignmentRubric, Grade, Rubric, RubricCriterion
from notifications.models import Notification


class CalculationTests(SimpleTestCase):

    def test_weighted_average(self):
        rows = [(Decimal(8), Decimal(10), Decimal(60)), (Decimal(5), Decimal(10), Decimal(40))]
        self.assertEqual(calculations.weighted_average(rows), 68.0)
        self.assertEqual(calculations.overall_percentage(rows), 65.0)

    def test_letter_grades(self):
        self.assertEqual(calculations.letter_grade(97), "A+")
        self.assertEqual(calculations.letter_grade(89.99), "B+")
        self.assertEqual(calculations.letter_grade(60), "D-")
        self.assertEqual(calculations.letter_grade(59.5), "F")
        self.assertIsNone(calculations.letter_grade(None))

    def test_trend_needs_history(self):
        self.assertIsNone(calculations.recent_trend([80] * 9))
        self.assertEqual(calculations.recent_trend([70] * 5 + [90] * 5), "improving")
        self.assertEqual(calculations.recent_trend([90] * 5 + [70] * 5), "declining")
        self.assertEqual(calculations.recent_trend([80] * 5 + [83] * 5), "stable")


class GradebookTestBase(TestBase):

    def setUp(self):
        super().setUp()
        self.assignment = Assignment.objects.create(
            school=self.school,
            student=self.student,
            created_by=self.teacher_user,
            title="Surah Al-Mulk",
            due_at=timezone.now() + timedelta(days=3),
        )

    def make_rubric(self, weights=(60, 40), max_score=10):
        rubric = Rubric.objects.create(school=self.school, created_by=self.teacher_user, name="Recitation")
        for order, weight in enumerate(weights, start=1):
            RubricCriterion.objects.create(
                rubric=rubric, name=f"Criterion {order}", weight=weight, max_score=max_score, order=order
            )
        return rubric

    def attach(self, rubric):
        return AssignmentRubric.objects.create(assignment=self.assignment, rubric=rubric)


class RubricTests(GradebookTestBase):

    def test_create_with_criteria(self):
        self.authenticate(self.teacher_user)
        response = self.client.post("/api/rubrics", {
            "name": "Tajweed",
            "criteria": [
                {"name": "Makharij", "weight": 50, "max_score": 10},
                {"name": "Madd", "weight": 50, "max_score": 5},
            ],
        }, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["rubric"]["total_weight"], 100.0)
        self.assertEqual([c["order"] for c in response.data["rubric"]["criteria"]], [1, 2])

    def test_criteria_weights_must_total_100(self):
        self.authenticate(self.teacher_user)
        response = self.client.post("/api/rubrics", {
            "name": "Tajweed",
            "criteria": [{"name": "Makharij", "weight": 50, "max_score": 10}],
        }, format="json")
        self.assertError(response, status.HTTP_400_BAD_REQUEST, "INVALID_WEIGHT")

    def test_added_criterion_cannot_push_weight_past_100(self):
        rubric = self.make_rubric(weights=(60,))
        self.authenticate(self.teacher_user)
        url = f"/api/rubrics/{rubric.pk}/criteria"
        response = self.client.post(url, {"name": "Fluency", "weight": 50, "max_score": 10}, format="json")
        self.assertError(response, status.HTTP_400_BAD_REQUEST, "INVALID_WEIGHT")
        response = self.client.post(url, {"name": "Fluency", "weight": 40, "max_score": 10}, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["criterion"]["order"], 2)

    def test_students_cannot_see_rubrics(self):
        self.authenticate(self.student_user)
        response = self.client.get("/api/rubrics")
        self.assertError(response, status.HTTP_403_FORBIDDEN)

    def test_rubric_in_use_cannot_be_deleted(self):
        rubric = self.make_rubric()
        self.attach(rubric)
        self.authenticate(self.teacher_user)
        response = self.client.delete(f"/api/rubrics/{rubric.pk}")
        self.assertError(response, status.HTTP_400_BAD_REQUEST, "RUBRIC_IN_USE")
        self.assertEqual(
            response.data["error"],
            'Cannot delete rubric "Recitation". It is currently used by 1 assignment(s)',
        )

    def test_only_creator_or_admin_can_edit(self):
        rubric = self.make_rubric()
        colleague = self.make_user(TEACHER, "colleague@example.com", "Colleague")
        self.authenticate(colleague)
        response = self.client.patch(f"/api/rubrics/{rubric.pk}", {"name": "Mine"}, format="json")
        self.assertError(response, status.HTTP_403_FORBIDDEN)
        self.authenticate(self.admin_user)
        response = self.client.patch(f"/api/rubrics/{rubric.pk}", {"name": "Renamed"}, format="json")
        self.assertEqual(response.data["rubric"]["name"], "Renamed")

    def test_attach_rubric(self):
        rubric = self.make_rubric()
        self.authenticate(self.teacher_user)
        url = f"/api/assignments/{self.assignment.pk}/rubric"
        response = self.client.post(url, {"rubric_id": rubric.pk}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["message"], 'Rubric "Recitation" attached to assignment successfully')
        response = self.client.post(url, {"rubric_id": rubric.pk}, format="json")
        self.assertEqual(AssignmentRubric.objects.filter(assignment=self.assignment).count(), 1)

    def test_incomplete_rubric_cannot_be_attached(self):
        rubric = self.make_rubric(weights=(60,))
        self.authenticate(self.teacher_user)
        response = self.client.post(
            f"/api/assignments/{self.assignment.pk}/rubric", {"rubric_id": rubric.pk}, format="json"
        )
        self.assertError(response, status.HTTP_400_BAD_REQUEST, "INVALID_WEIGHT")


class GradeTests(GradebookTestBase):

    def setUp(self):
        super().setUp()
        self.rubric = self.make_rubric()
        self.attach(self.rubric)
        self.first, self.second = self.rubric.criteria.all()

    def grade(self, criterion, score, user=None, **extra):
        self.authenticate(user or self.teacher_user)
        payload = {
            "assignment_id": self.assignment.pk,
            "student_id": self.student.pk,
            "criterion_id": criterion.pk,
            "score": score,
        }
        payload.update(extra)
        return self.client.post("/api/grades", payload, format="json")

    def test_submit_grade(self):
        response = self.grade(self.first, 8, comments="Clear makharij")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["grade"]["max_score"], 10.0)
        self.assertEqual(
            response.data["overall_progress"], {"graded_criteria": 1, "total_criteria": 2, "percentage": 50}
        )
        self.assertTrue(Notification.objects.filter(user=self.student_user, type="grade_submitted").exists())

    def test_regrading_replaces_the_score(self):
        self.grade(self.first, 8)
        response = self.grade(self.first, 9)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Grade.objects.get().score, Decimal(9))

    def test_score_cannot_exceed_max(self):
        response = self.grade(self.first, 11)
        self.assertError(response, status.HTTP_400_BAD_REQUEST, "INVALID_SCORE")
        self.assertEqual(response.data["error"], "Score (11.00) cannot exceed max_score (10.00)")

    def test_criterion_from_another_rubric(self):
        other = self.make_rubric()
        response = self.grade(other.criteria.first(), 5)
        self.assertError(response, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], "Criterion does not belong to this assignment's rubric")

    def test_only_assigning_teacher_grades(self):
        colleague = self.make_user(TEACHER, "colleague@example.com", "Colleague")
        response = self.grade(self.first, 5, user=colleague)
        self.assertError(response, status.HTTP_403_FORBIDDEN)

    def test_assignment_grades(self):
        self.grade(self.first, 8)
        self.grade(self.second, 5)
        self.authenticate(self.parent_user)
        response = self.client.get(f"/api/grades/assignment/{self.assignment.pk}")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["overall_score"], 68.0)
        self.assertEqual(response.data["overall_percentage"], 65.0)
        self.assertEqual(response.data["letter_grade"], "D+")
        self.assertTrue(response.data["graded"])

    def test_student_grades_stats(self):
        self.grade(self.first, 10)
        self.grade(self.second, 10)
        Assignment.objects.create(
            school=self.school, student=self.student, created_by=self.teacher_user,
            title="Pending", due_at=timezone.now() + timedelta(days=5),
        )
        self.authenticate(self.student_user)
        response = self.client.get(f"/api/grades/student/{self.student.pk}")
        self.assertEqual(response.data["stats"]["total"], 1)
        self.assertEqual(response.data["stats"]["graded"], 1)
        self.assertEqual(response.data["stats"]["average"], 100.0)

    def test_teacher_sees_rubric_assignments_with_grades(self):
        self.grade(self.first, 7)
        response = self.client.get("/api/grades/assignments-with-rubrics")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        row = response.data["assignments"][0]
        self.assertEqual(len(row["rubric"]["criteria"]), 2)
        self.assertEqual(len(row["existing_grades"]), 1)

    def test_parent_gradebook_is_limited_to_children(self):
        self.grade(self.first, 8)
        self.authenticate(self.parent_user)
        response = self.client.get("/api/gradebook/parent", {"child_id": self.student.pk})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["entries"][0]["rubric"], "Recitation")
        self.assertIsNone(response.data["recent_trend"])
        stranger = self.make_user(STUDENT, "student3@example.com", "Student Zaid")
        response = self.client.get("/api/gradebook/parent", {"child_id": stranger.student.pk})
        self.assertError(response, status.HTTP_403_FORBIDDEN)
        self.authenticate(self.teacher_user)
        response = self.client.get("/api/gradebook/parent", {"child_id": self.student.pk})
        self.assertError(response, status.HTTP_403_FORBIDDEN)

    def test_school_gradebook_for_admins(self):
        self.grade(self.first, 8)
        self.grade(self.second, 5)
        self.authenticate(self.admin_user)
        response = self.client.get("/api/gradebook/school")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["school_wide_average"], 68.0)
        self.assertEqual(response.data["students"][0]["student_name"], "Student Maryam")
        self.assertEqual(len(response.data["recent_grades"]), 2)
        self.authenticate(self.teacher_user)
        self.assertError(self.client.get("/api/gradebook/school"), status.HTTP_403_FORBIDDEN)

    def test_csv_export(self):
        self.grade(self.first, 8)
        self.grade(self.second, 5)
        response = self.client.get("/api/gradebook/export", {"student_id": self.student.pk})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("gradebook_export_", response["Content-Disposition"])
        rows = list(csv.reader(io.StringIO(response.content.decode())))
        self.assertEqual(rows[0][:3], ["Student", "Assignment", "Due Date"])
        self.assertEqual(rows[1][0], "Student Maryam")
        self.assertEqual(rows[1][5:8], ["68.0", "65.0", "D+"])

    def test_pdf_export_not_available(self):
        self.authenticate(self.teacher_user)
        response = self.client.get("/api/gradebook/export", {"format": "pdf"})
        self.assertError(response, status.HTTP_501_NOT_IMPLEMENTED, "NOT_IMPLEMENTED")
