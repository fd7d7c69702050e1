from datetime import timedelta

from django.test import SimpleTestCase
from django.utils import timezone
from rest_framework import status

from accounts.models import STUDENT
from accounts.tests.base import TestBase
from assignments.models import Assignment, AssignmentHighlight
from gradebook.models import AssignmentRubric, Grade, Rubric, RubricCriterion
from highlights.models import Highlight
from mastery import services
from mastery.models import AyahMastery
from notifications.models import Notification
from quran.models import Surah


class LevelTests(SimpleTestCase):

    def test_level_from_score(self):
        self.assertEqual(services.level_from_score(90), "mastered")
        self.assertEqual(services.level_from_score(89.99), "proficient")
        self.assertEqual(services.level_from_score(75), "proficient")
        self.assertEqual(services.level_from_score(60), "learning")
        self.assertEqual(services.level_from_score(59), "unknown")
        self.assertEqual(services.level_from_score(None), "unknown")

    def test_summary_percentages(self):
        summary = services.summarize(["mastered", "proficient", "learning", "unknown"])
        self.assertEqual(summary["total_count"], 4)
        self.assertEqual(summary["mastered_percentage"], 25)
        self.assertEqual(summary["overall_progress_percentage"], 50)
        self.assertEqual(services.summarize([])["overall_progress_percentage"], 0)


class MasteryTests(TestBase):

    def setUp(self):
        super().setUp()
        Surah.objects.create(number=1, name_simple="Al-Fatihah", verses_count=7)
        self.url = "/api/mastery/upsert"

    def upsert(self, level, ayah=1, surah=1):
        return self.client.post(
            self.url, {"student_id": self.student.pk, "surah": surah, "ayah": ayah, "level": level}, format="json"
        )

    def test_first_level_is_set(self):
        self.authenticate(self.teacher_user)
        response = self.upsert("learning")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["message"], "Mastery level set to learning")
        self.assertIsNone(response.data["previous_level"])
        self.assertTrue(response.data["improved"])
        self.assertEqual(response.data["mastery"]["reference"], "1:1")

    def test_improvement_notifies_student_and_parent(self):
        self.authenticate(self.teacher_user)
        self.upsert("learning")
        Notification.objects.all().delete()
        response = self.upsert("mastered")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["message"], "Mastery level improved from learning to mastered")
        self.assertEqual(response.data["previous_level"], "learning")
        notified = set(Notification.objects.filter(type="mastery_improved").values_list("user_id", flat=True))
        self.assertEqual(notified, {self.student_user.pk, self.parent_user.pk})

    def test_lowering_a_level_is_not_an_improvement(self):
        self.authenticate(self.teacher_user)
        self.upsert("mastered")
        Notification.objects.all().delete()
        response = self.upsert("learning")
        self.assertEqual(response.data["message"], "Mastery level updated to learning")
        self.assertFalse(response.data["improved"])
        self.assertFalse(Notification.objects.filter(type="mastery_improved").exists())
        self.assertEqual(AyahMastery.objects.get().level, "learning")

    def test_ayah_must_exist_in_surah(self):
        self.authenticate(self.teacher_user)
        response = self.upsert("learning", ayah=8)
        self.assertError(response, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR")
        self.assertEqual(response.data["error"], "Surah 1 has only 7 ayahs")

    def test_only_staff_set_levels(self):
        self.authenticate(self.student_user)
        self.assertError(self.upsert("mastered"), status.HTTP_403_FORBIDDEN)
        self.authenticate(self.parent_user)
        self.assertError(self.upsert("mastered"), status.HTTP_403_FORBIDDEN)

    def test_other_school_student_not_found(self):
        self.authenticate(self.teacher_user)
        response = self.client.post(
            self.url,
            {"student_id": self.other_student.pk, "surah": 1, "ayah": 1, "level": "learning"},
            format="json",
        )
        self.assertError(response, status.HTTP_404_NOT_FOUND)

    def test_heatmap_covers_every_ayah(self):
        AyahMastery.objects.create(student=self.student, surah=1, ayah=2, level="mastered")
        AyahMastery.objects.create(student=self.student, surah=1, ayah=3, level="proficient")
        self.authenticate(self.parent_user)
        response = self.client.get("/api/mastery/heatmap/1", {"student_id": self.student.pk})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["surah_name"], "Al-Fatihah")
        self.assertEqual(response.data["total_ayahs"], 7)
        levels = [a["level"] for a in response.data["mastery_by_ayah"]]
        self.assertEqual(levels, ["unknown", "mastered", "proficient", "unknown", "unknown", "unknown", "unknown"])
        self.assertEqual(response.data["summary"]["mastered_count"], 1)

    def test_heatmap_rejects_unknown_surah(self):
        self.authenticate(self.teacher_user)
        response = self.client.get("/api/mastery/heatmap/115", {"student_id": self.student.pk})
        self.assertError(response, status.HTTP_400_BAD_REQUEST)

    def test_unlinked_parent_cannot_read_heatmap(self):
        stranger = self.make_user(STUDENT, "student3@example.com", "Student Zaid")
        self.authenticate(self.parent_user)
        response = self.client.get("/api/mastery/heatmap/1", {"student_id": stranger.student.pk})
        self.assertError(response, status.HTTP_403_FORBIDDEN)

    def test_student_overview(self):
        AyahMastery.objects.create(student=self.student, surah=1, ayah=1, level="mastered")
        AyahMastery.objects.create(student=self.student, surah=1, ayah=2, level="learning")
        AyahMastery.objects.create(student=self.student, surah=112, ayah=1, level="proficient")
        self.authenticate(self.student_user)
        response = self.client.get(f"/api/mastery/student/{self.student.pk}")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["total_ayahs_tracked"], 3)
        self.assertEqual(response.data["mastery_summary"]["overall_progress_percentage"], 66.67)
        self.assertEqual([s["surah"] for s in response.data["surahs_progress"]], [112, 1])
        self.assertEqual(response.data["surahs_progress"][1]["surah_name"], "Al-Fatihah")
        response = self.client.get(f"/api/mastery/student/{self.student.pk}", {"surah": 1})
        self.assertEqual(response.data["total_ayahs_tracked"], 2)

    def test_school_overview_for_admins(self):
        AyahMastery.objects.create(student=self.student, surah=1, ayah=1, level="mastered")
        AyahMastery.objects.create(student=self.other_student, surah=1, ayah=1, level="mastered")
        self.authenticate(self.admin_user)
        response = self.client.get("/api/mastery/school")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["total_students_with_mastery"], 1)
        self.assertEqual(response.data["students"][0]["student_name"], "Student Maryam")
        self.assertEqual(response.data["recent_updates"][0]["reference"], "1:1")
        self.authenticate(self.teacher_user)
        self.assertError(self.client.get("/api/mastery/school"), status.HTTP_403_FORBIDDEN)


class AutoUpdateTests(TestBase):

    def setUp(self):
        super().setUp()
        self.assignment = Assignment.objects.create(
            school=self.school,
            student=self.student,
            created_by=self.teacher_user,
            title="Al-Fatihah 1-3",
            due_at=timezone.now() + timedelta(days=2),
        )
        highlight = Highlight.objects.create(
            school=self.school,
            student=self.student,
            teacher=self.teacher,
            created_by=self.teacher_user,
            type="homework",
            color="green",
            surah=1,
            ayah_start=1,
            ayah_end=3,
        )
        AssignmentHighlight.objects.create(assignment=self.assignment, highlight=highlight)
        rubric = Rubric.objects.create(school=self.school, created_by=self.teacher_user, name="Recitation")
        self.criterion = RubricCriterion.objects.create(rubric=rubric, name="Accuracy", weight=100, max_score=10)
        AssignmentRubric.objects.create(assignment=self.assignment, rubric=rubric)
        self.authenticate(self.teacher_user)

    def auto_update(self, **extra):
        payload = {"student_id": self.student.pk, "assignment_id": self.assignment.pk}
        payload.update(extra)
        return self.client.post("/api/mastery/auto-update", payload, format="json")

    def test_level_follows_grades(self):
        Grade.objects.create(
            assignment=self.assignment, student=self.student, criterion=self.criterion, score=8, max_score=10
        )
        response = self.auto_update()
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["level"], "proficient")
        self.assertEqual(
            response.data["message"], "Auto-updated mastery for 3 ayah(s) to proficient. 3 improvement(s) recorded"
        )
        self.assertEqual(
            sorted(AyahMastery.objects.values_list("ayah", "level")),
            [(1, "proficient"), (2, "proficient"), (3, "proficient")],
        )

    def test_never_lowers_a_level(self):
        AyahMastery.objects.create(student=self.student, surah=1, ayah=2, level="mastered")
        response = self.auto_update(new_level="learning")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(AyahMastery.objects.get(ayah=2).level, "mastered")
        self.assertEqual(AyahMastery.objects.get(ayah=1).level, "learning")
        self.assertIn("2 improvement(s)", response.data["message"])

    def test_no_grades(self):
        response = self.auto_update()
        self.assertError(response, status.HTTP_404_NOT_FOUND, "NOT_FOUND")
        self.assertEqual(
            response.data["error"], "No grades found for this assignment. Cannot auto-calculate mastery level"
        )

    def test_assignment_must_belong_to_student(self):
        classmate = self.make_user(STUDENT, "student3@example.com", "Student Zaid")
        response = self.auto_update(student_id=classmate.student.pk)
        self.assertError(response, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], "Assignment does not belong to this student")
