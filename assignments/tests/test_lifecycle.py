"""Assignment state machine, through the API and the service layer."""

from datetime import timedelta

from django.test import override_settings
from django.utils import timezone
from rest_framework import status

from assignments import lifecycle
from assignments.models import Assignment, AssignmentEvent
from highlights.models import GOLD, Highlight
from notifications.models import Notification
from accounts.tests.base import TestBase


class AssignmentTestBase(TestBase):

    def setUp(self):
        super().setUp()
        self.highlight = Highlight.objects.create(
            school=self.school, student=self.student, teacher=self.teacher, created_by=self.teacher_user,
            type="haraka", color="red", surah=36, ayah_start=1, ayah_end=12,
        )

    def create(self, **overrides):
        payload = {
            "student_id": self.student.id,
            "title": "Revise Ya-Sin",
            "due_at": (timezone.now() + timedelta(days=2)).isoformat(),
            "highlight_ids": [self.highlight.id],
        }
        payload.update(overrides)
        self.authenticate(self.teacher_user)
        return self.client.post("/api/assignments/", payload, format="json")

    def move(self, user, assignment_id, to_status, reason=None):
        self.authenticate(user)
        payload = {"to_status": to_status}
        if reason:
            payload["reason"] = reason
        return self.client.post(f"/api/assignments/{assignment_id}/transition", payload, format="json")


class CreateAssignmentTests(AssignmentTestBase):

    def test_create(self):
        response = self.create()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.data["assignment"]
        self.assertEqual(data["status"], "assigned")
        self.assertEqual(data["highlight_ids"], [self.highlight.id])
        self.assertEqual(data["events"][0]["event_type"], "created")
        self.assertTrue(Notification.objects.filter(user=self.student_user, type="assignment_created").exists())

    def test_due_date_must_be_future(self):
        response = self.create(due_at=(timezone.now() - timedelta(hours=1)).isoformat())
        self.assertError(response, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR")

    def test_due_date_within_a_year(self):
        response = self.create(due_at=(timezone.now() + timedelta(days=400)).isoformat())
        self.assertError(response, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR")

    def test_students_cannot_create(self):
        self.authenticate(self.student_user)
        response = self.client.post(
            "/api/assignments/",
            {"student_id": self.student.id, "title": "x", "due_at": (timezone.now() + timedelta(days=1)).isoformat()},
            format="json",
        )
        self.assertError(response, status.HTTP_403_FORBIDDEN)

    def test_foreign_student(self):
        response = self.create(student_id=self.other_student.id)
        self.assertError(response, status.HTTP_403_FORBIDDEN)


class TransitionTests(AssignmentTestBase):

    def setUp(self):
        super().setUp()
        self.assignment_id = self.create().data["assignment"]["id"]

    def test_full_cycle(self):
        self.assertEqual(self.move(self.student_user, self.assignment_id, "viewed").status_code, 200)
        self.authenticate(self.student_user)
        response = self.client.post(
            f"/api/assignments/{self.assignment_id}/submit", {"text": "Recited to my father"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["assignment"]["status"], "submitted")
        self.assertTrue(Notification.objects.filter(user=self.teacher_user, type="assignment_submitted").exists())

        self.assertEqual(self.move(self.teacher_user, self.assignment_id, "reviewed").status_code, 200)
        response = self.move(self.teacher_user, self.assignment_id, "completed")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["message"], "Assignment status changed from reviewed to completed")

        self.highlight.refresh_from_db()
        self.assertEqual(self.highlight.color, GOLD)
        self.assertEqual(self.highlight.previous_color, "red")

        response = self.move(self.teacher_user, self.assignment_id, "reopened", reason="Needs more work")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Assignment.objects.get(pk=self.assignment_id).reopen_count, 1)

    def test_skipping_a_step_is_rejected(self):
        response = self.move(self.teacher_user, self.assignment_id, "completed")
        self.assertError(response, status.HTTP_400_BAD_REQUEST, "INVALID_TRANSITION")
        self.assertEqual(response.data["error"], "Cannot transition from assigned to completed")

    def test_unknown_status_is_an_invalid_transition(self):
        response = self.move(self.teacher_user, self.assignment_id, "archived")
        self.assertError(response, status.HTTP_400_BAD_REQUEST, "INVALID_TRANSITION")
        self.assertEqual(response.data["error"], "Cannot transition from assigned to archived")
        self.assertEqual(Assignment.objects.get(pk=self.assignment_id).status, "assigned")

    def test_student_cannot_review(self):
        self.move(self.student_user, self.assignment_id, "viewed")
        Assignment.objects.filter(pk=self.assignment_id).update(status="submitted")
        response = self.move(self.student_user, self.assignment_id, "reviewed")
        self.assertError(response, status.HTTP_403_FORBIDDEN)

    def test_parent_cannot_transition(self):
        response = self.move(self.parent_user, self.assignment_id, "viewed")
        self.assertError(response, status.HTTP_403_FORBIDDEN)

    def test_late_submission_is_flagged(self):
        self.move(self.student_user, self.assignment_id, "viewed")
        Assignment.objects.filter(pk=self.assignment_id).update(due_at=timezone.now() - timedelta(hours=2))
        self.authenticate(self.student_user)
        response = self.client.post(f"/api/assignments/{self.assignment_id}/submit", {"text": "Sorry"}, format="json")
        self.assertTrue(response.data["assignment"]["is_late"])
        event = AssignmentEvent.objects.filter(assignment_id=self.assignment_id, to_status="submitted").get()
        self.assertTrue(event.meta["late"])

    def test_empty_submission(self):
        self.move(self.student_user, self.assignment_id, "viewed")
        response = self.client.post(f"/api/assignments/{self.assignment_id}/submit", {}, format="json")
        self.assertError(response, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR")

    def test_complete_endpoint_and_repeat(self):
        self.authenticate(self.teacher_user)
        response = self.client.put(f"/api/assignments/{self.assignment_id}/complete")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["highlights_completed"], 1)
        response = self.client.put(f"/api/assignments/{self.assignment_id}/complete")
        self.assertError(response, status.HTTP_400_BAD_REQUEST, "ALREADY_COMPLETED")

    @override_settings(ASSIGNMENT_MAX_REOPENS=1)
    def test_reopen_limit(self):
        self.authenticate(self.teacher_user)
        self.client.put(f"/api/assignments/{self.assignment_id}/complete")
        response = self.client.post(f"/api/assignments/{self.assignment_id}/reopen", {"reason": "Again"}, format="json")
        self.assertEqual(response.data["remaining_reopens"], 0)
        Assignment.objects.filter(pk=self.assignment_id).update(status="completed")
        response = self.client.post(f"/api/assignments/{self.assignment_id}/reopen", {"reason": "Again"}, format="json")
        self.assertError(response, status.HTTP_400_BAD_REQUEST, "LIMIT_EXCEEDED")

    def test_reopen_needs_reason(self):
        self.authenticate(self.teacher_user)
        self.client.put(f"/api/assignments/{self.assignment_id}/complete")
        response = self.client.post(f"/api/assignments/{self.assignment_id}/reopen", {}, format="json")
        self.assertError(response, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR")


class EditAssignmentTests(AssignmentTestBase):

    def setUp(self):
        super().setUp()
        self.assignment_id = self.create().data["assignment"]["id"]

    def test_update_records_event(self):
        response = self.client.patch(
            f"/api/assignments/{self.assignment_id}", {"title": "Revise Ya-Sin 1-12"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["assignment"]["title"], "Revise Ya-Sin 1-12")
        self.assertTrue(
            AssignmentEvent.objects.filter(assignment_id=self.assignment_id, event_type="updated").exists()
        )

    def test_submitted_assignment_is_locked(self):
        Assignment.objects.filter(pk=self.assignment_id).update(status="submitted")
        response = self.client.delete(f"/api/assignments/{self.assignment_id}")
        self.assertError(response, status.HTTP_400_BAD_REQUEST, "INVALID_TRANSITION")

    def test_other_teacher_cannot_edit(self):
        colleague = self.make_user("teacher", "colleague@example.com", "Colleague")
        self.authenticate(colleague)
        response = self.client.patch(f"/api/assignments/{self.assignment_id}", {"title": "Mine"}, format="json")
        self.assertError(response, status.HTTP_403_FORBIDDEN)

    def test_link_highlights(self):
        extra = Highlight.objects.create(
            school=self.school, student=self.student, created_by=self.teacher_user,
            type="letter", color="brown", surah=1, ayah_start=2, ayah_end=2,
        )
        response = self.client.post(
            f"/api/assignments/{self.assignment_id}/highlights", {"highlight_ids": [extra.id]}, format="json"
        )
        self.assertEqual(response.data["linked"], [extra.id])
        response = self.client.get(f"/api/assignments/{self.assignment_id}/highlights")
        self.assertEqual(len(response.data["highlights"]), 2)


class ListAssignmentTests(AssignmentTestBase):

    def test_roles_see_their_own(self):
        self.create()
        self.create(title="Second")
        for user, expected in ((self.student_user, 2), (self.parent_user, 2), (self.admin_user, 2)):
            self.authenticate(user)
            response = self.client.get("/api/assignments/")
            self.assertEqual(response.data["pagination"]["total"], expected)
        colleague = self.make_user("teacher", "colleague@example.com", "Colleague")
        self.authenticate(colleague)
        self.assertEqual(self.client.get("/api/assignments/").data["pagination"]["total"], 0)

    def test_filters_and_paging(self):
        first = self.create().data["assignment"]["id"]
        self.create(title="Second")
        Assignment.objects.filter(pk=first).update(due_at=timezone.now() - timedelta(days=1))
        self.authenticate(self.teacher_user)
        response = self.client.get("/api/assignments/?late_only=true")
        self.assertEqual([a["id"] for a in response.data["assignments"]], [first])
        response = self.client.get("/api/assignments/?limit=1&page=2")
        self.assertEqual(response.data["pagination"], {"page": 2, "limit": 1, "total": 2, "total_pages": 2})
        response = self.client.get("/api/assignments/?status=completed")
        self.assertEqual(response.data["assignments"], [])


class ServiceTests(AssignmentTestBase):

    def test_complete_from_highlight_skips_completed(self):
        assignment = lifecycle.create_assignment(
            self.school, self.student, self.teacher_user, "Auto", timezone.now() + timedelta(days=1),
            highlights=[self.highlight],
        )
        self.assertEqual(lifecycle.complete_from_highlight(self.highlight, self.teacher_user), [assignment.id])
        self.assertEqual(lifecycle.complete_from_highlight(self.highlight, self.teacher_user), [])
