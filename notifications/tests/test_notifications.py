from datetime import timedelta
from unittest import mock

from django.utils import timezone
from rest_framework import status

from accounts.tests.base import TestBase
from notifications.models import EMAIL, IN_APP, Notification
from notifications.services import get_preferences, notify, unread_counts


class NotifyTests(TestBase):

    def test_in_app_is_sent_immediately(self):
        created = notify(self.student_user, "system_announcement", title="Eid break")
        self.assertEqual(len(created), 1)
        self.assertIsNotNone(created[0].sent_at)
        self.assertEqual(created[0].school, self.school)

    def test_disabled_section_is_skipped(self):
        pref = get_preferences(self.student_user)
        pref.homework_enabled = False
        pref.save()
        self.assertEqual(notify(self.student_user, "homework_assigned", title="New homework"), [])

    def test_disabled_channel_is_skipped(self):
        pref = get_preferences(self.student_user)
        pref.email_enabled = False
        pref.save()
        created = notify(self.student_user, "assignment_created", channels=(IN_APP, EMAIL))
        self.assertEqual([n.channel for n in created], [IN_APP])

    @mock.patch("jobs.tasks.deliver_notification_email.delay")
    def test_email_is_queued_after_commit(self, delay):
        with self.captureOnCommitCallbacks(execute=True):
            created = notify(self.student_user, "assignment_created", channels=(EMAIL,))
        self.assertIsNone(created[0].sent_at)
        delay.assert_called_once_with(created[0].pk)

    @mock.patch("jobs.tasks.deliver_notification_email.delay")
    def test_quiet_hours_hold_email(self, delay):
        now = timezone.now()
        pref = get_preferences(self.student_user)
        pref.quiet_hours_start = (now - timedelta(hours=1)).time()
        pref.quiet_hours_end = (now + timedelta(hours=1)).time()
        pref.save()
        with self.captureOnCommitCallbacks(execute=True):
            created = notify(self.student_user, "assignment_created", channels=(EMAIL,))
        self.assertEqual(len(created), 1)
        delay.assert_not_called()

    def test_unread_counts_by_section(self):
        notify(self.student_user, "assignment_created")
        notify(self.student_user, "assignment_overdue")
        notify(self.student_user, "message_received")
        notify(self.student_user, "assignment_created", channels=(EMAIL,))
        counts, total = unread_counts(self.student_user)
        self.assertEqual(counts["assignments"], 2)
        self.assertEqual(counts["messages"], 1)
        self.assertEqual(counts["homework"], 0)
        self.assertEqual(total, 3)


class NotificationApiTests(TestBase):

    def setUp(self):
        super().setUp()
        self.first = notify(self.student_user, "assignment_created", title="One")[0]
        notify(self.student_user, "homework_assigned", title="Two")
        notify(self.student_user, "message_received", title="Three")
        self.authenticate(self.student_user)

    def test_list(self):
        response = self.client.get("/api/notifications/?limit=2")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["total"], 3)
        self.assertEqual(response.data["unread_count"], 3)
        self.assertTrue(response.data["has_more"])
        self.assertEqual(response.data["notifications"][0]["title"], "Three")

    def test_list_filters(self):
        response = self.client.get("/api/notifications/?type=homework_assigned")
        self.assertEqual([n["title"] for n in response.data["notifications"]], ["Two"])
        self.client.post(f"/api/notifications/{self.first.id}/read")
        response = self.client.get("/api/notifications/?read=true")
        self.assertEqual([n["title"] for n in response.data["notifications"]], ["One"])

    def test_read_one(self):
        response = self.client.patch(f"/api/notifications/{self.first.id}/read")
        self.assertIsNotNone(response.data["notification"]["read_at"])
        self.assertEqual(response.data["notification"]["section"], "assignments")

    def test_cannot_read_someone_elses(self):
        other = notify(self.parent_user, "system_announcement")[0]
        response = self.client.patch(f"/api/notifications/{other.id}/read")
        self.assertError(response, status.HTTP_404_NOT_FOUND)

    def test_read_all(self):
        response = self.client.post("/api/notifications/read-all")
        self.assertEqual(response.data["updated"], 3)
        self.assertEqual(self.client.get("/api/notifications/counts").data["total"], 0)

    def test_mark_section_read(self):
        response = self.client.post("/api/notifications/mark-section-read", {"section": "homework"}, format="json")
        self.assertEqual(response.data["updated"], 1)
        counts = self.client.get("/api/notifications/counts").data
        self.assertEqual(counts["counts"]["homework"], 0)
        self.assertEqual(counts["total"], 2)

    def test_unknown_section(self):
        response = self.client.post("/api/notifications/mark-section-read", {"section": "sports"}, format="json")
        self.assertError(response, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR")

    def test_preferences(self):
        response = self.client.get("/api/notifications/preferences")
        self.assertTrue(response.data["preferences"]["email_enabled"])
        response = self.client.patch(
            "/api/notifications/preferences",
            {"email_enabled": False, "quiet_hours_start": "21:00", "quiet_hours_end": "07:00"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        pref = get_preferences(self.student_user)
        self.assertFalse(pref.email_enabled)
        self.assertEqual(pref.quiet_hours_start.hour, 21)


class SendNotificationTests(TestBase):

    def test_staff_can_send(self):
        self.authenticate(self.teacher_user)
        response = self.client.post(
            "/api/notifications/send",
            {
                "user_ids": [self.student_user.pk, self.other_student_user.pk],
                "type": "system_announcement",
                "title": "Class cancelled",
            },
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["results"], [{"user_id": self.student_user.pk, "created": 1}])
        self.assertEqual(response.data["not_found"], [self.other_student_user.pk])
        self.assertFalse(Notification.objects.filter(user=self.other_student_user).exists())

    def test_students_cannot_send(self):
        self.authenticate(self.student_user)
        response = self.client.post(
            "/api/notifications/send",
            {"user_ids": [self.parent_user.pk], "type": "system_announcement", "title": "Hi"},
            format="json",
        )
        self.assertError(response, status.HTTP_403_FORBIDDEN)
