from datetime import timedelta
from io import StringIO
from unittest import mock

from django.core import mail
from django.core.management import call_command
from django.core.signing import TimestampSigner
from django.test import override_settings
from django.urls import reverse
from django.utils import timezone

from accounts.tests.base import TestBase
from assignments import lifecycle
from assignments.models import Assignment
from jobs import tasks
from notifications.models import EMAIL, IN_APP, Notification
from notifications.services import get_preferences, notify


@override_settings(EMAIL_BACKEND="django.core.mail.backends.locmem.EmailBackend")
class EmailJobTests(TestBase):

    def test_deliver(self):
        notification = notify(self.student_user, "system_announcement", title="Eid", channels=(EMAIL,))[0]
        self.assertTrue(tasks.deliver_notification_email(notification.pk))
        self.assertEqual(len(mail.outbox), 1)
        self.assertFalse(tasks.deliver_notification_email(notification.pk))
        self.assertFalse(tasks.deliver_notification_email(987654))

    def test_send_credentials(self):
        tasks.send_credentials_email(self.parent_user.pk, "temp-Pass-1")
        self.assertEqual(mail.outbox[0].to, ["parent@example.com"])

    @mock.patch("jobs.tasks.deliver_notification_email.delay")
    def test_dispatch_skips_quiet_hours(self, delay):
        waiting = notify(self.student_user, "system_announcement", channels=(EMAIL,))[0]
        notify(self.parent_user, "system_announcement", channels=(EMAIL,))
        notify(self.parent_user, "system_announcement", channels=(IN_APP,))

        now = timezone.now()
        pref = get_preferences(self.parent_user)
        pref.quiet_hours_start = (now - timedelta(hours=1)).time()
        pref.quiet_hours_end = (now + timedelta(hours=1)).time()
        pref.save()

        self.assertEqual(tasks.dispatch_pending_emails(), 1)
        delay.assert_called_once_with(waiting.pk)

    @mock.patch("jobs.tasks.deliver_notification_email.delay")
    def test_unsubscribe_during_quiet_hours_cancels_delivery(self, delay):
        now = timezone.now()
        pref = get_preferences(self.parent_user)
        pref.quiet_hours_start = (now - timedelta(hours=1)).time()
        pref.quiet_hours_end = (now + timedelta(hours=1)).time()
        pref.save()
        held = notify(self.parent_user, "system_announcement", channels=(EMAIL,))[0]

        token = TimestampSigner().sign(str(self.parent_user.pk))
        self.client.get(reverse("mailer:unsubscribe"), {"t": token})
        pref.refresh_from_db()
        pref.quiet_hours_start = pref.quiet_hours_end = None
        pref.save()

        self.assertEqual(tasks.dispatch_pending_emails(), 0)
        delay.assert_not_called()
        self.assertFalse(tasks.deliver_notification_email(held.pk))
        self.assertEqual(mail.outbox, [])


class DeadlineSweepTests(TestBase):

    def make(self, title, due_in):
        assignment = lifecycle.create_assignment(
            self.school, self.student, self.teacher_user, title, timezone.now() + timedelta(days=3)
        )
        Assignment.objects.filter(pk=assignment.pk).update(due_at=timezone.now() + due_in)
        return assignment

    def test_sweep(self):
        soon = self.make("Soon", timedelta(hours=6))
        late = self.make("Late", -timedelta(hours=2))
        self.make("Later", timedelta(days=2))
        done = self.make("Done", -timedelta(days=1))
        Assignment.objects.filter(pk=done.pk).update(status="completed")

        self.assertEqual(tasks.sweep_assignment_deadlines(), {"due_soon": 1, "overdue": 1})
        soon.refresh_from_db()
        late.refresh_from_db()
        self.assertIsNotNone(soon.due_soon_notified_at)
        self.assertTrue(late.late)
        self.assertTrue(
            Notification.objects.filter(user=self.student_user, type="assignment_overdue", channel=IN_APP).exists()
        )

        # a second run does not notify again
        self.assertEqual(tasks.sweep_assignment_deadlines(), {"due_soon": 0, "overdue": 0})
        self.assertEqual(Notification.objects.filter(type="assignment_due_soon", channel=IN_APP).count(), 1)


class ApplySchedulesTests(TestBase):

    @override_settings(SCHEDULES=[
        ("jobs.tasks.dispatch_pending_emails", "*/10 * * * *"),
        ("jobs.tasks.sweep_assignment_deadlines", "0 * * * *"),
    ])
    @mock.patch("jobs.management.commands.apply_schedules.get_scheduler")
    def test_replaces_known_jobs(self, get_scheduler):
        scheduler = get_scheduler.return_value
        stale = mock.Mock(func_name="jobs.tasks.dispatch_pending_emails")
        unrelated = mock.Mock(func_name="someone.elses.job")
        scheduler.get_jobs.return_value = [stale, unrelated]

        out = StringIO()
        call_command("apply_schedules", stdout=out)

        scheduler.cancel.assert_called_once_with(stale)
        self.assertEqual(scheduler.cron.call_count, 2)
        first = scheduler.cron.call_args_list[0]
        self.assertEqual(first.args, ("*/10 * * * *",))
        self.assertEqual(first.kwargs["queue_name"], "default")
        self.assertIn("sweep_assignment_deadlines", out.getvalue())
