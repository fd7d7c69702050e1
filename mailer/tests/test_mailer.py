from anymail.signals import AnymailTrackingEvent, tracking
from django.core import mail
from django.core.signing import TimestampSigner
from django.test import override_settings
from django.urls import reverse

from accounts.tests.base import TestBase
from mailer.models import EmailEvent
from mailer.sending import send_credentials, send_notification_email, unsubscribe_link
from notifications.models import EMAIL, Notification, NotificationPreference
from notifications.services import get_preferences, notify


@override_settings(EMAIL_BACKEND="django.core.mail.backends.locmem.EmailBackend", SITE_URL="https://portal.example.com")
class SendingTests(TestBase):

    def test_notification_email(self):
        notification = notify(
            self.student_user, "assignment_created", title="New assignment", body="Revise Al-Mulk", channels=(EMAIL,)
        )[0]
        self.assertTrue(send_notification_email(notification))
        self.assertEqual(len(mail.outbox), 1)
        msg = mail.outbox[0]
        self.assertEqual(msg.subject, "New assignment")
        self.assertEqual(msg.to, ["student@example.com"])
        self.assertIn("Revise Al-Mulk", msg.body)
        self.assertIn("https://portal.example.com/unsubscribe/?t=", msg.body)
        self.assertEqual(msg.metadata, {"notification_id": notification.pk, "user_id": self.student_user.pk})
        self.assertEqual(msg.tags, ["assignment_created"])
        notification.refresh_from_db()
        self.assertIsNotNone(notification.sent_at)

    def test_already_sent_is_skipped(self):
        notification = notify(self.student_user, "assignment_created", channels=(EMAIL,))[0]
        send_notification_email(notification)
        self.assertFalse(send_notification_email(notification))
        self.assertEqual(len(mail.outbox), 1)

    def test_opted_out_user_gets_no_email(self):
        notification = notify(self.student_user, "assignment_created", channels=(EMAIL,))[0]
        pref = get_preferences(self.student_user)
        pref.email_enabled = False
        pref.save()
        self.assertFalse(send_notification_email(notification))
        self.assertEqual(mail.outbox, [])
        self.assertFalse(Notification.objects.filter(pk=notification.pk).exists())

    def test_muted_section_gets_no_email(self):
        notification = notify(self.student_user, "assignment_created", channels=(EMAIL,))[0]
        pref = get_preferences(self.student_user)
        pref.assignments_enabled = False
        pref.save()
        self.assertFalse(send_notification_email(notification))
        self.assertEqual(mail.outbox, [])

    def test_credentials(self):
        send_credentials(self.teacher_user, "s3cret-Pass")
        msg = mail.outbox[0]
        self.assertEqual(msg.subject, "Your Al-Noor Academy account")
        self.assertIn("s3cret-Pass", msg.body)
        self.assertEqual(msg.alternatives[0][1], "text/html")


class UnsubscribeTests(TestBase):

    def test_unsubscribe(self):
        token = TimestampSigner().sign(str(self.parent_user.pk))
        response = self.client.get(reverse("mailer:unsubscribe"), {"t": token})
        self.assertEqual(response.status_code, 200)
        self.assertFalse(get_preferences(self.parent_user).email_enabled)

    def test_link_carries_signed_user(self):
        link = unsubscribe_link(self.parent_user)
        token = link.split("?t=", 1)[1]
        self.assertEqual(TimestampSigner().unsign(token), str(self.parent_user.pk))

    def test_tampered_token(self):
        response = self.client.get(reverse("mailer:unsubscribe"), {"t": "1:forged:sig"})
        self.assertEqual(response.status_code, 400)
        self.assertTrue(get_preferences(self.parent_user).email_enabled)

    def test_missing_token(self):
        self.assertEqual(self.client.get(reverse("mailer:unsubscribe")).status_code, 400)


class TrackingTests(TestBase):

    def track(self, event_type, user):
        event = AnymailTrackingEvent(
            event_type=event_type,
            recipient=user.email,
            event_id=f"evt-{event_type}",
            metadata={"user_id": user.pk},
            esp_event={"event": event_type},
        )
        tracking.send(sender=object(), event=event, esp_name="SendGrid")

    def test_bounce_disables_email(self):
        self.track("bounced", self.parent_user)
        self.assertFalse(NotificationPreference.objects.get(user=self.parent_user).email_enabled)
        row = EmailEvent.objects.get()
        self.assertEqual(row.event, "bounced")
        self.assertEqual(row.email, "parent@example.com")
        self.assertEqual(row.payload, {"event": "bounced"})

    def test_delivery_is_only_recorded(self):
        get_preferences(self.parent_user)
        self.track("delivered", self.parent_user)
        self.assertTrue(NotificationPreference.objects.get(user=self.parent_user).email_enabled)
        self.assertEqual(EmailEvent.objects.count(), 1)
