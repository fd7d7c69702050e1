from rest_framework import status

from accounts.tests.base import TestBase
from messaging.models import Message, MessageAttachment
from messaging.services import can_message
from notifications.models import Notification


class MessagingTestBase(TestBase):

    def send(self, sender, payload):
        self.authenticate(sender)
        return self.client.post("/api/messages/", payload, format="json")


class CommunicationMatrixTests(TestBase):

    def test_matrix(self):
        teacher = self.teacher_user.profile
        student = self.student_user.profile
        parent = self.parent_user.profile
        self.assertTrue(can_message(teacher, parent))
        self.assertTrue(can_message(parent, teacher))
        self.assertTrue(can_message(student, teacher))
        self.assertFalse(can_message(student, parent))
        self.assertFalse(can_message(parent, student))
        self.assertFalse(can_message(teacher, self.other_student_user.profile))

    def test_recipients(self):
        self.authenticate(self.parent_user)
        response = self.client.get("/api/messages/recipients")
        roles = {r["role"] for r in response.data["recipients"]}
        self.assertEqual(roles, {"owner", "admin", "teacher"})
        response = self.client.get("/api/messages/recipients?role=teacher")
        self.assertEqual([r["user_id"] for r in response.data["recipients"]], [self.teacher_user.pk])


class SendMessageTests(MessagingTestBase):

    def test_send(self):
        response = self.send(
            self.parent_user,
            {"recipient_id": self.teacher_user.pk, "subject": "Absence", "body": "Maryam is ill today."},
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        message = response.data["message"]
        self.assertEqual(message["thread_id"], message["id"])
        self.assertEqual(message["sender_name"], "Parent Khalid")
        notification = Notification.objects.get(user=self.teacher_user, type="message_received")
        self.assertEqual(notification.payload["message_id"], message["id"])

    def test_disallowed_pair(self):
        response = self.send(self.parent_user, {"recipient_id": self.student_user.pk, "body": "Hello"})
        self.assertError(response, status.HTTP_403_FORBIDDEN, "FORBIDDEN")

    def test_other_school_recipient(self):
        response = self.send(self.teacher_user, {"recipient_id": self.other_student_user.pk, "body": "Hello"})
        self.assertError(response, status.HTTP_404_NOT_FOUND)

    def test_self_message(self):
        response = self.send(self.teacher_user, {"recipient_id": self.teacher_user.pk, "body": "Note to self"})
        self.assertError(response, status.HTTP_400_BAD_REQUEST)

    def test_needs_recipient_or_thread(self):
        response = self.send(self.teacher_user, {"body": "Hello"})
        self.assertError(response, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR")

    def test_blank_body(self):
        response = self.send(self.teacher_user, {"recipient_id": self.parent_user.pk, "body": "   "})
        self.assertError(response, status.HTTP_400_BAD_REQUEST)

    def test_attachments_must_belong_to_sender(self):
        prefix = f"{self.school.pk}/{self.teacher_user.pk}/attachments/"
        good = {"path": prefix + "1-abc.pdf", "mime_type": "application/pdf", "size": 1200, "file_name": "plan.pdf"}
        response = self.send(
            self.teacher_user, {"recipient_id": self.parent_user.pk, "body": "Plan", "attachments": [good]}
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["message"]["attachments"][0]["file_name"], "plan.pdf")

        stolen = dict(good, path=f"{self.school.pk}/{self.parent_user.pk}/attachments/x.pdf")
        response = self.send(
            self.teacher_user, {"recipient_id": self.parent_user.pk, "body": "Plan", "attachments": [stolen]}
        )
        self.assertError(response, status.HTTP_400_BAD_REQUEST)

        exe = dict(good, mime_type="application/x-msdownload")
        response = self.send(
            self.teacher_user, {"recipient_id": self.parent_user.pk, "body": "Plan", "attachments": [exe]}
        )
        self.assertError(response, status.HTTP_400_BAD_REQUEST)

    def test_attachment_path_cannot_climb_out_of_sender_folder(self):
        other = f"{self.school.pk}/{self.parent_user.pk}"
        for path in (
            f"{self.school.pk}/{self.teacher_user.pk}/../../{other}/f.pdf",
            f"{self.school.pk}/{self.teacher_user.pk}/attachments//f.pdf",
        ):
            item = {"path": path, "mime_type": "application/pdf", "size": 1200}
            response = self.send(
                self.teacher_user, {"recipient_id": self.parent_user.pk, "body": "Plan", "attachments": [item]}
            )
            self.assertError(response, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(response.data["error"], "Invalid attachment path")
        self.assertFalse(MessageAttachment.objects.exists())


class ThreadTests(MessagingTestBase):

    def setUp(self):
        super().setUp()
        response = self.send(
            self.parent_user, {"recipient_id": self.teacher_user.pk, "subject": "Progress", "body": "How is she doing?"}
        )
        self.root_id = response.data["message"]["id"]

    def test_reply_goes_to_other_party(self):
        response = self.send(self.teacher_user, {"thread_id": self.root_id, "subject": "Ignored", "body": "Very well."})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        reply = Message.objects.get(pk=response.data["message"]["id"])
        self.assertEqual(reply.recipient, self.parent_user)
        self.assertEqual(reply.thread_id, self.root_id)
        self.assertEqual(reply.subject, "")

        # replying to the reply still lands on the root
        response = self.send(self.parent_user, {"thread_id": reply.pk, "body": "Thank you"})
        self.assertEqual(response.data["message"]["thread_id"], self.root_id)

    def test_outsider_cannot_reply(self):
        response = self.send(self.admin_user, {"thread_id": self.root_id, "body": "Me too"})
        self.assertError(response, status.HTTP_403_FORBIDDEN, "FORBIDDEN")

    def test_thread_view_marks_read(self):
        self.send(self.teacher_user, {"thread_id": self.root_id, "body": "Very well."})
        self.authenticate(self.teacher_user)
        response = self.client.get(f"/api/messages/thread/{self.root_id}")
        self.assertEqual(len(response.data["messages"]), 2)
        self.assertIsNotNone(Message.objects.get(pk=self.root_id).read_at)

    def test_folders(self):
        self.authenticate(self.teacher_user)
        response = self.client.get("/api/messages/?folder=unread")
        self.assertEqual(response.data["unread_count"], 1)
        self.assertEqual(len(response.data["messages"]), 1)

        self.client.get(f"/api/messages/{self.root_id}")
        response = self.client.get("/api/messages/?folder=unread")
        self.assertEqual(response.data["messages"], [])
        self.assertEqual(response.data["unread_count"], 0)

        self.authenticate(self.parent_user)
        response = self.client.get("/api/messages/?folder=sent")
        self.assertEqual(response.data["pagination"]["total"], 1)
        response = self.client.get("/api/messages/?folder=trash")
        self.assertError(response, status.HTTP_400_BAD_REQUEST)

    def test_sender_opening_does_not_mark_read(self):
        self.authenticate(self.parent_user)
        self.client.get(f"/api/messages/{self.root_id}")
        self.assertIsNone(Message.objects.get(pk=self.root_id).read_at)

    def test_detail_hidden_from_others(self):
        self.authenticate(self.admin_user)
        response = self.client.get(f"/api/messages/{self.root_id}")
        self.assertError(response, status.HTTP_404_NOT_FOUND)


class GroupMessageTests(MessagingTestBase):

    def test_class_broadcast(self):
        self.authenticate(self.teacher_user)
        response = self.client.post(
            "/api/messages/send-group",
            {"class_id": self.school_class.pk, "recipient_ids": [self.parent_user.pk, 999999], "body": "No class Friday"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["summary"], {"total": 3, "sent": 2, "failed": 1})
        self.assertTrue(Message.objects.filter(recipient=self.student_user, sender=self.teacher_user).exists())

    def test_students_cannot_broadcast(self):
        self.authenticate(self.student_user)
        response = self.client.post(
            "/api/messages/send-group", {"recipient_ids": [self.teacher_user.pk], "body": "Hi"}, format="json"
        )
        self.assertError(response, status.HTTP_403_FORBIDDEN)
