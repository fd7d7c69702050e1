from django.conf import settings
from django.db import models

MAX_SUBJECT_LENGTH = 200
MAX_BODY_LENGTH = 10000
MAX_ATTACHMENTS = 5


class Message(models.Model):
    school = models.ForeignKey("schools.School", on_delete=models.CASCADE, related_name="messages")
    sender = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="messages_sent")
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="messages_received"
    )
    thread = models.ForeignKey("self", on_delete=models.CASCADE, null=True, blank=True, related_name="replies")
    subject = models.CharField(max_length=MAX_SUBJECT_LENGTH, blank=True, default="")
    body = models.TextField()
    read_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["recipient", "read_at"], name="message_inbox_idx"),
            models.Index(fields=["sender", "created_at"], name="message_outbox_idx"),
        ]

    def __str__(self):
        return self.subject or f"Message {self.pk}"

    @property
    def root_id(self):
        return self.thread_id or self.pk

    def involves(self, user):
        return user.pk in (self.sender_id, self.recipient_id)


class MessageAttachment(models.Model):
    message = models.ForeignKey(Message, on_delete=models.CASCADE, related_name="attachments")
    file_name = models.CharField(max_length=255)
    file_path = models.CharField(max_length=500)
    mime_type = models.CharField(max_length=128)
    size = models.PositiveIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)
