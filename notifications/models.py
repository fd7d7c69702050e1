from django.conf import settings
from django.db import models

IN_APP = "in_app"
EMAIL = "email"
PUSH = "push"

CHANNEL_CHOICES = [
    (IN_APP, "In app"),
    (EMAIL, "Email"),
    (PUSH, "Push"),
]

NOTIFICATION_TYPES = [
    "assignment_created",
    "assignment_viewed",
    "assignment_submitted",
    "assignment_reviewed",
    "assignment_completed",
    "assignment_reopened",
    "assignment_due_soon",
    "assignment_overdue",
    "homework_assigned",
    "homework_completed",
    "target_assigned",
    "target_completed",
    "grade_submitted",
    "mastery_improved",
    "message_received",
    "system_announcement",
]

# section -> preference flag on NotificationPreference
SECTIONS = {
    "assignments": "assignments_enabled",
    "homework": "homework_enabled",
    "targets": "targets_enabled",
    "gradebook": "gradebook_enabled",
    "messages": "messages_enabled",
    "announcements": "announcements_enabled",
}


def section_for(notification_type):
    if notification_type.startswith("assignment_"):
        return "assignments"
    if notification_type.startswith("homework_"):
        return "homework"
    if notification_type.startswith("target_"):
        return "targets"
    if notification_type in ("grade_submitted", "mastery_improved"):
        return "gradebook"
    if notification_type == "message_received":
        return "messages"
    return "announcements"


def section_types(section):
    return [t for t in NOTIFICATION_TYPES if section_for(t) == section]


class Notification(models.Model):
    school = models.ForeignKey("schools.School", on_delete=models.CASCADE, related_name="notifications")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notifications")
    channel = models.CharField(max_length=16, choices=CHANNEL_CHOICES, default=IN_APP)
    type = models.CharField(max_length=48)
    title = models.CharField(max_length=200, blank=True, default="")
    body = models.TextField(blank=True, default="")
    payload = models.JSONField(default=dict, blank=True)
    sent_at = models.DateTimeField(blank=True, null=True)
    read_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["user", "channel", "read_at"], name="notification_unread_idx"),
            models.Index(fields=["channel", "sent_at"], name="notification_pending_idx"),
        ]

    def __str__(self):
        return f"{self.type} -> {self.user_id} ({self.channel})"

    @property
    def section(self):
        return section_for(self.type)


class NotificationPreference(models.Model):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notification_pref")
    in_app_enabled = models.BooleanField(default=True)
    email_enabled = models.BooleanField(default=True)
    push_enabled = models.BooleanField(default=False)
    assignments_enabled = models.BooleanField(default=True)
    homework_enabled = models.BooleanField(default=True)
    targets_enabled = models.BooleanField(default=True)
    gradebook_enabled = models.BooleanField(default=True)
    messages_enabled = models.BooleanField(default=True)
    announcements_enabled = models.BooleanField(default=True)
    quiet_hours_start = models.TimeField(blank=True, null=True)
    quiet_hours_end = models.TimeField(blank=True, null=True)
    updated_at = models.DateTimeField(auto_now=True)

    def channel_enabled(self, channel):
        return getattr(self, f"{channel}_enabled", False)

    def section_enabled(self, section):
        flag = SECTIONS.get(section)
        return getattr(self, flag) if flag else True

    def in_quiet_hours(self, at):
        """`at` is a naive local time; the window may wrap past midnight."""
        start, end = self.quiet_hours_start, self.quiet_hours_end
        if start is None or end is None or start == end:
            return False
        if start < end:
            return start <= at < end
        return at >= start or at < end
