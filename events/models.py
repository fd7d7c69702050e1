from datetime import timedelta

from django.conf import settings
from django.db import models

ASSIGNMENT_DUE = "assignment_due"
HOMEWORK_DUE = "homework_due"
TARGET_DUE = "target_due"
CLASS_SESSION = "class_session"
SCHOOL_EVENT = "school_event"
HOLIDAY = "holiday"
EXAM = "exam"
MEETING = "meeting"
REMINDER = "reminder"
OTHER = "other"

TYPE_CHOICES = [
    (ASSIGNMENT_DUE, "Assignment due"),
    (HOMEWORK_DUE, "Homework due"),
    (TARGET_DUE, "Target due"),
    (CLASS_SESSION, "Class session"),
    (SCHOOL_EVENT, "School event"),
    (HOLIDAY, "Holiday"),
    (EXAM, "Exam"),
    (MEETING, "Meeting"),
    (REMINDER, "Reminder"),
    (OTHER, "Other"),
]

TYPE_COLORS = {
    ASSIGNMENT_DUE: "#EF4444",
    HOMEWORK_DUE: "#F59E0B",
    TARGET_DUE: "#10B981",
    CLASS_SESSION: "#3B82F6",
    SCHOOL_EVENT: "#8B5CF6",
    HOLIDAY: "#EC4899",
    EXAM: "#DC2626",
    MEETING: "#14B8A6",
    REMINDER: "#6B7280",
    OTHER: "#9CA3AF",
}

INVITED = "invited"
ACCEPTED = "accepted"
DECLINED = "declined"
MAYBE = "maybe"

PARTICIPANT_STATUS_CHOICES = [
    (INVITED, "Invited"),
    (ACCEPTED, "Accepted"),
    (DECLINED, "Declined"),
    (MAYBE, "Maybe"),
]

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 5000
MAX_LOCATION_LENGTH = 500
MAX_DURATION = timedelta(days=30)


class Event(models.Model):
    school = models.ForeignKey("schools.School", on_delete=models.CASCADE, related_name="events")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name="events_created"
    )
    title = models.CharField(max_length=MAX_TITLE_LENGTH)
    description = models.TextField(blank=True, default="")
    event_type = models.CharField(max_length=32, choices=TYPE_CHOICES, default=OTHER)
    start_at = models.DateTimeField()
    end_at = models.DateTimeField()
    all_day = models.BooleanField(default=False)
    location = models.CharField(max_length=MAX_LOCATION_LENGTH, blank=True, default="")
    color = models.CharField(max_length=7)
    school_class = models.ForeignKey(
        "schools.SchoolClass", on_delete=models.SET_NULL, null=True, blank=True, related_name="events"
    )
    assignment = models.ForeignKey(
        "assignments.Assignment", on_delete=models.SET_NULL, null=True, blank=True, related_name="calendar_events"
    )
    homework = models.ForeignKey(
        "highlights.Highlight", on_delete=models.SET_NULL, null=True, blank=True, related_name="calendar_events"
    )
    target = models.ForeignKey(
        "targets.Target", on_delete=models.SET_NULL, null=True, blank=True, related_name="calendar_events"
    )
    recurrence_rule = models.JSONField(blank=True, null=True)
    recurrence_parent = models.ForeignKey(
        "self", on_delete=models.CASCADE, null=True, blank=True, related_name="instances"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["start_at", "id"]
        indexes = [
            models.Index(fields=["school", "start_at"], name="event_school_start_idx"),
        ]

    def __str__(self):
        return f"{self.title} ({self.start_at:%Y-%m-%d})"

    @property
    def is_recurring(self):
        return bool(self.recurrence_rule) or self.recurrence_parent_id is not None

    @property
    def series_root_id(self):
        return self.recurrence_parent_id or self.pk


class EventParticipant(models.Model):
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="participants")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="event_invites")
    status = models.CharField(max_length=16, choices=PARTICIPANT_STATUS_CHOICES, default=INVITED)
    responded_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        unique_together = [("event", "user")]
