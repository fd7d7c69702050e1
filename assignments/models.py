from django.conf import settings
from django.db import models
from django.utils import timezone

ASSIGNED = "assigned"
VIEWED = "viewed"
SUBMITTED = "submitted"
REVIEWED = "reviewed"
COMPLETED = "completed"
REOPENED = "reopened"

STATUS_CHOICES = [
    (ASSIGNED, "Assigned"),
    (VIEWED, "Viewed"),
    (SUBMITTED, "Submitted"),
    (REVIEWED, "Reviewed"),
    (COMPLETED, "Completed"),
    (REOPENED, "Reopened"),
]

# statuses in which the student still owes work
OPEN_STATUSES = (ASSIGNED, VIEWED, REOPENED)
# statuses in which the assignment can no longer be edited or deleted
LOCKED_STATUSES = (SUBMITTED, REVIEWED, COMPLETED)

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 5000
MAX_SUBMISSION_TEXT_LENGTH = 10000
MAX_SUBMISSION_ATTACHMENTS = 10
MAX_REASON_LENGTH = 500


class Assignment(models.Model):
    school = models.ForeignKey("schools.School", on_delete=models.CASCADE, related_name="assignments")
    student = models.ForeignKey("students.Student", on_delete=models.CASCADE, related_name="assignments")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="assignments_created",
    )
    title = models.CharField(max_length=MAX_TITLE_LENGTH)
    description = models.TextField(blank=True, default="")
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=ASSIGNED)
    due_at = models.DateTimeField()
    late = models.BooleanField(default=False)
    reopen_count = models.PositiveIntegerField(default=0)
    completed_at = models.DateTimeField(blank=True, null=True)
    due_soon_notified_at = models.DateTimeField(blank=True, null=True)
    overdue_notified_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["due_at"]
        indexes = [
            models.Index(fields=["school", "status"], name="assignment_school_status_idx"),
            models.Index(fields=["student", "status"], name="assignment_student_status_idx"),
        ]

    def __str__(self):
        return self.title

    @property
    def is_late(self):
        return self.late or (self.status in OPEN_STATUSES and self.due_at < timezone.now())


class AssignmentEvent(models.Model):
    assignment = models.ForeignKey(Assignment, on_delete=models.CASCADE, related_name="events")
    actor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    event_type = models.CharField(max_length=64)
    from_status = models.CharField(max_length=16, blank=True, default="")
    to_status = models.CharField(max_length=16, blank=True, default="")
    meta = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]


class AssignmentHighlight(models.Model):
    assignment = models.ForeignKey(Assignment, on_delete=models.CASCADE, related_name="highlight_links")
    highlight = models.ForeignKey("highlights.Highlight", on_delete=models.CASCADE, related_name="assignment_links")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [("assignment", "highlight")]


class AssignmentSubmission(models.Model):
    assignment = models.ForeignKey(Assignment, on_delete=models.CASCADE, related_name="submissions")
    student = models.ForeignKey("students.Student", on_delete=models.CASCADE, related_name="submissions")
    text = models.TextField(blank=True, default="")
    attachments = models.JSONField(default=list, blank=True)
    submitted_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-submitted_at"]
