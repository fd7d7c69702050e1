from django.conf import settings
from django.db import models
from django.utils import timezone

INDIVIDUAL = "individual"
CLASS = "class"
SCHOOL = "school"

TYPE_CHOICES = [
    (INDIVIDUAL, "Individual"),
    (CLASS, "Class"),
    (SCHOOL, "School"),
]

ACTIVE = "active"
COMPLETED = "completed"
CANCELLED = "cancelled"

STATUS_CHOICES = [
    (ACTIVE, "Active"),
    (COMPLETED, "Completed"),
    (CANCELLED, "Cancelled"),
]

CATEGORY_CHOICES = [
    ("memorization", "Memorization"),
    ("revision", "Revision"),
    ("tajweed", "Tajweed"),
    ("recitation", "Recitation"),
    ("fluency", "Fluency"),
    ("quran_completion", "Quran completion"),
    ("surah_mastery", "Surah mastery"),
    ("page_count", "Page count"),
    ("attendance", "Attendance"),
    ("behavior", "Behavior"),
    ("other", "Other"),
]

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000
MAX_MILESTONE_DESCRIPTION_LENGTH = 500
MAX_MILESTONES = 20


class Target(models.Model):
    school = models.ForeignKey("schools.School", on_delete=models.CASCADE, related_name="targets")
    type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=ACTIVE)
    category = models.CharField(max_length=32, choices=CATEGORY_CHOICES, default="other")
    title = models.CharField(max_length=MAX_TITLE_LENGTH)
    description = models.TextField(blank=True, default="")
    student = models.ForeignKey(
        "students.Student", on_delete=models.CASCADE, null=True, blank=True, related_name="targets"
    )
    school_class = models.ForeignKey(
        "schools.SchoolClass", on_delete=models.CASCADE, null=True, blank=True, related_name="targets"
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name="targets_created"
    )
    start_date = models.DateField(blank=True, null=True)
    due_date = models.DateField(blank=True, null=True)
    completed_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["school", "status"], name="target_school_status_idx"),
            models.Index(fields=["student", "status"], name="target_student_status_idx"),
        ]

    def __str__(self):
        return self.title

    @property
    def progress(self):
        milestones = list(self.milestones.all())
        if not milestones:
            return 100 if self.status == COMPLETED else 0
        done = sum(1 for m in milestones if m.completed)
        return round(done / len(milestones) * 100)

    @property
    def is_overdue(self):
        return self.status == ACTIVE and self.due_date is not None and self.due_date < timezone.localdate()

    @property
    def days_remaining(self):
        if self.due_date is None or self.status != ACTIVE:
            return None
        return (self.due_date - timezone.localdate()).days


class Milestone(models.Model):
    target = models.ForeignKey(Target, on_delete=models.CASCADE, related_name="milestones")
    title = models.CharField(max_length=MAX_TITLE_LENGTH)
    description = models.CharField(max_length=MAX_MILESTONE_DESCRIPTION_LENGTH, blank=True, default="")
    target_value = models.PositiveIntegerField(blank=True, null=True)
    current_value = models.PositiveIntegerField(blank=True, null=True)
    completed = models.BooleanField(default=False)
    completed_at = models.DateTimeField(blank=True, null=True)
    completed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["order", "id"]

    def __str__(self):
        return self.title
