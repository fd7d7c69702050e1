from django.conf import settings
from django.db import models

PRESENT = "present"
ABSENT = "absent"
LATE = "late"
EXCUSED = "excused"

STATUS_CHOICES = [
    (PRESENT, "Present"),
    (ABSENT, "Absent"),
    (LATE, "Late"),
    (EXCUSED, "Excused"),
]


class AttendanceRecord(models.Model):
    school = models.ForeignKey("schools.School", on_delete=models.CASCADE, related_name="attendance_records")
    school_class = models.ForeignKey(
        "schools.SchoolClass", on_delete=models.CASCADE, related_name="attendance_records"
    )
    student = models.ForeignKey("students.Student", on_delete=models.CASCADE, related_name="attendance_records")
    session_date = models.DateField()
    status = models.CharField(max_length=16, choices=STATUS_CHOICES)
    notes = models.CharField(max_length=255, blank=True)
    marked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-session_date", "student_id"]
        constraints = [
            models.UniqueConstraint(
                fields=["school_class", "student", "session_date"], name="attendance_once_per_session"
            ),
        ]

    def __str__(self):
        return f"{self.student_id} {self.session_date} {self.status}"
