from django.conf import settings
from django.db import models

UNKNOWN = "unknown"
LEARNING = "learning"
PROFICIENT = "proficient"
MASTERED = "mastered"

LEVEL_CHOICES = [
    (UNKNOWN, "Unknown"),
    (LEARNING, "Learning"),
    (PROFICIENT, "Proficient"),
    (MASTERED, "Mastered"),
]

# Ascending; a change counts as an improvement only when it moves up this list.
LEVEL_ORDER = {level: rank for rank, (level, _) in enumerate(LEVEL_CHOICES)}

# Weighted grade average floors used when deriving a level from grades.
SCORE_FLOORS = (
    (90, MASTERED),
    (75, PROFICIENT),
    (60, LEARNING),
)


class AyahMastery(models.Model):
    student = models.ForeignKey("students.Student", on_delete=models.CASCADE, related_name="mastery")
    surah = models.PositiveSmallIntegerField()
    ayah = models.PositiveSmallIntegerField()
    level = models.CharField(max_length=16, choices=LEVEL_CHOICES, default=UNKNOWN)
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    last_updated = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["surah", "ayah"]
        constraints = [
            models.UniqueConstraint(fields=["student", "surah", "ayah"], name="mastery_once_per_ayah"),
        ]
        indexes = [models.Index(fields=["student", "surah"], name="mastery_student_surah_idx")]

    def __str__(self):
        return f"{self.surah}:{self.ayah} {self.level}"

    @property
    def reference(self):
        return f"{self.surah}:{self.ayah}"
