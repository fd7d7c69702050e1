from django.conf import settings
from django.db import models

MAX_NAME_LENGTH = 200
MAX_RUBRIC_DESCRIPTION_LENGTH = 1000
MAX_CRITERION_DESCRIPTION_LENGTH = 500
MAX_COMMENTS_LENGTH = 2000
MAX_CRITERIA = 20
FULL_WEIGHT = 100


class Rubric(models.Model):
    school = models.ForeignKey("schools.School", on_delete=models.CASCADE, related_name="rubrics")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name="rubrics_created"
    )
    name = models.CharField(max_length=MAX_NAME_LENGTH)
    description = models.CharField(max_length=MAX_RUBRIC_DESCRIPTION_LENGTH, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.name

    @property
    def total_weight(self):
        return sum((c.weight for c in self.criteria.all()), 0)


class RubricCriterion(models.Model):
    rubric = models.ForeignKey(Rubric, on_delete=models.CASCADE, related_name="criteria")
    name = models.CharField(max_length=MAX_NAME_LENGTH)
    description = models.CharField(max_length=MAX_CRITERION_DESCRIPTION_LENGTH, blank=True, default="")
    weight = models.DecimalField(max_digits=5, decimal_places=2)
    max_score = models.DecimalField(max_digits=7, decimal_places=2)
    order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["order", "id"]

    def __str__(self):
        return f"{self.name} ({self.weight}%)"


class AssignmentRubric(models.Model):
    assignment = models.OneToOneField(
        "assignments.Assignment", on_delete=models.CASCADE, related_name="rubric_link"
    )
    rubric = models.ForeignKey(Rubric, on_delete=models.PROTECT, related_name="assignment_links")
    attached_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)


class Grade(models.Model):
    assignment = models.ForeignKey("assignments.Assignment", on_delete=models.CASCADE, related_name="grades")
    student = models.ForeignKey("students.Student", on_delete=models.CASCADE, related_name="grades")
    criterion = models.ForeignKey(RubricCriterion, on_delete=models.CASCADE, related_name="grades")
    score = models.DecimalField(max_digits=7, decimal_places=2)
    max_score = models.DecimalField(max_digits=7, decimal_places=2)
    comments = models.TextField(blank=True, default="")
    graded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="grades_given"
    )
    graded_at = models.DateTimeField(auto_now=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-graded_at", "-id"]
        constraints = [
            models.UniqueConstraint(fields=["assignment", "student", "criterion"], name="grade_once_per_criterion"),
        ]
        indexes = [models.Index(fields=["student", "graded_at"], name="grade_student_graded_idx")]

    def __str__(self):
        return f"{self.assignment_id}/{self.criterion_id}: {self.score}/{self.max_score}"
