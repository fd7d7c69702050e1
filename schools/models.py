from django.conf import settings
from django.db import models


class School(models.Model):
    name = models.CharField(max_length=200)
    timezone = models.CharField(max_length=64, default="UTC")
    settings = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name


class Teacher(models.Model):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="teacher")
    school = models.ForeignKey(School, on_delete=models.CASCADE, related_name="teachers")
    bio = models.TextField(blank=True, default="")
    subject = models.CharField(max_length=128, blank=True, default="")
    qualification = models.CharField(max_length=200, blank=True, default="")
    experience_years = models.PositiveIntegerField(blank=True, null=True)
    address = models.CharField(max_length=255, blank=True, default="")
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.user.email


class SchoolClass(models.Model):
    school = models.ForeignKey(School, on_delete=models.CASCADE, related_name="classes")
    name = models.CharField(max_length=128)
    room = models.CharField(max_length=64, blank=True, default="")
    schedule = models.JSONField(default=dict, blank=True)
    capacity = models.PositiveIntegerField(blank=True, null=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class ClassTeacher(models.Model):
    school_class = models.ForeignKey(SchoolClass, on_delete=models.CASCADE, related_name="teacher_links")
    teacher = models.ForeignKey(Teacher, on_delete=models.CASCADE, related_name="class_links")

    class Meta:
        unique_together = [("school_class", "teacher")]


class ClassEnrollment(models.Model):
    school_class = models.ForeignKey(SchoolClass, on_delete=models.CASCADE, related_name="enrollments")
    student = models.ForeignKey("students.Student", on_delete=models.CASCADE, related_name="enrollments")
    enrolled_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [("school_class", "student")]
