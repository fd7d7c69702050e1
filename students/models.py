from datetime import date

from django.conf import settings
from django.db import models

GENDER_CHOICES = [
    ("male", "Male"),
    ("female", "Female"),
]

MUSHAF_PAGES = 604


class Student(models.Model):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="student")
    school = models.ForeignKey("schools.School", on_delete=models.CASCADE, related_name="students")
    dob = models.DateField(blank=True, null=True)
    gender = models.CharField(max_length=16, choices=GENDER_CHOICES, blank=True, default="")
    grade = models.CharField(max_length=32, blank=True, default="")
    active = models.BooleanField(default=True)
    last_page = models.PositiveIntegerField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.user.email

    @property
    def age(self):
        if not self.dob:
            return None
        today = date.today()
        years = today.year - self.dob.year
        if (today.month, today.day) < (self.dob.month, self.dob.day):
            years -= 1
        return years


class Parent(models.Model):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="parent")
    school = models.ForeignKey("schools.School", on_delete=models.CASCADE, related_name="parents")
    address = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.user.email


class ParentStudentLink(models.Model):
    parent = models.ForeignKey(Parent, on_delete=models.CASCADE, related_name="links")
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name="parent_links")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [("parent", "student")]
