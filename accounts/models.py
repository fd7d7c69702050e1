from django.contrib.auth.models import AbstractUser
from django.contrib.auth.base_user import BaseUserManager
from django.db import models

OWNER = "owner"
ADMIN = "admin"
TEACHER = "teacher"
STUDENT = "student"
PARENT = "parent"

ROLE_CHOICES = [
    (OWNER, "Owner"),
    (ADMIN, "Admin"),
    (TEACHER, "Teacher"),
    (STUDENT, "Student"),
    (PARENT, "Parent"),
]

ADMIN_ROLES = (OWNER, ADMIN)
STAFF_ROLES = (OWNER, ADMIN, TEACHER)


class UserManager(BaseUserManager):
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError("The Email must be set")
        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email=None, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email=None, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")
        return self._create_user(email, password, **extra_fields)


class User(AbstractUser):
    username = None
    email = models.EmailField(unique=True)
    EMAIL_FIELD = "email"
    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []
    objects = UserManager()


class Profile(models.Model):
    """Maps a login to its school and role."""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="profile")
    school = models.ForeignKey(
        "schools.School",
        on_delete=models.CASCADE,
        related_name="profiles",
        null=True,
        blank=True,
    )
    role = models.CharField(max_length=16, choices=ROLE_CHOICES)
    display_name = models.CharField(max_length=128)
    phone = models.CharField(max_length=32, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=["school", "role"], name="profile_school_role_idx")]

    def __str__(self):
        return f"{self.display_name} ({self.role})"

    @property
    def is_admin(self):
        return self.role in ADMIN_ROLES

    @property
    def is_staff_member(self):
        return self.role in STAFF_ROLES
