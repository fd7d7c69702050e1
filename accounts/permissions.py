from rest_framework.permissions import BasePermission

from .models import ADMIN_ROLES, STAFF_ROLES, Profile, TEACHER, STUDENT, PARENT


def get_profile(user):
    if not getattr(user, "is_authenticated", False):
        return None
    try:
        return user.profile
    except Profile.DoesNotExist:
        return None


class HasSchoolProfile(BasePermission):
    """Authenticated user with a school profile, optionally limited to `roles`."""

    message = "Profile not found"
    roles = None

    def has_permission(self, request, view):
        profile = get_profile(request.user)
        if profile is None or profile.school_id is None:
            return False
        if self.roles is not None and profile.role not in self.roles:
            self.message = "Insufficient permissions"
            return False
        return True


class IsSchoolAdmin(HasSchoolProfile):
    roles = ADMIN_ROLES


class IsSchoolStaff(HasSchoolProfile):
    roles = STAFF_ROLES


class IsTeacher(HasSchoolProfile):
    roles = (TEACHER,)


class IsStudent(HasSchoolProfile):
    roles = (STUDENT,)


class IsParent(HasSchoolProfile):
    roles = (PARENT,)
