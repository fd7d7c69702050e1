import logging

from accounts.models import PARENT, STAFF_ROLES, STUDENT
from .models import ParentStudentLink, Student

logger = logging.getLogger(__name__)


def parent_can_view_student(user, student_id) -> bool:
    if not getattr(user, "is_authenticated", False):
        return False
    has_link = ParentStudentLink.objects.filter(parent__user=user, student_id=student_id).exists()
    if not has_link:
        logger.warning("Permission denied: user %s has no link to student %s", user.pk, student_id)
    return has_link


def can_view_student(profile, student) -> bool:
    """Staff of the student's school, the student, or a linked parent."""
    if profile is None or student.school_id != profile.school_id:
        return False
    if profile.role in STAFF_ROLES:
        return True
    if profile.role == STUDENT:
        return student.user_id == profile.user_id
    if profile.role == PARENT:
        return parent_can_view_student(profile.user, student.pk)
    return False


def visible_students(profile):
    """Students whose records `profile` may read."""
    qs = Student.objects.filter(school_id=profile.school_id)
    if profile.role in STAFF_ROLES:
        return qs
    if profile.role == STUDENT:
        return qs.filter(user_id=profile.user_id)
    if profile.role == PARENT:
        return qs.filter(parent_links__parent__user_id=profile.user_id)
    return qs.none()
