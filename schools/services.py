import logging

from django.db import transaction

from accounts.models import Profile
from accounts.provisioning import remove_account
from .models import ClassEnrollment, ClassTeacher, SchoolClass, Teacher

logger = logging.getLogger(__name__)


def assign_teacher_classes(teacher, class_ids, replace=False):
    """Links `teacher` to the given classes of its own school; other ids are ignored."""
    classes = SchoolClass.objects.filter(school_id=teacher.school_id, id__in=class_ids or [])
    if replace:
        ClassTeacher.objects.filter(teacher=teacher).exclude(school_class__in=classes).delete()
    for school_class in classes:
        ClassTeacher.objects.get_or_create(school_class=school_class, teacher=teacher)
    return [c.id for c in classes]


def enroll_students(school_class, student_ids, replace=False):
    from students.models import Student

    students = Student.objects.filter(school_id=school_class.school_id, id__in=student_ids or [])
    if replace:
        ClassEnrollment.objects.filter(school_class=school_class).exclude(student__in=students).delete()
    for student in students:
        ClassEnrollment.objects.get_or_create(school_class=school_class, student=student)
    return [s.id for s in students]


def delete_role_accounts(model, school, ids):
    """
    Deletes each row of `model` (Teacher/Student/Parent) in `school` with its
    login. Returns (deleted_ids, errors); a failure never stops the loop.
    """
    deleted, errors = [], []
    for pk in ids:
        record = model.objects.filter(pk=pk, school=school).select_related("user").first()
        if record is None:
            errors.append({"id": pk, "error": "Not found"})
            continue
        try:
            with transaction.atomic():
                remove_account(record.user)
        except Exception as e:
            logger.exception("Failed to delete %s %s", model.__name__, pk)
            errors.append({"id": pk, "error": str(e)})
            continue
        deleted.append(pk)
    return deleted, errors


@transaction.atomic
def cleanup_orphaned_users(school, keep_student_ids=None, keep_teacher_ids=None):
    """
    Removes students and teachers of `school` not named in the keep lists,
    plus logins of the school left without a role row.
    """
    from students.models import Student

    students = Student.objects.filter(school=school).exclude(id__in=keep_student_ids or [])
    teachers = Teacher.objects.filter(school=school).exclude(id__in=keep_teacher_ids or [])
    counts = {"students": 0, "teachers": 0, "profiles": 0}
    for student in students.select_related("user"):
        remove_account(student.user)
        counts["students"] += 1
    for teacher in teachers.select_related("user"):
        remove_account(teacher.user)
        counts["teachers"] += 1
    dangling = Profile.objects.filter(
        school=school,
        role__in=["teacher", "student", "parent"],
        user__teacher__isnull=True,
        user__student__isnull=True,
        user__parent__isnull=True,
    ).select_related("user")
    for profile in dangling:
        remove_account(profile.user)
        counts["profiles"] += 1
    logger.info("Orphan cleanup for school %s: %s", school.pk, counts)
    return counts
