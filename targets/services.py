"""
Learning targets and their milestones.

A target is aimed at one student, one class or the whole school. Its
progress is the share of completed milestones; completing the last
milestone completes the target.
"""
import logging

from django.db import transaction
from django.db.models import Max, Q
from django.utils import timezone

from accounts.models import ADMIN_ROLES, PARENT, STAFF_ROLES, STUDENT, TEACHER
from notifications.models import IN_APP
from notifications.services import notify
from students.models import Student
from .models import ACTIVE, CANCELLED, CLASS, COMPLETED, INDIVIDUAL, MAX_MILESTONES, SCHOOL, Milestone, Target

logger = logging.getLogger(__name__)


class TargetError(Exception):
    def __init__(self, message, code="VALIDATION_ERROR", status=400):
        super().__init__(message)
        self.code = code
        self.status = status


def scoped_targets(profile):
    qs = Target.objects.filter(school_id=profile.school_id)
    if profile.role in ADMIN_ROLES:
        return qs
    if profile.role == TEACHER:
        return qs.filter(
            Q(created_by_id=profile.user_id)
            | Q(type=SCHOOL)
            | Q(type=CLASS, school_class__teacher_links__teacher__user_id=profile.user_id)
        ).distinct()
    if profile.role == STUDENT:
        return qs.filter(
            Q(type=SCHOOL)
            | Q(type=INDIVIDUAL, student__user_id=profile.user_id)
            | Q(type=CLASS, school_class__enrollments__student__user_id=profile.user_id)
        ).distinct()
    if profile.role == PARENT:
        return qs.filter(
            Q(type=SCHOOL)
            | Q(type=INDIVIDUAL, student__parent_links__parent__user_id=profile.user_id)
            | Q(type=CLASS, school_class__enrollments__student__parent_links__parent__user_id=profile.user_id)
        ).distinct()
    return qs.none()


def can_manage(profile, target):
    """Update and delete: admins, or the staff member who set the target."""
    if profile.school_id != target.school_id or profile.role not in STAFF_ROLES:
        return False
    return profile.role in ADMIN_ROLES or target.created_by_id == profile.user_id


def recipients(target):
    """Students a target is aimed at."""
    if target.type == INDIVIDUAL:
        return Student.objects.filter(pk=target.student_id)
    if target.type == CLASS:
        return Student.objects.filter(enrollments__school_class_id=target.school_class_id, active=True)
    return Student.objects.filter(school_id=target.school_id, active=True)


def _notify_students(target, notification_type, title, body):
    for student in recipients(target).select_related("user__profile"):
        notify(
            student.user,
            notification_type,
            title=title,
            body=body,
            payload={"target_id": target.id, "type": target.type},
            channels=(IN_APP,),
            school=target.school,
        )


@transaction.atomic
def create_target(school, actor, data, student=None, school_class=None):
    target = Target.objects.create(
        school=school,
        type=data["type"],
        category=data.get("category") or "other",
        title=data["title"],
        description=data.get("description") or "",
        student=student,
        school_class=school_class,
        created_by=actor,
        start_date=data.get("start_date"),
        due_date=data.get("due_date"),
    )
    for order, milestone in enumerate(data.get("milestones") or [], start=1):
        Milestone.objects.create(
            target=target,
            title=milestone["title"],
            description=milestone.get("description") or "",
            target_value=milestone.get("target_value"),
            order=order,
        )
    _notify_students(target, "target_assigned", "New target", f"A new target was set: {target.title}")
    logger.info("Target %s (%s) created by user %s", target.pk, target.type, actor.pk)
    return target


def _mark_completed(target, actor):
    target.status = COMPLETED
    target.completed_at = timezone.now()
    target.save(update_fields=["status", "completed_at", "updated_at"])
    _notify_students(target, "target_completed", "Target completed", f"\"{target.title}\" is complete")
    if target.created_by_id and target.created_by_id != actor.pk:
        notify(
            target.created_by,
            "target_completed",
            title="Target completed",
            body=f"\"{target.title}\" is complete",
            payload={"target_id": target.id, "type": target.type},
            school=target.school,
        )
    logger.info("Target %s completed by user %s", target.pk, actor.pk)


@transaction.atomic
def update_target(target, actor, changes):
    new_status = changes.pop("status", None)
    start = changes.get("start_date", target.start_date)
    due = changes.get("due_date", target.due_date)
    if start and due and start >= due:
        raise TargetError("start_date must be before due_date")
    for field, value in changes.items():
        setattr(target, field, value)
    target.save()
    if new_status:
        set_status(target, actor, new_status)
    return target


def set_status(target, actor, new_status):
    if target.status == COMPLETED and new_status == COMPLETED:
        raise TargetError("Target is already completed", "ALREADY_COMPLETED")
    if target.status == CANCELLED and new_status == COMPLETED:
        raise TargetError("Cannot complete a cancelled target")
    if new_status == COMPLETED:
        _mark_completed(target, actor)
        return target
    target.status = new_status
    target.completed_at = None
    target.save(update_fields=["status", "completed_at", "updated_at"])
    return target


@transaction.atomic
def add_milestone(target, data):
    if target.status != ACTIVE:
        raise TargetError("Milestones can only be added to active targets")
    if target.milestones.count() >= MAX_MILESTONES:
        raise TargetError(f"A target can have at most {MAX_MILESTONES} milestones")
    last = target.milestones.aggregate(last=Max("order"))["last"] or 0
    return Milestone.objects.create(
        target=target,
        title=data["title"],
        description=data.get("description") or "",
        target_value=data.get("target_value"),
        order=last + 1,
    )


@transaction.atomic
def update_milestone(milestone, actor, changes):
    """Applies `changes`; completing the last open milestone completes the target."""
    target = milestone.target
    completed = changes.pop("completed", None)
    for field, value in changes.items():
        setattr(milestone, field, value)
    if completed is not None and completed != milestone.completed:
        if target.status == CANCELLED:
            raise TargetError("Cannot update milestones of a cancelled target")
        milestone.completed = completed
        milestone.completed_at = timezone.now() if completed else None
        milestone.completed_by = actor if completed else None
    milestone.save()
    if completed and target.status == ACTIVE and not target.milestones.filter(completed=False).exists():
        _mark_completed(target, actor)
    return milestone


def target_stats(qs):
    """Counts over a target queryset, milestones included."""
    milestones = Milestone.objects.filter(target__in=qs)
    return {
        "total_targets": qs.count(),
        "active_targets": qs.filter(status=ACTIVE).count(),
        "completed_targets": qs.filter(status=COMPLETED).count(),
        "total_milestones": milestones.count(),
        "completed_milestones": milestones.filter(completed=True).count(),
    }
