"""
Assignment state machine.

    assigned -> viewed -> submitted -> reviewed -> completed -> reopened
                              ^                                   |
                              +-----------------------------------+

Every status change writes an AssignmentEvent and notifies the other party.
Reaching `completed` turns the linked highlights gold.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from accounts.models import ADMIN_ROLES, PARENT, STUDENT, TEACHER
from highlights.models import GOLD
from notifications.models import EMAIL, IN_APP
from notifications.services import notify
from schools.serializers import display_name
from .models import (
    ASSIGNED,
    COMPLETED,
    REOPENED,
    REVIEWED,
    SUBMITTED,
    VIEWED,
    Assignment,
    AssignmentEvent,
    AssignmentHighlight,
    AssignmentSubmission,
)

logger = logging.getLogger(__name__)

VALID_TRANSITIONS = {
    ASSIGNED: (VIEWED,),
    VIEWED: (SUBMITTED,),
    SUBMITTED: (REVIEWED,),
    REVIEWED: (COMPLETED,),
    COMPLETED: (REOPENED,),
    REOPENED: (SUBMITTED,),
}

TEACHER_TRANSITIONS = (REVIEWED, COMPLETED, REOPENED)
STUDENT_TRANSITIONS = (VIEWED, SUBMITTED)

# target status -> (notification type, recipient side)
TRANSITION_NOTIFICATIONS = {
    VIEWED: ("assignment_viewed", "teacher"),
    SUBMITTED: ("assignment_submitted", "teacher"),
    REVIEWED: ("assignment_reviewed", "student"),
    COMPLETED: ("assignment_completed", "student"),
    REOPENED: ("assignment_reopened", "student"),
}

MAX_DUE_DAYS = 365


class TransitionError(Exception):
    def __init__(self, message, code="INVALID_TRANSITION", status=400):
        super().__init__(message)
        self.code = code
        self.status = status


def is_creator(profile, assignment):
    return profile.role == TEACHER and assignment.created_by_id == profile.user_id


def can_view(profile, assignment):
    if profile.school_id != assignment.school_id:
        return False
    if profile.role in ADMIN_ROLES or profile.role == TEACHER:
        return True
    if profile.role == STUDENT:
        return assignment.student.user_id == profile.user_id
    if profile.role == PARENT:
        return assignment.student.parent_links.filter(parent__user_id=profile.user_id).exists()
    return False


def can_manage(profile, assignment):
    """Update, delete, complete and reopen: the creating teacher or an admin."""
    if profile.school_id != assignment.school_id:
        return False
    return profile.role in ADMIN_ROLES or is_creator(profile, assignment)


def can_transition(profile, assignment, to_status):
    if profile.school_id != assignment.school_id:
        return False
    if profile.role in ADMIN_ROLES:
        return True
    if is_creator(profile, assignment):
        return to_status in TEACHER_TRANSITIONS
    if profile.role == STUDENT and assignment.student.user_id == profile.user_id:
        return to_status in STUDENT_TRANSITIONS
    return False


def validate_due_at(due_at):
    now = timezone.now()
    if due_at <= now:
        raise TransitionError("Due date must be in the future", "VALIDATION_ERROR")
    if due_at > now + timedelta(days=MAX_DUE_DAYS):
        raise TransitionError("Due date cannot be more than 1 year away", "VALIDATION_ERROR")


def record_event(assignment, actor, event_type, from_status="", to_status="", meta=None):
    return AssignmentEvent.objects.create(
        assignment=assignment,
        actor=actor,
        event_type=event_type,
        from_status=from_status or "",
        to_status=to_status or "",
        meta=meta or {},
    )


def _notify(assignment, notification_type, side, channels=(IN_APP,), extra=None):
    if side == "teacher":
        recipient = assignment.created_by
    else:
        recipient = assignment.student.user
    if recipient is None:
        return
    student_name = display_name(assignment.student.user)
    titles = {
        "assignment_created": ("New assignment", f"You have a new assignment: {assignment.title}"),
        "assignment_viewed": ("Assignment viewed", f"{student_name} viewed \"{assignment.title}\""),
        "assignment_submitted": ("Assignment submitted", f"{student_name} submitted \"{assignment.title}\""),
        "assignment_reviewed": ("Assignment reviewed", f"\"{assignment.title}\" has been reviewed"),
        "assignment_completed": ("Assignment completed", f"\"{assignment.title}\" is complete"),
        "assignment_reopened": ("Assignment reopened", f"\"{assignment.title}\" was reopened"),
        "assignment_due_soon": ("Assignment due soon", f"\"{assignment.title}\" is due soon"),
        "assignment_overdue": ("Assignment overdue", f"\"{assignment.title}\" is overdue"),
    }
    title, body = titles[notification_type]
    payload = {"assignment_id": assignment.id, "status": assignment.status}
    payload.update(extra or {})
    notify(
        recipient,
        notification_type,
        title=title,
        body=body,
        payload=payload,
        channels=channels,
        school=assignment.school,
    )


def _complete_highlights(assignment, actor):
    from highlights.models import Highlight

    now = timezone.now()
    return (
        Highlight.objects.filter(assignment_links__assignment=assignment)
        .exclude(color=GOLD)
        .update(previous_color=F("color"), color=GOLD, completed_at=now, completed_by=actor, updated_at=now)
    )


@transaction.atomic
def create_assignment(school, student, actor, title, due_at, description="", highlights=(), auto_created=False, meta=None):
    validate_due_at(due_at)
    assignment = Assignment.objects.create(
        school=school,
        student=student,
        created_by=actor,
        title=title[:200],
        description=description or "",
        due_at=due_at,
    )
    for highlight in highlights:
        AssignmentHighlight.objects.get_or_create(assignment=assignment, highlight=highlight)
    event_meta = {"auto_created": auto_created}
    event_meta.update(meta or {})
    record_event(assignment, actor, "created", "", ASSIGNED, event_meta)
    _notify(assignment, "assignment_created", "student", channels=(IN_APP, EMAIL))
    logger.info("Assignment %s created for student %s", assignment.pk, student.pk)
    return assignment


@transaction.atomic
def transition(assignment, profile, to_status, reason=None):
    """Moves `assignment` to `to_status`; returns the event written."""
    from_status = assignment.status
    if to_status not in VALID_TRANSITIONS.get(from_status, ()):
        raise TransitionError(f"Cannot transition from {from_status} to {to_status}")
    if not can_transition(profile, assignment, to_status):
        raise TransitionError(
            f"You are not allowed to move this assignment to {to_status}", "FORBIDDEN", 403
        )
    if to_status == REOPENED:
        return reopen(assignment, profile, reason)
    if to_status == COMPLETED:
        _, event = complete(assignment, profile, reason=reason)
        return event

    assignment.status = to_status
    if to_status == SUBMITTED and assignment.due_at < timezone.now():
        assignment.late = True
    assignment.save(update_fields=["status", "late", "updated_at"])
    event = record_event(
        assignment,
        profile.user,
        f"transition_{from_status}_to_{to_status}",
        from_status,
        to_status,
        {"reason": reason, "actor_role": profile.role},
    )
    ntype, side = TRANSITION_NOTIFICATIONS[to_status]
    _notify(assignment, ntype, side)
    return event


@transaction.atomic
def submit(assignment, profile, text="", attachments=None):
    attachments = attachments or []
    if not can_transition(profile, assignment, SUBMITTED):
        raise TransitionError("Only the assigned student can submit", "FORBIDDEN", 403)
    if assignment.status not in (VIEWED, REOPENED):
        raise TransitionError(f"Cannot submit an assignment that is {assignment.status}")
    if not text and not attachments:
        raise TransitionError("A submission needs text or attachments", "VALIDATION_ERROR")
    submission = AssignmentSubmission.objects.create(
        assignment=assignment,
        student=assignment.student,
        text=text or "",
        attachments=attachments,
    )
    from_status = assignment.status
    assignment.status = SUBMITTED
    if assignment.due_at < timezone.now():
        assignment.late = True
    assignment.save(update_fields=["status", "late", "updated_at"])
    record_event(
        assignment,
        profile.user,
        f"transition_{from_status}_to_{SUBMITTED}",
        from_status,
        SUBMITTED,
        {"submission_id": submission.id, "actor_role": profile.role, "late": assignment.late},
    )
    _notify(assignment, "assignment_submitted", "teacher", extra={"submission_id": submission.id})
    return submission


@transaction.atomic
def reopen(assignment, profile, reason):
    max_reopens = settings.ASSIGNMENT_MAX_REOPENS
    if not can_manage(profile, assignment):
        raise TransitionError("Only the assigning teacher or an admin can reopen", "FORBIDDEN", 403)
    if not reason or not str(reason).strip():
        raise TransitionError("A reason is required to reopen an assignment", "VALIDATION_ERROR")
    if assignment.status != COMPLETED:
        raise TransitionError("Only completed assignments can be reopened")
    if assignment.reopen_count >= max_reopens:
        raise TransitionError(
            f"Assignment has been reopened the maximum of {max_reopens} times", "LIMIT_EXCEEDED"
        )
    assignment.status = REOPENED
    assignment.reopen_count += 1
    assignment.completed_at = None
    assignment.save(update_fields=["status", "reopen_count", "completed_at", "updated_at"])
    event = record_event(
        assignment,
        profile.user,
        f"transition_{COMPLETED}_to_{REOPENED}",
        COMPLETED,
        REOPENED,
        {
            "reason": reason,
            "actor_role": profile.role,
            "reopen_count": assignment.reopen_count,
            "remaining_reopens": max_reopens - assignment.reopen_count,
        },
    )
    _notify(assignment, "assignment_reopened", "student", channels=(IN_APP, EMAIL), extra={"reason": reason})
    return event


@transaction.atomic
def complete(assignment, profile, reason=None):
    """
    Completes the assignment and turns its linked highlights gold.
    Returns (highlights_completed, event).
    """
    if not can_manage(profile, assignment):
        raise TransitionError("Only the assigning teacher or an admin can complete", "FORBIDDEN", 403)
    if assignment.status == COMPLETED:
        raise TransitionError("Assignment is already completed", "ALREADY_COMPLETED")
    from_status = assignment.status
    assignment.status = COMPLETED
    assignment.completed_at = timezone.now()
    assignment.save(update_fields=["status", "completed_at", "updated_at"])
    count = _complete_highlights(assignment, profile.user)
    event = record_event(
        assignment,
        profile.user,
        "completed",
        from_status,
        COMPLETED,
        {"highlights_completed": count, "reason": reason, "actor_role": profile.role},
    )
    _notify(assignment, "assignment_completed", "student")
    logger.info("Assignment %s completed; %s highlights turned gold", assignment.pk, count)
    return count, event


def complete_from_highlight(highlight, actor):
    """Completes the open assignments linked to a highlight that just turned gold."""
    completed = []
    open_assignments = (
        Assignment.objects.filter(highlight_links__highlight=highlight)
        .exclude(status=COMPLETED)
        .select_related("student__user", "school", "created_by")
    )
    for assignment in open_assignments:
        from_status = assignment.status
        assignment.status = COMPLETED
        assignment.completed_at = timezone.now()
        assignment.save(update_fields=["status", "completed_at", "updated_at"])
        record_event(
            assignment,
            actor,
            "completed",
            from_status,
            COMPLETED,
            {"highlight_id": highlight.id, "via": "highlight"},
        )
        _notify(assignment, "assignment_completed", "student")
        completed.append(assignment.id)
    return completed


def notify_deadline(assignment, notification_type):
    _notify(assignment, notification_type, "student", channels=(IN_APP, EMAIL))
