import logging
from datetime import timedelta

from django.db import transaction
from django.utils import timezone

from accounts.models import STAFF_ROLES, STUDENT, TEACHER
from notifications.models import EMAIL, IN_APP
from notifications.services import notify
from quran.services import AyahRangeError, validate_ayah_range
from schools.serializers import display_name
from students.permissions import can_view_student
from .models import (
    COMPLETED,
    GOLD,
    GREEN,
    HOMEWORK,
    NOTE_AUDIO,
    RECAP,
    TYPE_COLORS,
    Highlight,
    Note,
)

logger = logging.getLogger(__name__)

ASSIGNMENT_TITLES = {
    "recap": "Recap",
    "tajweed": "Tajweed Practice",
    "haraka": "Haraka Correction",
    "letter": "Letter Correction",
}

COLOR_TYPES = {color: kind for kind, color in TYPE_COLORS.items()}


class HighlightError(Exception):
    def __init__(self, message, code="VALIDATION_ERROR", status=400):
        super().__init__(message)
        self.code = code
        self.status = status


def assignment_title(highlight):
    title = ASSIGNMENT_TITLES.get(highlight.type, "Assignment")
    return f"{title} - Surah {highlight.surah}, {highlight.ayah_label}"


def assignment_due_at(highlight):
    days = 7 if highlight.type == RECAP else 3
    return timezone.now() + timedelta(days=days)


def _check_range(data):
    try:
        validate_ayah_range(data["surah"], data["ayah_start"], data["ayah_end"])
    except AyahRangeError as e:
        raise HighlightError(str(e))


def _auto_assignment(highlight, actor):
    from assignments.lifecycle import create_assignment

    try:
        with transaction.atomic():
            return create_assignment(
                highlight.school,
                highlight.student,
                actor,
                assignment_title(highlight),
                assignment_due_at(highlight),
                description=highlight.note,
                highlights=[highlight],
                auto_created=True,
                meta={"highlight_id": highlight.id},
            )
    except Exception:
        # the highlight stands on its own; the assignment can be created by hand
        logger.exception("Auto-assignment for highlight %s failed", highlight.pk)
        return None


def create_highlight(profile, student, data):
    """
    Creates a highlight and, for mistake types, the follow-up assignment.
    Returns (highlight, assignment_or_None).
    """
    _check_range(data)
    color = (data.get("color") or "").strip().lower()
    kind = data.get("type") or COLOR_TYPES.get(color, "")
    color = color or TYPE_COLORS.get(kind, "")
    if not color:
        raise HighlightError("Missing required fields: color")
    if color == GOLD and kind != COMPLETED:
        raise HighlightError("Only completed highlights can be gold")
    if kind in (HOMEWORK, COMPLETED) and color != TYPE_COLORS[kind]:
        raise HighlightError(f"{kind.capitalize()} highlights must be {TYPE_COLORS[kind]}")
    now = timezone.now()
    completed = kind == COMPLETED
    highlight = Highlight.objects.create(
        school_id=profile.school_id,
        student=student,
        teacher=profile.user.teacher if profile.role == TEACHER else None,
        created_by=profile.user,
        type=kind,
        color=color,
        surah=data["surah"],
        ayah_start=data["ayah_start"],
        ayah_end=data["ayah_end"],
        word_start=data.get("word_start"),
        word_end=data.get("word_end"),
        page_number=data.get("page_number"),
        note=data.get("note", ""),
        completed_at=now if completed else None,
        completed_by=profile.user if completed else None,
    )
    assignment = None
    if kind not in (HOMEWORK, COMPLETED):
        assignment = _auto_assignment(highlight, profile.user)
    return highlight, assignment


@transaction.atomic
def complete_highlight(highlight, profile):
    """Turns the highlight gold and completes the assignments built on it."""
    from assignments.lifecycle import complete_from_highlight

    if highlight.color == GOLD:
        raise HighlightError("Highlight is already completed", "ALREADY_COMPLETED")
    highlight.previous_color = highlight.color
    highlight.color = GOLD
    highlight.completed_at = timezone.now()
    highlight.completed_by = profile.user
    highlight.save(update_fields=["previous_color", "color", "completed_at", "completed_by", "updated_at"])
    completed = complete_from_highlight(highlight, profile.user)
    logger.info("Highlight %s completed; assignments completed: %s", highlight.pk, completed)
    return completed


def can_edit_highlight(profile, highlight):
    if profile.school_id != highlight.school_id or profile.role not in STAFF_ROLES:
        return False
    return profile.role != TEACHER or highlight.created_by_id == profile.user_id


def add_note(highlight, profile, data):
    if not can_view_student(profile, highlight.student):
        raise HighlightError("Not authorized to comment on this highlight", "FORBIDDEN", 403)
    kind = data.get("type")
    text = (data.get("text") or "").strip()
    audio_url = (data.get("audio_url") or "").strip()
    if kind == NOTE_AUDIO and not audio_url:
        raise HighlightError("audio_url is required for audio notes")
    if kind != NOTE_AUDIO and not text:
        raise HighlightError("text is required for text notes")
    parent_note = None
    if data.get("parent_note_id"):
        parent_note = Note.objects.filter(pk=data["parent_note_id"], highlight=highlight).first()
        if parent_note is None:
            raise HighlightError("Parent note does not belong to this highlight")
    return Note.objects.create(
        highlight=highlight,
        author=profile.user,
        parent_note=parent_note,
        type=kind,
        text=text,
        audio_url=audio_url,
        visible_to_parent=data.get("visible_to_parent", True),
    )


def mark_seen(note, user):
    """Returns (changed, message)."""
    if note.author_id == user.pk:
        return False, "Cannot mark own message as seen"
    if note.seen_at is not None:
        return False, "Already marked as seen"
    note.seen_at = timezone.now()
    note.seen_by = user
    note.save(update_fields=["seen_at", "seen_by"])
    return True, "Marked as seen"


# Homework


def create_homework(profile, student, data):
    _check_range(data)
    highlight = Highlight.objects.create(
        school_id=profile.school_id,
        student=student,
        teacher=profile.user.teacher,
        created_by=profile.user,
        type=HOMEWORK,
        color=GREEN,
        surah=data["surah"],
        ayah_start=data["ayah_start"],
        ayah_end=data["ayah_end"],
        word_start=data.get("word_start"),
        word_end=data.get("word_end"),
        page_number=data.get("page_number"),
        note=data.get("note", ""),
    )
    notify(
        student.user,
        "homework_assigned",
        title="New homework",
        body=f"{display_name(profile.user)} assigned Surah {highlight.surah}, {highlight.ayah_label}",
        payload={"highlight_id": highlight.id},
        channels=(IN_APP, EMAIL),
        school=profile.school,
    )
    return highlight


def can_complete_homework(profile, highlight):
    if profile.school_id != highlight.school_id:
        return False
    if profile.role in STAFF_ROLES:
        return True
    return profile.role == STUDENT and highlight.student.user_id == profile.user_id


@transaction.atomic
def complete_homework(highlight, profile, completion_note=""):
    if highlight.color not in (GREEN, GOLD):
        raise HighlightError("Highlight is not homework", "NOT_HOMEWORK")
    if highlight.color == GOLD:
        raise HighlightError("Homework is already completed", "ALREADY_COMPLETED")
    highlight.previous_color = GREEN
    highlight.color = GOLD
    highlight.completed_at = timezone.now()
    highlight.completed_by = profile.user
    if completion_note:
        highlight.note = f"{highlight.note}\n\nCompletion note: {completion_note}"
    highlight.save(update_fields=["previous_color", "color", "completed_at", "completed_by", "note", "updated_at"])

    payload = {"highlight_id": highlight.id}
    student_user = highlight.student.user
    body = f"Homework for Surah {highlight.surah}, {highlight.ayah_label} was completed"
    if highlight.created_by_id and highlight.created_by_id != profile.user_id:
        notify(highlight.created_by, "homework_completed", title="Homework completed", body=body, payload=payload)
    if student_user.pk != profile.user_id:
        notify(student_user, "homework_completed", title="Homework completed", body=body, payload=payload)
    return highlight
