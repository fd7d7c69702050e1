import logging

from django.db.models import Prefetch
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from accounts.api import error, page_params, paginate, positive_int, query_bool
from accounts.models import PARENT, STAFF_ROLES, TEACHER
from accounts.permissions import IsSchoolStaff
from students.models import Student
from students.decorators import require_student_access
from students.permissions import can_view_student, visible_students
from . import services
from .models import GOLD, GREEN, HOMEWORK, Highlight, Note
from .serializers import (
    HighlightCreateSerializer,
    HighlightSerializer,
    HighlightWithNotesSerializer,
    HomeworkCreateSerializer,
    NoteCreateSerializer,
    NoteSerializer,
    NoteThreadSerializer,
)
from .services import HighlightError

logger = logging.getLogger(__name__)

HIGHLIGHT_REQUIRED = ("student_id", "surah", "ayah_start", "ayah_end")
HOMEWORK_SORT_FIELDS = ("created_at", "surah", "page_number", "completed_at")


def highlight_error(e):
    return error(str(e), e.status, e.code)


def _missing(data, fields):
    return [f for f in fields if data.get(f) in (None, "")]


def _visible_highlights(profile):
    return Highlight.objects.filter(
        school_id=profile.school_id, student__in=visible_students(profile)
    )


def _get_highlight(request, highlight_id):
    """Highlight in the caller's school that the caller may see, or None."""
    highlight = (
        Highlight.objects.filter(pk=highlight_id, school_id=request.user.profile.school_id)
        .select_related("student__user", "created_by")
        .first()
    )
    if highlight is None or not can_view_student(request.user.profile, highlight.student):
        return None
    return highlight


def _resolve_student(profile, student_id):
    """Returns (student, error_response)."""
    student = Student.objects.filter(pk=positive_int(student_id, 0)).select_related("user").first()
    if student is None:
        return None, error("Student not found", status.HTTP_404_NOT_FOUND)
    if student.school_id != profile.school_id:
        return None, error("Student belongs to another school", status.HTTP_403_FORBIDDEN)
    return student, None


@api_view(["GET", "POST"])
def highlights(request):
    profile = request.user.profile
    if request.method == "POST":
        if profile.role not in STAFF_ROLES:
            return error("Only teachers and admins can create highlights", status.HTTP_403_FORBIDDEN)
        missing = _missing(request.data, HIGHLIGHT_REQUIRED)
        if not request.data.get("color") and not request.data.get("type"):
            missing.append("color")
        if missing:
            return error(f"Missing required fields: {', '.join(missing)}")
        serializer = HighlightCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        student, err = _resolve_student(profile, serializer.validated_data["student_id"])
        if err:
            return err
        try:
            highlight, assignment = services.create_highlight(profile, student, serializer.validated_data)
        except HighlightError as e:
            return highlight_error(e)
        return Response(
            {
                "success": True,
                "highlight": HighlightSerializer(highlight).data,
                "assignment_id": assignment.id if assignment else None,
            },
            status=status.HTTP_201_CREATED,
        )

    params = request.query_params
    notes_qs = Note.objects.select_related("author__profile")
    qs = _visible_highlights(profile).prefetch_related(Prefetch("notes", queryset=notes_qs))
    student_id = positive_int(params.get("student_id"), None)
    if student_id:
        qs = qs.filter(student_id=student_id)
    teacher_id = positive_int(params.get("teacher_id"), None)
    if teacher_id:
        qs = qs.filter(teacher_id=teacher_id)
    surah = positive_int(params.get("surah"), None)
    if surah:
        qs = qs.filter(surah=surah)
    if params.get("color"):
        qs = qs.filter(color=params["color"])
    qs = qs.order_by("-created_at", "-id")
    context = {"parent_view": profile.role == PARENT}
    return Response({
        "success": True,
        "highlights": HighlightWithNotesSerializer(qs, many=True, context=context).data,
    })


@api_view(["GET", "DELETE"])
def highlight_detail(request, highlight_id):
    profile = request.user.profile
    highlight = _get_highlight(request, highlight_id)
    if highlight is None:
        return error("Highlight not found", status.HTTP_404_NOT_FOUND)
    if request.method == "GET":
        context = {"parent_view": profile.role == PARENT}
        return Response({"success": True, "highlight": HighlightWithNotesSerializer(highlight, context=context).data})
    if not services.can_edit_highlight(profile, highlight):
        return error("Only the creating teacher or an admin can delete this highlight", status.HTTP_403_FORBIDDEN)
    highlight.delete()
    logger.info("Highlight %s deleted by %s", highlight_id, request.user.pk)
    return Response({"success": True})


@api_view(["PUT"])
@permission_classes([IsSchoolStaff])
def complete_highlight(request, highlight_id):
    highlight = _get_highlight(request, highlight_id)
    if highlight is None:
        return error("Highlight not found", status.HTTP_404_NOT_FOUND)
    try:
        completed = services.complete_highlight(highlight, request.user.profile)
    except HighlightError as e:
        return highlight_error(e)
    return Response({
        "success": True,
        "highlight": HighlightSerializer(highlight).data,
        "assignments_completed": completed,
    })


@api_view(["GET", "POST"])
def notes(request, highlight_id):
    profile = request.user.profile
    highlight = Highlight.objects.filter(pk=highlight_id).select_related("student__user").first()
    if highlight is None:
        return error("Highlight not found", status.HTTP_404_NOT_FOUND)
    if highlight.school_id != profile.school_id:
        return error("Highlight belongs to another school", status.HTTP_403_FORBIDDEN)
    if request.method == "GET":
        if not can_view_student(profile, highlight.student):
            return error("Not authorized", status.HTTP_403_FORBIDDEN)
        qs = highlight.notes.select_related("author__profile")
        if profile.role == PARENT:
            qs = qs.filter(visible_to_parent=True)
        return Response({"success": True, "notes": NoteSerializer(qs, many=True).data})
    serializer = NoteCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    try:
        note = services.add_note(highlight, profile, serializer.validated_data)
    except HighlightError as e:
        return highlight_error(e)
    return Response({"success": True, "note": NoteSerializer(note).data}, status=status.HTTP_201_CREATED)


@api_view(["GET"])
def notes_thread(request, highlight_id):
    profile = request.user.profile
    highlight = _get_highlight(request, highlight_id)
    if highlight is None:
        return error("Highlight not found", status.HTTP_404_NOT_FOUND)
    qs = highlight.notes.select_related("author__profile").order_by("created_at", "id")
    if profile.role == PARENT:
        qs = qs.filter(visible_to_parent=True)
    roots, children = [], {}
    for note in qs:
        if note.parent_note_id:
            children.setdefault(note.parent_note_id, []).append(note)
        else:
            roots.append(note)
    data = NoteThreadSerializer(roots, many=True, context={"children": children}).data
    return Response({"success": True, "highlight_id": highlight.id, "thread": data, "total": qs.count()})


@api_view(["POST"])
def mark_note_seen(request, note_id):
    note = Note.objects.filter(pk=note_id).select_related("highlight__student").first()
    profile = request.user.profile
    if note is None or not can_view_student(profile, note.highlight.student):
        return error("Note not found", status.HTTP_404_NOT_FOUND)
    if profile.role == PARENT and not note.visible_to_parent:
        return error("Note not found", status.HTTP_404_NOT_FOUND)
    changed, message = services.mark_seen(note, request.user)
    return Response({"success": True, "updated": changed, "message": message, "note": NoteSerializer(note).data})


# Homework


@api_view(["GET", "POST"])
def homework(request):
    profile = request.user.profile
    if request.method == "POST":
        if profile.role != TEACHER:
            return error("Only teachers can assign homework", status.HTTP_403_FORBIDDEN)
        serializer = HomeworkCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        student, err = _resolve_student(profile, serializer.validated_data["student_id"])
        if err:
            return err
        try:
            highlight = services.create_homework(profile, student, serializer.validated_data)
        except HighlightError as e:
            return highlight_error(e)
        return Response({"success": True, "homework": HighlightSerializer(highlight).data}, status=status.HTTP_201_CREATED)

    params = request.query_params
    qs = _visible_highlights(profile).filter(type=HOMEWORK)
    student_id = positive_int(params.get("student_id"), None)
    if student_id:
        qs = qs.filter(student_id=student_id)
    teacher_id = positive_int(params.get("teacher_id"), None)
    if teacher_id:
        qs = qs.filter(teacher_id=teacher_id)
    surah = positive_int(params.get("surah"), None)
    if surah:
        qs = qs.filter(surah=surah)
    page_number = positive_int(params.get("page_number"), None)
    if page_number:
        qs = qs.filter(page_number=page_number)
    wanted = params.get("status")
    if wanted == "pending":
        qs = qs.filter(color=GREEN)
    elif wanted == "completed":
        qs = qs.filter(color=GOLD)
    elif not query_bool(request, "include_completed", False):
        qs = qs.filter(color=GREEN)
    sort_by = params.get("sort_by", "created_at")
    if sort_by not in HOMEWORK_SORT_FIELDS:
        sort_by = "created_at"
    prefix = "" if params.get("sort_order", "desc").lower() == "asc" else "-"
    qs = qs.order_by(f"{prefix}{sort_by}", "-id")
    page, limit = page_params(request)
    items, meta = paginate(qs, page, limit)
    return Response({
        "success": True,
        "homework": HighlightSerializer(items, many=True).data,
        "pagination": meta,
    })


@api_view(["GET"])
@require_student_access()
def student_homework(request, student):
    qs = Highlight.objects.filter(student=student, type=HOMEWORK).order_by("-created_at", "-id")
    pending = [h for h in qs if h.color == GREEN]
    completed = [h for h in qs if h.color == GOLD]
    return Response({
        "success": True,
        "student_id": student.id,
        "pending": HighlightSerializer(pending, many=True).data,
        "completed": HighlightSerializer(completed, many=True).data,
        "stats": {"pending": len(pending), "completed": len(completed), "total": len(pending) + len(completed)},
    })


@api_view(["PATCH"])
def complete_homework(request, highlight_id):
    profile = request.user.profile
    highlight = _get_highlight(request, highlight_id)
    if highlight is None:
        return error("Homework not found", status.HTTP_404_NOT_FOUND)
    if not services.can_complete_homework(profile, highlight):
        return error("Not authorized to complete this homework", status.HTTP_403_FORBIDDEN)
    try:
        services.complete_homework(highlight, profile, (request.data.get("completion_note") or "").strip())
    except HighlightError as e:
        return highlight_error(e)
    return Response({"success": True, "homework": HighlightSerializer(highlight).data})


@api_view(["POST"])
def homework_reply(request, highlight_id):
    profile = request.user.profile
    highlight = _get_highlight(request, highlight_id)
    if highlight is None or highlight.type != HOMEWORK:
        return error("Homework not found", status.HTTP_404_NOT_FOUND)
    serializer = NoteCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = dict(serializer.validated_data)
    if data.get("audio_url") and not data.get("text"):
        data["type"] = "audio"
    try:
        note = services.add_note(highlight, profile, data)
    except HighlightError as e:
        return highlight_error(e)
    return Response({"success": True, "note": NoteSerializer(note).data}, status=status.HTTP_201_CREATED)
