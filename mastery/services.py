"""
Per-ayah mastery.

Teachers set a level for each ayah a student has worked on, or derive one from
an assignment's rubric grades. Derived levels only ever move a student up.
"""
import logging
from collections import Counter, defaultdict

from django.db import transaction

from gradebook import calculations
from gradebook.models import Grade
from highlights.models import Highlight
from notifications.models import IN_APP
from notifications.services import notify
from quran.models import Surah
from quran.services import AyahRangeError, validate_ayah_range
from schools.serializers import display_name
from .models import LEVEL_CHOICES, LEVEL_ORDER, MASTERED, PROFICIENT, SCORE_FLOORS, UNKNOWN, AyahMastery

logger = logging.getLogger(__name__)

RECENT_STUDENT_UPDATES = 10
RECENT_SCHOOL_UPDATES = 20


class MasteryError(Exception):
    def __init__(self, message, code="VALIDATION_ERROR", status=400):
        super().__init__(message)
        self.code = code
        self.status = status


def level_from_score(score):
    if score is None:
        return UNKNOWN
    for floor, level in SCORE_FLOORS:
        if score >= floor:
            return level
    return UNKNOWN


def is_improvement(old, new):
    return LEVEL_ORDER[new] > LEVEL_ORDER[old]


def _share(count, total):
    return round(count / total * 100, 2) if total else 0


def summarize(levels):
    counts = Counter(levels)
    total = sum(counts.values())
    summary = {"total_count": total}
    for level, _ in LEVEL_CHOICES:
        summary[f"{level}_count"] = counts[level]
        summary[f"{level}_percentage"] = _share(counts[level], total)
    summary["overall_progress_percentage"] = _share(counts[PROFICIENT] + counts[MASTERED], total)
    return summary


def _notify_improvement(student, title, body, payload):
    users = [student.user] + [link.parent.user for link in student.parent_links.select_related("parent__user")]
    for user in users:
        notify(
            user, "mastery_improved", title=title, body=body, payload=payload,
            channels=(IN_APP,), school=student.school,
        )


@transaction.atomic
def upsert(student, surah, ayah, level, actor):
    """Returns (mastery, created, previous_level, improved, message)."""
    try:
        validate_ayah_range(surah, ayah, ayah)
    except AyahRangeError as e:
        raise MasteryError(str(e))
    mastery = AyahMastery.objects.select_for_update().filter(student=student, surah=surah, ayah=ayah).first()
    if mastery is None:
        mastery = AyahMastery.objects.create(student=student, surah=surah, ayah=ayah, level=level, updated_by=actor)
        created, previous, improved = True, None, level != UNKNOWN
        message = f"Mastery level set to {level}"
    else:
        created, previous = False, mastery.level
        improved = is_improvement(previous, level)
        mastery.level = level
        mastery.updated_by = actor
        mastery.save(update_fields=["level", "updated_by", "last_updated"])
        if improved:
            message = f"Mastery level improved from {previous} to {level}"
        else:
            message = f"Mastery level updated to {level}"
    if improved:
        _notify_improvement(
            student,
            title=f"Mastery improved: {mastery.reference}",
            body=f"{previous or UNKNOWN} to {level}",
            payload={"surah": surah, "ayah": ayah, "old_level": previous, "new_level": level},
        )
    logger.info("Mastery %s for student %s set to %s by user %s", mastery.reference, student.pk, level, actor.pk)
    return mastery, created, previous, improved, message


def _assignment_ayahs(assignment):
    ayahs = set()
    for surah, start, end in Highlight.objects.filter(assignment_links__assignment=assignment).values_list(
        "surah", "ayah_start", "ayah_end"
    ):
        ayahs.update((surah, n) for n in range(start, end + 1))
    return sorted(ayahs)


@transaction.atomic
def auto_update(assignment, student, actor, new_level=None):
    """
    Raises every ayah covered by the assignment's highlights to `new_level`, or
    to the level its weighted grade average earns. Lower levels are left alone.
    """
    if new_level is None:
        grades = Grade.objects.filter(assignment=assignment, student=student).select_related("criterion")
        rows = [(g.score, g.max_score, g.criterion.weight) for g in grades]
        if not rows:
            raise MasteryError(
                "No grades found for this assignment. Cannot auto-calculate mastery level", "NOT_FOUND", 404
            )
        new_level = level_from_score(calculations.weighted_average(rows))
    ayahs = _assignment_ayahs(assignment)
    if not ayahs:
        raise MasteryError(
            "No highlights found for this assignment. Cannot determine which ayahs to update", "NOT_FOUND", 404
        )
    existing = {
        (m.surah, m.ayah): m
        for m in AyahMastery.objects.select_for_update().filter(
            student=student, surah__in={s for s, _ in ayahs}
        )
    }
    updated = []
    improvements = 0
    for surah, ayah in ayahs:
        mastery = existing.get((surah, ayah))
        if mastery is None:
            mastery = AyahMastery.objects.create(
                student=student, surah=surah, ayah=ayah, level=new_level, updated_by=actor
            )
            improvements += new_level != UNKNOWN
        elif is_improvement(mastery.level, new_level):
            mastery.level = new_level
            mastery.updated_by = actor
            mastery.save(update_fields=["level", "updated_by", "last_updated"])
            improvements += 1
        updated.append(mastery)
    if improvements:
        _notify_improvement(
            student,
            title=f"Mastery improved: {assignment.title}",
            body=f"{improvements} ayah(s) now {new_level}",
            payload={"assignment_id": assignment.pk, "new_level": new_level, "improvements": improvements},
        )
    logger.info(
        "Auto-updated mastery for student %s from assignment %s: %s ayahs, %s improvements",
        student.pk, assignment.pk, len(updated), improvements,
    )
    return new_level, updated, improvements


def _surah_names(numbers):
    return dict(Surah.objects.filter(number__in=numbers).values_list("number", "name_simple"))


def heatmap(student, surah):
    """Every ayah of `surah` with the student's level, unknown where untracked."""
    records = {m.ayah: m for m in AyahMastery.objects.filter(student=student, surah=surah)}
    info = Surah.objects.filter(number=surah).first()
    total = info.verses_count if info else max(records, default=0)
    ayahs = [
        {
            "ayah": n,
            "level": records[n].level if n in records else UNKNOWN,
            "last_updated": records[n].last_updated if n in records else None,
        }
        for n in range(1, total + 1)
    ]
    return {
        "surah": surah,
        "surah_name": info.name_simple if info else None,
        "total_ayahs": total,
        "mastery_by_ayah": ayahs,
        "summary": summarize(a["level"] for a in ayahs),
    }


def _entry(mastery):
    return {
        "surah": mastery.surah,
        "ayah": mastery.ayah,
        "reference": mastery.reference,
        "level": mastery.level,
        "last_updated": mastery.last_updated,
    }


def student_overview(student, surah=None):
    qs = AyahMastery.objects.filter(student=student)
    if surah:
        qs = qs.filter(surah=surah)
    records = list(qs)
    by_surah = defaultdict(list)
    for m in records:
        by_surah[m.surah].append(m.level)
    names = _surah_names(list(by_surah))
    surahs = []
    for number, levels in by_surah.items():
        summary = summarize(levels)
        surahs.append({
            "surah": number,
            "surah_name": names.get(number),
            "total_ayahs": len(levels),
            "mastered_count": summary["mastered_count"],
            "proficient_count": summary["proficient_count"],
            "learning_count": summary["learning_count"],
            "unknown_count": summary["unknown_count"],
            "completion_percentage": summary["overall_progress_percentage"],
        })
    surahs.sort(key=lambda s: (-s["completion_percentage"], s["surah"]))
    recent = sorted(records, key=lambda m: (m.last_updated, m.pk), reverse=True)[:RECENT_STUDENT_UPDATES]
    return {
        "student_id": student.pk,
        "student_name": display_name(student.user),
        "total_ayahs_tracked": len(records),
        "mastery_summary": summarize(m.level for m in records),
        "recent_updates": [_entry(m) for m in recent],
        "surahs_progress": surahs,
    }


def school_overview(school):
    records = list(
        AyahMastery.objects.filter(student__school=school)
        .select_related("student__user__profile")
        .order_by("-last_updated", "-id")
    )
    by_student = defaultdict(list)
    for m in records:
        by_student[m.student_id].append(m)
    students = []
    for rows in by_student.values():
        student = rows[0].student
        summary = summarize(m.level for m in rows)
        students.append({
            "student_id": student.pk,
            "student_name": display_name(student.user),
            "total_ayahs_tracked": len(rows),
            "mastered_count": summary["mastered_count"],
            "proficient_count": summary["proficient_count"],
            "learning_count": summary["learning_count"],
            "unknown_count": summary["unknown_count"],
            "overall_progress_percentage": summary["overall_progress_percentage"],
            "last_updated": rows[0].last_updated,
        })
    students.sort(key=lambda s: (-s["overall_progress_percentage"], s["student_name"]))
    return {
        "total_students_with_mastery": len(students),
        "total_ayahs_tracked": len(records),
        "school_wide_summary": summarize(m.level for m in records),
        "students": students,
        "recent_updates": [
            {"student_name": display_name(m.student.user), **_entry(m)}
            for m in records[:RECENT_SCHOOL_UPDATES]
        ],
    }
