"""
Rubric grading.

A rubric's criteria carry weights that add up to 100 before the rubric may be
attached to an assignment. Each grade scores one criterion for one student;
regrading the same criterion replaces the earlier score.
"""
import logging
from collections import defaultdict

from django.db import transaction
from django.db.models import Max, Sum

from accounts.models import ADMIN_ROLES
from notifications.models import IN_APP
from notifications.services import notify
from . import calculations
from .models import FULL_WEIGHT, MAX_CRITERIA, AssignmentRubric, Grade, Rubric, RubricCriterion

logger = logging.getLogger(__name__)


class GradeError(Exception):
    def __init__(self, message, code="VALIDATION_ERROR", status=400):
        super().__init__(message)
        self.code = code
        self.status = status


def can_manage_rubric(profile, rubric):
    if profile.school_id != rubric.school_id:
        return False
    return profile.role in ADMIN_ROLES or rubric.created_by_id == profile.user_id


def _weight_total(rubric, exclude=None):
    qs = rubric.criteria.all()
    if exclude is not None:
        qs = qs.exclude(pk=exclude.pk)
    return qs.aggregate(total=Sum("weight"))["total"] or 0


@transaction.atomic
def create_rubric(school, actor, data):
    criteria = data.get("criteria") or []
    if criteria and sum(c["weight"] for c in criteria) != FULL_WEIGHT:
        raise GradeError(f"Criterion weights must add up to {FULL_WEIGHT}", "INVALID_WEIGHT")
    rubric = Rubric.objects.create(
        school=school, created_by=actor, name=data["name"], description=data.get("description") or ""
    )
    for order, criterion in enumerate(criteria, start=1):
        RubricCriterion.objects.create(rubric=rubric, order=order, **criterion)
    logger.info("Rubric %s created by user %s with %s criteria", rubric.pk, actor.pk, len(criteria))
    return rubric


@transaction.atomic
def add_criterion(rubric, data):
    if rubric.criteria.count() >= MAX_CRITERIA:
        raise GradeError(f"A rubric can have at most {MAX_CRITERIA} criteria")
    if _weight_total(rubric) + data["weight"] > FULL_WEIGHT:
        raise GradeError(f"Criterion weights cannot exceed {FULL_WEIGHT} in total", "INVALID_WEIGHT")
    last = rubric.criteria.aggregate(last=Max("order"))["last"] or 0
    return RubricCriterion.objects.create(rubric=rubric, order=last + 1, **data)


@transaction.atomic
def update_criterion(criterion, changes):
    if "weight" in changes and _weight_total(criterion.rubric, exclude=criterion) + changes["weight"] > FULL_WEIGHT:
        raise GradeError(f"Criterion weights cannot exceed {FULL_WEIGHT} in total", "INVALID_WEIGHT")
    for field, value in changes.items():
        setattr(criterion, field, value)
    criterion.save()
    return criterion


def delete_criterion(criterion):
    if criterion.grades.exists():
        raise GradeError("Cannot delete a criterion that has grades", "CRITERION_IN_USE")
    criterion.delete()


def delete_rubric(rubric):
    in_use = rubric.assignment_links.count()
    if in_use:
        raise GradeError(
            f'Cannot delete rubric "{rubric.name}". It is currently used by {in_use} assignment(s)',
            "RUBRIC_IN_USE",
        )
    rubric.delete()


@transaction.atomic
def attach_rubric(assignment, rubric, actor):
    if rubric.criteria.count() == 0 or _weight_total(rubric) != FULL_WEIGHT:
        raise GradeError(
            f"Rubric criteria weights must add up to {FULL_WEIGHT} before it can be attached", "INVALID_WEIGHT"
        )
    link = AssignmentRubric.objects.filter(assignment=assignment).first()
    if link is not None and link.rubric_id != rubric.pk and assignment.grades.exists():
        raise GradeError("Assignment already has grades under another rubric", "GRADES_EXIST", 409)
    link, _ = AssignmentRubric.objects.update_or_create(
        assignment=assignment, defaults={"rubric": rubric, "attached_by": actor}
    )
    logger.info("Rubric %s attached to assignment %s", rubric.pk, assignment.pk)
    return link


def progress_for(assignment, student):
    link = getattr(assignment, "rubric_link", None)
    total = link.rubric.criteria.count() if link else 0
    graded = Grade.objects.filter(assignment=assignment, student=student).count()
    return {
        "graded_criteria": graded,
        "total_criteria": total,
        "percentage": round(graded / total * 100) if total else 0,
    }


@transaction.atomic
def submit_grade(assignment, student, criterion, score, actor, max_score=None, comments=""):
    """Upserts one criterion score and returns (grade, created, progress)."""
    link = AssignmentRubric.objects.filter(assignment=assignment).first()
    if link is None:
        raise GradeError("Assignment has no rubric attached", "NO_RUBRIC")
    if criterion.rubric_id != link.rubric_id:
        raise GradeError("Criterion does not belong to this assignment's rubric")
    if student.pk != assignment.student_id:
        raise GradeError("Student is not assigned to this assignment")
    max_score = criterion.max_score if max_score is None else max_score
    if score < 0:
        raise GradeError("Score cannot be negative", "INVALID_SCORE")
    if score > max_score:
        raise GradeError(f"Score ({score}) cannot exceed max_score ({max_score})", "INVALID_SCORE")
    grade, created = Grade.objects.update_or_create(
        assignment=assignment,
        student=student,
        criterion=criterion,
        defaults={"score": score, "max_score": max_score, "comments": comments or "", "graded_by": actor},
    )
    notify(
        student.user,
        "grade_submitted",
        title="New grade",
        body=f"{criterion.name} was graded on \"{assignment.title}\"",
        payload={"assignment_id": assignment.id, "criterion_id": criterion.id, "grade_id": grade.id},
        channels=(IN_APP,),
        school=assignment.school,
    )
    logger.info("Grade %s for assignment %s criterion %s by user %s", grade.pk, assignment.pk, criterion.pk, actor.pk)
    return grade, created, progress_for(assignment, student)


def _rows(grades):
    return [(g.score, g.max_score, g.criterion.weight) for g in grades]


def assignment_summary(assignment, grades):
    rows = _rows(grades)
    overall = calculations.weighted_average(rows)
    link = getattr(assignment, "rubric_link", None)
    criteria = list(link.rubric.criteria.all()) if link else []
    return {
        "overall_score": overall,
        "overall_percentage": calculations.overall_percentage(rows) if rows else None,
        "letter_grade": calculations.letter_grade(overall),
        "graded_criteria": len(rows),
        "total_criteria": len(criteria),
        "graded": bool(criteria) and len(rows) >= len(criteria),
    }


def gradebook_entries(assignments, grades):
    """One row per assignment with a rubric, oldest due date first."""
    by_assignment = defaultdict(list)
    for grade in grades:
        by_assignment[grade.assignment_id].append(grade)
    entries = []
    for assignment in assignments:
        graded = by_assignment.get(assignment.pk, [])
        summary = assignment_summary(assignment, graded)
        entries.append({
            "assignment_id": assignment.pk,
            "title": assignment.title,
            "student_id": assignment.student_id,
            "due_at": assignment.due_at,
            "status": assignment.status,
            "rubric": assignment.rubric_link.rubric.name,
            "overall_score": summary["overall_score"],
            "percentage": summary["overall_percentage"],
            "letter_grade": summary["letter_grade"],
            "graded_criteria": summary["graded_criteria"],
            "total_criteria": summary["total_criteria"],
            "graded_at": max((g.graded_at for g in graded), default=None),
        })
    return entries


def entry_stats(entries):
    scores = [e["overall_score"] for e in entries if e["overall_score"] is not None]
    return {
        "total": len(entries),
        "graded": len(scores),
        "pending": len(entries) - len(scores),
        "average": calculations.average(scores),
        "highest": max(scores, default=None),
        "lowest": min(scores, default=None),
        "total_criteria_graded": sum(e["graded_criteria"] for e in entries),
    }


def trend(entries):
    graded = sorted((e for e in entries if e["graded_at"] is not None), key=lambda e: e["graded_at"])
    return calculations.recent_trend([e["overall_score"] for e in graded])
