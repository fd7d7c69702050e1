import logging

from django.db import IntegrityError, transaction
from django.db.models import Count, Q

from .models import ABSENT, EXCUSED, LATE, PRESENT, AttendanceRecord

logger = logging.getLogger(__name__)


class AttendanceError(Exception):
    def __init__(self, message, code="VALIDATION_ERROR", status=400):
        super().__init__(message)
        self.code = code
        self.status = status


def record_session(school_class, session_date, entries, marked_by):
    """Stores one class session. The whole session is rejected if any row fails."""
    enrolled = set(school_class.enrollments.values_list("student_id", flat=True))
    strangers = [e["student_id"] for e in entries if e["student_id"] not in enrolled]
    if strangers:
        raise AttendanceError(
            f"Students not enrolled in this class: {', '.join(str(s) for s in strangers)}"
        )
    if AttendanceRecord.objects.filter(school_class=school_class, session_date=session_date).exists():
        raise AttendanceError("Attendance for this session was already recorded", "DUPLICATE", 409)
    try:
        with transaction.atomic():
            records = [
                AttendanceRecord.objects.create(
                    school_id=school_class.school_id,
                    school_class=school_class,
                    student_id=entry["student_id"],
                    session_date=session_date,
                    status=entry["status"],
                    notes=entry.get("notes", ""),
                    marked_by=marked_by,
                )
                for entry in entries
            ]
    except IntegrityError:
        raise AttendanceError("Attendance for this session was already recorded", "DUPLICATE", 409)
    logger.info("Attendance for class %s on %s: %s records", school_class.pk, session_date, len(records))
    return records


def summarize(qs):
    counts = qs.aggregate(
        total=Count("id"),
        present=Count("id", filter=Q(status=PRESENT)),
        absent=Count("id", filter=Q(status=ABSENT)),
        late=Count("id", filter=Q(status=LATE)),
        excused=Count("id", filter=Q(status=EXCUSED)),
    )
    total = counts["total"]
    attended = counts["present"] + counts["late"]
    counts["attendance_rate"] = round(attended / total * 100, 2) if total else 0
    return counts
