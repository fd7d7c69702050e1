from functools import wraps

from accounts.api import error, positive_int
from .models import Student
from .permissions import can_view_student


def require_student_access(param: str = "student_id"):
    """
    Decorator to guard API views that expose one student's data.
    Reads `student_id` from URL kwargs (default), the query string or the body
    and hands the resolved Student to the view as `student`.
    """
    def decorator(view_func):
        @wraps(view_func)
        def _wrapped(request, *args, **kwargs):
            sid = kwargs.pop(param, None) or request.query_params.get(param) or request.data.get(param)
            sid = positive_int(sid, None)
            if not sid:
                return error(f"{param} is required")
            student = Student.objects.filter(pk=sid).select_related("user__profile").first()
            if student is None:
                return error("Student not found", 404)
            if not can_view_student(request.user.profile, student):
                return error("Not authorized", 403)
            return view_func(request, *args, student=student, **kwargs)
        return _wrapped
    return decorator
