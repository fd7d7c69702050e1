"""Response helpers shared by the JSON API views."""
from django.conf import settings
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

STATUS_CODES = {
    status.HTTP_400_BAD_REQUEST: "VALIDATION_ERROR",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


def error(message, status_code=status.HTTP_400_BAD_REQUEST, code=None, details=None):
    body = {"success": False, "error": message}
    code = code or STATUS_CODES.get(status_code)
    if code:
        body["code"] = code
    if details is not None:
        body["details"] = details
    return Response(body, status=status_code)


def exception_handler(exc, context):
    response = drf_exception_handler(exc, context)
    if response is None:
        return None
    if isinstance(exc, ValidationError):
        response.data = {
            "success": False,
            "error": first_error(response.data),
            "code": "VALIDATION_ERROR",
            "details": response.data,
        }
    else:
        detail = response.data.get("detail") if isinstance(response.data, dict) else response.data
        response.data = {
            "success": False,
            "error": str(detail),
            "code": STATUS_CODES.get(response.status_code, "INTERNAL_ERROR"),
        }
    return response


def first_error(errors):
    """Flatten serializer errors to a single readable message."""
    if isinstance(errors, dict):
        for field, value in errors.items():
            message = first_error(value)
            if field == "non_field_errors":
                return message
            return f"{field}: {message}"
    if isinstance(errors, list) and errors:
        return first_error(errors[0])
    return str(errors)


def positive_int(value, default):
    try:
        value = int(value)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def page_params(request, default=None, maximum=None):
    default = default or settings.API_PAGE_SIZE
    maximum = maximum or settings.API_MAX_PAGE_SIZE
    page = positive_int(request.query_params.get("page"), 1)
    limit = min(positive_int(request.query_params.get("limit"), default), maximum)
    return page, limit


def paginate(queryset, page, limit):
    total = queryset.count()
    start = (page - 1) * limit
    items = list(queryset[start:start + limit])
    meta = {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": (total + limit - 1) // limit,
    }
    return items, meta


def query_bool(request, name, default=None):
    val = request.query_params.get(name)
    if val is None:
        return default
    return str(val).strip().lower() in ("1", "true", "yes", "on")


def id_list(value):
    """Accepts a list or a comma separated string of ids; drops junk entries."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    ids = []
    for item in value:
        try:
            ids.append(int(item))
        except (TypeError, ValueError):
            continue
    return ids
