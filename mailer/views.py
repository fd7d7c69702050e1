from django.contrib.auth import get_user_model
from django.core.signing import BadSignature, SignatureExpired, TimestampSigner
from django.http import HttpResponse, HttpResponseBadRequest
from django.views.decorators.http import require_GET

from notifications.models import NotificationPreference

UNSUBSCRIBE_MAX_AGE = 60 * 60 * 24 * 365


@require_GET
def unsubscribe(request):
    token = request.GET.get("t")
    if not token:
        return HttpResponseBadRequest("missing token")
    try:
        user_id = int(TimestampSigner().unsign(token, max_age=UNSUBSCRIBE_MAX_AGE))
    except (BadSignature, SignatureExpired, ValueError):
        return HttpResponseBadRequest("invalid token")
    user = get_user_model().objects.filter(pk=user_id).first()
    if not user:
        return HttpResponseBadRequest("invalid user")
    pref, _ = NotificationPreference.objects.get_or_create(user=user)
    pref.email_enabled = False
    pref.save(update_fields=["email_enabled", "updated_at"])
    return HttpResponse("You will no longer receive notification emails.")
