import logging

from django.contrib.auth import get_user_model
from django.utils.dateparse import parse_datetime, parse_date
from rest_framework import serializers, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from accounts.api import error, id_list, positive_int, query_bool
from accounts.permissions import IsSchoolStaff
from .models import CHANNEL_CHOICES, IN_APP, NOTIFICATION_TYPES, SECTIONS, Notification, NotificationPreference
from .services import get_preferences, mark_read, mark_section_read as mark_section, notify, unread_counts

logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 100


class NotificationSerializer(serializers.ModelSerializer):
    section = serializers.CharField(read_only=True)

    class Meta:
        model = Notification
        fields = ["id", "channel", "type", "section", "title", "body", "payload", "sent_at", "read_at", "created_at"]


class PreferenceSerializer(serializers.ModelSerializer):
    class Meta:
        model = NotificationPreference
        exclude = ["id", "user"]
        read_only_fields = ["updated_at"]


class SendSerializer(serializers.Serializer):
    user_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    type = serializers.ChoiceField(choices=NOTIFICATION_TYPES)
    title = serializers.CharField(max_length=200)
    body = serializers.CharField(required=False, allow_blank=True, default="")
    payload = serializers.JSONField(required=False, default=dict)
    channels = serializers.ListField(
        child=serializers.ChoiceField(choices=[c for c, _ in CHANNEL_CHOICES]),
        required=False,
        default=[IN_APP],
    )


def _parse_bound(value):
    if not value:
        return None
    return parse_datetime(value) or parse_date(value)


@api_view(["GET"])
def list_notifications(request):
    params = request.query_params
    qs = Notification.objects.filter(user=request.user)
    if params.get("channel"):
        qs = qs.filter(channel=params["channel"])
    if params.get("type"):
        qs = qs.filter(type=params["type"])
    read = query_bool(request, "read")
    if read is not None:
        qs = qs.filter(read_at__isnull=not read)
    start, end = _parse_bound(params.get("start_date")), _parse_bound(params.get("end_date"))
    if start:
        qs = qs.filter(created_at__gte=start)
    if end:
        qs = qs.filter(created_at__lte=end) if hasattr(end, "hour") else qs.filter(created_at__date__lte=end)
    limit = min(positive_int(params.get("limit"), 50), MAX_LIST_LIMIT)
    offset = max(0, positive_int(params.get("offset"), 0))
    total = qs.count()
    items = qs[offset:offset + limit]
    _, unread = unread_counts(request.user)
    return Response({
        "success": True,
        "notifications": NotificationSerializer(items, many=True).data,
        "total": total,
        "unread_count": unread,
        "has_more": offset + limit < total,
    })


@api_view(["PATCH", "POST"])
def read_notification(request, notification_id):
    notification = Notification.objects.filter(pk=notification_id, user=request.user).first()
    if notification is None:
        return error("Notification not found", status.HTTP_404_NOT_FOUND)
    mark_read(Notification.objects.filter(pk=notification.pk))
    notification.refresh_from_db()
    return Response({"success": True, "notification": NotificationSerializer(notification).data})


@api_view(["PATCH", "POST"])
def read_all(request):
    updated = mark_read(Notification.objects.filter(user=request.user, channel=IN_APP))
    return Response({"success": True, "updated": updated})


@api_view(["GET"])
def counts(request):
    by_section, total = unread_counts(request.user)
    return Response({"success": True, "counts": by_section, "total": total})


@api_view(["POST"])
def mark_section_read(request):
    section = request.data.get("section")
    if section not in SECTIONS:
        return error(f"section must be one of: {', '.join(SECTIONS)}")
    updated = mark_section(request.user, section)
    return Response({"success": True, "section": section, "updated": updated})


@api_view(["GET", "PATCH"])
def preferences(request):
    pref = get_preferences(request.user)
    if request.method == "GET":
        return Response({"success": True, "preferences": PreferenceSerializer(pref).data})
    serializer = PreferenceSerializer(pref, data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    serializer.save()
    return Response({"success": True, "preferences": serializer.data})


@api_view(["POST"])
@permission_classes([IsSchoolStaff])
def send(request):
    serializer = SendSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    school = request.user.profile.school
    recipients = get_user_model().objects.filter(
        pk__in=id_list(data["user_ids"]), profile__school=school
    ).select_related("profile")
    results = []
    for user in recipients:
        created = notify(
            user,
            data["type"],
            title=data["title"],
            body=data["body"],
            payload=data["payload"],
            channels=data["channels"],
            school=school,
        )
        results.append({"user_id": user.pk, "created": len(created)})
    found = {r["user_id"] for r in results}
    missing = [uid for uid in data["user_ids"] if uid not in found]
    logger.info("User %s sent %s to %s recipients", request.user.pk, data["type"], len(results))
    return Response({"success": True, "results": results, "not_found": missing})
