import logging

from django.contrib.auth import get_user_model
from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from accounts.api import error, page_params, paginate
from accounts.models import STAFF_ROLES
from schools.models import SchoolClass
from . import services
from .models import Message
from .serializers import GroupSendSerializer, MessageSerializer, SendSerializer
from .services import MessageError

logger = logging.getLogger(__name__)

FOLDERS = ("inbox", "sent", "unread", "all")


def message_error(e):
    return error(str(e), e.status, e.code)


def _folder(user, folder):
    if folder == "sent":
        return Message.objects.filter(sender=user)
    if folder == "unread":
        return Message.objects.filter(recipient=user, read_at__isnull=True)
    if folder == "all":
        return services.messages_for(user)
    return Message.objects.filter(recipient=user)


def _school_user(profile, user_id):
    return (
        get_user_model().objects.filter(pk=user_id, profile__school_id=profile.school_id)
        .select_related("profile")
        .first()
    )


@api_view(["GET", "POST"])
def messages(request):
    profile = request.user.profile
    if request.method == "POST":
        return _send(request, profile)

    folder = request.query_params.get("folder", "inbox")
    if folder not in FOLDERS:
        return error(f"folder must be one of: {', '.join(FOLDERS)}")
    qs = (
        _folder(request.user, folder)
        .select_related("sender__profile", "recipient__profile")
        .prefetch_related("attachments")
    )
    page, limit = page_params(request)
    items, meta = paginate(qs, page, limit)
    unread = Message.objects.filter(recipient=request.user, read_at__isnull=True).count()
    return Response({
        "success": True,
        "folder": folder,
        "messages": MessageSerializer(items, many=True).data,
        "unread_count": unread,
        "pagination": meta,
    })


def _send(request, profile):
    serializer = SendSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    thread = None
    if data.get("thread_id"):
        thread = Message.objects.filter(pk=data["thread_id"], school_id=profile.school_id).first()
        if thread is None:
            return error("Thread not found", status.HTTP_404_NOT_FOUND)
    recipient = None
    if data.get("recipient_id"):
        recipient = _school_user(profile, data["recipient_id"])
        if recipient is None:
            return error("Recipient not found", status.HTTP_404_NOT_FOUND)
    try:
        message = services.send_message(
            profile,
            data["body"],
            recipient=recipient,
            subject=data["subject"],
            thread=thread,
            attachments=data["attachments"],
        )
    except MessageError as e:
        return message_error(e)
    return Response({"success": True, "message": MessageSerializer(message).data}, status=status.HTTP_201_CREATED)


@api_view(["GET"])
def message_detail(request, message_id):
    message = (
        services.messages_for(request.user)
        .filter(pk=message_id)
        .select_related("sender__profile", "recipient__profile")
        .first()
    )
    if message is None:
        return error("Message not found", status.HTTP_404_NOT_FOUND)
    services.mark_read(message, request.user)
    return Response({"success": True, "message": MessageSerializer(message).data})


@api_view(["GET"])
def thread(request, message_id):
    anchor = services.messages_for(request.user).filter(pk=message_id).first()
    if anchor is None:
        return error("Thread not found", status.HTTP_404_NOT_FOUND)
    root_id = anchor.root_id
    qs = (
        Message.objects.filter(Q(pk=root_id) | Q(thread_id=root_id))
        .filter(Q(sender=request.user) | Q(recipient=request.user))
        .select_related("sender__profile", "recipient__profile")
        .prefetch_related("attachments")
        .order_by("created_at", "id")
    )
    items = list(qs)
    for message in items:
        services.mark_read(message, request.user)
    return Response({
        "success": True,
        "thread_id": root_id,
        "messages": MessageSerializer(items, many=True).data,
    })


@api_view(["GET"])
def recipients(request):
    users = services.allowed_recipients(request.user.profile)
    role = request.query_params.get("role")
    if role:
        users = users.filter(profile__role=role)
    return Response({
        "success": True,
        "recipients": [
            {"user_id": u.pk, "name": u.profile.display_name, "email": u.email, "role": u.profile.role}
            for u in users
        ],
    })


@api_view(["POST"])
def send_group(request):
    profile = request.user.profile
    if profile.role not in STAFF_ROLES:
        return error("Only teachers and admins can send group messages", status.HTTP_403_FORBIDDEN)
    serializer = GroupSendSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    user_ids = list(data["recipient_ids"])
    if data.get("class_id"):
        school_class = SchoolClass.objects.filter(pk=data["class_id"], school_id=profile.school_id).first()
        if school_class is None:
            return error("Class not found", status.HTTP_404_NOT_FOUND)
        user_ids.extend(school_class.enrollments.values_list("student__user_id", flat=True))

    results = []
    for user_id in dict.fromkeys(user_ids):
        recipient = _school_user(profile, user_id)
        if recipient is None:
            results.append({"recipient_id": user_id, "success": False, "error": "Recipient not found"})
            continue
        try:
            message = services.send_message(profile, data["body"], recipient=recipient, subject=data["subject"])
        except MessageError as e:
            results.append({"recipient_id": user_id, "success": False, "error": str(e)})
            continue
        results.append({"recipient_id": user_id, "success": True, "message_id": message.id})
    sent = sum(1 for r in results if r["success"])
    logger.info("Group message from %s: %s of %s delivered", request.user.pk, sent, len(results))
    return Response({
        "success": True,
        "results": results,
        "summary": {"total": len(results), "sent": sent, "failed": len(results) - sent},
    })
