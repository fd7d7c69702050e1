import logging
import posixpath

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from accounts.models import ADMIN, OWNER, PARENT, STUDENT, TEACHER
from notifications.services import notify
from schools.serializers import display_name
from .models import MAX_ATTACHMENTS, MAX_BODY_LENGTH, MAX_SUBJECT_LENGTH, Message, MessageAttachment

logger = logging.getLogger(__name__)

# sender role -> roles it may write to
COMMUNICATION_MATRIX = {
    TEACHER: (OWNER, ADMIN, STUDENT, PARENT),
    STUDENT: (OWNER, ADMIN, TEACHER),
    PARENT: (OWNER, ADMIN, TEACHER),
    ADMIN: (OWNER, TEACHER, STUDENT, PARENT),
    OWNER: (ADMIN, TEACHER, STUDENT, PARENT),
}


class MessageError(Exception):
    def __init__(self, message, code="VALIDATION_ERROR", status=400):
        super().__init__(message)
        self.code = code
        self.status = status


def can_message(sender_profile, recipient_profile):
    if recipient_profile is None or sender_profile.school_id != recipient_profile.school_id:
        return False
    return recipient_profile.role in COMMUNICATION_MATRIX.get(sender_profile.role, ())


def allowed_recipients(profile):
    return (
        get_user_model().objects.filter(
            profile__school_id=profile.school_id,
            profile__role__in=COMMUNICATION_MATRIX.get(profile.role, ()),
            is_active=True,
        )
        .exclude(pk=profile.user_id)
        .select_related("profile")
        .order_by("profile__display_name")
    )


def messages_for(user):
    return Message.objects.filter(Q(sender=user) | Q(recipient=user))


def _clean_attachments(profile, attachments):
    """Attachments must be files this user uploaded, within the allow-list."""
    attachments = attachments or []
    if len(attachments) > MAX_ATTACHMENTS:
        raise MessageError(f"A message can carry at most {MAX_ATTACHMENTS} attachments")
    prefix = f"{profile.school_id}/{profile.user_id}/"
    cleaned = []
    for item in attachments:
        if not isinstance(item, dict):
            raise MessageError("Invalid attachment")
        path = str(item.get("path") or "")
        mime_type = str(item.get("mime_type") or "")
        try:
            size = int(item.get("size") or 0)
        except (TypeError, ValueError):
            size = 0
        if ".." in path.split("/") or posixpath.normpath(path) != path:
            raise MessageError("Invalid attachment path")
        if not path.startswith(prefix):
            raise MessageError("Attachment was not uploaded by this user")
        if mime_type not in settings.ATTACHMENT_MIME_TYPES:
            raise MessageError(f"File type {mime_type or 'unknown'} is not allowed")
        if size <= 0 or size > settings.MAX_UPLOAD_SIZE:
            raise MessageError("Attachment exceeds the 10MB limit")
        cleaned.append({
            "file_name": str(item.get("file_name") or path.rsplit("/", 1)[-1])[:255],
            "file_path": path,
            "mime_type": mime_type,
            "size": size,
        })
    return cleaned


@transaction.atomic
def send_message(profile, body, recipient=None, subject="", thread=None, attachments=None):
    """
    Sends one message. For replies `thread` is any message of the thread; the
    recipient defaults to the other party and the subject is dropped.
    """
    body = (body or "").strip()
    if not body:
        raise MessageError("Message body is required")
    if len(body) > MAX_BODY_LENGTH:
        raise MessageError(f"Message body cannot exceed {MAX_BODY_LENGTH} characters")
    subject = (subject or "").strip()
    if len(subject) > MAX_SUBJECT_LENGTH:
        raise MessageError(f"Subject cannot exceed {MAX_SUBJECT_LENGTH} characters")

    root = None
    if thread is not None:
        root = thread.thread or thread
        if not messages_for(profile.user).filter(Q(pk=root.pk) | Q(thread=root)).exists():
            raise MessageError("You are not part of this conversation", "FORBIDDEN", 403)
        if recipient is None:
            recipient = root.recipient if root.sender_id == profile.user_id else root.sender
        subject = ""
    if recipient is None:
        raise MessageError("recipient_id is required")
    if recipient.pk == profile.user_id:
        raise MessageError("You cannot message yourself")
    if not can_message(profile, getattr(recipient, "profile", None)):
        raise MessageError("You are not allowed to message this user", "FORBIDDEN", 403)

    files = _clean_attachments(profile, attachments)
    message = Message.objects.create(
        school_id=profile.school_id,
        sender=profile.user,
        recipient=recipient,
        thread=root,
        subject=subject,
        body=body,
    )
    for item in files:
        MessageAttachment.objects.create(message=message, **item)
    notify(
        recipient,
        "message_received",
        title=f"New message from {display_name(profile.user)}",
        body=subject or body[:140],
        payload={"message_id": message.id, "thread_id": message.root_id, "sender_id": profile.user_id},
        school=profile.school,
    )
    logger.info("Message %s sent from %s to %s", message.pk, profile.user_id, recipient.pk)
    return message


def mark_read(message, user):
    if message.recipient_id == user.pk and message.read_at is None:
        message.read_at = timezone.now()
        message.save(update_fields=["read_at"])
        return True
    return False
