import logging
import mimetypes
import secrets

from django.core.files.storage import default_storage
from django.utils import timezone

from .validators import validate_upload

logger = logging.getLogger(__name__)

ATTACHMENT = "attachments"
VOICE_NOTE = "voice-notes"


def build_path(school_id, user_id, kind, content_type):
    # the client file name never picks the extension
    ext = (mimetypes.guess_extension(content_type or "") or ".bin").lstrip(".")
    stamp = int(timezone.now().timestamp() * 1000)
    return f"{school_id}/{user_id}/{kind}/{stamp}-{secrets.token_hex(4)}.{ext}"


def store_upload(profile, upload, kind, allowed_types):
    """Validates and saves `upload`; returns the metadata the API hands back."""
    content_type = validate_upload(upload, allowed_types)
    path = default_storage.save(build_path(profile.school_id, profile.user_id, kind, content_type), upload)
    logger.info("Stored %s upload %s (%s bytes) for user %s", kind, path, upload.size, profile.user_id)
    return {
        "file_name": upload.name,
        "path": path,
        "url": default_storage.url(path),
        "mime_type": content_type,
        "size": upload.size,
    }
