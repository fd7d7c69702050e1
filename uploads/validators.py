from django.conf import settings


class UploadRejected(Exception):
    pass


def validate_upload(upload, allowed_types, max_size=None):
    """Rejects empty, oversized or non allow-listed files."""
    max_size = max_size or settings.MAX_UPLOAD_SIZE
    if upload is None:
        raise UploadRejected("No file provided")
    if not upload.size:
        raise UploadRejected("File is empty")
    if upload.size > max_size:
        raise UploadRejected(f"File exceeds the {max_size // (1024 * 1024)}MB limit")
    content_type = (upload.content_type or "").split(";")[0].strip().lower()
    if content_type not in allowed_types:
        raise UploadRejected(f"File type {content_type or 'unknown'} is not allowed")
    return content_type
