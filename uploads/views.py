from django.conf import settings
from rest_framework import status
from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import MultiPartParser
from rest_framework.response import Response

from accounts.api import error
from accounts.permissions import IsSchoolStaff
from .storage import ATTACHMENT, VOICE_NOTE, store_upload
from .validators import UploadRejected


def _store(request, kind, allowed_types):
    try:
        data = store_upload(request.user.profile, request.FILES.get("file"), kind, allowed_types)
    except UploadRejected as e:
        return error(str(e))
    return Response({"success": True, "data": data}, status=status.HTTP_201_CREATED)


@api_view(["POST"])
@parser_classes([MultiPartParser])
def upload_attachment(request):
    return _store(request, ATTACHMENT, settings.ATTACHMENT_MIME_TYPES)


@api_view(["POST"])
@parser_classes([MultiPartParser])
@permission_classes([IsSchoolStaff])
def upload_voice_note(request):
    return _store(request, VOICE_NOTE, settings.VOICE_NOTE_MIME_TYPES)
