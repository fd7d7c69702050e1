import logging

from django.contrib.auth import authenticate
from django.db import transaction
from django.http import JsonResponse
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from .api import error
from .models import OWNER, User
from .permissions import get_profile
from .provisioning import ProvisioningError, provision_account
from .serializers import ProfileSerializer, RegisterSchoolSerializer, SignInSerializer

logger = logging.getLogger(__name__)


def _session_payload(user, token):
    profile = get_profile(user)
    return {
        "success": True,
        "token": token.key,
        "user": ProfileSerializer(profile).data if profile else {"user_id": user.pk, "email": user.email},
    }


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def signin(request):
    serializer = SignInSerializer(data=request.data)
    if not serializer.is_valid():
        return error("Email and password are required")
    # axes tracks failures on the underlying HttpRequest
    user = authenticate(
        request._request,
        username=serializer.validated_data["email"].lower(),
        password=serializer.validated_data["password"],
    )
    if user is None:
        return error("Invalid email or password", status.HTTP_401_UNAUTHORIZED)
    token, _ = Token.objects.get_or_create(user=user)
    logger.info("User %s signed in", user.pk)
    return Response(_session_payload(user, token))


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def signout(request):
    Token.objects.filter(user=request.user).delete()
    return Response({"success": True})


@api_view(["GET"])
def me(request):
    profile = request.user.profile
    school = profile.school
    return Response({
        "success": True,
        "profile": ProfileSerializer(profile).data,
        "school": {"id": school.id, "name": school.name, "timezone": school.timezone},
    })


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def register_school(request):
    from schools.models import School

    serializer = RegisterSchoolSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    if User.objects.filter(email__iexact=data["admin_email"]).exists():
        return error("A user with this email already exists")
    try:
        with transaction.atomic():
            school = School.objects.create(name=data["school_name"], timezone=data["timezone"])
            user, _ = provision_account(
                school,
                OWNER,
                data["admin_email"],
                data["admin_name"],
                password=data["admin_password"],
            )
    except ProvisioningError as e:
        return error(str(e))
    token = Token.objects.create(user=user)
    logger.info("Registered school %s with owner %s", school.pk, user.pk)
    payload = _session_payload(user, token)
    payload["school"] = {"id": school.id, "name": school.name}
    return Response(payload, status=status.HTTP_201_CREATED)


def locked_out(request, *args, **kwargs):
    return JsonResponse(
        {
            "success": False,
            "error": "Too many failed sign-in attempts. Try again later.",
            "code": "LOCKED_OUT",
        },
        status=403,
    )
