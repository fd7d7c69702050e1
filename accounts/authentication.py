from rest_framework.authentication import TokenAuthentication


class BearerTokenAuthentication(TokenAuthentication):
    """Accepts `Authorization: Bearer <key>` issued by the sign-in endpoint."""

    keyword = "Bearer"
