"""
Authentication for the token-protected external endpoints.

Provider automation (Hotmart/Kiwify flows run by the course owner) has
no user account; it presents a shared bearer token instead.

Usage:
    class ExternalEnrollView(APIView):
        authentication_classes = [ExternalTokenAuthentication]
        permission_classes = [AllowAny]

Configuration:
    Set in settings.py:
    - EXTERNAL_API_TOKEN: Shared token; empty disables the endpoints
"""

from __future__ import annotations

import hmac
import logging

from django.conf import settings
from django.contrib.auth.models import AnonymousUser
from rest_framework.authentication import BaseAuthentication
from rest_framework.exceptions import AuthenticationFailed

logger = logging.getLogger(__name__)


def _bearer_token(request) -> str:
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer ") :].strip()
    return header.strip()


class ExternalTokenAuthentication(BaseAuthentication):
    """
    Accept requests carrying EXTERNAL_API_TOKEN as a bearer token.

    The comparison is constant time. With no token configured every
    request is refused. Authenticated requests carry an anonymous user
    and the auth value "external".
    """

    def authenticate(self, request):
        expected = getattr(settings, "EXTERNAL_API_TOKEN", "")
        if not expected:
            logger.error("EXTERNAL_API_TOKEN is not configured")
            raise AuthenticationFailed("Invalid authentication token.")

        if not hmac.compare_digest(_bearer_token(request).encode(), expected.encode()):
            logger.warning("External API token rejected", extra={"path": request.path})
            raise AuthenticationFailed("Invalid authentication token.")

        return (AnonymousUser(), "external")

    def authenticate_header(self, request) -> str:
        return 'Bearer realm="external"'
