"""
API key authentication for partner order submission.

When PARTNER_API_KEY is unset every request is let through.
"""
import hmac
from typing import Optional

from django.conf import settings
from django.contrib.auth.models import AnonymousUser
from rest_framework.authentication import BaseAuthentication
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.permissions import BasePermission


def provided_api_key(request) -> Optional[str]:
    """X-API-Key header, or the token of an 'Authorization: Bearer <key>' header."""
    key = request.headers.get('X-API-Key')
    if key:
        return key
    authorization = request.headers.get('Authorization', '')
    if authorization.startswith('Bearer '):
        return authorization[len('Bearer '):].strip() or None
    return None


class PartnerApiKeyAuthentication(BaseAuthentication):

    def authenticate(self, request):
        expected = settings.PARTNER_API_KEY
        if not expected:
            return None

        key = provided_api_key(request)
        if key is None:
            return None
        if not hmac.compare_digest(key.encode(), expected.encode()):
            raise AuthenticationFailed('Invalid API key')
        return AnonymousUser(), key

    def authenticate_header(self, request):
        return 'Bearer'


class HasPartnerApiKey(BasePermission):
    message = 'API key required. Provide X-API-Key header or Authorization: Bearer <key> header.'

    def has_permission(self, request, view):
        if not settings.PARTNER_API_KEY:
            return True
        return request.auth is not None
