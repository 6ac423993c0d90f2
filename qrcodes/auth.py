import logging
from functools import wraps

import jwt
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.http import JsonResponse

from .utils import QRCodeError, Unauthorized

logger = logging.getLogger(__name__)

AUDIENCE = "authenticated"


def authenticated_user_id(request) -> str:
    """Verify the hosted-auth bearer token and return its ``sub`` claim."""
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        raise Unauthorized("Missing authorization header")

    secret = settings.SUPABASE_JWT_SECRET
    if not secret:
        raise ImproperlyConfigured("SUPABASE_JWT_SECRET is required for QR code management")

    try:
        claims = jwt.decode(header[len("Bearer "):], secret, algorithms=["HS256"], audience=AUDIENCE)
    except jwt.PyJWTError as e:
        logger.info("Rejected bearer token: %s", e)
        raise Unauthorized("Invalid authorization")
    if not claims.get("sub"):
        raise Unauthorized("Invalid authorization")
    return str(claims["sub"])


def qr_api(auth=True):
    """Map QRCodeError to ``{success: false, error}``; optionally require a user."""
    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            try:
                if auth:
                    request.user_id = authenticated_user_id(request)
                return view(request, *args, **kwargs)
            except QRCodeError as e:
                return JsonResponse({"success": False, "error": str(e)}, status=e.status)
        return wrapper
    return decorator
