import logging

from django.conf import settings
from django.http import HttpResponse, JsonResponse
from django.utils.cache import patch_vary_headers

logger = logging.getLogger(__name__)

PRODUCTION_ORIGINS = (
    "https://www.ssplt10.cloud",
    "https://ssplt10.cloud",
    "https://ssplt10.co.in",
    "https://preview.ssplt10.cloud",
    # file:// pages used for controlled testing
    "null",
    # local UI against the production backend
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost",
    "http://localhost:3000",
)

CORS_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
CORS_HEADERS = "Content-Type, Authorization, X-Requested-With, Idempotency-Key"


def allowed_origins() -> set:
    extra = [o.strip() for o in (getattr(settings, "ALLOWED_ORIGINS", "") or "").split(",") if o.strip()]
    return set(PRODUCTION_ORIGINS) | set(extra)


def origin_allowed(origin: str | None) -> bool:
    """Every origin passes outside production; production uses the allow-list."""
    if getattr(settings, "SSPL_ENV", "development") != "production":
        return True
    if not origin:
        return True
    if origin.startswith("file://"):
        origin = "null"
    return origin in allowed_origins()


class SecurityHeadersMiddleware:
    """Add the static security headers both servers send on every response."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)
        response.setdefault("X-Content-Type-Options", "nosniff")
        response.setdefault("X-Frame-Options", "DENY")
        response.setdefault("X-XSS-Protection", "1; mode=block")
        return response


class CorsMiddleware:
    """Credentialed CORS for the payment backend.

    Preflight requests are answered here and never reach a view.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        origin = request.headers.get("Origin")
        if not origin_allowed(origin):
            logger.warning("CORS blocked request from origin: %s", origin)
            return JsonResponse({"error": "Not allowed by CORS"}, status=403)

        preflight = request.method == "OPTIONS" and "Access-Control-Request-Method" in request.headers
        response = HttpResponse(status=204) if preflight else self.get_response(request)

        if origin:
            response["Access-Control-Allow-Origin"] = origin
            response["Access-Control-Allow-Credentials"] = "true"
            patch_vary_headers(response, ("Origin",))
        if preflight:
            response["Access-Control-Allow-Methods"] = CORS_METHODS
            response["Access-Control-Allow-Headers"] = CORS_HEADERS
        return response
