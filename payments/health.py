import logging
import time

import requests
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.views.decorators.http import require_GET

from sspl.health import HTTP_STATUS, base_payload, failed, ok, overall_status
from .integrations.razorpay import RazorpayError, check_credentials

logger = logging.getLogger(__name__)

SUPABASE_TIMEOUT = 5


def _check_razorpay() -> dict:
    try:
        check_credentials()
    except (RazorpayError, ImproperlyConfigured) as e:
        logger.warning("Razorpay health check failed: %s", e)
        return failed("Razorpay API error", e)
    return ok("Razorpay API is accessible")


def _check_database() -> dict:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError as e:
        logger.warning("Database health check failed: %s", e)
        return failed("Database connection failed", e)
    return ok("Database connection successful")


def _check_supabase() -> dict:
    url = f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/health"
    try:
        resp = requests.get(url, headers={"apikey": settings.SUPABASE_ANON_KEY}, timeout=SUPABASE_TIMEOUT)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.warning("Supabase health check failed: %s", e)
        return failed("Supabase connection failed", e)
    return ok("Supabase connection successful")


@require_GET
def health_view(request):
    return JsonResponse(base_payload("Razorpay server is running"))


@require_GET
def health_detailed_view(request):
    started = time.monotonic()
    payload = base_payload("Backend server health check")

    services = {"razorpay": _check_razorpay()}
    if settings.HAS_DATABASE_URL:
        services["database"] = _check_database()
    if settings.SUPABASE_URL and settings.SUPABASE_ANON_KEY:
        services["supabase"] = _check_supabase()

    payload["services"] = services
    payload["status"] = overall_status(services)
    payload["responseTime"] = round((time.monotonic() - started) * 1000)
    return JsonResponse(payload, status=HTTP_STATUS[payload["status"]])
