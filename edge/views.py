import logging
import os
import time
from datetime import datetime, timezone as dt_timezone

import requests
from django.conf import settings
from django.http import FileResponse, HttpResponse, JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET

from sspl.health import HTTP_STATUS, base_payload, failed, ok, overall_status
from sspl.views import error_404_view

logger = logging.getLogger(__name__)

# never copied from the inbound request
SKIP_REQUEST_HEADERS = {"host", "content-length", "content-type"}
# already consumed by requests when it read the upstream body
SKIP_RESPONSE_HEADERS = {"content-length", "content-encoding", "transfer-encoding", "connection", "keep-alive"}
BODYLESS_METHODS = {"GET", "HEAD"}

DEFAULT_ORIGIN = "http://localhost:5173"
DEFAULT_ALLOW_HEADERS = "Content-Type, Authorization, X-Requested-With"
PREFLIGHT_MAX_AGE = 24 * 60 * 60
BACKEND_HEALTH_TIMEOUT = 5

UNAVAILABLE_MESSAGE = "The payment service is currently unavailable. Please try again later."


def _dist_path(*parts) -> str:
    return os.path.join(settings.SPA_DIST_DIR, *parts)


def preflight(request):
    resp = HttpResponse(status=200)
    resp["Vary"] = "Origin, Access-Control-Request-Headers, Access-Control-Request-Method"
    resp["Access-Control-Allow-Origin"] = request.headers.get("Origin") or DEFAULT_ORIGIN
    resp["Access-Control-Allow-Methods"] = "GET,POST,PUT,PATCH,DELETE,OPTIONS"
    resp["Access-Control-Allow-Headers"] = (
        request.headers.get("Access-Control-Request-Headers") or DEFAULT_ALLOW_HEADERS
    )
    resp["Access-Control-Allow-Credentials"] = "true"
    resp["Access-Control-Max-Age"] = str(PREFLIGHT_MAX_AGE)
    return resp


def forward_headers(request) -> dict:
    client_ip = request.META.get("REMOTE_ADDR", "")
    headers = {
        "x-forwarded-for": client_ip,
        "x-forwarded-proto": request.scheme,
        "x-forwarded-host": request.META.get("HTTP_HOST", ""),
        "x-real-ip": client_ip,
    }
    for key, value in request.headers.items():
        key = key.lower()
        if key in SKIP_REQUEST_HEADERS:
            continue
        headers[key] = value
    headers["content-type"] = request.headers.get("Content-Type") or "application/json"
    return headers


def forward_body(request) -> bytes | None:
    if request.method in BODYLESS_METHODS:
        return None
    return request.body or b"{}"


def proxy(request):
    target = f"{settings.BACKEND_URL.rstrip('/')}{request.get_full_path()}"
    try:
        upstream = requests.request(
            request.method,
            target,
            headers=forward_headers(request),
            data=forward_body(request),
            timeout=settings.EDGE_PROXY_TIMEOUT,
            allow_redirects=False,
        )
    except requests.RequestException:
        logger.exception("Backend proxy error for %s %s", request.method, target)
        return JsonResponse(
            {
                "error": "Backend Service Unavailable",
                "message": UNAVAILABLE_MESSAGE,
                "timestamp": timezone.now().isoformat(),
            },
            status=500,
        )

    resp = HttpResponse(upstream.content, status=upstream.status_code)
    for key, value in upstream.headers.items():
        if key.lower() not in SKIP_RESPONSE_HEADERS:
            resp[key] = value
    return resp


@csrf_exempt
def api_view(request, path=""):
    if request.method == "OPTIONS":
        return preflight(request)
    return proxy(request)


@require_GET
def health_view(request):
    return JsonResponse(base_payload("Frontend server is running"))


def _check_static_dir() -> dict:
    dist = _dist_path()
    try:
        if not (os.path.isdir(dist) and os.access(dist, os.R_OK)):
            raise FileNotFoundError(f"{dist} is not a readable directory")
        mtime = os.stat(dist).st_mtime
    except OSError as e:
        return failed("Static files directory error", e)
    modified = datetime.fromtimestamp(mtime, tz=dt_timezone.utc).isoformat()
    return ok("Static files directory is accessible", lastModified=modified)


def _check_backend() -> dict:
    try:
        resp = requests.get(f"{settings.BACKEND_URL.rstrip('/')}/health", timeout=BACKEND_HEALTH_TIMEOUT)
        if resp.status_code != 200:
            raise requests.RequestException(f"Backend returned status {resp.status_code}")
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("Backend connectivity failed: %s", e)
        return failed("Backend connectivity failed", e)
    if not isinstance(data, dict):
        data = {}
    return ok("Backend is reachable", backendStatus=data.get("status"), backendUptime=data.get("uptime"))


def _check_index() -> dict:
    index = _dist_path("index.html")
    if not (os.path.isfile(index) and os.access(index, os.R_OK)):
        return failed("Index file error", f"{index} is not readable")
    return ok("Index file is accessible")


@require_GET
def health_detailed_view(request):
    started = time.monotonic()
    payload = base_payload("Frontend server health check")
    services = {
        "staticFiles": _check_static_dir(),
        "backend": _check_backend(),
        "indexFile": _check_index(),
    }
    payload["services"] = services
    payload["status"] = overall_status(services, critical=("indexFile",))
    payload["responseTime"] = round((time.monotonic() - started) * 1000)
    return JsonResponse(payload, status=HTTP_STATUS[payload["status"]])


@require_GET
def service_worker_view(request):
    path = _dist_path("custom-sw.js")
    if not os.path.isfile(path):
        return error_404_view(request)
    return FileResponse(open(path, "rb"), content_type="application/javascript")


def spa_fallback_view(request, path=""):
    """Client-side routes all render the built index.html."""
    index = _dist_path("index.html")
    if request.method not in BODYLESS_METHODS or not os.path.isfile(index):
        return error_404_view(request)
    return FileResponse(open(index, "rb"), content_type="text/html; charset=utf-8")
