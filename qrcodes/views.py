import logging
import math
import time
from collections import Counter
from datetime import datetime, time as dt_time, timedelta

from django.db import transaction
from django.db.models import Count, F, Q
from django.db.models.functions import TruncDate
from django.http import HttpResponseRedirect, JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from payments.utils import json_body
from .auth import qr_api
from .models import QRAccessLog, QRCode, QRScan
from .utils import (
    AccessDenied, Gone, NotFound, QRCodeError,
    client_ip, device_type, gen_code, parse_user_agent, parse_when, valid_target_url,
)

logger = logging.getLogger(__name__)

MAX_BULK = 100
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
DEFAULT_SCAN_LIMIT = 100
MAX_SCAN_LIMIT = 1000
TREND_DAYS = 30


def _body(request) -> dict:
    body = json_body(request)
    if body is None:
        raise QRCodeError("Invalid JSON body")
    return body


def _int_param(request, name, default, maximum):
    try:
        value = int(request.GET.get(name) or default)
    except ValueError:
        raise QRCodeError(f"Invalid {name}")
    return max(1, min(value, maximum))


def _aware(value, end_of_day=False):
    if value is None or isinstance(value, datetime):
        if value is not None and timezone.is_naive(value):
            return timezone.make_aware(value)
        return value
    moment = datetime.combine(value, dt_time.max if end_of_day else dt_time.min)
    return timezone.make_aware(moment)


def _log(request, qr_id, action, user_id="", **details):
    QRAccessLog.objects.create(
        qr_code_id=qr_id,
        user_id=user_id,
        action=action,
        ip_address=client_ip(request),
        user_agent=request.headers.get("User-Agent", ""),
        details=details,
    )


def _optional_fields(data: dict) -> dict:
    fields = {}
    if "description" in data:
        fields["description"] = data.get("description") or ""
    if "expiresAt" in data:
        fields["expires_at"] = _aware(parse_when(data.get("expiresAt")), end_of_day=True)
    if "maxScans" in data:
        max_scans = data.get("maxScans")
        if max_scans is not None and (isinstance(max_scans, bool) or not isinstance(max_scans, int) or max_scans < 1):
            raise QRCodeError("maxScans must be a positive integer")
        fields["max_scans"] = max_scans
    if "tags" in data:
        tags = data.get("tags") or []
        if not isinstance(tags, list):
            raise QRCodeError("tags must be a list")
        fields["tags"] = tags
    if "metadata" in data:
        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise QRCodeError("metadata must be an object")
        fields["metadata"] = metadata
    return fields


def _new_qr_code(user_id: str, data: dict) -> QRCode:
    title, target_url = data.get("title"), data.get("targetUrl")
    if not (isinstance(title, str) and title.strip()) or not target_url:
        raise QRCodeError("Title and target URL are required")
    if not valid_target_url(target_url):
        raise QRCodeError("Invalid target URL format")
    return QRCode(code=gen_code(), title=title.strip(), target_url=target_url, created_by=user_id,
                  **_optional_fields(data))


def _owned(request, pk) -> QRCode:
    qr = QRCode.objects.filter(pk=pk).first()
    if qr is None:
        raise NotFound("QR code not found")
    if qr.created_by != request.user_id:
        raise AccessDenied("Access denied")
    return qr


@csrf_exempt
@require_POST
@qr_api()
def generate_view(request):
    qr = _new_qr_code(request.user_id, _body(request))
    with transaction.atomic():
        qr.save()
        _log(request, qr.pk, "create", request.user_id)
    logger.info("QR code %s created by %s", qr.code, request.user_id)
    return JsonResponse({"success": True, "qrCode": qr.as_dict()})


@csrf_exempt
@require_POST
@qr_api()
def bulk_generate_view(request):
    started = time.monotonic()
    body = _body(request)
    items = body.get("qrCodes")
    if not isinstance(items, list) or not items:
        raise QRCodeError("No QR codes provided")
    if len(items) > MAX_BULK:
        raise QRCodeError(f"Maximum {MAX_BULK} QR codes allowed per request")
    options = body.get("options") if isinstance(body.get("options"), dict) else {}
    skip_duplicates = options.get("skipDuplicates", True)

    results = []
    for index, item in enumerate(items):
        try:
            if not isinstance(item, dict):
                raise QRCodeError("Title and target URL are required")
            qr = _new_qr_code(request.user_id, item)
            if skip_duplicates and QRCode.objects.filter(
                created_by=request.user_id, target_url=qr.target_url,
            ).exists():
                raise QRCodeError("QR code with this URL already exists")
            with transaction.atomic():
                qr.save()
                _log(request, qr.pk, "create", request.user_id, bulk=True, batchIndex=index)
        except QRCodeError as e:
            results.append({"success": False, "error": str(e), "index": index})
            continue
        results.append({"success": True, "qrCode": qr.as_dict(), "index": index})

    successful = sum(1 for r in results if r["success"])
    logger.info("Bulk QR generation by %s: %s/%s created", request.user_id, successful, len(items))
    return JsonResponse({
        "success": True,
        "results": results,
        "summary": {
            "total": len(items),
            "successful": successful,
            "failed": len(items) - successful,
            "processingTime": round((time.monotonic() - started) * 1000),
        },
    })


@require_GET
@qr_api(auth=False)
def track_view(request):
    """Public scan endpoint: record the scan and redirect to the target."""
    code = request.GET.get("code")
    if not code:
        raise QRCodeError("QR code parameter is required")
    qr = QRCode.objects.filter(code=code).first()
    if qr is None:
        raise QRCodeError("QR code not found")

    source = request.GET.get("source") or "direct"
    ip = client_ip(request)
    user_agent = request.headers.get("User-Agent", "")
    location = {"ip": ip, "country": request.headers.get("CF-IPCountry", "unknown"),
                "city": "unknown", "region": "unknown"}

    with transaction.atomic():
        # the counter only moves while the code is still scannable
        counted = QRCode.objects.scannable().filter(pk=qr.pk).update(current_scans=F("current_scans") + 1)
        if not counted:
            raise Gone("QR code is expired or inactive")
        QRScan.objects.create(
            qr_code=qr,
            ip_address=ip,
            user_agent=user_agent,
            referrer=request.headers.get("Referer", ""),
            location_data=location,
            device_info=parse_user_agent(user_agent),
            scan_source=source,
        )
        _log(request, qr.pk, "scan", scan_source=source, location=location)

    resp = HttpResponseRedirect(qr.target_url)
    resp["Cache-Control"] = "no-cache"
    return resp


@csrf_exempt
@require_http_methods(["GET", "POST"])
@qr_api()
def qr_codes_view(request):
    if request.method == "POST":
        raise QRCodeError("Use /api/qr-codes/generate to create QR codes")

    page = _int_param(request, "page", 1, 10 ** 6)
    limit = _int_param(request, "limit", DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE)
    qs = QRCode.objects.filter(created_by=request.user_id)
    search = request.GET.get("search")
    if search:
        qs = qs.filter(Q(title__icontains=search) | Q(description__icontains=search))
    is_active = request.GET.get("isActive")
    if is_active is not None:
        qs = qs.filter(is_active=is_active == "true")

    total = qs.count()
    start = (page - 1) * limit
    return JsonResponse({
        "success": True,
        "qrCodes": [qr.as_dict() for qr in qs[start:start + limit]],
        "pagination": {"page": page, "limit": limit, "total": total, "totalPages": math.ceil(total / limit)},
    })


@csrf_exempt
@require_http_methods(["GET", "PUT", "DELETE"])
@qr_api()
def qr_code_detail_view(request, pk):
    qr = _owned(request, pk)

    if request.method == "GET":
        return JsonResponse({"success": True, "qrCode": qr.as_dict()})

    if request.method == "DELETE":
        with transaction.atomic():
            qr.delete()
            _log(request, pk, "delete", request.user_id, code=qr.code)
        logger.info("QR code %s deleted by %s", pk, request.user_id)
        return JsonResponse({"success": True, "message": "QR code deleted successfully"})

    data = _body(request)
    fields = _optional_fields(data)
    if "title" in data:
        if not (isinstance(data["title"], str) and data["title"].strip()):
            raise QRCodeError("Title cannot be empty")
        fields["title"] = data["title"].strip()
    if "targetUrl" in data:
        if not valid_target_url(data["targetUrl"]):
            raise QRCodeError("Invalid target URL format")
        fields["target_url"] = data["targetUrl"]
    if "isActive" in data:
        if not isinstance(data["isActive"], bool):
            raise QRCodeError("isActive must be a boolean")
        fields["is_active"] = data["isActive"]

    for name, value in fields.items():
        setattr(qr, name, value)
    with transaction.atomic():
        qr.save()
        _log(request, qr.pk, "update", request.user_id, fields_updated=sorted(fields))
    return JsonResponse({"success": True, "qrCode": qr.as_dict()})


def _scan_summary(scans) -> dict:
    rows = list(scans.values("ip_address", "device_info", "scan_source"))
    return {
        "totalScans": len(rows),
        "uniqueIps": len({r["ip_address"] for r in rows}),
        "byDevice": dict(Counter(device_type(r["device_info"] or {}) for r in rows)),
        "byBrowser": dict(Counter((r["device_info"] or {}).get("browser", "unknown") for r in rows)),
        "byOs": dict(Counter((r["device_info"] or {}).get("os", "unknown") for r in rows)),
        "bySource": dict(Counter(r["scan_source"] for r in rows)),
    }


@require_GET
@qr_api()
def analytics_view(request, pk):
    qr = _owned(request, pk)
    limit = _int_param(request, "limit", DEFAULT_SCAN_LIMIT, MAX_SCAN_LIMIT)
    start = _aware(parse_when(request.GET.get("startDate")))
    end = _aware(parse_when(request.GET.get("endDate")), end_of_day=True)

    scans = qr.scans.all()
    if start:
        scans = scans.filter(scanned_at__gte=start)
    if end:
        scans = scans.filter(scanned_at__lte=end)

    since = timezone.now() - timedelta(days=TREND_DAYS)
    trends = (
        qr.scans.filter(scanned_at__gte=since)
        .annotate(day=TruncDate("scanned_at"))
        .values("day")
        .annotate(scans=Count("id"))
        .order_by("day")
    )
    return JsonResponse({
        "success": True,
        "analytics": [scan.as_dict() for scan in scans.order_by("-scanned_at")[:limit]],
        "summary": _scan_summary(scans),
        "trends": [{"date": row["day"].isoformat(), "scans": row["scans"]} for row in trends],
    })
