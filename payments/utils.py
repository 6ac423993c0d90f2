import json
import math

from django.conf import settings
from django.core.cache import cache

from .integrations.razorpay import to_minor_units

# Razorpay accepts at most 15 note keys of up to 256 chars each
MAX_NOTES = 15
MAX_NOTE_LEN = 256
NOTE_FIELDS = ("full_name", "email", "phone", "registrationId", "team")
MAX_IDEMPOTENCY_KEY_LEN = 64


def json_body(request):
    try:
        body = json.loads(request.body.decode("utf-8") or "{}")
    except (ValueError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None


def valid_amount(value) -> bool:
    # bool is an int subclass; JSON true must not pass as 1 rupee
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    # anything that rounds to zero paise cannot be charged
    return math.isfinite(value) and value > 0 and to_minor_units(value) >= 1


def order_notes(body: dict) -> dict:
    notes = {}
    for field in NOTE_FIELDS:
        value = body.get(field)
        if isinstance(value, str) and value.strip():
            notes[field] = value.strip()[:MAX_NOTE_LEN]
        if len(notes) >= MAX_NOTES:
            break
    return notes


def idempotency_key(request, body: dict) -> str | None:
    raw = request.headers.get("Idempotency-Key") or body.get("idempotencyKey")
    if not isinstance(raw, str):
        return None
    raw = raw.strip()
    return raw[:MAX_IDEMPOTENCY_KEY_LEN] or None


def _order_cache_key(key: str) -> str:
    return f"rzp-order:{key}"


def remembered_order(key: str | None):
    return cache.get(_order_cache_key(key)) if key else None


def remember_order(key: str | None, order: dict) -> None:
    if key:
        cache.set(_order_cache_key(key), order, settings.RAZORPAY_ORDER_IDEMPOTENCY_SECONDS)
