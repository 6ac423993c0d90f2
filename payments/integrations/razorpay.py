import hashlib
import hmac
import logging
import time
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

import razorpay
from razorpay.errors import BadRequestError, GatewayError, ServerError
import requests
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from requests import RequestException
from requests.auth import HTTPBasicAuth
from urllib.parse import quote

logger = logging.getLogger(__name__)

CURRENCY = "INR"
COMMON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


class RazorpayError(Exception):
    pass


def _credentials() -> tuple[str, str]:
    key_id = getattr(settings, "RAZORPAY_KEY_ID", "")
    secret = getattr(settings, "RAZORPAY_KEY_SECRET", "")
    if not (key_id and secret):
        raise ImproperlyConfigured("RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET are required")
    return key_id, secret


def mask_key(key: str) -> str:
    key = str(key or "")
    return f"{key[:8]}...{key[-4:]}" if len(key) > 12 else "***"


def get_client() -> razorpay.Client:
    return razorpay.Client(auth=_credentials())


def to_minor_units(amount) -> int:
    """Rupees -> paise, rounding half up like the checkout widget does."""
    try:
        value = Decimal(str(amount)) * 100
    except InvalidOperation:
        raise RazorpayError("Invalid amount value")
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def gen_receipt(prefix: str = "sspl") -> str:
    return f"{prefix}_{int(time.time() * 1000)}"


def create_order(amount, *, receipt: str | None = None, notes: dict | None = None) -> dict:
    """Create a gateway order for ``amount`` whole rupees.

    Single attempt; any SDK or transport failure is raised as
    :class:`RazorpayError` carrying the gateway's message.
    """
    data = {
        "amount": to_minor_units(amount),
        "currency": CURRENCY,
        "receipt": receipt or gen_receipt(),
        "payment_capture": 1,
    }
    if notes:
        data["notes"] = notes
    try:
        order = get_client().order.create(data=data)
    except (BadRequestError, ServerError, GatewayError, RequestException) as e:
        raise RazorpayError(str(e) or "Failed to create order") from e
    logger.info("Razorpay order created: %s (%s paise)", order.get("id"), data["amount"])
    return order


def generate_signature(order_id: str, payment_id: str, secret: str | None = None) -> str:
    secret = secret if secret is not None else _credentials()[1]
    msg = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), msg, hashlib.sha256).hexdigest()


def verify_signature(order_id: str, payment_id: str, signature: str) -> bool:
    """Recompute the checkout signature with our secret and compare in constant time."""
    expected = generate_signature(order_id, payment_id)
    return hmac.compare_digest(expected, (signature or "").strip())


def cancel_payment(payment_id: str) -> tuple[int, dict | None]:
    """Void an authorized payment. Returns (status_code, parsed body)."""
    key_id, secret = _credentials()
    base = settings.RAZORPAY_API_BASE.rstrip("/")
    url = f"{base}/payments/{quote(payment_id, safe='')}/cancel"
    headers = dict(COMMON_HEADERS)
    headers["X-Razorpay-Idempotency-Key"] = f"cancel-{payment_id}-v1"
    try:
        resp = requests.post(
            url, json={}, headers=headers,
            auth=HTTPBasicAuth(key_id, secret),
            timeout=settings.RAZORPAY_TIMEOUT,
        )
    except RequestException as e:
        raise RazorpayError(f"Gateway request failed: {e}") from e
    try:
        data = resp.json()
    except ValueError:
        data = None
    return resp.status_code, data


def check_credentials() -> dict:
    """Read-only connectivity check: list a single order."""
    try:
        result = get_client().order.all({"count": 1})
    except (BadRequestError, ServerError, GatewayError, RequestException) as e:
        raise RazorpayError(str(e) or "Razorpay API unreachable") from e
    return {"count": result.get("count", 0)}
