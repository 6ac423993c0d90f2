import re
import secrets
import string
import time

from django.core.exceptions import ValidationError
from django.core.validators import URLValidator
from django.utils.dateparse import parse_date, parse_datetime

BASE36 = string.digits + string.ascii_lowercase

_validate_url = URLValidator(schemes=["http", "https"])


class QRCodeError(Exception):
    status = 400


class Unauthorized(QRCodeError):
    status = 401


class AccessDenied(QRCodeError):
    status = 403


class NotFound(QRCodeError):
    status = 404


class Gone(QRCodeError):
    status = 410


def gen_code() -> str:
    suffix = "".join(secrets.choice(BASE36) for _ in range(9))
    return f"SSPL-{int(time.time() * 1000)}-{suffix}"


def valid_target_url(url) -> bool:
    if not isinstance(url, str):
        return False
    try:
        _validate_url(url)
    except ValidationError:
        return False
    return True


def parse_when(value):
    """ISO date or datetime from a query string or JSON body; None when absent."""
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        raise QRCodeError(f"Invalid date: {value!r}")
    try:
        parsed = parse_datetime(value) or parse_date(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise QRCodeError(f"Invalid date: {value}")
    return parsed


def client_ip(request) -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return (request.headers.get("X-Real-IP") or request.headers.get("CF-Connecting-IP")
            or request.META.get("REMOTE_ADDR") or "unknown")


_MOBILE = re.compile(r"Mobile|Android|iPhone|iPod|BlackBerry|IEMobile|Opera Mini", re.I)
_TABLET = re.compile(r"iPad|Tablet|Android(?!.*Mobile)", re.I)
# most specific first; Edge and Opera also advertise Chrome, Chrome advertises Safari
_BROWSERS = (("Edg", "Edge"), ("OPR", "Opera"), ("Opera", "Opera"), ("Chrome", "Chrome"),
             ("Firefox", "Firefox"), ("Safari", "Safari"))
_SYSTEMS = (("Android", "Android"), ("iPhone", "iOS"), ("iPad", "iOS"), ("iOS", "iOS"),
            ("Windows", "Windows"), ("Mac OS X", "macOS"), ("Linux", "Linux"))


def _first_match(user_agent, table):
    for needle, name in table:
        if needle in user_agent:
            return name
    return "unknown"


def parse_user_agent(user_agent: str) -> dict:
    user_agent = user_agent or ""
    is_tablet = bool(_TABLET.search(user_agent))
    is_mobile = bool(_MOBILE.search(user_agent)) and not is_tablet
    return {
        "browser": _first_match(user_agent, _BROWSERS),
        "os": _first_match(user_agent, _SYSTEMS),
        "isMobile": is_mobile,
        "isTablet": is_tablet,
        "isDesktop": not (is_mobile or is_tablet),
        "userAgent": user_agent,
    }


def device_type(device_info: dict) -> str:
    if device_info.get("isTablet"):
        return "tablet"
    if device_info.get("isMobile"):
        return "mobile"
    return "desktop"
