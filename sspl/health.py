import platform
import time

from django.conf import settings
from django.utils import timezone

_STARTED = time.monotonic()

HTTP_STATUS = {"ok": 200, "degraded": 206, "error": 503}


def uptime() -> float:
    return round(time.monotonic() - _STARTED, 3)


def base_payload(message: str) -> dict:
    return {
        "status": "ok",
        "message": message,
        "environment": settings.SSPL_ENV,
        "timestamp": timezone.now().isoformat(),
        "uptime": uptime(),
        "version": platform.python_version(),
    }


def ok(message: str, **extra) -> dict:
    return {"status": "ok", "message": message, **extra}


def failed(message: str, error) -> dict:
    return {"status": "error", "message": f"{message}: {error}", "error": str(error)}


def overall_status(services: dict, critical=()) -> str:
    """A failing critical service is an error, any other failure only degrades."""
    down = {name for name, result in services.items() if result.get("status") != "ok"}
    if down & set(critical):
        return "error"
    return "degraded" if down else "ok"
