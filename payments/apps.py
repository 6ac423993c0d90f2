import logging

from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger(__name__)

REQUIRED_SETTINGS = ("RAZORPAY_KEY_ID", "RAZORPAY_KEY_SECRET")


def validate_gateway_settings():
    """Refuse to boot the payment backend without gateway credentials."""
    missing = [name for name in REQUIRED_SETTINGS if not getattr(settings, name, "")]
    if missing:
        logger.critical("Missing required server environment variables: %s", ", ".join(missing))
        raise ImproperlyConfigured(
            f"Missing required server environment variables: {', '.join(missing)}"
        )


class PaymentsConfig(AppConfig):
    name = "payments"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self):
        validate_gateway_settings()
