from django.core.exceptions import ImproperlyConfigured
from django.core.management.base import BaseCommand, CommandError

from payments.integrations.razorpay import RazorpayError, check_credentials, mask_key


class Command(BaseCommand):
    help = "Check Razorpay credentials without creating any order"

    def handle(self, *args, **opts):
        from django.conf import settings

        key_id = getattr(settings, "RAZORPAY_KEY_ID", "")
        self.stdout.write(f"Using key id {mask_key(key_id)} (env={settings.SSPL_ENV})")
        try:
            result = check_credentials()
        except (RazorpayError, ImproperlyConfigured) as e:
            raise CommandError(f"Razorpay check failed: {e}")
        self.stdout.write(self.style.SUCCESS(f"Razorpay API is accessible ({result['count']} order(s) listed)"))
