from .base import *

INSTALLED_APPS = INSTALLED_APPS + [
    "payments.apps.PaymentsConfig",
    "registrations",
    "qrcodes",
]

MIDDLEWARE = MIDDLEWARE[:1] + ["sspl.middleware.CorsMiddleware"] + MIDDLEWARE[1:]

ROOT_URLCONF = "sspl.urls"
