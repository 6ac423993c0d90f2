from pathlib import Path
import os

import dj_database_url
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent.parent

# ---------------------------------------------------------
# Environment
# ---------------------------------------------------------
SSPL_ENV = os.getenv("SSPL_ENV", "development")
_ENV_FILES = {
    "production": ".env.production",
    "preview": ".env.preview",
}
load_dotenv(BASE_DIR / _ENV_FILES.get(SSPL_ENV, ".env"))

IS_PRODUCTION = SSPL_ENV == "production"

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "sspl-dev-only-secret-key")
DEBUG = os.getenv("DJANGO_DEBUG", "false" if IS_PRODUCTION else "true").lower() in ("1", "true", "yes")
ALLOWED_HOSTS = [h.strip() for h in os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",") if h.strip()]


# ---------------------------------------------------------
# Application definition
# ---------------------------------------------------------
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "sspl.middleware.SecurityHeadersMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "sspl.wsgi.application"

# "/create-order" and "/api/razorpay/create-order" are both valid routes
APPEND_SLASH = False
X_FRAME_OPTIONS = "DENY"


# ---------------------------------------------------------
# Database
# ---------------------------------------------------------
HAS_DATABASE_URL = bool(os.getenv("DATABASE_URL"))
DATABASES = {
    "default": dj_database_url.config(
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
    )
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "sspl",
    }
}


# ---------------------------------------------------------
# Internationalization
# ---------------------------------------------------------
LANGUAGE_CODE = "en-us"
TIME_ZONE = "Asia/Kolkata"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# ---------------------------------------------------------
# Razorpay
# ---------------------------------------------------------
RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "")
RAZORPAY_API_BASE = os.getenv("RAZORPAY_API_BASE", "https://api.razorpay.com/v1")
RAZORPAY_TIMEOUT = float(os.getenv("RAZORPAY_TIMEOUT", "30"))
RAZORPAY_ORDER_IDEMPOTENCY_SECONDS = 15 * 60

# Extra CORS origins for production, comma separated
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "")


# ---------------------------------------------------------
# Hosted auth / database (Supabase)
# ---------------------------------------------------------
SUPABASE_URL = os.getenv("SUPABASE_URL") or os.getenv("VITE_SUPABASE_URL", "")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY") or os.getenv("VITE_SUPABASE_ANON_KEY", "")
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET", "")


# ---------------------------------------------------------
# Registration / client
# ---------------------------------------------------------
REGISTRATION_FEE = int(os.getenv("REGISTRATION_FEE", "699"))
PAYMENTS_API_URL = os.getenv("PAYMENTS_API_URL") or os.getenv("VITE_API_URL", "")
RAZORPAY_PUBLIC_KEY_ID = os.getenv("RAZORPAY_PUBLIC_KEY_ID") or os.getenv("VITE_RAZORPAY_KEY_ID", "")


# ---------------------------------------------------------
# Logging
# ---------------------------------------------------------
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "root": {"handlers": ["console"], "level": os.getenv("LOG_LEVEL", "INFO")},
}
