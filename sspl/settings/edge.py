import os

from .base import *

INSTALLED_APPS = INSTALLED_APPS + [
    "edge",
]

# WhiteNoise serves the built SPA from the site root
MIDDLEWARE = MIDDLEWARE[:2] + ["whitenoise.middleware.WhiteNoiseMiddleware"] + MIDDLEWARE[2:]

SPA_DIST_DIR = os.getenv("SPA_DIST_DIR", str(BASE_DIR / "dist"))
WHITENOISE_ROOT = SPA_DIST_DIR
WHITENOISE_MAX_AGE = 24 * 60 * 60

BACKEND_URL = os.getenv("BACKEND_URL", "http://127.0.0.1:3001")
EDGE_PROXY_TIMEOUT = float(os.getenv("EDGE_PROXY_TIMEOUT", "30"))

ROOT_URLCONF = "edge.urls"
