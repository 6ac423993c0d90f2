import logging
import re
import threading
from urllib.parse import urlsplit, urlunsplit

logger = logging.getLogger(__name__)

LOCAL_HOSTS = ("localhost", "127.0.0.1")
LOCAL_BACKEND = "http://127.0.0.1:3001/api"
DEV_SERVER_PORT = "5173"
DEFAULT_RELATIVE_BASE = "/api"
DEFAULT_TIMEOUT = 30


def _normalize_api_url(url: str) -> str:
    parts = urlsplit(url)
    path = parts.path.rstrip("/")
    if not path.startswith("/api"):
        path = f"{path}/api"
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment)).rstrip("/")


def _local_host(hostname, port, build_time_url, relative_base):
    if hostname in LOCAL_HOSTS:
        return LOCAL_BACKEND


def _build_time_absolute(hostname, port, build_time_url, relative_base):
    if build_time_url and re.match(r"^https?:", build_time_url, re.I):
        return _normalize_api_url(build_time_url)


def _dev_server_port(hostname, port, build_time_url, relative_base):
    if hostname in LOCAL_HOSTS and str(port or "") == DEV_SERVER_PORT:
        return LOCAL_BACKEND


def _relative_configured(hostname, port, build_time_url, relative_base):
    if relative_base and relative_base.startswith("/"):
        return relative_base.rstrip("/") or "/"


def _relative_default(hostname, port, build_time_url, relative_base):
    return DEFAULT_RELATIVE_BASE


# tried in order, first non-empty answer wins
BASE_URL_STRATEGIES = (
    ("local-host", _local_host),
    ("build-time-absolute", _build_time_absolute),
    ("dev-server-port", _dev_server_port),
    ("relative-configured", _relative_configured),
    ("relative-default", _relative_default),
)


def resolve_base_url(hostname=None, port=None, build_time_url=None, relative_base=None):
    """Pick the payments API base for the page the client runs on.

    Returns ``(strategy_name, base_url)``.
    """
    for name, strategy in BASE_URL_STRATEGIES:
        base = strategy(hostname or "", port, build_time_url, relative_base)
        if base:
            logger.debug("Using API base URL %s (%s)", base, name)
            return name, base
    raise AssertionError("relative-default always resolves")


class PaymentClientConfig:
    """Explicit configuration for :class:`checkout.client.PaymentApiClient`.

    ``fallback_key_id`` is the build-time public key, used only when the
    backend's ``/config`` endpoint cannot answer. The resolved key id is cached
    on this object, fetched at most once even under concurrent callers.
    """

    def __init__(self, base_url, fallback_key_id=None, timeout=DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.fallback_key_id = fallback_key_id or None
        self.timeout = timeout
        self._key_id = None
        self._key_lock = threading.Lock()

    @classmethod
    def for_location(cls, hostname=None, port=None, build_time_url=None, relative_base=None, **kwargs):
        _, base_url = resolve_base_url(hostname, port, build_time_url, relative_base)
        return cls(base_url, **kwargs)

    @classmethod
    def from_settings(cls, **kwargs):
        from django.conf import settings

        kwargs.setdefault("fallback_key_id", getattr(settings, "RAZORPAY_PUBLIC_KEY_ID", None))
        kwargs.setdefault("timeout", getattr(settings, "RAZORPAY_TIMEOUT", DEFAULT_TIMEOUT))
        return cls.for_location(build_time_url=getattr(settings, "PAYMENTS_API_URL", None), **kwargs)

    @property
    def cached_key_id(self):
        return self._key_id

    def key_id(self, fetch):
        """Return the cached key id, calling ``fetch()`` to fill it the first time."""
        if self._key_id:
            return self._key_id
        with self._key_lock:
            if not self._key_id:
                self._key_id = fetch()
        return self._key_id

    def reset(self):
        with self._key_lock:
            self._key_id = None
