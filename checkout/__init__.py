from .client import KeyConfigurationError, PaymentApiClient, PaymentServiceError
from .config import PaymentClientConfig, resolve_base_url
from .session import CheckoutError, CheckoutSession, PaymentFailure, PaymentSuccess

__all__ = [
    "CheckoutError",
    "CheckoutSession",
    "KeyConfigurationError",
    "PaymentApiClient",
    "PaymentClientConfig",
    "PaymentFailure",
    "PaymentServiceError",
    "PaymentSuccess",
    "resolve_base_url",
]
