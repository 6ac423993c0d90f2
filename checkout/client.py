import logging

import requests
from requests import RequestException

logger = logging.getLogger(__name__)

KEY_PREFIXES = ("rzp_test_", "rzp_live_")
MIN_KEY_LENGTH = 20
# response shapes served by different backend deployments
KEY_FIELDS = ("razorpayKeyId", "key", "publicKey", "razorpay_key_id")
JSON_HEADERS = {"Content-Type": "application/json"}


class PaymentServiceError(Exception):
    def __init__(self, message, status=None, body=None):
        super().__init__(message)
        self.status = status
        self.body = body


class KeyConfigurationError(Exception):
    pass


def _mask(key: str) -> str:
    return f"{key[:8]}...{key[-4:]}"


def validate_key_id(key_id) -> str:
    key_id = str(key_id or "")
    if len(key_id) < MIN_KEY_LENGTH:
        raise KeyConfigurationError(f"Invalid Razorpay key: {key_id}")
    if not key_id.startswith(KEY_PREFIXES):
        raise KeyConfigurationError(f"Invalid Razorpay key format: {key_id}")
    return key_id


class PaymentApiClient:
    """Talks to the payment backend on behalf of the checkout page.

    Holds no secret; the only credential it ever sees is the public key id.
    """

    def __init__(self, config, session=None):
        self.config = config
        self.http = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.config.base_url}/{path.lstrip('/')}"

    def _post(self, path, payload, action):
        url = self._url(path)
        try:
            resp = self.http.post(url, json=payload, headers=JSON_HEADERS, timeout=self.config.timeout)
        except RequestException as e:
            logger.error("%s request to %s failed: %s", action, url, e)
            raise PaymentServiceError(f"{action} failed: {e}")
        if not resp.ok:
            logger.error("%s failed with status %s: %s", action, resp.status_code, resp.text)
            raise PaymentServiceError(
                f"{action} failed: {resp.status_code} {resp.reason} - {resp.text}",
                status=resp.status_code,
                body=resp.text,
            )
        return resp.json()

    def create_order(self, amount, metadata=None, idempotency_key=None) -> dict:
        payload = {"amount": amount, **(metadata or {})}
        if idempotency_key:
            payload["idempotencyKey"] = idempotency_key
        order = self._post("razorpay/create-order", payload, "Failed to create order")
        logger.info("Order created: %s", order.get("id"))
        return order

    def _fetch_key_id(self) -> str:
        url = self._url("config")
        try:
            resp = self.http.get(url, timeout=self.config.timeout)
            if resp.ok:
                data = resp.json() or {}
                for field in KEY_FIELDS:
                    if data.get(field):
                        key_id = str(data[field])
                        logger.info("Using backend key id %s", _mask(key_id))
                        return key_id
            else:
                logger.warning("GET %s returned status %s, falling back to build-time key", url, resp.status_code)
        except (RequestException, ValueError) as e:
            logger.warning("Error fetching %s, falling back to build-time key: %s", url, e)

        if not self.config.fallback_key_id:
            raise KeyConfigurationError(
                "Razorpay key not available: /config failed and no build-time key id is configured"
            )
        logger.info("Using build-time key id %s", _mask(self.config.fallback_key_id))
        return self.config.fallback_key_id

    def get_public_key_id(self) -> str:
        return validate_key_id(self.config.key_id(self._fetch_key_id))

    def verify_payment(self, payment_id, order_id, signature, registration_id=None, amount=None) -> dict:
        payload = {"paymentId": payment_id, "orderId": order_id, "signature": signature}
        if registration_id:
            payload["registrationId"] = registration_id
        if amount:
            payload["amount"] = amount
        return self._post("razorpay/verify-payment", payload, "Payment verification")

    def cancel_payment(self, payment_id) -> dict:
        if not payment_id or not isinstance(payment_id, str) or not payment_id.startswith("pay_"):
            raise ValueError("Invalid paymentId")
        url = self._url("razorpay/cancel")
        try:
            resp = self.http.post(url, json={"paymentId": payment_id}, headers=JSON_HEADERS,
                                  timeout=self.config.timeout)
        except RequestException as e:
            raise PaymentServiceError(f"Cancel failed: {e}")
        try:
            data = resp.json() if resp.text else {}
        except ValueError:
            data = {"raw": resp.text}
        if not resp.ok:
            razorpay_error = data.get("razorpay") if isinstance(data.get("razorpay"), dict) else {}
            desc = data.get("error") or razorpay_error.get("description") or resp.text or "Cancel failed"
            raise PaymentServiceError(desc, status=resp.status_code, body=resp.text)
        return data
