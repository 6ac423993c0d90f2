import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP

logger = logging.getLogger(__name__)

IDLE = "idle"
ORDER_CREATED = "order_created"
CHECKOUT_OPEN = "checkout_open"
VERIFIED = "verified"
FAILED = "failed"
CANCELLED = "cancelled"
TERMINAL_STATES = frozenset({VERIFIED, FAILED, CANCELLED})

PAYMENT_CANCELLED = "PAYMENT_CANCELLED"


class CheckoutError(Exception):
    pass


@dataclass(frozen=True)
class PaymentSuccess:
    payment_id: str
    order_id: str
    signature: str

    @classmethod
    def from_handler(cls, payload: dict) -> "PaymentSuccess":
        return cls(
            payment_id=payload.get("razorpay_payment_id", ""),
            order_id=payload.get("razorpay_order_id", ""),
            signature=payload.get("razorpay_signature", ""),
        )


@dataclass(frozen=True)
class PaymentFailure:
    """A failed or abandoned checkout, normalised once when it leaves the widget.

    ``kind`` is ``structured`` (the gateway sent an ``error`` object), ``raw``
    (anything else) or ``cancelled`` (the customer closed the modal).
    """

    kind: str
    code: str | None = None
    description: str | None = None
    reason: str | None = None
    source: str | None = None
    step: str | None = None
    metadata: dict = field(default_factory=dict)
    http_status: int | None = None

    @property
    def is_cancelled(self) -> bool:
        return self.kind == "cancelled"

    @classmethod
    def from_event(cls, payload, order_id=None) -> "PaymentFailure":
        error = payload.get("error") if isinstance(payload, dict) else None
        if isinstance(error, dict):
            return cls(
                kind="structured",
                code=error.get("code"),
                description=error.get("description"),
                reason=error.get("reason"),
                source=error.get("source"),
                step=error.get("step"),
                metadata=dict(error.get("metadata") or {}),
                http_status=error.get("http_status"),
            )
        return cls(
            kind="raw",
            description=payload if isinstance(payload, str) else "Payment failed",
            metadata={"order_id": order_id},
        )

    @classmethod
    def cancelled(cls, order_id=None) -> "PaymentFailure":
        return cls(
            kind="cancelled",
            code=PAYMENT_CANCELLED,
            description="Payment closed by user",
            reason="payment_cancelled",
            source="customer",
            step="modal_dismiss",
            metadata={"order_id": order_id},
        )


def _paise(amount) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class CheckoutSession:
    """One customer's checkout attempts, with at most one widget open at a time.

    ``widget_factory(options)`` builds a gateway checkout widget exposing
    ``open()``, ``close()`` and ``on(event, callback)``; the success handler
    and ``modal.ondismiss`` travel inside ``options`` as in ``checkout.js``.
    Callbacks from a replaced widget, or arriving after the attempt reached a
    terminal state, are dropped.
    """

    def __init__(self, client, widget_factory, name="SSPL T10", currency="INR", theme_color="#3399cc"):
        self.client = client
        self.widget_factory = widget_factory
        self.name = name
        self.currency = currency
        self.theme_color = theme_color
        self.state = IDLE
        self.order = None
        self.payment = None
        self.failure = None
        self._widget = None
        self._attempt = 0
        self._disposed = False

    @property
    def is_open(self) -> bool:
        return self._widget is not None

    def _transition(self, state):
        logger.debug("Checkout attempt %s: %s -> %s", self._attempt, self.state, state)
        self.state = state

    def _live(self, attempt) -> bool:
        return not self._disposed and attempt == self._attempt and self.state not in TERMINAL_STATES

    def create_order(self, amount, metadata=None, idempotency_key=None) -> dict:
        if self._disposed:
            raise CheckoutError("Checkout session has been disposed")
        self.close()
        self._attempt += 1
        self.order = self.payment = self.failure = None
        self._transition(IDLE)
        self.order = self.client.create_order(amount, metadata, idempotency_key=idempotency_key)
        self._transition(ORDER_CREATED)
        return self.order

    def open(self, amount, customer_name, customer_email, customer_phone,
             on_success, on_failure, on_dismiss=None, order_id=None):
        if self.state not in (ORDER_CREATED, CHECKOUT_OPEN):
            raise CheckoutError(f"Cannot open checkout while {self.state}")
        order_id = order_id or self.order["id"]
        key_id = self.client.get_public_key_id()
        self._attempt += 1
        attempt = self._attempt
        self.close()

        def handle_success(payload):
            if not self._live(attempt) or self.payment is not None:
                return
            self._widget = None
            self.payment = PaymentSuccess.from_handler(payload)
            on_success(self.payment)

        def handle_failed(payload):
            if not self._live(attempt) or self.payment is not None:
                return
            self.failure = PaymentFailure.from_event(payload, order_id)
            self._transition(FAILED)
            # the attempt ends here; a retry needs a new order
            self.close()
            on_failure(self.failure)

        def handle_dismiss():
            if not self._live(attempt) or self.payment is not None:
                return
            self._widget = None
            if on_dismiss:
                on_dismiss()
            self._fail(PaymentFailure.cancelled(order_id), CANCELLED, on_failure)

        options = {
            "key": key_id,
            "amount": _paise(amount),
            "currency": self.currency,
            "name": self.name,
            "order_id": order_id,
            "prefill": {"name": customer_name, "email": customer_email, "contact": customer_phone},
            "theme": {"color": self.theme_color},
            "handler": handle_success,
            "modal": {"escape": False, "animation": True, "ondismiss": handle_dismiss},
        }
        try:
            widget = self.widget_factory(options)
            widget.on("payment.failed", handle_failed)
            self._widget = widget
            widget.open()
        except Exception as e:
            self._widget = None
            raise CheckoutError(f"Failed to initialize Razorpay: {e}") from e
        self._transition(CHECKOUT_OPEN)
        logger.info("Checkout opened for order %s", order_id)

    def _fail(self, failure, state, on_failure):
        self.failure = failure
        self._transition(state)
        on_failure(failure)

    def verify(self, registration_id=None, amount=None) -> dict:
        if self.payment is None or self.state in TERMINAL_STATES:
            raise CheckoutError("No completed payment to verify")
        try:
            result = self.client.verify_payment(
                self.payment.payment_id,
                self.payment.order_id,
                self.payment.signature,
                registration_id=registration_id,
                amount=amount,
            )
        except Exception:
            self._transition(FAILED)
            raise
        self._transition(VERIFIED if result.get("verified") else FAILED)
        return result

    def close(self):
        widget, self._widget = self._widget, None
        if widget is None:
            return
        try:
            widget.close()
        except Exception as e:
            logger.warning("Error closing checkout widget: %s", e)

    def dispose(self):
        self.close()
        self._disposed = True
