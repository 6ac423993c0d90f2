import logging
import uuid
from decimal import Decimal

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Q

from checkout.client import KeyConfigurationError, PaymentServiceError
from checkout.session import CheckoutError
from .models import PlayerRegistration

logger = logging.getLogger(__name__)


class PaymentNotVerified(Exception):
    pass


class DuplicateOrder(Exception):
    pass


def registration_fee() -> Decimal:
    return Decimal(str(settings.REGISTRATION_FEE))


def _recorded(payment):
    return (
        PlayerRegistration.objects.select_for_update()
        .filter(Q(razorpay_payment_id=payment.payment_id) | Q(razorpay_order_id=payment.order_id))
        .first()
    )


def _replay(existing, payment):
    if existing.razorpay_payment_id != payment.payment_id:
        raise DuplicateOrder(f"Order {payment.order_id} is already registered")
    return existing


@transaction.atomic
def register_verified_player(player: dict, payment, verified: bool, amount=None) -> tuple[PlayerRegistration, bool]:
    """Write the registration row for a verified payment.

    Returns ``(registration, created)``. A payment that is already recorded
    returns the existing row; no row is ever written when ``verified`` is false.
    """
    if not verified:
        raise PaymentNotVerified(f"Payment {payment.payment_id} was not verified")

    existing = _recorded(payment)
    if existing:
        return _replay(existing, payment), False

    try:
        with transaction.atomic():
            registration = PlayerRegistration.objects.create(
                **player,
                position="Batting",
                status="completed",
                payment_status="completed",
                payment_amount=amount if amount is not None else registration_fee(),
                razorpay_order_id=payment.order_id,
                razorpay_payment_id=payment.payment_id,
            )
    except IntegrityError:
        # a concurrent request inserted the same gateway ids first
        existing = _recorded(payment)
        if existing is None:
            raise
        return _replay(existing, payment), False
    logger.info("Registered %s for payment %s", registration.email, payment.payment_id)
    return registration, True


class RegistrationController:
    """Drives one registration form through order, checkout, verification and save.

    ``notify(level, message)`` replaces the blocking browser alerts; ``level``
    is ``"success"`` or ``"error"``. While a submission is in flight further
    submits are refused.
    """

    def __init__(self, session, notify, fee=None):
        self.session = session
        self.notify = notify
        self.fee = Decimal(str(fee)) if fee is not None else registration_fee()
        self.processing = False
        self.player = None
        self.registration = None

    def _done(self, level=None, message=None):
        self.processing = False
        if message:
            self.notify(level, message)

    def submit(self, player: dict) -> bool:
        if self.processing:
            logger.info("Ignoring submit while a payment is in progress")
            return False
        self.processing = True
        self.player = player
        self.registration = None

        amount = int(self.fee) if self.fee == self.fee.to_integral_value() else float(self.fee)
        try:
            order = self.session.create_order(
                amount,
                {"full_name": player["full_name"], "email": player["email"], "phone": player["phone"]},
                idempotency_key=f"reg-{uuid.uuid4().hex}",
            )
            if not order.get("id"):
                self._done("error", "Failed to create order")
                return False
            self.session.open(
                amount,
                player["full_name"],
                player["email"],
                player["phone"],
                on_success=self._on_success,
                on_failure=self._on_failure,
                on_dismiss=self._on_dismiss,
            )
        except (PaymentServiceError, KeyConfigurationError, CheckoutError) as e:
            logger.error("Payment error: %s", e)
            self._done("error", "Something went wrong!")
            return False
        return True

    def _on_success(self, payment):
        try:
            self._record(payment)
        except Exception:
            logger.exception("Unexpected error after payment %s", payment.payment_id)
            self._done("error", "Something went wrong after payment. Please contact support.")

    def _record(self, payment):
        try:
            result = self.session.verify()
        except PaymentServiceError as e:
            logger.warning("Payment verification failed for %s: %s", payment.payment_id, e)
            self._done("error", "Payment verification failed!")
            return
        if not result.get("verified"):
            self._done("error", "Payment verification failed!")
            return

        try:
            self.registration, _ = register_verified_player(self.player, payment, verified=True, amount=self.fee)
        except (DatabaseError, DuplicateOrder):
            logger.exception("Failed to save player data for payment %s", payment.payment_id)
            self._done("error", "Payment verified but failed to save player data!")
            return
        self._done("success", "Payment Verified and Player Registered Successfully!")

    def _on_failure(self, failure):
        logger.info("Payment failed: %s", failure)
        self._done("error", failure.description or failure.reason or "Payment failed. Please try again.")

    def _on_dismiss(self):
        self.processing = False
