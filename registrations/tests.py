import hashlib
import hmac
import json
from decimal import Decimal
from unittest.mock import patch

from django.core.cache import cache
from django.test import TestCase, override_settings

from checkout.client import PaymentApiClient
from checkout.config import PaymentClientConfig
from checkout.session import CheckoutSession, PaymentSuccess
from .models import PlayerRegistration
from .services import DuplicateOrder, PaymentNotVerified, RegistrationController, register_verified_player

SECRET = "test-razorpay-secret"
ORDER_ID = "order_N5nHq0y8Yl0aBc"
PLAYER = {"full_name": "Asha Rao", "email": "asha@example.com", "phone": "9876543210", "age": 24, "team_name": ""}


def _sign(order_id, payment_id):
    return hmac.new(SECRET.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


class _TestClientResponse:
    def __init__(self, resp):
        self.status_code = resp.status_code
        self.ok = 200 <= resp.status_code < 300
        self.reason = resp.reason_phrase
        self.text = resp.content.decode()
        self._resp = resp

    def json(self):
        return self._resp.json()


class _TestClientHttp:
    """Routes PaymentApiClient calls into the Django test client."""

    def __init__(self, client, prefix="http://backend.test"):
        self.client = client
        self.prefix = prefix

    def post(self, url, json=None, headers=None, timeout=None):
        path = url[len(self.prefix):]
        return _TestClientResponse(self.client.post(path, data=json, content_type="application/json"))

    def get(self, url, timeout=None):
        return _TestClientResponse(self.client.get(url[len(self.prefix):]))


class FakeWidget:
    def __init__(self, options):
        self.options = options
        self.handlers = {}

    def on(self, event, callback):
        self.handlers[event] = callback

    def open(self):
        pass

    def close(self):
        pass


class RegisterVerifiedPlayerTests(TestCase):
    def test_unverified_payment_writes_nothing(self):
        payment = PaymentSuccess("pay_ABC", ORDER_ID, "forged")
        with self.assertRaises(PaymentNotVerified):
            register_verified_player(PLAYER, payment, verified=False)
        self.assertFalse(PlayerRegistration.objects.exists())

    def test_verified_payment_is_recorded_once(self):
        payment = PaymentSuccess("pay_ABC", ORDER_ID, "sig")
        first, created = register_verified_player(PLAYER, payment, verified=True)
        again, created_again = register_verified_player(PLAYER, payment, verified=True)
        self.assertTrue(created)
        self.assertFalse(created_again)
        self.assertEqual(first.pk, again.pk)
        self.assertEqual(first.payment_amount, Decimal("699"))
        self.assertEqual(first.payment_status, "completed")
        self.assertEqual(first.position, "Batting")

    def test_concurrent_insert_returns_winning_row(self):
        payment = PaymentSuccess("pay_ABC", ORDER_ID, "sig")
        winner, _ = register_verified_player(PLAYER, payment, verified=True)
        # the first lookup misses, as it would for a request racing the winner
        with patch("registrations.services._recorded", side_effect=[None, winner]):
            row, created = register_verified_player(PLAYER, payment, verified=True)
        self.assertFalse(created)
        self.assertEqual(row.pk, winner.pk)
        self.assertEqual(PlayerRegistration.objects.count(), 1)

    def test_concurrent_insert_for_other_payment_conflicts(self):
        winner, _ = register_verified_player(PLAYER, PaymentSuccess("pay_ABC", ORDER_ID, "sig"), verified=True)
        with patch("registrations.services._recorded", side_effect=[None, winner]):
            with self.assertRaises(DuplicateOrder):
                register_verified_player(PLAYER, PaymentSuccess("pay_XYZ", ORDER_ID, "sig"), verified=True)


class RegisterViewTests(TestCase):
    url = "/api/registrations"

    def _post(self, **overrides):
        body = {
            "name": "Asha Rao",
            "email": "asha@example.com",
            "contact": "9876543210",
            "age": 0,
            "team": "Gorakhpur Giants",
            "paymentId": "pay_ABC",
            "orderId": ORDER_ID,
            "signature": _sign(ORDER_ID, "pay_ABC"),
        }
        body.update(overrides)
        return self.client.post(self.url, data=json.dumps(body), content_type="application/json")

    def test_verified_registration_created(self):
        resp = self._post()
        self.assertEqual(resp.status_code, 201)
        row = PlayerRegistration.objects.get()
        self.assertEqual(row.razorpay_payment_id, "pay_ABC")
        self.assertEqual(row.team_name, "Gorakhpur Giants")
        self.assertIsNone(row.age)
        self.assertEqual(resp.json()["payment_amount"], 699.0)

    def test_replay_returns_existing_row(self):
        self._post()
        resp = self._post()
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(PlayerRegistration.objects.count(), 1)

    def test_forged_signature_writes_nothing(self):
        with self.assertLogs("registrations.views", level="WARNING"):
            resp = self._post(signature="forged")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"error": "Invalid signature"})
        self.assertFalse(PlayerRegistration.objects.exists())

    def test_racing_replay_returns_existing_row(self):
        self._post()
        winner = PlayerRegistration.objects.get()
        with patch("registrations.services._recorded", side_effect=[None, winner]):
            resp = self._post()
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["id"], winner.pk)
        self.assertEqual(PlayerRegistration.objects.count(), 1)

    def test_second_payment_for_same_order_conflicts(self):
        self._post()
        resp = self._post(paymentId="pay_XYZ", signature=_sign(ORDER_ID, "pay_XYZ"))
        self.assertEqual(resp.status_code, 409)

    def test_invalid_fields(self):
        resp = self._post(email="not-an-email", paymentId="")
        self.assertEqual(resp.status_code, 400)
        self.assertIn("email", resp.json()["fields"])
        self.assertIn("paymentId", resp.json()["fields"])

    @override_settings(REGISTRATION_FEE=499)
    def test_fee(self):
        resp = self.client.get("/api/registrations/fee")
        self.assertEqual(resp.json(), {"amount": 499, "amountMinor": 49900, "currency": "INR"})


class RegistrationFlowTests(TestCase):
    """Order, checkout, verification and save wired through the real endpoints."""

    def setUp(self):
        cache.clear()
        patcher = patch("payments.integrations.razorpay.razorpay.Client")
        client_cls = patcher.start()
        self.addCleanup(patcher.stop)
        self.create = client_cls.return_value.order.create
        self.create.return_value = {"id": ORDER_ID, "amount": 69900, "currency": "INR", "receipt": "sspl_1"}

        config = PaymentClientConfig("http://backend.test/api")
        api = PaymentApiClient(config, session=_TestClientHttp(self.client))
        self.widgets = []
        self.session = CheckoutSession(api, lambda options: self.widgets.append(FakeWidget(options)) or self.widgets[-1])
        self.notices = []
        self.controller = RegistrationController(self.session, lambda level, msg: self.notices.append((level, msg)))

    def _pay(self, signature=None):
        widget = self.widgets[-1]
        widget.options["handler"]({
            "razorpay_payment_id": "pay_ABC",
            "razorpay_order_id": widget.options["order_id"],
            "razorpay_signature": signature or _sign(widget.options["order_id"], "pay_ABC"),
        })

    def test_happy_path_writes_registration(self):
        self.assertTrue(self.controller.submit(PLAYER))
        self.assertEqual(self.create.call_args.kwargs["data"]["amount"], 69900)
        self.assertEqual(self.widgets[-1].options["key"], "rzp_test_1234567890abcd")
        self._pay()

        row = PlayerRegistration.objects.get()
        self.assertEqual(row.payment_amount, Decimal("699"))
        self.assertEqual(row.payment_status, "completed")
        self.assertEqual((row.razorpay_order_id, row.razorpay_payment_id), (ORDER_ID, "pay_ABC"))
        self.assertEqual(self.notices[-1][0], "success")
        self.assertFalse(self.controller.processing)
        self.assertEqual(self.session.state, "verified")

    def test_forged_signature_writes_nothing(self):
        self.controller.submit(PLAYER)
        with self.assertLogs("payments.views", level="WARNING"):
            self._pay(signature="forged")
        self.assertFalse(PlayerRegistration.objects.exists())
        self.assertEqual(self.notices[-1], ("error", "Payment verification failed!"))
        self.assertEqual(self.session.state, "failed")

    def test_double_submit_is_refused(self):
        self.assertTrue(self.controller.submit(PLAYER))
        self.assertFalse(self.controller.submit(PLAYER))
        self.assertEqual(self.create.call_count, 1)
        self.assertEqual(len(self.widgets), 1)

    def test_dismiss_unblocks_and_reports(self):
        self.controller.submit(PLAYER)
        self.widgets[-1].options["modal"]["ondismiss"]()
        self.assertFalse(self.controller.processing)
        self.assertEqual(self.notices[-1], ("error", "Payment closed by user"))
        self.assertFalse(PlayerRegistration.objects.exists())

    def test_gateway_failure_is_reported(self):
        self.controller.submit(PLAYER)
        self.widgets[-1].handlers["payment.failed"]({"error": {"description": "Card declined"}})
        self.assertEqual(self.notices[-1], ("error", "Card declined"))
        self.assertFalse(self.controller.processing)

    def test_order_failure_unblocks(self):
        from razorpay.errors import ServerError

        self.create.side_effect = ServerError("gateway down")
        with self.assertLogs("registrations.services", level="ERROR"):
            self.assertFalse(self.controller.submit(PLAYER))
        self.assertEqual(self.notices[-1], ("error", "Something went wrong!"))
        self.assertFalse(self.controller.processing)

    def test_unexpected_error_after_payment_unblocks(self):
        self.controller.submit(PLAYER)
        with patch.object(self.session.client, "verify_payment", side_effect=ValueError("Expecting value")):
            with self.assertLogs("registrations.services", level="ERROR"):
                self._pay()
        self.assertFalse(self.controller.processing)
        self.assertEqual(self.notices[-1], ("error", "Something went wrong after payment. Please contact support."))
        self.assertFalse(PlayerRegistration.objects.exists())
