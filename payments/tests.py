import hashlib
import hmac
import json
from unittest.mock import MagicMock, patch

from django.core.cache import cache
from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase, TestCase, override_settings
from razorpay.errors import BadRequestError

from .apps import validate_gateway_settings
from .integrations import razorpay as gateway

SECRET = "test-razorpay-secret"


def _sign(order_id, payment_id, secret=SECRET):
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


class SignatureTests(SimpleTestCase):
    def test_signature_is_stable(self):
        first = gateway.generate_signature("order_1", "pay_1")
        second = gateway.generate_signature("order_1", "pay_1")
        self.assertEqual(first, second)
        self.assertEqual(first, _sign("order_1", "pay_1"))

    def test_valid_signature_verifies(self):
        sig = _sign("order_ABC", "pay_ABC")
        self.assertTrue(gateway.verify_signature("order_ABC", "pay_ABC", sig))

    def test_tampered_signature_rejected(self):
        self.assertFalse(gateway.verify_signature("order_ABC", "pay_ABC", "tampered"))

    def test_swapped_ids_rejected(self):
        sig = _sign("order_ABC", "pay_ABC")
        self.assertFalse(gateway.verify_signature("order_XYZ", "pay_ABC", sig))


class AmountConversionTests(SimpleTestCase):
    def test_whole_rupees(self):
        self.assertEqual(gateway.to_minor_units(699), 69900)

    def test_rounds_half_up(self):
        self.assertEqual(gateway.to_minor_units(10.005), 1001)
        self.assertEqual(gateway.to_minor_units(0.014), 1)


class GatewaySettingsTests(SimpleTestCase):
    def test_missing_secret_refuses_to_start(self):
        with override_settings(RAZORPAY_KEY_SECRET=""):
            with self.assertRaises(ImproperlyConfigured) as cm:
                validate_gateway_settings()
        self.assertIn("RAZORPAY_KEY_SECRET", str(cm.exception))

    def test_missing_key_id_refuses_to_start(self):
        with override_settings(RAZORPAY_KEY_ID=""):
            with self.assertRaises(ImproperlyConfigured):
                validate_gateway_settings()

    def test_present_credentials_pass(self):
        validate_gateway_settings()


class CreateOrderViewTests(TestCase):
    url = "/api/razorpay/create-order"

    def setUp(self):
        cache.clear()
        patcher = patch("payments.integrations.razorpay.razorpay.Client")
        self.client_cls = patcher.start()
        self.addCleanup(patcher.stop)
        self.create = self.client_cls.return_value.order.create
        self.create.return_value = {
            "id": "order_N5nHq0y8Yl0aBc",
            "amount": 69900,
            "currency": "INR",
            "receipt": "sspl_1",
            "status": "created",
        }

    def _post(self, payload, **extra):
        return self.client.post(self.url, data=json.dumps(payload), content_type="application/json", **extra)

    def test_creates_order_in_paise(self):
        resp = self._post({"amount": 699})
        self.assertEqual(resp.status_code, 200)
        self.assertRegex(resp.json()["id"], r"^order_\w+$")
        data = self.create.call_args.kwargs["data"]
        self.assertEqual(data["amount"], 69900)
        self.assertEqual(data["currency"], "INR")
        self.assertTrue(data["receipt"].startswith("sspl_"))
        self.client_cls.assert_called_once_with(auth=("rzp_test_1234567890abcd", SECRET))

    def test_bare_and_api_paths_are_mounted(self):
        for url in ("/create-order", "/api/create-order"):
            resp = self.client.post(url, data=json.dumps({"amount": 10}), content_type="application/json")
            self.assertEqual(resp.status_code, 200, url)

    def test_invalid_amounts_never_reach_gateway(self):
        for amount in (0, -5, 0.004, "699", None, True, [699]):
            resp = self._post({"amount": amount})
            self.assertEqual(resp.status_code, 400, amount)
            self.assertEqual(resp.json(), {"error": "Invalid amount provided"})
        resp = self._post({})
        self.assertEqual(resp.status_code, 400)
        self.create.assert_not_called()

    def test_invalid_json_rejected(self):
        resp = self.client.post(self.url, data="not json", content_type="application/json")
        self.assertEqual(resp.status_code, 400)
        self.create.assert_not_called()

    def test_gateway_failure_is_500_with_message(self):
        self.create.side_effect = BadRequestError("Authentication failed")
        with self.assertLogs("payments.views", level="ERROR"):
            resp = self._post({"amount": 699})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": "Authentication failed"})
        self.assertEqual(self.create.call_count, 1)

    def test_metadata_becomes_notes(self):
        self._post({"amount": 699, "full_name": "Virat K", "email": "v@example.com", "extra": {"x": 1}})
        notes = self.create.call_args.kwargs["data"]["notes"]
        self.assertEqual(notes, {"full_name": "Virat K", "email": "v@example.com"})

    def test_idempotency_key_reuses_order(self):
        first = self._post({"amount": 699, "idempotencyKey": "reg-42"})
        second = self._post({"amount": 699}, HTTP_IDEMPOTENCY_KEY="reg-42")
        self.assertEqual(first.json()["id"], second.json()["id"])
        self.assertEqual(self.create.call_count, 1)

    def test_without_key_each_submit_creates_order(self):
        self._post({"amount": 699})
        self._post({"amount": 699})
        self.assertEqual(self.create.call_count, 2)


class VerifyPaymentViewTests(TestCase):
    url = "/api/razorpay/verify-payment"

    def _post(self, payload):
        return self.client.post(self.url, data=json.dumps(payload), content_type="application/json")

    def test_valid_signature(self):
        resp = self._post({
            "paymentId": "pay_ABC",
            "orderId": "order_ABC",
            "signature": _sign("order_ABC", "pay_ABC"),
            "registrationId": "42",
        })
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {
            "verified": True, "paymentId": "pay_ABC", "orderId": "order_ABC", "registrationId": "42",
        })

    def test_forged_signature(self):
        with self.assertLogs("payments.views", level="WARNING"):
            resp = self._post({"paymentId": "pay_ABC", "orderId": "order_ABC", "signature": "forged"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"error": "Invalid signature"})

    def test_missing_fields(self):
        resp = self._post({"paymentId": "pay_ABC"})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("orderId", resp.json()["error"])
        self.assertIn("signature", resp.json()["error"])

    def test_get_not_allowed(self):
        self.assertEqual(self.client.get(self.url).status_code, 405)


class CancelPaymentViewTests(TestCase):
    url = "/api/razorpay/cancel"

    def _post(self, payload):
        return self.client.post(self.url, data=json.dumps(payload), content_type="application/json")

    def test_rejects_non_payment_ids(self):
        with patch("payments.views.cancel_payment") as cancel:
            for pid in ("", "order_1", None, 12):
                resp = self._post({"paymentId": pid})
                self.assertEqual(resp.status_code, 400)
                self.assertFalse(resp.json()["success"])
        cancel.assert_not_called()

    def test_success(self):
        payment = {"id": "pay_ABC", "status": "voided"}
        with patch("payments.views.cancel_payment", return_value=(200, payment)):
            resp = self._post({"paymentId": "pay_ABC"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"success": True, "payment": payment})

    def test_gateway_error_is_relayed(self):
        body = {"error": {"code": "BAD_REQUEST_ERROR", "description": "Payment already captured"}}
        with patch("payments.views.cancel_payment", return_value=(400, body)):
            with self.assertLogs("payments.views", level="ERROR"):
                resp = self._post({"paymentId": "pay_ABC"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Payment already captured")
        self.assertEqual(resp.json()["razorpay"]["code"], "BAD_REQUEST_ERROR")

    def test_non_object_error_body(self):
        for body in (["unexpected"], "Bad Gateway", None):
            with patch("payments.views.cancel_payment", return_value=(502, body)):
                with self.assertLogs("payments.views", level="ERROR"):
                    resp = self._post({"paymentId": "pay_ABC"})
            self.assertEqual(resp.status_code, 502)
            self.assertEqual(resp.json(), {"success": False, "error": "Cancel failed", "razorpay": None})

    def test_transport_error_is_opaque(self):
        with patch("payments.views.cancel_payment", side_effect=gateway.RazorpayError("boom")):
            with self.assertLogs("payments.views", level="ERROR"):
                resp = self._post({"paymentId": "pay_ABC"})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"success": False, "error": "Internal server error"})


class CancelPaymentGatewayTests(SimpleTestCase):
    def test_posts_with_basic_auth_and_idempotency_key(self):
        fake = MagicMock(status_code=200)
        fake.json.return_value = {"id": "pay_ABC", "status": "voided"}
        with patch("payments.integrations.razorpay.requests.post", return_value=fake) as post:
            status, data = gateway.cancel_payment("pay_ABC")
        self.assertEqual((status, data["status"]), (200, "voided"))
        args, kwargs = post.call_args
        self.assertEqual(args[0], "https://api.razorpay.com/v1/payments/pay_ABC/cancel")
        self.assertEqual(kwargs["headers"]["X-Razorpay-Idempotency-Key"], "cancel-pay_ABC-v1")
        self.assertEqual(kwargs["auth"].username, "rzp_test_1234567890abcd")
        self.assertIn("timeout", kwargs)


class ConfigViewTests(TestCase):
    def test_exposes_public_key_only(self):
        resp = self.client.get("/api/config")
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["razorpayKeyId"], "rzp_test_1234567890abcd")
        self.assertEqual(data["key"], data["razorpayKeyId"])
        self.assertNotIn(SECRET, resp.content.decode())


class PackageTests(SimpleTestCase):
    def test_payments_is_a_regular_package(self):
        import payments

        # namespace packages have no __file__ and are skipped by find_packages
        self.assertTrue(payments.__file__.endswith("__init__.py"))
