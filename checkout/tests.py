import threading
from unittest.mock import MagicMock

import requests
from django.test import SimpleTestCase, override_settings

from .client import KeyConfigurationError, PaymentApiClient, PaymentServiceError
from .config import PaymentClientConfig, resolve_base_url
from .session import (
    CANCELLED, CHECKOUT_OPEN, FAILED, ORDER_CREATED, VERIFIED,
    CheckoutError, CheckoutSession, PaymentFailure,
)

KEY_ID = "rzp_test_1234567890abcd"


def _response(status=200, json_data=None, text=None, reason="OK"):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.reason = reason
    resp.json.return_value = json_data
    resp.text = text if text is not None else ("" if json_data is None else "{...}")
    return resp


class FakeWidget:
    instances = []

    def __init__(self, options):
        self.options = options
        self.handlers = {}
        self.opened = False
        self.closed = False
        FakeWidget.instances.append(self)

    def on(self, event, callback):
        self.handlers[event] = callback

    def open(self):
        self.opened = True

    def close(self):
        self.closed = True

    # gateway-side events
    def succeed(self, payment_id="pay_ABC", signature="sig"):
        self.options["handler"]({
            "razorpay_payment_id": payment_id,
            "razorpay_order_id": self.options["order_id"],
            "razorpay_signature": signature,
        })

    def fail(self, payload):
        self.handlers["payment.failed"](payload)

    def dismiss(self):
        self.options["modal"]["ondismiss"]()


class ResolveBaseUrlTests(SimpleTestCase):
    def test_localhost_forces_local_backend(self):
        self.assertEqual(
            resolve_base_url("localhost", "8080", "https://ssplt10.cloud"),
            ("local-host", "http://127.0.0.1:3001/api"),
        )

    def test_absolute_url_gains_api_suffix(self):
        self.assertEqual(resolve_base_url("ssplt10.cloud", "", "https://ssplt10.cloud")[1], "https://ssplt10.cloud/api")
        self.assertEqual(resolve_base_url("x", "", "https://a.test/v2/")[1], "https://a.test/v2/api")
        self.assertEqual(resolve_base_url("x", "", "https://a.test/api/")[1], "https://a.test/api")

    def test_relative_configured(self):
        self.assertEqual(resolve_base_url("ssplt10.cloud", "", None, "/backend/"), ("relative-configured", "/backend"))

    def test_relative_default(self):
        self.assertEqual(resolve_base_url("ssplt10.cloud", "", "ftp://nope", "nope"), ("relative-default", "/api"))

    @override_settings(PAYMENTS_API_URL="https://api.ssplt10.cloud", RAZORPAY_PUBLIC_KEY_ID=KEY_ID)
    def test_config_from_settings(self):
        config = PaymentClientConfig.from_settings(hostname="ssplt10.cloud")
        self.assertEqual(config.base_url, "https://api.ssplt10.cloud/api")
        self.assertEqual(config.fallback_key_id, KEY_ID)


class PaymentApiClientTests(SimpleTestCase):
    def setUp(self):
        self.http = MagicMock()
        self.config = PaymentClientConfig("https://ssplt10.cloud/api", fallback_key_id=KEY_ID, timeout=7)
        self.client = PaymentApiClient(self.config, session=self.http)

    def test_create_order_posts_amount_and_metadata(self):
        self.http.post.return_value = _response(json_data={"id": "order_1", "amount": 69900})
        order = self.client.create_order(699, {"email": "a@b.c"}, idempotency_key="reg-1")
        self.assertEqual(order["id"], "order_1")
        args, kwargs = self.http.post.call_args
        self.assertEqual(args[0], "https://ssplt10.cloud/api/razorpay/create-order")
        self.assertEqual(kwargs["json"], {"amount": 699, "email": "a@b.c", "idempotencyKey": "reg-1"})
        self.assertEqual(kwargs["timeout"], 7)

    def test_create_order_error_embeds_status_and_text(self):
        self.http.post.return_value = _response(400, text='{"error":"Invalid amount provided"}', reason="Bad Request")
        with self.assertLogs("checkout.client", level="ERROR"):
            with self.assertRaises(PaymentServiceError) as cm:
                self.client.create_order(-1)
        self.assertEqual(cm.exception.status, 400)
        self.assertIn("400 Bad Request", str(cm.exception))
        self.assertIn("Invalid amount provided", str(cm.exception))

    def test_key_id_from_backend_is_cached(self):
        self.http.get.return_value = _response(json_data={"key": "rzp_live_abcdefghijklmnop"})
        self.assertEqual(self.client.get_public_key_id(), "rzp_live_abcdefghijklmnop")
        self.assertEqual(self.client.get_public_key_id(), "rzp_live_abcdefghijklmnop")
        self.assertEqual(self.http.get.call_count, 1)

    def test_key_id_shapes(self):
        for field in ("razorpayKeyId", "publicKey", "razorpay_key_id"):
            self.config.reset()
            self.http.get.return_value = _response(json_data={field: "rzp_test_zzzzzzzzzzzzzz"})
            self.assertEqual(self.client.get_public_key_id(), "rzp_test_zzzzzzzzzzzzzz")

    def test_key_id_falls_back_to_build_time_value(self):
        self.http.get.return_value = _response(503)
        with self.assertLogs("checkout.client", level="WARNING"):
            self.assertEqual(self.client.get_public_key_id(), KEY_ID)

    def test_key_id_missing_everywhere(self):
        self.config.fallback_key_id = None
        self.http.get.side_effect = requests.ConnectionError("down")
        with self.assertLogs("checkout.client", level="WARNING"):
            with self.assertRaises(KeyConfigurationError):
                self.client.get_public_key_id()

    def test_key_id_format_guard(self):
        self.http.get.return_value = _response(json_data={"key": "pk_live_abcdefghijklmnopqrst"})
        with self.assertRaises(KeyConfigurationError):
            self.client.get_public_key_id()

    def test_key_id_fetched_once_under_concurrency(self):
        calls = []
        release = threading.Event()

        def slow_get(*args, **kwargs):
            calls.append(1)
            release.wait(1)
            return _response(json_data={"key": KEY_ID})

        self.http.get.side_effect = slow_get
        results = []
        threads = [threading.Thread(target=lambda: results.append(self.client.get_public_key_id())) for _ in range(5)]
        for t in threads:
            t.start()
        release.set()
        for t in threads:
            t.join()
        self.assertEqual(len(calls), 1)
        self.assertEqual(results, [KEY_ID] * 5)

    def test_verify_payment(self):
        self.http.post.return_value = _response(json_data={"verified": True})
        self.assertEqual(self.client.verify_payment("pay_1", "order_1", "sig", registration_id="r1", amount=699),
                         {"verified": True})
        kwargs = self.http.post.call_args.kwargs
        self.assertEqual(kwargs["json"], {
            "paymentId": "pay_1", "orderId": "order_1", "signature": "sig", "registrationId": "r1", "amount": 699,
        })
        self.assertEqual(kwargs["timeout"], 7)

    def test_verify_payment_rejected(self):
        self.http.post.return_value = _response(400, text='{"error":"Invalid signature"}', reason="Bad Request")
        with self.assertLogs("checkout.client", level="ERROR"):
            with self.assertRaisesRegex(PaymentServiceError, "Invalid signature"):
                self.client.verify_payment("pay_1", "order_1", "bad")

    def test_cancel_requires_payment_id_format(self):
        for bad in ("", None, "order_1", 42):
            with self.assertRaises(ValueError):
                self.client.cancel_payment(bad)
        self.http.post.assert_not_called()

    def test_cancel_payment(self):
        self.http.post.return_value = _response(json_data={"success": True, "payment": {"id": "pay_1"}})
        self.assertTrue(self.client.cancel_payment("pay_1")["success"])
        self.assertEqual(self.http.post.call_args.args[0], "https://ssplt10.cloud/api/razorpay/cancel")

    def test_cancel_payment_error_description(self):
        self.http.post.return_value = _response(
            400, json_data={"success": False, "razorpay": {"description": "Payment already captured"}},
        )
        with self.assertRaisesRegex(PaymentServiceError, "Payment already captured"):
            self.client.cancel_payment("pay_1")


class PaymentFailureTests(SimpleTestCase):
    def test_structured(self):
        failure = PaymentFailure.from_event({"error": {
            "code": "BAD_REQUEST_ERROR", "description": "Card declined", "step": "payment_authorization",
            "metadata": {"order_id": "order_1", "payment_id": "pay_1"},
        }})
        self.assertEqual(failure.kind, "structured")
        self.assertEqual(failure.code, "BAD_REQUEST_ERROR")
        self.assertEqual(failure.metadata["payment_id"], "pay_1")

    def test_raw_string_and_unknown(self):
        self.assertEqual(PaymentFailure.from_event("network down", "order_1").description, "network down")
        unknown = PaymentFailure.from_event(None, "order_1")
        self.assertEqual((unknown.kind, unknown.description), ("raw", "Payment failed"))
        self.assertEqual(unknown.metadata, {"order_id": "order_1"})


class CheckoutSessionTests(SimpleTestCase):
    def setUp(self):
        FakeWidget.instances = []
        self.client = MagicMock()
        self.client.create_order.return_value = {"id": "order_1", "amount": 69900}
        self.client.get_public_key_id.return_value = KEY_ID
        self.session = CheckoutSession(self.client, FakeWidget)
        self.events = []

    def _open(self):
        self.session.open(
            699, "Asha", "asha@example.com", "9999999999",
            on_success=lambda p: self.events.append(("success", p)),
            on_failure=lambda f: self.events.append(("failure", f)),
            on_dismiss=lambda: self.events.append(("dismiss", None)),
        )
        return FakeWidget.instances[-1]

    def test_checkout_options(self):
        self.session.create_order(699)
        self.assertEqual(self.session.state, ORDER_CREATED)
        widget = self._open()
        self.assertEqual(self.session.state, CHECKOUT_OPEN)
        self.assertTrue(widget.opened)
        self.assertEqual(widget.options["amount"], 69900)
        self.assertEqual(widget.options["order_id"], "order_1")
        self.assertEqual(widget.options["key"], KEY_ID)
        self.assertEqual(widget.options["prefill"]["contact"], "9999999999")

    def test_open_requires_order(self):
        with self.assertRaises(CheckoutError):
            self._open()

    def test_second_open_closes_first(self):
        self.session.create_order(699)
        first = self._open()
        second = self._open()
        self.assertTrue(first.closed)
        self.assertFalse(second.closed)
        self.assertEqual(len([w for w in FakeWidget.instances if w.opened and not w.closed]), 1)
        first.dismiss()
        self.assertEqual(self.events, [])

    def test_dismiss_reports_cancellation(self):
        self.session.create_order(699)
        self._open().dismiss()
        self.assertEqual([e[0] for e in self.events], ["dismiss", "failure"])
        failure = self.events[1][1]
        self.assertEqual(failure.code, "PAYMENT_CANCELLED")
        self.assertTrue(failure.is_cancelled)
        self.assertEqual(self.session.state, CANCELLED)
        self.assertFalse(self.session.is_open)

    def test_failed_payment_closes_widget(self):
        self.session.create_order(699)
        widget = self._open()
        widget.fail({"error": {"code": "BAD_REQUEST_ERROR"}})
        self.assertTrue(widget.closed)
        self.assertFalse(self.session.is_open)
        self.assertEqual(self.session.state, FAILED)
        self.assertEqual([e[0] for e in self.events], ["failure"])

    def test_close_on_failure_does_not_report_cancellation(self):
        class DismissOnClose(FakeWidget):
            def close(self):
                super().close()
                self.dismiss()

        session = CheckoutSession(self.client, DismissOnClose)
        session.create_order(699)
        session.open(
            699, "Asha", "asha@example.com", "9999999999",
            on_success=lambda p: self.events.append(("success", p)),
            on_failure=lambda f: self.events.append(("failure", f)),
        )
        FakeWidget.instances[-1].fail({"error": {"code": "BAD_REQUEST_ERROR"}})
        self.assertEqual([e[0] for e in self.events], ["failure"])
        self.assertEqual(session.state, FAILED)

    def test_retry_after_failure_uses_new_widget(self):
        self.session.create_order(699)
        self._open().fail({"error": {"code": "BAD_REQUEST_ERROR"}})
        self.session.create_order(699)
        self._open().succeed()
        self.assertEqual([e[0] for e in self.events], ["failure", "success"])
        self.assertEqual(self.session.payment.payment_id, "pay_ABC")
        self.assertEqual(self.client.create_order.call_count, 2)

    def test_callbacks_after_terminal_state_ignored(self):
        self.session.create_order(699)
        widget = self._open()
        widget.fail({"error": {"code": "BAD_REQUEST_ERROR"}})
        widget.dismiss()
        widget.succeed()
        self.assertEqual(self.session.state, FAILED)
        self.assertEqual([e[0] for e in self.events], ["failure"])

    def test_success_then_verify(self):
        self.client.verify_payment.return_value = {"verified": True}
        self.session.create_order(699)
        self._open().succeed(signature="good")
        kind, payment = self.events[0]
        self.assertEqual(kind, "success")
        self.assertEqual((payment.payment_id, payment.order_id, payment.signature), ("pay_ABC", "order_1", "good"))
        self.assertEqual(self.session.verify(amount=699), {"verified": True})
        self.assertEqual(self.session.state, VERIFIED)
        self.client.verify_payment.assert_called_once_with(
            "pay_ABC", "order_1", "good", registration_id=None, amount=699,
        )

    def test_verify_failure_is_terminal(self):
        self.client.verify_payment.side_effect = PaymentServiceError("Payment verification failed: 400")
        self.session.create_order(699)
        self._open().succeed()
        with self.assertRaises(PaymentServiceError):
            self.session.verify()
        self.assertEqual(self.session.state, FAILED)

    def test_dispose_closes_and_silences(self):
        self.session.create_order(699)
        widget = self._open()
        self.session.dispose()
        self.assertTrue(widget.closed)
        widget.dismiss()
        self.assertEqual(self.events, [])
        with self.assertRaises(CheckoutError):
            self.session.create_order(699)

    def test_widget_failure_raises(self):
        def broken(options):
            raise RuntimeError("script not loaded")

        session = CheckoutSession(self.client, broken)
        session.create_order(699)
        with self.assertRaisesRegex(CheckoutError, "script not loaded"):
            session.open(699, "A", "a@b.c", "1", on_success=print, on_failure=print)
        self.assertFalse(session.is_open)
