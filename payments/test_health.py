from unittest.mock import MagicMock, patch

import requests
from django.test import TestCase, override_settings

from .integrations.razorpay import RazorpayError


class HealthTests(TestCase):
    def test_liveness(self):
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["status"], "ok")
        self.assertIn("uptime", data)
        self.assertIn("version", data)


class DetailedHealthTests(TestCase):
    def test_ok_when_gateway_reachable(self):
        with patch("payments.health.check_credentials", return_value={"count": 1}):
            resp = self.client.get("/health/detailed")
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["status"], "ok")
        self.assertEqual(data["services"]["razorpay"]["status"], "ok")
        self.assertNotIn("database", data["services"])
        self.assertNotIn("supabase", data["services"])
        self.assertIn("responseTime", data)

    def test_never_creates_orders(self):
        with patch("payments.integrations.razorpay.razorpay.Client") as client_cls:
            client_cls.return_value.order.all.return_value = {"count": 0, "items": []}
            self.client.get("/health/detailed")
        client_cls.return_value.order.create.assert_not_called()
        client_cls.return_value.order.all.assert_called_once_with({"count": 1})

    def test_degraded_when_gateway_fails(self):
        with patch("payments.health.check_credentials", side_effect=RazorpayError("bad key")):
            with self.assertLogs("payments.health", level="WARNING"):
                resp = self.client.get("/health/detailed")
        self.assertEqual(resp.status_code, 206)
        data = resp.json()
        self.assertEqual(data["status"], "degraded")
        self.assertEqual(data["services"]["razorpay"]["error"], "bad key")

    @override_settings(HAS_DATABASE_URL=True)
    def test_database_round_trip(self):
        with patch("payments.health.check_credentials", return_value={"count": 1}):
            resp = self.client.get("/health/detailed")
        self.assertEqual(resp.json()["services"]["database"]["status"], "ok")

    @override_settings(SUPABASE_URL="https://proj.supabase.co", SUPABASE_ANON_KEY="anon")
    def test_hosted_auth_failure_degrades(self):
        with patch("payments.health.check_credentials", return_value={"count": 1}), \
                patch("payments.health.requests.get", side_effect=requests.ConnectionError("dns")) as get:
            with self.assertLogs("payments.health", level="WARNING"):
                resp = self.client.get("/health/detailed")
        self.assertEqual(resp.status_code, 206)
        self.assertEqual(resp.json()["services"]["supabase"]["status"], "error")
        self.assertEqual(get.call_args.args[0], "https://proj.supabase.co/auth/v1/health")

    @override_settings(SUPABASE_URL="https://proj.supabase.co", SUPABASE_ANON_KEY="anon")
    def test_hosted_auth_ok(self):
        ok = MagicMock()
        ok.raise_for_status.return_value = None
        with patch("payments.health.check_credentials", return_value={"count": 1}), \
                patch("payments.health.requests.get", return_value=ok):
            resp = self.client.get("/health/detailed")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["services"]["supabase"]["status"], "ok")
