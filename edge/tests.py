import json
import os
import tempfile
from unittest.mock import MagicMock, patch

import requests
from django.test import TestCase, override_settings

EDGE_MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "sspl.middleware.SecurityHeadersMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]


def _upstream(status=200, body=b"{}", headers=None):
    resp = MagicMock()
    resp.status_code = status
    resp.content = body
    resp.headers = headers or {"Content-Type": "application/json"}
    return resp


class EdgeTestCase(TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.dist = tmp.name
        with open(os.path.join(self.dist, "index.html"), "w") as fh:
            fh.write("<!doctype html><div id=root></div>")
        override = override_settings(
            ROOT_URLCONF="edge.urls",
            MIDDLEWARE=EDGE_MIDDLEWARE,
            SPA_DIST_DIR=self.dist,
            BACKEND_URL="http://backend.test",
        )
        override.enable()
        self.addCleanup(override.disable)


class PreflightTests(EdgeTestCase):
    def test_echoes_requested_headers(self):
        resp = self.client.options(
            "/api/razorpay/create-order",
            HTTP_ORIGIN="https://ssplt10.cloud",
            HTTP_ACCESS_CONTROL_REQUEST_METHOD="POST",
            HTTP_ACCESS_CONTROL_REQUEST_HEADERS="content-type, x-trace",
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp["Access-Control-Allow-Origin"], "https://ssplt10.cloud")
        self.assertEqual(resp["Access-Control-Allow-Headers"], "content-type, x-trace")
        self.assertEqual(resp["Access-Control-Allow-Credentials"], "true")
        self.assertEqual(resp["Access-Control-Max-Age"], "86400")

    def test_defaults_without_request_headers(self):
        with patch("edge.views.requests.request") as forward:
            resp = self.client.options("/api/config")
        forward.assert_not_called()
        self.assertEqual(resp["Access-Control-Allow-Origin"], "http://localhost:5173")
        self.assertEqual(resp["Access-Control-Allow-Headers"], "Content-Type, Authorization, X-Requested-With")


class ProxyTests(EdgeTestCase):
    def test_forwards_post_without_hop_by_hop_headers(self):
        upstream = _upstream(200, b'{"id": "order_1"}', {
            "Content-Type": "application/json",
            "Content-Length": "17",
            "X-Request-Id": "abc",
        })
        with patch("edge.views.requests.request", return_value=upstream) as forward:
            resp = self.client.post(
                "/api/razorpay/create-order",
                data=json.dumps({"amount": 699}),
                content_type="application/json",
                HTTP_HOST="testserver",
                HTTP_AUTHORIZATION="Bearer abc",
            )

        method, url = forward.call_args.args
        kwargs = forward.call_args.kwargs
        self.assertEqual((method, url), ("POST", "http://backend.test/api/razorpay/create-order"))
        headers = kwargs["headers"]
        self.assertNotIn("host", headers)
        self.assertNotIn("content-length", headers)
        self.assertEqual(headers["content-type"], "application/json")
        self.assertEqual(headers["authorization"], "Bearer abc")
        self.assertEqual(headers["x-forwarded-host"], "testserver")
        self.assertIn("x-forwarded-for", headers)
        self.assertEqual(json.loads(kwargs["data"]), {"amount": 699})
        self.assertIn("timeout", kwargs)

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"id": "order_1"})
        self.assertEqual(resp["X-Request-Id"], "abc")

    def test_content_type_defaults_to_json(self):
        with patch("edge.views.requests.request", return_value=_upstream()) as forward:
            self.client.generic("POST", "/api/razorpay/verify-payment")
        kwargs = forward.call_args.kwargs
        self.assertEqual(kwargs["headers"]["content-type"], "application/json")
        self.assertEqual(kwargs["data"], b"{}")

    def test_get_has_no_body_and_keeps_query(self):
        with patch("edge.views.requests.request", return_value=_upstream()) as forward:
            self.client.get("/api/qr-codes/track?code=SSPL-1&source=poster")
        self.assertEqual(forward.call_args.args[1], "http://backend.test/api/qr-codes/track?code=SSPL-1&source=poster")
        self.assertIsNone(forward.call_args.kwargs["data"])

    def test_upstream_status_is_relayed(self):
        upstream = _upstream(400, b'{"error": "Invalid signature"}')
        with patch("edge.views.requests.request", return_value=upstream):
            resp = self.client.post("/api/razorpay/verify-payment", data="{}", content_type="application/json")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"error": "Invalid signature"})

    def test_backend_down_is_opaque_500(self):
        err = requests.ConnectionError("connect to 10.0.0.7:3001 refused")
        with patch("edge.views.requests.request", side_effect=err):
            with self.assertLogs("edge.views", level="ERROR"):
                resp = self.client.post("/api/razorpay/create-order", data="{}", content_type="application/json")
        self.assertEqual(resp.status_code, 500)
        body = resp.json()
        self.assertEqual(body["error"], "Backend Service Unavailable")
        self.assertIn("payment service is currently unavailable", body["message"])
        self.assertNotIn("10.0.0.7", resp.content.decode())


class SpaFallbackTests(EdgeTestCase):
    def test_client_routes_render_index(self):
        resp = self.client.get("/registration/success")
        self.assertEqual(resp.status_code, 200)
        self.assertIn(b'<div id=root>', b"".join(resp.streaming_content))

    def test_health_is_not_shadowed(self):
        resp = self.client.get("/health")
        self.assertEqual(resp.json()["status"], "ok")

    def test_unmatched_post_is_json_404(self):
        resp = self.client.post("/nowhere")
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["path"], "/nowhere")

    def test_security_headers(self):
        resp = self.client.get("/health")
        self.assertEqual(resp["X-Content-Type-Options"], "nosniff")
        self.assertEqual(resp["X-Frame-Options"], "DENY")
        self.assertEqual(resp["X-XSS-Protection"], "1; mode=block")


class EdgeDetailedHealthTests(EdgeTestCase):
    def _backend_ok(self):
        resp = MagicMock(status_code=200)
        resp.json.return_value = {"status": "ok", "uptime": 12.5}
        return resp

    def test_all_ok(self):
        with patch("edge.views.requests.get", return_value=self._backend_ok()):
            resp = self.client.get("/health/detailed")
        self.assertEqual(resp.status_code, 200)
        services = resp.json()["services"]
        self.assertEqual(services["backend"]["backendStatus"], "ok")
        self.assertEqual(services["indexFile"]["status"], "ok")

    def test_backend_down_degrades(self):
        with patch("edge.views.requests.get", side_effect=requests.Timeout("slow")):
            with self.assertLogs("edge.views", level="WARNING"):
                resp = self.client.get("/health/detailed")
        self.assertEqual(resp.status_code, 206)
        self.assertEqual(resp.json()["status"], "degraded")

    def test_backend_non_object_health_body(self):
        resp = MagicMock(status_code=200)
        resp.json.return_value = ["ok"]
        with patch("edge.views.requests.get", return_value=resp):
            resp = self.client.get("/health/detailed")
        self.assertEqual(resp.status_code, 200)
        self.assertIsNone(resp.json()["services"]["backend"]["backendStatus"])

    def test_missing_index_is_error(self):
        os.remove(os.path.join(self.dist, "index.html"))
        with patch("edge.views.requests.get", return_value=self._backend_ok()):
            resp = self.client.get("/health/detailed")
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.json()["status"], "error")
