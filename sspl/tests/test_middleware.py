from django.test import SimpleTestCase, override_settings


class SecurityHeaderTests(SimpleTestCase):
    def test_headers_on_every_response(self):
        response = self.client.get('/health')
        self.assertEqual(response["X-Content-Type-Options"], "nosniff")
        self.assertEqual(response["X-Frame-Options"], "DENY")
        self.assertEqual(response["X-XSS-Protection"], "1; mode=block")


class DevelopmentCorsTests(SimpleTestCase):
    def test_any_origin_allowed(self):
        response = self.client.get('/health', HTTP_ORIGIN="http://192.168.1.20:5173")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Access-Control-Allow-Origin"], "http://192.168.1.20:5173")
        self.assertEqual(response["Access-Control-Allow-Credentials"], "true")

    def test_preflight_answered_without_view(self):
        response = self.client.options(
            '/api/razorpay/create-order',
            HTTP_ORIGIN="http://localhost:5173",
            HTTP_ACCESS_CONTROL_REQUEST_METHOD="POST",
        )
        self.assertEqual(response.status_code, 204)
        self.assertIn("POST", response["Access-Control-Allow-Methods"])
        self.assertIn("Idempotency-Key", response["Access-Control-Allow-Headers"])


@override_settings(SSPL_ENV="production", ALLOWED_ORIGINS="https://partner.example.com")
class ProductionCorsTests(SimpleTestCase):
    def test_project_domain_allowed(self):
        response = self.client.get('/health', HTTP_ORIGIN="https://ssplt10.cloud")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Access-Control-Allow-Origin"], "https://ssplt10.cloud")
        self.assertIn("Origin", response["Vary"])

    def test_extra_origin_from_settings(self):
        response = self.client.get('/health', HTTP_ORIGIN="https://partner.example.com")
        self.assertEqual(response.status_code, 200)

    def test_unknown_origin_blocked(self):
        with self.assertLogs("sspl.middleware", level="WARNING"):
            response = self.client.get('/health', HTTP_ORIGIN="https://evil.example.com")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"error": "Not allowed by CORS"})

    def test_file_origin_treated_as_null(self):
        response = self.client.get('/health', HTTP_ORIGIN="file://")
        self.assertEqual(response.status_code, 200)

    def test_no_origin_passes(self):
        self.assertEqual(self.client.get('/health').status_code, 200)
