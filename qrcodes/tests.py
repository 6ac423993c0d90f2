import json
from datetime import timedelta

import jwt
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone

from .models import QRAccessLog, QRCode, QRScan
from .utils import gen_code, parse_user_agent, valid_target_url

SECRET = "test-supabase-jwt-secret-with-enough-length"

IPHONE = ("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
          "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1")
ANDROID_CHROME = ("Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 "
                  "(KHTML, like Gecko) Chrome/120.0 Mobile Safari/537.36")
WINDOWS_EDGE = ("Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/120.0 Safari/537.36 Edg/120.0")


def _token(sub="user-1", aud="authenticated", secret=SECRET, **claims):
    payload = {"sub": sub, "aud": aud, "exp": timezone.now() + timedelta(hours=1), **claims}
    return jwt.encode(payload, secret, algorithm="HS256")


class UtilsTests(SimpleTestCase):
    def test_code_format(self):
        self.assertRegex(gen_code(), r"^SSPL-\d{13}-[0-9a-z]{9}$")
        self.assertNotEqual(gen_code(), gen_code())

    def test_target_url(self):
        self.assertTrue(valid_target_url("https://ssplt10.cloud/register?ref=qr"))
        for bad in ("ssplt10.cloud", "ftp://ssplt10.cloud/x", "javascript:alert(1)", None, 42):
            self.assertFalse(valid_target_url(bad), bad)

    def test_user_agents(self):
        iphone = parse_user_agent(IPHONE)
        self.assertEqual((iphone["browser"], iphone["os"], iphone["isMobile"]), ("Safari", "iOS", True))
        android = parse_user_agent(ANDROID_CHROME)
        self.assertEqual((android["browser"], android["os"]), ("Chrome", "Android"))
        self.assertTrue(android["isMobile"])
        edge = parse_user_agent(WINDOWS_EDGE)
        self.assertEqual((edge["browser"], edge["os"], edge["isDesktop"]), ("Edge", "Windows", True))
        self.assertEqual(parse_user_agent("")["browser"], "unknown")


class QRTestCase(TestCase):
    def _auth(self, **kwargs):
        return {"HTTP_AUTHORIZATION": f"Bearer {_token(**kwargs)}"}

    def _post(self, url, payload, **extra):
        return self.client.post(url, data=json.dumps(payload), content_type="application/json", **extra)

    def _make(self, owner="user-1", **fields):
        fields.setdefault("title", "Gate poster")
        fields.setdefault("target_url", "https://ssplt10.cloud/register")
        return QRCode.objects.create(code=gen_code(), created_by=owner, **fields)


class AuthTests(QRTestCase):
    url = "/api/qr-codes/generate"
    payload = {"title": "Poster", "targetUrl": "https://ssplt10.cloud"}

    def test_missing_header(self):
        resp = self._post(self.url, self.payload)
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json(), {"success": False, "error": "Missing authorization header"})

    def test_bad_tokens(self):
        for token in (_token(secret="some-other-secret-of-enough-length"), _token(aud="anon"), "garbage"):
            resp = self._post(self.url, self.payload, HTTP_AUTHORIZATION=f"Bearer {token}")
            self.assertEqual(resp.status_code, 401)
        self.assertFalse(QRCode.objects.exists())

    def test_expired_token(self):
        token = _token(exp=timezone.now() - timedelta(minutes=1))
        resp = self._post(self.url, self.payload, HTTP_AUTHORIZATION=f"Bearer {token}")
        self.assertEqual(resp.status_code, 401)


class GenerateTests(QRTestCase):
    url = "/api/qr-codes/generate"

    def test_creates_code_and_log(self):
        resp = self._post(self.url, {
            "title": "Stadium gate",
            "targetUrl": "https://ssplt10.cloud/register",
            "maxScans": 500,
            "tags": ["gate"],
        }, **self._auth())
        self.assertEqual(resp.status_code, 200)
        qr = resp.json()["qrCode"]
        self.assertRegex(qr["code"], r"^SSPL-\d{13}-[0-9a-z]{9}$")
        self.assertEqual(qr["maxScans"], 500)
        self.assertEqual(qr["currentScans"], 0)
        self.assertTrue(qr["isActive"])
        self.assertEqual(QRCode.objects.get().created_by, "user-1")
        log = QRAccessLog.objects.get()
        self.assertEqual((log.action, log.user_id, log.qr_code_id), ("create", "user-1", qr["id"]))

    def test_requires_title_and_url(self):
        resp = self._post(self.url, {"title": "x"}, **self._auth())
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Title and target URL are required")

    def test_rejects_relative_url(self):
        resp = self._post(self.url, {"title": "x", "targetUrl": "/register"}, **self._auth())
        self.assertEqual(resp.json()["error"], "Invalid target URL format")
        self.assertFalse(QRCode.objects.exists())


class BulkGenerateTests(QRTestCase):
    url = "/api/qr-codes/bulk-generate"

    def test_limits(self):
        self.assertEqual(self._post(self.url, {"qrCodes": []}, **self._auth()).status_code, 400)
        too_many = [{"title": f"t{i}", "targetUrl": f"https://a.test/{i}"} for i in range(101)]
        resp = self._post(self.url, {"qrCodes": too_many}, **self._auth())
        self.assertEqual(resp.status_code, 400)
        self.assertIn("Maximum 100", resp.json()["error"])

    def test_per_item_results(self):
        self._make(target_url="https://a.test/existing")
        resp = self._post(self.url, {"qrCodes": [
            {"title": "one", "targetUrl": "https://a.test/1"},
            {"title": "", "targetUrl": "https://a.test/2"},
            {"title": "dup", "targetUrl": "https://a.test/existing"},
            {"title": "bad", "targetUrl": "not a url"},
            {"title": "again", "targetUrl": "https://a.test/1"},
        ]}, **self._auth())
        body = resp.json()
        self.assertEqual([r["success"] for r in body["results"]], [True, False, False, False, False])
        self.assertEqual([r["index"] for r in body["results"]], [0, 1, 2, 3, 4])
        self.assertEqual(body["results"][2]["error"], "QR code with this URL already exists")
        self.assertEqual(body["summary"]["total"], 5)
        self.assertEqual(body["summary"]["successful"], 1)
        self.assertEqual(body["summary"]["failed"], 4)
        self.assertEqual(QRAccessLog.objects.get().details, {"bulk": True, "batchIndex": 0})

    def test_duplicates_allowed_when_not_skipped(self):
        resp = self._post(self.url, {
            "qrCodes": [{"title": "a", "targetUrl": "https://a.test/1"}, {"title": "b", "targetUrl": "https://a.test/1"}],
            "options": {"skipDuplicates": False},
        }, **self._auth())
        self.assertEqual(resp.json()["summary"]["successful"], 2)


class TrackTests(QRTestCase):
    url = "/api/qr-codes/track"

    def test_unknown_code(self):
        self.assertEqual(self.client.get(self.url, {"code": "SSPL-0-nothing"}).status_code, 400)
        self.assertEqual(self.client.get(self.url).status_code, 400)

    def test_scan_redirects_and_records(self):
        qr = self._make()
        resp = self.client.get(
            self.url, {"code": qr.code, "source": "poster"},
            HTTP_USER_AGENT=IPHONE, HTTP_X_FORWARDED_FOR="203.0.113.9, 10.0.0.1", HTTP_CF_IPCOUNTRY="IN",
        )
        self.assertEqual(resp.status_code, 302)
        self.assertEqual(resp["Location"], "https://ssplt10.cloud/register")
        self.assertEqual(resp["Cache-Control"], "no-cache")

        qr.refresh_from_db()
        self.assertEqual(qr.current_scans, 1)
        scan = QRScan.objects.get()
        self.assertEqual((scan.ip_address, scan.scan_source), ("203.0.113.9", "poster"))
        self.assertEqual(scan.device_info["os"], "iOS")
        self.assertEqual(scan.location_data["country"], "IN")
        log = QRAccessLog.objects.get()
        self.assertEqual((log.action, log.details["scan_source"]), ("scan", "poster"))

    def test_default_source(self):
        qr = self._make()
        self.client.get(self.url, {"code": qr.code})
        self.assertEqual(QRScan.objects.get().scan_source, "direct")

    def test_unscannable_codes_are_gone(self):
        cases = [
            self._make(is_active=False),
            self._make(expires_at=timezone.now() - timedelta(days=1)),
            self._make(max_scans=2, current_scans=2),
        ]
        for qr in cases:
            resp = self.client.get(self.url, {"code": qr.code})
            self.assertEqual(resp.status_code, 410)
            self.assertEqual(resp.json()["error"], "QR code is expired or inactive")
        self.assertFalse(QRScan.objects.exists())
        self.assertEqual(QRCode.objects.get(pk=cases[2].pk).current_scans, 2)

    def test_last_allowed_scan(self):
        qr = self._make(max_scans=1)
        self.assertEqual(self.client.get(self.url, {"code": qr.code}).status_code, 302)
        self.assertEqual(self.client.get(self.url, {"code": qr.code}).status_code, 410)


class ManageTests(QRTestCase):
    def test_list_is_scoped_and_paginated(self):
        for i in range(3):
            self._make(title=f"Poster {i}")
        self._make(title="Inactive banner", is_active=False)
        self._make(owner="user-2", title="Poster other")

        resp = self.client.get("/api/qr-codes", {"page": 2, "limit": 2}, **self._auth())
        body = resp.json()
        self.assertEqual(body["pagination"], {"page": 2, "limit": 2, "total": 4, "totalPages": 2})
        self.assertEqual(len(body["qrCodes"]), 2)

        resp = self.client.get("/api/qr-codes", {"search": "poster", "isActive": "true"}, **self._auth())
        self.assertEqual(resp.json()["pagination"]["total"], 3)
        resp = self.client.get("/api/qr-codes", {"isActive": "false"}, **self._auth())
        self.assertEqual([q["title"] for q in resp.json()["qrCodes"]], ["Inactive banner"])

    def test_post_to_list_points_to_generate(self):
        resp = self._post("/api/qr-codes", {}, **self._auth())
        self.assertEqual(resp.status_code, 400)

    def test_owner_updates(self):
        qr = self._make()
        resp = self.client.put(
            f"/api/qr-codes/{qr.pk}",
            data=json.dumps({"title": "Renamed", "isActive": False, "maxScans": 10}),
            content_type="application/json",
            **self._auth(),
        )
        self.assertEqual(resp.status_code, 200)
        qr.refresh_from_db()
        self.assertEqual((qr.title, qr.is_active, qr.max_scans), ("Renamed", False, 10))
        log = QRAccessLog.objects.get(action="update")
        self.assertEqual(log.details["fields_updated"], ["is_active", "max_scans", "title"])

    def test_update_validates(self):
        qr = self._make()
        resp = self.client.put(f"/api/qr-codes/{qr.pk}", data=json.dumps({"targetUrl": "nope"}),
                               content_type="application/json", **self._auth())
        self.assertEqual(resp.status_code, 400)

    def test_non_owner_is_denied(self):
        qr = self._make(owner="user-2")
        resp = self.client.put(f"/api/qr-codes/{qr.pk}", data=json.dumps({"title": "x"}),
                               content_type="application/json", **self._auth())
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(self.client.delete(f"/api/qr-codes/{qr.pk}", **self._auth()).status_code, 403)
        self.assertTrue(QRCode.objects.filter(pk=qr.pk).exists())

    def test_missing_code(self):
        self.assertEqual(self.client.delete("/api/qr-codes/999", **self._auth()).status_code, 404)

    def test_owner_deletes(self):
        qr = self._make()
        resp = self.client.delete(f"/api/qr-codes/{qr.pk}", **self._auth())
        self.assertEqual(resp.json(), {"success": True, "message": "QR code deleted successfully"})
        self.assertFalse(QRCode.objects.exists())
        self.assertEqual(QRAccessLog.objects.get(action="delete").qr_code_id, qr.pk)


class AnalyticsTests(QRTestCase):
    def setUp(self):
        self.qr = self._make()
        now = timezone.now()
        for ua, ip, source, age in (
            (IPHONE, "1.1.1.1", "poster", 0),
            (IPHONE, "1.1.1.1", "poster", 1),
            (WINDOWS_EDGE, "2.2.2.2", "direct", 2),
            (ANDROID_CHROME, "3.3.3.3", "flyer", 45),
        ):
            QRScan.objects.create(qr_code=self.qr, ip_address=ip, user_agent=ua, scan_source=source,
                                  device_info=parse_user_agent(ua), scanned_at=now - timedelta(days=age))

    def test_summary_and_trends(self):
        resp = self.client.get(f"/api/qr-codes/{self.qr.pk}/analytics", **self._auth())
        body = resp.json()
        summary = body["summary"]
        self.assertEqual(summary["totalScans"], 4)
        self.assertEqual(summary["uniqueIps"], 3)
        self.assertEqual(summary["byDevice"], {"mobile": 3, "desktop": 1})
        self.assertEqual(summary["byBrowser"], {"Safari": 2, "Edge": 1, "Chrome": 1})
        self.assertEqual(summary["bySource"], {"poster": 2, "direct": 1, "flyer": 1})
        self.assertEqual(sum(t["scans"] for t in body["trends"]), 3)
        self.assertEqual(body["trends"], sorted(body["trends"], key=lambda t: t["date"]))

    def test_limit_and_date_range(self):
        start = (timezone.now() - timedelta(days=10)).date().isoformat()
        resp = self.client.get(f"/api/qr-codes/{self.qr.pk}/analytics",
                               {"limit": 2, "startDate": start}, **self._auth())
        body = resp.json()
        self.assertEqual(len(body["analytics"]), 2)
        self.assertEqual(body["summary"]["totalScans"], 3)

    def test_invalid_date(self):
        resp = self.client.get(f"/api/qr-codes/{self.qr.pk}/analytics", {"startDate": "yesterday"}, **self._auth())
        self.assertEqual(resp.status_code, 400)

    def test_other_users_cannot_read(self):
        resp = self.client.get(f"/api/qr-codes/{self.qr.pk}/analytics", **self._auth(sub="user-2"))
        self.assertEqual(resp.status_code, 403)


@override_settings(SUPABASE_JWT_SECRET="")
class MissingSecretTests(QRTestCase):
    def test_track_needs_no_secret(self):
        qr = self._make()
        self.assertEqual(self.client.get("/api/qr-codes/track", {"code": qr.code}).status_code, 302)
