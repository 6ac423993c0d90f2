import json

from django.test import RequestFactory, SimpleTestCase, override_settings

from sspl.views import error_500_view


@override_settings(DEBUG=False)
class ErrorHandlerTests(SimpleTestCase):
    def test_unknown_route_is_json_404(self):
        response = self.client.get('/this-url-does-not-exist/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {
            "error": "Not Found",
            "message": "The requested resource was not found",
            "path": "/this-url-does-not-exist/",
        })

    def test_500_hides_details(self):
        request = RequestFactory().get('/create-order')
        try:
            raise RuntimeError("password authentication failed for user sspl")
        except RuntimeError:
            response = error_500_view(request)
        self.assertEqual(response.status_code, 500)
        self.assertEqual(json.loads(response.content), {
            "error": "Internal Server Error",
            "message": "Something went wrong",
        })

    @override_settings(DEBUG=True)
    def test_500_shows_details_when_debugging(self):
        request = RequestFactory().get('/create-order')
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            response = error_500_view(request)
        self.assertEqual(json.loads(response.content)["message"], "boom")
