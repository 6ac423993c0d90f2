from django.contrib import admin
from django.urls import include, path

from payments import health
from payments.urls import urlpatterns as payment_patterns

urlpatterns = [
    path("health", health.health_view, name="health"),
    path("health/detailed", health.health_detailed_view, name="health_detailed"),
    path("api/health", health.health_view),

    # same payment endpoints at the bare path, under /api/ and under /api/razorpay/
    path("", include((payment_patterns, "payments"), namespace="payments")),
    path("api/", include((payment_patterns, "payments"), namespace="payments-api")),
    path("api/razorpay/", include((payment_patterns, "payments"), namespace="payments-razorpay")),

    path("api/", include("registrations.urls")),
    path("api/", include("qrcodes.urls")),
    path("admin/", admin.site.urls),
]

handler404 = "sspl.views.error_404_view"
handler500 = "sspl.views.error_500_view"
