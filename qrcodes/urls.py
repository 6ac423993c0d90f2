from django.urls import path

from . import views

app_name = "qrcodes"

urlpatterns = [
    path("qr-codes", views.qr_codes_view, name="list"),
    path("qr-codes/generate", views.generate_view, name="generate"),
    path("qr-codes/bulk-generate", views.bulk_generate_view, name="bulk_generate"),
    path("qr-codes/track", views.track_view, name="track"),
    path("qr-codes/<int:pk>", views.qr_code_detail_view, name="detail"),
    path("qr-codes/<int:pk>/analytics", views.analytics_view, name="analytics"),
]
