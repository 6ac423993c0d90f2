from django.urls import path

from . import views

app_name = "registrations"

urlpatterns = [
    path("registrations", views.register_view, name="register"),
    path("registrations/fee", views.fee_view, name="fee"),
]
