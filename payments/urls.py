from django.urls import path

from . import views

urlpatterns = [
    path("create-order", views.create_order_view, name="create_order"),
    path("verify-payment", views.verify_payment_view, name="verify_payment"),
    path("cancel", views.cancel_payment_view, name="cancel_payment"),
    path("config", views.config_view, name="config"),
]
