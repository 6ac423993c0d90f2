from django.contrib import admin

from .models import PlayerRegistration


@admin.register(PlayerRegistration)
class PlayerRegistrationAdmin(admin.ModelAdmin):
    list_display = ("id", "full_name", "email", "phone", "team_name", "payment_status",
                    "payment_amount", "razorpay_payment_id", "created_at")
    list_filter = ("payment_status", "status", "position")
    search_fields = ("full_name", "email", "phone", "team_name", "razorpay_order_id", "razorpay_payment_id")
    readonly_fields = ("razorpay_order_id", "razorpay_payment_id", "created_at", "updated_at")
