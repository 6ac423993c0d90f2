from django.contrib import admin

from .models import QRAccessLog, QRCode, QRScan


@admin.register(QRCode)
class QRCodeAdmin(admin.ModelAdmin):
    list_display = ("id", "code", "title", "created_by", "is_active", "current_scans", "max_scans", "expires_at")
    list_filter = ("is_active",)
    search_fields = ("code", "title", "description", "target_url", "created_by")


@admin.register(QRScan)
class QRScanAdmin(admin.ModelAdmin):
    list_display = ("id", "qr_code", "scan_source", "ip_address", "scanned_at")
    list_filter = ("scan_source",)


admin.site.register(QRAccessLog)
