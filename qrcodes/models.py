from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class QRCodeQuerySet(models.QuerySet):
    def scannable(self, now=None):
        now = now or timezone.now()
        return self.filter(
            Q(expires_at__isnull=True) | Q(expires_at__gt=now),
            Q(max_scans__isnull=True) | Q(current_scans__lt=F("max_scans")),
            is_active=True,
        )


class QRCode(models.Model):
    code = models.CharField(max_length=64, unique=True)
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    target_url = models.URLField(max_length=2048)
    created_by = models.CharField(max_length=64, db_index=True)  # hosted-auth user id
    is_active = models.BooleanField(default=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    max_scans = models.PositiveIntegerField(null=True, blank=True)
    current_scans = models.PositiveIntegerField(default=0)
    tags = models.JSONField(default=list, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = QRCodeQuerySet.as_manager()

    class Meta:
        db_table = "sspl_qr_codes"
        ordering = ("-created_at", "-id")

    def __str__(self):
        return f"{self.code} {self.title}"

    def as_dict(self) -> dict:
        return {
            "id": self.pk,
            "code": self.code,
            "title": self.title,
            "description": self.description,
            "targetUrl": self.target_url,
            "isActive": self.is_active,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "maxScans": self.max_scans,
            "currentScans": self.current_scans,
            "tags": self.tags,
            "metadata": self.metadata,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class QRScan(models.Model):
    qr_code = models.ForeignKey(QRCode, on_delete=models.CASCADE, related_name="scans")
    ip_address = models.CharField(max_length=64, blank=True, default="")
    user_agent = models.TextField(blank=True, default="")
    referrer = models.TextField(blank=True, default="")
    location_data = models.JSONField(default=dict, blank=True)
    device_info = models.JSONField(default=dict, blank=True)
    scan_source = models.CharField(max_length=64, default="direct")
    scanned_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = "sspl_qr_analytics"
        ordering = ("-scanned_at",)

    def as_dict(self) -> dict:
        return {
            "id": self.pk,
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "referrer": self.referrer,
            "locationData": self.location_data,
            "deviceInfo": self.device_info,
            "scanSource": self.scan_source,
            "scannedAt": self.scanned_at.isoformat(),
        }


class QRAccessLog(models.Model):
    ACTION_CHOICES = [
        ("create", "create"),
        ("update", "update"),
        ("delete", "delete"),
        ("scan", "scan"),
    ]
    # plain id so delete entries outlive the code they describe
    qr_code_id = models.BigIntegerField(db_index=True)
    user_id = models.CharField(max_length=64, blank=True, default="")
    action = models.CharField(max_length=16, choices=ACTION_CHOICES)
    ip_address = models.CharField(max_length=64, blank=True, default="")
    user_agent = models.TextField(blank=True, default="")
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "sspl_qr_access_logs"
        ordering = ("-created_at",)
