from django.db import models


class PlayerRegistration(models.Model):
    STATUS_CHOICES = [
        ("pending", "pending"),
        ("completed", "completed"),
        ("cancelled", "cancelled"),
    ]
    PAYMENT_STATUS_CHOICES = [
        ("pending", "pending"),
        ("completed", "completed"),
        ("failed", "failed"),
    ]

    full_name = models.CharField(max_length=128)
    email = models.EmailField()
    phone = models.CharField(max_length=20)
    age = models.PositiveSmallIntegerField(null=True, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    team_name = models.CharField(max_length=128, blank=True, default="")
    position = models.CharField(max_length=32, default="Batting")
    state = models.CharField(max_length=64, blank=True, default="")
    city = models.CharField(max_length=64, blank=True, default="")
    pincode = models.CharField(max_length=10, blank=True, default="")
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default="pending", db_index=True)
    payment_status = models.CharField(max_length=16, choices=PAYMENT_STATUS_CHOICES, default="pending", db_index=True)
    payment_amount = models.DecimalField(max_digits=10, decimal_places=2)
    # one row per gateway order and payment; NULLs don't collide
    razorpay_order_id = models.CharField(max_length=64, unique=True, null=True, blank=True)
    razorpay_payment_id = models.CharField(max_length=64, unique=True, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "player_registrations"
        ordering = ("-created_at",)

    def __str__(self):
        return f"{self.full_name} {self.payment_status} ₹{self.payment_amount}"

    def as_dict(self) -> dict:
        return {
            "id": self.pk,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "age": self.age,
            "team_name": self.team_name or None,
            "position": self.position,
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_amount": float(self.payment_amount),
            "razorpay_order_id": self.razorpay_order_id,
            "razorpay_payment_id": self.razorpay_payment_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
