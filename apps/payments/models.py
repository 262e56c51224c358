"""Payment attempt ledger."""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from apps.bookings.models import Booking


class PaymentAttempt(models.Model):
    """One interaction with the payment gateway for a booking."""

    class Status(models.TextChoices):
        INITIATED = "initiated", _("Initiated")
        AWAITING = "awaiting", _("Awaiting gateway")
        APPROVED = "approved", _("Approved")
        DECLINED = "declined", _("Declined")
        ERROR = "error", _("Error")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="payment_attempts")
    method = models.CharField(max_length=32, choices=Booking.PaymentMethod.choices)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    fee = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="COP")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.INITIATED)
    idempotency_key = models.CharField(max_length=64, blank=True, db_index=True)
    gateway_transaction_id = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    checkout_session_id = models.CharField(max_length=100, blank=True)
    redirect_url = models.URLField(max_length=1000, blank=True)
    gateway_status = models.CharField(max_length=32, blank=True)
    error_message = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = _("Payment attempt")
        verbose_name_plural = _("Payment attempts")
        indexes = [
            models.Index(fields=["booking", "status"], name="payment_attempt_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Payment attempt {self.id} for booking {self.booking_id} - {self.status}"
