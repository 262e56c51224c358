"""Booking records and their status history."""

from __future__ import annotations

import secrets
import uuid
from datetime import timedelta
from decimal import Decimal

from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.infrastructure.fields import EncryptedCharField


def generate_booking_number() -> str:
    """BK + timestamp + 6 random hex chars, e.g. BK20240210153012A1B2C3."""
    return f"BK{timezone.now().strftime('%Y%m%d%H%M%S')}{secrets.token_hex(3).upper()}"


class Booking(models.Model):
    """A committed booking. Only `status` changes after creation."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        AWAITING_PAYMENT = "awaiting-payment", _("Awaiting payment")
        PAID = "paid", _("Paid")
        REJECTED = "rejected", _("Rejected")
        CANCELLED = "cancelled", _("Cancelled")

    class PaymentMethod(models.TextChoices):
        GATEWAY_REDIRECT = "gateway-redirect", _("Hosted checkout")
        CARD = "card", _("Card")
        BANK_DEBIT = "bank-debit", _("Bank debit")
        WALLET = "wallet", _("Wallet")

    ACTIVE_STATUSES = (Status.PENDING, Status.AWAITING_PAYMENT, Status.PAID)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking_number = models.CharField(max_length=32, unique=True, default=generate_booking_number, editable=False)
    idempotency_key = models.CharField(
        max_length=64,
        unique=True,
        help_text=_("Client-generated key; a repeated commit with the same key returns the same booking."),
    )
    customer_token = models.CharField(max_length=255, blank=True)

    service_reference = models.CharField(max_length=64, db_index=True)
    check_in = models.DateField()
    check_out = models.DateField(null=True, blank=True)
    adults = models.PositiveSmallIntegerField(default=1)
    children = models.PositiveSmallIntegerField(default=0)
    add_on_ids = models.JSONField(default=list, blank=True)

    full_name = models.CharField(max_length=255)
    email = models.EmailField()
    phone = EncryptedCharField(max_length=32)
    document_id = EncryptedCharField(max_length=32)
    special_requests = models.TextField(blank=True)

    payment_method = models.CharField(max_length=32, choices=PaymentMethod.choices)
    currency = models.CharField(max_length=3, default="COP")
    nights = models.PositiveSmallIntegerField(default=1)
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    tax = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    status = models.CharField(max_length=32, choices=Status.choices, default=Status.PENDING)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Booking")
        verbose_name_plural = _("Bookings")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(check_out__isnull=True) | models.Q(check_out__gte=models.F("check_in")),
                name="booking_check_out_not_before_check_in",
            ),
        ]
        indexes = [
            models.Index(fields=["service_reference", "check_in"], name="booking_service_check_in_idx"),
            models.Index(fields=["status"], name="booking_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Booking {self.booking_number} ({self.status})"

    @property
    def occupied_until(self):
        if self.check_out is None or self.check_out <= self.check_in:
            return self.check_in + timedelta(days=1)
        return self.check_out

    @property
    def head_count(self) -> int:
        return self.adults + self.children


class BookingStatusChange(models.Model):
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="status_changes")
    from_status = models.CharField(max_length=32, choices=Booking.Status.choices, blank=True)
    to_status = models.CharField(max_length=32, choices=Booking.Status.choices)
    reason = models.CharField(max_length=255, blank=True)
    actor = models.CharField(max_length=64, default="system")
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["created_at", "id"]
        verbose_name = _("Booking status change")
        verbose_name_plural = _("Booking status changes")

    def __str__(self) -> str:
        return f"{self.booking_id}: {self.from_status or '-'} -> {self.to_status}"
