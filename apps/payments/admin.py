"""Admin registration for payment attempts."""

from __future__ import annotations

from django.contrib import admin

from .models import PaymentAttempt


@admin.register(PaymentAttempt)
class PaymentAttemptAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "booking",
        "method",
        "amount",
        "fee",
        "status",
        "gateway_transaction_id",
        "created_at",
    )
    list_filter = ("status", "method", "currency")
    search_fields = ("booking__booking_number", "gateway_transaction_id", "checkout_session_id", "idempotency_key")
    readonly_fields = (
        "booking",
        "amount",
        "fee",
        "idempotency_key",
        "gateway_transaction_id",
        "checkout_session_id",
        "redirect_url",
        "gateway_status",
        "error_message",
        "created_at",
        "updated_at",
    )
