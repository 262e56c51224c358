"""Serializers for the booking domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.payments.models import PaymentAttempt
from shared.infrastructure.encryption import mask

from .models import Booking, BookingStatusChange


class PaymentAttemptSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentAttempt
        fields = [
            "id",
            "method",
            "amount",
            "fee",
            "currency",
            "status",
            "gateway_transaction_id",
            "redirect_url",
            "gateway_status",
            "error_message",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BookingStatusChangeSerializer(serializers.ModelSerializer):
    class Meta:
        model = BookingStatusChange
        fields = ["from_status", "to_status", "reason", "actor", "created_at"]
        read_only_fields = fields


class BookingSerializer(serializers.ModelSerializer):
    """Детальный сериализатор бронирования; телефон и документ маскируются."""

    phone = serializers.SerializerMethodField()
    document_id = serializers.SerializerMethodField()
    status_changes = BookingStatusChangeSerializer(many=True, read_only=True)
    payment_attempts = PaymentAttemptSerializer(many=True, read_only=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "booking_number",
            "service_reference",
            "check_in",
            "check_out",
            "adults",
            "children",
            "add_on_ids",
            "full_name",
            "email",
            "phone",
            "document_id",
            "special_requests",
            "payment_method",
            "nights",
            "subtotal",
            "tax",
            "total",
            "currency",
            "status",
            "status_changes",
            "payment_attempts",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_phone(self, obj: Booking) -> str:
        return mask(obj.phone)

    def get_document_id(self, obj: Booking) -> str:
        return mask(obj.document_id)


class BookingCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
