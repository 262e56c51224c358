"""Admin registration for bookings."""

from __future__ import annotations

from django.contrib import admin

from shared.infrastructure.encryption import mask

from .models import Booking, BookingStatusChange


class BookingStatusChangeInline(admin.TabularInline):
    model = BookingStatusChange
    extra = 0
    can_delete = False
    readonly_fields = ("from_status", "to_status", "reason", "actor", "created_at")


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "booking_number",
        "service_reference",
        "full_name",
        "status",
        "payment_method",
        "check_in",
        "check_out",
        "total",
        "created_at",
    )
    list_filter = ("status", "payment_method", "check_in")
    search_fields = ("booking_number", "service_reference", "email", "full_name")
    exclude = ("phone", "document_id")
    readonly_fields = (
        "booking_number",
        "idempotency_key",
        "masked_phone",
        "masked_document_id",
        "status",
        "subtotal",
        "tax",
        "total",
        "nights",
        "created_at",
        "updated_at",
    )
    inlines = [BookingStatusChangeInline]

    @admin.display(description="Phone")
    def masked_phone(self, obj: Booking) -> str:
        return mask(obj.phone)

    @admin.display(description="Document")
    def masked_document_id(self, obj: Booking) -> str:
        return mask(obj.document_id)
