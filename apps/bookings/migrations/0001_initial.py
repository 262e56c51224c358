import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models

import apps.bookings.models
import shared.infrastructure.fields

STATUS_CHOICES = [
    ("pending", "Pending"),
    ("awaiting-payment", "Awaiting payment"),
    ("paid", "Paid"),
    ("rejected", "Rejected"),
    ("cancelled", "Cancelled"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "booking_number",
                    models.CharField(
                        default=apps.bookings.models.generate_booking_number,
                        editable=False,
                        max_length=32,
                        unique=True,
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(
                        help_text="Client-generated key; a repeated commit with the same key returns the same booking.",
                        max_length=64,
                        unique=True,
                    ),
                ),
                ("customer_token", models.CharField(blank=True, max_length=255)),
                ("service_reference", models.CharField(db_index=True, max_length=64)),
                ("check_in", models.DateField()),
                ("check_out", models.DateField(blank=True, null=True)),
                ("adults", models.PositiveSmallIntegerField(default=1)),
                ("children", models.PositiveSmallIntegerField(default=0)),
                ("add_on_ids", models.JSONField(blank=True, default=list)),
                ("full_name", models.CharField(max_length=255)),
                ("email", models.EmailField(max_length=254)),
                ("phone", shared.infrastructure.fields.EncryptedCharField(max_length=32)),
                ("document_id", shared.infrastructure.fields.EncryptedCharField(max_length=32)),
                ("special_requests", models.TextField(blank=True)),
                (
                    "payment_method",
                    models.CharField(
                        choices=[
                            ("gateway-redirect", "Hosted checkout"),
                            ("card", "Card"),
                            ("bank-debit", "Bank debit"),
                            ("wallet", "Wallet"),
                        ],
                        max_length=32,
                    ),
                ),
                ("currency", models.CharField(default="COP", max_length=3)),
                ("nights", models.PositiveSmallIntegerField(default=1)),
                ("subtotal", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("tax", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("total", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("status", models.CharField(choices=STATUS_CHOICES, default="pending", max_length=32)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Booking",
                "verbose_name_plural": "Bookings",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["service_reference", "check_in"], name="booking_service_check_in_idx"),
                    models.Index(fields=["status"], name="booking_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("check_out__isnull", True), ("check_out__gte", models.F("check_in")), _connector="OR"),
                        name="booking_check_out_not_before_check_in",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="BookingStatusChange",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("from_status", models.CharField(blank=True, choices=STATUS_CHOICES, max_length=32)),
                ("to_status", models.CharField(choices=STATUS_CHOICES, max_length=32)),
                ("reason", models.CharField(blank=True, max_length=255)),
                ("actor", models.CharField(default="system", max_length=64)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="status_changes",
                        to="bookings.booking",
                    ),
                ),
            ],
            options={
                "verbose_name": "Booking status change",
                "verbose_name_plural": "Booking status changes",
                "ordering": ["created_at", "id"],
            },
        ),
    ]
