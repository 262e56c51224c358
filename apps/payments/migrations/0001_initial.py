import uuid
from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("bookings", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentAttempt",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "method",
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
                ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("fee", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("currency", models.CharField(default="COP", max_length=3)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("initiated", "Initiated"),
                            ("awaiting", "Awaiting gateway"),
                            ("approved", "Approved"),
                            ("declined", "Declined"),
                            ("error", "Error"),
                        ],
                        default="initiated",
                        max_length=16,
                    ),
                ),
                ("gateway_transaction_id", models.CharField(blank=True, db_index=True, max_length=100, null=True)),
                ("checkout_session_id", models.CharField(blank=True, max_length=100)),
                ("redirect_url", models.URLField(blank=True, max_length=1000)),
                ("gateway_status", models.CharField(blank=True, max_length=32)),
                ("error_message", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payment_attempts",
                        to="bookings.booking",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment attempt",
                "verbose_name_plural": "Payment attempts",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["booking", "status"], name="payment_attempt_status_idx"),
                ],
            },
        ),
    ]
