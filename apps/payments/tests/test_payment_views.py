"""Integration tests for the payment return, webhook and status endpoints."""

from __future__ import annotations

import hashlib
import hmac
import json
import uuid

from asgiref.sync import async_to_sync
from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from apps.bookings.domain.entities import PaymentMethod
from apps.bookings.models import Booking
from apps.bookings.repositories import DjangoBookingStore
from apps.bookings.testing import sample_snapshot
from apps.payments.gateway import get_payment_gateway
from apps.payments.models import PaymentAttempt
from apps.payments.services import build_payment_handoff

WEBHOOK_SECRET = b"test-webhook-secret"


def sign(body: bytes) -> str:
    return "sha256=" + hmac.new(WEBHOOK_SECRET, body, hashlib.sha256).hexdigest()


class PaymentViewTestCase(TestCase):

    def setUp(self) -> None:
        get_payment_gateway.cache_clear()
        self.addCleanup(get_payment_gateway.cache_clear)
        self.gateway = get_payment_gateway()

        store = DjangoBookingStore()
        self.booking = async_to_sync(store.create_booking)(
            sample_snapshot(payment_method=PaymentMethod.GATEWAY_REDIRECT), "key-1"
        )
        outcome = async_to_sync(build_payment_handoff().start)(self.booking, PaymentMethod.GATEWAY_REDIRECT)
        self.session_id = outcome.attempt.checkout_session_id

    def booking_status(self) -> str:
        return Booking.objects.get(pk=self.booking.id).status


class PaymentReturnViewTests(PaymentViewTestCase):

    def test_approved_return_confirms_booking(self) -> None:
        params = self.gateway.complete_checkout(self.session_id, "approved")

        response = self.client.get(reverse("payments:payment_return"), params)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "paid")
        self.assertTrue(body["confirmed"])
        self.assertTrue(body["applied"])
        self.assertEqual(body["booking_id"], str(self.booking.id))
        self.assertEqual(self.booking_status(), Booking.Status.PAID)
        attempt = PaymentAttempt.objects.get(booking_id=self.booking.id)
        self.assertEqual(attempt.status, PaymentAttempt.Status.APPROVED)
        self.assertEqual(attempt.gateway_transaction_id, params["collection_id"])

    def test_refreshing_the_return_page_is_harmless(self) -> None:
        params = self.gateway.complete_checkout(self.session_id, "approved")

        self.client.get(reverse("payments:payment_return"), params)
        response = self.client.get(reverse("payments:payment_return"), params)

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["applied"])
        booking = Booking.objects.get(pk=self.booking.id)
        self.assertEqual(booking.status_changes.filter(to_status=Booking.Status.PAID).count(), 1)

    def test_return_without_parameters(self) -> None:
        response = self.client.get(reverse("payments:payment_return"))

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["status"], "malformed-return")
        self.assertEqual(self.booking_status(), Booking.Status.AWAITING_PAYMENT)

    def test_return_rejects_post(self) -> None:
        response = self.client.post(reverse("payments:payment_return"))
        self.assertEqual(response.status_code, 405)


class PaymentWebhookViewTests(PaymentViewTestCase):

    def post(self, body: bytes, signature: str | None = None):
        return self.client.post(
            reverse("payments:payment_webhook"),
            data=body,
            content_type="application/json",
            HTTP_X_GATEWAY_SIGNATURE=sign(body) if signature is None else signature,
        )

    def test_signed_notification_is_applied(self) -> None:
        params = self.gateway.complete_checkout(self.session_id, "rejected")

        response = self.post(json.dumps(params).encode())

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "rejected")
        self.assertEqual(self.booking_status(), Booking.Status.REJECTED)

    def test_nested_payload(self) -> None:
        params = self.gateway.complete_checkout(self.session_id, "approved")
        body = json.dumps({"type": "payment", "data": params}).encode()

        response = self.post(body)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.booking_status(), Booking.Status.PAID)

    def test_invalid_signature_is_refused(self) -> None:
        params = self.gateway.complete_checkout(self.session_id, "approved")

        response = self.post(json.dumps(params).encode(), signature="sha256=deadbeef")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.booking_status(), Booking.Status.AWAITING_PAYMENT)

    def test_invalid_json(self) -> None:
        response = self.post(b"not json")
        self.assertEqual(response.status_code, 400)

    def test_non_object_payload(self) -> None:
        response = self.post(b"[1, 2]")
        self.assertEqual(response.status_code, 400)


class BookingPaymentStatusViewTests(PaymentViewTestCase):

    def check_status(self, booking_id=None, token: str | None = "customer-1"):
        headers = {"HTTP_X_CUSTOMER_TOKEN": token} if token is not None else {}
        return self.client.get(
            reverse("payments:booking_payment_status", args=[booking_id or self.booking.id]),
            **headers,
        )

    def test_status_check_picks_up_late_approval(self) -> None:
        params = self.gateway.complete_checkout(self.session_id, "pending")
        self.client.get(reverse("payments:payment_return"), params)
        self.gateway.set_status(params["collection_id"], "approved")

        response = self.check_status()

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "paid")
        self.assertEqual(self.booking_status(), Booking.Status.PAID)

    def test_status_check_before_return(self) -> None:
        response = self.check_status()

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["booking_status"], Booking.Status.AWAITING_PAYMENT)
        self.assertFalse(response.json()["applied"])

    def test_unknown_booking(self) -> None:
        response = self.check_status(booking_id=uuid.uuid4())
        self.assertEqual(response.status_code, 404)

    def test_status_check_requires_customer_token(self) -> None:
        params = self.gateway.complete_checkout(self.session_id, "pending")
        self.client.get(reverse("payments:payment_return"), params)
        self.gateway.set_status(params["collection_id"], "approved")

        self.assertEqual(self.check_status(token=None).status_code, 404)
        self.assertEqual(self.check_status(token="someone-else").status_code, 404)
        # Nobody else can trigger the gateway re-query either.
        self.assertEqual(self.booking_status(), Booking.Status.AWAITING_PAYMENT)

    def test_staff_can_check_any_booking(self) -> None:
        staff = get_user_model().objects.create_user(
            username="support", password="password", is_staff=True
        )
        self.client.force_login(staff)

        response = self.check_status(token=None)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["booking_id"], str(self.booking.id))
