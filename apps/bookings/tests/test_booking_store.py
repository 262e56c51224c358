"""Tests for the Django booking store."""

from __future__ import annotations

import dataclasses
from datetime import date

from asgiref.sync import async_to_sync
from django.core import mail
from django.db import connection
from django.test import TestCase

from apps.bookings.domain.entities import BookingStatus, Party
from apps.bookings.domain.events import BookingPaid
from apps.bookings.exceptions import (
    AvailabilityLost,
    BookingNotFound,
    BookingValidationRejected,
    InvalidStatusTransition,
)
from apps.bookings.models import Booking, BookingStatusChange
from apps.bookings.repositories import DjangoBookingStore
from apps.bookings.testing import lodging_service, sample_contact, sample_snapshot
from shared.application.message_bus import message_bus
from shared.domain.value_objects import DateRange


class DjangoBookingStoreTests(TestCase):

    def setUp(self) -> None:
        self.store = DjangoBookingStore()
        self.service = lodging_service(max_capacity=4)

    def create(self, key: str = "key-1", **kwargs):
        kwargs.setdefault("service", self.service)
        return async_to_sync(self.store.create_booking)(sample_snapshot(**kwargs), key)

    def update(self, booking_id, target, **kwargs):
        return async_to_sync(self.store.update_status)(booking_id, target, **kwargs)

    def test_create_persists_pending_booking(self) -> None:
        booking = self.create()

        row = Booking.objects.get(pk=booking.id)
        self.assertEqual(row.status, Booking.Status.PENDING)
        self.assertEqual(row.total, 714000)
        self.assertEqual(row.nights, 2)
        self.assertTrue(row.booking_number.startswith("BK"))
        self.assertEqual(row.status_changes.count(), 1)

    def test_contact_data_is_encrypted_at_rest(self) -> None:
        booking = self.create()

        with connection.cursor() as cursor:
            cursor.execute("SELECT phone, document_id FROM bookings_booking WHERE id = %s", [booking.id.hex])
            phone, document_id = cursor.fetchone()

        self.assertNotIn("3001234567", phone)
        self.assertNotEqual(document_id, "1020304050")
        self.assertEqual(Booking.objects.get(pk=booking.id).phone, "+573001234567")

    def test_same_idempotency_key_returns_existing_booking(self) -> None:
        first = self.create("key-1")
        second = self.create("key-1")

        self.assertEqual(first.id, second.id)
        self.assertEqual(Booking.objects.count(), 1)

    def test_capacity_is_shared_by_overlapping_bookings(self) -> None:
        self.create("key-1", party=Party(adults=3))

        with self.assertRaises(AvailabilityLost):
            self.create("key-2", party=Party(adults=2))

        self.assertEqual(Booking.objects.count(), 1)

    def test_adjacent_stays_do_not_share_capacity(self) -> None:
        self.create("key-1", party=Party(adults=4))
        self.create(
            "key-2",
            party=Party(adults=4),
            dates=DateRange(date(2024, 2, 12), date(2024, 2, 14)),
        )
        self.assertEqual(Booking.objects.count(), 2)

    def test_cancelled_booking_frees_capacity(self) -> None:
        booking = self.create("key-1", party=Party(adults=4))
        async_to_sync(self.store.cancel_booking)(booking.id, "changed plans")

        self.create("key-2", party=Party(adults=4))
        self.assertEqual(Booking.objects.count(), 2)

    def test_invalid_contact_is_rejected(self) -> None:
        snapshot = dataclasses.replace(sample_snapshot(self.service), contact=sample_contact(email="not-an-email"))

        with self.assertRaises(BookingValidationRejected) as ctx:
            async_to_sync(self.store.create_booking)(snapshot, "key-1")

        self.assertIn("email", ctx.exception.errors)
        self.assertEqual(Booking.objects.count(), 0)

    def test_status_change_is_recorded(self) -> None:
        booking = self.create()

        update = self.update(booking.id, BookingStatus.PAID, reason="approved", actor="handoff")

        self.assertTrue(update.applied)
        self.assertEqual(update.booking.status, BookingStatus.PAID)
        change = BookingStatusChange.objects.filter(booking_id=booking.id).last()
        self.assertEqual((change.from_status, change.to_status, change.actor), ("pending", "paid", "handoff"))

    def test_repeated_status_is_a_no_op(self) -> None:
        booking = self.create()
        self.update(booking.id, BookingStatus.PAID)

        update = self.update(booking.id, BookingStatus.PAID)

        self.assertFalse(update.applied)
        self.assertEqual(BookingStatusChange.objects.filter(booking_id=booking.id).count(), 2)

    def test_terminal_status_is_never_left(self) -> None:
        booking = self.create()
        self.update(booking.id, BookingStatus.PAID)

        update = self.update(booking.id, BookingStatus.REJECTED)

        self.assertFalse(update.applied)
        self.assertEqual(Booking.objects.get(pk=booking.id).status, Booking.Status.PAID)

    def test_cancel_after_payment_is_refused(self) -> None:
        booking = self.create()
        self.update(booking.id, BookingStatus.PAID)

        with self.assertRaises(InvalidStatusTransition):
            async_to_sync(self.store.cancel_booking)(booking.id, "too late")

    def test_unknown_booking(self) -> None:
        booking = self.create()
        Booking.objects.all().delete()

        with self.assertRaises(BookingNotFound):
            async_to_sync(self.store.get_booking)(booking.id)

    def test_paid_event_is_published_after_commit(self) -> None:
        seen = []
        message_bus.subscribe(BookingPaid, seen.append)
        self.addCleanup(message_bus.unsubscribe, BookingPaid, seen.append)
        booking = self.create()

        with self.captureOnCommitCallbacks(execute=True):
            self.update(booking.id, BookingStatus.PAID, reason="approved")

        self.assertEqual([event.booking_id for event in seen], [booking.id])
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(booking.booking_number, mail.outbox[0].subject)
        self.assertEqual(mail.outbox[0].to, ["ana@example.com"])
