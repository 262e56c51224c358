"""Tests for committing a draft through the booking store."""

from __future__ import annotations

import asyncio

from django.test import SimpleTestCase

from apps.bookings.application.commit import (
    BookingCommitter,
    CommitRejected,
    CommitUnavailable,
    Committed,
    LostAvailability,
)
from apps.bookings.domain.entities import BookingStatus, Party
from apps.bookings.testing import InMemoryBookingStore, lodging_service, sample_snapshot


class BookingCommitterTests(SimpleTestCase):

    def _committer(self, store, **kwargs) -> BookingCommitter:
        options = {"timeout": 1.0, "attempts": 3, "backoff": 0}
        options.update(kwargs)
        return BookingCommitter(store, **options)

    async def test_commit_creates_pending_booking(self) -> None:
        store = InMemoryBookingStore()
        outcome = await self._committer(store).commit(sample_snapshot(), "key-1")

        self.assertIsInstance(outcome, Committed)
        self.assertEqual(outcome.booking.status, BookingStatus.PENDING)
        self.assertEqual(outcome.booking.total.amount, 714000)
        self.assertEqual(len(store.bookings), 1)

    async def test_lost_response_is_retried_without_duplicates(self) -> None:
        store = InMemoryBookingStore(fail_next=2, fail_after_write=True)
        outcome = await self._committer(store).commit(sample_snapshot(), "key-1")

        self.assertIsInstance(outcome, Committed)
        self.assertEqual(store.create_calls, 3)
        self.assertEqual(len(store.bookings), 1)

    async def test_same_key_returns_same_booking(self) -> None:
        store = InMemoryBookingStore()
        committer = self._committer(store)
        first = await committer.commit(sample_snapshot(), "key-1")
        second = await committer.commit(sample_snapshot(), "key-1")

        self.assertEqual(first.booking.id, second.booking.id)
        self.assertEqual(len(store.bookings), 1)

    async def test_concurrent_commits_with_one_key_store_one_booking(self) -> None:
        store = InMemoryBookingStore(delay=0.01)
        committer = self._committer(store)
        outcomes = await asyncio.gather(*(committer.commit(sample_snapshot(), "key-1") for _ in range(3)))

        self.assertEqual(len({outcome.booking.id for outcome in outcomes}), 1)
        self.assertEqual(len(store.bookings), 1)

    async def test_persistent_failure_is_reported_as_unavailable(self) -> None:
        store = InMemoryBookingStore(fail_next=5)
        outcome = await self._committer(store).commit(sample_snapshot(), "key-1")

        self.assertIsInstance(outcome, CommitUnavailable)
        self.assertTrue(outcome.retryable)
        self.assertEqual(store.bookings, {})

    async def test_validation_rejection_is_not_retried(self) -> None:
        store = InMemoryBookingStore(reject_with={"email": "Enter a valid email address."})
        outcome = await self._committer(store).commit(sample_snapshot(), "key-1")

        self.assertIsInstance(outcome, CommitRejected)
        self.assertIn("email", outcome.errors)
        self.assertEqual(store.create_calls, 1)

    async def test_capacity_taken_since_the_gate_check(self) -> None:
        service = lodging_service(max_capacity=4)
        store = InMemoryBookingStore()
        committer = self._committer(store)
        await committer.commit(sample_snapshot(service, party=Party(adults=3)), "key-1")

        outcome = await committer.commit(sample_snapshot(service, party=Party(adults=2)), "key-2")

        self.assertIsInstance(outcome, LostAvailability)
        self.assertEqual(len(store.bookings), 1)

    async def test_timeout_is_reported_as_unavailable(self) -> None:
        store = InMemoryBookingStore(delay=1)
        outcome = await self._committer(store, timeout=0.02, attempts=2).commit(sample_snapshot(), "key-1")

        self.assertIsInstance(outcome, CommitUnavailable)
