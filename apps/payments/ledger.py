"""
Booking status writer

The only component that changes `BookingRecord.status` after commit.
Work on one booking is serialized in-process with a per-booking
asyncio lock; across processes the booking store's row lock does the
same job.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict
from uuid import UUID

from apps.bookings.application.ports import BookingStore, StatusUpdate
from apps.bookings.domain.entities import BookingStatus

logger = logging.getLogger(__name__)


class KeyedLock:
    """One asyncio.Lock per key, dropped once nobody holds or waits on it."""

    def __init__(self):
        self._locks: Dict[object, asyncio.Lock] = {}
        self._users: Dict[object, int] = {}

    @asynccontextmanager
    async def hold(self, key):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def __len__(self):
        return len(self._locks)


class BookingStatusWriter:

    def __init__(self, store: BookingStore):
        self.store = store
        self._locks = KeyedLock()

    def serialized(self, booking_id: UUID):
        """
        Usage:
            async with writer.serialized(booking_id):
                ... read attempts, call gateway ...
                await writer.apply(booking_id, BookingStatus.PAID, reason=...)
        """
        return self._locks.hold(booking_id)

    async def apply(self, booking_id: UUID, target: BookingStatus, *,
                    reason: str = '', actor: str = 'system') -> StatusUpdate:
        update = await self.store.update_status(booking_id, target, reason=reason, actor=actor)
        if update.applied:
            logger.info(f"Booking {update.booking.booking_number} -> {target.value} ({reason})")
        else:
            logger.info(
                f"Booking {update.booking.booking_number} stays {update.booking.status.value}, "
                f"ignored {target.value} ({reason})"
            )
        return update

    async def cancel(self, booking_id: UUID, reason: str) -> StatusUpdate:
        """Raises InvalidStatusTransition for paid or rejected bookings."""
        async with self.serialized(booking_id):
            update = await self.store.cancel_booking(booking_id, reason)
        logger.info(f"Booking {update.booking.booking_number} cancel request applied={update.applied}")
        return update
