"""
Booking Commit

Persists a draft snapshot through the booking store. Transient failures
are retried with backoff under the same idempotency key, so a retry can
never produce a second booking.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Tuple

from apps.bookings.application.ports import BookingStore
from apps.bookings.domain.draft import DraftSnapshot
from apps.bookings.domain.entities import BookingRecord
from apps.bookings.exceptions import AvailabilityLost, BookingValidationRejected
from shared.application.retry import retry_async
from shared.domain.value_objects import DateRange
from shared.infrastructure.http import RemoteServiceUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Committed:
    booking: BookingRecord


@dataclass(frozen=True)
class CommitRejected:
    errors: Dict[str, str]


@dataclass(frozen=True)
class LostAvailability:
    reason: str
    alternative_dates: Tuple[DateRange, ...] = ()


@dataclass(frozen=True)
class CommitUnavailable:
    detail: str
    retryable: bool = True


CommitOutcome = Committed | CommitRejected | LostAvailability | CommitUnavailable


class BookingCommitter:

    def __init__(self, store: BookingStore, *, timeout: float = 15.0,
                 attempts: int = 3, backoff: float = 0.5):
        self.store = store
        self.timeout = timeout
        self.attempts = attempts
        self.backoff = backoff

    async def commit(self, snapshot: DraftSnapshot, idempotency_key: str) -> CommitOutcome:
        logger.info(
            f"Committing booking for {snapshot.service_reference} {snapshot.dates} "
            f"total={snapshot.quote.total} key={idempotency_key}"
        )
        try:
            booking = await retry_async(
                lambda: self.store.create_booking(snapshot, idempotency_key),
                attempts=self.attempts,
                backoff=self.backoff,
                timeout=self.timeout,
                retry_on=(RemoteServiceUnavailable,),
                name=f"commit {idempotency_key}",
            )
        except AvailabilityLost as e:
            logger.warning(f"Lost availability at commit for {snapshot.service_reference} {snapshot.dates}: {e.reason}")
            return LostAvailability(e.reason, e.alternative_dates)
        except BookingValidationRejected as e:
            logger.warning(f"Booking store rejected draft {idempotency_key}: {sorted(e.errors)}")
            return CommitRejected(e.errors)
        except asyncio.TimeoutError:
            return CommitUnavailable("Booking service timed out")
        except RemoteServiceUnavailable as e:
            return CommitUnavailable(f"Booking service unavailable: {e}")

        logger.info(f"Committed booking {booking.booking_number} ({booking.id})")
        return Committed(booking)
