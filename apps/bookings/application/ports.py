"""
Collaborator ports

Interfaces the booking engine consumes. Production implementations live
in `apps.bookings.clients` and `apps.bookings.repositories` and are
selected through `BOOKING_ENGINE`; tests pass in-memory ones.

Implementations signal transport problems with
`shared.infrastructure.http.RemoteServiceUnavailable` so callers can
tell "could not determine" apart from a definite answer.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Tuple
from uuid import UUID

from apps.bookings.domain.draft import DraftSnapshot
from apps.bookings.domain.entities import BookingRecord, BookingStatus, Party, ServiceDefinition
from shared.domain.value_objects import DateRange


@dataclass(frozen=True)
class AvailabilityAnswer:
    available: bool
    reason: str = ''
    alternative_dates: Tuple[DateRange, ...] = ()


@dataclass(frozen=True)
class StatusUpdate:
    booking: BookingRecord
    applied: bool


class ServiceCatalog(ABC):

    @abstractmethod
    async def get_service(self, service_reference: str) -> ServiceDefinition:
        """Raises ServiceNotFound for unknown references."""


class AvailabilityOracle(ABC):

    @abstractmethod
    async def check_availability(self, service_reference: str, dates: DateRange,
                                 party: Party) -> AvailabilityAnswer:
        pass


class BookingStore(ABC):

    @abstractmethod
    async def create_booking(self, snapshot: DraftSnapshot, idempotency_key: str) -> BookingRecord:
        """
        Persist a booking in PENDING.

        Calling again with the same idempotency key returns the booking
        created by the first call. Raises AvailabilityLost when the
        service no longer has room, BookingValidationRejected when the
        snapshot is refused.
        """

    @abstractmethod
    async def get_booking(self, booking_id: UUID) -> BookingRecord:
        """Raises BookingNotFound."""

    @abstractmethod
    async def update_status(self, booking_id: UUID, target: BookingStatus, *,
                            reason: str = '', actor: str = 'system',
                            strict: bool = False) -> StatusUpdate:
        """
        Apply a status change under a row lock.

        A booking already in a terminal status is left untouched and
        reported with applied=False, unless `strict` is set, in which
        case InvalidStatusTransition is raised.
        """

    async def cancel_booking(self, booking_id: UUID, reason: str) -> StatusUpdate:
        return await self.update_status(
            booking_id, BookingStatus.CANCELLED, reason=reason, actor='customer', strict=True
        )
